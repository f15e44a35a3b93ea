"""
Downstream summaries of the annotated variant table.

Contains the filters and per-group counts used when reporting SNPs across
host organisms, cell lines and genes. The annotated table is never modified.
"""

from typing import Dict, Sequence, Union

import pandas as pd

NUCLEOTIDES = set("ACGTN")


def filter_by_quality(table, min_qual=100):
    """
    Keep variants whose rounded QUAL is strictly greater than ``min_qual``.

    QUAL is rounded to the nearest integer first, so 100.4 does not pass a
    threshold of 100. Variants without a QUAL value are dropped.

    Args:
        table (pd.DataFrame): Annotated (or stacked) variant table
        min_qual (float): Threshold (default: 100)

    Returns:
        pd.DataFrame: Filtered copy with a fresh index
    """
    rounded = pd.to_numeric(table["qual"], errors="coerce").round()
    return table[rounded > min_qual].reset_index(drop=True)


def is_snp(ref, alt):
    """Return True for a single-base REF with only single-base ALT alleles."""
    if not isinstance(ref, str) or not isinstance(alt, str):
        return False
    if len(ref) != 1 or ref.upper() not in NUCLEOTIDES:
        return False
    alleles = alt.split(",")
    return all(len(a) == 1 and a.upper() in NUCLEOTIDES for a in alleles)


def snps_only(table):
    """Keep single-nucleotide variants, dropping indels and symbolic alleles."""
    mask = [is_snp(ref, alt) for ref, alt in zip(table["ref"], table["alt"])]
    return table[pd.Series(mask, index=table.index, dtype=bool)].reset_index(
        drop=True
    )


def _group_label(value):
    if value is None or (not isinstance(value, str) and pd.isna(value)):
        return "None"
    text = str(value)
    return text if text.strip() else "None"


def count_snps(table, by: Union[str, Sequence[str]]):
    """
    Count variant rows per group.

    Missing group values (empty, NaN or None, e.g. intergenic variants) are
    labelled ``"None"``.

    Args:
        table (pd.DataFrame): Annotated variant table
        by: Column name or list of column names to group on

    Returns:
        pd.DataFrame: Group columns plus ``snps``, sorted by descending count
    """
    columns = [by] if isinstance(by, str) else list(by)
    missing = [col for col in columns if col not in table.columns]
    if missing:
        raise ValueError(f"Cannot group by missing columns: {missing}")

    labels = pd.DataFrame(
        {col: table[col].map(_group_label) for col in columns}, index=table.index
    )
    if labels.empty:
        return pd.DataFrame(columns=columns + ["snps"])

    counts = labels.groupby(columns, sort=False).size().reset_index(name="snps")
    return counts.sort_values(
        ["snps"] + columns,
        ascending=[False] + [True] * len(columns),
        kind="stable",
    ).reset_index(drop=True)


def gene_table(table, gene_lengths: Dict[str, int]):
    """
    Generate per-gene SNP counts normalised by gene length.

    Every gene in ``gene_lengths`` appears, with zero counts where no variant
    falls inside it. Intergenic variants are not included.

    Args:
        table (pd.DataFrame): Annotated variant table
        gene_lengths (dict): ``{gene: length_bp}``, e.g. from
            ``annotation_processing.gene_lengths``

    Returns:
        pd.DataFrame: Columns ``gene``, ``length``, ``snps``, ``snps_per_kb``
    """
    genes = table["gene"].map(_group_label)
    counts = genes[genes != "None"].value_counts()

    rows = []
    for gene, length in gene_lengths.items():
        number = int(counts.get(gene, 0))
        per_kb = (number / length) * 1000 if length else 0.0
        rows.append(
            {"gene": gene, "length": length, "snps": number, "snps_per_kb": per_kb}
        )

    return pd.DataFrame(rows, columns=["gene", "length", "snps", "snps_per_kb"])

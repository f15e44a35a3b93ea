"""
End-to-end construction of the annotated variant table.

Reads the annotation, stacks the per-sample VCFs and joins both to the run
table. Every stage either returns a complete table or raises; there is no
partial result.
"""

import os
from pathlib import Path

from .annotation_processing import extract_genes, read_gff
from .core import PipelineInputError, validate_input_paths
from .joining import join_metadata
from .vcf_processing import discover_vcf_files, stack_vcf_files

_YELLOW = "\033[93m"
_RESET = "\033[0m"


def _warn_on_unannotated_contigs(stacked, features):
    """Print a warning when variants sit on contigs the annotation does not describe."""
    annotated = set(features["seqid"])
    unannotated = sorted(set(stacked["chrom"]) - annotated)
    if unannotated:
        print(
            f"{_YELLOW}Warning:{_RESET} variant contig(s) {', '.join(unannotated)} "
            f"not found in annotation (seqids: {', '.join(sorted(annotated))}); "
            "their variants will have no gene"
        )


def build_annotated_table(
    gff_file_path,
    vcf_dir_path,
    sra_runtable_path,
    missing="error",
    id_column=None,
    debug=False,
):
    """
    Build the annotated variant table from the three input paths.

    Args:
        gff_file_path (str): GFF3 gene annotation
        vcf_dir_path (str): Directory holding only per-sample VCF files
        sra_runtable_path (str): Run table (CSV) with one row per run
        missing (str): Unmatched-sample policy, ``"error"`` or ``"null"``
        id_column (str): Run table identifier column (auto-detected if None)
        debug (bool): Whether to print debug information

    Returns:
        pd.DataFrame: One row per stacked variant with gene and run metadata

    Raises:
        PipelineInputError, ParseError, ExtractionError, JoinError
    """
    validate_input_paths(gff_file_path, vcf_dir_path, sra_runtable_path)

    features = read_gff(gff_file_path)
    if features.empty:
        raise PipelineInputError(f"Annotation file has no features: {gff_file_path}")
    genes = extract_genes(features)

    vcf_files = discover_vcf_files(vcf_dir_path)
    if debug:
        print(f"Annotation features: {len(features)}, genes: {len(genes)}")
        print(f"VCF files ({len(vcf_files)}): {[p.name for p in vcf_files]}")

    stacked = stack_vcf_files(vcf_files)
    if debug:
        print(f"Stacked variant table shape: {stacked.shape}")

    _warn_on_unannotated_contigs(stacked, features)

    table = join_metadata(
        stacked, genes, sra_runtable_path, missing=missing, id_column=id_column
    )
    if debug:
        print(f"Annotated table shape: {table.shape}")
        print(f"Annotated table columns: {list(table.columns)}")

    return table


def write_annotated_table(table, path):
    """Write the annotated table as CSV, leaving missing values empty."""
    path = Path(path)
    os.makedirs(path.parent, exist_ok=True)
    table.to_csv(path, index=None, na_rep="")
    return path

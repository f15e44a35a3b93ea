from __future__ import annotations

from pathlib import Path
from typing import Dict, Mapping
from urllib.parse import unquote

import numpy as np
import pandas as pd

from .core import ExtractionError, ParseError, PipelineInputError

GFF_COLUMNS = [
    "seqid",
    "source",
    "feature_type",
    "start",
    "end",
    "score",
    "strand",
    "phase",
    "attributes",
]

# Attribute keys tried, in order, for a gene's display name
GENE_NAME_KEYS = ("Name", "gene_name", "gene")


def parse_attributes(attr: str | None) -> Dict[str, str]:
    """Parse a GFF3 (``key=value;``) or GTF (``key "value";``) attribute column."""
    out: Dict[str, str] = {}
    if attr is None:
        return out
    text = attr.strip()
    if text in ("", "."):
        return out
    for part in text.split(";"):
        part = part.strip()
        if not part:
            continue
        if "=" in part:
            k, v = part.split("=", 1)
            out[k.strip()] = unquote(v.strip())
        elif " " in part:
            k, v = part.split(" ", 1)
            out[k] = v.strip().strip('"')
        else:
            out[part] = ""
    return out


def _parse_score(score: str) -> float:
    if score == ".":
        return np.nan
    try:
        return float(score)
    except ValueError:
        return np.nan


def _read_gff_records(gff_path: Path) -> list:
    records = []

    with gff_path.open(encoding="utf-8") as fh:
        for line_number, raw in enumerate(fh, start=1):
            line = raw.rstrip("\r\n")
            if not line.strip():
                continue
            if line.startswith("##FASTA"):
                break
            if line.startswith("#"):
                continue

            fields = line.split("\t")
            if len(fields) != len(GFF_COLUMNS):
                raise ParseError(
                    f"{gff_path}: line {line_number}: expected {len(GFF_COLUMNS)} "
                    f"tab-separated columns, found {len(fields)}"
                )

            seqid, source, ftype, start, end, score, strand, phase, attrs = fields
            try:
                start_i, end_i = int(start), int(end)
            except ValueError:
                raise ParseError(
                    f"{gff_path}: line {line_number}: start/end must be integers, "
                    f"found '{start}'/'{end}'"
                ) from None
            if start_i < 1 or start_i > end_i:
                raise ParseError(
                    f"{gff_path}: line {line_number}: invalid feature range "
                    f"{start_i}-{end_i} (need 1 <= start <= end)"
                )

            records.append(
                {
                    "seqid": seqid,
                    "source": source,
                    "feature_type": ftype,
                    "start": start_i,
                    "end": end_i,
                    "score": _parse_score(score),
                    "strand": strand,
                    "phase": phase,
                    "attributes": parse_attributes(attrs),
                }
            )

    return records


def read_gff(gff_path: str | Path) -> pd.DataFrame:
    """
    Parse a GFF3 file into a feature table without filtering.

    Comment and blank lines are skipped and reading stops at a ``##FASTA``
    section. The attributes column is parsed into a dict per feature.

    Raises:
        ParseError: On a row without exactly nine columns, with invalid
            coordinates, or on text that is not UTF-8
        PipelineInputError: If the file cannot be opened or read
    """
    gff_path = Path(gff_path)

    try:
        records = _read_gff_records(gff_path)
    except UnicodeDecodeError as exc:
        raise ParseError(f"{gff_path}: could not decode file: {exc}") from exc
    except OSError as exc:
        raise PipelineInputError(
            f"Could not read annotation file {gff_path}: {exc}"
        ) from exc

    features = pd.DataFrame(records, columns=GFF_COLUMNS)
    return features.astype({"start": "int64", "end": "int64", "score": "float64"})


def gene_name_from_attributes(attributes: Mapping[str, str]) -> str | None:
    for key in GENE_NAME_KEYS:
        value = attributes.get(key)
        if value and value.strip():
            return value.strip()
    return None


def extract_genes(features: pd.DataFrame) -> pd.DataFrame:
    """
    Reduce a feature table to one ``(gene, start, end)`` row per gene feature.

    Rows are sorted by start; genes sharing a start keep their file order,
    which is the order used to break ties when intervals overlap.

    Raises:
        ExtractionError: If a gene feature has no usable name attribute
    """
    gene_rows = features[features["feature_type"] == "gene"]

    names = []
    for row in gene_rows.itertuples(index=False):
        name = gene_name_from_attributes(row.attributes)
        if name is None:
            label = f"{row.seqid}:{row.start}-{row.end}"
            feature_id = row.attributes.get("ID")
            if feature_id:
                label = f"{label} (ID={feature_id})"
            raise ExtractionError(
                f"Gene feature {label} has no {', '.join(GENE_NAME_KEYS)} attribute"
            )
        names.append(name)

    genes = pd.DataFrame(
        {
            "gene": pd.Series(names, dtype=object),
            "start": gene_rows["start"].to_numpy(dtype="int64"),
            "end": gene_rows["end"].to_numpy(dtype="int64"),
        }
    )
    return genes.sort_values("start", kind="stable").reset_index(drop=True)


def gene_lengths(genes: pd.DataFrame) -> Dict[str, int]:
    """Return ``{gene: length}`` in gene-table order, summing repeated names."""
    lengths: Dict[str, int] = {}
    for gene, start, end in genes[["gene", "start", "end"]].itertuples(
        index=False, name=None
    ):
        lengths[gene] = lengths.get(gene, 0) + int(end) - int(start) + 1
    return lengths

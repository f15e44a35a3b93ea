"""
VCF file processing functionality for snpstack.

Contains functions for reading, writing and stacking per-sample VCF files.
"""

import gzip
import math
import os
import re
from pathlib import Path

import numpy as np
import pandas as pd

from .core import ParseError, PipelineInputError

VCF_COLUMNS = ["chrom", "pos", "id", "ref", "alt", "qual", "filter", "info"]

# Columns added by stacking and gene assignment; a VCF may not declare them
RESERVED_COLUMNS = ("sample", "gene")

VCF_EXTENSION = re.compile(r"\.vcf(?:\.gz|\.bgz)?$", re.IGNORECASE)
PIPELINE_SUFFIX = re.compile(
    r"[._](?:lofreq|filtered|csq|calls|called|norm|sorted|raw|bcftools|snps|variants)$",
    re.IGNORECASE,
)


def _open_vcf(path, mode: str):
    path = str(path)
    if path.endswith((".gz", ".bgz")):
        return gzip.open(path, mode, encoding="utf-8")
    return open(path, mode, encoding="utf-8")


def normalise_sample_id(value) -> str:
    """
    Reduce a file name or run identifier to the shared sample tag.

    Surrounding whitespace and any directory part are dropped, then the VCF
    extension and trailing pipeline suffixes (``.filtered``, ``_lofreq``, ...)
    are removed. Case is preserved.

    Args:
        value: File name, path or run identifier

    Returns:
        str: Sample tag (may be empty if nothing remains)
    """
    name = os.path.basename(str(value).strip())
    name = VCF_EXTENSION.sub("", name)
    while True:
        stripped = PIPELINE_SUFFIX.sub("", name)
        if stripped == name or not stripped:
            break
        name = stripped
    return name


def sample_from_filename(path) -> str:
    """Derive the sample tag of a VCF from its file name."""
    return normalise_sample_id(Path(path).name)


def parse_info_field(info) -> dict[str, str]:
    """
    Parse a VCF INFO string into a mapping.

    Flags (keys without ``=``) map to an empty string; ``.`` or an empty
    string gives an empty mapping.
    """
    out: dict[str, str] = {}
    if info is None:
        return out
    text = str(info).strip()
    if text in ("", "."):
        return out
    for part in text.split(";"):
        if not part:
            continue
        key, sep, value = part.partition("=")
        out[key] = value if sep else ""
    return out


def _parse_qual(text):
    try:
        value = float(text)
    except (TypeError, ValueError):
        return np.nan
    if not math.isfinite(value) or value < 0:
        return np.nan
    return value


def _format_qual(value) -> str:
    if value is None or pd.isna(value):
        return "."
    value = float(value)
    if value.is_integer() and abs(value) < 1e16:
        return str(int(value))
    return repr(value)


def _format_cell(value) -> str:
    # genotype columns absent from some stacked files come back as NaN
    if value is None or (isinstance(value, float) and math.isnan(value)):
        return "."
    return str(value)


def _check_header(path, columns, line_number):
    fixed = [col.lower() for col in columns[: len(VCF_COLUMNS)]]
    if fixed != VCF_COLUMNS:
        expected = " ".join(col.upper() for col in VCF_COLUMNS)
        found = " ".join(columns)
        raise ParseError(
            f"{path}: line {line_number}: header must start with '#{expected}', "
            f"found '#{found}'"
        )

    names = VCF_COLUMNS + columns[len(VCF_COLUMNS) :]
    duplicates = sorted({name for name in names if names.count(name) > 1})
    if duplicates:
        raise ParseError(
            f"{path}: line {line_number}: duplicate header columns: {', '.join(duplicates)}"
        )
    return names


def read_vcf(path):
    """
    Read one VCF file into a variant table.

    Leading ``##`` metadata lines are skipped and the next line is taken as
    the column header. Missing or unparseable QUAL values are kept as NaN.

    Args:
        path (str): Path to a plain or gzip-compressed VCF

    Returns:
        pd.DataFrame: One row per variant, columns ``VCF_COLUMNS`` followed by
        any genotype columns in file order

    Raises:
        ParseError: If no header is found or a data row is malformed
    """
    path = str(path)
    names = None
    rows = []
    positions = []
    quals = []

    try:
        with _open_vcf(path, "rt") as handle:
            for line_number, raw in enumerate(handle, start=1):
                line = raw.rstrip("\r\n")

                if names is None:
                    if line.startswith("##") or not line.strip():
                        continue
                    if not line.startswith("#"):
                        raise ParseError(
                            f"{path}: line {line_number}: expected a '#CHROM' header "
                            "line before variant records"
                        )
                    names = _check_header(path, line[1:].split("\t"), line_number)
                    continue

                if not line.strip():
                    continue

                fields = line.split("\t")
                if len(fields) != len(names):
                    raise ParseError(
                        f"{path}: line {line_number}: expected {len(names)} fields "
                        f"as declared by the header, found {len(fields)}"
                    )

                try:
                    pos = int(fields[1])
                except ValueError:
                    raise ParseError(
                        f"{path}: line {line_number}: POS '{fields[1]}' is not an integer"
                    ) from None
                if pos < 1:
                    raise ParseError(
                        f"{path}: line {line_number}: POS must be >= 1, found {pos}"
                    )

                positions.append(pos)
                quals.append(_parse_qual(fields[5]))
                rows.append(fields)
    except (UnicodeDecodeError, gzip.BadGzipFile, EOFError) as exc:
        raise ParseError(f"{path}: could not decode file: {exc}") from exc

    if names is None:
        raise ParseError(f"{path}: no '#CHROM' header line found")

    table = pd.DataFrame(rows, columns=names, dtype=object)
    table["pos"] = pd.Series(positions, dtype="int64")
    table["qual"] = pd.Series(quals, dtype="float64")
    return table


def write_vcf(table, path, meta_lines=None):
    """
    Write a variant table back to VCF text.

    A ``sample`` column added by stacking is not written. Output is gzip
    compressed when ``path`` ends in ``.gz``.

    Args:
        table (pd.DataFrame): Variant table as returned by ``read_vcf``
        path (str): Destination path
        meta_lines (list[str]): ``##`` lines to write before the header
            (default: a single ``##fileformat=VCFv4.2``)
    """
    if meta_lines is None:
        meta_lines = ["##fileformat=VCFv4.2"]

    missing = [col for col in VCF_COLUMNS if col not in table.columns]
    if missing:
        raise ValueError(f"Variant table is missing columns: {missing}")

    extras = [
        col for col in table.columns if col not in VCF_COLUMNS and col != "sample"
    ]
    header = [col.upper() for col in VCF_COLUMNS] + extras

    with _open_vcf(path, "wt") as dest:
        for line in meta_lines:
            dest.write(line.rstrip("\n") + "\n")
        dest.write("#" + "\t".join(header) + "\n")
        for row in table[VCF_COLUMNS + extras].itertuples(index=False, name=None):
            values = list(row)
            values[1] = str(int(values[1]))
            values[5] = _format_qual(values[5])
            dest.write("\t".join(_format_cell(value) for value in values) + "\n")


def discover_vcf_files(directory):
    """
    List the VCF files to stack from a directory.

    The directory is expected to hold only VCF files; every regular,
    non-hidden file is returned, sorted by name. Subdirectories are ignored.

    Raises:
        PipelineInputError: If the directory does not exist or holds no files
    """
    directory = Path(directory).expanduser()
    if not directory.is_dir():
        raise PipelineInputError(f"VCF directory not found: {directory}")

    files = sorted(
        p for p in directory.iterdir() if p.is_file() and not p.name.startswith(".")
    )
    if not files:
        raise PipelineInputError(f"No VCF files found in directory: {directory}")
    return files


def stack_vcf_files(vcf_paths):
    """
    Parse each VCF and concatenate them into one table tagged by sample.

    Files are stacked in the order given and each file keeps its own record
    order. A single unreadable or malformed file aborts the whole stack.

    Args:
        vcf_paths: Iterable of VCF paths

    Returns:
        pd.DataFrame: ``sample`` column followed by the variant columns

    Raises:
        PipelineInputError: If no files are given, a file fails to parse, or
            two files map to the same sample tag
    """
    paths = [Path(p) for p in vcf_paths]
    if not paths:
        raise PipelineInputError("No VCF files supplied to stack")

    tables = []
    seen: dict[str, Path] = {}

    for path in paths:
        sample = sample_from_filename(path)
        if not sample:
            raise PipelineInputError(f"Could not derive a sample name from {path}")
        if sample in seen:
            raise PipelineInputError(
                f"VCF files {seen[sample]} and {path} both map to sample '{sample}'"
            )
        seen[sample] = path

        try:
            table = read_vcf(path)
        except ParseError as exc:
            raise PipelineInputError(f"Failed to parse VCF {path}: {exc}") from exc
        except OSError as exc:
            raise PipelineInputError(f"Could not read VCF {path}: {exc}") from exc

        reserved = [col for col in RESERVED_COLUMNS if col in table.columns]
        if reserved:
            raise PipelineInputError(
                f"{path}: genotype column(s) named {', '.join(reserved)} clash "
                "with columns added to the stacked table"
            )

        table.insert(0, "sample", sample)
        tables.append(table)

    stacked = pd.concat(tables, ignore_index=True, sort=False)
    stacked["pos"] = stacked["pos"].astype("int64")
    stacked["qual"] = stacked["qual"].astype("float64")
    return stacked


def stack_vcf_directory(directory):
    """Stack every VCF found in ``directory`` (see ``discover_vcf_files``)."""
    return stack_vcf_files(discover_vcf_files(directory))

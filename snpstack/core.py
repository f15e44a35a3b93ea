"""
Core utilities and error types for snpstack.

Contains the exception hierarchy shared by every stage and the up-front
validation of the input paths a run needs.
"""

import os

from .data import get_data_file


def get_package_data_path(filename):
    """
    Get the path to a data file within the package.

    Args:
        filename (str): Name of the data file

    Returns:
        str: Full path to the data file
    """
    return get_data_file(filename)


def get_logo():
    """Return the snpstack ASCII logo."""
    return """
███████ ███    ██ ██████  ███████ ████████  █████   ██████ ██   ██
██      ████   ██ ██   ██ ██         ██    ██   ██ ██      ██  ██
███████ ██ ██  ██ ██████  ███████    ██    ███████ ██      █████
     ██ ██  ██ ██ ██           ██    ██    ██   ██ ██      ██  ██
███████ ██   ████ ██      ███████    ██    ██   ██  ██████ ██   ██


"""


class SnpstackError(Exception):
    """Base exception class for snpstack."""

    pass


class ParseError(SnpstackError):
    """Raised when a single VCF or annotation file is malformed."""

    pass


class ExtractionError(SnpstackError):
    """Raised when a gene feature has no recoverable name."""

    pass


class PipelineInputError(SnpstackError):
    """Raised when a required input is missing, empty or unreadable."""

    pass


class JoinError(SnpstackError):
    """Raised when variants cannot be matched to exactly one metadata row."""

    pass


def validate_input_paths(gff_file_path, vcf_dir_path, sra_runtable_path):
    """
    Check that every input path exists before any parsing begins.

    Args:
        gff_file_path (str): Annotation file
        vcf_dir_path (str): Directory of per-sample VCF files
        sra_runtable_path (str): Run table (CSV)

    Raises:
        PipelineInputError: Listing every missing or mistyped path
    """
    problems = []

    for label, path in (
        ("Annotation file", gff_file_path),
        ("Run table", sra_runtable_path),
    ):
        if path is None or str(path).strip() == "":
            problems.append(f"{label} path is required")
        elif not os.path.exists(path):
            problems.append(f"{label} not found: {path}")
        elif not os.path.isfile(path):
            problems.append(f"{label} is not a file: {path}")

    if vcf_dir_path is None or str(vcf_dir_path).strip() == "":
        problems.append("VCF directory path is required")
    elif not os.path.exists(vcf_dir_path):
        problems.append(f"VCF directory not found: {vcf_dir_path}")
    elif not os.path.isdir(vcf_dir_path):
        problems.append(f"VCF directory is not a directory: {vcf_dir_path}")

    if problems:
        raise PipelineInputError("; ".join(problems))

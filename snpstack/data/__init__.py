"""Data files for snpstack package."""

from pathlib import Path

DATA_DIR = Path(__file__).parent


def get_data_file(filename):
    """Get the full path to a data file."""
    return str(DATA_DIR / filename)


def get_annotation():
    """Get path to SARS-CoV-2 (NC_045512.2) gene annotations."""
    return get_data_file("NC_045512.gff3")

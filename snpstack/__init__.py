"""
snpstack: Stack SARS-CoV-2 variant calls and join them to genes and run metadata.

Builds the analysis-ready table behind a report on SNPs observed across host
organisms, cell lines and genes: per-sample VCFs are stacked, each variant is
placed in its gene, and the sequencing run metadata is attached.
"""

from ._version import __version__

from .main import main  # noqa: F401

__all__ = ["__version__", "main"]

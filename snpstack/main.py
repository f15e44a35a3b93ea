"""
Main module for snpstack.

Contains the main function and argument parsing for the snpstack command-line interface.
"""

import argparse
import os
import sys

import pandas as pd
from argparse_formatter import FlexiFormatter

from ._version import __version__
from .analysis import count_snps, filter_by_quality, gene_table, snps_only
from .annotation_processing import extract_genes, gene_lengths, read_gff
from .core import SnpstackError, get_logo
from .data import get_annotation
from .joining import MISSING_POLICIES, match_samples, read_sample_metadata
from .pipeline import build_annotated_table, write_annotated_table
from .provenance import RunManifest, collect_input_files
from .schemas import (
    render_output_schema_markdown,
    render_output_schema_pretty,
    write_results_metadata,
)
from .vcf_processing import discover_vcf_files, sample_from_filename


def _resolve_gff(value):
    """Map the ``default`` keyword to the packaged NC_045512.2 annotation."""
    if value is None or value == "default":
        return get_annotation()
    return value


def _add_build_subparser(subparsers):
    description = (
        "Stack per-sample VCFs, assign genes and join sequencing run metadata "
        "into one annotated table."
    )
    build_parser = subparsers.add_parser(
        "build",
        help="Build the annotated variant table",
        description=description,
        formatter_class=FlexiFormatter,
        epilog="""
VCF_DIR must contain only VCF files (plain or gzipped), one per sample. The
sample of each file is its name without the .vcf/.vcf.gz extension and any
trailing pipeline suffix such as .filtered or _lofreq, e.g.

SRR11542244.filtered.vcf -> SRR11542244

RUNTABLE is a CSV with one row per run (e.g. an SRA Run Selector table); its
Run column is matched against the sample names using the same rule.
""",
    )

    build_parser.add_argument(
        "gff",
        help="GFF3 annotation, or 'default' for the packaged NC_045512.2 annotation",
    )
    build_parser.add_argument("vcf_dir", help="Directory of per-sample VCF files")
    build_parser.add_argument("runtable", help="Run table CSV with sample metadata")

    opt_group = build_parser.add_argument_group("snpstack options")
    opt_group.add_argument(
        "-o",
        "--outdir",
        action="store",
        required=False,
        default=".",
        help="Output directory for snpstack results (default: current directory)",
    )
    opt_group.add_argument(
        "-f",
        "--filename",
        action="store",
        required=False,
        default="annotated_variants.csv",
        help="Output file name (default: annotated_variants.csv)",
    )
    opt_group.add_argument(
        "--missing-metadata",
        choices=list(MISSING_POLICIES),
        default="error",
        help="What to do with samples absent from the run table: fail the run "
        "(error) or keep their variants with empty metadata (null) (default: error)",
    )
    opt_group.add_argument(
        "--id-column",
        action="store",
        default=None,
        help="Run table column holding run identifiers (default: auto-detect)",
    )
    opt_group.add_argument(
        "--no-manifest",
        action="store_true",
        help="Do not write run_metadata.json",
        default=False,
    )
    opt_group.add_argument(
        "--hash-inputs",
        action="store_true",
        help="Record SHA-256 checksums of input files in run_metadata.json",
        default=False,
    )
    opt_group.add_argument(
        "--debug",
        action="store_true",
        help="Print debugging information",
        default=False,
    )

    build_parser.set_defaults(handler=_run_build_command)


def _add_samples_subparser(subparsers):
    samples_parser = subparsers.add_parser(
        "samples",
        help="Show the sample name derived from each VCF and its run table match",
        description="List sample names derived from VCF file names, optionally "
        "checking each against a run table before running 'build'.",
        formatter_class=FlexiFormatter,
    )
    samples_parser.add_argument("vcf_dir", help="Directory of per-sample VCF files")
    samples_parser.add_argument(
        "--runtable", default=None, help="Run table CSV to match against"
    )
    samples_parser.add_argument(
        "--id-column",
        default=None,
        help="Run table column holding run identifiers (default: auto-detect)",
    )
    samples_parser.set_defaults(handler=_run_samples_command)


def _add_genes_subparser(subparsers):
    genes_parser = subparsers.add_parser(
        "genes",
        help="Print the gene intervals extracted from an annotation",
        description="Print the (gene, start, end) table used to place variants in genes.",
        formatter_class=FlexiFormatter,
    )
    genes_parser.add_argument(
        "gff",
        nargs="?",
        default="default",
        help="GFF3 annotation (default: packaged NC_045512.2 annotation)",
    )
    genes_parser.set_defaults(handler=_run_genes_command)


def _add_summary_subparser(subparsers):
    summary_parser = subparsers.add_parser(
        "summary",
        help="Count SNPs per group in an annotated table",
        description="Summarise an annotated table produced by 'build'.",
        formatter_class=FlexiFormatter,
        epilog="""
Examples:

snpstack summary annotated_variants.csv --by organism
snpstack summary annotated_variants.csv --by cell_line gene --min-qual 100
snpstack summary annotated_variants.csv --per-kb
""",
    )
    summary_parser.add_argument("table", help="Annotated table CSV from 'build'")
    summary_parser.add_argument(
        "--by",
        nargs="+",
        default=["gene"],
        help="Column(s) to group on (default: gene)",
    )
    summary_parser.add_argument(
        "--min-qual",
        type=float,
        default=None,
        help="Keep variants whose rounded QUAL is greater than this value",
    )
    summary_parser.add_argument(
        "--snps-only",
        action="store_true",
        default=False,
        help="Drop indels and other non single-nucleotide variants",
    )
    summary_parser.add_argument(
        "--per-kb",
        action="store_true",
        default=False,
        help="Report SNPs per kb for each gene of the annotation instead of --by groups",
    )
    summary_parser.add_argument(
        "--gff",
        default="default",
        help="Annotation used for --per-kb gene lengths (default: packaged NC_045512.2)",
    )
    summary_parser.add_argument(
        "--out", default=None, help="Also write the summary to this CSV file"
    )
    summary_parser.set_defaults(handler=_run_summary_command)


def _add_schema_subparser(subparsers):
    schema_parser = subparsers.add_parser(
        "schema",
        help="Describe the columns of the annotated table",
        formatter_class=FlexiFormatter,
    )
    schema_parser.add_argument(
        "--markdown",
        action="store_true",
        default=False,
        help="Print the schema as a markdown table",
    )
    schema_parser.set_defaults(handler=_run_schema_command)


def create_parser():
    """Create and return the top-level argument parser with subcommands."""

    parser = argparse.ArgumentParser(
        prog="snpstack",
        description="snpstack: stack SARS-CoV-2 variant calls and join them to genes and run metadata",
        formatter_class=FlexiFormatter,
    )
    parser.add_argument(
        "-V", "--version", action="version", version=f"%(prog)s {__version__}"
    )

    subparsers = parser.add_subparsers(dest="command")
    _add_build_subparser(subparsers)
    _add_samples_subparser(subparsers)
    _add_genes_subparser(subparsers)
    _add_summary_subparser(subparsers)
    _add_schema_subparser(subparsers)

    return parser


def main(sysargs=None):
    """Entry point for the snpstack CLI."""
    if sysargs is None:
        sysargs = sys.argv[1:]

    parser = create_parser()

    try:
        args = parser.parse_args(sysargs)
    except SystemExit as exc:
        code = exc.code if isinstance(exc.code, int) else 0
        return code

    handler = getattr(args, "handler", None)
    if handler is None:
        parser.print_help()
        return 1

    args._argv = list(sysargs)
    return handler(args)


def _run_build_command(args):
    print(get_logo())

    gff = _resolve_gff(args.gff)
    manifest = None

    try:
        os.makedirs(args.outdir, exist_ok=True)

        if not args.no_manifest:
            manifest = RunManifest(
                outdir=args.outdir,
                command="build",
                cli_args=getattr(args, "_argv", None),
            )
            manifest.start()

        print("Reading annotation, stacking VCFs and joining run metadata...")
        table = build_annotated_table(
            gff,
            args.vcf_dir,
            args.runtable,
            missing=args.missing_metadata,
            id_column=args.id_column,
            debug=args.debug,
        )

        samples = list(pd.unique(table["sample"]))
        outfile = write_annotated_table(table, os.path.join(args.outdir, args.filename))
        metadata_path = write_results_metadata(
            args.outdir,
            results_filename=args.filename,
            row_count=len(table),
            samples=samples,
        )
        print(f"Wrote {len(table)} variants from {len(samples)} samples to {outfile}")

        if manifest is not None:
            inputs = collect_input_files(
                {
                    "gff": [gff],
                    "runtable": [args.runtable],
                    "vcf": discover_vcf_files(args.vcf_dir),
                },
                include_hashes=args.hash_inputs,
            )
            manifest.finish(
                status="success",
                outputs={
                    "annotated_table": str(outfile),
                    "results_metadata": str(metadata_path),
                },
                extra={"inputs": inputs, "row_count": len(table)},
            )

        print(f"\nFinished: find results in {args.outdir}\n")
        return 0
    except SnpstackError as e:
        if manifest is not None:
            manifest.finish(status="failed", error=str(e))
        print(f"\nERROR: {str(e)}\n")
        return 1
    except Exception as e:
        if manifest is not None:
            manifest.finish(status="failed", error=str(e))
        print(f"\nUnexpected error: {str(e)}\n")
        if args.debug:
            import traceback

            traceback.print_exc()
        return 1


def _run_samples_command(args):
    try:
        vcf_files = discover_vcf_files(args.vcf_dir)
        samples = [sample_from_filename(path) for path in vcf_files]

        if args.runtable is None:
            report = pd.DataFrame(
                {"file": [p.name for p in vcf_files], "sample": samples}
            )
        else:
            metadata = read_sample_metadata(args.runtable, id_column=args.id_column)
            report = match_samples(samples, metadata)
            report.insert(0, "file", [p.name for p in vcf_files])
            report["run_id"] = report["run_id"].fillna("")
    except SnpstackError as e:
        print(f"\nERROR: {str(e)}\n")
        return 1

    print(report.to_string(index=False))

    if args.runtable is not None and not report["matched"].all():
        unmatched = report.loc[~report["matched"], "sample"]
        print(f"\n{len(unmatched)} sample(s) have no run table entry")
        return 1
    return 0


def _run_genes_command(args):
    try:
        genes = extract_genes(read_gff(_resolve_gff(args.gff)))
    except SnpstackError as e:
        print(f"\nERROR: {str(e)}\n")
        return 1

    print(genes.to_string(index=False))
    return 0


def _run_summary_command(args):
    try:
        table = pd.read_csv(args.table, dtype=str, keep_default_na=False)
    except Exception as e:
        print(f"\nERROR: Could not read annotated table: {args.table}. {str(e)}\n")
        return 1

    try:
        if args.min_qual is not None:
            table = filter_by_quality(table, args.min_qual)
        if args.snps_only:
            table = snps_only(table)

        if args.per_kb:
            genes = extract_genes(read_gff(_resolve_gff(args.gff)))
            summary = gene_table(table, gene_lengths(genes))
        else:
            summary = count_snps(table, args.by)
    except (SnpstackError, KeyError, ValueError, OSError) as e:
        print(f"\nERROR: {str(e)}\n")
        return 1

    print(summary.to_string(index=False))
    if args.out:
        summary.to_csv(args.out, index=None)
    return 0


def _run_schema_command(args):
    if args.markdown:
        print(render_output_schema_markdown())
    else:
        print(render_output_schema_pretty())
    return 0


if __name__ == "__main__":
    sys.exit(main())

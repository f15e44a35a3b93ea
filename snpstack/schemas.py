"""Output schemas for snpstack results."""

from __future__ import annotations

import datetime as dt
import json
import shutil
import textwrap
from pathlib import Path
from typing import Any, Iterable, Sequence

RESULTS_SCHEMA_VERSION = "1.0"

ANNOTATED_SCHEMA: list[dict[str, str]] = [
    {
        "name": "sample",
        "type": "string",
        "description": "Sample tag derived from the VCF file name.",
        "units": "",
        "values": "e.g. SRR11542244",
    },
    {
        "name": "chrom",
        "type": "string",
        "description": "Reference contig name (e.g., NC_045512.2).",
        "units": "",
        "values": "",
    },
    {
        "name": "pos",
        "type": "integer",
        "description": "1-based position of the variant on the reference.",
        "units": "bp",
        "values": ">= 1",
    },
    {
        "name": "id",
        "type": "string",
        "description": "Variant identifier from the VCF ID column.",
        "units": "",
        "values": "",
    },
    {
        "name": "ref",
        "type": "string",
        "description": "Reference allele.",
        "units": "",
        "values": "",
    },
    {
        "name": "alt",
        "type": "string",
        "description": "Alternate allele(s), comma-separated.",
        "units": "",
        "values": "",
    },
    {
        "name": "qual",
        "type": "number",
        "description": "Variant caller confidence score; empty when missing.",
        "units": "phred",
        "values": ">= 0",
    },
    {
        "name": "filter",
        "type": "string",
        "description": "VCF FILTER status.",
        "units": "",
        "values": "PASS, ...",
    },
    {
        "name": "info",
        "type": "string",
        "description": "Raw VCF INFO field (semicolon-separated key=value).",
        "units": "",
        "values": "",
    },
    {
        "name": "gene",
        "type": "string",
        "description": "Gene whose interval contains pos; empty when intergenic.",
        "units": "",
        "values": "e.g. ORF1ab, S, N",
    },
]

SCHEMA_NOTES = [
    "Per-sample genotype columns (`FORMAT` and sample columns) follow `info` when present in the VCFs.",
    "Every run table column follows `gene`, with `run_id` first; names are lower-cased with spaces replaced by underscores.",
    "Run table columns whose names clash with variant columns carry a `_metadata` suffix.",
]


def render_output_schema_markdown(
    schema: Iterable[dict[str, str]] | None = None,
) -> str:
    schema = list(schema or ANNOTATED_SCHEMA)
    lines = [
        "# Output schema",
        "",
        f"Schema version: `{RESULTS_SCHEMA_VERSION}`",
        "",
        "Generated from `snpstack.schemas.ANNOTATED_SCHEMA`.",
        "",
        "This document describes the columns produced in `annotated_variants.csv`.",
        "",
    ]
    lines.extend(f"- {note}" for note in SCHEMA_NOTES)
    lines.extend(
        [
            "",
            "| Column | Type | Description | Units | Values |",
            "| --- | --- | --- | --- | --- |",
        ]
    )

    for entry in schema:
        lines.append(
            "| {name} | {type} | {description} | {units} | {values} |".format(
                name=entry["name"],
                type=entry["type"],
                description=entry["description"],
                units=entry.get("units", ""),
                values=entry.get("values", ""),
            )
        )

    lines.append("")
    return "\n".join(lines)


def _wrap_cell(text: str, width: int) -> list[str]:
    if width <= 0:
        return [text]
    return textwrap.wrap(text, width=width) or [""]


def render_output_schema_pretty(
    schema: Iterable[dict[str, str]] | None = None, *, width: int | None = None
) -> str:
    schema = list(schema or ANNOTATED_SCHEMA)
    term_width = width or shutil.get_terminal_size((120, 20)).columns

    columns = [
        ("Column", "name", 10),
        ("Type", "type", 8),
        ("Units", "units", 6),
        ("Values", "values", 18),
        ("Description", "description", None),
    ]

    fixed = sum(col_width for *_rest, col_width in columns if col_width is not None)
    separators = 3 * (len(columns) - 1)
    description_width = max(30, term_width - fixed - separators)

    computed_widths = [
        description_width if col_width is None else col_width
        for _header, _key, col_width in columns
    ]

    header_line = " | ".join(
        header.ljust(width) for (header, _key, _), width in zip(columns, computed_widths)
    )
    divider_line = "-+-".join("-" * width for width in computed_widths)

    lines = [
        "Output schema",
        f"Schema version: {RESULTS_SCHEMA_VERSION}",
        "Generated from snpstack.schemas.ANNOTATED_SCHEMA.",
    ]
    lines.extend(note.replace("`", "") for note in SCHEMA_NOTES)
    lines.extend(["", header_line, divider_line])

    for entry in schema:
        wrapped_cells = [
            _wrap_cell(str(entry.get(key) or ""), col_width)
            for (_header, key, _), col_width in zip(columns, computed_widths)
        ]

        row_height = max(len(cell) for cell in wrapped_cells)
        for idx in range(row_height):
            row_parts = []
            for cell, col_width in zip(wrapped_cells, computed_widths):
                text = cell[idx] if idx < len(cell) else ""
                row_parts.append(text.ljust(col_width))
            lines.append(" | ".join(row_parts))

    return "\n".join(lines)


def write_results_metadata(
    outdir: str | Path,
    *,
    results_filename: str = "annotated_variants.csv",
    row_count: int | None = None,
    samples: Sequence[str] | None = None,
    schema_version: str = RESULTS_SCHEMA_VERSION,
) -> Path:
    outdir_path = Path(outdir).expanduser().resolve()
    metadata_path = outdir_path / "results_metadata.json"
    payload: dict[str, Any] = {
        "schema_version": schema_version,
        "results_file": str(outdir_path / results_filename),
        "row_count": row_count,
        "samples": list(samples or []),
        "generated_at": dt.datetime.now(dt.timezone.utc).isoformat(),
    }
    metadata_path.write_text(
        json.dumps(payload, indent=2, sort_keys=True), encoding="utf-8"
    )
    return metadata_path


__all__ = [
    "RESULTS_SCHEMA_VERSION",
    "ANNOTATED_SCHEMA",
    "SCHEMA_NOTES",
    "render_output_schema_markdown",
    "render_output_schema_pretty",
    "write_results_metadata",
]

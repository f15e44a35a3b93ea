"""
Join stacked variants to gene intervals and sequencing run metadata.

Sample tags derived from VCF file names and the identifiers in the run table
are both reduced with ``normalise_sample_id`` before matching, so
``SRR11542244.filtered.vcf`` meets run ``SRR11542244``.
"""

from __future__ import annotations

import re
from typing import Iterable, Optional, Sequence

import numpy as np
import pandas as pd

from .core import JoinError, PipelineInputError
from .vcf_processing import normalise_sample_id

ID_COLUMN_CANDIDATES = ("run_id", "run", "sample", "sample_id", "acc", "accession")
MISSING_POLICIES = ("error", "null")

_YELLOW = "\033[93m"
_RESET = "\033[0m"


def _normalise_column_name(name) -> str:
    return re.sub(r"[\s\-]+", "_", str(name).strip()).lower()


def read_sample_metadata(path, id_column: Optional[str] = None) -> pd.DataFrame:
    """
    Read the run table and expose its identifier column as ``run_id``.

    Column names are lower-cased with spaces and dashes turned into
    underscores; all values are kept as strings.

    Args:
        path (str): Comma-separated run table
        id_column (str): Identifier column; detected from
            ``ID_COLUMN_CANDIDATES`` when not given

    Raises:
        PipelineInputError: If the file is empty or unreadable
        JoinError: If the identifier column is missing, blank or not unique
    """
    try:
        metadata = pd.read_csv(path, dtype=str, keep_default_na=False)
    except pd.errors.EmptyDataError as exc:
        raise PipelineInputError(f"Run table is empty: {path}") from exc
    except (OSError, UnicodeDecodeError, pd.errors.ParserError) as exc:
        raise PipelineInputError(f"Could not read run table {path}: {exc}") from exc

    columns = [_normalise_column_name(col) for col in metadata.columns]
    clashing = sorted({col for col in columns if columns.count(col) > 1})
    if clashing:
        raise JoinError(
            f"{path}: columns collide after normalising names: {', '.join(clashing)}"
        )
    metadata.columns = columns

    if id_column is not None:
        key = _normalise_column_name(id_column)
        if key not in metadata.columns:
            raise JoinError(
                f"{path}: identifier column '{id_column}' not found "
                f"(columns: {', '.join(metadata.columns)})"
            )
    else:
        key = next((c for c in ID_COLUMN_CANDIDATES if c in metadata.columns), None)
        if key is None:
            raise JoinError(
                f"{path}: no run identifier column found; expected one of "
                f"{', '.join(ID_COLUMN_CANDIDATES)}"
            )

    if key != "run_id":
        if "run_id" in metadata.columns:
            raise JoinError(
                f"{path}: cannot use '{key}' as identifier while a 'run_id' column "
                "is also present"
            )
        metadata = metadata.rename(columns={key: "run_id"})

    metadata["run_id"] = metadata["run_id"].str.strip()
    metadata = metadata[["run_id"] + [c for c in metadata.columns if c != "run_id"]]

    blank = metadata.index[metadata["run_id"] == ""]
    if len(blank):
        rows = ", ".join(str(i + 2) for i in blank)
        raise JoinError(f"{path}: empty run identifier on line(s) {rows}")

    keys = metadata["run_id"].map(normalise_sample_id)
    duplicated = sorted(set(keys[keys.duplicated(keep=False)]))
    if duplicated:
        raise JoinError(
            f"{path}: more than one run table row for sample(s): {', '.join(duplicated)}"
        )

    return metadata.reset_index(drop=True)


def assign_genes(positions: Iterable[int], genes: pd.DataFrame) -> list:
    """
    Map each position to the gene interval containing it.

    Intervals are inclusive. When a position falls in several genes the first
    one in order of start coordinate wins (ties keep gene-table order);
    positions outside every gene map to None.
    """
    positions = np.asarray(list(positions), dtype="int64")
    assigned = np.full(len(positions), None, dtype=object)

    ordered = genes.sort_values("start", kind="stable")
    intervals = list(ordered[["gene", "start", "end"]].itertuples(index=False, name=None))

    # walk backwards so earlier intervals overwrite later ones
    for gene, start, end in reversed(intervals):
        mask = (positions >= start) & (positions <= end)
        assigned[mask] = gene

    return assigned.tolist()


def match_samples(samples: Sequence[str], metadata: pd.DataFrame) -> pd.DataFrame:
    """Report, per sample tag, the run table identifier it matches (if any)."""
    lookup = {
        normalise_sample_id(run_id): run_id for run_id in metadata["run_id"]
    }
    rows = []
    for sample in samples:
        run_id = lookup.get(normalise_sample_id(sample))
        rows.append(
            {"sample": sample, "run_id": run_id, "matched": run_id is not None}
        )
    return pd.DataFrame(rows, columns=["sample", "run_id", "matched"])


def join_metadata(
    stacked: pd.DataFrame,
    genes: pd.DataFrame,
    metadata_path,
    missing: str = "error",
    id_column: Optional[str] = None,
) -> pd.DataFrame:
    """
    Produce the annotated variant table.

    Every stacked variant keeps its row and order: ``gene`` is appended, then
    the run table columns of its sample. Run table columns whose names clash
    with variant columns get a ``_metadata`` suffix.

    Args:
        stacked (pd.DataFrame): Output of the VCF stacker
        genes (pd.DataFrame): Output of ``extract_genes``
        metadata_path (str): Run table path
        missing (str): ``"error"`` raises ``JoinError`` when a sample has no
            run table row; ``"null"`` keeps its variants with empty metadata
        id_column (str): Run table identifier column (auto-detected if None)

    Raises:
        JoinError: On unmatched samples under the ``"error"`` policy
    """
    if missing not in MISSING_POLICIES:
        raise ValueError(
            f"missing must be one of {', '.join(MISSING_POLICIES)}, got '{missing}'"
        )

    metadata = read_sample_metadata(metadata_path, id_column=id_column)

    annotated = stacked.reset_index(drop=True).copy()
    annotated["gene"] = pd.Series(
        assign_genes(annotated["pos"], genes), index=annotated.index, dtype=object
    )

    variant_keys = annotated["sample"].map(normalise_sample_id)
    metadata_keys = metadata["run_id"].map(normalise_sample_id)

    unmatched = sorted(set(variant_keys) - set(metadata_keys))
    if unmatched:
        if missing == "error":
            raise JoinError(
                f"No run table entry in {metadata_path} for sample(s): "
                f"{', '.join(unmatched)}"
            )
        print(
            f"{_YELLOW}Warning:{_RESET} no run table entry for sample(s) "
            f"{', '.join(unmatched)}; their metadata columns are left empty"
        )

    renames = {
        col: f"{col}_metadata" for col in metadata.columns if col in annotated.columns
    }
    metadata = metadata.rename(columns=renames)

    joined = annotated.assign(_join_key=variant_keys.to_numpy()).merge(
        metadata.assign(_join_key=metadata_keys.to_numpy()),
        on="_join_key",
        how="left",
        sort=False,
        validate="many_to_one",
    )
    return joined.drop(columns="_join_key")

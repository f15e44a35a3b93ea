"""Run provenance capture for snpstack."""

from __future__ import annotations

import datetime as dt
import hashlib
import json
import platform
import sys
import uuid
from importlib import metadata
from pathlib import Path
from typing import Any, Iterable, Mapping, Sequence

from ._version import __version__
from .schemas import RESULTS_SCHEMA_VERSION

MANIFEST_SCHEMA_VERSION = "1.0"

_DEFAULT_PACKAGES = ("pandas", "numpy")


def _utc_now_iso() -> str:
    return dt.datetime.now(dt.timezone.utc).isoformat()


def compute_sha256(path: Path) -> str:
    hasher = hashlib.sha256()
    with path.open("rb") as handle:
        for chunk in iter(lambda: handle.read(1024 * 1024), b""):
            hasher.update(chunk)
    return hasher.hexdigest()


def _file_entry(path: Path, *, role: str, include_hash: bool) -> dict[str, Any]:
    record: dict[str, Any] = {"path": str(path), "role": role}
    try:
        record["size_bytes"] = path.stat().st_size
        if include_hash:
            record["sha256"] = compute_sha256(path)
    except OSError as exc:
        record["error"] = str(exc)
    return record


def collect_input_files(
    inputs: Mapping[str, Iterable[str | Path]],
    *,
    include_hashes: bool,
) -> list[dict[str, Any]]:
    """Describe input files by role (``gff``, ``runtable``, ``vcf``), skipping repeats."""
    seen: set[Path] = set()
    records: list[dict[str, Any]] = []

    for role, paths in inputs.items():
        for value in paths:
            path = Path(value).expanduser().resolve()
            if path in seen:
                continue
            seen.add(path)
            records.append(_file_entry(path, role=role, include_hash=include_hashes))

    return records


def collect_package_versions(
    packages: Iterable[str] = _DEFAULT_PACKAGES,
) -> dict[str, str | None]:
    versions: dict[str, str | None] = {}
    for name in packages:
        try:
            versions[name] = metadata.version(name)
        except metadata.PackageNotFoundError:
            versions[name] = None
    return versions


class RunManifest:
    """Manage writing of run_metadata.json provenance manifests."""

    def __init__(
        self,
        *,
        outdir: str | Path,
        command: str | None,
        cli_args: Sequence[str] | None,
    ) -> None:
        self.outdir = Path(outdir).expanduser().resolve()
        self.run_id = str(uuid.uuid4())
        self.started_at = _utc_now_iso()
        self.payload: dict[str, Any] = {
            "manifest_schema_version": MANIFEST_SCHEMA_VERSION,
            "run_id": self.run_id,
            "status": "running",
            "started_at": self.started_at,
            "command": command,
            "cli_args": list(cli_args or []),
            "outdir": str(self.outdir),
            "snpstack_version": __version__,
            "results_schema_version": RESULTS_SCHEMA_VERSION,
            "packages": collect_package_versions(),
            "python": {
                "version": platform.python_version(),
                "executable": sys.executable,
            },
            "platform": {
                "system": platform.system(),
                "release": platform.release(),
                "machine": platform.machine(),
            },
        }

    @property
    def latest_path(self) -> Path:
        return self.outdir / "run_metadata.json"

    def start(self) -> None:
        self._write_payload()

    def finish(
        self,
        *,
        status: str,
        outputs: Mapping[str, Any] | None = None,
        error: str | None = None,
        extra: Mapping[str, Any] | None = None,
    ) -> None:
        ended_at = _utc_now_iso()
        self.payload["status"] = status
        self.payload["ended_at"] = ended_at
        started = dt.datetime.fromisoformat(self.started_at)
        ended = dt.datetime.fromisoformat(ended_at)
        self.payload["duration_seconds"] = (ended - started).total_seconds()

        if outputs is not None:
            merged_outputs = dict(self.payload.get("outputs", {}))
            merged_outputs.update(outputs)
            self.payload["outputs"] = merged_outputs
        if error:
            self.payload["error"] = error
        if extra:
            self.payload.update(extra)

        self._write_payload()

    def _write_payload(self) -> None:
        try:
            runs_dir = self.outdir / "runs"
            runs_dir.mkdir(parents=True, exist_ok=True)
            run_path = runs_dir / f"run_metadata.{self.run_id}.json"
            payload_json = json.dumps(self.payload, indent=2, sort_keys=True)
            self.latest_path.write_text(payload_json, encoding="utf-8")
            run_path.write_text(payload_json, encoding="utf-8")
        except OSError as exc:  # pragma: no cover - avoid breaking runs
            print(f"Warning: failed to write run manifest: {exc}")


__all__ = [
    "MANIFEST_SCHEMA_VERSION",
    "collect_input_files",
    "collect_package_versions",
    "compute_sha256",
    "RunManifest",
]

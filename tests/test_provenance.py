"""Tests for run provenance capture."""

import hashlib
import json

from snpstack import __version__
from snpstack.provenance import RunManifest, collect_input_files, compute_sha256


def test_compute_sha256(tmp_path):
    path = tmp_path / "runs.csv"
    path.write_bytes(b"Run\nSRR1\n")

    assert compute_sha256(path) == hashlib.sha256(b"Run\nSRR1\n").hexdigest()


def test_collect_input_files_skips_repeats(tmp_path):
    gff = tmp_path / "genes.gff3"
    gff.write_text("##gff-version 3\n", encoding="utf-8")
    vcf = tmp_path / "SRR1.vcf"
    vcf.write_text("#CHROM\n", encoding="utf-8")

    records = collect_input_files(
        {"gff": [gff], "vcf": [vcf, str(vcf)]}, include_hashes=True
    )

    assert [record["role"] for record in records] == ["gff", "vcf"]
    assert records[1]["size_bytes"] == len("#CHROM\n")
    assert records[1]["sha256"] == compute_sha256(vcf)


def test_collect_input_files_records_missing(tmp_path):
    records = collect_input_files(
        {"runtable": [tmp_path / "absent.csv"]}, include_hashes=False
    )

    assert "error" in records[0]
    assert "sha256" not in records[0]


def test_run_manifest_lifecycle(tmp_path):
    manifest = RunManifest(
        outdir=tmp_path, command="build", cli_args=["build", "default"]
    )
    manifest.start()

    started = json.loads(manifest.latest_path.read_text(encoding="utf-8"))
    assert started["status"] == "running"
    assert started["snpstack_version"] == __version__
    assert "pandas" in started["packages"]

    manifest.finish(
        status="success",
        outputs={"annotated_table": "annotated_variants.csv"},
        extra={"row_count": 4},
    )

    finished = json.loads(manifest.latest_path.read_text(encoding="utf-8"))
    assert finished["status"] == "success"
    assert finished["row_count"] == 4
    assert finished["duration_seconds"] >= 0
    assert finished["cli_args"] == ["build", "default"]
    run_copy = tmp_path / "runs" / f"run_metadata.{manifest.run_id}.json"
    assert json.loads(run_copy.read_text(encoding="utf-8")) == finished


def test_run_manifest_records_error(tmp_path):
    manifest = RunManifest(outdir=tmp_path, command="build", cli_args=None)
    manifest.finish(status="failed", error="No VCF files found")

    payload = json.loads(manifest.latest_path.read_text(encoding="utf-8"))
    assert payload["status"] == "failed"
    assert payload["error"] == "No VCF files found"

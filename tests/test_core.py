"""Tests for snpstack.core module."""

import os
import re

import pytest

from snpstack.core import (
    ExtractionError,
    JoinError,
    ParseError,
    PipelineInputError,
    SnpstackError,
    get_logo,
    get_package_data_path,
    validate_input_paths,
)


class TestGetPackageDataPath:
    """Test get_package_data_path function."""

    def test_returns_existing_path(self):
        result = get_package_data_path("NC_045512.gff3")
        assert isinstance(result, str)
        assert result.endswith("NC_045512.gff3")
        assert os.path.exists(result)


def test_get_logo_is_block_art():
    logo = get_logo()
    assert logo.strip()
    assert re.search(r"█{3,}", logo) is not None
    assert logo.count("\n") >= 2


@pytest.mark.parametrize(
    "error_class", [ParseError, ExtractionError, PipelineInputError, JoinError]
)
def test_errors_share_base_class(error_class):
    with pytest.raises(SnpstackError):
        raise error_class("boom")


class TestValidateInputPaths:
    """Test validate_input_paths function."""

    @pytest.fixture()
    def paths(self, tmp_path):
        gff = tmp_path / "genes.gff3"
        gff.write_text("##gff-version 3\n", encoding="utf-8")
        runtable = tmp_path / "runs.csv"
        runtable.write_text("Run\nSRR1\n", encoding="utf-8")
        vcf_dir = tmp_path / "vcfs"
        vcf_dir.mkdir()
        return gff, vcf_dir, runtable

    def test_valid_paths_pass(self, paths):
        gff, vcf_dir, runtable = paths
        validate_input_paths(gff, vcf_dir, runtable)

    def test_empty_path_is_required(self, paths):
        gff, vcf_dir, _ = paths
        with pytest.raises(PipelineInputError, match="Run table path is required"):
            validate_input_paths(gff, vcf_dir, "  ")

    def test_directory_given_for_file(self, paths):
        _, vcf_dir, runtable = paths
        with pytest.raises(PipelineInputError, match="Annotation file is not a file"):
            validate_input_paths(vcf_dir, vcf_dir, runtable)

    def test_every_problem_is_listed(self, tmp_path):
        with pytest.raises(PipelineInputError) as excinfo:
            validate_input_paths(None, None, tmp_path / "absent.csv")

        message = str(excinfo.value)
        assert message.count(";") == 2
        assert "Annotation file path is required" in message
        assert "VCF directory path is required" in message

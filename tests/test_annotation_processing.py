"""Tests for GFF reading and gene extraction."""

from __future__ import annotations

import pandas as pd
import pytest

from snpstack.annotation_processing import (
    GFF_COLUMNS,
    extract_genes,
    gene_lengths,
    parse_attributes,
    read_gff,
)
from snpstack.core import ExtractionError, ParseError, PipelineInputError
from snpstack.data import get_annotation


def _gff_line(ftype, start, end, attrs, seqid="NC_045512.2"):
    return f"{seqid}\tRefSeq\t{ftype}\t{start}\t{end}\t.\t+\t.\t{attrs}\n"


@pytest.fixture()
def small_gff(tmp_path):
    path = tmp_path / "annotation.gff3"
    path.write_text(
        "##gff-version 3\n"
        "#!processor NCBI annotwriter\n"
        + _gff_line("region", 1, 29903, "ID=NC_045512.2:1..29903")
        + _gff_line("gene", 266, 21555, "ID=gene-GU280_gp01;Name=ORF1ab;gene=ORF1ab")
        + _gff_line("CDS", 266, 13483, "ID=cds-1;Parent=gene-GU280_gp01;gene=ORF1ab")
        + _gff_line("gene", 21563, 25384, "ID=gene-GU280_gp02;gene_name=S")
        + "\n"
        + _gff_line("gene", 28274, 29533, "ID=gene-GU280_gp10;gene=N")
        + "##FASTA\n>NC_045512.2\nACGT\n",
        encoding="utf-8",
    )
    return path


class TestParseAttributes:
    def test_gff3_pairs_are_url_decoded(self):
        attrs = parse_attributes("ID=gene-1;Name=ORF1ab;note=a%3Bb%2Cc;")
        assert attrs == {"ID": "gene-1", "Name": "ORF1ab", "note": "a;b,c"}

    def test_gtf_style_pairs(self):
        attrs = parse_attributes('gene_id "g1"; gene_name "S";')
        assert attrs == {"gene_id": "g1", "gene_name": "S"}

    def test_empty_column(self):
        assert parse_attributes(".") == {}
        assert parse_attributes("") == {}


class TestReadGff:
    def test_reads_every_feature(self, small_gff):
        features = read_gff(small_gff)

        assert list(features.columns) == GFF_COLUMNS
        assert features["feature_type"].tolist() == [
            "region",
            "gene",
            "CDS",
            "gene",
            "gene",
        ]
        assert features["start"].dtype == "int64"
        assert features.loc[1, "attributes"]["Name"] == "ORF1ab"
        assert pd.isna(features.loc[1, "score"])

    def test_wrong_column_count_raises(self, tmp_path):
        path = tmp_path / "bad.gff3"
        path.write_text(
            "##gff-version 3\nNC_045512.2\tRefSeq\tgene\t1\t10\t.\t+\n",
            encoding="utf-8",
        )

        with pytest.raises(ParseError, match=r"line 2: expected 9 .* found 7"):
            read_gff(path)

    def test_non_integer_coordinates_raise(self, tmp_path):
        path = tmp_path / "bad.gff3"
        path.write_text(_gff_line("gene", "one", 10, "Name=x"), encoding="utf-8")

        with pytest.raises(ParseError, match="must be integers"):
            read_gff(path)

    def test_reversed_range_raises(self, tmp_path):
        path = tmp_path / "bad.gff3"
        path.write_text(_gff_line("gene", 20, 10, "Name=x"), encoding="utf-8")

        with pytest.raises(ParseError, match="invalid feature range 20-10"):
            read_gff(path)

    def test_invalid_utf8_raises(self, tmp_path):
        path = tmp_path / "bad.gff3"
        path.write_bytes(
            b"##gff-version 3\n"
            b"NC_045512.2\tRefSeq\tgene\t1\t10\t.\t+\t.\tID=gene-1;Name=\xff\xfe\n"
        )

        with pytest.raises(ParseError, match=r"bad\.gff3: could not decode file"):
            read_gff(path)

    def test_missing_file_raises_pipeline_error(self, tmp_path):
        with pytest.raises(PipelineInputError, match="missing.gff3"):
            read_gff(tmp_path / "missing.gff3")


class TestExtractGenes:
    def test_keeps_only_gene_features(self, small_gff):
        features = read_gff(small_gff)

        genes = extract_genes(features)

        assert list(genes.columns) == ["gene", "start", "end"]
        assert genes["gene"].tolist() == ["ORF1ab", "S", "N"]
        assert genes["start"].tolist() == [266, 21563, 28274]
        assert len(genes) <= len(features)

    def test_name_lookup_order(self, tmp_path):
        path = tmp_path / "a.gff3"
        path.write_text(
            _gff_line("gene", 1, 10, "Name=preferred;gene_name=second;gene=third"),
            encoding="utf-8",
        )

        genes = extract_genes(read_gff(path))

        assert genes["gene"].tolist() == ["preferred"]

    def test_sorted_by_start_with_stable_ties(self, tmp_path):
        path = tmp_path / "a.gff3"
        path.write_text(
            _gff_line("gene", 500, 600, "Name=late")
            + _gff_line("gene", 100, 200, "Name=first_at_100")
            + _gff_line("gene", 100, 150, "Name=second_at_100"),
            encoding="utf-8",
        )

        genes = extract_genes(read_gff(path))

        assert genes["gene"].tolist() == ["first_at_100", "second_at_100", "late"]

    def test_unnamed_gene_raises(self, tmp_path):
        path = tmp_path / "a.gff3"
        path.write_text(
            _gff_line("gene", 1, 10, "ID=gene-x;locus_tag=x"), encoding="utf-8"
        )

        with pytest.raises(ExtractionError, match=r"NC_045512.2:1-10 \(ID=gene-x\)"):
            extract_genes(read_gff(path))

    def test_no_gene_features_gives_empty_table(self, tmp_path):
        path = tmp_path / "a.gff3"
        path.write_text(_gff_line("CDS", 1, 10, "gene=x"), encoding="utf-8")

        genes = extract_genes(read_gff(path))

        assert genes.empty
        assert list(genes.columns) == ["gene", "start", "end"]


def test_gene_lengths_sums_repeated_names():
    genes = pd.DataFrame(
        {"gene": ["ORF1ab", "S", "S"], "start": [266, 100, 300], "end": [21555, 199, 349]}
    )

    assert gene_lengths(genes) == {"ORF1ab": 21290, "S": 150}


def test_packaged_annotation_genes():
    genes = extract_genes(read_gff(get_annotation()))

    assert len(genes) == 11
    orf1ab = genes[genes["gene"] == "ORF1ab"].iloc[0]
    assert (orf1ab["start"], orf1ab["end"]) == (266, 21555)
    assert genes["gene"].iloc[-1] == "ORF10"

"""Tests for genomes, chromosomes and genome queries."""

import pytest

import pybioinf as pb
from pybioinf.genome import chr_default_choice


class TestStrand:
    """Tests for Strand parsing."""

    def test_from_char(self):
        assert pb.Strand.from_char("+") is pb.Strand.PLUS
        assert pb.Strand.from_char("-") is pb.Strand.MINUS
        assert pb.Strand.from_char(1) is pb.Strand.PLUS
        assert pb.Strand.from_char(-1) is pb.Strand.MINUS

    def test_unknown_strand_raises(self):
        with pytest.raises(ValueError, match="Unknown strand"):
            pb.Strand.from_char("x")

    def test_opposite(self):
        assert pb.Strand.PLUS.opposite() is pb.Strand.MINUS
        assert str(pb.Strand.MINUS) == "-"


class TestGenome:
    """Tests for Genome registry and chromosome lookup."""

    def test_registry_returns_same_object(self, genome):
        assert pb.Genome.get("test") is genome
        assert pb.Genome.from_sizes("test", genome.chrom_sizes) is genome

    def test_conflicting_sizes_raise(self, genome):
        with pytest.raises(ValueError, match="different chromosome sizes"):
            pb.Genome.from_sizes("test", {"chr1": 1})

    def test_clear_cache(self, genome):
        pb.Genome.clear_cache("test")
        with pytest.raises(KeyError, match="not loaded"):
            pb.Genome.get("test")

    def test_alternative_names(self, genome):
        assert genome["1"] is genome["chr1"]
        assert "2" in genome
        with pytest.raises(KeyError):
            genome["chr3"]

    def test_from_chrom_sizes(self, tmp_path):
        path = tmp_path / "toy.chrom.sizes"
        path.write_text("# comment\nchr1\t1000\nchr2\t500\n")
        genome = pb.Genome.from_chrom_sizes(path)
        assert genome.build == "toy"
        assert genome.chrom_sizes == {"chr1": 1000, "chr2": 500}
        assert pb.Genome.from_chrom_sizes(path) is genome

    def test_unexpected_file_name_warns(self, tmp_path):
        path = tmp_path / "toy2.txt"
        path.write_text("chr1\t1000\n")
        with pytest.warns(UserWarning, match="Unexpected chrom sizes file name"):
            genome = pb.Genome.from_chrom_sizes(path)
        assert genome.build == "toy2"

    def test_missing_file_raises(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            pb.Genome.from_chrom_sizes(tmp_path / "none.chrom.sizes")


class TestGenomeQuery:
    """Tests for GenomeQuery."""

    def test_default_choice(self):
        assert chr_default_choice("chr1")
        assert chr_default_choice("chrX")
        assert not chr_default_choice("chrM")
        assert not chr_default_choice("chr1_random")
        assert not chr_default_choice("chrUn")

    def test_default_chromosomes(self, gq):
        assert [c.name for c in gq.get()] == ["chr1", "chr2"]
        assert gq["chrM"] is None
        assert "chr1" in gq
        assert "chrM" not in gq

    def test_restriction(self, genome):
        gq = pb.GenomeQuery(genome, ["2"])
        assert [c.name for c in gq] == ["chr2"]
        assert gq["chr1"] is None
        assert gq.id == "test[chr2]"

    def test_unknown_restriction_raises(self, genome):
        with pytest.raises(ValueError, match="Unknown chromosome name"):
            pb.GenomeQuery(genome, ["chr9"])

    def test_parse_round_trip(self, genome, gq):
        restricted = pb.GenomeQuery(genome, ["chr1", "chrM"])
        assert pb.GenomeQuery.parse(restricted.id) == restricted
        assert pb.GenomeQuery.parse(gq.id) == gq

    def test_only(self, gq):
        assert gq.only(["chr1", "chr2"]) is gq
        assert [c.name for c in gq.only(["chr1"])] == ["chr1"]

"""Tests for paired-end coverage."""

import pytest

import pybioinf as pb


@pytest.fixture
def coverage(gq, chr1):
    builder = pb.PairedEndCoverage.builder(gq)
    builder.process(chr1, pos=200, pnext=100, length=50)
    builder.process(chr1, pos=1000, pnext=1100, length=50)
    # fragment longer than 500bp is ignored
    builder.process(chr1, pos=3000, pnext=4000, length=50)
    return builder.build(unique=True)


class TestPairedEndCoverage:
    """Tests for PairedEndCoverage."""

    def test_tags_at_fragment_middle(self, coverage, chr1):
        assert coverage.data.get(chr1).tolist() == [175, 1075]
        assert coverage.average_fragment_size == 150
        assert coverage.depth == 2

    def test_minus_strand_is_empty(self, coverage, chr1):
        assert coverage.get_coverage(pb.Location(0, 2000, chr1, pb.Strand.PLUS)) == 2
        assert coverage.get_coverage(pb.Location(0, 2000, chr1, pb.Strand.MINUS)) == 0
        assert coverage.get_both_strands_coverage(pb.ChromosomeRange(170, 180, chr1)) == 1

    def test_get_tags(self, coverage, chr1):
        assert coverage.get_tags(pb.ChromosomeRange(0, 1075, chr1)).tolist() == [175]

    def test_round_trip(self, coverage, gq, tmp_path):
        path = tmp_path / "pe.npz"
        coverage.save(path)
        assert pb.PairedEndCoverage.load(path, gq) == coverage
        assert pb.load_coverage(path, gq) == coverage

    def test_load_as_single_end_raises(self, coverage, gq, tmp_path):
        path = tmp_path / "pe.npz"
        coverage.save(path)
        with pytest.raises(pb.CoverageFormatError) as exc_info:
            pb.SingleEndCoverage.load(path, gq)
        message = str(exc_info.value)
        assert str(path) in message
        assert "SINGLE_END_CHIPSEQ" in message
        assert "PAIRED_END_CHIPSEQ" in message

    def test_empty(self, gq):
        coverage = pb.PairedEndCoverage.builder(gq).build(unique=False)
        assert coverage.average_fragment_size == 0
        assert coverage.depth == 0

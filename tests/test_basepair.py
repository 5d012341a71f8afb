"""Tests for base-pair coverage."""

import pytest

import pybioinf as pb


@pytest.fixture
def coverage(gq, chr1, chr2):
    builder = pb.BasePairCoverage.builder(gq, offset_is_one_based=False)
    for offset in (10, 20, 30, 40, 50, 30):
        builder.process(chr1, offset)
    builder.process(chr2, 7)
    return builder.build(unique=False)


@pytest.fixture
def regions(gq, chr1):
    return pb.LocationsMergingList.create(gq, [
        pb.Location(15, 35, chr1, pb.Strand.PLUS),
        pb.Location(45, 55, chr1, pb.Strand.MINUS),
    ])


class TestBasePairBuilder:
    """Tests for building base-pair coverage."""

    def test_non_unique(self, coverage, chr1):
        assert coverage.data.get(chr1).tolist() == [10, 20, 30, 30, 40, 50]
        assert coverage.depth == 7

    def test_one_based_offsets(self, gq, chr1):
        builder = pb.BasePairCoverage.builder(gq, offset_is_one_based=True)
        builder.process(chr1, 1)
        builder.process(chr1, chr1.length)
        coverage = builder.build(unique=True)
        assert coverage.data.get(chr1).tolist() == [0, chr1.length - 1]

    def test_one_based_bounds(self, gq, chr1):
        builder = pb.BasePairCoverage.builder(gq, offset_is_one_based=True)
        with pytest.raises(ValueError, match="One-based offset should be >= 1"):
            builder.process(chr1, 0)
        with pytest.raises(ValueError, match="One-based offset should be <="):
            builder.process(chr1, chr1.length + 1)

    def test_zero_based_bounds(self, gq, chr1):
        builder = pb.BasePairCoverage.builder(gq, offset_is_one_based=False)
        with pytest.raises(ValueError, match="Zero-based offset should be >= 0"):
            builder.process(chr1, -1)
        with pytest.raises(ValueError, match="Zero-based offset should be <"):
            builder.extend(chr1, [0, chr1.length])


class TestBasePairQueries:
    """Tests for coverage queries."""

    def test_strand_is_ignored(self, coverage, chr1):
        plus = coverage.get_coverage(pb.Location(10, 31, chr1, pb.Strand.PLUS))
        minus = coverage.get_coverage(pb.Location(10, 31, chr1, pb.Strand.MINUS))
        assert plus == minus == 4

    def test_both_strands_counts_once(self, coverage, chr1):
        assert coverage.get_both_strands_coverage(pb.ChromosomeRange(0, 100, chr1)) == 6


class TestBasePairFilter:
    """Tests for BasePairCoverage.filter."""

    def test_include(self, coverage, regions, chr1, chr2):
        filtered = coverage.filter(regions, include_regions=True)
        assert filtered.data.get(chr1).tolist() == [20, 30, 30]
        assert filtered.data.get(chr2).size == 0

    def test_exclude(self, coverage, regions, chr1, chr2):
        filtered = coverage.filter(regions, include_regions=False)
        assert filtered.data.get(chr1).tolist() == [10, 40, 50]
        assert filtered.data.get(chr2).tolist() == [7]

    def test_minus_strand_regions(self, coverage, regions, chr1):
        filtered = coverage.filter(regions, include_regions=True,
                                   ignore_regions_on_minus_strand=False)
        assert filtered.data.get(chr1).tolist() == [20, 30, 30, 50]

    def test_idempotent(self, coverage, regions):
        once = coverage.filter(regions, include_regions=True)
        assert once.filter(regions, include_regions=True) == once

    def test_partition(self, coverage, regions):
        inside = coverage.filter(regions, include_regions=True)
        outside = coverage.filter(regions, include_regions=False)
        assert inside.depth + outside.depth == coverage.depth

    def test_progress_callback(self, coverage, regions):
        calls = []
        coverage.filter(regions, include_regions=True,
                        progress=lambda done, total, pct: calls.append((done, total, pct)))
        assert calls[-1] == (7, 7, 100)


class TestBasePairSerialization:
    """Tests for npz and TSV input/output."""

    def test_npz_round_trip(self, coverage, gq, tmp_path):
        path = tmp_path / "bp.npz"
        coverage.save_npz(path)
        assert pb.BasePairCoverage.load(path, gq) == coverage
        assert pb.load_coverage(path, gq) == coverage

    def test_load_as_single_end_raises(self, coverage, gq, tmp_path):
        path = tmp_path / "bp.npz"
        coverage.save_npz(path)
        with pytest.raises(pb.CoverageFormatError) as exc_info:
            pb.SingleEndCoverage.load(path, gq)
        message = str(exc_info.value)
        assert str(path) in message
        assert "attempting to read SINGLE_END_CHIPSEQ coverage" in message
        assert "from a BASEPAIR cache file" in message
        assert "expected type=0, actual type=2" in message

    def test_missing_basepair_version(self, gq, tmp_path):
        import numpy as np

        path = tmp_path / "bp.npz"
        np.savez(path, version=np.array([5]), coverage_type=np.array([2]))
        with pytest.raises(pb.CoverageFormatError, match="basepair coverage version is missing"):
            pb.BasePairCoverage.load(path, gq)

    def test_missing_chromosome(self, genome, chr1, tmp_path):
        restricted = pb.GenomeQuery(genome, ["chr1"])
        builder = pb.BasePairCoverage.builder(restricted, offset_is_one_based=False)
        builder.process(chr1, 5)
        path = tmp_path / "bp.npz"
        builder.build(unique=True).save_npz(path)

        gq = pb.GenomeQuery(genome)
        with pytest.raises(pb.MissingChromosomeError):
            pb.BasePairCoverage.load(path, gq, fail_on_missing_chromosomes=True)
        with pytest.raises(pb.MissingChromosomeError):
            pb.BasePairCoverage.load(path, gq)
        loaded = pb.BasePairCoverage.load(path, gq, fail_on_missing_chromosomes=False)
        assert loaded.depth == 1

    @pytest.mark.parametrize("one_based", [True, False])
    def test_tsv_round_trip(self, gq, chr1, chr2, tmp_path, one_based):
        builder = pb.BasePairCoverage.builder(gq, offset_is_one_based=False)
        builder.extend(chr1, [0, 5, 9999])
        builder.extend(chr2, [3])
        coverage = builder.build(unique=True)
        path = tmp_path / "bp.tsv"
        coverage.save_tsv(path, offset_is_one_based=one_based)
        loaded = pb.BasePairCoverage.load_tsv(gq, path, offset_is_one_based=one_based)
        assert loaded == coverage

    def test_tsv_header_comments_and_duplicates(self, gq, chr1, chr2, tmp_path):
        path = tmp_path / "bp.tsv"
        path.write_text(
            "# methylome\n"
            "chrom\toffset\n"
            "chr1\t11\n"
            "1\t11\n"
            "chr1\t2\n"
            "chrM\t4\n"
            "chr2\t1\n"
        )
        loaded = pb.BasePairCoverage.load_tsv(gq, path, offset_is_one_based=True, header=True)
        assert loaded.data.get(chr1).tolist() == [1, 10]
        assert loaded.data.get(chr2).tolist() == [0]

    def test_tsv_unknown_chromosome(self, gq, tmp_path):
        path = tmp_path / "bp.tsv"
        path.write_text("chr1\t1\nchrZ\t5\n")
        with pytest.raises(ValueError, match="Unknown chromosome 'chrZ'"):
            pb.BasePairCoverage.load_tsv(gq, path, offset_is_one_based=True)
        loaded = pb.BasePairCoverage.load_tsv(gq, path, offset_is_one_based=True,
                                              fail_on_missing_chromosomes=False)
        assert loaded.depth == 1

    def test_tsv_missing_file(self, gq, tmp_path):
        with pytest.raises(FileNotFoundError):
            pb.BasePairCoverage.load_tsv(gq, tmp_path / "none.tsv", offset_is_one_based=True)

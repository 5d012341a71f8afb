"""Tests for fragment size estimation."""

import math

import numpy as np
import pytest

import pybioinf as pb
from pybioinf.fragment_size import _match_counts, candidate_fragments

READ_LENGTH = 36
PLANTED_SHIFT = 150


def _planted_offsets(gq, chromosome, shift=PLANTED_SHIFT):
    """Minus 5' ends are plus 5' ends shifted by ``shift``."""
    builder = pb.SortedOffsetsBuilder(gq, stranded=True)
    plus = np.arange(0, 5000, 97)
    builder.extend(chromosome, plus, pb.Strand.PLUS)
    builder.extend(chromosome, plus + shift, pb.Strand.MINUS)
    return builder.build(unique=True)


class TestCandidates:
    """Tests for candidate fragment sizes."""

    def test_starts_at_rounded_read_length(self):
        candidates = candidate_fragments(35.6)
        assert candidates[0] == 36
        assert candidates[-1] == pb.MAX_FRAGMENT_SIZE

    def test_lower_bound_is_one(self):
        assert candidate_fragments(0.2)[0] == 1

    def test_empty_above_max(self):
        assert candidate_fragments(700).size == 0


class TestMatchCounts:
    """Tests for the shifted merge walk."""

    def test_counts(self):
        plus = np.array([0, 10, 20])
        minus = np.array([5, 15, 40])
        assert _match_counts(plus, minus, 5) == (2, 1, 1)
        assert _match_counts(plus, minus, 100) == (0, 3, 3)


class TestDetectFragmentSize:
    """Tests for detect_fragment_size."""

    def test_planted_shift(self, gq, chr1):
        offsets = _planted_offsets(gq, chr1)
        assert pb.detect_fragment_size(offsets, READ_LENGTH, processes=1) == PLANTED_SHIFT

    def test_builder_detects_planted_shift(self, gq, chr1):
        builder = pb.SingleEndCoverage.builder(gq)
        for start in range(0, 5000, 97):
            builder.process(pb.Location(start, start + READ_LENGTH, chr1, pb.Strand.PLUS))
            end = start + PLANTED_SHIFT + 1
            builder.process(pb.Location(end - READ_LENGTH, end, chr1, pb.Strand.MINUS))
        coverage = builder.build(unique=True, processes=1)
        assert coverage.detected_fragment == PLANTED_SHIFT
        assert coverage.actual_fragment == PLANTED_SHIFT

    def test_nan_read_length(self, gq, chr1):
        offsets = _planted_offsets(gq, chr1)
        assert pb.detect_fragment_size(offsets, math.nan) == 0

    def test_long_reads(self, gq, chr1):
        offsets = _planted_offsets(gq, chr1)
        assert pb.detect_fragment_size(offsets, 600.7) == 600

    def test_no_minus_tags(self, gq, chr1):
        builder = pb.SortedOffsetsBuilder(gq, stranded=True)
        builder.extend(chr1, [1, 2, 3], pb.Strand.PLUS)
        offsets = builder.build(unique=True)
        # all transforms are zero, the first candidate wins
        assert pb.detect_fragment_size(offsets, READ_LENGTH, processes=1) == READ_LENGTH


class TestCrossCorrelation:
    """Tests for the cross-correlation transform."""

    def test_duplicates_match_once(self, gq, chr1):
        builder = pb.SortedOffsetsBuilder(gq, stranded=True)
        builder.extend(chr1, [100, 100, 100], pb.Strand.PLUS)
        builder.extend(chr1, [150], pb.Strand.MINUS)
        offsets = builder.build(unique=False)
        transform = pb.cross_correlation(offsets, [49, 50, 51], processes=1)
        assert transform[0] == 0
        assert transform[2] == 0
        length = chr1.length
        expected = (3 + 1) * length / math.sqrt(3 * (length - 3) * 1 * (length - 1))
        assert transform[1] == pytest.approx(expected)

    def test_parallel_matches_sequential(self, gq, chr1, chr2):
        builder = pb.SortedOffsetsBuilder(gq, stranded=True)
        rng = np.random.default_rng(7)
        for chromosome in (chr1, chr2):
            plus = rng.integers(0, chromosome.length - 200, size=300)
            builder.extend(chromosome, plus, pb.Strand.PLUS)
            builder.extend(chromosome, plus + rng.integers(100, 200, size=300), pb.Strand.MINUS)
        offsets = builder.build(unique=False)
        candidates = candidate_fragments(READ_LENGTH)
        sequential = pb.cross_correlation(offsets, candidates, processes=1)
        parallel = pb.cross_correlation(offsets, candidates, processes=3)
        np.testing.assert_array_equal(sequential, parallel)

    def test_config_disables_parallelism(self, gq, chr1, restore_config):
        from pybioinf.fragment_size import _should_parallelize

        restore_config["multitasking"] = False
        assert _should_parallelize(10 ** 9, 400, None) == (False, 1)
        restore_config["multitasking"] = True
        restore_config["fragment_parallel_threshold"] = 100
        assert _should_parallelize(10, 400, None) == (False, 1)
        assert _should_parallelize(10, 400, 4) == (True, 4)
        assert _should_parallelize(10, 2, 4) == (True, 2)

    def test_concurrent_calls_are_independent(self, gq, chr1):
        from concurrent.futures import ThreadPoolExecutor

        stores = [_planted_offsets(gq, chr1, shift=shift) for shift in (120, 180)]
        candidates = candidate_fragments(READ_LENGTH)
        expected = [pb.cross_correlation(store, candidates, processes=1) for store in stores]

        def run(index):
            return index, pb.cross_correlation(stores[index], candidates, processes=2)

        with ThreadPoolExecutor(max_workers=4) as executor:
            results = list(executor.map(run, [0, 1] * 4))
        for index, transform in results:
            np.testing.assert_array_equal(transform, expected[index])
        assert candidates[np.argmax(expected[0])] == 120
        assert candidates[np.argmax(expected[1])] == 180

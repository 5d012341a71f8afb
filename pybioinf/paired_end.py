"""Paired-end ChIP-seq coverage."""

import logging as _logging

from .coverage import (
    Coverage,
    CoverageFormatError,
    CoverageType,
    _check_type,
    _header,
    _open_npz,
    _read_offsets,
    _read_scalar,
    _write_npz,
)
from .fragment_size import MAX_FRAGMENT_SIZE
from .genome import Strand
from .offsets import SortedOffsets, SortedOffsetsBuilder, binary_search_left, count_in_range

_logger = _logging.getLogger(__name__)

PAIRED_VERSION = 3
PAIRED_VERSION_FIELD = "paired_version"
AVERAGE_FRAGMENT_SIZE_FIELD = "average_fragment_size"


class PairedEndCoverage(Coverage):
    """
    Paired-end coverage: one tag per read pair at the middle of its fragment.

    No fragment shift is needed, so every tag resides on the plus strand and
    the coverage is perfectly strand-asymmetric.
    """

    def __init__(self, genome_query, average_fragment_size, data):
        if not isinstance(data, SortedOffsets) or data.stranded:
            raise TypeError("data must be an unstranded SortedOffsets")
        self.genome_query = genome_query
        self.average_fragment_size = int(average_fragment_size)
        self.data = data

    @classmethod
    def builder(cls, genome_query):
        return PairedEndCoverageBuilder(genome_query)

    def get_coverage(self, location):
        if location.strand is Strand.MINUS:
            return 0
        return self.data.count(location.chromosome, location.start, location.end)

    def get_both_strands_coverage(self, chromosome_range):
        return self.data.count(chromosome_range.chromosome, chromosome_range.start,
                               chromosome_range.end)

    def get_tags(self, chromosome_range):
        """Sorted tag offsets covered by ``chromosome_range``."""
        offsets = self.data.get(chromosome_range.chromosome)
        index = binary_search_left(offsets, chromosome_range.start)
        size = count_in_range(offsets, chromosome_range.start, chromosome_range.end)
        return offsets[index:index + size]

    @property
    def depth(self):
        return self.data.size

    def save(self, path):
        arrays = _header(CoverageType.PAIRED_END_CHIPSEQ)
        arrays[PAIRED_VERSION_FIELD] = [PAIRED_VERSION]
        arrays[AVERAGE_FRAGMENT_SIZE_FIELD] = [self.average_fragment_size]
        for chromosome in self.genome_query.get():
            arrays[chromosome.name] = self.data.get(chromosome)
        _write_npz(path, arrays)

    @classmethod
    def load(cls, path, genome_query, fail_on_missing_chromosomes=True):
        with _open_npz(path) as npz:
            return cls._from_npz(npz, path, genome_query, fail_on_missing_chromosomes)

    @classmethod
    def _from_npz(cls, npz, path, genome_query, fail_on_missing_chromosomes):
        _check_type(npz, path, CoverageType.PAIRED_END_CHIPSEQ)
        version = int(_read_scalar(npz, PAIRED_VERSION_FIELD, path))
        if version != PAIRED_VERSION:
            raise CoverageFormatError(
                f"{path} paired-end coverage version is {version} instead of {PAIRED_VERSION}"
            )
        average_fragment_size = int(_read_scalar(npz, AVERAGE_FRAGMENT_SIZE_FIELD, path))
        data = {
            chromosome.name: _read_offsets(npz, chromosome.name, path, chromosome,
                                           fail_on_missing_chromosomes)
            for chromosome in genome_query.get()
        }
        return cls(genome_query, average_fragment_size,
                   SortedOffsets.from_arrays(genome_query, data, copy=False))

    def __eq__(self, other):
        if not isinstance(other, PairedEndCoverage):
            return NotImplemented
        return (self.genome_query == other.genome_query
                and self.average_fragment_size == other.average_fragment_size
                and self.data == other.data)

    __hash__ = None


class PairedEndCoverageBuilder:
    """Collects read pairs for a :class:`PairedEndCoverage`; single writer only."""

    def __init__(self, genome_query):
        self.genome_query = genome_query
        self._offsets = SortedOffsetsBuilder(genome_query)
        self._read_pairs_count = 0
        self._total_fragment_size = 0

    def process(self, chromosome, pos, pnext, length):
        """
        Add a read pair given one of its reads.

        Call once per pair, for the read on the negative strand. Same-strand
        and cross-chromosome pairs are not expected.

        Parameters
        ----------
        chromosome : Chromosome
            Mapping chromosome.
        pos, pnext : int
            POS and PNEXT fields of the read (0-based).
        length : int
            Read length.
        """
        if pos > pnext:
            pos, pnext = pnext, pos
        fragment_size = pnext + length - pos
        if fragment_size < 0:
            raise ValueError(
                f"Negative fragment size chromosome={chromosome}, pos={pos}, "
                f"pnext={pnext}, length={length}"
            )
        if fragment_size > MAX_FRAGMENT_SIZE:
            return self
        self._offsets.process(chromosome, pos + fragment_size // 2)
        self._read_pairs_count += 1
        self._total_fragment_size += fragment_size
        return self

    def build(self, unique):
        data = self._offsets.build(unique)
        average_fragment_size = (self._total_fragment_size // self._read_pairs_count
                                 if self._read_pairs_count else 0)
        return PairedEndCoverage(self.genome_query, average_fragment_size, data)

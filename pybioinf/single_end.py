"""Single-end ChIP-seq coverage with fragment-size shifted tags."""

import logging as _logging

from .coverage import (
    AUTO_FRAGMENT,
    Coverage,
    CoverageType,
    FixedFragment,
    _check_type,
    _header,
    _open_npz,
    _read_offsets,
    _read_scalar,
    _write_npz,
    parse_fragment,
)
from .fragment_size import detect_fragment_size
from .genome import Strand
from .offsets import SortedOffsets, SortedOffsetsBuilder, count_in_range

_logger = _logging.getLogger(__name__)

FRAGMENT_FIELD = "fragment"


def _strand_key(chromosome, strand):
    return f"{chromosome.name}/{strand.char}"


class SingleEndCoverage(Coverage):
    """
    Sorted tag offsets for each chromosome and strand of single-end data.

    Only the 5' end of each read is stored. ``detected_fragment`` is
    estimated from the data by cross-correlation when the coverage is built
    and saved alongside the tags. ``actual_fragment`` is the fragment used
    to answer coverage queries; it defaults to ``detected_fragment`` and can
    be changed with :meth:`with_fragment`, which returns a new object
    sharing the same (read-only) tag arrays.

    Instances are immutable; build them with :meth:`builder` or load them
    with :meth:`load`.
    """

    def __init__(self, genome_query, detected_fragment, data, actual_fragment=None):
        if not isinstance(data, SortedOffsets) or not data.stranded:
            raise TypeError("data must be a stranded SortedOffsets")
        self.genome_query = genome_query
        self.detected_fragment = int(detected_fragment)
        self.actual_fragment = (self.detected_fragment if actual_fragment is None
                                else int(actual_fragment))
        if self.detected_fragment < 0 or self.actual_fragment < 0:
            raise ValueError("Fragment sizes must be non-negative")
        self.data = data

    @classmethod
    def builder(cls, genome_query):
        return SingleEndCoverageBuilder(genome_query)

    def get_coverage(self, location):
        return self.get_tags(location)

    def get_tags(self, location):
        """Number of tags inside ``location`` after the half-fragment shift."""
        offsets = self.data.get(location.chromosome, location.strand)
        # Offsets outside the chromosome after shifting do not affect counts.
        half = self.actual_fragment // 2
        shift = half if location.strand is Strand.PLUS else -half
        # Shift the query the other way instead of shifting every tag.
        return count_in_range(offsets, location.start - shift, location.end - shift)

    @property
    def depth(self):
        return self.data.size

    def with_fragment(self, fragment):
        """
        Return a copy with a different ``actual_fragment``.

        Parameters
        ----------
        fragment : int, str, FixedFragment, AutoFragment or None
            ``None``, ``"auto"`` and :data:`AUTO_FRAGMENT` revert to the
            detected fragment.
        """
        fragment = parse_fragment(fragment)
        if isinstance(fragment, FixedFragment):
            return SingleEndCoverage(self.genome_query, self.detected_fragment, self.data,
                                     actual_fragment=fragment.size)
        return SingleEndCoverage(self.genome_query, self.detected_fragment, self.data)

    def save(self, path):
        """Save to an ``.npz`` coverage file."""
        arrays = _header(CoverageType.SINGLE_END_CHIPSEQ)
        arrays[FRAGMENT_FIELD] = [self.detected_fragment]
        for chromosome in self.genome_query.get():
            for strand in Strand:
                arrays[_strand_key(chromosome, strand)] = self.data.get(chromosome, strand)
        _write_npz(path, arrays)

    @classmethod
    def load(cls, path, genome_query, fragment=AUTO_FRAGMENT, fail_on_missing_chromosomes=True):
        """
        Load single-end coverage saved by :meth:`save`.

        Raises
        ------
        CoverageFormatError
            If the file holds another coverage type or format version.
        MissingChromosomeError
            If ``fail_on_missing_chromosomes`` and a chromosome is absent.
        """
        with _open_npz(path) as npz:
            coverage = cls._from_npz(npz, path, genome_query, fail_on_missing_chromosomes)
        return coverage.with_fragment(fragment)

    @classmethod
    def _from_npz(cls, npz, path, genome_query, fail_on_missing_chromosomes):
        _check_type(npz, path, CoverageType.SINGLE_END_CHIPSEQ)
        detected_fragment = int(_read_scalar(npz, FRAGMENT_FIELD, path))
        data = {}
        for chromosome in genome_query.get():
            for strand in Strand:
                data[(chromosome.name, strand)] = _read_offsets(
                    npz, _strand_key(chromosome, strand), path, chromosome,
                    fail_on_missing_chromosomes,
                )
        offsets = SortedOffsets.from_arrays(genome_query, data, stranded=True, copy=False)
        return cls(genome_query, detected_fragment, offsets)

    def __eq__(self, other):
        if not isinstance(other, SingleEndCoverage):
            return NotImplemented
        return (self.genome_query == other.genome_query
                and self.detected_fragment == other.detected_fragment
                and self.actual_fragment == other.actual_fragment
                and self.data == other.data)

    __hash__ = None

    def __repr__(self):
        return (f"SingleEndCoverage({self.genome_query.id}, "
                f"detected_fragment={self.detected_fragment}, "
                f"actual_fragment={self.actual_fragment}, depth={self.depth})")


class SingleEndCoverageBuilder:
    """Collects reads for a :class:`SingleEndCoverage`; single writer only."""

    def __init__(self, genome_query):
        self.genome_query = genome_query
        self._offsets = SortedOffsetsBuilder(genome_query, stranded=True)
        self._read_length_sum = 0
        self._read_count = 0

    def process(self, read):
        """Add a read; only its 5' end is stored."""
        self._offsets.process(read.chromosome, read.get_5_bound(), read.strand)
        self._read_length_sum += read.length
        self._read_count += 1
        return self

    def build(self, unique, processes=None):
        """
        Generate a :class:`SingleEndCoverage`.

        Parameters
        ----------
        unique : bool
            Squash tags at the exact same offset on the exact same strand
            into one when True; keep duplicates otherwise.
        processes : int, optional
            Worker processes for fragment detection.
        """
        data = self._offsets.build(unique)
        average_read_length = (self._read_length_sum / self._read_count
                               if self._read_count else float("nan"))
        detected_fragment = detect_fragment_size(data, average_read_length, processes=processes)
        _logger.debug("Built single-end coverage: %d tags, fragment %d",
                      data.size, detected_fragment)
        return SingleEndCoverage(self.genome_query, detected_fragment, data)

"""
Sorted per-chromosome (optionally per-strand) offset stores.

A :class:`SortedOffsetsBuilder` collects offsets from a single writer and
freezes them into an immutable :class:`SortedOffsets`, whose arrays are
read-only and may be shared freely between threads and derived coverage
objects.
"""

from ._shared import _numpy
from .genome import Strand

OFFSET_DTYPE = _numpy.int32


def binary_search_left(values, target):
    """
    Return the insertion index of ``target`` into sorted ``values``.

    If ``target`` already appears, the index of its leftmost occurrence is
    returned, i.e. the leftmost ``i`` with ``values[i] >= target``.
    """
    return int(_numpy.searchsorted(values, target, side="left"))


def count_in_range(values, start, end):
    """
    Count sorted ``values`` falling into ``[start, end)``.

    Binary search for the left boundary, then scan while ``value < end``;
    intended for short ranges over long arrays.
    """
    index = binary_search_left(values, start)
    n = len(values)
    size = 0
    while index + size < n and values[index + size] < end:
        size += 1
    return size


def _frozen(array, copy=True):
    if copy:
        array = _numpy.array(array, dtype=OFFSET_DTYPE, copy=True)
    else:
        array = _numpy.ascontiguousarray(array, dtype=OFFSET_DTYPE)
    array.flags.writeable = False
    return array


_EMPTY_OFFSETS = _frozen(_numpy.empty(0, dtype=OFFSET_DTYPE))


class SortedOffsets:
    """
    Immutable sorted offsets for every chromosome (and strand) of a genome query.

    Parameters
    ----------
    genome_query : GenomeQuery
        Chromosomes covered by the store.
    data : dict
        ``{chrom_name: array}`` or, when ``stranded``,
        ``{(chrom_name, Strand): array}``. Arrays must be sorted ascending.
    stranded : bool
        Whether offsets are kept per strand.
    copy : bool, default True
        Copy the arrays. Pass False only for freshly allocated arrays that
        no one else references.
    """

    __slots__ = ("genome_query", "stranded", "_data")

    def __init__(self, genome_query, data, stranded=False, copy=True):
        self.genome_query = genome_query
        self.stranded = stranded
        self._data = {}
        for key in self._keys():
            self._data[key] = _frozen(data.get(key, _EMPTY_OFFSETS), copy=copy)

    @classmethod
    def from_arrays(cls, genome_query, data, stranded=False, copy=True):
        """Wrap pre-sorted arrays (e.g. read back from disk), checking order."""
        for key, array in data.items():
            array = _numpy.asarray(array)
            if array.ndim != 1:
                raise ValueError(f"Offsets for {key} must be a 1-D array")
            if array.size > 1 and _numpy.any(array[1:] < array[:-1]):
                raise ValueError(f"Offsets for {key} are not sorted")
        return cls(genome_query, data, stranded=stranded, copy=copy)

    def _keys(self):
        for chromosome in self.genome_query.get():
            if self.stranded:
                for strand in Strand:
                    yield chromosome.name, strand
            else:
                yield chromosome.name

    def _key(self, chromosome, strand):
        if self.stranded:
            if strand is None:
                raise ValueError("Strand is required for a stranded offsets store")
            key = (chromosome.name, strand)
        else:
            key = chromosome.name
        if key not in self._data:
            raise KeyError(f"{chromosome.name} is not in genome query {self.genome_query.id}")
        return key

    def get(self, chromosome, strand=None):
        """Return the read-only sorted offsets array for a chromosome (and strand)."""
        return self._data[self._key(chromosome, strand)]

    def count(self, chromosome, start, end, strand=None):
        """Number of offsets in ``[start, end)``."""
        return count_in_range(self.get(chromosome, strand), start, end)

    def keys(self):
        """Store keys in genome query order."""
        return list(self._keys())

    def items(self):
        """Yield ``(key, array)`` pairs in genome query order."""
        for key in self._keys():
            yield key, self._data[key]

    @property
    def size(self):
        return sum(int(array.size) for array in self._data.values())

    def __eq__(self, other):
        if not isinstance(other, SortedOffsets):
            return NotImplemented
        if self.stranded != other.stranded or self.genome_query != other.genome_query:
            return False
        return all(_numpy.array_equal(a, other._data[k]) for k, a in self._data.items())

    def __repr__(self):
        kind = "stranded" if self.stranded else "unstranded"
        return f"SortedOffsets({self.genome_query.id}, {kind}, size={self.size})"


class SortedOffsetsBuilder:
    """
    Mutable single-writer buffer for :class:`SortedOffsets`.

    Not thread-safe. Every offset is validated against its chromosome's
    bounds (``0 <= offset < length``) on insertion.

    Examples
    --------
    >>> from pybioinf.genome import Genome, GenomeQuery
    >>> gq = GenomeQuery(Genome.from_sizes("toy", {"chr1": 100}))
    >>> builder = SortedOffsetsBuilder(gq)
    >>> for offset in (20, 10, 15, 12, 12):
    ...     builder.process(gq["chr1"], offset)
    >>> store = builder.build(unique=True)
    >>> store.get(gq["chr1"]).tolist()
    [10, 12, 15, 20]
    >>> store.count(gq["chr1"], 10, 15)
    2
    """

    def __init__(self, genome_query, stranded=False):
        self.genome_query = genome_query
        self.stranded = stranded
        self._buffers = {}
        self._chromosomes = {c.name: c for c in genome_query.get()}
        self.processed = 0

    def _buffer(self, chromosome, strand):
        known = self._chromosomes.get(chromosome.name)
        if known is None or known != chromosome:
            raise ValueError(
                f"Chromosome {chromosome} is not in genome query {self.genome_query.description}"
            )
        if self.stranded:
            if not isinstance(strand, Strand):
                raise ValueError(f"Stranded offsets require a Strand, got {strand!r}")
            key = (chromosome.name, strand)
        else:
            key = chromosome.name
        return self._buffers.setdefault(key, [])

    def process(self, chromosome, offset, strand=None):
        """Append one zero-based offset."""
        offset = int(offset)
        if offset < 0 or offset >= chromosome.length:
            raise ValueError(
                f"Offset should be in [0, {chromosome.length}) ({chromosome.name} size), "
                f"but was: {offset}"
            )
        self._buffer(chromosome, strand).append(offset)
        self.processed += 1
        return self

    def extend(self, chromosome, offsets, strand=None):
        """Append an array of zero-based offsets, validating them all first."""
        offsets = _numpy.asarray(offsets, dtype=_numpy.int64)
        if offsets.size == 0:
            return self
        lo = int(offsets.min())
        hi = int(offsets.max())
        if lo < 0 or hi >= chromosome.length:
            bad = lo if lo < 0 else hi
            raise ValueError(
                f"Offset should be in [0, {chromosome.length}) ({chromosome.name} size), "
                f"but was: {bad}"
            )
        self._buffer(chromosome, strand).extend(offsets.tolist())
        self.processed += int(offsets.size)
        return self

    def build(self, unique):
        """
        Freeze the buffers into a :class:`SortedOffsets`.

        Parameters
        ----------
        unique : bool
            Collapse offsets equal on the same chromosome (and strand) into
            one when True; keep multiplicity otherwise.

        Returns
        -------
        SortedOffsets
        """
        data = {}
        for key, buffer in self._buffers.items():
            array = _numpy.asarray(buffer, dtype=OFFSET_DTYPE)
            data[key] = _numpy.unique(array) if unique else _numpy.sort(array, kind="stable")
        return SortedOffsets(self.genome_query, data, stranded=self.stranded, copy=False)

"""Merged interval sets used for membership tests and masking."""

from __future__ import annotations

from ._shared import _numpy, _pandas
from .genome import Strand
from .locations import Location, Range


class RangesMergingList:
    """
    Sorted list of disjoint ranges.

    Overlapping and touching input ranges are merged on construction, so
    starts and ends are both strictly increasing and membership queries
    are a single binary search.
    """

    __slots__ = ("_starts", "_ends")

    def __init__(self, starts, ends):
        starts = _numpy.asarray(starts, dtype=_numpy.int64)
        ends = _numpy.asarray(ends, dtype=_numpy.int64)
        if starts.shape != ends.shape:
            raise ValueError("starts and ends must have the same length")
        starts.flags.writeable = False
        ends.flags.writeable = False
        self._starts = starts
        self._ends = ends

    @classmethod
    def from_ranges(cls, ranges) -> RangesMergingList:
        """Merge an iterable of :class:`Range` or ``(start, end)`` pairs."""
        pairs = sorted(
            (r.start, r.end) if isinstance(r, Range) else (int(r[0]), int(r[1]))
            for r in ranges
        )
        starts = []
        ends = []
        end = 0
        for start, range_end in pairs:
            if not starts:
                starts.append(start)
            elif start > end:
                ends.append(end)
                starts.append(start)
            end = max(end, range_end)
        if starts:
            ends.append(end)
        return cls(starts, ends)

    @property
    def starts(self):
        return self._starts

    @property
    def ends(self):
        return self._ends

    def __len__(self):
        return len(self._starts)

    def __iter__(self):
        for start, end in zip(self._starts, self._ends):
            yield Range(int(start), int(end))

    def _lookup(self, offset) -> int:
        # Index of the last range starting at or before offset, -1 if none.
        return int(_numpy.searchsorted(self._starts, offset, side="right")) - 1

    def includes_range(self, start, end) -> bool:
        i = self._lookup(start)
        return i >= 0 and start >= self._starts[i] and end <= self._ends[i]

    def includes(self, offset) -> bool:
        return self.includes_range(offset, offset + 1)

    def includes_many(self, offsets):
        """Vectorized :meth:`includes` over an array of offsets."""
        offsets = _numpy.asarray(offsets)
        if len(self._starts) == 0:
            return _numpy.zeros(offsets.shape, dtype=bool)
        idx = _numpy.searchsorted(self._starts, offsets, side="right") - 1
        valid = idx >= 0
        safe = _numpy.where(valid, idx, 0)
        return valid & (offsets < self._ends[safe])

    def overlaps(self, start, end) -> bool:
        i = max(0, self._lookup(start))
        n = len(self._starts)
        while i < n and self._starts[i] < end:
            if self._ends[i] > start:
                return True
            i += 1
        return False

    def intersect(self, start, end) -> list[Range]:
        """Clip every range to ``[start, end)``; empty pieces are dropped."""
        i = max(0, self._lookup(start))
        result = []
        n = len(self._starts)
        while i < n and self._starts[i] < end:
            lo = max(start, int(self._starts[i]))
            hi = min(end, int(self._ends[i]))
            if lo < hi:
                result.append(Range(lo, hi))
            i += 1
        return result

    def complementary(self, chrom_length) -> RangesMergingList:
        """
        Ranges not covered by this list within ``[0, chrom_length)``.

        ::

               |----------| |---------|  |---|  this
            |--|          |-|         |--|      result
        """
        bounds_starts = _numpy.concatenate(([0], self._ends))
        bounds_ends = _numpy.concatenate((self._starts, [chrom_length]))
        keep = bounds_starts < bounds_ends
        return RangesMergingList(bounds_starts[keep], bounds_ends[keep])

    def __eq__(self, other):
        if not isinstance(other, RangesMergingList):
            return NotImplemented
        return (_numpy.array_equal(self._starts, other._starts)
                and _numpy.array_equal(self._ends, other._ends))

    def __repr__(self):
        return "[ranges=" + ", ".join(str(r) for r in self) + "]"


_EMPTY = RangesMergingList([], [])


class LocationsMergingList:
    """
    Per chromosome and strand :class:`RangesMergingList` over a genome query.

    Strand is taken into account by every query; use
    :meth:`intersects_both_strands` to ignore it.
    """

    def __init__(self, genome_query, range_lists):
        self.genome_query = genome_query
        self._range_lists = range_lists

    @classmethod
    def create(cls, genome_query, locations) -> LocationsMergingList:
        """Merge an iterable of :class:`Location` objects."""
        ranges = {}
        for location in locations:
            if location.chromosome not in genome_query:
                raise ValueError(
                    f"Location {location} is outside of genome query {genome_query.description}"
                )
            ranges.setdefault((location.chromosome.name, location.strand), []).append(
                location.to_range()
            )
        range_lists = {key: RangesMergingList.from_ranges(value) for key, value in ranges.items()}
        return cls(genome_query, range_lists)

    @classmethod
    def from_dataframe(cls, genome_query, intervals) -> LocationsMergingList:
        """
        Build from a DataFrame with ``chrom``, ``start``, ``end`` and an optional
        ``strand`` column (``'+'``/``'-'`` or ``1``/``-1``).

        Rows on chromosomes outside ``genome_query`` are skipped.
        """
        if not isinstance(intervals, _pandas.DataFrame):
            raise TypeError("intervals must be a DataFrame")
        if not {"chrom", "start", "end"}.issubset(intervals.columns):
            raise ValueError("intervals must have columns: chrom, start, end")
        has_strand = "strand" in intervals.columns
        locations = []
        for row in intervals.itertuples(index=False):
            chromosome = genome_query[str(row.chrom)]
            if chromosome is None:
                continue
            strand = Strand.from_char(row.strand) if has_strand else Strand.PLUS
            locations.append(Location(int(row.start), int(row.end), chromosome, strand))
        return cls.create(genome_query, locations)

    def ranges(self, chromosome, strand) -> RangesMergingList:
        return self._range_lists.get((chromosome.name, strand), _EMPTY)

    def has_ranges(self, chromosome, strand) -> bool:
        return len(self.ranges(chromosome, strand)) > 0

    def get(self, chromosome, strand) -> list[Location]:
        return [r.on(chromosome, strand) for r in self.ranges(chromosome, strand)]

    def __contains__(self, location) -> bool:
        return self.ranges(location.chromosome, location.strand).includes_range(
            location.start, location.end
        )

    def contains_offset(self, offset, chromosome, strand) -> bool:
        return self.ranges(chromosome, strand).includes(offset)

    def intersect(self, location) -> list[Range]:
        return self.ranges(location.chromosome, location.strand).intersect(
            location.start, location.end
        )

    def intersects(self, location) -> bool:
        return self.ranges(location.chromosome, location.strand).overlaps(
            location.start, location.end
        )

    def intersects_both_strands(self, location) -> bool:
        return self.intersects(location) or self.intersects(location.opposite())

    def __iter__(self):
        for chromosome in self.genome_query.get():
            for strand in Strand:
                yield from self.get(chromosome, strand)

    def to_list(self) -> list[Location]:
        return list(self)

    @property
    def size(self) -> int:
        return sum(len(rl) for rl in self._range_lists.values())

    def __len__(self):
        return self.size

    def __repr__(self):
        return "[" + ", ".join(str(location) for location in self) + "]"

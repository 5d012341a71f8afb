"""Half-open genomic intervals: ranges, chromosome ranges and stranded locations."""

from __future__ import annotations

from dataclasses import dataclass

from .genome import Chromosome, Strand


@dataclass(frozen=True, order=True)
class Range:
    """A semi-closed interval ``[start, end)`` of 0-based offsets."""

    start: int
    end: int

    def __post_init__(self):
        if self.start > self.end:
            raise ValueError(f"invalid range [{self.start}, {self.end})")

    @property
    def length(self) -> int:
        return self.end - self.start

    def is_empty(self) -> bool:
        return self.start == self.end

    def intersects(self, other: Range) -> bool:
        return other.end > self.start and self.end > other.start

    def intersection(self, other: Range) -> Range:
        if self.intersects(other):
            return Range(max(self.start, other.start), min(self.end, other.end))
        return Range(0, 0)

    def on(self, chromosome: Chromosome, strand: Strand | None = None):
        if strand is None:
            return ChromosomeRange(self.start, self.end, chromosome)
        return Location(self.start, self.end, chromosome, strand)

    def __contains__(self, item) -> bool:
        if isinstance(item, Range):
            return self.start <= item.start and item.end <= self.end
        return self.start <= item < self.end

    def __str__(self):
        return f"[{self.start}, {self.end})"


@dataclass(frozen=True)
class ChromosomeRange:
    """An unstranded range on a chromosome."""

    start: int
    end: int
    chromosome: Chromosome

    def __post_init__(self):
        if self.start > self.end:
            raise ValueError(f"invalid chromosome range {self}")

    @property
    def length(self) -> int:
        return self.end - self.start

    def on(self, strand: Strand) -> Location:
        return Location(self.start, self.end, self.chromosome, strand)

    def to_range(self) -> Range:
        return Range(self.start, self.end)

    def sort_key(self):
        return self.chromosome.name, self.start, self.end

    def __str__(self):
        return f"{self.chromosome.name}:[{self.start}, {self.end})"


@dataclass(frozen=True)
class Location:
    """A stranded range on a chromosome."""

    start: int
    end: int
    chromosome: Chromosome
    strand: Strand = Strand.PLUS

    def __post_init__(self):
        if self.start > self.end:
            raise ValueError(f"invalid location {self}")

    @property
    def length(self) -> int:
        return self.end - self.start

    def get_5_bound(self, relative_offset: int = 0) -> int:
        """Absolute offset relative to the 5' end; differs from ``start`` on minus strand."""
        if self.strand.is_plus():
            return self.start + relative_offset
        return self.end - 1 - relative_offset

    def get_3_bound(self, relative_offset: int = 0) -> int:
        """Absolute offset relative to the 3' end; differs from ``end - 1`` on minus strand."""
        if self.strand.is_plus():
            return self.end - 1 + relative_offset
        return self.start - relative_offset

    def opposite(self) -> Location:
        return Location(self.start, self.end, self.chromosome, self.strand.opposite())

    def to_range(self) -> Range:
        return Range(self.start, self.end)

    def to_chromosome_range(self) -> ChromosomeRange:
        return ChromosomeRange(self.start, self.end, self.chromosome)

    def sort_key(self):
        return self.chromosome.name, self.strand.value, self.start, self.end

    def __str__(self):
        return f"{self.chromosome.name}:{self.strand}[{self.start}, {self.end})"

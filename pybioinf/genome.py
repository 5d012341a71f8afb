"""Genome builds, chromosomes and genome queries."""

from __future__ import annotations

import logging as _logging
import os
import re
import warnings
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from enum import Enum

from ._shared import _numpy, _pandas

_logger = _logging.getLogger(__name__)


class Strand(Enum):
    """DNA strand, stored as its one-character code."""

    PLUS = "+"
    MINUS = "-"

    @property
    def char(self) -> str:
        return self.value

    def is_plus(self) -> bool:
        return self is Strand.PLUS

    def is_minus(self) -> bool:
        return self is Strand.MINUS

    def opposite(self) -> Strand:
        return Strand.MINUS if self is Strand.PLUS else Strand.PLUS

    @classmethod
    def from_char(cls, value) -> Strand:
        """Parse ``'+'``/``'-'`` (or a positive/negative integer) into a strand."""
        if isinstance(value, Strand):
            return value
        if isinstance(value, (int, _numpy.integer)) and not isinstance(value, bool):
            return cls.PLUS if value > 0 else cls.MINUS
        if value == "+":
            return cls.PLUS
        if value == "-":
            return cls.MINUS
        raise ValueError(f"Unknown strand: {value!r}")

    def __str__(self):
        return self.value


@dataclass(frozen=True, order=True)
class Chromosome:
    """A chromosome of a given genome build.

    Chromosomes compare and hash by ``(build, name)``; the length is carried
    along for bounds checks.
    """

    build: str
    name: str
    length: int = field(compare=False)

    @property
    def chromosome_range(self):
        from .locations import ChromosomeRange
        return ChromosomeRange(0, self.length, self)

    def __str__(self):
        return f"{self.build}:{self.name}"


# Explicit cache of loaded genomes, keyed by build. Cleared with
# Genome.clear_cache().
_GENOMES: dict[str, Genome] = {}


def _build_name_from(chrom_sizes_path) -> str:
    file_name = os.path.basename(str(chrom_sizes_path))
    if not file_name.endswith(".chrom.sizes"):
        build = file_name.split(".", 1)[0]
        warnings.warn(
            f"Unexpected chrom sizes file name: {file_name}, expected "
            f"<build>.chrom.sizes. Detected build: {build}",
            stacklevel=3,
        )
        return build
    build = file_name[:-len(".chrom.sizes")]
    _logger.debug("Chrom sizes name: %s. Detected build: %s", file_name, build)
    return build


def _read_chrom_sizes(chrom_sizes_path) -> dict[str, int]:
    if not os.path.exists(chrom_sizes_path):
        raise FileNotFoundError(f"Chrom sizes file does not exist: {chrom_sizes_path}")
    _logger.debug("Loading chrom.sizes %s", chrom_sizes_path)
    try:
        chrom_sizes = _pandas.read_csv(
            chrom_sizes_path,
            sep="\t",
            header=None,
            comment="#",
            usecols=[0, 1],
            names=["chrom", "size"],
            dtype={"chrom": str, "size": "int64"},
        )
    except (ValueError, _pandas.errors.ParserError) as exc:
        raise ValueError(
            f"Failed to parse chrom.sizes file: {chrom_sizes_path}"
        ) from exc
    if chrom_sizes.empty:
        raise ValueError(f"Empty chrom.sizes file: {chrom_sizes_path}")
    if (chrom_sizes["size"] < 0).any():
        raise ValueError(
            f"Invalid chrom.sizes file {chrom_sizes_path}: size must be non-negative"
        )
    return dict(zip(chrom_sizes["chrom"], chrom_sizes["size"].astype(int)))


class Genome:
    """
    A genome build with an ordered set of chromosomes of known lengths.

    Genomes are registered in a process-wide cache keyed by build, so that
    every :class:`Chromosome` of a build is backed by the same sizes. Use
    :meth:`from_chrom_sizes` or :meth:`from_sizes` rather than the
    constructor, and :meth:`clear_cache` to forget registered builds.

    Parameters
    ----------
    build : str
        Build name, e.g. ``"hg38"``.
    chrom_sizes : Mapping[str, int]
        Chromosome name to length, in genome order.
    chrom_sizes_path : str, optional
        File the sizes were read from, if any.
    """

    def __init__(self, build: str, chrom_sizes: Mapping[str, int],
                 chrom_sizes_path=None):
        if not build:
            raise ValueError("Genome build must be a non-empty string")
        self.build = build
        self.chrom_sizes_path = None if chrom_sizes_path is None else str(chrom_sizes_path)
        self._chromosomes = []
        for name, length in chrom_sizes.items():
            length = int(length)
            if length < 0:
                raise ValueError(f"Chromosome {name} length must be non-negative, got {length}")
            self._chromosomes.append(Chromosome(build, str(name), length))
        self._names_map = self._build_names_map(self._chromosomes)

    @staticmethod
    def _build_names_map(chromosomes):
        names = {c.name: c for c in chromosomes}
        # Alternative names: "1" <-> "chr1", unless they clash with a real name.
        aliases = {}
        for c in chromosomes:
            alias = c.name[3:] if c.name.startswith("chr") else f"chr{c.name}"
            if alias and alias not in names:
                aliases.setdefault(alias, c)
        return {**aliases, **names}

    @property
    def chromosomes(self) -> list[Chromosome]:
        return list(self._chromosomes)

    @property
    def chromosome_names_map(self) -> dict[str, Chromosome]:
        return dict(self._names_map)

    @property
    def chrom_sizes(self) -> dict[str, int]:
        return {c.name: c.length for c in self._chromosomes}

    def __getitem__(self, name: str) -> Chromosome:
        try:
            return self._names_map[name]
        except KeyError:
            raise KeyError(
                f"Unknown chromosome '{name}' in genome {self.presentable_name()}"
            ) from None

    def __contains__(self, name) -> bool:
        return name in self._names_map

    def presentable_name(self) -> str:
        if self.chrom_sizes_path is None:
            return self.build
        return f"{self.build} [{self.chrom_sizes_path}]"

    def __repr__(self):
        return f"Genome({self.presentable_name()}, {len(self._chromosomes)} chromosomes)"

    # ------------------------------------------------------------------
    # Registry
    # ------------------------------------------------------------------

    @classmethod
    def _get_or_add(cls, genome: Genome) -> Genome:
        cached = _GENOMES.get(genome.build)
        if cached is None:
            _GENOMES[genome.build] = genome
            return genome
        if cached.chrom_sizes_path != genome.chrom_sizes_path:
            raise ValueError(
                f"Cannot load genome for {genome.presentable_name()}: genome "
                f"'{genome.build}' already initialized with {cached.presentable_name()}"
            )
        if cached.chrom_sizes != genome.chrom_sizes:
            raise ValueError(
                f"Genome '{genome.build}' already initialized with different chromosome sizes"
            )
        return cached

    @classmethod
    def from_sizes(cls, build: str, chrom_sizes: Mapping[str, int]) -> Genome:
        """Register (or fetch) an in-memory genome built from a sizes mapping."""
        return cls._get_or_add(cls(build, chrom_sizes))

    @classmethod
    def from_chrom_sizes(cls, chrom_sizes_path, build: str | None = None) -> Genome:
        """
        Register (or fetch) a genome from a ``<build>.chrom.sizes`` file.

        Parameters
        ----------
        chrom_sizes_path : str or Path
            Tab-separated file with chromosome name and length columns.
        build : str, optional
            Build name. Inferred from the file name when omitted.

        Returns
        -------
        Genome
        """
        if build is None:
            build = _build_name_from(chrom_sizes_path)
        cached = _GENOMES.get(build)
        path = str(chrom_sizes_path)
        if cached is not None and cached.chrom_sizes_path == path:
            return cached
        return cls._get_or_add(cls(build, _read_chrom_sizes(path), chrom_sizes_path=path))

    @classmethod
    def get(cls, build: str) -> Genome:
        """Return an already registered genome."""
        try:
            return _GENOMES[build]
        except KeyError:
            raise KeyError(f"Genome '{build}' is not loaded") from None

    @staticmethod
    def clear_cache(build: str | None = None) -> None:
        """Forget one registered build, or all of them."""
        if build is None:
            _GENOMES.clear()
        else:
            _GENOMES.pop(build, None)


_MAPPED_CHRS_PATTERN = re.compile(r"chr[0-9a-tv-zA-TV-Z]+[0-9a-zA-Z]*")


def chr_default_choice(name: str) -> bool:
    """By default ignore chrM, unmapped contigs and alternative contigs."""
    return name != "chrM" and _MAPPED_CHRS_PATTERN.fullmatch(name) is not None


class GenomeQuery:
    """
    An ordered, optionally restricted list of chromosomes of a genome.

    Without a restriction, the mitochondrial chromosome and unlocalized or
    unmapped contigs are skipped (see :func:`chr_default_choice`).

    Parameters
    ----------
    genome : Genome
        The genome build.
    restriction : Iterable[str], optional
        Chromosome names to keep. Empty means "all default chromosomes".

    Examples
    --------
    >>> genome = Genome.from_sizes("toy", {"chr1": 1000, "chr2": 500, "chrM": 16})
    >>> [c.name for c in GenomeQuery(genome).get()]
    ['chr1', 'chr2']
    >>> GenomeQuery(genome, ["chr2"]).id
    'toy[chr2]'
    """

    def __init__(self, genome: Genome, restriction: Iterable[str] = ()):
        self.genome = genome
        canonical = set()
        for name in restriction:
            if name not in genome:
                raise ValueError(
                    f"Unknown chromosome name: {name} for {genome.presentable_name()}"
                )
            canonical.add(genome[name].name)
        self.restriction = frozenset(canonical)
        if self.restriction:
            self._chromosomes = [c for c in genome.chromosomes if c.name in self.restriction]
        else:
            self._chromosomes = [c for c in genome.chromosomes if chr_default_choice(c.name)]

    @property
    def build(self) -> str:
        return self.genome.build

    def get(self) -> list[Chromosome]:
        return list(self._chromosomes)

    def __iter__(self):
        return iter(self._chromosomes)

    def __len__(self):
        return len(self._chromosomes)

    def __getitem__(self, name: str) -> Chromosome | None:
        chromosome = self.genome.chromosome_names_map.get(name)
        if chromosome is None:
            _logger.debug("Chromosome %s not found in genome %s", name,
                          self.genome.presentable_name())
            return None
        if self.restriction:
            if chromosome.name not in self.restriction:
                _logger.debug("Chromosome %s is not in restricted genome %s",
                              name, self.description)
                return None
        elif not chr_default_choice(chromosome.name):
            _logger.debug("Chromosome %s is ignored", name)
            return None
        return chromosome

    def __contains__(self, item) -> bool:
        if isinstance(item, Chromosome):
            return item.build == self.build and self[item.name] == item
        return self[item] is not None

    def only(self, names: Iterable[str]) -> GenomeQuery:
        """Restrict this query to a subset of its chromosomes."""
        names = list(names)
        for name in names:
            if name not in self:
                raise ValueError(f"Unknown chromosome name: {name} for {self.description}")
        if sorted(self.genome[n].name for n in names) == sorted(c.name for c in self._chromosomes):
            return self
        return GenomeQuery(self.genome, names)

    @property
    def id(self) -> str:
        if self.restriction:
            return f"{self.build}[{','.join(sorted(self.restriction))}]"
        return self.build

    @property
    def description(self) -> str:
        contents = ", ".join(sorted(self.restriction)) if self.restriction else "all chromosomes"
        return f"{self.build} [{contents}]"

    @classmethod
    def parse(cls, value: str) -> GenomeQuery:
        """Restore a query from its :attr:`id`; the build must already be loaded."""
        if "[" not in value:
            return cls(Genome.get(value))
        build, _, rest = value.partition("[")
        names = [n for n in rest.replace("]", "").split(",") if n]
        return cls(Genome.get(build), names)

    def __eq__(self, other):
        if self is other:
            return True
        if not isinstance(other, GenomeQuery):
            return NotImplemented
        return self.build == other.build and self.restriction == other.restriction

    def __hash__(self):
        return hash((self.build, self.restriction))

    def __repr__(self):
        return self.id

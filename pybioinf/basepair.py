"""
Strand-independent single nucleotide coverage.

Used to represent e.g. every CpG covered by a merged methylome. Unlike
:class:`~pybioinf.single_end.SingleEndCoverage` there is no tag shift and no
fragment size; the coverage is filled with single offsets rather than read
intervals.
"""

import logging as _logging
from pathlib import Path

from ._shared import _numpy, _pandas, _progress_context, _report
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
from .genome import Strand
from .offsets import SortedOffsets, SortedOffsetsBuilder

_logger = _logging.getLogger(__name__)

BASEPAIR_VERSION = 3
BASEPAIR_VERSION_FIELD = "basepair_version"

# Rows handed to the builder between progress reports.
_TSV_CHUNK = 1_000_000


class BasePairCoverage(Coverage):
    """
    Sorted offsets for each chromosome, without strand.

    Immutable; build with :meth:`builder`, :meth:`load_tsv` or :meth:`load`.
    """

    def __init__(self, genome_query, data):
        if not isinstance(data, SortedOffsets) or data.stranded:
            raise TypeError("data must be an unstranded SortedOffsets")
        self.genome_query = genome_query
        self.data = data

    @classmethod
    def builder(cls, genome_query, offset_is_one_based):
        return BasePairCoverageBuilder(genome_query, offset_is_one_based)

    def get_coverage(self, location):
        """Number of offsets inside ``location``; its strand is ignored."""
        return self.data.count(location.chromosome, location.start, location.end)

    def get_both_strands_coverage(self, chromosome_range):
        return self.data.count(chromosome_range.chromosome, chromosome_range.start,
                               chromosome_range.end)

    @property
    def depth(self):
        return self.data.size

    def filter(self, regions, include_regions, ignore_regions_on_minus_strand=True,
               progress=None):
        """
        Keep only offsets inside (or outside) a set of regions.

        Parameters
        ----------
        regions : LocationsMergingList
            Regions to test offsets against.
        include_regions : bool
            Keep offsets inside ``regions`` when True, outside otherwise.
        ignore_regions_on_minus_strand : bool, default True
            Test only the plus-strand ranges of ``regions``.
        progress : bool, str or callable, optional
            Progress reporting, see :data:`~pybioinf._shared.CONFIG`.

        Returns
        -------
        BasePairCoverage
            Duplicates are kept as they are, so the result has the same
            uniqueness state as this coverage.

        Examples
        --------
        >>> inside = coverage.filter(regions, include_regions=True)  # doctest: +SKIP
        >>> outside = coverage.filter(regions, include_regions=False)  # doctest: +SKIP
        >>> inside.depth + outside.depth == coverage.depth  # doctest: +SKIP
        True
        """
        strands = (Strand.PLUS,) if ignore_regions_on_minus_strand else tuple(Strand)
        builder = SortedOffsetsBuilder(self.genome_query)
        total = self.depth
        done = 0
        with _progress_context(progress, total=total, desc="Filtering coverage") as cb:
            for chromosome in self.genome_query.get():
                offsets = self.data.get(chromosome)
                included = _numpy.zeros(offsets.shape, dtype=bool)
                for strand in strands:
                    if regions.has_ranges(chromosome, strand):
                        included |= regions.ranges(chromosome, strand).includes_many(offsets)
                mask = included if include_regions else ~included
                builder.extend(chromosome, offsets[mask])
                done += int(offsets.size)
                _report(cb, done, total)
        return BasePairCoverage(self.genome_query, builder.build(unique=False))

    def save_npz(self, path):
        """Save to an ``.npz`` coverage file."""
        arrays = _header(CoverageType.BASEPAIR)
        arrays[BASEPAIR_VERSION_FIELD] = [BASEPAIR_VERSION]
        for chromosome in self.genome_query.get():
            arrays[chromosome.name] = self.data.get(chromosome)
        _write_npz(path, arrays)

    save = save_npz

    def save_tsv(self, path, offset_is_one_based=True):
        """
        Save as a headerless two-column TSV: chromosome name and offset.

        Parameters
        ----------
        path : str or Path
            Output file.
        offset_is_one_based : bool, default True
            Write one-based offsets when True, zero-based otherwise.
        """
        shift = 1 if offset_is_one_based else 0
        frames = []
        for chromosome in self.genome_query.get():
            offsets = self.data.get(chromosome)
            frames.append(_pandas.DataFrame({
                "chrom": chromosome.name,
                "offset": offsets.astype(_numpy.int64) + shift,
            }))
        df = (_pandas.concat(frames, ignore_index=True) if frames
              else _pandas.DataFrame({"chrom": [], "offset": []}))
        _logger.info("Saving coverage to %s", path)
        df.to_csv(path, sep="\t", header=False, index=False)

    @classmethod
    def load(cls, path, genome_query, fail_on_missing_chromosomes=True):
        """
        Load base-pair coverage saved by :meth:`save_npz`.

        Raises
        ------
        CoverageFormatError
            If the file holds another coverage type, or its base-pair version
            marker is missing or different.
        MissingChromosomeError
            If ``fail_on_missing_chromosomes`` and a chromosome is absent.
        """
        with _open_npz(path) as npz:
            return cls._from_npz(npz, path, genome_query, fail_on_missing_chromosomes)

    @classmethod
    def _from_npz(cls, npz, path, genome_query, fail_on_missing_chromosomes):
        _check_type(npz, path, CoverageType.BASEPAIR)
        if BASEPAIR_VERSION_FIELD not in npz.files:
            raise CoverageFormatError(f"{path} basepair coverage version is missing")
        version = int(_read_scalar(npz, BASEPAIR_VERSION_FIELD, path))
        if version != BASEPAIR_VERSION:
            raise CoverageFormatError(
                f"{path} basepair coverage version is {version} instead of {BASEPAIR_VERSION}"
            )
        data = {
            chromosome.name: _read_offsets(npz, chromosome.name, path, chromosome,
                                           fail_on_missing_chromosomes)
            for chromosome in genome_query.get()
        }
        return cls(genome_query, SortedOffsets.from_arrays(genome_query, data, copy=False))

    @classmethod
    def load_tsv(cls, genome_query, path, offset_is_one_based, header=False,
                 fail_on_missing_chromosomes=True, progress=None):
        """
        Load from a tab separated file with at least two columns.

        The first column is the chromosome name, the second the offset.
        Lines starting with ``#`` are skipped. Duplicate offsets are squashed.

        Parameters
        ----------
        genome_query : GenomeQuery
            Chromosomes to keep. Rows on chromosomes of the genome outside
            the query are skipped.
        path : str or Path
            Input file.
        offset_is_one_based : bool
            Whether offsets in the file are one-based.
        header : bool, default False
            Whether the first non-comment line is a header.
        fail_on_missing_chromosomes : bool, default True
            Raise on chromosome names unknown to the genome; skip such rows
            otherwise.
        progress : bool, str or callable, optional
            Progress reporting.

        Returns
        -------
        BasePairCoverage

        Raises
        ------
        FileNotFoundError
            If ``path`` does not exist.
        ValueError
            On unknown chromosomes (strict mode) or offsets out of bounds.
        """
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(path)
        _logger.info("Loading coverage %s (%d bytes)", path, path.stat().st_size)
        try:
            df = _pandas.read_csv(
                path, sep="\t", comment="#", header=0 if header else None,
                usecols=[0, 1],
            )
        except _pandas.errors.EmptyDataError:
            df = _pandas.DataFrame({0: [], 1: []})
        df.columns = ["chrom", "offset"]
        df["chrom"] = df["chrom"].astype(str)

        genome = genome_query.genome
        names_map = genome.chromosome_names_map
        builder = BasePairCoverageBuilder(genome_query, offset_is_one_based)
        total = len(df)
        done = 0
        with _progress_context(progress, total=total, desc=f"Reading coverage from {path}") as cb:
            for name, group in df.groupby("chrom", sort=False):
                chromosome = names_map.get(name)
                if chromosome is None:
                    if fail_on_missing_chromosomes:
                        raise ValueError(
                            f"Unknown chromosome '{name}' for genome: '{genome.presentable_name()}'"
                        )
                    done += len(group)
                    _report(cb, done, total)
                    continue
                if chromosome not in genome_query:
                    _logger.debug("Skipping %s: not in genome query %s", name, genome_query.id)
                    done += len(group)
                    _report(cb, done, total)
                    continue
                offsets = group["offset"].to_numpy(dtype=_numpy.int64)
                for lo in range(0, len(offsets), _TSV_CHUNK):
                    chunk = offsets[lo:lo + _TSV_CHUNK]
                    builder.extend(chromosome, chunk)
                    done += len(chunk)
                    _report(cb, done, total)
        return builder.build(unique=True)

    def __eq__(self, other):
        if not isinstance(other, BasePairCoverage):
            return NotImplemented
        return self.genome_query == other.genome_query and self.data == other.data

    __hash__ = None


class BasePairCoverageBuilder:
    """
    Collects offsets for a :class:`BasePairCoverage`; single writer only.

    Parameters
    ----------
    genome_query : GenomeQuery
        Chromosomes accepted by the builder.
    offset_is_one_based : bool
        Whether offsets passed to :meth:`process` are one-based
        (``1 <= offset <= length``) or zero-based (``0 <= offset < length``).
    """

    def __init__(self, genome_query, offset_is_one_based):
        self.genome_query = genome_query
        self.offset_is_one_based = offset_is_one_based
        self._offsets = SortedOffsetsBuilder(genome_query)
        self._base_pairs_count = 0

    def _check_bounds(self, chromosome, lo, hi):
        if self.offset_is_one_based:
            if lo < 1:
                raise ValueError(f"One-based offset should be >= 1, but was: {lo}")
            if hi > chromosome.length:
                raise ValueError(
                    f"One-based offset should be <= {chromosome.length} "
                    f"({chromosome.name} size), but was: {hi}"
                )
        else:
            if lo < 0:
                raise ValueError(f"Zero-based offset should be >= 0, but was: {lo}")
            if hi >= chromosome.length:
                raise ValueError(
                    f"Zero-based offset should be < {chromosome.length} "
                    f"({chromosome.name} size), but was: {hi}"
                )

    def process(self, chromosome, offset):
        """Add a single offset."""
        offset = int(offset)
        self._check_bounds(chromosome, offset, offset)
        shift = 1 if self.offset_is_one_based else 0
        self._offsets.process(chromosome, offset - shift)
        self._base_pairs_count += 1
        return self

    def extend(self, chromosome, offsets):
        """Add an array of offsets."""
        offsets = _numpy.asarray(offsets, dtype=_numpy.int64)
        if offsets.size == 0:
            return self
        self._check_bounds(chromosome, int(offsets.min()), int(offsets.max()))
        shift = 1 if self.offset_is_one_based else 0
        self._offsets.extend(chromosome, offsets - shift)
        self._base_pairs_count += int(offsets.size)
        return self

    def build(self, unique):
        """
        Generate a :class:`BasePairCoverage`.

        ``unique`` squashes offsets equal on the same chromosome into one
        when True and preserves duplicates otherwise.
        """
        coverage = BasePairCoverage(self.genome_query, self._offsets.build(unique))
        if unique:
            if coverage.depth > self._base_pairs_count:
                raise RuntimeError(
                    f"Expected {self._base_pairs_count} >= {coverage.depth}"
                )
        elif coverage.depth != self._base_pairs_count:
            raise RuntimeError(
                f"Expected: {self._base_pairs_count} but was {coverage.depth}"
            )
        return coverage

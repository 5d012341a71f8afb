"""
Random placement of genomic regions.

:func:`shuffle_chromosome_ranges` is a fast reimplementation of
``bedtools shuffle``: region lengths are kept, starts are drawn uniformly
over a background, and (unless sampling with replacement) the resulting
regions do not intersect each other or a masked area.
"""

import bisect
import logging as _logging
from collections import Counter

from ._shared import _numpy, _pandas
from .containers import LocationsMergingList
from .genome import Strand
from .locations import ChromosomeRange, Location

_logger = _logging.getLogger(__name__)


class SamplingError(RuntimeError):
    """Random placement failed within the allowed number of attempts."""


class AttemptsHistogram:
    """Histogram of the number of attempts each placement took."""

    def __init__(self, counts=None):
        self._counts = Counter(counts or {})

    def increment(self, attempts):
        self._counts[int(attempts)] += 1

    def __iadd__(self, other):
        self._counts.update(other._counts)
        return self

    def count_values(self):
        """Total number of recorded placements."""
        return sum(self._counts.values())

    def mean(self):
        total = self.count_values()
        if total == 0:
            return float("nan")
        return sum(k * v for k, v in self._counts.items()) / total

    def to_dict(self):
        return dict(sorted(self._counts.items()))

    def __getitem__(self, attempts):
        return self._counts.get(attempts, 0)

    def __eq__(self, other):
        if not isinstance(other, AttemptsHistogram):
            return NotImplemented
        return +self._counts == +other._counts

    __hash__ = None

    def __repr__(self):
        return f"AttemptsHistogram({self.to_dict()})"


class _MaskedArea:
    """
    Forbidden area of one shuffle attempt: the user mask plus regions placed so far.

    Ranges of each chromosome are disjoint and kept sorted by start, so ends
    are sorted too and an intersection test is a single bisection.
    """

    def __init__(self, starts_ends):
        self._starts = {name: list(starts) for name, (starts, _) in starts_ends.items()}
        self._ends = {name: list(ends) for name, (_, ends) in starts_ends.items()}

    def intersects(self, candidate):
        starts = self._starts.get(candidate.chromosome.name)
        if not starts:
            return False
        i = bisect.bisect_left(starts, candidate.end)
        return i > 0 and self._ends[candidate.chromosome.name][i - 1] > candidate.start

    def add(self, candidate):
        name = candidate.chromosome.name
        starts = self._starts.setdefault(name, [])
        ends = self._ends.setdefault(name, [])
        i = bisect.bisect_left(starts, candidate.start)
        starts.insert(i, candidate.start)
        ends.insert(i, candidate.end)


def create_masked_area(masked_area, with_replacement, genome_query):
    """
    Build the forbidden area for one shuffle attempt.

    Parameters
    ----------
    masked_area : LocationsMergingList or None
        Area placed regions must not intersect; plus strand only.
    with_replacement : bool
        Whether placed regions may intersect each other.
    genome_query : GenomeQuery
        Chromosomes to consider.

    Returns
    -------
    _MaskedArea or None
        ``None`` when there is nothing to check, i.e. no mask and sampling
        with replacement.

    Raises
    ------
    ValueError
        If ``masked_area`` has ranges on the minus strand.
    """
    if masked_area is None and with_replacement:
        return None
    starts_ends = {}
    for chromosome in genome_query.get():
        if masked_area is None:
            starts_ends[chromosome.name] = ([], [])
            continue
        if masked_area.has_ranges(chromosome, Strand.MINUS):
            raise ValueError("Sampling ignores strand. Minus strand isn't supported.")
        ranges = masked_area.ranges(chromosome, Strand.PLUS)
        starts_ends[chromosome.name] = (ranges.starts.tolist(), ranges.ends.tolist())
    return _MaskedArea(starts_ends)


def create_prefix_sum(background):
    """Cumulative lengths of the ``background`` ranges, as int64."""
    lengths = _numpy.fromiter((r.length for r in background), dtype=_numpy.int64,
                              count=len(background))
    return _numpy.cumsum(lengths)


def try_shuffle(genome_query, background, lengths, prefix_sum, single_region_max_retries=100,
                with_replacement=False, masked_area=None, rng=None):
    """
    Single attempt to place every region.

    Returns
    -------
    tuple
        ``(regions, histogram)``; ``regions`` is ``None`` if some length
        could not be placed within ``single_region_max_retries`` draws.
    """
    rng = _numpy.random.default_rng() if rng is None else rng
    # Mask and already placed regions share one storage.
    forbidden = create_masked_area(masked_area, with_replacement, genome_query)

    result = []
    histogram = AttemptsHistogram()
    total = int(prefix_sum[-1])

    for expected_length in lengths:
        if expected_length <= 0:
            raise ValueError("Empty region not supported")
        placed = None
        attempt = 0
        for attempt in range(1, single_region_max_retries + 1):
            value = int(rng.integers(total))
            j = int(_numpy.searchsorted(prefix_sum, value, side="right"))
            interval = background[j]
            # Random offset inside the selected background interval.
            offset = interval.length + (value - int(prefix_sum[j]))
            anchor = interval.start + offset
            # Start somewhere in [anchor - length, anchor] so that the region
            # intersects the anchor rather than always starting at it.
            start = max(0, anchor - int(rng.integers(expected_length)))
            end = start + expected_length
            if end > interval.chromosome.length:
                continue
            candidate = ChromosomeRange(start, end, interval.chromosome)
            if forbidden is None or not forbidden.intersects(candidate):
                placed = candidate
                break
        histogram.increment(attempt)

        if placed is None:
            return None, histogram
        if not with_replacement:
            forbidden.add(placed)
        result.append(placed)

    return result, histogram


def shuffle_chromosome_ranges(genome_query, regions, background=None, region_set_max_retries=100,
                              single_region_max_retries=100, with_replacement=False,
                              masked_area=None, rng=None):
    """
    Randomly place regions of the same lengths as ``regions``.

    Region starts are sampled uniformly over the background (longer
    background intervals get proportionally more draws). Unless
    ``with_replacement``, placed regions never intersect each other, and
    they never intersect ``masked_area``. If some region cannot be placed,
    the whole set is placed again from scratch.

    Parameters
    ----------
    genome_query : GenomeQuery
        Genome to place regions on.
    regions : list of ChromosomeRange or int
        Regions to shuffle; only their lengths are used.
    background : list of ChromosomeRange, optional
        Where region starts may fall; whole chromosomes of
        ``genome_query`` by default.
    region_set_max_retries : int, default 100
        Attempts to place the whole set.
    single_region_max_retries : int, default 100
        Draws per region within one attempt.
    with_replacement : bool, default False
        Allow placed regions to intersect each other.
    masked_area : LocationsMergingList, optional
        Forbidden area, plus strand only.
    rng : numpy.random.Generator, optional
        Random source; a fresh ``default_rng()`` if omitted.

    Returns
    -------
    tuple
        ``(list of ChromosomeRange, AttemptsHistogram)`` with regions in
        input order and the attempts histogram of the successful set.

    Raises
    ------
    ValueError
        On zero-length regions, an empty background, or a mask with
        minus strand ranges.
    SamplingError
        If no attempt succeeded.

    Examples
    --------
    >>> import numpy as np
    >>> from pybioinf.genome import Genome, GenomeQuery
    >>> gq = GenomeQuery(Genome.from_sizes("toy", {"chr1": 10000}))
    >>> shuffled, _ = shuffle_chromosome_ranges(gq, [100, 200], rng=np.random.default_rng(0))
    >>> [r.length for r in shuffled]
    [100, 200]
    """
    lengths = [r if isinstance(r, (int, _numpy.integer)) else r.length for r in regions]
    lengths = [int(x) for x in lengths]
    if any(x <= 0 for x in lengths):
        raise ValueError("Empty region not supported")
    if not lengths:
        return [], AttemptsHistogram()

    if background is None:
        background = [c.chromosome_range for c in genome_query.get()]
    background = list(background)
    prefix_sum = create_prefix_sum(background)
    if prefix_sum.size == 0 or prefix_sum[-1] == 0:
        raise ValueError("Background is empty")

    rng = _numpy.random.default_rng() if rng is None else rng
    for attempt in range(1, region_set_max_retries + 1):
        shuffled, histogram = try_shuffle(
            genome_query, background, lengths, prefix_sum,
            single_region_max_retries=single_region_max_retries,
            with_replacement=with_replacement, masked_area=masked_area, rng=rng,
        )
        if shuffled is not None:
            _logger.debug("Shuffled %d regions in %d attempt(s), mean draws %.2f",
                          len(shuffled), attempt, histogram.mean())
            return shuffled, histogram
    raise SamplingError(
        f"Too many shuffle attempts. Max limit is: {region_set_max_retries} region set "
        f"retries with {single_region_max_retries} retries per region"
    )


def shuffle_regions_df(genome_query, regions, background=None, masked_area=None, **kwargs):
    """
    DataFrame front end to :func:`shuffle_chromosome_ranges`.

    Parameters
    ----------
    genome_query : GenomeQuery
        Genome to place regions on.
    regions : DataFrame
        Intervals with ``chrom``, ``start``, ``end`` columns; only lengths
        are used.
    background, masked_area : DataFrame, optional
        Intervals with ``chrom``, ``start``, ``end`` columns. Rows on
        chromosomes outside ``genome_query`` are ignored.
    **kwargs
        Passed to :func:`shuffle_chromosome_ranges`.

    Returns
    -------
    DataFrame
        Shuffled intervals with ``chrom``, ``start``, ``end`` columns, in
        input order.
    """
    for name, df in (("regions", regions), ("background", background),
                     ("masked_area", masked_area)):
        if df is None:
            continue
        if not isinstance(df, _pandas.DataFrame):
            raise TypeError(f"{name} must be a DataFrame")
        if not {"chrom", "start", "end"}.issubset(df.columns):
            raise ValueError(f"{name} must have columns: chrom, start, end")

    lengths = (regions["end"] - regions["start"]).astype(_numpy.int64).tolist()
    background_ranges = None
    if background is not None:
        background_ranges = []
        for row in background.itertuples(index=False):
            chromosome = genome_query[str(row.chrom)]
            if chromosome is not None:
                background_ranges.append(ChromosomeRange(int(row.start), int(row.end), chromosome))
    mask = None
    if masked_area is not None:
        mask = LocationsMergingList.from_dataframe(
            genome_query, masked_area[["chrom", "start", "end"]]
        )

    shuffled, _ = shuffle_chromosome_ranges(
        genome_query, lengths, background=background_ranges, masked_area=mask, **kwargs
    )
    return _pandas.DataFrame({
        "chrom": [r.chromosome.name for r in shuffled],
        "start": _numpy.array([r.start for r in shuffled], dtype=_numpy.int64),
        "end": _numpy.array([r.end for r in shuffled], dtype=_numpy.int64),
    })


def sample_locations(chromosome, lengths, left_bound, right_bound, strand=None, rng=None):
    """
    Random locations, which may intersect, inside ``[left_bound, right_bound)``.

    Parameters
    ----------
    chromosome : Chromosome
        Chromosome to sample on.
    lengths : list of int
        Length of each location.
    left_bound, right_bound : int
        Window to sample in.
    strand : Strand, optional
        Strand of every location; random if omitted.
    rng : numpy.random.Generator, optional
        Random source.

    Raises
    ------
    SamplingError
        If the window cannot fit the longest length.
    """
    lengths = [int(x) for x in lengths]
    longest = max(lengths, default=0)
    if right_bound - left_bound <= longest:
        raise SamplingError(
            f"Not enough space for location length {longest} within [{left_bound}, {right_bound})"
        )
    rng = _numpy.random.default_rng() if rng is None else rng
    locations = []
    for length in lengths:
        start = left_bound + int(rng.integers(right_bound - left_bound - length))
        if strand is None:
            location_strand = Strand.PLUS if rng.integers(2) else Strand.MINUS
        else:
            location_strand = strand
        locations.append(Location(start, start + length, chromosome, location_strand))
    return locations

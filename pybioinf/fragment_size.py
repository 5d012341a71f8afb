"""
Fragment size estimation by strand cross-correlation.

Reference:
    Kharchenko et al. "Design and analysis of ChIP-seq experiments for
    DNA-binding proteins." Nature Biotechnology, 2008.

Fragment size is computed as ``arg max_d 1/N sum_c N_c P[tags(c, d, +), tags(c, 0, -)]``
where ``N`` is the total number of tags, ``c`` a chromosome, ``N_c`` the number
of tags on ``c``, ``tags(c, d, s)`` the boolean vector of tags on strand ``s``
shifted by ``d``, and ``P`` the Pearson correlation coefficient.

For boolean vectors ``x`` (shifted plus) and ``y`` (minus) over a chromosome
of length ``L``::

    P[x, y] = (L sum(xy) - sum(x) sum(y)) / sqrt(sum(x) (L - sum(x)) sum(y) (L - sum(y)))

Only ``sum(xy)`` depends on ``d``, so the arg max reduces to the arg max of
the *Pearson correlation transform*::

    sum_c sum(xy) * (sum(x) + sum(y)) * L / sqrt(sum(x) (L - sum(x)) sum(y) (L - sum(y)))

The genome cannot be materialized as a vector, so ``sum(xy)`` is obtained by
matching distinct shifted-plus offsets against distinct minus offsets.
"""

import logging as _logging
import math
import multiprocessing as _multiprocessing

from ._shared import CONFIG, _chunk_slices, _numpy
from .genome import Strand

_logger = _logging.getLogger(__name__)

# Kharchenko et al. use this value as an upper bound, and the "chipseq" R
# package uses 500 as its default upper bound too.
MAX_FRAGMENT_SIZE = 500

def candidate_fragments(average_read_length):
    """
    Candidate fragment sizes for a given average read length.

    Sizes below the read length are skipped to avoid within-read
    autocorrelation (Ramachandran et al., "MaSC", Bioinformatics 2013).
    """
    lower = max(1, int(math.floor(average_read_length + 0.5)))
    return _numpy.arange(lower, MAX_FRAGMENT_SIZE + 1, dtype=_numpy.int64)


def _match_counts(plus, minus, shift):
    """
    Merge-walk counts for plus offsets shifted by ``shift`` against minus offsets.

    Both inputs are sorted unique arrays. Returns ``(matched, plus_only,
    minus_only)``.
    """
    shifted = plus + shift
    idx = _numpy.searchsorted(minus, shifted)
    inside = idx < minus.size
    matched = int(_numpy.count_nonzero(minus[idx[inside]] == shifted[inside]))
    return matched, int(plus.size) - matched, int(minus.size) - matched


def _coefficient(plus_size, minus_size, chrom_length):
    denominator = math.sqrt(
        plus_size * (chrom_length - plus_size) * minus_size * (chrom_length - minus_size)
    )
    if denominator == 0:
        return None
    return (plus_size + minus_size) * chrom_length / denominator


def _chromosome_inputs(offsets):
    """Per-chromosome ``(unique plus, unique minus, coefficient)`` in genome query order."""
    inputs = []
    for chromosome in offsets.genome_query.get():
        plus = offsets.get(chromosome, Strand.PLUS)
        minus = offsets.get(chromosome, Strand.MINUS)
        if plus.size == 0 or minus.size == 0:
            continue
        coefficient = _coefficient(float(plus.size), float(minus.size), float(chromosome.length))
        if coefficient is None:
            continue
        # Duplicates contribute a single match, coefficients use full counts.
        inputs.append((
            _numpy.unique(plus).astype(_numpy.int64),
            _numpy.unique(minus).astype(_numpy.int64),
            coefficient,
        ))
    return inputs


def _transform_chunk(inputs, candidates):
    transforms = _numpy.zeros(len(candidates), dtype=_numpy.float64)
    for plus, minus, coefficient in inputs:
        matched = _numpy.array(
            [_match_counts(plus, minus, int(d))[0] for d in candidates],
            dtype=_numpy.float64,
        )
        transforms += matched * coefficient
    return transforms


def _worker_transform_chunk(args):
    """Worker for parallel estimation over one chunk of candidates."""
    inputs, candidates = args
    return _transform_chunk(inputs, candidates)


def _should_parallelize(total_tags, n_candidates, processes):
    """Return ``(do_parallel, effective_processes)``."""
    if processes is not None and processes <= 1:
        return False, 1
    if processes is None:
        if not CONFIG.get('multitasking', True):
            return False, 1
        if total_tags < CONFIG.get('fragment_parallel_threshold', 0):
            return False, 1
        processes = min(
            _multiprocessing.cpu_count(),
            CONFIG.get('max_processes', 1),
        )
        processes = max(processes, CONFIG.get('min_processes', 1))
    effective = max(1, min(int(processes), n_candidates))
    return effective > 1, effective


def cross_correlation(offsets, candidates, processes=None):
    """
    Pearson correlation transform for every candidate fragment size.

    Parameters
    ----------
    offsets : SortedOffsets
        Stranded store of read 5' ends.
    candidates : array-like of int
        Candidate fragment sizes (shifts applied to plus strand offsets).
    processes : int, optional
        Worker processes. ``None`` decides from :data:`CONFIG`; ``1``
        forces sequential evaluation.

    Returns
    -------
    numpy.ndarray
        One float64 transform value per candidate.

    Notes
    -----
    Each candidate's value is accumulated over chromosomes in genome query
    order no matter how candidates are split between workers, so parallel and
    sequential results are bit-identical.
    """
    candidates = _numpy.asarray(candidates, dtype=_numpy.int64)
    if candidates.size == 0:
        return _numpy.zeros(0, dtype=_numpy.float64)
    inputs = _chromosome_inputs(offsets)
    total_tags = sum(int(p.size + m.size) for p, m, _ in inputs)

    do_parallel, effective = _should_parallelize(total_tags, len(candidates), processes)
    if not do_parallel:
        return _transform_chunk(inputs, candidates)

    chunk_size = -(-len(candidates) // effective)
    chunks = [candidates[lo:hi] for lo, hi in _chunk_slices(len(candidates), chunk_size)]
    _logger.info(
        "Cross-correlation: %d candidates over %d tags with %d processes",
        len(candidates), total_tags, effective,
    )
    worker_args = [(inputs, chunk) for chunk in chunks]
    ctx = _multiprocessing.get_context("fork")
    with ctx.Pool(processes=effective) as pool:
        results = pool.map(_worker_transform_chunk, worker_args)
    return _numpy.concatenate(results)


def detect_fragment_size(offsets, average_read_length, processes=None):
    """
    Detect the fragment size using the cross-correlation approach.

    Parameters
    ----------
    offsets : SortedOffsets
        Stranded store of read 5' ends.
    average_read_length : float
        Average read length over the dataset; NaN for an empty dataset.
    processes : int, optional
        See :func:`cross_correlation`.

    Returns
    -------
    int
        The candidate with the maximal transform (the first one on ties);
        0 for an empty dataset; the truncated read length when it exceeds
        :data:`MAX_FRAGMENT_SIZE`.
    """
    if average_read_length is None or math.isnan(average_read_length):
        # empty data, return a placeholder value
        return 0
    candidates = candidate_fragments(average_read_length)
    if candidates.size == 0:
        return int(average_read_length)
    transforms = cross_correlation(offsets, candidates, processes=processes)
    fragment = int(candidates[int(_numpy.argmax(transforms))])
    _logger.debug("Detected fragment: %d", fragment)
    if _logger.isEnabledFor(_logging.DEBUG):
        _logger.debug(
            "All non-scaled cross-correlations: %s",
            ",".join(f"{d}:{t:.2f}" for d, t in zip(candidates, transforms) if t > 0.01),
        )
    return fragment

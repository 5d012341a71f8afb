"""
Coverage protocol, fragment settings and the binary coverage container.

Coverage objects are persisted as numpy ``.npz`` archives: a ``version``
marker, a ``coverage_type`` marker, type-specific scalar fields, and one
integer array of sorted offsets per chromosome (and strand).
"""

import abc
import enum
import logging as _logging
from contextlib import contextmanager
from dataclasses import dataclass

from ._shared import _numpy
from .genome import Strand

_logger = _logging.getLogger(__name__)

# Binary storage format version; loaders refuse anything else (except the
# legacy version 4 layout).
VERSION = 5
LEGACY_VERSION = 4
VERSION_FIELD = "version"
COV_TYPE_FIELD = "coverage_type"
PAIRED_FIELD = "paired"


class CoverageType(enum.IntEnum):
    SINGLE_END_CHIPSEQ = 0
    PAIRED_END_CHIPSEQ = 1
    BASEPAIR = 2


class CoverageFormatError(ValueError):
    """A coverage file has unexpected version or type markers."""


class MissingChromosomeError(CoverageFormatError):
    """A coverage file has no data for a requested chromosome."""


# ---------------------------------------------------------------------------
# Fragment settings
# ---------------------------------------------------------------------------

class AutoFragment:
    """Use the fragment size detected from the data."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    @property
    def size(self):
        return None

    def __str__(self):
        return "auto"

    def __repr__(self):
        return "AutoFragment()"


AUTO_FRAGMENT = AutoFragment()


@dataclass(frozen=True)
class FixedFragment:
    """Use a user-specified fragment size."""

    size: int

    def __post_init__(self):
        if int(self.size) != self.size or self.size < 0:
            raise ValueError(f"Fragment size must be a non-negative integer, got {self.size!r}")

    def __str__(self):
        return str(self.size)


def parse_fragment(value):
    """
    Parse ``"auto"`` or an integer into a fragment setting.

    Parameters
    ----------
    value : str, int, None, AutoFragment or FixedFragment

    Returns
    -------
    AutoFragment or FixedFragment
    """
    if value is None or isinstance(value, AutoFragment):
        return AUTO_FRAGMENT
    if isinstance(value, FixedFragment):
        return value
    if isinstance(value, str):
        if value == "auto":
            return AUTO_FRAGMENT
        try:
            return FixedFragment(int(value))
        except ValueError as exc:
            raise ValueError(f"Fragment must be 'auto' or an integer, got {value!r}") from exc
    if isinstance(value, (int, _numpy.integer)) and not isinstance(value, bool):
        return FixedFragment(int(value))
    raise TypeError(f"Unsupported fragment value: {value!r}")


# ---------------------------------------------------------------------------
# Coverage protocol
# ---------------------------------------------------------------------------

class Coverage(abc.ABC):
    """Tag coverage of genomic locations."""

    genome_query = None

    @abc.abstractmethod
    def get_coverage(self, location):
        """Number of tags inside ``location``."""

    def get_both_strands_coverage(self, chromosome_range):
        """Number of tags inside ``chromosome_range`` on both strands."""
        return (self.get_coverage(chromosome_range.on(Strand.PLUS))
                + self.get_coverage(chromosome_range.on(Strand.MINUS)))

    @property
    @abc.abstractmethod
    def depth(self):
        """Total number of stored tags."""

    def __repr__(self):
        return f"{type(self).__name__}({self.genome_query.id})"


# ---------------------------------------------------------------------------
# npz container helpers
# ---------------------------------------------------------------------------

def _write_npz(path, arrays):
    _logger.info("Saving coverage to %s", path)
    with open(path, "wb") as f:
        _numpy.savez(f, **arrays)


@contextmanager
def _open_npz(path):
    with _numpy.load(path, allow_pickle=False) as npz:
        yield npz


def _read_scalar(npz, key, path):
    if key not in npz.files:
        raise CoverageFormatError(f"{path} has no '{key}' field")
    value = npz[key]
    if value.size != 1:
        raise CoverageFormatError(f"{path} field '{key}' must hold a single value")
    return value.item()


def _check_type(npz, path, expected):
    """Validate version and type markers; return the stored version."""
    version = int(_read_scalar(npz, VERSION_FIELD, path))
    if version == LEGACY_VERSION:
        paired = bool(_read_scalar(npz, PAIRED_FIELD, path))
        actual = CoverageType.PAIRED_END_CHIPSEQ if paired else CoverageType.SINGLE_END_CHIPSEQ
    elif version == VERSION:
        actual = int(_read_scalar(npz, COV_TYPE_FIELD, path))
    else:
        raise CoverageFormatError(
            f"{path} coverage version is {version} instead of {VERSION}"
        )
    if actual != expected:
        raise CoverageFormatError(
            f"{path} attempting to read {expected.name} coverage from a "
            f"{_type_name(actual)} cache file (expected type={int(expected)}, actual type={actual})"
        )
    return version


def _type_name(value):
    try:
        return CoverageType(value).name
    except ValueError:
        return f"unknown (type={value})"


def _read_offsets(npz, key, path, chromosome, fail_on_missing_chromosomes):
    if key in npz.files:
        return npz[key]
    msg = f"File {path} doesn't contain data for {chromosome.name}."
    _logger.debug(msg)
    if fail_on_missing_chromosomes:
        raise MissingChromosomeError(msg)
    return _numpy.empty(0, dtype=_numpy.int32)


def _header(coverage_type):
    return {
        VERSION_FIELD: _numpy.array([VERSION], dtype=_numpy.int32),
        COV_TYPE_FIELD: _numpy.array([int(coverage_type)], dtype=_numpy.int32),
    }


def load_coverage(path, genome_query, fragment=AUTO_FRAGMENT, fail_on_missing_chromosomes=True):
    """
    Load any coverage file, dispatching on its type marker.

    Parameters
    ----------
    path : str or Path
        ``.npz`` coverage file.
    genome_query : GenomeQuery
        Chromosomes to load.
    fragment : str, int, AutoFragment or FixedFragment, default AUTO_FRAGMENT
        Fragment applied to single-end coverage (ignored by other types).
    fail_on_missing_chromosomes : bool, default True
        Raise :class:`MissingChromosomeError` when a chromosome of
        ``genome_query`` has no data in the file; substitute an empty array
        otherwise.

    Returns
    -------
    Coverage

    Raises
    ------
    CoverageFormatError
        On version or type marker mismatch.
    """
    from .basepair import BasePairCoverage
    from .paired_end import PairedEndCoverage
    from .single_end import SingleEndCoverage

    with _open_npz(path) as npz:
        version = int(_read_scalar(npz, VERSION_FIELD, path))
        if version == LEGACY_VERSION:
            paired = bool(_read_scalar(npz, PAIRED_FIELD, path))
            coverage_type = (CoverageType.PAIRED_END_CHIPSEQ if paired
                             else CoverageType.SINGLE_END_CHIPSEQ)
        elif version == VERSION:
            type_value = int(_read_scalar(npz, COV_TYPE_FIELD, path))
            if type_value not in {t.value for t in CoverageType}:
                raise CoverageFormatError(f"{path} has unknown coverage type {type_value}")
            coverage_type = CoverageType(type_value)
        else:
            raise CoverageFormatError(
                f"{path} coverage version is {version} instead of {VERSION}"
            )

        if coverage_type == CoverageType.SINGLE_END_CHIPSEQ:
            coverage = SingleEndCoverage._from_npz(npz, path, genome_query,
                                                   fail_on_missing_chromosomes)
            return coverage.with_fragment(fragment)
        if coverage_type == CoverageType.PAIRED_END_CHIPSEQ:
            return PairedEndCoverage._from_npz(npz, path, genome_query,
                                               fail_on_missing_chromosomes)
        return BasePairCoverage._from_npz(npz, path, genome_query,
                                          fail_on_missing_chromosomes)

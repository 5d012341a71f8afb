"""
pybioinf - genomic interval containers, tag coverage and region sampling
"""

__version__ = '0.1.0'

from . import _shared
from ._shared import CONFIG, load_config
from .basepair import BasePairCoverage, BasePairCoverageBuilder
from .containers import LocationsMergingList, RangesMergingList
from .coverage import (
    AUTO_FRAGMENT,
    AutoFragment,
    Coverage,
    CoverageFormatError,
    CoverageType,
    FixedFragment,
    MissingChromosomeError,
    load_coverage,
    parse_fragment,
)
from .fragment_size import MAX_FRAGMENT_SIZE, cross_correlation, detect_fragment_size
from .genome import Chromosome, Genome, GenomeQuery, Strand
from .locations import ChromosomeRange, Location, Range
from .offsets import SortedOffsets, SortedOffsetsBuilder, binary_search_left, count_in_range
from .paired_end import PairedEndCoverage, PairedEndCoverageBuilder
from .shuffle import (
    AttemptsHistogram,
    SamplingError,
    sample_locations,
    shuffle_chromosome_ranges,
    shuffle_regions_df,
)
from .single_end import SingleEndCoverage, SingleEndCoverageBuilder

__all__ = [
    "CONFIG",
    "load_config",
    # Genome
    "Strand",
    "Chromosome",
    "Genome",
    "GenomeQuery",
    # Intervals
    "Range",
    "ChromosomeRange",
    "Location",
    "RangesMergingList",
    "LocationsMergingList",
    # Offsets
    "SortedOffsets",
    "SortedOffsetsBuilder",
    "binary_search_left",
    "count_in_range",
    # Coverage
    "Coverage",
    "CoverageType",
    "CoverageFormatError",
    "MissingChromosomeError",
    "AutoFragment",
    "AUTO_FRAGMENT",
    "FixedFragment",
    "parse_fragment",
    "load_coverage",
    "SingleEndCoverage",
    "SingleEndCoverageBuilder",
    "PairedEndCoverage",
    "PairedEndCoverageBuilder",
    "BasePairCoverage",
    "BasePairCoverageBuilder",
    # Fragment size
    "MAX_FRAGMENT_SIZE",
    "cross_correlation",
    "detect_fragment_size",
    # Sampling
    "AttemptsHistogram",
    "SamplingError",
    "shuffle_chromosome_ranges",
    "shuffle_regions_df",
    "sample_locations",
]

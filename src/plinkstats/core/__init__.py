"""Core data structures and scheduling for plinkstats.

This package contains the pieces shared by every statistical kernel:
- config: Configuration dataclasses
- errors: Exception hierarchy
- sample_subset: Sample subset index (bitmask + cumulative popcounts)
- variant_index: Region and variant-ID resolution
- scheduler: WorkQueue and one-shot latches
- threading: Worker pool driving parallel scans
"""

from plinkstats.core.config import OutputConfig, ScanConfig
from plinkstats.core.errors import (
    ConsistencyError,
    DecodeError,
    PlinkStatsError,
    ValidationError,
)
from plinkstats.core.sample_subset import SampleSubset, build_sample_subset
from plinkstats.core.scheduler import ComputeOnceLatch, OnceLatch, WorkQueue
from plinkstats.core.variant_index import (
    Region,
    VariantCoordinateIndex,
    VariantRange,
    parse_region,
)

__all__ = [
    "OutputConfig",
    "ScanConfig",
    "ConsistencyError",
    "DecodeError",
    "PlinkStatsError",
    "ValidationError",
    "SampleSubset",
    "build_sample_subset",
    "ComputeOnceLatch",
    "OnceLatch",
    "WorkQueue",
    "Region",
    "VariantCoordinateIndex",
    "VariantRange",
    "parse_region",
]

"""Exception types raised by plinkstats.

Three failure classes, none of them transient:
- ValidationError: bad user input detected before any scan starts
  (region syntax, out-of-range or duplicate selections, conflicting options).
- ConsistencyError: metadata and genotype data disagree (record counts,
  sort order, file size). Raised at bind time.
- DecodeError: the genotype decoding engine failed for a specific variant.
  Fatal for the whole query.

The first two subclass ValueError and the last OSError, so callers that
already catch the builtin types keep working.
"""


class PlinkStatsError(Exception):
    """Base class for all plinkstats errors."""


class ValidationError(PlinkStatsError, ValueError):
    """Invalid user-supplied parameter."""


class ConsistencyError(PlinkStatsError, ValueError):
    """Input files are mutually inconsistent or violate a format invariant."""


class DecodeError(PlinkStatsError, OSError):
    """Genotype decoding failed for a variant."""

    def __init__(self, message: str, variant_idx: int | None = None):
        super().__init__(message)
        self.variant_idx = variant_idx

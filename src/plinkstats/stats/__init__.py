"""Statistical kernels: frequency, Hardy-Weinberg, LD, missingness, score."""

from plinkstats.stats.common import QueryContext, bind_query
from plinkstats.stats.freq import FreqRow, alt_allele_frequency
from plinkstats.stats.hardy import HardyRow, hwe_exact_test
from plinkstats.stats.ld import LdResult, LdRow, compute_ld
from plinkstats.stats.missing import SampleMissingRow, VariantMissingRow
from plinkstats.stats.score import MissingPolicy, ScoredVariant, ScoreRow

__all__ = [
    "QueryContext",
    "bind_query",
    "FreqRow",
    "alt_allele_frequency",
    "HardyRow",
    "hwe_exact_test",
    "LdResult",
    "LdRow",
    "compute_ld",
    "SampleMissingRow",
    "VariantMissingRow",
    "MissingPolicy",
    "ScoredVariant",
    "ScoreRow",
]

"""Hardy-Weinberg equilibrium exact test kernel (.hardy).

The exact test follows Wigginton, Cutler & Abecasis (2005), Am J Hum Genet
76:887-893. For fixed allele counts only the heterozygote count varies, and
it must have the same parity as the rare allele count. Starting from the
heterozygote count nearest its equilibrium expectation, relative
probabilities of every other admissible count follow from

    P(k+2) / P(k) = 4 * n_rare_hom * n_common_hom / ((k+1) * (k+2))
    P(k-2) / P(k) = k * (k-1) / (4 * (n_rare_hom+1) * (n_common_hom+1))

The p-value is the total normalised probability of all configurations at
most as likely as the observed one.
"""

from __future__ import annotations

from typing import NamedTuple

import numpy as np

from plinkstats.io.engine import GenotypeReader
from plinkstats.stats.common import QueryContext, VariantBatchScan

# Relative tolerance so the observed configuration is never excluded from
# its own tail by rounding
HWE_TOLERANCE = 1e-8


class HardyRow(NamedTuple):
    """One .hardy row. A1 is the ALT allele."""

    chrom: str
    pos: int
    id: str | None
    ref: str
    alt: str | None
    a1: str | None
    hom_ref_ct: int
    het_ct: int
    hom_alt_ct: int
    o_het: float | None
    e_het: float | None
    p_hwe: float | None


def hwe_exact_test(
    obs_hom1: int, obs_hets: int, obs_hom2: int, midp: bool = False
) -> float:
    """Hardy-Weinberg exact test p-value.

    Args:
        obs_hom1: Count of one homozygous class.
        obs_hets: Heterozygote count.
        obs_hom2: Count of the other homozygous class.
        midp: Apply the mid-p correction (subtract half the probability of
            the observed configuration).

    Returns:
        p-value in [0, 1]. 1.0 when there are no observations.
    """
    n = obs_hom1 + obs_hets + obs_hom2
    if n == 0:
        return 1.0

    obs_homr = min(obs_hom1, obs_hom2)
    obs_homc = max(obs_hom1, obs_hom2)
    rare_copies = 2 * obs_homr + obs_hets
    common_copies = 2 * obs_homc + obs_hets

    mid = int(rare_copies * common_copies / (2.0 * n))
    if mid % 2 != rare_copies % 2:
        mid += 1

    het_probs = np.zeros(rare_copies + 1, dtype=np.float64)
    het_probs[mid] = 1.0

    homr_mid = (rare_copies - mid) // 2
    homc_mid = (common_copies - mid) // 2

    # Upwards from mid: k = mid, mid+2, ..., rare_copies-2
    up_steps = (rare_copies - mid) // 2
    if up_steps:
        step = np.arange(up_steps, dtype=np.float64)
        k = mid + 2.0 * step
        ratios = (
            4.0 * (homr_mid - step) * (homc_mid - step) / ((k + 1.0) * (k + 2.0))
        )
        het_probs[mid + 2 :: 2] = np.cumprod(ratios)

    # Downwards from mid: k = mid, mid-2, ..., 2
    down_steps = mid // 2
    if down_steps:
        step = np.arange(down_steps, dtype=np.float64)
        k = mid - 2.0 * step
        ratios = (k * (k - 1.0)) / (
            4.0 * (homr_mid + step + 1.0) * (homc_mid + step + 1.0)
        )
        het_probs[mid - 2 :: -2] = np.cumprod(ratios)

    # Entries of the wrong parity stay zero and never reach the tail sum
    probs = het_probs / het_probs.sum()
    obs_prob = probs[obs_hets]
    admissible = probs[rare_copies % 2 :: 2]
    p_value = float(admissible[admissible <= obs_prob * (1.0 + HWE_TOLERANCE)].sum())

    if midp:
        p_value -= 0.5 * obs_prob
    return min(max(p_value, 0.0), 1.0)


def heterozygosity(
    hom_ref: int, het: int, hom_alt: int
) -> tuple[float | None, float | None]:
    """Observed and expected (2pq) heterozygosity, None when nothing observed."""
    obs = hom_ref + het + hom_alt
    if obs == 0:
        return None, None
    p = (2 * hom_ref + het) / (2.0 * obs)
    return het / obs, 2.0 * p * (1.0 - p)


class HardyScan(VariantBatchScan):
    """Per-variant Hardy-Weinberg exact test.

    Args:
        ctx: Bound query.
        midp: Report mid-p adjusted p-values.
    """

    def __init__(self, ctx: QueryContext, midp: bool = False):
        super().__init__(ctx)
        self.midp = midp

    def compute_row(self, reader: GenotypeReader, variant_idx: int) -> HardyRow:
        gc = reader.get_counts(self.ctx.sample_filter, variant_idx)
        rec = self.ctx.dataset.variants.record(variant_idx)
        o_het, e_het = heterozygosity(gc.hom_ref, gc.het, gc.hom_alt)
        p_hwe = None
        if gc.observed > 0:
            p_hwe = hwe_exact_test(gc.hom_ref, gc.het, gc.hom_alt, midp=self.midp)
        return HardyRow(
            chrom=rec.chromosome,
            pos=rec.position,
            id=rec.id,
            ref=rec.ref_allele,
            alt=rec.alt_allele,
            a1=rec.alt_allele,
            hom_ref_ct=gc.hom_ref,
            het_ct=gc.het,
            hom_alt_ct=gc.hom_alt,
            o_het=o_het,
            e_het=e_het,
            p_hwe=p_hwe,
        )

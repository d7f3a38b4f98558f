"""Linkage disequilibrium kernel (.vcor).

Two access modes:

- pairwise: exactly one row for an explicitly named variant pair. Emission
  is guarded by a OnceLatch so only one worker produces it.
- windowed: every anchor variant in range is paired with the following
  variants within window_kb on the same chromosome (and, with inter_chr,
  with every variant on later chromosomes). Only pairs with a defined r2 at
  or above r2_threshold are emitted.

D' is the composite genotype-level estimator (Weir 1979): D = cov(gA, gB)/4
normalised by the usual haplotype bound. It is not clamped and can exceed
1.0 when the samples deviate from Hardy-Weinberg equilibrium.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import NamedTuple

import numpy as np
from loguru import logger

from plinkstats.core.errors import ValidationError
from plinkstats.core.scheduler import OnceLatch, WorkQueue
from plinkstats.core.threading import max_workers_for
from plinkstats.io.engine import MISSING_GENOTYPE, GenotypeReader
from plinkstats.stats.common import QueryContext

# Variance at or below which a variant counts as monomorphic
LD_EPSILON = 1e-15

# One worker per this many anchors in windowed mode
ANCHORS_PER_WORKER = 50

DEFAULT_WINDOW_KB = 1000
DEFAULT_R2_THRESHOLD = 0.2


class LdResult(NamedTuple):
    """Pairwise LD statistics. r2 and d_prime are None when undefined."""

    r2: float | None
    d_prime: float | None
    obs_ct: int

    @property
    def is_valid(self) -> bool:
        return self.r2 is not None


class LdRow(NamedTuple):
    """One .vcor row."""

    chrom_a: str
    pos_a: int
    id_a: str | None
    chrom_b: str
    pos_b: int
    id_b: str | None
    r2: float | None
    d_prime: float | None
    obs_ct: int


def compute_ld(genotypes_a: np.ndarray, genotypes_b: np.ndarray) -> LdResult:
    """r2 and D' between two aligned genotype vectors.

    Samples missing in either vector are skipped. Fewer than two jointly
    observed samples or a monomorphic variant gives r2 = D' = None, with
    obs_ct still reporting the jointly observed count.

    Args:
        genotypes_a: int8 alt-allele copies, MISSING_GENOTYPE for missing.
        genotypes_b: Same, aligned to the same sample order.

    Returns:
        LdResult.
    """
    both = (genotypes_a != MISSING_GENOTYPE) & (genotypes_b != MISSING_GENOTYPE)
    n = int(np.count_nonzero(both))
    if n < 2:
        return LdResult(None, None, n)

    a = genotypes_a[both].astype(np.float64)
    b = genotypes_b[both].astype(np.float64)
    sum_a = a.sum()
    sum_b = b.sum()
    mean_a = sum_a / n
    mean_b = sum_b / n
    cov_ab = np.dot(a, b) / n - mean_a * mean_b
    var_a = np.dot(a, a) / n - mean_a * mean_a
    var_b = np.dot(b, b) / n - mean_b * mean_b
    if var_a < LD_EPSILON or var_b < LD_EPSILON:
        return LdResult(None, None, n)

    r2 = float(cov_ab * cov_ab / (var_a * var_b))

    d = cov_ab / 4.0
    p_a = sum_a / (2.0 * n)
    p_b = sum_b / (2.0 * n)
    if d >= 0:
        d_max = min(p_a * (1.0 - p_b), (1.0 - p_a) * p_b)
    else:
        d_max = max(-p_a * p_b, -(1.0 - p_a) * (1.0 - p_b))
    d_prime = 0.0 if abs(d_max) < LD_EPSILON else float(d / d_max)
    return LdResult(r2, d_prime, n)


def _ld_row(ctx: QueryContext, vidx_a: int, vidx_b: int, result: LdResult) -> LdRow:
    variants = ctx.dataset.variants
    return LdRow(
        chrom_a=str(variants.chromosome[vidx_a]),
        pos_a=int(variants.position[vidx_a]),
        id_a=variants.id[vidx_a],
        chrom_b=str(variants.chromosome[vidx_b]),
        pos_b=int(variants.position[vidx_b]),
        id_b=variants.id[vidx_b],
        r2=result.r2,
        d_prime=result.d_prime,
        obs_ct=result.obs_ct,
    )


class PairwiseLdScan:
    """LD for a single variant pair; exactly one row per query."""

    max_workers = 1

    def __init__(self, ctx: QueryContext, vidx_a: int, vidx_b: int):
        self.ctx = ctx
        self.vidx_a = vidx_a
        self.vidx_b = vidx_b
        self._emitted = OnceLatch()

    def init_local(self) -> GenotypeReader:
        return self.ctx.dataset.source.open_reader()

    def scan(self, local: GenotypeReader, max_rows: int) -> list[LdRow]:
        if not self._emitted.try_claim_once():
            return []
        sample_filter = self.ctx.sample_filter
        geno_a = local.get_genotypes(sample_filter, self.vidx_a)
        if self.vidx_b == self.vidx_a:
            geno_b = geno_a
        else:
            geno_b = local.get_genotypes(sample_filter, self.vidx_b)
        result = compute_ld(geno_a, geno_b)
        return [_ld_row(self.ctx, self.vidx_a, self.vidx_b, result)]


@dataclass
class WindowCursor:
    """Per-worker resumable position of the windowed scan.

    The worker is Idle when anchor_active is False; otherwise it is Scanning
    anchor_idx against partners starting at next_partner, with the anchor's
    genotype vector cached in anchor_genotypes.
    """

    reader: GenotypeReader
    anchor_active: bool = False
    anchor_idx: int = 0
    next_partner: int = 0
    anchor_genotypes: np.ndarray | None = None

    def activate(self, anchor_idx: int, anchor_genotypes: np.ndarray) -> None:
        self.anchor_active = True
        self.anchor_idx = anchor_idx
        self.next_partner = anchor_idx + 1
        self.anchor_genotypes = anchor_genotypes

    def release(self) -> None:
        self.anchor_active = False
        self.anchor_genotypes = None


class WindowedLdScan:
    """All pairs within a physical window, resumable across scan() calls.

    Anchors are handed out one at a time from a shared WorkQueue; each
    worker then walks its anchor's partners alone. When the output chunk
    fills mid-walk the WindowCursor keeps (anchor, next partner, cached
    anchor genotypes) so the next call continues at the exact partner.

    Args:
        ctx: Bound query.
        window_kb: Window half-width in kilobases (partners only lie ahead).
        r2_threshold: Minimum r2 for a pair to be emitted.
        inter_chr: Also pair anchors with every variant on later
            chromosomes in range, with no distance filter.
    """

    def __init__(
        self,
        ctx: QueryContext,
        window_kb: int = DEFAULT_WINDOW_KB,
        r2_threshold: float = DEFAULT_R2_THRESHOLD,
        inter_chr: bool = False,
    ):
        self.ctx = ctx
        self.window_bp = window_kb * 1000
        self.r2_threshold = r2_threshold
        self.inter_chr = inter_chr
        rng = ctx.variant_range
        self.anchors = WorkQueue(rng.start, rng.end)
        self.end = rng.end
        self.max_workers = max_workers_for(len(rng), ANCHORS_PER_WORKER)

    def init_local(self) -> WindowCursor:
        return WindowCursor(reader=self.ctx.dataset.source.open_reader())

    def scan(self, local: WindowCursor, max_rows: int) -> list[LdRow]:
        rows: list[LdRow] = []
        sample_filter = self.ctx.sample_filter
        chrom = self.ctx.dataset.variants.chromosome
        position = self.ctx.dataset.variants.position

        while len(rows) < max_rows:
            if not local.anchor_active:
                anchor = self.anchors.claim_one()
                if anchor is None:
                    break
                anchor_genotypes = local.reader.get_genotypes(sample_filter, anchor)
                local.activate(anchor, anchor_genotypes)

            ai = local.anchor_idx
            anchor_chrom = chrom[ai]
            anchor_pos = int(position[ai])
            j = local.next_partner
            chunk_full = False
            while j < self.end:
                if chrom[j] == anchor_chrom:
                    if int(position[j]) - anchor_pos > self.window_bp:
                        if not self.inter_chr:
                            break
                        while j < self.end and chrom[j] == anchor_chrom:
                            j += 1
                        continue
                elif not self.inter_chr:
                    break

                partner = local.reader.get_genotypes(sample_filter, j)
                result = compute_ld(local.anchor_genotypes, partner)
                j += 1
                if result.is_valid and result.r2 >= self.r2_threshold:
                    rows.append(_ld_row(self.ctx, ai, j - 1, result))
                    if len(rows) >= max_rows:
                        chunk_full = True
                        break

            if chunk_full and j < self.end:
                local.next_partner = j
            else:
                local.release()
        return rows


def validate_ld_options(
    variant1: str | None,
    variant2: str | None,
    window_kb: int,
    r2_threshold: float,
) -> None:
    """Reject inconsistent LD options before any scan starts.

    Raises:
        ValidationError: One of variant1/variant2 without the other, negative
            window, or r2_threshold outside [0, 1].
    """
    if (variant1 is None) != (variant2 is None):
        raise ValidationError(
            "both variant1 and variant2 must be specified for pairwise mode"
        )
    if window_kb < 0:
        raise ValidationError(f"window_kb must be non-negative, got {window_kb}")
    if not 0.0 <= r2_threshold <= 1.0:
        raise ValidationError(
            f"r2_threshold must be between 0.0 and 1.0, got {r2_threshold}"
        )


def make_ld_scan(
    ctx: QueryContext,
    variant1: str | None = None,
    variant2: str | None = None,
    window_kb: int = DEFAULT_WINDOW_KB,
    r2_threshold: float = DEFAULT_R2_THRESHOLD,
    inter_chr: bool = False,
) -> PairwiseLdScan | WindowedLdScan:
    """Build the pairwise or windowed LD scan for a bound query."""
    validate_ld_options(variant1, variant2, window_kb, r2_threshold)
    if variant1 is not None:
        index = ctx.dataset.index
        vidx_a = index.require_id(variant1)
        vidx_b = index.require_id(variant2)
        logger.info(f"Pairwise LD: {variant1} (#{vidx_a}) vs {variant2} (#{vidx_b})")
        return PairwiseLdScan(ctx, vidx_a, vidx_b)

    logger.info(
        f"Windowed LD: window {window_kb}kb, r2 >= {r2_threshold}, "
        f"inter_chr={inter_chr}"
    )
    return WindowedLdScan(ctx, window_kb, r2_threshold, inter_chr)

"""Polygenic score kernel (.sscore).

A score is a per-sample weighted sum of named-allele dosages over the scored
variants. Accumulation runs once per query on a single worker, visiting
scored variants in ascending index order for sequential genotype access. It
sits behind a ComputeOnceLatch; after it completes, any number of workers
emit sample rows from the shared, now read-only accumulators.

Missing-data policies:

- mean imputation (default): a missing dosage is replaced by the mean of
  the observed dosages at that variant; every sample gains 2 alleles.
- no imputation: missing samples are skipped for that variant.
- centered: observed dosages are standardised to (d - mean) / sd with
  sd = sqrt(2f(1-f)); monomorphic variants and missing samples are
  skipped and the named-allele dosage sum is not accumulated.

Variants with no observed call are skipped under every policy.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from enum import Enum
from typing import NamedTuple

import numpy as np
from loguru import logger

from plinkstats.core.errors import ValidationError
from plinkstats.core.progress import progress_iterator
from plinkstats.core.scheduler import ComputeOnceLatch, WorkQueue
from plinkstats.core.threading import max_workers_for
from plinkstats.io.engine import GenotypeReader
from plinkstats.io.id_list import WeightEntry
from plinkstats.stats.common import QueryContext
from plinkstats.utils.logging import log_rss_memory

# One emission worker per this many samples
SAMPLES_PER_WORKER = 500


class MissingPolicy(str, Enum):
    """How missing dosages enter the score."""

    MEAN_IMPUTE = "mean_impute"
    NO_IMPUTE = "no_impute"
    CENTER = "center"


def resolve_policy(center: bool, no_mean_imputation: bool) -> MissingPolicy:
    """Map the two boolean options onto a MissingPolicy.

    Raises:
        ValidationError: If both options are set.
    """
    if center and no_mean_imputation:
        raise ValidationError("center and no_mean_imputation cannot both be true")
    if center:
        return MissingPolicy.CENTER
    if no_mean_imputation:
        return MissingPolicy.NO_IMPUTE
    return MissingPolicy.MEAN_IMPUTE


@dataclass(frozen=True)
class ScoredVariant:
    """A variant entering the score.

    Attributes:
        variant_idx: Raw variant index.
        weight: Score weight, never zero.
        flip: True when the scored allele is REF (dosage = 2 - alt dosage).
    """

    variant_idx: int
    weight: float
    flip: bool = False


class ScoreRow(NamedTuple):
    """One .sscore row."""

    fid: str | None
    iid: str
    allele_ct: int
    denom: int
    named_allele_dosage_sum: float
    score_sum: float
    score_avg: float


def scored_variants_from_positions(
    weights: Sequence[float], range_start: int, range_len: int
) -> list[ScoredVariant]:
    """Positional weights: weights[i] applies to variant range_start + i.

    Raises:
        ValidationError: Empty weights or a length differing from the range.
    """
    if len(weights) == 0:
        raise ValidationError("weights list is empty")
    if len(weights) != range_len:
        raise ValidationError(
            f"weights list length ({len(weights)}) must match variant count "
            f"({range_len})"
        )
    return [
        ScoredVariant(range_start + i, float(w), False)
        for i, w in enumerate(weights)
        if w != 0.0
    ]


def scored_variants_from_ids(
    ctx: QueryContext, entries: Sequence[WeightEntry | tuple]
) -> list[ScoredVariant]:
    """ID-keyed weights matched against the variants inside the query range.

    The allele must equal the variant's ALT (scored as is) or REF (flipped);
    entries with an unknown ID or a non-matching allele are skipped and
    counted in a warning.

    Raises:
        ValidationError: Empty weights.
    """
    if len(entries) == 0:
        raise ValidationError("weights list is empty")

    variants = ctx.dataset.variants
    rng = ctx.variant_range
    id_map: dict[str, int] = {}
    for vidx in rng.indices():
        vid = variants.id[vidx]
        if vid is not None:
            id_map.setdefault(vid, vidx)

    scored: list[ScoredVariant] = []
    unmatched_id = 0
    unmatched_allele = 0
    for entry in entries:
        variant_id, allele, weight = entry
        vidx = id_map.get(variant_id)
        if vidx is None:
            unmatched_id += 1
            continue
        if allele == variants.alt_allele[vidx]:
            flip = False
        elif allele == variants.ref_allele[vidx]:
            flip = True
        else:
            unmatched_allele += 1
            continue
        if weight != 0.0:
            scored.append(ScoredVariant(vidx, float(weight), flip))

    if unmatched_id or unmatched_allele:
        logger.warning(
            f"Skipped {unmatched_id} weights with unknown variant IDs and "
            f"{unmatched_allele} with an allele matching neither REF nor ALT"
        )
    scored.sort(key=lambda sv: sv.variant_idx)
    return scored


class ScoreAccumulator:
    """Per-sample score accumulators for one query."""

    def __init__(self, sample_ct: int, policy: MissingPolicy):
        self.policy = policy
        self.score_sum = np.zeros(sample_ct, dtype=np.float64)
        self.dosage_sum = np.zeros(sample_ct, dtype=np.float64)
        self.allele_ct = np.zeros(sample_ct, dtype=np.int64)
        self.variants_used = 0

    def add_variant(self, dosages: np.ndarray, weight: float, flip: bool) -> bool:
        """Fold one variant's alt-allele dosages (NaN = missing) into the sums.

        Returns:
            Whether the variant contributed.
        """
        observed = ~np.isnan(dosages)
        n_obs = int(np.count_nonzero(observed))
        if n_obs == 0:
            return False
        mean_alt = float(dosages[observed].sum()) / n_obs

        if self.policy is MissingPolicy.CENTER:
            freq = mean_alt / 2.0
            sd = np.sqrt(2.0 * freq * (1.0 - freq))
            if sd == 0.0:
                return False
            mean_scored = 2.0 - mean_alt if flip else mean_alt
            scored = 2.0 - dosages[observed] if flip else dosages[observed]
            self.score_sum[observed] += weight * (scored - mean_scored) / sd
            self.allele_ct[observed] += 2
        elif self.policy is MissingPolicy.NO_IMPUTE:
            scored = 2.0 - dosages[observed] if flip else dosages[observed]
            self.score_sum[observed] += weight * scored
            self.dosage_sum[observed] += scored
            self.allele_ct[observed] += 2
        else:
            alt = np.where(observed, dosages, mean_alt)
            scored = 2.0 - alt if flip else alt
            self.score_sum += weight * scored
            self.dosage_sum += scored
            self.allele_ct += 2

        self.variants_used += 1
        return True


class _ScoreEmitState:
    def __init__(self) -> None:
        self.next_sample = 0
        self.batch_end = 0


class ScoreScan:
    """Two-phase polygenic score scan.

    Phase 1 (once, first worker to arrive): accumulate every scored variant.
    Phase 2 (parallel): claim sample positions from a WorkQueue and emit one
    ScoreRow per sample.

    Args:
        ctx: Bound query with sample metadata.
        scored_variants: Variants to score, sorted by variant_idx.
        policy: Missing-data policy.
        show_progress: Show a progress bar for the accumulation pass.
    """

    def __init__(
        self,
        ctx: QueryContext,
        scored_variants: list[ScoredVariant],
        policy: MissingPolicy = MissingPolicy.MEAN_IMPUTE,
        show_progress: bool = False,
    ):
        ctx.require_samples("polygenic scoring")
        self.ctx = ctx
        self.scored_variants = scored_variants
        self.policy = policy
        self.show_progress = show_progress
        self._accumulated: ComputeOnceLatch[ScoreAccumulator] = ComputeOnceLatch()
        self.samples = WorkQueue(0, ctx.sample_ct)
        self.max_workers = max_workers_for(ctx.sample_ct, SAMPLES_PER_WORKER)
        self._raw_indices = ctx.output_sample_indices()

    def accumulate(self, reader: GenotypeReader) -> ScoreAccumulator:
        acc = ScoreAccumulator(self.ctx.sample_ct, self.policy)
        log_rss_memory("score", "accumulate_start")
        for sv in progress_iterator(
            self.scored_variants,
            total=len(self.scored_variants),
            desc="Scoring",
            enabled=self.show_progress,
        ):
            dosages = reader.get_dosages(self.ctx.sample_filter, sv.variant_idx)
            acc.add_variant(dosages, sv.weight, sv.flip)
        log_rss_memory("score", "accumulate_end")
        logger.info(
            f"Scored {acc.variants_used} of {len(self.scored_variants)} variants "
            f"({self.policy.value})"
        )
        return acc

    def init_local(self) -> _ScoreEmitState:
        return _ScoreEmitState()

    def scan(self, local: _ScoreEmitState, max_rows: int) -> list[ScoreRow]:
        acc = self._accumulated.get(
            lambda: self.accumulate(self.ctx.dataset.source.open_reader())
        )
        samples = self.ctx.dataset.samples
        rows: list[ScoreRow] = []
        while len(rows) < max_rows:
            if local.next_sample >= local.batch_end:
                batch = self.samples.claim(max_rows)
                if batch is None:
                    break
                local.next_sample, local.batch_end = batch.start, batch.stop
            pos = local.next_sample
            local.next_sample += 1
            raw = int(self._raw_indices[pos])
            allele_ct = int(acc.allele_ct[pos])
            score_sum = float(acc.score_sum[pos])
            rows.append(
                ScoreRow(
                    fid=samples.fid(raw),
                    iid=samples.iid(raw),
                    allele_ct=allele_ct,
                    denom=allele_ct,
                    named_allele_dosage_sum=float(acc.dosage_sum[pos]),
                    score_sum=score_sum,
                    score_avg=score_sum / allele_ct if allele_ct > 0 else 0.0,
                )
            )
        return rows

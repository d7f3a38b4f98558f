"""Missing-call rate kernels (.vmiss, .smiss).

Variant mode is an ordinary parallel per-variant scan. Sample mode needs a
full pass over the variant range accumulating one counter per sample. It
runs on a single worker: the accumulator is one array owned by that worker,
so no per-worker partial arrays or merge step are needed, at the cost of
no parallelism for this mode.
"""

from __future__ import annotations

from typing import NamedTuple

import numpy as np
from loguru import logger

from plinkstats.core.errors import ValidationError
from plinkstats.core.progress import progress_iterator
from plinkstats.io.engine import GenotypeReader
from plinkstats.stats.common import QueryContext, VariantBatchScan
from plinkstats.utils.logging import log_rss_memory

MISSING_MODES = ("variant", "sample")


class VariantMissingRow(NamedTuple):
    """One .vmiss row."""

    chrom: str
    pos: int
    id: str | None
    ref: str
    alt: str | None
    missing_ct: int
    obs_ct: int
    f_miss: float


class SampleMissingRow(NamedTuple):
    """One .smiss row."""

    fid: str | None
    iid: str
    missing_ct: int
    obs_ct: int
    f_miss: float


class VariantMissingScan(VariantBatchScan):
    """Per-variant missing-call counts and rates."""

    def compute_row(
        self, reader: GenotypeReader, variant_idx: int
    ) -> VariantMissingRow:
        gc = reader.get_counts(self.ctx.sample_filter, variant_idx)
        rec = self.ctx.dataset.variants.record(variant_idx)
        sample_ct = gc.total
        return VariantMissingRow(
            chrom=rec.chromosome,
            pos=rec.position,
            id=rec.id,
            ref=rec.ref_allele,
            alt=rec.alt_allele,
            missing_ct=gc.missing,
            obs_ct=gc.observed,
            f_miss=gc.missing / sample_ct if sample_ct > 0 else 0.0,
        )


class _SampleMissingState:
    def __init__(self, reader: GenotypeReader):
        self.reader = reader
        self.missing_counts: np.ndarray | None = None
        self.next_sample = 0


class SampleMissingScan:
    """Per-sample missing-call counts over the variant range.

    The first scan() call makes the accumulation pass; it and later calls
    then emit one row per effective sample in ascending raw order.

    Args:
        ctx: Bound query with sample metadata.
        show_progress: Show a progress bar for the accumulation pass.
    """

    max_workers = 1

    def __init__(self, ctx: QueryContext, show_progress: bool = False):
        ctx.require_samples("sample-mode missingness")
        self.ctx = ctx
        self.show_progress = show_progress
        self._raw_indices = ctx.output_sample_indices()

    def init_local(self) -> _SampleMissingState:
        return _SampleMissingState(self.ctx.dataset.source.open_reader())

    def _accumulate(self, local: _SampleMissingState) -> np.ndarray:
        ctx = self.ctx
        counts = np.zeros(ctx.sample_ct, dtype=np.int64)
        variant_ids = ctx.variant_range.indices()
        log_rss_memory("missing", "accumulate_start")
        for vidx in progress_iterator(
            variant_ids,
            total=len(variant_ids),
            desc="Sample missingness",
            enabled=self.show_progress,
        ):
            counts += local.reader.get_missingness(ctx.sample_filter, vidx)
        log_rss_memory("missing", "accumulate_end")
        logger.debug(
            f"Accumulated missing calls for {ctx.sample_ct} samples over "
            f"{len(variant_ids)} variants"
        )
        return counts

    def scan(self, local: _SampleMissingState, max_rows: int) -> list:
        if local.missing_counts is None:
            local.missing_counts = self._accumulate(local)

        ctx = self.ctx
        samples = ctx.dataset.samples
        variant_ct = len(ctx.variant_range)
        rows: list[SampleMissingRow] = []
        end = min(local.next_sample + max_rows, ctx.sample_ct)
        for pos in range(local.next_sample, end):
            raw = int(self._raw_indices[pos])
            missing = int(local.missing_counts[pos])
            rows.append(
                SampleMissingRow(
                    fid=samples.fid(raw),
                    iid=samples.iid(raw),
                    missing_ct=missing,
                    obs_ct=variant_ct - missing,
                    f_miss=missing / variant_ct if variant_ct > 0 else 0.0,
                )
            )
        local.next_sample = end
        return rows


def make_missing_scan(
    ctx: QueryContext, mode: str = "variant", show_progress: bool = False
) -> VariantMissingScan | SampleMissingScan:
    """Build the variant- or sample-mode missingness scan.

    Raises:
        ValidationError: Unknown mode, or sample mode without sample metadata.
    """
    if mode == "variant":
        return VariantMissingScan(ctx)
    if mode == "sample":
        return SampleMissingScan(ctx, show_progress=show_progress)
    raise ValidationError(
        f"invalid missingness mode '{mode}' (expected 'variant' or 'sample')"
    )

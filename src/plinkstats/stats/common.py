"""Query context and the shared per-variant scan driver.

bind_query resolves the sample selection and region filter of one query
into a QueryContext. VariantBatchScan is the worker loop used by every
kernel that emits one row per variant: claim a batch of variant indices from
the shared WorkQueue, compute a row per index, repeat until the queue is
exhausted.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

import numpy as np
from loguru import logger

from plinkstats.core.config import VARIANT_BATCH_SIZE
from plinkstats.core.errors import ValidationError
from plinkstats.core.sample_subset import (
    SampleSubset,
    build_sample_subset,
    resolve_sample_indices,
)
from plinkstats.core.scheduler import WorkQueue
from plinkstats.core.threading import max_workers_for
from plinkstats.core.variant_index import VariantRange
from plinkstats.io.dataset import GenotypeDataset
from plinkstats.io.engine import GenotypeReader

# One worker per this many variants for the per-variant kernels
VARIANTS_PER_WORKER = 500


@dataclass(frozen=True)
class QueryContext:
    """Everything a kernel needs that is fixed for the lifetime of a query.

    Attributes:
        dataset: The bound genotype dataset.
        sample_filter: Sample subset, or None for all samples.
        variant_range: Variant indices covered by the query.
    """

    dataset: GenotypeDataset
    sample_filter: SampleSubset | None
    variant_range: VariantRange

    @property
    def sample_ct(self) -> int:
        """Number of samples the kernels see."""
        if self.sample_filter is None:
            return self.dataset.raw_sample_ct
        return self.sample_filter.subset_sample_ct

    def output_sample_indices(self) -> np.ndarray:
        """Raw positions of the effective samples, ascending."""
        if self.sample_filter is None:
            return np.arange(self.dataset.raw_sample_ct, dtype=np.int64)
        return self.sample_filter.sample_indices.astype(np.int64)

    def require_samples(self, func_name: str) -> None:
        if self.dataset.samples is None:
            raise ValidationError(
                f"{func_name} requires sample metadata (.psam/.fam)"
            )


def bind_query(
    dataset: GenotypeDataset,
    samples: Sequence[int] | Sequence[str] | None = None,
    region: str | None = None,
) -> QueryContext:
    """Resolve a query's sample selection and region filter.

    Args:
        dataset: Bound genotype dataset.
        samples: Optional sample selection by raw position or by IID.
        region: Optional "chrom:start-end" region filter.

    Returns:
        QueryContext for the query.

    Raises:
        ValidationError: Invalid sample selection or region string.
    """
    sample_filter = None
    if samples is not None:
        indices = resolve_sample_indices(
            samples, dataset.raw_sample_ct, dataset.samples
        )
        sample_filter = build_sample_subset(dataset.raw_sample_ct, indices)

    if region is not None:
        variant_range = dataset.index.resolve_region(region)
    else:
        variant_range = dataset.index.full_range()

    ctx = QueryContext(
        dataset=dataset, sample_filter=sample_filter, variant_range=variant_range
    )
    logger.info(
        f"Query bound: {ctx.sample_ct} samples, {len(variant_range)} variants"
        + (f" in region {region}" if region is not None else "")
    )
    return ctx


class _VariantCursor:
    """Per-worker state for VariantBatchScan."""

    def __init__(self, reader: GenotypeReader):
        self.reader = reader
        self.next_idx = 0
        self.batch_end = 0


class VariantBatchScan:
    """Base scan for kernels producing at most one row per variant.

    Subclasses implement compute_row(reader, variant_idx), returning a row or
    None to emit nothing for that variant.
    """

    def __init__(self, ctx: QueryContext):
        self.ctx = ctx
        rng = ctx.variant_range
        self.queue = WorkQueue(rng.start, rng.end)
        self.max_workers = max_workers_for(len(rng), VARIANTS_PER_WORKER)

    def init_local(self) -> _VariantCursor:
        return _VariantCursor(self.ctx.dataset.source.open_reader())

    def scan(self, local: _VariantCursor, max_rows: int) -> list:
        rows: list = []
        while len(rows) < max_rows:
            if local.next_idx >= local.batch_end:
                batch = self.queue.claim(VARIANT_BATCH_SIZE)
                if batch is None:
                    break
                local.next_idx, local.batch_end = batch.start, batch.stop
            row = self.compute_row(local.reader, local.next_idx)
            local.next_idx += 1
            if row is not None:
                rows.append(row)
        return rows

    def compute_row(self, reader: GenotypeReader, variant_idx: int):
        raise NotImplementedError

"""Query surface: one callable per statistical kernel.

Each function takes a dataset (an opened GenotypeDataset or a PLINK 1
path prefix), an optional sample selection and region filter plus kernel
options, validates everything, and returns an iterator over result rows.
Validation and bind errors are raised by the call itself; rows are produced
lazily by a pool of workers as the iterator is consumed. Row order across
workers is not specified.

Example:
    >>> from plinkstats import plink_freq
    >>> for row in plink_freq("data/study", region="1:1-500000"):
    ...     print(row.id, row.alt_freq)
"""

from __future__ import annotations

from collections.abc import Iterator, Sequence
from pathlib import Path

from loguru import logger

from plinkstats.core.config import ScanConfig
from plinkstats.core.threading import run_scan
from plinkstats.io.dataset import GenotypeDataset, open_bfile
from plinkstats.io.id_list import WeightEntry
from plinkstats.stats.common import bind_query
from plinkstats.stats.freq import FreqRow, FreqScan
from plinkstats.stats.hardy import HardyRow, HardyScan
from plinkstats.stats.ld import (
    DEFAULT_R2_THRESHOLD,
    DEFAULT_WINDOW_KB,
    LdRow,
    make_ld_scan,
    validate_ld_options,
)
from plinkstats.stats.missing import (
    SampleMissingRow,
    VariantMissingRow,
    make_missing_scan,
)
from plinkstats.stats.score import (
    ScoreRow,
    ScoreScan,
    resolve_policy,
    scored_variants_from_ids,
    scored_variants_from_positions,
)

Samples = Sequence[int] | Sequence[str] | None


def _open(
    data: GenotypeDataset | str | Path,
    pvar: str | Path | None,
    psam: str | Path | None,
    config: ScanConfig,
) -> GenotypeDataset:
    if isinstance(data, GenotypeDataset):
        return data
    return open_bfile(
        Path(data),
        pvar=Path(pvar) if pvar is not None else None,
        psam=Path(psam) if psam is not None else None,
        block_size=config.block_size,
    )


def _run(scan, config: ScanConfig) -> Iterator:
    return run_scan(scan, threads=config.threads, chunk_rows=config.chunk_rows)


def plink_freq(
    data: GenotypeDataset | str | Path,
    *,
    samples: Samples = None,
    region: str | None = None,
    counts: bool = False,
    pvar: str | Path | None = None,
    psam: str | Path | None = None,
    config: ScanConfig | None = None,
) -> Iterator[FreqRow]:
    """Per-variant ALT allele frequencies.

    Args:
        data: Opened dataset or PLINK 1 path prefix.
        samples: Optional sample selection by raw position or IID.
        region: Optional "chrom:start-end" filter.
        counts: Also report HOM_REF_CT, HET_CT, HOM_ALT_CT and MISSING_CT.
        pvar: Variant metadata file replacing the .bim.
        psam: Sample metadata file replacing the .fam.
        config: Scan configuration.

    Returns:
        Iterator of FreqRow.
    """
    config = config or ScanConfig()
    ctx = bind_query(_open(data, pvar, psam, config), samples, region)
    return _run(FreqScan(ctx, counts=counts), config)


def plink_hardy(
    data: GenotypeDataset | str | Path,
    *,
    samples: Samples = None,
    region: str | None = None,
    midp: bool = False,
    pvar: str | Path | None = None,
    psam: str | Path | None = None,
    config: ScanConfig | None = None,
) -> Iterator[HardyRow]:
    """Per-variant Hardy-Weinberg exact test.

    Args:
        midp: Report mid-p adjusted p-values.

    Other arguments as for plink_freq.
    """
    config = config or ScanConfig()
    ctx = bind_query(_open(data, pvar, psam, config), samples, region)
    return _run(HardyScan(ctx, midp=midp), config)


def plink_ld(
    data: GenotypeDataset | str | Path,
    *,
    samples: Samples = None,
    region: str | None = None,
    variant1: str | None = None,
    variant2: str | None = None,
    window_kb: int = DEFAULT_WINDOW_KB,
    r2_threshold: float = DEFAULT_R2_THRESHOLD,
    inter_chr: bool = False,
    pvar: str | Path | None = None,
    psam: str | Path | None = None,
    config: ScanConfig | None = None,
) -> Iterator[LdRow]:
    """Linkage disequilibrium, pairwise or windowed.

    With both variant1 and variant2 a single row for that pair is produced.
    Otherwise every pair within window_kb (and, with inter_chr, every pair
    across chromosomes) whose r2 is at least r2_threshold is reported.

    Raises:
        ValidationError: Only one of variant1/variant2, unknown variant ID,
            negative window_kb, or r2_threshold outside [0, 1].
    """
    validate_ld_options(variant1, variant2, window_kb, r2_threshold)
    config = config or ScanConfig()
    ctx = bind_query(_open(data, pvar, psam, config), samples, region)
    scan = make_ld_scan(
        ctx,
        variant1=variant1,
        variant2=variant2,
        window_kb=window_kb,
        r2_threshold=r2_threshold,
        inter_chr=inter_chr,
    )
    return _run(scan, config)


def plink_missing(
    data: GenotypeDataset | str | Path,
    *,
    samples: Samples = None,
    region: str | None = None,
    mode: str = "variant",
    pvar: str | Path | None = None,
    psam: str | Path | None = None,
    config: ScanConfig | None = None,
) -> Iterator[VariantMissingRow] | Iterator[SampleMissingRow]:
    """Missing-call counts per variant (mode="variant") or per sample
    (mode="sample", single worker).

    Raises:
        ValidationError: Unknown mode, or sample mode without sample metadata.
    """
    config = config or ScanConfig()
    ctx = bind_query(_open(data, pvar, psam, config), samples, region)
    scan = make_missing_scan(ctx, mode=mode, show_progress=config.show_progress)
    return _run(scan, config)


def plink_score(
    data: GenotypeDataset | str | Path,
    weights: Sequence[float] | Sequence[WeightEntry | tuple],
    *,
    samples: Samples = None,
    region: str | None = None,
    center: bool = False,
    no_mean_imputation: bool = False,
    pvar: str | Path | None = None,
    psam: str | Path | None = None,
    config: ScanConfig | None = None,
) -> Iterator[ScoreRow]:
    """Per-sample polygenic score.

    Args:
        weights: Either one float per variant in range (positional) or
            (variant_id, allele, weight) entries (ID-keyed). ID-keyed alleles
            must match the variant's ALT (scored as is) or REF (flipped).
        center: Standardise dosages by the variant's mean and sd.
        no_mean_imputation: Skip missing calls instead of imputing the mean.

    Other arguments as for plink_freq.

    Raises:
        ValidationError: Empty weights, positional length mismatch, or
            center together with no_mean_imputation.
    """
    policy = resolve_policy(center, no_mean_imputation)
    config = config or ScanConfig()
    ctx = bind_query(_open(data, pvar, psam, config), samples, region)

    weights = list(weights)
    if weights and isinstance(weights[0], (tuple, list)):
        scored = scored_variants_from_ids(ctx, weights)
    else:
        rng = ctx.variant_range
        scored = scored_variants_from_positions(weights, rng.start, len(rng))
    logger.info(f"Scoring {len(scored)} variants with non-zero weight")

    scan = ScoreScan(ctx, scored, policy=policy, show_progress=config.show_progress)
    return _run(scan, config)

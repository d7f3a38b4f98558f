"""Allele frequency kernel (.afreq)."""

from __future__ import annotations

from typing import NamedTuple

from plinkstats.io.engine import GenotypeCounts, GenotypeReader
from plinkstats.stats.common import QueryContext, VariantBatchScan


class FreqRow(NamedTuple):
    """One .afreq row. Class counts are None unless requested."""

    chrom: str
    pos: int
    id: str | None
    ref: str
    alt: str | None
    alt_freq: float | None
    obs_ct: int
    hom_ref_ct: int | None = None
    het_ct: int | None = None
    hom_alt_ct: int | None = None
    missing_ct: int | None = None


def alt_allele_frequency(counts: GenotypeCounts) -> float | None:
    """ALT allele frequency, or None when no sample has a call."""
    observed = counts.observed
    if observed == 0:
        return None
    return (counts.het + 2 * counts.hom_alt) / (2 * observed)


class FreqScan(VariantBatchScan):
    """Per-variant allele frequencies.

    Args:
        ctx: Bound query.
        counts: Also report the four genotype class counts.
    """

    def __init__(self, ctx: QueryContext, counts: bool = False):
        super().__init__(ctx)
        self.counts = counts

    def compute_row(self, reader: GenotypeReader, variant_idx: int) -> FreqRow:
        gc = reader.get_counts(self.ctx.sample_filter, variant_idx)
        rec = self.ctx.dataset.variants.record(variant_idx)
        row = FreqRow(
            chrom=rec.chromosome,
            pos=rec.position,
            id=rec.id,
            ref=rec.ref_allele,
            alt=rec.alt_allele,
            alt_freq=alt_allele_frequency(gc),
            obs_ct=2 * gc.observed,
        )
        if self.counts:
            row = row._replace(
                hom_ref_ct=gc.hom_ref,
                het_ct=gc.het,
                hom_alt_ct=gc.hom_alt,
                missing_ct=gc.missing,
            )
        return row

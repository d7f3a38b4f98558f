"""Genotype decoding engine interface.

The statistical kernels never touch the on-disk matrix directly. They talk to
a GenotypeSource, which hands every worker its own GenotypeReader. A reader
answers per-variant requests for a (possibly subsetted) sample population:

- get_genotypes: int8 vector of alt-allele copies (0, 1, 2) with
  MISSING_GENOTYPE (-127, the bed-reader int8 convention) for missing calls.
- get_counts: GenotypeCounts for the variant.
- get_missingness: boolean vector, True where the call is missing.
- get_dosages: float64 alt-allele dosage with NaN as the missing sentinel.

Vectors are ordered by ascending raw sample index, so element i belongs to
the i-th selected sample of the SampleSubset (or raw sample i when no subset
is given).

ArrayGenotypeSource serves an already decoded in-memory matrix; the PLINK
.bed implementation lives in plinkstats.io.plink.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

import numpy as np

from plinkstats.core.errors import DecodeError, ValidationError
from plinkstats.core.sample_subset import SampleSubset

MISSING_GENOTYPE = -127


@dataclass(frozen=True)
class GenotypeCounts:
    """Genotype class counts for one variant.

    Attributes:
        hom_ref: Homozygous-reference calls.
        het: Heterozygous calls.
        hom_alt: Homozygous-alternate calls.
        missing: Missing calls.
    """

    hom_ref: int
    het: int
    hom_alt: int
    missing: int

    @property
    def observed(self) -> int:
        """Number of non-missing calls."""
        return self.hom_ref + self.het + self.hom_alt

    @property
    def total(self) -> int:
        return self.observed + self.missing


def count_genotypes(genotypes: np.ndarray) -> GenotypeCounts:
    """Tally an int8 genotype vector into GenotypeCounts."""
    tallies = np.bincount(
        np.where(genotypes == MISSING_GENOTYPE, 3, genotypes).astype(np.intp),
        minlength=4,
    )
    return GenotypeCounts(
        hom_ref=int(tallies[0]),
        het=int(tallies[1]),
        hom_alt=int(tallies[2]),
        missing=int(tallies[3]),
    )


def genotypes_to_dosages(genotypes: np.ndarray) -> np.ndarray:
    """Convert int8 genotypes to float64 dosages with NaN for missing."""
    dosages = genotypes.astype(np.float64)
    dosages[genotypes == MISSING_GENOTYPE] = np.nan
    return dosages


class GenotypeReader(Protocol):
    """Per-worker genotype access. Never shared between threads."""

    def get_genotypes(
        self, sample_filter: SampleSubset | None, variant_idx: int
    ) -> np.ndarray: ...

    def get_counts(
        self, sample_filter: SampleSubset | None, variant_idx: int
    ) -> GenotypeCounts: ...

    def get_missingness(
        self, sample_filter: SampleSubset | None, variant_idx: int
    ) -> np.ndarray: ...

    def get_dosages(
        self, sample_filter: SampleSubset | None, variant_idx: int
    ) -> np.ndarray: ...


class GenotypeSource(Protocol):
    """A decoded genotype matrix that can open independent readers."""

    @property
    def raw_sample_ct(self) -> int: ...

    @property
    def raw_variant_ct(self) -> int: ...

    def open_reader(self) -> GenotypeReader: ...


class ArrayGenotypeReader:
    """GenotypeReader over an in-memory (n_samples, n_variants) int8 matrix."""

    def __init__(self, genotypes: np.ndarray):
        self._genotypes = genotypes

    def get_genotypes(
        self, sample_filter: SampleSubset | None, variant_idx: int
    ) -> np.ndarray:
        n_variants = self._genotypes.shape[1]
        if variant_idx < 0 or variant_idx >= n_variants:
            raise DecodeError(
                f"variant index {variant_idx} out of range "
                f"(variant count: {n_variants})",
                variant_idx=variant_idx,
            )
        column = self._genotypes[:, variant_idx]
        if sample_filter is None:
            return column.copy()
        return column[sample_filter.include_mask]

    def get_counts(
        self, sample_filter: SampleSubset | None, variant_idx: int
    ) -> GenotypeCounts:
        return count_genotypes(self.get_genotypes(sample_filter, variant_idx))

    def get_missingness(
        self, sample_filter: SampleSubset | None, variant_idx: int
    ) -> np.ndarray:
        return self.get_genotypes(sample_filter, variant_idx) == MISSING_GENOTYPE

    def get_dosages(
        self, sample_filter: SampleSubset | None, variant_idx: int
    ) -> np.ndarray:
        return genotypes_to_dosages(self.get_genotypes(sample_filter, variant_idx))


class ArrayGenotypeSource:
    """GenotypeSource for an already decoded genotype matrix.

    Args:
        genotypes: (n_samples, n_variants) matrix of alt-allele copies. Integer
            input uses MISSING_GENOTYPE for missing calls; float input uses NaN
            (as returned by bed-reader's float reads).

    Raises:
        ValidationError: If the matrix is not 2-D or holds values other than
            0, 1, 2 and missing.
    """

    def __init__(self, genotypes: np.ndarray):
        genotypes = np.asarray(genotypes)
        if genotypes.ndim != 2:
            raise ValidationError(
                f"genotype matrix must be 2-D (samples x variants), "
                f"got shape {genotypes.shape}"
            )
        if np.issubdtype(genotypes.dtype, np.floating):
            missing = np.isnan(genotypes)
            valid = missing | np.isin(genotypes, (0.0, 1.0, 2.0))
            coded = np.where(missing, MISSING_GENOTYPE, np.nan_to_num(genotypes))
        else:
            coded = genotypes
            valid = np.isin(genotypes, (0, 1, 2, MISSING_GENOTYPE))
        if not valid.all():
            bad = np.argwhere(~valid)[0]
            raise ValidationError(
                f"invalid genotype value {genotypes[tuple(bad)].item()!r} at "
                f"sample {bad[0]}, variant {bad[1]}"
            )
        self._genotypes = np.asfortranarray(np.asarray(coded).astype(np.int8))

    @property
    def raw_sample_ct(self) -> int:
        return int(self._genotypes.shape[0])

    @property
    def raw_variant_ct(self) -> int:
        return int(self._genotypes.shape[1])

    def open_reader(self) -> ArrayGenotypeReader:
        return ArrayGenotypeReader(self._genotypes)

"""PLINK binary format I/O using bed-reader.

This module provides the PLINK 1 (.bed/.bim/.fam) genotype decoding engine
and the loaders for its companion metadata files. bed-reader does the
bit-level decoding; this module adds per-worker readers, block caching for
sequential access and the bind-time consistency checks.
"""

from __future__ import annotations

from pathlib import Path

import numpy as np
from bed_reader import open_bed
from loguru import logger

from plinkstats.core.config import DEFAULT_BLOCK_SIZE
from plinkstats.core.errors import ConsistencyError, DecodeError
from plinkstats.core.sample_subset import SampleSubset
from plinkstats.io.engine import (
    MISSING_GENOTYPE,
    GenotypeCounts,
    count_genotypes,
    genotypes_to_dosages,
)
from plinkstats.io.metadata import SampleMetadata, VariantMetadata

BED_MAGIC = b"\x6c\x1b\x01"


def bed_path_for(bfile: Path) -> Path:
    """Return the .bed path for a PLINK prefix."""
    return Path(f"{bfile}.bed")


def load_plink_metadata(bfile: Path) -> tuple[VariantMetadata, SampleMetadata]:
    """Load .bim and .fam metadata without reading genotypes.

    The .bim allele_1 column is the counted (ALT) allele and allele_2 the
    reference allele, matching bed-reader's count_A1=True convention.

    Args:
        bfile: Path prefix for PLINK files (without .bed/.bim/.fam extension).

    Returns:
        Tuple of (variant metadata, sample metadata).

    Raises:
        FileNotFoundError: If the .bed, .bim or .fam file does not exist.

    Example:
        >>> variants, samples = load_plink_metadata(Path("data/study"))
        >>> print(f"{samples.sample_ct} samples, {variants.variant_ct} variants")
        1940 samples, 12226 variants
    """
    bed_path = bed_path_for(bfile)
    for ext in (".bed", ".bim", ".fam"):
        p = Path(f"{bfile}{ext}")
        if not p.exists():
            raise FileNotFoundError(f"PLINK {ext} file not found: {p}")

    with open_bed(bed_path) as bed:
        ids = [None if sid in ("", ".") else str(sid) for sid in bed.sid]
        alts = [None if a in ("", ".", "0") else str(a) for a in bed.allele_1]
        variants = VariantMetadata(
            chromosome=np.asarray(bed.chromosome, dtype=object),
            position=np.asarray(bed.bp_position, dtype=np.int32),
            id=np.array(ids, dtype=object),
            ref_allele=np.asarray(bed.allele_2, dtype=object),
            alt_allele=np.array(alts, dtype=object),
        )
        samples = SampleMetadata(
            individual_id=np.asarray(bed.iid, dtype=object),
            family_id=np.asarray(bed.fid, dtype=object),
        )

    logger.debug(
        f"Loaded PLINK metadata for {bfile}: {samples.sample_ct} samples, "
        f"{variants.variant_ct} variants"
    )
    return variants, samples


class BedGenotypeReader:
    """Per-worker reader over a SNP-major .bed file.

    Genotypes are decoded one block of consecutive variants at a time
    (int8, -127 = missing) and later requests inside the block are served
    from memory. The block is re-read when the sample filter changes.
    """

    def __init__(
        self, bed_path: Path, raw_sample_ct: int, raw_variant_ct: int, block_size: int
    ):
        self._bed = open_bed(
            bed_path, iid_count=raw_sample_ct, sid_count=raw_variant_ct, num_threads=1
        )
        self._raw_variant_ct = raw_variant_ct
        self._block_size = max(1, block_size)
        self._block: np.ndarray | None = None
        self._block_start = 0
        self._block_filter: SampleSubset | None = None

    def _load_block(self, sample_filter: SampleSubset | None, variant_idx: int) -> None:
        start = variant_idx
        end = min(start + self._block_size, self._raw_variant_ct)
        samples = slice(None) if sample_filter is None else sample_filter.sample_indices
        try:
            self._block = self._bed.read(
                index=np.s_[samples, start:end], dtype=np.int8, order="F"
            )
        except Exception as e:
            raise DecodeError(
                f"failed to decode genotypes for variant {variant_idx}: {e}",
                variant_idx=variant_idx,
            ) from e
        self._block_start = start
        self._block_filter = sample_filter

    def get_genotypes(
        self, sample_filter: SampleSubset | None, variant_idx: int
    ) -> np.ndarray:
        if variant_idx < 0 or variant_idx >= self._raw_variant_ct:
            raise DecodeError(
                f"variant index {variant_idx} out of range "
                f"(variant count: {self._raw_variant_ct})",
                variant_idx=variant_idx,
            )
        offset = variant_idx - self._block_start
        if (
            self._block is None
            or self._block_filter is not sample_filter
            or offset < 0
            or offset >= self._block.shape[1]
        ):
            self._load_block(sample_filter, variant_idx)
            offset = 0
        return self._block[:, offset].copy()

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


class BedGenotypeSource:
    """GenotypeSource backed by a PLINK 1 .bed file.

    The .bed header stores no dimensions, so the sample and variant counts
    come from the metadata. They are checked against the file: the magic
    bytes must announce SNP-major mode and the file size must be exactly
    3 + ceil(n_samples / 4) * n_variants bytes.

    Args:
        bed_path: Path to the .bed file.
        raw_sample_ct: Sample count from the sample metadata.
        raw_variant_ct: Variant count from the variant metadata.
        block_size: Consecutive variants decoded per read.

    Raises:
        FileNotFoundError: If the .bed file does not exist.
        ConsistencyError: On a bad header or a size that does not match the
            metadata counts.
    """

    def __init__(
        self,
        bed_path: Path,
        raw_sample_ct: int,
        raw_variant_ct: int,
        block_size: int = DEFAULT_BLOCK_SIZE,
    ):
        self.bed_path = Path(bed_path)
        if not self.bed_path.exists():
            raise FileNotFoundError(f"PLINK .bed file not found: {self.bed_path}")
        self._raw_sample_ct = raw_sample_ct
        self._raw_variant_ct = raw_variant_ct
        self.block_size = block_size
        self._check_header_and_size()

    def _check_header_and_size(self) -> None:
        with open(self.bed_path, "rb") as f:
            magic = f.read(3)
        if magic != BED_MAGIC:
            raise ConsistencyError(
                f"'{self.bed_path}' is not a SNP-major PLINK .bed file "
                f"(header {magic.hex()})"
            )
        bytes_per_variant = -(-self._raw_sample_ct // 4)
        expected = 3 + bytes_per_variant * self._raw_variant_ct
        actual = self.bed_path.stat().st_size
        if actual != expected:
            raise ConsistencyError(
                f"'{self.bed_path}' has {actual} bytes but {self._raw_sample_ct} "
                f"samples x {self._raw_variant_ct} variants require {expected}: "
                "metadata and genotype file do not match"
            )

    @property
    def raw_sample_ct(self) -> int:
        return self._raw_sample_ct

    @property
    def raw_variant_ct(self) -> int:
        return self._raw_variant_ct

    def open_reader(self) -> BedGenotypeReader:
        return BedGenotypeReader(
            self.bed_path, self._raw_sample_ct, self._raw_variant_ct, self.block_size
        )

"""Bind phase: pair a genotype source with its metadata.

A GenotypeDataset is the immutable bundle every query starts from. Binding
checks what the decoding engine cannot check itself: the metadata record
counts must equal the genotype matrix dimensions and the variant metadata
must honour the (chromosome, position) sort order.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from loguru import logger

from plinkstats.core.config import DEFAULT_BLOCK_SIZE
from plinkstats.core.errors import ConsistencyError
from plinkstats.core.variant_index import VariantCoordinateIndex
from plinkstats.io.engine import GenotypeSource
from plinkstats.io.metadata import SampleMetadata, VariantMetadata, load_psam, load_pvar
from plinkstats.io.plink import BedGenotypeSource, bed_path_for, load_plink_metadata


@dataclass(frozen=True)
class GenotypeDataset:
    """Genotype source plus the metadata describing its rows and columns.

    Attributes:
        source: Genotype decoding engine.
        variants: Variant metadata, one record per genotype variant.
        samples: Sample metadata, or None when no sample file is available.
        index: Coordinate index over the variants (built on construction).
    """

    source: GenotypeSource
    variants: VariantMetadata
    samples: SampleMetadata | None = None
    index: VariantCoordinateIndex = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "index", VariantCoordinateIndex(self.variants))

    @property
    def raw_sample_ct(self) -> int:
        return self.source.raw_sample_ct

    @property
    def raw_variant_ct(self) -> int:
        return self.source.raw_variant_ct


def bind_dataset(
    source: GenotypeSource,
    variants: VariantMetadata,
    samples: SampleMetadata | None = None,
) -> GenotypeDataset:
    """Validate and bundle a genotype source with its metadata.

    Raises:
        ConsistencyError: If the variant or sample count disagrees with the
            genotype source, or the variant metadata is not sorted.
    """
    if variants.variant_ct != source.raw_variant_ct:
        raise ConsistencyError(
            f"variant metadata has {variants.variant_ct} records but the genotype "
            f"data has {source.raw_variant_ct} variants"
        )
    if samples is not None and samples.sample_ct != source.raw_sample_ct:
        raise ConsistencyError(
            f"sample metadata has {samples.sample_ct} records but the genotype "
            f"data has {source.raw_sample_ct} samples"
        )
    variants.validate_sorted()
    return GenotypeDataset(source=source, variants=variants, samples=samples)


def open_bfile(
    bfile: Path,
    pvar: Path | None = None,
    psam: Path | None = None,
    block_size: int = DEFAULT_BLOCK_SIZE,
) -> GenotypeDataset:
    """Open a PLINK 1 fileset (.bed/.bim/.fam).

    Args:
        bfile: Path prefix (without extension).
        pvar: Optional variant metadata file used instead of the .bim.
        psam: Optional sample metadata file used instead of the .fam.
        block_size: Consecutive variants decoded per genotype read.

    Returns:
        Bound GenotypeDataset.

    Raises:
        FileNotFoundError: If a required file does not exist.
        ConsistencyError: If the files disagree with each other.
    """
    bfile = Path(bfile)
    if pvar is None or psam is None:
        bim_variants, fam_samples = load_plink_metadata(bfile)
    else:
        bim_variants = fam_samples = None
    variants = load_pvar(pvar) if pvar is not None else bim_variants
    samples = load_psam(psam) if psam is not None else fam_samples

    source = BedGenotypeSource(
        bed_path_for(bfile),
        raw_sample_ct=samples.sample_ct,
        raw_variant_ct=variants.variant_ct,
        block_size=block_size,
    )
    dataset = bind_dataset(source, variants, samples)
    logger.info(
        f"Opened {bfile}: {dataset.raw_sample_ct} samples, "
        f"{dataset.raw_variant_ct} variants"
    )
    return dataset

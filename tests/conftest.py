"""Pytest fixtures for plinkstats test suite."""

from __future__ import annotations

from pathlib import Path

import numpy as np
import pytest
from bed_reader import to_bed

from plinkstats.io.dataset import GenotypeDataset, bind_dataset
from plinkstats.io.engine import MISSING_GENOTYPE, ArrayGenotypeSource
from plinkstats.io.metadata import SampleMetadata, VariantMetadata

# =============================================================================
# Test Tier System
# =============================================================================
#
# tier0 - Fast Unit Tests (<5s each)
#   - Pure computation over in-memory genotype matrices (ArrayGenotypeSource)
#   - Run on every commit in CI
#   - Example: test_two_homozygotes, test_midp
#   - Run: pytest -m tier0
#
# tier1 - File Round Trip Tests (<60s each)
#   - Write real .bed/.bim/.fam filesets with bed_reader.to_bed in tmp_path
#     and read them back through BedGenotypeSource and the CLI
#   - Run on PRs and merges
#   - Example: test_bed_dataset_matches_array_dataset, test_cli_freq
#   - Run: pytest -m tier1
#
# tier2 - Scale Tests
#   - Large sample/variant counts, run manually
#   - Run: pytest -m tier2
#
# Quick reference:
#   pytest -m tier0             # Fast tests only
#   pytest -m "tier0 or tier1"  # Everything except scale tests
#   pytest                      # All tests
# =============================================================================

M = MISSING_GENOTYPE

# (chromosome, position, id, ref, alt)
VARIANT_RECORDS = [
    ("1", 100, "rs1", "A", "G"),
    ("1", 200, "rs2", "C", "T"),
    ("1", 300, "rs3", "G", "A"),
    ("2", 50, "rs4", "T", "C"),
    ("2", 150, "rs5", "A", "C"),
]

SAMPLE_IIDS = [f"S{i}" for i in range(10)]
SAMPLE_FIDS = [f"F{i}" for i in range(10)]

# Samples x variants, alt-allele copies.
# rs1: 8 hom-ref, 1 het, 1 hom-alt (ALT frequency 0.15)
# rs2: 4/3/2 with S3 missing
# rs3: identical to rs1
# rs4: monomorphic
# rs5: S9 missing
GENOTYPES = np.array(
    [
        [0, 0, 0, 0, 2],
        [0, 1, 0, 0, 1],
        [0, 2, 0, 0, 0],
        [0, M, 0, 0, 0],
        [0, 0, 0, 0, 1],
        [0, 1, 0, 0, 2],
        [0, 2, 0, 0, 0],
        [0, 0, 0, 0, 1],
        [1, 1, 1, 0, 2],
        [2, 0, 2, 0, M],
    ],
    dtype=np.int8,
)


def pytest_configure(config):
    """Register custom markers and provide tier documentation."""
    # Markers are registered in pyproject.toml
    pass


@pytest.fixture
def genotypes() -> np.ndarray:
    """Small int8 genotype matrix (10 samples x 5 variants)."""
    return GENOTYPES.copy()


@pytest.fixture
def variant_metadata() -> VariantMetadata:
    return VariantMetadata.from_records(VARIANT_RECORDS)


@pytest.fixture
def sample_metadata() -> SampleMetadata:
    return SampleMetadata(
        individual_id=np.array(SAMPLE_IIDS, dtype=object),
        family_id=np.array(SAMPLE_FIDS, dtype=object),
    )


@pytest.fixture
def dataset(
    genotypes: np.ndarray,
    variant_metadata: VariantMetadata,
    sample_metadata: SampleMetadata,
) -> GenotypeDataset:
    """In-memory dataset over the small genotype matrix."""
    return bind_dataset(
        ArrayGenotypeSource(genotypes), variant_metadata, sample_metadata
    )


@pytest.fixture
def random_dataset() -> GenotypeDataset:
    """Larger random dataset (200 samples x 3000 variants on 3 chromosomes).

    Big enough that the per-variant kernels use several workers.
    """
    rng = np.random.default_rng(42)
    n_samples, n_variants = 200, 3000
    mafs = rng.uniform(0.05, 0.5, n_variants)
    geno = rng.binomial(2, mafs, size=(n_samples, n_variants)).astype(np.int8)
    geno[rng.random((n_samples, n_variants)) < 0.02] = MISSING_GENOTYPE

    records = []
    for j in range(n_variants):
        chrom = str(j // 1000 + 1)
        records.append((chrom, 1000 + (j % 1000) * 500, f"v{j}", "A", "G"))
    samples = SampleMetadata(
        individual_id=np.array([f"I{i}" for i in range(n_samples)], dtype=object),
        family_id=np.array([f"F{i}" for i in range(n_samples)], dtype=object),
    )
    return bind_dataset(
        ArrayGenotypeSource(geno), VariantMetadata.from_records(records), samples
    )


def write_bfile(prefix: Path, genotypes: np.ndarray) -> Path:
    """Write genotypes plus the fixture metadata as a PLINK 1 fileset."""
    to_bed(
        f"{prefix}.bed",
        genotypes,
        properties={
            "fid": SAMPLE_FIDS,
            "iid": SAMPLE_IIDS,
            "chromosome": [r[0] for r in VARIANT_RECORDS],
            "bp_position": [r[1] for r in VARIANT_RECORDS],
            "sid": [r[2] for r in VARIANT_RECORDS],
            "allele_1": [r[4] for r in VARIANT_RECORDS],
            "allele_2": [r[3] for r in VARIANT_RECORDS],
        },
        count_A1=True,
    )
    return prefix


@pytest.fixture
def bfile(tmp_path: Path, genotypes: np.ndarray) -> Path:
    """Path prefix of a .bed/.bim/.fam fileset holding the fixture data."""
    return write_bfile(tmp_path / "test", genotypes)


@pytest.fixture
def output_dir(tmp_path: Path) -> Path:
    """Create temporary output directory for test results."""
    out = tmp_path / "output"
    out.mkdir()
    return out

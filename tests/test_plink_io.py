"""Tests for PLINK 1 fileset loading via bed-reader."""

from pathlib import Path

import numpy as np
import pytest

from plinkstats import open_bfile, plink_freq, plink_missing, plink_score
from plinkstats.core.errors import ConsistencyError, DecodeError
from plinkstats.core.sample_subset import build_sample_subset
from plinkstats.io.engine import MISSING_GENOTYPE
from plinkstats.io.plink import (
    BED_MAGIC,
    BedGenotypeSource,
    bed_path_for,
    load_plink_metadata,
)


@pytest.mark.tier1
class TestLoadPlinkMetadata:
    """Tests for load_plink_metadata()."""

    def test_variants(self, bfile: Path):
        variants, samples = load_plink_metadata(bfile)
        assert variants.variant_ct == 5
        assert variants.record(0) == ("1", 100, "rs1", "A", "G")
        assert variants.record(4) == ("2", 150, "rs5", "A", "C")

    def test_samples(self, bfile: Path):
        _, samples = load_plink_metadata(bfile)
        assert samples.sample_ct == 10
        assert samples.iid(3) == "S3"
        assert samples.fid(3) == "F3"

    @pytest.mark.parametrize("ext", [".bed", ".bim", ".fam"])
    def test_missing_file(self, bfile: Path, ext: str):
        Path(f"{bfile}{ext}").unlink()
        with pytest.raises(FileNotFoundError, match=f"PLINK {ext} file not found"):
            load_plink_metadata(bfile)


@pytest.mark.tier1
class TestBedGenotypeSource:
    """Tests for BedGenotypeSource and BedGenotypeReader."""

    def test_header(self, bfile: Path):
        with open(bed_path_for(bfile), "rb") as f:
            assert f.read(3) == BED_MAGIC

    def test_reads_match_matrix(self, bfile: Path, genotypes: np.ndarray):
        source = BedGenotypeSource(bed_path_for(bfile), 10, 5, block_size=2)
        reader = source.open_reader()
        for j in range(5):
            column = reader.get_genotypes(None, j)
            np.testing.assert_array_equal(column, genotypes[:, j])

    def test_subset_reads(self, bfile: Path, genotypes: np.ndarray):
        reader = BedGenotypeSource(bed_path_for(bfile), 10, 5).open_reader()
        subset = build_sample_subset(10, [9, 3, 0])
        np.testing.assert_array_equal(
            reader.get_genotypes(subset, 1), genotypes[[0, 3, 9], 1]
        )
        # Switching back to all samples inside the same block re-reads it
        np.testing.assert_array_equal(reader.get_genotypes(None, 1), genotypes[:, 1])

    def test_backwards_access(self, bfile: Path, genotypes: np.ndarray):
        source = BedGenotypeSource(bed_path_for(bfile), 10, 5, block_size=2)
        reader = source.open_reader()
        for j in (4, 0, 3, 1):
            column = reader.get_genotypes(None, j)
            np.testing.assert_array_equal(column, genotypes[:, j])

    def test_dosages_and_missingness(self, bfile: Path):
        reader = BedGenotypeSource(bed_path_for(bfile), 10, 5).open_reader()
        dosages = reader.get_dosages(None, 1)
        assert np.isnan(dosages[3])
        assert dosages[2] == 2.0
        assert reader.get_missingness(None, 1).sum() == 1
        assert reader.get_counts(None, 0).hom_alt == 1

    def test_out_of_range_variant(self, bfile: Path):
        reader = BedGenotypeSource(bed_path_for(bfile), 10, 5).open_reader()
        with pytest.raises(DecodeError) as exc_info:
            reader.get_genotypes(None, 5)
        assert exc_info.value.variant_idx == 5

    def test_size_mismatch(self, bfile: Path):
        with pytest.raises(ConsistencyError, match="do not match"):
            BedGenotypeSource(bed_path_for(bfile), 10, 6)

    def test_sample_count_mismatch(self, bfile: Path):
        # 10 and 12 samples both pack into 3 bytes per variant; 13 needs 4
        BedGenotypeSource(bed_path_for(bfile), 12, 5)
        with pytest.raises(ConsistencyError):
            BedGenotypeSource(bed_path_for(bfile), 13, 5)

    def test_bad_magic(self, tmp_path: Path):
        bed = tmp_path / "bad.bed"
        bed.write_bytes(b"\x6c\x1b\x00" + bytes(3 * 5))
        with pytest.raises(ConsistencyError, match="not a SNP-major"):
            BedGenotypeSource(bed, 10, 5)

    def test_missing_bed(self, tmp_path: Path):
        with pytest.raises(FileNotFoundError):
            BedGenotypeSource(tmp_path / "none.bed", 10, 5)


@pytest.mark.tier1
class TestOpenBfile:
    """Tests for open_bfile() and queries over a .bed fileset."""

    def test_open(self, bfile: Path):
        dataset = open_bfile(bfile)
        assert dataset.raw_sample_ct == 10
        assert dataset.raw_variant_ct == 5
        assert dataset.index.resolve_id("rs3") == 2

    def test_bed_dataset_matches_array_dataset(self, bfile: Path, dataset):
        from_bed = sorted(plink_freq(open_bfile(bfile), counts=True))
        from_array = sorted(plink_freq(dataset, counts=True))
        assert from_bed == from_array

    def test_missing_from_bed(self, bfile: Path):
        rows = {r.iid: r for r in plink_missing(bfile, mode="sample")}
        assert rows["S3"].missing_ct == 1
        assert rows["S9"].missing_ct == 1

    def test_score_from_bed_path(self, bfile: Path, dataset):
        weights = [("rs1", "G", 1.0), ("rs2", "C", -0.5)]
        from_bed = sorted(plink_score(str(bfile), weights))
        from_array = sorted(plink_score(dataset, weights))
        assert from_bed == from_array

    def test_pvar_psam_override(self, bfile: Path, tmp_path: Path):
        pvar = tmp_path / "override.pvar"
        pvar.write_text(
            "#CHROM\tPOS\tID\tREF\tALT\n"
            "1\t100\tnew1\tA\tG\n"
            "1\t200\tnew2\tC\tT\n"
            "1\t300\tnew3\tG\tA\n"
            "2\t50\tnew4\tT\tC\n"
            "2\t150\tnew5\tA\tC\n"
        )
        psam = tmp_path / "override.psam"
        psam.write_text("#IID\n" + "".join(f"P{i}\n" for i in range(10)))
        dataset = open_bfile(bfile, pvar=pvar, psam=psam)
        assert dataset.variants.id[0] == "new1"
        assert dataset.samples.iid(0) == "P0"
        rows = list(plink_freq(dataset, samples=["P8", "P9"], region="1:1-100"))
        assert rows[0].id == "new1"
        assert rows[0].alt_freq == pytest.approx(0.75)

    def test_pvar_count_mismatch(self, bfile: Path, tmp_path: Path):
        pvar = tmp_path / "short.pvar"
        pvar.write_text("#CHROM\tPOS\tID\tREF\tALT\n1\t100\tx\tA\tG\n")
        with pytest.raises(ConsistencyError):
            open_bfile(bfile, pvar=pvar)

    def test_missing_genotype_round_trip(self, bfile: Path):
        reader = open_bfile(bfile).source.open_reader()
        assert reader.get_genotypes(None, 4)[9] == MISSING_GENOTYPE

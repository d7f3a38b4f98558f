"""Tests for .pvar/.psam loaders and the metadata tables."""

from pathlib import Path

import numpy as np
import pytest

from plinkstats.core.errors import ConsistencyError, ValidationError
from plinkstats.io.metadata import (
    SampleMetadata,
    VariantMetadata,
    load_psam,
    load_pvar,
)


def write(path: Path, lines: list[str]) -> Path:
    path.write_text("\n".join(lines) + "\n")
    return path


@pytest.mark.tier0
class TestLoadPvar:
    """Tests for load_pvar()."""

    def test_header_with_meta_lines(self, tmp_path):
        path = write(
            tmp_path / "x.pvar",
            [
                "##fileformat=PVARv1.0",
                "##source=test",
                "#CHROM\tPOS\tID\tREF\tALT\tQUAL",
                "1\t100\trs1\tA\tG\t.",
                "1\t200\t.\tC\t.\t50",
            ],
        )
        variants = load_pvar(path)
        assert variants.variant_ct == 2
        assert variants.record(0) == ("1", 100, "rs1", "A", "G")
        assert variants.id[1] is None
        assert variants.alt_allele[1] is None

    def test_column_order_from_header(self, tmp_path):
        path = write(
            tmp_path / "x.pvar",
            ["#CHROM\tID\tPOS\tALT\tREF", "2\tv1\t5\tT\tC"],
        )
        assert load_pvar(path).record(0) == ("2", 5, "v1", "C", "T")

    def test_bim_fallback(self, tmp_path):
        path = write(
            tmp_path / "x.bim",
            ["1 rs1 0 100 G A", "1\trs2\t0.5\t200\tT\tC"],
        )
        variants = load_pvar(path)
        assert variants.record(0) == ("1", 100, "rs1", "A", "G")
        assert variants.record(1) == ("1", 200, "rs2", "C", "T")

    def test_missing_required_column(self, tmp_path):
        path = write(tmp_path / "x.pvar", ["#CHROM\tPOS\tID\tREF", "1\t1\ta\tA"])
        msg = r"missing required columns \['ALT'\]"
        with pytest.raises(ValidationError, match=msg):
            load_pvar(path)

    def test_bad_position(self, tmp_path):
        path = write(
            tmp_path / "x.pvar", ["#CHROM\tPOS\tID\tREF\tALT", "1\tabc\ta\tA\tG"]
        )
        with pytest.raises(ValidationError, match="invalid POS value 'abc'"):
            load_pvar(path)

    def test_short_line(self, tmp_path):
        path = write(tmp_path / "x.bim", ["1 rs1 0 100 G"])
        with pytest.raises(ValidationError, match="line 1 has 5 fields"):
            load_pvar(path)

    def test_only_meta_lines(self, tmp_path):
        path = write(tmp_path / "x.pvar", ["##fileformat=PVARv1.0"])
        with pytest.raises(ValidationError, match="no header or data"):
            load_pvar(path)

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_pvar(tmp_path / "nope.pvar")


@pytest.mark.tier0
class TestLoadPsam:
    """Tests for load_psam()."""

    def test_fid_header(self, tmp_path):
        path = write(
            tmp_path / "x.psam",
            ["#FID\tIID\tSEX", "f1\ts1\t1", "f2\ts2\t2"],
        )
        samples = load_psam(path)
        assert samples.sample_ct == 2
        assert samples.iid(1) == "s2"
        assert samples.fid(0) == "f1"

    def test_iid_header_without_fid(self, tmp_path):
        path = write(tmp_path / "x.psam", ["#IID\tSEX", "s1\t1"])
        samples = load_psam(path)
        assert samples.iid(0) == "s1"
        assert samples.fid(0) is None

    def test_fam_fallback(self, tmp_path):
        path = write(tmp_path / "x.fam", ["fam1 ind1 0 0 1 -9", "fam2 ind2 0 0 2 -9"])
        samples = load_psam(path)
        assert samples.index_of("ind2") == 1
        assert samples.fid(1) == "fam2"

    def test_no_iid_column(self, tmp_path):
        path = write(tmp_path / "x.psam", ["#FID\tSEX", "f1\t1"])
        with pytest.raises(ValidationError, match="no IID column"):
            load_psam(path)

    def test_empty(self, tmp_path):
        path = tmp_path / "x.psam"
        path.write_text("")
        with pytest.raises(ValidationError, match="is empty"):
            load_psam(path)


@pytest.mark.tier0
class TestMetadataTables:
    """Tests for VariantMetadata and SampleMetadata."""

    def test_column_length_mismatch(self):
        with pytest.raises(ConsistencyError, match="'position' has 1 entries"):
            VariantMetadata(
                chromosome=np.array(["1", "1"], dtype=object),
                position=np.array([1], dtype=np.int32),
                id=np.array(["a", "b"], dtype=object),
                ref_allele=np.array(["A", "A"], dtype=object),
                alt_allele=np.array(["G", "G"], dtype=object),
            )

    def test_fid_iid_length_mismatch(self):
        with pytest.raises(ConsistencyError):
            SampleMetadata(
                individual_id=np.array(["a", "b"], dtype=object),
                family_id=np.array(["f"], dtype=object),
            )

    def test_sorted_chromosome_blocks_any_order(self):
        VariantMetadata.from_records(
            [
                ("X", 5, "a", "A", "G"),
                ("1", 1, "b", "A", "G"),
                ("1", 1, "c", "A", "G"),
            ]
        ).validate_sorted()

    def test_index_of_unknown(self, sample_metadata):
        with pytest.raises(ValidationError, match="'nobody' not found"):
            sample_metadata.index_of("nobody")

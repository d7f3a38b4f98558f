"""Tests for keep-list and score weights file readers."""

from pathlib import Path

import pytest

from plinkstats.core.errors import ValidationError
from plinkstats.io.id_list import WeightEntry, read_keep_file, read_weights_file


@pytest.mark.tier0
class TestReadKeepFile:
    """Tests for read_keep_file()."""

    def test_iid_and_fid_iid_lines(self, tmp_path: Path):
        path = tmp_path / "keep.txt"
        path.write_text("#FID IID\nF1 S1\nS2\n\n  F3\tS3  \n")
        assert read_keep_file(path) == ["S1", "S2", "S3"]

    def test_preserves_file_order(self, tmp_path: Path):
        path = tmp_path / "keep.txt"
        path.write_text("S9\nS0\nS4\n")
        assert read_keep_file(path) == ["S9", "S0", "S4"]

    def test_empty(self, tmp_path: Path):
        path = tmp_path / "keep.txt"
        path.write_text("# only a comment\n\n")
        with pytest.raises(ValidationError, match="no sample IDs"):
            read_keep_file(path)

    def test_missing(self, tmp_path: Path):
        with pytest.raises(FileNotFoundError, match="keep file not found"):
            read_keep_file(tmp_path / "nope.txt")


@pytest.mark.tier0
class TestReadWeightsFile:
    """Tests for read_weights_file()."""

    def test_with_header(self, tmp_path: Path):
        path = tmp_path / "w.txt"
        path.write_text("ID A1 BETA\nrs1 G 0.5\nrs2\tT\t-1e-3\n")
        assert read_weights_file(path) == [
            WeightEntry("rs1", "G", 0.5),
            WeightEntry("rs2", "T", -0.001),
        ]

    def test_without_header_and_extra_columns(self, tmp_path: Path):
        path = tmp_path / "w.txt"
        path.write_text("# comment\nrs1 G 2 extra\n")
        assert read_weights_file(path) == [WeightEntry("rs1", "G", 2.0)]

    def test_short_line(self, tmp_path: Path):
        path = tmp_path / "w.txt"
        path.write_text("rs1 G 1.0\nrs2 T\n")
        with pytest.raises(ValidationError, match="line 2 has 2 fields"):
            read_weights_file(path)

    def test_bad_weight_after_data(self, tmp_path: Path):
        path = tmp_path / "w.txt"
        path.write_text("rs1 G 1.0\nrs2 T abc\n")
        with pytest.raises(ValidationError, match="invalid weight 'abc'"):
            read_weights_file(path)

    def test_header_only(self, tmp_path: Path):
        path = tmp_path / "w.txt"
        path.write_text("ID A1 BETA\n")
        with pytest.raises(ValidationError, match="no weights"):
            read_weights_file(path)

    def test_missing(self, tmp_path: Path):
        with pytest.raises(FileNotFoundError):
            read_weights_file(tmp_path / "nope.txt")

"""Tests for logging setup, the run log and RSS memory logging."""

import json
import sys
from unittest.mock import MagicMock, patch

import pytest
from loguru import logger

import plinkstats
from plinkstats.core.config import OutputConfig
from plinkstats.utils.logging import log_rss_memory, setup_logging, write_run_log


@pytest.fixture
def restore_logger():
    """Put loguru back to its default stderr sink after the test."""
    yield
    logger.remove()
    logger.add(sys.stderr)


class TestLogRssMemory:
    """Tests for log_rss_memory function."""

    def test_returns_rss_in_gb(self):
        """Should return RSS memory in GB."""
        with patch("psutil.Process") as mock_process_class:
            mock_process = MagicMock()
            mock_process.memory_info.return_value.rss = 12_345_678_901
            mock_process_class.return_value = mock_process

            rss = log_rss_memory("score", "accumulate_start")

            assert abs(rss - 12.35) < 0.01

    def test_logs_with_phase_and_checkpoint(self, capsys, restore_logger):
        """Should log message containing phase and checkpoint."""
        setup_logging(verbose=True)

        with patch("psutil.Process") as mock_process_class:
            mock_process = MagicMock()
            mock_process.memory_info.return_value.rss = 5e9
            mock_process_class.return_value = mock_process

            log_rss_memory("missing", "before")

        captured = capsys.readouterr()
        assert "RSS memory: 5.00GB" in captured.out
        assert "missing" in captured.out
        assert "before" in captured.out

    def test_real_rss_measurement(self):
        """Should measure actual process RSS (sanity check)."""
        rss = log_rss_memory("integration", "test")
        assert 0 < rss < 100


class TestSetupLogging:
    """Tests for setup_logging()."""

    def test_info_hides_debug(self, capsys, restore_logger):
        setup_logging(verbose=False)
        logger.debug("hidden message")
        logger.info("shown message")
        out = capsys.readouterr().out
        assert "hidden message" not in out
        assert "shown message" in out

    def test_json_log_file(self, tmp_path, restore_logger):
        log_file = tmp_path / "debug.jsonl"
        setup_logging(log_file=log_file)
        logger.debug("to the file")
        logger.remove()

        records = [json.loads(line) for line in log_file.read_text().splitlines()]
        assert records[-1]["record"]["message"] == "to the file"
        assert records[-1]["record"]["level"]["name"] == "DEBUG"


class TestWriteRunLog:
    """Tests for write_run_log()."""

    def test_content(self, tmp_path):
        config = OutputConfig(outdir=tmp_path / "out", prefix="run")
        path = write_run_log(
            config,
            {
                "Input": {"n_samples": 10, "region": "1:1-100"},
                "Options": {"counts": True},
            },
            {"total": 1.234, "scan": 2},
            "plinkstats freq -bfile data",
        )

        assert path == tmp_path / "out" / "run.log.txt"
        text = path.read_text()
        assert f"## plinkstats Version = {plinkstats.__version__}" in text
        assert "## Command Line Input = plinkstats freq -bfile data" in text
        assert "## n_samples = 10" in text
        assert "## region = 1:1-100" in text
        assert "## total time = 1.23 seconds" in text
        assert "## scan time = 2 seconds" in text
        assert text.startswith("##\n")

    def test_sections_in_order(self, tmp_path):
        config = OutputConfig(outdir=tmp_path)
        path = write_run_log(
            config,
            {"Input": {"a": 1}, "Options": {}, "Output": {"rows_written": 3}},
            {"total": 0.5},
            "plinkstats hardy",
        )
        lines = path.read_text().splitlines()
        titles = [line for line in lines if line.endswith(":")]
        assert titles == [
            "## Input:",
            "## Options:",
            "## Output:",
            "## Computation Time:",
        ]
        assert lines[lines.index("## Output:") + 1] == "## rows_written = 3"

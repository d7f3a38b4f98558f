"""Configuration dataclasses for plinkstats.

This module contains dataclasses that configure output locations and the
parallel scan machinery shared by every statistical kernel.
"""

from dataclasses import dataclass, field
from pathlib import Path

# Rows produced per scan call before control returns to the driver
STANDARD_CHUNK_ROWS = 2048

# Variant indices claimed per WorkQueue round trip
VARIANT_BATCH_SIZE = 128

# Consecutive variants decoded per bed-reader call
DEFAULT_BLOCK_SIZE = 256


@dataclass
class OutputConfig:
    """Configuration for output files and directories.

    Attributes:
        outdir: Output directory for result files. Created if it doesn't exist.
        prefix: Prefix for output filenames (e.g., "result" produces "result.log.txt").
        verbose: Enable verbose/debug output to console.
    """

    outdir: Path = field(default_factory=lambda: Path("output"))
    prefix: str = "result"
    verbose: bool = False

    @property
    def log_path(self) -> Path:
        """Path to the run log file.

        Returns:
            Path to {outdir}/{prefix}.log.txt
        """
        return self.outdir / f"{self.prefix}.log.txt"

    def result_path(self, extension: str) -> Path:
        """Path to a result table, e.g. ``result_path("afreq")``."""
        return self.outdir / f"{self.prefix}.{extension}"

    def ensure_outdir(self) -> None:
        """Create output directory if it doesn't exist."""
        self.outdir.mkdir(parents=True, exist_ok=True)


@dataclass
class ScanConfig:
    """Configuration for a parallel scan.

    Attributes:
        threads: Upper bound on worker threads. None uses get_worker_count().
        block_size: Consecutive variants decoded per genotype read.
        chunk_rows: Maximum rows a worker produces per scan call.
        show_progress: Show progress bars on single-worker sequential passes.
    """

    threads: int | None = None
    block_size: int = DEFAULT_BLOCK_SIZE
    chunk_rows: int = STANDARD_CHUNK_ROWS
    show_progress: bool = False

"""Writers for result tables.

Every kernel's rows are written as tab-separated text with a PLINK 2 style
header line (first column name prefixed with "#"). Nulls are written as
"NA", floats with 6 significant digits ("%.6g"), everything else as str().
"""

from collections.abc import Iterable
from pathlib import Path

# Column names per table, in row field order
COLUMNS: dict[str, tuple[str, ...]] = {
    "afreq": ("CHROM", "POS", "ID", "REF", "ALT", "ALT_FREQ", "OBS_CT"),
    "hardy": (
        "CHROM",
        "POS",
        "ID",
        "REF",
        "ALT",
        "A1",
        "HOM_REF_CT",
        "HET_CT",
        "HOM_ALT_CT",
        "O_HET",
        "E_HET",
        "P_HWE",
    ),
    "vcor": (
        "CHROM_A",
        "POS_A",
        "ID_A",
        "CHROM_B",
        "POS_B",
        "ID_B",
        "R2",
        "D_PRIME",
        "OBS_CT",
    ),
    "vmiss": ("CHROM", "POS", "ID", "REF", "ALT", "MISSING_CT", "OBS_CT", "F_MISS"),
    "smiss": ("FID", "IID", "MISSING_CT", "OBS_CT", "F_MISS"),
    "sscore": (
        "FID",
        "IID",
        "ALLELE_CT",
        "DENOM",
        "NAMED_ALLELE_DOSAGE_SUM",
        "SCORE_SUM",
        "SCORE_AVG",
    ),
}

FREQ_COUNT_COLUMNS = ("HOM_REF_CT", "HET_CT", "HOM_ALT_CT", "MISSING_CT")


def table_columns(kind: str, counts: bool = False) -> tuple[str, ...]:
    """Column names for a table kind ("afreq", "hardy", ...).

    Args:
        kind: Table kind, also the output file extension.
        counts: For "afreq", include the genotype class count columns.
    """
    if kind not in COLUMNS:
        raise ValueError(f"unknown table kind '{kind}'")
    columns = COLUMNS[kind]
    if kind == "afreq" and counts:
        columns = columns + FREQ_COUNT_COLUMNS
    return columns


def format_value(value) -> str:
    if value is None:
        return "NA"
    if isinstance(value, float):
        return f"{value:.6g}"
    return str(value)


def format_row(row: tuple, n_columns: int) -> str:
    """Format the first n_columns fields of a row as a tab-separated line."""
    return "\t".join(format_value(v) for v in row[:n_columns])


class IncrementalTableWriter:
    """Write result rows to disk as they stream out of a scan.

    Example:
        with IncrementalTableWriter(Path("out/result.afreq"), "afreq") as writer:
            for row in plink_freq(dataset):
                writer.write(row)
        print(f"Wrote {writer.count} rows")
    """

    def __init__(self, path: Path, kind: str, counts: bool = False):
        """Initialize writer with output path.

        Args:
            path: Output file path. Parent directories created if needed.
            kind: Table kind selecting the header.
            counts: For "afreq", include the genotype class count columns.
        """
        self.path = Path(path)
        self.columns = table_columns(kind, counts)
        self._file = None
        self._count = 0

    def __enter__(self) -> "IncrementalTableWriter":
        """Open file and write header."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._file = open(self.path, "w")
        self._file.write("#" + "\t".join(self.columns) + "\n")
        return self

    def write(self, row: tuple) -> None:
        if self._file is None:
            raise RuntimeError("Writer not opened. Use as context manager.")
        self._file.write(format_row(row, len(self.columns)) + "\n")
        self._count += 1

    def write_batch(self, rows: Iterable[tuple]) -> None:
        for row in rows:
            self.write(row)

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        """Close file."""
        if self._file:
            self._file.close()
            self._file = None

    @property
    def count(self) -> int:
        """Number of rows written."""
        return self._count


def write_table(
    rows: Iterable[tuple], path: Path, kind: str, counts: bool = False
) -> int:
    """Write all rows to a table file.

    Returns:
        Number of rows written.
    """
    with IncrementalTableWriter(path, kind, counts=counts) as writer:
        writer.write_batch(rows)
    return writer.count

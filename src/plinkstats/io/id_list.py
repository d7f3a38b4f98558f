"""Sample keep-lists and score weight files.

Keep file: one sample per line. The last whitespace-delimited token is the
IID, so both "IID" and PLINK-style "FID IID" lines are accepted. Lines
starting with "#" are headers or comments.

Weights file: "ID ALLELE WEIGHT" per line, whitespace-delimited. A header
line whose WEIGHT column does not parse as a number is skipped if it is the
first non-comment line.
"""

from pathlib import Path
from typing import NamedTuple

from loguru import logger

from plinkstats.core.errors import ValidationError


class WeightEntry(NamedTuple):
    """One ID-keyed score weight."""

    variant_id: str
    allele: str
    weight: float


def read_keep_file(path: Path) -> list[str]:
    """Read a sample keep-list into IIDs, in file order.

    Args:
        path: Path to the keep file.

    Returns:
        List of IIDs.

    Raises:
        FileNotFoundError: If the file does not exist.
        ValidationError: If the file contains no sample IDs.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"keep file not found: {path}")

    iids: list[str] = []
    with open(path) as f:
        for line in f:
            stripped = line.strip()
            if not stripped or stripped.startswith("#"):
                continue
            iids.append(stripped.split()[-1])

    if not iids:
        raise ValidationError(f"keep file is empty or contains no sample IDs: {path}")

    logger.debug(f"Read {len(iids)} sample IDs from {path}")
    return iids


def read_weights_file(path: Path) -> list[WeightEntry]:
    """Read an ID-keyed score weights file.

    Args:
        path: Path to the weights file.

    Returns:
        WeightEntry per data line, in file order.

    Raises:
        FileNotFoundError: If the file does not exist.
        ValidationError: Short lines, non-numeric weights after the first
            line, or no entries at all.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"weights file not found: {path}")

    entries: list[WeightEntry] = []
    seen_data = False
    with open(path) as f:
        for lineno, line in enumerate(f, start=1):
            stripped = line.strip()
            if not stripped or stripped.startswith("#"):
                continue
            fields = stripped.split()
            if len(fields) < 3:
                raise ValidationError(
                    f"weights file '{path}' line {lineno} has {len(fields)} fields, "
                    "expected ID ALLELE WEIGHT"
                )
            try:
                weight = float(fields[2])
            except ValueError:
                if not seen_data:
                    # Header line
                    seen_data = True
                    continue
                raise ValidationError(
                    f"invalid weight '{fields[2]}' in '{path}' line {lineno}"
                ) from None
            seen_data = True
            entries.append(WeightEntry(fields[0], fields[1], weight))

    if not entries:
        raise ValidationError(f"weights file is empty or contains no weights: {path}")

    logger.debug(f"Read {len(entries)} score weights from {path}")
    return entries

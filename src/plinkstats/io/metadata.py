"""Variant and sample metadata tables.

VariantMetadata and SampleMetadata are columnar, immutable after load, and
shared read-only by every worker of a query. They can come from the legacy
.bim/.fam pair (see plinkstats.io.plink) or from PLINK 2 .pvar/.psam text
files parsed here.

.pvar format:
- Leading "##" meta lines are skipped
- A "#CHROM" header line names the tab-separated columns; CHROM, POS, ID,
  REF and ALT are required, any others are ignored
- Without a "#CHROM" header the file is read as a whitespace-delimited
  6-column .bim (CHROM ID CM POS ALT REF)
- ID "." and ALT "." are stored as missing

.psam format:
- Header line starting "#FID" or "#IID" names the tab-separated columns
- Without such a header the file is read as a whitespace-delimited .fam
  (FID IID PAT MAT SEX PHENO)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import NamedTuple

import numpy as np
from loguru import logger

from plinkstats.core.errors import ConsistencyError, ValidationError

_PVAR_REQUIRED = ("CHROM", "POS", "ID", "REF", "ALT")
_FAM_COLUMNS = ("FID", "IID", "PAT", "MAT", "SEX", "PHENO")


def _nullable(value: str) -> str | None:
    return None if value in ("", ".") else value


class VariantRecord(NamedTuple):
    """One variant's metadata."""

    chromosome: str
    position: int
    id: str | None
    ref_allele: str
    alt_allele: str | None


@dataclass(frozen=True)
class VariantMetadata:
    """Per-variant metadata in on-disk order.

    Attributes:
        chromosome: Chromosome code per variant (str array).
        position: Base-pair position per variant (int32 array).
        id: Variant ID per variant, None when missing (object array).
        ref_allele: Reference allele per variant (str array).
        alt_allele: Alternate allele per variant, None when missing (object array).
    """

    chromosome: np.ndarray
    position: np.ndarray
    id: np.ndarray
    ref_allele: np.ndarray
    alt_allele: np.ndarray

    def __post_init__(self) -> None:
        n = len(self.chromosome)
        for name in ("position", "id", "ref_allele", "alt_allele"):
            if len(getattr(self, name)) != n:
                raise ConsistencyError(
                    f"variant metadata column '{name}' has {len(getattr(self, name))} "
                    f"entries, expected {n}"
                )

    @classmethod
    def from_records(
        cls, records: list[VariantRecord] | list[tuple]
    ) -> VariantMetadata:
        """Build from (chromosome, position, id, ref, alt) records."""
        records = [VariantRecord(*r) for r in records]
        return cls(
            chromosome=np.array([r.chromosome for r in records], dtype=object),
            position=np.array([r.position for r in records], dtype=np.int32),
            id=np.array([r.id for r in records], dtype=object),
            ref_allele=np.array([r.ref_allele for r in records], dtype=object),
            alt_allele=np.array([r.alt_allele for r in records], dtype=object),
        )

    @property
    def variant_ct(self) -> int:
        return len(self.chromosome)

    def __len__(self) -> int:
        return self.variant_ct

    def record(self, idx: int) -> VariantRecord:
        """Return the metadata of variant idx as a VariantRecord."""
        return VariantRecord(
            chromosome=str(self.chromosome[idx]),
            position=int(self.position[idx]),
            id=self.id[idx],
            ref_allele=str(self.ref_allele[idx]),
            alt_allele=self.alt_allele[idx],
        )

    def validate_sorted(self) -> None:
        """Check the (chromosome, position) sort invariant.

        Every chromosome must occupy a single contiguous block and positions
        must be non-decreasing inside a block. Chromosome blocks themselves may
        come in any order (e.g. 1..22, X, Y, MT).

        Raises:
            ConsistencyError: Naming the first offending variant.
        """
        n = self.variant_ct
        if n < 2:
            return
        chrom = self.chromosome
        boundary = chrom[1:] != chrom[:-1]
        block_starts = np.concatenate(([0], np.flatnonzero(boundary) + 1))
        seen: set[str] = set()
        for start in block_starts:
            code = str(chrom[start])
            if code in seen:
                raise ConsistencyError(
                    f"variant metadata is not sorted: chromosome '{code}' "
                    f"resumes at variant {start} after another chromosome"
                )
            seen.add(code)

        decreasing = (np.diff(self.position.astype(np.int64)) < 0) & ~boundary
        if decreasing.any():
            idx = int(np.flatnonzero(decreasing)[0]) + 1
            raise ConsistencyError(
                f"variant metadata is not sorted: variant {idx} at "
                f"{chrom[idx]}:{self.position[idx]} follows position "
                f"{self.position[idx - 1]}"
            )


@dataclass(frozen=True)
class SampleMetadata:
    """Per-sample metadata in on-disk order.

    Attributes:
        individual_id: IID per sample (object array).
        family_id: FID per sample, or None when the source has no FID column.
    """

    individual_id: np.ndarray
    family_id: np.ndarray | None = None
    _iid_to_index: dict[str, int] = field(init=False, repr=False, compare=False)
    _duplicate_iids: frozenset[str] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        if self.family_id is not None and len(self.family_id) != len(
            self.individual_id
        ):
            raise ConsistencyError(
                f"sample metadata has {len(self.family_id)} FIDs but "
                f"{len(self.individual_id)} IIDs"
            )
        mapping: dict[str, int] = {}
        duplicates: set[str] = set()
        for i, iid in enumerate(self.individual_id):
            iid = str(iid)
            if iid in mapping:
                duplicates.add(iid)
            else:
                mapping[iid] = i
        object.__setattr__(self, "_iid_to_index", mapping)
        object.__setattr__(self, "_duplicate_iids", frozenset(duplicates))

    @property
    def sample_ct(self) -> int:
        return len(self.individual_id)

    def __len__(self) -> int:
        return self.sample_ct

    def fid(self, idx: int) -> str | None:
        if self.family_id is None:
            return None
        return str(self.family_id[idx])

    def iid(self, idx: int) -> str:
        return str(self.individual_id[idx])

    def index_of(self, iid: str) -> int:
        """Raw position of the sample with individual ID iid.

        Raises:
            ValidationError: If iid is unknown or shared by several samples.
        """
        if iid in self._duplicate_iids:
            raise ValidationError(
                f"sample '{iid}' is ambiguous: the IID occurs more than once in "
                "the sample metadata (select it by position instead)"
            )
        idx = self._iid_to_index.get(iid)
        if idx is None:
            raise ValidationError(f"sample '{iid}' not found in sample metadata")
        return idx


def _read_lines(path: Path) -> list[str]:
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"metadata file not found: {path}")
    with open(path) as f:
        return [line.rstrip("\r\n") for line in f]


def load_pvar(path: Path) -> VariantMetadata:
    """Load variant metadata from a .pvar (or header-less .bim) file.

    Args:
        path: Path to the .pvar/.bim file.

    Returns:
        VariantMetadata in file order.

    Raises:
        FileNotFoundError: If the file does not exist.
        ValidationError: Empty file, missing required columns, short lines,
            or a non-integer POS value.
    """
    lines = _read_lines(path)
    line_idx = 0
    while line_idx < len(lines) and (
        not lines[line_idx] or lines[line_idx].startswith("##")
    ):
        line_idx += 1
    if line_idx >= len(lines):
        raise ValidationError(f".pvar/.bim file '{path}' contains no header or data")

    header = lines[line_idx]
    if header.startswith("#CHROM"):
        is_bim = False
        columns = header[1:].split("\t")
        line_idx += 1
        missing = [c for c in _PVAR_REQUIRED if c not in columns]
        if missing:
            raise ValidationError(
                f".pvar file '{path}' is missing required columns {missing} "
                "(need CHROM, POS, ID, REF, ALT)"
            )
        col = {name: columns.index(name) for name in _PVAR_REQUIRED}
    else:
        is_bim = True
        # .bim order: CHROM ID CM POS ALT REF
        col = {"CHROM": 0, "ID": 1, "POS": 3, "ALT": 4, "REF": 5}

    width = max(col.values()) + 1
    chroms, positions, ids, refs, alts = [], [], [], [], []
    for lineno, line in enumerate(lines[line_idx:], start=line_idx + 1):
        if not line:
            continue
        fields = line.split() if is_bim else line.split("\t")
        if len(fields) < width:
            raise ValidationError(
                f".pvar/.bim file '{path}' line {lineno} has {len(fields)} fields, "
                f"expected at least {width}"
            )
        pos_text = fields[col["POS"]]
        try:
            pos = int(pos_text)
        except ValueError:
            raise ValidationError(
                f"invalid POS value '{pos_text}' in '{path}' line {lineno}"
            ) from None
        chroms.append(fields[col["CHROM"]])
        positions.append(pos)
        ids.append(_nullable(fields[col["ID"]]))
        refs.append(fields[col["REF"]])
        alts.append(_nullable(fields[col["ALT"]]))

    logger.debug(f"Loaded {len(chroms)} variants from {path}")
    return VariantMetadata(
        chromosome=np.array(chroms, dtype=object),
        position=np.array(positions, dtype=np.int32),
        id=np.array(ids, dtype=object),
        ref_allele=np.array(refs, dtype=object),
        alt_allele=np.array(alts, dtype=object),
    )


def load_psam(path: Path) -> SampleMetadata:
    """Load sample metadata from a .psam (or header-less .fam) file.

    Args:
        path: Path to the .psam/.fam file.

    Returns:
        SampleMetadata in file order.

    Raises:
        FileNotFoundError: If the file does not exist.
        ValidationError: Empty file, no IID column, or short lines.
    """
    lines = _read_lines(path)
    if not any(lines):
        raise ValidationError(f".psam/.fam file '{path}' is empty")

    first = lines[0]
    if first.startswith("#FID") or first.startswith("#IID"):
        columns = first[1:].split("\t")
        data_lines = lines[1:]
        is_fam = False
    else:
        columns = list(_FAM_COLUMNS)
        data_lines = lines
        is_fam = True

    if "IID" not in columns:
        raise ValidationError(f".psam file '{path}' has no IID column")
    iid_col = columns.index("IID")
    fid_col = columns.index("FID") if "FID" in columns else None

    iids, fids = [], []
    offset = len(lines) - len(data_lines)
    for lineno, line in enumerate(data_lines, start=offset + 1):
        if not line:
            continue
        fields = line.split() if is_fam else line.split("\t")
        if len(fields) <= iid_col or (fid_col is not None and len(fields) <= fid_col):
            raise ValidationError(
                f".psam/.fam file '{path}' line {lineno} has {len(fields)} fields, "
                f"expected at least {max(iid_col, fid_col or 0) + 1}"
            )
        iids.append(fields[iid_col])
        if fid_col is not None:
            fids.append(fields[fid_col])

    logger.debug(f"Loaded {len(iids)} samples from {path}")
    return SampleMetadata(
        individual_id=np.array(iids, dtype=object),
        family_id=np.array(fids, dtype=object) if fid_col is not None else None,
    )

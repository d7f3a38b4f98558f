"""Variant coordinate index: region ranges and ID lookup.

Variant metadata is sorted by (chromosome, position), so every chromosome is
one contiguous block of variant indices with non-decreasing positions. A
region query "chrom:start-end" therefore resolves to a single half-open
index range [start, end) found with two binary searches inside the block.

Empty results still carry a well-defined anchor: start == end == the index
where a forward scan would have stopped (the first variant of the
chromosome past the region, or variant_ct when the chromosome is absent).

ID lookup uses a hash map built lazily on first use. Duplicate IDs are not
rejected: the first occurrence wins and the number of shadowed duplicates is
logged once as a warning.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import TYPE_CHECKING

import numpy as np
from loguru import logger

from plinkstats.core.errors import ValidationError

if TYPE_CHECKING:
    from plinkstats.io.metadata import VariantMetadata

REGION_FORMAT_HINT = "expected 'chr:start-end'"


@dataclass(frozen=True)
class VariantRange:
    """Half-open variant index interval [start, end).

    Attributes:
        start: First variant index (inclusive).
        end: Past-the-end variant index (exclusive).
        has_filter: Whether the range came from a region filter.
    """

    start: int
    end: int
    has_filter: bool = False

    def __post_init__(self) -> None:
        if self.start < 0 or self.end < self.start:
            raise ValueError(f"invalid variant range [{self.start}, {self.end})")

    def __len__(self) -> int:
        return self.end - self.start

    @property
    def is_empty(self) -> bool:
        return self.end == self.start

    def __contains__(self, idx: int) -> bool:
        return self.start <= idx < self.end

    def indices(self) -> range:
        return range(self.start, self.end)


@dataclass(frozen=True)
class Region:
    """A parsed region filter with inclusive base-pair bounds."""

    chromosome: str
    start: int
    end: int

    def __str__(self) -> str:
        return f"{self.chromosome}:{self.start}-{self.end}"


def _parse_coordinate(text: str, which: str, region: str) -> int:
    # Plain ASCII digits only: no sign, whitespace or underscore separators
    if not (text.isascii() and text.isdigit()):
        raise ValidationError(f"invalid region {which} position in '{region}'")
    return int(text)


def parse_region(region: str) -> Region:
    """Parse a "chrom:start-end" region string.

    Both bounds are inclusive base-pair positions. The chromosome is everything
    before the first colon.

    Raises:
        ValidationError: Missing colon or dash, empty chromosome, non-integer or
            negative coordinates, or start > end.

    Example:
        >>> parse_region("1:150-250")
        Region(chromosome='1', start=150, end=250)
    """
    colon = region.find(":")
    if colon <= 0:
        raise ValidationError(
            f"invalid region format '{region}' ({REGION_FORMAT_HINT})"
        )
    chrom = region[:colon]
    range_part = region[colon + 1 :]
    dash = range_part.find("-")
    if dash < 0:
        raise ValidationError(
            f"invalid region format '{region}' ({REGION_FORMAT_HINT})"
        )

    start = _parse_coordinate(range_part[:dash], "start", region)
    end = _parse_coordinate(range_part[dash + 1 :], "end", region)
    if start > end:
        raise ValidationError(
            f"invalid region '{region}': start {start} is greater than end {end}"
        )
    return Region(chromosome=chrom, start=start, end=end)


class VariantCoordinateIndex:
    """Ordered (chromosome, position) index over sorted variant metadata.

    Built once at bind time and then shared read-only by all workers. The
    lazily built ID map is guarded by a lock so concurrent first lookups
    build it once.

    Args:
        variants: Variant metadata, already validated as sorted.
    """

    def __init__(self, variants: VariantMetadata):
        self.variants = variants
        self._blocks: dict[str, tuple[int, int]] = {}
        n = variants.variant_ct
        if n:
            chrom = variants.chromosome
            starts = np.concatenate(([0], np.flatnonzero(chrom[1:] != chrom[:-1]) + 1))
            ends = np.append(starts[1:], n)
            for s, e in zip(starts, ends):
                self._blocks.setdefault(str(chrom[s]), (int(s), int(e)))
        self._id_map: dict[str, int] | None = None
        self._id_lock = threading.Lock()

    @property
    def variant_ct(self) -> int:
        return self.variants.variant_ct

    def full_range(self) -> VariantRange:
        return VariantRange(0, self.variant_ct)

    def chromosome_block(self, chromosome: str) -> tuple[int, int] | None:
        """Index interval [start, end) of a chromosome, or None if absent."""
        return self._blocks.get(chromosome)

    def resolve_region(self, region: Region | str) -> VariantRange:
        """Resolve a region filter to the variant indices it covers.

        Args:
            region: Parsed Region or a "chrom:start-end" string.

        Returns:
            VariantRange with has_filter=True. No matches gives an empty range
            positioned where a forward scan would stop.
        """
        if isinstance(region, str):
            region = parse_region(region)

        block = self._blocks.get(region.chromosome)
        if block is None:
            rng = VariantRange(self.variant_ct, self.variant_ct, has_filter=True)
        else:
            lo, hi = block
            positions = self.variants.position[lo:hi]
            start = lo + int(np.searchsorted(positions, region.start, side="left"))
            end = lo + int(np.searchsorted(positions, region.end, side="right"))
            if end <= start:
                end = start
            rng = VariantRange(start, end, has_filter=True)

        logger.debug(f"Region {region} resolved to variants [{rng.start}, {rng.end})")
        return rng

    def _build_id_map(self) -> dict[str, int]:
        mapping: dict[str, int] = {}
        duplicates = 0
        for idx, vid in enumerate(self.variants.id):
            if vid is None:
                continue
            if vid in mapping:
                duplicates += 1
            else:
                mapping[vid] = idx
        if duplicates:
            logger.warning(
                f"{duplicates} variant IDs occur more than once; "
                "lookups by ID use the first occurrence"
            )
        return mapping

    def resolve_id(self, variant_id: str) -> int | None:
        """Index of the first variant with this ID, or None if absent."""
        if self._id_map is None:
            with self._id_lock:
                if self._id_map is None:
                    self._id_map = self._build_id_map()
        return self._id_map.get(variant_id)

    def require_id(self, variant_id: str) -> int:
        """Like resolve_id but raises ValidationError for unknown IDs."""
        idx = self.resolve_id(variant_id)
        if idx is None:
            raise ValidationError(
                f"variant '{variant_id}' not found in variant metadata"
            )
        return idx

"""Sample subset index.

Builds, from a list of selected sample positions, the derived structures every
kernel uses to address a sample subset without copying the genotype matrix:

- sample_include: inclusion bitmask over the raw sample space, packed into
  little-endian uint64 words (bit j of word w is raw sample 64*w + j).
- include_mask: the same mask as a dense boolean vector, used for vectorised
  gathers and bulk genotype counting.
- cumulative_popcounts: per word, the number of selected samples in all
  preceding words. Together with a popcount of the masked word this turns
  any raw position into its position within the subset in O(1).

Selected positions are de-duplicated and sorted before the bitmask is built.
Genotype readers return subset results in ascending raw order, so position i
of any genotype vector is the i-th ascending selected sample.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING

import numpy as np

from plinkstats.core.errors import ValidationError

if TYPE_CHECKING:
    from plinkstats.io.metadata import SampleMetadata

BITS_PER_WORD = 64


@dataclass(frozen=True)
class SampleSubset:
    """Immutable sample subset built by build_sample_subset.

    Attributes:
        raw_sample_ct: Number of samples in the unfiltered matrix.
        sample_indices: Selected raw positions, ascending, dtype uint32.
        sample_include: Packed inclusion bitmask, dtype uint64.
        include_mask: Dense boolean inclusion mask of length raw_sample_ct.
        cumulative_popcounts: Selected samples before each word, dtype uint32.
    """

    raw_sample_ct: int
    sample_indices: np.ndarray
    sample_include: np.ndarray
    include_mask: np.ndarray
    cumulative_popcounts: np.ndarray

    @property
    def subset_sample_ct(self) -> int:
        """Number of selected samples."""
        return int(self.sample_indices.shape[0])

    def contains(self, raw_idx: int) -> bool:
        """Whether raw sample position raw_idx is selected."""
        if raw_idx < 0 or raw_idx >= self.raw_sample_ct:
            return False
        word_idx, bit = divmod(raw_idx, BITS_PER_WORD)
        return bool((int(self.sample_include[word_idx]) >> bit) & 1)

    def rank(self, raw_idx: int) -> int:
        """Count of selected raw positions that precede or equal raw_idx."""
        if raw_idx < 0:
            return 0
        if raw_idx >= self.raw_sample_ct:
            return self.subset_sample_ct
        word_idx, bit = divmod(raw_idx, BITS_PER_WORD)
        word = int(self.sample_include[word_idx])
        inclusive = word & ((2 << bit) - 1)
        return int(self.cumulative_popcounts[word_idx]) + inclusive.bit_count()

    def subset_position(self, raw_idx: int) -> int | None:
        """0-based position of raw_idx within the subset, or None if absent."""
        if not self.contains(raw_idx):
            return None
        return self.rank(raw_idx) - 1

    def subset_positions(self, raw_indices: np.ndarray) -> np.ndarray:
        """Vectorised subset_position; absent positions map to -1.

        Args:
            raw_indices: Integer array of raw positions, each < raw_sample_ct.

        Returns:
            int64 array of subset positions (or -1).
        """
        raw_indices = np.asarray(raw_indices, dtype=np.int64)
        word_idx = raw_indices // BITS_PER_WORD
        bit = (raw_indices % BITS_PER_WORD).astype(np.uint64)
        words = self.sample_include[word_idx]
        below = words & ((np.uint64(1) << bit) - np.uint64(1))
        positions = self.cumulative_popcounts[word_idx].astype(np.int64)
        positions += np.bitwise_count(below).astype(np.int64)
        present = ((words >> bit) & np.uint64(1)).astype(bool)
        return np.where(present, positions, -1)


def build_sample_subset(
    raw_sample_ct: int, sample_indices: Sequence[int] | np.ndarray
) -> SampleSubset:
    """Build a SampleSubset from selected 0-based raw sample positions.

    Args:
        raw_sample_ct: Number of samples in the unfiltered matrix.
        sample_indices: Selected raw positions, any order, each distinct.

    Returns:
        SampleSubset over raw_sample_ct samples.

    Raises:
        ValidationError: If the selection is empty, or any index is out of
            range or repeated. The message names the offending index.
    """
    indices = [int(i) for i in sample_indices]
    if not indices:
        raise ValidationError("samples list must not be empty")

    seen: set[int] = set()
    for idx in indices:
        if idx < 0 or idx >= raw_sample_ct:
            raise ValidationError(
                f"sample index {idx} out of range (sample count: {raw_sample_ct})"
            )
        if idx in seen:
            raise ValidationError(f"duplicate sample index {idx} in samples list")
        seen.add(idx)

    selected = np.array(sorted(indices), dtype=np.uint32)

    include_mask = np.zeros(raw_sample_ct, dtype=bool)
    include_mask[selected] = True

    word_ct = -(-raw_sample_ct // BITS_PER_WORD)
    padded = np.zeros(word_ct * BITS_PER_WORD, dtype=bool)
    padded[:raw_sample_ct] = include_mask
    sample_include = (
        np.packbits(padded, bitorder="little").view("<u8").astype(np.uint64)
    )

    # Exclusive prefix sum of per-word popcounts
    word_popcounts = np.bitwise_count(sample_include).astype(np.uint32)
    cumulative_popcounts = np.zeros(word_ct, dtype=np.uint32)
    if word_ct > 1:
        cumulative_popcounts[1:] = np.cumsum(word_popcounts[:-1], dtype=np.uint32)

    return SampleSubset(
        raw_sample_ct=raw_sample_ct,
        sample_indices=selected,
        sample_include=sample_include,
        include_mask=include_mask,
        cumulative_popcounts=cumulative_popcounts,
    )


def resolve_sample_indices(
    samples: Sequence[int] | Sequence[str],
    raw_sample_ct: int,
    sample_metadata: SampleMetadata | None = None,
) -> list[int]:
    """Translate a sample selection given by position or by IID into positions.

    Args:
        samples: Either all integer positions or all individual IDs.
        raw_sample_ct: Number of samples in the unfiltered matrix.
        sample_metadata: Required when samples are given as IIDs.

    Returns:
        List of raw positions in the order given (not yet de-duplicated).

    Raises:
        ValidationError: Empty selection, mixed types, out-of-range position,
            unknown or ambiguous IID, IIDs without sample metadata, duplicates.
    """
    samples = list(samples)
    if not samples:
        raise ValidationError("samples list must not be empty")

    if all(isinstance(s, str) for s in samples):
        if sample_metadata is None:
            raise ValidationError(
                "samples given as IDs require sample metadata (.psam/.fam) "
                "to match against"
            )
        indices = [sample_metadata.index_of(iid) for iid in samples]
    elif all(
        isinstance(s, (int, np.integer)) and not isinstance(s, bool) for s in samples
    ):
        indices = []
        for s in samples:
            idx = int(s)
            if idx < 0 or idx >= raw_sample_ct:
                raise ValidationError(
                    f"sample index {idx} out of range (sample count: {raw_sample_ct})"
                )
            indices.append(idx)
    else:
        raise ValidationError(
            "samples must be a list of integer positions or a list of IIDs"
        )

    seen: set[int] = set()
    for idx in indices:
        if idx in seen:
            raise ValidationError(f"duplicate sample index {idx} in samples list")
        seen.add(idx)
    return indices

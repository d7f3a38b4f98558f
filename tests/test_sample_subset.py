"""Tests for the sample subset index and sample selection."""

import numpy as np
import pytest

from plinkstats.core.errors import ValidationError
from plinkstats.core.sample_subset import (
    build_sample_subset,
    resolve_sample_indices,
)
from plinkstats.io.metadata import SampleMetadata


@pytest.mark.tier0
class TestBuildSampleSubset:
    """Tests for build_sample_subset()."""

    def test_sorts_selection(self):
        subset = build_sample_subset(130, [100, 5, 64, 3])
        np.testing.assert_array_equal(subset.sample_indices, [3, 5, 64, 100])
        assert subset.subset_sample_ct == 4

    def test_bitmask_words(self):
        subset = build_sample_subset(130, [0, 63, 64, 129])
        assert subset.sample_include.dtype == np.uint64
        assert len(subset.sample_include) == 3
        assert int(subset.sample_include[0]) == (1 << 63) | 1
        assert int(subset.sample_include[1]) == 1
        assert int(subset.sample_include[2]) == 1 << 1

    def test_cumulative_popcounts(self):
        subset = build_sample_subset(200, [1, 2, 70, 130, 131, 199])
        np.testing.assert_array_equal(subset.cumulative_popcounts, [0, 2, 3, 5])

    def test_contains(self):
        subset = build_sample_subset(10, [2, 7])
        assert subset.contains(2)
        assert subset.contains(7)
        assert not subset.contains(3)
        assert not subset.contains(-1)
        assert not subset.contains(10)

    def test_rank(self):
        subset = build_sample_subset(130, [3, 5, 64, 100])
        assert subset.rank(-1) == 0
        assert subset.rank(2) == 0
        assert subset.rank(3) == 1
        assert subset.rank(64) == 3
        assert subset.rank(99) == 3
        assert subset.rank(500) == 4

    def test_subset_position(self):
        subset = build_sample_subset(130, [3, 5, 64, 100])
        assert subset.subset_position(3) == 0
        assert subset.subset_position(64) == 2
        assert subset.subset_position(100) == 3
        assert subset.subset_position(4) is None

    def test_subset_positions_vectorised(self):
        subset = build_sample_subset(130, [3, 5, 64, 100])
        positions = subset.subset_positions(np.array([0, 3, 64, 65, 100]))
        np.testing.assert_array_equal(positions, [-1, 0, 2, -1, 3])

    def test_include_mask_matches_bitmask(self):
        subset = build_sample_subset(70, [0, 10, 69])
        assert subset.include_mask.sum() == 3
        for i in range(70):
            assert subset.include_mask[i] == subset.contains(i)

    def test_empty_raises(self):
        with pytest.raises(ValidationError, match="must not be empty"):
            build_sample_subset(10, [])

    def test_out_of_range_raises(self):
        with pytest.raises(ValidationError, match="sample index 10 out of range"):
            build_sample_subset(10, [1, 10])

    def test_negative_raises(self):
        with pytest.raises(ValidationError, match="-1"):
            build_sample_subset(10, [-1])

    def test_duplicate_raises(self):
        with pytest.raises(ValidationError, match="duplicate sample index 4"):
            build_sample_subset(10, [4, 2, 4])


@pytest.mark.tier0
class TestResolveSampleIndices:
    """Tests for resolve_sample_indices()."""

    @pytest.fixture
    def samples(self) -> SampleMetadata:
        return SampleMetadata(
            individual_id=np.array(["a", "b", "c", "b"], dtype=object),
            family_id=np.array(["f1", "f1", "f2", "f3"], dtype=object),
        )

    def test_positions_pass_through(self):
        assert resolve_sample_indices([3, 0, 1], 4) == [3, 0, 1]

    def test_numpy_integers_accepted(self):
        assert resolve_sample_indices(np.array([2, 1]), 4) == [2, 1]

    def test_iids_resolved(self, samples):
        assert resolve_sample_indices(["c", "a"], 4, samples) == [2, 0]

    def test_unknown_iid_raises(self, samples):
        with pytest.raises(ValidationError, match="'z' not found"):
            resolve_sample_indices(["z"], 4, samples)

    def test_ambiguous_iid_raises(self, samples):
        with pytest.raises(ValidationError, match="ambiguous"):
            resolve_sample_indices(["b"], 4, samples)

    def test_duplicate_iid_position_still_selectable(self, samples):
        assert resolve_sample_indices([1, 3], 4, samples) == [1, 3]

    def test_iids_without_metadata_raise(self):
        with pytest.raises(ValidationError, match="require sample metadata"):
            resolve_sample_indices(["a"], 4)

    def test_mixed_types_raise(self, samples):
        with pytest.raises(ValidationError, match="integer positions or a list"):
            resolve_sample_indices([0, "a"], 4, samples)

    def test_bools_rejected(self):
        with pytest.raises(ValidationError):
            resolve_sample_indices([True, False], 4)

    def test_duplicate_raises(self, samples):
        with pytest.raises(ValidationError, match="duplicate sample index 0"):
            resolve_sample_indices(["a", "a"], 4, samples)

    def test_empty_raises(self):
        with pytest.raises(ValidationError, match="must not be empty"):
            resolve_sample_indices([], 4)

"""Tests for union.py - inclusion-exclusion with truncation."""

import pytest
import numpy as np

from risk_aggregation import ConvergenceConfig, inclusion_exclusion
from risk_aggregation.joint import independent_joint
from risk_aggregation.union import independent_union, negative_union, positive_union


class TestClosedFormUnion:
    """Tests for the closed-form unions."""

    def test_independent(self):
        """Test De Morgan's rule."""
        assert independent_union([0.2, 0.3, 0.4]) == pytest.approx(0.664)

    def test_independent_single_event(self):
        """Test the union of one event is its probability."""
        assert independent_union([0.3]) == pytest.approx(0.3)

    def test_positive(self):
        """Test perfect positive dependence gives the maximum."""
        assert positive_union([0.2, 0.3, 0.4]) == pytest.approx(0.4)

    def test_negative(self):
        """Test perfect negative dependence gives the capped sum."""
        assert negative_union([0.1, 0.2]) == pytest.approx(0.3)
        assert negative_union([0.5, 0.6]) == 1.0


class TestInclusionExclusion:
    """Tests for the inclusion-exclusion engine."""

    def test_full_enumeration_matches_closed_form(self):
        """Test the untruncated sum equals De Morgan's rule."""
        config = ConvergenceConfig(truncate=False)
        result = inclusion_exclusion([0.2, 0.3, 0.4], independent_joint, config)
        assert result.probability == pytest.approx(0.664, abs=1e-12)
        assert not result.truncated
        assert result.indicators.shape == (7, 3)

    def test_truncation(self):
        """Test early termination for small probabilities."""
        p = np.full(6, 0.01)
        result = inclusion_exclusion(p, independent_joint)
        assert result.truncated
        assert result.probability == pytest.approx(1.0 - 0.99 ** 6, abs=1e-6)
        assert result.num_evaluated < 63
        np.testing.assert_array_equal(result.indicators[-1], np.ones(6))
        assert result.joint_probabilities[-1] == pytest.approx(0.5 * result.gap)

    def test_truncation_disabled(self):
        """Test every subset is evaluated when truncation is off."""
        p = np.full(6, 0.01)
        result = inclusion_exclusion(p, independent_joint, ConvergenceConfig(truncate=False))
        assert not result.truncated
        assert result.num_evaluated == 63

    def test_no_truncation_for_large_probabilities(self, four_event_probabilities):
        """Test that slowly converging sums run to completion."""
        result = inclusion_exclusion(four_event_probabilities, independent_joint)
        assert not result.truncated
        assert result.probability == pytest.approx(0.878125)

    def test_single_event(self):
        """Test a single event."""
        result = inclusion_exclusion([0.3], independent_joint)
        assert result.probability == pytest.approx(0.3)
        assert not result.truncated

    def test_result_clamped(self):
        """Test the union stays within [0, 1]."""
        result = inclusion_exclusion([0.9, 0.9, 0.9], lambda p, ind: 0.0,
                                     ConvergenceConfig(truncate=False))
        assert result.probability == 1.0

    def test_invalid_probability(self):
        """Test that probabilities outside [0, 1] raise error."""
        with pytest.raises(ValueError, match="between 0 and 1"):
            inclusion_exclusion([0.2, -0.1], independent_joint)

    def test_invalid_config(self):
        """Test that negative tolerances raise error."""
        with pytest.raises(ValueError, match="non-negative"):
            inclusion_exclusion([0.2, 0.3], independent_joint,
                                ConvergenceConfig(absolute_tolerance=-1.0))

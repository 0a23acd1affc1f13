"""Tests for probability.py - functional entry points and two-event rules."""

import pytest
import numpy as np

from risk_aggregation import (
    a_and_b,
    a_given_b,
    a_not_b,
    a_or_b,
    b_given_a,
    b_not_a,
    common_cause_adjustment,
    exclusive,
    joint_probability,
    mutually_exclusive_adjustment,
    union,
)


class TestTwoEventRules:
    """Tests for the two-event probability rules."""

    def test_correlated_rules(self):
        """Test all rules for correlated events."""
        a, b, rho = 0.15, 0.62, 0.75
        assert a_and_b(a, b, rho) == pytest.approx(0.146934, abs=1e-5)
        assert a_or_b(a, b, rho) == pytest.approx(0.623066, abs=1e-5)
        assert a_not_b(a, b, rho) == pytest.approx(0.003066, abs=1e-5)
        assert b_not_a(a, b, rho) == pytest.approx(0.473066, abs=1e-5)
        assert a_given_b(a, b, rho) == pytest.approx(0.236991, abs=1e-4)
        assert b_given_a(a, b, rho) == pytest.approx(0.979562, abs=1e-4)

    def test_independent(self):
        """Test near-zero correlation gives the product."""
        assert a_and_b(0.15, 0.62) == pytest.approx(0.093)
        assert a_and_b(0.15, 0.62, 5e-4) == pytest.approx(0.093)

    def test_perfect_correlation(self):
        """Test near-perfect correlation gives the minimum."""
        assert a_and_b(0.15, 0.62, 0.9995) == pytest.approx(0.15)


class TestFunctionalSurface:
    """Tests for joint_probability, union and exclusive."""

    def test_joint_probability(self):
        """Test the joint probability under each dependency."""
        p = [0.5, 0.5, 0.5]
        assert joint_probability(p) == pytest.approx(0.125)
        assert joint_probability(p, dependency="perfectly_positive") == pytest.approx(0.5)
        assert joint_probability(p, dependency="perfectly_negative") == 0.0

    def test_joint_probability_with_indicators(self):
        """Test that excluded events are unconstrained."""
        assert joint_probability([0.2, 0.3, 0.4], [1, 0, 1]) == pytest.approx(0.08)

    def test_union(self, four_event_probabilities, negative_correlation_matrix):
        """Test the union under each dependency."""
        assert union([0.2, 0.3, 0.4]) == pytest.approx(0.664)
        assert union([0.2, 0.3, 0.4], dependency="perfectly_positive") == pytest.approx(0.4)
        assert union([0.2, 0.3, 0.4], dependency="perfectly_negative") == pytest.approx(0.9)
        result = union(four_event_probabilities, dependency="correlation_matrix",
                       correlation_matrix=negative_correlation_matrix)
        assert result == pytest.approx(0.985016583, abs=1e-2)

    def test_exclusive(self, four_event_probabilities):
        """Test exclusive probabilities sum to the union."""
        assert np.sum(exclusive(four_event_probabilities)) == pytest.approx(0.878125)
        assert np.sum(exclusive(four_event_probabilities,
                                dependency="perfectly_positive")) == pytest.approx(0.5)


class TestAdjustments:
    """Tests for the adjustment factors."""

    def test_common_cause_independent(self):
        """Test the common-cause factor for independent events."""
        assert common_cause_adjustment([0.2, 0.3, 0.4]) == pytest.approx((1 - 0.336) / 0.9)

    def test_common_cause_identity_matrix(self):
        """Test identity correlation matches independence."""
        result = common_cause_adjustment([0.2, 0.3, 0.4], correlation_matrix=np.eye(3))
        assert result == pytest.approx((1 - 0.336) / 0.9, abs=1e-6)

    def test_common_cause_positive(self):
        """Test the common-cause factor under perfect positive dependence."""
        result = common_cause_adjustment([0.2, 0.3, 0.4], dependency="perfectly_positive")
        assert result == pytest.approx(0.4 / 0.9)

    def test_common_cause_trivial(self):
        """Test a single event or zero total gives one."""
        assert common_cause_adjustment([0.3]) == 1.0
        assert common_cause_adjustment([0.0, 0.0]) == 1.0

    def test_mutually_exclusive(self):
        """Test scaling only applies when the total exceeds one."""
        assert mutually_exclusive_adjustment([0.6, 0.7]) == pytest.approx(1 / 1.3)
        assert mutually_exclusive_adjustment([0.2, 0.3]) == 1.0
        assert mutually_exclusive_adjustment([0.9]) == 1.0

"""Tests for solvers.py - numerical helpers."""

import pytest
import numpy as np

from risk_aggregation import SolverConfig, stratify_x_values
from risk_aggregation.solvers import bracket, derivative, maximize_scalar, solve


class TestStratification:
    """Tests for x-range stratification."""

    def test_linear(self):
        """Test equal-width bins."""
        bins = stratify_x_values(0.0, 10.0, 5)
        assert len(bins) == 5
        assert bins[0].width == pytest.approx(2.0)
        assert bins[-1].upper_bound == pytest.approx(10.0)
        assert bins[2].midpoint == pytest.approx(5.0)

    def test_logarithmic(self):
        """Test bins equal in log space."""
        bins = stratify_x_values(1.0, 100.0, 2, logarithmic=True)
        assert bins[0].upper_bound == pytest.approx(10.0)

    def test_logarithmic_requires_positive(self):
        """Test that log stratification needs a positive lower bound."""
        with pytest.raises(ValueError, match="positive lower bound"):
            stratify_x_values(0.0, 10.0, 5, logarithmic=True)

    def test_invalid_range(self):
        """Test that an empty range raises error."""
        with pytest.raises(ValueError, match="Upper bound must exceed"):
            stratify_x_values(1.0, 1.0, 5)


class TestRootFinding:
    """Tests for bracketing and Brent's method."""

    def test_bracket_expands(self):
        """Test the bracket grows until it contains the root."""
        lower, upper, f1, f2 = bracket(lambda x: x - 5.0, 0.0, 1.0)
        assert lower <= 5.0 <= upper
        assert f1 * f2 <= 0

    def test_bracket_fails(self):
        """Test that a function without roots raises error."""
        with pytest.raises(RuntimeError, match="Unable to bracket"):
            bracket(lambda x: x * x + 1.0, -1.0, 1.0)

    def test_solve(self):
        """Test solving cos(x) = x."""
        result = solve(lambda x: np.cos(x) - x, 0.0, 1.0)
        assert result.converged
        assert result.value == pytest.approx(0.739085, abs=1e-5)

    def test_solve_zero_width(self):
        """Test a degenerate starting range is widened."""
        result = solve(lambda x: x - 2.0, 2.0, 2.0)
        assert result.converged
        assert result.value == pytest.approx(2.0, abs=1e-5)

    def test_solve_failure(self):
        """Test failures are reported in the result."""
        result = solve(lambda x: x * x + 1.0, -1.0, 1.0, SolverConfig(bracket_iterations=3))
        assert result.failed
        assert np.isnan(result.value)


class TestCalculus:
    """Tests for differentiation and maximization."""

    def test_derivative(self):
        """Test the central difference of sin at zero."""
        assert derivative(np.sin, 0.0) == pytest.approx(1.0, abs=1e-8)

    def test_derivative_fixed_step(self):
        """Test a user-supplied step."""
        assert derivative(lambda x: x ** 2, 3.0, step=1e-3) == pytest.approx(6.0, abs=1e-6)

    def test_maximize_scalar(self):
        """Test locating the maximum of a parabola."""
        assert maximize_scalar(lambda x: -(x - 2.0) ** 2, 0.0, 5.0) == pytest.approx(2.0, abs=1e-5)

"""Configuration objects for the aggregation engines and the competing-risks solver."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class ConvergenceConfig:
    """Convergence settings for the inclusion-exclusion enumeration.

    Attributes:
        absolute_tolerance: Largest inclusion/exclusion gap accepted for early
            termination.
        relative_tolerance: Largest gap relative to the smaller partial sum.
        truncate: If False, every subset is evaluated.
        max_workers: Worker threads for batch joint evaluation (None lets the
            executor decide, 1 evaluates serially).
    """

    absolute_tolerance: float = 1e-4
    relative_tolerance: float = 1e-4
    truncate: bool = True
    max_workers: Optional[int] = None

    def validate(self) -> None:
        if float(self.absolute_tolerance) < 0.0 or float(self.relative_tolerance) < 0.0:
            raise ValueError("absolute_tolerance and relative_tolerance must be non-negative")
        if self.max_workers is not None and int(self.max_workers) <= 0:
            raise ValueError("max_workers must be positive")


@dataclass(frozen=True)
class SolverConfig:
    """Numerical settings used by the competing-risks distribution.

    Attributes:
        tolerance: Absolute x-tolerance of the Brent root finder.
        max_iterations: Iteration cap of the Brent root finder.
        bracket_factor: Geometric expansion factor used while bracketing.
        bracket_iterations: Number of bracket expansions attempted.
        derivative_step: Fixed step for numerical differentiation (None picks a
            step relative to x).
        moment_steps: Number of stratification bins used for central moments.
        minimum_bins: Lower bound on the number of empirical CDF bins.
    """

    tolerance: float = 1e-6
    max_iterations: int = 100
    bracket_factor: float = 1.6
    bracket_iterations: int = 10
    derivative_step: Optional[float] = None
    moment_steps: int = 1000
    minimum_bins: int = 200

    def validate(self) -> None:
        if float(self.tolerance) <= 0.0:
            raise ValueError("tolerance must be positive")
        if int(self.max_iterations) <= 0:
            raise ValueError("max_iterations must be positive")
        if float(self.bracket_factor) <= 1.0:
            raise ValueError("bracket_factor must be greater than 1")
        if int(self.bracket_iterations) <= 0:
            raise ValueError("bracket_iterations must be positive")
        if self.derivative_step is not None and float(self.derivative_step) <= 0.0:
            raise ValueError("derivative_step must be positive")
        if int(self.moment_steps) < 3:
            raise ValueError("moment_steps must be at least 3")
        if int(self.minimum_bins) < 2:
            raise ValueError("minimum_bins must be at least 2")

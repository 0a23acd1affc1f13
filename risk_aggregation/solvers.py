"""Numerical helpers: root bracketing and solving, differentiation, stratification."""

from dataclasses import dataclass
from typing import Callable, List, Optional, Tuple

import numpy as np
from scipy.optimize import brentq, minimize_scalar

from .config import SolverConfig

CONVERGED = "converged"
DEGRADED = "degraded"
FAILED = "failed"


@dataclass
class RootResult:
    """Outcome of a root search.

    Attributes:
        value: The root (NaN when the search failed)
        status: 'converged' (root finder), 'degraded' (fallback approximation)
            or 'failed'
        iterations: Iterations used by the root finder
        message: Reason for a degraded or failed result
    """
    value: float
    status: str
    iterations: int = 0
    message: str = ""

    @property
    def converged(self) -> bool:
        return self.status == CONVERGED

    @property
    def failed(self) -> bool:
        return self.status == FAILED


@dataclass
class StratificationBin:
    """A bin [lower_bound, upper_bound] of a stratified x range."""
    lower_bound: float
    upper_bound: float

    @property
    def midpoint(self) -> float:
        return 0.5 * (self.lower_bound + self.upper_bound)

    @property
    def width(self) -> float:
        return self.upper_bound - self.lower_bound


def stratify_x_values(lower: float, upper: float, number_of_bins: int,
                      logarithmic: bool = False) -> List[StratificationBin]:
    """Split [lower, upper] into equal-width bins (equal in log space if requested).

    Args:
        lower: Lower end of the range
        upper: Upper end of the range
        number_of_bins: Number of bins
        logarithmic: Space the bin edges evenly in log10(x)

    Returns:
        List of StratificationBin in increasing order
    """
    if number_of_bins < 1:
        raise ValueError(f"Number of bins must be at least 1, got {number_of_bins}")
    if not upper > lower:
        raise ValueError(f"Upper bound must exceed lower bound, got [{lower}, {upper}]")
    if logarithmic:
        if lower <= 0:
            raise ValueError(f"Logarithmic stratification requires a positive lower bound, got {lower}")
        edges = np.logspace(np.log10(lower), np.log10(upper), number_of_bins + 1)
    else:
        edges = np.linspace(lower, upper, number_of_bins + 1)
    return [StratificationBin(float(edges[i]), float(edges[i + 1]))
            for i in range(number_of_bins)]


def bracket(f: Callable[[float], float], lower: float, upper: float,
            factor: float = 1.6, iterations: int = 10) -> Tuple[float, float, float, float]:
    """Expand [lower, upper] geometrically until f changes sign.

    The endpoint with the smaller |f| is moved outward each iteration.

    Returns:
        Tuple of (lower, upper, f(lower), f(upper))

    Raises:
        ValueError: If the initial range has zero width
        RuntimeError: If no sign change is found
    """
    if lower == upper:
        raise ValueError("Initial bracket has zero width")
    f1 = f(lower)
    f2 = f(upper)
    for _ in range(iterations):
        if f1 * f2 <= 0:
            return lower, upper, f1, f2
        if abs(f1) < abs(f2):
            lower += factor * (lower - upper)
            f1 = f(lower)
        else:
            upper += factor * (upper - lower)
            f2 = f(upper)
    if f1 * f2 <= 0:
        return lower, upper, f1, f2
    raise RuntimeError(f"Unable to bracket a root after {iterations} expansions")


def solve(f: Callable[[float], float], lower: float, upper: float,
          config: Optional[SolverConfig] = None) -> RootResult:
    """Bracket and solve f(x) = 0 with Brent's method.

    Failures are reported through the result status rather than raised.
    """
    config = config or SolverConfig()
    if lower == upper:
        width = 0.1 * abs(lower) if lower != 0 else 0.1
        lower, upper = lower - width, upper + width
    try:
        a, b, _, _ = bracket(f, lower, upper, config.bracket_factor, config.bracket_iterations)
        root, info = brentq(f, a, b, xtol=config.tolerance, maxiter=config.max_iterations,
                            full_output=True, disp=False)
    except (ValueError, RuntimeError, FloatingPointError) as e:
        return RootResult(value=float("nan"), status=FAILED, message=str(e))
    if not info.converged:
        return RootResult(value=float(root), status=FAILED, iterations=info.iterations,
                          message=info.flag)
    return RootResult(value=float(root), status=CONVERGED, iterations=info.iterations)


def derivative(f: Callable[[float], float], x: float, step: Optional[float] = None) -> float:
    """Central difference approximation of f'(x)."""
    h = step if step is not None else np.cbrt(np.finfo(float).eps) * max(1.0, abs(x))
    return (f(x + h) - f(x - h)) / (2.0 * h)


def maximize_scalar(f: Callable[[float], float], lower: float, upper: float) -> float:
    """Location of the maximum of f on [lower, upper] (bounded Brent search)."""
    result = minimize_scalar(lambda x: -f(x), bounds=(lower, upper), method="bounded",
                             options={"xatol": 1e-8 * max(1.0, abs(upper - lower))})
    return float(result.x)

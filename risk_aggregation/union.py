"""Probability of union by inclusion-exclusion with early truncation."""

import logging
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence, Union

import numpy as np

from .combinatorics import all_combinations, binomial_group_sizes
from .config import ConvergenceConfig

logger = logging.getLogger(__name__)

ArrayLike = Union[Sequence[float], np.ndarray]


@dataclass
class UnionResult:
    """Outcome of an inclusion-exclusion enumeration.

    Attributes:
        probability: Probability that at least one event occurs
        indicators: Indicator rows that were evaluated, in enumeration order
        joint_probabilities: Joint probability of each evaluated row
        truncated: Whether the enumeration stopped before the last subset group
        gap: Final |inclusion - exclusion| difference (NaN if never compared)
    """
    probability: float
    indicators: np.ndarray
    joint_probabilities: np.ndarray
    truncated: bool = False
    gap: float = float("nan")

    @property
    def num_evaluated(self) -> int:
        """Number of joint probabilities computed (bias row excluded)."""
        return len(self.joint_probabilities) - (1 if self.truncated else 0)


def _clamp(value: float) -> float:
    return min(1.0, max(0.0, float(value)))


def independent_union(probabilities: ArrayLike) -> float:
    """1 - Π(1 - p) (De Morgan's rule for independent events)."""
    p = np.asarray(probabilities, dtype=float)
    if p.size == 1:
        return float(p[0])
    return float(1.0 - np.prod(1.0 - p))


def positive_union(probabilities: ArrayLike) -> float:
    """Largest probability (perfect positive dependence)."""
    return float(np.max(probabilities))


def negative_union(probabilities: ArrayLike) -> float:
    """min(1, Σp) (perfect negative dependence)."""
    return float(min(1.0, np.sum(probabilities)))


def inclusion_exclusion(probabilities: ArrayLike,
                        joint: Callable[[np.ndarray, np.ndarray], float],
                        config: Optional[ConvergenceConfig] = None,
                        indicators: Optional[np.ndarray] = None) -> UnionResult:
    """Accumulate the union probability over subsets in increasing size.

    The sign alternates with subset size. After each size group the running
    total is recorded as the latest inclusion (odd sizes) or exclusion (even
    sizes) partial sum. Once both are known and their gap is within the
    absolute and relative tolerances, the enumeration stops and returns the
    running total plus half the gap. On truncation the all-events row is
    appended to the evaluated rows with the half gap as its probability.

    Args:
        probabilities: Marginal probability of each event
        joint: Callable (probabilities, indicator_row) -> joint probability
        config: Tolerances; defaults to ConvergenceConfig()
        indicators: Pre-computed enumeration (defaults to all_combinations)

    Returns:
        UnionResult
    """
    config = config or ConvergenceConfig()
    config.validate()
    p = np.asarray(probabilities, dtype=float)
    n = p.size
    if n == 0:
        raise ValueError("At least one probability is required")
    if np.any(p < 0) or np.any(p > 1):
        raise ValueError(f"Probabilities must be between 0 and 1, got {p}")
    if indicators is None:
        indicators = all_combinations(n)
    groups = binomial_group_sizes(n)

    rows: List[int] = []
    values: List[float] = []
    running = 0.0
    sign = 1.0
    group = 0
    boundary = int(groups[0])
    included = float("nan")
    excluded = float("nan")
    gap = float("nan")

    for i in range(indicators.shape[0]):
        if i == boundary:
            if group > 0 and sign == 1.0:
                included = running
            elif group > 0 and sign == -1.0:
                excluded = running
            gap = abs(included - excluded)
            if (config.truncate and 0 < group < len(groups)
                    and gap <= config.absolute_tolerance
                    and gap <= config.relative_tolerance * min(included, excluded)):
                logger.debug("Inclusion-exclusion truncated after subset size %d (gap=%.3g)",
                             group + 1, gap)
                bias = 0.5 * gap
                rows_out = np.vstack([indicators[rows], indicators[-1]])
                return UnionResult(
                    probability=_clamp(running + bias),
                    indicators=rows_out,
                    joint_probabilities=np.array(values + [bias]),
                    truncated=True,
                    gap=float(gap),
                )
            sign = -sign
            group += 1
            if group < len(groups):
                boundary += int(groups[group])

        events = np.flatnonzero(indicators[i])
        if events.size == 1:
            jp = float(p[events[0]])
        else:
            jp = float(joint(p, indicators[i]))
        rows.append(i)
        values.append(jp)
        running += sign * jp

    return UnionResult(
        probability=_clamp(running),
        indicators=indicators[rows],
        joint_probabilities=np.array(values),
        truncated=False,
        gap=float(gap),
    )

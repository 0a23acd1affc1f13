"""Probabilities of exact occurrence patterns (exclusive events).

For a pattern S, the probability that exactly the events in S occur follows
from the joint probabilities of S and its supersets:

    P(exactly S) = Σ_{T ⊇ S} (-1)^(|T| - |S|) P(all of T)
"""

from dataclasses import dataclass
from typing import Callable, Optional, Sequence, Union

import numpy as np

from .combinatorics import all_combinations, subset_sizes
from .config import ConvergenceConfig
from .union import UnionResult, inclusion_exclusion

ArrayLike = Union[Sequence[float], np.ndarray]


@dataclass
class ExclusiveResult:
    """Exclusive probabilities for the evaluated occurrence patterns.

    Attributes:
        indicators: Occurrence pattern of each entry
        probabilities: Probability that exactly that pattern occurs
        union: The inclusion-exclusion run the patterns were derived from
    """
    indicators: np.ndarray
    probabilities: np.ndarray
    union: UnionResult

    @property
    def none_probability(self) -> float:
        """Probability that no event occurs."""
        return max(0.0, 1.0 - float(np.sum(self.probabilities)))


def exclusive_from_joint(joint_probabilities: ArrayLike, indicators: np.ndarray) -> np.ndarray:
    """Convert joint probabilities of indicator rows into exclusive probabilities.

    Only supersets present among the given rows contribute, so a truncated
    enumeration yields an approximation. Negative results from floating point
    cancellation are clamped to zero.

    Args:
        joint_probabilities: Joint probability of each row
        indicators: Indicator matrix of shape (rows, events)

    Returns:
        Array with the exclusive probability of each row
    """
    joint = np.asarray(joint_probabilities, dtype=float)
    rows = np.asarray(indicators).astype(bool)
    if rows.shape[0] != joint.size:
        raise ValueError(
            f"Expected one joint probability per indicator row ({rows.shape[0]}), got {joint.size}"
        )
    sizes = subset_sizes(rows)
    result = np.empty(joint.size)
    for i in range(joint.size):
        supersets = np.all(rows[:, rows[i]], axis=1)
        signs = np.where((sizes[supersets] - sizes[i]) % 2 == 0, 1.0, -1.0)
        result[i] = np.sum(signs * joint[supersets])
    return np.maximum(result, 0.0)


def _pattern_matrix(probabilities: np.ndarray, indicators: Optional[ArrayLike]) -> np.ndarray:
    if indicators is None:
        return all_combinations(probabilities.size).astype(bool)
    rows = np.atleast_2d(np.asarray(indicators))
    if rows.shape[1] != probabilities.size:
        raise ValueError(
            f"Indicators must have {probabilities.size} columns, got shape {rows.shape}"
        )
    return rows.astype(bool)


def independent_exclusive(probabilities: ArrayLike,
                          indicators: Optional[ArrayLike] = None) -> np.ndarray:
    """Π p over occurred events times Π (1 - p) over the others.

    Args:
        probabilities: Marginal probability of each event
        indicators: One pattern or a matrix of patterns (defaults to every
            non-empty pattern in enumeration order)

    Returns:
        Array with one probability per pattern (NaN if any probability is NaN)
    """
    p = np.asarray(probabilities, dtype=float)
    rows = _pattern_matrix(p, indicators)
    return np.prod(np.where(rows, p, 1.0 - p), axis=1)


def positive_exclusive(probabilities: ArrayLike,
                       indicators: Optional[ArrayLike] = None) -> np.ndarray:
    """max(min(occurred) - max(not occurred), 0) under perfect positive dependence."""
    p = np.asarray(probabilities, dtype=float)
    rows = _pattern_matrix(p, indicators)
    lowest = np.min(np.where(rows, p, 1.0), axis=1)
    highest = np.max(np.where(rows, 0.0, p), axis=1)
    result = np.maximum(lowest - highest, 0.0)
    if np.any(np.isnan(p)):
        result[:] = np.nan
    return result


def truncated_exclusive(probabilities: ArrayLike,
                        joint: Callable[[np.ndarray, np.ndarray], float],
                        config: Optional[ConvergenceConfig] = None) -> ExclusiveResult:
    """Exclusive probabilities reusing the joint values of a truncated union.

    The inclusion-exclusion enumeration stops as soon as it converges; the
    exclusive probabilities are derived from the rows it evaluated, with the
    bias-correction row standing in for every unevaluated superset.
    """
    result = inclusion_exclusion(probabilities, joint, config)
    values = exclusive_from_joint(result.joint_probabilities, result.indicators)
    return ExclusiveResult(indicators=result.indicators, probabilities=values, union=result)

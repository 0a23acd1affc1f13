"""Probability rules for dependent events.

Functional entry points over the dependency models, two-event rules with a
Gaussian copula correlation, and adjustment factors used when combining
event probabilities.
"""

from typing import Optional, Sequence, Union

import numpy as np

from .config import ConvergenceConfig
from .copula import bivariate_normal_cdf, standard_z
from .dependency import DependencyType, create_dependency_model

ArrayLike = Union[Sequence[float], np.ndarray]
DependencyLike = Union[DependencyType, str]


def joint_probability(probabilities: ArrayLike,
                      indicators: Optional[ArrayLike] = None,
                      dependency: DependencyLike = DependencyType.INDEPENDENT,
                      correlation_matrix: Optional[ArrayLike] = None,
                      method: str = "hpcm") -> float:
    """Probability that every indicated event occurs.

    Args:
        probabilities: Marginal probability of each event
        indicators: 0/1 inclusion flags (None includes every event)
        dependency: Dependency type
        correlation_matrix: Required for correlation matrix dependency
        method: 'hpcm', 'pcm' or 'mvn' for correlation matrix dependency

    Returns:
        Joint probability
    """
    model = create_dependency_model(dependency, correlation_matrix, method=method)
    return model.joint(probabilities, indicators)


def union(probabilities: ArrayLike,
          dependency: DependencyLike = DependencyType.INDEPENDENT,
          correlation_matrix: Optional[ArrayLike] = None,
          method: str = "hpcm",
          config: Optional[ConvergenceConfig] = None) -> float:
    """Probability that at least one event occurs.

    Correlated events go through inclusion-exclusion with early truncation
    controlled by `config`; the other dependency types use closed forms.
    """
    model = create_dependency_model(dependency, correlation_matrix, method=method, config=config)
    return model.union(probabilities)


def exclusive(probabilities: ArrayLike,
              dependency: DependencyLike = DependencyType.INDEPENDENT,
              correlation_matrix: Optional[ArrayLike] = None,
              method: str = "hpcm",
              config: Optional[ConvergenceConfig] = None) -> np.ndarray:
    """Probability of every exact occurrence pattern.

    Patterns follow the enumeration of
    :func:`risk_aggregation.combinatorics.all_combinations`; the probability
    that no event occurs is one minus their sum.
    """
    model = create_dependency_model(dependency, correlation_matrix, method=method, config=config)
    return model.exclusive(probabilities)


def a_and_b(a: float, b: float, rho: float = 0.0) -> float:
    """P(A and B) for events whose latent normals have correlation rho."""
    if abs(rho) <= 1e-3:
        return a * b
    if rho >= 0.999:
        return min(a, b)
    return bivariate_normal_cdf(standard_z(a), standard_z(b), rho)


def a_or_b(a: float, b: float, rho: float = 0.0) -> float:
    """P(A or B)."""
    return a + b - a_and_b(a, b, rho)


def a_not_b(a: float, b: float, rho: float = 0.0) -> float:
    """P(A and not B)."""
    return a - a_and_b(a, b, rho)


def b_not_a(a: float, b: float, rho: float = 0.0) -> float:
    """P(B and not A)."""
    return b - a_and_b(a, b, rho)


def a_given_b(a: float, b: float, rho: float = 0.0) -> float:
    """P(A | B)."""
    return a_and_b(a, b, rho) / b


def b_given_a(a: float, b: float, rho: float = 0.0) -> float:
    """P(B | A)."""
    return a_and_b(a, b, rho) / a


def common_cause_adjustment(probabilities: ArrayLike,
                            correlation_matrix: Optional[ArrayLike] = None,
                            dependency: Optional[DependencyLike] = None) -> float:
    """Ratio of the union probability to the sum of the event probabilities.

    Multiplying summed failure probabilities by this factor removes the double
    counting of common-cause outcomes. Without a correlation matrix or
    dependency the events are taken as independent.

    Returns:
        (1 - P(no event occurs)) / Σp, or 1 for a single event or Σp = 0
    """
    p = np.asarray(probabilities, dtype=float)
    if p.size == 1:
        return 1.0
    denominator = float(np.sum(p))
    if denominator == 0:
        return 1.0
    if dependency is None:
        dependency = (DependencyType.INDEPENDENT if correlation_matrix is None
                      else DependencyType.CORRELATION_MATRIX)
    model = create_dependency_model(dependency, correlation_matrix)
    none_occur = model.joint(1.0 - p)
    return (1.0 - none_occur) / denominator


def mutually_exclusive_adjustment(probabilities: ArrayLike) -> float:
    """Scale factor 1/Σp that makes the events mutually exclusive when Σp > 1."""
    p = np.asarray(probabilities, dtype=float)
    if p.size == 1:
        return 1.0
    total = float(np.sum(p))
    if total <= 1:
        return 1.0
    return 1.0 / total

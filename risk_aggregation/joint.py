"""Joint probability of several events under a dependency model.

Every function returns P(all indicated events occur). An indicator of 1
includes the event in the intersection; an indicator of 0 leaves the event
unconstrained. When no indicators are given every event is included.

Correlated events are handled with two product-of-conditional-marginals
recurrences on a Gaussian copula:

- HPCM conditions each pivot with the exact bivariate normal CDF
  (exact for two events).
- PCM uses the moments of the truncated normal in closed form (faster,
  approximate).

An exact multivariate normal orthant probability is available for
verification.
"""

from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Optional, Sequence, Tuple, Union

import numpy as np
from scipy.special import log_ndtr, ndtr, ndtri

from .copula import GaussianCopula, bivariate_normal_cdf

ArrayLike = Union[Sequence[float], np.ndarray]


def _prepare(probabilities: ArrayLike,
             indicators: Optional[ArrayLike] = None) -> Tuple[np.ndarray, np.ndarray]:
    """Validate inputs and return (probabilities, boolean inclusion mask)."""
    p = np.asarray(probabilities, dtype=float)
    if p.ndim != 1 or p.size == 0:
        raise ValueError("Probabilities must be a non-empty 1-D sequence")
    if np.any(p < 0) or np.any(p > 1):
        raise ValueError(f"Probabilities must be between 0 and 1, got {p}")
    if indicators is None:
        return p, np.ones(p.size, dtype=bool)
    ind = np.asarray(indicators)
    if ind.shape != p.shape:
        raise ValueError(
            f"Indicators must have the same length as probabilities "
            f"({p.size}), got {ind.shape}"
        )
    if not np.all((ind == 0) | (ind == 1)):
        raise ValueError("Indicators must contain only 0 and 1")
    return p, ind == 1


def independent_joint(probabilities: ArrayLike,
                      indicators: Optional[ArrayLike] = None) -> float:
    """Product of the included probabilities."""
    p, included = _prepare(probabilities, indicators)
    return float(np.prod(p[included]))


def positive_joint(probabilities: ArrayLike,
                   indicators: Optional[ArrayLike] = None) -> float:
    """Smallest included probability (perfect positive dependence)."""
    p, included = _prepare(probabilities, indicators)
    if not np.any(included):
        return 1.0
    return float(np.min(p[included]))


def negative_joint(probabilities: ArrayLike,
                   indicators: Optional[ArrayLike] = None) -> float:
    """Fréchet lower bound max(0, Σp - (n - 1)) over the included events."""
    p, included = _prepare(probabilities, indicators)
    n = int(np.count_nonzero(included))
    if n == 0:
        return 1.0
    return float(min(1.0, max(0.0, np.sum(p[included]) - (n - 1))))


def _conditioning_setup(probabilities, indicators, correlation_matrix):
    """Reduce the problem to the constrained events.

    Returns the included indices, their z-scores and a working copy of their
    correlations, or a final probability when the answer is already known.
    """
    p, included = _prepare(probabilities, indicators)
    corr = np.asarray(correlation_matrix, dtype=float)
    if corr.shape != (p.size, p.size):
        raise ValueError(
            f"Correlation matrix must be {p.size}x{p.size}, got {corr.shape}"
        )
    if np.any(p[included] <= 0.0):
        return None, 0.0
    # Events with p = 1 or indicator 0 have z = +inf and never bind.
    active = np.flatnonzero(included & (p < 1.0))
    if active.size == 0:
        return None, 1.0
    z = ndtri(p[active])
    work = corr[np.ix_(active, active)].copy()
    return (active, z, work), None


def _finish(p_size, active, log_conditionals, return_conditional):
    with np.errstate(all="ignore"):
        jp = float(np.exp(np.sum(log_conditionals)))
    if np.isnan(jp):
        jp = 0.0
    jp = min(1.0, max(0.0, jp))
    if not return_conditional:
        return jp
    conditional = np.ones(p_size)
    with np.errstate(all="ignore"):
        conditional[active] = np.exp(log_conditionals)
    conditional = np.nan_to_num(conditional, nan=0.0)
    return jp, conditional


def _short_circuit(p_size, value, return_conditional):
    if not return_conditional:
        return value
    return value, np.full(p_size, value)


def _deflate(work: np.ndarray, j: int, b: float) -> None:
    """Condition the correlations of events after j on event j."""
    r = work[j, j + 1:]
    scale = 1.0 - r * r * b
    rest = slice(j + 1, None)
    work[rest, rest] = (work[rest, rest] - np.outer(r, r) * b) / np.sqrt(np.outer(scale, scale))


def _truncation_moments(z: float) -> Tuple[float, float]:
    """A = φ(z)/Φ(z) and B = A(z + A) for a normal truncated above at z."""
    a = float(np.exp(-0.5 * z * z - 0.5 * np.log(2.0 * np.pi) - log_ndtr(z)))
    return a, a * (z + a)


def joint_probability_hpcm(probabilities: ArrayLike,
                           indicators: Optional[ArrayLike],
                           correlation_matrix: ArrayLike,
                           return_conditional: bool = False):
    """Joint probability by bivariate conditioning (HPCM).

    Each pivot j conditions every later event k on Z_j <= z_j through

        P(Z_k <= z_k | Z_j <= z_j) = Φ2(z_j, z_k; ρ_jk) / Φ(z_j)

    and then deflates the remaining correlations. The joint probability is
    the product of the successive conditional marginals. The caller's matrix
    is never modified.

    Args:
        probabilities: Marginal probability of each event
        indicators: 0/1 inclusion flags (None includes every event)
        correlation_matrix: Correlations between the events' latent normals
        return_conditional: Also return the conditional probability of each event

    Returns:
        The joint probability, or (joint, conditional probabilities)
    """
    n = len(probabilities)
    setup, known = _conditioning_setup(probabilities, indicators, correlation_matrix)
    if setup is None:
        return _short_circuit(n, known, return_conditional)
    active, z, work = setup
    m = active.size
    log_conditionals = np.empty(m)
    with np.errstate(all="ignore"):
        log_conditionals[0] = log_ndtr(z[0])
        for j in range(m - 1):
            z1 = z[j]
            cdf1 = ndtr(z1)
            _, b = _truncation_moments(z1)
            for k in range(j + 1, m):
                p21 = bivariate_normal_cdf(z1, z[k], work[j, k]) / cdf1
                p21 = min(1.0, max(0.0, p21))
                z[k] = ndtri(p21)
            _deflate(work, j, b)
            log_conditionals[j + 1] = log_ndtr(z[j + 1])
    return _finish(n, active, log_conditionals, return_conditional)


def joint_probability_pcm(probabilities: ArrayLike,
                          indicators: Optional[ArrayLike],
                          correlation_matrix: ArrayLike,
                          return_conditional: bool = False):
    """Joint probability by moment conditioning (PCM).

    Same recurrence as :func:`joint_probability_hpcm`, but the conditional
    threshold comes from the mean and variance of the truncated pivot:

        z_k|j = (z_k + ρ_jk A) / sqrt(1 - ρ_jk² B)
    """
    n = len(probabilities)
    setup, known = _conditioning_setup(probabilities, indicators, correlation_matrix)
    if setup is None:
        return _short_circuit(n, known, return_conditional)
    active, z, work = setup
    m = active.size
    log_conditionals = np.empty(m)
    with np.errstate(all="ignore"):
        log_conditionals[0] = log_ndtr(z[0])
        for j in range(m - 1):
            a, b = _truncation_moments(z[j])
            r = work[j, j + 1:]
            z[j + 1:] = (z[j + 1:] + r * a) / np.sqrt(1.0 - r * r * b)
            _deflate(work, j, b)
            log_conditionals[j + 1] = log_ndtr(z[j + 1])
    return _finish(n, active, log_conditionals, return_conditional)


def joint_probability_mvn(probabilities: ArrayLike,
                          indicators: Optional[ArrayLike],
                          copula: GaussianCopula) -> float:
    """Exact joint probability from the multivariate normal orthant probability."""
    p, included = _prepare(probabilities, indicators)
    if copula.dimension != p.size:
        raise ValueError(
            f"Copula dimension ({copula.dimension}) does not match "
            f"number of events ({p.size})"
        )
    z = copula.z_scores(p, included.astype(int))
    return copula.cdf(z)


JointFunction = Callable[[np.ndarray, np.ndarray], float]


def joint_probabilities(probabilities: ArrayLike,
                        indicators: np.ndarray,
                        joint: JointFunction,
                        max_workers: Optional[int] = None,
                        copula: Optional[GaussianCopula] = None) -> np.ndarray:
    """Evaluate the joint probability for every row of an indicator matrix.

    Rows are independent, so they are fanned out over a thread pool. Rows
    with a single included event return that event's probability directly.

    Args:
        probabilities: Marginal probability of each event
        indicators: Indicator matrix of shape (rows, events)
        joint: Callable (probabilities, indicator_row) -> probability. When a
            copula is given the callable receives a third argument, a private
            clone of the copula for that row.
        max_workers: Thread count (1 evaluates serially)
        copula: Stateful helper cloned for every row

    Returns:
        Array of joint probabilities, one per row
    """
    p = np.asarray(probabilities, dtype=float)
    indicators = np.asarray(indicators)
    if indicators.ndim != 2 or indicators.shape[1] != p.size:
        raise ValueError(
            f"Indicator matrix must have {p.size} columns, got shape {indicators.shape}"
        )

    def evaluate(row: int) -> float:
        ind = indicators[row]
        if np.count_nonzero(ind) == 1:
            return float(p[np.flatnonzero(ind)[0]])
        if copula is not None:
            return joint(p, ind, copula.clone())
        return joint(p, ind)

    rows = range(indicators.shape[0])
    if max_workers == 1 or indicators.shape[0] <= 1:
        return np.array([evaluate(i) for i in rows], dtype=float)
    with ThreadPoolExecutor(max_workers=max_workers) as executor:
        return np.array(list(executor.map(evaluate, rows)), dtype=float)

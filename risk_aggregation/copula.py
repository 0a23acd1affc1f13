"""Gaussian copula projection of event probabilities onto standard normal space."""

from typing import Optional, Sequence, Union

import numpy as np
from scipy.special import ndtr, ndtri, owens_t
from scipy.stats import multivariate_normal

ArrayLike = Union[Sequence[float], np.ndarray]

# Finite stand-in for an infinite integration limit. Phi(38.5) == 1 in double precision.
Z_LIMIT = 38.5


def standard_z(probability):
    """Standard normal quantile, +inf for 1 and -inf for 0."""
    return ndtri(np.clip(probability, 0.0, 1.0))


def bivariate_normal_cdf(h: float, k: float, rho: float) -> float:
    """Lower-orthant bivariate standard normal probability P(X <= h, Y <= k).

    Evaluated with Owen's T function:

        Φ2(h, k; ρ) = ½Φ(h) + ½Φ(k) - T(h, a_h) - T(k, a_k) - δ

    with a_h = (k - ρh) / (h√(1-ρ²)), a_k = (h - ρk) / (k√(1-ρ²)), and
    δ = ½ when h and k have opposite signs.

    Args:
        h: Upper limit of the first variable
        k: Upper limit of the second variable
        rho: Correlation coefficient

    Returns:
        Probability in [0, 1] (NaN if any argument is NaN)
    """
    h = float(h)
    k = float(k)
    rho = float(rho)
    if np.isnan(h) or np.isnan(k) or np.isnan(rho):
        return float("nan")
    if h == -np.inf or k == -np.inf:
        return 0.0
    if h == np.inf:
        return float(ndtr(k))
    if k == np.inf:
        return float(ndtr(h))
    if rho == 0.0:
        return float(ndtr(h) * ndtr(k))
    if rho >= 1.0:
        return float(ndtr(min(h, k)))
    if rho <= -1.0:
        return max(0.0, float(ndtr(h) + ndtr(k) - 1.0))

    s = np.sqrt((1.0 - rho) * (1.0 + rho))
    if h == 0.0 and k == 0.0:
        p = 0.25 + np.arcsin(rho) / (2.0 * np.pi)
    elif h == 0.0:
        p = 0.5 * ndtr(k) - owens_t(k, -rho / s)
    elif k == 0.0:
        p = 0.5 * ndtr(h) - owens_t(h, -rho / s)
    else:
        delta = 0.0 if h * k > 0.0 else 0.5
        p = (0.5 * (ndtr(h) + ndtr(k))
             - owens_t(h, (k - rho * h) / (h * s))
             - owens_t(k, (h - rho * k) / (k * s))
             - delta)
    return min(1.0, max(0.0, float(p)))


def validate_correlation_matrix(correlation_matrix: ArrayLike,
                                dimension: Optional[int] = None,
                                throw: bool = True) -> Optional[ValueError]:
    """Check that a matrix is a valid correlation matrix.

    Args:
        correlation_matrix: Candidate matrix
        dimension: Expected number of rows and columns (None accepts any square shape)
        throw: Raise the error instead of returning it

    Returns:
        None if the matrix is valid, otherwise the ValueError (when throw is False)
    """
    error = None
    matrix = np.asarray(correlation_matrix, dtype=float)
    if matrix.ndim != 2 or matrix.shape[0] != matrix.shape[1]:
        error = ValueError(f"Correlation matrix must be square, got shape {matrix.shape}")
    elif dimension is not None and matrix.shape != (dimension, dimension):
        error = ValueError(
            f"Correlation matrix must be {dimension}x{dimension}, got {matrix.shape}"
        )
    elif not np.all(np.isfinite(matrix)):
        error = ValueError("Correlation matrix must contain only finite values")
    elif not np.allclose(matrix, matrix.T):
        error = ValueError("Correlation matrix must be symmetric")
    elif not np.allclose(np.diag(matrix), 1.0):
        error = ValueError("Diagonal elements must be 1")
    elif np.any(matrix < -1) or np.any(matrix > 1):
        error = ValueError("Correlations must be between -1 and 1")
    elif np.any(np.linalg.eigvalsh(matrix) < -1e-10):
        error = ValueError("Correlation matrix must be positive semi-definite")

    if error is not None and throw:
        raise error
    return error


def equicorrelation_matrix(dimension: int, rho: float) -> np.ndarray:
    """Matrix with unit diagonal and a common off-diagonal correlation."""
    matrix = np.full((dimension, dimension), float(rho))
    np.fill_diagonal(matrix, 1.0)
    return matrix


def perfectly_negative_correlation(dimension: int) -> float:
    """Most negative common correlation that keeps an equicorrelation matrix PSD.

    The theoretical bound -1/(D-1) is nudged up by √ε so the matrix stays
    positive semi-definite in floating point.
    """
    if dimension < 2:
        return 0.0
    return -1.0 / (dimension - 1.0) + np.sqrt(np.finfo(float).eps)


class GaussianCopula:
    """Multivariate standard normal model of dependent events.

    An event with marginal probability p maps to the threshold z = Φ⁻¹(p); the
    probability that a set of events jointly occurs is the orthant
    probability P(Z_i <= z_i) under the correlation matrix.
    """

    def __init__(self, correlation_matrix: ArrayLike, seed: Optional[int] = None):
        """Initialize the copula.

        Args:
            correlation_matrix: Symmetric positive semi-definite matrix with unit diagonal
            seed: Seed of the quasi-Monte Carlo integration used by the exact CDF
        """
        validate_correlation_matrix(correlation_matrix)
        self._correlation = np.array(correlation_matrix, dtype=float)
        self.seed = seed
        self._cholesky: Optional[np.ndarray] = None

    @classmethod
    def perfectly_negative(cls, dimension: int, seed: Optional[int] = None) -> "GaussianCopula":
        """Copula implied by perfect negative dependence among `dimension` events."""
        rho = perfectly_negative_correlation(dimension)
        return cls(equicorrelation_matrix(dimension, rho), seed=seed)

    @property
    def dimension(self) -> int:
        return self._correlation.shape[0]

    @property
    def correlation_matrix(self) -> np.ndarray:
        """A copy of the correlation matrix."""
        return self._correlation.copy()

    @property
    def cholesky(self) -> np.ndarray:
        """Lower Cholesky factor, regularized for semi-definite matrices."""
        if self._cholesky is None:
            n = self.dimension
            self._cholesky = np.linalg.cholesky(self._correlation + np.eye(n) * 1e-10)
        return self._cholesky

    def z_scores(self, probabilities: ArrayLike,
                 indicators: Optional[ArrayLike] = None) -> np.ndarray:
        """Map probabilities to thresholds; unconstrained events get +inf."""
        z = np.asarray(standard_z(np.asarray(probabilities, dtype=float)), dtype=float)
        if indicators is not None:
            z = np.where(np.asarray(indicators) == 0, np.inf, z)
        return z

    def submatrix(self, index: ArrayLike) -> np.ndarray:
        """Correlation matrix restricted to the given event indices."""
        index = np.asarray(index, dtype=int)
        return self._correlation[np.ix_(index, index)]

    def cdf(self, z: ArrayLike) -> float:
        """Orthant probability P(Z <= z).

        Dimensions with an upper limit of +inf are integrated out exactly by
        dropping them before the multivariate evaluation.
        """
        z = np.asarray(z, dtype=float)
        if np.any(np.isnan(z)):
            return float("nan")
        if np.any(z == -np.inf):
            return 0.0
        active = np.flatnonzero(z < np.inf)
        if active.size == 0:
            return 1.0
        if active.size == 1:
            return float(ndtr(z[active[0]]))
        if active.size == 2:
            i, j = active
            return bivariate_normal_cdf(z[i], z[j], self._correlation[i, j])
        mvn = multivariate_normal(mean=np.zeros(active.size), cov=self.submatrix(active),
                                  allow_singular=True, seed=self.seed)
        p = float(mvn.cdf(z[active]))
        return min(1.0, max(0.0, p))

    def interval(self, lower: ArrayLike, upper: ArrayLike) -> float:
        """Rectangle probability P(lower < Z <= upper)."""
        lower = np.clip(np.asarray(lower, dtype=float), -Z_LIMIT, Z_LIMIT)
        upper = np.clip(np.asarray(upper, dtype=float), -Z_LIMIT, Z_LIMIT)
        if np.any(np.isnan(lower)) or np.any(np.isnan(upper)):
            return float("nan")
        if np.any(upper <= lower):
            return 0.0
        if self.dimension == 1:
            return float(ndtr(upper[0]) - ndtr(lower[0]))
        mvn = multivariate_normal(mean=np.zeros(self.dimension), cov=self._correlation,
                                  allow_singular=True, seed=self.seed)
        p = float(mvn.cdf(upper, lower_limit=lower))
        return min(1.0, max(0.0, p))

    def sample(self, num_samples: int, random_state: Optional[int] = None) -> np.ndarray:
        """Draw correlated standard normal vectors of shape (num_samples, dimension)."""
        rng = np.random.default_rng(random_state)
        independent = rng.standard_normal((num_samples, self.dimension))
        return independent @ self.cholesky.T

    def clone(self) -> "GaussianCopula":
        return GaussianCopula(self._correlation, seed=self.seed)

    def __repr__(self) -> str:
        return f"GaussianCopula(dimension={self.dimension})"

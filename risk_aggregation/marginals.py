"""Marginal (univariate) distributions consumed by the competing-risks model.

Supports:
- Parametric: any scipy.stats continuous family through ScipyDistribution
- Empirical: piecewise-linear CDF through tabulated (x, p) pairs
"""

from abc import ABC, abstractmethod
from enum import Enum
from typing import List, Optional, Sequence, Tuple, Union

import numpy as np
from scipy import stats
from scipy.interpolate import interp1d
from scipy.special import ndtr, ndtri

from .copula import Z_LIMIT

ArrayLike = Union[Sequence[float], np.ndarray]


class Transform(Enum):
    """Axis transform applied before interpolation or stratification."""
    NONE = "none"
    LOGARITHMIC = "logarithmic"
    NORMAL_Z = "normal_z"


class UnivariateDistribution(ABC):
    """Abstract base class for univariate distributions."""

    @property
    @abstractmethod
    def parameter_names(self) -> List[str]:
        pass

    @property
    @abstractmethod
    def parameters(self) -> np.ndarray:
        pass

    @abstractmethod
    def set_parameters(self, parameters: ArrayLike) -> None:
        pass

    @abstractmethod
    def pdf(self, x):
        """Probability density at x."""
        pass

    @abstractmethod
    def cdf(self, x):
        """Cumulative probability P(X <= x)."""
        pass

    @abstractmethod
    def inverse_cdf(self, probability):
        """Quantile function."""
        pass

    @property
    @abstractmethod
    def minimum(self) -> float:
        pass

    @property
    @abstractmethod
    def maximum(self) -> float:
        pass

    @abstractmethod
    def clone(self) -> "UnivariateDistribution":
        pass

    @property
    def number_of_parameters(self) -> int:
        return len(self.parameter_names)

    def ccdf(self, x):
        """Survival probability P(X > x)."""
        return 1.0 - self.cdf(x)

    def hf(self, x):
        """Hazard rate pdf(x) / ccdf(x)."""
        survival = self.ccdf(x)
        if survival <= 0:
            return np.inf
        return self.pdf(x) / survival

    def validate_parameters(self, throw: bool = True) -> Optional[ValueError]:
        """Return (or raise) a ValueError if the parameters are invalid."""
        return None

    @property
    def parameters_valid(self) -> bool:
        return self.validate_parameters(throw=False) is None

    def log_likelihood(self, sample: ArrayLike) -> float:
        """Sum of log densities, -inf if any observation has zero density."""
        density = np.array([self.pdf(x) for x in np.asarray(sample, dtype=float)])
        if np.any(~np.isfinite(density)) or np.any(density <= 0):
            return -np.inf
        return float(np.sum(np.log(density)))

    def parameter_constraints(self, sample: ArrayLike) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
        """Initial values and bounds used by maximum likelihood estimation.

        Returns:
            Tuple of (initial, lower, upper) arrays
        """
        initial = np.asarray(self.parameters, dtype=float)
        return initial, np.full(initial.size, -np.inf), np.full(initial.size, np.inf)

    def generate_random_values(self, sample_size: int, seed: Optional[int] = None) -> np.ndarray:
        """Draw a sample by inverse transform sampling."""
        rng = np.random.default_rng(seed)
        return np.array([self.inverse_cdf(u) for u in rng.random(sample_size)])


class ScipyDistribution(UnivariateDistribution):
    """Adapter exposing a scipy.stats continuous family.

    Parameters are the family's shape parameters followed by loc and scale,
    using scipy's own names (e.g. `c`, `loc`, `scale` for weibull_min).
    """

    def __init__(self, family: Union[str, stats.rv_continuous], **parameters: float):
        """Initialize the distribution.

        Args:
            family: scipy.stats family or its name (e.g. 'weibull_min')
            **parameters: Shape parameters (required), loc and scale (optional)
        """
        if isinstance(family, str):
            resolved = getattr(stats, family, None)
            if not isinstance(resolved, stats.rv_continuous):
                raise ValueError(f"Unknown scipy.stats continuous distribution: {family}")
            family = resolved
        self._family = family
        shapes = [s.strip() for s in (family.shapes or "").split(",") if s.strip()]
        self._names = shapes + ["loc", "scale"]
        missing = [s for s in shapes if s not in parameters]
        if missing:
            raise ValueError(f"Missing shape parameters for {family.name}: {missing}")
        unknown = set(parameters) - set(self._names)
        if unknown:
            raise ValueError(f"Unknown parameters for {family.name}: {sorted(unknown)}")
        values = [float(parameters[s]) for s in shapes]
        values += [float(parameters.get("loc", 0.0)), float(parameters.get("scale", 1.0))]
        self.set_parameters(values)

    @property
    def family(self) -> stats.rv_continuous:
        return self._family

    @property
    def parameter_names(self) -> List[str]:
        return list(self._names)

    @property
    def parameters(self) -> np.ndarray:
        return self._values.copy()

    def set_parameters(self, parameters: ArrayLike) -> None:
        values = np.asarray(parameters, dtype=float)
        if values.size != len(self._names):
            raise ValueError(f"{self._family.name} expects {len(self._names)} parameters, "
                             f"got {values.size}")
        self._values = values.copy()
        self._frozen = self._family(**dict(zip(self._names, self._values)))

    def validate_parameters(self, throw: bool = True) -> Optional[ValueError]:
        error = None
        if not np.all(np.isfinite(self._values)):
            error = ValueError(f"Parameters of {self._family.name} must be finite")
        elif self._values[-1] <= 0:
            error = ValueError(f"Scale must be positive, got {self._values[-1]}")
        elif np.isnan(self._frozen.ppf(0.5)):
            error = ValueError(f"Invalid parameters for {self._family.name}: {self._values}")
        if error is not None and throw:
            raise error
        return error

    @staticmethod
    def _scalar(value):
        return float(value) if np.ndim(value) == 0 else value

    def pdf(self, x):
        return self._scalar(self._frozen.pdf(x))

    def cdf(self, x):
        return self._scalar(self._frozen.cdf(x))

    def ccdf(self, x):
        return self._scalar(self._frozen.sf(x))

    def inverse_cdf(self, probability):
        return self._scalar(self._frozen.ppf(probability))

    @property
    def minimum(self) -> float:
        return float(self._frozen.support()[0])

    @property
    def maximum(self) -> float:
        return float(self._frozen.support()[1])

    def parameter_constraints(self, sample: ArrayLike) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
        """Start from the current parameters (or a scipy fit) with wide bounds."""
        sample = np.asarray(sample, dtype=float)
        initial = self.parameters
        if not self.parameters_valid:
            initial = np.asarray(self._family.fit(sample), dtype=float)
        spread = float(np.std(sample)) if sample.size > 1 else 1.0
        lower = np.empty(initial.size)
        upper = np.empty(initial.size)
        for i, name in enumerate(self._names):
            if name == "loc":
                width = 10.0 * (abs(initial[i]) + spread + 1.0)
                lower[i], upper[i] = initial[i] - width, initial[i] + width
            else:
                magnitude = abs(initial[i]) if initial[i] != 0 else 1.0
                lower[i], upper[i] = magnitude / 100.0, magnitude * 100.0
        return initial, lower, upper

    def generate_random_values(self, sample_size: int, seed: Optional[int] = None) -> np.ndarray:
        rng = np.random.default_rng(seed)
        return np.asarray(self._frozen.ppf(rng.random(sample_size)), dtype=float)

    def clone(self) -> "ScipyDistribution":
        return ScipyDistribution(self._family, **dict(zip(self._names, self._values)))

    def __repr__(self) -> str:
        parms = ", ".join(f"{n}={v:.4g}" for n, v in zip(self._names, self._values))
        return f"ScipyDistribution({self._family.name}, {parms})"


class EmpiricalDistribution(UnivariateDistribution):
    """Piecewise-linear distribution through tabulated (x, p) points.

    Interpolation happens in transformed space: log(x) when the x transform is
    logarithmic, Φ⁻¹(p) when the probability transform is normal_z. Below the
    first point the CDF is 0; beyond the last point it stays at the last p,
    so the table may describe a sub-distribution (e.g. a cumulative incidence
    function).
    """

    def __init__(self, x_values: ArrayLike, probabilities: ArrayLike,
                 x_transform: Transform = Transform.NONE,
                 probability_transform: Transform = Transform.NONE):
        """Initialize the empirical distribution.

        Args:
            x_values: Strictly increasing x values
            probabilities: Non-decreasing cumulative probabilities in [0, 1]
            x_transform: NONE or LOGARITHMIC
            probability_transform: NONE or NORMAL_Z
        """
        x = np.asarray(x_values, dtype=float)
        p = np.asarray(probabilities, dtype=float)
        if x.ndim != 1 or x.shape != p.shape:
            raise ValueError("x values and probabilities must be 1-D arrays of equal length")
        if x.size < 2:
            raise ValueError("Need at least 2 points")
        if np.any(np.diff(x) <= 0):
            raise ValueError("x values must be strictly increasing")
        if np.any(p < 0) or np.any(p > 1):
            raise ValueError("Probabilities must be between 0 and 1")
        if np.any(np.diff(p) < 0):
            raise ValueError("Probabilities must be non-decreasing")
        if x_transform == Transform.LOGARITHMIC and x[0] <= 0:
            raise ValueError("Logarithmic x transform requires positive x values")

        self._x = x
        self._p = p
        self.x_transform = x_transform
        self.probability_transform = probability_transform

        tx = self._to_x_space(x)
        tp = self._to_p_space(p)
        self._cdf = interp1d(tx, tp, kind="linear", bounds_error=False,
                             fill_value=(tp[0], tp[-1]))
        # The smallest x reaching each probability level defines the quantile.
        _, first = np.unique(p, return_index=True)
        if first.size >= 2:
            self._inverse = interp1d(tp[first], tx[first], kind="linear", bounds_error=False,
                                     fill_value=(tx[first[0]], tx[first[-1]]))
        else:
            self._inverse = None

    def _to_x_space(self, x):
        if self.x_transform == Transform.LOGARITHMIC:
            with np.errstate(divide="ignore", invalid="ignore"):
                return np.log(x)
        return x

    def _from_x_space(self, tx):
        if self.x_transform == Transform.LOGARITHMIC:
            return np.exp(tx)
        return tx

    def _to_p_space(self, p):
        if self.probability_transform == Transform.NORMAL_Z:
            return np.clip(ndtri(p), -Z_LIMIT, Z_LIMIT)
        return p

    def _from_p_space(self, tp):
        if self.probability_transform == Transform.NORMAL_Z:
            return ndtr(tp)
        return tp

    @property
    def x_values(self) -> np.ndarray:
        return self._x.copy()

    @property
    def probabilities(self) -> np.ndarray:
        return self._p.copy()

    @property
    def parameter_names(self) -> List[str]:
        return []

    @property
    def parameters(self) -> np.ndarray:
        return np.array([])

    def set_parameters(self, parameters: ArrayLike) -> None:
        if len(parameters) != 0:
            raise ValueError("Empirical distributions have no parameters")

    def cdf(self, x):
        x = np.asarray(x, dtype=float)
        p = np.clip(self._from_p_space(self._cdf(self._to_x_space(np.maximum(x, self._x[0])))),
                    0.0, 1.0)
        p = np.where(x < self._x[0], 0.0, p)
        return float(p) if p.ndim == 0 else p

    def inverse_cdf(self, probability):
        probability = np.asarray(probability, dtype=float)
        if self._inverse is None:
            x = np.full(probability.shape, self._x[0])
        else:
            x = self._from_x_space(self._inverse(self._to_p_space(probability)))
        x = np.clip(x, self._x[0], self._x[-1])
        return float(x) if x.ndim == 0 else x

    def pdf(self, x):
        """Slope of the CDF segment containing x."""
        x = np.asarray(x, dtype=float)
        i = np.clip(np.searchsorted(self._x, x, side="right") - 1, 0, self._x.size - 2)
        x0, x1 = self._x[i], self._x[i + 1]
        slope = (self.cdf(x1) - self.cdf(x0)) / (x1 - x0)
        f = np.where((x < self._x[0]) | (x > self._x[-1]), 0.0, slope)
        return float(f) if f.ndim == 0 else f

    @property
    def minimum(self) -> float:
        return float(self._x[0])

    @property
    def maximum(self) -> float:
        return float(self._x[-1])

    def clone(self) -> "EmpiricalDistribution":
        return EmpiricalDistribution(self._x, self._p, self.x_transform,
                                     self.probability_transform)

    def __repr__(self) -> str:
        return (f"EmpiricalDistribution(n_points={self._x.size}, "
                f"x=[{self._x[0]:.4g}, {self._x[-1]:.4g}], p_max={self._p[-1]:.4f})")


def create_marginal(kind: str, **kwargs) -> UnivariateDistribution:
    """Factory function to create marginal distributions.

    Args:
        kind: 'exponential', 'normal', 'lognormal', 'weibull', 'gamma',
            'uniform', 'empirical', or the name of any scipy.stats continuous family
        **kwargs: Arguments of the chosen distribution

    Returns:
        UnivariateDistribution instance

    Examples:
        >>> create_marginal('exponential', rate=2.0)
        >>> create_marginal('weibull', scale=50, shape=2)
        >>> create_marginal('empirical', x_values=[0, 1, 2], probabilities=[0, 0.5, 1])
    """
    kind = kind.lower()

    if kind == 'exponential':
        rate = float(kwargs.pop('rate', 1.0))
        if rate <= 0:
            raise ValueError(f"Rate must be positive, got {rate}")
        return ScipyDistribution('expon', scale=1.0 / rate, **kwargs)
    elif kind == 'normal':
        return ScipyDistribution('norm', loc=kwargs.get('mu', 0.0), scale=kwargs.get('sigma', 1.0))
    elif kind == 'lognormal':
        return ScipyDistribution('lognorm', s=kwargs.get('sigma', 1.0),
                                 scale=float(np.exp(kwargs.get('mu', 0.0))))
    elif kind == 'weibull':
        return ScipyDistribution('weibull_min', c=kwargs['shape'], scale=kwargs['scale'])
    elif kind == 'gamma':
        return ScipyDistribution('gamma', a=kwargs['shape'], scale=kwargs['scale'])
    elif kind == 'uniform':
        lower = float(kwargs.get('lower', 0.0))
        upper = float(kwargs.get('upper', 1.0))
        if upper <= lower:
            raise ValueError(f"Upper bound must exceed lower bound, got [{lower}, {upper}]")
        return ScipyDistribution('uniform', loc=lower, scale=upper - lower)
    elif kind == 'empirical':
        return EmpiricalDistribution(**kwargs)
    elif isinstance(getattr(stats, kind, None), stats.rv_continuous):
        return ScipyDistribution(kind, **kwargs)
    else:
        raise ValueError(f"Unknown marginal distribution type: {kind}. "
                         f"Choose from: 'exponential', 'normal', 'lognormal', 'weibull', "
                         f"'gamma', 'uniform', 'empirical' or a scipy.stats family name")

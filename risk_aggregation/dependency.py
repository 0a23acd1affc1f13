"""Dependency models between events.

Each model implements joint, union and exclusive probabilities:
- Independent: closed-form products
- PerfectlyPositive: closed-form bounds (min / max)
- PerfectlyNegative: Fréchet bounds, with exclusive patterns taken from
  the implied equicorrelation copula
- CorrelationMatrix: Gaussian copula with the HPCM, PCM or exact
  multivariate normal joint probability
"""

from abc import ABC, abstractmethod
from enum import Enum
from typing import Callable, Optional, Sequence, Union

import numpy as np

from .combinatorics import all_combinations
from .config import ConvergenceConfig
from .copula import GaussianCopula, equicorrelation_matrix, perfectly_negative_correlation
from .exclusive import (
    ExclusiveResult,
    exclusive_from_joint,
    independent_exclusive,
    positive_exclusive,
    truncated_exclusive,
)
from .joint import (
    independent_joint,
    joint_probabilities,
    joint_probability_hpcm,
    joint_probability_mvn,
    joint_probability_pcm,
    negative_joint,
    positive_joint,
)
from .union import (
    UnionResult,
    inclusion_exclusion,
    independent_union,
    negative_union,
    positive_union,
)

ArrayLike = Union[Sequence[float], np.ndarray]


class DependencyType(Enum):
    """Assumed relationship between events."""
    INDEPENDENT = "independent"
    PERFECTLY_POSITIVE = "perfectly_positive"
    PERFECTLY_NEGATIVE = "perfectly_negative"
    CORRELATION_MATRIX = "correlation_matrix"

    @classmethod
    def parse(cls, value: Union["DependencyType", str]) -> "DependencyType":
        """Accept an enum member or its (case-insensitive) name or value."""
        if isinstance(value, cls):
            return value
        key = str(value).strip().lower()
        for member in cls:
            if key in (member.value, member.name.lower()):
                return member
        raise ValueError(f"Unknown dependency type: {value}. "
                         f"Choose from: {', '.join(m.value for m in cls)}")


class DependencyModel(ABC):
    """Strategy computing joint, union and exclusive probabilities."""

    dependency_type: DependencyType

    def __init__(self, config: Optional[ConvergenceConfig] = None):
        self.config = config or ConvergenceConfig()
        self.config.validate()

    @abstractmethod
    def joint(self, probabilities: ArrayLike, indicators: Optional[ArrayLike] = None) -> float:
        """Probability that every indicated event occurs.

        Args:
            probabilities: Marginal probability of each event
            indicators: 0/1 inclusion flags (None includes every event)

        Returns:
            Joint probability in [0, 1]
        """
        pass

    @abstractmethod
    def union(self, probabilities: ArrayLike) -> float:
        """Probability that at least one event occurs."""
        pass

    def joint_many(self, probabilities: ArrayLike, indicators: np.ndarray) -> np.ndarray:
        """Joint probability for every row of an indicator matrix."""
        return joint_probabilities(probabilities, indicators, self._row_joint,
                                   max_workers=self.config.max_workers)

    def union_result(self, probabilities: ArrayLike) -> UnionResult:
        """Inclusion-exclusion union with the evaluated subsets."""
        return inclusion_exclusion(probabilities, self._row_joint, self.config)

    def exclusive(self, probabilities: ArrayLike) -> np.ndarray:
        """Probability of every exact occurrence pattern, in enumeration order."""
        p = _as_probabilities(probabilities)
        indicators = all_combinations(p.size)
        return exclusive_from_joint(self.joint_many(p, indicators), indicators)

    def exclusive_result(self, probabilities: ArrayLike) -> ExclusiveResult:
        """Exclusive probabilities of the patterns visited by a truncated union."""
        return truncated_exclusive(probabilities, self._row_joint, self.config)

    def _row_joint(self, probabilities: np.ndarray, indicators: np.ndarray) -> float:
        return self.joint(probabilities, indicators)

    def _closed_form_exclusive_result(self, probabilities: ArrayLike,
                                      exclusive: Callable[[np.ndarray, np.ndarray], np.ndarray]
                                      ) -> ExclusiveResult:
        union = self.union_result(probabilities)
        values = exclusive(_as_probabilities(probabilities), union.indicators)
        if union.truncated:
            values[-1] = union.joint_probabilities[-1]
        return ExclusiveResult(indicators=union.indicators, probabilities=values, union=union)

    def clone(self) -> "DependencyModel":
        return type(self)(config=self.config)

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"


class Independent(DependencyModel):
    """Statistically independent events."""

    dependency_type = DependencyType.INDEPENDENT

    def joint(self, probabilities, indicators=None) -> float:
        return independent_joint(probabilities, indicators)

    def union(self, probabilities) -> float:
        return independent_union(_as_probabilities(probabilities))

    def exclusive(self, probabilities) -> np.ndarray:
        return independent_exclusive(_as_probabilities(probabilities))

    def exclusive_result(self, probabilities) -> ExclusiveResult:
        return self._closed_form_exclusive_result(probabilities, independent_exclusive)


class PerfectlyPositive(DependencyModel):
    """Comonotonic events: the rarest included event implies the others."""

    dependency_type = DependencyType.PERFECTLY_POSITIVE

    def joint(self, probabilities, indicators=None) -> float:
        return positive_joint(probabilities, indicators)

    def union(self, probabilities) -> float:
        return positive_union(_as_probabilities(probabilities))

    def exclusive(self, probabilities) -> np.ndarray:
        return positive_exclusive(_as_probabilities(probabilities))

    def exclusive_result(self, probabilities) -> ExclusiveResult:
        return self._closed_form_exclusive_result(probabilities, positive_exclusive)


class PerfectlyNegative(DependencyModel):
    """Events that overlap as little as possible."""

    dependency_type = DependencyType.PERFECTLY_NEGATIVE

    def __init__(self, config: Optional[ConvergenceConfig] = None, seed: Optional[int] = None):
        super().__init__(config)
        self.seed = seed

    def joint(self, probabilities, indicators=None) -> float:
        return negative_joint(probabilities, indicators)

    def union(self, probabilities) -> float:
        return negative_union(_as_probabilities(probabilities))

    def as_correlation_model(self, dimension: int, method: str = "hpcm") -> "CorrelationMatrix":
        """Gaussian copula model with the most negative admissible equicorrelation."""
        rho = perfectly_negative_correlation(dimension)
        return CorrelationMatrix(equicorrelation_matrix(dimension, rho), method=method,
                                 config=self.config, seed=self.seed)

    def exclusive(self, probabilities) -> np.ndarray:
        p = _as_probabilities(probabilities)
        if p.size == 1:
            return p.copy()
        return self.as_correlation_model(p.size, method="mvn").exclusive(p)

    def exclusive_result(self, probabilities) -> ExclusiveResult:
        p = _as_probabilities(probabilities)
        return self.as_correlation_model(p.size, method="mvn").exclusive_result(p)

    def clone(self) -> "PerfectlyNegative":
        return PerfectlyNegative(config=self.config, seed=self.seed)


class CorrelationMatrix(DependencyModel):
    """Events linked through a Gaussian copula with a given correlation matrix."""

    dependency_type = DependencyType.CORRELATION_MATRIX

    METHODS = ("hpcm", "pcm", "mvn")

    def __init__(self, correlation_matrix: ArrayLike, method: str = "hpcm",
                 config: Optional[ConvergenceConfig] = None, seed: Optional[int] = None):
        """Initialize the model.

        Args:
            correlation_matrix: Correlations between the events' latent normals
            method: Joint probability method ('hpcm', 'pcm' or 'mvn')
            config: Convergence settings of the union and exclusive engines
            seed: Seed for the multivariate normal integration ('mvn' only)
        """
        super().__init__(config)
        method = method.lower()
        if method not in self.METHODS:
            raise ValueError(f"Unknown joint probability method: {method}. "
                             f"Choose from: {', '.join(self.METHODS)}")
        self.method = method
        self.copula = GaussianCopula(correlation_matrix, seed=seed)

    @property
    def correlation_matrix(self) -> np.ndarray:
        return self.copula.correlation_matrix

    def _check_dimension(self, p: np.ndarray) -> None:
        if p.size != self.copula.dimension:
            raise ValueError(
                f"Expected {self.copula.dimension} probabilities for a "
                f"{self.copula.dimension}x{self.copula.dimension} correlation matrix, got {p.size}"
            )

    def joint(self, probabilities, indicators=None) -> float:
        p = _as_probabilities(probabilities)
        self._check_dimension(p)
        if self.method == "mvn":
            return joint_probability_mvn(p, indicators, self.copula)
        if self.method == "pcm":
            return joint_probability_pcm(p, indicators, self.copula.correlation_matrix)
        return joint_probability_hpcm(p, indicators, self.copula.correlation_matrix)

    def conditional_probabilities(self, probabilities: ArrayLike,
                                  indicators: Optional[ArrayLike] = None) -> np.ndarray:
        """Successive conditional marginals of the PCM recurrence."""
        p = _as_probabilities(probabilities)
        self._check_dimension(p)
        recurrence = joint_probability_pcm if self.method == "pcm" else joint_probability_hpcm
        _, conditional = recurrence(p, indicators, self.copula.correlation_matrix,
                                    return_conditional=True)
        return conditional

    def joint_many(self, probabilities, indicators) -> np.ndarray:
        p = _as_probabilities(probabilities)
        self._check_dimension(p)
        if self.method != "mvn":
            return super().joint_many(p, indicators)
        return joint_probabilities(p, indicators, joint_probability_mvn,
                                   max_workers=self.config.max_workers, copula=self.copula)

    def union(self, probabilities) -> float:
        p = _as_probabilities(probabilities)
        self._check_dimension(p)
        if p.size == 1:
            return float(p[0])
        return self.union_result(p).probability

    def clone(self) -> "CorrelationMatrix":
        return CorrelationMatrix(self.copula.correlation_matrix, method=self.method,
                                 config=self.config, seed=self.copula.seed)

    def __repr__(self) -> str:
        return f"CorrelationMatrix(dimension={self.copula.dimension}, method='{self.method}')"


def _as_probabilities(probabilities: ArrayLike) -> np.ndarray:
    p = np.asarray(probabilities, dtype=float)
    if p.ndim != 1 or p.size == 0:
        raise ValueError("Probabilities must be a non-empty 1-D sequence")
    if np.any(p < 0) or np.any(p > 1):
        raise ValueError(f"Probabilities must be between 0 and 1, got {p}")
    return p


def create_dependency_model(dependency: Union[DependencyType, str] = DependencyType.INDEPENDENT,
                            correlation_matrix: Optional[ArrayLike] = None,
                            method: str = "hpcm",
                            config: Optional[ConvergenceConfig] = None,
                            seed: Optional[int] = None) -> DependencyModel:
    """Factory function to create dependency models.

    Args:
        dependency: Dependency type (enum member or name)
        correlation_matrix: Required for the correlation matrix type
        method: Joint probability method for the correlation matrix type
        config: Convergence settings
        seed: Seed for multivariate normal integration

    Returns:
        DependencyModel instance

    Examples:
        >>> create_dependency_model('independent')
        >>> create_dependency_model('correlation_matrix', np.eye(3), method='pcm')
    """
    dependency = DependencyType.parse(dependency)

    if dependency == DependencyType.INDEPENDENT:
        return Independent(config=config)
    elif dependency == DependencyType.PERFECTLY_POSITIVE:
        return PerfectlyPositive(config=config)
    elif dependency == DependencyType.PERFECTLY_NEGATIVE:
        return PerfectlyNegative(config=config, seed=seed)
    if correlation_matrix is None:
        raise ValueError("A correlation matrix is required for correlation_matrix dependency")
    return CorrelationMatrix(correlation_matrix, method=method, config=config, seed=seed)

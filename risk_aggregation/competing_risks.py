"""Competing-risks distribution: the minimum or maximum of several random variables."""

import logging
from typing import List, Optional, Sequence, Tuple, Union

import numpy as np
from scipy.optimize import minimize

from .config import ConvergenceConfig, SolverConfig
from .copula import (
    equicorrelation_matrix,
    perfectly_negative_correlation,
    standard_z,
    validate_correlation_matrix,
)
from .dependency import (
    CorrelationMatrix,
    DependencyModel,
    DependencyType,
    Independent,
    PerfectlyNegative,
    PerfectlyPositive,
)
from .marginals import EmpiricalDistribution, Transform, UnivariateDistribution
from .solvers import (
    CONVERGED,
    DEGRADED,
    RootResult,
    derivative,
    maximize_scalar,
    solve,
    stratify_x_values,
)

logger = logging.getLogger(__name__)

ArrayLike = Union[Sequence[float], np.ndarray]

# Tail probability defining the practical support of the marginals.
TAIL_PROBABILITY = 1e-16
# Tail probability bounding the central moment integration.
MOMENT_TAIL_PROBABILITY = 1e-8
CIF_BINS = 200


class CompetingRisks(UnivariateDistribution):
    """Distribution of min(X1, ..., XK) or max(X1, ..., XK).

    The CDF combines the marginal CDFs through a dependency model:

        minimum:  F(x) = P(at least one Xi <= x)   (union)
        maximum:  F(x) = P(every Xi <= x)          (joint probability)

    User-defined correlation is evaluated on a Gaussian copula. Under perfect
    negative dependence the minimum uses the bound min(1, sum F_i(x)); the
    maximum and the cumulative incidence functions use the most negative
    admissible equicorrelation matrix.

    The empirical CDF, the derived dependency model and the moments are
    cached and rebuilt lazily after any parameter change.
    """

    def __init__(self, distributions: Sequence[UnivariateDistribution],
                 minimum_of_random_variables: bool = True,
                 dependency: Union[DependencyType, str] = DependencyType.INDEPENDENT,
                 correlation_matrix: Optional[ArrayLike] = None,
                 x_transform: Transform = Transform.NONE,
                 probability_transform: Transform = Transform.NORMAL_Z,
                 solver_config: Optional[SolverConfig] = None,
                 convergence_config: Optional[ConvergenceConfig] = None):
        """Initialize the competing-risks distribution.

        Args:
            distributions: Marginal distributions
            minimum_of_random_variables: Model the minimum (True) or maximum (False)
            dependency: Dependency between the marginals
            correlation_matrix: Required for correlation matrix dependency
            x_transform: Transform of x used by stratification and the empirical CDF
            probability_transform: Probability transform of the empirical CDF
            solver_config: Root finding and integration settings
            convergence_config: Inclusion-exclusion settings
        """
        self.solver_config = solver_config or SolverConfig()
        self.solver_config.validate()
        self.convergence_config = convergence_config or ConvergenceConfig()
        self.convergence_config.validate()
        self.x_transform = x_transform
        self.probability_transform = probability_transform
        self._minimum_mode = bool(minimum_of_random_variables)
        self._dependency = DependencyType.parse(dependency)
        self._correlation_matrix: Optional[np.ndarray] = None
        self._distributions: List[UnivariateDistribution] = []
        self._empirical_cdf: Optional[EmpiricalDistribution] = None
        self._dependency_model: Optional[DependencyModel] = None
        self._moments: Optional[Tuple[float, float, float, float]] = None
        self.set_distributions(distributions)
        if correlation_matrix is not None:
            self.correlation_matrix = correlation_matrix
        self.validate_parameters(throw=True)

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    def _invalidate(self) -> None:
        self._empirical_cdf = None
        self._dependency_model = None
        self._moments = None

    @property
    def distributions(self) -> Tuple[UnivariateDistribution, ...]:
        return tuple(self._distributions)

    def set_distributions(self, distributions: Sequence[UnivariateDistribution]) -> None:
        """Replace the marginals and invalidate every cache."""
        if distributions is None or len(distributions) == 0:
            raise ValueError("At least one distribution is required")
        self._distributions = list(distributions)
        if (self._correlation_matrix is not None
                and self._correlation_matrix.shape[0] != len(self._distributions)):
            self._correlation_matrix = None
        self._invalidate()

    @property
    def minimum_of_random_variables(self) -> bool:
        return self._minimum_mode

    @minimum_of_random_variables.setter
    def minimum_of_random_variables(self, value: bool) -> None:
        self._minimum_mode = bool(value)
        self._invalidate()

    @property
    def dependency(self) -> DependencyType:
        return self._dependency

    @dependency.setter
    def dependency(self, value: Union[DependencyType, str]) -> None:
        previous = self._dependency
        self._dependency = DependencyType.parse(value)
        self._invalidate()
        error = self.validate_parameters(throw=False)
        if error is not None:
            self._dependency = previous
            raise error

    @property
    def correlation_matrix(self) -> Optional[np.ndarray]:
        if self._correlation_matrix is None:
            return None
        return self._correlation_matrix.copy()

    @correlation_matrix.setter
    def correlation_matrix(self, matrix: Optional[ArrayLike]) -> None:
        if matrix is not None:
            validate_correlation_matrix(matrix, dimension=len(self._distributions))
            matrix = np.array(matrix, dtype=float)
        previous = self._correlation_matrix
        self._correlation_matrix = matrix
        self._invalidate()
        error = self.validate_parameters(throw=False)
        if error is not None:
            self._correlation_matrix = previous
            raise error

    @property
    def dependency_model(self) -> DependencyModel:
        """Dependency model used to combine the marginal probabilities."""
        if self._dependency_model is None:
            self._dependency_model = self._create_dependency_model()
        return self._dependency_model

    def _create_dependency_model(self) -> DependencyModel:
        config = self.convergence_config
        d = len(self._distributions)
        if self._dependency == DependencyType.INDEPENDENT:
            return Independent(config=config)
        if self._dependency == DependencyType.PERFECTLY_POSITIVE:
            return PerfectlyPositive(config=config)
        if self._dependency == DependencyType.PERFECTLY_NEGATIVE:
            logger.debug("Deriving perfectly negative equicorrelation for %d marginals", d)
            matrix = equicorrelation_matrix(d, perfectly_negative_correlation(d))
        else:
            self.validate_parameters(throw=True)
            matrix = self._correlation_matrix
        return CorrelationMatrix(matrix, method="hpcm", config=config)

    # ------------------------------------------------------------------
    # Parameters
    # ------------------------------------------------------------------

    @property
    def parameter_names(self) -> List[str]:
        return [f"D{i + 1} {name}"
                for i, d in enumerate(self._distributions)
                for name in d.parameter_names]

    @property
    def parameters(self) -> np.ndarray:
        return np.concatenate([np.asarray(d.parameters, dtype=float)
                               for d in self._distributions])

    def set_parameters(self, parameters: ArrayLike) -> None:
        """Distribute a flat parameter vector over the marginals."""
        values = np.asarray(parameters, dtype=float)
        if values.size != self.number_of_parameters:
            raise ValueError(f"Expected {self.number_of_parameters} parameters, got {values.size}")
        t = 0
        for d in self._distributions:
            n = d.number_of_parameters
            d.set_parameters(values[t:t + n])
            t += n
        self._invalidate()

    def validate_parameters(self, throw: bool = True) -> Optional[ValueError]:
        error = None
        if not self._distributions:
            error = ValueError("At least one distribution is required")
        elif any(not d.parameters_valid for d in self._distributions):
            error = ValueError("One of the distributions has invalid parameters")
        elif self._dependency == DependencyType.CORRELATION_MATRIX:
            if self._correlation_matrix is None:
                error = ValueError("A correlation matrix is required for correlation_matrix dependency")
            else:
                error = validate_correlation_matrix(self._correlation_matrix,
                                                    dimension=len(self._distributions),
                                                    throw=False)
        if error is not None and throw:
            raise error
        return error

    def parameter_constraints(self, sample: ArrayLike) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
        parts = [d.parameter_constraints(sample) for d in self._distributions]
        return tuple(np.concatenate([part[i] for part in parts]) for i in range(3))

    # ------------------------------------------------------------------
    # Distribution functions
    # ------------------------------------------------------------------

    @property
    def minimum(self) -> float:
        return float(min(d.minimum for d in self._distributions))

    @property
    def maximum(self) -> float:
        return float(max(d.maximum for d in self._distributions))

    def cdf(self, x: float) -> float:
        probabilities = np.array([d.cdf(x) for d in self._distributions], dtype=float)
        if self._minimum_mode and self._dependency == DependencyType.PERFECTLY_NEGATIVE:
            p = PerfectlyNegative(config=self.convergence_config).union(probabilities)
        elif self._minimum_mode:
            p = self.dependency_model.union(probabilities)
        else:
            p = self.dependency_model.joint(probabilities)
        if np.isnan(p):
            return 0.0
        return min(1.0, max(0.0, float(p)))

    def pdf(self, x: float) -> float:
        """Density; exact for independent marginals, numerical otherwise."""
        if self._dependency == DependencyType.INDEPENDENT:
            densities = np.array([d.pdf(x) for d in self._distributions], dtype=float)
            if self._minimum_mode:
                others = np.array([d.ccdf(x) for d in self._distributions], dtype=float)
            else:
                others = np.array([d.cdf(x) for d in self._distributions], dtype=float)
            f = 0.0
            for i in range(densities.size):
                f += densities[i] * np.prod(np.delete(others, i))
        else:
            f = derivative(self.cdf, x, self.solver_config.derivative_step)
        if not np.isfinite(f) or f < 0:
            return 0.0
        return float(f)

    def inverse_cdf(self, probability: float) -> float:
        return self.inverse_cdf_result(probability).value

    def inverse_cdf_result(self, probability: float) -> RootResult:
        """Inverse CDF with the tier that produced it.

        The status is 'converged' when the root finder solved p = CDF(x) (or
        the answer is exact) and 'degraded' when the empirical CDF was
        interpolated instead.
        """
        if not 0.0 <= probability <= 1.0:
            raise ValueError(f"Probability must be between 0 and 1, got {probability}")
        if probability == 0.0:
            return RootResult(value=self.minimum, status=CONVERGED)
        if probability == 1.0:
            return RootResult(value=self.maximum, status=CONVERGED)
        self.validate_parameters(throw=True)
        if len(self._distributions) == 1:
            return RootResult(value=float(self._distributions[0].inverse_cdf(probability)),
                              status=CONVERGED)

        if self._empirical_cdf is not None:
            result = RootResult(value=float(self._empirical_cdf.inverse_cdf(probability)),
                                status=DEGRADED, message="empirical CDF")
        else:
            quantiles = [d.inverse_cdf(probability) for d in self._distributions]
            result = solve(lambda y: probability - self.cdf(y), float(min(quantiles)),
                           float(max(quantiles)), self.solver_config)
            if not result.converged:
                logger.warning("Root finding failed for p=%g (%s); falling back to the empirical CDF",
                               probability, result.message)
                self.create_empirical_cdf()
                result = RootResult(value=float(self._empirical_cdf.inverse_cdf(probability)),
                                    status=DEGRADED, iterations=result.iterations,
                                    message=result.message)
        result.value = min(self.maximum, max(self.minimum, result.value))
        return result

    def _support_range(self) -> Tuple[float, float]:
        lower = min(d.inverse_cdf(TAIL_PROBABILITY) for d in self._distributions)
        upper = max(d.inverse_cdf(1.0 - TAIL_PROBABILITY) for d in self._distributions)
        return float(lower), float(upper)

    def create_empirical_cdf(self) -> EmpiricalDistribution:
        """Tabulate the CDF over a stratified range and cache it."""
        min_x, max_x = self._support_range()
        shift = abs(min_x) + 1.0 if min_x <= 0 else 0.0
        order = int(np.floor(np.log10(max_x + shift) - np.log10(min_x + shift)))
        n_bins = max(self.solver_config.minimum_bins, 100 * order) - 1
        logarithmic = self.x_transform == Transform.LOGARITHMIC and min_x > 0
        bins = stratify_x_values(min_x, max_x, n_bins, logarithmic)

        x_values = [bins[0].lower_bound]
        p_values = [self.cdf(bins[0].lower_bound)]
        for b in bins[1:] + [None]:
            x = max_x if b is None else b.lower_bound
            p = self.cdf(x)
            if x > x_values[-1] and p > p_values[-1]:
                x_values.append(x)
                p_values.append(p)
        if len(x_values) < 2:
            x_values.append(max_x)
            p_values.append(1.0)

        logger.debug("Built empirical CDF with %d points over [%g, %g]",
                     len(x_values), min_x, max_x)
        self._empirical_cdf = EmpiricalDistribution(
            x_values, p_values,
            x_transform=Transform.LOGARITHMIC if logarithmic else Transform.NONE,
            probability_transform=self.probability_transform,
        )
        return self._empirical_cdf

    @property
    def empirical_cdf(self) -> Optional[EmpiricalDistribution]:
        """The cached empirical CDF, if one has been built."""
        return self._empirical_cdf

    # ------------------------------------------------------------------
    # Moments
    # ------------------------------------------------------------------

    def central_moments(self, steps: Optional[int] = None) -> Tuple[float, float, float, float]:
        """Mean, standard deviation, skewness and kurtosis from CDF differences.

        The range between the 1e-8 and 1 - 1e-8 quantiles is split into equal
        bins; each bin's probability mass sits at its midpoint, with the tail
        masses placed at the inner edges of the first and last bins.
        """
        steps = steps or self.solver_config.moment_steps
        a = self.inverse_cdf(MOMENT_TAIL_PROBABILITY)
        b = self.inverse_cdf(1.0 - MOMENT_TAIL_PROBABILITY)
        if a >= b:
            return a, float("nan"), float("nan"), float("nan")

        bins = stratify_x_values(a, b, steps)
        lowers = np.array([s.lower_bound for s in bins])
        uppers = np.array([s.upper_bound for s in bins])
        edges = np.append(lowers, uppers[-1])
        cdf_edges = np.array([self.cdf(x) for x in edges])

        dF = np.diff(cdf_edges)
        dF[0] = cdf_edges[1]
        dF[-1] = 1.0 - cdf_edges[-2]
        x = 0.5 * (lowers + uppers)
        x[0] = uppers[0]
        x[-1] = lowers[-1]

        mean = float(np.sum(x * dF))
        sd = float(np.sqrt(np.sum(x ** 2 * dF) - mean ** 2))
        standardized = (x - mean) / sd
        skewness = float(np.sum(standardized ** 3 * dF))
        kurtosis = float(np.sum(standardized ** 4 * dF))
        return mean, sd, skewness, kurtosis

    def _cached_moments(self) -> Tuple[float, float, float, float]:
        if self._moments is None:
            logger.debug("Computing central moments of %r", self)
            self._moments = self.central_moments()
        return self._moments

    @property
    def mean(self) -> float:
        return self._cached_moments()[0]

    @property
    def standard_deviation(self) -> float:
        return self._cached_moments()[1]

    @property
    def skewness(self) -> float:
        return self._cached_moments()[2]

    @property
    def kurtosis(self) -> float:
        """Kurtosis (not excess kurtosis)."""
        return self._cached_moments()[3]

    @property
    def median(self) -> float:
        return self.inverse_cdf(0.5)

    @property
    def mode(self) -> float:
        return maximize_scalar(self.pdf, self.inverse_cdf(0.001), self.inverse_cdf(0.999))

    # ------------------------------------------------------------------
    # Sampling and estimation
    # ------------------------------------------------------------------

    def generate_random_values(self, sample_size: int, seed: Optional[int] = None) -> np.ndarray:
        """Sample each marginal once per draw and keep the minimum (or maximum)."""
        rng = np.random.default_rng(seed)
        uniforms = rng.random((sample_size, len(self._distributions)))
        draws = np.column_stack([
            np.asarray(d.inverse_cdf(uniforms[:, j]), dtype=float)
            for j, d in enumerate(self._distributions)
        ])
        return draws.min(axis=1) if self._minimum_mode else draws.max(axis=1)

    def mle(self, sample: ArrayLike) -> np.ndarray:
        """Maximum likelihood parameters by bounded Nelder-Mead.

        Args:
            sample: Observed values of the minimum (or maximum)

        Returns:
            Flat parameter vector in `parameter_names` order
        """
        sample = np.asarray(sample, dtype=float)
        initial, lower, upper = self.parameter_constraints(sample)

        def negative_log_likelihood(values: np.ndarray) -> float:
            candidate = self.clone()
            candidate.set_parameters(values)
            if not candidate.parameters_valid:
                return 1e300
            ll = candidate.log_likelihood(sample)
            return -ll if np.isfinite(ll) else 1e300

        bounds = list(zip(lower, upper))
        result = minimize(negative_log_likelihood, np.clip(initial, lower, upper),
                          method="Nelder-Mead", bounds=bounds,
                          options={"xatol": 1e-6, "fatol": 1e-8, "maxiter": 2000 * initial.size})
        return np.asarray(result.x, dtype=float)

    def estimate(self, sample: ArrayLike) -> None:
        """Fit the marginal parameters to a sample by maximum likelihood."""
        self.set_parameters(self.mle(sample))

    def bootstrap(self, sample_size: int, seed: Optional[int] = None) -> "CompetingRisks":
        """Refit a clone to a sample drawn from this distribution."""
        replicate = self.clone()
        sample = replicate.generate_random_values(sample_size, seed)
        replicate.estimate(sample)
        if not replicate.parameters_valid:
            raise ValueError("Bootstrapped distribution parameters are invalid")
        return replicate

    # ------------------------------------------------------------------
    # Cumulative incidence
    # ------------------------------------------------------------------

    def cumulative_incidence_functions(self, bins=None) -> List[EmpiricalDistribution]:
        """Cause-specific cumulative incidence functions.

        For each marginal i the result gives P(Xi is the minimum (or maximum)
        and it is <= x). Correlated and perfectly negative dependence use
        multivariate normal rectangle probabilities; independent and perfectly
        positive dependence difference closed-form joint probabilities over
        each bin (delta method). Once the summed incidence of all causes would
        exceed 1, that bin's increments are scaled down proportionally across
        causes and every later increment is set to zero.

        Args:
            bins: StratificationBin list (defaults to 200 bins over the support)

        Returns:
            One EmpiricalDistribution per marginal
        """
        if bins is None:
            min_x, max_x = self._support_range()
            logarithmic = self.x_transform == Transform.LOGARITHMIC and min_x > 0
            bins = stratify_x_values(min_x, max_x, CIF_BINS, logarithmic)
        lowers = np.array([b.lower_bound for b in bins])
        uppers = np.array([b.upper_bound for b in bins])
        mids = np.array([b.midpoint for b in bins])
        x = np.append(lowers[0], uppers)

        if self._dependency in (DependencyType.PERFECTLY_NEGATIVE,
                                DependencyType.CORRELATION_MATRIX):
            dF = self._interval_increments(lowers, uppers, mids)
        else:
            dF = self._delta_increments(lowers, uppers, mids)
        dF = np.clip(np.nan_to_num(dF, nan=0.0), 0.0, 1.0)
        p = self._accumulate_incidence(dF)
        return [EmpiricalDistribution(x, p[i]) for i in range(p.shape[0])]

    def _marginal_cdfs(self, points: np.ndarray) -> np.ndarray:
        return np.array([[d.cdf(v) for v in points] for d in self._distributions], dtype=float)

    def _interval_increments(self, lowers, uppers, mids) -> np.ndarray:
        copula = self.dependency_model.copula
        D = len(self._distributions)
        n = lowers.size
        F_lo = self._marginal_cdfs(lowers)
        F_up = self._marginal_cdfs(uppers)
        F_mid = self._marginal_cdfs(mids)
        z_min = standard_z(TAIL_PROBABILITY)
        z_max = standard_z(1.0 - TAIL_PROBABILITY)

        dF = np.zeros((D, n + 1))
        for i in range(D):
            others = np.arange(D) != i
            lower = np.empty(D)
            upper = np.empty(D)
            if self._minimum_mode:
                lower[others] = standard_z(F_lo[others, 0])
                upper[others] = z_max
            else:
                lower[others] = z_min
                upper[others] = standard_z(F_lo[others, 0])
            lower[i] = z_min
            upper[i] = standard_z(F_lo[i, 0])
            dF[i, 0] = copula.interval(lower, upper)

            for j in range(n):
                lower[i] = standard_z(F_lo[i, j])
                upper[i] = standard_z(F_up[i, j])
                if self._minimum_mode:
                    lower[others] = standard_z(F_mid[others, j])
                    upper[others] = z_max
                else:
                    lower[others] = z_min
                    upper[others] = standard_z(F_mid[others, j])
                dF[i, j + 1] = copula.interval(lower, upper)
        return dF

    def _delta_increments(self, lowers, uppers, mids) -> np.ndarray:
        if self._dependency == DependencyType.PERFECTLY_POSITIVE:
            joint = np.min
        else:
            joint = np.prod
        D = len(self._distributions)
        n = lowers.size
        F_lo = self._marginal_cdfs(lowers)
        F_up = self._marginal_cdfs(uppers)
        F_mid = self._marginal_cdfs(mids)
        if self._minimum_mode:
            # Survival probabilities: cause i fails in the bin, the others survive it.
            F_lo, F_up, F_mid = 1.0 - F_lo, 1.0 - F_up, 1.0 - F_mid

        dF = np.zeros((D, n + 1))
        for i in range(D):
            others = np.arange(D) != i
            pl = np.empty(D)
            pu = np.empty(D)
            if self._minimum_mode:
                pl[:] = F_lo[:, 0]
                pu[others] = F_lo[others, 0]
                pu[i] = 1.0
            else:
                pl[:] = 0.0
                pu[:] = F_lo[:, 0]
            dF[i, 0] = joint(pu) - joint(pl)

            for j in range(n):
                pl[others] = F_mid[others, j]
                pu[others] = F_mid[others, j]
                if self._minimum_mode:
                    pl[i] = F_up[i, j]
                    pu[i] = F_lo[i, j]
                else:
                    pl[i] = F_lo[i, j]
                    pu[i] = F_up[i, j]
                dF[i, j + 1] = joint(pu) - joint(pl)
        return dF

    @staticmethod
    def _accumulate_incidence(dF: np.ndarray) -> np.ndarray:
        D, m = dF.shape
        p = np.zeros((D, m))
        p[:, 0] = dF[:, 0]
        total = np.zeros(m)
        total[0] = np.sum(p[:, 0])
        frozen = False
        for j in range(1, m):
            if frozen:
                dF[:, j] = 0.0
                p[:, j] = p[:, j - 1]
                continue
            total[j] = np.sum(p[:, j - 1] + dF[:, j])
            p[:, j] = np.clip(p[:, j - 1] + dF[:, j], 0.0, 1.0)
            if total[j] > 1.0 and total[j] != total[j - 1]:
                logger.warning("Cumulative incidence exceeds 1 at bin %d; rescaling and freezing", j)
                dF[:, j] *= (1.0 - total[j - 1]) / (total[j] - total[j - 1])
                p[:, j] = np.clip(p[:, j - 1] + dF[:, j], 0.0, 1.0)
                total[j] = np.sum(p[:, j - 1] + dF[:, j])
                frozen = True
        return p

    # ------------------------------------------------------------------

    def clone(self) -> "CompetingRisks":
        return CompetingRisks(
            [d.clone() for d in self._distributions],
            minimum_of_random_variables=self._minimum_mode,
            dependency=self._dependency,
            correlation_matrix=self._correlation_matrix,
            x_transform=self.x_transform,
            probability_transform=self.probability_transform,
            solver_config=self.solver_config,
            convergence_config=self.convergence_config,
        )

    def __repr__(self) -> str:
        mode = "minimum" if self._minimum_mode else "maximum"
        return (f"CompetingRisks(n_distributions={len(self._distributions)}, "
                f"mode={mode}, dependency={self._dependency.value})")

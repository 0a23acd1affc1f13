"""Aggregation of dependent event probabilities and competing risks.

This package combines the probabilities of several events that are
independent, perfectly positively or negatively dependent, or linked through a
Gaussian copula with a user-defined correlation matrix.

Main components:
- joint / union / exclusive: joint, union and exact-pattern probabilities
- dependency: dependency models as interchangeable strategies
- probability: functional entry points and two-event rules
- marginals: univariate distributions (scipy.stats families, empirical)
- competing_risks: distribution of the minimum or maximum of random variables
- simulation: Monte Carlo check of the analytic engines
- reports: pandas reports of exclusive patterns and incidence functions
"""

from .config import ConvergenceConfig, SolverConfig
from .combinatorics import all_combinations, binomial_group_sizes, group_boundaries
from .copula import GaussianCopula, bivariate_normal_cdf, standard_z, validate_correlation_matrix
from .joint import (
    joint_probability_hpcm,
    joint_probability_mvn,
    joint_probability_pcm,
)
from .union import UnionResult, inclusion_exclusion
from .exclusive import ExclusiveResult, exclusive_from_joint
from .dependency import (
    CorrelationMatrix,
    DependencyModel,
    DependencyType,
    Independent,
    PerfectlyNegative,
    PerfectlyPositive,
    create_dependency_model,
)
from .probability import (
    a_and_b,
    a_given_b,
    a_not_b,
    a_or_b,
    b_given_a,
    b_not_a,
    common_cause_adjustment,
    exclusive,
    joint_probability,
    mutually_exclusive_adjustment,
    union,
)
from .marginals import (
    EmpiricalDistribution,
    ScipyDistribution,
    Transform,
    UnivariateDistribution,
    create_marginal,
)
from .solvers import RootResult, StratificationBin, stratify_x_values
from .competing_risks import CompetingRisks
from .simulation import (
    CopulaSimulator,
    EventSimulationResult,
    MonteCarloEngine,
    ParallelMonteCarloEngine,
)
from .reports import create_cif_report, create_exclusive_report

__version__ = "1.0.0"

__all__ = [
    # Configuration
    "ConvergenceConfig",
    "SolverConfig",
    # Combinatorics
    "all_combinations",
    "binomial_group_sizes",
    "group_boundaries",
    # Copula
    "GaussianCopula",
    "bivariate_normal_cdf",
    "standard_z",
    "validate_correlation_matrix",
    # Engines
    "joint_probability_hpcm",
    "joint_probability_pcm",
    "joint_probability_mvn",
    "UnionResult",
    "inclusion_exclusion",
    "ExclusiveResult",
    "exclusive_from_joint",
    # Dependency models
    "DependencyType",
    "DependencyModel",
    "Independent",
    "PerfectlyPositive",
    "PerfectlyNegative",
    "CorrelationMatrix",
    "create_dependency_model",
    # Probability rules
    "joint_probability",
    "union",
    "exclusive",
    "a_and_b",
    "a_or_b",
    "a_not_b",
    "b_not_a",
    "a_given_b",
    "b_given_a",
    "common_cause_adjustment",
    "mutually_exclusive_adjustment",
    # Marginals
    "Transform",
    "UnivariateDistribution",
    "ScipyDistribution",
    "EmpiricalDistribution",
    "create_marginal",
    # Solvers
    "RootResult",
    "StratificationBin",
    "stratify_x_values",
    # Competing risks
    "CompetingRisks",
    # Simulation
    "CopulaSimulator",
    "EventSimulationResult",
    "MonteCarloEngine",
    "ParallelMonteCarloEngine",
    # Reports
    "create_exclusive_report",
    "create_cif_report",
]

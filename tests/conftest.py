"""Pytest fixtures for risk aggregation tests."""

import pytest
import numpy as np
import sys
import os

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from risk_aggregation import (
    CompetingRisks,
    GaussianCopula,
    create_marginal,
)


@pytest.fixture
def four_event_probabilities():
    """Marginal probabilities of four events."""
    return np.array([0.25, 0.35, 0.5, 0.5])


@pytest.fixture
def negative_correlation_matrix():
    """Four events with a common correlation of -0.33."""
    corr = np.full((4, 4), -0.33)
    np.fill_diagonal(corr, 1.0)
    return corr


@pytest.fixture
def multivariate_normal_exclusive():
    """Exclusive probabilities for four_event_probabilities under the -0.33 correlation."""
    return np.array([
        0.0591144, 0.0841586, 0.1373704, 0.1373766, 0.0381933, 0.0639822,
        0.0639751, 0.0962373, 0.0962331, 0.1603886, 0.0059603, 0.0059654,
        0.0128092, 0.0232519, 0.0,
    ])


@pytest.fixture
def negative_copula(negative_correlation_matrix):
    """Gaussian copula for the -0.33 correlation matrix."""
    return GaussianCopula(negative_correlation_matrix)


@pytest.fixture
def three_risk_model():
    """Minimum of LogNormal(4, 0.1), Weibull(50, 2) and Gamma(30, 1.5)."""
    return CompetingRisks([
        create_marginal('lognormal', mu=4.0, sigma=0.1),
        create_marginal('weibull', scale=50.0, shape=2.0),
        create_marginal('gamma', scale=30.0, shape=1.5),
    ])


@pytest.fixture
def exponential_marginals():
    """Exponential marginals with rates 1 and 2."""
    return [create_marginal('exponential', rate=1.0), create_marginal('exponential', rate=2.0)]

"""Tests for competing_risks.py - CompetingRisks distribution."""

import logging

import pytest
import numpy as np

from risk_aggregation import (
    CompetingRisks,
    DependencyType,
    EmpiricalDistribution,
    create_marginal,
    stratify_x_values,
)


class TestCompetingRisksMoments:
    """Tests for the distribution summary of three competing risks."""

    def test_moments(self, three_risk_model):
        """Test mean, standard deviation, skewness and kurtosis."""
        cr = three_risk_model
        assert cr.mean == pytest.approx(27.0445, abs=1e-2)
        assert cr.standard_deviation == pytest.approx(15.60225, abs=1e-2)
        assert cr.skewness == pytest.approx(0.3371, abs=2e-2)
        assert cr.kurtosis - 3 == pytest.approx(-0.8719, abs=2e-2)

    def test_median_and_mode(self, three_risk_model):
        """Test the median and the mode."""
        assert three_risk_model.median == pytest.approx(25.0845, abs=1e-2)
        assert three_risk_model.mode == pytest.approx(16.6581, abs=1e-2)

    def test_inverse_cdf(self, three_risk_model):
        """Test quantiles of the minimum."""
        cr = three_risk_model
        assert cr.inverse_cdf(0.05) == pytest.approx(4.6431, abs=1e-3)
        assert cr.inverse_cdf(0.50) == pytest.approx(25.0845, abs=1e-3)
        assert cr.inverse_cdf(0.95) == pytest.approx(54.2056, abs=1e-3)

    def test_inverse_cdf_round_trip(self, three_risk_model):
        """Test the quantile solves p = CDF(x)."""
        x = three_risk_model.inverse_cdf(0.3)
        assert three_risk_model.cdf(x) == pytest.approx(0.3, abs=1e-6)

    def test_support(self, three_risk_model):
        """Test the minimum and maximum of the support."""
        assert three_risk_model.minimum == 0.0
        assert three_risk_model.maximum == np.inf
        assert three_risk_model.inverse_cdf(0.0) == 0.0
        assert three_risk_model.inverse_cdf(1.0) == np.inf


class TestCompetingRisksDistribution:
    """Tests for the CDF and PDF under each mode and dependency."""

    def test_minimum_independent(self, exponential_marginals):
        """Test the minimum of independent exponentials."""
        cr = CompetingRisks(exponential_marginals)
        assert cr.cdf(1.0) == pytest.approx(1 - np.exp(-3.0))
        assert cr.pdf(1.0) == pytest.approx(3 * np.exp(-3.0))

    def test_maximum_independent(self):
        """Test the maximum of independent exponentials."""
        d = create_marginal('exponential', rate=1.0)
        cr = CompetingRisks([d, d.clone()], minimum_of_random_variables=False)
        assert cr.cdf(1.0) == pytest.approx((1 - np.exp(-1.0)) ** 2)
        assert cr.pdf(1.0) == pytest.approx(2 * np.exp(-1.0) * (1 - np.exp(-1.0)))
        assert cr.inverse_cdf(0.5) == pytest.approx(-np.log(1 - np.sqrt(0.5)), abs=1e-5)

    def test_minimum_perfectly_positive(self, exponential_marginals):
        """Test comonotonic risks take the largest CDF."""
        cr = CompetingRisks(exponential_marginals, dependency="perfectly_positive")
        assert cr.cdf(1.0) == pytest.approx(1 - np.exp(-2.0))

    def test_minimum_perfectly_negative(self, exponential_marginals):
        """Test countermonotonic risks add their CDFs."""
        cr = CompetingRisks(exponential_marginals, dependency=DependencyType.PERFECTLY_NEGATIVE)
        expected = (1 - np.exp(-0.2)) + (1 - np.exp(-0.4))
        assert cr.cdf(0.2) == pytest.approx(expected)

    def test_minimum_perfectly_negative_saturates(self):
        """Test countermonotonic risks stay at one once the CDFs sum past one."""
        marginals = [create_marginal('exponential', rate=rate) for rate in (1.0, 2.0, 0.5)]
        cr = CompetingRisks(marginals, dependency="perfectly_negative")
        values = [cr.cdf(x) for x in np.linspace(0.05, 2.0, 40)]
        assert np.all(np.diff(values) >= 0.0)
        assert cr.cdf(1.0) == 1.0
        assert cr.cdf(1.0) >= cr.cdf(0.9)

    def test_minimum_correlation_matrix(self, exponential_marginals):
        """Test identity correlation reproduces independence."""
        cr = CompetingRisks(exponential_marginals, dependency="correlation_matrix",
                            correlation_matrix=np.eye(2))
        assert cr.cdf(1.0) == pytest.approx(1 - np.exp(-3.0), abs=1e-6)
        assert cr.pdf(1.0) == pytest.approx(3 * np.exp(-3.0), abs=1e-5)

    def test_missing_correlation_matrix(self, exponential_marginals):
        """Test that correlation dependency requires a matrix at construction."""
        with pytest.raises(ValueError, match="correlation matrix is required"):
            CompetingRisks(exponential_marginals, dependency="correlation_matrix")

    def test_dependency_setter_requires_matrix(self, exponential_marginals):
        """Test that switching to correlation dependency without a matrix is rejected."""
        cr = CompetingRisks(exponential_marginals)
        with pytest.raises(ValueError, match="correlation matrix is required"):
            cr.dependency = "correlation_matrix"
        assert cr.dependency == DependencyType.INDEPENDENT
        cr.correlation_matrix = np.eye(2)
        cr.dependency = "correlation_matrix"
        assert cr.cdf(1.0) == pytest.approx(1 - np.exp(-3.0), abs=1e-6)

    def test_clearing_matrix_rejected(self, exponential_marginals):
        """Test that the matrix cannot be removed under correlation dependency."""
        cr = CompetingRisks(exponential_marginals, dependency="correlation_matrix",
                            correlation_matrix=np.eye(2))
        with pytest.raises(ValueError, match="correlation matrix is required"):
            cr.correlation_matrix = None
        np.testing.assert_array_equal(cr.correlation_matrix, np.eye(2))

    def test_correlation_matrix_dimension(self, exponential_marginals):
        """Test that the matrix must match the number of marginals."""
        cr = CompetingRisks(exponential_marginals)
        with pytest.raises(ValueError, match="must be 2x2"):
            cr.correlation_matrix = np.eye(3)

    def test_dependency_change_invalidates(self, exponential_marginals):
        """Test that changing the dependency changes the CDF."""
        cr = CompetingRisks(exponential_marginals)
        independent = cr.cdf(1.0)
        cr.dependency = "perfectly_positive"
        assert cr.cdf(1.0) < independent

    def test_empty_distributions(self):
        """Test that at least one marginal is required."""
        with pytest.raises(ValueError, match="At least one distribution"):
            CompetingRisks([])

    def test_invalid_probability(self, three_risk_model):
        """Test that probabilities outside [0, 1] raise error."""
        with pytest.raises(ValueError, match="between 0 and 1"):
            three_risk_model.inverse_cdf(1.5)

    def test_single_marginal(self):
        """Test a single marginal is returned unchanged."""
        cr = CompetingRisks([create_marginal('normal', mu=5.0, sigma=2.0)])
        assert cr.inverse_cdf(0.5) == pytest.approx(5.0)
        assert cr.cdf(5.0) == pytest.approx(0.5)


class TestCdfShape:
    """Tests for monotonicity and support endpoints of every configuration."""

    @pytest.mark.parametrize("minimum", [True, False])
    @pytest.mark.parametrize("dependency", ["independent", "perfectly_positive",
                                            "perfectly_negative", "correlation_matrix"])
    def test_non_decreasing_with_endpoints(self, dependency, minimum):
        """Test the CDF rises from zero at the minimum to one at the maximum."""
        marginals = [create_marginal('exponential', rate=rate) for rate in (1.0, 2.0, 0.5)]
        corr = np.full((3, 3), 0.3)
        np.fill_diagonal(corr, 1.0)
        cr = CompetingRisks(marginals, minimum_of_random_variables=minimum,
                            dependency=dependency, correlation_matrix=corr)
        values = np.array([cr.cdf(x) for x in np.linspace(0.0, 12.0, 121)])
        assert np.all(np.diff(values) >= -1e-10)
        assert np.all((values >= 0.0) & (values <= 1.0))
        assert cr.cdf(cr.minimum) == pytest.approx(0.0, abs=1e-12)
        assert cr.cdf(cr.maximum) == pytest.approx(1.0, abs=1e-12)


class TestInverseCdfFallback:
    """Tests for the empirical CDF fallback."""

    def test_converged_status(self, three_risk_model):
        """Test the root finder tier is reported."""
        result = three_risk_model.inverse_cdf_result(0.5)
        assert result.converged

    def test_degraded_status(self, three_risk_model):
        """Test a cached empirical CDF is used once built."""
        empirical = three_risk_model.create_empirical_cdf()
        assert isinstance(empirical, EmpiricalDistribution)
        assert three_risk_model.empirical_cdf is empirical
        result = three_risk_model.inverse_cdf_result(0.5)
        assert result.status == "degraded"
        assert result.value == pytest.approx(25.0845, abs=0.5)

    def test_set_parameters_clears_cache(self, three_risk_model):
        """Test that parameter changes discard the empirical CDF."""
        three_risk_model.create_empirical_cdf()
        three_risk_model.set_parameters(three_risk_model.parameters)
        assert three_risk_model.empirical_cdf is None


class TestCompetingRisksParameters:
    """Tests for the parameter surface and estimation."""

    def test_parameter_names(self, three_risk_model):
        """Test names carry the marginal index."""
        names = three_risk_model.parameter_names
        assert len(names) == 9
        assert names[0] == "D1 s"
        assert names[3] == "D2 c"
        assert three_risk_model.number_of_parameters == 9

    def test_set_parameters(self, exponential_marginals):
        """Test the flat parameter vector is split across marginals."""
        cr = CompetingRisks(exponential_marginals)
        cr.set_parameters([0.0, 1.0, 0.0, 1.0])
        assert cr.cdf(1.0) == pytest.approx(1 - np.exp(-2.0))
        with pytest.raises(ValueError, match="Expected 4 parameters"):
            cr.set_parameters([1.0])

    def test_generate_random_values(self, three_risk_model):
        """Test sampling reproduces the mean."""
        sample = three_risk_model.generate_random_values(20000, seed=12)
        assert sample.shape == (20000,)
        assert np.mean(sample) == pytest.approx(27.0445, abs=0.5)

    def test_maximum_random_values(self):
        """Test the maximum mode samples the largest draw."""
        cr = CompetingRisks([create_marginal('uniform', lower=0.0, upper=1.0)] * 2,
                            minimum_of_random_variables=False)
        sample = cr.generate_random_values(20000, seed=4)
        assert np.mean(sample) == pytest.approx(2.0 / 3.0, abs=0.01)

    def test_mle(self):
        """Test maximum likelihood recovers the sample moments."""
        sample = create_marginal('normal', mu=10.0, sigma=2.0).generate_random_values(200, seed=5)
        cr = CompetingRisks([create_marginal('normal', mu=8.0, sigma=3.0)])
        cr.estimate(sample)
        loc, scale = cr.parameters
        assert loc == pytest.approx(np.mean(sample), abs=0.05)
        assert scale == pytest.approx(np.std(sample), abs=0.05)

    def test_bootstrap(self):
        """Test a bootstrap replicate is a valid refitted copy."""
        cr = CompetingRisks([create_marginal('normal', mu=10.0, sigma=2.0)])
        replicate = cr.bootstrap(300, seed=3)
        assert replicate is not cr
        assert replicate.parameters_valid
        assert replicate.parameters[0] == pytest.approx(10.0, abs=0.5)

    def test_clone(self, three_risk_model):
        """Test clones do not share marginals."""
        clone = three_risk_model.clone()
        clone.set_parameters(clone.parameters * 1.1)
        assert three_risk_model.inverse_cdf(0.5) == pytest.approx(25.0845, abs=1e-3)
        assert clone.minimum_of_random_variables == three_risk_model.minimum_of_random_variables


class TestCumulativeIncidence:
    """Tests for cause-specific cumulative incidence functions."""

    def test_independent_minimum(self, exponential_marginals):
        """Test incidence of independent exponential causes."""
        cr = CompetingRisks(exponential_marginals)
        cifs = cr.cumulative_incidence_functions(stratify_x_values(0.0, 10.0, 1000))
        assert len(cifs) == 2
        assert cifs[0].cdf(10.0) == pytest.approx(1.0 / 3.0, abs=1e-3)
        assert cifs[1].cdf(10.0) == pytest.approx(2.0 / 3.0, abs=1e-3)
        assert cifs[0].cdf(1.0) + cifs[1].cdf(1.0) == pytest.approx(cr.cdf(1.0), abs=1e-3)

    def test_correlation_matrix(self, exponential_marginals):
        """Test the interval method under identity correlation."""
        cr = CompetingRisks(exponential_marginals, dependency="correlation_matrix",
                            correlation_matrix=np.eye(2))
        cifs = cr.cumulative_incidence_functions(stratify_x_values(0.0, 10.0, 100))
        assert cifs[0].cdf(10.0) == pytest.approx(1.0 / 3.0, abs=1e-2)
        assert cifs[1].cdf(10.0) == pytest.approx(2.0 / 3.0, abs=1e-2)

    def test_maximum_mode(self):
        """Test incidence of the larger of two identical risks."""
        d = create_marginal('exponential', rate=1.0)
        cr = CompetingRisks([d, d.clone()], minimum_of_random_variables=False)
        cifs = cr.cumulative_incidence_functions(stratify_x_values(0.0, 30.0, 3000))
        assert cifs[0].cdf(30.0) == pytest.approx(0.5, abs=1e-3)
        assert cifs[1].cdf(30.0) == pytest.approx(0.5, abs=1e-3)

    def test_default_bins(self, exponential_marginals):
        """Test the default stratification."""
        cifs = CompetingRisks(exponential_marginals).cumulative_incidence_functions()
        assert cifs[0].x_values.size == 201
        total = cifs[0].probabilities[-1] + cifs[1].probabilities[-1]
        assert total == pytest.approx(1.0, abs=2e-2)
        assert total <= 1.0

    def test_renormalization(self, caplog):
        """Test incidence is rescaled and frozen once the total exceeds one."""
        dF = np.array([[0.5, 0.3, 0.2, 0.1], [0.2, 0.2, 0.2, 0.1]])
        with caplog.at_level(logging.WARNING, logger="risk_aggregation.competing_risks"):
            p = CompetingRisks._accumulate_incidence(dF)
        np.testing.assert_allclose(p[:, 1], [0.68, 0.32])
        np.testing.assert_allclose(p[:, -1], p[:, 1])
        assert np.sum(p[:, -1]) == pytest.approx(1.0)
        assert "rescaling" in caplog.text

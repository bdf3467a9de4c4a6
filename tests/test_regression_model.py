"""Unit tests for the trend + seasonal regression with ARMA errors."""

import numpy as np
import pandas as pd
import pytest

import regression_model
from errors import ConvergenceError
from regression_model import (
    design_matrix,
    fit_regression_arma,
    fit_residual_arma,
    forecast_regression_arma,
    likelihood_ratio_test,
    select_ar_order_by_pacf,
)
from series import MonthlySeries


def _ar1(n, phi, seed, scale=1.0):
    rng = np.random.default_rng(seed)
    shocks = rng.normal(0, scale, n)
    values = np.zeros(n)
    for t in range(1, n):
        values[t] = phi * values[t - 1] + shocks[t]
    return values


@pytest.fixture(scope='module')
def ar_error_series():
    t = np.arange(120)
    values = 200 + 0.8 * t + 6 * np.cos(2 * np.pi * t / 12) + _ar1(120, 0.7, seed=11, scale=1.5)
    return MonthlySeries(values, 2010, 1)


def test_design_matrix_columns_and_baseline():
    series = MonthlySeries(np.arange(24.0), 2010, 1)
    X = design_matrix(series)

    assert list(X.columns[:2]) == ['const', 'time']
    assert list(X.columns[2:]) == [f'month_{m}' for m in range(2, 13)]
    assert X['time'].iloc[0] == 1.0 and X['time'].iloc[-1] == 24.0
    # January is the baseline: no dummy set
    assert X.iloc[0, 2:].sum() == 0.0
    assert X.iloc[13]['month_2'] == 1.0


def test_design_matrix_extends_past_the_data():
    series = MonthlySeries(np.arange(24.0), 2010, 1)
    X = design_matrix(series, start=24, n=3)

    assert list(X['time']) == [25.0, 26.0, 27.0]
    assert X.iloc[0, 2:].sum() == 0.0
    assert X.iloc[2]['month_3'] == 1.0


def test_regression_recovers_trend_and_offsets(trend_seasonal_series):
    fit = fit_regression_arma(trend_seasonal_series)

    assert fit.slope == pytest.approx(0.5, abs=0.05)
    offsets = fit.seasonal_offsets
    assert len(offsets) == 12
    assert offsets[0] == 0.0
    expected = 10 * np.sin(2 * np.pi * np.arange(12) / 12)
    np.testing.assert_allclose(offsets, expected, atol=3.5)


def test_autocorrelated_residuals_get_ar_terms(ar_error_series):
    fit = fit_regression_arma(ar_error_series)

    assert fit.arma.order[0] >= 1
    assert not fit.comparisons.empty
    assert fit.n_params == 13 + fit.arma.n_params
    assert fit.aic == pytest.approx(-2 * fit.log_likelihood + 2 * (fit.n_params + 1))


def test_likelihood_ratio_statistic_non_negative():
    for seed in range(4):
        residuals = pd.Series(np.random.default_rng(seed).normal(size=100))
        simpler = fit_residual_arma(residuals, (0, 0, 0))
        richer = fit_residual_arma(residuals, (1, 0, 0), start_from=simpler)
        with_ma = fit_residual_arma(residuals, (0, 0, 1), start_from=simpler)

        for upper in (richer, with_ma):
            statistic, p_value = likelihood_ratio_test(simpler, upper)
            assert statistic >= 0.0
            assert 0.0 <= p_value <= 1.0


def test_pacf_cutoff_detects_ar1():
    assert select_ar_order_by_pacf(_ar1(200, 0.8, seed=2), max_order=3) >= 1


def test_forecast_is_aligned_after_the_data(ar_error_series):
    fit = fit_regression_arma(ar_error_series)
    forecast = forecast_regression_arma(fit, 6)

    assert len(forecast) == 6
    assert (forecast.start_year, forecast.start_month) == (2020, 1)
    # Trend continues upward over the next year
    assert forecast.mean[0] > ar_error_series.values[:12].max()


def test_default_standard_error_is_residual_arma_only(ar_error_series):
    fit = fit_regression_arma(ar_error_series)
    forecast = forecast_regression_arma(fit, 6)

    arma_se = np.sqrt(np.asarray(fit.arma.results.get_forecast(steps=6).var_pred_mean, dtype=float))
    np.testing.assert_allclose(forecast.se, arma_se)


def test_parameter_uncertainty_widens_intervals(ar_error_series):
    fit = fit_regression_arma(ar_error_series)
    plain = forecast_regression_arma(fit, 6)
    widened = forecast_regression_arma(fit, 6, propagate_parameter_uncertainty=True)

    np.testing.assert_allclose(widened.mean, plain.mean)
    assert np.all(widened.se > plain.se)


def test_residual_arma_non_convergence_is_raised(monkeypatch):
    class NotConverged:
        mle_retvals = {'converged': False, 'warnflag': 1}

    class FakeSARIMAX:
        param_names = ['ar.L1', 'sigma2']

        def __init__(self, *args, **kwargs):
            pass

        def fit(self, *args, **kwargs):
            return NotConverged()

    monkeypatch.setattr(regression_model, 'SARIMAX', FakeSARIMAX)
    with pytest.raises(ConvergenceError):
        fit_residual_arma(pd.Series(np.random.default_rng(0).normal(size=60)), (1, 0, 0))

"""Unit tests for seasonal ARIMA fitting, ranking and forecasting."""

import numpy as np
import pandas as pd
import pytest

import arima_model
from arima_model import (
    aic,
    fit_sarima,
    forecast_sarima,
    ljung_box_pvalues,
    rank_candidates,
    residual_diagnostics,
    search_sarima,
)
from errors import ConvergenceError, DegenerateSeriesError


AIRLINE = ((0, 1, 1), (0, 1, 1, 12))


def test_aic_reference_values():
    log_likelihoods = [-373.13, -359.43, -351.21, -351.21]
    n_params = [1, 1, 2, 3]
    expected = [750.26, 722.85, 708.42, 710.42]

    computed = [aic(llf, k) for llf, k in zip(log_likelihoods, n_params)]

    np.testing.assert_allclose(computed, expected, atol=0.01)


def test_rank_candidates_selects_lowest_aic():
    log_likelihoods = [-373.13, -359.43, -351.21, -351.21]
    n_params = [1, 1, 2, 3]
    table = pd.DataFrame({
        'model': ['A', 'B', 'C', 'D'],
        'n_params': n_params,
        'aic': [aic(llf, k) for llf, k in zip(log_likelihoods, n_params)],
    })

    ranked = rank_candidates(table)

    assert ranked.iloc[0]['model'] == 'C'
    assert list(ranked['model']) == ['C', 'D', 'B', 'A']


def test_rank_candidates_prefers_white_residuals_then_parsimony():
    table = pd.DataFrame({
        'model': ['low_aic_correlated', 'white_rich', 'white_simple', 'failed'],
        'n_params': [1, 3, 2, np.nan],
        'aic': [700.0, 705.0, 705.0, np.nan],
        'is_white': [False, True, True, False],
    })

    ranked = rank_candidates(table)

    assert list(ranked['model']) == ['white_simple', 'white_rich', 'low_aic_correlated', 'failed']


def test_fit_is_deterministic(trend_seasonal_series):
    first = fit_sarima(trend_seasonal_series, *AIRLINE)
    second = fit_sarima(trend_seasonal_series, *AIRLINE)

    np.testing.assert_allclose(first.params.to_numpy(), second.params.to_numpy(), rtol=1e-12)
    assert first.log_likelihood == pytest.approx(second.log_likelihood, rel=1e-12)
    assert first.aic == pytest.approx(second.aic, rel=1e-12)


def test_fit_reports_information_criteria(trend_seasonal_series):
    fit = fit_sarima(trend_seasonal_series, *AIRLINE)

    assert fit.n_params == 2
    assert fit.aic == pytest.approx(-2 * fit.log_likelihood + 6)
    assert fit.aic == pytest.approx(fit.results.aic)
    assert len(fit.residuals) == len(trend_seasonal_series)
    assert fit.burn == 13


def test_forecast_standard_errors_non_decreasing(trend_seasonal_series):
    fit = fit_sarima(trend_seasonal_series, (1, 1, 1), (0, 1, 1, 12))
    forecast = forecast_sarima(fit, 24)

    assert len(forecast) == 24
    assert (forecast.start_year, forecast.start_month) == (2020, 1)
    assert np.all(np.diff(forecast.se) >= -1e-9)
    assert np.all(forecast.se > 0)


def test_degenerate_differenced_series(deterministic_series):
    with pytest.raises(DegenerateSeriesError):
        fit_sarima(deterministic_series, *AIRLINE)


def test_non_convergence_is_raised(trend_seasonal_series, monkeypatch):
    class NotConverged:
        mle_retvals = {'converged': False, 'warnflag': 1}
        llf = -100.0

    class FakeSARIMAX:
        def __init__(self, *args, **kwargs):
            pass

        def fit(self, *args, **kwargs):
            return NotConverged()

    monkeypatch.setattr(arima_model, 'SARIMAX', FakeSARIMAX)
    with pytest.raises(ConvergenceError):
        fit_sarima(trend_seasonal_series, *AIRLINE)


def test_search_ranks_candidates(trend_seasonal_series):
    candidates = [
        ((0, 1, 1), (0, 1, 0, 12)),
        ((0, 1, 1), (0, 1, 1, 12)),
    ]
    table, best = search_sarima(trend_seasonal_series, candidates)

    assert len(table) == 2
    assert best.name == table.iloc[0]['model']
    assert set(table.columns) >= {'coefficients', 'log_likelihood', 'aic', 'lb_min_pvalue', 'note'}


def test_search_records_failed_candidates(deterministic_series):
    candidates = [((0, 1, 0), (0, 0, 0, 12)), AIRLINE]
    table, best = search_sarima(deterministic_series, candidates)

    failed = table[table['aic'].isna()]
    assert len(failed) == 1
    assert failed.iloc[0]['note'].startswith('failed')
    assert best.order == (0, 1, 0)
    assert table.iloc[-1]['model'] == failed.iloc[0]['model']


def test_search_raises_when_every_candidate_fails(deterministic_series):
    with pytest.raises(DegenerateSeriesError):
        search_sarima(deterministic_series, [AIRLINE])


def test_ljung_box_flags_autocorrelation():
    rng = np.random.default_rng(5)
    white = rng.normal(size=200)
    correlated = np.convolve(white, np.ones(5), mode='same')

    assert min(ljung_box_pvalues(white, [6, 12]).values()) > 0.001
    assert max(ljung_box_pvalues(correlated, [6, 12]).values()) < 0.05

    report = residual_diagnostics(correlated, [6, 12])
    assert report['is_white'] is False

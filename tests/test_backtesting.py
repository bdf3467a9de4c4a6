"""Unit tests for hold-out evaluation and the model comparison."""

import numpy as np
import pytest

from backtesting import (
    backtest,
    default_forecasters,
    mean_absolute_percentage_error,
    root_mean_squared_error,
    run_backtests,
    summarize_backtests,
)
from compare_models import model_comparison_table, write_summary
from forecasting import Forecast, mean_forecast

from conftest import make_trend_seasonal


@pytest.fixture(scope='module')
def results():
    series = make_trend_seasonal()
    return run_backtests(series, ['sarima', 'regression', 'dlm', 'mean'], 108, 12)


def test_metric_formulas():
    actual = [100.0, 200.0, 300.0]
    predicted = [110.0, 190.0, 330.0]

    assert mean_absolute_percentage_error(actual, predicted) == pytest.approx((10 + 5 + 10) / 3)
    assert root_mean_squared_error(actual, predicted) == pytest.approx(np.sqrt((100 + 100 + 900) / 3))


def test_mape_skips_zero_actuals():
    assert mean_absolute_percentage_error([0.0, 50.0], [3.0, 55.0]) == pytest.approx(10.0)
    assert np.isnan(mean_absolute_percentage_error([0.0, 0.0], [1.0, 2.0]))


def test_backtest_split_and_alignment(trend_seasonal_series):
    result = backtest(trend_seasonal_series, 'mean', 108, 12)

    assert len(result.train) == 108
    assert len(result.actual) == 12
    assert result.actual.start_period == (2019, 1)
    assert (result.forecast.start_year, result.forecast.start_month) == (2019, 1)
    assert result.to_frame().shape == (12, 4)


def test_structured_models_beat_the_mean(results):
    scores = {result.family: result for result in results}

    for result in results:
        assert np.isfinite(result.rmse) and result.rmse >= 0
        assert np.isfinite(result.mape) and result.mape >= 0
    for family in ('sarima', 'regression', 'dlm'):
        assert scores[family].rmse < scores['mean'].rmse
        assert scores[family].mape < scores['mean'].mape

    summary = summarize_backtests(results)
    assert summary.iloc[-1]['family'] == 'mean'
    assert list(summary['RMSE']) == sorted(summary['RMSE'])


def test_unknown_family_raises(trend_seasonal_series):
    with pytest.raises(ValueError):
        backtest(trend_seasonal_series, 'prophet', 108, 12)


def test_custom_forecasters_are_used(trend_seasonal_series):
    def naive(train, horizon):
        return Forecast.after(train, np.full(horizon, train.values[-1]), np.ones(horizon), model='naive')

    result = backtest(trend_seasonal_series, 'naive', 108, 12, forecasters={'naive': naive})
    assert result.forecast.model == 'naive'
    np.testing.assert_allclose(result.forecast.mean, trend_seasonal_series.values[107])


def test_default_forecasters_cover_every_family():
    assert set(default_forecasters()) == {'sarima', 'regression', 'dlm', 'mean'}
    assert default_forecasters()['mean'] is mean_forecast


def test_comparison_table_and_summary(results, tmp_path):
    class StubFit:
        def __init__(self, name, n_params):
            self.name = name
            self.n_params = n_params
            self.log_likelihood = -100.0
            self.aic = 200.0 + 2 * n_params
            self.bic = 210.0 + 2 * n_params

    fits = {'sarima': StubFit('SARIMA', 2), 'regression': StubFit('Regression', 14), 'dlm': StubFit('DLM', 4)}
    table = model_comparison_table(fits, results)

    assert list(table['family']) == ['sarima', 'regression', 'dlm']
    assert set(table.columns) >= {'RMSE', 'MAPE', 'n_params', 'interpretability', 'AIC', 'BIC'}
    assert table['RMSE'].notna().all()

    forecasts = {result.family: result.forecast for result in results}
    path = write_summary(str(tmp_path), comparison=table, forecasts=forecasts)

    assert (tmp_path / 'model_comparison.csv').exists()
    assert (tmp_path / 'dlm_forecast.csv').exists()
    assert 'Model comparison' in open(path).read()

"""Unit tests for forecasts, intervals and the benchmark forecast."""

import numpy as np
import pandas as pd
import pytest

from errors import DegenerateSeriesError
from forecasting import Forecast, forecast_frame, mean_forecast, prediction_interval, z_for_level
from series import MonthlySeries


def test_interval_is_point_plus_minus_z_se():
    forecast = Forecast([10.0, 12.0], [1.0, 2.0], 2020, 1)
    interval = prediction_interval(forecast)

    np.testing.assert_allclose(interval.lower, [8.04, 8.08])
    np.testing.assert_allclose(interval.upper, [11.96, 15.92])
    assert interval.z == 1.96


def test_z_for_level():
    assert z_for_level(0.95) == pytest.approx(1.959964, abs=1e-6)
    assert z_for_level(0.80) == pytest.approx(1.281552, abs=1e-6)
    with pytest.raises(ValueError):
        z_for_level(1.0)


def test_forecast_rejects_bad_standard_errors():
    with pytest.raises(ValueError):
        Forecast([1.0, 2.0], [1.0, -0.1], 2020, 1)
    with pytest.raises(ValueError):
        Forecast([1.0, 2.0], [1.0], 2020, 1)


def test_forecast_frame_columns_and_dates():
    forecast = Forecast([1.0, 2.0, 3.0], [0.5, 0.5, 0.5], 2019, 11, model='test')
    table = forecast_frame(forecast, z=2.0)

    assert list(table.columns) == ['Date', 'Forecast', 'SE', 'Lower', 'Upper']
    assert list(table['Date']) == [pd.Timestamp('2019-11-01'), pd.Timestamp('2019-12-01'),
                                   pd.Timestamp('2020-01-01')]
    np.testing.assert_allclose(table['Lower'], [0.0, 1.0, 2.0])


def test_mean_forecast_benchmark():
    series = MonthlySeries([1.0, 2.0, 3.0, 4.0], 2010, 1)
    forecast = mean_forecast(series, 3)

    np.testing.assert_allclose(forecast.mean, [2.5, 2.5, 2.5])
    np.testing.assert_allclose(forecast.se, np.full(3, np.std([1.0, 2.0, 3.0, 4.0], ddof=1)))
    assert (forecast.start_year, forecast.start_month) == (2010, 5)
    assert forecast.model == 'White noise'


def test_mean_forecast_needs_two_points():
    with pytest.raises(DegenerateSeriesError):
        mean_forecast(MonthlySeries([1.0], 2010, 1), 3)

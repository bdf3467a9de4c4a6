"""
Seasonal Forecaster - Backtesting
---------------------------------
Hold-out evaluation: refit a model family on the first part of the series,
forecast the withheld periods and score the forecast against the actual
values.
"""

from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Sequence

import numpy as np
import pandas as pd
from sklearn.metrics import mean_squared_error

from arima_model import fit_sarima, forecast_sarima
from config import CONFIG
from dlm_model import fit_dlm, forecast_dlm
from forecasting import Forecast, mean_forecast
from regression_model import fit_regression_arma, forecast_regression_arma
from series import MonthlySeries, split_at


def mean_absolute_percentage_error(y_true, y_pred):
    """Mean Absolute Percentage Error, in percent."""
    y_true, y_pred = np.asarray(y_true, dtype=float), np.asarray(y_pred, dtype=float)
    # Avoid division by zero
    mask = y_true != 0
    if not np.any(mask):
        return np.nan
    return float(np.mean(np.abs(y_true[mask] - y_pred[mask]) / np.abs(y_true[mask])) * 100)


def root_mean_squared_error(y_true, y_pred):
    """Root Mean Squared Error."""
    return float(np.sqrt(mean_squared_error(y_true, y_pred)))


def _sarima_forecaster(order, seasonal_order):
    def forecaster(train: MonthlySeries, horizon: int) -> Forecast:
        return forecast_sarima(fit_sarima(train, order, seasonal_order), horizon)
    return forecaster


def _regression_forecaster(max_ar_order=3, alpha=0.05, propagate_parameter_uncertainty=False):
    def forecaster(train: MonthlySeries, horizon: int) -> Forecast:
        fit = fit_regression_arma(train, max_ar_order, alpha)
        return forecast_regression_arma(fit, horizon, propagate_parameter_uncertainty)
    return forecaster


def _dlm_forecaster(**dlm_options):
    def forecaster(train: MonthlySeries, horizon: int) -> Forecast:
        return forecast_dlm(fit_dlm(train, **dlm_options), horizon)
    return forecaster


def default_forecasters(config: Optional[dict] = None,
                        sarima_order=None) -> Dict[str, Callable[[MonthlySeries, int], Forecast]]:
    """
    Forecasting functions for every model family, keyed by family name.

    Parameters:
    -----------
    config : dict, optional
        Project configuration (defaults to ``CONFIG``)
    sarima_order : tuple, optional
        (order, seasonal_order) to use for the SARIMA family; defaults to the
        last configured candidate
    """
    config = config or CONFIG
    if sarima_order is None:
        sarima_order = config['arima']['candidates'][-1]
    order, seasonal_order = sarima_order
    dlm = config['dlm']

    return {
        'sarima': _sarima_forecaster(tuple(order), tuple(seasonal_order)),
        'regression': _regression_forecaster(
            config['regression']['max_ar_order'],
            config['regression']['alpha'],
            config['regression']['propagate_parameter_uncertainty']
        ),
        'dlm': _dlm_forecaster(
            initial_params=dlm['initial_params'],
            method=dlm['method'],
            max_iter=dlm['max_iter'],
            log_variance_bounds=tuple(dlm['log_variance_bounds']),
            prior_variance=dlm['prior_variance']
        ),
        'mean': mean_forecast,
    }


@dataclass
class BacktestResult:
    family: str
    train: MonthlySeries
    actual: MonthlySeries
    forecast: Forecast
    rmse: float
    mape: float

    def to_frame(self) -> pd.DataFrame:
        return pd.DataFrame({
            'actual': self.actual.values,
            'forecast': self.forecast.mean,
            'se': self.forecast.se,
            'error': self.actual.values - self.forecast.mean
        }, index=self.actual.index())


def backtest(series: MonthlySeries, family: str, train_periods: int,
             test_periods: Optional[int] = None,
             forecasters: Optional[Dict[str, Callable]] = None) -> BacktestResult:
    """
    Refit one model family on a prefix of the series and score its forecast.

    Parameters:
    -----------
    series : MonthlySeries
        Full observed series
    family : str
        Model family name (``'sarima'``, ``'regression'``, ``'dlm'``, ``'mean'``)
    train_periods : int
        Number of leading observations used for fitting
    test_periods : int, optional
        Number of withheld observations to forecast (default: all remaining)
    forecasters : dict, optional
        Family name -> ``f(train, horizon) -> Forecast``

    Returns:
    --------
    BacktestResult
        Forecast, withheld actual values, RMSE and MAPE
    """
    forecasters = forecasters or default_forecasters()
    if family not in forecasters:
        raise ValueError(f"Unknown model family '{family}'. Choose from {sorted(forecasters)}")

    train, rest = split_at(series, train_periods)
    test_periods = len(rest) if test_periods is None else test_periods
    if not 1 <= test_periods <= len(rest):
        raise ValueError(f"Cannot withhold {test_periods} periods; {len(rest)} remain after training")
    actual = rest.with_values(rest.values[:test_periods])

    print(f"\nBacktesting '{family}': train {len(train)} observations, test {len(actual)} observations")
    forecast = forecasters[family](train, test_periods)

    rmse = root_mean_squared_error(actual.values, forecast.mean)
    mape = mean_absolute_percentage_error(actual.values, forecast.mean)
    print(f"'{family}' backtest performance: RMSE={rmse:.4f}, MAPE={mape:.4f}%")

    return BacktestResult(family=family, train=train, actual=actual, forecast=forecast,
                          rmse=rmse, mape=mape)


def run_backtests(series: MonthlySeries, families: Sequence[str], train_periods: int,
                  test_periods: Optional[int] = None,
                  forecasters: Optional[Dict[str, Callable]] = None) -> List[BacktestResult]:
    """Backtest several families on the same split."""
    forecasters = forecasters or default_forecasters()
    return [backtest(series, family, train_periods, test_periods, forecasters) for family in families]


def summarize_backtests(results: Sequence[BacktestResult]) -> pd.DataFrame:
    """One row per family, best RMSE first."""
    summary = pd.DataFrame([{
        'family': result.family,
        'model': result.forecast.model,
        'RMSE': result.rmse,
        'MAPE': result.mape
    } for result in results])
    summary = summary.sort_values(by='RMSE').reset_index(drop=True)

    print("\nBacktest summary:")
    print(summary.to_string(index=False))
    return summary

"""
Seasonal Forecaster - Forecasts and Prediction Intervals
--------------------------------------------------------
Common forecast container shared by every model family, plus the Gaussian
interval computation ``point +/- z * se``.
"""

from dataclasses import dataclass

import numpy as np
import pandas as pd
from scipy.stats import norm

from errors import DegenerateSeriesError
from series import MonthlySeries, period_index


@dataclass(frozen=True, eq=False)
class Forecast:
    """
    Point forecasts and standard errors for consecutive future periods.

    Attributes:
    -----------
    mean : np.ndarray
        Point forecasts
    se : np.ndarray
        Forecast standard errors
    start_year, start_month : int
        Calendar position of the first forecast period
    frequency : int
        Periods per year
    model : str
        Name of the model that produced the forecast
    """
    mean: np.ndarray
    se: np.ndarray
    start_year: int
    start_month: int
    frequency: int = 12
    model: str = ''

    def __post_init__(self):
        mean = np.asarray(self.mean, dtype=float)
        se = np.asarray(self.se, dtype=float)
        if mean.shape != se.shape or mean.ndim != 1:
            raise ValueError(f"Mean and standard error shapes differ: {mean.shape} vs {se.shape}")
        if np.any(se < 0):
            raise ValueError("Standard errors must be non-negative")
        object.__setattr__(self, 'mean', mean)
        object.__setattr__(self, 'se', se)

    def __len__(self):
        return len(self.mean)

    @classmethod
    def after(cls, series: MonthlySeries, mean, se, model: str = '') -> 'Forecast':
        """Forecast aligned immediately after the last observation of ``series``."""
        year, month = series.period_at(len(series))
        return cls(mean, se, year, month, series.frequency, model)

    def index(self) -> pd.DatetimeIndex:
        return period_index(self.start_year, self.start_month, len(self), self.frequency)


@dataclass(frozen=True, eq=False)
class PredictionInterval:
    forecast: Forecast
    lower: np.ndarray
    upper: np.ndarray
    z: float


def z_for_level(level: float = 0.95) -> float:
    """Two-sided standard normal quantile for a confidence level."""
    if not 0 < level < 1:
        raise ValueError(f"Confidence level must lie in (0, 1), got {level}")
    return float(norm.ppf(0.5 + level / 2))


def prediction_interval(forecast: Forecast, z: float = 1.96) -> PredictionInterval:
    """Gaussian prediction interval ``mean +/- z * se``."""
    return PredictionInterval(
        forecast=forecast,
        lower=forecast.mean - z * forecast.se,
        upper=forecast.mean + z * forecast.se,
        z=z
    )


def forecast_frame(forecast: Forecast, z: float = 1.96) -> pd.DataFrame:
    """Tabulate a forecast and its interval, one row per period."""
    interval = prediction_interval(forecast, z)
    return pd.DataFrame({
        'Date': forecast.index(),
        'Forecast': forecast.mean,
        'SE': forecast.se,
        'Lower': interval.lower,
        'Upper': interval.upper
    })


def mean_forecast(series: MonthlySeries, horizon: int) -> Forecast:
    """
    White-noise benchmark: every future value equals the sample mean.

    The standard error is the sample standard deviation, constant over the
    horizon.
    """
    if len(series) < 2:
        raise DegenerateSeriesError("Need at least 2 observations for a mean forecast")
    mean = np.full(horizon, series.values.mean())
    se = np.full(horizon, series.values.std(ddof=1))
    return Forecast.after(series, mean, se, model='White noise')


"""Shared fixtures: synthetic monthly series with known structure."""

import matplotlib
matplotlib.use('Agg')

import numpy as np
import pytest

from series import MonthlySeries


def make_trend_seasonal(n=120, seed=0, level=100.0, slope=0.5, amplitude=10.0, noise=2.0,
                        start_year=2010, start_month=1):
    """Linear trend + sinusoidal seasonality + Gaussian noise."""
    rng = np.random.default_rng(seed)
    t = np.arange(n)
    values = (level + slope * t + amplitude * np.sin(2 * np.pi * t / 12)
              + rng.normal(0, noise, n))
    return MonthlySeries(values, start_year, start_month)


def make_local_level_seasonal(n=120, seed=1, level_sd=1.0, noise=1.0, amplitude=8.0):
    """Random-walk level + sinusoidal seasonality + Gaussian noise."""
    rng = np.random.default_rng(seed)
    t = np.arange(n)
    level = 50.0 + np.cumsum(rng.normal(0, level_sd, n))
    values = level + amplitude * np.cos(2 * np.pi * t / 12) + rng.normal(0, noise, n)
    return MonthlySeries(values, 2010, 1)


@pytest.fixture
def trend_seasonal_series():
    return make_trend_seasonal()


@pytest.fixture
def local_level_series():
    return make_local_level_seasonal()


@pytest.fixture
def deterministic_series():
    """Integer trend + exact period-12 pattern: first and seasonal difference is zero."""
    pattern = np.array([3, 1, 4, 1, 5, 9, 2, 6, 5, 3, 5, 8])
    t = np.arange(60)
    return MonthlySeries(100 + 2 * t + pattern[t % 12], 2015, 1)

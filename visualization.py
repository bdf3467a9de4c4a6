"""
Seasonal Forecaster - Visualizations
------------------------------------
Diagnostic and forecast plots.  Every function writes one PNG file and returns
its path.
"""

import os
from typing import Dict, Sequence

import matplotlib.pyplot as plt
import numpy as np
import pandas as pd
import seaborn as sns
import statsmodels.api as sm
from statsmodels.graphics.tsaplots import plot_acf, plot_pacf

from backtesting import BacktestResult
from forecasting import Forecast, prediction_interval
from series import MonthlySeries


def _slug(title):
    return title.replace(' ', '_').replace('(', '').replace(')', '').replace(',', '').lower()


def _save(output_dir, filename):
    os.makedirs(output_dir, exist_ok=True)
    path = os.path.join(output_dir, filename)
    plt.tight_layout()
    plt.savefig(path)
    plt.close()
    return path


def plot_series(series: MonthlySeries, title='Observed Series', output_dir='visualizations'):
    """Plot the series with its 12-period rolling mean."""
    data = series.to_pandas()
    plt.figure(figsize=(12, 6))
    plt.plot(data.index, data, label='Observed')
    plt.plot(data.index, data.rolling(window=series.frequency).mean(),
             label=f'Rolling Mean (window={series.frequency})')
    plt.title(title)
    plt.xlabel('Date')
    plt.ylabel('Value')
    plt.legend()
    plt.grid(True)
    return _save(output_dir, f'series_{_slug(title)}.png')


def plot_differenced(series: MonthlySeries, differenced: MonthlySeries, title='Differenced Series',
                     output_dir='visualizations'):
    """Compare the original and differenced series."""
    fig, axes = plt.subplots(2, 1, figsize=(12, 8))

    original = series.to_pandas()
    axes[0].plot(original.index, original)
    axes[0].set_title('Original Series')
    axes[0].set_ylabel('Value')
    axes[0].grid(True)

    diffed = differenced.to_pandas()
    axes[1].plot(diffed.index, diffed, color='orange')
    axes[1].axhline(y=0, color='r', linestyle='--')
    axes[1].set_title(title)
    axes[1].set_ylabel('Value')
    axes[1].grid(True)

    return _save(output_dir, f'differencing_{_slug(title)}.png')


def plot_acf_pacf(values, lags=36, title='', output_dir='visualizations'):
    """Plot ACF and PACF to identify model orders."""
    values = np.asarray(values, dtype=float)
    lags = min(lags, len(values) // 2 - 1)
    fig, axes = plt.subplots(2, 1, figsize=(12, 8))

    plot_acf(values, lags=lags, ax=axes[0], alpha=0.05)
    axes[0].set_title(f'Autocorrelation Function - {title}')
    axes[0].grid(True)

    plot_pacf(values, lags=lags, ax=axes[1], alpha=0.05)
    axes[1].set_title(f'Partial Autocorrelation Function - {title}')
    axes[1].grid(True)

    return _save(output_dir, f'acf_pacf_{_slug(title)}.png')


def plot_residual_diagnostics(residuals: pd.Series, title='', output_dir='visualizations'):
    """Residuals over time, histogram, ACF and Q-Q plot."""
    residuals = pd.Series(residuals).dropna()
    fig, axes = plt.subplots(2, 2, figsize=(14, 10))

    axes[0, 0].plot(residuals.index, residuals)
    axes[0, 0].set_title('Residuals')
    axes[0, 0].set_xlabel('Date')
    axes[0, 0].axhline(y=0, color='r', linestyle='-')
    axes[0, 0].grid(True)

    sns.histplot(residuals, bins=20, stat='density', kde=True, ax=axes[0, 1])
    axes[0, 1].set_title('Residual Histogram')

    plot_acf(residuals.to_numpy(), lags=min(36, len(residuals) // 2 - 1), ax=axes[1, 0], alpha=0.05)
    axes[1, 0].set_title('ACF of Residuals')
    axes[1, 0].grid(True)

    sm.qqplot(residuals.to_numpy(), line='s', ax=axes[1, 1])
    axes[1, 1].set_title('Q-Q Plot of Residuals')
    axes[1, 1].grid(True)

    fig.suptitle(f'Residual Diagnostics - {title}')
    return _save(output_dir, f'diagnostics_{_slug(title)}.png')


def plot_decomposition(components: pd.DataFrame, title='DLM Decomposition', output_dir='visualizations'):
    """Smoothed trend and seasonal components against the observations."""
    fig, axes = plt.subplots(3, 1, figsize=(12, 10), sharex=True)

    axes[0].plot(components.index, components['observed'], color='black', label='Observed')
    axes[0].plot(components.index, components['trend'], color='red', label='Smoothed trend')
    axes[0].legend()
    axes[0].grid(True)

    axes[1].plot(components.index, components['seasonal'], color='green')
    axes[1].set_title('Smoothed seasonal component')
    axes[1].grid(True)

    axes[2].plot(components.index, components['irregular'], color='gray')
    axes[2].axhline(y=0, color='r', linestyle='--')
    axes[2].set_title('Irregular component')
    axes[2].grid(True)

    axes[0].set_title(title)
    return _save(output_dir, f'{_slug(title)}.png')


def plot_forecasts(series: MonthlySeries, forecasts: Dict[str, Forecast], z=1.96,
                   title='Forecasts with 95% Prediction Intervals', output_dir='visualizations',
                   filename='forecast_comparison.png'):
    """Overlay every family's forecast and interval on the observed series."""
    data = series.to_pandas()
    colors = sns.color_palette('deep', len(forecasts))

    plt.figure(figsize=(14, 8))
    plt.plot(data.index, data, label='Observed', color='black')

    for color, (name, forecast) in zip(colors, forecasts.items()):
        interval = prediction_interval(forecast, z)
        dates = forecast.index()
        plt.plot(dates, forecast.mean, label=name, color=color)
        plt.fill_between(dates, interval.lower, interval.upper, color=color, alpha=0.2)

    plt.title(title)
    plt.xlabel('Date')
    plt.ylabel('Value')
    plt.legend()
    plt.grid(True)
    return _save(output_dir, filename)


def plot_backtests(series: MonthlySeries, results: Sequence[BacktestResult],
                   title='Backtest: Forecasts of Withheld Periods', output_dir='visualizations',
                   filename='backtest_comparison.png'):
    """Forecasts of the withheld periods against the actual values."""
    data = series.to_pandas()
    colors = sns.color_palette('deep', len(results))

    plt.figure(figsize=(14, 8))
    plt.plot(data.index, data, label='Actual', color='black')

    if results:
        split = results[0].train.index()[-1]
        plt.axvline(x=split, color='gray', linestyle='--')
        plt.text(split, data.max(), 'Train-Test Split',
                 horizontalalignment='center', verticalalignment='bottom')

    for color, result in zip(colors, results):
        plt.plot(result.actual.index(), result.forecast.mean, color=color,
                 label=f"{result.family} (MAPE={result.mape:.2f}%)")

    plt.title(title)
    plt.xlabel('Date')
    plt.ylabel('Value')
    plt.legend()
    plt.grid(True)
    return _save(output_dir, filename)

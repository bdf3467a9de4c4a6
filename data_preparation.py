"""
Seasonal Forecaster - Data Preparation
--------------------------------------
Reads the observation table, wraps the consumed column as a monthly series and
prepares a stationary version of it through first-order and seasonal
differencing.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

import numpy as np
import pandas as pd
from scipy import stats
from statsmodels.tsa.stattools import adfuller

from errors import DataShapeError, DegenerateSeriesError
from series import MonthlySeries


def load_series(file_path: Union[str, Path],
                value_column: int = 2,
                start_year: int = 2010,
                start_month: int = 1,
                frequency: int = 12,
                expected_rows: Optional[int] = None) -> MonthlySeries:
    """
    Load one column of a whitespace-delimited table as a monthly series.

    Parameters:
    -----------
    file_path : str or Path
        Path to the table (no header row)
    value_column : int
        Zero-based index of the column holding the observations
    start_year, start_month : int
        Calendar position of the first row
    frequency : int
        Number of periods per year
    expected_rows : int, optional
        Exact number of rows the table must have

    Returns:
    --------
    MonthlySeries
        Observations in file order

    Raises:
    -------
    DataShapeError
        If the table cannot be parsed (ragged rows, empty file), has too few
        columns, the wrong number of rows or non-numeric values in the
        consumed column
    """
    print(f"Loading observations from {file_path}...")

    try:
        df = pd.read_csv(file_path, sep=r'\s+', header=None, comment='#')
    except (pd.errors.ParserError, pd.errors.EmptyDataError) as e:
        raise DataShapeError(f"Cannot parse {file_path} as a whitespace-delimited table: {e}") from e

    min_columns = max(3, value_column + 1)
    if df.shape[1] < min_columns:
        raise DataShapeError(
            f"Expected at least {min_columns} columns in {file_path}, found {df.shape[1]}")

    if expected_rows is not None and len(df) != expected_rows:
        raise DataShapeError(f"Expected {expected_rows} rows in {file_path}, found {len(df)}")

    values = pd.to_numeric(df.iloc[:, value_column], errors='coerce')
    bad_rows = values.index[values.isna()].tolist()
    if bad_rows:
        raise DataShapeError(
            f"Non-numeric or missing values in column {value_column} at rows {bad_rows[:5]}")

    series = MonthlySeries(values.to_numpy(dtype=float), start_year, start_month, frequency)
    end_year, end_month = series.end_period
    print(f"Loaded {len(series)} observations from {start_year}-{start_month:02d} "
          f"to {end_year}-{end_month:02d}")
    return series


def difference(series: MonthlySeries, lag: int = 1) -> MonthlySeries:
    """
    Lag-``lag`` difference ``x[t] - x[t-lag]``.

    The result starts ``lag`` periods after the input.
    """
    if lag < 1:
        raise ValueError(f"Lag must be positive, got {lag}")
    if len(series) <= lag:
        raise DegenerateSeriesError(
            f"Cannot difference {len(series)} observations at lag {lag}")
    values = series.values[lag:] - series.values[:-lag]
    return series.with_values(values, offset=lag)


def invert_difference(diffed: MonthlySeries, initial_values, lag: int = 1) -> MonthlySeries:
    """
    Undo a lag-``lag`` difference.

    Parameters:
    -----------
    diffed : MonthlySeries
        Differenced series
    initial_values : array-like
        The ``lag`` observations of the undifferenced series that precede
        ``diffed``

    Returns:
    --------
    MonthlySeries
        Reconstructed series, starting ``lag`` periods before ``diffed``
    """
    seed = np.asarray(initial_values, dtype=float)
    if len(seed) != lag:
        raise ValueError(f"Need exactly {lag} initial values, got {len(seed)}")

    restored = np.empty(len(diffed) + lag)
    restored[:lag] = seed
    for t in range(len(diffed)):
        restored[t + lag] = restored[t] + diffed.values[t]

    return diffed.with_values(restored, offset=-lag)


def seasonal_difference(series: MonthlySeries, lag: int = 1, seasonal_lag: int = 12) -> MonthlySeries:
    """First-order difference followed by a seasonal difference."""
    return difference(difference(series, lag), seasonal_lag)


def undo_seasonal_difference(diffed: MonthlySeries, original_head, lag: int = 1,
                             seasonal_lag: int = 12) -> MonthlySeries:
    """
    Reconstruct a series from its first-order-then-seasonal difference.

    ``original_head`` holds the first ``lag + seasonal_lag`` observations of
    the original series.
    """
    head_values = np.asarray(original_head, dtype=float)
    if len(head_values) != lag + seasonal_lag:
        raise ValueError(f"Need {lag + seasonal_lag} seed observations, got {len(head_values)}")

    first_diff_seed = head_values[lag:] - head_values[:-lag]
    first_diff = invert_difference(diffed, first_diff_seed, seasonal_lag)
    return invert_difference(first_diff, head_values[:lag], lag)


def check_zero_mean(series: MonthlySeries, alpha: float = 0.05) -> dict:
    """
    One-sample t-test of the hypothesis that the series mean is zero.

    Raises:
    -------
    DegenerateSeriesError
        If there are fewer than 3 observations or the series is constant
    """
    values = series.values
    if len(values) < 3:
        raise DegenerateSeriesError(f"Need at least 3 observations for a t-test, got {len(values)}")
    if np.ptp(values) == 0:
        raise DegenerateSeriesError("Series has zero variance; location test is undefined")

    result = stats.ttest_1samp(values, 0.0)
    mean_is_zero = result.pvalue > alpha
    print(f"One-sample t-test: mean={values.mean():.4f}, t={result.statistic:.4f}, "
          f"p-value={result.pvalue:.4f} -> {'mean ~ 0' if mean_is_zero else 'mean != 0'}")
    return {
        'mean': float(values.mean()),
        't_statistic': float(result.statistic),
        'p_value': float(result.pvalue),
        'mean_is_zero': bool(mean_is_zero)
    }


def check_stationarity(series: MonthlySeries, alpha: float = 0.05) -> dict:
    """
    Augmented Dickey-Fuller test on the series.

    Returns:
    --------
    dict
        ADF statistic, p-value, critical values and the stationarity verdict
    """
    if np.ptp(series.values) == 0:
        raise DegenerateSeriesError("Series has zero variance; ADF test is undefined")

    adf_result = adfuller(series.values)
    is_stationary = adf_result[1] < alpha
    print(f"Augmented Dickey-Fuller: statistic={adf_result[0]:.4f}, p-value={adf_result[1]:.6f} "
          f"-> {'Stationary' if is_stationary else 'Non-stationary'}")
    return {
        'adf_statistic': float(adf_result[0]),
        'p_value': float(adf_result[1]),
        'critical_values': dict(adf_result[4]),
        'is_stationary': bool(is_stationary)
    }


@dataclass
class StationarityReport:
    differenced: MonthlySeries
    t_statistic: float
    t_pvalue: float
    adf_statistic: float
    adf_pvalue: float
    mean_is_zero: bool
    is_stationary: bool


def prepare_stationary(series: MonthlySeries, lag: int = 1, seasonal_lag: int = 12,
                       alpha: float = 0.05) -> StationarityReport:
    """
    Difference the series and check that the result is centred and stationary.

    Parameters:
    -----------
    series : MonthlySeries
        Observed series
    lag : int
        Non-seasonal differencing lag
    seasonal_lag : int
        Seasonal differencing lag
    alpha : float
        Significance level of both tests

    Returns:
    --------
    StationarityReport
        Differenced series and test outcomes
    """
    print(f"\nDifferencing at lags {lag} and {seasonal_lag}...")
    differenced = seasonal_difference(series, lag, seasonal_lag)
    print(f"Differenced series has {len(differenced)} observations")

    location = check_zero_mean(differenced, alpha)
    adf = check_stationarity(differenced, alpha)

    return StationarityReport(
        differenced=differenced,
        t_statistic=location['t_statistic'],
        t_pvalue=location['p_value'],
        adf_statistic=adf['adf_statistic'],
        adf_pvalue=adf['p_value'],
        mean_is_zero=location['mean_is_zero'],
        is_stationary=adf['is_stationary']
    )

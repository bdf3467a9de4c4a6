"""
Seasonal Forecaster - Monthly Series
------------------------------------
Value type pairing an ordered sequence of observations with its calendar
position (start year, start month) and period length.

All windowing operations return new objects; a series is never mutated once
built.
"""

from dataclasses import dataclass
from typing import Tuple

import numpy as np
import pandas as pd

from errors import DataShapeError


def offset_period(year: int, month: int, k: int, frequency: int = 12) -> Tuple[int, int]:
    """Calendar position ``k`` periods after (year, month)."""
    position = year * frequency + (month - 1) + k
    return position // frequency, position % frequency + 1


@dataclass(frozen=True, eq=False)
class MonthlySeries:
    """
    Evenly spaced observations with a known start period.

    Attributes:
    -----------
    values : np.ndarray
        Observations, oldest first (read-only copy)
    start_year : int
        Year of the first observation
    start_month : int
        Season (1-based) of the first observation
    frequency : int
        Number of periods per year
    """
    values: np.ndarray
    start_year: int
    start_month: int = 1
    frequency: int = 12

    def __post_init__(self):
        values = np.array(self.values, dtype=float)
        if values.ndim != 1:
            raise DataShapeError(f"Series values must be one-dimensional, got shape {values.shape}")
        if len(values) == 0:
            raise DataShapeError("Series must contain at least one observation")
        if not np.all(np.isfinite(values)):
            raise DataShapeError("Series contains missing or non-finite values")
        if self.frequency < 1:
            raise DataShapeError(f"Frequency must be positive, got {self.frequency}")
        if not 1 <= self.start_month <= self.frequency:
            raise DataShapeError(
                f"Start month {self.start_month} outside 1..{self.frequency}")
        values.setflags(write=False)
        object.__setattr__(self, 'values', values)

    def __len__(self):
        return len(self.values)

    def __eq__(self, other):
        if not isinstance(other, MonthlySeries):
            return NotImplemented
        return (self.start_year == other.start_year
                and self.start_month == other.start_month
                and self.frequency == other.frequency
                and np.array_equal(self.values, other.values))

    def __repr__(self):
        end_year, end_month = self.end_period
        return (f"MonthlySeries(n={len(self)}, start={self.start_year}-{self.start_month:02d}, "
                f"end={end_year}-{end_month:02d}, frequency={self.frequency})")

    @property
    def start_period(self) -> Tuple[int, int]:
        return self.start_year, self.start_month

    @property
    def end_period(self) -> Tuple[int, int]:
        return self.period_at(len(self) - 1)

    def period_at(self, i: int) -> Tuple[int, int]:
        """Calendar position of observation ``i`` (may lie beyond the data)."""
        return offset_period(self.start_year, self.start_month, i, self.frequency)

    def season_of(self, i: int) -> int:
        """Season (1..frequency) of observation ``i``."""
        return self.period_at(i)[1]

    def seasons(self, start: int = 0, n: int = None) -> np.ndarray:
        n = len(self) - start if n is None else n
        return np.array([self.season_of(i) for i in range(start, start + n)])

    def with_values(self, values, offset: int = 0) -> 'MonthlySeries':
        """New series with the same calendar, starting ``offset`` periods later."""
        year, month = self.period_at(offset)
        return MonthlySeries(values, year, month, self.frequency)

    def index(self) -> pd.DatetimeIndex:
        return period_index(self.start_year, self.start_month, len(self), self.frequency)

    def to_pandas(self, name: str = 'value') -> pd.Series:
        """Return the observations as a ``pd.Series`` with a monthly index."""
        return pd.Series(np.array(self.values), index=self.index(), name=name)

    @classmethod
    def from_pandas(cls, series: pd.Series, frequency: int = 12) -> 'MonthlySeries':
        """Build a series from a ``pd.Series`` indexed by month-start dates."""
        index = pd.DatetimeIndex(series.index)
        if len(index) > 1:
            expected = pd.date_range(start=index[0], periods=len(index), freq='MS')
            if not index.equals(expected):
                raise DataShapeError("Index is not a gap-free monthly sequence")
        return cls(series.to_numpy(dtype=float), int(index[0].year), int(index[0].month), frequency)


def period_index(start_year: int, start_month: int, n: int, frequency: int = 12) -> pd.DatetimeIndex:
    """Month-start dates for ``n`` periods. Only monthly calendars map to dates."""
    if frequency != 12:
        raise ValueError("Calendar dates are only defined for monthly series (frequency=12)")
    return pd.date_range(start=pd.Timestamp(year=start_year, month=start_month, day=1),
                         periods=n, freq='MS')


def future_index(series: MonthlySeries, horizon: int) -> pd.DatetimeIndex:
    """Dates of the ``horizon`` periods immediately after the last observation."""
    year, month = series.period_at(len(series))
    return period_index(year, month, horizon, series.frequency)


def head(series: MonthlySeries, n: int) -> MonthlySeries:
    """First ``n`` observations."""
    if not 1 <= n <= len(series):
        raise ValueError(f"Cannot take {n} observations from a series of length {len(series)}")
    return series.with_values(series.values[:n])


def tail(series: MonthlySeries, n: int) -> MonthlySeries:
    """Last ``n`` observations, keeping their calendar positions."""
    if not 1 <= n <= len(series):
        raise ValueError(f"Cannot take {n} observations from a series of length {len(series)}")
    return series.with_values(series.values[len(series) - n:], offset=len(series) - n)


def split_at(series: MonthlySeries, n: int) -> Tuple[MonthlySeries, MonthlySeries]:
    """Split into the first ``n`` observations and the remainder."""
    return head(series, n), tail(series, len(series) - n)


def concat(first: MonthlySeries, second: MonthlySeries) -> MonthlySeries:
    """Join two series; ``second`` must start right after ``first`` ends."""
    if first.frequency != second.frequency:
        raise DataShapeError("Cannot concatenate series with different frequencies")
    if first.period_at(len(first)) != second.start_period:
        raise DataShapeError(
            f"Second series starts at {second.start_period}, expected {first.period_at(len(first))}")
    return first.with_values(np.concatenate([first.values, second.values]))

"""
Windowed Statistics

Rolling statistics over the last `period` elements of a series.
Every function returns None when the series is shorter than the window:
partial windows are never averaged.
"""

from collections import deque
from itertools import islice
from typing import NamedTuple, Optional, Sequence, Union
import numpy as np

Series = Union[Sequence[float], deque]


class Extrema(NamedTuple):
    """Highest and lowest value of a window."""

    max: float
    min: float


def _check_period(period: int) -> None:
    if period < 1:
        raise ValueError(f"Window period must be >= 1, got {period}")


def _tail(series: Series, period: int) -> np.ndarray:
    """Last `period` elements as a float array."""
    if isinstance(series, deque):
        return np.fromiter(islice(series, len(series) - period, None), dtype=float, count=period)
    return np.asarray(series[len(series) - period:], dtype=float)


def rolling_extrema(series: Series, period: int) -> Optional[Extrema]:
    """Max and min over the last `period` elements, or None if too short."""
    _check_period(period)
    if len(series) < period:
        return None

    window = _tail(series, period)
    return Extrema(max=float(np.max(window)), min=float(np.min(window)))


def rolling_midpoint(highs: Series, lows: Series, period: int) -> Optional[float]:
    """(highest high + lowest low) / 2 over the last `period` candles."""
    high_window = rolling_extrema(highs, period)
    low_window = rolling_extrema(lows, period)
    if high_window is None or low_window is None:
        return None
    return (high_window.max + low_window.min) / 2


def rolling_mean(series: Series, period: int) -> Optional[float]:
    """Arithmetic mean of the last `period` elements."""
    _check_period(period)
    if len(series) < period:
        return None
    return float(np.mean(_tail(series, period)))


def rolling_std(series: Series, period: int) -> Optional[float]:
    """Population standard deviation of the last `period` elements."""
    _check_period(period)
    if len(series) < period:
        return None
    return float(np.std(_tail(series, period)))


def rolling_weighted_mean(series: Series, period: int) -> Optional[float]:
    """Linearly weighted mean (oldest weight 1, newest weight `period`)."""
    _check_period(period)
    if len(series) < period:
        return None
    weights = np.arange(1, period + 1)
    return float(np.sum(_tail(series, period) * weights) / np.sum(weights))


def rolling_mean_deviation(series: Series, period: int) -> Optional[float]:
    """Mean absolute deviation from the window mean."""
    _check_period(period)
    if len(series) < period:
        return None
    window = _tail(series, period)
    return float(np.mean(np.abs(window - np.mean(window))))


def rolling_iqr(series: Series, period: int) -> Optional[float]:
    """Interquartile range (75th minus 25th percentile, linear interpolation)."""
    _check_period(period)
    if len(series) < period:
        return None
    q75, q25 = np.percentile(_tail(series, period), [75, 25])
    return float(q75 - q25)


def rolling_linear_fit(series: Series, period: int) -> Optional[tuple[float, float]]:
    """
    Least-squares line through the last `period` elements, x = 0 oldest.

    Returns (slope, value at the newest point).
    """
    _check_period(period)
    if period < 2 or len(series) < period:
        return None
    x = np.arange(period, dtype=float)
    slope, intercept = np.polyfit(x, _tail(series, period), 1)
    return float(slope), float(intercept + slope * (period - 1))


def opt_mean(*values: Optional[float]) -> Optional[float]:
    """Average of the inputs, or None if any input is unavailable."""
    if not values or any(v is None for v in values):
        return None
    return sum(values) / len(values)


def opt_sub(a: Optional[float], b: Optional[float]) -> Optional[float]:
    """a - b, or None if either side is unavailable."""
    if a is None or b is None:
        return None
    return a - b


class RollingWindow:
    """Bounded FIFO of the most recent values. Owned by a single indicator."""

    def __init__(self, size: int):
        _check_period(size)
        self.size = size
        self._values: deque = deque(maxlen=size)

    def append(self, value: float) -> None:
        self._values.append(value)

    def clear(self) -> None:
        self._values.clear()

    @property
    def values(self) -> deque:
        return self._values

    def is_full(self) -> bool:
        return len(self._values) == self.size

    def oldest(self) -> Optional[float]:
        return self._values[0] if self._values else None

    def __len__(self) -> int:
        return len(self._values)

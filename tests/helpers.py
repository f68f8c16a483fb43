"""Candle builders and brute-force references shared by the tests."""

import math
from datetime import datetime, timedelta, timezone
from typing import Optional, Sequence

from indicator_engine.schemas.market import OHLCV

BASE_TIME = datetime(2024, 1, 1, tzinfo=timezone.utc)
ONE_HOUR = timedelta(hours=1)


def make_candles(
    highs: Sequence[float],
    lows: Sequence[float],
    closes: Sequence[float],
    volumes: Optional[Sequence[float]] = None,
    start: datetime = BASE_TIME,
    step: timedelta = ONE_HOUR,
) -> list[OHLCV]:
    volumes = volumes if volumes is not None else [1000.0] * len(closes)
    return [
        OHLCV(
            timestamp=start + step * i,
            open=closes[i],
            high=highs[i],
            low=lows[i],
            close=closes[i],
            volume=volumes[i],
        )
        for i in range(len(closes))
    ]


def wave_candles(count: int, start: datetime = BASE_TIME) -> list[OHLCV]:
    """Deterministic oscillating price stream with a slow drift."""
    closes = [100 + 10 * math.sin(i / 5) + i * 0.1 for i in range(count)]
    highs = [c + 1.5 + (i % 3) * 0.25 for i, c in enumerate(closes)]
    lows = [c - 1.5 - (i % 4) * 0.25 for i, c in enumerate(closes)]
    volumes = [1000.0 + (i % 7) * 100 for i in range(count)]
    return make_candles(highs, lows, closes, volumes, start=start)


def spike_candles(count: int = 60, spike_at: int = 30, spike_high: float = 150.0) -> list[OHLCV]:
    """Flat candles (high 105, low 95, close 100) with one high spike (1-indexed)."""
    highs = [105.0] * count
    highs[spike_at - 1] = spike_high
    return make_candles(highs, [95.0] * count, [100.0] * count)


def brute_midpoint(highs: Sequence[float], lows: Sequence[float], end: int, period: int) -> Optional[float]:
    """Midpoint of the `period` candles ending at index `end` (inclusive)."""
    if end + 1 < period:
        return None
    start = end - period + 1
    return (max(highs[start:end + 1]) + min(lows[start:end + 1])) / 2

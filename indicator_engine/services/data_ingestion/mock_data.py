"""
Mock Data Generator

Generates reproducible mock candles for development and testing.
The same symbol, timeframe, count and end time always yield the same candles.
"""

import random
import zlib
from datetime import datetime, timedelta, timezone
from typing import Optional

from indicator_engine.schemas.market import OHLCV, TIMEFRAME_MS, Timeframe


# Base prices for common symbols
SYMBOL_BASE_PRICES = {
    "BTCUSDT": 65000.0,
    "ETHUSDT": 3200.0,
    "SOLUSDT": 150.0,
    "BNBUSDT": 580.0,
    "XRPUSDT": 0.55,
    "AAPL": 190.0,
    "MSFT": 420.0,
    "SPY": 520.0,
}


def get_base_price(symbol: str) -> float:
    """Get base price for a symbol."""
    return SYMBOL_BASE_PRICES.get(symbol, 100.0)


def ensure_utc(moment: datetime) -> datetime:
    """Naive timestamps are taken to be UTC."""
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment


def align_to_interval(moment: datetime, timeframe: Timeframe) -> datetime:
    """Floor a timestamp to the start of its candle interval."""
    moment = ensure_utc(moment)
    interval_ms = TIMEFRAME_MS[timeframe]
    epoch_ms = int(moment.timestamp() * 1000)
    return datetime.fromtimestamp((epoch_ms - epoch_ms % interval_ms) / 1000, tz=timezone.utc)


def generate_mock_ohlcv(
    symbol: str,
    timeframe: Timeframe,
    lookback: int,
    end_time: Optional[datetime] = None,
    seed: int = 42,
) -> list[OHLCV]:
    """Generate `lookback` mock candles, the last one starting at `end_time`."""
    if end_time is None:
        end_time = datetime.now(timezone.utc)

    rng = random.Random(seed ^ zlib.crc32(f"{symbol}:{timeframe.value}".encode()))
    interval = timedelta(milliseconds=TIMEFRAME_MS[timeframe])
    price = get_base_price(symbol)
    volatility = price * 0.02  # 2% volatility

    timestamp = align_to_interval(end_time, timeframe) - interval * (lookback - 1)
    candles = []

    for _ in range(lookback):
        # Random walk
        change = (rng.random() - 0.5) * volatility

        open_price = price
        close_price = max(open_price + change, volatility)
        high_price = max(open_price, close_price) + rng.random() * volatility * 0.5
        low_price = max(min(open_price, close_price) - rng.random() * volatility * 0.5, 0.0)

        candles.append(
            OHLCV(
                timestamp=timestamp,
                open=round(open_price, 4),
                high=round(high_price, 4),
                low=round(low_price, 4),
                close=round(close_price, 4),
                volume=float(rng.randint(100, 50_000)),
            )
        )

        price = close_price
        timestamp += interval

    return candles

"""
CONTRACT 1: Market Data

Input: CandleRequest
Output: list[OHLCV]

Candles are supplied by an external Data Provider, already sorted by
timestamp (ascending) and de-duplicated.
"""

from datetime import datetime
from enum import Enum
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field


# =============================================================================
# ENUMS
# =============================================================================


class Timeframe(str, Enum):
    M1 = "1m"
    M5 = "5m"
    M15 = "15m"
    M30 = "30m"
    H1 = "1h"
    H4 = "4h"
    D1 = "1d"
    W1 = "1w"


# Timeframe to milliseconds
TIMEFRAME_MS = {
    Timeframe.M1: 60_000,
    Timeframe.M5: 300_000,
    Timeframe.M15: 900_000,
    Timeframe.M30: 1_800_000,
    Timeframe.H1: 3_600_000,
    Timeframe.H4: 14_400_000,
    Timeframe.D1: 86_400_000,
    Timeframe.W1: 604_800_000,
}


# =============================================================================
# CANDLES
# =============================================================================


class OHLCV(BaseModel):
    """Single candlestick data point. Immutable once received."""

    model_config = ConfigDict(frozen=True)

    timestamp: datetime
    open: float
    high: float
    low: float
    close: float
    volume: float = Field(default=0.0, ge=0)


# The engine refers to a single observation as a candle
Candle = OHLCV


# =============================================================================
# INPUT: CandleRequest
# =============================================================================


class CandleRequest(BaseModel):
    """
    Request for candle history.
    Sent by: Indicator Service
    Received by: Data Provider
    """

    symbol: str = Field(..., min_length=1, description="Symbol to fetch (e.g., 'BTCUSDT')")
    timeframe: Timeframe = Field(default=Timeframe.H1, description="Candle timeframe")
    count: int = Field(..., ge=1, description="Number of most recent candles to fetch")
    end_time: Optional[datetime] = Field(
        default=None,
        description="Fetch candles up to this time (default: now)",
    )

"""
Indicator Engine Schema Contracts

This module defines all contracts between the engine and its callers.
"""

from indicator_engine.schemas.market import (
    Candle,
    CandleRequest,
    OHLCV,
    Timeframe,
)
from indicator_engine.schemas.indicators import (
    CalculationResult,
    IchimokuParams,
    IchimokuSignal,
    IndicatorCategory,
    IndicatorKind,
    IndicatorMetadata,
    IndicatorRequest,
    IndicatorSpec,
    TimeSeriesResult,
)

__all__ = [
    # Market
    "Candle",
    "CandleRequest",
    "OHLCV",
    "Timeframe",
    # Indicators
    "CalculationResult",
    "IchimokuParams",
    "IchimokuSignal",
    "IndicatorCategory",
    "IndicatorKind",
    "IndicatorMetadata",
    "IndicatorRequest",
    "IndicatorSpec",
    "TimeSeriesResult",
]

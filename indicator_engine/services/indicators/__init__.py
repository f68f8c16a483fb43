"""
Indicator Engine Service

CONTRACT:
    Input:  IndicatorRequest
    Output: CalculationResult / TimeSeriesResult

RESPONSIBILITIES:
    - Streaming indicator state machines (moving averages, oscillators,
      volatility bands, Ichimoku Cloud, volume)
    - Signal interpretation from the latest values
    - Indicator catalog and parameter defaults
    - Replaying candle history from the data provider

All math is deterministic and reproducible.
"""

from indicator_engine.services.indicators.interface import IndicatorServiceInterface
from indicator_engine.services.indicators.service import IndicatorService, get_indicator_service

__all__ = [
    "IndicatorServiceInterface",
    "IndicatorService",
    "get_indicator_service",
]

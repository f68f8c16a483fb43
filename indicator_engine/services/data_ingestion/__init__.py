"""
Data Provider

CONTRACT:
    Input:  CandleRequest
    Output: list[OHLCV]

RESPONSIBILITIES:
    - Supply candles sorted by timestamp, without duplicates
    - Raise DataUnavailableError when no candles can be supplied

The engine performs no gap filling or retries on top of a provider.
"""

from indicator_engine.services.data_ingestion.interface import DataProviderInterface
from indicator_engine.services.data_ingestion.service import (
    InMemoryDataProvider,
    MockDataProvider,
    get_data_provider,
)

__all__ = [
    "DataProviderInterface",
    "InMemoryDataProvider",
    "MockDataProvider",
    "get_data_provider",
]

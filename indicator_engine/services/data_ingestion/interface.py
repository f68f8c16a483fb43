"""
Data Provider Interface

Defines the contract for the candle supply layer.
"""

from abc import abstractmethod
from datetime import datetime
from typing import Optional

from indicator_engine.services.base import BaseService
from indicator_engine.schemas.market import OHLCV, CandleRequest, Timeframe


class DataProviderInterface(BaseService[CandleRequest, list[OHLCV]]):
    """
    Data Provider Contract.

    INPUT: CandleRequest
        - symbol: Symbol to fetch
        - timeframe: Candle timeframe
        - count: Number of most recent candles

    OUTPUT: list[OHLCV]
        - Sorted by timestamp ascending, no duplicates
        - May be shorter than `count` when less history exists

    Raises DataUnavailableError when no candles can be supplied.
    """

    @property
    def name(self) -> str:
        return "DataProvider"

    async def execute(self, input_data: CandleRequest) -> list[OHLCV]:
        """Fetch candles for a request."""
        return await self.fetch_candles(
            symbol=input_data.symbol,
            timeframe=input_data.timeframe,
            count=input_data.count,
            end_time=input_data.end_time,
        )

    @abstractmethod
    async def fetch_candles(
        self,
        symbol: str,
        timeframe: Timeframe,
        count: int,
        end_time: Optional[datetime] = None,
    ) -> list[OHLCV]:
        """
        Fetch the most recent `count` candles ending at `end_time`.

        Args:
            symbol: Symbol to fetch
            timeframe: Candle timeframe
            count: Maximum number of candles
            end_time: Last candle time (inclusive), default: latest

        Returns:
            Ordered candles, oldest first
        """
        pass

    async def health_check(self) -> bool:
        return True

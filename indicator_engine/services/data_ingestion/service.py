"""
Data Provider Implementations

In-process candle sources. Real exchange adapters live outside this
package and implement DataProviderInterface the same way.
"""

from datetime import datetime
from typing import Iterable, Optional
import logging

from indicator_engine.core.config import settings
from indicator_engine.schemas.market import OHLCV, Timeframe
from indicator_engine.services.base import DataUnavailableError
from indicator_engine.services.data_ingestion.interface import DataProviderInterface
from indicator_engine.services.data_ingestion.mock_data import ensure_utc, generate_mock_ohlcv

logger = logging.getLogger(__name__)


class InMemoryDataProvider(DataProviderInterface):
    """
    Serves candles loaded ahead of time, per (symbol, timeframe).

    Candles are sorted and de-duplicated by timestamp on load. Naive
    timestamps, stored or requested, are read as UTC.
    """

    def __init__(self):
        self._series: dict[tuple[str, Timeframe], list[OHLCV]] = {}

    @property
    def name(self) -> str:
        return "InMemoryDataProvider"

    def load(self, symbol: str, timeframe: Timeframe, candles: Iterable[OHLCV]) -> None:
        """Replace the stored candles for a symbol and timeframe."""
        by_time = {ensure_utc(c.timestamp): c for c in candles}
        self._series[(symbol, Timeframe(timeframe))] = [by_time[t] for t in sorted(by_time)]
        logger.debug(f"Loaded {len(by_time)} candles for {symbol} {Timeframe(timeframe).value}")

    async def fetch_candles(
        self,
        symbol: str,
        timeframe: Timeframe,
        count: int,
        end_time: Optional[datetime] = None,
    ) -> list[OHLCV]:
        candles = self._series.get((symbol, Timeframe(timeframe)))
        if not candles:
            raise DataUnavailableError(
                self.name,
                f"No data received for {symbol} ({Timeframe(timeframe).value})",
                {"symbol": symbol, "timeframe": Timeframe(timeframe).value},
            )

        if end_time is not None:
            end_time = ensure_utc(end_time)
            candles = [c for c in candles if ensure_utc(c.timestamp) <= end_time]
            if not candles:
                raise DataUnavailableError(
                    self.name,
                    f"No data for {symbol} at or before {end_time.isoformat()}",
                    {"symbol": symbol, "end_time": end_time.isoformat()},
                )

        return candles[-count:]


class MockDataProvider(DataProviderInterface):
    """Deterministic random-walk candles for any symbol."""

    def __init__(self, seed: Optional[int] = None, max_data_points: Optional[int] = None):
        self.seed = settings.mock_seed if seed is None else seed
        self.max_data_points = max_data_points or settings.max_data_points

    @property
    def name(self) -> str:
        return "MockDataProvider"

    async def fetch_candles(
        self,
        symbol: str,
        timeframe: Timeframe,
        count: int,
        end_time: Optional[datetime] = None,
    ) -> list[OHLCV]:
        if count < 1:
            raise DataUnavailableError(self.name, f"Invalid candle count: {count}", {"count": count})

        count = min(count, self.max_data_points)
        return generate_mock_ohlcv(
            symbol=symbol,
            timeframe=Timeframe(timeframe),
            lookback=count,
            end_time=end_time,
            seed=self.seed,
        )


# Singleton instance
_provider_instance: Optional[DataProviderInterface] = None


def get_data_provider() -> DataProviderInterface:
    """Get or create the default data provider."""
    global _provider_instance
    if _provider_instance is None:
        _provider_instance = MockDataProvider()
    return _provider_instance

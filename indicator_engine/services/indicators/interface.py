"""
Indicator Engine Service Interface

Defines the contract for the indicator calculation layer.
"""

from abc import abstractmethod
from typing import Optional

from indicator_engine.services.base import BaseService
from indicator_engine.schemas.indicators import (
    CalculationResult,
    IndicatorMetadata,
    IndicatorRequest,
    TimeSeriesResult,
)


class IndicatorServiceInterface(BaseService[IndicatorRequest, CalculationResult]):
    """
    Indicator Engine Service Contract.

    INPUT: IndicatorRequest
        - symbol / timeframe: which candle stream to read
        - indicators: list of {key, params, alias}
        - bars: number of output candles

    OUTPUT: CalculationResult
        - Key: indicator alias (or key)
        - Value: current values, readiness and optional signal
    """

    @property
    def name(self) -> str:
        return "IndicatorService"

    @abstractmethod
    async def execute(self, input_data: IndicatorRequest) -> CalculationResult:
        """Calculate the current value of every requested indicator."""
        pass

    @abstractmethod
    def get_catalog(self, category: Optional[str] = None) -> dict[str, dict[str, IndicatorMetadata]]:
        """
        Get the indicator catalog, grouped by category. An empty or
        missing category returns every category.

        Raises:
            UnknownCategoryError: If `category` is not a known category
        """
        pass

    @abstractmethod
    def get_indicator_metadata(self, key: str) -> Optional[IndicatorMetadata]:
        """Catalog entry for one indicator, None if unknown."""
        pass

    @abstractmethod
    async def calculate_indicators(self, request: IndicatorRequest) -> CalculationResult:
        """Replay candle history and return the final result per indicator."""
        pass

    @abstractmethod
    async def get_indicator_time_series(self, request: IndicatorRequest) -> TimeSeriesResult:
        """Replay candle history and return one aligned point per candle."""
        pass

    @abstractmethod
    async def health_check(self) -> bool:
        """Indicator service is always healthy (pure computation)."""
        pass

"""
Indicator Engine Service Implementation

Resolves requested indicators against the registry, fetches candle history
from the data provider and replays it through fresh indicator instances.
Only the fetch suspends; all indicator math is synchronous.
"""

from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional
import asyncio
import logging
import math

from indicator_engine.core.config import settings
from indicator_engine.schemas.indicators import (
    CalculationMetadata,
    CalculationResult,
    IndicatorCategory,
    IndicatorCalculation,
    IndicatorMetadata,
    IndicatorParams,
    IndicatorRequest,
    IndicatorSpec,
    IndicatorTimeSeries,
    TimeSeriesPoint,
    TimeSeriesResult,
)
from indicator_engine.schemas.market import OHLCV, Timeframe
from indicator_engine.services.base import (
    DataUnavailableError,
    UnknownCategoryError,
    ValidationError,
)
from indicator_engine.services.data_ingestion import DataProviderInterface, get_data_provider
from indicator_engine.services.indicators.calculations import Result, StreamingIndicator, read_candle
from indicator_engine.services.indicators.interface import IndicatorServiceInterface
from indicator_engine.services.indicators.registry import (
    IndicatorDefinition,
    get_definition,
    get_formatted_catalog,
    get_indicator_metadata,
    resolve_params,
)
from indicator_engine.services.indicators.signals import SIGNAL_DERIVERS, derive_signal

logger = logging.getLogger(__name__)

InstanceKey = tuple[str, Timeframe, str, tuple]


@dataclass
class ResolvedIndicator:
    """A requested indicator after registry lookup and parameter merge."""

    label: str
    definition: IndicatorDefinition
    params: IndicatorParams

    def create(self) -> StreamingIndicator:
        return self.definition.create(self.params)


class IndicatorService(IndicatorServiceInterface):
    """
    Indicator Engine Service.

    Point-in-time and time-series calculations always replay into fresh
    instances. Long-lived instances for incremental streaming are cached
    per (symbol, timeframe, indicator, parameters) and owned by the service.
    """

    def __init__(self, data_provider: Optional[DataProviderInterface] = None):
        self.data_provider = data_provider or get_data_provider()
        self.precision = settings.indicator_precision
        self._instances: dict[InstanceKey, StreamingIndicator] = {}
        logger.info(
            f"IndicatorService initialized - provider: {self.data_provider.name}, "
            f"precision: {self.precision} decimal places"
        )

    @property
    def name(self) -> str:
        return "IndicatorService"

    async def execute(self, input_data: IndicatorRequest) -> CalculationResult:
        return await self.calculate_indicators(input_data)

    # =========================================================================
    # CATALOG
    # =========================================================================

    def get_catalog(self, category: Optional[str] = None) -> dict[str, dict[str, IndicatorMetadata]]:
        full_catalog = get_formatted_catalog()

        if category:
            key = category.value if isinstance(category, IndicatorCategory) else category
            if key not in full_catalog:
                raise UnknownCategoryError(
                    self.name,
                    f"Unknown category: {category}. Valid categories: {', '.join(full_catalog)}",
                    {"category": str(category), "valid_categories": list(full_catalog)},
                )
            return {key: full_catalog[key]}

        return full_catalog

    def get_indicator_metadata(self, key: str) -> Optional[IndicatorMetadata]:
        return get_indicator_metadata(key)

    # =========================================================================
    # CALCULATION
    # =========================================================================

    async def calculate_indicators(self, request: IndicatorRequest) -> CalculationResult:
        """Calculate the current value of every requested indicator."""
        resolved = self._resolve(request.indicators)
        timeframe = request.timeframe or settings.default_timeframe
        candles, _ = await self._fetch_history(request, timeframe, resolved)
        last = candles[-1]

        instances = {r.label: r.create() for r in resolved}
        for candle in candles:
            for instance in instances.values():
                instance.update(candle)

        results = {
            r.label: self._to_calculation(
                r, instances[r.label], last, self._signal_close(r, last, request.include_signals)
            )
            for r in resolved
        }

        return CalculationResult(
            symbol=request.symbol,
            timeframe=timeframe,
            results=results,
            metadata=CalculationMetadata(
                data_points=len(candles),
                indicators=len(resolved),
                calculated_at=datetime.now(),
            ),
        )

    async def get_indicator_time_series(self, request: IndicatorRequest) -> TimeSeriesResult:
        """One point per candle for each indicator; None before readiness."""
        resolved = self._resolve(request.indicators)
        timeframe = request.timeframe or settings.default_timeframe
        candles, bars = await self._fetch_history(request, timeframe, resolved, extra=request.offset)

        instances = {r.label: r.create() for r in resolved}
        points: dict[str, list[TimeSeriesPoint]] = {r.label: [] for r in resolved}

        for candle in candles:
            for label, instance in instances.items():
                instance.update(candle)
                points[label].append(
                    TimeSeriesPoint(
                        timestamp=candle.timestamp,
                        values=self._round_result(instance.get_result()),
                    )
                )

        series = {}
        for r in resolved:
            available = points[r.label]
            if request.offset:
                available = available[:-request.offset]
            data = available[-bars:]
            if not any(v is not None for p in data for v in p.values.values()):
                logger.warning(
                    f"No valid data points for {r.label} ({request.symbol}). "
                    f"Total bars: {len(candles)}. This may indicate insufficient data or warmup issues."
                )
            series[r.label] = IndicatorTimeSeries(
                key=r.definition.kind,
                alias=r.label,
                category=r.definition.category,
                params=r.params.model_dump(),
                components=list(r.definition.output_fields),
                bars=len(data),
                data=data,
            )

        return TimeSeriesResult(symbol=request.symbol, timeframe=timeframe, series=series)

    async def calculate_many(self, requests: list[IndicatorRequest]) -> list[CalculationResult]:
        """Independent requests run concurrently; instances never share state."""
        return list(await asyncio.gather(*(self.calculate_indicators(r) for r in requests)))

    # =========================================================================
    # STREAMING INSTANCES
    # =========================================================================

    def stream_update(
        self,
        symbol: str,
        timeframe: Timeframe,
        spec: IndicatorSpec,
        candle: Any,
        include_signals: bool = True,
    ) -> IndicatorCalculation:
        """
        Advance the cached instance for (symbol, timeframe, indicator,
        parameters) by one candle, creating it on first use.
        """
        (resolved,) = self._resolve([spec])
        key = self._instance_key(symbol, timeframe, resolved)
        # Read the signal close before the instance advances
        close = self._signal_close(resolved, candle, include_signals)

        instance = self._instances.get(key)
        if instance is None:
            instance = resolved.create()
            self._instances[key] = instance
            logger.debug(f"Created {resolved.definition.kind.value} instance for {symbol} {key[1].value}")

        instance.update(candle)
        return self._to_calculation(resolved, instance, candle, close)

    def reset_instance(self, symbol: str, timeframe: Timeframe, spec: IndicatorSpec) -> bool:
        """Reset a cached instance. Returns False if none exists."""
        (resolved,) = self._resolve([spec])
        instance = self._instances.get(self._instance_key(symbol, timeframe, resolved))
        if instance is None:
            return False
        instance.reset()
        return True

    def discard_instances(self, symbol: Optional[str] = None) -> int:
        """Drop cached instances (all, or those of one symbol)."""
        doomed = [k for k in self._instances if symbol is None or k[0] == symbol]
        for key in doomed:
            del self._instances[key]
        return len(doomed)

    async def health_check(self) -> bool:
        """Indicator service is always healthy (pure computation)."""
        return True

    # =========================================================================
    # HELPERS
    # =========================================================================

    def _resolve(self, specs: list[IndicatorSpec]) -> list[ResolvedIndicator]:
        resolved = []
        seen: set[str] = set()
        for spec in specs:
            if spec.label in seen:
                raise ValidationError(
                    self.name,
                    f"Duplicate indicator label: {spec.label}. Use 'alias' to request a kind twice.",
                    {"label": spec.label},
                )
            seen.add(spec.label)
            definition = get_definition(spec.key)
            resolved.append(
                ResolvedIndicator(
                    label=spec.label,
                    definition=definition,
                    params=resolve_params(definition.kind, spec.params),
                )
            )
        return resolved

    async def _fetch_history(
        self,
        request: IndicatorRequest,
        timeframe: Timeframe,
        resolved: list[ResolvedIndicator],
        extra: int = 0,
    ) -> tuple[list[OHLCV], int]:
        """Fetch requested bars, `extra` trailing bars and a warmup buffer. Returns (candles, bars)."""
        bars = request.bars or settings.default_bars
        max_warmup = max((r.definition.warmup(r.params) for r in resolved), default=0)
        warmup_buffer = math.ceil((max_warmup or settings.default_warmup) * settings.warmup_buffer_ratio)
        total = min(bars + extra + warmup_buffer, settings.max_data_points)

        logger.debug(
            f"Fetching OHLCV for {request.symbol}: {bars} requested + {extra} offset + {warmup_buffer} warmup "
            f"= {total} total bars"
        )
        candles = await self.data_provider.fetch_candles(
            symbol=request.symbol,
            timeframe=timeframe,
            count=total,
            end_time=request.end_time,
        )

        if not candles:
            raise DataUnavailableError(
                self.name,
                f"No data received for {request.symbol}",
                {"symbol": request.symbol, "timeframe": timeframe.value},
            )
        if len(candles) < total:
            logger.warning(
                f"Requested {total} bars but only got {len(candles)}. "
                f"Results may have null values at the beginning."
            )

        return candles, bars

    def _to_calculation(
        self,
        resolved: ResolvedIndicator,
        instance: StreamingIndicator,
        candle: Any,
        close: Optional[float],
    ) -> IndicatorCalculation:
        result = instance.get_result()
        signal = derive_signal(resolved.definition.kind, result, close) if close is not None else None

        timestamp = candle.get("timestamp") if isinstance(candle, Mapping) else getattr(candle, "timestamp", None)
        return IndicatorCalculation(
            key=resolved.definition.kind,
            alias=resolved.label,
            category=resolved.definition.category,
            params=resolved.params.model_dump(),
            values=self._round_result(result),
            signal=signal,
            ready=instance.is_ready(),
            timestamp=timestamp,
        )

    def _signal_close(self, resolved: ResolvedIndicator, candle: Any, include_signals: bool) -> Optional[float]:
        """Close used to interpret the result, or None when no signal will be derived."""
        if not include_signals or resolved.definition.kind not in SIGNAL_DERIVERS:
            return None
        return read_candle(candle, ("close",), owner=self.name)["close"]

    def _round_result(self, result: Result) -> dict[str, Optional[float]]:
        return {k: (round(v, self.precision) if v is not None else None) for k, v in result.items()}

    def _to_timeframe(self, timeframe: Any) -> Timeframe:
        try:
            return Timeframe(timeframe)
        except ValueError:
            raise ValidationError(
                self.name,
                f"Invalid timeframe: {timeframe}. Valid timeframes: {', '.join(t.value for t in Timeframe)}",
                {"timeframe": str(timeframe)},
            )

    def _instance_key(self, symbol: str, timeframe: Timeframe, resolved: ResolvedIndicator) -> InstanceKey:
        return (
            symbol,
            self._to_timeframe(timeframe),
            resolved.definition.kind.value,
            tuple(sorted(resolved.params.model_dump().items())),
        )


# Singleton instance
_service_instance: Optional[IndicatorService] = None


def get_indicator_service() -> IndicatorService:
    """Get or create indicator service instance."""
    global _service_instance
    if _service_instance is None:
        _service_instance = IndicatorService()
    return _service_instance

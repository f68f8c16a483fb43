"""
Indicator Registry

Closed mapping from indicator kind to its definition: display metadata,
category, typed parameter model, implementation class and warmup. The
registry is built at import time and never mutated.
"""

from dataclasses import dataclass
from typing import Callable, Optional, Union
from pydantic import ValidationError as PydanticValidationError

from indicator_engine.schemas.indicators import (
    IchimokuParams,
    IndicatorCategory,
    IndicatorKind,
    IndicatorMetadata,
    IndicatorParams,
)
from indicator_engine.services.base import UnknownIndicatorError, ValidationError
from indicator_engine.services.indicators.calculations import (
    AC,
    ADX,
    AO,
    ATR,
    CCI,
    CG,
    DEMA,
    DMA,
    DX,
    EMA,
    IQR,
    MACD,
    MAD,
    MOM,
    OBV,
    RMA,
    ROC,
    RSI,
    SMA,
    SMA15,
    TDS,
    TR,
    VWAP,
    WMA,
    WSMA,
    AccelerationBands,
    BollingerBands,
    BollingerBandsWidth,
    LinearRegression,
    ParabolicSAR,
    Stochastic,
    StochasticRSI,
    StreamingIndicator,
    WilliamsR,
)
from indicator_engine.services.indicators.ichimoku import IchimokuCloud

REGISTRY_NAME = "IndicatorRegistry"


@dataclass(frozen=True)
class IndicatorDefinition:
    """Everything the engine knows about one indicator kind."""

    kind: IndicatorKind
    name: str
    description: str
    category: IndicatorCategory
    indicator_class: type[StreamingIndicator]
    warmup: Callable[[IndicatorParams], int]

    @property
    def params_model(self) -> type[IndicatorParams]:
        return self.indicator_class.params_model

    @property
    def output_fields(self) -> tuple[str, ...]:
        return self.indicator_class.output_fields

    def create(self, params: IndicatorParams) -> StreamingIndicator:
        return self.indicator_class(params)

    def metadata(self) -> IndicatorMetadata:
        defaults = self.params_model()
        return IndicatorMetadata(
            key=self.kind.value,
            name=self.name,
            description=self.description,
            category=self.category,
            parameters=self.params_model.model_json_schema(),
            defaults=defaults.model_dump(),
            output_fields=list(self.output_fields),
            warmup=self.warmup(defaults),
        )


def _ichimoku_warmup(p: IchimokuParams) -> int:
    # Leading spans need the slowest window plus the displacement to show
    return max(p.conversion, p.base, p.leading_b) + p.displacement


_DEFINITIONS = [
    # Moving averages
    IndicatorDefinition(
        IndicatorKind.SMA, "Simple Moving Average",
        "Arithmetic mean of the last N closes",
        IndicatorCategory.MOVING_AVERAGES, SMA, lambda p: p.period,
    ),
    IndicatorDefinition(
        IndicatorKind.EMA, "Exponential Moving Average",
        "Exponentially weighted mean of closes, seeded with the SMA",
        IndicatorCategory.MOVING_AVERAGES, EMA, lambda p: p.period * 2,
    ),
    IndicatorDefinition(
        IndicatorKind.WMA, "Weighted Moving Average",
        "Linearly weighted mean of the last N closes",
        IndicatorCategory.MOVING_AVERAGES, WMA, lambda p: p.period,
    ),
    IndicatorDefinition(
        IndicatorKind.WSMA, "Wilder's Smoothed Moving Average",
        "Wilder smoothing of closes, seeded with the SMA",
        IndicatorCategory.MOVING_AVERAGES, WSMA, lambda p: p.period,
    ),
    IndicatorDefinition(
        IndicatorKind.DEMA, "Double Exponential Moving Average",
        "Twice the EMA minus the EMA of the EMA",
        IndicatorCategory.MOVING_AVERAGES, DEMA, lambda p: p.period * 2,
    ),
    IndicatorDefinition(
        IndicatorKind.RMA, "Running Moving Average",
        "Exponential smoothing with alpha 1/N from the first close",
        IndicatorCategory.MOVING_AVERAGES, RMA, lambda p: p.period,
    ),
    IndicatorDefinition(
        IndicatorKind.DMA, "Dual Moving Average",
        "Short and long SMA of the close",
        IndicatorCategory.MOVING_AVERAGES, DMA, lambda p: p.long,
    ),
    IndicatorDefinition(
        IndicatorKind.SMA15, "Spencer's 15-Point Moving Average",
        "Symmetric 15-point weighted average of closes",
        IndicatorCategory.MOVING_AVERAGES, SMA15, lambda p: 15,
    ),
    # Momentum
    IndicatorDefinition(
        IndicatorKind.RSI, "Relative Strength Index",
        "Ratio of average gains to average losses (0-100)",
        IndicatorCategory.MOMENTUM, RSI, lambda p: p.period * 2 + 1,
    ),
    IndicatorDefinition(
        IndicatorKind.MACD, "MACD",
        "Fast EMA minus slow EMA, with signal line and histogram",
        IndicatorCategory.MOMENTUM, MACD, lambda p: p.slow + p.signal,
    ),
    IndicatorDefinition(
        IndicatorKind.STOCHASTIC, "Stochastic Oscillator",
        "Close relative to the high-low range (%K) and its average (%D)",
        IndicatorCategory.MOMENTUM, Stochastic, lambda p: p.k + p.d - 1,
    ),
    IndicatorDefinition(
        IndicatorKind.WILLIAMS_R, "Williams %R",
        "Close relative to the high-low range (-100 to 0)",
        IndicatorCategory.MOMENTUM, WilliamsR, lambda p: p.period,
    ),
    IndicatorDefinition(
        IndicatorKind.ROC, "Rate of Change",
        "Percent change against the close N candles ago",
        IndicatorCategory.MOMENTUM, ROC, lambda p: p.period + 1,
    ),
    IndicatorDefinition(
        IndicatorKind.MOM, "Momentum",
        "Close minus the close N candles ago",
        IndicatorCategory.MOMENTUM, MOM, lambda p: p.period + 1,
    ),
    IndicatorDefinition(
        IndicatorKind.STOCH_RSI, "Stochastic RSI",
        "RSI relative to its own high-low range, smoothed (0-100)",
        IndicatorCategory.MOMENTUM, StochasticRSI, lambda p: p.period * 2 + p.k + p.d - 2,
    ),
    IndicatorDefinition(
        IndicatorKind.CCI, "Commodity Channel Index",
        "Typical price deviation from its mean, scaled by mean deviation",
        IndicatorCategory.MOMENTUM, CCI, lambda p: p.period,
    ),
    IndicatorDefinition(
        IndicatorKind.AO, "Awesome Oscillator",
        "Short SMA minus long SMA of the median price",
        IndicatorCategory.MOMENTUM, AO, lambda p: p.long,
    ),
    IndicatorDefinition(
        IndicatorKind.AC, "Accelerator Oscillator",
        "Awesome Oscillator minus its moving average",
        IndicatorCategory.MOMENTUM, AC, lambda p: p.long + p.signal - 1,
    ),
    IndicatorDefinition(
        IndicatorKind.CG, "Center of Gravity",
        "Ehlers' position-weighted oscillator with signal line",
        IndicatorCategory.MOMENTUM, CG, lambda p: p.period + p.signal - 1,
    ),
    # Volatility
    IndicatorDefinition(
        IndicatorKind.ATR, "Average True Range",
        "Wilder-smoothed true range",
        IndicatorCategory.VOLATILITY, ATR, lambda p: p.period * 2,
    ),
    IndicatorDefinition(
        IndicatorKind.BB, "Bollinger Bands",
        "SMA with bands at a multiple of the standard deviation",
        IndicatorCategory.VOLATILITY, BollingerBands, lambda p: p.period,
    ),
    IndicatorDefinition(
        IndicatorKind.TR, "True Range",
        "Range of the candle including a gap from the previous close",
        IndicatorCategory.VOLATILITY, TR, lambda p: 1,
    ),
    IndicatorDefinition(
        IndicatorKind.BB_WIDTH, "Bollinger Bands Width",
        "Distance between the Bollinger Bands relative to the middle band",
        IndicatorCategory.VOLATILITY, BollingerBandsWidth, lambda p: p.period,
    ),
    IndicatorDefinition(
        IndicatorKind.ACCELERATION_BANDS, "Acceleration Bands",
        "SMA envelopes of highs and lows widened by the candle range",
        IndicatorCategory.VOLATILITY, AccelerationBands, lambda p: p.period,
    ),
    IndicatorDefinition(
        IndicatorKind.IQR, "Interquartile Range",
        "Spread between the 75th and 25th percentile of closes",
        IndicatorCategory.VOLATILITY, IQR, lambda p: p.period,
    ),
    IndicatorDefinition(
        IndicatorKind.MAD, "Mean Absolute Deviation",
        "Average distance of closes from their mean",
        IndicatorCategory.VOLATILITY, MAD, lambda p: p.period,
    ),
    # Trend
    IndicatorDefinition(
        IndicatorKind.PSAR, "Parabolic SAR",
        "Trailing stop-and-reverse level",
        IndicatorCategory.TREND, ParabolicSAR, lambda p: 2,
    ),
    IndicatorDefinition(
        IndicatorKind.ICHIMOKU, "Ichimoku Cloud",
        "Conversion, base, leading spans (cloud) and lagging span",
        IndicatorCategory.TREND, IchimokuCloud, _ichimoku_warmup,
    ),
    IndicatorDefinition(
        IndicatorKind.ADX, "Average Directional Index",
        "Trend strength from smoothed directional movement, with +DI and -DI",
        IndicatorCategory.TREND, ADX, lambda p: p.period * 2,
    ),
    IndicatorDefinition(
        IndicatorKind.DX, "Directional Movement Index",
        "Spread between +DI and -DI relative to their sum",
        IndicatorCategory.TREND, DX, lambda p: p.period + 1,
    ),
    IndicatorDefinition(
        IndicatorKind.TDS, "TD Sequential",
        "Nine-count setup of closes against the close four candles earlier",
        IndicatorCategory.TREND, TDS, lambda p: 5,
    ),
    IndicatorDefinition(
        IndicatorKind.LINEAR_REGRESSION, "Linear Regression",
        "Least-squares fit of closes: current value and slope",
        IndicatorCategory.TREND, LinearRegression, lambda p: p.period,
    ),
    # Volume
    IndicatorDefinition(
        IndicatorKind.OBV, "On-Balance Volume",
        "Cumulative volume signed by close direction",
        IndicatorCategory.VOLUME, OBV, lambda p: 1,
    ),
    IndicatorDefinition(
        IndicatorKind.VWAP, "Volume Weighted Average Price",
        "Cumulative typical price weighted by volume",
        IndicatorCategory.VOLUME, VWAP, lambda p: 1,
    ),
]

INDICATOR_REGISTRY: dict[IndicatorKind, IndicatorDefinition] = {d.kind: d for d in _DEFINITIONS}


def _to_kind(key: Union[str, IndicatorKind]) -> Optional[IndicatorKind]:
    try:
        return IndicatorKind(key)
    except ValueError:
        return None


def get_definition(key: Union[str, IndicatorKind]) -> IndicatorDefinition:
    """Definition for an indicator key. Raises UnknownIndicatorError."""
    kind = _to_kind(key)
    if kind is None:
        valid = ", ".join(k.value for k in INDICATOR_REGISTRY)
        raise UnknownIndicatorError(
            REGISTRY_NAME,
            f"Invalid indicator: {key}. Valid indicators: {valid}",
            {"indicator": str(key)},
        )
    return INDICATOR_REGISTRY[kind]


def get_indicator_metadata(key: Union[str, IndicatorKind]) -> Optional[IndicatorMetadata]:
    """Catalog entry for an indicator key, or None if unknown."""
    kind = _to_kind(key)
    if kind is None:
        return None
    return INDICATOR_REGISTRY[kind].metadata()


def get_formatted_catalog() -> dict[str, dict[str, IndicatorMetadata]]:
    """Full catalog grouped by category (every category present)."""
    catalog: dict[str, dict[str, IndicatorMetadata]] = {c.value: {} for c in IndicatorCategory}
    for definition in INDICATOR_REGISTRY.values():
        catalog[definition.category.value][definition.kind.value] = definition.metadata()
    return catalog


def resolve_params(key: Union[str, IndicatorKind], overrides: Optional[dict] = None) -> IndicatorParams:
    """Merge caller overrides over the defaults and validate them."""
    definition = get_definition(key)
    try:
        return definition.params_model(**(overrides or {}))
    except PydanticValidationError as e:
        raise ValidationError(
            REGISTRY_NAME,
            f"Invalid parameters for {definition.kind.value}: {e.error_count()} error(s)",
            {"indicator": definition.kind.value, "errors": e.errors(include_url=False)},
        )


def create_indicator(key: Union[str, IndicatorKind], overrides: Optional[dict] = None) -> StreamingIndicator:
    """Fresh indicator instance with resolved parameters."""
    definition = get_definition(key)
    return definition.create(resolve_params(definition.kind, overrides))

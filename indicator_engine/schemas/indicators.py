"""
CONTRACT 2: Indicator Engine

Input: IndicatorRequest
Output: CalculationResult / TimeSeriesResult

This module describes every indicator kind the engine knows, the typed
parameters of each kind, and the shape of catalog entries, results and
signals. Pure Python - no I/O.
"""

from datetime import datetime
from enum import Enum
from typing import Optional, Union
from pydantic import BaseModel, ConfigDict, Field, model_validator

from indicator_engine.schemas.market import Timeframe


# =============================================================================
# ENUMS
# =============================================================================


class IndicatorCategory(str, Enum):
    MOVING_AVERAGES = "moving_averages"
    MOMENTUM = "momentum"
    VOLATILITY = "volatility"
    TREND = "trend"
    VOLUME = "volume"


class IndicatorKind(str, Enum):
    # Moving averages
    SMA = "sma"
    EMA = "ema"
    WMA = "wma"
    WSMA = "wsma"
    DEMA = "dema"
    RMA = "rma"
    DMA = "dma"
    SMA15 = "sma15"
    # Momentum
    RSI = "rsi"
    MACD = "macd"
    STOCHASTIC = "stochastic"
    STOCH_RSI = "stoch_rsi"
    WILLIAMS_R = "williams_r"
    CCI = "cci"
    ROC = "roc"
    MOM = "mom"
    AO = "ao"
    AC = "ac"
    CG = "cg"
    # Volatility
    ATR = "atr"
    TR = "tr"
    BB = "bb"
    BB_WIDTH = "bb_width"
    ACCELERATION_BANDS = "acceleration_bands"
    IQR = "iqr"
    MAD = "mad"
    # Trend
    PSAR = "psar"
    ICHIMOKU = "ichimoku"
    ADX = "adx"
    DX = "dx"
    TDS = "tds"
    LINEAR_REGRESSION = "linear_regression"
    # Volume
    OBV = "obv"
    VWAP = "vwap"


class CloudColor(str, Enum):
    BULLISH = "bullish"
    BEARISH = "bearish"


class PriceVsCloud(str, Enum):
    ABOVE = "above"
    BELOW = "below"
    INSIDE = "inside"


class CrossSignal(str, Enum):
    BULLISH = "bullish"
    BEARISH = "bearish"
    NEUTRAL = "neutral"


class TrendSignal(str, Enum):
    STRONG_BULLISH = "strong_bullish"
    BULLISH = "bullish"
    NEUTRAL = "neutral"
    BEARISH = "bearish"
    STRONG_BEARISH = "strong_bearish"


class OscillatorZone(str, Enum):
    OVERBOUGHT = "overbought"
    OVERSOLD = "oversold"
    NEUTRAL = "neutral"


class BandPosition(str, Enum):
    ABOVE = "above"
    BELOW = "below"
    INSIDE = "inside"


# =============================================================================
# PARAMETERS (one model per indicator kind)
# =============================================================================


class IndicatorParams(BaseModel):
    """Base for indicator parameters. Immutable after construction."""

    model_config = ConfigDict(frozen=True, extra="forbid")


class SMAParams(IndicatorParams):
    period: int = Field(default=20, ge=1, description="Lookback period")


class EMAParams(IndicatorParams):
    period: int = Field(default=20, ge=1, description="Lookback period")


class WMAParams(IndicatorParams):
    period: int = Field(default=20, ge=1, description="Lookback period")


class RSIParams(IndicatorParams):
    period: int = Field(default=14, ge=1, description="Wilder smoothing period")


class MACDParams(IndicatorParams):
    fast: int = Field(default=12, ge=1, description="Fast EMA period")
    slow: int = Field(default=26, ge=1, description="Slow EMA period")
    signal: int = Field(default=9, ge=1, description="Signal line EMA period")

    @model_validator(mode="after")
    def _fast_below_slow(self) -> "MACDParams":
        if self.fast >= self.slow:
            raise ValueError("fast period must be shorter than slow period")
        return self


class StochasticParams(IndicatorParams):
    k: int = Field(default=14, ge=1, description="%K lookback period")
    d: int = Field(default=3, ge=1, description="%D smoothing period")


class WilliamsRParams(IndicatorParams):
    period: int = Field(default=14, ge=1, description="Lookback period")


class ROCParams(IndicatorParams):
    period: int = Field(default=12, ge=1, description="Lookback period")


class MOMParams(IndicatorParams):
    period: int = Field(default=10, ge=1, description="Lookback period")


class ATRParams(IndicatorParams):
    period: int = Field(default=14, ge=1, description="Wilder smoothing period")


class BollingerParams(IndicatorParams):
    period: int = Field(default=20, ge=1, description="Moving average period")
    deviation: float = Field(default=2.0, gt=0, description="Band width in standard deviations")


class PSARParams(IndicatorParams):
    step: float = Field(default=0.02, gt=0, description="Acceleration factor increment")
    max_step: float = Field(default=0.2, gt=0, description="Maximum acceleration factor")

    @model_validator(mode="after")
    def _step_within_max(self) -> "PSARParams":
        if self.step > self.max_step:
            raise ValueError("step must not exceed max_step")
        return self


class IchimokuParams(IndicatorParams):
    conversion: int = Field(default=9, ge=1, description="Tenkan-sen (conversion line) period")
    base: int = Field(default=26, ge=1, description="Kijun-sen (base line) period")
    leading_b: int = Field(default=52, ge=1, description="Senkou Span B period")
    displacement: int = Field(default=26, ge=1, description="Forward/backward projection, in candles")


class WSMAParams(IndicatorParams):
    period: int = Field(default=14, ge=1, description="Wilder smoothing period")


class DEMAParams(IndicatorParams):
    period: int = Field(default=20, ge=1, description="EMA period")


class RMAParams(IndicatorParams):
    period: int = Field(default=14, ge=1, description="Smoothing period (alpha = 1 / period)")


class DMAParams(IndicatorParams):
    short: int = Field(default=10, ge=1, description="Short SMA period")
    long: int = Field(default=20, ge=1, description="Long SMA period")

    @model_validator(mode="after")
    def _short_below_long(self) -> "DMAParams":
        if self.short >= self.long:
            raise ValueError("short period must be shorter than long period")
        return self


class StochRSIParams(IndicatorParams):
    period: int = Field(default=14, ge=1, description="RSI period and stochastic lookback")
    k: int = Field(default=3, ge=1, description="%K smoothing period")
    d: int = Field(default=3, ge=1, description="%D smoothing period")


class CCIParams(IndicatorParams):
    period: int = Field(default=20, ge=1, description="Lookback period")


class AOParams(IndicatorParams):
    short: int = Field(default=5, ge=1, description="Short SMA period of the median price")
    long: int = Field(default=34, ge=1, description="Long SMA period of the median price")

    @model_validator(mode="after")
    def _short_below_long(self) -> "AOParams":
        if self.short >= self.long:
            raise ValueError("short period must be shorter than long period")
        return self


class ACParams(AOParams):
    signal: int = Field(default=5, ge=1, description="SMA period of the oscillator")


class CGParams(IndicatorParams):
    period: int = Field(default=10, ge=1, description="Lookback period")
    signal: int = Field(default=10, ge=1, description="Signal line SMA period")


class AccelerationBandsParams(IndicatorParams):
    period: int = Field(default=20, ge=1, description="Moving average period")
    width: float = Field(default=4.0, gt=0, description="Band width factor")


class IQRParams(IndicatorParams):
    period: int = Field(default=14, ge=1, description="Lookback period")


class MADParams(IndicatorParams):
    period: int = Field(default=14, ge=1, description="Lookback period")


class ADXParams(IndicatorParams):
    period: int = Field(default=14, ge=1, description="Wilder smoothing period")


class DXParams(IndicatorParams):
    period: int = Field(default=14, ge=1, description="Wilder smoothing period")


class LinearRegressionParams(IndicatorParams):
    period: int = Field(default=14, ge=2, description="Number of closes in the fit")


class NoParams(IndicatorParams):
    """Indicators without tunable parameters."""


# =============================================================================
# SIGNALS (derived, never stored)
# =============================================================================


class IchimokuSignal(BaseModel):
    trend: TrendSignal
    cross: CrossSignal
    cloud_color: CloudColor
    price_vs_cloud: PriceVsCloud


class OscillatorSignal(BaseModel):
    zone: OscillatorZone
    value: float


class MACDSignal(BaseModel):
    cross: CrossSignal
    histogram: float


class BandSignal(BaseModel):
    position: BandPosition
    percent_b: Optional[float] = None


Signal = Union[IchimokuSignal, OscillatorSignal, MACDSignal, BandSignal]


# =============================================================================
# CATALOG
# =============================================================================


class IndicatorMetadata(BaseModel):
    """Static description of an indicator kind (catalog entry)."""

    key: str
    name: str
    description: str
    category: IndicatorCategory
    parameters: dict = Field(default_factory=dict, description="JSON schema of the parameters")
    defaults: dict = Field(default_factory=dict)
    output_fields: list[str]
    warmup: int = Field(..., ge=0, description="Candles needed with default parameters")


# =============================================================================
# INPUT: IndicatorRequest
# =============================================================================


class IndicatorSpec(BaseModel):
    """One requested indicator with caller overrides for its parameters."""

    key: str = Field(..., description="Indicator key from the catalog (e.g., 'ichimoku')")
    params: dict = Field(default_factory=dict, description="Overrides merged over defaults")
    alias: Optional[str] = Field(
        default=None,
        description="Name for this result (defaults to key); needed to request a kind twice",
    )

    @property
    def label(self) -> str:
        return self.alias or self.key


class IndicatorRequest(BaseModel):
    """
    Request for indicator calculation.
    Sent by: Protocol / transport layer
    Received by: Indicator Service
    """

    symbol: str = Field(..., min_length=1)
    timeframe: Optional[Timeframe] = Field(default=None, description="Defaults to settings")
    indicators: list[IndicatorSpec] = Field(..., min_length=1)
    bars: Optional[int] = Field(
        default=None,
        ge=1,
        description="Number of output candles (warmup history is fetched on top)",
    )
    offset: int = Field(
        default=0,
        ge=0,
        description="Time series only: drop this many of the most recent points before taking `bars`",
    )
    end_time: Optional[datetime] = None
    include_signals: bool = True


# =============================================================================
# OUTPUT
# =============================================================================


class IndicatorCalculation(BaseModel):
    """Current, time-aligned view of one indicator."""

    key: IndicatorKind
    alias: str
    category: IndicatorCategory
    params: dict
    values: dict[str, Optional[float]]
    signal: Optional[Signal] = None
    ready: bool
    timestamp: Optional[datetime] = None


class CalculationMetadata(BaseModel):
    data_points: int
    indicators: int
    calculated_at: datetime


class CalculationResult(BaseModel):
    symbol: str
    timeframe: Timeframe
    results: dict[str, IndicatorCalculation]
    metadata: CalculationMetadata


class TimeSeriesPoint(BaseModel):
    timestamp: datetime
    values: dict[str, Optional[float]]


class IndicatorTimeSeries(BaseModel):
    key: IndicatorKind
    alias: str
    category: IndicatorCategory
    params: dict
    components: list[str]
    bars: int
    data: list[TimeSeriesPoint]


class TimeSeriesResult(BaseModel):
    symbol: str
    timeframe: Timeframe
    series: dict[str, IndicatorTimeSeries]

"""
Technical Indicator Calculations

Streaming implementations of technical indicators. Each indicator keeps its
own bounded history and is advanced one candle at a time with `update()`;
`get_result()` returns the current value of every output field, with None
for fields that do not have enough history yet.

Instances are single-threaded: call `update` in candle-timestamp order and
never share an instance between symbols or timeframes.
"""

from abc import ABC, abstractmethod
from collections.abc import Mapping
from typing import Any, Optional
import math
import numpy as np

from indicator_engine.schemas.indicators import (
    AccelerationBandsParams,
    ACParams,
    ADXParams,
    AOParams,
    ATRParams,
    BollingerParams,
    CCIParams,
    CGParams,
    DEMAParams,
    DMAParams,
    DXParams,
    EMAParams,
    IndicatorKind,
    IndicatorParams,
    IQRParams,
    LinearRegressionParams,
    MACDParams,
    MADParams,
    MOMParams,
    NoParams,
    PSARParams,
    RMAParams,
    ROCParams,
    RSIParams,
    SMAParams,
    StochasticParams,
    StochRSIParams,
    WilliamsRParams,
    WMAParams,
    WSMAParams,
)
from indicator_engine.services.base import InvalidInputError
from indicator_engine.services.indicators.windows import (
    RollingWindow,
    opt_sub,
    rolling_extrema,
    rolling_iqr,
    rolling_linear_fit,
    rolling_mean,
    rolling_mean_deviation,
    rolling_std,
    rolling_weighted_mean,
)


Result = dict[str, Optional[float]]


def read_candle(candle: Any, fields: tuple[str, ...], owner: str = "Indicator") -> dict[str, float]:
    """
    Pull the required numeric fields out of a candle.

    Accepts OHLCV models or plain mappings. Raises InvalidInputError when a
    field is missing or not a finite number.
    """
    if candle is None:
        raise InvalidInputError(owner, "candle is required")

    bar = {}
    for field in fields:
        if isinstance(candle, Mapping):
            value = candle.get(field)
        else:
            value = getattr(candle, field, None)

        if value is None or isinstance(value, bool):
            raise InvalidInputError(
                owner,
                f"candle must have {', '.join(fields)} properties (missing {field})",
                {"field": field},
            )
        try:
            number = float(value)
        except (TypeError, ValueError):
            raise InvalidInputError(owner, f"candle field {field} is not numeric: {value!r}", {"field": field})
        if not math.isfinite(number):
            raise InvalidInputError(owner, f"candle field {field} is not finite: {value!r}", {"field": field})
        bar[field] = number

    return bar


# =============================================================================
# BASE CLASS
# =============================================================================


class StreamingIndicator(ABC):
    """
    Incremental indicator over a stream of candles.

    Subclasses declare the candle fields they read, the output fields they
    produce, and implement `_on_bar`. Input validation happens before any
    state changes, so a rejected candle leaves the instance untouched.
    """

    kind: IndicatorKind
    params_model: type[IndicatorParams] = NoParams
    required_fields: tuple[str, ...] = ("close",)
    output_fields: tuple[str, ...] = ()

    def __init__(self, params: Optional[IndicatorParams] = None):
        self.params = params if params is not None else self.params_model()

    def update(self, candle: Any) -> None:
        """Advance the indicator by one candle."""
        bar = read_candle(candle, self.required_fields, owner=type(self).__name__)
        self._on_bar(bar)

    @abstractmethod
    def _on_bar(self, bar: dict[str, float]) -> None:
        pass

    @abstractmethod
    def get_result(self) -> Result:
        """Current value of every output field (None while unavailable)."""
        pass

    @abstractmethod
    def is_ready(self) -> bool:
        """True once the primary output is available."""
        pass

    @abstractmethod
    def reset(self) -> None:
        """Clear all history; parameters are kept."""
        pass

    def _empty_result(self) -> Result:
        return {field: None for field in self.output_fields}


class Smoother:
    """
    Exponential smoothing seeded with the simple average of the first
    `period` inputs.

    Standard EMA uses alpha = 2 / (period + 1); Wilder smoothing (RSI, ATR)
    uses (prev * (period - 1) + value) / period.
    """

    def __init__(self, period: int, wilder: bool = False):
        self.period = period
        self.wilder = wilder
        self.multiplier = 2 / (period + 1)
        self.value: Optional[float] = None
        self._seed: list[float] = []

    def update(self, x: float) -> Optional[float]:
        if self.value is None:
            self._seed.append(x)
            if len(self._seed) == self.period:
                self.value = sum(self._seed) / self.period
                self._seed = []
        elif self.wilder:
            self.value = (self.value * (self.period - 1) + x) / self.period
        else:
            self.value = (x - self.value) * self.multiplier + self.value
        return self.value

    def reset(self) -> None:
        self.value = None
        self._seed = []


# =============================================================================
# MOVING AVERAGES
# =============================================================================


class SMA(StreamingIndicator):
    """Simple Moving Average."""

    kind = IndicatorKind.SMA
    params_model = SMAParams
    output_fields = ("sma",)

    def __init__(self, params: Optional[SMAParams] = None):
        super().__init__(params)
        self._closes = RollingWindow(self.params.period)

    def _on_bar(self, bar):
        self._closes.append(bar["close"])

    def get_result(self) -> Result:
        return {"sma": rolling_mean(self._closes.values, self.params.period)}

    def is_ready(self) -> bool:
        return self._closes.is_full()

    def reset(self) -> None:
        self._closes.clear()


class EMA(StreamingIndicator):
    """Exponential Moving Average (seeded with the SMA of the first period)."""

    kind = IndicatorKind.EMA
    params_model = EMAParams
    output_fields = ("ema",)

    def __init__(self, params: Optional[EMAParams] = None):
        super().__init__(params)
        self._ema = Smoother(self.params.period)

    def _on_bar(self, bar):
        self._ema.update(bar["close"])

    def get_result(self) -> Result:
        return {"ema": self._ema.value}

    def is_ready(self) -> bool:
        return self._ema.value is not None

    def reset(self) -> None:
        self._ema.reset()


class WMA(StreamingIndicator):
    """Weighted Moving Average."""

    kind = IndicatorKind.WMA
    params_model = WMAParams
    output_fields = ("wma",)

    def __init__(self, params: Optional[WMAParams] = None):
        super().__init__(params)
        self._closes = RollingWindow(self.params.period)

    def _on_bar(self, bar):
        self._closes.append(bar["close"])

    def get_result(self) -> Result:
        return {"wma": rolling_weighted_mean(self._closes.values, self.params.period)}

    def is_ready(self) -> bool:
        return self._closes.is_full()

    def reset(self) -> None:
        self._closes.clear()


class WSMA(StreamingIndicator):
    """Wilder's Smoothed Moving Average (seeded with the SMA)."""

    kind = IndicatorKind.WSMA
    params_model = WSMAParams
    output_fields = ("wsma",)

    def __init__(self, params: Optional[WSMAParams] = None):
        super().__init__(params)
        self._wsma = Smoother(self.params.period, wilder=True)

    def _on_bar(self, bar):
        self._wsma.update(bar["close"])

    def get_result(self) -> Result:
        return {"wsma": self._wsma.value}

    def is_ready(self) -> bool:
        return self._wsma.value is not None

    def reset(self) -> None:
        self._wsma.reset()


class DEMA(StreamingIndicator):
    """Double Exponential Moving Average: 2 * EMA - EMA(EMA)."""

    kind = IndicatorKind.DEMA
    params_model = DEMAParams
    output_fields = ("dema",)

    def __init__(self, params: Optional[DEMAParams] = None):
        super().__init__(params)
        self._ema = Smoother(self.params.period)
        self._ema_of_ema = Smoother(self.params.period)

    def _on_bar(self, bar):
        ema = self._ema.update(bar["close"])
        if ema is not None:
            self._ema_of_ema.update(ema)

    def get_result(self) -> Result:
        ema, ema_of_ema = self._ema.value, self._ema_of_ema.value
        if ema is None or ema_of_ema is None:
            return {"dema": None}
        return {"dema": 2 * ema - ema_of_ema}

    def is_ready(self) -> bool:
        return self._ema_of_ema.value is not None

    def reset(self) -> None:
        self._ema.reset()
        self._ema_of_ema.reset()


class RMA(StreamingIndicator):
    """
    Running Moving Average: exponential smoothing with alpha = 1 / period,
    started from the first close. Reported once `period` closes are in.
    """

    kind = IndicatorKind.RMA
    params_model = RMAParams
    output_fields = ("rma",)

    def __init__(self, params: Optional[RMAParams] = None):
        super().__init__(params)
        self.reset()

    def _on_bar(self, bar):
        close = bar["close"]
        if self._value is None:
            self._value = close
        else:
            self._value += (close - self._value) / self.params.period
        self._count += 1

    def get_result(self) -> Result:
        return {"rma": self._value if self.is_ready() else None}

    def is_ready(self) -> bool:
        return self._count >= self.params.period

    def reset(self) -> None:
        self._value = None
        self._count = 0


class DMA(StreamingIndicator):
    """Dual Moving Average: a short and a long SMA of the close."""

    kind = IndicatorKind.DMA
    params_model = DMAParams
    output_fields = ("dma_short", "dma_long")

    def __init__(self, params: Optional[DMAParams] = None):
        super().__init__(params)
        self._closes = RollingWindow(self.params.long)

    def _on_bar(self, bar):
        self._closes.append(bar["close"])

    def get_result(self) -> Result:
        return {
            "dma_short": rolling_mean(self._closes.values, self.params.short),
            "dma_long": rolling_mean(self._closes.values, self.params.long),
        }

    def is_ready(self) -> bool:
        return self._closes.is_full()

    def reset(self) -> None:
        self._closes.clear()


# Spencer's 15-point weights, symmetric, summing to 320
SPENCER_WEIGHTS = np.array([-3, -6, -5, 3, 21, 46, 67, 74, 67, 46, 21, 3, -5, -6, -3], dtype=float)


class SMA15(StreamingIndicator):
    """Spencer's 15-point weighted moving average."""

    kind = IndicatorKind.SMA15
    output_fields = ("sma15",)

    def __init__(self, params: Optional[NoParams] = None):
        super().__init__(params)
        self._closes = RollingWindow(len(SPENCER_WEIGHTS))

    def _on_bar(self, bar):
        self._closes.append(bar["close"])

    def get_result(self) -> Result:
        if not self._closes.is_full():
            return {"sma15": None}
        window = np.fromiter(self._closes.values, dtype=float)
        return {"sma15": float(np.dot(window, SPENCER_WEIGHTS) / SPENCER_WEIGHTS.sum())}

    def is_ready(self) -> bool:
        return self._closes.is_full()

    def reset(self) -> None:
        self._closes.clear()


# =============================================================================
# MOMENTUM INDICATORS
# =============================================================================


class RSI(StreamingIndicator):
    """Relative Strength Index with Wilder smoothing."""

    kind = IndicatorKind.RSI
    params_model = RSIParams
    output_fields = ("rsi",)

    def __init__(self, params: Optional[RSIParams] = None):
        super().__init__(params)
        self._prev_close: Optional[float] = None
        self._gains = Smoother(self.params.period, wilder=True)
        self._losses = Smoother(self.params.period, wilder=True)

    def _on_bar(self, bar):
        close = bar["close"]
        if self._prev_close is not None:
            delta = close - self._prev_close
            self._gains.update(delta if delta > 0 else 0.0)
            self._losses.update(-delta if delta < 0 else 0.0)
        self._prev_close = close

    def get_result(self) -> Result:
        avg_gain, avg_loss = self._gains.value, self._losses.value
        if avg_gain is None or avg_loss is None:
            return {"rsi": None}
        if avg_loss == 0:
            return {"rsi": 100.0}
        rs = avg_gain / avg_loss
        return {"rsi": 100 - (100 / (1 + rs))}

    def is_ready(self) -> bool:
        return self._losses.value is not None

    def reset(self) -> None:
        self._prev_close = None
        self._gains.reset()
        self._losses.reset()


class MACD(StreamingIndicator):
    """
    MACD (Moving Average Convergence Divergence).

    The signal line is an EMA of the MACD line, fed only once the MACD line
    itself is available.
    """

    kind = IndicatorKind.MACD
    params_model = MACDParams
    output_fields = ("macd", "macd_signal", "macd_histogram")

    def __init__(self, params: Optional[MACDParams] = None):
        super().__init__(params)
        self._fast = Smoother(self.params.fast)
        self._slow = Smoother(self.params.slow)
        self._signal = Smoother(self.params.signal)
        self._macd: Optional[float] = None

    def _on_bar(self, bar):
        fast = self._fast.update(bar["close"])
        slow = self._slow.update(bar["close"])
        self._macd = opt_sub(fast, slow)
        if self._macd is not None:
            self._signal.update(self._macd)

    def get_result(self) -> Result:
        signal = self._signal.value
        return {
            "macd": self._macd,
            "macd_signal": signal,
            "macd_histogram": opt_sub(self._macd, signal),
        }

    def is_ready(self) -> bool:
        return self._signal.value is not None

    def reset(self) -> None:
        self._fast.reset()
        self._slow.reset()
        self._signal.reset()
        self._macd = None


class Stochastic(StreamingIndicator):
    """Stochastic Oscillator (%K over k candles, %D = SMA of %K)."""

    kind = IndicatorKind.STOCHASTIC
    params_model = StochasticParams
    required_fields = ("high", "low", "close")
    output_fields = ("stochastic_k", "stochastic_d")

    def __init__(self, params: Optional[StochasticParams] = None):
        super().__init__(params)
        self._highs = RollingWindow(self.params.k)
        self._lows = RollingWindow(self.params.k)
        self._k_values = RollingWindow(self.params.d)
        self._k: Optional[float] = None

    def _on_bar(self, bar):
        self._highs.append(bar["high"])
        self._lows.append(bar["low"])

        highs = rolling_extrema(self._highs.values, self.params.k)
        lows = rolling_extrema(self._lows.values, self.params.k)
        if highs is None or lows is None:
            self._k = None
            return

        highest_high, lowest_low = highs.max, lows.min
        if highest_high == lowest_low:
            self._k = 50.0
        else:
            self._k = ((bar["close"] - lowest_low) / (highest_high - lowest_low)) * 100
        self._k_values.append(self._k)

    def get_result(self) -> Result:
        return {
            "stochastic_k": self._k,
            "stochastic_d": rolling_mean(self._k_values.values, self.params.d),
        }

    def is_ready(self) -> bool:
        return self._k_values.is_full()

    def reset(self) -> None:
        self._highs.clear()
        self._lows.clear()
        self._k_values.clear()
        self._k = None


class WilliamsR(StreamingIndicator):
    """Williams %R."""

    kind = IndicatorKind.WILLIAMS_R
    params_model = WilliamsRParams
    required_fields = ("high", "low", "close")
    output_fields = ("williams_r",)

    def __init__(self, params: Optional[WilliamsRParams] = None):
        super().__init__(params)
        self._highs = RollingWindow(self.params.period)
        self._lows = RollingWindow(self.params.period)
        self._value: Optional[float] = None

    def _on_bar(self, bar):
        self._highs.append(bar["high"])
        self._lows.append(bar["low"])

        highs = rolling_extrema(self._highs.values, self.params.period)
        lows = rolling_extrema(self._lows.values, self.params.period)
        if highs is None or lows is None:
            self._value = None
        elif highs.max == lows.min:
            self._value = -50.0
        else:
            self._value = ((highs.max - bar["close"]) / (highs.max - lows.min)) * -100

    def get_result(self) -> Result:
        return {"williams_r": self._value}

    def is_ready(self) -> bool:
        return self._value is not None

    def reset(self) -> None:
        self._highs.clear()
        self._lows.clear()
        self._value = None


class ROC(StreamingIndicator):
    """Rate of Change, in percent, against the close `period` candles ago."""

    kind = IndicatorKind.ROC
    params_model = ROCParams
    output_fields = ("roc",)

    def __init__(self, params: Optional[ROCParams] = None):
        super().__init__(params)
        self._closes = RollingWindow(self.params.period + 1)

    def _on_bar(self, bar):
        self._closes.append(bar["close"])

    def get_result(self) -> Result:
        if not self._closes.is_full():
            return {"roc": None}
        past = self._closes.oldest()
        if past == 0:
            return {"roc": None}
        return {"roc": (self._closes.values[-1] - past) / past * 100}

    def is_ready(self) -> bool:
        return self._closes.is_full()

    def reset(self) -> None:
        self._closes.clear()


class MOM(StreamingIndicator):
    """Momentum: close minus the close `period` candles ago."""

    kind = IndicatorKind.MOM
    params_model = MOMParams
    output_fields = ("mom",)

    def __init__(self, params: Optional[MOMParams] = None):
        super().__init__(params)
        self._closes = RollingWindow(self.params.period + 1)

    def _on_bar(self, bar):
        self._closes.append(bar["close"])

    def get_result(self) -> Result:
        if not self._closes.is_full():
            return {"mom": None}
        return {"mom": self._closes.values[-1] - self._closes.oldest()}

    def is_ready(self) -> bool:
        return self._closes.is_full()

    def reset(self) -> None:
        self._closes.clear()


class StochasticRSI(StreamingIndicator):
    """
    Stochastic RSI (0-100).

    Raw value is the position of the RSI within its own high-low range over
    `period` readings (50 on a flat range). %K smooths it with an SMA of
    `k`, the signal line is an SMA of %K over `d`.
    """

    kind = IndicatorKind.STOCH_RSI
    params_model = StochRSIParams
    output_fields = ("stoch_rsi", "stoch_rsi_signal")

    def __init__(self, params: Optional[StochRSIParams] = None):
        super().__init__(params)
        self._rsi = RSI(RSIParams(period=self.params.period))
        self._rsi_values = RollingWindow(self.params.period)
        self._raw = RollingWindow(self.params.k)
        self._k_values = RollingWindow(self.params.d)

    def _on_bar(self, bar):
        self._rsi.update(bar)
        rsi = self._rsi.get_result()["rsi"]
        if rsi is None:
            return
        self._rsi_values.append(rsi)

        extrema = rolling_extrema(self._rsi_values.values, self.params.period)
        if extrema is None:
            return
        if extrema.max == extrema.min:
            raw = 50.0
        else:
            raw = (rsi - extrema.min) / (extrema.max - extrema.min) * 100
        self._raw.append(raw)

        k = rolling_mean(self._raw.values, self.params.k)
        if k is not None:
            self._k_values.append(k)

    def get_result(self) -> Result:
        return {
            "stoch_rsi": rolling_mean(self._raw.values, self.params.k),
            "stoch_rsi_signal": rolling_mean(self._k_values.values, self.params.d),
        }

    def is_ready(self) -> bool:
        return self._k_values.is_full()

    def reset(self) -> None:
        self._rsi.reset()
        self._rsi_values.clear()
        self._raw.clear()
        self._k_values.clear()


class CCI(StreamingIndicator):
    """Commodity Channel Index over the typical price."""

    kind = IndicatorKind.CCI
    params_model = CCIParams
    required_fields = ("high", "low", "close")
    output_fields = ("cci",)

    def __init__(self, params: Optional[CCIParams] = None):
        super().__init__(params)
        self._typical = RollingWindow(self.params.period)

    def _on_bar(self, bar):
        self._typical.append((bar["high"] + bar["low"] + bar["close"]) / 3)

    def get_result(self) -> Result:
        period = self.params.period
        mean = rolling_mean(self._typical.values, period)
        deviation = rolling_mean_deviation(self._typical.values, period)
        if mean is None or deviation is None:
            return {"cci": None}
        if deviation == 0:
            return {"cci": 0.0}
        return {"cci": (self._typical.values[-1] - mean) / (0.015 * deviation)}

    def is_ready(self) -> bool:
        return self._typical.is_full()

    def reset(self) -> None:
        self._typical.clear()


class AO(StreamingIndicator):
    """Awesome Oscillator: short SMA minus long SMA of the median price."""

    kind = IndicatorKind.AO
    params_model = AOParams
    required_fields = ("high", "low")
    output_fields = ("ao",)

    def __init__(self, params: Optional[AOParams] = None):
        super().__init__(params)
        self._medians = RollingWindow(self.params.long)

    def _on_bar(self, bar):
        self._medians.append((bar["high"] + bar["low"]) / 2)

    def _value(self) -> Optional[float]:
        return opt_sub(
            rolling_mean(self._medians.values, self.params.short),
            rolling_mean(self._medians.values, self.params.long),
        )

    def get_result(self) -> Result:
        return {"ao": self._value()}

    def is_ready(self) -> bool:
        return self._medians.is_full()

    def reset(self) -> None:
        self._medians.clear()


class AC(AO):
    """Accelerator Oscillator: AO minus its SMA over `signal` readings."""

    kind = IndicatorKind.AC
    params_model = ACParams
    output_fields = ("ac",)

    def __init__(self, params: Optional[ACParams] = None):
        super().__init__(params)
        self._ao_values = RollingWindow(self.params.signal)

    def _on_bar(self, bar):
        super()._on_bar(bar)
        ao = self._value()
        if ao is not None:
            self._ao_values.append(ao)

    def get_result(self) -> Result:
        if not self._ao_values.is_full():
            return {"ac": None}
        return {"ac": self._ao_values.values[-1] - rolling_mean(self._ao_values.values, self.params.signal)}

    def is_ready(self) -> bool:
        return self._ao_values.is_full()

    def reset(self) -> None:
        super().reset()
        self._ao_values.clear()


class CG(StreamingIndicator):
    """Ehlers' Center of Gravity oscillator with an SMA signal line."""

    kind = IndicatorKind.CG
    params_model = CGParams
    output_fields = ("cg", "cg_signal")

    def __init__(self, params: Optional[CGParams] = None):
        super().__init__(params)
        self._closes = RollingWindow(self.params.period)
        self._cg_values = RollingWindow(self.params.signal)
        self._cg: Optional[float] = None
        # oldest close weighs 1, newest weighs `period`
        self._weights = np.arange(1, self.params.period + 1, dtype=float)

    def _on_bar(self, bar):
        self._closes.append(bar["close"])
        if not self._closes.is_full():
            return
        window = np.fromiter(self._closes.values, dtype=float)
        total = float(window.sum())
        self._cg = -float(np.dot(window, self._weights)) / total if total > 0 else 0.0
        self._cg_values.append(self._cg)

    def get_result(self) -> Result:
        return {
            "cg": self._cg,
            "cg_signal": rolling_mean(self._cg_values.values, self.params.signal),
        }

    def is_ready(self) -> bool:
        return self._cg_values.is_full()

    def reset(self) -> None:
        self._closes.clear()
        self._cg_values.clear()
        self._cg = None


# =============================================================================
# VOLATILITY INDICATORS
# =============================================================================


def true_range(high: float, low: float, prev_close: Optional[float]) -> float:
    """High-low range, widened to include the previous close when there is one."""
    if prev_close is None:
        return high - low
    return max(high - low, abs(high - prev_close), abs(low - prev_close))


class TR(StreamingIndicator):
    """True Range of the latest candle."""

    kind = IndicatorKind.TR
    required_fields = ("high", "low", "close")
    output_fields = ("tr",)

    def __init__(self, params: Optional[NoParams] = None):
        super().__init__(params)
        self.reset()

    def _on_bar(self, bar):
        self._tr = true_range(bar["high"], bar["low"], self._prev_close)
        self._prev_close = bar["close"]

    def get_result(self) -> Result:
        return {"tr": self._tr}

    def is_ready(self) -> bool:
        return self._tr is not None

    def reset(self) -> None:
        self._prev_close = None
        self._tr = None


class ATR(StreamingIndicator):
    """Average True Range (Wilder smoothing of the true range)."""

    kind = IndicatorKind.ATR
    params_model = ATRParams
    required_fields = ("high", "low", "close")
    output_fields = ("atr",)

    def __init__(self, params: Optional[ATRParams] = None):
        super().__init__(params)
        self._prev_close: Optional[float] = None
        self._atr = Smoother(self.params.period, wilder=True)

    def _on_bar(self, bar):
        self._atr.update(true_range(bar["high"], bar["low"], self._prev_close))
        self._prev_close = bar["close"]

    def get_result(self) -> Result:
        return {"atr": self._atr.value}

    def is_ready(self) -> bool:
        return self._atr.value is not None

    def reset(self) -> None:
        self._prev_close = None
        self._atr.reset()


class BollingerBands(StreamingIndicator):
    """Bollinger Bands (SMA +/- deviation * population standard deviation)."""

    kind = IndicatorKind.BB
    params_model = BollingerParams
    output_fields = ("bb_upper", "bb_middle", "bb_lower")

    def __init__(self, params: Optional[BollingerParams] = None):
        super().__init__(params)
        self._closes = RollingWindow(self.params.period)

    def _on_bar(self, bar):
        self._closes.append(bar["close"])

    def get_result(self) -> Result:
        middle = rolling_mean(self._closes.values, self.params.period)
        std = rolling_std(self._closes.values, self.params.period)
        if middle is None or std is None:
            return self._empty_result()
        width = self.params.deviation * std
        return {
            "bb_upper": middle + width,
            "bb_middle": middle,
            "bb_lower": middle - width,
        }

    def is_ready(self) -> bool:
        return self._closes.is_full()

    def reset(self) -> None:
        self._closes.clear()


class BollingerBandsWidth(BollingerBands):
    """Band width relative to the middle band: (upper - lower) / middle."""

    kind = IndicatorKind.BB_WIDTH
    output_fields = ("bb_width",)

    def get_result(self) -> Result:
        middle = rolling_mean(self._closes.values, self.params.period)
        std = rolling_std(self._closes.values, self.params.period)
        if middle is None or std is None or middle == 0:
            return {"bb_width": None}
        return {"bb_width": 2 * self.params.deviation * std / middle}


class AccelerationBands(StreamingIndicator):
    """
    Acceleration Bands (Price Headley).

    Each candle widens its high and low by `width * (high - low) / (high + low)`;
    the bands are SMAs of the widened highs and lows around an SMA of the close.
    """

    kind = IndicatorKind.ACCELERATION_BANDS
    params_model = AccelerationBandsParams
    required_fields = ("high", "low", "close")
    output_fields = ("accel_upper", "accel_middle", "accel_lower")

    def __init__(self, params: Optional[AccelerationBandsParams] = None):
        super().__init__(params)
        self._uppers = RollingWindow(self.params.period)
        self._closes = RollingWindow(self.params.period)
        self._lowers = RollingWindow(self.params.period)

    def _on_bar(self, bar):
        high, low = bar["high"], bar["low"]
        spread = high + low
        factor = self.params.width * (high - low) / spread if spread != 0 else 0.0
        self._uppers.append(high * (1 + factor))
        self._closes.append(bar["close"])
        self._lowers.append(low * (1 - factor))

    def get_result(self) -> Result:
        period = self.params.period
        return {
            "accel_upper": rolling_mean(self._uppers.values, period),
            "accel_middle": rolling_mean(self._closes.values, period),
            "accel_lower": rolling_mean(self._lowers.values, period),
        }

    def is_ready(self) -> bool:
        return self._closes.is_full()

    def reset(self) -> None:
        self._uppers.clear()
        self._closes.clear()
        self._lowers.clear()


class IQR(StreamingIndicator):
    """Interquartile range of the closes."""

    kind = IndicatorKind.IQR
    params_model = IQRParams
    output_fields = ("iqr",)

    def __init__(self, params: Optional[IQRParams] = None):
        super().__init__(params)
        self._closes = RollingWindow(self.params.period)

    def _on_bar(self, bar):
        self._closes.append(bar["close"])

    def get_result(self) -> Result:
        return {"iqr": rolling_iqr(self._closes.values, self.params.period)}

    def is_ready(self) -> bool:
        return self._closes.is_full()

    def reset(self) -> None:
        self._closes.clear()


class MAD(StreamingIndicator):
    """Mean absolute deviation of the closes from their mean."""

    kind = IndicatorKind.MAD
    params_model = MADParams
    output_fields = ("mad",)

    def __init__(self, params: Optional[MADParams] = None):
        super().__init__(params)
        self._closes = RollingWindow(self.params.period)

    def _on_bar(self, bar):
        self._closes.append(bar["close"])

    def get_result(self) -> Result:
        return {"mad": rolling_mean_deviation(self._closes.values, self.params.period)}

    def is_ready(self) -> bool:
        return self._closes.is_full()

    def reset(self) -> None:
        self._closes.clear()


# =============================================================================
# TREND INDICATORS
# =============================================================================


class ParabolicSAR(StreamingIndicator):
    """
    Parabolic SAR (Stop and Reverse).

    The first candle only initialises the state; a value is produced from
    the second candle on. While trending, SAR may not cross the prior two
    lows (uptrend) or highs (downtrend).
    """

    kind = IndicatorKind.PSAR
    params_model = PSARParams
    required_fields = ("high", "low")
    output_fields = ("psar",)

    def __init__(self, params: Optional[PSARParams] = None):
        super().__init__(params)
        self._highs = RollingWindow(3)
        self._lows = RollingWindow(3)
        self.reset()

    def _on_bar(self, bar):
        high, low = bar["high"], bar["low"]
        self._highs.append(high)
        self._lows.append(low)

        if self._ep is None:
            self._ep = high
            self._sar = low
            return

        new_sar = self._sar + self._af * (self._ep - self._sar)

        if self.is_uptrend:
            if low < new_sar:
                self._reverse(new_extreme=low)
            else:
                prior_lows = list(self._lows.values)[-3:-1]
                self._sar = min([new_sar] + prior_lows)
                if high > self._ep:
                    self._ep = high
                    self._accelerate()
        else:
            if high > new_sar:
                self._reverse(new_extreme=high)
            else:
                prior_highs = list(self._highs.values)[-3:-1]
                self._sar = max([new_sar] + prior_highs)
                if low < self._ep:
                    self._ep = low
                    self._accelerate()

        self._stable = True

    def _reverse(self, new_extreme: float) -> None:
        self.is_uptrend = not self.is_uptrend
        self._sar = self._ep
        self._ep = new_extreme
        self._af = self.params.step

    def _accelerate(self) -> None:
        self._af = min(self._af + self.params.step, self.params.max_step)

    def get_result(self) -> Result:
        return {"psar": self._sar if self._stable else None}

    def is_ready(self) -> bool:
        return self._stable

    def reset(self) -> None:
        self._highs.clear()
        self._lows.clear()
        self._af = self.params.step
        self._ep = None
        self._sar = None
        self._stable = False
        self.is_uptrend = True


class _DirectionalMovement:
    """
    Wilder-smoothed true range and +DM / -DM, the common core of DX and ADX.

    Movement is measured against the previous candle, so the first candle
    only seeds the state.
    """

    def __init__(self, period: int):
        self._tr = Smoother(period, wilder=True)
        self._plus_dm = Smoother(period, wilder=True)
        self._minus_dm = Smoother(period, wilder=True)
        self._prev: Optional[dict[str, float]] = None

    def update(self, bar: dict[str, float]) -> None:
        prev = self._prev
        if prev is not None:
            up_move = bar["high"] - prev["high"]
            down_move = prev["low"] - bar["low"]
            self._plus_dm.update(up_move if up_move > down_move and up_move > 0 else 0.0)
            self._minus_dm.update(down_move if down_move > up_move and down_move > 0 else 0.0)
            self._tr.update(true_range(bar["high"], bar["low"], prev["close"]))
        self._prev = bar

    def indices(self) -> Optional[tuple[float, float, float]]:
        """(+DI, -DI, DX) or None until a full period of movement is known."""
        tr = self._tr.value
        if tr is None:
            return None
        if tr == 0:
            plus_di = minus_di = 0.0
        else:
            plus_di = 100 * self._plus_dm.value / tr
            minus_di = 100 * self._minus_dm.value / tr
        total = plus_di + minus_di
        dx = 100 * abs(plus_di - minus_di) / total if total != 0 else 0.0
        return plus_di, minus_di, dx

    def reset(self) -> None:
        self._tr.reset()
        self._plus_dm.reset()
        self._minus_dm.reset()
        self._prev = None


class DX(StreamingIndicator):
    """Directional Movement Index."""

    kind = IndicatorKind.DX
    params_model = DXParams
    required_fields = ("high", "low", "close")
    output_fields = ("dx",)

    def __init__(self, params: Optional[DXParams] = None):
        super().__init__(params)
        self._dm = _DirectionalMovement(self.params.period)

    def _on_bar(self, bar):
        self._dm.update(bar)

    def get_result(self) -> Result:
        indices = self._dm.indices()
        return {"dx": indices[2] if indices else None}

    def is_ready(self) -> bool:
        return self._dm.indices() is not None

    def reset(self) -> None:
        self._dm.reset()


class ADX(StreamingIndicator):
    """Average Directional Index: Wilder smoothing of DX, with +DI and -DI."""

    kind = IndicatorKind.ADX
    params_model = ADXParams
    required_fields = ("high", "low", "close")
    output_fields = ("adx", "plus_di", "minus_di")

    def __init__(self, params: Optional[ADXParams] = None):
        super().__init__(params)
        self._dm = _DirectionalMovement(self.params.period)
        self._adx = Smoother(self.params.period, wilder=True)

    def _on_bar(self, bar):
        self._dm.update(bar)
        indices = self._dm.indices()
        if indices is not None:
            self._adx.update(indices[2])

    def get_result(self) -> Result:
        indices = self._dm.indices()
        if indices is None:
            return self._empty_result()
        plus_di, minus_di, _ = indices
        return {"adx": self._adx.value, "plus_di": plus_di, "minus_di": minus_di}

    def is_ready(self) -> bool:
        return self._adx.value is not None

    def reset(self) -> None:
        self._dm.reset()
        self._adx.reset()


# Closes compared against the close this many bars back
TDS_LOOKBACK = 4
# Consecutive counts that complete a setup
TDS_SETUP = 9


class TDS(StreamingIndicator):
    """
    Tom DeMark Sequential setup.

    Counts consecutive closes above (below) the close four bars earlier.
    Reports 1 once nine consecutive higher closes complete a sell setup,
    -1 for nine lower closes, otherwise 0.
    """

    kind = IndicatorKind.TDS
    output_fields = ("tds",)

    def __init__(self, params: Optional[NoParams] = None):
        super().__init__(params)
        self._closes = RollingWindow(TDS_LOOKBACK + 1)
        self.reset()

    def _on_bar(self, bar):
        self._closes.append(bar["close"])
        if not self._closes.is_full():
            return
        close, earlier = self._closes.values[-1], self._closes.oldest()
        if close > earlier:
            self._up += 1
            self._down = 0
        elif close < earlier:
            self._down += 1
            self._up = 0
        else:
            self._up = self._down = 0

    def get_result(self) -> Result:
        if not self.is_ready():
            return {"tds": None}
        if self._up >= TDS_SETUP:
            return {"tds": 1.0}
        if self._down >= TDS_SETUP:
            return {"tds": -1.0}
        return {"tds": 0.0}

    def is_ready(self) -> bool:
        return self._closes.is_full()

    def reset(self) -> None:
        self._closes.clear()
        self._up = 0
        self._down = 0


class LinearRegression(StreamingIndicator):
    """Least-squares fit of the last `period` closes: value at the latest candle and slope."""

    kind = IndicatorKind.LINEAR_REGRESSION
    params_model = LinearRegressionParams
    output_fields = ("linear_regression", "linear_regression_slope")

    def __init__(self, params: Optional[LinearRegressionParams] = None):
        super().__init__(params)
        self._closes = RollingWindow(self.params.period)

    def _on_bar(self, bar):
        self._closes.append(bar["close"])

    def get_result(self) -> Result:
        fit = rolling_linear_fit(self._closes.values, self.params.period)
        if fit is None:
            return self._empty_result()
        slope, value = fit
        return {"linear_regression": value, "linear_regression_slope": slope}

    def is_ready(self) -> bool:
        return self._closes.is_full()

    def reset(self) -> None:
        self._closes.clear()


# =============================================================================
# VOLUME INDICATORS
# =============================================================================


class OBV(StreamingIndicator):
    """On-Balance Volume."""

    kind = IndicatorKind.OBV
    required_fields = ("close", "volume")
    output_fields = ("obv",)

    def __init__(self, params: Optional[NoParams] = None):
        super().__init__(params)
        self._prev_close: Optional[float] = None
        self._obv: Optional[float] = None

    def _on_bar(self, bar):
        close, volume = bar["close"], bar["volume"]
        if self._obv is None:
            self._obv = volume
        elif close > self._prev_close:
            self._obv += volume
        elif close < self._prev_close:
            self._obv -= volume
        self._prev_close = close

    def get_result(self) -> Result:
        return {"obv": self._obv}

    def is_ready(self) -> bool:
        return self._obv is not None

    def reset(self) -> None:
        self._prev_close = None
        self._obv = None


class VWAP(StreamingIndicator):
    """Volume Weighted Average Price, cumulative from the first candle."""

    kind = IndicatorKind.VWAP
    required_fields = ("high", "low", "close", "volume")
    output_fields = ("vwap",)

    def __init__(self, params: Optional[NoParams] = None):
        super().__init__(params)
        self.reset()

    def _on_bar(self, bar):
        typical_price = (bar["high"] + bar["low"] + bar["close"]) / 3
        self._cumulative_tpv += typical_price * bar["volume"]
        self._cumulative_volume += bar["volume"]
        self._last_typical = typical_price

    def get_result(self) -> Result:
        if self._last_typical is None:
            return {"vwap": None}
        if self._cumulative_volume == 0:
            return {"vwap": self._last_typical}
        return {"vwap": self._cumulative_tpv / self._cumulative_volume}

    def is_ready(self) -> bool:
        return self._last_typical is not None

    def reset(self) -> None:
        self._cumulative_tpv = 0.0
        self._cumulative_volume = 0.0
        self._last_typical = None

"""
Ichimoku Cloud (Ichimoku Kinko Hyo)

Components:
1. Tenkan-sen (Conversion Line) - (9-period high + 9-period low) / 2
2. Kijun-sen (Base Line) - (26-period high + 26-period low) / 2
3. Senkou Span A (Leading Span A) - (Tenkan-sen + Kijun-sen) / 2, plotted 26 ahead
4. Senkou Span B (Leading Span B) - (52-period high + 52-period low) / 2, plotted 26 ahead
5. Chikou Span (Lagging Span) - close, plotted 26 behind

Derived series are index-aligned 1:1 with the raw history. `get_result()`
returns the values that apply to the latest candle, which means reading
the leading spans `displacement` entries back in the derived series and the
lagging span `displacement` entries back in the raw closes.
"""

from typing import Optional

from indicator_engine.core.config import settings
from indicator_engine.schemas.indicators import IchimokuParams, IchimokuSignal, IndicatorKind
from indicator_engine.services.indicators.calculations import Result, StreamingIndicator
from indicator_engine.services.indicators.signals import derive_ichimoku_signal
from indicator_engine.services.indicators.windows import opt_mean, rolling_midpoint


class IchimokuCloud(StreamingIndicator):
    """
    Ichimoku Cloud with bounded history.

    Raw and derived buffers are trimmed together from the oldest end once
    they exceed `max(periods) + displacement + margin`, after the newest
    values have been computed. The margin defaults to
    `settings.history_margin`.
    """

    kind = IndicatorKind.ICHIMOKU
    params_model = IchimokuParams
    required_fields = ("high", "low", "close")
    output_fields = ("tenkan", "kijun", "senkou_a", "senkou_b", "chikou")

    def __init__(self, params: Optional[IchimokuParams] = None, margin: Optional[int] = None):
        super().__init__(params)
        if margin is None:
            margin = settings.history_margin
        if margin < 0:
            raise ValueError(f"History margin must be >= 0, got {margin}")

        p = self.params
        self.ready_length = max(p.conversion, p.base, p.leading_b)
        self.keep_length = self.ready_length + p.displacement + margin

        # Raw history
        self._highs: list[float] = []
        self._lows: list[float] = []
        self._closes: list[float] = []

        # Derived series, aligned with the raw history
        self._tenkan: list[Optional[float]] = []
        self._kijun: list[Optional[float]] = []
        self._senkou_a: list[Optional[float]] = []
        self._senkou_b: list[Optional[float]] = []

    def _on_bar(self, bar):
        self._highs.append(bar["high"])
        self._lows.append(bar["low"])
        self._closes.append(bar["close"])

        self._calculate()

        excess = len(self._highs) - self.keep_length
        if excess > 0:
            for buffer in self._buffers():
                del buffer[:excess]

    def _calculate(self) -> None:
        p = self.params
        tenkan = rolling_midpoint(self._highs, self._lows, p.conversion)
        kijun = rolling_midpoint(self._highs, self._lows, p.base)

        self._tenkan.append(tenkan)
        self._kijun.append(kijun)
        self._senkou_a.append(opt_mean(tenkan, kijun))
        self._senkou_b.append(rolling_midpoint(self._highs, self._lows, p.leading_b))

    def _buffers(self) -> tuple[list, ...]:
        return (
            self._highs,
            self._lows,
            self._closes,
            self._tenkan,
            self._kijun,
            self._senkou_a,
            self._senkou_b,
        )

    def get_result(self) -> Result:
        if not self._closes:
            return self._empty_result()

        displacement = self.params.displacement
        current_idx = len(self._tenkan) - 1

        # Leading spans were plotted `displacement` candles ahead when computed
        senkou_idx = current_idx - displacement
        # Lagging span: close from `displacement` candles before the latest
        chikou_idx = len(self._closes) - 1 - displacement

        return {
            "tenkan": self._tenkan[current_idx],
            "kijun": self._kijun[current_idx],
            "senkou_a": self._senkou_a[senkou_idx] if senkou_idx >= 0 else None,
            "senkou_b": self._senkou_b[senkou_idx] if senkou_idx >= 0 else None,
            "chikou": self._closes[chikou_idx] if chikou_idx >= 0 else None,
        }

    def get_signal(self) -> Optional[IchimokuSignal]:
        """Signal for the current result against the latest close."""
        if not self._closes:
            return None
        return derive_ichimoku_signal(self.get_result(), self._closes[-1])

    def is_ready(self) -> bool:
        return len(self._highs) >= self.ready_length

    def reset(self) -> None:
        for buffer in self._buffers():
            buffer.clear()

    @property
    def history_length(self) -> int:
        return len(self._highs)

    @property
    def series(self) -> dict[str, list[Optional[float]]]:
        """Copies of the derived series, oldest first."""
        return {
            "tenkan": list(self._tenkan),
            "kijun": list(self._kijun),
            "senkou_a": list(self._senkou_a),
            "senkou_b": list(self._senkou_b),
        }

"""
Signal Interpretation

Qualitative signals derived from a result snapshot and the latest close.
Signals are recomputed on demand and never stored. Every function fails
soft: when a required value is unavailable it returns None.
"""

from typing import Callable, Mapping, Optional

from indicator_engine.schemas.indicators import (
    BandPosition,
    BandSignal,
    CloudColor,
    CrossSignal,
    IchimokuSignal,
    IndicatorKind,
    MACDSignal,
    OscillatorSignal,
    OscillatorZone,
    PriceVsCloud,
    Signal,
    TrendSignal,
)

Snapshot = Mapping[str, Optional[float]]

# Oscillator zone thresholds (overbought, oversold)
RSI_ZONES = (70.0, 30.0)
STOCHASTIC_ZONES = (80.0, 20.0)
CCI_ZONES = (100.0, -100.0)


def _missing(*values: Optional[float]) -> bool:
    return any(v is None for v in values)


def derive_ichimoku_signal(result: Snapshot, close: Optional[float]) -> Optional[IchimokuSignal]:
    """
    Classify the cloud against price.

    - cloud color: bullish if span A > span B, otherwise bearish
    - price vs cloud: above the cloud top, below the cloud bottom, else inside
    - cross: tenkan vs kijun, neutral when equal
    - trend: strong only when price, cloud and cross all agree; otherwise
      the price position alone decides, else neutral
    """
    tenkan = result.get("tenkan")
    kijun = result.get("kijun")
    senkou_a = result.get("senkou_a")
    senkou_b = result.get("senkou_b")
    if _missing(tenkan, kijun, senkou_a, senkou_b, close):
        return None

    cloud_color = CloudColor.BULLISH if senkou_a > senkou_b else CloudColor.BEARISH

    cloud_top = max(senkou_a, senkou_b)
    cloud_bottom = min(senkou_a, senkou_b)
    if close > cloud_top:
        price_vs_cloud = PriceVsCloud.ABOVE
    elif close < cloud_bottom:
        price_vs_cloud = PriceVsCloud.BELOW
    else:
        price_vs_cloud = PriceVsCloud.INSIDE

    if tenkan > kijun:
        cross = CrossSignal.BULLISH
    elif tenkan < kijun:
        cross = CrossSignal.BEARISH
    else:
        cross = CrossSignal.NEUTRAL

    if (
        price_vs_cloud == PriceVsCloud.ABOVE
        and cloud_color == CloudColor.BULLISH
        and cross == CrossSignal.BULLISH
    ):
        trend = TrendSignal.STRONG_BULLISH
    elif (
        price_vs_cloud == PriceVsCloud.BELOW
        and cloud_color == CloudColor.BEARISH
        and cross == CrossSignal.BEARISH
    ):
        trend = TrendSignal.STRONG_BEARISH
    elif price_vs_cloud == PriceVsCloud.ABOVE:
        trend = TrendSignal.BULLISH
    elif price_vs_cloud == PriceVsCloud.BELOW:
        trend = TrendSignal.BEARISH
    else:
        trend = TrendSignal.NEUTRAL

    return IchimokuSignal(
        trend=trend,
        cross=cross,
        cloud_color=cloud_color,
        price_vs_cloud=price_vs_cloud,
    )


def _zone(value: float, overbought: float, oversold: float) -> OscillatorZone:
    if value > overbought:
        return OscillatorZone.OVERBOUGHT
    if value < oversold:
        return OscillatorZone.OVERSOLD
    return OscillatorZone.NEUTRAL


def derive_rsi_signal(result: Snapshot, close: Optional[float] = None) -> Optional[OscillatorSignal]:
    value = result.get("rsi")
    if value is None:
        return None
    return OscillatorSignal(zone=_zone(value, *RSI_ZONES), value=value)


def derive_stochastic_signal(result: Snapshot, close: Optional[float] = None) -> Optional[OscillatorSignal]:
    value = result.get("stochastic_k")
    if value is None:
        return None
    return OscillatorSignal(zone=_zone(value, *STOCHASTIC_ZONES), value=value)


def derive_stoch_rsi_signal(result: Snapshot, close: Optional[float] = None) -> Optional[OscillatorSignal]:
    value = result.get("stoch_rsi")
    if value is None:
        return None
    return OscillatorSignal(zone=_zone(value, *STOCHASTIC_ZONES), value=value)


def derive_cci_signal(result: Snapshot, close: Optional[float] = None) -> Optional[OscillatorSignal]:
    value = result.get("cci")
    if value is None:
        return None
    return OscillatorSignal(zone=_zone(value, *CCI_ZONES), value=value)


def derive_macd_signal(result: Snapshot, close: Optional[float] = None) -> Optional[MACDSignal]:
    """Histogram sign: MACD line above its signal line is bullish."""
    histogram = result.get("macd_histogram")
    if histogram is None:
        return None
    if histogram > 0:
        cross = CrossSignal.BULLISH
    elif histogram < 0:
        cross = CrossSignal.BEARISH
    else:
        cross = CrossSignal.NEUTRAL
    return MACDSignal(cross=cross, histogram=histogram)


def derive_band_signal(result: Snapshot, close: Optional[float]) -> Optional[BandSignal]:
    """Close relative to the Bollinger Bands, with %B when the bands are open."""
    upper = result.get("bb_upper")
    lower = result.get("bb_lower")
    if _missing(upper, lower, close):
        return None

    if close > upper:
        position = BandPosition.ABOVE
    elif close < lower:
        position = BandPosition.BELOW
    else:
        position = BandPosition.INSIDE

    percent_b = (close - lower) / (upper - lower) if upper != lower else None
    return BandSignal(position=position, percent_b=percent_b)


SIGNAL_DERIVERS: dict[IndicatorKind, Callable[[Snapshot, Optional[float]], Optional[Signal]]] = {
    IndicatorKind.ICHIMOKU: derive_ichimoku_signal,
    IndicatorKind.RSI: derive_rsi_signal,
    IndicatorKind.STOCHASTIC: derive_stochastic_signal,
    IndicatorKind.STOCH_RSI: derive_stoch_rsi_signal,
    IndicatorKind.CCI: derive_cci_signal,
    IndicatorKind.MACD: derive_macd_signal,
    IndicatorKind.BB: derive_band_signal,
}


def derive_signal(kind: IndicatorKind, result: Snapshot, close: Optional[float]) -> Optional[Signal]:
    """Signal for any indicator kind; None for kinds without an interpretation."""
    deriver = SIGNAL_DERIVERS.get(kind)
    if deriver is None:
        return None
    return deriver(result, close)

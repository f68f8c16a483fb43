"""Tests for the streaming indicator state machines."""

import numpy as np
import pytest
from pydantic import ValidationError as PydanticValidationError

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
    IQRParams,
    LinearRegressionParams,
    MACDParams,
    MADParams,
    MOMParams,
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
    Smoother,
    Stochastic,
    StochasticRSI,
    WilliamsR,
    read_candle,
    true_range,
)
from tests.helpers import make_candles, wave_candles


def feed_closes(indicator, closes):
    """Update with close-only candles and collect every result."""
    results = []
    for close in closes:
        indicator.update({"close": close})
        results.append(indicator.get_result())
    return results


def feed_bars(indicator, bars):
    results = []
    for bar in bars:
        indicator.update(bar)
        results.append(indicator.get_result())
    return results


class TestReadCandle:
    """Candle field extraction and validation."""

    def test_reads_models_and_mappings(self):
        candle = make_candles([11.0], [9.0], [10.0])[0]

        assert read_candle(candle, ("high", "low", "close")) == {"high": 11.0, "low": 9.0, "close": 10.0}
        assert read_candle({"close": 5}, ("close",)) == {"close": 5.0}

    @pytest.mark.parametrize(
        "candle",
        [{}, {"close": None}, {"close": "x"}, {"close": float("inf")}, {"close": True}, None],
    )
    def test_rejects_bad_candles(self, candle):
        with pytest.raises(InvalidInputError):
            read_candle(candle, ("close",))

    def test_error_names_the_indicator(self):
        with pytest.raises(InvalidInputError) as exc_info:
            SMA().update({"open": 1.0})
        assert exc_info.value.service_name == "SMA"
        assert exc_info.value.details == {"field": "close"}


class TestSmoother:
    def test_ema_seeded_with_sma(self):
        smoother = Smoother(3)
        assert [smoother.update(x) for x in [1.0, 2.0, 3.0, 4.0]] == [None, None, 2.0, 3.0]

    def test_wilder(self):
        smoother = Smoother(2, wilder=True)
        assert [smoother.update(x) for x in [1.0, 3.0, 5.0]] == [None, 2.0, 3.5]


class TestMovingAverages:
    def test_sma(self):
        results = feed_closes(SMA(SMAParams(period=3)), [1.0, 2.0, 3.0, 4.0, 5.0])
        assert [r["sma"] for r in results] == [None, None, 2.0, 3.0, 4.0]

    def test_sma_readiness(self):
        sma = SMA(SMAParams(period=2))
        sma.update({"close": 1.0})
        assert not sma.is_ready()
        sma.update({"close": 1.0})
        assert sma.is_ready()

    def test_ema(self):
        results = feed_closes(EMA(EMAParams(period=3)), [1.0, 2.0, 3.0, 4.0])
        assert [r["ema"] for r in results] == [None, None, 2.0, 3.0]

    def test_ema_defaults(self):
        assert EMA().params.period == 20

    def test_wma(self):
        results = feed_closes(WMA(WMAParams(period=3)), [1.0, 2.0, 3.0])
        assert results[1]["wma"] is None
        assert results[2]["wma"] == pytest.approx(14 / 6)

    def test_wsma(self):
        results = feed_closes(WSMA(WSMAParams(period=2)), [1.0, 3.0, 5.0])
        assert [r["wsma"] for r in results] == [None, 2.0, 3.5]

    def test_dema_tracks_a_linear_trend(self):
        results = feed_closes(DEMA(DEMAParams(period=2)), [1.0, 2.0, 3.0, 4.0])
        assert [r["dema"] for r in results] == [None, None, pytest.approx(3.0), pytest.approx(4.0)]

    def test_rma(self):
        rma = RMA(RMAParams(period=2))
        results = feed_closes(rma, [2.0, 4.0, 6.0])
        assert [r["rma"] for r in results] == [None, 3.0, 4.5]
        assert rma.is_ready()

    def test_dma(self):
        results = feed_closes(DMA(DMAParams(short=2, long=3)), [1.0, 2.0, 3.0])
        assert results[1] == {"dma_short": 1.5, "dma_long": None}
        assert results[2] == {"dma_short": 2.5, "dma_long": 2.0}

    def test_dma_rejects_short_not_below_long(self):
        with pytest.raises(PydanticValidationError):
            DMAParams(short=20, long=20)

    def test_sma15(self):
        """Symmetric weights reproduce a straight line at its centre."""
        results = feed_closes(SMA15(), [float(i) for i in range(15)])
        assert results[13]["sma15"] is None
        assert results[14]["sma15"] == pytest.approx(7.0)

        flat = feed_closes(SMA15(), [10.0] * 15)
        assert flat[-1]["sma15"] == pytest.approx(10.0)


class TestMomentum:
    def test_rsi_all_gains(self):
        results = feed_closes(RSI(RSIParams(period=3)), [1.0, 2.0, 3.0, 4.0, 5.0])
        assert [r["rsi"] for r in results] == [None, None, None, 100.0, 100.0]

    def test_rsi_wilder_smoothing(self):
        results = feed_closes(RSI(RSIParams(period=2)), [1.0, 2.0, 1.0, 2.0])
        assert results[2]["rsi"] == pytest.approx(50.0)
        assert results[3]["rsi"] == pytest.approx(75.0)

    def test_macd_readiness_and_histogram(self):
        macd = MACD(MACDParams(fast=2, slow=3, signal=2))
        results = feed_closes(macd, [1.0, 2.0, 3.0])
        assert results[2]["macd"] is not None
        assert results[2]["macd_signal"] is None
        assert results[2]["macd_histogram"] is None
        assert not macd.is_ready()

        macd.update({"close": 5.0})
        result = macd.get_result()
        assert macd.is_ready()
        assert result["macd_histogram"] == pytest.approx(result["macd"] - result["macd_signal"])

    def test_macd_flat_market(self):
        results = feed_closes(MACD(MACDParams(fast=2, slow=3, signal=2)), [10.0] * 6)
        assert results[-1] == {"macd": 0.0, "macd_signal": 0.0, "macd_histogram": 0.0}

    def test_macd_rejects_fast_not_below_slow(self):
        with pytest.raises(PydanticValidationError):
            MACDParams(fast=26, slow=12)

    def test_stochastic(self):
        bars = [
            {"high": 10.0, "low": 0.0, "close": 2.0},
            {"high": 10.0, "low": 0.0, "close": 4.0},
            {"high": 10.0, "low": 0.0, "close": 10.0},
            {"high": 10.0, "low": 0.0, "close": 0.0},
        ]
        stochastic = Stochastic(StochasticParams(k=3, d=2))
        results = feed_bars(stochastic, bars)

        assert results[1] == {"stochastic_k": None, "stochastic_d": None}
        assert results[2] == {"stochastic_k": 100.0, "stochastic_d": None}
        assert results[3] == {"stochastic_k": 0.0, "stochastic_d": 50.0}
        assert stochastic.is_ready()

    def test_stochastic_flat_window(self):
        bars = [{"high": 5.0, "low": 5.0, "close": 5.0}] * 3
        results = feed_bars(Stochastic(StochasticParams(k=3, d=1)), bars)
        assert results[-1] == {"stochastic_k": 50.0, "stochastic_d": 50.0}

    def test_williams_r(self):
        bars = [
            {"high": 10.0, "low": 0.0, "close": 5.0},
            {"high": 10.0, "low": 0.0, "close": 0.0},
        ]
        results = feed_bars(WilliamsR(WilliamsRParams(period=2)), bars)
        assert results[0]["williams_r"] is None
        assert results[1]["williams_r"] == -100.0

    def test_williams_r_flat_window(self):
        bars = [{"high": 5.0, "low": 5.0, "close": 5.0}] * 2
        assert feed_bars(WilliamsR(WilliamsRParams(period=2)), bars)[-1]["williams_r"] == -50.0

    def test_roc(self):
        results = feed_closes(ROC(ROCParams(period=2)), [100.0, 105.0, 110.0])
        assert results[1]["roc"] is None
        assert results[2]["roc"] == pytest.approx(10.0)

    def test_roc_zero_base(self):
        results = feed_closes(ROC(ROCParams(period=1)), [0.0, 5.0])
        assert results[-1]["roc"] is None

    def test_mom(self):
        results = feed_closes(MOM(MOMParams(period=2)), [100.0, 105.0, 110.0, 90.0])
        assert [r["mom"] for r in results] == [None, None, 10.0, -15.0]

    def test_stoch_rsi_position_in_rsi_range(self):
        stoch_rsi = StochasticRSI(StochRSIParams(period=2, k=1, d=1))
        results = feed_closes(stoch_rsi, [1.0, 2.0, 1.0, 2.0])

        # RSI readings 50 then 75; the latest sits at the top of the range
        assert results[2] == {"stoch_rsi": None, "stoch_rsi_signal": None}
        assert results[3] == {"stoch_rsi": 100.0, "stoch_rsi_signal": 100.0}
        assert stoch_rsi.is_ready()

    def test_stoch_rsi_flat_rsi(self):
        results = feed_closes(StochasticRSI(StochRSIParams(period=2, k=1, d=1)), [1.0, 2.0, 3.0, 4.0, 5.0])
        assert results[-1] == {"stoch_rsi": 50.0, "stoch_rsi_signal": 50.0}

    def test_cci(self):
        bars = [{"high": c, "low": c, "close": c} for c in [1.0, 2.0, 3.0]]
        results = feed_bars(CCI(CCIParams(period=3)), bars)
        assert results[1]["cci"] is None
        assert results[2]["cci"] == pytest.approx(100.0)

    def test_cci_flat_window(self):
        bars = [{"high": 5.0, "low": 5.0, "close": 5.0}] * 3
        assert feed_bars(CCI(CCIParams(period=3)), bars)[-1]["cci"] == 0.0

    def test_ao_and_ac(self):
        bars = [
            {"high": 10.0, "low": 8.0},
            {"high": 14.0, "low": 12.0},
            {"high": 12.0, "low": 10.0},
        ]
        ao = feed_bars(AO(AOParams(short=1, long=2)), bars)
        assert [r["ao"] for r in ao] == [None, 2.0, -1.0]

        ac = feed_bars(AC(ACParams(short=1, long=2, signal=2)), bars)
        assert [r["ac"] for r in ac] == [None, None, -1.5]

    def test_cg(self):
        cg = CG(CGParams(period=2, signal=2))
        results = feed_closes(cg, [1.0, 1.0, 2.0])

        assert results[0] == {"cg": None, "cg_signal": None}
        assert results[1] == {"cg": -1.5, "cg_signal": None}
        assert results[2]["cg"] == pytest.approx(-5 / 3)
        assert results[2]["cg_signal"] == pytest.approx((-1.5 - 5 / 3) / 2)
        assert cg.is_ready()


class TestVolatility:
    def test_atr(self):
        bars = [
            {"high": 10.0, "low": 8.0, "close": 9.0},
            {"high": 12.0, "low": 9.0, "close": 11.0},
            {"high": 11.0, "low": 10.0, "close": 10.0},
        ]
        results = feed_bars(ATR(ATRParams(period=2)), bars)
        assert [r["atr"] for r in results] == [None, 2.5, 1.75]

    def test_bollinger_bands(self):
        closes = [1.0, 2.0, 3.0]
        results = feed_closes(BollingerBands(BollingerParams(period=3, deviation=2.0)), closes)
        std = float(np.std(closes))

        assert results[1] == {"bb_upper": None, "bb_middle": None, "bb_lower": None}
        assert results[2]["bb_middle"] == pytest.approx(2.0)
        assert results[2]["bb_upper"] == pytest.approx(2.0 + 2 * std)
        assert results[2]["bb_lower"] == pytest.approx(2.0 - 2 * std)

    def test_true_range(self):
        bars = [
            {"high": 10.0, "low": 8.0, "close": 9.0},
            {"high": 12.0, "low": 9.0, "close": 11.0},
            {"high": 11.0, "low": 10.0, "close": 10.0},
        ]
        assert [r["tr"] for r in feed_bars(TR(), bars)] == [2.0, 3.0, 1.0]
        # Gap down below the previous close
        assert true_range(8.0, 7.0, 10.0) == 3.0

    def test_bollinger_width(self):
        closes = [1.0, 2.0, 3.0]
        results = feed_closes(BollingerBandsWidth(BollingerParams(period=3, deviation=2.0)), closes)
        assert results[1] == {"bb_width": None}
        assert results[2]["bb_width"] == pytest.approx(4 * float(np.std(closes)) / 2.0)

    def test_bollinger_width_zero_middle(self):
        results = feed_closes(BollingerBandsWidth(BollingerParams(period=2)), [0.0, 0.0])
        assert results[-1] == {"bb_width": None}

    def test_acceleration_bands(self):
        bars = [{"high": 12.0, "low": 8.0, "close": 10.0}]
        result = feed_bars(AccelerationBands(AccelerationBandsParams(period=1, width=4.0)), bars)[0]

        # factor = 4 * (12 - 8) / (12 + 8) = 0.8
        assert result["accel_upper"] == pytest.approx(21.6)
        assert result["accel_middle"] == pytest.approx(10.0)
        assert result["accel_lower"] == pytest.approx(1.6)

    def test_iqr(self):
        results = feed_closes(IQR(IQRParams(period=4)), [1.0, 2.0, 3.0, 4.0])
        assert results[2]["iqr"] is None
        assert results[3]["iqr"] == pytest.approx(1.5)

    def test_mad(self):
        results = feed_closes(MAD(MADParams(period=3)), [1.0, 2.0, 3.0])
        assert results[1]["mad"] is None
        assert results[2]["mad"] == pytest.approx(2 / 3)


class TestParabolicSAR:
    def test_first_candle_only_initialises(self):
        psar = ParabolicSAR()
        psar.update({"high": 10.0, "low": 9.0})
        assert psar.get_result() == {"psar": None}
        assert not psar.is_ready()

    def test_uptrend_then_reversal(self):
        psar = ParabolicSAR(PSARParams(step=0.02, max_step=0.2))
        psar.update({"high": 10.0, "low": 9.0})
        psar.update({"high": 11.0, "low": 10.0})

        # SAR clamped to the prior low
        assert psar.get_result()["psar"] == pytest.approx(9.0)
        assert psar.is_uptrend

        psar.update({"high": 8.0, "low": 7.0})
        assert psar.get_result()["psar"] == pytest.approx(11.0)
        assert not psar.is_uptrend

    def test_acceleration_is_capped(self):
        psar = ParabolicSAR(PSARParams(step=0.1, max_step=0.2))
        for i in range(10):
            psar.update({"high": 10.0 + i, "low": 9.0 + i})
        assert psar._af == pytest.approx(0.2)

    def test_reset(self):
        psar = ParabolicSAR()
        for candle in wave_candles(20):
            psar.update(candle)
        psar.reset()
        assert psar.get_result() == {"psar": None}
        assert psar.is_uptrend


class TestDirectionalMovement:
    """DX and ADX over a rise followed by a sharp drop."""

    BARS = [
        {"high": 10.0, "low": 8.0, "close": 9.0},
        {"high": 12.0, "low": 9.0, "close": 11.0},
        {"high": 13.0, "low": 10.0, "close": 12.0},
        {"high": 12.0, "low": 7.0, "close": 8.0},
    ]

    def test_dx(self):
        results = feed_bars(DX(DXParams(period=2)), self.BARS)
        assert [r["dx"] for r in results[:2]] == [None, None]
        # +DI 50, -DI 0
        assert results[2]["dx"] == pytest.approx(100.0)
        # +DI 18.75, -DI 37.5
        assert results[3]["dx"] == pytest.approx(100 * 18.75 / 56.25)

    def test_adx(self):
        adx = ADX(ADXParams(period=2))
        results = feed_bars(adx, self.BARS)

        assert results[2] == {"adx": None, "plus_di": 50.0, "minus_di": 0.0}
        assert not adx.is_ready()
        assert results[3]["plus_di"] == pytest.approx(18.75)
        assert results[3]["minus_di"] == pytest.approx(37.5)
        assert results[3]["adx"] == pytest.approx((100.0 + 100 * 18.75 / 56.25) / 2)
        assert adx.is_ready()

    def test_flat_market(self):
        bars = [{"high": 5.0, "low": 5.0, "close": 5.0}] * 4
        assert feed_bars(DX(DXParams(period=2)), bars)[-1] == {"dx": 0.0}


class TestTDSequential:
    def test_sell_setup_after_nine_higher_closes(self):
        tds = TDS()
        results = feed_closes(tds, [float(i) for i in range(1, 14)])

        assert results[3]["tds"] is None
        assert results[4]["tds"] == 0.0
        assert results[11]["tds"] == 0.0
        assert results[12]["tds"] == 1.0

    def test_buy_setup_after_nine_lower_closes(self):
        results = feed_closes(TDS(), [float(i) for i in range(13, 0, -1)])
        assert results[12]["tds"] == -1.0

    def test_equal_close_restarts_count(self):
        # Eight higher closes, one equal to the close four bars back, then a higher one
        closes = [float(i) for i in range(1, 13)] + [9.0, 20.0]
        results = feed_closes(TDS(), closes)
        assert [r["tds"] for r in results[-3:]] == [0.0, 0.0, 0.0]


class TestLinearRegression:
    def test_straight_line(self):
        results = feed_closes(LinearRegression(LinearRegressionParams(period=3)), [1.0, 2.0, 3.0])
        assert results[1] == {"linear_regression": None, "linear_regression_slope": None}
        assert results[2]["linear_regression"] == pytest.approx(3.0)
        assert results[2]["linear_regression_slope"] == pytest.approx(1.0)

    def test_least_squares_fit(self):
        result = feed_closes(LinearRegression(LinearRegressionParams(period=3)), [1.0, 3.0, 2.0])[-1]
        assert result["linear_regression_slope"] == pytest.approx(0.5)
        assert result["linear_regression"] == pytest.approx(2.5)

    def test_period_must_allow_a_fit(self):
        with pytest.raises(PydanticValidationError):
            LinearRegressionParams(period=1)


class TestVolume:
    def test_obv(self):
        bars = [
            {"close": 10.0, "volume": 100.0},
            {"close": 11.0, "volume": 200.0},
            {"close": 10.0, "volume": 50.0},
            {"close": 10.0, "volume": 30.0},
        ]
        assert [r["obv"] for r in feed_bars(OBV(), bars)] == [100.0, 300.0, 250.0, 250.0]

    def test_obv_requires_volume(self):
        with pytest.raises(InvalidInputError):
            OBV().update({"close": 10.0})

    def test_vwap(self):
        bars = [
            {"high": 12.0, "low": 8.0, "close": 10.0, "volume": 100.0},
            {"high": 15.0, "low": 9.0, "close": 12.0, "volume": 300.0},
        ]
        results = feed_bars(VWAP(), bars)
        assert results[0]["vwap"] == pytest.approx(10.0)
        assert results[1]["vwap"] == pytest.approx(11.5)

    def test_vwap_without_volume(self):
        results = feed_bars(VWAP(), [{"high": 12.0, "low": 8.0, "close": 10.0, "volume": 0.0}])
        assert results[0]["vwap"] == pytest.approx(10.0)


class TestResetDeterminism:
    """Every kind replays identically after reset()."""

    @pytest.mark.parametrize(
        "indicator",
        [SMA(), EMA(), WMA(), RSI(), MACD(), Stochastic(), WilliamsR(), ROC(), MOM(),
         ATR(), BollingerBands(), ParabolicSAR(), OBV(), VWAP(),
         WSMA(), DEMA(), RMA(), DMA(), SMA15(), StochasticRSI(), CCI(), AO(), AC(), CG(),
         TR(), BollingerBandsWidth(), AccelerationBands(), IQR(), MAD(),
         ADX(), DX(), TDS(), LinearRegression()],
        ids=lambda i: type(i).__name__,
    )
    def test_replay_after_reset(self, indicator):
        candles = wave_candles(80)
        first = feed_bars(indicator, candles)
        indicator.reset()
        assert all(v is None for v in indicator.get_result().values())
        assert feed_bars(indicator, candles) == first

    def test_instances_do_not_share_state(self):
        a, b = SMA(SMAParams(period=2)), SMA(SMAParams(period=2))
        feed_closes(a, [1.0, 2.0])
        assert b.get_result() == {"sma": None}

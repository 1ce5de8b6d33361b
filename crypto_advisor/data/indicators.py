"""
Technical indicators computed from a candle series.

Pure functions over closing prices and volumes: no I/O, no caching, the same
series always yields the same snapshot. When a series is too short for an
indicator's lookback window, the indicator takes a neutral value and its name
is recorded in `IndicatorSnapshot.defaulted`.
"""
from typing import List, Optional

import pandas as pd

from crypto_advisor.agents.data_structures import IndicatorSnapshot, TimeframeSeries
from crypto_advisor.exceptions import InsufficientHistory

RSI_PERIOD = 14
MACD_FAST = 12
MACD_SLOW = 26
MACD_SIGNAL = 9
EMA_PERIOD = 20

NEUTRAL_RSI = 50.0
NEUTRAL_MACD = 0.0

# Minimum number of closes for a defined value
RSI_MIN_PERIODS = RSI_PERIOD + 1
MACD_MIN_PERIODS = MACD_SLOW + MACD_SIGNAL - 1  # 34


def ema_series(values: pd.Series, period: int) -> pd.Series:
    """
    Exponential moving average seeded with the simple average of the first
    `period` values.

    Returns:
        A series aligned with `values.index[period - 1:]`, empty if there are
        fewer than `period` values.
    """
    if len(values) < period:
        return pd.Series(dtype="float64")
    seed = pd.Series([values.iloc[:period].mean()], index=[values.index[period - 1]])
    seeded = pd.concat([seed, values.iloc[period:]])
    return seeded.ewm(alpha=2.0 / (period + 1), adjust=False).mean()


def rsi(closes: pd.Series, period: int = RSI_PERIOD) -> Optional[float]:
    """Wilder's RSI of the last close, or None when there are not enough closes."""
    if len(closes) < period + 1:
        return None
    delta = closes.diff().iloc[1:]
    gains = delta.clip(lower=0)
    losses = -delta.clip(upper=0)

    def _wilder(values: pd.Series) -> float:
        seeded = pd.concat([pd.Series([values.iloc[:period].mean()]), values.iloc[period:]],
                           ignore_index=True)
        return float(seeded.ewm(alpha=1.0 / period, adjust=False).mean().iloc[-1])

    avg_gain = _wilder(gains)
    avg_loss = _wilder(losses)
    if avg_loss == 0:
        return NEUTRAL_RSI if avg_gain == 0 else 100.0
    relative_strength = avg_gain / avg_loss
    return 100.0 - 100.0 / (1.0 + relative_strength)


def macd_histogram(
    closes: pd.Series,
    fast: int = MACD_FAST,
    slow: int = MACD_SLOW,
    signal: int = MACD_SIGNAL,
) -> Optional[float]:
    """MACD line minus signal line at the last close, or None when history is too short."""
    if len(closes) < slow + signal - 1:
        return None
    fast_ema = ema_series(closes, fast)
    slow_ema = ema_series(closes, slow)
    macd_line = (fast_ema - slow_ema).dropna()
    signal_line = ema_series(macd_line, signal)
    return float(macd_line.iloc[-1] - signal_line.iloc[-1])


def ema(closes: pd.Series, period: int = EMA_PERIOD) -> Optional[float]:
    """EMA of the last close, or None when history is too short."""
    values = ema_series(closes, period)
    if values.empty:
        return None
    return float(values.iloc[-1])


def percent_change(values: pd.Series) -> float:
    """Percent change of the last value against the previous one; 0 if undefined."""
    if len(values) < 2:
        return 0.0
    previous = float(values.iloc[-2])
    if previous == 0:
        return 0.0
    return (float(values.iloc[-1]) - previous) / previous * 100.0


class IndicatorEngine:
    """
    Computes indicator snapshots for candle series.
    """

    @staticmethod
    def compute(series: TimeframeSeries) -> IndicatorSnapshot:
        """
        Derives RSI, MACD histogram, EMA and price/volume deltas for a series.

        Raises:
            InsufficientHistory: If the series has no candles at all.
        """
        if not series.candles:
            raise InsufficientHistory(f"No candles for timeframe {series.timeframe}")

        closes = pd.to_numeric(pd.Series([c.close for c in series.candles]), errors="raise")
        volumes = pd.to_numeric(pd.Series([c.volume for c in series.candles]), errors="raise")
        last_price = float(closes.iloc[-1])

        defaulted: List[str] = []
        rsi_value = rsi(closes)
        if rsi_value is None:
            rsi_value = NEUTRAL_RSI
            defaulted.append("rsi")
        macd_value = macd_histogram(closes)
        if macd_value is None:
            macd_value = NEUTRAL_MACD
            defaulted.append("macd")
        ema_value = ema(closes)
        if ema_value is None:
            ema_value = last_price
            defaulted.append("ema")

        return IndicatorSnapshot(
            timeframe=series.timeframe,
            price=last_price,
            volume=float(volumes.iloc[-1]),
            rsi=rsi_value,
            macd=macd_value,
            ema=ema_value,
            price_change=percent_change(closes),
            volume_change=percent_change(volumes),
            defaulted=tuple(defaulted),
        )

    @classmethod
    def compute_all(cls, series_list: List[TimeframeSeries]) -> List[IndicatorSnapshot]:
        return [cls.compute(series) for series in series_list]

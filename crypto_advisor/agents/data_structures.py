"""
Core data structures for the crypto analysis pipeline.

This module defines the immutable value types exchanged between the gateways,
the engines and the orchestrator, together with their conversion to the
camelCase JSON shape served by the HTTP API.
"""
import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Mapping, Optional, Sequence, Tuple, Union

from crypto_advisor.exceptions import MalformedUpstreamPayload, ModelOutputUnparseable

SUPPORTED_TIMEFRAMES: Tuple[str, ...] = ("15m", "1h", "1d")
SENTIMENT_CATEGORIES: Tuple[str, ...] = ("Positive", "Neutral", "Negative")
SPOT_ACTIONS: Tuple[str, ...] = ("buy", "sell", "hold")
LEVERAGED_POSITIONS: Tuple[str, ...] = ("long", "short")

UNAVAILABLE_RATIONALE = "Sentiment analysis unavailable."


@dataclass(frozen=True)
class Candle:
    """
    One OHLCV bar as reported by the exchange.

    Prices and volumes keep the exchange's decimal strings to avoid float
    drift; times are epoch milliseconds.
    """
    open_time: int
    open: str
    high: str
    low: str
    close: str
    volume: str
    close_time: int
    quote_volume: str
    trades: int
    taker_buy_base_volume: str
    taker_buy_quote_volume: str

    @classmethod
    def from_kline(cls, row: Sequence[Any]) -> "Candle":
        """Map a positional kline tuple into a Candle. The 12th field is ignored."""
        if not isinstance(row, (list, tuple)) or len(row) < 11:
            raise MalformedUpstreamPayload(f"Unexpected kline entry: {row!r}")
        try:
            return cls(
                open_time=int(row[0]),
                open=str(row[1]),
                high=str(row[2]),
                low=str(row[3]),
                close=str(row[4]),
                volume=str(row[5]),
                close_time=int(row[6]),
                quote_volume=str(row[7]),
                trades=int(row[8]),
                taker_buy_base_volume=str(row[9]),
                taker_buy_quote_volume=str(row[10]),
            )
        except (TypeError, ValueError) as e:
            raise MalformedUpstreamPayload(f"Unexpected kline entry: {row!r}") from e

    def to_dict(self) -> Dict[str, Any]:
        return {
            "openTime": self.open_time,
            "open": self.open,
            "high": self.high,
            "low": self.low,
            "close": self.close,
            "volume": self.volume,
            "closeTime": self.close_time,
            "quoteVolume": self.quote_volume,
            "trades": self.trades,
            "takerBuyBaseVolume": self.taker_buy_base_volume,
            "takerBuyQuoteVolume": self.taker_buy_quote_volume,
        }


@dataclass(frozen=True)
class TimeframeSeries:
    """
    Candles of one symbol at one timeframe, ascending by open time.

    Attributes:
        timeframe: One of SUPPORTED_TIMEFRAMES.
        candles: Candles with strictly increasing open_time.
    """
    timeframe: str
    candles: Tuple[Candle, ...]

    def __post_init__(self):
        if self.timeframe not in SUPPORTED_TIMEFRAMES:
            raise ValueError(f"Unsupported timeframe: {self.timeframe}")
        open_times = [candle.open_time for candle in self.candles]
        if any(later <= earlier for earlier, later in zip(open_times, open_times[1:])):
            raise ValueError("Candles must be strictly increasing in open time")

    @property
    def last_price(self) -> Optional[float]:
        return float(self.candles[-1].close) if self.candles else None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "timeframe": self.timeframe,
            "candles": [candle.to_dict() for candle in self.candles],
        }


@dataclass(frozen=True)
class IndicatorSnapshot:
    """
    Indicator values derived from the tail of one TimeframeSeries.

    Attributes:
        timeframe: Timeframe of the source series.
        price: Last close.
        volume: Last volume.
        rsi: RSI(14), 50 when history is too short.
        macd: MACD(12, 26, 9) histogram, 0 when history is too short.
        ema: EMA(20), the last close when history is too short.
        price_change: Percent change of the last close against the previous one.
        volume_change: Percent change of the last volume against the previous one.
        defaulted: Names of the indicators that took their neutral default.
    """
    timeframe: str
    price: float
    volume: float
    rsi: float
    macd: float
    ema: float
    price_change: float
    volume_change: float
    defaulted: Tuple[str, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "timeframe": self.timeframe,
            "price": self.price,
            "volume": self.volume,
            "indicators": {
                "rsi": self.rsi,
                "macd": self.macd,
                "ema": self.ema,
                "priceChange": self.price_change,
                "volumeChange": self.volume_change,
            },
        }


@dataclass(frozen=True)
class Headline:
    """A news headline. Fallback headlines carry no URL."""
    title: str
    url: Optional[str] = None
    published_at: Optional[datetime] = None
    source: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"title": self.title, "url": self.url}
        if self.published_at is not None:
            data["publishedAt"] = self.published_at.isoformat()
        if self.source is not None:
            data["source"] = self.source
        return data


def _require(data: Mapping[str, Any], key: str) -> Any:
    if not isinstance(data, Mapping) or key not in data:
        raise ModelOutputUnparseable(f"Missing field '{key}' in model output")
    return data[key]


def _as_number(value: Any, name: str) -> float:
    """Coerce a model-provided number; numeric strings are accepted, booleans are not."""
    if isinstance(value, bool):
        raise ModelOutputUnparseable(f"Field '{name}' is not a number: {value!r}")
    try:
        number = float(value)
    except (TypeError, ValueError) as e:
        raise ModelOutputUnparseable(f"Field '{name}' is not a number: {value!r}") from e
    if not math.isfinite(number):
        raise ModelOutputUnparseable(f"Field '{name}' is not finite: {value!r}")
    return number


def _optional_number(data: Mapping[str, Any], key: str) -> Optional[float]:
    value = data.get(key)
    if value is None:
        return None
    return _as_number(value, key)


def _as_text(value: Any) -> str:
    if value is None:
        return ""
    return value if isinstance(value, str) else str(value)


@dataclass(frozen=True)
class SentimentScore:
    """Category, score and rationale for one sentiment horizon."""
    category: str
    score: float
    rationale: str

    @classmethod
    def from_model_output(cls, data: Any) -> "SentimentScore":
        if not isinstance(data, Mapping):
            raise ModelOutputUnparseable("Sentiment entry is not an object")
        raw_category = _as_text(_require(data, "category")).strip()
        category = next(
            (c for c in SENTIMENT_CATEGORIES if c.lower() == raw_category.lower()), None
        )
        if category is None:
            raise ModelOutputUnparseable(f"Unknown sentiment category: {raw_category!r}")
        return cls(
            category=category,
            score=_as_number(_require(data, "score"), "score"),
            rationale=_as_text(data.get("rationale", "")),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {"category": self.category, "score": self.score, "rationale": self.rationale}


@dataclass(frozen=True)
class SentimentVerdict:
    """Short- and long-term sentiment plus the headlines it was derived from."""
    short_term: SentimentScore
    long_term: SentimentScore
    headlines: Tuple[Headline, ...] = ()

    @classmethod
    def from_model_output(cls, data: Any, headlines: Sequence[Headline] = ()) -> "SentimentVerdict":
        return cls(
            short_term=SentimentScore.from_model_output(_require(data, "shortTermSentiment")),
            long_term=SentimentScore.from_model_output(_require(data, "longTermSentiment")),
            headlines=tuple(headlines),
        )

    @classmethod
    def unavailable(cls) -> "SentimentVerdict":
        """The neutral verdict substituted when sentiment analysis fails."""
        neutral = SentimentScore(category="Neutral", score=0.5, rationale=UNAVAILABLE_RATIONALE)
        return cls(short_term=neutral, long_term=neutral)

    def to_dict(self, include_headlines: bool = True) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "shortTermSentiment": self.short_term.to_dict(),
            "longTermSentiment": self.long_term.to_dict(),
        }
        if include_headlines:
            data["newsHeadlines"] = [headline.to_dict() for headline in self.headlines]
        return data


@dataclass(frozen=True)
class Rationale:
    """Free-text reasoning produced by the language model."""
    primary_signals: str
    lagging_indicators: str
    sentiment_analysis: str

    @classmethod
    def from_model_output(cls, data: Any) -> "Rationale":
        if not isinstance(data, Mapping):
            data = {}
        return cls(
            primary_signals=_as_text(data.get("primarySignals", "")),
            lagging_indicators=_as_text(data.get("laggingIndicators", "")),
            sentiment_analysis=_as_text(data.get("sentimentAnalysis", "")),
        )

    def to_dict(self) -> Dict[str, str]:
        return {
            "primarySignals": self.primary_signals,
            "laggingIndicators": self.lagging_indicators,
            "sentimentAnalysis": self.sentiment_analysis,
        }


@dataclass(frozen=True)
class SpotEntry:
    """A spot trade that opens a position: buy or sell at an entry price."""
    action: str
    entry_price: float
    stop_loss_level: float
    take_profit_level: float
    rationale: Rationale

    def __post_init__(self):
        if self.action not in ("buy", "sell"):
            raise ValueError(f"SpotEntry action must be buy or sell, got {self.action!r}")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "action": self.action,
            "entryPrice": self.entry_price,
            "stopLossLevel": self.stop_loss_level,
            "takeProfitLevel": self.take_profit_level,
            "rationale": self.rationale.to_dict(),
        }


@dataclass(frozen=True)
class SpotHold:
    """A spot recommendation to stay put. Protective levels are optional."""
    rationale: Rationale
    stop_loss_level: Optional[float] = None
    take_profit_level: Optional[float] = None
    action: str = field(default="hold", init=False)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"action": self.action}
        if self.stop_loss_level is not None:
            data["stopLossLevel"] = self.stop_loss_level
        if self.take_profit_level is not None:
            data["takeProfitLevel"] = self.take_profit_level
        data["rationale"] = self.rationale.to_dict()
        return data


SpotTrade = Union[SpotEntry, SpotHold]


@dataclass(frozen=True)
class LeveragedTrade:
    """A long or short leveraged position."""
    position: str
    recommended_leverage: float
    entry_price: float
    stop_loss_level: float
    take_profit_level: float
    rationale: Rationale

    def __post_init__(self):
        if self.position not in LEVERAGED_POSITIONS:
            raise ValueError(f"Unknown leveraged position: {self.position!r}")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "position": self.position,
            "recommendedLeverage": self.recommended_leverage,
            "entryPrice": self.entry_price,
            "stopLossLevel": self.stop_loss_level,
            "takeProfitLevel": self.take_profit_level,
            "rationale": self.rationale.to_dict(),
        }


@dataclass(frozen=True)
class TradingRecommendation:
    """Spot and leveraged recommendations for one symbol."""
    spot: SpotTrade
    leveraged: LeveragedTrade

    @classmethod
    def from_model_output(
        cls, data: Any, reference_price: Optional[float] = None
    ) -> "TradingRecommendation":
        """
        Validate a parsed model response into the tagged recommendation types.

        Args:
            data: The decoded JSON object returned by the model.
            reference_price: Latest market price, used when the model leaves out
                the leveraged entry price.

        Raises:
            ModelOutputUnparseable: If a required field is missing or invalid.
        """
        return cls(
            spot=cls._spot_from(_require(data, "spotTrading")),
            leveraged=cls._leveraged_from(_require(data, "leveragedTrading"), reference_price),
        )

    @staticmethod
    def _spot_from(data: Any) -> SpotTrade:
        action = _as_text(_require(data, "action")).strip().lower()
        if action not in SPOT_ACTIONS:
            raise ModelOutputUnparseable(f"Unknown spot action: {action!r}")
        rationale = Rationale.from_model_output(data.get("rationale"))
        if action == "hold":
            return SpotHold(
                rationale=rationale,
                stop_loss_level=_optional_number(data, "stopLossLevel"),
                take_profit_level=_optional_number(data, "takeProfitLevel"),
            )
        return SpotEntry(
            action=action,
            entry_price=_as_number(_require(data, "entryPrice"), "entryPrice"),
            stop_loss_level=_as_number(_require(data, "stopLossLevel"), "stopLossLevel"),
            take_profit_level=_as_number(_require(data, "takeProfitLevel"), "takeProfitLevel"),
            rationale=rationale,
        )

    @staticmethod
    def _leveraged_from(data: Any, reference_price: Optional[float]) -> LeveragedTrade:
        position = _as_text(_require(data, "position")).strip().lower()
        if position not in LEVERAGED_POSITIONS:
            raise ModelOutputUnparseable(f"Unknown leveraged position: {position!r}")
        entry_price = _optional_number(data, "entryPrice")
        if entry_price is None:
            if reference_price is None:
                raise ModelOutputUnparseable("Missing field 'entryPrice' in model output")
            entry_price = reference_price
        leverage = _as_number(_require(data, "recommendedLeverage"), "recommendedLeverage")
        if leverage <= 0:
            raise ModelOutputUnparseable(f"Leverage must be positive, got {leverage}")
        return LeveragedTrade(
            position=position,
            recommended_leverage=leverage,
            entry_price=entry_price,
            stop_loss_level=_as_number(_require(data, "stopLossLevel"), "stopLossLevel"),
            take_profit_level=_as_number(_require(data, "takeProfitLevel"), "takeProfitLevel"),
            rationale=Rationale.from_model_output(data.get("rationale")),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "spotTrading": self.spot.to_dict(),
            "leveragedTrading": self.leveraged.to_dict(),
        }


@dataclass(frozen=True)
class AnalysisResult:
    """
    The assembled outcome of one analysis request.

    Attributes:
        symbol: Base asset code, e.g. "BTC".
        series: Candle series, one per configured timeframe.
        indicators: Indicator snapshots aligned with `series`.
        sentiment: The sentiment verdict, or the neutral default.
        recommendation: The trading recommendation.
        sentiment_degraded: True when the neutral default was substituted.
        created_at: When the result was assembled (UTC).
    """
    symbol: str
    series: Tuple[TimeframeSeries, ...]
    indicators: Tuple[IndicatorSnapshot, ...]
    sentiment: SentimentVerdict
    recommendation: TradingRecommendation
    sentiment_degraded: bool = False
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> Dict[str, Any]:
        technical_data = []
        for series, snapshot in zip(self.series, self.indicators):
            entry = series.to_dict()
            entry.update(snapshot.to_dict())
            technical_data.append(entry)
        return {
            "symbol": self.symbol,
            "technicalData": technical_data,
            "sentimentData": self.sentiment.to_dict(),
            "sentimentDegraded": self.sentiment_degraded,
            "recommendations": self.recommendation.to_dict(),
            "timestamp": int(self.created_at.timestamp() * 1000),
        }

"""
Unit tests for the pipeline's value types and their JSON shapes.
"""
from datetime import datetime, timezone

import pytest

from crypto_advisor.agents.data_structures import (
    UNAVAILABLE_RATIONALE,
    AnalysisResult,
    Candle,
    Headline,
    IndicatorSnapshot,
    SentimentScore,
    SentimentVerdict,
    TimeframeSeries,
    TradingRecommendation,
)
from crypto_advisor.exceptions import MalformedUpstreamPayload, ModelOutputUnparseable
from tests.conftest import make_kline, make_series


def test_candle_from_kline_keeps_decimal_strings():
    row = make_kline(0, 100.0)
    candle = Candle.from_kline(row)

    assert candle.open_time == row[0]
    assert candle.close == "100.00000000"
    assert candle.close_time == row[6]
    assert candle.to_dict()["takerBuyQuoteVolume"] == row[10]


def test_candle_from_kline_rejects_bad_rows():
    with pytest.raises(MalformedUpstreamPayload):
        Candle.from_kline([1, 2, 3])
    with pytest.raises(MalformedUpstreamPayload):
        Candle.from_kline(["not-a-time"] + make_kline(0, 1.0)[1:])


def test_series_requires_increasing_open_times():
    candles = tuple(Candle.from_kline(make_kline(i, 100.0)) for i in (0, 2, 1))
    with pytest.raises(ValueError):
        TimeframeSeries(timeframe="1h", candles=candles)


def test_series_rejects_unknown_timeframe():
    with pytest.raises(ValueError):
        TimeframeSeries(timeframe="5m", candles=())


def test_unavailable_verdict_is_neutral():
    verdict = SentimentVerdict.unavailable()

    for score in (verdict.short_term, verdict.long_term):
        assert score.category == "Neutral"
        assert score.score == 0.5
        assert score.rationale == UNAVAILABLE_RATIONALE
    assert verdict.to_dict()["newsHeadlines"] == []


def test_sentiment_score_rejects_boolean_score():
    with pytest.raises(ModelOutputUnparseable):
        SentimentScore.from_model_output({"category": "Positive", "score": True, "rationale": ""})


def test_sentiment_score_rejects_non_finite_score():
    with pytest.raises(ModelOutputUnparseable):
        SentimentScore.from_model_output({"category": "Positive", "score": "nan", "rationale": ""})


def test_headline_to_dict_includes_optional_fields():
    published = datetime(2024, 1, 1, tzinfo=timezone.utc)
    headline = Headline(title="t", url="https://x", published_at=published, source="coindesk")

    assert headline.to_dict() == {
        "title": "t",
        "url": "https://x",
        "publishedAt": "2024-01-01T00:00:00+00:00",
        "source": "coindesk",
    }
    assert Headline(title="t").to_dict() == {"title": "t", "url": None}


def test_analysis_result_to_dict(recommendation_payload, sample_headlines):
    series = make_series("1h", count=3)
    snapshot = IndicatorSnapshot(
        timeframe="1h", price=102.0, volume=102.0, rsi=50.0, macd=0.0, ema=102.0,
        price_change=0.99, volume_change=0.99, defaulted=("rsi", "macd", "ema"),
    )
    sentiment = SentimentVerdict.from_model_output(
        {
            "shortTermSentiment": {"category": "Positive", "score": 0.7, "rationale": "a"},
            "longTermSentiment": {"category": "Negative", "score": 0.3, "rationale": "b"},
        },
        sample_headlines,
    )
    created_at = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)
    result = AnalysisResult(
        symbol="BTC",
        series=(series,),
        indicators=(snapshot,),
        sentiment=sentiment,
        recommendation=TradingRecommendation.from_model_output(recommendation_payload),
        created_at=created_at,
    )

    data = result.to_dict()

    assert data["symbol"] == "BTC"
    assert data["timestamp"] == int(created_at.timestamp() * 1000)
    assert data["sentimentDegraded"] is False
    technical = data["technicalData"][0]
    assert technical["timeframe"] == "1h"
    assert len(technical["candles"]) == 3
    assert technical["indicators"] == {
        "rsi": 50.0, "macd": 0.0, "ema": 102.0, "priceChange": 0.99, "volumeChange": 0.99,
    }
    assert data["sentimentData"]["longTermSentiment"]["category"] == "Negative"
    assert [h["title"] for h in data["sentimentData"]["newsHeadlines"]] == [
        "Bitcoin ETF inflows hit record",
        "Exchange outage rattles traders",
    ]
    assert data["recommendations"]["spotTrading"]["entryPrice"] == 299.0
    assert data["recommendations"]["leveragedTrading"]["recommendedLeverage"] == 3.0


def test_numeric_strings_are_accepted(recommendation_payload):
    recommendation_payload["spotTrading"]["entryPrice"] = "301.5"

    recommendation = TradingRecommendation.from_model_output(recommendation_payload)

    assert recommendation.spot.entry_price == 301.5


def test_missing_leveraged_entry_without_reference_is_rejected(recommendation_payload):
    del recommendation_payload["leveragedTrading"]["entryPrice"]

    with pytest.raises(ModelOutputUnparseable):
        TradingRecommendation.from_model_output(recommendation_payload)


def test_null_rationale_fields_become_empty_text(recommendation_payload):
    recommendation_payload["spotTrading"]["rationale"] = {
        "primarySignals": None,
        "laggingIndicators": "Price above EMA 20",
        "sentimentAnalysis": None,
    }

    rationale = TradingRecommendation.from_model_output(recommendation_payload).spot.rationale

    assert rationale.primary_signals == ""
    assert rationale.lagging_indicators == "Price above EMA 20"
    assert rationale.sentiment_analysis == ""


def test_null_sentiment_rationale_becomes_empty_text():
    score = SentimentScore.from_model_output({"category": "Neutral", "score": 0.5, "rationale": None})
    assert score.rationale == ""

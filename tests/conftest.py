"""
Pytest configuration and shared fixtures for the Crypto Advisor test suite.

Nothing here touches the network: gateways are exercised by patching their
`_get_json` request helper, and the language model is replaced by a mock
client whose `generate` returns canned responses.
"""
import json
from typing import Any, Dict, List
from unittest.mock import AsyncMock, Mock

import pytest

from crypto_advisor.agents.data_structures import (
    Candle,
    Headline,
    SentimentVerdict,
    TimeframeSeries,
)
from crypto_advisor.llm.client import LLMClient

ONE_HOUR_MS = 3_600_000
START_MS = 1_700_000_000_000


# ==============================
# Pytest Configuration
# ==============================

def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line(
        "markers", "unit: Unit tests for individual components"
    )
    config.addinivalue_line(
        "markers", "integration: Integration tests for component interactions"
    )


# ==============================
# Market Data Helpers
# ==============================

def make_kline(index: int, close: float, volume: float = 100.0, step_ms: int = ONE_HOUR_MS) -> List[Any]:
    """A Binance kline row in the exchange's positional layout."""
    open_time = START_MS + index * step_ms
    return [
        open_time,
        f"{close - 0.5:.8f}",
        f"{close + 1.0:.8f}",
        f"{close - 1.0:.8f}",
        f"{close:.8f}",
        f"{volume:.8f}",
        open_time + step_ms - 1,
        f"{close * volume:.8f}",
        42,
        f"{volume / 2:.8f}",
        f"{close * volume / 2:.8f}",
        "0",
    ]


def make_klines(count: int, start_price: float = 100.0, step: float = 1.0) -> List[List[Any]]:
    """`count` consecutive klines with closes moving by `step` each bar."""
    return [make_kline(i, start_price + i * step, volume=100.0 + i) for i in range(count)]


def make_series(timeframe: str = "1h", count: int = 200, start_price: float = 100.0,
                step: float = 1.0) -> TimeframeSeries:
    candles = tuple(Candle.from_kline(row) for row in make_klines(count, start_price, step))
    return TimeframeSeries(timeframe=timeframe, candles=candles)


class FakeClock:
    """A manually advanced monotonic clock for cache TTL tests."""

    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


# ==============================
# Fixtures
# ==============================

@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def kline_rows() -> List[List[Any]]:
    """200 hourly klines with steadily rising closes."""
    return make_klines(200)


@pytest.fixture
def sample_series() -> List[TimeframeSeries]:
    """One rising series per supported timeframe."""
    return [make_series(tf) for tf in ("15m", "1h", "1d")]


@pytest.fixture
def sample_headlines() -> List[Headline]:
    return [
        Headline(title="Bitcoin ETF inflows hit record", url="https://example.com/a"),
        Headline(title="Exchange outage rattles traders", url="https://example.com/b"),
    ]


@pytest.fixture
def sentiment_payload() -> Dict[str, Any]:
    return {
        "shortTermSentiment": {"category": "Positive", "score": 0.8, "rationale": "Strong inflows"},
        "longTermSentiment": {"category": "Neutral", "score": 0.5, "rationale": "Mixed macro"},
    }


@pytest.fixture
def recommendation_payload() -> Dict[str, Any]:
    rationale = {
        "primarySignals": "RSI rising from neutral",
        "laggingIndicators": "Price above EMA 20",
        "sentimentAnalysis": "Positive short-term news",
    }
    return {
        "spotTrading": {
            "action": "buy",
            "entryPrice": 299.0,
            "stopLossLevel": 290.0,
            "takeProfitLevel": 320.0,
            "rationale": rationale,
        },
        "leveragedTrading": {
            "position": "long",
            "recommendedLeverage": 3,
            "entryPrice": 299.0,
            "stopLossLevel": 292.0,
            "takeProfitLevel": 315.0,
            "rationale": rationale,
        },
    }


@pytest.fixture
def sentiment_response(sentiment_payload) -> str:
    """A sentiment answer with chatter around the JSON object."""
    return f"Here is the analysis:\n{json.dumps(sentiment_payload)}\nHope this helps."


@pytest.fixture
def recommendation_response(recommendation_payload) -> str:
    """A recommendation answer wrapped in a json-tagged fence."""
    return f"```json\n{json.dumps(recommendation_payload, indent=2)}\n```"


@pytest.fixture
def neutral_sentiment() -> SentimentVerdict:
    return SentimentVerdict.unavailable()


@pytest.fixture
def mock_llm_client() -> Mock:
    """An LLM client whose calls never leave the process."""
    client = Mock(spec=LLMClient)
    client.generate = AsyncMock()
    client.ping = AsyncMock(return_value=True)
    client.close = AsyncMock()
    client.base_url = "http://localhost:1234/v1"
    return client

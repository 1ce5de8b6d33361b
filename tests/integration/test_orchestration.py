"""
Integration tests for the Orchestrator.

The real gateways, engines and LangGraph workflow are wired together; only
the exchange request helper, the news gateway and the language model are
mocked.
"""
import pytest

from crypto_advisor.agents.data_structures import UNAVAILABLE_RATIONALE, AnalysisResult
from crypto_advisor.agents.recommendation import RecommendationAgent
from crypto_advisor.agents.sentiment import SentimentAnalysisAgent
from crypto_advisor.communication.orchestrator import Orchestrator
from crypto_advisor.data.cache import CacheManager
from crypto_advisor.data.indicators import IndicatorEngine
from crypto_advisor.data.providers.binance_provider import BinanceProvider
from crypto_advisor.data.providers.cryptocompare_provider import CryptoCompareProvider
from crypto_advisor.exceptions import ModelOutputUnparseable, UnknownSymbol, UpstreamUnavailable
from tests.conftest import make_klines


@pytest.fixture
def market_data(mocker, fake_clock):
    """Provides a BinanceProvider whose HTTP helper returns 60 rising klines."""
    provider = BinanceProvider(
        cache=CacheManager(ttl_seconds=300, clock=fake_clock, name="market_data"),
        base_url="https://api.binance.test/api/v3",
    )
    mocker.patch.object(provider, "_get_json", mocker.AsyncMock(return_value=make_klines(60)))
    return provider


@pytest.fixture
def news_provider(mocker, sample_headlines):
    """Provides a mocked news gateway."""
    provider = mocker.AsyncMock(spec=CryptoCompareProvider)
    provider.get_headlines.return_value = list(sample_headlines)
    return provider


@pytest.fixture
def orchestrator(market_data, news_provider, mock_llm_client, fake_clock):
    """Provides an Orchestrator wired to real engines with mocked upstreams."""
    engine = IndicatorEngine()
    sentiment_agent = SentimentAnalysisAgent(
        llm_client=mock_llm_client,
        news_provider=news_provider,
        cache=CacheManager(ttl_seconds=900, clock=fake_clock, name="sentiment"),
    )
    recommendation_agent = RecommendationAgent(
        llm_client=mock_llm_client,
        cache=CacheManager(ttl_seconds=900, clock=fake_clock, name="recommendation"),
        indicator_engine=engine,
    )
    return Orchestrator(
        market_data=market_data,
        sentiment_agent=sentiment_agent,
        recommendation_agent=recommendation_agent,
        indicator_engine=engine,
    )


def route_by_prompt(sentiment_answer, recommendation_answer):
    """A fake `generate` answering each engine by its system prompt."""
    async def generate(prompt, system_prompt, model=None, temperature=None):
        answer = sentiment_answer if "sentiment analyst" in system_prompt else recommendation_answer
        if isinstance(answer, Exception):
            raise answer
        return answer
    return generate


@pytest.mark.integration
@pytest.mark.asyncio
async def test_run_assembles_full_result(orchestrator, mock_llm_client, sentiment_response,
                                         recommendation_response):
    # Arrange
    mock_llm_client.generate.side_effect = route_by_prompt(sentiment_response, recommendation_response)

    # Act
    result = await orchestrator.run("btc")

    # Assert
    assert isinstance(result, AnalysisResult)
    assert result.symbol == "BTC"
    assert [s.timeframe for s in result.series] == ["15m", "1h", "1d"]
    assert [i.timeframe for i in result.indicators] == ["15m", "1h", "1d"]
    assert result.sentiment.short_term.category == "Positive"
    assert result.sentiment_degraded is False
    assert result.recommendation.spot.action == "buy"

    data = result.to_dict()
    assert len(data["technicalData"]) == 3
    assert len(data["technicalData"][0]["candles"]) == 60
    assert len(data["sentimentData"]["newsHeadlines"]) == 2


@pytest.mark.integration
@pytest.mark.asyncio
async def test_sentiment_failure_uses_neutral_default(orchestrator, mock_llm_client, recommendation_response):
    mock_llm_client.generate.side_effect = route_by_prompt("no json here", recommendation_response)

    result = await orchestrator.run("ETH")

    assert result.sentiment_degraded is True
    assert result.sentiment.short_term.category == "Neutral"
    assert result.sentiment.long_term.score == 0.5
    assert result.sentiment.short_term.rationale == UNAVAILABLE_RATIONALE
    assert result.recommendation.leveraged.position == "long"

    prompt = mock_llm_client.generate.await_args_list[-1].kwargs["prompt"]
    assert UNAVAILABLE_RATIONALE in prompt


@pytest.mark.integration
@pytest.mark.asyncio
async def test_sentiment_upstream_outage_uses_neutral_default(orchestrator, mock_llm_client,
                                                              recommendation_response):
    mock_llm_client.generate.side_effect = route_by_prompt(
        UpstreamUnavailable("model timeout"), recommendation_response
    )

    result = await orchestrator.run("SOL")

    assert result.sentiment_degraded is True
    assert result.sentiment.headlines == ()


@pytest.mark.integration
@pytest.mark.asyncio
async def test_news_outage_uses_neutral_default(orchestrator, news_provider, mock_llm_client,
                                               sentiment_response, recommendation_response):
    news_provider.get_headlines.side_effect = UpstreamUnavailable("news endpoint down")
    mock_llm_client.generate.side_effect = route_by_prompt(sentiment_response, recommendation_response)

    result = await orchestrator.run("BTC")

    assert result.sentiment_degraded is True
    for score in (result.sentiment.short_term, result.sentiment.long_term):
        assert score.category == "Neutral"
        assert score.score == 0.5
    assert result.recommendation.spot.action == "buy"
    assert mock_llm_client.generate.await_count == 1


@pytest.mark.integration
@pytest.mark.asyncio
async def test_recommendation_failure_is_raised_and_not_cached(orchestrator, mock_llm_client,
                                                               sentiment_response, recommendation_response):
    mock_llm_client.generate.side_effect = route_by_prompt(sentiment_response, "I would buy.")

    with pytest.raises(ModelOutputUnparseable):
        await orchestrator.run("BTC")
    assert orchestrator.recommendation_agent.cache.get("BTC") is None

    mock_llm_client.generate.side_effect = route_by_prompt(sentiment_response, recommendation_response)
    result = await orchestrator.run("BTC")
    assert result.recommendation.spot.action == "buy"


@pytest.mark.integration
@pytest.mark.asyncio
async def test_market_data_failure_stops_the_run(orchestrator, market_data, news_provider, mock_llm_client,
                                                 mocker):
    error = UpstreamUnavailable("HTTP 400", status=400, payload={"code": -1121, "msg": "Invalid symbol."})
    mocker.patch.object(market_data, "_get_json", mocker.AsyncMock(side_effect=error))

    with pytest.raises(UnknownSymbol):
        await orchestrator.run("XYZ")

    news_provider.get_headlines.assert_not_awaited()
    mock_llm_client.generate.assert_not_awaited()


@pytest.mark.integration
@pytest.mark.asyncio
async def test_repeat_run_is_served_from_caches(orchestrator, market_data, mock_llm_client,
                                                sentiment_response, recommendation_response):
    mock_llm_client.generate.side_effect = route_by_prompt(sentiment_response, recommendation_response)

    await orchestrator.run("BTC")
    await orchestrator.run("BTC")

    assert market_data._get_json.await_count == 3
    assert mock_llm_client.generate.await_count == 2

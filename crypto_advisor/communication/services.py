"""
Construction of the pipeline's long-lived services.

Everything is built once at process start and handed to the API or CLI by
reference. Each gateway and engine owns its own cache.
"""
from dataclasses import dataclass

from crypto_advisor.agents.recommendation import RecommendationAgent
from crypto_advisor.agents.sentiment import SentimentAnalysisAgent
from crypto_advisor.communication.orchestrator import Orchestrator
from crypto_advisor.data.indicators import IndicatorEngine
from crypto_advisor.data.providers.binance_provider import BinanceProvider
from crypto_advisor.data.providers.cryptocompare_provider import CryptoCompareProvider
from crypto_advisor.llm.client import LLMClient
from crypto_advisor.utils.logging import get_logger

logger = get_logger(__name__)


@dataclass
class Services:
    """Handles to the shared service instances."""
    market_data: BinanceProvider
    news: CryptoCompareProvider
    llm_client: LLMClient
    orchestrator: Orchestrator

    async def close(self) -> None:
        await self.llm_client.close()


def build_services() -> Services:
    """Factory function to create the orchestrator and its dependencies."""
    llm_client = LLMClient()
    market_data = BinanceProvider()
    news = CryptoCompareProvider()
    indicator_engine = IndicatorEngine()

    sentiment_agent = SentimentAnalysisAgent(llm_client=llm_client, news_provider=news)
    recommendation_agent = RecommendationAgent(
        llm_client=llm_client, indicator_engine=indicator_engine
    )
    orchestrator = Orchestrator(
        market_data=market_data,
        sentiment_agent=sentiment_agent,
        recommendation_agent=recommendation_agent,
        indicator_engine=indicator_engine,
    )
    logger.info("Services initialized", llm_base_url=llm_client.base_url)
    return Services(
        market_data=market_data,
        news=news,
        llm_client=llm_client,
        orchestrator=orchestrator,
    )

"""
Implements the Sentiment Analysis Agent.

This agent asks the language model for a short- and long-term sentiment
verdict on the latest crypto news headlines. It raises on any failure;
substituting the neutral default is the orchestrator's decision.
"""
from typing import List, Optional

from crypto_advisor.agents.base import AgentConfig, BaseAgent
from crypto_advisor.agents.data_structures import Headline, SentimentVerdict
from crypto_advisor.config.settings import settings
from crypto_advisor.data.cache import CacheManager
from crypto_advisor.data.providers.cryptocompare_provider import CryptoCompareProvider
from crypto_advisor.exceptions import UpstreamUnavailable
from crypto_advisor.llm.client import LLMClient
from crypto_advisor.llm.extraction import SENTIMENT_STRATEGIES
from crypto_advisor.utils.logging import get_logger

logger = get_logger(__name__)

RESPONSE_FORMAT = """{
  "shortTermSentiment": {
    "category": "Positive|Negative|Neutral",
    "score": number,
    "rationale": "string"
  },
  "longTermSentiment": {
    "category": "Positive|Negative|Neutral",
    "score": number,
    "rationale": "string"
  }
}"""


class SentimentAnalysisAgent(BaseAgent):
    """
    An agent specialized in sentiment analysis of crypto news.
    """

    extraction_strategies = SENTIMENT_STRATEGIES

    def __init__(
        self,
        llm_client: LLMClient,
        news_provider: CryptoCompareProvider,
        config: Optional[AgentConfig] = None,
        cache: Optional[CacheManager] = None,
        max_headlines: Optional[int] = None,
    ):
        super().__init__(
            config=config or AgentConfig(
                name="sentiment",
                cache_ttl_seconds=settings.analysis.SENTIMENT_CACHE_TTL_SECONDS,
            ),
            llm_client=llm_client,
            cache=cache,
        )
        self.news_provider = news_provider
        self.max_headlines = max_headlines or settings.analysis.MAX_HEADLINES

    @staticmethod
    def cache_key(symbol: str) -> str:
        return f"{symbol}-sentiment"

    def get_system_prompt(self) -> str:
        return (
            "You are a cryptocurrency sentiment analyst. "
            "Provide ONLY the JSON response, no additional text or markdown."
        )

    def get_user_prompt(self, symbol: str, headlines: List[Headline]) -> str:
        titles = "\n".join(headline.title for headline in headlines)
        return (
            f"Analyze these cryptocurrency news headlines for {symbol} and provide "
            f"sentiment analysis in JSON format:\n{titles}\n\n"
            f"Return ONLY a JSON object in this format:\n{RESPONSE_FORMAT}"
        )

    async def get_sentiment(self, symbol: str) -> SentimentVerdict:
        """
        Returns the sentiment verdict for `symbol`, from cache when fresh.

        Raises:
            UpstreamUnavailable: If no headlines or no model response are available.
            ModelOutputUnparseable: If the model output has no valid verdict.
        """
        return await self.cache.get_or_fetch(self.cache_key(symbol), lambda: self.analyze(symbol))

    async def analyze(self, symbol: str) -> SentimentVerdict:
        """
        Performs sentiment analysis on the latest headlines, bypassing the cache.
        """
        headlines = await self._collect_headlines(symbol)
        response = await self.make_llm_call(self.get_user_prompt(symbol, headlines))
        verdict = SentimentVerdict.from_model_output(self.parse_response(response), headlines)
        logger.info(
            "Sentiment analyzed",
            symbol=symbol,
            short_term=verdict.short_term.category,
            long_term=verdict.long_term.category,
            headlines=len(headlines),
        )
        return verdict

    async def _collect_headlines(self, symbol: str) -> List[Headline]:
        headlines = await self.news_provider.get_headlines(category=symbol)
        if not headlines:
            logger.info("No category headlines, using general news", symbol=symbol)
            headlines = await self.news_provider.get_headlines()
        if not headlines:
            raise UpstreamUnavailable("No news headlines available for sentiment analysis")
        return headlines[:self.max_headlines]

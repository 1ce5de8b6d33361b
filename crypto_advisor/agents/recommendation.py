"""
Implements the Trading Recommendation Agent.

Combines per-timeframe indicator snapshots with the sentiment verdict into a
prompt and turns the model's answer into a validated TradingRecommendation.
The recommendation is the product's essential output, so every failure here
propagates to the caller and nothing is cached.
"""
import json
from typing import List, Optional, Sequence

from crypto_advisor.agents.base import AgentConfig, BaseAgent
from crypto_advisor.agents.data_structures import (
    IndicatorSnapshot,
    SentimentVerdict,
    TimeframeSeries,
    TradingRecommendation,
)
from crypto_advisor.config.settings import settings
from crypto_advisor.data.cache import CacheManager
from crypto_advisor.data.indicators import IndicatorEngine
from crypto_advisor.llm.client import LLMClient
from crypto_advisor.llm.extraction import RECOMMENDATION_STRATEGIES
from crypto_advisor.utils.logging import get_logger

logger = get_logger(__name__)

RATIONALE_FORMAT = """{
      "primarySignals": "string",
      "laggingIndicators": "string",
      "sentimentAnalysis": "string"
    }"""

RESPONSE_FORMAT = f"""{{
  "spotTrading": {{
    "action": "buy|sell|hold",
    "entryPrice": number,
    "stopLossLevel": number,
    "takeProfitLevel": number,
    "rationale": {RATIONALE_FORMAT}
  }},
  "leveragedTrading": {{
    "position": "long|short",
    "recommendedLeverage": number,
    "entryPrice": number,
    "stopLossLevel": number,
    "takeProfitLevel": number,
    "rationale": {RATIONALE_FORMAT}
  }}
}}"""

ANALYSIS_GUIDELINES = """Consider the following technical aspects:
- RSI above 70 indicates overbought, below 30 indicates oversold
- MACD histogram crossing above 0 suggests bullish momentum, below 0 suggests bearish
- Price above EMA suggests uptrend, below suggests downtrend
- Volume changes can confirm trend strength
- Price changes show short-term momentum"""


class RecommendationAgent(BaseAgent):
    """
    An agent producing spot and leveraged trading recommendations.
    """

    extraction_strategies = RECOMMENDATION_STRATEGIES

    def __init__(
        self,
        llm_client: LLMClient,
        config: Optional[AgentConfig] = None,
        cache: Optional[CacheManager] = None,
        indicator_engine: Optional[IndicatorEngine] = None,
        max_timeframes: Optional[int] = None,
    ):
        super().__init__(
            config=config or AgentConfig(
                name="recommendation",
                cache_ttl_seconds=settings.analysis.RECOMMENDATION_CACHE_TTL_SECONDS,
            ),
            llm_client=llm_client,
            cache=cache,
        )
        self.indicator_engine = indicator_engine or IndicatorEngine()
        self.max_timeframes = max_timeframes or settings.analysis.RECOMMENDATION_TIMEFRAMES

    def get_system_prompt(self) -> str:
        return (
            "You are a professional cryptocurrency trading analyst. "
            "Provide ONLY the JSON response, no additional text."
        )

    def get_user_prompt(
        self,
        symbol: str,
        snapshots: Sequence[IndicatorSnapshot],
        sentiment: SentimentVerdict,
    ) -> str:
        technical_data = json.dumps([snapshot.to_dict() for snapshot in snapshots])
        sentiment_data = json.dumps(sentiment.to_dict(include_headlines=False))
        return (
            f"Analyze {symbol} market data and provide trading recommendations in JSON format:\n"
            f"Technical Data: {technical_data}\n"
            f"Sentiment: {sentiment_data}\n\n"
            f"{ANALYSIS_GUIDELINES}\n\n"
            f"Return ONLY a JSON object in this format:\n{RESPONSE_FORMAT}"
        )

    def summarize(self, series: Sequence[TimeframeSeries]) -> List[IndicatorSnapshot]:
        """Indicator snapshots for the most recent timeframe entries."""
        return [self.indicator_engine.compute(s) for s in list(series)[-self.max_timeframes:]]

    async def get_recommendation(
        self,
        symbol: str,
        series: Sequence[TimeframeSeries],
        sentiment: SentimentVerdict,
    ) -> TradingRecommendation:
        """
        Returns the trading recommendation for `symbol`, from cache when fresh.

        Raises:
            UpstreamUnavailable: If the model endpoint fails.
            ModelOutputUnparseable: If the model output is not a valid recommendation.
        """
        return await self.cache.get_or_fetch(
            symbol, lambda: self.analyze(symbol, series, sentiment)
        )

    async def analyze(
        self,
        symbol: str,
        series: Sequence[TimeframeSeries],
        sentiment: SentimentVerdict,
    ) -> TradingRecommendation:
        """
        Generates a recommendation from the model, bypassing the cache.
        """
        snapshots = self.summarize(series)
        response = await self.make_llm_call(self.get_user_prompt(symbol, snapshots, sentiment))
        reference_price = series[0].last_price if series else None
        recommendation = TradingRecommendation.from_model_output(
            self.parse_response(response), reference_price=reference_price
        )
        logger.info(
            "Recommendation generated",
            symbol=symbol,
            spot_action=recommendation.spot.action,
            leveraged_position=recommendation.leveraged.position,
        )
        return recommendation

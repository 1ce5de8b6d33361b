"""
Orchestrates one analysis request using LangGraph.

The workflow runs once per request, without retries:

    fetch_market_data -> fetch_sentiment -> compute_recommendation -> assemble

A market data or recommendation failure ends the run in an error state and
is re-raised to the caller. A sentiment failure is absorbed: the neutral
default verdict is used and the run continues.
"""
from datetime import datetime, timezone
from typing import List, Optional, TypedDict

from langgraph.graph import END, START, StateGraph

from crypto_advisor.agents.data_structures import (
    AnalysisResult,
    IndicatorSnapshot,
    SentimentVerdict,
    TimeframeSeries,
    TradingRecommendation,
)
from crypto_advisor.agents.recommendation import RecommendationAgent
from crypto_advisor.agents.sentiment import SentimentAnalysisAgent
from crypto_advisor.data.indicators import IndicatorEngine
from crypto_advisor.data.providers.binance_provider import BinanceProvider
from crypto_advisor.utils.logging import get_logger

logger = get_logger(__name__)


class AnalysisState(TypedDict, total=False):
    """
    Represents the state of the analysis graph.
    """
    symbol: str
    series: List[TimeframeSeries]
    sentiment: SentimentVerdict
    sentiment_degraded: bool
    recommendation: TradingRecommendation
    result: AnalysisResult
    error: Optional[Exception]


class Orchestrator:
    """
    Composes the gateways and engines for each analysis request.

    Holds no cache of its own; each collaborator caches its own results.
    """

    def __init__(
        self,
        market_data: BinanceProvider,
        sentiment_agent: SentimentAnalysisAgent,
        recommendation_agent: RecommendationAgent,
        indicator_engine: Optional[IndicatorEngine] = None,
    ):
        self.market_data = market_data
        self.sentiment_agent = sentiment_agent
        self.recommendation_agent = recommendation_agent
        self.indicator_engine = indicator_engine or IndicatorEngine()
        self.workflow = self._build_graph()

    def _build_graph(self):
        workflow = StateGraph(AnalysisState)
        workflow.add_node("fetch_market_data", self.run_fetch_market_data)
        workflow.add_node("fetch_sentiment", self.run_fetch_sentiment)
        workflow.add_node("compute_recommendation", self.run_compute_recommendation)
        workflow.add_node("assemble", self.run_assemble)

        workflow.add_edge(START, "fetch_market_data")
        workflow.add_conditional_edges(
            "fetch_market_data",
            self._route_on_error,
            {"continue": "fetch_sentiment", "error": END},
        )
        workflow.add_edge("fetch_sentiment", "compute_recommendation")
        workflow.add_conditional_edges(
            "compute_recommendation",
            self._route_on_error,
            {"continue": "assemble", "error": END},
        )
        workflow.add_edge("assemble", END)
        return workflow.compile()

    @staticmethod
    def _route_on_error(state: AnalysisState) -> str:
        return "error" if state.get("error") is not None else "continue"

    async def run_fetch_market_data(self, state: AnalysisState) -> dict:
        symbol = state["symbol"]
        try:
            series = await self.market_data.get_all_series(symbol)
        except Exception as e:
            logger.error("Market data unavailable", symbol=symbol, error=str(e))
            return {"error": e}
        return {"series": series}

    async def run_fetch_sentiment(self, state: AnalysisState) -> dict:
        symbol = state["symbol"]
        try:
            sentiment = await self.sentiment_agent.get_sentiment(symbol)
        except Exception as e:
            logger.warning(
                "Sentiment unavailable, using neutral default",
                symbol=symbol,
                error=str(e),
                error_type=type(e).__name__,
            )
            return {"sentiment": SentimentVerdict.unavailable(), "sentiment_degraded": True}
        return {"sentiment": sentiment, "sentiment_degraded": False}

    async def run_compute_recommendation(self, state: AnalysisState) -> dict:
        symbol = state["symbol"]
        try:
            recommendation = await self.recommendation_agent.get_recommendation(
                symbol, state["series"], state["sentiment"]
            )
        except Exception as e:
            logger.error("Recommendation failed", symbol=symbol, error=str(e))
            return {"error": e}
        return {"recommendation": recommendation}

    async def run_assemble(self, state: AnalysisState) -> dict:
        series = state["series"]
        snapshots: List[IndicatorSnapshot] = self.indicator_engine.compute_all(series)
        result = AnalysisResult(
            symbol=state["symbol"],
            series=tuple(series),
            indicators=tuple(snapshots),
            sentiment=state["sentiment"],
            recommendation=state["recommendation"],
            sentiment_degraded=state.get("sentiment_degraded", False),
            created_at=datetime.now(timezone.utc),
        )
        return {"result": result}

    async def run(self, symbol: str) -> AnalysisResult:
        """
        Runs the full analysis for `symbol`.

        Raises:
            AnalysisError: The market data or recommendation failure that
                ended the run.
        """
        symbol = symbol.strip().upper()
        logger.info("Starting analysis", symbol=symbol)
        final_state = await self.workflow.ainvoke(AnalysisState(symbol=symbol))

        error = final_state.get("error")
        if error is not None:
            raise error

        result = final_state["result"]
        logger.info(
            "Analysis complete",
            symbol=symbol,
            spot_action=result.recommendation.spot.action,
            sentiment_degraded=result.sentiment_degraded,
        )
        return result

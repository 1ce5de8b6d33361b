"""
Unit tests for the CLI analyzer and output formatter.
"""
import json
from unittest.mock import AsyncMock, Mock

import pytest

from crypto_advisor.agents.data_structures import (
    AnalysisResult,
    SentimentVerdict,
    TradingRecommendation,
)
from crypto_advisor.cli import CryptoAnalyzer, OutputFormatter
from crypto_advisor.data.indicators import IndicatorEngine
from crypto_advisor.exceptions import UnknownSymbol
from tests.conftest import make_series


@pytest.fixture
def analysis_result(recommendation_payload):
    series = (make_series("1h", count=40),)
    return AnalysisResult(
        symbol="BTC",
        series=series,
        indicators=tuple(IndicatorEngine.compute_all(list(series))),
        sentiment=SentimentVerdict.unavailable(),
        recommendation=TradingRecommendation.from_model_output(recommendation_payload),
    )


@pytest.fixture
def services():
    services = Mock()
    services.orchestrator.run = AsyncMock()
    services.close = AsyncMock()
    return services


@pytest.mark.unit
@pytest.mark.asyncio
async def test_analyze_symbol_returns_result_dict(services, analysis_result):
    services.orchestrator.run.return_value = analysis_result
    analyzer = CryptoAnalyzer(services=services)

    result = await analyzer.analyze_symbol("btc")

    services.orchestrator.run.assert_awaited_once_with("btc")
    assert result["symbol"] == "BTC"
    assert result["recommendations"]["spotTrading"]["action"] == "buy"


@pytest.mark.unit
@pytest.mark.asyncio
async def test_analyze_symbol_reports_errors(services):
    services.orchestrator.run.side_effect = UnknownSymbol("Unknown symbol: XYZ")
    analyzer = CryptoAnalyzer(services=services)

    result = await analyzer.analyze_symbol("xyz")

    assert result["symbol"] == "XYZ"
    assert result["error"] == "Unknown symbol: XYZ"

    await analyzer.close()
    services.close.assert_awaited_once()


@pytest.mark.unit
def test_format_json_unwraps_single_result(analysis_result):
    single = OutputFormatter.format_json([analysis_result.to_dict()])
    assert json.loads(single)["symbol"] == "BTC"

    several = OutputFormatter.format_json([analysis_result.to_dict(), {"symbol": "ETH", "error": "x"}])
    assert [entry["symbol"] for entry in json.loads(several)] == ["BTC", "ETH"]


@pytest.mark.unit
def test_format_table_renders_results_and_errors(analysis_result, capsys):
    OutputFormatter.format_table([analysis_result.to_dict(), {"symbol": "XYZ", "error": "Unknown symbol: XYZ"}])

    output = capsys.readouterr().out
    assert "BTC" in output
    assert "XYZ" in output

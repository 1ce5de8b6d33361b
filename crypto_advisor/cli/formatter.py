"""
Output formatting for different display modes.
"""
import json
from typing import Any, Dict, List

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

console = Console()


class OutputFormatter:
    """Format analysis results for display."""

    @staticmethod
    def _color_code(label: str) -> str:
        """Apply color coding to actions, positions and sentiment categories."""
        normalized = label.lower()
        if normalized in ("buy", "long", "positive"):
            return f"[green]{label.upper()}[/green]"
        if normalized in ("sell", "short", "negative"):
            return f"[red]{label.upper()}[/red]"
        if normalized in ("hold", "neutral"):
            return f"[yellow]{label.upper()}[/yellow]"
        return f"[dim]{label}[/dim]"

    @staticmethod
    def _fmt_price(value: Any) -> str:
        if value is None:
            return "-"
        return f"{value:,.4f}" if value < 1 else f"{value:,.2f}"

    @staticmethod
    def format_table(results: List[Dict[str, Any]]) -> None:
        """
        Format results as rich tables with colors.

        Args:
            results: Analysis results as produced by `AnalysisResult.to_dict`,
                or `{"symbol", "error"}` entries.
        """
        if not results:
            console.print("[yellow]No results to display[/yellow]")
            return

        for result in results:
            if "error" in result:
                console.print(
                    Panel(
                        f"[red]Error analyzing {result['symbol']}:[/red]\n{result['error']}",
                        title="[X] Analysis Error",
                        border_style="red",
                    )
                )
                continue
            OutputFormatter._format_single(result)

    @staticmethod
    def _format_single(result: Dict[str, Any]) -> None:
        symbol = result["symbol"]

        indicators = Table(title=f"{symbol} Technical Indicators", header_style="bold magenta")
        indicators.add_column("Timeframe", style="cyan", no_wrap=True)
        indicators.add_column("Price", justify="right")
        indicators.add_column("RSI", justify="right")
        indicators.add_column("MACD Hist", justify="right")
        indicators.add_column("EMA 20", justify="right")
        indicators.add_column("Price %", justify="right")
        indicators.add_column("Volume %", justify="right")
        for entry in result["technicalData"]:
            values = entry["indicators"]
            indicators.add_row(
                entry["timeframe"],
                OutputFormatter._fmt_price(entry["price"]),
                f"{values['rsi']:.1f}",
                f"{values['macd']:.4f}",
                OutputFormatter._fmt_price(values["ema"]),
                f"{values['priceChange']:+.2f}%",
                f"{values['volumeChange']:+.2f}%",
            )
        console.print(indicators)

        sentiment = result["sentimentData"]
        sentiment_lines = []
        for label, key in (("Short term", "shortTermSentiment"), ("Long term", "longTermSentiment")):
            verdict = sentiment[key]
            sentiment_lines.append(
                f"{label}: {OutputFormatter._color_code(verdict['category'])} "
                f"({verdict['score']:.2f}) {verdict['rationale']}"
            )
        if result.get("sentimentDegraded"):
            sentiment_lines.append("[dim]Sentiment fell back to the neutral default.[/dim]")
        console.print(Panel("\n".join(sentiment_lines), title="Sentiment", border_style="blue"))

        spot = result["recommendations"]["spotTrading"]
        leveraged = result["recommendations"]["leveragedTrading"]
        trades = Table(title=f"{symbol} Recommendations", header_style="bold magenta")
        trades.add_column("Market", style="cyan")
        trades.add_column("Signal", no_wrap=True)
        trades.add_column("Entry", justify="right")
        trades.add_column("Stop Loss", justify="right")
        trades.add_column("Take Profit", justify="right")
        trades.add_column("Leverage", justify="right")
        trades.add_row(
            "Spot",
            OutputFormatter._color_code(spot["action"]),
            OutputFormatter._fmt_price(spot.get("entryPrice")),
            OutputFormatter._fmt_price(spot.get("stopLossLevel")),
            OutputFormatter._fmt_price(spot.get("takeProfitLevel")),
            "-",
        )
        trades.add_row(
            "Leveraged",
            OutputFormatter._color_code(leveraged["position"]),
            OutputFormatter._fmt_price(leveraged["entryPrice"]),
            OutputFormatter._fmt_price(leveraged["stopLossLevel"]),
            OutputFormatter._fmt_price(leveraged["takeProfitLevel"]),
            f"{leveraged['recommendedLeverage']:g}x",
        )
        console.print(trades)

        rationale = spot["rationale"]
        console.print(
            Panel(
                f"[bold]Primary signals:[/bold] {rationale['primarySignals']}\n"
                f"[bold]Lagging indicators:[/bold] {rationale['laggingIndicators']}\n"
                f"[bold]Sentiment:[/bold] {rationale['sentimentAnalysis']}",
                title="Rationale",
                border_style="green" if spot["action"] == "buy" else "yellow",
            )
        )

    @staticmethod
    def format_json(results: List[Dict[str, Any]]) -> str:
        """Serialize results; a single result is not wrapped in a list."""
        payload: Any = results[0] if len(results) == 1 else results
        return json.dumps(payload, indent=2)

    @staticmethod
    def print_success(message: str) -> None:
        console.print(f"[green][OK][/green] {message}")

    @staticmethod
    def print_error(message: str) -> None:
        console.print(f"[red][X][/red] {message}")

#!/usr/bin/env python3
"""
Crypto Advisor - Command Line Interface

Analyze crypto assets without starting the web server.

Usage:
    python cli.py BTC
    python cli.py BTC ETH SOL --format json
    python cli.py BTC --output analysis.json
"""

import argparse
import asyncio
import sys
from typing import List

# Load environment variables FIRST before any imports that use settings
from dotenv import load_dotenv
load_dotenv()

from rich.console import Console
from rich.progress import BarColumn, Progress, SpinnerColumn, TextColumn, TimeElapsedColumn

from crypto_advisor.cli import CryptoAnalyzer, OutputFormatter
from crypto_advisor.utils.logging import configure_logging

console = Console()
formatter = OutputFormatter()


def parse_arguments(argv=None):
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        description="Crypto Advisor - Crypto Analysis CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s BTC                               # Analyze Bitcoin
  %(prog)s BTC ETH SOL                       # Analyze several assets
  %(prog)s BTC --format json                 # JSON output
  %(prog)s BTC --output report.json          # Save to file
        """,
    )

    parser.add_argument(
        "symbols",
        nargs="+",
        help="Three-letter base asset codes (e.g., BTC ETH SOL)",
    )

    parser.add_argument(
        "--format",
        choices=["table", "json"],
        default="table",
        help="Output format (default: table)",
    )

    parser.add_argument(
        "--output",
        "-o",
        type=str,
        help="Save JSON output to file",
    )

    parser.add_argument(
        "--log-level",
        default="WARNING",
        help="Log level (default: WARNING)",
    )

    return parser.parse_args(argv)


def validate_symbols(symbols: List[str]) -> List[str]:
    """Upper-case symbols and exit on any that is not three letters."""
    invalid = [s for s in symbols if len(s) != 3 or not s.isalpha()]
    if invalid:
        formatter.print_error(f"Invalid symbol(s): {', '.join(invalid)}")
        sys.exit(1)
    return [s.upper() for s in symbols]


async def analyze_multiple(analyzer: CryptoAnalyzer, symbols: List[str]):
    """Analyze symbols one after another with progress tracking."""
    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        TimeElapsedColumn(),
        console=console,
        transient=True,
    ) as progress:
        task = progress.add_task(f"Processing {len(symbols)} symbols...", total=len(symbols))

        results = []
        for symbol in symbols:
            progress.update(task, description=f"Analyzing {symbol}...")
            results.append(await analyzer.analyze_symbol(symbol))
            progress.advance(task)

    return results


async def main(argv=None):
    """Main CLI entry point."""
    args = parse_arguments(argv)
    configure_logging(args.log_level)
    symbols = validate_symbols(args.symbols)

    analyzer = CryptoAnalyzer()
    results = []
    try:
        results = await analyze_multiple(analyzer, symbols)

        if args.format == "table":
            formatter.format_table(results)
        else:
            console.print_json(formatter.format_json(results))

        if args.output:
            with open(args.output, "w") as f:
                f.write(formatter.format_json(results))
            formatter.print_success(f"Results saved to {args.output}")
    except KeyboardInterrupt:
        console.print("\n[yellow]Analysis interrupted by user[/yellow]")
    finally:
        await analyzer.close()

    if any("error" in result for result in results):
        sys.exit(1)


if __name__ == "__main__":
    asyncio.run(main())

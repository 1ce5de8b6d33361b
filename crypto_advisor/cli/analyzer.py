"""
Core analysis logic for CLI.
"""
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from crypto_advisor.communication.services import Services, build_services
from crypto_advisor.utils.logging import get_logger

logger = get_logger(__name__)


class CryptoAnalyzer:
    """Runs the analysis pipeline in-process for the CLI."""

    def __init__(self, services: Optional[Services] = None):
        self._services = services

    @property
    def services(self) -> Services:
        """Create or return the shared services."""
        if self._services is None:
            self._services = build_services()
        return self._services

    async def analyze_symbol(self, symbol: str) -> Dict[str, Any]:
        """
        Analyze a single symbol.

        Returns:
            The result as a JSON-ready dict, or `{"symbol", "error", "timestamp"}`
            if the analysis failed.
        """
        try:
            result = await self.services.orchestrator.run(symbol)
        except Exception as e:
            logger.error("CLI analysis failed", symbol=symbol, error=str(e))
            return {
                "symbol": symbol.upper(),
                "error": str(e) or type(e).__name__,
                "timestamp": datetime.now(timezone.utc).isoformat(),
            }
        return result.to_dict()

    async def close(self) -> None:
        if self._services is not None:
            await self._services.close()

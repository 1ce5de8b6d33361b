"""
API routes for dependency status checks.
"""
import asyncio
from typing import Awaitable, Callable, Dict

from fastapi import APIRouter, Request

from crypto_advisor.config.settings import settings
from crypto_advisor.utils.logging import get_logger

router = APIRouter()
logger = get_logger(__name__)

OK = "ok"
ERROR = "error"
UNKNOWN = "unknown"


async def probe(name: str, check: Callable[[], Awaitable[bool]], timeout: float) -> str:
    """Runs one liveness check, mapping any failure or timeout to "error"."""
    try:
        healthy = await asyncio.wait_for(check(), timeout=timeout)
    except Exception as e:
        logger.warning("Status probe failed", dependency=name, error=str(e), error_type=type(e).__name__)
        return ERROR
    return OK if healthy else ERROR


@router.get("/status", response_model=Dict[str, str])
async def dependency_status(request: Request):
    """
    Report the reachability of each upstream dependency.

    Redis and MongoDB are not used by this service and always report "unknown".
    """
    services = request.app.state.services
    timeout = settings.api.PROBE_TIMEOUT_SECONDS
    binance, openai, news = await asyncio.gather(
        probe("binance", services.market_data.ping, timeout),
        probe("openai", services.llm_client.ping, timeout),
        probe("news", services.news.ping, timeout),
    )
    return {
        "binance": binance,
        "openai": openai,
        "news": news,
        "redis": UNKNOWN,
        "mongodb": UNKNOWN,
    }

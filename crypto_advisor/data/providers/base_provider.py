"""
Abstract base class for the HTTP data gateways of the analysis pipeline.
"""
import asyncio
import json
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

import aiohttp
from asyncio_throttle import Throttler

from crypto_advisor.exceptions import MalformedUpstreamPayload, UpstreamUnavailable
from crypto_advisor.utils.logging import get_logger

logger = get_logger(__name__)


class BaseDataProvider(ABC):
    """
    Abstract base class for all data providers.

    Subclasses describe one upstream service; this class owns the request
    plumbing: client-side throttling, a per-call timeout, and translation of
    transport failures into the pipeline's error kinds.
    """

    def __init__(self, rate_limit: int, period: float, timeout_seconds: float):
        """
        Args:
            rate_limit: Number of requests allowed per period.
            period: Time period in seconds for the rate limit.
            timeout_seconds: Total timeout for one HTTP request.
        """
        self.throttler = Throttler(rate_limit, period)
        self.timeout = aiohttp.ClientTimeout(total=timeout_seconds)

    @abstractmethod
    async def ping(self) -> bool:
        """
        Lightweight liveness probe of the upstream service.

        Returns:
            True if the service answered as expected.
        """
        pass

    async def _get_json(
        self,
        url: str,
        params: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> Any:
        """
        Performs a throttled GET request and decodes the JSON body.

        Raises:
            UpstreamUnavailable: On network errors, timeouts or non-2xx responses.
            MalformedUpstreamPayload: If the body is not JSON.
        """
        logger.debug("Upstream GET", url=url, params=params)
        try:
            async with self.throttler, aiohttp.ClientSession(timeout=self.timeout) as session:
                async with session.get(url, params=params, headers=headers) as response:
                    if response.status >= 400:
                        body = await response.text()
                        raise UpstreamUnavailable(
                            f"{url} answered with HTTP {response.status}",
                            status=response.status,
                            payload=_decode_error_body(body),
                        )
                    try:
                        return await response.json(content_type=None)
                    except ValueError as e:
                        raise MalformedUpstreamPayload(f"{url} returned a non-JSON body") from e
        except asyncio.TimeoutError as e:
            raise UpstreamUnavailable(f"Timed out requesting {url}") from e
        except aiohttp.ClientError as e:
            raise UpstreamUnavailable(f"HTTP error requesting {url}: {e}") from e


def _decode_error_body(body: str) -> Any:
    try:
        return json.loads(body)
    except ValueError:
        return body

"""
Data provider implementation for fetching news headlines from CryptoCompare.
"""
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from crypto_advisor.agents.data_structures import Headline
from crypto_advisor.config.settings import settings
from crypto_advisor.data.cache import CacheManager
from crypto_advisor.data.providers.base_provider import BaseDataProvider
from crypto_advisor.exceptions import AnalysisError, MalformedUpstreamPayload
from crypto_advisor.utils.logging import get_logger
from crypto_advisor.utils.performance import time_function

logger = get_logger(__name__)

SUCCESS_RESPONSE = "Success"
GENERAL_CATEGORY = "general"

FALLBACK_HEADLINES: List[Headline] = [
    Headline(title="Bitcoin Surges Past $50,000 as Institutional Adoption Grows"),
    Headline(title="Ethereum 2.0 Upgrade Shows Promising Results"),
    Headline(title="Major Bank Announces Crypto Custody Services"),
    Headline(title="New DeFi Protocol Launches with $100M TVL"),
    Headline(title="Regulatory Clarity Expected for Crypto Markets"),
]


class CryptoCompareProvider(BaseDataProvider):
    """
    The news gateway: latest headlines, optionally filtered by category.

    News is best-effort. Upstream failures and malformed responses yield a
    fixed list of generic headlines instead of an error. Only genuine
    upstream results are cached, so a recovered upstream is picked up on the
    next call.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        cache: Optional[CacheManager] = None,
        base_url: Optional[str] = None,
        language: Optional[str] = None,
        rate_limit: Optional[int] = None,
        period: float = 60.0,
    ):
        super().__init__(
            rate_limit=rate_limit or settings.data.NEWS_RATE_LIMIT,
            period=period,
            timeout_seconds=settings.data.REQUEST_TIMEOUT_SECONDS,
        )
        self.api_key = api_key if api_key is not None else settings.data.CRYPTOCOMPARE_API_KEY
        if not self.api_key:
            logger.warning("DATA_CRYPTOCOMPARE_API_KEY not set, using anonymous news quota")
        self.base_url = base_url or settings.data.NEWS_BASE_URL
        self.language = language or settings.data.NEWS_LANGUAGE
        self.cache = cache if cache is not None else CacheManager(
            ttl_seconds=settings.data.NEWS_CACHE_TTL_SECONDS,
            max_entries=settings.analysis.CACHE_MAX_ENTRIES,
            name="news",
        )

    def _headers(self) -> Dict[str, str]:
        if not self.api_key:
            return {}
        return {"authorization": f"Apikey {self.api_key}"}

    async def get_headlines(self, category: Optional[str] = None) -> List[Headline]:
        """
        Returns the latest headlines.

        Args:
            category: Optional CryptoCompare category (e.g. "BTC", "Regulation").

        Returns:
            Headlines from the upstream (possibly empty), or the fallback list
            if the upstream failed.
        """
        cache_key = category or GENERAL_CATEGORY
        cached = self.cache.get(cache_key)
        if cached is not None:
            return list(cached)

        try:
            headlines = await self._fetch_headlines(category)
        except AnalysisError as e:
            logger.warning("News fetch failed, using fallback headlines", category=cache_key, error=str(e))
            return list(FALLBACK_HEADLINES)

        self.cache.set(cache_key, tuple(headlines))
        return headlines

    @time_function(operation_name="cryptocompare_fetch_news")
    async def _fetch_headlines(self, category: Optional[str]) -> List[Headline]:
        params = {"lang": self.language}
        if category:
            params["categories"] = category
        data = await self._get_json(self.base_url, params=params, headers=self._headers())

        if not isinstance(data, dict) or data.get("Response") != SUCCESS_RESPONSE:
            message = data.get("Message") if isinstance(data, dict) else None
            raise MalformedUpstreamPayload(f"News request was not successful: {message or data!r}")
        items = data.get("Data")
        if not isinstance(items, list):
            raise MalformedUpstreamPayload("News response has no Data array")

        headlines = [h for h in (self._to_headline(item) for item in items) if h is not None]
        logger.info("Fetched news headlines", category=category or GENERAL_CATEGORY, count=len(headlines))
        return headlines

    @staticmethod
    def _to_headline(item: Any) -> Optional[Headline]:
        if not isinstance(item, dict):
            return None
        title = item.get("title")
        if not isinstance(title, str) or not title.strip():
            return None

        published_at = None
        published_on = item.get("published_on")
        if isinstance(published_on, (int, float)) and not isinstance(published_on, bool):
            published_at = datetime.fromtimestamp(published_on, tz=timezone.utc)

        source = item.get("source")
        url = item.get("url")
        return Headline(
            title=title.strip(),
            url=url if isinstance(url, str) and url else None,
            published_at=published_at,
            source=source if isinstance(source, str) and source else None,
        )

    async def ping(self) -> bool:
        data = await self._get_json(
            self.base_url, params={"lang": self.language}, headers=self._headers()
        )
        return isinstance(data, dict) and data.get("Response") == SUCCESS_RESPONSE

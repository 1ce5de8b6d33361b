"""
Data provider implementation for fetching candle data from the Binance spot API.
"""
import asyncio
from typing import Any, List, Optional, Sequence

from crypto_advisor.agents.data_structures import SUPPORTED_TIMEFRAMES, Candle, TimeframeSeries
from crypto_advisor.config.settings import settings
from crypto_advisor.data.cache import CacheManager
from crypto_advisor.data.providers.base_provider import BaseDataProvider
from crypto_advisor.exceptions import (
    MalformedUpstreamPayload,
    UnknownSymbol,
    UpstreamUnavailable,
)
from crypto_advisor.utils.logging import get_logger
from crypto_advisor.utils.performance import time_function

logger = get_logger(__name__)

# Binance error code for "Invalid symbol."
INVALID_SYMBOL_CODE = -1121


class BinanceProvider(BaseDataProvider):
    """
    The market data gateway: OHLCV candles per (symbol, timeframe).

    Symbols are base assets ("BTC"); the configured quote asset is appended
    when querying the exchange. Each series is cached for
    DATA_MARKET_CACHE_TTL_SECONDS. Fetch failures are never retried here and
    propagate to the caller, since candles are the essential input of an
    analysis.
    """

    def __init__(
        self,
        cache: Optional[CacheManager] = None,
        base_url: Optional[str] = None,
        quote_asset: Optional[str] = None,
        candle_limit: Optional[int] = None,
        timeframes: Optional[Sequence[str]] = None,
        rate_limit: Optional[int] = None,
        period: float = 1.0,
    ):
        super().__init__(
            rate_limit=rate_limit or settings.data.BINANCE_RATE_LIMIT,
            period=period,
            timeout_seconds=settings.data.REQUEST_TIMEOUT_SECONDS,
        )
        self.base_url = (base_url or settings.data.BINANCE_BASE_URL).rstrip("/")
        self.quote_asset = quote_asset or settings.data.QUOTE_ASSET
        self.candle_limit = min(candle_limit or settings.data.CANDLE_LIMIT, 200)
        self.timeframes = tuple(timeframes or settings.data.TIMEFRAMES)
        unsupported = [tf for tf in self.timeframes if tf not in SUPPORTED_TIMEFRAMES]
        if unsupported:
            raise ValueError(f"Unsupported timeframes: {unsupported}")
        self.cache = cache if cache is not None else CacheManager(
            ttl_seconds=settings.data.MARKET_CACHE_TTL_SECONDS,
            max_entries=settings.analysis.CACHE_MAX_ENTRIES,
            name="market_data",
        )

    @staticmethod
    def cache_key(symbol: str, timeframe: str) -> str:
        return f"{symbol}-{timeframe}"

    async def get_series(self, symbol: str, timeframe: str) -> TimeframeSeries:
        """
        Returns the most recent candles of `symbol` at `timeframe`.

        Args:
            symbol: Base asset code, e.g. "BTC".
            timeframe: One of the supported timeframes.

        Raises:
            UnknownSymbol: If the exchange does not list the pair.
            UpstreamUnavailable: On network or HTTP failure.
            MalformedUpstreamPayload: If the response is not a kline array.
        """
        if timeframe not in SUPPORTED_TIMEFRAMES:
            raise ValueError(f"Unsupported timeframe: {timeframe}")
        return await self.cache.get_or_fetch(
            self.cache_key(symbol, timeframe),
            lambda: self._fetch_series(symbol, timeframe),
        )

    async def get_all_series(self, symbol: str) -> List[TimeframeSeries]:
        """
        Fetches every configured timeframe concurrently.

        Returns:
            Series in configured timeframe order. The first failure propagates.
        """
        results = await asyncio.gather(
            *(self.get_series(symbol, timeframe) for timeframe in self.timeframes)
        )
        return list(results)

    @time_function(operation_name="binance_fetch_klines")
    async def _fetch_series(self, symbol: str, timeframe: str) -> TimeframeSeries:
        pair = f"{symbol}{self.quote_asset}"
        params = {"symbol": pair, "interval": timeframe, "limit": self.candle_limit}
        try:
            payload = await self._get_json(f"{self.base_url}/klines", params=params)
        except UpstreamUnavailable as e:
            if _is_invalid_symbol(e):
                raise UnknownSymbol(f"Unknown symbol: {symbol}") from e
            logger.error("Candle fetch failed", symbol=symbol, timeframe=timeframe, error=str(e))
            raise UpstreamUnavailable(
                f"Failed to fetch {timeframe} candle data for {symbol}",
                status=e.status,
                payload=e.payload,
            ) from e

        candles = self._to_candles(payload, symbol, timeframe)
        logger.info("Fetched candles", symbol=symbol, timeframe=timeframe, count=len(candles))
        return TimeframeSeries(timeframe=timeframe, candles=candles)

    @staticmethod
    def _to_candles(payload: Any, symbol: str, timeframe: str) -> tuple:
        if not isinstance(payload, list) or not payload:
            raise MalformedUpstreamPayload(
                f"Expected a non-empty kline array for {symbol} {timeframe}"
            )
        by_open_time = {}
        for row in payload:
            candle = Candle.from_kline(row)
            by_open_time[candle.open_time] = candle
        return tuple(by_open_time[key] for key in sorted(by_open_time))

    async def ping(self) -> bool:
        payload = await self._get_json(f"{self.base_url}/ping")
        return payload == {}


def _is_invalid_symbol(error: UpstreamUnavailable) -> bool:
    return (
        error.status == 400
        and isinstance(error.payload, dict)
        and error.payload.get("code") == INVALID_SYMBOL_CODE
    )

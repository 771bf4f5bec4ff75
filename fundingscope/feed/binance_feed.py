from __future__ import annotations

import math
from typing import Any

import httpx

from fundingscope.core.config import FeedConfig
from fundingscope.core.errors import FeedError
from fundingscope.core.types import Instrument, MarketSnapshot
from fundingscope.feed.retry_policy import default_retry
from fundingscope.monitoring.logger import get_logger


class BinanceFeed:
    """
    Public (unsigned) Binance market data: the instrument list, last price and
    last funding rate. The calculator only ever consumes resolved numbers from
    here.
    """

    def __init__(
        self,
        cfg: FeedConfig,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._cfg = cfg
        self._spot = httpx.AsyncClient(base_url=cfg.spot_base_url, timeout=cfg.timeout_sec, transport=transport)
        self._futures = httpx.AsyncClient(
            base_url=cfg.futures_base_url, timeout=cfg.timeout_sec, transport=transport
        )
        self._log = get_logger("feed")

    async def close(self) -> None:
        await self._spot.aclose()
        await self._futures.aclose()

    async def __aenter__(self) -> BinanceFeed:
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.close()

    @default_retry()
    async def _get(self, client: httpx.AsyncClient, path: str, params: dict[str, Any] | None = None) -> Any:
        r = await client.get(path, params=params)
        if r.status_code >= 400:
            raise FeedError(f"Binance API error: http={r.status_code} path={path} body={r.text[:200]}")
        return r.json()

    async def fetch_instruments(self) -> list[Instrument]:
        data = await self._get(self._spot, "/api/v3/exchangeInfo")
        quote = self._cfg.quote_asset
        out: list[Instrument] = []
        for s in data.get("symbols", []):
            if s.get("quoteAsset") != quote:
                continue
            out.append(
                Instrument(
                    symbol=s.get("symbol", ""),
                    base_asset=s.get("baseAsset", ""),
                    quote_asset=s.get("quoteAsset", ""),
                )
            )
        return out

    async def fetch_current_price(self, symbol: str) -> float:
        data = await self._get(self._spot, "/api/v3/ticker/price", {"symbol": symbol})
        try:
            price = float(data["price"])
        except (KeyError, TypeError, ValueError) as e:
            raise FeedError(f"no price in ticker response for {symbol}: {data!r}") from e
        if not math.isfinite(price) or price <= 0:
            raise FeedError(f"unusable price for {symbol}: {price}")
        return price

    async def _fetch_funding_rate(self, symbol: str) -> float | None:
        try:
            data = await self._get(self._futures, "/fapi/v1/premiumIndex", {"symbol": symbol})
            rate = float(data["lastFundingRate"]) * 100.0  # decimal -> percent per 8h
        except (httpx.HTTPError, FeedError, KeyError, TypeError, ValueError) as e:
            self._log.warning(
                "funding rate fetch failed for %s (%s); using default %.4f%%",
                symbol,
                e,
                self._cfg.default_funding_rate,
            )
            return None
        if not math.isfinite(rate):
            self._log.warning("non-finite funding rate for %s; using default", symbol)
            return None
        return rate

    async def fetch_funding_rate(self, symbol: str) -> float:
        """Percent per 8h. Falls back to the configured default (0.01), never zero."""
        rate = await self._fetch_funding_rate(symbol)
        return self._cfg.default_funding_rate if rate is None else rate

    async def snapshot(self, symbol: str) -> MarketSnapshot:
        price = await self.fetch_current_price(symbol)
        rate = await self._fetch_funding_rate(symbol)
        return MarketSnapshot(
            symbol=symbol,
            price=price,
            funding_rate=self._cfg.default_funding_rate if rate is None else rate,
            funding_rate_is_default=rate is None,
        )

"""Birdeye client: fresh low-liquidity listings and ticker search."""
import os
import time
from typing import Optional

import structlog

from tokenradar.api.base import FetchParams, SourceAdapter, parse_timestamp, to_float
from tokenradar.models import MarketPair

logger = structlog.get_logger()

BIRDEYE_API_URL = "https://public-api.birdeye.so"

# new_listing only accepts 1..20
BIRDEYE_LIMIT_MAX = 20


class BirdeyeClient(SourceAdapter):
    """Client for the Birdeye public API."""

    name = "birdeye"

    def __init__(self, config: Optional[dict] = None, api_key: Optional[str] = None, **kwargs):
        config = config or {}
        kwargs.setdefault("timeout", config.get("timeout_seconds", 15.0))
        super().__init__(**kwargs)
        self.api_key = api_key if api_key is not None else os.getenv("BIRDEYE_API_KEY", "")
        self.chain = config.get("chain", "solana")
        self.base_url = config.get("base_url", BIRDEYE_API_URL)

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)

    @property
    def headers(self) -> dict:
        return {"X-API-KEY": self.api_key, "x-chain": self.chain, "accept": "application/json"}

    async def list_new(self, params: FetchParams) -> list[MarketPair]:
        if not self.is_configured:
            logger.debug("birdeye_not_configured")
            return []

        limit = min(max(1, int(params.limit)), BIRDEYE_LIMIT_MAX)
        data = await self._get_json(
            f"{self.base_url}/defi/v2/tokens/new_listing",
            params={"time_to": int(time.time()), "limit": limit, "meme_platform_enabled": "true"},
            headers=self.headers,
        )
        if not data:
            return []

        payload = data.get("data") if isinstance(data, dict) else None
        items = payload if isinstance(payload, list) else (payload or {}).get("tokens") or []

        pairs = []
        for item in items:
            try:
                pair = self._normalize(item)
            except (AttributeError, TypeError, ValueError) as e:
                logger.warning("failed_to_parse_listing", source=self.name, error=str(e))
                continue
            if pair.base_address:
                pairs.append(pair)

        logger.info("fetched_listings", source=self.name, count=len(pairs))
        return pairs

    async def search_symbol(self, symbol: str) -> Optional[str]:
        """Resolve a ticker to a token address, preferring the target chain."""
        query = (symbol or "").lstrip("$").strip()
        if not self.is_configured or not query:
            return None

        data = await self._get_json(
            f"{self.base_url}/defi/v3/search",
            params={"keyword": query},
            headers=self.headers,
        )
        if not isinstance(data, dict):
            return None

        tokens = (data.get("data") or {}).get("tokens") or []
        for token in tokens:
            if (token.get("chain") or self.chain).lower() == self.chain and token.get("address"):
                return token["address"]
        if tokens and tokens[0].get("address"):
            return tokens[0]["address"]
        return None

    def _normalize(self, item: dict) -> MarketPair:
        created_at = parse_timestamp(item.get("liquidityAddedAt") or item.get("lastTradeUnixTime"))

        return MarketPair(
            chain=self.chain,
            dex_id=(item.get("source") or "").lower() or None,
            base_address=item.get("address") or None,
            base_name=item.get("name") or None,
            base_symbol=item.get("symbol") or None,
            price_usd=to_float(item.get("price")),
            liquidity_usd=to_float(item.get("liquidity")),
            volume_h24=to_float(item.get("v24hUSD")),
            price_change_h24=to_float(item.get("v24hChangePercent")),
            created_at=created_at,
            source=self.name,
        )

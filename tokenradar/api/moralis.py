"""Moralis client: newest pump.fun tokens."""
import os
from typing import Optional

import structlog

from tokenradar.api.base import FetchParams, SourceAdapter, parse_timestamp, to_float
from tokenradar.models import MarketPair

logger = structlog.get_logger()

MORALIS_SOLANA_URL = "https://solana-gateway.moralis.io"


class MoralisClient(SourceAdapter):
    """Client for the Moralis Solana gateway."""

    name = "moralis"

    def __init__(self, config: Optional[dict] = None, api_key: Optional[str] = None, **kwargs):
        config = config or {}
        kwargs.setdefault("timeout", config.get("timeout_seconds", 15.0))
        super().__init__(**kwargs)
        self.api_key = api_key if api_key is not None else os.getenv("MORALIS_API_KEY", "")
        self.base_url = config.get("base_url", MORALIS_SOLANA_URL)

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)

    async def list_new(self, params: FetchParams) -> list[MarketPair]:
        if not self.is_configured:
            logger.debug("moralis_not_configured")
            return []

        data = await self._get_json(
            f"{self.base_url}/token/mainnet/exchange/pumpfun/new",
            params={"limit": params.limit},
            headers={"Accept": "application/json", "X-API-Key": self.api_key},
        )
        if not isinstance(data, dict):
            return []

        pairs = []
        for item in data.get("result") or []:
            if not isinstance(item, dict) or not item.get("tokenAddress"):
                continue
            pairs.append(MarketPair(
                dex_id="pump.fun",
                base_address=item["tokenAddress"],
                base_name=item.get("name") or None,
                base_symbol=item.get("symbol") or None,
                price_usd=to_float(item.get("priceUsd")),
                liquidity_usd=to_float(item.get("liquidity")),
                created_at=parse_timestamp(item.get("createdAt")),
                source=self.name,
            ))

        logger.info("fetched_listings", source=self.name, count=len(pairs))
        return pairs

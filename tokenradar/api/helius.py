"""Helius enhanced-transactions client."""
import os
from typing import Any, Optional

import structlog

from tokenradar.api.base import BaseClient

logger = structlog.get_logger()

HELIUS_API_URL = "https://api.helius.xyz"


class HeliusClient(BaseClient):
    """Client for parsed wallet transaction history."""

    name = "helius"

    def __init__(self, config: Optional[dict] = None, api_key: Optional[str] = None, **kwargs):
        config = config or {}
        kwargs.setdefault("timeout", config.get("timeout_seconds", 15.0))
        super().__init__(**kwargs)
        self.api_key = api_key if api_key is not None else os.getenv("HELIUS_API_KEY", "")
        self.base_url = config.get("base_url", HELIUS_API_URL)

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)

    async def get_transactions(self, wallet: str, limit: int = 50,
                               tx_type: Optional[str] = None) -> Optional[list[dict[str, Any]]]:
        """Parsed transactions for a wallet, newest first. None when the call failed."""
        if not self.is_configured:
            return None

        params = {"api-key": self.api_key, "limit": limit}
        if tx_type:
            params["type"] = tx_type

        data = await self._get_json(f"{self.base_url}/v0/addresses/{wallet}/transactions", params=params)
        if data is None:
            return None
        if isinstance(data, dict):
            data = data.get("transactions") or []
        return [tx for tx in data if isinstance(tx, dict)]

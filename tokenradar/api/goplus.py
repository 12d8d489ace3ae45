"""GoPlus token-security client."""
from typing import Any, Optional

import structlog

from tokenradar.api.base import BaseClient

logger = structlog.get_logger()

GOPLUS_API_URL = "https://api.gopluslabs.io/api/v1"


class GoPlusClient(BaseClient):
    """Client for the GoPlus Solana token-security endpoint."""

    name = "goplus"

    def __init__(self, config: Optional[dict] = None, **kwargs):
        config = config or {}
        kwargs.setdefault("timeout", config.get("timeout_seconds", 10.0))
        super().__init__(**kwargs)
        self.base_url = config.get("base_url", GOPLUS_API_URL)

    async def token_security(self, address: str) -> Optional[dict[str, Any]]:
        """Raw security record for a mint, or None when unavailable.

        Looks the mint up as given, then lowercased.
        """
        for key in dict.fromkeys((address, address.lower())):
            record = await self._query(key)
            if record is not None:
                return record
        logger.debug("goplus_no_record", address=address)
        return None

    async def _query(self, key: str) -> Optional[dict[str, Any]]:
        data = await self._get_json(
            f"{self.base_url}/token_security/solana",
            params={"contract_addresses": key},
        )
        if not isinstance(data, dict) or data.get("code", 1) != 1:
            return None

        result = data.get("result") or {}
        record = result.get(key) or result.get(key.lower())
        return record if isinstance(record, dict) else None

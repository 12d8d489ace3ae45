"""PumpPortal push feed: new pump.fun token creations over a websocket."""
import asyncio
import json
from datetime import datetime, timezone
from typing import Optional

import structlog
import websockets
from websockets.exceptions import WebSocketException

from tokenradar.api.base import FetchParams, SourceAdapter, to_float
from tokenradar.models import MarketPair

logger = structlog.get_logger()

PUMPPORTAL_WS_URL = "wss://pumpportal.fun/api/data"


class PumpPortalFeed(SourceAdapter):
    """Collects token-creation events for a bounded time, then returns them."""

    name = "pumpportal"

    def __init__(self, config: Optional[dict] = None, connect=None, **kwargs):
        config = config or {}
        super().__init__(**kwargs)
        self.uri = config.get("ws_url", PUMPPORTAL_WS_URL)
        self.listen_seconds = config.get("listen_seconds", 10.0)
        self.sol_price_usd = config.get("sol_price_usd")
        self._connect = connect or websockets.connect

    async def list_new(self, params: FetchParams) -> list[MarketPair]:
        pairs: list[MarketPair] = []
        try:
            await asyncio.wait_for(self._collect(pairs, params.limit), timeout=self.listen_seconds)
        except asyncio.TimeoutError:
            pass
        except (OSError, WebSocketException) as e:
            logger.warning("push_feed_failed", source=self.name, error=str(e))

        logger.info("fetched_push_events", source=self.name, count=len(pairs))
        return pairs

    async def _collect(self, pairs: list, limit: int):
        async with self._connect(self.uri) as ws:
            await ws.send(json.dumps({"method": "subscribeNewToken"}))
            async for raw_msg in ws:
                pair = self._parse(raw_msg)
                if pair is not None:
                    pairs.append(pair)
                    if len(pairs) >= limit:
                        return

    def _parse(self, raw_msg) -> Optional[MarketPair]:
        try:
            msg = json.loads(raw_msg)
        except (TypeError, ValueError) as e:
            logger.warning("failed_to_parse_push_event", source=self.name, error=str(e))
            return None
        if not isinstance(msg, dict) or msg.get("txType") != "create" or not msg.get("mint"):
            return None

        liquidity = None
        sol_in_curve = to_float(msg.get("vSolInBondingCurve"))
        if sol_in_curve is not None and self.sol_price_usd:
            liquidity = sol_in_curve * float(self.sol_price_usd)

        return MarketPair(
            dex_id="pump.fun",
            pair_address=msg.get("bondingCurveKey") or None,
            base_address=msg["mint"],
            base_name=msg.get("name") or None,
            base_symbol=msg.get("symbol") or None,
            liquidity_usd=liquidity,
            created_at=datetime.now(timezone.utc),
            source=self.name,
        )

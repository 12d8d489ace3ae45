"""Recent token buys of tracked wallets."""
import asyncio
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

import structlog

from tokenradar.api.base import parse_timestamp
from tokenradar.models import TrackedWallet, WalletBuyEvent

logger = structlog.get_logger()

# Helius files DEX and pump.fun bonding-curve buys under SWAP; BUY is the NFT-marketplace category.
DEFAULT_BUY_TYPES = ["SWAP"]

# Quote-side mints that show up in every swap
DEFAULT_IGNORED_MINTS = [
    "So11111111111111111111111111111111111111112",   # wrapped SOL
    "EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDt1v",  # USDC
    "Es9vMFrzaCERmJfrF4H2FYD4KCoNkY11McCe8BenwNYB",  # USDT
]


class WalletActivityCollector:
    """Classifies buy-like transfers from a wallet's parsed transaction history."""

    def __init__(self, config: dict, client, clock: Optional[Callable[[], datetime]] = None):
        wallets = config.get("wallet_tracker", {})

        self.client = client
        self.buy_types = [t.upper() for t in wallets.get("buy_types", DEFAULT_BUY_TYPES)]
        self.ignored_mints = set(wallets.get("ignored_mints", DEFAULT_IGNORED_MINTS))
        self.request_delay = wallets.get("request_delay_seconds", 0.1)
        self.clock = clock or (lambda: datetime.now(timezone.utc))

    @property
    def is_configured(self) -> bool:
        return bool(getattr(self.client, "is_configured", True))

    async def collect_recent_buys(self, wallet: str, max_count: int = 30,
                                  max_age: timedelta = timedelta(hours=24)) -> list[WalletBuyEvent]:
        """At most one event per mint, none older than `max_age`. Failures yield []."""
        try:
            transactions = await self._fetch(wallet, max_count)
        except Exception as e:
            logger.warning("wallet_collect_failed", wallet=wallet, error=str(e))
            return []

        cutoff = self.clock() - max_age
        seen = set()
        buys = []
        for tx in transactions:
            if (tx.get("type") or "").upper() not in self.buy_types:
                continue
            timestamp = parse_timestamp(tx.get("timestamp"))
            if timestamp is None or timestamp < cutoff:
                continue
            for transfer in tx.get("tokenTransfers") or []:
                mint = transfer.get("mint") or ""
                if not mint or mint in seen or mint in self.ignored_mints:
                    continue
                if transfer.get("toUserAccount") != wallet:
                    continue
                seen.add(mint)
                buys.append(WalletBuyEvent(
                    wallet=wallet,
                    mint=mint,
                    timestamp=timestamp,
                    signature=tx.get("signature"),
                ))

        logger.debug("wallet_buys_collected", wallet=wallet, buys=len(buys), transactions=len(transactions))
        return buys

    async def recent_trades(self, wallets: list[TrackedWallet], per_wallet: int = 15,
                            max_age: timedelta = timedelta(hours=24),
                            max_total: int = 80) -> list[WalletBuyEvent]:
        """Newest-first buys across all tracked wallets."""
        trades = []
        for i, wallet in enumerate(wallets):
            if i and self.request_delay:
                await asyncio.sleep(self.request_delay)
            trades.extend(await self.collect_recent_buys(wallet.address, per_wallet, max_age))
            if len(trades) >= max_total:
                break

        trades.sort(key=lambda t: t.timestamp, reverse=True)
        return trades[:max_total]

    async def _fetch(self, wallet: str, max_count: int) -> list[dict]:
        """One request per buy type, merged newest first."""
        transactions = []
        signatures = set()
        for i, tx_type in enumerate(self.buy_types):
            if i and self.request_delay:
                await asyncio.sleep(self.request_delay)
            batch = await self.client.get_transactions(wallet, limit=max_count, tx_type=tx_type)
            for tx in batch or []:
                signature = tx.get("signature")
                if signature and signature in signatures:
                    continue
                signatures.add(signature)
                transactions.append(tx)

        transactions.sort(key=lambda tx: tx.get("timestamp") or 0, reverse=True)
        return transactions

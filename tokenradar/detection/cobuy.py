"""Co-buy detection: alert when a quorum of tracked wallets buys the same token."""
import asyncio
from datetime import timedelta

import structlog

from tokenradar.models import AlertBuyer, AlertRules, CoBuyAlert, TrackedWallet

logger = structlog.get_logger()

PLACEHOLDER = "—"


class CoBuyAlertEngine:
    """Recomputes co-buy alerts from scratch on every call; keeps no state between cycles."""

    def __init__(self, config: dict, collector, lookup=None):
        wallets = config.get("wallet_tracker", {})

        self.collector = collector
        self.lookup = lookup
        self.buys_per_wallet = wallets.get("buys_per_wallet", 30)
        self.wallet_delay = wallets.get("wallet_delay_seconds", 0.1)
        self.lookup_delay = wallets.get("lookup_delay_seconds", 0.15)

    async def compute_alerts(self, tracked_wallets: list[TrackedWallet], rules: AlertRules) -> list[CoBuyAlert]:
        if not tracked_wallets:
            logger.info("no_tracked_wallets")
            return []
        if not self.collector.is_configured:
            logger.warning("wallet_collector_unavailable")
            return []

        # Rules are read once so the whole cycle uses the same quorum.
        min_buyers = rules.min_buyers
        max_age = timedelta(hours=rules.max_lookback_hours)
        max_alerts = rules.max_alerts

        mint_to_wallets = await self._collect(tracked_wallets, max_age)

        ranked = [(mint, wallets) for mint, wallets in mint_to_wallets.items() if len(wallets) >= min_buyers]
        ranked.sort(key=lambda item: len(item[1]), reverse=True)
        ranked = ranked[:max_alerts]

        labels = {w.address: w.label for w in tracked_wallets}
        alerts = []
        for i, (mint, wallets) in enumerate(ranked):
            if i and self.lookup_delay:
                await asyncio.sleep(self.lookup_delay)
            alerts.append(await self._build_alert(mint, wallets, labels))

        logger.info(
            "cobuy_alerts_computed",
            wallets=len(tracked_wallets),
            mints=len(mint_to_wallets),
            alerts=len(alerts),
            min_buyers=min_buyers,
        )
        return alerts

    async def _collect(self, tracked_wallets: list[TrackedWallet], max_age: timedelta) -> dict[str, list[str]]:
        """mint -> distinct wallet addresses, in tracked-wallet order."""
        mint_to_wallets: dict[str, list[str]] = {}
        for i, wallet in enumerate(tracked_wallets):
            if i and self.wallet_delay:
                await asyncio.sleep(self.wallet_delay)
            buys = await self.collector.collect_recent_buys(wallet.address, self.buys_per_wallet, max_age)
            for buy in buys:
                buyers = mint_to_wallets.setdefault(buy.mint, [])
                if wallet.address not in buyers:
                    buyers.append(wallet.address)
        return mint_to_wallets

    async def _build_alert(self, mint: str, wallets: list[str], labels: dict) -> CoBuyAlert:
        alert = CoBuyAlert(
            mint=mint,
            symbol=PLACEHOLDER,
            name=PLACEHOLDER,
            buyers=[AlertBuyer(address=a, label=labels.get(a)) for a in wallets],
        )
        if self.lookup is None:
            return alert

        try:
            pairs = await self.lookup.lookup(mint)
        except Exception as e:
            logger.warning("alert_snapshot_failed", mint=mint, error=str(e))
            return alert
        if pairs:
            pair = pairs[0]
            alert.symbol = pair.base_symbol or PLACEHOLDER
            alert.name = pair.base_name or PLACEHOLDER
            alert.liquidity_usd = pair.liquidity_usd
            alert.price_usd = pair.price_usd
        return alert

"""Alert rules and tracked wallets, with fallbacks when the store is unavailable."""
from typing import Optional

import structlog

from tokenradar.models import AlertRules, TrackedWallet

logger = structlog.get_logger()

RULES_KEY = "wallet_tracker"


class RuleStore:
    """Read-only view of the co-buy configuration, degraded to defaults on any failure."""

    def __init__(self, db, config: dict):
        wallets = config.get("wallet_tracker", {})
        rules = wallets.get("rules", {})

        self.db = db
        self.defaults = AlertRules(
            min_buyers=rules.get("min_buyers", 3),
            max_lookback_hours=rules.get("max_age_hours", 24),
            max_alerts=rules.get("max_alerts", 30),
        )
        self.configured_wallets = [
            TrackedWallet(address=w["address"], label=w.get("label"))
            for w in wallets.get("wallets", []) if w.get("address")
        ]

    async def get_alert_rules(self) -> AlertRules:
        try:
            row = await self.db.get_alert_rule_row(RULES_KEY)
        except Exception as e:
            logger.warning("alert_rules_unavailable", error=str(e))
            return self.defaults
        if not row:
            return self.defaults

        try:
            return AlertRules(
                min_buyers=_or_default(row.get("min_buyers"), self.defaults.min_buyers),
                max_lookback_hours=_or_default(row.get("max_age_hours"), self.defaults.max_lookback_hours),
                max_alerts=_or_default(row.get("max_alerts"), self.defaults.max_alerts),
            )
        except ValueError as e:
            logger.warning("alert_rules_invalid", error=str(e), row=row)
            return self.defaults

    async def get_tracked_wallets(self) -> list[TrackedWallet]:
        try:
            wallets = await self.db.get_tracked_wallets()
        except Exception as e:
            logger.warning("tracked_wallets_unavailable", error=str(e))
            wallets = []
        return wallets or list(self.configured_wallets)

    async def seed_defaults(self) -> int:
        """Write configured wallets and default rules into an empty store."""
        existing = await self.db.get_tracked_wallets()
        if existing:
            logger.info("tracked_wallets_already_seeded", count=len(existing))
            return 0

        for wallet in self.configured_wallets:
            await self.db.add_tracked_wallet(wallet)
        if await self.db.get_alert_rule_row(RULES_KEY) is None:
            await self.db.set_alert_rules(
                RULES_KEY,
                self.defaults.min_buyers,
                self.defaults.max_lookback_hours,
                self.defaults.max_alerts,
            )
        logger.info("tracked_wallets_seeded", count=len(self.configured_wallets))
        return len(self.configured_wallets)


def _or_default(value: Optional[int], default: int) -> int:
    return default if value is None else value

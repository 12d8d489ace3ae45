"""Main entry point for Token Radar."""
import asyncio
import os
import time
from contextlib import AsyncExitStack
from pathlib import Path

import structlog
import yaml
from dotenv import load_dotenv

from tokenradar.alerts.telegram import TelegramNotifier
from tokenradar.api.apify import ApifyClient
from tokenradar.api.birdeye import BirdeyeClient
from tokenradar.api.dexscreener import DexScreenerClient
from tokenradar.api.goplus import GoPlusClient
from tokenradar.api.helius import HeliusClient
from tokenradar.api.moralis import MoralisClient
from tokenradar.api.pumpportal import PumpPortalFeed
from tokenradar.detection.aggregator import Aggregator
from tokenradar.detection.cobuy import CoBuyAlertEngine
from tokenradar.detection.pipeline import TokenPipeline
from tokenradar.detection.scorer import ViralScorer
from tokenradar.detection.security import SecurityGate
from tokenradar.detection.social import AuthorWeights, SocialSignalExtractor
from tokenradar.detection.wallets import WalletActivityCollector
from tokenradar.models import Tier, View
from tokenradar.storage.database import Database
from tokenradar.storage.rules import RuleStore

# Load environment variables
load_dotenv()

# Configure structured logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.dev.ConsoleRenderer()
    ],
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    wrapper_class=structlog.stdlib.BoundLogger,
    cache_logger_on_first_use=True,
)

logger = structlog.get_logger()


def load_config() -> dict:
    """Load configuration from YAML file."""
    config_path = Path(os.getenv("TOKENRADAR_CONFIG", Path(__file__).parent.parent / "config.yaml"))

    if not config_path.exists():
        logger.warning("config_file_not_found", path=str(config_path))
        return {}

    with open(config_path) as f:
        config = yaml.safe_load(f) or {}

    logger.info("config_loaded", path=str(config_path))
    return config


class TokenRadarBot:
    """Main bot class that orchestrates all components."""

    def __init__(self, config: dict):
        self.config = config
        self.db = Database(os.getenv("TOKENRADAR_DB_PATH", config.get("database", {}).get("path", "tokenradar.db")))
        self.rule_store = RuleStore(self.db, config)
        self.notifier = TelegramNotifier(message_delay=config.get("alerts", {}).get("message_delay_seconds", 0.3))

        providers = config.get("providers", {})
        self.dexscreener = DexScreenerClient(providers.get("dexscreener", {}))
        self.birdeye = BirdeyeClient(providers.get("birdeye", {}))
        self.moralis = MoralisClient(providers.get("moralis", {}))
        self.pumpportal = PumpPortalFeed(providers.get("pumpportal", {}))
        self.goplus = GoPlusClient(providers.get("goplus", {}))
        self.helius = HeliusClient(providers.get("helius", {}))
        self.apify = ApifyClient(providers.get("apify", {}))
        self.adapters = {
            a.name: a for a in (self.dexscreener, self.birdeye, self.moralis, self.pumpportal)
        }

        self.weights = AuthorWeights.from_config(config)
        self.pipeline = TokenPipeline(
            config,
            aggregator=Aggregator(config),
            gate=SecurityGate(config, self.goplus),
            scorer=ViralScorer(config),
            extractor=SocialSignalExtractor(config, self.weights),
            lookup=self.dexscreener,
            search=self.birdeye,
        )
        self.collector = WalletActivityCollector(config, self.helius)
        self.engine = CoBuyAlertEngine(config, self.collector, lookup=self.dexscreener)

        # Polling settings
        polling = config.get("polling", {})
        self.poll_interval = polling.get("interval_seconds", 300)
        self.social_interval = polling.get("social_interval_seconds", 3600)
        self.wallet_interval = polling.get("wallet_interval_seconds", 600)

        scan = config.get("scan", {})
        self.views = [View(v) for v in scan.get("views", ["new"])]
        self.scan_limit = scan.get("limit", 25)
        self.tier = Tier(scan.get("tier", "paid"))
        self.social_lookback_hours = config.get("social", {}).get("lookback_hours", 1)

        # Adapter order is configuration
        sources = config.get("sources", {})
        self.primary = self._resolve(sources.get("primary", ["dexscreener"]))
        self.secondary = self._resolve(sources.get("secondary", ["birdeye", "moralis"]))
        push = sources.get("push", "pumpportal")
        self.push = self.adapters.get(push) if push else None

        # Stats
        self.tokens_scored = 0
        self.alerts_sent = 0
        self._last_run = {"social": 0.0, "wallets": 0.0}

    def _resolve(self, names: list[str]) -> list:
        adapters = []
        for name in names:
            if name in self.adapters:
                adapters.append(self.adapters[name])
            else:
                logger.warning("unknown_source", source=name)
        return adapters

    async def start(self):
        """Start the bot."""
        logger.info("bot_starting")

        async with AsyncExitStack() as stack:
            for client in (*self.adapters.values(), self.goplus, self.helius, self.apify):
                await stack.enter_async_context(client)

            await self.db.connect()
            await self.rule_store.seed_defaults()

            logger.info("bot_started", poll_interval=self.poll_interval, views=[v.value for v in self.views])

            # Main loop
            while True:
                try:
                    await self.poll_cycle()
                except Exception as e:
                    logger.error("poll_cycle_error", error=str(e))

                await asyncio.sleep(self.poll_interval)

    async def poll_cycle(self):
        """Execute one polling cycle."""
        logger.info("poll_cycle_start")

        for view in self.views:
            await self.scan_cycle(view)

        if self._due("social", self.social_interval):
            await self.social_cycle()
        if self._due("wallets", self.wallet_interval):
            await self.wallet_cycle()

        logger.info("poll_cycle_complete", scored=self.tokens_scored, alerts=self.alerts_sent)

    async def scan_cycle(self, view: View):
        scored = await self.pipeline.scan(
            view,
            primary=self.primary,
            secondary=self.secondary,
            push=self.push,
            limit=self.scan_limit,
            tier=self.tier,
        )
        await self._publish(scored)

    async def social_cycle(self):
        posts = await self.apify.recent_posts(self.weights.handles, hours=self.social_lookback_hours)
        scored = await self.pipeline.scan_social(posts)
        await self._publish(scored)

    async def wallet_cycle(self):
        rules = await self.rule_store.get_alert_rules()
        wallets = await self.rule_store.get_tracked_wallets()
        alerts = await self.engine.compute_alerts(wallets, rules)
        self.alerts_sent += await self.notifier.send_wallet_alerts(alerts)

    async def _publish(self, scored):
        for token in scored:
            await self.db.upsert_token(token)
        self.tokens_scored += len(scored)
        self.alerts_sent += await self.notifier.send_token_alerts(scored)

    def _due(self, name: str, interval: float) -> bool:
        now = time.monotonic()
        if now - self._last_run[name] >= interval:
            self._last_run[name] = now
            return True
        return False

    async def shutdown(self):
        """Graceful shutdown."""
        logger.info("bot_shutting_down")
        await self.db.close()


async def main():
    """Main entry point."""
    config = load_config()
    bot = TokenRadarBot(config)

    try:
        await bot.start()
    except KeyboardInterrupt:
        logger.info("keyboard_interrupt")
    finally:
        await bot.shutdown()


def run():
    asyncio.run(main())


if __name__ == "__main__":
    run()

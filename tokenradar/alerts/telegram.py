"""Telegram notification handler."""
import asyncio
import html
import os
from typing import Optional

import structlog
from telegram import Bot, LinkPreviewOptions
from telegram.constants import ParseMode

from tokenradar.models import CoBuyAlert, ScoredToken

logger = structlog.get_logger()


class TelegramNotifier:
    """Sends token and wallet-tracker alerts to every configured chat."""

    def __init__(self, bot_token: Optional[str] = None, chat_ids: Optional[str] = None,
                 message_delay: float = 0.3, bot: Optional[Bot] = None):
        self.bot_token = bot_token or os.getenv("TELEGRAM_BOT_TOKEN")
        chat_ids_str = chat_ids or os.getenv("TELEGRAM_CHAT_IDS") or os.getenv("TELEGRAM_CHAT_ID")

        # Several ids may be given comma-separated: "123,456,789"
        self.chat_ids: list[str] = []
        if chat_ids_str:
            self.chat_ids = [cid.strip() for cid in chat_ids_str.split(",") if cid.strip()]

        self.message_delay = message_delay
        self._bot: Optional[Bot] = bot

        if not self.bot_token:
            logger.warning("telegram_token_missing")
        if not self.chat_ids:
            logger.warning("telegram_chat_ids_missing")

    @property
    def bot(self) -> Bot:
        if self._bot is None:
            self._bot = Bot(token=self.bot_token)
        return self._bot

    @property
    def is_configured(self) -> bool:
        return bool(self.bot_token and self.chat_ids)

    async def _send_to_all(self, text: str, disable_preview: bool = False) -> int:
        """Send to every chat id. Returns how many sends succeeded."""
        success_count = 0
        for chat_id in self.chat_ids:
            try:
                await self.bot.send_message(
                    chat_id=chat_id,
                    text=text,
                    parse_mode=ParseMode.HTML,
                    link_preview_options=LinkPreviewOptions(is_disabled=disable_preview)
                )
                success_count += 1
            except Exception as e:
                logger.warning("telegram_send_failed", chat_id=chat_id, error=str(e))
        return success_count

    async def send_token_alerts(self, tokens: list[ScoredToken]) -> int:
        """One message per token. Returns the number of tokens delivered to at least one chat."""
        return await self._send_each([format_token_alert(t) for t in tokens], kind="token")

    async def send_wallet_alerts(self, alerts: list[CoBuyAlert]) -> int:
        """One message per co-buy alert."""
        return await self._send_each([format_wallet_alert(a) for a in alerts], kind="wallet")

    async def _send_each(self, messages: list[str], kind: str) -> int:
        if not self.is_configured or not messages:
            return 0

        delivered = 0
        for i, message in enumerate(messages):
            if i and self.message_delay:
                await asyncio.sleep(self.message_delay)
            if await self._send_to_all(message, disable_preview=True):
                delivered += 1

        logger.info("alerts_sent", kind=kind, delivered=delivered, total=len(messages))
        return delivered


def format_token_alert(scored: ScoredToken) -> str:
    """Format a scored token for Telegram."""
    token = scored.token
    pair = token.pair
    target = pair.pair_address or token.key
    dex_url = f"https://dexscreener.com/{pair.chain}/{target}"

    lines = [
        f"🪙 <b>{_escape(token.symbol)}</b> — {_escape(token.name)}",
        f"📊 Viral: <b>{scored.score}</b> · Liq: {_usd_k(pair.liquidity_usd)} · Price: {_price(pair.price_usd)}",
        f"🔗 <a href=\"{dex_url}\">DexScreener</a>",
    ]
    if pair.twitter:
        lines.append(f"🐦 <a href=\"{_escape(pair.twitter)}\">Twitter</a>")
    if pair.telegram:
        lines.append(f"✈️ <a href=\"{_escape(pair.telegram)}\">Telegram</a>")
    if pair.website:
        lines.append(f"🌐 <a href=\"{_escape(pair.website)}\">Website</a>")
    if scored.breakdown.warnings:
        lines.append(_escape(" · ".join(scored.breakdown.warnings)))
    return "\n".join(lines)


def format_wallet_alert(alert: CoBuyAlert) -> str:
    """Format a co-buy alert for Telegram."""
    dex_url = f"https://dexscreener.com/solana/{alert.mint}"
    gmgn_url = f"https://gmgn.ai/sol/token/{alert.mint}"
    who = ", ".join(b.display_name for b in alert.buyers)

    lines = [
        f"🔔 <b>Wallet Tracker</b> — {alert.buyer_count} tracked wallets bought",
        f"🪙 <b>{_escape(alert.symbol)}</b> — {_escape(alert.name)}",
        f"👥 <b>{alert.buyer_count}</b> buyers: {_escape(who)}",
        f"📊 Liq: {_usd_k(alert.liquidity_usd)} · Price: {_price(alert.price_usd)}",
        f"🔗 <a href=\"{dex_url}\">DexScreener</a> · <a href=\"{gmgn_url}\">GMGN</a>",
    ]
    return "\n".join(lines)


def _escape(text: str) -> str:
    return html.escape(text or "", quote=True)


def _usd_k(value: Optional[float]) -> str:
    return f"${value / 1000:.1f}k" if value is not None else "—"


def _price(value: Optional[float]) -> str:
    if value is None:
        return "—"
    return f"${value:.2e}" if value < 0.01 else f"${value:.6f}"

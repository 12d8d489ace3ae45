from tokenradar.alerts.telegram import TelegramNotifier, format_token_alert, format_wallet_alert
from tokenradar.models import AlertBuyer, CanonicalToken, CoBuyAlert, MarketPair, ScoreBreakdown, ScoredToken


class FakeBot:
    def __init__(self, fail_for=()):
        self.sent = []
        self.fail_for = set(fail_for)

    async def send_message(self, chat_id, text, parse_mode=None, link_preview_options=None):
        if chat_id in self.fail_for:
            raise RuntimeError("chat not found")
        self.sent.append((chat_id, text))


def scored_token(now, symbol="<FOO>"):
    pair = MarketPair(
        base_address="MINT1",
        pair_address="POOL1",
        base_symbol=symbol,
        base_name="Foo & Friends",
        liquidity_usd=45_000,
        price_usd=0.00042,
        twitter="https://x.com/foo",
    )
    return ScoredToken(
        token=CanonicalToken(key="MINT1", pair=pair),
        breakdown=ScoreBreakdown(total=72, warnings=["⚠️ Mintable"]),
        discovered_at=now,
    )


def cobuy_alert():
    return CoBuyAlert(
        mint="MINT1",
        symbol="FOO",
        name="Foo",
        buyers=[AlertBuyer("WalletAAAA1111", "alpha"), AlertBuyer("WalletBBBB2222"), AlertBuyer("WalletCCCC3333")],
        liquidity_usd=12_500,
    )


def test_token_alert_escapes_and_links(now):
    text = format_token_alert(scored_token(now))

    assert "&lt;FOO&gt;" in text
    assert "Foo &amp; Friends" in text
    assert "<b>72</b>" in text
    assert "https://dexscreener.com/solana/POOL1" in text
    assert "$45.0k" in text
    assert "Twitter" in text
    assert "Telegram" not in text


def test_wallet_alert_lists_buyers():
    text = format_wallet_alert(cobuy_alert())

    assert "<b>3</b> buyers" in text
    assert "alpha" in text
    assert "Wall…2222" in text
    assert "gmgn.ai/sol/token/MINT1" in text
    assert "Price: —" in text


async def test_unconfigured_notifier_sends_nothing(now, monkeypatch):
    monkeypatch.delenv("TELEGRAM_BOT_TOKEN", raising=False)
    monkeypatch.delenv("TELEGRAM_CHAT_IDS", raising=False)
    monkeypatch.delenv("TELEGRAM_CHAT_ID", raising=False)
    bot = FakeBot()
    notifier = TelegramNotifier(bot=bot)

    assert await notifier.send_token_alerts([scored_token(now)]) == 0
    assert bot.sent == []


async def test_alerts_go_to_every_chat(now):
    bot = FakeBot(fail_for={"300"})
    notifier = TelegramNotifier("token", "100, 200,300", message_delay=0, bot=bot)

    delivered = await notifier.send_wallet_alerts([cobuy_alert(), cobuy_alert()])

    assert delivered == 2
    assert [chat for chat, _ in bot.sent] == ["100", "200", "100", "200"]


async def test_delivery_counts_only_reached_messages(now):
    notifier = TelegramNotifier("token", "100", message_delay=0, bot=FakeBot(fail_for={"100"}))

    assert await notifier.send_token_alerts([scored_token(now)]) == 0

import json
from datetime import datetime, timezone

import httpx
import pytest

from tokenradar.api.apify import ApifyClient, normalize_post
from tokenradar.api.base import FetchParams, parse_timestamp
from tokenradar.api.birdeye import BirdeyeClient
from tokenradar.api.dexscreener import DexScreenerClient, extract_socials, normalize_pair, quality_score
from tokenradar.api.goplus import GoPlusClient
from tokenradar.api.moralis import MoralisClient
from tokenradar.api.pumpportal import PumpPortalFeed
from tokenradar.models import MarketPair

RAW_PAIR = {
    "chainId": "solana",
    "dexId": "Raydium",
    "pairAddress": "POOL1",
    "baseToken": {"address": "MINT1", "name": "Foo Coin", "symbol": "FOO"},
    "priceUsd": "0.00042",
    "liquidity": {"usd": 45000.5},
    "volume": {"h1": 1200, "h6": 8000, "h24": 90000},
    "priceChange": {"h1": 1.5, "h6": -3, "h24": 120},
    "txns": {"h24": {"buys": 300, "sells": 200}},
    "pairCreatedAt": 1767225600000,
    "info": {
        "websites": [{"url": "https://foo.xyz"}],
        "socials": [{"type": "twitter", "url": "https://x.com/foo"}, {"type": "telegram", "handle": "foochat"}],
    },
}


def mock_client(handler):
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


# -- base helpers ---------------------------------------------------------------

@pytest.mark.parametrize("value,expected", [
    (1767225600, datetime(2026, 1, 1, tzinfo=timezone.utc)),
    (1767225600000, datetime(2026, 1, 1, tzinfo=timezone.utc)),
    ("2026-01-01T00:00:00Z", datetime(2026, 1, 1, tzinfo=timezone.utc)),
    ("2026-01-01T00:00:00", datetime(2026, 1, 1, tzinfo=timezone.utc)),
    ("Wed Oct 10 20:19:24 +0000 2018", datetime(2018, 10, 10, 20, 19, 24, tzinfo=timezone.utc)),
    ("Thu Jan 01 13:00:00 +0100 2026", datetime(2026, 1, 1, 12, tzinfo=timezone.utc)),
    ("not a date", None),
    (None, None),
])
def test_parse_timestamp(value, expected):
    assert parse_timestamp(value) == expected


# -- dexscreener ------------------------------------------------------------------

def test_normalize_pair():
    pair = normalize_pair(RAW_PAIR)

    assert pair.dex_id == "raydium"
    assert pair.canonical_key == "MINT1"
    assert pair.base_symbol == "FOO"
    assert pair.price_usd == pytest.approx(0.00042)
    assert pair.liquidity_usd == 45000.5
    assert pair.volume_h24 == 90000
    assert pair.price_change == 120
    assert pair.buys_h24 == 300
    assert pair.sells_h1 is None
    assert pair.created_at == datetime(2026, 1, 1, tzinfo=timezone.utc)
    assert pair.links.telegram == "https://t.me/foochat"


def test_normalize_sparse_pair():
    pair = normalize_pair({"pairAddress": "POOL2"})

    assert pair.canonical_key == "POOL2"
    assert pair.liquidity_usd is None
    assert pair.created_at is None
    assert pair.price_change == 0.0


def test_normalize_rejects_non_objects():
    with pytest.raises(TypeError):
        normalize_pair(["not", "a", "pair"])


def test_extract_socials_without_info():
    assert extract_socials({}) == (None, None, None)


def test_quality_score_rewards_healthy_pairs():
    healthy, _ = quality_score(normalize_pair(RAW_PAIR))
    thin, reasons = quality_score(MarketPair(liquidity_usd=500, volume_h24=50_000))

    # 15 liquidity + 20 volume ratio + 15 buy ratio + 10 socials
    assert healthy == 60
    assert thin == 0
    assert "⚠️ Low liquidity" in reasons


async def test_search_dedupes_pairs_and_filters_chain():
    other_chain = dict(RAW_PAIR, chainId="ethereum", pairAddress="ETHPOOL")
    queries = []

    def handler(request):
        queries.append(request.url.params["q"])
        return httpx.Response(200, json={"pairs": [RAW_PAIR, other_chain, "garbage"]})

    client = DexScreenerClient(
        {"search_queries": ["SOL", "BONK"], "request_delay_seconds": 0},
        http_client=mock_client(handler),
    )

    pairs = await client.list_trending(FetchParams())

    assert queries == ["SOL", "BONK"]
    assert [p.pair_address for p in pairs] == ["POOL1"]
    assert pairs[0].source == "dexscreener"


async def test_lookup_returns_deepest_pool():
    shallow = dict(RAW_PAIR, pairAddress="SHALLOW", liquidity={"usd": 100})
    deep = dict(RAW_PAIR, pairAddress="DEEP", liquidity={"usd": 90000})

    def handler(request):
        assert request.url.path == "/tokens/v1/solana/MINT1"
        return httpx.Response(200, json=[shallow, deep])

    client = DexScreenerClient({}, http_client=mock_client(handler))

    pairs = await client.lookup("MINT1")

    assert [p.pair_address for p in pairs] == ["DEEP"]


async def test_http_failure_yields_empty_list():
    client = DexScreenerClient({}, http_client=mock_client(lambda r: httpx.Response(503)))

    assert await client.lookup("MINT1") == []


# -- birdeye / moralis / goplus -----------------------------------------------------

async def test_birdeye_clamps_listing_limit():
    seen = {}

    def handler(request):
        seen.update(request.url.params)
        seen["key"] = request.headers["X-API-KEY"]
        return httpx.Response(200, json={"data": {"items": [], "tokens": [
            {"address": "MINT9", "symbol": "NEW", "name": "New", "liquidity": 900,
             "source": "Meteora", "liquidityAddedAt": "2026-01-01T00:00:00"},
            {"symbol": "NOADDR"},
        ]}})

    client = BirdeyeClient({}, api_key="bk", http_client=mock_client(handler))

    pairs = await client.list_new(FetchParams(limit=80))

    assert seen["limit"] == "20"
    assert seen["key"] == "bk"
    assert [p.base_address for p in pairs] == ["MINT9"]
    assert pairs[0].dex_id == "meteora"
    assert pairs[0].created_at.tzinfo is not None


async def test_birdeye_without_key_does_nothing():
    def handler(request):
        raise AssertionError("no request expected")

    client = BirdeyeClient({}, api_key="", http_client=mock_client(handler))

    assert await client.list_new(FetchParams()) == []
    assert await client.search_symbol("FOO") is None


async def test_birdeye_search_prefers_chain():
    def handler(request):
        return httpx.Response(200, json={"data": {"tokens": [
            {"address": "0xabc", "chain": "ethereum"},
            {"address": "SOLMINT", "chain": "solana"},
        ]}})

    client = BirdeyeClient({}, api_key="bk", http_client=mock_client(handler))

    assert await client.search_symbol("$FOO") == "SOLMINT"


async def test_moralis_lists_pumpfun_tokens():
    def handler(request):
        return httpx.Response(200, json={"result": [
            {"tokenAddress": "PUMP1", "symbol": "PMP", "priceUsd": "0.0001", "createdAt": "2026-01-01T00:00:00.000Z"},
            {"symbol": "missing"},
        ]})

    client = MoralisClient({}, api_key="mk", http_client=mock_client(handler))

    pairs = await client.list_new(FetchParams(limit=10))

    assert [p.base_address for p in pairs] == ["PUMP1"]
    assert pairs[0].dex_id == "pump.fun"


async def test_goplus_returns_record_for_address():
    def handler(request):
        key = request.url.params["contract_addresses"]
        return httpx.Response(200, json={"code": 1, "result": {key: {"is_honeypot": "0"}}})

    client = GoPlusClient({}, http_client=mock_client(handler))

    assert await client.token_security("MiNt1") == {"is_honeypot": "0"}


async def test_goplus_falls_back_to_lowercase_key():
    requested = []

    def handler(request):
        key = request.url.params["contract_addresses"]
        requested.append(key)
        result = {key: {"is_honeypot": "1"}} if key == key.lower() else {}
        return httpx.Response(200, json={"code": 1, "result": result})

    client = GoPlusClient({}, http_client=mock_client(handler))

    assert await client.token_security("MiNt1") == {"is_honeypot": "1"}
    assert requested == ["MiNt1", "mint1"]


async def test_goplus_keeps_mint_spelling_when_it_matches():
    requested = []

    def handler(request):
        key = request.url.params["contract_addresses"]
        requested.append(key)
        return httpx.Response(200, json={"code": 1, "result": {key: {"is_mintable": "0"}}})

    client = GoPlusClient({}, http_client=mock_client(handler))

    assert await client.token_security("So1MiNt") == {"is_mintable": "0"}
    assert requested == ["So1MiNt"]


async def test_goplus_error_code_is_unavailable():
    client = GoPlusClient({}, http_client=mock_client(lambda r: httpx.Response(200, json={"code": 2020})))

    assert await client.token_security("MINT1") is None


# -- pumpportal -----------------------------------------------------------------

class FakeSocket:
    def __init__(self, messages):
        self.messages = messages
        self.sent = []

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return False

    async def send(self, message):
        self.sent.append(json.loads(message))

    def __aiter__(self):
        return self._iter()

    async def _iter(self):
        for message in self.messages:
            yield message


async def test_pumpportal_collects_creations():
    socket = FakeSocket([
        "not json",
        json.dumps({"message": "Successfully subscribed"}),
        json.dumps({"txType": "create", "mint": "PUMPMINT", "symbol": "PP", "name": "Pump",
                    "bondingCurveKey": "CURVE", "vSolInBondingCurve": 30}),
        json.dumps({"txType": "buy", "mint": "OTHER"}),
    ])
    feed = PumpPortalFeed({"sol_price_usd": 100}, connect=lambda uri: socket)

    pairs = await feed.list_new(FetchParams(limit=5))

    assert socket.sent == [{"method": "subscribeNewToken"}]
    assert [p.base_address for p in pairs] == ["PUMPMINT"]
    assert pairs[0].pair_address == "CURVE"
    assert pairs[0].liquidity_usd == 3000
    assert pairs[0].dex_id == "pump.fun"


async def test_pumpportal_connection_error_yields_nothing():
    def refuse(uri):
        raise OSError("connection refused")

    feed = PumpPortalFeed({}, connect=refuse)

    assert await feed.list_new(FetchParams()) == []


# -- apify ------------------------------------------------------------------------

def test_normalize_post_aliases():
    post = normalize_post({
        "id": 123,
        "fullText": "$FOO",
        "user": {"screen_name": "alice", "followers": "900"},
        "createdAt": "2026-01-01T00:00:00Z",
        "likeCount": 7,
        "retweetCount": "2",
    })

    assert post.id == "123"
    assert post.author == "alice"
    assert post.engagement == 9
    assert post.author_followers == 900


async def test_apify_drops_posts_outside_window():
    now = datetime(2026, 1, 1, 12, tzinfo=timezone.utc)

    def handler(request):
        assert request.url.params["token"] == "tok"
        assert json.loads(request.content)["twitterHandles"] == ["alice"]
        return httpx.Response(200, json=[
            {"id": 1, "text": "$NEW", "author": {"userName": "alice"}, "createdAt": "2026-01-01T11:30:00Z"},
            {"id": 2, "text": "$OLD", "author": {"userName": "alice"}, "createdAt": "2026-01-01T09:00:00Z"},
        ])

    client = ApifyClient({}, api_token="tok", http_client=mock_client(handler))

    posts = await client.recent_posts(["alice"], hours=1, now=now)

    assert [p.id for p in posts] == ["1"]


async def test_apify_reads_twitter_created_at():
    now = datetime(2026, 1, 1, 12, tzinfo=timezone.utc)

    def handler(request):
        return httpx.Response(200, json=[
            {"id": 1, "text": "$NEW", "author": {"userName": "alice"}, "createdAt": "Thu Jan 01 11:30:00 +0000 2026"},
            {"id": 2, "text": "$OLD", "author": {"userName": "alice"}, "createdAt": "Thu Jan 01 09:00:00 +0000 2026"},
        ])

    client = ApifyClient({}, api_token="tok", http_client=mock_client(handler))

    posts = await client.recent_posts(["alice"], hours=1, now=now)

    assert [p.id for p in posts] == ["1"]
    assert posts[0].created_at == datetime(2026, 1, 1, 11, 30, tzinfo=timezone.utc)

"""DexScreener client: poll-based pair listings and address lookups."""
from typing import Any, Optional

import structlog

from tokenradar.api.base import FetchParams, SourceAdapter, parse_timestamp, to_float, to_int
from tokenradar.models import MarketPair

logger = structlog.get_logger()

DEXSCREENER_API_URL = "https://api.dexscreener.com"

# The public API has no "all pairs" endpoint, so listings fan out over searches.
DEFAULT_SEARCH_QUERIES = ["SOL", "USDC", "BONK", "WIF", "PEPE", "DOGE", "FLOKI"]


class DexScreenerClient(SourceAdapter):
    """Client for the DexScreener public API."""

    name = "dexscreener"

    def __init__(self, config: Optional[dict] = None, **kwargs):
        config = config or {}
        kwargs.setdefault("request_delay", config.get("request_delay_seconds", 0.2))
        kwargs.setdefault("timeout", config.get("timeout_seconds", 15.0))
        super().__init__(**kwargs)
        self.chain = config.get("chain", "solana")
        self.queries = list(config.get("search_queries", DEFAULT_SEARCH_QUERIES))
        self.base_url = config.get("base_url", DEXSCREENER_API_URL)

    async def list_new(self, params: FetchParams) -> list[MarketPair]:
        return await self._search_pairs()

    async def list_trending(self, params: FetchParams) -> list[MarketPair]:
        return await self._search_pairs()

    async def lookup(self, address: str) -> list[MarketPair]:
        """Deepest-liquidity pair for a token address, as a 0- or 1-element list."""
        data = await self._get_json(f"{self.base_url}/tokens/v1/{self.chain}/{address}")
        if data is None:
            return []
        raw_pairs = data if isinstance(data, list) else data.get("pairs") or []
        pairs = [p for p in self._normalize_all(raw_pairs) if p.chain == self.chain]
        if not pairs:
            return []
        pairs.sort(key=lambda p: p.liquidity_usd or 0, reverse=True)
        return pairs[:1]

    async def _search_pairs(self) -> list[MarketPair]:
        seen = set()
        pairs = []
        for i, query in enumerate(self.queries):
            if i:
                await self.pause()
            data = await self._get_json(f"{self.base_url}/latest/dex/search", params={"q": query})
            if not data:
                continue
            for pair in self._normalize_all(data.get("pairs") or []):
                if pair.chain != self.chain or pair.pair_address in seen:
                    continue
                seen.add(pair.pair_address)
                pairs.append(pair)

        logger.info("fetched_pairs", source=self.name, count=len(pairs), queries=len(self.queries))
        return pairs

    def _normalize_all(self, items: list) -> list[MarketPair]:
        pairs = []
        for item in items:
            try:
                pairs.append(normalize_pair(item, source=self.name))
            except (AttributeError, KeyError, TypeError, ValueError) as e:
                logger.warning("failed_to_parse_pair", source=self.name, error=str(e))
        return pairs


def normalize_pair(raw: dict[str, Any], source: str = "dexscreener") -> MarketPair:
    """Map one DexScreener pair payload to a MarketPair."""
    if not isinstance(raw, dict):
        raise TypeError(f"pair payload must be an object, got {type(raw).__name__}")

    base = raw.get("baseToken") or {}
    volume = raw.get("volume") or {}
    change = raw.get("priceChange") or {}
    txns = raw.get("txns") or {}
    liquidity = raw.get("liquidity") or {}

    website, twitter, telegram = extract_socials(raw.get("info") or {})

    def window(group: dict, key: str, field: str) -> Optional[int]:
        return to_int((group.get(key) or {}).get(field))

    return MarketPair(
        chain=raw.get("chainId") or "solana",
        dex_id=(raw.get("dexId") or "").lower() or None,
        pair_address=raw.get("pairAddress") or None,
        base_address=base.get("address") or None,
        base_name=base.get("name") or None,
        base_symbol=base.get("symbol") or None,
        price_usd=to_float(raw.get("priceUsd")),
        liquidity_usd=to_float(liquidity.get("usd")),
        volume_h1=to_float(volume.get("h1")),
        volume_h6=to_float(volume.get("h6")),
        volume_h24=to_float(volume.get("h24")),
        price_change_h1=to_float(change.get("h1")),
        price_change_h6=to_float(change.get("h6")),
        price_change_h24=to_float(change.get("h24")),
        buys_h1=window(txns, "h1", "buys"),
        buys_h6=window(txns, "h6", "buys"),
        buys_h24=window(txns, "h24", "buys"),
        sells_h1=window(txns, "h1", "sells"),
        sells_h6=window(txns, "h6", "sells"),
        sells_h24=window(txns, "h24", "sells"),
        created_at=parse_timestamp(raw.get("pairCreatedAt")),
        website=website,
        twitter=twitter,
        telegram=telegram,
        source=source,
    )


def extract_socials(info: dict[str, Any]) -> tuple[Optional[str], Optional[str], Optional[str]]:
    """Website, Twitter and Telegram URLs from a pair's info block."""
    socials = info.get("socials") or []

    def by_type(name: str) -> Optional[dict]:
        for social in socials:
            kind = (social.get("type") or social.get("platform") or "").lower()
            if kind == name:
                return social
        return None

    def url_for(social: Optional[dict], prefix: str) -> Optional[str]:
        if not social:
            return None
        if social.get("url"):
            return social["url"]
        if social.get("handle"):
            return f"{prefix}{social['handle']}"
        return None

    websites = info.get("websites") or []
    website = websites[0].get("url") if websites and isinstance(websites[0], dict) else None
    return (
        website or None,
        url_for(by_type("twitter"), "https://twitter.com/"),
        url_for(by_type("telegram"), "https://t.me/"),
    )


def quality_score(pair: MarketPair) -> tuple[int, list[str]]:
    """Coarse quality check for poll-sourced pairs: liquidity, volume ratio, buy ratio, socials."""
    score = 0
    reasons = []
    liq = pair.liquidity_usd or 0
    vol = pair.volume_h24 or 0

    if liq > 50_000:
        score += 25
        reasons.append("✅ Strong liquidity")
    elif liq > 20_000:
        score += 15
    elif liq > 10_000:
        score += 10
    else:
        reasons.append("⚠️ Low liquidity")

    if liq > 0:
        ratio = vol / liq
        if 1 < ratio < 10:
            score += 20
            reasons.append("✅ Healthy volume")
        elif ratio >= 10:
            reasons.append("⚠️ Suspicious volume")

    buys = pair.buys_h24 or 0
    sells = pair.sells_h24 or 0
    if buys + sells > 0:
        buy_ratio = buys / (buys + sells)
        if 0.4 < buy_ratio < 0.7:
            score += 15
            reasons.append("✅ Balanced trading")
        elif buy_ratio < 0.3:
            reasons.append("⚠️ More sells than buys")

    if pair.twitter or pair.telegram:
        score += 10
        reasons.append("✅ Has socials")

    return score, reasons

"""Token pipeline: aggregate, gate, score and rank."""
import asyncio
from datetime import datetime, timezone
from typing import Callable, Optional

import structlog

from tokenradar.api.dexscreener import quality_score
from tokenradar.models import (
    CanonicalToken,
    Post,
    ScoredToken,
    ScoreSignals,
    SecurityVerdict,
    SocialSignal,
    Tier,
    View,
)

logger = structlog.get_logger()


class TokenPipeline:
    """Runs one scan cycle and returns scored tokens, best first."""

    def __init__(self, config: dict, aggregator, gate, scorer, extractor=None, lookup=None, search=None,
                 clock: Optional[Callable[[], datetime]] = None):
        pipeline = config.get("pipeline", {})

        self.aggregator = aggregator
        self.gate = gate
        self.scorer = scorer
        self.extractor = extractor
        self.lookup = lookup
        self.search = search

        self.min_score = pipeline.get("min_score", 28)
        self.listing_min_score = pipeline.get("listing_min_score", 15)
        self.min_quality = pipeline.get("min_quality", 10)
        self.poll_sources = set(pipeline.get("poll_sources", ["dexscreener"]))
        self.security_delay = pipeline.get("security_delay_seconds", 0.0)
        self.search_delay = pipeline.get("search_delay_seconds", 0.3)
        self.clock = clock or (lambda: datetime.now(timezone.utc))

    async def scan(self, view: View, primary=(), secondary=(), push=None,
                   limit: Optional[int] = None, tier: Tier = Tier.FREE,
                   max_age_minutes: Optional[float] = None,
                   min_liquidity: Optional[float] = None) -> list[ScoredToken]:
        tokens = await self.aggregator.fetch_view(
            view,
            primary=primary,
            secondary=secondary,
            push=push,
            limit=limit,
            tier=tier,
            max_age_minutes=max_age_minutes,
            min_liquidity=min_liquidity,
        )
        return await self.score_tokens(tokens, source=View(view).value)

    async def score_tokens(self, tokens: list[CanonicalToken], source: str = "scan",
                           social: Optional[dict[str, SocialSignal]] = None) -> list[ScoredToken]:
        scored = []
        skipped = 0
        for i, token in enumerate(tokens):
            if i and self.security_delay:
                await asyncio.sleep(self.security_delay)

            from_poll = bool(set(token.sources) & self.poll_sources)
            if from_poll:
                quality, _ = quality_score(token.pair)
                if quality < self.min_quality:
                    logger.debug("token_skipped", symbol=token.symbol, reason="low_quality", quality=quality)
                    skipped += 1
                    continue

            result = await self.score_token(token, source, (social or {}).get(token.key))
            if result is None:
                skipped += 1
                continue

            threshold = self.min_score if from_poll else self.listing_min_score
            if result.score < threshold:
                logger.debug("token_skipped", symbol=token.symbol, reason="score_too_low", score=result.score)
                skipped += 1
                continue
            scored.append(result)

        scored.sort(key=lambda s: s.score, reverse=True)
        logger.info("tokens_scored", source=source, scored=len(scored), skipped=skipped)
        return scored

    async def score_token(self, token: CanonicalToken, source: str,
                          social: Optional[SocialSignal] = None) -> Optional[ScoredToken]:
        """Gate and score one token. None when the gate rejects it."""
        verdict = await self.gate.assess(token.pair.base_address or token.key)
        if verdict is not None and verdict.rejected:
            logger.info("token_rejected", symbol=token.symbol, issues=verdict.issues)
            return None

        breakdown = self.scorer.score(self._signals(token, verdict, social))
        if verdict is not None:
            breakdown.warnings.extend(w for w in verdict.warnings if w not in breakdown.warnings)
        return ScoredToken(
            token=token,
            breakdown=breakdown,
            discovered_at=self.clock(),
            verdict=verdict,
            social=social,
            source=source,
        )

    async def scan_social(self, posts: list[Post]) -> list[ScoredToken]:
        """Score tokens that enough distinct authors are talking about."""
        if self.extractor is None or self.lookup is None:
            return []

        signals = self.extractor.signals(posts)
        scored = []
        for signal in signals:
            address = signal.address or await self._resolve_ticker(signal.token)
            if not address:
                logger.debug("ticker_unresolved", token=signal.token)
                continue

            try:
                pairs = await self.lookup.lookup(address)
            except Exception as e:
                logger.warning("social_lookup_failed", token=signal.token, error=str(e))
                continue
            if not pairs:
                continue

            pair = pairs[0]
            token = CanonicalToken(key=pair.canonical_key or address, pair=pair, sources=("social",))
            result = await self.score_token(token, "social", signal)
            if result is not None:
                scored.append(result)

        scored.sort(key=lambda s: s.score, reverse=True)
        logger.info("social_tokens_scored", signals=len(signals), scored=len(scored))
        return scored

    async def _resolve_ticker(self, token: str) -> Optional[str]:
        if self.search is None or not token.startswith("$"):
            return None
        try:
            address = await self.search.search_symbol(token[1:])
        except Exception as e:
            logger.warning("ticker_search_failed", token=token, error=str(e))
            return None
        if self.search_delay:
            await asyncio.sleep(self.search_delay)
        return address

    def _signals(self, token: CanonicalToken, verdict: Optional[SecurityVerdict],
                 social: Optional[SocialSignal]) -> ScoreSignals:
        pair = token.pair
        return ScoreSignals(
            liquidity=pair.liquidity_usd or 0.0,
            volume_24h=pair.volume_h24 or 0.0,
            price_change_24h=pair.price_change,
            age_minutes=pair.age_minutes(self.clock()),
            has_website=bool(pair.website),
            has_twitter=bool(pair.twitter),
            has_telegram=bool(pair.telegram),
            security_score=verdict.score if verdict else self.gate.neutral_score,
            top_holder_pct=verdict.top_holder_pct if verdict else 0.0,
            holder_count=verdict.holder_count if verdict else 0,
            is_honeypot=bool(verdict and verdict.is_honeypot),
            social_buzz=social.buzz_score if social else None,
            social_mentions=social.mentions if social else 0,
        )

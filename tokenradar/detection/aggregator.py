"""Multi-source aggregation of market pairs into ranked canonical tokens."""
import asyncio
import random
import time
from dataclasses import fields, replace
from datetime import datetime, timezone
from typing import Callable, Iterable, Optional, Sequence

import structlog

from tokenradar.api.base import FetchParams
from tokenradar.models import CanonicalToken, MarketPair, Tier, View

logger = structlog.get_logger()

DEFAULT_VENUES = ["raydium", "orca", "meteora", "pump.fun", "pumpswap"]

_OLDEST = datetime.min.replace(tzinfo=timezone.utc)

AdapterResults = Sequence[tuple[str, Sequence[MarketPair]]]


def merge_pairs(results: AdapterResults) -> list[CanonicalToken]:
    """Deduplicate by canonical key in adapter order.

    The first observation of a key wins; later observations only fill
    fields the merged record still lacks. Output keeps first-seen order.
    """
    merged: dict[str, MarketPair] = {}
    sources: dict[str, list[str]] = {}

    for name, pairs in results:
        for pair in pairs or ():
            key = pair.canonical_key
            if not key:
                continue
            current = merged.get(key)
            if current is None:
                merged[key] = pair
                sources[key] = [name]
                continue
            merged[key] = enrich(current, pair)
            if name not in sources[key]:
                sources[key].append(name)

    return [CanonicalToken(key=key, pair=pair, sources=tuple(sources[key])) for key, pair in merged.items()]


def enrich(current: MarketPair, other: MarketPair) -> MarketPair:
    """Fill the None fields of `current` from `other`; present fields never change."""
    updates = {}
    for f in fields(MarketPair):
        if getattr(current, f.name) is None:
            value = getattr(other, f.name)
            if value is not None:
                updates[f.name] = value
    return replace(current, **updates) if updates else current


def _clock_seeded_rng() -> random.Random:
    return random.Random(int(time.time() * 1000))


class Aggregator:
    """Merges adapter results for a view, filters, ranks and pages them."""

    def __init__(self, config: dict, rng_factory: Optional[Callable[[], random.Random]] = None,
                 clock: Optional[Callable[[], datetime]] = None):
        agg = config.get("aggregator", {})
        entitlements = config.get("entitlements", {})

        self.venues = {v.lower() for v in agg.get("venues", DEFAULT_VENUES)}

        # New pairs
        self.new_max_age_minutes = agg.get("new_max_age_minutes", 120)
        self.widen_factor = agg.get("widen_factor", 2)
        self.fallback_cap = agg.get("fallback_cap", 30)
        self.new_min_liquidity = agg.get("new_min_liquidity", 5000)
        self.new_min_volume = agg.get("new_min_volume", 100)

        # Trending / surge
        self.trending_min_liquidity = agg.get("trending_min_liquidity", 500)
        self.trending_min_volume = agg.get("trending_min_volume", 100)
        self.surge_min_volume = agg.get("surge_min_volume", 20_000)

        # Fetching
        self.push_timeout = agg.get("push_timeout_seconds", 10)
        self.push_grace = agg.get("push_grace_seconds", 1.0)
        self.adapter_timeout = agg.get("adapter_timeout_seconds", 30)

        self.tier_limits = {
            Tier.FREE: entitlements.get("free", 10),
            Tier.PAID: entitlements.get("paid", 80),
        }

        self.rng_factory = rng_factory or _clock_seeded_rng
        self.clock = clock or (lambda: datetime.now(timezone.utc))

    def page_size(self, limit: Optional[int], tier: Tier) -> int:
        ceiling = self.tier_limits.get(tier, self.tier_limits[Tier.FREE])
        if limit is None:
            return ceiling
        return max(0, min(limit, ceiling))

    def aggregate(
        self,
        view: View,
        primary: AdapterResults,
        secondary: AdapterResults = (),
        limit: Optional[int] = None,
        tier: Tier = Tier.FREE,
        max_age_minutes: Optional[float] = None,
        min_liquidity: Optional[float] = None,
        min_volume: Optional[float] = None,
    ) -> list[CanonicalToken]:
        """Rank already-fetched adapter results for one view."""
        view = View(view)
        now = self.clock()

        reported = merge_pairs(primary)
        eligible = [t for t in reported if self._venue_ok(t.pair)]
        eligible = [t for t in eligible if self._passes_view_filter(view, t.pair, min_liquidity, min_volume)]

        if view is View.NEW:
            candidates = self._new_window(eligible, now, max_age_minutes)
        else:
            candidates = eligible

        # Secondary listings only add tokens the primary feed has not reported,
        # including the ones it reported and the filters dropped.
        present = {t.key for t in reported} | {t.pair.base_address for t in reported if t.pair.base_address}
        for token in merge_pairs(secondary):
            address = token.pair.base_address
            if token.pair.dex_id and not self._venue_ok(token.pair):
                continue
            if address and address not in present:
                present.add(address)
                candidates.append(token)

        candidates = self._sort(view, candidates)

        if view is View.NEW:
            # Presentation only: varies the visible page between fetches.
            self.rng_factory().shuffle(candidates)

        size = self.page_size(limit, tier)
        logger.info(
            "view_aggregated",
            view=view.value,
            eligible=len(eligible),
            candidates=len(candidates),
            returned=min(size, len(candidates)),
        )
        return candidates[:size]

    async def fetch_view(
        self,
        view: View,
        primary: Sequence = (),
        secondary: Sequence = (),
        push=None,
        limit: Optional[int] = None,
        tier: Tier = Tier.FREE,
        max_age_minutes: Optional[float] = None,
        min_liquidity: Optional[float] = None,
    ) -> list[CanonicalToken]:
        """Fetch from the adapters and aggregate. Adapter failures only shrink the result."""
        view = View(view)
        size = self.page_size(limit, tier)
        params = FetchParams(
            limit=max(size * 2, 1),
            min_liquidity=min_liquidity if min_liquidity is not None else 0.0,
            max_age_minutes=max_age_minutes,
        )

        secondary = list(secondary) if view is View.NEW else []
        secondary_task = asyncio.ensure_future(asyncio.gather(
            *(self._call(a, view, params, self.adapter_timeout) for a in secondary)
        ))

        primary_results = []
        relaxed = False
        if view is View.NEW and push is not None:
            pushed = await self._call(push, view, params, self._push_deadline(push))
            if pushed:
                primary_results.append((push.name, pushed))
                # Push events carry no liquidity/volume yet.
                relaxed = True
            else:
                logger.info("push_feed_empty_falling_back", source=push.name)

        if not primary_results:
            polled = await asyncio.gather(
                *(self._call(a, view, params, self.adapter_timeout) for a in primary)
            )
            primary_results = [(a.name, pairs) for a, pairs in zip(primary, polled)]

        secondary_results = [(a.name, pairs) for a, pairs in zip(secondary, await secondary_task)]

        return self.aggregate(
            view,
            primary_results,
            secondary_results,
            limit=limit,
            tier=tier,
            max_age_minutes=max_age_minutes,
            min_liquidity=0 if relaxed else min_liquidity,
            min_volume=0 if relaxed else None,
        )

    def _push_deadline(self, push) -> float:
        """Outer timeout for a push adapter; always outlasts the adapter's own listen window."""
        listen = getattr(push, "listen_seconds", None)
        if listen is not None and listen >= self.push_timeout:
            deadline = listen + self.push_grace
            logger.warning(
                "push_timeout_extended",
                source=push.name,
                push_timeout=self.push_timeout,
                listen_seconds=listen,
                deadline=deadline,
            )
            return deadline
        return self.push_timeout

    async def _call(self, adapter, view: View, params: FetchParams, timeout: float) -> list[MarketPair]:
        method = adapter.list_new if view is View.NEW else adapter.list_trending
        try:
            return list(await asyncio.wait_for(method(params), timeout=timeout))
        except asyncio.TimeoutError:
            logger.warning("adapter_timeout", source=adapter.name, view=view.value, timeout=timeout)
        except Exception as e:
            logger.warning("adapter_failed", source=adapter.name, view=view.value, error=str(e))
        return []

    def _venue_ok(self, pair: MarketPair) -> bool:
        return (pair.dex_id or "").lower() in self.venues

    def _passes_view_filter(self, view: View, pair: MarketPair,
                            min_liquidity: Optional[float], min_volume: Optional[float]) -> bool:
        liquidity = pair.liquidity_usd or 0
        volume = pair.volume_h24 or 0
        if view is View.NEW:
            floor = self.new_min_liquidity if min_liquidity is None else min_liquidity
            vol_floor = self.new_min_volume if min_volume is None else min_volume
            return liquidity >= floor and volume >= vol_floor
        if view is View.TRENDING:
            floor = self.trending_min_liquidity if min_liquidity is None else min_liquidity
            vol_floor = self.trending_min_volume if min_volume is None else min_volume
            return liquidity >= floor and volume >= vol_floor
        vol_floor = self.surge_min_volume if min_volume is None else min_volume
        floor = 0 if min_liquidity is None else min_liquidity
        return volume >= vol_floor and liquidity >= floor

    def _new_window(self, eligible: list[CanonicalToken], now: datetime,
                    max_age_minutes: Optional[float]) -> list[CanonicalToken]:
        """Strict age window, then a widened one, then the whole eligible set."""
        window = self.new_max_age_minutes if max_age_minutes is None else max_age_minutes

        for minutes in (window, window * self.widen_factor):
            in_window = [t for t in eligible if _within(t.pair, now, minutes)]
            if in_window:
                if minutes != window:
                    logger.info("new_window_widened", minutes=minutes, count=len(in_window))
                return in_window

        logger.info("new_window_empty_using_eligible", eligible=len(eligible))
        return self._sort(View.NEW, list(eligible))[:self.fallback_cap]

    def _sort(self, view: View, tokens: Iterable[CanonicalToken]) -> list[CanonicalToken]:
        tokens = list(tokens)
        if view is View.NEW:
            tokens.sort(key=lambda t: t.pair.created_at or _OLDEST, reverse=True)
        elif view is View.TRENDING:
            tokens.sort(key=lambda t: (t.pair.volume_h24 or 0) * (1 + t.pair.price_change / 100), reverse=True)
        else:
            tokens.sort(key=lambda t: t.pair.volume_h24 or 0, reverse=True)
        return tokens


def _within(pair: MarketPair, now: datetime, minutes: float) -> bool:
    age = pair.age_minutes(now)
    return age is not None and age <= minutes

from datetime import datetime, timedelta, timezone

import pytest

from tokenradar.models import MarketPair

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def clock():
    return lambda: NOW


@pytest.fixture
def make_pair():
    def factory(address, dex="raydium", liquidity=10_000.0, volume=1_000.0, age_minutes=30.0, **kwargs):
        created_at = NOW - timedelta(minutes=age_minutes) if age_minutes is not None else None
        kwargs.setdefault("pair_address", f"pair-{address}")
        kwargs.setdefault("base_symbol", address.upper()[:6])
        return MarketPair(
            dex_id=dex,
            base_address=address,
            liquidity_usd=liquidity,
            volume_h24=volume,
            created_at=created_at,
            **kwargs,
        )
    return factory

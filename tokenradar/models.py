"""Data models for Token Radar."""
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional


class View(str, Enum):
    """Aggregation views over the market feeds."""
    NEW = "new"
    TRENDING = "trending"
    SURGE = "surge"


class Tier(str, Enum):
    """Caller entitlement tier, bounds the page size."""
    FREE = "free"
    PAID = "paid"


@dataclass(frozen=True)
class SocialLinks:
    """Project links advertised for a token."""
    website: Optional[str] = None
    twitter: Optional[str] = None
    telegram: Optional[str] = None


@dataclass(frozen=True)
class MarketPair:
    """A token/liquidity-pair snapshot normalized from one provider."""
    chain: str = "solana"
    dex_id: Optional[str] = None
    pair_address: Optional[str] = None
    base_address: Optional[str] = None
    base_name: Optional[str] = None
    base_symbol: Optional[str] = None
    price_usd: Optional[float] = None
    liquidity_usd: Optional[float] = None
    volume_h1: Optional[float] = None
    volume_h6: Optional[float] = None
    volume_h24: Optional[float] = None
    price_change_h1: Optional[float] = None
    price_change_h6: Optional[float] = None
    price_change_h24: Optional[float] = None
    buys_h1: Optional[int] = None
    buys_h6: Optional[int] = None
    buys_h24: Optional[int] = None
    sells_h1: Optional[int] = None
    sells_h6: Optional[int] = None
    sells_h24: Optional[int] = None
    created_at: Optional[datetime] = None
    website: Optional[str] = None
    twitter: Optional[str] = None
    telegram: Optional[str] = None
    source: str = "unknown"

    @property
    def canonical_key(self) -> Optional[str]:
        """Dedup identity: base token address, else the pair address."""
        return self.base_address or self.pair_address or None

    @property
    def links(self) -> SocialLinks:
        return SocialLinks(website=self.website, twitter=self.twitter, telegram=self.telegram)

    @property
    def price_change(self) -> float:
        """Longest available price-change window."""
        if self.price_change_h24 is not None:
            return self.price_change_h24
        return self.price_change_h6 or 0.0

    def age_minutes(self, now: datetime) -> Optional[float]:
        if self.created_at is None:
            return None
        return (now - self.created_at).total_seconds() / 60


@dataclass(frozen=True)
class CanonicalToken:
    """A deduplicated token: merged pair plus the adapters that reported it."""
    key: str
    pair: MarketPair
    sources: tuple[str, ...] = ()

    @property
    def symbol(self) -> str:
        return self.pair.base_symbol or "—"

    @property
    def name(self) -> str:
        return self.pair.base_name or "—"


@dataclass
class SecurityVerdict:
    """Security assessment of a token."""
    address: str
    score: int
    top_holder_pct: float = 0.0
    holder_count: int = 0
    is_honeypot: bool = False
    is_mintable: bool = False
    lp_locked: bool = False
    status: str = "pass"  # "pass", "flag" or "reject"
    issues: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    strengths: list[str] = field(default_factory=list)

    @property
    def rejected(self) -> bool:
        return self.status == "reject"


@dataclass
class Post:
    """A social post that may mention tokens."""
    id: str
    text: str
    author: str
    created_at: Optional[datetime] = None
    likes: int = 0
    reshares: int = 0
    replies: int = 0
    author_followers: int = 0
    author_verified: bool = False

    @property
    def engagement(self) -> int:
        return self.likes + self.reshares


@dataclass
class MentionCluster:
    """All posts mentioning one token identifier."""
    token: str
    address: Optional[str] = None
    posts: list[Post] = field(default_factory=list)
    authors: list[str] = field(default_factory=list)
    total_engagement: int = 0
    first_seen_at: Optional[datetime] = None

    @property
    def mention_count(self) -> int:
        return len(self.posts)

    @property
    def unique_authors(self) -> int:
        return len(self.authors)

    @property
    def avg_engagement(self) -> float:
        if not self.posts:
            return 0.0
        return self.total_engagement / len(self.posts)


@dataclass
class SocialSignal:
    """Scored social buzz for one token identifier."""
    token: str
    address: Optional[str]
    mentions: int
    unique_authors: int
    avg_engagement: float
    organic: Optional[bool]
    buzz_score: int


@dataclass
class ScoreSignals:
    """Normalized inputs to the viral scorer."""
    liquidity: float = 0.0
    volume_24h: float = 0.0
    price_change_24h: float = 0.0
    age_minutes: Optional[float] = None
    has_website: bool = False
    has_twitter: bool = False
    has_telegram: bool = False
    security_score: float = 0.0
    top_holder_pct: float = 0.0
    holder_count: int = 0
    is_honeypot: bool = False
    social_buzz: Optional[int] = None
    social_mentions: int = 0


@dataclass
class ScoreBreakdown:
    """Viral score with its components and display notes."""
    total: int = 0
    social_buzz: float = 0.0
    security: float = 0.0
    liquidity: float = 0.0
    social_presence: float = 0.0
    timing: float = 0.0
    warnings: list[str] = field(default_factory=list)
    strengths: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "total": self.total,
            "social_buzz": self.social_buzz,
            "security": self.security,
            "liquidity": self.liquidity,
            "social_presence": self.social_presence,
            "timing": self.timing,
            "warnings": list(self.warnings),
            "strengths": list(self.strengths),
        }


@dataclass
class ScoredToken:
    """A token that went through the gate and the scorer."""
    token: CanonicalToken
    breakdown: ScoreBreakdown
    discovered_at: datetime
    verdict: Optional[SecurityVerdict] = None
    social: Optional[SocialSignal] = None
    source: str = "unknown"

    @property
    def score(self) -> int:
        return self.breakdown.total


@dataclass(frozen=True)
class TrackedWallet:
    """A watched wallet."""
    address: str
    label: Optional[str] = None


@dataclass(frozen=True)
class WalletBuyEvent:
    """One token bought by a tracked wallet."""
    wallet: str
    mint: str
    timestamp: datetime
    signature: Optional[str] = None


@dataclass(frozen=True)
class AlertBuyer:
    address: str
    label: Optional[str] = None

    @property
    def display_name(self) -> str:
        return self.label or f"{self.address[:4]}…{self.address[-4:]}"


@dataclass
class CoBuyAlert:
    """A token bought by a quorum of tracked wallets."""
    mint: str
    symbol: str
    name: str
    buyers: list[AlertBuyer]
    liquidity_usd: Optional[float] = None
    price_usd: Optional[float] = None

    @property
    def buyer_count(self) -> int:
        return len({b.address for b in self.buyers})


@dataclass(frozen=True)
class AlertRules:
    """Quorum rules for co-buy alerts."""
    min_buyers: int = 3
    max_lookback_hours: int = 24
    max_alerts: int = 30

    def __post_init__(self):
        for name in ("min_buyers", "max_lookback_hours", "max_alerts"):
            value = getattr(self, name)
            if not isinstance(value, int) or isinstance(value, bool) or value < 1:
                raise ValueError(f"{name} must be an integer >= 1, got {value!r}")

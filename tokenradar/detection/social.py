"""Social signal extraction: token mentions in posts, clustered and weighted by author."""
import math
import re
from typing import Optional

import structlog

from tokenradar.models import MentionCluster, Post, SocialSignal

logger = structlog.get_logger()

# Base58 run of address length, not glued to any other ASCII letter or digit.
ADDRESS_PATTERN = re.compile(r"(?<![A-Za-z0-9])[1-9A-HJ-NP-Za-km-z]{32,44}(?![A-Za-z0-9])")
# $TICKER: 2-10 uppercase letters, not part of a longer word.
TICKER_PATTERN = re.compile(r"(?<![A-Za-z0-9$])\$([A-Z]{2,10})(?![A-Za-z0-9])")

_URL_PATTERN = re.compile(r"https?://\S+")
_SPACE_PATTERN = re.compile(r"\s+")

DEFAULT_TIER_WEIGHTS = {
    "elite": 3.0,
    "ecosystem": 2.5,
    "whale": 2.5,
    "momentum": 2.0,
    "culture": 1.5,
    "news": 1.0,
}


def find_token_identifiers(text: str) -> list[tuple[str, Optional[str]]]:
    """(identifier, address) pairs mentioned in a text, tickers first, each once."""
    found = []
    seen = set()
    for match in TICKER_PATTERN.finditer(text or ""):
        key = f"${match.group(1)}"
        if key not in seen:
            seen.add(key)
            found.append((key, None))
    for match in ADDRESS_PATTERN.finditer(text or ""):
        key = match.group(0)
        if key not in seen:
            seen.add(key)
            found.append((key, key))
    return found


def extract_mentions(posts: list[Post]) -> dict[str, MentionCluster]:
    """Cluster posts by the token identifiers they mention."""
    clusters: dict[str, MentionCluster] = {}
    for post in posts:
        for token, address in find_token_identifiers(post.text):
            cluster = clusters.get(token)
            if cluster is None:
                cluster = MentionCluster(token=token, address=address, first_seen_at=post.created_at)
                clusters[token] = cluster
            cluster.posts.append(post)
            cluster.total_engagement += post.engagement
            if post.author not in cluster.authors:
                cluster.authors.append(post.author)
            if post.created_at and (cluster.first_seen_at is None or post.created_at < cluster.first_seen_at):
                cluster.first_seen_at = post.created_at
    return clusters


class AuthorWeights:
    """Curated author tiers; untracked authors weigh 1.0."""

    def __init__(self, tiers: Optional[dict] = None, default_weight: float = 1.0):
        self.default_weight = default_weight
        self._weights: dict[str, float] = {}
        self._tiers: dict[str, str] = {}
        for tier, entry in (tiers or {}).items():
            weight = entry.get("weight", DEFAULT_TIER_WEIGHTS.get(tier, default_weight))
            for handle in entry.get("handles", []):
                key = handle.lower()
                # First listed tier wins for handles present in several.
                if key not in self._weights:
                    self._weights[key] = float(weight)
                    self._tiers[key] = tier

    @classmethod
    def from_config(cls, config: dict) -> "AuthorWeights":
        social = config.get("social", {})
        return cls(social.get("author_tiers", {}), social.get("default_author_weight", 1.0))

    def weight(self, author: str) -> float:
        return self._weights.get((author or "").lower(), self.default_weight)

    def tier(self, author: str) -> str:
        return self._tiers.get((author or "").lower(), "untracked")

    @property
    def handles(self) -> list[str]:
        return list(self._weights)


class HeuristicOrganicClassifier:
    """Flags mention clusters that look like coordinated promotion.

    Two patterns count as coordinated: most posts repeating the same text
    across different authors, or every post landing inside a short burst
    while drawing almost no engagement.
    """

    def __init__(self, config: Optional[dict] = None):
        social = (config or {}).get("social", {})
        self.duplicate_ratio = social.get("duplicate_ratio", 0.5)
        self.burst_window_seconds = social.get("burst_window_seconds", 120)
        self.burst_min_posts = social.get("burst_min_posts", 3)
        self.low_engagement = social.get("low_engagement", 10)

    def classify(self, cluster: MentionCluster) -> Optional[bool]:
        """True organic, False coordinated, None when there is nothing to judge."""
        if not cluster.posts:
            return None

        texts: dict[str, set] = {}
        for post in cluster.posts:
            texts.setdefault(_normalize_text(post.text), set()).add(post.author)
        duplicated = sum(
            1 for post in cluster.posts if len(texts[_normalize_text(post.text)]) > 1
        )
        if duplicated / len(cluster.posts) >= self.duplicate_ratio:
            return False

        stamps = [p.created_at for p in cluster.posts if p.created_at is not None]
        if len(stamps) >= self.burst_min_posts:
            span = (max(stamps) - min(stamps)).total_seconds()
            if span <= self.burst_window_seconds and cluster.avg_engagement < self.low_engagement:
                return False

        return True


class SocialSignalExtractor:
    """Scores social buzz per token from a batch of posts."""

    def __init__(self, config: dict, weights: Optional[AuthorWeights] = None, classifier=None):
        social = config.get("social", {})
        self.min_unique_authors = social.get("min_unique_authors", 3)
        self.inorganic_discount = social.get("inorganic_discount", 0.5)
        self.weights = weights or AuthorWeights.from_config(config)
        self.classifier = classifier or HeuristicOrganicClassifier(config)

    def signals(self, posts: list[Post]) -> list[SocialSignal]:
        clusters = extract_mentions(posts)
        logger.info("mentions_extracted", posts=len(posts), tokens=len(clusters))

        signals = []
        for cluster in clusters.values():
            if cluster.unique_authors < self.min_unique_authors:
                continue
            organic = self._classify(cluster)
            signals.append(SocialSignal(
                token=cluster.token,
                address=cluster.address,
                mentions=cluster.mention_count,
                unique_authors=cluster.unique_authors,
                avg_engagement=cluster.avg_engagement,
                organic=organic,
                buzz_score=self.buzz_score(cluster, organic),
            ))

        signals.sort(key=lambda s: s.buzz_score, reverse=True)
        return signals

    def buzz_score(self, cluster: MentionCluster, organic: Optional[bool] = True) -> int:
        authors = cluster.unique_authors
        if authors >= 10:
            score = 15
        elif authors >= 7:
            score = 12
        elif authors >= 5:
            score = 10
        else:
            score = 7

        if cluster.authors:
            mean_weight = sum(self.weights.weight(a) for a in cluster.authors) / len(cluster.authors)
            score += min(10, math.floor(mean_weight * 3))

        engagement = cluster.avg_engagement
        if engagement > 100:
            score += 10
        elif engagement > 50:
            score += 7
        elif engagement > 20:
            score += 5
        else:
            score += 2

        if organic is False:
            score = math.floor(score * self.inorganic_discount)
        return score

    def _classify(self, cluster: MentionCluster) -> Optional[bool]:
        try:
            return self.classifier.classify(cluster)
        except Exception as e:
            logger.warning("mention_classification_failed", token=cluster.token, error=str(e))
            return None


def _normalize_text(text: str) -> str:
    text = _URL_PATTERN.sub("", (text or "").lower())
    return _SPACE_PATTERN.sub(" ", text).strip()

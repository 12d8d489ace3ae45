"""Apify tweet-scraper client: recent posts from watched accounts."""
import os
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

import structlog

from tokenradar.api.base import BaseClient, parse_timestamp, to_int
from tokenradar.models import Post

logger = structlog.get_logger()

APIFY_API_URL = "https://api.apify.com/v2"
APIFY_ACTOR_ID = "apidojo~tweet-scraper"


class ApifyClient(BaseClient):
    """Runs the tweet scraper synchronously and returns its dataset items as Posts."""

    name = "apify"

    def __init__(self, config: Optional[dict] = None, api_token: Optional[str] = None, **kwargs):
        config = config or {}
        kwargs.setdefault("timeout", config.get("timeout_seconds", 120.0))
        super().__init__(**kwargs)
        self.api_token = api_token if api_token is not None else os.getenv("APIFY_API_TOKEN", "")
        self.actor_id = config.get("actor_id", APIFY_ACTOR_ID)
        self.max_handles = config.get("max_handles", 55)
        self.max_items = config.get("max_items", 50)
        self.base_url = config.get("base_url", APIFY_API_URL)

    @property
    def is_configured(self) -> bool:
        return bool(self.api_token)

    async def recent_posts(self, handles: list[str], hours: float = 1,
                           now: Optional[datetime] = None) -> list[Post]:
        if not self.is_configured:
            logger.debug("apify_not_configured")
            return []

        data = await self._post_json(
            f"{self.base_url}/acts/{self.actor_id}/run-sync-get-dataset-items",
            params={"token": self.api_token},
            json={"twitterHandles": handles[:self.max_handles], "maxItems": self.max_items},
        )
        if not isinstance(data, list):
            return []

        cutoff = (now or datetime.now(timezone.utc)) - timedelta(hours=hours)
        posts = []
        for item in data:
            try:
                post = normalize_post(item)
            except (AttributeError, TypeError, ValueError) as e:
                logger.warning("failed_to_parse_post", source=self.name, error=str(e))
                continue
            if post.created_at is not None and post.created_at > cutoff:
                posts.append(post)

        logger.info("fetched_posts", source=self.name, count=len(posts), handles=len(handles))
        return posts


def normalize_post(item: dict[str, Any]) -> Post:
    """Map one scraper item to a Post, tolerating the scraper's field aliases."""
    author = item.get("author") or {}
    user = item.get("user") or {}
    metrics = item.get("metrics") or {}

    username = (
        author.get("userName") or user.get("screen_name") or user.get("userName")
        or item.get("username") or "unknown"
    )

    def first(*values) -> int:
        for value in values:
            parsed = to_int(value)
            if parsed is not None:
                return parsed
        return 0

    return Post(
        id=str(item.get("id") or item.get("tweetId") or ""),
        text=item.get("text") or item.get("full_text") or item.get("fullText") or "",
        author=username,
        created_at=parse_timestamp(item.get("created_at") or item.get("createdAt") or item.get("postedAt")),
        likes=first(item.get("favoriteCount"), item.get("likeCount"), metrics.get("likes")),
        reshares=first(item.get("retweetCount"), metrics.get("retweets")),
        replies=first(item.get("replyCount"), metrics.get("replies")),
        author_followers=first(author.get("followers"), user.get("followers")),
        author_verified=bool(author.get("isVerified", user.get("verified", False))),
    )

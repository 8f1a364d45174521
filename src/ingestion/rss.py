"""
News headlines from RSS feeds
"""
import logging
from datetime import datetime, timezone
from typing import List, Optional

import feedparser
import httpx

from core.errors import CollectionError
from ingestion.base import NewsItem, SignalCollector, SignalEvent
from services.config import NewsFeedConfig

logger = logging.getLogger(__name__)

POSITIVE_WORDS = [
    "win", "success", "grow", "gain", "rise", "increase", "improve", "boost",
    "breakthrough", "celebrate", "positive", "benefit", "advantage", "innovation",
    "progress", "achievement", "discovery", "advance", "revolutionize", "solution",
]

NEGATIVE_WORDS = [
    "loss", "fail", "crash", "decline", "drop", "decrease", "collapse", "crisis",
    "cut", "danger", "threat", "risk", "fear", "concern", "warning", "disaster",
    "struggle", "problem", "conflict", "controversy", "attack", "damage", "died",
]

STOP_WORDS = {
    "the", "a", "an", "and", "or", "but", "in", "on", "at", "to", "for", "with",
    "about", "from", "as", "by", "into", "like", "through",
}


def estimate_sentiment(headline: str) -> float:
    """Naive word-list sentiment in [-1.0, 1.0]."""
    headline = headline.lower()
    positive = sum(1 for word in POSITIVE_WORDS if word in headline)
    negative = sum(1 for word in NEGATIVE_WORDS if word in headline)
    total = positive + negative
    if total == 0:
        return 0.0
    return (positive - negative) / total


def extract_keywords(headline: str, category: str) -> List[str]:
    keywords = []
    for word in headline.lower().split():
        word = word.strip(".,;:!?\"'()[]{}")
        if len(word) > 3 and word not in STOP_WORDS:
            keywords.append(word)
    keywords.append(category)
    return keywords


def _published(entry) -> Optional[datetime]:
    parsed = entry.get("published_parsed") or entry.get("updated_parsed")
    if not parsed:
        return None
    return datetime(*parsed[:6], tzinfo=timezone.utc)


class NewsCollector(SignalCollector):
    """
    Collects headlines from a list of RSS feeds.
    Each headline is tagged with its feed's category.
    """

    kind = "news"

    def __init__(self, feeds: List[NewsFeedConfig], max_items_per_feed: int = 20, timeout: float = 30.0):
        self.feeds = feeds
        self.max_items_per_feed = max_items_per_feed
        self.timeout = timeout
        self.name = "rss"

    def parse_feed(self, text: str, feed: NewsFeedConfig) -> List[NewsItem]:
        parsed = feedparser.parse(text)
        items: List[NewsItem] = []

        for entry in parsed.entries[:self.max_items_per_feed]:
            headline = (entry.get("title") or "").strip()
            if not headline:
                continue

            items.append(
                NewsItem(
                    headline=headline,
                    source=feed.name,
                    content=entry.get("summary", "") or "",
                    url=entry.get("link", "") or "",
                    category=feed.category,
                    keywords=extract_keywords(headline, feed.category),
                    sentiment=estimate_sentiment(headline),
                    published_at=_published(entry),
                )
            )

        return items

    async def collect(self) -> SignalEvent:
        if not self.feeds:
            raise CollectionError("No news feeds configured", kind=self.kind)

        items: List[NewsItem] = []

        async with httpx.AsyncClient(timeout=self.timeout, follow_redirects=True) as client:
            for feed in self.feeds:
                try:
                    resp = await client.get(feed.url)
                    resp.raise_for_status()
                except httpx.HTTPError as e:
                    logger.warning(f"Failed to fetch feed {feed.name}: {e}")
                    continue

                feed_items = self.parse_feed(resp.text, feed)
                logger.debug(f"Fetched {len(feed_items)} items from {feed.name}")
                items.extend(feed_items)

        if not items:
            raise CollectionError("No headlines fetched from any feed", kind=self.kind)

        return SignalEvent(kind=self.kind, value=items, source=self.name)

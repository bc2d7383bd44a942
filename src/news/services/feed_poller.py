"""
Feed Poller
Fetches the configured RSS feeds and hands each entry to the orchestrator,
a bounded number per feed and paced by a fixed delay between articles.
"""

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import feedparser
import httpx
import structlog

from ...core.retry import Sleep
from ...exceptions import FeedFetchError
from ...utils.url_utils import extract_domain
from ..models.article import ArticleCandidate, ArticleOutcome, FeedEntry
from .content_scraper import USER_AGENT
from .ingestion_orchestrator import IngestionOrchestrator

logger = structlog.get_logger(__name__)


@dataclass
class FeedResult:
    category: str
    feed_url: str
    entries: int = 0
    outcomes: List[ArticleOutcome] = field(default_factory=list)
    error: Optional[str] = None


@dataclass
class PollSummary:
    feeds: List[FeedResult] = field(default_factory=list)

    @property
    def failed_feeds(self) -> int:
        return sum(1 for feed in self.feeds if feed.error)

    def count(self, state: str) -> int:
        return sum(1 for feed in self.feeds for outcome in feed.outcomes if outcome.state.value == state)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "feeds": len(self.feeds),
            "failed_feeds": self.failed_feeds,
            "persisted": self.count("persisted"),
            "skipped": self.count("skipped"),
            "no_content": self.count("no_content"),
            "failed": self.count("failed"),
        }


def _entry_published_at(entry) -> Optional[datetime]:
    parsed = entry.get("published_parsed") or entry.get("updated_parsed")
    if not parsed:
        return None
    try:
        return datetime(*parsed[:6], tzinfo=timezone.utc)
    except (TypeError, ValueError):
        return None


def _entry_image_url(entry) -> Optional[str]:
    for enclosure in entry.get("enclosures") or []:
        href = enclosure.get("href") or enclosure.get("url")
        if href and (enclosure.get("type") or "image/").startswith("image/"):
            return href
    for key in ("media_content", "media_thumbnail"):
        for media in entry.get(key) or []:
            if media.get("url"):
                return media["url"]
    return None


def parse_feed(content: bytes, category: str, feed_url: str) -> List[FeedEntry]:
    feed = feedparser.parse(content)
    if feed.bozo and not feed.entries:
        raise FeedFetchError(
            f"Unparseable feed {feed_url}",
            details={"error": str(feed.get("bozo_exception"))}
        )

    source = feed.feed.get("title") or extract_domain(feed_url)
    entries = []
    for entry in feed.entries:
        link = (entry.get("link") or "").strip()
        if not link:
            continue
        entries.append(FeedEntry(
            link=link,
            title=(entry.get("title") or "").strip(),
            category=category,
            source=source,
            enclosure_url=_entry_image_url(entry),
            published_at=_entry_published_at(entry),
        ))
    return entries


class FeedPoller:

    def __init__(
        self,
        orchestrator: IngestionOrchestrator,
        max_entries: int = 5,
        article_delay_seconds: float = 5.0,
        timeout_seconds: float = 15.0,
        sleep: Optional[Sleep] = None
    ):
        self.orchestrator = orchestrator
        self.max_entries = max_entries
        self.article_delay_seconds = article_delay_seconds
        self.timeout_seconds = timeout_seconds
        self.sleep = sleep or asyncio.sleep

    async def fetch_feed(self, category: str, feed_url: str) -> List[FeedEntry]:
        try:
            async with httpx.AsyncClient(
                timeout=self.timeout_seconds,
                headers={"User-Agent": USER_AGENT},
                follow_redirects=True,
            ) as client:
                response = await client.get(feed_url)
                response.raise_for_status()
        except httpx.HTTPError as e:
            raise FeedFetchError(f"Failed to fetch feed {feed_url}", details={"error": str(e)}) from e

        return parse_feed(response.content, category, feed_url)

    async def poll_all(self, feed_map: Dict[str, str]) -> PollSummary:
        """Poll every feed in order; one failing feed never stops the others."""
        summary = PollSummary()
        processed = 0

        for category, feed_url in feed_map.items():
            result = FeedResult(category=category, feed_url=feed_url)
            summary.feeds.append(result)
            try:
                entries = (await self.fetch_feed(category, feed_url))[:self.max_entries]
            except Exception as e:
                result.error = str(e)
                logger.error("Feed poll failed", category=category, feed_url=feed_url, error=str(e))
                continue

            result.entries = len(entries)
            logger.info("Feed fetched", category=category, entries=len(entries))

            for entry in entries:
                if processed and self.article_delay_seconds > 0:
                    await self.sleep(self.article_delay_seconds)
                outcome = await self.orchestrator.process_article(ArticleCandidate.from_feed_entry(entry))
                result.outcomes.append(outcome)
                processed += 1

        logger.info("Feed poll finished", **summary.to_dict())
        return summary

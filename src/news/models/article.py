from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

from ...utils.url_utils import document_key


DEFAULT_TITLE = "Untitled News"
DEFAULT_SOURCE = "Unknown"
DEFAULT_CATEGORY = "general"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class ArticleRecord:
    """
    Persisted unit, one Firestore document per source URL.
    A record whose description is non-empty is complete and never reprocessed.
    """
    url: str
    title: str
    description: str
    category: str = DEFAULT_CATEGORY
    source: str = DEFAULT_SOURCE
    image_url: Optional[str] = None
    published_at: Optional[datetime] = None
    scraped_text: Optional[str] = None

    @property
    def document_key(self) -> str:
        return document_key(self.url)

    @property
    def is_complete(self) -> bool:
        return bool(self.description and self.description.strip())

    def to_document(self) -> Dict[str, Any]:
        """Firestore field map; None values are left out so merge writes keep stored values."""
        document = {
            "url": self.url,
            "title": self.title,
            "description": self.description,
            "category": self.category,
            "source": self.source,
            "imageUrl": self.image_url,
            "publishedAt": self.published_at,
            "scrapedText": self.scraped_text,
        }
        return {key: value for key, value in document.items() if value is not None}

    def to_response(self) -> Dict[str, Any]:
        return {
            "documentKey": self.document_key,
            "url": self.url,
            "title": self.title,
            "description": self.description,
            "category": self.category,
            "source": self.source,
            "imageUrl": self.image_url,
            "publishedAt": self.published_at.isoformat() if self.published_at else None,
        }

    @classmethod
    def from_document(cls, document: Dict[str, Any]) -> "ArticleRecord":
        return cls(
            url=document["url"],
            title=document.get("title") or DEFAULT_TITLE,
            description=document.get("description") or "",
            category=document.get("category") or DEFAULT_CATEGORY,
            source=document.get("source") or DEFAULT_SOURCE,
            image_url=document.get("imageUrl"),
            published_at=document.get("publishedAt"),
            scraped_text=document.get("scrapedText"),
        )


@dataclass
class ArticleState:
    present: bool
    complete: bool


@dataclass
class FeedEntry:
    """One RSS item, resolved into skip or process and then discarded"""
    link: str
    title: str
    category: str
    source: str
    enclosure_url: Optional[str] = None
    published_at: Optional[datetime] = None


@dataclass
class ArticleCandidate:
    url: str
    title: Optional[str] = None
    description: Optional[str] = None
    image_url: Optional[str] = None
    published_at: Optional[datetime] = None
    source: str = DEFAULT_SOURCE
    category: str = DEFAULT_CATEGORY

    @classmethod
    def from_feed_entry(cls, entry: FeedEntry) -> "ArticleCandidate":
        return cls(
            url=entry.link,
            title=entry.title or None,
            image_url=entry.enclosure_url,
            published_at=entry.published_at,
            source=entry.source,
            category=entry.category,
        )

    @classmethod
    def from_document(cls, document: Dict[str, Any]) -> "ArticleCandidate":
        return cls(
            url=document["url"],
            image_url=document.get("imageUrl"),
            published_at=document.get("publishedAt"),
            source=document.get("source") or DEFAULT_SOURCE,
            category=document.get("category") or DEFAULT_CATEGORY,
        )


@dataclass
class RewrittenArticle:
    title: str
    description: str


class ProcessingState(str, Enum):
    SKIPPED = "skipped"
    NO_CONTENT = "no_content"
    FAILED = "failed"
    PERSISTED = "persisted"


@dataclass
class ArticleOutcome:
    url: str
    state: ProcessingState
    record: Optional[ArticleRecord] = None
    error: Optional[str] = None

    @property
    def persisted(self) -> bool:
        return self.state == ProcessingState.PERSISTED

    def to_dict(self) -> Dict[str, Any]:
        return {
            "url": self.url,
            "state": self.state.value,
            "record": self.record.to_response() if self.record else None,
            "error": self.error,
        }

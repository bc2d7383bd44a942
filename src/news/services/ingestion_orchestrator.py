"""
Ingestion Orchestrator
Drives one article through existence check -> extraction -> rewrite -> persist:

    New -> Skip | NeedsProcessing -> Extracted -> Rewritten -> Persisted

Terminal states are SKIPPED, NO_CONTENT, FAILED and PERSISTED. Failures are
contained to the article; nothing is persisted for a failed article, so the
next run picks it up again.
"""

from typing import List, Optional, Tuple

import structlog

from ...exceptions import NewsIngestError, StoreError
from ...utils.url_utils import deduplicate_urls, validate_url
from ..models.article import (
    DEFAULT_TITLE,
    ArticleCandidate,
    ArticleOutcome,
    ArticleRecord,
    ProcessingState,
    RewrittenArticle,
    utc_now,
)
from ..repositories.article_repository import ArticleRepository
from .batch_scheduler import BatchRunSummary, BatchScheduler
from .content_scraper import ContentScraperService
from .rewrite_client import RewriteClient

logger = structlog.get_logger(__name__)


class IngestionOrchestrator:

    def __init__(
        self,
        repository: ArticleRepository,
        scraper: ContentScraperService,
        rewriter: RewriteClient,
        scheduler: Optional[BatchScheduler] = None
    ):
        self.repository = repository
        self.scraper = scraper
        self.rewriter = rewriter
        self.scheduler = scheduler or BatchScheduler()

    def _build_record(
        self,
        candidate: ArticleCandidate,
        rewritten: RewrittenArticle,
        scraped_text: str
    ) -> ArticleRecord:
        return ArticleRecord(
            url=candidate.url,
            title=rewritten.title or DEFAULT_TITLE,
            description=rewritten.description or "",
            category=candidate.category,
            source=candidate.source,
            image_url=candidate.image_url,
            published_at=candidate.published_at or utc_now(),
            scraped_text=scraped_text or None,
        )

    def _is_complete(self, url: str) -> bool:
        return self.repository.exists(url).complete

    async def process_article(self, candidate: ArticleCandidate) -> ArticleOutcome:
        """Run the full pipeline for one article. Never raises."""
        url = candidate.url
        log = logger.bind(url=url)

        try:
            if self._is_complete(url):
                log.info("Article already complete, skipping")
                return ArticleOutcome(url=url, state=ProcessingState.SKIPPED)

            text = await self.scraper.extract(url)
            if not text:
                log.info("No usable content extracted")
                return ArticleOutcome(url=url, state=ProcessingState.NO_CONTENT)

            rewritten = await self.rewriter.rewrite(
                title=candidate.title,
                description=candidate.description,
                raw_text=text
            )

            record = self._build_record(candidate, rewritten, text)
            self.repository.upsert(record)
            log.info("Article persisted", complete=record.is_complete)
            return ArticleOutcome(url=url, state=ProcessingState.PERSISTED, record=record)

        except NewsIngestError as e:
            log.error("Article processing failed", error=e.message, details=e.details)
            return ArticleOutcome(url=url, state=ProcessingState.FAILED, error=e.message)
        except Exception as e:
            log.error("Unexpected error processing article", error=str(e), exc_info=True)
            return ArticleOutcome(url=url, state=ProcessingState.FAILED, error=str(e))

    async def _prepare_for_batch(self, candidate: ArticleCandidate) -> Tuple[Optional[ArticleOutcome], str]:
        """Existence check and extraction for one batch member; failures stay with that member."""
        url = candidate.url
        try:
            if self._is_complete(url):
                return ArticleOutcome(url=url, state=ProcessingState.SKIPPED), ""

            text = await self.scraper.extract(url)
            if not text:
                return ArticleOutcome(url=url, state=ProcessingState.NO_CONTENT), ""
            return None, text

        except NewsIngestError as e:
            logger.error("Article preparation failed", url=url, error=e.message, details=e.details)
            return ArticleOutcome(url=url, state=ProcessingState.FAILED, error=e.message), ""
        except Exception as e:
            logger.error("Unexpected error preparing article", url=url, error=str(e), exc_info=True)
            return ArticleOutcome(url=url, state=ProcessingState.FAILED, error=str(e)), ""

    async def process_batch(self, candidates: List[ArticleCandidate]) -> List[ArticleOutcome]:
        """
        Batched-rewrite variant: one rewrite call for every candidate that has
        content. A failing article is recorded as FAILED and the rest of the
        batch carries on; only a failure of the shared rewrite call propagates,
        so the scheduler marks the whole batch failed.
        """
        outcomes: List[Optional[ArticleOutcome]] = [None] * len(candidates)
        pending: List[Tuple[int, ArticleCandidate, str]] = []

        for position, candidate in enumerate(candidates):
            outcome, text = await self._prepare_for_batch(candidate)
            if outcome is not None:
                outcomes[position] = outcome
                continue
            pending.append((position, candidate, text))

        items = [
            {"title": candidate.title or "", "description": candidate.description or text}
            for _, candidate, text in pending
        ]
        rewritten_items = await self.rewriter.rewrite_batch(items) if items else []

        for (position, candidate, text), rewritten in zip(pending, rewritten_items):
            record = self._build_record(candidate, rewritten, text)
            try:
                self.repository.upsert(record)
            except StoreError as e:
                logger.error("Failed to persist article", url=candidate.url, error=e.message)
                outcomes[position] = ArticleOutcome(url=candidate.url, state=ProcessingState.FAILED, error=e.message)
                continue
            outcomes[position] = ArticleOutcome(url=candidate.url, state=ProcessingState.PERSISTED, record=record)

        logger.info(
            "Batch processed",
            size=len(candidates),
            rewritten=len(pending),
            persisted=sum(1 for outcome in outcomes if outcome and outcome.persisted),
        )
        return outcomes

    async def process_urls(self, urls: List[str], batch_size: Optional[int] = None) -> BatchRunSummary:
        """
        Process a URL list in batches.

        Raises:
            ValidationError: any URL is malformed; nothing is fetched or written
        """
        for url in urls:
            validate_url(url)

        unique = deduplicate_urls(urls)
        unprocessed = self.repository.filter_unprocessed(unique)
        logger.info("Processing URL list", received=len(urls), unique=len(unique), unprocessed=len(unprocessed))

        if not unprocessed:
            return BatchRunSummary()

        candidates = [ArticleCandidate(url=url) for url in unprocessed]
        return await self.scheduler.run(candidates, self.process_batch, batch_size=batch_size)

    async def reprocess_incomplete(self, limit: int = 5) -> List[ArticleOutcome]:
        """Retry stored records whose description is still empty."""
        documents = self.repository.list_incomplete(limit)
        outcomes = []
        for document in documents:
            outcomes.append(await self.process_article(ArticleCandidate.from_document(document)))
        if documents:
            logger.info(
                "Incomplete records reprocessed",
                attempted=len(documents),
                persisted=sum(1 for outcome in outcomes if outcome.persisted),
            )
        return outcomes

from dataclasses import dataclass

from ..config import Settings
from .repositories.article_repository import ArticleRepository
from .services.batch_scheduler import BatchScheduler
from .services.content_scraper import ContentScraperService
from .services.feed_poller import FeedPoller
from .services.ingestion_orchestrator import IngestionOrchestrator
from .services.ingestion_worker import IngestionWorker
from .services.rewrite_client import RewriteClient


@dataclass
class NewsPipeline:
    repository: ArticleRepository
    scraper: ContentScraperService
    rewriter: RewriteClient
    scheduler: BatchScheduler
    orchestrator: IngestionOrchestrator
    poller: FeedPoller
    worker: IngestionWorker


def build_pipeline(settings: Settings, db) -> NewsPipeline:
    """Wire every pipeline collaborator once, for the lifetime of the process."""
    repository = ArticleRepository(db, settings.articles_collection)
    scraper = ContentScraperService(
        timeout_seconds=settings.extractor_timeout_seconds,
        max_chars=settings.extractor_max_chars
    )
    rewriter = RewriteClient(
        api_key=settings.openai_api_key,
        base_url=settings.openai_base_url,
        model_name=settings.openai_model_name,
        temperature=settings.rewrite_temperature,
        max_tokens=settings.rewrite_max_tokens,
        max_retries=settings.rewrite_max_retries,
        base_delay=settings.rewrite_base_delay_seconds,
        timeout=settings.rewrite_timeout_seconds
    )
    scheduler = BatchScheduler(
        batch_size=settings.batch_size,
        cooldown_seconds=settings.batch_cooldown_seconds
    )
    orchestrator = IngestionOrchestrator(repository, scraper, rewriter, scheduler)
    poller = FeedPoller(
        orchestrator,
        max_entries=settings.feed_max_entries,
        article_delay_seconds=settings.feed_article_delay_seconds,
        timeout_seconds=settings.feed_timeout_seconds
    )
    worker = IngestionWorker(
        poller,
        orchestrator,
        feeds=settings.rss_feeds,
        interval_seconds=settings.feed_poll_interval_minutes * 60,
        reprocess_limit=settings.reprocess_incomplete_limit,
        scheduler_enabled=settings.scheduler_enabled
    )
    return NewsPipeline(
        repository=repository,
        scraper=scraper,
        rewriter=rewriter,
        scheduler=scheduler,
        orchestrator=orchestrator,
        poller=poller,
        worker=worker
    )

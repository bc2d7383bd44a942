import pytest
from unittest.mock import AsyncMock

from src.exceptions import BatchAlignmentError, RateLimitExceededError, StoreError, ValidationError
from src.news.models.article import ArticleCandidate, ArticleRecord, DEFAULT_TITLE, ProcessingState
from src.utils.url_utils import document_key


class TestProcessArticle:

    @pytest.mark.asyncio
    async def test_new_article_is_persisted(self, orchestrator, articles, mock_scraper, mock_rewriter):
        candidate = ArticleCandidate(url="https://example.com/a", source="BBC News", category="world")

        outcome = await orchestrator.process_article(candidate)

        assert outcome.state == ProcessingState.PERSISTED
        stored = articles.documents[document_key("https://example.com/a")]
        assert stored["title"] == "Council approves budget"
        assert stored["description"] == "The council approved the budget."
        assert stored["source"] == "BBC News"
        assert stored["category"] == "world"
        assert "publishedAt" in stored
        mock_scraper.extract.assert_awaited_once_with("https://example.com/a")
        mock_rewriter.rewrite.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_complete_record_skips_without_external_calls(self, orchestrator, repository, mock_scraper, mock_rewriter, articles):
        repository.upsert(ArticleRecord(url="https://example.com/a", title="Done", description="Already here"))
        writes_before = articles.writes

        outcome = await orchestrator.process_article(ArticleCandidate(url="https://example.com/a"))

        assert outcome.state == ProcessingState.SKIPPED
        mock_scraper.extract.assert_not_called()
        mock_rewriter.rewrite.assert_not_called()
        assert articles.writes == writes_before

    @pytest.mark.asyncio
    async def test_no_content_skips_rewrite_and_persist(self, orchestrator, mock_scraper, mock_rewriter, articles):
        mock_scraper.extract.return_value = ""

        outcome = await orchestrator.process_article(ArticleCandidate(url="https://example.com/a"))

        assert outcome.state == ProcessingState.NO_CONTENT
        mock_rewriter.rewrite.assert_not_called()
        assert articles.documents == {}

    @pytest.mark.asyncio
    async def test_incomplete_record_is_reprocessed(self, orchestrator, repository, articles):
        repository.upsert(ArticleRecord(url="https://example.com/a", title="Partial", description=""))

        outcome = await orchestrator.process_article(ArticleCandidate(url="https://example.com/a"))

        assert outcome.state == ProcessingState.PERSISTED
        assert len(articles.documents) == 1
        assert articles.documents[document_key("https://example.com/a")]["description"] == "The council approved the budget."

    @pytest.mark.asyncio
    async def test_rate_limit_exhaustion_fails_without_persisting(self, orchestrator, mock_rewriter, articles):
        mock_rewriter.rewrite.side_effect = RateLimitExceededError(attempts=3)

        outcome = await orchestrator.process_article(ArticleCandidate(url="https://example.com/a"))

        assert outcome.state == ProcessingState.FAILED
        assert outcome.error
        assert articles.documents == {}

    @pytest.mark.asyncio
    async def test_unexpected_error_is_contained(self, orchestrator, mock_scraper):
        mock_scraper.extract.side_effect = RuntimeError("boom")

        outcome = await orchestrator.process_article(ArticleCandidate(url="https://example.com/a"))

        assert outcome.state == ProcessingState.FAILED
        assert outcome.error == "boom"

    @pytest.mark.asyncio
    async def test_running_twice_yields_one_record(self, orchestrator, articles, mock_scraper):
        candidate = ArticleCandidate(url="https://example.com/a")

        first = await orchestrator.process_article(candidate)
        second = await orchestrator.process_article(candidate)

        assert first.state == ProcessingState.PERSISTED
        assert second.state == ProcessingState.SKIPPED
        assert len(articles.documents) == 1
        assert mock_scraper.extract.await_count == 1

    @pytest.mark.asyncio
    async def test_empty_rewrite_title_gets_default(self, orchestrator, mock_rewriter, articles):
        mock_rewriter.rewrite.return_value.title = ""

        outcome = await orchestrator.process_article(ArticleCandidate(url="https://example.com/a"))

        assert outcome.record.title == DEFAULT_TITLE


class TestProcessUrls:

    @pytest.mark.asyncio
    async def test_duplicates_and_processed_urls_are_dropped(self, orchestrator, repository, mock_rewriter):
        repository.upsert(ArticleRecord(url="https://example.com/done", title="Done", description="Complete"))

        summary = await orchestrator.process_urls([
            "https://example.com/a",
            "https://example.com/a",
            "https://example.com/done",
            "https://example.com/b",
        ])

        assert [outcome.url for outcome in summary.outcomes] == ["https://example.com/a", "https://example.com/b"]
        assert all(outcome.persisted for outcome in summary.outcomes)
        mock_rewriter.rewrite_batch.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_nothing_new_makes_no_external_calls(self, orchestrator, repository, mock_scraper, mock_rewriter):
        repository.upsert(ArticleRecord(url="https://example.com/done", title="Done", description="Complete"))

        summary = await orchestrator.process_urls(["https://example.com/done"])

        assert summary.batches == []
        mock_scraper.extract.assert_not_called()
        mock_rewriter.rewrite_batch.assert_not_called()

    @pytest.mark.asyncio
    async def test_batches_with_cooldown(self, orchestrator, mock_rewriter, sleep_recorder):
        urls = [f"https://example.com/{index}" for index in range(5)]

        summary = await orchestrator.process_urls(urls)

        assert len(summary.batches) == 3
        assert mock_rewriter.rewrite_batch.await_count == 3
        assert sleep_recorder.delays == [3.0, 3.0]
        assert len(summary.outcomes) == 5

    @pytest.mark.asyncio
    async def test_misaligned_batch_fails_only_that_batch(self, orchestrator, mock_rewriter, articles):
        calls = {"count": 0}
        original = mock_rewriter.rewrite_batch.side_effect

        async def flaky(items):
            calls["count"] += 1
            if calls["count"] == 1:
                raise BatchAlignmentError(expected=len(items), received=0)
            return await original(items)

        mock_rewriter.rewrite_batch = AsyncMock(side_effect=flaky)
        urls = [f"https://example.com/{index}" for index in range(4)]

        summary = await orchestrator.process_urls(urls)

        assert summary.failed == 1
        assert summary.succeeded == 1
        assert len(articles.documents) == 2

    @pytest.mark.asyncio
    async def test_batch_skips_articles_without_content(self, orchestrator, mock_scraper, mock_rewriter):
        mock_scraper.extract.side_effect = ["Body text", ""]

        summary = await orchestrator.process_urls(["https://example.com/a", "https://example.com/b"])

        states = [outcome.state for outcome in summary.outcomes]
        assert states == [ProcessingState.PERSISTED, ProcessingState.NO_CONTENT]
        items = mock_rewriter.rewrite_batch.await_args.args[0]
        assert len(items) == 1

    @pytest.mark.asyncio
    async def test_extraction_error_fails_only_that_article(self, orchestrator, mock_scraper, mock_rewriter, articles):
        async def extract(url):
            if url.endswith("/1"):
                raise RuntimeError("parser crashed")
            return f"Body of {url}"

        mock_scraper.extract.side_effect = extract
        urls = [f"https://example.com/{index}" for index in range(4)]

        summary = await orchestrator.process_urls(urls, batch_size=10)

        assert summary.failed == 0
        states = {outcome.url: outcome.state for outcome in summary.outcomes}
        assert states["https://example.com/1"] == ProcessingState.FAILED
        assert [url for url, state in states.items() if state == ProcessingState.PERSISTED] == [
            "https://example.com/0",
            "https://example.com/2",
            "https://example.com/3",
        ]
        assert len(articles.documents) == 3
        assert document_key("https://example.com/1") not in articles.documents
        assert len(mock_rewriter.rewrite_batch.await_args.args[0]) == 3

    @pytest.mark.asyncio
    async def test_store_read_error_fails_only_that_article(self, orchestrator, repository, articles):
        original_exists = repository.exists
        calls = {"count": 0}

        def flaky_exists(url):
            if url == "https://example.com/b":
                calls["count"] += 1
                # the up-front filter succeeds, the in-batch check fails
                if calls["count"] > 1:
                    raise StoreError("Failed to read article")
            return original_exists(url)

        repository.exists = flaky_exists

        summary = await orchestrator.process_urls([
            "https://example.com/a",
            "https://example.com/b",
        ])

        assert [outcome.state for outcome in summary.outcomes] == [ProcessingState.PERSISTED, ProcessingState.FAILED]
        assert summary.outcomes[1].error == "Failed to read article"
        assert list(articles.documents) == [document_key("https://example.com/a")]

    @pytest.mark.asyncio
    async def test_every_article_failing_skips_the_rewrite(self, orchestrator, mock_scraper, mock_rewriter):
        mock_scraper.extract.side_effect = RuntimeError("parser crashed")

        summary = await orchestrator.process_urls(["https://example.com/a", "https://example.com/b"])

        assert summary.failed == 0
        assert all(outcome.state == ProcessingState.FAILED for outcome in summary.outcomes)
        mock_rewriter.rewrite_batch.assert_not_called()

    @pytest.mark.asyncio
    async def test_malformed_url_rejected_before_any_work(self, orchestrator, mock_scraper, mock_rewriter, articles):
        with pytest.raises(ValidationError):
            await orchestrator.process_urls(["https://example.com/a", "not a url"])

        mock_scraper.extract.assert_not_called()
        mock_rewriter.rewrite_batch.assert_not_called()
        assert articles.reads == 0
        assert articles.documents == {}


class TestReprocessIncomplete:

    @pytest.mark.asyncio
    async def test_incomplete_records_are_completed(self, orchestrator, repository, articles):
        repository.upsert(ArticleRecord(url="https://example.com/a", title="Partial", description="", source="BBC"))
        repository.upsert(ArticleRecord(url="https://example.com/b", title="Done", description="Complete"))

        outcomes = await orchestrator.reprocess_incomplete(limit=5)

        assert [outcome.url for outcome in outcomes] == ["https://example.com/a"]
        assert outcomes[0].persisted
        assert articles.documents[document_key("https://example.com/a")]["source"] == "BBC"
        assert repository.list_incomplete(5) == []

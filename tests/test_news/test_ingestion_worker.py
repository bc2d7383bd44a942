import asyncio

import pytest
from unittest.mock import MagicMock, AsyncMock

from src.news.services.feed_poller import PollSummary
from src.news.services.ingestion_worker import IngestionWorker


class TestIngestionWorker:
    @pytest.fixture(autouse=True)
    def setup_worker(self):
        self.poller = MagicMock()
        self.poller.poll_all = AsyncMock(return_value=PollSummary())
        self.orchestrator = MagicMock()
        self.orchestrator.reprocess_incomplete = AsyncMock(return_value=[])
        self.worker = IngestionWorker(
            self.poller,
            self.orchestrator,
            feeds={"world": "https://example.com/world.xml"},
            reprocess_limit=3,
            scheduler_enabled=False
        )

    def test_trigger_accepts_then_rejects_while_queued(self):
        first = self.worker.trigger("manual")
        second = self.worker.trigger("manual")

        assert first.accepted
        assert first.message == "Ingestion run started in background"
        assert not second.accepted
        assert second.message == "Ingestion run already in progress"

    @pytest.mark.asyncio
    async def test_trigger_rejected_while_running(self):
        release = asyncio.Event()

        async def slow_poll(feeds):
            await release.wait()
            return PollSummary()

        self.poller.poll_all = AsyncMock(side_effect=slow_poll)
        await self.worker.start()
        try:
            assert self.worker.trigger("manual").accepted
            await asyncio.sleep(0)
            await asyncio.sleep(0)

            assert self.worker.is_running
            assert not self.worker.trigger("manual").accepted

            release.set()
            await asyncio.wait_for(self.worker._queue.join(), timeout=1)
            assert self.worker.trigger("manual").accepted
        finally:
            await self.worker.stop()

        assert self.poller.poll_all.await_count >= 1

    @pytest.mark.asyncio
    async def test_run_once_polls_then_reprocesses(self):
        summary = await self.worker.run_once("manual")

        self.poller.poll_all.assert_awaited_once_with({"world": "https://example.com/world.xml"})
        self.orchestrator.reprocess_incomplete.assert_awaited_once_with(3)
        assert summary["success"] is True
        assert summary["reprocessed"] == 0
        assert self.worker.last_summary == summary
        assert not self.worker.is_running

    @pytest.mark.asyncio
    async def test_run_once_contains_errors(self):
        self.poller.poll_all.side_effect = RuntimeError("network down")

        summary = await self.worker.run_once("scheduled")

        assert summary["success"] is False
        assert summary["error"] == "network down"
        assert not self.worker.is_running
        self.orchestrator.reprocess_incomplete.assert_not_called()

    def test_status_before_any_run(self):
        status = self.worker.status()

        assert status["running"] is False
        assert status["queued"] is False
        assert status["last_run_started"] is None

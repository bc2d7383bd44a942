"""
Ingestion Worker
Background runner for feed polls. Manual triggers and the recurring timer both
enqueue onto a single-slot queue drained by one worker task; a trigger that
arrives while a run is queued or in progress is acknowledged and dropped.
"""

import asyncio
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional

import structlog

from ..models.article import utc_now
from .feed_poller import FeedPoller
from .ingestion_orchestrator import IngestionOrchestrator

logger = structlog.get_logger(__name__)


@dataclass
class TriggerResult:
    accepted: bool
    reason: str
    message: str


class IngestionWorker:

    def __init__(
        self,
        poller: FeedPoller,
        orchestrator: IngestionOrchestrator,
        feeds: Dict[str, str],
        interval_seconds: float = 7200,
        reprocess_limit: int = 5,
        scheduler_enabled: bool = True
    ):
        self.poller = poller
        self.orchestrator = orchestrator
        self.feeds = feeds
        self.interval_seconds = interval_seconds
        self.reprocess_limit = reprocess_limit
        self.scheduler_enabled = scheduler_enabled

        self._queue: asyncio.Queue = asyncio.Queue(maxsize=1)
        self._tasks: List[asyncio.Task] = []
        self._busy = False

        self.last_run_started: Optional[datetime] = None
        self.last_run_finished: Optional[datetime] = None
        self.last_summary: Optional[Dict[str, Any]] = None

    @property
    def is_running(self) -> bool:
        return self._busy

    @property
    def is_queued(self) -> bool:
        return not self._queue.empty()

    def trigger(self, reason: str = "manual") -> TriggerResult:
        """Enqueue a run and return immediately."""
        if self._busy or self._queue.full():
            logger.info("Ingestion run already pending, trigger ignored", reason=reason)
            return TriggerResult(accepted=False, reason=reason, message="Ingestion run already in progress")

        self._queue.put_nowait(reason)
        logger.info("Ingestion run queued", reason=reason)
        return TriggerResult(accepted=True, reason=reason, message="Ingestion run started in background")

    async def run_once(self, reason: str = "manual") -> Dict[str, Any]:
        self._busy = True
        self.last_run_started = utc_now()
        logger.info("Ingestion run started", reason=reason, feeds=len(self.feeds))

        summary: Dict[str, Any] = {"reason": reason}
        try:
            poll_summary = await self.poller.poll_all(self.feeds)
            summary.update(poll_summary.to_dict())

            reprocessed = await self.orchestrator.reprocess_incomplete(self.reprocess_limit)
            summary["reprocessed"] = len(reprocessed)
            summary["success"] = True
        except Exception as e:
            logger.error("Ingestion run failed", reason=reason, error=str(e), exc_info=True)
            summary["success"] = False
            summary["error"] = str(e)
        finally:
            self._busy = False
            self.last_run_finished = utc_now()
            self.last_summary = summary

        logger.info("Ingestion run finished", **summary)
        return summary

    async def _drain_queue(self) -> None:
        while True:
            reason = await self._queue.get()
            self._busy = True
            try:
                await self.run_once(reason)
            finally:
                self._queue.task_done()

    async def _schedule_loop(self) -> None:
        while True:
            await asyncio.sleep(self.interval_seconds)
            self.trigger("scheduled")

    async def start(self) -> None:
        if self._tasks:
            return
        self._tasks.append(asyncio.create_task(self._drain_queue(), name="ingestion-worker"))
        if self.scheduler_enabled:
            self._tasks.append(asyncio.create_task(self._schedule_loop(), name="ingestion-scheduler"))
        logger.info("Ingestion worker started", interval_seconds=self.interval_seconds, scheduler=self.scheduler_enabled)

    async def stop(self) -> None:
        for task in self._tasks:
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks = []
        logger.info("Ingestion worker stopped")

    def status(self) -> Dict[str, Any]:
        return {
            "running": self.is_running,
            "queued": self.is_queued,
            "last_run_started": self.last_run_started.isoformat() if self.last_run_started else None,
            "last_run_finished": self.last_run_finished.isoformat() if self.last_run_finished else None,
            "last_summary": self.last_summary,
        }

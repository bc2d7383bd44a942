"""
Batch Scheduler
Runs fixed-size batches strictly one after another, pausing for a cooldown
between consecutive batches.
"""

import asyncio
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Generic, List, Optional, Sequence, TypeVar

import structlog

from ...core.retry import Sleep

logger = structlog.get_logger(__name__)

T = TypeVar("T")


def create_batches(items: Sequence[T], batch_size: int) -> List[List[T]]:
    if batch_size < 1:
        raise ValueError("batch_size must be at least 1")
    return [list(items[i:i + batch_size]) for i in range(0, len(items), batch_size)]


@dataclass
class BatchResult(Generic[T]):
    index: int
    items: List[T]
    outcomes: List[Any] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.error is None


@dataclass
class BatchRunSummary:
    batches: List[BatchResult] = field(default_factory=list)

    @property
    def succeeded(self) -> int:
        return sum(1 for batch in self.batches if batch.succeeded)

    @property
    def failed(self) -> int:
        return sum(1 for batch in self.batches if not batch.succeeded)

    @property
    def outcomes(self) -> List[Any]:
        return [outcome for batch in self.batches for outcome in batch.outcomes]


class BatchScheduler:
    def __init__(self, batch_size: int = 10, cooldown_seconds: float = 3.0, sleep: Optional[Sleep] = None):
        self.batch_size = batch_size
        self.cooldown_seconds = cooldown_seconds
        self.sleep = sleep or asyncio.sleep

    async def run(
        self,
        items: Sequence[T],
        process_batch: Callable[[List[T]], Awaitable[List[Any]]],
        batch_size: Optional[int] = None
    ) -> BatchRunSummary:
        """
        Process ``items`` batch by batch. A batch that raises is recorded as
        failed and the run moves on to the next one.
        """
        batches = create_batches(items, batch_size or self.batch_size)
        summary = BatchRunSummary()
        logger.info("Batch run started", items=len(items), batches=len(batches))

        for index, batch in enumerate(batches):
            result = BatchResult(index=index, items=batch)
            try:
                result.outcomes = list(await process_batch(batch))
            except Exception as e:
                result.error = str(e)
                logger.error("Batch failed", batch_index=index, size=len(batch), error=str(e), exc_info=True)
            summary.batches.append(result)

            if index < len(batches) - 1 and self.cooldown_seconds > 0:
                await self.sleep(self.cooldown_seconds)

        logger.info("Batch run finished", succeeded=summary.succeeded, failed=summary.failed)
        return summary

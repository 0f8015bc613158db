"""
Background execution of sync attempts.

Bulk mutations can take minutes, so they run as asyncio tasks outside the
request that started them. Each task has a stop event: setting it ends the
polling loop promptly, while the bulk operation itself keeps running on
Shopify and can be picked up again with observe().
"""

import asyncio
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional, Sequence

from ..shopify import BulkOperation, BulkOperationsManager, CatalogRecord, ShopifyClient, StagedUploader, SyncSummary
from .rules import RuleSet
from .sync import DEFAULT_BULK_THRESHOLD, apply_rules, observe_bulk_update

logger = logging.getLogger(__name__)


class TaskState(str, Enum):
    RUNNING = "running"
    FINISHED = "finished"
    STOPPED = "stopped"
    FAILED = "failed"


@dataclass
class SyncTask:
    """A sync attempt running in the background."""
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    state: TaskState = TaskState.RUNNING
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    finished_at: Optional[datetime] = None
    operation: Optional[BulkOperation] = None
    summary: Optional[SyncSummary] = None
    error: Optional[str] = None

    stop_event: asyncio.Event = field(default_factory=asyncio.Event, repr=False)
    task: Optional["asyncio.Task[None]"] = field(default=None, repr=False)

    @property
    def done(self) -> bool:
        return self.state != TaskState.RUNNING

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "state": self.state.value,
            "startedAt": self.started_at.isoformat(),
            "finishedAt": self.finished_at.isoformat() if self.finished_at else None,
            "bulkOperation": (
                self.operation.model_dump(by_alias=True, mode="json") if self.operation else None
            ),
            "summary": self.summary.to_dict() if self.summary else None,
            "error": self.error,
        }


class SyncRunner:
    """Starts, tracks and stops background sync tasks for one store."""

    MAX_FINISHED_TASKS = 100  # finished tasks kept for status lookups

    def __init__(
        self,
        client: ShopifyClient,
        bulk_threshold: int = DEFAULT_BULK_THRESHOLD,
        delay_seconds: float = 0.3,
        poll_interval: Optional[float] = None,
        max_poll_time: Optional[float] = None,
    ):
        self.client = client
        self.bulk_threshold = bulk_threshold
        self.delay_seconds = delay_seconds
        self.bulk_ops = BulkOperationsManager(
            client, poll_interval=poll_interval, max_poll_time=max_poll_time
        )
        self.uploader = StagedUploader(client)
        self._tasks: Dict[str, SyncTask] = {}

    def get(self, task_id: str) -> Optional[SyncTask]:
        return self._tasks.get(task_id)

    def start_apply(self, rules: RuleSet, records: Sequence[CatalogRecord]) -> SyncTask:
        """Start applying rules to a selection in the background."""
        sync_task = SyncTask()

        async def on_submitted(operation: BulkOperation) -> None:
            sync_task.operation = operation

        async def work() -> SyncSummary:
            return await apply_rules(
                self.client,
                rules,
                records,
                bulk_threshold=self.bulk_threshold,
                delay_seconds=self.delay_seconds,
                bulk_ops=self.bulk_ops,
                uploader=self.uploader,
                stop_event=sync_task.stop_event,
                on_submitted=on_submitted,
            )

        return self._launch(sync_task, work)

    def observe(self, operation: BulkOperation) -> SyncTask:
        """Watch an already submitted bulk operation to completion."""
        sync_task = SyncTask(operation=operation)

        async def work() -> SyncSummary:
            return await observe_bulk_update(
                self.bulk_ops, operation.id, stop_event=sync_task.stop_event
            )

        return self._launch(sync_task, work)

    async def resume_outstanding(self) -> Optional[SyncTask]:
        """
        Pick up a bulk operation left running by a previous process.

        It is observed, never submitted again.
        """
        current = await self.bulk_ops.get_current()
        if current is None or not current.is_active:
            return None
        logger.info(f"Resuming observation of bulk operation {current.id}")
        return self.observe(current)

    async def stop(self, task_id: str) -> Optional[SyncTask]:
        """Stop polling for a task. Any remote bulk operation keeps running."""
        sync_task = self._tasks.get(task_id)
        if sync_task is None:
            return None
        sync_task.stop_event.set()
        if sync_task.task is not None:
            await sync_task.task
        return sync_task

    async def shutdown(self) -> None:
        """Stop every running task."""
        running = [t for t in self._tasks.values() if not t.done]
        for sync_task in running:
            sync_task.stop_event.set()
        await asyncio.gather(
            *(t.task for t in running if t.task is not None),
            return_exceptions=True,
        )

    def _launch(self, sync_task: SyncTask, work) -> SyncTask:
        self._prune()
        self._tasks[sync_task.id] = sync_task
        sync_task.task = asyncio.create_task(self._run(sync_task, work))
        return sync_task

    def _prune(self) -> None:
        """Forget the oldest finished tasks beyond MAX_FINISHED_TASKS."""
        finished = [task_id for task_id, t in self._tasks.items() if t.done]
        for task_id in finished[:max(0, len(finished) - self.MAX_FINISHED_TASKS)]:
            del self._tasks[task_id]

    async def _run(self, sync_task: SyncTask, work) -> None:
        try:
            summary = await work()
            sync_task.summary = summary
            if summary.job is not None:
                sync_task.operation = BulkOperation.model_validate(summary.job)
            if summary.pending and sync_task.stop_event.is_set():
                sync_task.state = TaskState.STOPPED
            else:
                sync_task.state = TaskState.FINISHED
            logger.info(f"Sync task {sync_task.id} {sync_task.state.value}: {summary.outcome.value}")
        except asyncio.CancelledError:
            sync_task.state = TaskState.STOPPED
            raise
        except Exception as e:
            logger.exception(f"Unexpected error in sync task {sync_task.id}")
            sync_task.state = TaskState.FAILED
            sync_task.error = f"Unexpected error: {e}"
        finally:
            sync_task.finished_at = datetime.now(timezone.utc)

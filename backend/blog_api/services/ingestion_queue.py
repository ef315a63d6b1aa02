"""Celery-backed queue that hands import tasks to background workers."""

from __future__ import annotations

import logging

from celery import Task

from blog_api.api.schemas.import_job import QueueTask

logger = logging.getLogger(__name__)

IMPORTS_QUEUE = "imports"


class IngestionQueue:
    """Enqueue ``QueueTask`` payloads onto the ``imports`` queue."""

    def __init__(self, task: Task, queue: str = IMPORTS_QUEUE):
        self._task = task
        self._queue = queue

    def enqueue(self, item: QueueTask) -> str:
        """Publish the task and return the broker-side task id."""
        result = self._task.apply_async(
            args=(item.job_id, item.file_path),
            queue=self._queue,
        )
        logger.info(f"Enqueued import job {item.job_id} as task {result.id} on '{self._queue}'")
        return result.id

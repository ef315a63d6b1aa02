"""Submission side of the import pipeline: store, record, enqueue."""

from __future__ import annotations

import logging
from typing import BinaryIO

from blog_api.api.schemas.import_job import ImportJobRead, QueueTask
from blog_api.core.errors import EnqueueError
from blog_api.db.models.import_job import ImportStatus
from blog_api.services.ingestion_queue import IngestionQueue
from blog_api.services.job_store import JobStore
from blog_api.storage.uploads import UploadStorage

logger = logging.getLogger(__name__)


class ImportCoordinator:
    """Accept uploads and hand them to the background processor.

    ``submit`` returns as soon as the task is queued; nothing here waits on
    processing.
    """

    def __init__(self, job_store: JobStore, queue: IngestionQueue, storage: UploadStorage):
        self.job_store = job_store
        self.queue = queue
        self.storage = storage

    def submit(self, file_obj: BinaryIO, filename: str, owner_id: str) -> ImportJobRead:
        """Store the file, create a PENDING job and enqueue it.

        Raises:
            UploadStorageError: the file could not be stored; no job exists.
            EnqueueError: the job was created but could not be queued; it is
                marked FAILED before this is raised.
        """
        stored_path = self.storage.save(file_obj, filename)
        job = self.job_store.create(
            filename=filename,
            owner_id=owner_id,
            file_path=str(stored_path),
        )

        try:
            self.queue.enqueue(QueueTask(job_id=job.id, file_path=str(stored_path)))
        except Exception as exc:
            logger.error(f"Error enqueueing import job {job.id}: {exc}", exc_info=True)
            try:
                self.job_store.mark_failed(job.id, f"Failed to enqueue import: {exc}")
            except Exception as e:
                logger.error(f"Could not mark import job {job.id} as failed: {e}", exc_info=True)
            raise EnqueueError(f"Failed to start import job {job.id}") from exc

        return job

    def get_status(self, job_id: str) -> ImportJobRead | None:
        return self.job_store.get(job_id)

    def list_jobs(
        self,
        *,
        owner_id: str | None = None,
        status: ImportStatus | None = None,
        limit: int = 50,
    ) -> list[ImportJobRead]:
        return self.job_store.list_jobs(owner_id=owner_id, status=status, limit=limit)

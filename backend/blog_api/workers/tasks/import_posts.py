"""Celery task for long-running CSV post imports."""

from __future__ import annotations

import logging

from blog_api.api.schemas.import_job import QueueTask
from blog_api.core.config import get_settings
from blog_api.db.session import SessionLocal
from blog_api.services.csv_import import CsvBatchProcessor
from blog_api.services.job_store import JobStore
from blog_api.services.progress_notifier import ProgressNotifier
from blog_api.utils.redis_client import create_redis_client
from blog_api.workers.celery_app import celery_app

logger = logging.getLogger(__name__)

settings = get_settings()
# Shared by every task in the worker process; connections come from one pool
redis_client = create_redis_client(settings.redis_url, decode_responses=True)


def build_processor() -> CsvBatchProcessor:
    """Wire a processor for one task run."""
    return CsvBatchProcessor(
        job_store=JobStore(SessionLocal),
        session_factory=SessionLocal,
        notifier=ProgressNotifier(redis_client),
        batch_size=settings.import_batch_size,
    )


@celery_app.task(bind=True, name="blog_api.workers.tasks.import_posts")
def import_posts_task(self, job_id: str, file_path: str) -> dict | None:
    """Process one uploaded CSV into posts; failures re-raise after the job is marked FAILED."""
    logger.info(f"Task {self.request.id} picked up import job {job_id}")
    outcome = build_processor().run(QueueTask(job_id=job_id, file_path=file_path))
    if outcome is None:
        return None
    return {
        "job_id": outcome.job_id,
        "status": outcome.status.value,
        "total": outcome.total,
        "processed": outcome.processed,
        "skipped": outcome.skipped,
        "errors": outcome.errors,
    }

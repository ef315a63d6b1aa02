"""Explicit wiring of the import pipeline for request handlers."""

from fastapi import Depends

from blog_api.core.config import Settings, get_settings
from blog_api.db.session import SessionLocal
from blog_api.services.import_coordinator import ImportCoordinator
from blog_api.services.ingestion_queue import IngestionQueue
from blog_api.services.job_store import JobStore
from blog_api.services.progress_notifier import ProgressSubscriber
from blog_api.storage.uploads import UploadStorage
from blog_api.utils.redis_client import create_async_redis_client
from blog_api.workers.tasks.import_posts import import_posts_task


def get_job_store() -> JobStore:
    return JobStore(SessionLocal)


def get_ingestion_queue() -> IngestionQueue:
    return IngestionQueue(import_posts_task)


def get_upload_storage(settings: Settings = Depends(get_settings)) -> UploadStorage:
    return UploadStorage(settings.uploads_dir)


def get_import_coordinator(
    job_store: JobStore = Depends(get_job_store),
    queue: IngestionQueue = Depends(get_ingestion_queue),
    storage: UploadStorage = Depends(get_upload_storage),
) -> ImportCoordinator:
    return ImportCoordinator(job_store=job_store, queue=queue, storage=storage)


def get_progress_subscriber(settings: Settings = Depends(get_settings)) -> ProgressSubscriber:
    """New async client per stream; the stream closes it when it ends."""
    return ProgressSubscriber(
        create_async_redis_client(settings.redis_url, decode_responses=True)
    )

"""Endpoints for CSV post imports: upload, status polling and live progress."""

from __future__ import annotations

import logging
from typing import AsyncGenerator

from fastapi import (
    APIRouter,
    Depends,
    File,
    Form,
    HTTPException,
    Query,
    UploadFile,
    status,
)
from fastapi.responses import StreamingResponse
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from blog_api.api.dependencies.imports import (
    get_import_coordinator,
    get_progress_subscriber,
)
from blog_api.api.schemas.import_job import ImportJobRead, ProgressEvent
from blog_api.core.errors import EnqueueError, UploadStorageError
from blog_api.db.models.import_job import ImportStatus
from blog_api.db.models.user import User
from blog_api.db.session import get_db
from blog_api.services.import_coordinator import ImportCoordinator
from blog_api.services.progress_notifier import ProgressSubscriber

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post(
    "/csv",
    summary="Start a CSV post import",
    status_code=status.HTTP_202_ACCEPTED,
    response_model=ImportJobRead,
)
async def submit_import(
    file: UploadFile = File(...),
    owner_id: str = Form(...),
    db: Session = Depends(get_db),
    coordinator: ImportCoordinator = Depends(get_import_coordinator),
) -> ImportJobRead:
    """Store the upload, create a PENDING job and queue it; processing is async."""
    if not file.filename:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Filename is required",
        )
    if not file.filename.lower().endswith(".csv"):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Only CSV uploads are supported",
        )
    if db.get(User, owner_id) is None:
        raise HTTPException(status_code=404, detail="Owner not found")

    try:
        job = await run_in_threadpool(
            coordinator.submit, file.file, file.filename, owner_id
        )
    except UploadStorageError as exc:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to save uploaded file",
        ) from exc
    except EnqueueError as exc:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to start import process",
        ) from exc
    except SQLAlchemyError as exc:
        logger.error(f"Database error creating import job: {exc}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to create import job",
        ) from exc

    return job


@router.get(
    "/",
    summary="List import jobs",
    response_model=list[ImportJobRead],
)
async def list_imports(
    owner_id: str | None = Query(None, description="Only jobs submitted by this user"),
    status: ImportStatus | None = Query(None, description="Filter by job status"),
    limit: int = Query(50, ge=1, le=500, description="Maximum number of jobs to return"),
    coordinator: ImportCoordinator = Depends(get_import_coordinator),
) -> list[ImportJobRead]:
    """Return import jobs newest first."""
    return coordinator.list_jobs(owner_id=owner_id, status=status, limit=limit)


@router.get(
    "/{job_id}",
    summary="Fetch the latest committed state of an import job",
    response_model=ImportJobRead,
)
async def get_import_status(
    job_id: str,
    coordinator: ImportCoordinator = Depends(get_import_coordinator),
) -> ImportJobRead:
    job = coordinator.get_status(job_id)
    if not job:
        raise HTTPException(status_code=404, detail="Job not found")
    return job


@router.get(
    "/{job_id}/stream",
    summary="Server-Sent Events stream of import progress",
)
async def stream_import_progress(
    job_id: str,
    coordinator: ImportCoordinator = Depends(get_import_coordinator),
    subscriber: ProgressSubscriber = Depends(get_progress_subscriber),
) -> StreamingResponse:
    """Stream progress events for one job.

    Each ``data:`` line carries ``{job_id, processed, total, errors, status}``.
    A job that is already terminal gets its final state and a ``close`` event.

    ```javascript
    const source = new EventSource('/api/imports/{job_id}/stream');
    source.onmessage = (e) => console.log(JSON.parse(e.data).processed);
    ```
    """
    job = coordinator.get_status(job_id)
    if not job:
        await subscriber.aclose()
        raise HTTPException(status_code=404, detail="Job not found")

    async def event_generator() -> AsyncGenerator[str, None]:
        try:
            if job.status.is_terminal:
                final = ProgressEvent(
                    job_id=job.id,
                    processed=job.processed,
                    total=job.total,
                    errors=job.errors,
                    status=job.status,
                )
                yield f"data: {final.model_dump_json()}\n\n"
            else:
                async for event in subscriber.listen(job_id):
                    yield f"data: {event.model_dump_json()}\n\n"
            yield "event: close\ndata: {}\n\n"
        finally:
            await subscriber.aclose()

    return StreamingResponse(
        event_generator(),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",
        },
    )

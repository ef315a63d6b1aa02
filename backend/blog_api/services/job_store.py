"""Durable import job records (one short-lived session per read or write)."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session, sessionmaker

from blog_api.api.schemas.import_job import ImportJobRead
from blog_api.core.errors import JobStateError
from blog_api.db.models.import_job import ALLOWED_TRANSITIONS, ImportJob, ImportStatus

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class JobStore:
    """Point reads and writes of ``import_jobs`` rows.

    Every call commits before returning, so status readers always observe the
    latest committed write. Writes against a job id that no longer exists are
    logged and ignored; callers get ``None``/``False`` back.
    """

    def __init__(self, session_factory: sessionmaker[Session]):
        self._session_factory = session_factory

    def create(self, *, filename: str, owner_id: str, file_path: str) -> ImportJobRead:
        with self._session_factory() as session:
            job = ImportJob(
                filename=filename,
                owner_id=owner_id,
                file_path=file_path,
                status=ImportStatus.PENDING.value,
                total=0,
                processed=0,
                errors=0,
                error_log=[],
                progress=0,
            )
            session.add(job)
            session.commit()
            session.refresh(job)
            logger.info(f"Created import job {job.id} for owner {owner_id} ({filename})")
            return ImportJobRead.model_validate(job)

    def get(self, job_id: str) -> ImportJobRead | None:
        with self._session_factory() as session:
            job = session.get(ImportJob, job_id)
            return ImportJobRead.model_validate(job) if job else None

    def get_owner_id(self, job_id: str) -> str | None:
        with self._session_factory() as session:
            return session.scalar(select(ImportJob.owner_id).where(ImportJob.id == job_id))

    def list_jobs(
        self,
        *,
        owner_id: str | None = None,
        status: ImportStatus | None = None,
        limit: int = 50,
    ) -> list[ImportJobRead]:
        query = select(ImportJob)
        if owner_id:
            query = query.where(ImportJob.owner_id == owner_id)
        if status:
            query = query.where(ImportJob.status == ImportStatus(status).value)
        query = query.order_by(ImportJob.created_at.desc(), ImportJob.id).limit(limit)
        with self._session_factory() as session:
            return [ImportJobRead.model_validate(job) for job in session.scalars(query)]

    def mark_processing(self, job_id: str) -> bool:
        return self._write(
            job_id,
            status=ImportStatus.PROCESSING,
            started_at=_utcnow(),
        )

    def set_total(self, job_id: str, total: int) -> bool:
        return self._write(job_id, total=max(0, total))

    def record_progress(self, job_id: str, processed: int, errors: int) -> bool:
        return self._write(job_id, processed=processed, errors=errors)

    def finalize(
        self,
        job_id: str,
        *,
        processed: int,
        errors: int,
        error_log: list[dict[str, Any]],
    ) -> ImportStatus:
        """Write the terminal state; zero inserts with any rejects counts as FAILED."""
        status = (
            ImportStatus.FAILED
            if processed == 0 and errors > 0
            else ImportStatus.COMPLETED
        )
        self._write(
            job_id,
            status=status,
            processed=processed,
            errors=errors,
            error_log=error_log,
            progress=100,
            finished_at=_utcnow(),
        )
        return status

    def mark_failed(
        self,
        job_id: str,
        reason: str,
        *,
        processed: int | None = None,
        errors: int | None = None,
        error_log: list[dict[str, Any]] | None = None,
    ) -> bool:
        fields: dict[str, Any] = {
            "status": ImportStatus.FAILED,
            "error_message": reason,
            "finished_at": _utcnow(),
        }
        if processed is not None:
            fields["processed"] = processed
        if errors is not None:
            fields["errors"] = errors
        if error_log is not None:
            fields["error_log"] = error_log
        return self._write(job_id, **fields)

    def _write(self, job_id: str, **fields: Any) -> bool:
        with self._session_factory() as session:
            job = session.get(ImportJob, job_id)
            if job is None:
                logger.warning(f"Import job {job_id} not found; skipping update of {sorted(fields)}")
                return False

            new_status = fields.pop("status", None)
            if new_status is not None:
                current = ImportStatus(job.status)
                if new_status not in ALLOWED_TRANSITIONS[current]:
                    raise JobStateError(
                        f"Import job {job_id} cannot move from {current.value} to {new_status.value}"
                    )
                job.status = new_status.value

            for counter in ("processed", "errors"):
                value = fields.pop(counter, None)
                if value is None:
                    continue
                if value < (getattr(job, counter) or 0):
                    raise JobStateError(
                        f"Import job {job_id} {counter} cannot decrease "
                        f"({getattr(job, counter)} -> {value})"
                    )
                setattr(job, counter, value)

            for name, value in fields.items():
                setattr(job, name, value)

            session.commit()
            return True

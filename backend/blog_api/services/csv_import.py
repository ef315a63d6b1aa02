"""Business logic for batched CSV post imports."""

from __future__ import annotations

import csv
import logging
from collections.abc import Iterator
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from sqlalchemy import Insert
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.orm import Session, sessionmaker

from blog_api.api.schemas.import_job import ProgressEvent, QueueTask
from blog_api.core.errors import RowValidationError
from blog_api.db.models.import_job import ImportStatus
from blog_api.db.models.post import Post
from blog_api.services.job_store import JobStore
from blog_api.services.progress_notifier import ProgressNotifier
from blog_api.utils.csv_validator import normalize_row, raw_record

logger = logging.getLogger(__name__)

BATCH_SIZE = 1000
WORKER_LOST = "Import interrupted: the worker processing it stopped before finishing"


def count_rows(file_path: Path) -> int:
    """Count data lines (raw lines minus the header) without loading the file."""
    try:
        with file_path.open("rb") as handle:
            lines = sum(1 for _ in handle)
    except FileNotFoundError:
        raise ValueError(f"CSV file not found: {file_path}") from None
    except PermissionError:
        raise ValueError(f"Permission denied reading file: {file_path}") from None
    return max(0, lines - 1)


def iter_records(file_path: Path) -> Iterator[tuple[int, dict[str | None, Any]]]:
    """Yield ``(position, record)`` pairs, position being 1-based after the header."""
    try:
        with file_path.open("r", encoding="utf-8-sig", newline="") as handle:
            reader = csv.DictReader(handle)
            for position, row in enumerate(reader, start=1):
                yield position, row
    except FileNotFoundError:
        raise ValueError(f"CSV file not found: {file_path}") from None
    except PermissionError:
        raise ValueError(f"Permission denied reading file: {file_path}") from None
    except UnicodeDecodeError as e:
        raise ValueError(f"File encoding error: {e}") from e
    except csv.Error as e:
        raise ValueError(f"CSV parsing error: {e}") from e


def insert_ignoring_duplicates(dialect_name: str) -> Insert:
    """INSERT into posts that skips rows hitting a unique constraint."""
    if dialect_name == "postgresql":
        return postgresql.insert(Post.__table__).on_conflict_do_nothing()
    if dialect_name == "sqlite":
        return sqlite.insert(Post.__table__).on_conflict_do_nothing()
    raise NotImplementedError(f"Duplicate-skipping insert not supported for {dialect_name}")


@dataclass
class ImportOutcome:
    job_id: str
    status: ImportStatus
    total: int = 0
    processed: int = 0
    skipped: int = 0
    errors: int = 0
    batches: int = 0
    error_log: list[dict[str, Any]] = field(default_factory=list)


class CsvBatchProcessor:
    """Drain one queued import task: validate rows, insert in batches, report progress.

    Row-level validation failures are recorded and skipped. A failing batch
    insert aborts the run; the job is then marked FAILED with the captured
    reason and the exception is re-raised for the queue to see.
    """

    def __init__(
        self,
        job_store: JobStore,
        session_factory: sessionmaker[Session],
        notifier: ProgressNotifier,
        batch_size: int = BATCH_SIZE,
    ):
        if batch_size < 1:
            raise ValueError("batch_size must be positive")
        self.job_store = job_store
        self.session_factory = session_factory
        self.notifier = notifier
        self.batch_size = batch_size

    def run(self, task: QueueTask) -> ImportOutcome | None:
        job = self.job_store.get(task.job_id)
        if job is None:
            logger.warning(f"Import job {task.job_id} not found; dropping task")
            return None
        if job.status == ImportStatus.PROCESSING:
            # Redelivered after the worker running it died; the run cannot be resumed.
            logger.error(f"Import job {task.job_id} was interrupted; marking it FAILED")
            self._fail(
                ImportOutcome(
                    job_id=job.id,
                    status=ImportStatus.PROCESSING,
                    total=job.total,
                    processed=job.processed,
                    errors=job.errors,
                ),
                WORKER_LOST,
            )
            return None
        if job.status != ImportStatus.PENDING:
            # At-least-once delivery: a redelivered task must not restart a job.
            logger.warning(
                f"Import job {task.job_id} already {job.status.value}; ignoring duplicate task"
            )
            return None

        outcome = ImportOutcome(job_id=task.job_id, status=ImportStatus.PROCESSING)
        try:
            self._process(Path(task.file_path), outcome)
        except Exception as exc:
            logger.error(f"Import job {task.job_id} aborted: {exc}", exc_info=True)
            self._fail(outcome, exc)
            raise
        return outcome

    def _process(self, file_path: Path, outcome: ImportOutcome) -> None:
        job_id = outcome.job_id
        logger.info(f"Processing import job {job_id} file: {file_path}")

        self.job_store.mark_processing(job_id)

        outcome.total = count_rows(file_path)
        self.job_store.set_total(job_id, outcome.total)
        self._push(outcome)

        batch: list[dict[str, Any]] = []
        for position, row in iter_records(file_path):
            try:
                batch.append(normalize_row(row))
            except RowValidationError as e:
                outcome.errors += 1
                outcome.error_log.append(
                    {"row": position, "reason": str(e), "record": raw_record(row)}
                )
                continue

            if len(batch) >= self.batch_size:
                self._flush(outcome, batch)
                batch = []

        if batch:
            self._flush(outcome, batch)

        outcome.status = self.job_store.finalize(
            job_id,
            processed=outcome.processed,
            errors=outcome.errors,
            error_log=outcome.error_log,
        )
        logger.info(
            f"Import job {job_id} {outcome.status.value}: processed={outcome.processed} "
            f"skipped={outcome.skipped} errors={outcome.errors} total={outcome.total} "
            f"batches={outcome.batches}"
        )
        self._push(outcome)

    def _flush(self, outcome: ImportOutcome, batch: list[dict[str, Any]]) -> None:
        job_id = outcome.job_id
        inserted = self.insert_batch(job_id, batch)
        outcome.batches += 1
        if inserted is None:
            return
        outcome.processed += inserted
        outcome.skipped += len(batch) - inserted
        self.job_store.record_progress(job_id, outcome.processed, outcome.errors)
        self._push(outcome)

    def insert_batch(self, job_id: str, batch: list[dict[str, Any]]) -> int | None:
        """Bulk insert one batch in its own transaction.

        Returns the number of posts actually created (repeated rows are skipped),
        or ``None`` when the job no longer exists and nothing was written.
        """
        # One CSV import is single-owner: every row is attributed to the job owner.
        owner_id = self.job_store.get_owner_id(job_id)
        if owner_id is None:
            logger.warning(f"Import job {job_id} disappeared; skipping batch of {len(batch)}")
            return None

        rows = [{**row, "author_id": owner_id} for row in batch]
        with self.session_factory() as session, session.begin():
            stmt = insert_ignoring_duplicates(session.get_bind().dialect.name)
            inserted = len(session.execute(stmt.returning(Post.__table__.c.id), rows).all())
        if inserted < len(rows):
            logger.info(
                f"Import job {job_id}: skipped {len(rows) - inserted} repeated rows in batch"
            )
        logger.debug(f"Import job {job_id}: flushed batch of {len(rows)} rows")
        return inserted

    def _fail(self, outcome: ImportOutcome, exc: Exception | str) -> None:
        outcome.status = ImportStatus.FAILED
        reason = exc if isinstance(exc, str) else str(exc) or exc.__class__.__name__
        try:
            self.job_store.mark_failed(
                outcome.job_id,
                reason,
                processed=outcome.processed,
                errors=outcome.errors,
                # An interrupted run never collected the log; keep whatever is stored.
                error_log=outcome.error_log or None,
            )
        except Exception as e:
            logger.error(f"Could not mark import job {outcome.job_id} as failed: {e}", exc_info=True)
        self._push(outcome)

    def _push(self, outcome: ImportOutcome) -> None:
        event = ProgressEvent(
            job_id=outcome.job_id,
            processed=outcome.processed,
            total=outcome.total,
            errors=outcome.errors,
            status=outcome.status,
        )
        try:
            self.notifier.notify(event)
        except Exception as e:
            logger.warning(f"Progress notification failed for import job {outcome.job_id}: {e}")

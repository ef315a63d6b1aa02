"""Import job payloads shared by the API, the worker and the push channel."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from blog_api.db.models.import_job import ImportStatus


class ErrorLogEntry(BaseModel):
    row: int = Field(..., description="1-based position of the data record (header excluded)")
    reason: str
    record: dict[str, Any] = Field(default_factory=dict)


class ImportJobRead(BaseModel):
    """Point-in-time snapshot of an import job as last committed."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    filename: str
    owner_id: str
    status: ImportStatus
    total: int = 0
    processed: int = 0
    errors: int = 0
    progress: int = Field(0, description="0-100, authoritative once terminal")
    error_log: list[ErrorLogEntry] = Field(default_factory=list)
    error_message: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    started_at: datetime | None = None
    finished_at: datetime | None = None


class QueueTask(BaseModel):
    """Minimal queue payload; mutable job state is re-read from the job store."""

    job_id: str
    file_path: str


class ProgressEvent(BaseModel):
    job_id: str
    processed: int
    total: int
    errors: int
    status: ImportStatus

"""Exceptions raised by the CSV import pipeline."""


class ImportPipelineError(Exception):
    """Base class for import pipeline failures surfaced to callers."""


class UploadStorageError(ImportPipelineError):
    """The uploaded file could not be written to durable storage."""


class EnqueueError(ImportPipelineError):
    """The import job was created but its processing task could not be queued."""


class JobStateError(ImportPipelineError):
    """A write would move an import job backwards (status or counters)."""


class RowValidationError(ValueError):
    """A single CSV record failed validation; recovered per row."""

"""Local filesystem storage for uploaded import files."""

from __future__ import annotations

import logging
import shutil
import uuid
from pathlib import Path
from typing import BinaryIO

from blog_api.core.errors import UploadStorageError

logger = logging.getLogger(__name__)

DEFAULT_SUFFIX = ".csv"


class UploadStorage:
    """Persist uploads under collision-resistant random names, extension kept."""

    def __init__(self, uploads_dir: str | Path):
        self.uploads_dir = Path(uploads_dir).resolve()

    def target_for(self, original_name: str | None) -> Path:
        suffix = Path(original_name or "").suffix or DEFAULT_SUFFIX
        return self.uploads_dir / f"{uuid.uuid4().hex}{suffix}"

    def save(self, file_obj: BinaryIO, original_name: str | None = None) -> Path:
        """Copy the upload to disk and return its absolute path."""
        target_path = self.target_for(original_name)
        try:
            self.uploads_dir.mkdir(parents=True, exist_ok=True)
            file_obj.seek(0)
            with target_path.open("wb") as destination:
                shutil.copyfileobj(file_obj, destination)
        except OSError as e:
            logger.error(f"OS error saving uploaded file {original_name!r}: {e}", exc_info=True)
            if target_path.exists():
                target_path.unlink()
            raise UploadStorageError(f"Failed to save file: {e}") from e
        logger.info(f"Stored upload {original_name!r} at {target_path}")
        return target_path

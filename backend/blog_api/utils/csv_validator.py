"""Validate and normalize CSV post records."""

from __future__ import annotations

from typing import Any

from blog_api.core.errors import RowValidationError
from blog_api.db.models.post import DEFAULT_POST_TYPE, post_fingerprint

MISSING_TITLE = "Missing title"


def _clean(row: dict[str | None, Any], key: str) -> str:
    value = row.get(key)
    return value.strip() if isinstance(value, str) else ""


def normalize_row(row: dict[str | None, Any]) -> dict[str, Any]:
    """Turn a raw CSV record into an insertable ``posts`` row (author added at flush).

    Raises:
        RowValidationError: when the record has no usable title.
    """
    title = _clean(row, "title")
    if not title:
        raise RowValidationError(MISSING_TITLE)

    post = {
        "title": title,
        "content": _clean(row, "content") or None,
        "type": _clean(row, "type") or DEFAULT_POST_TYPE,
        "published": row.get("published") == "true",
    }
    post["fingerprint"] = post_fingerprint(
        post["title"], post["content"], post["type"], post["published"]
    )
    return post


def raw_record(row: dict[str | None, Any]) -> dict[str, Any]:
    """JSON-safe copy of a record; overflow cells (no header) land under ``_extra``."""
    record = {key: value for key, value in row.items() if key is not None}
    if None in row:
        record["_extra"] = row[None]
    return record

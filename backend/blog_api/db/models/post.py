"""SQLAlchemy model for blog posts."""

import hashlib
import json
import uuid

from sqlalchemy import Boolean, Column, ForeignKey, String, Text, UniqueConstraint
from sqlalchemy.sql import func
from sqlalchemy.types import DateTime

from blog_api.db.base import Base

DEFAULT_POST_TYPE = "POST"


def post_fingerprint(title, content, post_type, published) -> str:
    """Stable hash of a post's imported fields; equal only for repeated rows."""
    payload = json.dumps([title, content, post_type, bool(published)], ensure_ascii=False)
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


def _fingerprint_default(context) -> str:
    params = context.get_current_parameters()
    return post_fingerprint(
        params.get("title"),
        params.get("content"),
        params.get("type") or DEFAULT_POST_TYPE,
        params.get("published"),
    )


class Post(Base):
    __tablename__ = "posts"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    title = Column(Text, nullable=False)
    content = Column(Text)
    type = Column(String(32), nullable=False, default=DEFAULT_POST_TYPE)
    published = Column(Boolean, nullable=False, default=False)
    author_id = Column(
        String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    fingerprint = Column(String(64), nullable=False, default=_fingerprint_default)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    # Bulk imports skip rows colliding on this constraint instead of failing.
    __table_args__ = (
        UniqueConstraint("author_id", "fingerprint", name="uq_posts_author_fingerprint"),
    )

"""SQLAlchemy model for platform users (import owners and post authors)."""

import uuid

from sqlalchemy import Column, String
from sqlalchemy.sql import func
from sqlalchemy.types import DateTime

from blog_api.db.base import Base


class User(Base):
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    email = Column(String(255), nullable=False, unique=True, index=True)
    name = Column(String(255))
    created_at = Column(DateTime(timezone=True), server_default=func.now())

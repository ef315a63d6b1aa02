"""Database models package."""
from blog_api.db.models.user import User
from blog_api.db.models.post import Post
from blog_api.db.models.import_job import ImportJob, ImportStatus

__all__ = ["User", "Post", "ImportJob", "ImportStatus"]

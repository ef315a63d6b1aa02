"""Process-wide logging setup shared by the API and the Celery worker."""

import logging

from blog_api.core.config import get_settings

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"


def configure_logging(level: str | None = None) -> None:
    """Configure the root logger once; later calls only adjust the level."""
    level_name = (level or get_settings().log_level).upper()
    root = logging.getLogger()
    if not root.handlers:
        logging.basicConfig(level=level_name, format=LOG_FORMAT)
    root.setLevel(level_name)

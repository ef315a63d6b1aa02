"""Celery application for background import processing."""

import ssl

from celery import Celery, signals

from blog_api.core.config import get_settings
from blog_api.core.logging import configure_logging

settings = get_settings()


def _with_ssl(url: str) -> tuple[str, bool]:
    """Force TLS for Upstash and tag rediss:// URLs with ssl_cert_reqs."""
    if ".upstash.io" in url and url.startswith("redis://"):
        url = url.replace("redis://", "rediss://", 1)
    if not url.startswith("rediss://"):
        return url, False
    # The Redis result backend reads ssl settings from the URL during init
    if "ssl_cert_reqs" not in url:
        separator = "&" if "?" in url else "?"
        url = f"{url}{separator}ssl_cert_reqs=none"
    return url, True


broker_url, broker_ssl = _with_ssl(settings.broker_url)
backend_url, backend_ssl = _with_ssl(settings.result_backend_url)

celery_app = Celery(
    "blog_api",
    broker=broker_url,
    backend=backend_url,
)

if broker_ssl or backend_ssl:
    ssl_dict = {"ssl_cert_reqs": ssl.CERT_NONE}
    celery_app.conf.update(
        {
            "broker_use_ssl": ssl_dict,
            "result_backend_use_ssl": ssl_dict,
            "broker_transport_options": ssl_dict.copy(),
            "result_backend_transport_options": ssl_dict.copy(),
        }
    )

# Task routing by queue
celery_app.conf.task_routes = {
    "blog_api.workers.tasks.import_posts": {"queue": "imports"},
}
celery_app.conf.task_default_queue = "imports"

celery_app.conf.update(
    {
        "task_serializer": "json",
        "accept_content": ["json"],
        "result_serializer": "json",
        "timezone": "UTC",
        "enable_utc": True,
        "task_acks_late": True,  # Acknowledge after task completion
        "task_reject_on_worker_lost": True,  # Re-queue if worker dies
        "worker_prefetch_multiplier": 1,  # One import per worker process at a time
        "task_time_limit": 3600,
        "task_soft_time_limit": 3300,
        "result_expires": 3600,
        "broker_connection_retry_on_startup": True,
        "worker_hijack_root_logger": False,
    }
)


@signals.setup_logging.connect
def _setup_worker_logging(**kwargs):
    configure_logging()


# Register tasks with celery_app
from blog_api.workers.tasks import import_posts  # noqa: E402,F401

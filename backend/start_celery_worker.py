#!/usr/bin/env python3
"""Start the import worker with suppressed security warnings for containerized environments."""

import sys
import warnings

# Suppress the superuser privilege warning
warnings.filterwarnings("ignore", category=UserWarning, message=".*superuser privileges.*")
warnings.filterwarnings("ignore", category=RuntimeWarning, message=".*superuser privileges.*")

from blog_api.workers.celery_app import celery_app  # noqa: E402


def main() -> None:
    celery_app.worker_main(
        [
            "worker",
            "--loglevel=info",
            "--queues=imports",
            "--pool=solo",
            "--without-mingle",
            "--without-gossip",
            *sys.argv[1:],
        ]
    )


if __name__ == "__main__":
    main()

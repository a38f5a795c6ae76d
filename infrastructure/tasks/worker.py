"""Worker entry point: consumes the default and telemetry queues.

Equivalent to ``celery -A infrastructure.tasks.config.celery worker -Q default,telemetry``.
"""
from __future__ import annotations

from .config.celery import DEFAULT_QUEUE, TELEMETRY_QUEUE, celery_app


def main() -> None:
    celery_app.worker_main(
        argv=["worker", "--loglevel=INFO", "--hostname=charges@%h", f"--queues={DEFAULT_QUEUE},{TELEMETRY_QUEUE}"]
    )


if __name__ == "__main__":
    main()

"""Small dispatching helpers to decouple Celery from callers."""
from __future__ import annotations

from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Dict, Optional

from core.logging_config import get_logger

from ..config.celery import celery_app
from ..tasks.error_tracker import TASK_NAME as ERROR_REPORT_TASK, post_error_report


logger = get_logger(__name__)

# request handlers never wait on delivery: eager runs and broker publishes happen here
_executor: Optional[ThreadPoolExecutor] = None


def _get_executor() -> ThreadPoolExecutor:
    global _executor
    if _executor is None:
        _executor = ThreadPoolExecutor(max_workers=2, thread_name_prefix="error-tracker")
    return _executor


def _log_failure(future: Future) -> None:
    exc = future.exception()
    if exc is not None:
        logger.warning("error_tracker_dispatch_failed", error=str(exc))


class TaskDispatcher:
    """Internal facade used by application layer to schedule tasks.

    Also serves as the :class:`~application.ports.error_sink.ErrorSink`
    for tracker reports.
    """

    def submit(self, payload: Dict[str, Any], *, country: Optional[str]) -> Future:
        """Fire-and-forget delivery of one error-tracker report.

        Returns immediately; the returned future completes once the report was
        posted (eager mode) or published to the broker.
        """
        kwargs = {"payload": payload, "country": country}
        if celery_app.conf.task_always_eager:
            # send_task bypasses eager mode; run the registered task instead
            future = _get_executor().submit(post_error_report.apply, kwargs=kwargs)
        else:
            future = _get_executor().submit(self.enqueue, ERROR_REPORT_TASK, kwargs=kwargs)
        future.add_done_callback(_log_failure)
        return future

    def enqueue(self, task_name: str, *, args: tuple | None = None, kwargs: Dict[str, Any] | None = None) -> None:
        """Generic escape hatch for scheduling arbitrary tasks by name."""
        celery_app.send_task(task_name, args=args or (), kwargs=kwargs or {}, retry=False)


def shutdown_dispatcher(wait: bool = True) -> None:
    """Drain pending deliveries on application shutdown."""
    global _executor
    if _executor is not None:
        _executor.shutdown(wait=wait)
        _executor = None

"""Celery task infrastructure: app, tracker-report task and the dispatcher
the error tracker hands its payloads to."""
from .config.celery import celery_app
from .utils.dispatcher import TaskDispatcher, shutdown_dispatcher

__all__ = ["celery_app", "TaskDispatcher", "shutdown_dispatcher"]

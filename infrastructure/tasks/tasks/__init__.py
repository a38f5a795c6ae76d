"""Task modules; importing registers them with the Celery app."""
from . import error_tracker  # noqa: F401

__all__ = ["error_tracker"]

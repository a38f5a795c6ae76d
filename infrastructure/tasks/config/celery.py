"""Celery application configuration

错误追踪上报走独立的 telemetry 队列，与其它后台任务互不阻塞。
开发/测试环境下任务以 eager 模式在当前进程内同步执行，不需要 broker。
"""
from __future__ import annotations

import os

from celery import Celery
from kombu import Queue
from kombu.utils.url import maybe_sanitize_url

from core.config import settings
from core.logging_config import get_logger


CELERY_IMPORTS = (
    "infrastructure.tasks.tasks",
)

DEFAULT_QUEUE = "default"
TELEMETRY_QUEUE = "telemetry"

_EAGER_ENVIRONMENTS = {"development", "dev", "test", "testing"}

logger = get_logger(__name__)


def _broker_url() -> str | None:
    return settings.redis.url or os.getenv("CELERY_BROKER_URL")


celery_app = Celery("affirm_charges")

celery_app.conf.update(
    broker_url=_broker_url(),
    result_backend=settings.redis.url or os.getenv("CELERY_RESULT_BACKEND"),
    task_serializer="json",
    result_serializer="json",
    accept_content=["json"],
    timezone="UTC",
    enable_utc=True,
    task_acks_late=True,
    task_reject_on_worker_lost=True,
    # 上报任务没有调用方读取结果
    task_ignore_result=True,
    worker_prefetch_multiplier=1,
    task_default_queue=DEFAULT_QUEUE,
    task_queues=(Queue(DEFAULT_QUEUE), Queue(TELEMETRY_QUEUE)),
    task_routes={
        "infrastructure.tasks.tasks.error_tracker.*": {"queue": TELEMETRY_QUEUE},
    },
    imports=CELERY_IMPORTS,
    task_always_eager=(settings.ENVIRONMENT or "production").lower() in _EAGER_ENVIRONMENTS,
)

celery_app.autodiscover_tasks(packages=CELERY_IMPORTS)


@celery_app.on_after_configure.connect
def _log_configuration(sender, **kwargs):
    logger.info(
        "celery_configured",
        broker=maybe_sanitize_url(sender.conf.broker_url),
        eager=bool(sender.conf.task_always_eager),
        queues=[q.name for q in sender.conf.task_queues],
    )

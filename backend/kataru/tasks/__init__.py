"""Celery app for Kataru's scheduled housekeeping.

Job submission and polling happen inside API requests, so the worker only
runs retention cleanup.
"""

import asyncio
import threading

from celery import Celery
from celery.schedules import crontab

from kataru.config import get_settings

settings = get_settings()

celery_app = Celery(
    "kataru",
    broker=settings.REDIS_URL,
    backend=settings.REDIS_URL,
    include=["kataru.tasks.cleanup_task"],
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    result_expires=86400,
    timezone="Asia/Tokyo",
    enable_utc=True,
    task_acks_late=True,
    task_reject_on_worker_lost=True,
    worker_prefetch_multiplier=1,
)

celery_app.conf.beat_schedule = {
    "cleanup-expired-jobs": {
        "task": "kataru.tasks.cleanup_task.cleanup_expired_jobs",
        "schedule": crontab(hour=3, minute=0),
        "kwargs": {"days": settings.CLEANUP_RETENTION_DAYS},
    },
}

_thread_local = threading.local()


def run_async(coro):
    """Run a coroutine from a sync Celery task on this thread's event loop.

    The loop is kept between tasks so pooled DB connections stay bound to it.
    """
    loop = getattr(_thread_local, "loop", None)
    if loop is None or loop.is_closed():
        loop = asyncio.new_event_loop()
        _thread_local.loop = loop
    return loop.run_until_complete(coro)

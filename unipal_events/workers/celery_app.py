"""
Celery application for the UniPal email workers.

Start a worker with:
    celery -A unipal_events.workers.tasks worker --queues=email_notifications --loglevel=info
"""

import asyncio
import logging
from celery import Celery

from ..core.config import config

logger = logging.getLogger(__name__)

CELERY_TASK_ROUTES = {
    "unipal_events.workers.tasks.*": {"queue": "email_notifications"},
}

# Task time limits
CELERY_TASK_TIME_LIMIT = 300
CELERY_TASK_SOFT_TIME_LIMIT = 240


def create_celery_app(broker_url: str = None) -> Celery:
    """Create and configure the Celery app for email workers."""
    if broker_url is None:
        broker_url = asyncio.run(config.get_redis_url())

    celery_app = Celery(
        "unipal_workers",
        broker=broker_url,
        backend=broker_url,
        include=["unipal_events.workers.tasks"],
    )

    celery_app.conf.update(
        task_track_started=True,
        task_serializer="json",
        result_serializer="json",
        accept_content=["json"],
        timezone="UTC",
        enable_utc=True,
        worker_log_format="[%(asctime)s: %(levelname)s/%(processName)s] %(message)s",
        worker_task_log_format="[%(asctime)s: %(levelname)s/%(processName)s] %(task_name)s[%(task_id)s]: %(message)s",
        broker_connection_retry_on_startup=True,
        result_expires=3600,
        task_acks_late=True,
        worker_prefetch_multiplier=1,
        task_time_limit=CELERY_TASK_TIME_LIMIT,
        task_soft_time_limit=CELERY_TASK_SOFT_TIME_LIMIT,
        task_routes=CELERY_TASK_ROUTES,
    )

    logger.info("Celery app created for email workers")
    return celery_app

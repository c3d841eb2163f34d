"""
Celery application for background purchase work.
Only the beat-driven reconciliation task lives here; the API never enqueues tasks itself.
"""
from datetime import timedelta

from celery import Celery
from celery.signals import setup_logging

from app.core.config import settings
from app.core.logging import configure_logging

RECONCILE_TASK = "app.workers.tasks.reconcile_purchases.reconcile_stale_purchases"

celery_app = Celery(
    "story_unlock",
    broker=settings.celery_broker_url,
    backend=settings.celery_result_backend,
    include=["app.workers.tasks.reconcile_purchases"],
)

_reconcile_every = timedelta(minutes=settings.purchase_reconcile_interval_minutes)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_acks_late=True,
    worker_prefetch_multiplier=1,
    task_time_limit=600,
    result_expires=3600,
    beat_schedule={
        "reconcile-stale-purchases": {
            "task": RECONCILE_TASK,
            "schedule": _reconcile_every,
            # a run still queued when the next one is due is dropped
            "options": {"expires": _reconcile_every.total_seconds()},
        },
    },
)


@setup_logging.connect
def _configure_worker_logging(**kwargs) -> None:
    configure_logging()

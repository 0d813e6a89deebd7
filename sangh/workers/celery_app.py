"""
Celery application instance.

Configured with Redis broker and backend. Beat runs the office bearer term
sweep on a fixed interval.
"""

from celery import Celery
from celery.signals import worker_process_init

from sangh.core.config import settings
from sangh.core.logging import configure_logging

celery_app = Celery(
    "sangh",
    broker=settings.CELERY_BROKER_URL,
    backend=settings.CELERY_RESULT_BACKEND,
    include=[
        "sangh.workers.term_tasks",
    ],
)

celery_app.conf.update(
    # Serialization
    task_serializer="json",
    result_serializer="json",
    accept_content=["json"],
    # Timezone
    timezone="UTC",
    enable_utc=True,
    # Results
    result_expires=3600,
    # Retry policy
    task_acks_late=True,
    task_reject_on_worker_lost=True,
    # Concurrency
    worker_prefetch_multiplier=1,
    # Routing
    task_default_queue="default",
    task_queues={
        "default": {},
        "terms": {},
    },
    task_routes={
        "sangh.workers.term_tasks.*": {"queue": "terms"},
    },
    # Schedule
    beat_schedule={
        "sweep-expired-terms": {
            "task": "sangh.workers.term_tasks.sweep_expired_terms",
            "schedule": float(settings.TERM_SWEEP_INTERVAL_SECONDS),
        },
    },
)


@worker_process_init.connect
def init_worker_logging(**kwargs: object) -> None:
    configure_logging()

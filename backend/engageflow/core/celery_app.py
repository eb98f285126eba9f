from celery import Celery
from celery.schedules import crontab
from celery.signals import setup_logging as celery_setup_logging

from engageflow.core.config import settings
from engageflow.core.logging import setup_logging

celery_app = Celery(
    "engageflow",
    broker=settings.REDIS_URL,
    backend=settings.REDIS_URL,
    include=["engageflow.tasks.discovery_tasks"],
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    # a discovery run is one long task; never hand it to two workers
    task_acks_late=False,
    worker_prefetch_multiplier=1,
)

celery_app.conf.beat_schedule = {
    # Discover new content on the configured communities
    "auto-discover": {
        "task": "engageflow.tasks.discovery_tasks.auto_discover",
        "schedule": crontab(minute=0, hour=f"*/{settings.DISCOVERY_INTERVAL_HOURS}"),
    },

    # Release jobs whose runner died
    "expire-stale-jobs": {
        "task": "engageflow.tasks.discovery_tasks.expire_stale_jobs",
        "schedule": crontab(minute=30),
    },
}


@celery_setup_logging.connect
def configure_worker_logging(**kwargs):
    # keep the worker on the same dictConfig as the API
    setup_logging()

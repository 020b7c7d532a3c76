"""
Celery application configuration.

Redis broker, task autodiscovery, and the beat schedule that keeps the
shared exchange-rate snapshot warm.
"""

from celery import Celery

from evoke.config import settings

celery_app = Celery(
    "evoke",
    broker=settings.CELERY_BROKER_URL,
    backend=settings.CELERY_RESULT_BACKEND,
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,
    worker_prefetch_multiplier=1,
)

celery_app.autodiscover_tasks(["evoke.tasks"], related_name="rate_tasks")

celery_app.conf.beat_schedule = {
    "refresh-exchange-rates": {
        "task": "evoke.tasks.rate_tasks.refresh_exchange_rates",
        "schedule": settings.EXCHANGE_RATE_REFRESH_SECONDS,
    },
}

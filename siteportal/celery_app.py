"""Celery application for event fan-out.

The API publishes events with ``siteportal.services.event.publish_event``;
workers run ``siteportal.tasks.*``.
"""
from celery import Celery

from siteportal.config import settings

celery_app = Celery(
    "siteportal",
    broker=settings.celery_broker_url,
    backend=settings.celery_result_backend,
    include=["siteportal.tasks.events", "siteportal.tasks.notifications"],
)

celery_app.conf.update(
    task_always_eager=settings.celery_task_always_eager,
    task_ignore_result=True,
    task_acks_late=True,
    worker_prefetch_multiplier=1,
    timezone=settings.site_timezone,
)

"""Celery worker configuration.

This module sets up Celery for background task processing including:
- Lifecycle event webhook delivery
- Daily automatic checkout
- Daily no-show detection
"""

from celery import Celery
from celery.schedules import crontab

from staydesk.config import settings

# Create Celery app
celery_app = Celery(
    "staydesk_tasks",
    broker=settings.redis_url,
    backend=settings.redis_url,
    include=["staydesk.tasks"],
)

# Celery configuration
celery_app.conf.update(
    # Task settings
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone=settings.scheduler_timezone,
    enable_utc=True,

    # Task execution settings
    task_acks_late=True,
    task_reject_on_worker_lost=True,
    task_time_limit=300,  # 5 minutes max
    task_soft_time_limit=240,  # Soft limit at 4 minutes

    # Worker settings
    worker_prefetch_multiplier=1,

    # Result backend settings
    result_expires=3600,  # Results expire after 1 hour

    # Retry settings
    task_default_retry_delay=60,  # 1 minute
    task_max_retries=3,

    # Beat schedule for periodic tasks
    beat_schedule={
        # Check out departed guests at the property's checkout time
        "auto-checkout": {
            "task": "staydesk.tasks.run_auto_checkout",
            "schedule": crontab(hour=settings.auto_checkout_hour, minute=0),
        },
        # Flag suspected no-shows after the morning shift starts
        "detect-no-shows": {
            "task": "staydesk.tasks.run_no_show_detection",
            "schedule": crontab(hour=9, minute=0),
        },
    },
)


if __name__ == "__main__":
    celery_app.start()

from __future__ import annotations
"""reminders/workers/celery_app.py
~~~~~~~~~~~~~~~~~~~~~~~~~~~~
Celery app + routage + auto-import des modules de tâches + beat schedule.
"""
from celery import Celery

from reminders.core.config import settings
from reminders.workers.scheduler.beat_schedule import beat_schedule

celery = Celery("reminders", broker=settings.REDIS_URL, backend=settings.REDIS_URL)

# Routage : toutes les tâches de relance sur la file "reminders"
celery.conf.task_routes = {
    "tasks.reminders.evaluate": {"queue": "reminders"},
    "tasks.reminders.drain": {"queue": "reminders"},
    "tasks.reminders.retry_failed": {"queue": "reminders"},
}

celery.conf.update(
    imports=[
        "reminders.workers.tasks.reminder_tasks",
    ],
    timezone="UTC",
    enable_utc=True,
    task_acks_late=True,
    worker_prefetch_multiplier=1,
)

celery.conf.beat_schedule = beat_schedule

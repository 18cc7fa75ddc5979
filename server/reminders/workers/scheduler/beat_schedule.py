from __future__ import annotations
"""server/reminders/workers/scheduler/beat_schedule.py
~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~
Planification périodique des tâches Celery (Beat).
"""
from celery.schedules import crontab

from reminders.core.config import settings

beat_schedule = {
    "evaluate-escalations-daily": {
        "task": "tasks.reminders.evaluate",
        "schedule": crontab(hour=settings.EVALUATE_CRON_HOUR, minute=0),
    },
    # filet de sécurité : reprend le pending laissé par un chaînage interrompu
    "drain-reminders-every-300s": {
        "task": "tasks.reminders.drain",
        "schedule": 300.0,
    },
    "retry-failed-reminders-hourly": {
        "task": "tasks.reminders.retry_failed",
        "schedule": crontab(minute=15),
    },
}

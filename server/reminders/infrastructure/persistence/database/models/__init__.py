from __future__ import annotations
"""server/reminders/infrastructure/persistence/database/models/__init__.py
~~~~~~~~~~~~~~~~~~~~~~~~
Modèles ORM (register for Alembic).
"""

from .queue_item import QueueItem
from .sent_log import SentLogEntry
from .course_deadline import CourseDeadlineConfig

__all__ = ["QueueItem", "SentLogEntry", "CourseDeadlineConfig"]

from __future__ import annotations
"""server/reminders/application/services/stats_service.py
~~~~~~~~~~~~~~~~~~~~~~~~
Chiffres du tableau de bord (API /dashboard, CLI `stats`).
"""

import logging
from datetime import datetime
from typing import Any, Optional

from reminders.application.ports import Directory
from reminders.application.services.base import SessionBound, SessionFactory
from reminders.application.services.deadline_service import DeadlineResolver
from reminders.application.services.overdue_service import OverdueSetProvider
from reminders.core.errors import DirectoryError
from reminders.core.utils.datetime import as_utc, start_of_day, utcnow
from reminders.domain.entities import QueueStatus, SiteConfig
from reminders.infrastructure.persistence.repositories.queue_repository import QueueRepository

log = logging.getLogger(__name__)


class StatsService(SessionBound):
    def __init__(
        self,
        config: SiteConfig,
        directory: Directory,
        *,
        session_factory: SessionFactory | None = None,
        deadlines: Optional[DeadlineResolver] = None,
    ):
        super().__init__(session_factory)
        self.directory = directory
        self.deadlines = deadlines or DeadlineResolver(config, session_factory)
        self.overdue = OverdueSetProvider(directory)

    def mandatory_courses(self) -> list[dict[str, Any]]:
        """Cours obligatoires : nom, échéance résolue, nombre d'inscrits non complete."""
        out = []
        for course_id in self.directory.mandatory_courses():
            course = self.directory.get_course(course_id)
            if course is None:
                continue
            out.append(
                {
                    "id": course.id,
                    "fullname": course.fullname,
                    "deadline_days": self.deadlines.resolve(course.id),
                    "incomplete_users": len(self.overdue.incomplete_users(course_id)),
                }
            )
        return out

    def summary(self, now: datetime | None = None) -> dict[str, Any]:
        now = as_utc(now) if now else utcnow()
        with self._session() as s:
            repo = QueueRepository(s)
            counts = repo.count_by_status()
            sent_today = repo.count_sent_since(start_of_day(now))

        try:
            courses = self.mandatory_courses()
        except DirectoryError as exc:
            log.warning("stats: directory unavailable: %s", exc)
            courses = []

        return {
            "pending": counts[QueueStatus.PENDING],
            "processing": counts[QueueStatus.PROCESSING],
            "sent": counts[QueueStatus.SENT],
            "failed": counts[QueueStatus.FAILED],
            "sent_today": sent_today,
            "mandatory_courses": len(courses),
            "incomplete_users": sum(c["incomplete_users"] for c in courses),
        }

    def queue_status(self, limit: int = 10) -> list[dict[str, Any]]:
        """Prochains items à partir (pending, plus anciens d'abord)."""
        with self._session() as s:
            items = QueueRepository(s).fetch_pending(limit=limit)
            return [
                {
                    "id": i.id,
                    "user_id": i.user_id,
                    "course_id": i.course_id,
                    "level": i.level,
                    "recipient_type": i.recipient_type.value,
                    "recipient_address": i.recipient_address,
                    "created_at": i.created_at,
                }
                for i in items
            ]

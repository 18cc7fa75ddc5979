from __future__ import annotations
"""server/reminders/application/services/deadline_service.py
~~~~~~~~~~~~~~~~~~~~~~~~
Résolution de l'échéance d'un cours (jours) : surcharge par cours, sinon défaut global.
"""

import logging

from sqlalchemy.exc import SQLAlchemyError

from reminders.application.services.base import SessionBound, SessionFactory
from reminders.core.utils.datetime import utcnow
from reminders.domain.entities import SiteConfig
from reminders.infrastructure.persistence.repositories.deadline_config_repository import (
    DeadlineConfigRepository,
)

log = logging.getLogger(__name__)


class DeadlineResolver(SessionBound):
    def __init__(self, config: SiteConfig, session_factory: SessionFactory | None = None):
        super().__init__(session_factory)
        self.config = config

    @property
    def default_days(self) -> int:
        return max(1, int(self.config.default_deadline_days))

    def resolve(self, course_id: int) -> int:
        try:
            with self._session() as s:
                days = DeadlineConfigRepository(s).get_days(course_id)
        except SQLAlchemyError as exc:
            log.warning("deadline lookup failed for course %s, using default: %s", course_id, exc)
            return self.default_days
        return int(days) if days else self.default_days

    def set(self, course_id: int, days: int) -> int:
        """Action administrateur : fixe l'échéance d'un cours."""
        if int(days) < 1:
            raise ValueError("deadline_days must be >= 1")
        with self._session() as s:
            DeadlineConfigRepository(s).upsert(course_id, int(days), utcnow())
            s.commit()
        log.info("deadline set", extra={"course_id": course_id, "deadline_days": days})
        return int(days)

    def clear(self, course_id: int) -> bool:
        with self._session() as s:
            removed = DeadlineConfigRepository(s).delete(course_id)
            s.commit()
        return removed

    def list_overrides(self) -> dict[int, int]:
        with self._session() as s:
            return {row.course_id: row.deadline_days for row in DeadlineConfigRepository(s).list_all()}

from __future__ import annotations

"""server/reminders/infrastructure/persistence/repositories/sent_log_repository.py
~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~
Repository du journal d'idempotence (user, course, level).

- `claim(...)` insère la ligne : la contrainte d'unicité sert de verrou entre
  deux évaluations concurrentes (IntegrityError => déjà pris, rollback).
- `touch(...)` rafraîchit `sent_at` après un envoi effectif (upsert).
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from reminders.infrastructure.persistence.database.models.sent_log import SentLogEntry


class SentLogRepository:
    def __init__(self, db: Session) -> None:
        self.db = db

    def get(self, user_id: int, course_id: int, level: int) -> SentLogEntry | None:
        return self.db.execute(
            select(SentLogEntry).where(
                SentLogEntry.user_id == user_id,
                SentLogEntry.course_id == course_id,
                SentLogEntry.level == level,
            )
        ).scalar_one_or_none()

    def exists(self, user_id: int, course_id: int, level: int) -> bool:
        return self.get(user_id, course_id, level) is not None

    def claim(
        self,
        *,
        user_id: int,
        course_id: int,
        level: int,
        enrolled_at: Optional[datetime],
        deadline_at: Optional[datetime],
        now: datetime,
    ) -> bool:
        """True si la ligne vient d'être créée par cet appel."""
        entry = SentLogEntry(
            user_id=user_id,
            course_id=course_id,
            level=level,
            enrolled_at=enrolled_at,
            deadline_at=deadline_at,
            sent_at=now,
            created_at=now,
        )
        self.db.add(entry)
        try:
            self.db.flush()
        except IntegrityError:
            # Doit être la première écriture de la transaction : on annule tout.
            self.db.rollback()
            return False
        return True

    def touch(
        self,
        *,
        user_id: int,
        course_id: int,
        level: int,
        enrolled_at: Optional[datetime],
        deadline_at: Optional[datetime],
        now: datetime,
    ) -> SentLogEntry:
        entry = self.get(user_id, course_id, level)
        if entry is None:
            entry = SentLogEntry(user_id=user_id, course_id=course_id, level=level, created_at=now)
            self.db.add(entry)
        if enrolled_at is not None:
            entry.enrolled_at = enrolled_at
        if deadline_at is not None:
            entry.deadline_at = deadline_at
        entry.sent_at = now
        self.db.flush()
        return entry

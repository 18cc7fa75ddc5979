from __future__ import annotations
"""server/reminders/application/services/overdue_service.py
~~~~~~~~~~~~~~~~~~~~~~~~
Utilisateurs inscrits à un cours et pas encore "complete".
"""

from datetime import datetime
from typing import Optional

from reminders.application.ports import Directory
from reminders.core.utils.datetime import as_utc
from reminders.domain.entities import OverdueUser


class OverdueSetProvider:
    def __init__(self, directory: Directory):
        self.directory = directory

    def incomplete_users(self, course_id: int) -> list[OverdueUser]:
        """
        Filtre les inscriptions brutes :
        - utilisateur ou inscription inactifs -> ignorés
        - completed True -> ignoré (None = suivi désactivé => incomplet)
        - plusieurs inscriptions -> la plus ancienne
        """
        earliest: dict[int, OverdueUser] = {}
        completed: set[int] = set()
        for rec in self.directory.enrollments(course_id):
            if not rec.user_active or not rec.enrolment_active:
                continue
            if rec.completed is True:
                completed.add(rec.user_id)
                continue
            enrolled_at = as_utc(rec.enrolled_at)
            current = earliest.get(rec.user_id)
            if current is None or enrolled_at < current.enrolled_at:
                earliest[rec.user_id] = OverdueUser(user_id=rec.user_id, enrolled_at=enrolled_at)

        return [earliest[uid] for uid in sorted(earliest) if uid not in completed]

    def enrolled_at(self, course_id: int, user_id: int) -> Optional[datetime]:
        """Date d'inscription retenue pour un utilisateur (la plus ancienne active)."""
        dates = [
            as_utc(rec.enrolled_at)
            for rec in self.directory.enrollments(course_id)
            if rec.user_id == user_id and rec.user_active and rec.enrolment_active
        ]
        return min(dates) if dates else None

from __future__ import annotations

"""server/reminders/infrastructure/persistence/repositories/deadline_config_repository.py
~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~
Repository des échéances par cours. Ne commit pas.
"""

from datetime import datetime

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from reminders.infrastructure.persistence.database.models.course_deadline import CourseDeadlineConfig


class DeadlineConfigRepository:
    def __init__(self, db: Session) -> None:
        self.db = db

    def get_days(self, course_id: int) -> int | None:
        return self.db.scalar(
            select(CourseDeadlineConfig.deadline_days).where(CourseDeadlineConfig.course_id == course_id)
        )

    def list_all(self) -> list[CourseDeadlineConfig]:
        return list(self.db.scalars(select(CourseDeadlineConfig).order_by(CourseDeadlineConfig.course_id)))

    def upsert(self, course_id: int, deadline_days: int, now: datetime) -> CourseDeadlineConfig:
        row = self.db.execute(
            select(CourseDeadlineConfig).where(CourseDeadlineConfig.course_id == course_id)
        ).scalar_one_or_none()
        if row is None:
            row = CourseDeadlineConfig(
                course_id=course_id, deadline_days=deadline_days, created_at=now, modified_at=now
            )
            self.db.add(row)
        else:
            row.deadline_days = deadline_days
            row.modified_at = now
        self.db.flush()
        return row

    def delete(self, course_id: int) -> bool:
        res = self.db.execute(delete(CourseDeadlineConfig).where(CourseDeadlineConfig.course_id == course_id))
        return bool(res.rowcount)

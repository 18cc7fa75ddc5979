from __future__ import annotations
"""server/reminders/infrastructure/persistence/database/models/course_deadline.py
~~~~~~~~~~~~~~~~~~~~~~~~
Table course_deadline_config : échéance (en jours) surchargée par cours.
"""
from datetime import datetime

import sqlalchemy as sa
from sqlalchemy.orm import Mapped, mapped_column

from reminders.infrastructure.persistence.database.base import Base
from reminders.infrastructure.persistence.database.types import TstzPortable, utcnow


class CourseDeadlineConfig(Base):
    __tablename__ = "course_deadline_config"
    __table_args__ = (
        sa.CheckConstraint("deadline_days >= 1", name="ck_course_deadline_days_positive"),
    )

    id: Mapped[int] = mapped_column(sa.Integer, primary_key=True, autoincrement=True)
    course_id: Mapped[int] = mapped_column(sa.Integer, nullable=False, unique=True)
    deadline_days: Mapped[int] = mapped_column(sa.Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(TstzPortable(), nullable=False, default=utcnow)
    modified_at: Mapped[datetime] = mapped_column(
        TstzPortable(), nullable=False, default=utcnow, onupdate=utcnow
    )

from __future__ import annotations
"""server/reminders/infrastructure/persistence/database/models/sent_log.py
~~~~~~~~~~~~~~~~~~~~~~~~
Table reminder_sent_log : journal d'idempotence (user, course, level).
"""
from datetime import datetime

import sqlalchemy as sa
from sqlalchemy.orm import Mapped, mapped_column

from reminders.infrastructure.persistence.database.base import Base
from reminders.infrastructure.persistence.database.types import TstzPortable, utcnow


class SentLogEntry(Base):
    __tablename__ = "reminder_sent_log"
    __table_args__ = (
        sa.UniqueConstraint("user_id", "course_id", "level", name="uq_reminder_sent_log_triple"),
    )

    id: Mapped[int] = mapped_column(sa.Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(sa.Integer, nullable=False)
    course_id: Mapped[int] = mapped_column(sa.Integer, nullable=False)
    level: Mapped[int] = mapped_column(sa.SmallInteger, nullable=False)

    enrolled_at: Mapped[datetime | None] = mapped_column(TstzPortable(), nullable=True)
    deadline_at: Mapped[datetime | None] = mapped_column(TstzPortable(), nullable=True)
    sent_at: Mapped[datetime] = mapped_column(TstzPortable(), nullable=False, default=utcnow)
    created_at: Mapped[datetime] = mapped_column(TstzPortable(), nullable=False, default=utcnow)

    def __repr__(self) -> str:  # pragma: no cover
        return f"<SentLogEntry user={self.user_id} course={self.course_id} level={self.level}>"

from __future__ import annotations
"""server/reminders/infrastructure/persistence/database/models/queue_item.py
~~~~~~~~~~~~~~~~~~~~~~~~
Table reminder_queue : une ligne = un e-mail à envoyer à UN destinataire.
"""
from datetime import datetime

import sqlalchemy as sa
from sqlalchemy.orm import Mapped, mapped_column

from reminders.domain.entities import QueueStatus, RecipientType
from reminders.infrastructure.persistence.database.base import Base
from reminders.infrastructure.persistence.database.types import StrEnum, TstzPortable, utcnow


class QueueItem(Base):
    __tablename__ = "reminder_queue"
    __table_args__ = (
        sa.Index("ix_reminder_queue_status_created", "status", "created_at"),
        sa.Index(
            "ix_reminder_queue_sibling_key",
            "recipient_address", "recipient_type", "course_id", "level",
        ),
        sa.CheckConstraint("level BETWEEN 1 AND 4", name="ck_reminder_queue_level"),
    )

    id: Mapped[int] = mapped_column(sa.Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(sa.Integer, nullable=False, index=True)
    course_id: Mapped[int] = mapped_column(sa.Integer, nullable=False)
    level: Mapped[int] = mapped_column(sa.SmallInteger, nullable=False)

    recipient_type: Mapped[RecipientType] = mapped_column(
        StrEnum(RecipientType, "recipient_type"), nullable=False
    )
    recipient_address: Mapped[str] = mapped_column(sa.String(255), nullable=False)

    status: Mapped[QueueStatus] = mapped_column(
        StrEnum(QueueStatus, "queue_status"), nullable=False, default=QueueStatus.PENDING
    )
    attempts: Mapped[int] = mapped_column(sa.Integer, nullable=False, default=0)

    created_at: Mapped[datetime] = mapped_column(TstzPortable(), nullable=False, default=utcnow)
    modified_at: Mapped[datetime] = mapped_column(TstzPortable(), nullable=False, default=utcnow)
    sent_at: Mapped[datetime | None] = mapped_column(TstzPortable(), nullable=True)

    # Snapshot pré-rendu (employee uniquement)
    rendered_subject: Mapped[str | None] = mapped_column(sa.Text, nullable=True)
    rendered_body: Mapped[str | None] = mapped_column(sa.Text, nullable=True)

    error_message: Mapped[str | None] = mapped_column(sa.String(255), nullable=True)

    def __repr__(self) -> str:  # pragma: no cover
        return (
            f"<QueueItem id={self.id} user={self.user_id} course={self.course_id} "
            f"level={self.level} type={self.recipient_type} status={self.status}>"
        )

from __future__ import annotations

"""server/reminders/infrastructure/persistence/repositories/queue_repository.py
~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~
Repository de la file d'envoi (reminder_queue).

Principes :
- Le repo **reçoit** une Session SQLAlchemy gérée par l'appelant.
- Il ne crée ni ne ferme la session, et **ne commit pas** (c'est le rôle de l'appelant).
- Les transitions sensibles à la concurrence sont des UPDATE conditionnels
  (compare-and-swap sur `status`) : on regarde `rowcount` au lieu de relire puis écrire.
"""

from datetime import datetime
from typing import Iterable, Optional, Sequence

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from reminders.domain.entities import DrainScope, QueueStatus, RecipientType
from reminders.infrastructure.persistence.database.models.queue_item import QueueItem

LIVE_STATUSES = (QueueStatus.PENDING, QueueStatus.PROCESSING)


class QueueRepository:
    def __init__(self, db: Session) -> None:
        self.db = db

    # --- Create ---------------------------------------------------------------

    def add(
        self,
        *,
        user_id: int,
        course_id: int,
        level: int,
        recipient_type: RecipientType,
        recipient_address: str,
        now: datetime,
        rendered_subject: Optional[str] = None,
        rendered_body: Optional[str] = None,
    ) -> QueueItem:
        item = QueueItem(
            user_id=user_id,
            course_id=course_id,
            level=level,
            recipient_type=recipient_type,
            recipient_address=recipient_address,
            status=QueueStatus.PENDING,
            attempts=0,
            created_at=now,
            modified_at=now,
            rendered_subject=rendered_subject,
            rendered_body=rendered_body,
        )
        self.db.add(item)
        self.db.flush()
        return item

    # --- Read ----------------------------------------------------------------

    def get(self, item_id: int) -> QueueItem | None:
        return self.db.get(QueueItem, item_id)

    def get_status(self, item_id: int) -> QueueStatus | None:
        """Relit uniquement la colonne status (pas d'objet en cache)."""
        return self.db.scalar(select(QueueItem.status).where(QueueItem.id == item_id))

    def _scoped(self, stmt, scope: DrainScope | None):
        if scope is None:
            return stmt
        if scope.item_ids is not None:
            stmt = stmt.where(QueueItem.id.in_(scope.item_ids))
        if scope.recipient_type is not None:
            stmt = stmt.where(QueueItem.recipient_type == scope.recipient_type)
        return stmt

    def fetch_pending(self, *, limit: int, scope: DrainScope | None = None) -> list[QueueItem]:
        """Items pending du périmètre, plus anciens d'abord (id en départage)."""
        stmt = self._scoped(select(QueueItem).where(QueueItem.status == QueueStatus.PENDING), scope)
        stmt = stmt.order_by(QueueItem.created_at.asc(), QueueItem.id.asc()).limit(limit)
        return list(self.db.scalars(stmt))

    def count_pending(self, scope: DrainScope | None = None) -> int:
        stmt = select(func.count(QueueItem.id)).where(QueueItem.status == QueueStatus.PENDING)
        return int(self.db.scalar(self._scoped(stmt, scope)) or 0)

    def live_siblings(
        self,
        *,
        recipient_type: RecipientType,
        recipient_address: str,
        course_id: int,
        level: int,
    ) -> list[QueueItem]:
        """Lignes encore vivantes (pending/processing) du même e-mail agrégé."""
        stmt = (
            select(QueueItem)
            .where(
                QueueItem.recipient_type == recipient_type,
                QueueItem.recipient_address == recipient_address,
                QueueItem.course_id == course_id,
                QueueItem.level == level,
                QueueItem.status.in_(LIVE_STATUSES),
            )
            .order_by(QueueItem.user_id.asc(), QueueItem.id.asc())
        )
        return list(self.db.scalars(stmt))

    def list_items(
        self,
        *,
        status: QueueStatus | None = None,
        recipient_type: RecipientType | None = None,
        level: int | None = None,
        course_id: int | None = None,
        limit: int = 100,
        offset: int = 0,
    ) -> list[QueueItem]:
        stmt = select(QueueItem)
        if status is not None:
            stmt = stmt.where(QueueItem.status == status)
        if recipient_type is not None:
            stmt = stmt.where(QueueItem.recipient_type == recipient_type)
        if level is not None:
            stmt = stmt.where(QueueItem.level == level)
        if course_id is not None:
            stmt = stmt.where(QueueItem.course_id == course_id)
        stmt = stmt.order_by(QueueItem.created_at.desc(), QueueItem.id.desc()).offset(offset).limit(limit)
        return list(self.db.scalars(stmt))

    def count_by_status(self) -> dict[QueueStatus, int]:
        rows = self.db.execute(
            select(QueueItem.status, func.count(QueueItem.id)).group_by(QueueItem.status)
        ).all()
        counts = {s: 0 for s in QueueStatus}
        for status, n in rows:
            counts[QueueStatus(status)] = int(n)
        return counts

    def count_sent_since(self, since: datetime) -> int:
        return int(
            self.db.scalar(
                select(func.count(QueueItem.id)).where(
                    QueueItem.status == QueueStatus.SENT,
                    QueueItem.sent_at >= since,
                )
            )
            or 0
        )

    def failed_retry_candidates(self, *, max_attempts: int, ids: Iterable[int] | None = None) -> list[QueueItem]:
        stmt = select(QueueItem).where(
            QueueItem.status == QueueStatus.FAILED,
            QueueItem.attempts < max_attempts,
        )
        if ids is not None:
            stmt = stmt.where(QueueItem.id.in_(list(ids)))
        return list(self.db.scalars(stmt.order_by(QueueItem.id.asc())))

    # --- Transitions ---------------------------------------------------------

    def claim(self, item_id: int, now: datetime) -> bool:
        """
        pending -> processing, en CAS. Retourne False si un autre acteur
        (envoi manuel concurrent, dédup des frères) a déjà pris la ligne.
        """
        res = self.db.execute(
            update(QueueItem)
            .where(QueueItem.id == item_id, QueueItem.status == QueueStatus.PENDING)
            .values(status=QueueStatus.PROCESSING, modified_at=now)
            .execution_options(synchronize_session=False)
        )
        return res.rowcount == 1

    def mark_sent(self, item_id: int, now: datetime) -> bool:
        res = self.db.execute(
            update(QueueItem)
            .where(QueueItem.id == item_id, QueueItem.status == QueueStatus.PROCESSING)
            .values(status=QueueStatus.SENT, sent_at=now, modified_at=now, error_message=None)
            .execution_options(synchronize_session=False)
        )
        return res.rowcount == 1

    def mark_failed(self, item_id: int, error: str, now: datetime) -> bool:
        res = self.db.execute(
            update(QueueItem)
            .where(QueueItem.id == item_id, QueueItem.status == QueueStatus.PROCESSING)
            .values(
                status=QueueStatus.FAILED,
                attempts=QueueItem.attempts + 1,
                error_message=error,
                modified_at=now,
            )
            .execution_options(synchronize_session=False)
        )
        return res.rowcount == 1

    def mark_siblings_sent(self, item: QueueItem, sent_at: datetime) -> int:
        """
        Passe en `sent` toutes les lignes sœurs encore vivantes (même adresse, type,
        cours, niveau). Rejouer l'UPDATE est sans effet (idempotent).
        """
        res = self.db.execute(
            update(QueueItem)
            .where(
                QueueItem.recipient_type == item.recipient_type,
                QueueItem.recipient_address == item.recipient_address,
                QueueItem.course_id == item.course_id,
                QueueItem.level == item.level,
                QueueItem.status.in_(LIVE_STATUSES),
                QueueItem.id != item.id,
            )
            .values(status=QueueStatus.SENT, sent_at=sent_at, modified_at=sent_at)
            .execution_options(synchronize_session=False)
        )
        return int(res.rowcount or 0)

    def recover_stale(self, *, older_than: datetime, now: datetime) -> int:
        """processing depuis trop longtemps (worker mort) -> pending."""
        res = self.db.execute(
            update(QueueItem)
            .where(
                QueueItem.status == QueueStatus.PROCESSING,
                QueueItem.modified_at < older_than,
            )
            .values(status=QueueStatus.PENDING, modified_at=now)
            .execution_options(synchronize_session=False)
        )
        return int(res.rowcount or 0)

    def requeue_failed(self, item_ids: Sequence[int], now: datetime) -> int:
        """failed -> pending (re-tentative décidée par l'opérateur ou la politique de retry)."""
        if not item_ids:
            return 0
        res = self.db.execute(
            update(QueueItem)
            .where(QueueItem.id.in_(list(item_ids)), QueueItem.status == QueueStatus.FAILED)
            .values(status=QueueStatus.PENDING, error_message=None, modified_at=now)
            .execution_options(synchronize_session=False)
        )
        return int(res.rowcount or 0)

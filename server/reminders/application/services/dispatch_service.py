from __future__ import annotations
"""server/reminders/application/services/dispatch_service.py
~~~~~~~~~~~~~~~~~~~~~~~~
Livraison de la file `reminder_queue`.

Cycle d'un item :
    pending --claim (CAS)--> processing --livraison--> sent | failed
    processing trop ancien (worker mort) --récupération--> pending
    failed --retry (opérateur / politique)--> pending

Chaque passage (`drain`) :
1) remet en pending les items bloqués en processing depuis plus de
   STALE_PROCESSING_MINUTES ;
2) lit un lot de pending (plus anciens d'abord) ;
3) pour chaque item : claim CAS (commit) -> livraison après le commit ->
   sent/failed (commit). Un échec n'interrompt jamais le lot ;
4) compte le pending restant du périmètre : le worker se re-planifie tant
   qu'il en reste (sauf envoi ciblé d'une liste d'ids).

Les e-mails supervisor / senior manager sont agrégés : un seul envoi par
(adresse, type, cours, niveau), les lignes sœurs passent en `sent` avec le
même horodatage.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeout
from datetime import datetime, timedelta
from typing import Callable, Iterable, Optional, Sequence

from sqlalchemy.exc import SQLAlchemyError

from reminders.application.ports import Directory, InAppNotifier, Mailer
from reminders.application.services.address_service import AddressResolver
from reminders.application.services.base import SessionBound, SessionFactory
from reminders.application.services.deadline_service import DeadlineResolver
from reminders.application.services.email_renderer import EmailRenderer
from reminders.application.services.overdue_service import OverdueSetProvider
from reminders.core.errors import DeliveryTimeout, QueueItemNotFound
from reminders.core.utils.datetime import as_utc, utcnow
from reminders.domain.entities import (
    BatchSummary,
    DrainScope,
    QueueStatus,
    RecipientType,
    RenderedMessage,
    SelectedResult,
    SendResult,
    SiteConfig,
)
from reminders.domain.policies import deadline_for, retry_backoff, truncate_error
from reminders.infrastructure.persistence.database.models.queue_item import QueueItem
from reminders.infrastructure.persistence.repositories.queue_repository import QueueRepository
from reminders.infrastructure.persistence.repositories.sent_log_repository import SentLogRepository

log = logging.getLogger(__name__)

DrainScheduler = Callable[[DrainScope], None]


def schedule_drain(scope: DrainScope) -> None:
    """Planifie un passage du worker en arrière-plan (Celery)."""
    from reminders.workers.tasks import reminder_tasks

    reminder_tasks.schedule_drain(scope)


class DispatchService(SessionBound):
    def __init__(
        self,
        config: SiteConfig,
        directory: Directory,
        *,
        mailer: Optional[Mailer] = None,
        notifier: Optional[InAppNotifier] = None,
        session_factory: SessionFactory | None = None,
        addresses: Optional[AddressResolver] = None,
        deadlines: Optional[DeadlineResolver] = None,
        renderer: Optional[EmailRenderer] = None,
        scheduler: Optional[DrainScheduler] = None,
    ):
        super().__init__(session_factory)
        self.config = config
        self.directory = directory
        self.mailer = mailer
        self.notifier = notifier
        self.addresses = addresses or AddressResolver(directory)
        self.deadlines = deadlines or DeadlineResolver(config, session_factory)
        self.renderer = renderer or EmailRenderer(
            config, directory, addresses=self.addresses, deadlines=self.deadlines
        )
        self.overdue = OverdueSetProvider(directory)
        self.scheduler = scheduler or schedule_drain

    # ──────────────────────────────────────────────────────────────────────────
    # Worker
    # ──────────────────────────────────────────────────────────────────────────

    def recover_stale(self, now: datetime | None = None) -> int:
        now = as_utc(now) if now else utcnow()
        older_than = now - timedelta(minutes=self.config.stale_processing_minutes)
        with self._session() as s:
            n = QueueRepository(s).recover_stale(older_than=older_than, now=now)
            s.commit()
        if n:
            log.warning("recovered %d stale processing item(s)", n)
        return n

    def drain(self, scope: DrainScope | None = None, *, batch_size: int | None = None) -> BatchSummary:
        """Un passage borné du worker. Ne lève pas pour un échec de livraison."""
        scope = scope or DrainScope()
        limit = batch_size or self.config.batch_size
        summary = BatchSummary(recovered=self.recover_stale())

        with self._session() as s:
            ids = [item.id for item in QueueRepository(s).fetch_pending(limit=limit, scope=scope)]

        for item_id in ids:
            try:
                result = self._process(item_id)
            except SQLAlchemyError:
                # l'item reste en processing : la récupération le remettra en pending
                log.exception("drain: database error on item %s", item_id)
                continue
            if result is None:
                summary.skipped += 1
            elif result.success:
                summary.sent += 1
            else:
                summary.failed += 1

        with self._session() as s:
            summary.remaining = QueueRepository(s).count_pending(scope)
        summary.chained = summary.remaining > 0 and not scope.targeted

        log.info(
            "drain done sent=%d failed=%d skipped=%d recovered=%d remaining=%d targeted=%s",
            summary.sent,
            summary.failed,
            summary.skipped,
            summary.recovered,
            summary.remaining,
            scope.targeted,
        )
        return summary

    def drain_all(self, scope: DrainScope | None = None, *, batch_size: int | None = None) -> BatchSummary:
        """Enchaîne les passages en synchrone (CLI) jusqu'à épuisement du pending."""
        scope = scope or DrainScope()
        total = BatchSummary()
        while True:
            batch = self.drain(scope, batch_size=batch_size)
            total = total.merge(batch)
            # pas de progrès => on s'arrête (évite une boucle sur une file bloquée)
            if not batch.chained or (batch.sent + batch.failed + batch.skipped) == 0:
                break
        total.chained = False
        return total

    # ──────────────────────────────────────────────────────────────────────────
    # Un item
    # ──────────────────────────────────────────────────────────────────────────

    def _process(self, item_id: int) -> Optional[SendResult]:
        """
        Claim + livraison + résultat. None si l'item n'était plus pending
        (pris par un autre acteur ou déjà couvert par un envoi agrégé).
        """
        with self._session() as s:
            repo = QueueRepository(s)
            if not repo.claim(item_id, utcnow()):
                s.rollback()
                return None
            s.commit()

            item = repo.get(item_id)
            try:
                delivery = self.renderer.prepare(item, repo)
                self._deliver(item, delivery.message, delivery.cc)
                error = None
            except DeliveryTimeout as exc:
                error = str(exc)
            except Exception as exc:  # frontière par item : rien ne remonte au lot
                log.exception("delivery failed for item %s", item_id)
                error = f"{type(exc).__name__}: {exc}"

            now = utcnow()
            if error is not None:
                message = truncate_error(error, self.config.error_message_max_length)
                repo.mark_failed(item_id, message, now)
                s.commit()
                log.warning("item %s failed: %s", item_id, message)
                return SendResult(id=item_id, success=False, status=QueueStatus.FAILED, error=message)

            repo.mark_sent(item_id, now)
            covered = 0
            if item.recipient_type != RecipientType.EMPLOYEE:
                covered = repo.mark_siblings_sent(item, now)
            s.commit()
            if covered:
                log.info("item %s: %d sibling row(s) covered by aggregated e-mail", item_id, covered)

            self._after_send(item, now)
            return SendResult(id=item_id, success=True, status=QueueStatus.SENT, sent_at=now)

    def _deliver(self, item: QueueItem, message: RenderedMessage, cc: Sequence[str]) -> None:
        if self.mailer is None:
            raise RuntimeError("mailer not configured")

        def _send() -> bool:
            return self.mailer.send(to=item.recipient_address, subject=message.subject, body=message.body, cc=cc)

        timeout = self.config.delivery_timeout_seconds
        if not timeout or timeout <= 0:
            ok = _send()
        else:
            executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="deliver")
            try:
                ok = executor.submit(_send).result(timeout=timeout)
            except FutureTimeout:
                raise DeliveryTimeout(f"delivery timed out after {timeout:g}s") from None
            finally:
                executor.shutdown(wait=False)
        if not ok:
            raise RuntimeError(f"mailer refused {item.recipient_address}")

    def _after_send(self, item: QueueItem, now: datetime) -> None:
        """Effets secondaires d'un envoi réussi (in-app, journal). N'échouent jamais l'item."""
        course = self.directory.get_course(item.course_id)
        if item.recipient_type == RecipientType.EMPLOYEE and self.notifier is not None and course is not None:
            texts = self.renderer.notification_text(item.level, course)
            try:
                self.notifier.notify(
                    user_id=item.user_id,
                    subject=texts.subject,
                    text=texts.text,
                    small_text=texts.small_text,
                    context_url=self.renderer.course_url(course),
                    context_name=course.fullname,
                )
            except Exception:
                log.exception("in-app notification failed for item %s", item.id)

        try:
            enrolled_at = self.overdue.enrolled_at(item.course_id, item.user_id)
            deadline_at = (
                deadline_for(enrolled_at, self.deadlines.resolve(item.course_id)) if enrolled_at else None
            )
            with self._session() as s:
                SentLogRepository(s).touch(
                    user_id=item.user_id,
                    course_id=item.course_id,
                    level=item.level,
                    enrolled_at=enrolled_at,
                    deadline_at=deadline_at,
                    now=now,
                )
                s.commit()
        except Exception:
            log.exception("sent log refresh failed for item %s", item.id)

    # ──────────────────────────────────────────────────────────────────────────
    # Actions opérateur
    # ──────────────────────────────────────────────────────────────────────────

    def _send_one(self, item_id: int) -> tuple[SendResult, bool]:
        """(résultat, tenté ?) : non tenté si l'item n'est plus pending."""
        with self._session() as s:
            status = QueueRepository(s).get_status(item_id)
        if status is None:
            raise QueueItemNotFound(item_id)
        status = QueueStatus(status)
        if status != QueueStatus.PENDING:
            return self._refused(item_id, status), False

        result = self._process(item_id)
        if result is None:
            with self._session() as s:
                current = QueueStatus(QueueRepository(s).get_status(item_id))
            return self._refused(item_id, current), False
        return result, True

    @staticmethod
    def _refused(item_id: int, status: QueueStatus) -> SendResult:
        return SendResult(id=item_id, success=False, status=status, error=f"Item is already '{status.value}'")

    def send_item(self, item_id: int) -> SendResult:
        """Envoi immédiat d'un item pending (synchrone)."""
        result, _ = self._send_one(item_id)
        return result

    def send_selected(self, item_ids: Iterable[int]) -> SelectedResult:
        """
        Jusqu'à SYNC_SEND_THRESHOLD ids : envoi synchrone, résultat par item.
        Au-delà : passage ciblé délégué au worker (jamais re-chaîné).
        """
        ids = list(dict.fromkeys(int(i) for i in item_ids))
        if not ids:
            raise ValueError("no item ids given")

        if len(ids) > self.config.sync_send_threshold:
            self.scheduler(DrainScope(item_ids=tuple(ids)))
            log.info("send_selected: %d item(s) delegated to background drain", len(ids))
            return SelectedResult(queued=len(ids), delegated=True)

        out = SelectedResult()
        for item_id in ids:
            try:
                result, attempted = self._send_one(item_id)
            except QueueItemNotFound:
                out.skipped += 1
                continue
            out.results.append(result)
            if not attempted:
                out.skipped += 1
            elif result.success:
                out.sent += 1
            else:
                out.failed += 1
        return out

    def queue_all(self, recipient_type: RecipientType | None = None) -> int:
        """Planifie un drain de tout le pending (optionnellement d'un seul type)."""
        scope = DrainScope(recipient_type=RecipientType(recipient_type) if recipient_type else None)
        with self._session() as s:
            count = QueueRepository(s).count_pending(scope)
        if count:
            self.scheduler(scope)
        return count

    def retry_failed(self, item_ids: Iterable[int] | None = None, now: datetime | None = None) -> int:
        """failed -> pending pour les items sous MAX_ATTEMPTS (tous, ou la liste donnée)."""
        now = as_utc(now) if now else utcnow()
        with self._session() as s:
            repo = QueueRepository(s)
            candidates = repo.failed_retry_candidates(
                max_attempts=self.config.max_attempts,
                ids=list(item_ids) if item_ids is not None else None,
            )
            n = repo.requeue_failed([c.id for c in candidates], now)
            s.commit()
        if n:
            log.info("requeued %d failed item(s)", n)
        return n

    def retry_due(self, now: datetime | None = None) -> int:
        """Re-tentative automatique : failed dont le délai de backoff est écoulé."""
        now = as_utc(now) if now else utcnow()
        grid = tuple(self.config.retry_backoff_minutes)
        with self._session() as s:
            candidates = QueueRepository(s).failed_retry_candidates(max_attempts=self.config.max_attempts)
            due = [
                c.id
                for c in candidates
                if as_utc(c.modified_at) + retry_backoff(c.attempts, grid) <= now
            ]
        return self.retry_failed(due, now=now) if due else 0

    def preview(self, item_id: int) -> RenderedMessage:
        with self._session() as s:
            repo = QueueRepository(s)
            item = repo.get(item_id)
            if item is None:
                raise QueueItemNotFound(item_id)
            return self.renderer.preview(item, repo)

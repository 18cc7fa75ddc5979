from __future__ import annotations
"""server/reminders/workers/tasks/reminder_tasks.py
~~~~~~~~~~~~~~~~~~~~~~~~
Tâches Celery de l'escalade.

- tasks.reminders.evaluate     : passe quotidienne, puis planifie un drain si des items ont été mis en file
- tasks.reminders.drain        : un lot borné ; se re-planifie tant qu'il reste du pending (hors envoi ciblé)
- tasks.reminders.retry_failed : re-tentative automatique des failed (si AUTO_RETRY_ENABLED)

IMPORTANT :
- Un échec de livraison d'un item ne fait jamais échouer la tâche (l'item passe en failed).
- Une erreur base de données (SQLAlchemyError) remonte : Celery re-tente la tâche
  (backoff 30s, 60s, 120s) au lieu de casser le chaînage jusqu'au prochain beat.

Les services ouvrent leurs sessions via `get_sync_session` (patché en tests).
"""

from dataclasses import asdict
from typing import Any, Optional

from celery.utils.log import get_task_logger
from sqlalchemy.exc import SQLAlchemyError

from reminders.application.wiring import build_dispatch_service, build_escalation_service, open_directory
from reminders.core.config import settings
from reminders.domain.entities import DrainScope
from reminders.workers.celery_app import celery

logger = get_task_logger(__name__)

DB_RETRY = dict(
    bind=True,
    autoretry_for=(SQLAlchemyError,),
    retry_backoff=30,  # 30s, 60s, 120s
    retry_kwargs={"max_retries": 3},
)


def schedule_drain(
    scope: DrainScope | None = None,
    *,
    countdown: int | None = None,
    batch_size: int | None = None,
) -> None:
    kwargs: dict[str, Any] = {"scope": (scope or DrainScope()).to_payload()}
    if batch_size is not None:
        kwargs["batch_size"] = batch_size
    drain_queue.apply_async(kwargs=kwargs, countdown=countdown)


@celery.task(name="tasks.reminders.evaluate", **DB_RETRY)
def evaluate_escalations(self, dry_run: bool = False) -> dict[str, Any]:
    with open_directory() as directory:
        summary = build_escalation_service(directory).evaluate(dry_run=dry_run)

    for warning in summary.warnings:
        logger.warning("evaluate: %s", warning)
    if summary.items and not dry_run:
        schedule_drain()
    return asdict(summary)


@celery.task(name="tasks.reminders.drain", **DB_RETRY)
def drain_queue(self, scope: Optional[dict[str, Any]] = None, batch_size: Optional[int] = None) -> dict[str, Any]:
    """Un passage du worker. Ne lève jamais pour un échec de livraison d'item."""
    drain_scope = DrainScope.from_payload(scope)
    try:
        with open_directory() as directory:
            service = build_dispatch_service(directory, scheduler=schedule_drain)
            summary = service.drain(drain_scope, batch_size=batch_size)
    except SQLAlchemyError as exc:
        logger.warning("drain: database error (retry %d): %s", self.request.retries, exc)
        raise

    if summary.chained:
        logger.info("drain: %d item(s) remaining, chaining", summary.remaining)
        schedule_drain(drain_scope, countdown=1, batch_size=batch_size)
    return asdict(summary)


@celery.task(name="tasks.reminders.retry_failed", **DB_RETRY)
def retry_failed_reminders(self) -> int:
    if not settings.AUTO_RETRY_ENABLED:
        return 0
    with open_directory() as directory:
        requeued = build_dispatch_service(directory).retry_due()
    if requeued:
        logger.info("retry: %d failed item(s) requeued", requeued)
        schedule_drain()
    return requeued

from __future__ import annotations
"""
server/reminders/api/v1/endpoints/queue.py
~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~
File d'envoi : consultation et actions opérateur.

- GET  /queue                : liste filtrée (status, type, niveau, cours)
- GET  /queue/{id}/preview   : message tel qu'il partirait
- POST /queue/{id}/send      : envoi immédiat (synchrone)
- POST /queue/send-selected  : envoi d'une sélection (délégué au worker au-delà du seuil)
- POST /queue/send-all       : planifie un drain (optionnellement d'un seul type)
- POST /queue/retry          : failed -> pending

Les erreurs `QueueItemNotFound` (404) et `ValueError` (422) sont traduites
par les handlers globaux (main.py).
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from reminders.api.deps import get_dispatch_service
from reminders.api.schemas.queue import (
    PreviewOut,
    QueueItemOut,
    RetryIn,
    RetryOut,
    SendAllIn,
    SendAllOut,
    SendResultOut,
    SendSelectedIn,
    SendSelectedOut,
)
from reminders.application.services.dispatch_service import DispatchService
from reminders.core.utils.html import html_to_text
from reminders.domain.entities import QueueStatus, RecipientType
from reminders.infrastructure.persistence.database.session import get_db
from reminders.infrastructure.persistence.repositories.queue_repository import QueueRepository

router = APIRouter(prefix="/queue", tags=["queue"])


@router.get("", response_model=list[QueueItemOut])
def list_queue(
    status: Optional[QueueStatus] = None,
    recipient_type: Optional[RecipientType] = None,
    level: Optional[int] = Query(None, ge=1, le=4),
    course_id: Optional[int] = None,
    limit: int = Query(100, ge=1, le=1000),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
) -> list[QueueItemOut]:
    rows = QueueRepository(db).list_items(
        status=status,
        recipient_type=recipient_type,
        level=level,
        course_id=course_id,
        limit=limit,
        offset=offset,
    )
    return [QueueItemOut.model_validate(r) for r in rows]


@router.get("/{item_id}/preview", response_model=PreviewOut)
def preview_item(item_id: int, service: DispatchService = Depends(get_dispatch_service)) -> PreviewOut:
    message = service.preview(item_id)
    return PreviewOut(subject=message.subject, body=message.body, text=html_to_text(message.body))


@router.post("/{item_id}/send", response_model=SendResultOut)
def send_item(item_id: int, service: DispatchService = Depends(get_dispatch_service)) -> SendResultOut:
    return SendResultOut.model_validate(service.send_item(item_id))


@router.post("/send-selected", response_model=SendSelectedOut)
def send_selected(
    payload: SendSelectedIn,
    service: DispatchService = Depends(get_dispatch_service),
) -> SendSelectedOut:
    result = service.send_selected(payload.ids)
    return SendSelectedOut(
        sent=result.sent,
        failed=result.failed,
        skipped=result.skipped,
        queued=result.queued,
        delegated=result.delegated,
        results=[SendResultOut.model_validate(r) for r in result.results],
    )


@router.post("/send-all", response_model=SendAllOut)
def send_all(
    payload: SendAllIn | None = None,
    service: DispatchService = Depends(get_dispatch_service),
) -> SendAllOut:
    recipient_type = payload.recipient_type if payload else None
    return SendAllOut(queued_count=service.queue_all(recipient_type))


@router.post("/retry", response_model=RetryOut)
def retry_failed(
    payload: RetryIn | None = None,
    service: DispatchService = Depends(get_dispatch_service),
) -> RetryOut:
    ids = payload.ids if payload else None
    return RetryOut(requeued=service.retry_failed(ids))

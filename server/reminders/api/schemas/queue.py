from __future__ import annotations
"""
server/reminders/api/schemas/queue.py
~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~
Pydantic schemas de la file d'envoi (liste, aperçu, actions opérateur).
"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from reminders.domain.entities import QueueStatus, RecipientType


class QueueItemOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: int
    course_id: int
    level: int
    recipient_type: RecipientType
    recipient_address: str
    status: QueueStatus
    attempts: int
    created_at: datetime
    modified_at: datetime
    sent_at: Optional[datetime] = None
    error_message: Optional[str] = None


class PreviewOut(BaseModel):
    subject: str
    body: str
    text: str


class SendResultOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    success: bool
    status: QueueStatus
    sent_at: Optional[datetime] = None
    error: Optional[str] = None


class SendSelectedIn(BaseModel):
    ids: List[int] = Field(default_factory=list)


class SendSelectedOut(BaseModel):
    sent: int = 0
    failed: int = 0
    skipped: int = 0
    queued: int = 0
    delegated: bool = False
    results: List[SendResultOut] = Field(default_factory=list)


class SendAllIn(BaseModel):
    """Sans type : tout le pending."""
    recipient_type: Optional[RecipientType] = None


class SendAllOut(BaseModel):
    queued_count: int


class RetryIn(BaseModel):
    """Sans ids : tous les failed sous MAX_ATTEMPTS."""
    ids: Optional[List[int]] = None


class RetryOut(BaseModel):
    requeued: int

from __future__ import annotations
"""
server/reminders/domain/entities.py

Types du domaine, indépendants de l'ORM :
- enums fermés (statut de file, type de destinataire, rôle hiérarchique)
- objets valeur échangés entre services (OverdueUser, RunSummary, BatchSummary, ...)
- SiteConfig : configuration injectée explicitement dans les services
"""

import enum
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Mapping, Optional, Sequence


class QueueStatus(str, enum.Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    SENT = "sent"
    FAILED = "failed"


class RecipientType(str, enum.Enum):
    EMPLOYEE = "employee"
    SUPERVISOR = "supervisor"
    SENIOR_MANAGER = "senior_manager"


class Role(str, enum.Enum):
    """Rôle hiérarchique résolu depuis le profil d'un utilisateur."""
    SUPERVISOR = "supervisor"
    SENIOR_MANAGER = "senior_manager"


# Rôle à résoudre pour chaque type de destinataire "management"
ROLE_FOR_RECIPIENT = {
    RecipientType.SUPERVISOR: Role.SUPERVISOR,
    RecipientType.SENIOR_MANAGER: Role.SENIOR_MANAGER,
}


# ──────────────────────────────────────────────────────────────────────────────
# Faits fournis par l'annuaire (LMS)
# ──────────────────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class Course:
    id: int
    fullname: str
    url: str = ""


@dataclass(frozen=True)
class DirectoryUser:
    id: int
    email: str
    firstname: str = ""
    lastname: str = ""

    @property
    def fullname(self) -> str:
        return f"{self.firstname} {self.lastname}".strip() or self.email


@dataclass(frozen=True)
class EnrollmentRecord:
    user_id: int
    enrolled_at: datetime
    enrolment_active: bool = True
    user_active: bool = True
    # None = suivi d'achèvement désactivé sur le cours
    completed: Optional[bool] = False


@dataclass(frozen=True)
class OverdueUser:
    user_id: int
    enrolled_at: datetime


# ──────────────────────────────────────────────────────────────────────────────
# Configuration injectée
# ──────────────────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class SiteConfig:
    site_name: str = "Learning Portal"
    site_url: str = "http://localhost"
    default_deadline_days: int = 14
    batch_size: int = 50
    stale_processing_minutes: int = 30
    sync_send_threshold: int = 25
    delivery_timeout_seconds: float = 60.0
    error_message_max_length: int = 255
    max_attempts: int = 3
    retry_backoff_minutes: Sequence[int] = (30, 120, 600)
    templates: Mapping[str, str] = field(default_factory=dict)

    @classmethod
    def from_settings(cls, settings: Any) -> "SiteConfig":
        return cls(
            site_name=settings.SITE_NAME,
            site_url=settings.SITE_URL.rstrip("/"),
            default_deadline_days=max(1, int(settings.DEFAULT_DEADLINE_DAYS)),
            batch_size=settings.EMAIL_BATCH_SIZE,
            stale_processing_minutes=settings.STALE_PROCESSING_MINUTES,
            sync_send_threshold=settings.SYNC_SEND_THRESHOLD,
            delivery_timeout_seconds=settings.DELIVERY_TIMEOUT_SECONDS,
            error_message_max_length=settings.ERROR_MESSAGE_MAX_LENGTH,
            max_attempts=settings.MAX_ATTEMPTS,
            retry_backoff_minutes=tuple(settings.RETRY_BACKOFF_MINUTES or (30,)),
            templates=dict(settings.TEMPLATE_OVERRIDES or {}),
        )


# ──────────────────────────────────────────────────────────────────────────────
# Résultats
# ──────────────────────────────────────────────────────────────────────────────

@dataclass
class RunSummary:
    """Compte-rendu d'une évaluation (audit)."""
    courses: int = 0
    users: int = 0
    queued: int = 0
    skipped: int = 0
    items: int = 0
    warnings: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class DrainScope:
    """
    Périmètre d'un passage du worker :
    - item_ids   : liste ciblée (jamais de chaînage)
    - recipient_type : filtre par type
    - sinon : tout
    """
    item_ids: Optional[tuple[int, ...]] = None
    recipient_type: Optional[RecipientType] = None

    @property
    def targeted(self) -> bool:
        return self.item_ids is not None

    def to_payload(self) -> dict:
        return {
            "item_ids": list(self.item_ids) if self.item_ids is not None else None,
            "recipient_type": self.recipient_type.value if self.recipient_type else None,
        }

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any] | None) -> "DrainScope":
        payload = payload or {}
        ids = payload.get("item_ids")
        rtype = payload.get("recipient_type")
        return cls(
            item_ids=tuple(int(i) for i in ids) if ids is not None else None,
            recipient_type=RecipientType(rtype) if rtype else None,
        )


@dataclass
class BatchSummary:
    sent: int = 0
    failed: int = 0
    skipped: int = 0
    recovered: int = 0
    remaining: int = 0
    # True si un nouveau passage doit être planifié (périmètre non ciblé + reste du pending)
    chained: bool = False

    def merge(self, other: "BatchSummary") -> "BatchSummary":
        return BatchSummary(
            sent=self.sent + other.sent,
            failed=self.failed + other.failed,
            skipped=self.skipped + other.skipped,
            recovered=self.recovered + other.recovered,
            remaining=other.remaining,
            chained=other.chained,
        )


@dataclass(frozen=True)
class SendResult:
    id: int
    success: bool
    status: QueueStatus
    sent_at: Optional[datetime] = None
    error: Optional[str] = None


@dataclass
class SelectedResult:
    sent: int = 0
    failed: int = 0
    skipped: int = 0
    queued: int = 0
    delegated: bool = False
    results: list[SendResult] = field(default_factory=list)


@dataclass(frozen=True)
class RenderedMessage:
    subject: str
    body: str

# server/tests/unit/conftest.py
# ─────────────────────────────────────────────────────────────────────────────
# Conftest pour les TESTS UNITAIRES.
#
# Objectifs :
# - Un annuaire en mémoire (StaticDirectory) avec un cours obligatoire et un
#   helper `enrol(...)` qui place un utilisateur à N jours de son inscription.
# - Des fakes Mailer / InAppNotifier qui enregistrent chaque envoi.
# - Des services prêts à l'emploi branchés sur la DB SQLite du conftest global
#   (`Session` comme session_factory) et sur un scheduler qui enregistre les
#   drains délégués au lieu d'appeler Celery.
# ─────────────────────────────────────────────────────────────────────────────

from __future__ import annotations

import time
from datetime import datetime, timedelta, timezone

import pytest

from reminders.application.services.address_service import AddressResolver
from reminders.application.services.dispatch_service import DispatchService
from reminders.application.services.escalation_service import EscalationService
from reminders.domain.entities import Course, DirectoryUser, EnrollmentRecord, SiteConfig
from reminders.infrastructure.directory.static_directory import StaticDirectory

COURSE_ID = 101


class FakeMailer:
    """Enregistre les envois ; `refuse` / `error` / `delay` simulent les pannes."""

    def __init__(self):
        self.sent: list[dict] = []
        self.refuse: set[str] = set()
        self.error: Exception | None = None
        self.delay: float = 0.0

    def send(self, *, to, subject, body, cc=()):
        if self.delay:
            time.sleep(self.delay)
        if self.error is not None:
            raise self.error
        if to in self.refuse:
            return False
        self.sent.append({"to": to, "subject": subject, "body": body, "cc": list(cc)})
        return True

    def to(self, address: str) -> list[dict]:
        return [m for m in self.sent if m["to"] == address]


class FakeNotifier:
    def __init__(self):
        self.calls: list[dict] = []

    def notify(self, **kw):
        self.calls.append(kw)
        return True


@pytest.fixture
def now() -> datetime:
    return datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)


@pytest.fixture
def site_config() -> SiteConfig:
    return SiteConfig(
        site_name="Test Academy",
        site_url="https://lms.example.test",
        default_deadline_days=14,
        batch_size=50,
        delivery_timeout_seconds=5.0,
    )


@pytest.fixture
def directory() -> StaticDirectory:
    d = StaticDirectory()
    d.add_course(Course(id=COURSE_ID, fullname="Fire Safety"))
    return d


@pytest.fixture
def enrol(directory, now):
    """
    enrol(user_id, overdue_days, ...) : inscrit l'utilisateur de sorte que
    l'écart à l'échéance (14 jours par défaut) vaille `overdue_days` à `now`.
    """

    def _enrol(
        user_id: int,
        overdue_days: float,
        *,
        email: str | None = None,
        supervisor: str | None = None,
        senior_manager: str | None = None,
        completed: bool | None = False,
        course_id: int = COURSE_ID,
        deadline_days: int = 14,
    ) -> DirectoryUser:
        profile = {}
        if supervisor is not None:
            profile["SupervisorEmail"] = supervisor
        if senior_manager is not None:
            profile["sbuheademail"] = senior_manager
        user = directory.add_user(
            DirectoryUser(
                id=user_id,
                email=email if email is not None else f"user{user_id}@example.com",
                firstname=f"First{user_id}",
                lastname=f"Last{user_id}",
            ),
            **profile,
        )
        directory.enrol(
            course_id,
            EnrollmentRecord(
                user_id=user_id,
                enrolled_at=now - timedelta(days=deadline_days + overdue_days),
                completed=completed,
            ),
        )
        return user

    return _enrol


@pytest.fixture
def mailer() -> FakeMailer:
    return FakeMailer()


@pytest.fixture
def notifier() -> FakeNotifier:
    return FakeNotifier()


@pytest.fixture
def scheduled() -> list:
    """Drains délégués (DrainScope) enregistrés par le scheduler de test."""
    return []


@pytest.fixture
def escalation(Session, site_config, directory) -> EscalationService:
    return EscalationService(site_config, directory, session_factory=Session)


@pytest.fixture
def dispatch(Session, site_config, directory, mailer, notifier, scheduled) -> DispatchService:
    return DispatchService(
        site_config,
        directory,
        mailer=mailer,
        notifier=notifier,
        session_factory=Session,
        addresses=AddressResolver(directory),
        scheduler=scheduled.append,
    )

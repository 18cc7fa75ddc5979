from __future__ import annotations
"""server/reminders/application/wiring.py
~~~~~~~~~~~~~~~~~~~~~~~~
Assemblage des services à partir de `settings` (tâches Celery, API, CLI).
Les tests construisent les services directement avec leurs fakes.
"""

import logging
from contextlib import contextmanager
from typing import Iterator, Optional

from reminders.application.ports import Directory, Mailer
from reminders.application.services.address_service import AddressResolver
from reminders.application.services.base import SessionFactory
from reminders.application.services.deadline_service import DeadlineResolver
from reminders.application.services.dispatch_service import DispatchService, DrainScheduler
from reminders.application.services.escalation_service import EscalationService
from reminders.application.services.stats_service import StatsService
from reminders.core.config import settings
from reminders.domain.entities import SiteConfig
from reminders.infrastructure.directory.http_directory import HttpDirectory
from reminders.infrastructure.directory.static_directory import StaticDirectory
from reminders.infrastructure.notifications.providers.email_provider import EmailProvider
from reminders.infrastructure.notifications.providers.inapp_provider import InAppProvider

log = logging.getLogger(__name__)


def site_config() -> SiteConfig:
    return SiteConfig.from_settings(settings)


def build_directory() -> Directory:
    if settings.DIRECTORY_API_URL:
        return HttpDirectory()
    log.warning("DIRECTORY_API_URL non configuré : annuaire vide")
    return StaticDirectory()


@contextmanager
def open_directory() -> Iterator[Directory]:
    """Annuaire pour la durée d'un run (cache par instance, fermé en sortie)."""
    directory = build_directory()
    try:
        yield directory
    finally:
        if isinstance(directory, HttpDirectory):
            directory.close()


def build_mailer() -> Optional[Mailer]:
    try:
        return EmailProvider()
    except ValueError as exc:
        # Les items passeront en failed ("mailer not configured") jusqu'à configuration
        log.warning("SMTP non configuré : %s", exc)
        return None


def build_addresses(directory: Directory) -> AddressResolver:
    return AddressResolver(
        directory,
        supervisor_field=settings.SUPERVISOR_FIELD,
        senior_manager_field=settings.SENIOR_MANAGER_FIELD,
    )


def build_deadlines(session_factory: SessionFactory | None = None) -> DeadlineResolver:
    return DeadlineResolver(site_config(), session_factory)


def build_escalation_service(
    directory: Directory | None = None,
    session_factory: SessionFactory | None = None,
) -> EscalationService:
    directory = directory or build_directory()
    return EscalationService(
        site_config(),
        directory,
        session_factory=session_factory,
        addresses=build_addresses(directory),
    )


def build_dispatch_service(
    directory: Directory | None = None,
    session_factory: SessionFactory | None = None,
    scheduler: DrainScheduler | None = None,
) -> DispatchService:
    directory = directory or build_directory()
    return DispatchService(
        site_config(),
        directory,
        mailer=build_mailer(),
        notifier=InAppProvider(),
        session_factory=session_factory,
        addresses=build_addresses(directory),
        scheduler=scheduler,
    )


def build_stats_service(
    directory: Directory | None = None,
    session_factory: SessionFactory | None = None,
) -> StatsService:
    return StatsService(site_config(), directory or build_directory(), session_factory=session_factory)

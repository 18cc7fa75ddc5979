from __future__ import annotations
"""server/reminders/api/deps.py
~~~~~~~~~~~~~~~~~~~~~~~~
Dépendances FastAPI : un annuaire par requête, services assemblés depuis `settings`.
Les tests remplacent `get_directory` via `app.dependency_overrides`.
"""
from typing import Iterator

from fastapi import Depends

from reminders.application.ports import Directory
from reminders.application.services.deadline_service import DeadlineResolver
from reminders.application.services.dispatch_service import DispatchService
from reminders.application.services.escalation_service import EscalationService
from reminders.application.services.stats_service import StatsService
from reminders.application.wiring import (
    build_deadlines,
    build_dispatch_service,
    build_escalation_service,
    build_stats_service,
    open_directory,
)


def get_directory() -> Iterator[Directory]:
    with open_directory() as directory:
        yield directory


def get_dispatch_service(directory: Directory = Depends(get_directory)) -> DispatchService:
    return build_dispatch_service(directory)


def get_escalation_service(directory: Directory = Depends(get_directory)) -> EscalationService:
    return build_escalation_service(directory)


def get_stats_service(directory: Directory = Depends(get_directory)) -> StatsService:
    return build_stats_service(directory)


def get_deadline_resolver() -> DeadlineResolver:
    return build_deadlines()

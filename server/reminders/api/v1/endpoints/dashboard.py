from __future__ import annotations
"""server/reminders/api/v1/endpoints/dashboard.py
~~~~~~~~~~~~~~~~~~~~~~~~
Vue d'ensemble : compteurs de la file, cours obligatoires, prochains envois.
"""
from typing import Any

from fastapi import APIRouter, Depends, Query

from reminders.api.deps import get_stats_service
from reminders.application.services.stats_service import StatsService

router = APIRouter(prefix="/dashboard", tags=["dashboard"])


@router.get("")
def dashboard(
    limit: int = Query(10, ge=1, le=100),
    stats: StatsService = Depends(get_stats_service),
) -> dict[str, Any]:
    return {
        "summary": stats.summary(),
        "courses": stats.mandatory_courses(),
        "next_items": stats.queue_status(limit=limit),
    }

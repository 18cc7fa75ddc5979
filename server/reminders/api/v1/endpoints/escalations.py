from __future__ import annotations
"""server/reminders/api/v1/endpoints/escalations.py
~~~~~~~~~~~~~~~~~~~~~~~~
Déclenchement manuel d'une évaluation (même code que la tâche quotidienne).
"""
from dataclasses import asdict

from fastapi import APIRouter, Depends

from reminders.api.deps import get_escalation_service
from reminders.api.schemas.escalation import EvaluateIn, RunSummaryOut
from reminders.application.services.escalation_service import EscalationService

router = APIRouter(prefix="/escalations", tags=["escalations"])


@router.post("/evaluate", response_model=RunSummaryOut)
def evaluate(
    payload: EvaluateIn | None = None,
    service: EscalationService = Depends(get_escalation_service),
) -> RunSummaryOut:
    payload = payload or EvaluateIn()
    summary = service.evaluate(payload.now, dry_run=payload.dry_run)
    return RunSummaryOut(**asdict(summary))

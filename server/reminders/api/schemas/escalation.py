from __future__ import annotations
"""
server/reminders/api/schemas/escalation.py
~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~
Déclenchement manuel d'une évaluation + compte-rendu.
"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field


class EvaluateIn(BaseModel):
    dry_run: bool = False
    # instant d'évaluation (défaut : maintenant, UTC)
    now: Optional[datetime] = None


class RunSummaryOut(BaseModel):
    courses: int = 0
    users: int = 0
    queued: int = 0
    skipped: int = 0
    items: int = 0
    warnings: List[str] = Field(default_factory=list)

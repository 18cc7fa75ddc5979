from __future__ import annotations
"""
server/reminders/api/schemas/deadline.py
~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~
Échéance par cours (jours après l'inscription).
"""

from pydantic import BaseModel, Field


class DeadlineIn(BaseModel):
    deadline_days: int = Field(..., ge=1, le=3650)


class DeadlineOut(BaseModel):
    course_id: int
    deadline_days: int
    # False = valeur par défaut du site (aucune surcharge en base)
    is_override: bool

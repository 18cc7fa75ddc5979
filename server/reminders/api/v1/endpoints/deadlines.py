from __future__ import annotations
"""server/reminders/api/v1/endpoints/deadlines.py
~~~~~~~~~~~~~~~~~~~~~~~~
Échéance par cours : lecture (surcharge ou défaut), fixation, suppression.
"""
from fastapi import APIRouter, Depends, status

from reminders.api.deps import get_deadline_resolver
from reminders.api.schemas.deadline import DeadlineIn, DeadlineOut
from reminders.application.services.deadline_service import DeadlineResolver

router = APIRouter(prefix="/deadlines", tags=["deadlines"])


@router.get("", response_model=list[DeadlineOut])
def list_deadlines(resolver: DeadlineResolver = Depends(get_deadline_resolver)) -> list[DeadlineOut]:
    return [
        DeadlineOut(course_id=course_id, deadline_days=days, is_override=True)
        for course_id, days in sorted(resolver.list_overrides().items())
    ]


@router.get("/{course_id}", response_model=DeadlineOut)
def get_deadline(course_id: int, resolver: DeadlineResolver = Depends(get_deadline_resolver)) -> DeadlineOut:
    overrides = resolver.list_overrides()
    return DeadlineOut(
        course_id=course_id,
        deadline_days=resolver.resolve(course_id),
        is_override=course_id in overrides,
    )


@router.put("/{course_id}", response_model=DeadlineOut)
def set_deadline(
    course_id: int,
    payload: DeadlineIn,
    resolver: DeadlineResolver = Depends(get_deadline_resolver),
) -> DeadlineOut:
    days = resolver.set(course_id, payload.deadline_days)
    return DeadlineOut(course_id=course_id, deadline_days=days, is_override=True)


@router.delete("/{course_id}", status_code=status.HTTP_204_NO_CONTENT)
def clear_deadline(course_id: int, resolver: DeadlineResolver = Depends(get_deadline_resolver)) -> None:
    resolver.clear(course_id)

from __future__ import annotations
"""server/reminders/api/v1/router.py
~~~~~~~~~~~~~~~~~~~~~~~~
Router principal API v1.
"""
from fastapi import APIRouter

from reminders.api.v1.endpoints import dashboard, deadlines, escalations, health, queue

api_router = APIRouter()
api_router.include_router(health.router, tags=["health"])
api_router.include_router(escalations.router, tags=["escalations"])
api_router.include_router(queue.router, tags=["queue"])
api_router.include_router(deadlines.router, tags=["deadlines"])
api_router.include_router(dashboard.router, tags=["dashboard"])

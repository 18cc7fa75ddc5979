from __future__ import annotations
"""server/reminders/main.py
~~~~~~~~~~~~~~~~~~~~~~~~
Point d'entrée FastAPI.
"""
from typing import List

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from reminders.api.v1.router import api_router
from reminders.core.config import settings
from reminders.core.errors import QueueItemNotFound
from reminders.core.logging import setup_logging

app = FastAPI(title="Course Reminders", version="1.0.0")

allow_origins: List[str] = []
if origins := getattr(settings, "CORS_ALLOW_ORIGINS", None):
    allow_origins = [o.strip() for o in origins.split(",") if o.strip()]

app.add_middleware(
    CORSMiddleware,
    allow_origins=allow_origins or ["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(QueueItemNotFound)
async def queue_item_not_found(request: Request, exc: QueueItemNotFound) -> JSONResponse:
    return JSONResponse(status_code=status.HTTP_404_NOT_FOUND, content={"detail": str(exc)})


@app.exception_handler(ValueError)
async def value_error(request: Request, exc: ValueError) -> JSONResponse:
    return JSONResponse(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, content={"detail": str(exc)})


@app.on_event("startup")
async def startup() -> None:
    setup_logging()


app.include_router(api_router, prefix="/api/v1")

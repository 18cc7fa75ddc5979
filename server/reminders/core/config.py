from __future__ import annotations
"""server/reminders/core/config.py
~~~~~~~~~~~~~~~~~~~~~~~~
Paramètres (pydantic-settings).
"""

from typing import Dict, List, Optional
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):
    DATABASE_URL: str = "postgresql+psycopg://postgres:postgres@db:5432/reminders"
    DB_CONNECT_TIMEOUT: int = 5
    REDIS_URL: str = "redis://redis:6379/0"

    SITE_NAME: str = "Learning Portal"
    SITE_URL: str = "http://localhost"

    # Escalation / queue
    DEFAULT_DEADLINE_DAYS: int = Field(14, ge=1)
    EMAIL_BATCH_SIZE: int = Field(50, ge=1)
    STALE_PROCESSING_MINUTES: int = 30
    SYNC_SEND_THRESHOLD: int = 25
    DELIVERY_TIMEOUT_SECONDS: float = 60.0
    ERROR_MESSAGE_MAX_LENGTH: int = 255
    MAX_ATTEMPTS: int = 3
    AUTO_RETRY_ENABLED: bool = False
    RETRY_BACKOFF_MINUTES: List[int] = Field(default_factory=lambda: [30, 120, 600])
    EVALUATE_CRON_HOUR: int = 6

    # Champs de profil utilisateur côté annuaire
    SUPERVISOR_FIELD: str = "SupervisorEmail"
    SENIOR_MANAGER_FIELD: str = "sbuheademail"

    # Surcharges de templates (clé -> HTML), ex: {"level1_template": "<p>...</p>"}
    TEMPLATE_OVERRIDES: Dict[str, str] = Field(default_factory=dict)

    # SMTP
    SMTP_HOST: Optional[str] = None
    SMTP_PORT: int = 587
    SMTP_USERNAME: Optional[str] = None
    SMTP_PASSWORD: Optional[str] = None
    SMTP_USE_TLS: bool = True
    SMTP_FROM: Optional[str] = None

    # Notifications in-app + annuaire LMS
    INAPP_WEBHOOK_URL: Optional[str] = None
    DIRECTORY_API_URL: Optional[str] = None
    DIRECTORY_API_TOKEN: Optional[str] = None

    CORS_ALLOW_ORIGINS: Optional[str] = None

    model_config = SettingsConfigDict(
        env_file_encoding="utf-8",
        case_sensitive=True,
    )

settings = Settings()

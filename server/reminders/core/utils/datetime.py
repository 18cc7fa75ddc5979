# server/reminders/core/utils/datetime.py
"""server/reminders/core/utils/datetime.py
~~~~~~~~~~~~~~~~~~~~~~~~
Utilitaires pour la gestion des dates et heures.
"""

from datetime import datetime, timezone
from typing import Optional

SECONDS_PER_DAY = 86400


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """Retourne dt en UTC 'aware' (naïf => supposé UTC). Tolère None."""
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def start_of_day(dt: datetime) -> datetime:
    """Minuit UTC du jour de dt."""
    dt = as_utc(dt)
    return dt.replace(hour=0, minute=0, second=0, microsecond=0)

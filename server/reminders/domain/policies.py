# server/reminders/domain/policies.py

from __future__ import annotations
"""
Règles métier de l'escalade.

Fonction principale :
    determine_levels(days_diff)
Associe l'écart (en jours, signé) entre maintenant et l'échéance aux niveaux
d'escalade atteints. Fenêtres semi-ouvertes, borne basse incluse :

    niveau 1 : -3 <= d < -1   (3 jours avant l'échéance)
    niveau 2 : -1 <= d <  0   (la veille)
    niveau 3 :  7 <= d < 14   (1 semaine de retard)
    niveau 4 : 14 <= d        (2 semaines de retard)
"""

from datetime import datetime, timedelta

from email_validator import EmailNotValidError, validate_email

from reminders.core.utils.datetime import SECONDS_PER_DAY, as_utc
from reminders.domain.entities import RecipientType

LEVEL_WINDOWS: dict[int, tuple[float, float]] = {
    1: (-3.0, -1.0),
    2: (-1.0, 0.0),
    3: (7.0, 14.0),
    4: (14.0, float("inf")),
}

MIN_LEVEL = 1
MAX_LEVEL = 4

# Niveau minimal à partir duquel chaque type de destinataire est notifié
RECIPIENT_MIN_LEVEL = {
    RecipientType.EMPLOYEE: 1,
    RecipientType.SUPERVISOR: 3,
    RecipientType.SENIOR_MANAGER: 4,
}


def deadline_for(enrolled_at: datetime, deadline_days: int) -> datetime:
    return as_utc(enrolled_at) + timedelta(days=deadline_days)


def days_diff(now: datetime, deadline_at: datetime) -> float:
    """Écart signé en jours (négatif = avant l'échéance)."""
    return (as_utc(now) - as_utc(deadline_at)).total_seconds() / SECONDS_PER_DAY


def determine_levels(diff: float) -> list[int]:
    """Niveaux atteints pour un écart donné (0 ou 1 niveau, fenêtres disjointes)."""
    return [lvl for lvl, (low, high) in LEVEL_WINDOWS.items() if low <= diff < high]


def recipients_for_level(level: int) -> list[RecipientType]:
    """employee toujours ; supervisor à partir de 3 ; senior_manager au niveau 4."""
    return [rt for rt, min_lvl in RECIPIENT_MIN_LEVEL.items() if level >= min_lvl]


def normalize_address(address: str | None) -> str | None:
    """
    Forme canonique d'une adresse (minuscules, domaine normalisé), None si invalide.
    Sert de clé d'agrégation : `Boss@X.com` et `boss@x.com` désignent la même boîte.
    """
    if not address or not address.strip():
        return None
    try:
        return validate_email(address.strip(), check_deliverability=False).normalized.lower()
    except EmailNotValidError:
        return None


def is_valid_address(address: str | None) -> bool:
    """Validation syntaxique seulement (pas de vérification DNS)."""
    return normalize_address(address) is not None


def truncate_error(message: str | None, max_length: int = 255) -> str:
    text = (message or "").strip() or "unknown error"
    return text[:max_length]


def retry_backoff(attempts: int, grid_minutes: tuple[int, ...] | list[int]) -> timedelta:
    """Délai avant re-tentative automatique (grille clampée sur la dernière valeur)."""
    grid = list(grid_minutes) or [30]
    idx = min(max(attempts - 1, 0), len(grid) - 1)
    return timedelta(minutes=grid[idx])

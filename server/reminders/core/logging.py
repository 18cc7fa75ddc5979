from __future__ import annotations
"""server/reminders/core/logging.py
~~~~~~~~~~~~~~~~~~~~~~~~
Configuration logs.
"""
import logging


def setup_logging(level: int = logging.INFO) -> None:
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(name)s %(message)s")
    # httpx loggue chaque requête en INFO : trop bavard pour les appels annuaire
    logging.getLogger("httpx").setLevel(logging.WARNING)

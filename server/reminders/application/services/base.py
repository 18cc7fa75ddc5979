from __future__ import annotations
"""server/reminders/application/services/base.py
~~~~~~~~~~~~~~~~~~~~~~~~
Accès session commun aux services.

Les services ne gardent aucun état de file en mémoire : chaque opération ouvre
sa propre session (fabrique injectée, sinon `get_sync_session`, résolue à
l'appel pour rester patchable en tests).
"""

from typing import Callable, ContextManager

from sqlalchemy.orm import Session

SessionFactory = Callable[[], ContextManager[Session]]


class SessionBound:
    def __init__(self, session_factory: SessionFactory | None = None):
        self._session_factory = session_factory

    def _session(self) -> ContextManager[Session]:
        if self._session_factory is not None:
            return self._session_factory()
        from reminders.infrastructure.persistence.database import session as db_session
        return db_session.get_sync_session()

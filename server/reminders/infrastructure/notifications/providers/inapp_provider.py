from __future__ import annotations
"""server/reminders/infrastructure/notifications/providers/inapp_provider.py
~~~~~~~~~~~~~~~~~~~~~~~~
InAppProvider : notification dans le LMS via un webhook JSON.
"""

import logging
from typing import Optional

import requests

from reminders.core.config import settings

logger = logging.getLogger(__name__)


class InAppProvider:
    def __init__(self, webhook: Optional[str] = None, timeout: float = 5.0):
        # Sans URL : provider inerte (retourne False), l'e-mail reste la source de vérité.
        self.webhook = webhook or settings.INAPP_WEBHOOK_URL
        self.timeout = timeout

    def notify(
        self,
        *,
        user_id: int,
        subject: str,
        text: str,
        small_text: str = "",
        context_url: str | None = None,
        context_name: str | None = None,
    ) -> bool:
        """
        Poste une notification "coursereminder" pour un utilisateur.
        Retourne True si le LMS a répondu 2xx.
        """
        if not self.webhook:
            logger.info("In-app webhook non configuré : %s", subject)
            return False

        payload = {
            "component": "mandatoryreminder",
            "name": "coursereminder",
            "user_id": user_id,
            "subject": subject,
            "fullmessage": text,
            "smallmessage": small_text or subject,
            "contexturl": context_url,
            "contexturlname": context_name,
        }
        try:
            r = requests.post(
                self.webhook,
                json=payload,
                headers={"Content-Type": "application/json"},
                timeout=self.timeout,
            )
            return 200 <= r.status_code < 300
        except requests.RequestException as exc:
            logger.warning("In-app notification failed: %s", exc)
            return False

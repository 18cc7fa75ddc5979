from __future__ import annotations
"""server/reminders/application/services/enqueue_service.py
~~~~~~~~~~~~~~~~~~~~~~~~
Mise en file des destinataires d'un niveau atteint (fan-out).

niveau 1-2 : employé
niveau 3   : employé + supervisor
niveau 4   : employé + supervisor + senior manager

Une adresse manquante ou invalide ne bloque pas les autres destinataires :
elle produit un avertissement dans le compte-rendu.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime

from sqlalchemy.orm import Session

from reminders.application.ports import Directory
from reminders.application.services.address_service import AddressResolver
from reminders.application.services.email_renderer import EmailRenderer
from reminders.domain.entities import ROLE_FOR_RECIPIENT, Course, RecipientType
from reminders.domain.policies import is_valid_address, normalize_address, recipients_for_level
from reminders.infrastructure.persistence.database.models.queue_item import QueueItem
from reminders.infrastructure.persistence.repositories.queue_repository import QueueRepository

log = logging.getLogger(__name__)


@dataclass
class EnqueueResult:
    items: list[QueueItem] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)


class FanOutEnqueuer:
    def __init__(self, directory: Directory, renderer: EmailRenderer, addresses: AddressResolver):
        self.directory = directory
        self.renderer = renderer
        self.addresses = addresses

    def enqueue(
        self,
        session: Session,
        *,
        user_id: int,
        course: Course,
        level: int,
        diff: float,
        now: datetime,
    ) -> EnqueueResult:
        """Ajoute les lignes dans `session` (flush, pas de commit)."""
        result = EnqueueResult()
        repo = QueueRepository(session)

        user = self.directory.get_user(user_id)
        if user is None:
            result.warnings.append(f"user {user_id}: not found in directory")
            return result

        if is_valid_address(user.email):
            rendered = self.renderer.render_employee(user, course, level, diff)
            result.items.append(
                repo.add(
                    user_id=user_id,
                    course_id=course.id,
                    level=level,
                    recipient_type=RecipientType.EMPLOYEE,
                    recipient_address=user.email.strip(),
                    now=now,
                    rendered_subject=rendered.subject,
                    rendered_body=rendered.body,
                )
            )
        else:
            result.warnings.append(f"user {user_id}: invalid email address {user.email!r}")

        for rtype in recipients_for_level(level):
            if rtype == RecipientType.EMPLOYEE:
                continue
            raw = self.addresses.resolve(user_id, ROLE_FOR_RECIPIENT[rtype])
            # adresse canonique : elle fait partie de la clé des lignes sœurs
            address = normalize_address(raw)
            if address is None:
                result.warnings.append(
                    f"user {user_id}: no valid {rtype.value} address for course {course.id} level {level}"
                )
                continue
            result.items.append(
                repo.add(
                    user_id=user_id,
                    course_id=course.id,
                    level=level,
                    recipient_type=rtype,
                    recipient_address=address,
                    now=now,
                )
            )

        log.debug(
            "fan-out user=%s course=%s level=%s items=%d", user_id, course.id, level, len(result.items)
        )
        return result

from __future__ import annotations
"""server/reminders/application/services/email_renderer.py
~~~~~~~~~~~~~~~~~~~~~~~~
Rendu des e-mails d'escalade.

- Templates par (niveau, type de destinataire) : surcharge de configuration
  (`TEMPLATE_OVERRIDES`) sinon fichier HTML du paquet.
- E-mail employé : pré-rendu à la mise en file, relu tel quel à l'envoi.
- E-mails supervisor / senior manager : agrégés à l'envoi à partir des lignes
  sœurs encore vivantes (même adresse, cours, niveau).
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from markupsafe import Markup, escape

from reminders.application.ports import Directory
from reminders.application.services.address_service import AddressResolver
from reminders.application.services.deadline_service import DeadlineResolver
from reminders.application.services.overdue_service import OverdueSetProvider
from reminders.core.utils.datetime import utcnow
from reminders.domain.entities import (
    Course,
    DirectoryUser,
    RecipientType,
    RenderedMessage,
    Role,
    SiteConfig,
)
from reminders.domain.policies import LEVEL_WINDOWS, days_diff, deadline_for, normalize_address
from reminders.infrastructure.notifications.templates.loader import load_template, render_fragment
from reminders.infrastructure.persistence.database.models.queue_item import QueueItem
from reminders.infrastructure.persistence.repositories.queue_repository import QueueRepository

log = logging.getLogger(__name__)

SUBJECTS = {
    1: "Reminder: Mandatory Course Due Soon - {course}",
    2: "URGENT: Mandatory Course Due Tomorrow - {course}",
    3: "OVERDUE: Mandatory Course Not Completed - {course}",
    4: "CRITICAL: Mandatory Course 2 Weeks Overdue - {course}",
}

# (sujet, message, message court) de la notification in-app envoyée à l'employé
INAPP_TEXTS = {
    1: (
        "Course due soon: {course}",
        'Your mandatory course "{course}" is due in approximately 3 days. Please complete it before the deadline.',
        "Course reminder: Due in 3 days",
    ),
    2: (
        "URGENT: Course due tomorrow: {course}",
        'URGENT: Your mandatory course "{course}" is due tomorrow. Please complete it immediately.',
        "URGENT: Course due tomorrow",
    ),
    3: (
        "OVERDUE: Course not completed: {course}",
        'Your mandatory course "{course}" is now overdue. Please complete it as soon as possible.',
        "OVERDUE: Course not completed",
    ),
    4: (
        "CRITICAL: Course 2 weeks overdue: {course}",
        'CRITICAL: Your mandatory course "{course}" is now 2 weeks overdue. Please complete it immediately.',
        "CRITICAL: Course 2 weeks overdue",
    ),
}


def template_key(level: int, recipient_type: RecipientType) -> str:
    """level1_template, level2_template, level3_supervisor_template, ..."""
    if level <= 2:
        return f"level{level}_template"
    return f"level{level}_{RecipientType(recipient_type).value}_template"


def format_days(diff: float) -> str:
    """Nombre de jours (valeur absolue) au format compact : 7, 7.5, 15.2"""
    return f"{abs(diff):.1f}".rstrip("0").rstrip(".")


def _substitute(template: str, values: dict[str, str]) -> str:
    # Remplacement littéral : les templates peuvent contenir d'autres accolades (CSS)
    out = template
    for key, value in values.items():
        out = out.replace("{" + key + "}", value)
    return out


@dataclass(frozen=True)
class NotificationText:
    subject: str
    text: str
    small_text: str


@dataclass
class Delivery:
    """Message prêt à partir + copie (CC) calculée pour les e-mails agrégés."""
    message: RenderedMessage
    cc: list[str] = field(default_factory=list)


class EmailRenderer:
    def __init__(
        self,
        config: SiteConfig,
        directory: Directory,
        *,
        addresses: Optional[AddressResolver] = None,
        deadlines: Optional[DeadlineResolver] = None,
    ):
        self.config = config
        self.directory = directory
        self.addresses = addresses or AddressResolver(directory)
        self.deadlines = deadlines or DeadlineResolver(config)
        self.overdue = OverdueSetProvider(directory)

    # --- Templates ------------------------------------------------------------

    def get_template(self, level: int, recipient_type: RecipientType) -> str:
        key = template_key(level, recipient_type)
        override = (self.config.templates or {}).get(key)
        if override:
            return override
        return load_template(f"{key}.html")

    def subject(self, level: int, course: Course) -> str:
        return SUBJECTS[level].format(course=course.fullname)

    def course_url(self, course: Course) -> str:
        return course.url or f"{self.config.site_url}/course/view.php?id={course.id}"

    def notification_text(self, level: int, course: Course) -> NotificationText:
        subject, text, small = INAPP_TEXTS[level]
        return NotificationText(
            subject=subject.format(course=course.fullname),
            text=text.format(course=course.fullname),
            small_text=small,
        )

    # --- Substitutions ----------------------------------------------------------

    def placeholders(
        self, user: Optional[DirectoryUser], course: Course, diff: float
    ) -> dict[str, str]:
        """Valeurs des {placeholders} communes à tous les templates (échappées)."""
        url = self.course_url(course)
        return {
            "firstname": str(escape(user.firstname if user else "")),
            "lastname": str(escape(user.lastname if user else "")),
            "fullname": str(escape(user.fullname if user else "")),
            "coursename": str(escape(course.fullname)),
            "courseurl": str(escape(url)),
            "courselink": str(Markup('<a href="{}">{}</a>').format(url, course.fullname)),
            "daysoverdue": format_days(diff),
            "sitename": str(escape(self.config.site_name)),
        }

    def _days_diff(self, item: QueueItem, now: datetime) -> float:
        """Écart courant à l'échéance ; borne basse de la fenêtre du niveau si l'inscription a disparu."""
        enrolled_at = self.overdue.enrolled_at(item.course_id, item.user_id)
        if enrolled_at is None:
            return LEVEL_WINDOWS[item.level][0]
        deadline_at = deadline_for(enrolled_at, self.deadlines.resolve(item.course_id))
        return days_diff(now, deadline_at)

    # --- Employé ---------------------------------------------------------------

    def render_employee(self, user: DirectoryUser, course: Course, level: int, diff: float) -> RenderedMessage:
        """Rendu déterministe : mêmes entrées => même sortie (pré-rendu == aperçu)."""
        values = self.placeholders(user, course, diff)
        body = _substitute(self.get_template(level, RecipientType.EMPLOYEE), values)
        return RenderedMessage(subject=self.subject(level, course), body=body)

    def _recompute_employee(self, item: QueueItem, course: Course, now: datetime) -> RenderedMessage:
        user = self.directory.get_user(item.user_id)
        if user is None:
            raise ValueError(f"user {item.user_id} not found in directory")
        return self.render_employee(user, course, item.level, self._days_diff(item, now))

    # --- Agrégats management ------------------------------------------------

    def _team(self, item: QueueItem, repo: QueueRepository) -> list[DirectoryUser]:
        """Employés couverts par l'e-mail agrégé (lignes sœurs vivantes + la ligne elle-même)."""
        siblings = repo.live_siblings(
            recipient_type=item.recipient_type,
            recipient_address=item.recipient_address,
            course_id=item.course_id,
            level=item.level,
        )
        user_ids = sorted({row.user_id for row in siblings} | {item.user_id})
        users = []
        for uid in user_ids:
            user = self.directory.get_user(uid)
            if user is None:
                log.warning("aggregate: user %s missing from directory", uid)
                continue
            users.append(user)
        return users

    def employee_table(self, course: Course, users: list[DirectoryUser]) -> str:
        return render_fragment("employee_table.html", course=course, users=users)

    def manager_groups(self, users: list[DirectoryUser]) -> dict[str, list[DirectoryUser]]:
        """Regroupe les employés par adresse normalisée de leur supervisor ("" si inconnue)."""
        groups: dict[str, list[DirectoryUser]] = {}
        for user in users:
            manager = normalize_address(self.addresses.resolve(user.id, Role.SUPERVISOR)) or ""
            groups.setdefault(manager, []).append(user)
        return groups

    def manager_table(self, groups: dict[str, list[DirectoryUser]]) -> str:
        return render_fragment("manager_table.html", groups=groups)

    def _aggregate(self, item: QueueItem, course: Course, repo: QueueRepository, now: datetime) -> Delivery:
        users = self._team(item, repo)
        # mêmes placeholders que pour l'employé, calculés sur l'utilisateur de la ligne
        values = self.placeholders(self.directory.get_user(item.user_id), course, self._days_diff(item, now))
        if item.recipient_type == RecipientType.SUPERVISOR:
            values["employee_table"] = self.employee_table(course, users)
            cc = [u.email for u in users]
        else:
            groups = self.manager_groups(users)
            values["manager_table"] = self.manager_table(groups)
            cc = [manager for manager in groups if manager]
        body = _substitute(self.get_template(item.level, item.recipient_type), values)
        recipient = normalize_address(item.recipient_address)
        cc = [
            addr
            for addr in dict.fromkeys(normalize_address(a) for a in cc)
            if addr is not None and addr != recipient
        ]
        return Delivery(RenderedMessage(subject=self.subject(item.level, course), body=body), cc)

    # --- Point d'entrée -------------------------------------------------------

    def prepare(self, item: QueueItem, repo: QueueRepository, *, now: datetime | None = None) -> Delivery:
        """Message effectivement envoyé pour `item` (employé : snapshot stocké si présent)."""
        course = self.directory.get_course(item.course_id)
        if course is None:
            raise ValueError(f"course {item.course_id} not found in directory")
        now = now or utcnow()
        if item.recipient_type == RecipientType.EMPLOYEE:
            if item.rendered_subject and item.rendered_body:
                return Delivery(RenderedMessage(item.rendered_subject, item.rendered_body))
            return Delivery(self._recompute_employee(item, course, now))
        return self._aggregate(item, course, repo, now)

    def preview(self, item: QueueItem, repo: QueueRepository, *, now: datetime | None = None) -> RenderedMessage:
        return self.prepare(item, repo, now=now).message

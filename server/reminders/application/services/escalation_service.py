from __future__ import annotations
"""server/reminders/application/services/escalation_service.py
~~~~~~~~~~~~~~~~~~~~~~~~
Évaluation périodique : pour chaque cours obligatoire, calcule l'écart à
l'échéance de chaque inscrit non "complete" et met en file les niveaux atteints.

Idempotence : une ligne (user, course, level) dans `reminder_sent_log` est prise
dans sa propre transaction AVANT le fan-out. Deux évaluations concurrentes ne
peuvent donc pas mettre en file deux fois le même niveau.
"""

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError

from reminders.application.ports import Directory
from reminders.application.services.address_service import AddressResolver
from reminders.application.services.base import SessionBound, SessionFactory
from reminders.application.services.deadline_service import DeadlineResolver
from reminders.application.services.email_renderer import EmailRenderer
from reminders.application.services.enqueue_service import FanOutEnqueuer
from reminders.application.services.overdue_service import OverdueSetProvider
from reminders.core.errors import DirectoryError
from reminders.core.utils.datetime import as_utc, utcnow
from reminders.domain.entities import Course, OverdueUser, RunSummary, SiteConfig
from reminders.domain.policies import days_diff, deadline_for, determine_levels
from reminders.infrastructure.persistence.repositories.sent_log_repository import SentLogRepository

log = logging.getLogger(__name__)


class EscalationService(SessionBound):
    def __init__(
        self,
        config: SiteConfig,
        directory: Directory,
        *,
        session_factory: SessionFactory | None = None,
        addresses: Optional[AddressResolver] = None,
        deadlines: Optional[DeadlineResolver] = None,
        renderer: Optional[EmailRenderer] = None,
    ):
        super().__init__(session_factory)
        self.config = config
        self.directory = directory
        self.addresses = addresses or AddressResolver(directory)
        self.deadlines = deadlines or DeadlineResolver(config, session_factory)
        self.renderer = renderer or EmailRenderer(
            config, directory, addresses=self.addresses, deadlines=self.deadlines
        )
        self.overdue = OverdueSetProvider(directory)
        self.enqueuer = FanOutEnqueuer(directory, self.renderer, self.addresses)

    def evaluate(self, now: datetime | None = None, *, dry_run: bool = False) -> RunSummary:
        """
        Une passe complète. `dry_run` calcule le compte-rendu sans rien écrire
        (ni journal d'idempotence, ni file).
        """
        now = as_utc(now) if now else utcnow()
        summary = RunSummary()

        try:
            course_ids = self.directory.mandatory_courses()
        except DirectoryError as exc:
            log.error("evaluate: cannot list mandatory courses: %s", exc)
            summary.warnings.append(f"directory: {exc}")
            return summary

        for course_id in course_ids:
            try:
                course = self.directory.get_course(course_id)
                if course is None:
                    summary.warnings.append(f"course {course_id}: not found in directory")
                    continue
                users = self.overdue.incomplete_users(course_id)
            except DirectoryError as exc:
                log.warning("evaluate: course %s skipped: %s", course_id, exc)
                summary.warnings.append(f"course {course_id}: {exc}")
                continue

            summary.courses += 1
            summary.users += len(users)
            deadline_days = self.deadlines.resolve(course_id)
            for user in users:
                self._evaluate_user(course, user, deadline_days, now, summary, dry_run)

        log.info(
            "evaluate done courses=%d users=%d queued=%d skipped=%d items=%d warnings=%d dry_run=%s",
            summary.courses,
            summary.users,
            summary.queued,
            summary.skipped,
            summary.items,
            len(summary.warnings),
            dry_run,
        )
        return summary

    def _evaluate_user(
        self,
        course: Course,
        user: OverdueUser,
        deadline_days: int,
        now: datetime,
        summary: RunSummary,
        dry_run: bool,
    ) -> None:
        deadline_at = deadline_for(user.enrolled_at, deadline_days)
        diff = days_diff(now, deadline_at)

        for level in determine_levels(diff):
            key = dict(user_id=user.user_id, course_id=course.id, level=level)
            try:
                if dry_run:
                    with self._session() as s:
                        already = SentLogRepository(s).exists(**key)
                    if already:
                        summary.skipped += 1
                    else:
                        summary.queued += 1
                    continue

                # 1) prise du verrou d'idempotence (transaction dédiée)
                with self._session() as s:
                    sent_log = SentLogRepository(s)
                    if sent_log.exists(**key) or not sent_log.claim(
                        **key, enrolled_at=user.enrolled_at, deadline_at=deadline_at, now=now
                    ):
                        summary.skipped += 1
                        continue
                    s.commit()

                # 2) fan-out des destinataires
                with self._session() as s:
                    result = self.enqueuer.enqueue(
                        s, user_id=user.user_id, course=course, level=level, diff=diff, now=now
                    )
                    s.commit()
            except (SQLAlchemyError, DirectoryError) as exc:
                log.exception("evaluate: user %s course %s level %s failed", user.user_id, course.id, level)
                summary.warnings.append(f"user {user.user_id} course {course.id} level {level}: {exc}")
                continue

            summary.queued += 1
            summary.items += len(result.items)
            summary.warnings.extend(result.warnings)

from __future__ import annotations
"""server/reminders/application/ports.py
~~~~~~~~~~~~~~~~~~~~~~~~
Collaborateurs externes consommés par les services (interfaces seulement).
Les implémentations vivent dans `reminders.infrastructure.*` ; les tests
injectent des fakes.
"""

from typing import Optional, Protocol, Sequence

from reminders.domain.entities import Course, DirectoryUser, EnrollmentRecord


class Directory(Protocol):
    """Faits bruts du LMS : cours obligatoires, utilisateurs, inscriptions, profils."""

    def mandatory_courses(self) -> list[int]: ...

    def get_course(self, course_id: int) -> Optional[Course]: ...

    def get_user(self, user_id: int) -> Optional[DirectoryUser]: ...

    def enrollments(self, course_id: int) -> list[EnrollmentRecord]: ...

    def profile_field(self, user_id: int, shortname: str) -> Optional[str]: ...


class Mailer(Protocol):
    def send(self, *, to: str, subject: str, body: str, cc: Sequence[str] = ()) -> bool: ...


class InAppNotifier(Protocol):
    def notify(
        self,
        *,
        user_id: int,
        subject: str,
        text: str,
        small_text: str = "",
        context_url: str | None = None,
        context_name: str | None = None,
    ) -> bool: ...

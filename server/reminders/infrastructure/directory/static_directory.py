from __future__ import annotations
"""server/reminders/infrastructure/directory/static_directory.py
~~~~~~~~~~~~~~~~~~~~~~~~
Annuaire en mémoire (tests, démo CLI).
"""

from dataclasses import dataclass, field
from typing import Optional

from reminders.domain.entities import Course, DirectoryUser, EnrollmentRecord


@dataclass
class StaticDirectory:
    courses: dict[int, Course] = field(default_factory=dict)
    users: dict[int, DirectoryUser] = field(default_factory=dict)
    enrolments: dict[int, list[EnrollmentRecord]] = field(default_factory=dict)
    # (user_id, shortname) -> valeur
    profiles: dict[tuple[int, str], str] = field(default_factory=dict)
    mandatory: list[int] = field(default_factory=list)

    def add_course(self, course: Course, *, mandatory: bool = True) -> Course:
        self.courses[course.id] = course
        if mandatory and course.id not in self.mandatory:
            self.mandatory.append(course.id)
        return course

    def add_user(self, user: DirectoryUser, **profile: str) -> DirectoryUser:
        self.users[user.id] = user
        for shortname, value in profile.items():
            self.profiles[(user.id, shortname)] = value
        return user

    def enrol(self, course_id: int, record: EnrollmentRecord) -> None:
        self.enrolments.setdefault(course_id, []).append(record)

    # --- Directory ------------------------------------------------------------

    def mandatory_courses(self) -> list[int]:
        return list(self.mandatory)

    def get_course(self, course_id: int) -> Optional[Course]:
        return self.courses.get(course_id)

    def get_user(self, user_id: int) -> Optional[DirectoryUser]:
        return self.users.get(user_id)

    def enrollments(self, course_id: int) -> list[EnrollmentRecord]:
        return list(self.enrolments.get(course_id, []))

    def profile_field(self, user_id: int, shortname: str) -> Optional[str]:
        return self.profiles.get((user_id, shortname))

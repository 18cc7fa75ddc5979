from __future__ import annotations

"""server/reminders/infrastructure/directory/http_directory.py
~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~
Client HTTP (JSON) de l'annuaire LMS.

Routes consommées (relatives à DIRECTORY_API_URL) :
- GET /courses/mandatory                 -> [course_id, ...]
- GET /courses/{id}                      -> {id, fullname, url}
- GET /courses/{id}/enrolments           -> [{user_id, enrolled_at, enrolment_active, user_active, completed}]
- GET /users/{id}                        -> {id, email, firstname, lastname}
- GET /users/{id}/profile/{shortname}    -> {value}

Notes :
- 404 sur un cours/utilisateur => None (pas une erreur).
- Toute autre erreur transport/HTTP => DirectoryError.
- Petit cache par instance (une instance = un run) pour les users/cours.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Optional

import httpx

from reminders.core.config import settings
from reminders.core.errors import DirectoryError
from reminders.domain.entities import Course, DirectoryUser, EnrollmentRecord

logger = logging.getLogger(__name__)


def _parse_ts(raw: Any) -> datetime:
    """Accepte un epoch (int/float) ou une date ISO-8601."""
    if isinstance(raw, (int, float)):
        return datetime.fromtimestamp(raw, tz=timezone.utc)
    dt = datetime.fromisoformat(str(raw).replace("Z", "+00:00"))
    return dt if dt.tzinfo else dt.replace(tzinfo=timezone.utc)


class HttpDirectory:
    def __init__(
        self,
        base_url: str | None = None,
        *,
        token: str | None = None,
        timeout: float = 10.0,
        client: httpx.Client | None = None,
    ):
        base_url = base_url or settings.DIRECTORY_API_URL
        if not base_url:
            raise ValueError("DIRECTORY_API_URL not configured")
        headers = {"Accept": "application/json"}
        token = token if token is not None else settings.DIRECTORY_API_TOKEN
        if token:
            headers["Authorization"] = f"Bearer {token}"
        self._client = client or httpx.Client(base_url=base_url.rstrip("/"), headers=headers, timeout=timeout)
        self._users: dict[int, Optional[DirectoryUser]] = {}
        self._courses: dict[int, Optional[Course]] = {}

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> "HttpDirectory":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    # ──────────────────────────────────────────────────────────────────────────

    def _get(self, path: str, *, allow_404: bool = False) -> Any:
        try:
            r = self._client.get(path)
        except httpx.HTTPError as exc:
            raise DirectoryError(f"directory unreachable: {exc}") from exc
        if allow_404 and r.status_code == 404:
            return None
        if r.status_code >= 400:
            raise DirectoryError(f"directory GET {path} -> HTTP {r.status_code}")
        return r.json()

    def mandatory_courses(self) -> list[int]:
        data = self._get("/courses/mandatory") or []
        return [int(c) for c in data]

    def get_course(self, course_id: int) -> Optional[Course]:
        if course_id not in self._courses:
            data = self._get(f"/courses/{course_id}", allow_404=True)
            self._courses[course_id] = (
                Course(id=int(data["id"]), fullname=data.get("fullname") or "", url=data.get("url") or "")
                if data
                else None
            )
        return self._courses[course_id]

    def get_user(self, user_id: int) -> Optional[DirectoryUser]:
        if user_id not in self._users:
            data = self._get(f"/users/{user_id}", allow_404=True)
            self._users[user_id] = (
                DirectoryUser(
                    id=int(data["id"]),
                    email=data.get("email") or "",
                    firstname=data.get("firstname") or "",
                    lastname=data.get("lastname") or "",
                )
                if data
                else None
            )
        return self._users[user_id]

    def enrollments(self, course_id: int) -> list[EnrollmentRecord]:
        rows = self._get(f"/courses/{course_id}/enrolments") or []
        out: list[EnrollmentRecord] = []
        for row in rows:
            try:
                out.append(
                    EnrollmentRecord(
                        user_id=int(row["user_id"]),
                        enrolled_at=_parse_ts(row["enrolled_at"]),
                        enrolment_active=bool(row.get("enrolment_active", True)),
                        user_active=bool(row.get("user_active", True)),
                        completed=row.get("completed"),
                    )
                )
            except (KeyError, TypeError, ValueError):
                logger.warning("directory: malformed enrolment row ignored", extra={"course_id": course_id, "row": row})
        return out

    def profile_field(self, user_id: int, shortname: str) -> Optional[str]:
        data = self._get(f"/users/{user_id}/profile/{shortname}", allow_404=True)
        if not data:
            return None
        value = data.get("value")
        return str(value) if value not in (None, "") else None

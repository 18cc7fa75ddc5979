from __future__ import annotations
"""server/reminders/application/services/address_service.py
~~~~~~~~~~~~~~~~~~~~~~~~
Adresse du supérieur (supervisor) ou du senior manager d'un utilisateur,
lue dans les champs de profil de l'annuaire.
"""

from typing import Optional

from reminders.application.ports import Directory
from reminders.domain.entities import Role


class AddressResolver:
    def __init__(
        self,
        directory: Directory,
        *,
        supervisor_field: str = "SupervisorEmail",
        senior_manager_field: str = "sbuheademail",
    ):
        self.directory = directory
        self.fields = {
            Role.SUPERVISOR: supervisor_field,
            Role.SENIOR_MANAGER: senior_manager_field,
        }

    def resolve(self, user_id: int, role: Role) -> Optional[str]:
        raw = self.directory.profile_field(user_id, self.fields[role])
        value = (raw or "").strip()
        return value or None

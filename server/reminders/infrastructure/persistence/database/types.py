from __future__ import annotations
"""server/reminders/infrastructure/persistence/database/types.py
~~~~~~~~~~~~~~~~~~~~~~~~
Types de colonnes portables Postgres / SQLite.
"""

import enum
from datetime import datetime, timezone

import sqlalchemy as sa


class TstzPortable(sa.types.TypeDecorator):
    """TIMESTAMPTZ sur Postgres, DateTime() ailleurs ; relu toujours en UTC 'aware'."""
    impl = sa.DateTime
    cache_ok = True

    def load_dialect_impl(self, dialect):
        if dialect.name == "postgresql":
            return dialect.type_descriptor(sa.TIMESTAMP(timezone=True))
        return dialect.type_descriptor(sa.DateTime())

    def process_bind_param(self, value: datetime | None, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        value = value.astimezone(timezone.utc)
        # SQLite ne stocke pas de fuseau : on écrit du naïf UTC
        return value if dialect.name == "postgresql" else value.replace(tzinfo=None)

    def process_result_value(self, value: datetime | None, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)


def StrEnum(enum_cls: type[enum.Enum], name: str) -> sa.Enum:
    """
    Enum stocké en VARCHAR + CHECK (valeurs, pas les noms) : identique sur
    Postgres et SQLite, sans type natif à migrer.
    """
    return sa.Enum(
        enum_cls,
        name=name,
        native_enum=False,
        length=32,
        values_callable=lambda e: [m.value for m in e],
        validate_strings=True,
    )


def utcnow() -> datetime:
    return datetime.now(timezone.utc)

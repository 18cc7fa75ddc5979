from __future__ import annotations
"""server/reminders/core/errors.py
~~~~~~~~~~~~~~~~~~~~~~~~
Exceptions métier.
"""


class ReminderError(Exception):
    """Base de toutes les erreurs applicatives."""


class QueueItemNotFound(ReminderError):
    def __init__(self, item_id: int):
        super().__init__(f"queue item {item_id} not found")
        self.item_id = item_id


class DeliveryTimeout(ReminderError):
    """La livraison d'un item a dépassé DELIVERY_TIMEOUT_SECONDS."""


class DirectoryError(ReminderError):
    """L'annuaire (LMS) est injoignable ou a répondu une erreur."""

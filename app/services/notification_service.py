"""
Guest notification seam

Delivery providers (email, SMS, WhatsApp) live outside this service. The
default notifier only logs what would be sent.
"""

import logging
from typing import Dict, Optional

from app.models import Event, Guest, TravelRecord

logger = logging.getLogger(__name__)

NOTIFICATION_TYPES = ("confirmation", "reminder", "update")


class NotificationError(Exception):
    """Delivery failed for one guest"""


class Notifier:
    """Interface for notification collaborators"""

    def send(
        self,
        event: Event,
        guest: Guest,
        notification_type: str,
        travel_record: Optional[TravelRecord] = None,
    ) -> Dict:
        raise NotImplementedError


class LoggingNotifier(Notifier):
    """Records notifications in the application log"""

    def send(self, event, guest, notification_type, travel_record=None):
        if not guest.email and not guest.phone:
            raise NotificationError(f"Guest {guest.id} has no email or phone on file")

        channel = "email" if guest.email else "sms"
        flight = travel_record.flight_number if travel_record else None
        logger.info(
            f"[{event.public_code}] {notification_type} notification to {guest.name} "
            f"via {channel} (flight: {flight or 'n/a'})"
        )
        return {"channel": channel, "recipient": guest.email or guest.phone}


_notifier: Notifier = LoggingNotifier()


def get_notifier() -> Notifier:
    return _notifier


def set_notifier(notifier: Notifier) -> None:
    """Swap the delivery collaborator (used by tests and deployments)"""
    global _notifier
    _notifier = notifier

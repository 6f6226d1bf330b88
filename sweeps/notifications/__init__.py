"""Winner-selected event delivery."""

from .api import WebhookNotifier
from .outbox import OutboxNotifier, WinnerNotifier, mark_delivered, winner_payload

__all__ = [
    "OutboxNotifier",
    "WebhookNotifier",
    "WinnerNotifier",
    "mark_delivered",
    "winner_payload",
]

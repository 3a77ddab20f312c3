"""Notification publisher port (abstract interface).

The core only emits events to a channel named by the group-order id; the
transport behind the port owns subscriber membership and delivery.
"""

from abc import ABC, abstractmethod
from enum import Enum


class NotificationEvent(Enum):
    PARTICIPANT_JOINED = "participant_joined"
    PARTICIPANT_LEFT = "participant_left"
    STATUS_CHANGED = "status_changed"
    ORDER_PLACED = "order_placed"
    CHAT_MESSAGE = "chat_message"


class NotificationPublisher(ABC):
    """Fire-and-forget publish to a group order's channel."""

    @abstractmethod
    def publish(self, channel: str, event: str, payload: dict) -> None:
        """Publish ``event`` with ``payload`` to subscribers of ``channel``."""
        ...

"""Notification publisher factory.

Provides get_publisher() / set_publisher() to swap implementations:
- FakePublisher for development and testing (default)
- BrokerPublisher when ``GROUP_BUYING_PUBLISHER=broker``
"""

from group_buying.config import get_settings
from group_buying.publisher.port import NotificationPublisher

_current_publisher: NotificationPublisher | None = None


def get_publisher() -> NotificationPublisher:
    """Return the current publisher, building the configured one on first use."""
    global _current_publisher
    if _current_publisher is None:
        if get_settings().publisher == "broker":
            from group_buying.publisher.broker_adapter import BrokerPublisher

            _current_publisher = BrokerPublisher()
        else:
            from group_buying.publisher.fake_adapter import FakePublisher

            _current_publisher = FakePublisher()
    return _current_publisher


def set_publisher(publisher: NotificationPublisher) -> None:
    """Override the active publisher (useful for tests)."""
    global _current_publisher
    _current_publisher = publisher


def reset_publisher() -> None:
    """Reset to the configured default publisher."""
    global _current_publisher
    _current_publisher = None

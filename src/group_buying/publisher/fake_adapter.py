"""Fake notification publisher — records published events for testing.

Also keeps an in-memory subscriber list per channel so tests can observe the
fan-out the real transport performs.
"""

from collections import defaultdict
from collections.abc import Callable

from group_buying.publisher.port import NotificationPublisher


class PublishFailed(Exception):
    """Raised by the fake publisher when configured to fail."""


class FakePublisher(NotificationPublisher):
    def __init__(self) -> None:
        self.published: list[dict] = []
        self.should_succeed = True
        self.failure_reason = "Transport unavailable"
        self._subscribers: dict[str, list[Callable]] = defaultdict(list)

    def configure(self, should_succeed: bool = True, failure_reason: str = "Transport unavailable"):
        """Configure the fake publisher behavior for testing."""
        self.should_succeed = should_succeed
        self.failure_reason = failure_reason

    def subscribe(self, channel: str, callback: Callable[[str, dict], None]) -> None:
        self._subscribers[channel].append(callback)

    def unsubscribe(self, channel: str, callback: Callable[[str, dict], None]) -> None:
        if callback in self._subscribers.get(channel, []):
            self._subscribers[channel].remove(callback)

    def publish(self, channel: str, event: str, payload: dict) -> None:
        if not self.should_succeed:
            raise PublishFailed(self.failure_reason)

        self.published.append({"channel": channel, "event": event, "payload": payload})
        for callback in list(self._subscribers.get(channel, [])):
            callback(event, payload)

    def events_for(self, channel: str) -> list[str]:
        return [record["event"] for record in self.published if record["channel"] == channel]

    def reset(self):
        """Clear published events and subscribers (useful between tests)."""
        self.published.clear()
        self._subscribers.clear()
        self.should_succeed = True
        self.failure_reason = "Transport unavailable"

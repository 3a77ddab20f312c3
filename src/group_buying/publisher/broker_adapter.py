"""Broker-backed notification publisher.

Publishes each notification as a message on the Protean domain's broker
(Redis Streams in production, in-memory in development), on the stream
``group_order::<group_order_id>``. Real-time gateways (websocket rooms)
consume these streams and fan out to connected vendors.
"""

from protean.utils.globals import current_domain

from group_buying.publisher.port import NotificationPublisher
from group_buying.utils.clock import utcnow

STREAM_PREFIX = "group_order"


def stream_for(channel: str) -> str:
    return f"{STREAM_PREFIX}::{channel}"


class BrokerPublisher(NotificationPublisher):
    def __init__(self, broker=None, broker_name: str = "default") -> None:
        self._broker = broker
        self.broker_name = broker_name

    @property
    def broker(self):
        if self._broker is not None:
            return self._broker
        broker = current_domain.brokers.get(self.broker_name)
        if broker is None:
            raise LookupError(f"No broker named '{self.broker_name}' is configured")
        return broker

    def publish(self, channel: str, event: str, payload: dict) -> None:
        self.broker.publish(
            stream_for(channel),
            {
                "channel": channel,
                "event": event,
                "payload": payload,
                "published_at": utcnow().isoformat(),
            },
        )

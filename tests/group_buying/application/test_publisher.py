"""Tests for the notification publisher adapters and factory."""

from unittest.mock import MagicMock

import pytest
from group_buying.config import GroupBuyingSettings, set_settings
from group_buying.group_order.aggregator import GroupOrderAggregator
from group_buying.publisher import get_publisher, reset_publisher, set_publisher
from group_buying.publisher.broker_adapter import BrokerPublisher, stream_for
from group_buying.publisher.fake_adapter import FakePublisher, PublishFailed


class TestFakePublisher:
    def test_records_published_events(self):
        publisher = FakePublisher()
        publisher.publish("go-1", "participant_joined", {"vendor_id": "v1"})
        assert publisher.published == [
            {"channel": "go-1", "event": "participant_joined", "payload": {"vendor_id": "v1"}}
        ]

    def test_fans_out_only_to_channel_subscribers(self):
        publisher = FakePublisher()
        on_first, on_second = [], []
        publisher.subscribe("go-1", lambda event, payload: on_first.append(event))
        publisher.subscribe("go-2", lambda event, payload: on_second.append(event))

        publisher.publish("go-1", "status_changed", {})

        assert on_first == ["status_changed"]
        assert on_second == []

    def test_unsubscribe(self):
        publisher = FakePublisher()
        received = []

        def callback(event, payload):
            received.append(event)

        publisher.subscribe("go-1", callback)
        publisher.unsubscribe("go-1", callback)
        publisher.publish("go-1", "status_changed", {})
        assert received == []

    def test_configured_failure(self):
        publisher = FakePublisher()
        publisher.configure(should_succeed=False, failure_reason="Socket closed")
        with pytest.raises(PublishFailed, match="Socket closed"):
            publisher.publish("go-1", "status_changed", {})


class TestBrokerPublisher:
    def test_publishes_envelope_on_group_order_stream(self):
        broker = MagicMock()
        publisher = BrokerPublisher(broker=broker)

        publisher.publish("go-1", "order_placed", {"order_numbers": ["VC202405010001"]})

        stream, message = broker.publish.call_args.args
        assert stream == "group_order::go-1"
        assert message["channel"] == "go-1"
        assert message["event"] == "order_placed"
        assert message["payload"] == {"order_numbers": ["VC202405010001"]}
        assert "published_at" in message

    def test_uses_domain_broker_by_default(self):
        from protean import current_domain

        publisher = BrokerPublisher()
        assert publisher.broker is current_domain.brokers.get("default")

    def test_unknown_broker(self):
        with pytest.raises(LookupError):
            BrokerPublisher(broker_name="missing").broker

    def test_stream_name(self):
        assert stream_for("abc") == "group_order::abc"


class TestPublisherFactory:
    def test_default_is_fake(self):
        reset_publisher()
        assert isinstance(get_publisher(), FakePublisher)

    def test_broker_from_settings(self):
        set_settings(GroupBuyingSettings(publisher="broker"))
        reset_publisher()
        assert isinstance(get_publisher(), BrokerPublisher)

    def test_set_publisher_overrides(self):
        custom = FakePublisher()
        set_publisher(custom)
        assert get_publisher() is custom


class TestBrokerFailureIsolation:
    def test_broker_outage_does_not_fail_join(self, create_group_order, order_factory, clock):
        broker = MagicMock()
        broker.publish.side_effect = ConnectionError("Redis unavailable")
        aggregator = GroupOrderAggregator(
            publisher=BrokerPublisher(broker=broker),
            order_factory=order_factory,
            clock=clock,
        )
        group_order = create_group_order()

        joined = aggregator.join(group_order.id, "vendor-1", 2)

        assert joined.current_quantity == 2
        assert broker.publish.called

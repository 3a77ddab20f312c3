from datetime import UTC, datetime, timedelta

import pytest
from group_buying.config import reset_settings
from group_buying.publisher import reset_publisher, set_publisher
from group_buying.publisher.fake_adapter import FakePublisher
from group_buying.services import reset_services


@pytest.fixture(scope="session")
def _group_buying_domain(request):
    """Initialize the group_buying domain once per session."""
    from group_buying.domain import group_buying

    group_buying.init()
    return group_buying


@pytest.fixture(scope="session", autouse=True)
def setup_db(_group_buying_domain):
    from group_buying.utils.db import drop_db, setup_db

    setup_db(_group_buying_domain)

    yield

    drop_db(_group_buying_domain)


@pytest.fixture(autouse=True)
def run_around_tests(_group_buying_domain):
    """Push domain context before each test, cleanup after."""
    ctx = _group_buying_domain.domain_context()
    ctx.push()

    yield

    from protean import current_domain

    for _, provider in current_domain.providers.items():
        provider._data_reset()

    for _, broker in current_domain.brokers.items():
        broker._data_reset()

    current_domain.event_store.store._data_reset()
    ctx.pop()

    reset_services()
    reset_publisher()
    reset_settings()


@pytest.fixture()
def publisher():
    """A fresh FakePublisher installed as the active publisher."""
    fake = FakePublisher()
    set_publisher(fake)
    yield fake
    fake.reset()


@pytest.fixture()
def now():
    return datetime(2024, 5, 1, 9, 30, tzinfo=UTC)


@pytest.fixture()
def clock(now):
    """A controllable clock; advance it with ``clock.advance(hours=...)``."""

    class _Clock:
        def __init__(self, start):
            self.current = start

        def __call__(self):
            return self.current

        def advance(self, **delta):
            self.current = self.current + timedelta(**delta)

    return _Clock(now)


@pytest.fixture()
def deadline(now):
    return now + timedelta(days=3)


@pytest.fixture()
def tiers():
    return [
        {"min_quantity": 50, "discount_percentage": 5},
        {"min_quantity": 100, "discount_percentage": 12},
    ]

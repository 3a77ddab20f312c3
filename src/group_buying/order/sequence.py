"""Order-number sequencing — day-scoped, human-readable, never duplicated.

Order numbers look like ``VC202405010001``: the ``VC`` prefix, the UTC
calendar date as ``YYYYMMDD`` and a four-digit, zero-padded sequence that
restarts at 1 every day.

Each date has its own ``DailySequence`` counter record. ``allocate`` bumps
the counter through the AtomicStore, so two concurrent callers for the same
date are serialized and never see the same value. Sequences are never
derived by scanning existing orders.

The Order store's uniqueness constraint on ``order_number`` is the final
collision detector: when a write collides (e.g. with an order imported
outside the counter), ``issue`` retries with the next number, up to the
allocation budget.
"""

import re
from collections.abc import Callable
from datetime import datetime

import structlog
from protean.exceptions import ValidationError
from protean.fields import Integer, String

from group_buying.config import get_settings
from group_buying.domain import group_buying
from group_buying.exceptions import AllocationExhausted, DuplicateOrderNumber
from group_buying.store import AtomicStore
from group_buying.utils.clock import as_utc

logger = structlog.get_logger(__name__)

ORDER_NUMBER_PREFIX = "VC"
MAX_DAILY_SEQUENCE = 9999

_DATE_KEY = re.compile(r"^\d{8}$")
_ORDER_NUMBER = re.compile(rf"^{ORDER_NUMBER_PREFIX}(\d{{8}})(\d{{4}})$")


# ---------------------------------------------------------------------------
# Textual format
# ---------------------------------------------------------------------------
def date_key_for(instant: datetime) -> str:
    """``YYYYMMDD`` for the UTC calendar day of ``instant``."""
    return as_utc(instant).strftime("%Y%m%d")


def _validate_date_key(date_key: str) -> None:
    if not isinstance(date_key, str) or not _DATE_KEY.match(date_key):
        raise ValidationError({"date_key": ["Date key must be 8 digits (YYYYMMDD)"]})
    try:
        datetime.strptime(date_key, "%Y%m%d")
    except ValueError as exc:
        raise ValidationError({"date_key": [f"Not a calendar date: {date_key}"]}) from exc


def format_order_number(date_key: str, sequence: int) -> str:
    _validate_date_key(date_key)
    if not 1 <= sequence <= MAX_DAILY_SEQUENCE:
        raise ValidationError({"sequence": [f"Sequence must be between 1 and {MAX_DAILY_SEQUENCE}"]})
    return f"{ORDER_NUMBER_PREFIX}{date_key}{sequence:04d}"


def parse_order_number(order_number: str) -> tuple[str, int]:
    """Split an order number into its date key and sequence."""
    match = _ORDER_NUMBER.match(order_number or "")
    if match is None:
        raise ValidationError({"order_number": [f"Malformed order number: {order_number}"]})
    return match.group(1), int(match.group(2))


# ---------------------------------------------------------------------------
# Counter record
# ---------------------------------------------------------------------------
@group_buying.aggregate
class DailySequence:
    """Highest sequence handed out for one calendar day."""

    date_key = String(identifier=True, max_length=8)
    last_value = Integer(default=0, min_value=0)

    def advance(self):
        self.last_value = (self.last_value or 0) + 1


# ---------------------------------------------------------------------------
# Allocator
# ---------------------------------------------------------------------------
class SequenceAllocator:
    def __init__(self, store: AtomicStore | None = None, allocation_attempts: int | None = None):
        self.store = store or AtomicStore(DailySequence, key_field="date_key")
        self.allocation_attempts = allocation_attempts or get_settings().allocation_attempts

    def allocate(self, date_key: str) -> int:
        """Return the next 1-based sequence number for ``date_key``."""
        _validate_date_key(date_key)

        def advance(sequence):
            if (sequence.last_value or 0) >= MAX_DAILY_SEQUENCE:
                raise AllocationExhausted(
                    f"Daily order numbers for {date_key} are exhausted",
                    date_key=date_key,
                )
            sequence.advance()

        counter = self.store.atomic_update(
            date_key,
            advance,
            default=lambda: DailySequence(date_key=date_key, last_value=0),
        )
        return counter.last_value

    def issue(self, date_key: str, write: Callable[[str], object]):
        """Allocate a number and hand it to ``write``, retrying on collision.

        ``write`` persists whatever carries the number and raises
        ``DuplicateOrderNumber`` if the number is already taken. Its return
        value is passed through.
        """
        for attempt in range(1, self.allocation_attempts + 1):
            order_number = format_order_number(date_key, self.allocate(date_key))
            try:
                return write(order_number)
            except DuplicateOrderNumber:
                logger.warning(
                    "Order number collision, allocating next",
                    order_number=order_number,
                    attempt=attempt,
                )

        raise AllocationExhausted(
            f"No unique order number for {date_key} after {self.allocation_attempts} attempts",
            date_key=date_key,
        )

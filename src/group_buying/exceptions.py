"""Error taxonomy for the Group Buying domain.

Every ``GroupBuyingError`` is recoverable by the caller: the request can be
corrected or retried. ``StoreUnavailable`` sits outside the taxonomy and
signals an infrastructure outage; the whole request should be retried later.

Malformed input is rejected with Protean's ``ValidationError`` before any
store interaction.
"""


class GroupBuyingError(Exception):
    """Base class for domain errors raised by group orders and orders."""

    def __init__(self, message: str, **context):
        super().__init__(message)
        self.message = message
        self.context = context

    @property
    def code(self) -> str:
        return type(self).__name__


class OrderClosed(GroupBuyingError):
    """The group order no longer accepts participants (status is not active)."""


class DeadlinePassed(GroupBuyingError):
    """The group order's deadline has passed."""


class CapacityExceeded(GroupBuyingError):
    """Adding a new vendor would exceed the group order's participant cap."""


class NotAParticipant(GroupBuyingError):
    """The vendor has no participation entry in the group order."""


class OrderLocked(GroupBuyingError):
    """Participation can no longer change (ordered, delivered or cancelled)."""


class InvalidStateTransition(GroupBuyingError):
    """The requested status change is not an edge of the state machine."""


class UpdateConflict(GroupBuyingError):
    """The record could not be updated within the lock wait or retry budget."""


class AllocationExhausted(GroupBuyingError):
    """No unique order number could be allocated within the retry budget."""


class GroupOrderNotPlaced(GroupBuyingError):
    """Orders can only be materialized for a group order in ordered status."""


class DuplicateOrderNumber(GroupBuyingError):
    """An order number collided with an existing order at write time."""


class StoreUnavailable(Exception):
    """The persistence layer failed for reasons unrelated to the domain."""

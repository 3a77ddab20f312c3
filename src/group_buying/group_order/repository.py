"""Repository for the GroupOrder aggregate."""

from datetime import datetime

from group_buying.domain import group_buying
from group_buying.group_order.group_order import GroupOrder, GroupOrderStatus
from group_buying.utils.query import fetch_all


@group_buying.repository(part_of=GroupOrder)
class GroupOrderRepository:
    def find_by_status(self, status: GroupOrderStatus) -> list[GroupOrder]:
        return fetch_all(self._dao.query.filter(status=status.value))

    def find_overdue(self, now: datetime) -> list[GroupOrder]:
        """Active group orders whose deadline has passed."""
        active = self.find_by_status(GroupOrderStatus.ACTIVE)
        return [group_order for group_order in active if group_order.is_overdue(now)]

    def find_by_participant(self, vendor_id) -> list[GroupOrder]:
        # Participants live in a JSON mapping, so membership is checked here
        vendor_key = str(vendor_id)
        return [
            group_order for group_order in fetch_all(self._dao.query) if vendor_key in (group_order.participants or {})
        ]

"""Repository for the Order aggregate."""

from group_buying.domain import group_buying
from group_buying.order.order import Order
from group_buying.utils.query import fetch_all


@group_buying.repository(part_of=Order)
class OrderRepository:
    def find_by_order_number(self, order_number: str) -> Order | None:
        matches = self._dao.query.filter(order_number=order_number).all().items
        return matches[0] if matches else None

    def find_for_participant(self, group_order_id, vendor_id) -> Order | None:
        """The order materialized for one vendor of a group order, if any."""
        matches = (
            self._dao.query.filter(
                group_order_id=str(group_order_id),
                vendor_id=str(vendor_id),
            )
            .all()
            .items
        )
        return matches[0] if matches else None

    def find_by_group_order(self, group_order_id) -> list[Order]:
        return fetch_all(self._dao.query.filter(group_order_id=str(group_order_id)))

    def find_by_vendor(self, vendor_id) -> list[Order]:
        return fetch_all(self._dao.query.filter(vendor_id=str(vendor_id)))

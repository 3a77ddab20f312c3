"""Individual order load test scenarios.

Every created order allocates from the same daily sequence, so a burst of
these users stresses order-number allocation. Duplicate numbers in the
responses would indicate a sequencing fault.
"""

import threading

from locust import HttpUser, SequentialTaskSet, between, task

from loadtests.data_generators import individual_order_data, shipment_data
from loadtests.helpers.response import extract_error_detail
from loadtests.helpers.state import OrderState

_seen_numbers: set[str] = set()
_seen_lock = threading.Lock()


def _record_number(order_number: str) -> bool:
    """Remember an issued number; False if it was already seen."""
    with _seen_lock:
        if order_number in _seen_numbers:
            return False
        _seen_numbers.add(order_number)
        return True


class OrderFulfillmentJourney(SequentialTaskSet):
    """Create -> Confirm -> Process -> Ship -> Deliver."""

    def on_start(self):
        self.state = OrderState()

    @task
    def create(self):
        with self.client.post(
            "/orders",
            json=individual_order_data(),
            catch_response=True,
            name="POST /orders",
        ) as resp:
            if resp.status_code != 201:
                resp.failure(f"Create failed: {resp.status_code} {extract_error_detail(resp)}")
                self.interrupt()
                return
            body = resp.json()
            self.state.order_id = body["order_id"]
            self.state.order_number = body["order_number"]
            if not _record_number(body["order_number"]):
                resp.failure(f"Duplicate order number {body['order_number']}")

    def _advance(self, action: str, status: str, payload: dict | None = None):
        with self.client.put(
            f"/orders/{self.state.order_id}/{action}",
            json=payload,
            catch_response=True,
            name=f"PUT /orders/{{id}}/{action}",
        ) as resp:
            if resp.status_code == 200:
                self.state.current_status = status
            else:
                resp.failure(f"{action} failed: {resp.status_code} {extract_error_detail(resp)}")
                self.interrupt()

    @task
    def confirm(self):
        self._advance("confirm", "confirmed")

    @task
    def process(self):
        self._advance("process", "processing")

    @task
    def ship(self):
        self._advance("ship", "shipped", shipment_data())

    @task
    def deliver(self):
        self._advance("deliver", "delivered")

    @task
    def lookup_by_number(self):
        self.client.get(f"/orders/by-number/{self.state.order_number}", name="GET /orders/by-number/{number}")
        self.interrupt()


class OrderUser(HttpUser):
    """Vendors placing and tracking individual orders."""

    tasks = [OrderFulfillmentJourney]
    wait_time = between(0.2, 1.0)


class OrderBurstUser(HttpUser):
    """Back-to-back order creation to stress daily sequence allocation."""

    wait_time = between(0.0, 0.05)

    @task
    def create(self):
        with self.client.post(
            "/orders",
            json=individual_order_data(),
            catch_response=True,
            name="POST /orders (burst)",
        ) as resp:
            if resp.status_code != 201:
                resp.failure(f"Create failed: {resp.status_code} {extract_error_detail(resp)}")
            elif not _record_number(resp.json()["order_number"]):
                resp.failure(f"Duplicate order number {resp.json()['order_number']}")

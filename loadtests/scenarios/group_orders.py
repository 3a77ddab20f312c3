"""Group order load test scenarios.

GroupOrderJourney walks one group order from creation to delivery with a
handful of vendors. ContendedJoinUser points every user at the same group
order so joins for that record are serialized by the store's lock; watch
for 409 UpdateConflict responses as the user count grows.
"""

import random

from locust import HttpUser, SequentialTaskSet, between, task

from loadtests.data_generators import group_order_data, join_data, vendor_id
from loadtests.helpers.response import error_code, extract_error_detail
from loadtests.helpers.state import GroupOrderState, SharedGroupOrder


class GroupOrderJourney(SequentialTaskSet):
    """Create -> Join until target -> Place -> Deliver."""

    def on_start(self):
        self.state = GroupOrderState()

    @task
    def create(self):
        payload = group_order_data(target_quantity=random.randint(10, 30), max_participants=20)
        with self.client.post(
            "/group-orders",
            json=payload,
            catch_response=True,
            name="POST /group-orders",
        ) as resp:
            if resp.status_code == 201:
                self.state.group_order_id = resp.json()["group_order_id"]
                self.state.target_quantity = payload["target_quantity"]
            else:
                resp.failure(f"Create failed: {resp.status_code} {extract_error_detail(resp)}")
                self.interrupt()

    @task
    def join_until_target(self):
        while self.state.joined_quantity < self.state.target_quantity:
            vendor = vendor_id()
            quantity = min(random.randint(1, 8), self.state.target_quantity - self.state.joined_quantity)
            with self.client.post(
                f"/group-orders/{self.state.group_order_id}/participants",
                json={"vendor_id": vendor, "quantity": quantity},
                catch_response=True,
                name="POST /group-orders/{id}/participants",
            ) as resp:
                if resp.status_code == 200:
                    self.state.joined_quantity += quantity
                    self.state.vendor_ids.append(vendor)
                    self.state.current_status = resp.json()["status"]
                else:
                    resp.failure(f"Join failed: {resp.status_code} {extract_error_detail(resp)}")
                    self.interrupt()
                    return

    @task
    def place(self):
        with self.client.put(
            f"/group-orders/{self.state.group_order_id}/place",
            catch_response=True,
            name="PUT /group-orders/{id}/place",
        ) as resp:
            if resp.status_code != 200:
                resp.failure(f"Place failed: {resp.status_code} {extract_error_detail(resp)}")
                self.interrupt()
                return
            body = resp.json()
            self.state.order_numbers = body["order_numbers"]
            if body["failed"]:
                resp.failure(f"Materialization failed for {sorted(body['failed'])}")

    @task
    def deliver(self):
        with self.client.put(
            f"/group-orders/{self.state.group_order_id}/deliver",
            catch_response=True,
            name="PUT /group-orders/{id}/deliver",
        ) as resp:
            if resp.status_code == 200:
                self.state.current_status = "delivered"
            else:
                resp.failure(f"Deliver failed: {resp.status_code} {extract_error_detail(resp)}")

    @task
    def done(self):
        self.interrupt()


class GroupOrderUser(HttpUser):
    """Suppliers and vendors running full group order journeys."""

    tasks = [GroupOrderJourney]
    wait_time = between(0.5, 2.0)


class ContendedJoinUser(HttpUser):
    """Many vendors joining one shared group order at once."""

    wait_time = between(0.05, 0.2)

    def _create_shared(self):
        resp = self.client.post(
            "/group-orders",
            json=group_order_data(target_quantity=1_000_000, max_participants=1_000_000),
            name="POST /group-orders (shared)",
        )
        return resp.json()["group_order_id"] if resp.status_code == 201 else None

    def on_start(self):
        self.group_order_id = SharedGroupOrder.get_or_create(self._create_shared)

    @task(10)
    def join(self):
        if self.group_order_id is None:
            return
        with self.client.post(
            f"/group-orders/{self.group_order_id}/participants",
            json=join_data(max_quantity=3),
            catch_response=True,
            name="POST /group-orders/{id}/participants (contended)",
        ) as resp:
            if resp.status_code == 409:
                resp.failure(f"Lock contention: {extract_error_detail(resp)}")
            elif resp.status_code != 200 and error_code(resp) != "DeadlinePassed":
                resp.failure(f"Join failed: {resp.status_code} {extract_error_detail(resp)}")

    @task(1)
    def read(self):
        if self.group_order_id is None:
            return
        self.client.get(f"/group-orders/{self.group_order_id}", name="GET /group-orders/{id}")

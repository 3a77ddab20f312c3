"""Group Buying Load Testing, Locust entry point.

Discovers all user classes from the scenarios package.
Run specific scenarios with Locust's class selection.

Usage:
    # All scenarios (web UI):
    locust -f loadtests/locustfile.py

    # Many vendors joining one group order:
    locust -f loadtests/locustfile.py ContendedJoinUser

    # Order-number allocation burst, headless (CI mode):
    locust -f loadtests/locustfile.py OrderBurstUser --headless \
           -u 50 -r 10 -t 120s --csv=results/loadtest
"""

import logging
import time

from locust import events

from loadtests.helpers.response import extract_error_detail
from loadtests.helpers.state import SharedGroupOrder

# Import all user classes so Locust discovers them
from loadtests.scenarios.group_orders import ContendedJoinUser, GroupOrderUser  # noqa: F401
from loadtests.scenarios.orders import OrderBurstUser, OrderUser  # noqa: F401

logger = logging.getLogger("loadtest")


@events.request.add_listener
def on_request(request_type, name, response, exception, **_kw):
    """Log error details for every failed request."""
    if exception:
        logger.error("[EXCEPTION] %s %s: %s", request_type, name, exception)
    elif response is not None and response.status_code >= 400:
        detail = extract_error_detail(response)
        logger.error("[%s] %s %s: %s", response.status_code, request_type, name, detail)


@events.test_start.add_listener
def on_test_start(environment, **_kwargs):
    """Log a marker when load test begins."""
    SharedGroupOrder.reset()
    print(f"\n[LOADTEST] Started at {time.strftime('%H:%M:%S')}")
    print(f"[LOADTEST] Target host: {environment.host}")
    print()


@events.test_stop.add_listener
def on_test_stop(environment, **_kwargs):
    """Print the shared group order's final state when the test ends."""
    print(f"\n[LOADTEST] Stopped at {time.strftime('%H:%M:%S')}")
    if SharedGroupOrder.group_order_id and environment.host:
        import requests

        try:
            resp = requests.get(f"{environment.host}/group-orders/{SharedGroupOrder.group_order_id}", timeout=5)
            body = resp.json()
            print(
                f"[LOADTEST] Shared group order: {len(body.get('participants', {}))} participants, "
                f"current_quantity={body.get('current_quantity')}"
            )
        except requests.RequestException as e:
            print(f"[LOADTEST] Could not fetch shared group order: {e}")
    print()

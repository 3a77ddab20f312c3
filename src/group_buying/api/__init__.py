"""Group Buying domain API package."""

from group_buying.api.errors import register_exception_handlers
from group_buying.api.routes import group_order_router, order_router

__all__ = ["group_order_router", "order_router", "register_exception_handlers"]

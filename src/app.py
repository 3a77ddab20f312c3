"""Group Buying FastAPI application.

Serves group-order participation and order fulfillment over HTTP. Every
request under a domain prefix runs inside the group_buying domain context.

Usage:
    uvicorn app:app --app-dir src --host 0.0.0.0 --port 8000 --reload
"""

import os

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from group_buying.domain import group_buying
from group_buying.utils.logging import configure_logging

# ---------------------------------------------------------------------------
# Domain initialization
# ---------------------------------------------------------------------------
# Initialized at module level so uvicorn workers share the registry.
configure_logging(
    level=os.environ.get("GROUP_BUYING_LOG_LEVEL", "INFO"),
    json_output=os.environ.get("GROUP_BUYING_LOG_JSON", "").lower() in ("1", "true", "yes"),
)
group_buying.init()

_DOMAIN_PREFIXES = ("/group-orders", "/orders")

# ---------------------------------------------------------------------------
# FastAPI app
# ---------------------------------------------------------------------------
app = FastAPI(
    title="Group Buying API",
    description="Vendor group orders with bulk-discount pricing and VC order numbers",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def domain_context_middleware(request: Request, call_next):
    """Push the group_buying domain context for domain routes."""
    if request.url.path.startswith(_DOMAIN_PREFIXES):
        with group_buying.domain_context():
            response = await call_next(request)
        return response
    # Health check, docs, openapi.json
    return await call_next(request)


# ---------------------------------------------------------------------------
# Routers
# ---------------------------------------------------------------------------
from group_buying.api import group_order_router, order_router, register_exception_handlers  # noqa: E402

app.include_router(group_order_router)
app.include_router(order_router)
register_exception_handlers(app)


# ---------------------------------------------------------------------------
# Health / root
# ---------------------------------------------------------------------------
@app.get("/health")
async def health():
    return JSONResponse(content={"status": "ok", "domain": group_buying.name})

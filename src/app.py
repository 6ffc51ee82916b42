"""Canteen FastAPI application.

Web server that processes commands synchronously via HTTP. Every request
runs inside the canteen domain context with the caller bound to the log
context.

Usage:
    uvicorn app:app --app-dir src --host 0.0.0.0 --port 8000 --reload
"""

# ---------------------------------------------------------------------------
# Domain initialization
# ---------------------------------------------------------------------------
# The domain is initialized at module level so uvicorn workers share it.
# PROTEAN_ENV controls which config overlay is applied:
#   - "test"       → event_processing = "sync"  (projectors fire in UoW)
#   - "production" → event_processing = "async" (projectors fire via Engine)
import uuid

from canteen.domain import canteen  # noqa: E402
from canteen.utils.logging import bind_request_context, clear_request_context
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

canteen.init()

# ---------------------------------------------------------------------------
# FastAPI app
# ---------------------------------------------------------------------------
app = FastAPI(
    title="Campus Canteen API",
    description="Multi-stall ordering, wallet payment reconciliation and loyalty",
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
    """Push the canteen domain context and bind the caller to every log line."""
    bind_request_context(
        request_id=request.headers.get("x-request-id") or uuid.uuid4().hex,
        actor_id=request.headers.get("x-actor-id"),
        path=request.url.path,
    )
    try:
        with canteen.domain_context():
            response = await call_next(request)
        return response
    finally:
        clear_request_context()


# ---------------------------------------------------------------------------
# Routers
# ---------------------------------------------------------------------------
from canteen.api import (  # noqa: E402
    cart_router,
    loyalty_router,
    maintenance_router,
    menu_item_router,
    order_router,
    register_exception_handlers,
    vendor_router,
    voucher_router,
)

app.include_router(vendor_router)
app.include_router(menu_item_router)
app.include_router(cart_router)
app.include_router(order_router)
app.include_router(loyalty_router)
app.include_router(voucher_router)
app.include_router(maintenance_router)

register_exception_handlers(app)


# ---------------------------------------------------------------------------
# Health / root
# ---------------------------------------------------------------------------
@app.get("/health")
async def health():
    return JSONResponse(content={"status": "ok", "domain": {"name": canteen.name}})

"""Printworks orders FastAPI application.

Processes commands synchronously via HTTP. Each request runs inside the
orders domain context.

Usage:
    uvicorn app:app --app-dir src --host 0.0.0.0 --port 8000 --reload
"""

# ---------------------------------------------------------------------------
# Domain initialization
# ---------------------------------------------------------------------------
# The domain is initialized at module level so uvicorn workers share it.
# PROTEAN_ENV selects the config overlay (memory stores by default,
# PostgreSQL under "production").
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from orders.domain import orders  # noqa: E402
from orders.utils.logging import request_context  # noqa: E402

orders.init()

# ---------------------------------------------------------------------------
# FastAPI app
# ---------------------------------------------------------------------------
app = FastAPI(
    title="Printworks Orders API",
    description="Print-on-demand order lifecycle: placement, review, production, delivery and cancellation",
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
    """Push the orders domain context for each request."""
    with request_context(
        request.method,
        request.url.path,
        actor_id=request.headers.get("x-user-id"),
        actor_role=request.headers.get("x-user-role"),
    ):
        with orders.domain_context():
            response = await call_next(request)
    return response


# ---------------------------------------------------------------------------
# Routers
# ---------------------------------------------------------------------------
from orders.api import (  # noqa: E402
    admin_router,
    customer_router,
    operator_router,
    payment_router,
    register_error_handlers,
)

app.include_router(customer_router)
app.include_router(payment_router)
app.include_router(admin_router)
app.include_router(operator_router)
register_error_handlers(app)


# ---------------------------------------------------------------------------
# Health / root
# ---------------------------------------------------------------------------
@app.get("/health")
async def health():
    return JSONResponse(content={"status": "ok", "domain": orders.name})

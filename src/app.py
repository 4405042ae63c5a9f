"""Batching FastAPI application.

Serves the batch store to the pick, ship and engraving stations. Commands
are processed synchronously; every request under a batching route runs
inside the batching domain context.

Usage:
    uvicorn src.app:app --host 0.0.0.0 --port 8000 --reload
"""

# ---------------------------------------------------------------------------
# Domain initialization
# ---------------------------------------------------------------------------
# The domain is initialized at module level so uvicorn workers share it.
# PROTEAN_ENV selects the config overlay (memory provider in tests).
from batching.domain import batching  # noqa: E402
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from protean.integrations.fastapi import register_exception_handlers

batching.init()

_DOMAIN_PREFIXES = ("/orders", "/cells", "/carts", "/batches", "/chunks")


# ---------------------------------------------------------------------------
# FastAPI app
# ---------------------------------------------------------------------------
app = FastAPI(
    title="Batching API",
    description="Warehouse batch queue, carts and station progress",
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
    """Push the batching domain context for every batching route."""
    if request.url.path.startswith(_DOMAIN_PREFIXES):
        with batching.domain_context():
            response = await call_next(request)
        return response
    # Health check, docs
    return await call_next(request)


register_exception_handlers(app)

# ---------------------------------------------------------------------------
# Routers
# ---------------------------------------------------------------------------
from batching.api import batch_router, cart_router, cell_router, chunk_router, order_router  # noqa: E402

app.include_router(order_router)
app.include_router(cell_router)
app.include_router(cart_router)
app.include_router(batch_router)
app.include_router(chunk_router)


# ---------------------------------------------------------------------------
# Health / root
# ---------------------------------------------------------------------------
@app.get("/health")
async def health():
    return JSONResponse(content={"status": "ok", "domains": {"batching": {"name": batching.name}}})

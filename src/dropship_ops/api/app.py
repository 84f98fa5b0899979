"""FastAPI application."""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from dropship_ops.api.routers import alerts, discovery, tracked
from dropship_ops.config import get_settings
from dropship_ops.services.price_sync import ProductLocks

settings = get_settings()

app = FastAPI(
    title="dropship-ops API",
    description="Dropshipping discovery, pricing and margin tracking API",
    version="0.1.0",
    docs_url="/api/docs" if settings.debug else None,
    redoc_url="/api/redoc" if settings.debug else None,
)

# Shared by every request that re-evaluates a tracked product
app.state.product_locks = ProductLocks()

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=[settings.frontend_url],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(discovery.router, prefix=settings.api_prefix)
app.include_router(tracked.router, prefix=settings.api_prefix)
app.include_router(alerts.router, prefix=settings.api_prefix)


@app.get("/health")
async def health_check() -> dict[str, str]:
    """Health check endpoint."""
    return {"status": "healthy"}

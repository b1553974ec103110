"""Main FastAPI application"""

from fastapi import FastAPI

from storeforge.api.v1 import api_router
from storeforge.core.config import settings
from storeforge.core.events import lifespan
from storeforge.core.exceptions import register_exception_handlers
from storeforge.core.middleware import setup_middleware
from storeforge.utils.helpers import utcnow

# Create FastAPI app
app = FastAPI(
    title=settings.APP_NAME,
    description="Checkout pricing, coupons and abandoned cart recovery for StoreForge storefronts",
    version=settings.APP_VERSION,
    docs_url="/api/docs",
    redoc_url="/api/redoc",
    lifespan=lifespan,
)

register_exception_handlers(app)
setup_middleware(app)

# Include routers
app.include_router(api_router, prefix="/api/v1")


@app.get("/health")
async def health_check():
    """Basic health check"""
    return {
        "status": "healthy",
        "version": settings.APP_VERSION,
        "timestamp": utcnow().isoformat(),
    }

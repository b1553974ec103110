"""API v1 routes aggregation"""

from fastapi import APIRouter

from .cart.router import router as cart_router
from .coupons.router import router as coupons_router
from .abandoned_carts.router import router as abandoned_carts_router
from .cron.router import router as cron_router
from .events.router import router as events_router

# Create v1 router
api_router = APIRouter()

# Include all routers
api_router.include_router(cart_router, prefix="/cart", tags=["Cart"])
api_router.include_router(coupons_router, prefix="/coupons", tags=["Coupons"])
api_router.include_router(abandoned_carts_router, prefix="/abandoned-carts", tags=["Abandoned Carts"])
api_router.include_router(cron_router, prefix="/cron", tags=["Cron"])
api_router.include_router(events_router, prefix="/events", tags=["Events"])

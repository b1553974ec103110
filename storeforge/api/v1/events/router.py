"""Internal events from the order pipeline"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from storeforge.core.database import get_db
from storeforge.core.security import require_cron_secret
from storeforge.schemas.abandoned_cart import OrderCompletedEvent, OrderCompletedResponse
from storeforge.services.order_events import handle_order_completed

router = APIRouter(dependencies=[Depends(require_cron_secret)])


@router.post("/order-completed", response_model=OrderCompletedResponse)
async def order_completed(
    event: OrderCompletedEvent,
    db: AsyncSession = Depends(get_db),
):
    """Record coupon usage and recover the shopper's cart"""
    return await handle_order_completed(db, event)

"""Order completion handling"""

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from storeforge.schemas.abandoned_cart import OrderCompletedEvent, OrderCompletedResponse
from .abandoned_cart import AbandonedCartTracker
from .coupon_service import CouponService

logger = logging.getLogger(__name__)


async def handle_order_completed(db: AsyncSession, event: OrderCompletedEvent) -> OrderCompletedResponse:
    """
    Apply the side effects of a completed order

    Coupon usage is recorded first; if the coupon ran out under a concurrent
    order the exception propagates and nothing is recovered, so the caller
    can retry or reconcile the order.
    """
    coupon_recorded = False
    if event.coupon_id is not None:
        await CouponService(db).record_usage(
            coupon_id=event.coupon_id,
            order_id=event.order_id,
            customer_email=event.customer_email,
            discount_amount=event.discount_amount,
        )
        coupon_recorded = True

    recovered = await AbandonedCartTracker(db).mark_recovered(
        store_id=event.store_id,
        order_id=event.order_id,
        email=event.customer_email,
        customer_id=event.customer_id,
    )

    logger.info(
        "Order %s completed for store %s: coupon recorded=%s, carts recovered=%s",
        event.order_id,
        event.store_id,
        coupon_recorded,
        recovered,
    )
    return OrderCompletedResponse(carts_recovered=recovered, coupon_recorded=coupon_recorded)

"""Coupon endpoints"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from storeforge.core.database import get_db
from storeforge.schemas.coupon import ApplyCouponRequest, ApplyCouponResponse
from storeforge.services.coupon_service import CouponService
from storeforge.services.pricing import ZERO, round_money
from storeforge.services.store_service import get_active_store

router = APIRouter()


@router.post("/apply", response_model=ApplyCouponResponse, response_model_exclude_none=True)
async def apply_coupon(
    request: ApplyCouponRequest,
    db: AsyncSession = Depends(get_db),
):
    """
    Preview a coupon against a subtotal

    An unusable coupon is still answered with 200; the refusal reason is in
    the body so the storefront can render it inline.
    """
    store = await get_active_store(db, request.store_id)
    result = await CouponService(db).validate_coupon(
        store_id=store.id,
        code=request.coupon_code,
        subtotal=request.subtotal,
        customer_email=request.customer_email,
    )

    if not result.valid:
        return ApplyCouponResponse(
            valid=False,
            coupon=result.coupon,
            message=result.message,
            error=result.error,
        )

    return ApplyCouponResponse(
        valid=True,
        coupon=result.coupon,
        discount_amount=result.discount_amount,
        is_free_shipping=result.is_free_shipping,
        final_subtotal=max(round_money(request.subtotal) - result.discount_amount, ZERO),
        message=result.message,
    )

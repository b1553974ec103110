"""Checkout cart endpoints: validation, stock checks and cart tracking"""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession
import logging

from storeforge.core.config import settings
from storeforge.core.database import get_db
from storeforge.core.exceptions import CartNotFoundException, NoValidItemsException
from storeforge.schemas.cart import (
    CartValidationRequest,
    CartValidationResponse,
    InventoryCheckRequest,
    InventoryCheckResponse,
    RecoveredCartResponse,
    SaveCartRequest,
    SaveCartResponse,
)
from storeforge.schemas.settings import resolve_store_settings
from storeforge.services.abandoned_cart import AbandonedCartTracker
from storeforge.services.cart_validation import CartItemValidator
from storeforge.services.coupon_service import CouponService
from storeforge.services.inventory import DatabaseInventoryProvider, check_inventory
from storeforge.services.pricing import calculate_cart_total, calculate_subtotal
from storeforge.services.store_service import get_active_store

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/validate", response_model=CartValidationResponse)
async def validate_cart(
    request: CartValidationRequest,
    db: AsyncSession = Depends(get_db),
):
    """
    Re-validate a cart and compute authoritative totals

    Partially valid carts succeed with the rejected lines in `errors`;
    a cart with no valid line is refused.
    """
    store = await get_active_store(db, request.store_id)
    store_settings = resolve_store_settings(store.settings)

    validator = CartItemValidator(DatabaseInventoryProvider(db))
    items, item_errors = await validator.validate(store.id, request.items)
    if not items:
        raise NoValidItemsException(errors=[error.model_dump(mode="json") for error in item_errors])

    errors = [error.model_dump(mode="json") for error in item_errors]

    coupon_result = None
    if request.coupon_code:
        coupon_result = await CouponService(db).validate_coupon(
            store_id=store.id,
            code=request.coupon_code,
            subtotal=calculate_subtotal(items),
            customer_email=request.customer_email,
        )
        if not coupon_result.valid:
            errors.append({
                "code": f"coupon_{coupon_result.error.value}",
                "message": coupon_result.message,
            })

    totals = calculate_cart_total(
        items,
        store_settings,
        payment_method=request.payment_method,
        coupon_result=coupon_result,
        destination=request.shipping_address,
    )

    return CartValidationResponse(
        success=True,
        valid=not errors,
        items=items,
        totals=totals,
        coupon=coupon_result,
        errors=errors or None,
    )


@router.post("/check-inventory", response_model=InventoryCheckResponse)
async def check_cart_inventory(
    request: InventoryCheckRequest,
    db: AsyncSession = Depends(get_db),
):
    """Stock-only availability check"""
    return await check_inventory(DatabaseInventoryProvider(db), request.items)


@router.post("/save", response_model=SaveCartResponse)
async def save_cart(
    request: SaveCartRequest,
    db: AsyncSession = Depends(get_db),
):
    """Track the shopper's cart for abandoned-cart recovery"""
    if not request.items:
        return SaveCartResponse(success=True, message="Cart is empty, nothing to track")

    store = await get_active_store(db, request.storeId)

    # Snapshot is priced from the catalog, never from the client
    validator = CartItemValidator(DatabaseInventoryProvider(db))
    items, _ = await validator.validate(store.id, request.items)

    tracker = AbandonedCartTracker(
        db,
        reset_sequence_on_activity=settings.ABANDONED_CART_RESET_SEQUENCE_ON_ACTIVITY,
        max_age_days=settings.ABANDONED_CART_MAX_AGE_DAYS,
    )
    cart = await tracker.save_cart(
        store_id=store.id,
        items=items,
        email=request.email,
        phone=request.phone,
        customer_id=request.customerId,
    )
    if cart is None:
        return SaveCartResponse(success=True, message="Nothing to track")

    return SaveCartResponse(success=True, cartId=cart.id)


@router.get("/recover", response_model=RecoveredCartResponse)
async def recover_cart(
    token: str = Query(..., min_length=1, max_length=64),
    db: AsyncSession = Depends(get_db),
):
    """Cart snapshot behind a recovery email link"""
    cart = await AbandonedCartTracker(db).get_by_token(token)
    if cart is None:
        raise CartNotFoundException()

    return RecoveredCartResponse(
        cart_id=cart.id,
        store_id=cart.store_id,
        items=cart.items or [],
        subtotal=cart.subtotal,
        item_count=cart.item_count,
    )

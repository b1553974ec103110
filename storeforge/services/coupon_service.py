"""
Coupon service for evaluating and redeeming discount codes
"""

import logging
from datetime import datetime
from decimal import Decimal
from typing import Optional
import uuid

from sqlalchemy import select, update, func, or_
from sqlalchemy.ext.asyncio import AsyncSession

from storeforge.models.coupon import Coupon, CouponUsage, DiscountType, normalize_coupon_code
from storeforge.core.exceptions import CouponUsageLimitException
from storeforge.schemas.coupon import CouponError, CouponResult, CouponSummary
from storeforge.utils.helpers import format_currency, normalize_email, utcnow
from .pricing import round_money, ZERO

logger = logging.getLogger(__name__)


def _refuse(error: CouponError, message: str, coupon: Optional[Coupon] = None) -> CouponResult:
    summary = CouponSummary.model_validate(coupon) if coupon is not None else None
    return CouponResult(valid=False, coupon=summary, error=error, message=message)


def calculate_discount(coupon: Coupon, subtotal: Decimal) -> Decimal:
    """Discount a coupon grants on a subtotal, never more than the subtotal"""
    value = Decimal(str(coupon.discount_value or 0))

    if coupon.discount_type == DiscountType.PERCENTAGE:
        discount = round_money(subtotal * value / 100)
        if coupon.max_discount_amount is not None:
            discount = min(discount, round_money(coupon.max_discount_amount))
    elif coupon.discount_type == DiscountType.FIXED:
        discount = round_money(value)
    else:
        discount = ZERO

    return max(ZERO, min(discount, subtotal))


def evaluate_coupon(
    coupon: Optional[Coupon],
    subtotal: Decimal,
    now: datetime,
    customer_usage_count: int = 0,
) -> CouponResult:
    """
    Decide whether a coupon applies to a subtotal

    Checks run in a fixed order and the first failure is reported.
    The coupon is only read, never modified.

    Args:
        coupon: Coupon looked up by (store, code), or None if unknown
        subtotal: Rounded cart subtotal
        now: Evaluation time (naive UTC)
        customer_usage_count: Prior redemptions by this customer

    Returns:
        CouponResult with the discount or the refusal reason
    """
    if coupon is None:
        return _refuse(CouponError.NOT_FOUND, "Invalid coupon code")

    if not coupon.active:
        return _refuse(CouponError.INACTIVE, "This coupon is no longer active", coupon)

    if coupon.starts_at is not None and now < coupon.starts_at:
        return _refuse(CouponError.NOT_STARTED, "This coupon is not yet valid", coupon)

    if coupon.expires_at is not None and now > coupon.expires_at:
        return _refuse(CouponError.EXPIRED, "This coupon has expired", coupon)

    min_order_value = Decimal(str(coupon.min_order_value or 0))
    if subtotal < min_order_value:
        return _refuse(
            CouponError.BELOW_MINIMUM,
            f"Minimum order value of {format_currency(min_order_value)} required",
            coupon,
        )

    if coupon.usage_limit is not None and (coupon.usage_count or 0) >= coupon.usage_limit:
        return _refuse(CouponError.USAGE_LIMIT_REACHED, "This coupon has reached its usage limit", coupon)

    if coupon.per_customer_limit is not None and customer_usage_count >= coupon.per_customer_limit:
        return _refuse(
            CouponError.PER_CUSTOMER_LIMIT_REACHED,
            "You have already used this coupon the maximum number of times",
            coupon,
        )

    summary = CouponSummary.model_validate(coupon)

    if coupon.discount_type == DiscountType.FREE_SHIPPING:
        return CouponResult(
            valid=True,
            coupon=summary,
            discount_amount=ZERO,
            is_free_shipping=True,
            message="Free shipping applied!",
        )

    discount = calculate_discount(coupon, subtotal)
    return CouponResult(
        valid=True,
        coupon=summary,
        discount_amount=discount,
        message=f"Coupon applied! You saved {format_currency(discount)}",
    )


class CouponService:
    """Coupon lookups and atomic redemption"""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_coupon(self, store_id: uuid.UUID, code: str) -> Optional[Coupon]:
        normalized = normalize_coupon_code(code)
        if not normalized:
            return None
        result = await self.db.execute(
            select(Coupon).where(
                Coupon.store_id == store_id,
                func.upper(Coupon.code) == normalized,
            )
        )
        return result.scalar_one_or_none()

    async def count_customer_usage(self, coupon_id: uuid.UUID, customer_email: str) -> int:
        result = await self.db.execute(
            select(func.count(CouponUsage.id)).where(
                CouponUsage.coupon_id == coupon_id,
                func.lower(CouponUsage.customer_email) == customer_email,
            )
        )
        return result.scalar_one()

    async def validate_coupon(
        self,
        store_id: uuid.UUID,
        code: str,
        subtotal: Decimal,
        customer_email: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> CouponResult:
        """
        Look up a code and evaluate it against a subtotal

        The per-customer limit is only checked when an email is supplied.
        """
        coupon = await self.get_coupon(store_id, code)

        usage_count = 0
        email = normalize_email(customer_email)
        if coupon is not None and email and coupon.per_customer_limit is not None:
            usage_count = await self.count_customer_usage(coupon.id, email)

        return evaluate_coupon(coupon, round_money(subtotal), now or utcnow(), usage_count)

    async def record_usage(
        self,
        coupon_id: uuid.UUID,
        order_id: uuid.UUID,
        customer_email: Optional[str] = None,
        discount_amount: Decimal = ZERO,
    ) -> CouponUsage:
        """
        Redeem a coupon for a completed order

        Replaying an order that was already recorded returns its usage row
        without counting it again. The usage counter is incremented with a conditional UPDATE so that
        concurrent orders can never push a limited coupon past its limit.

        Raises:
            CouponUsageLimitException: Coupon missing or limit already reached
        """
        existing = await self.db.execute(
            select(CouponUsage).where(
                CouponUsage.coupon_id == coupon_id,
                CouponUsage.order_id == order_id,
            )
        )
        usage = existing.scalar_one_or_none()
        if usage is not None:
            logger.info("Coupon %s usage for order %s already recorded", coupon_id, order_id)
            return usage

        result = await self.db.execute(
            update(Coupon)
            .where(
                Coupon.id == coupon_id,
                or_(Coupon.usage_limit.is_(None), Coupon.usage_count < Coupon.usage_limit),
            )
            .values(usage_count=Coupon.usage_count + 1)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            logger.warning("Coupon %s usage limit reached, order %s not recorded", coupon_id, order_id)
            raise CouponUsageLimitException()

        usage = CouponUsage(
            coupon_id=coupon_id,
            order_id=order_id,
            customer_email=normalize_email(customer_email),
            discount_amount=round_money(discount_amount),
        )
        self.db.add(usage)
        await self.db.flush()

        logger.info("Recorded coupon %s usage for order %s", coupon_id, order_id)
        return usage

"""
Coupon schemas
"""

from pydantic import BaseModel, EmailStr, Field
from typing import Optional
from decimal import Decimal
from enum import Enum
import uuid

from .base import BaseSchema, Money
from storeforge.models.coupon import DiscountType


class CouponError(str, Enum):
    """Closed set of reasons a coupon can be refused"""
    NOT_FOUND = "not_found"
    INACTIVE = "inactive"
    NOT_STARTED = "not_started"
    EXPIRED = "expired"
    BELOW_MINIMUM = "below_minimum"
    USAGE_LIMIT_REACHED = "usage_limit_reached"
    PER_CUSTOMER_LIMIT_REACHED = "per_customer_limit_reached"


class CouponSummary(BaseSchema):
    id: uuid.UUID
    code: str
    discount_type: DiscountType
    discount_value: Money


class CouponResult(BaseModel):
    """Outcome of evaluating one code against one subtotal"""
    valid: bool
    coupon: Optional[CouponSummary] = None
    discount_amount: Money = Decimal("0")
    is_free_shipping: bool = False
    error: Optional[CouponError] = None
    message: str = ""


class ApplyCouponRequest(BaseModel):
    store_id: uuid.UUID
    coupon_code: str = Field(..., min_length=1, max_length=50)
    customer_email: Optional[EmailStr] = None
    subtotal: Decimal = Field(..., ge=0)


class ApplyCouponResponse(BaseModel):
    valid: bool
    coupon: Optional[CouponSummary] = None
    discount_amount: Optional[Money] = None
    is_free_shipping: Optional[bool] = None
    final_subtotal: Optional[Money] = None
    message: str
    error: Optional[CouponError] = None

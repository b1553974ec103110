"""
Cart schemas for request/response validation
"""

from pydantic import BaseModel, EmailStr, Field
from typing import Optional, List, Dict, Any
from decimal import Decimal
from enum import Enum
import uuid

from .base import Money
from .coupon import CouponResult


class PaymentMethod(str, Enum):
    COD = "cod"
    RAZORPAY = "razorpay"
    STRIPE = "stripe"
    UPI = "upi"


class CartItemRequest(BaseModel):
    """Client-supplied cart line; any price/title it carries is ignored"""
    product_id: uuid.UUID
    variant_id: Optional[uuid.UUID] = None
    quantity: int = Field(..., gt=0)

    class Config:
        extra = "ignore"


class ShippingDestination(BaseModel):
    state: Optional[str] = None
    pincode: Optional[str] = None


class CartValidationRequest(BaseModel):
    store_id: uuid.UUID
    items: List[CartItemRequest] = Field(..., min_length=1)
    payment_method: Optional[PaymentMethod] = None
    coupon_code: Optional[str] = Field(None, max_length=50)
    customer_email: Optional[EmailStr] = None
    shipping_address: Optional[ShippingDestination] = None


class ValidatedCartItem(BaseModel):
    product_id: uuid.UUID
    variant_id: Optional[uuid.UUID] = None
    title: str
    variant_title: Optional[str] = None
    unit_price: Money
    quantity: int
    line_total: Money
    available: bool = True


class CartItemError(BaseModel):
    product_id: uuid.UUID
    variant_id: Optional[uuid.UUID] = None
    code: str
    message: str


class CartTotals(BaseModel):
    subtotal: Money = Decimal("0")
    shipping: Money = Decimal("0")
    cod_fee: Money = Decimal("0")
    tax: Money = Decimal("0")
    discount: Money = Decimal("0")
    total: Money = Decimal("0")


class CartValidationResponse(BaseModel):
    success: bool
    valid: bool
    items: List[ValidatedCartItem]
    totals: CartTotals
    coupon: Optional[CouponResult] = None
    errors: Optional[List[Any]] = None


class InventoryCheckItem(BaseModel):
    product_id: uuid.UUID
    variant_id: Optional[uuid.UUID] = None
    quantity: int = Field(..., gt=0)


class InventoryCheckRequest(BaseModel):
    items: List[InventoryCheckItem] = Field(..., min_length=1)


class InventoryItemStatus(BaseModel):
    product_id: uuid.UUID
    variant_id: Optional[uuid.UUID] = None
    available_quantity: int
    requested_quantity: int
    in_stock: bool


class InventoryCheckResponse(BaseModel):
    success: bool = True
    available: bool
    items: List[InventoryItemStatus]


class SaveCartRequest(BaseModel):
    """Storefront heartbeat for abandoned-cart tracking (camelCase store id as sent by the widget)"""
    storeId: uuid.UUID
    customerId: Optional[uuid.UUID] = None
    email: Optional[EmailStr] = None
    phone: Optional[str] = Field(None, max_length=20)
    items: List[CartItemRequest] = Field(default_factory=list)


class SaveCartResponse(BaseModel):
    success: bool
    cartId: Optional[uuid.UUID] = None
    message: Optional[str] = None


class RecoveredCartResponse(BaseModel):
    success: bool = True
    cart_id: uuid.UUID
    store_id: uuid.UUID
    items: List[Dict[str, Any]]
    subtotal: Money
    item_count: int

"""
Abandoned cart recovery schemas
"""

from pydantic import BaseModel, EmailStr, Field
from typing import Optional, List
from decimal import Decimal
import uuid


class SendRecoveryRequest(BaseModel):
    cart_id: uuid.UUID


class SendRecoveryResponse(BaseModel):
    success: bool
    sequence_number: int
    message: str


class SweepResult(BaseModel):
    """Counters reported by one run of the abandoned cart sweep"""
    storesChecked: int = 0
    cartsChecked: int = 0
    emailsSent: int = 0
    expired: int = 0
    errors: List[str] = Field(default_factory=list)


class OrderCompletedEvent(BaseModel):
    store_id: uuid.UUID
    order_id: uuid.UUID
    customer_email: Optional[EmailStr] = None
    customer_id: Optional[uuid.UUID] = None
    coupon_id: Optional[uuid.UUID] = None
    discount_amount: Decimal = Field(Decimal("0"), ge=0)


class OrderCompletedResponse(BaseModel):
    success: bool = True
    carts_recovered: int
    coupon_recorded: bool

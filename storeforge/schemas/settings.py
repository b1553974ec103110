"""
Typed store settings

Stores keep their checkout, shipping and payment configuration as loosely
structured JSON. Everything here resolves those blobs once, at the request
boundary, into models whose defaults are declared in a single place. Pricing
and recovery code only ever see the resolved models.
"""

from decimal import Decimal
from typing import Any, Dict, List, Literal, Optional
import logging

from pydantic import BaseModel, Field, ValidationError

logger = logging.getLogger(__name__)


class ShippingZone(BaseModel):
    """Per-region flat-rate override of national shipping"""

    id: str
    name: str
    type: Literal["states", "pincodes", "default"] = "states"
    states: List[str] = Field(default_factory=list)
    pincodes: List[str] = Field(default_factory=list)
    flat_rate: Decimal = Field(..., ge=0)
    free_shipping_threshold: Optional[Decimal] = Field(None, ge=0)
    cod_available: Optional[bool] = None
    cod_fee: Optional[Decimal] = Field(None, ge=0)
    estimated_days: Optional[int] = None
    is_default: bool = False

    @property
    def is_fallback(self) -> bool:
        return self.is_default or self.type == "default"


class StoreSettings(BaseModel):
    """Resolved checkout/shipping/payment settings of one store"""

    # Checkout
    guest_checkout_enabled: bool = True
    phone_required: bool = True

    # Shipping
    free_shipping_threshold: Decimal = Decimal("999")
    flat_rate_national: Decimal = Decimal("49")
    cod_enabled: bool = True
    cod_fee: Decimal = Decimal("20")
    zones: Optional[List[ShippingZone]] = None

    # Payments
    razorpay_enabled: bool = True
    stripe_enabled: bool = False
    upi_enabled: bool = True

    class Config:
        frozen = True


class RecoveryStep(BaseModel):
    delay_hours: float = Field(..., ge=0)
    subject: Optional[str] = None


def _default_sequence() -> List[RecoveryStep]:
    return [
        RecoveryStep(delay_hours=1, subject="You left something behind!"),
        RecoveryStep(delay_hours=24, subject="Your cart is waiting for you"),
        RecoveryStep(delay_hours=72, subject="Last chance to complete your order"),
    ]


class CartRecoverySettings(BaseModel):
    """Resolved abandoned-cart reminder settings of one store"""

    enabled: bool = True
    email_sequence: List[RecoveryStep] = Field(default_factory=_default_sequence, min_length=1, max_length=3)
    discount_code: Optional[str] = None
    discount_percentage: Optional[Decimal] = Field(None, gt=0, le=100)

    class Config:
        frozen = True


def _present(section: Optional[Dict[str, Any]], keys: List[str]) -> Dict[str, Any]:
    """Keep only keys that are set; missing and null values take model defaults"""
    if not isinstance(section, dict):
        return {}
    return {key: section[key] for key in keys if section.get(key) is not None}


def _resolve_zones(shipping: Dict[str, Any]) -> Optional[List[ShippingZone]]:
    config = shipping.get("config") if isinstance(shipping, dict) else None
    if not isinstance(config, dict) or not config.get("use_zones"):
        return None

    zones = []
    for raw_zone in config.get("zones") or []:
        try:
            zones.append(ShippingZone.model_validate(raw_zone))
        except ValidationError as e:
            logger.warning("Skipping malformed shipping zone %r: %s", raw_zone, e)
    return zones or None


def resolve_store_settings(raw: Optional[Dict[str, Any]]) -> StoreSettings:
    """Build StoreSettings from the stores.settings JSON column"""
    raw = raw if isinstance(raw, dict) else {}
    checkout = raw.get("checkout") or {}
    shipping = raw.get("shipping") or {}
    payments = raw.get("payments") or {}

    sections = [
        ("checkout", _present(checkout, ["guest_checkout_enabled", "phone_required"])),
        ("shipping", _present(shipping, ["free_shipping_threshold", "flat_rate_national", "cod_enabled", "cod_fee"])),
        ("payments", _present(payments, ["razorpay_enabled", "stripe_enabled", "upi_enabled"])),
    ]

    # A malformed section falls back to its defaults without affecting the others
    values: Dict[str, Any] = {}
    for name, section in sections:
        try:
            StoreSettings(**section)
        except ValidationError as e:
            logger.warning("Invalid %s settings %r, using defaults: %s", name, section, e)
            continue
        values.update(section)
    values["zones"] = _resolve_zones(shipping)

    return StoreSettings(**values)


def resolve_recovery_settings(raw: Optional[Dict[str, Any]]) -> CartRecoverySettings:
    """Build CartRecoverySettings from the stores.cart_recovery_settings JSON column"""
    values = _present(raw, ["enabled", "email_sequence", "discount_code", "discount_percentage"])
    if not values.get("email_sequence"):
        values.pop("email_sequence", None)
    try:
        return CartRecoverySettings(**values)
    except ValidationError as e:
        logger.warning("Invalid cart recovery settings %r, using defaults: %s", raw, e)
        return CartRecoverySettings(enabled=bool(values.get("enabled", True)))

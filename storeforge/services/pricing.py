"""
Cart pricing

Totals are computed in a fixed order: subtotal, shipping (threshold, zone or
free-shipping coupon), COD fee, coupon discount, total. Every computed amount
is rounded to whole currency units with ROUND_HALF_UP before it feeds the next
step, so the same inputs always give the same totals.
"""

from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, Optional, Sequence, Union

from storeforge.schemas.cart import CartTotals, PaymentMethod, ShippingDestination, ValidatedCartItem
from storeforge.schemas.coupon import CouponResult
from storeforge.schemas.settings import ShippingZone, StoreSettings
from .shipping_zones import find_matching_zone

ZERO = Decimal("0")
WHOLE_UNIT = Decimal("1")

Number = Union[Decimal, int, float, str]


def round_money(value: Number) -> Decimal:
    """Round to whole currency units, halves away from zero"""
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(WHOLE_UNIT, rounding=ROUND_HALF_UP)


def calculate_line_total(unit_price: Number, quantity: int) -> Decimal:
    return round_money(Decimal(str(unit_price)) * quantity)


def calculate_subtotal(items: Iterable[ValidatedCartItem]) -> Decimal:
    """Sum of the (already rounded) line totals"""
    return sum((item.line_total for item in items), ZERO)


@dataclass(frozen=True)
class ShippingQuote:
    shipping: Decimal
    cod_fee: Decimal
    zone: Optional[ShippingZone] = None

    @property
    def is_free_shipping(self) -> bool:
        return self.shipping == ZERO


def _resolve_zone(
    settings: StoreSettings,
    destination: Optional[ShippingDestination],
) -> Optional[ShippingZone]:
    if not settings.zones or destination is None:
        return None
    return find_matching_zone(destination.state, destination.pincode, settings.zones)


def calculate_shipping(
    subtotal: Decimal,
    settings: StoreSettings,
    payment_method: Optional[Union[PaymentMethod, str]] = None,
    destination: Optional[ShippingDestination] = None,
    free_shipping: bool = False,
) -> ShippingQuote:
    """
    Shipping and COD fee for a subtotal

    Args:
        subtotal: Rounded cart subtotal
        settings: Resolved store settings
        payment_method: Selected payment method, if any
        destination: Shipping address used for zone lookup
        free_shipping: Set by a free-shipping coupon; forces shipping to zero

    Returns:
        ShippingQuote with shipping and COD fee kept separate
    """
    zone = _resolve_zone(settings, destination)

    threshold = settings.free_shipping_threshold
    rate = settings.flat_rate_national
    cod_available = settings.cod_enabled
    cod_fee = settings.cod_fee

    if zone is not None:
        rate = zone.flat_rate
        if zone.free_shipping_threshold is not None:
            threshold = zone.free_shipping_threshold
        if zone.cod_available is not None:
            cod_available = zone.cod_available
        if zone.cod_fee is not None:
            cod_fee = zone.cod_fee

    if free_shipping or subtotal >= threshold:
        shipping = ZERO
    else:
        shipping = round_money(rate)

    if payment_method == PaymentMethod.COD and cod_available:
        cod = round_money(cod_fee)
    else:
        cod = ZERO

    return ShippingQuote(shipping=shipping, cod_fee=cod, zone=zone)


def calculate_cart_total(
    items: Sequence[ValidatedCartItem],
    settings: StoreSettings,
    payment_method: Optional[Union[PaymentMethod, str]] = None,
    coupon_result: Optional[CouponResult] = None,
    destination: Optional[ShippingDestination] = None,
) -> CartTotals:
    """Compute final totals for validated items"""
    subtotal = calculate_subtotal(items)
    coupon_applies = coupon_result is not None and coupon_result.valid

    if items:
        quote = calculate_shipping(
            subtotal,
            settings,
            payment_method=payment_method,
            destination=destination,
            free_shipping=coupon_applies and coupon_result.is_free_shipping,
        )
        shipping, cod_fee = quote.shipping, quote.cod_fee
    else:
        shipping, cod_fee = ZERO, ZERO

    # Only the subtotal is discountable
    discount = ZERO
    if coupon_applies:
        discount = min(round_money(coupon_result.discount_amount), subtotal)

    total = max(ZERO, subtotal - discount + shipping + cod_fee)

    return CartTotals(
        subtotal=subtotal,
        shipping=shipping,
        cod_fee=cod_fee,
        tax=ZERO,
        discount=discount,
        total=total,
    )


def qualifies_for_free_shipping(subtotal: Decimal, settings: StoreSettings) -> bool:
    return subtotal >= settings.free_shipping_threshold


def amount_to_free_shipping(subtotal: Decimal, settings: StoreSettings) -> Decimal:
    """How much more the shopper must add to reach the free-shipping threshold"""
    return max(ZERO, round_money(settings.free_shipping_threshold - subtotal))

"""Models package initialization"""

from .base import Base
from .store import Store, StoreStatus
from .product import Product, ProductVariant, ProductStatus, VariantStatus
from .coupon import Coupon, CouponUsage, DiscountType
from .abandoned_cart import AbandonedCart, CartRecoveryEmail, RecoveryStatus, MAX_RECOVERY_EMAILS

__all__ = [
    "Base",
    "Store",
    "StoreStatus",
    "Product",
    "ProductVariant",
    "ProductStatus",
    "VariantStatus",
    "Coupon",
    "CouponUsage",
    "DiscountType",
    "AbandonedCart",
    "CartRecoveryEmail",
    "RecoveryStatus",
    "MAX_RECOVERY_EMAILS",
]

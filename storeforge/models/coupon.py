"""
Coupon and discount models
"""

from sqlalchemy import Column, String, Integer, Numeric, Boolean, Enum, ForeignKey, Index, CheckConstraint, UniqueConstraint, Text, DateTime, Uuid
from sqlalchemy.orm import relationship, validates
import enum

from .base import Base, TimestampedModel, UUIDModel


class DiscountType(str, enum.Enum):
    PERCENTAGE = "percentage"
    FIXED = "fixed"
    FREE_SHIPPING = "free_shipping"


class Coupon(Base, TimestampedModel, UUIDModel):
    """Discount coupons and promo codes, scoped to a store"""

    __tablename__ = "coupons"

    store_id = Column(Uuid, ForeignKey("stores.id", ondelete="CASCADE"), nullable=False)
    code = Column(String(50), nullable=False)
    description = Column(Text, nullable=True)

    # Discount details
    discount_type = Column(Enum(DiscountType), nullable=False)
    discount_value = Column(Numeric(10, 2), nullable=False, default=0)

    # Conditions
    min_order_value = Column(Numeric(10, 2), nullable=False, default=0)
    max_discount_amount = Column(Numeric(10, 2), nullable=True)

    # Usage limits
    usage_limit = Column(Integer, nullable=True)
    usage_count = Column(Integer, nullable=False, default=0)
    per_customer_limit = Column(Integer, nullable=True)

    # Validity
    starts_at = Column(DateTime, nullable=True)
    expires_at = Column(DateTime, nullable=True)

    active = Column(Boolean, nullable=False, default=True)

    usages = relationship("CouponUsage", back_populates="coupon")

    __table_args__ = (
        UniqueConstraint("store_id", "code", name="uq_coupon_store_code"),
        CheckConstraint("discount_value >= 0", name="check_discount_non_negative"),
        # Enum columns persist member names
        CheckConstraint(
            "discount_type != 'PERCENTAGE' OR (discount_value > 0 AND discount_value <= 100)",
            name="check_percentage_range",
        ),
        CheckConstraint(
            "usage_limit IS NULL OR usage_count <= usage_limit",
            name="check_usage_within_limit",
        ),
        Index("idx_coupons_store_active", "store_id", "active"),
    )

    @validates("code")
    def normalize_code(self, key, value):
        return normalize_coupon_code(value)


class CouponUsage(Base, TimestampedModel, UUIDModel):
    """One redemption of a coupon by an order"""

    __tablename__ = "coupon_usage"

    coupon_id = Column(Uuid, ForeignKey("coupons.id", ondelete="CASCADE"), nullable=False)
    order_id = Column(Uuid, nullable=False)
    customer_email = Column(String(255), nullable=True)
    discount_amount = Column(Numeric(10, 2), nullable=False, default=0)

    coupon = relationship("Coupon", back_populates="usages")

    __table_args__ = (
        UniqueConstraint("coupon_id", "order_id", name="uq_coupon_usage_order"),
        Index("idx_coupon_usage_coupon_email", "coupon_id", "customer_email"),
    )


def normalize_coupon_code(code: str) -> str:
    """Codes are matched trimmed and case-insensitively"""
    return (code or "").strip().upper()

"""
Product and variant models
Only the fields the checkout engine reads are mapped here
"""

from sqlalchemy import Column, String, Integer, Numeric, Boolean, Enum, ForeignKey, JSON, Uuid, Index, CheckConstraint
from sqlalchemy.orm import relationship
import enum

from .base import Base, TimestampedModel, UUIDModel


class ProductStatus(str, enum.Enum):
    DRAFT = "draft"
    PUBLISHED = "published"
    ARCHIVED = "archived"


class VariantStatus(str, enum.Enum):
    ACTIVE = "active"
    DISABLED = "disabled"


class Product(Base, TimestampedModel, UUIDModel):
    """Catalog product"""

    __tablename__ = "products"

    store_id = Column(Uuid, ForeignKey("stores.id", ondelete="CASCADE"), nullable=False)
    title = Column(String(300), nullable=False)
    sku = Column(String(100), nullable=True)

    # Pricing
    price = Column(Numeric(12, 2), nullable=False)
    compare_at_price = Column(Numeric(12, 2), nullable=True)

    # Inventory
    quantity = Column(Integer, nullable=False, default=0)
    track_quantity = Column(Boolean, nullable=False, default=True)

    status = Column(Enum(ProductStatus), default=ProductStatus.DRAFT, nullable=False)
    has_variants = Column(Boolean, nullable=False, default=False)

    variants = relationship("ProductVariant", back_populates="product")

    __table_args__ = (
        CheckConstraint("price >= 0", name="check_product_price_non_negative"),
        Index("idx_products_store_status", "store_id", "status"),
    )


class ProductVariant(Base, TimestampedModel, UUIDModel):
    """Purchasable option of a product (size, colour, ...)"""

    __tablename__ = "product_variants"

    product_id = Column(Uuid, ForeignKey("products.id", ondelete="CASCADE"), nullable=False, index=True)
    title = Column(String(300), nullable=True)
    attributes = Column(JSON, nullable=False, default=dict)
    sku = Column(String(100), nullable=True)

    # Null price falls back to the product price
    price = Column(Numeric(12, 2), nullable=True)
    quantity = Column(Integer, nullable=False, default=0)
    track_quantity = Column(Boolean, nullable=False, default=True)

    status = Column(Enum(VariantStatus), default=VariantStatus.ACTIVE, nullable=False)

    product = relationship("Product", back_populates="variants")

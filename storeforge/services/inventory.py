"""
Inventory snapshots
Read-only view of products and variants as the checkout engine sees them
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, Iterable, List, Optional, Protocol
import uuid

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from storeforge.models import Product, ProductStatus, ProductVariant, VariantStatus
from storeforge.schemas.cart import InventoryCheckItem, InventoryCheckResponse, InventoryItemStatus

# Reported for items whose stock is not tracked
UNTRACKED_AVAILABLE_QUANTITY = 9999


@dataclass(frozen=True)
class VariantSnapshot:
    id: uuid.UUID
    product_id: uuid.UUID
    title: Optional[str]
    price: Optional[Decimal]
    quantity: int
    track_quantity: bool
    active: bool

    @property
    def available_quantity(self) -> int:
        return self.quantity if self.track_quantity else UNTRACKED_AVAILABLE_QUANTITY


@dataclass(frozen=True)
class ProductSnapshot:
    id: uuid.UUID
    store_id: uuid.UUID
    title: str
    price: Decimal
    quantity: int
    track_quantity: bool
    published: bool
    has_variants: bool

    @property
    def available_quantity(self) -> int:
        return self.quantity if self.track_quantity else UNTRACKED_AVAILABLE_QUANTITY


class InventorySnapshotProvider(Protocol):
    """Source of product/variant snapshots for validation"""

    async def get_products(self, product_ids: Iterable[uuid.UUID]) -> Dict[uuid.UUID, ProductSnapshot]:
        ...

    async def get_variants(self, variant_ids: Iterable[uuid.UUID]) -> Dict[uuid.UUID, VariantSnapshot]:
        ...


def product_snapshot(product: Product) -> ProductSnapshot:
    return ProductSnapshot(
        id=product.id,
        store_id=product.store_id,
        title=product.title,
        price=Decimal(str(product.price)),
        quantity=product.quantity or 0,
        track_quantity=bool(product.track_quantity),
        published=product.status == ProductStatus.PUBLISHED,
        has_variants=bool(product.has_variants),
    )


def variant_snapshot(variant: ProductVariant) -> VariantSnapshot:
    return VariantSnapshot(
        id=variant.id,
        product_id=variant.product_id,
        title=variant.title,
        price=Decimal(str(variant.price)) if variant.price is not None else None,
        quantity=variant.quantity or 0,
        track_quantity=bool(variant.track_quantity),
        active=variant.status == VariantStatus.ACTIVE,
    )


class DatabaseInventoryProvider:
    """Snapshot provider backed by the products tables"""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_products(self, product_ids: Iterable[uuid.UUID]) -> Dict[uuid.UUID, ProductSnapshot]:
        ids = set(product_ids)
        if not ids:
            return {}
        result = await self.db.execute(select(Product).where(Product.id.in_(ids)))
        return {product.id: product_snapshot(product) for product in result.scalars().all()}

    async def get_variants(self, variant_ids: Iterable[uuid.UUID]) -> Dict[uuid.UUID, VariantSnapshot]:
        ids = set(variant_ids)
        if not ids:
            return {}
        result = await self.db.execute(select(ProductVariant).where(ProductVariant.id.in_(ids)))
        return {variant.id: variant_snapshot(variant) for variant in result.scalars().all()}


async def check_inventory(
    provider: InventorySnapshotProvider,
    items: List[InventoryCheckItem],
) -> InventoryCheckResponse:
    """
    Stock-only availability check

    Unknown products and variants report zero available quantity.
    """
    products = await provider.get_products(item.product_id for item in items)
    variants = await provider.get_variants(item.variant_id for item in items if item.variant_id)

    statuses = []
    for item in items:
        available = 0
        if item.variant_id:
            variant = variants.get(item.variant_id)
            if variant is not None and variant.product_id == item.product_id:
                available = variant.available_quantity
        else:
            product = products.get(item.product_id)
            if product is not None:
                available = product.available_quantity

        statuses.append(InventoryItemStatus(
            product_id=item.product_id,
            variant_id=item.variant_id,
            available_quantity=available,
            requested_quantity=item.quantity,
            in_stock=available >= item.quantity,
        ))

    return InventoryCheckResponse(
        available=all(status.in_stock for status in statuses),
        items=statuses,
    )

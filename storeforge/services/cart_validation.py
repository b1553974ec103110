"""
Cart item validation

Re-validates client cart lines against the catalog. Prices always come from
the catalog snapshot; whatever price the client sent is never read. Lines
that cannot be bought are reported, never silently clamped.
"""

from collections import OrderedDict
from enum import Enum
from typing import Iterable, List, Optional, Protocol, Tuple
import uuid

from storeforge.schemas.cart import CartItemError, ValidatedCartItem
from .inventory import InventorySnapshotProvider, ProductSnapshot, VariantSnapshot
from .pricing import calculate_line_total

LineKey = Tuple[uuid.UUID, Optional[uuid.UUID]]


class ItemErrorCode(str, Enum):
    PRODUCT_NOT_FOUND = "product_not_found"
    WRONG_STORE = "wrong_store"
    NOT_PUBLISHED = "not_published"
    VARIANT_REQUIRED = "variant_required"
    VARIANT_NOT_FOUND = "variant_not_found"
    VARIANT_UNAVAILABLE = "variant_unavailable"
    INVALID_QUANTITY = "invalid_quantity"
    OUT_OF_STOCK = "out_of_stock"
    INSUFFICIENT_STOCK = "insufficient_stock"


class CartLine(Protocol):
    product_id: uuid.UUID
    variant_id: Optional[uuid.UUID]
    quantity: int


def merge_cart_lines(items: Iterable[CartLine]) -> "OrderedDict[LineKey, int]":
    """Sum quantities of repeated (product, variant) lines, keeping first-seen order"""
    merged: "OrderedDict[LineKey, int]" = OrderedDict()
    for item in items:
        key = (item.product_id, item.variant_id)
        merged[key] = merged.get(key, 0) + item.quantity
    return merged


class CartItemValidator:
    """Validates cart lines for one store against inventory snapshots"""

    def __init__(self, provider: InventorySnapshotProvider):
        self.provider = provider

    async def validate(
        self,
        store_id: uuid.UUID,
        items: Iterable[CartLine],
    ) -> Tuple[List[ValidatedCartItem], List[CartItemError]]:
        """
        Validate requested lines

        Args:
            store_id: Store the cart belongs to (assumed already checked active)
            items: Requested lines; only product, variant and quantity are read

        Returns:
            (validated items, per-line errors)
        """
        lines = merge_cart_lines(items)

        products = await self.provider.get_products(product_id for product_id, _ in lines)
        variants = await self.provider.get_variants(variant_id for _, variant_id in lines if variant_id)

        validated: List[ValidatedCartItem] = []
        errors: List[CartItemError] = []

        for (product_id, variant_id), quantity in lines.items():
            product = products.get(product_id)
            variant = variants.get(variant_id) if variant_id else None
            outcome = self._validate_line(store_id, product_id, variant_id, quantity, product, variant)
            if isinstance(outcome, CartItemError):
                errors.append(outcome)
            else:
                validated.append(outcome)

        return validated, errors

    def _validate_line(
        self,
        store_id: uuid.UUID,
        product_id: uuid.UUID,
        variant_id: Optional[uuid.UUID],
        quantity: int,
        product: Optional[ProductSnapshot],
        variant: Optional[VariantSnapshot],
    ):
        def reject(code: ItemErrorCode, message: str) -> CartItemError:
            return CartItemError(product_id=product_id, variant_id=variant_id, code=code.value, message=message)

        if product is None:
            return reject(ItemErrorCode.PRODUCT_NOT_FOUND, "Product not found")

        if product.store_id != store_id:
            return reject(ItemErrorCode.WRONG_STORE, "Product does not belong to this store")

        if not product.published:
            return reject(ItemErrorCode.NOT_PUBLISHED, f"{product.title} is not available")

        if quantity <= 0:
            return reject(ItemErrorCode.INVALID_QUANTITY, "Quantity must be at least 1")

        if variant_id is None and product.has_variants:
            return reject(ItemErrorCode.VARIANT_REQUIRED, f"Please select an option for {product.title}")

        if variant_id is not None:
            if variant is None or variant.product_id != product_id:
                return reject(ItemErrorCode.VARIANT_NOT_FOUND, "Selected option not found")
            if not variant.active:
                return reject(ItemErrorCode.VARIANT_UNAVAILABLE, "Selected option is not available")

        stock = variant if variant is not None else product
        if stock.track_quantity:
            if stock.quantity <= 0:
                return reject(ItemErrorCode.OUT_OF_STOCK, f"{product.title} is out of stock")
            if quantity > stock.quantity:
                return reject(
                    ItemErrorCode.INSUFFICIENT_STOCK,
                    f"Only {stock.quantity} of {product.title} available",
                )

        unit_price = variant.price if variant is not None and variant.price is not None else product.price

        return ValidatedCartItem(
            product_id=product_id,
            variant_id=variant_id,
            title=product.title,
            variant_title=variant.title if variant is not None else None,
            unit_price=unit_price,
            quantity=quantity,
            line_total=calculate_line_total(unit_price, quantity),
        )

"""
Abandoned cart tracker

Owns every write to abandoned_carts. Status and counter changes are
conditional UPDATEs keyed on the expected prior state, so a sweep and an
order-completion event racing on the same cart can never both win. The
lifecycle only moves forward: active -> recovered | expired.
"""

import logging
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Sequence
import uuid

from sqlalchemy import and_, delete, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from storeforge.models import AbandonedCart, CartRecoveryEmail, RecoveryStatus, MAX_RECOVERY_EMAILS
from storeforge.schemas.cart import ValidatedCartItem
from storeforge.utils.helpers import normalize_email, utcnow
from .pricing import calculate_subtotal

logger = logging.getLogger(__name__)


def snapshot_items(items: Sequence[ValidatedCartItem]) -> List[Dict[str, Any]]:
    """JSON snapshot of validated items as stored on the cart"""
    return [
        {
            "product_id": str(item.product_id),
            "variant_id": str(item.variant_id) if item.variant_id else None,
            "title": item.title,
            "variant_title": item.variant_title,
            "price": item.model_dump(mode="json")["unit_price"],
            "quantity": item.quantity,
        }
        for item in items
    ]


class AbandonedCartTracker:
    """Persistence and state transitions of abandoned carts"""

    def __init__(
        self,
        db: AsyncSession,
        reset_sequence_on_activity: bool = False,
        max_age_days: int = 7,
    ):
        self.db = db
        self.reset_sequence_on_activity = reset_sequence_on_activity
        self.max_age = timedelta(days=max_age_days)

    async def get(self, cart_id: uuid.UUID) -> Optional[AbandonedCart]:
        return await self.db.get(AbandonedCart, cart_id)

    async def get_by_token(self, token: str) -> Optional[AbandonedCart]:
        """Active cart behind a recovery link"""
        if not token:
            return None
        result = await self.db.execute(
            select(AbandonedCart).where(
                AbandonedCart.recovery_token == token,
                AbandonedCart.recovery_status == RecoveryStatus.ACTIVE,
            )
        )
        return result.scalar_one_or_none()

    async def find_active(
        self,
        store_id: uuid.UUID,
        email: Optional[str] = None,
        customer_id: Optional[uuid.UUID] = None,
    ) -> Optional[AbandonedCart]:
        """Active cart for a shopper, matched by email first, then customer id"""
        email = normalize_email(email)
        query = select(AbandonedCart).where(
            AbandonedCart.store_id == store_id,
            AbandonedCart.recovery_status == RecoveryStatus.ACTIVE,
        )
        if email:
            query = query.where(func.lower(AbandonedCart.email) == email)
        elif customer_id:
            query = query.where(AbandonedCart.customer_id == customer_id)
        else:
            return None

        result = await self.db.execute(query.order_by(AbandonedCart.updated_at.desc()).limit(1))
        return result.scalar_one_or_none()

    async def save_cart(
        self,
        store_id: uuid.UUID,
        items: Sequence[ValidatedCartItem],
        email: Optional[str] = None,
        phone: Optional[str] = None,
        customer_id: Optional[uuid.UUID] = None,
        now: Optional[datetime] = None,
    ) -> Optional[AbandonedCart]:
        """
        Create or refresh the shopper's active cart

        Renewed activity replaces the snapshot and makes the cart live again
        (abandoned_at/expires_at cleared). The reminder counter is kept unless
        the tracker was built with reset_sequence_on_activity.

        Returns:
            The active cart, or None when there is nothing to track
            (no items or no way to contact the shopper)
        """
        email = normalize_email(email)
        if not items or not (email or phone or customer_id):
            return None

        now = now or utcnow()
        values = {
            "items": snapshot_items(items),
            "subtotal": calculate_subtotal(items),
            "item_count": sum(item.quantity for item in items),
            "updated_at": now,
            "abandoned_at": None,
            "expires_at": None,
        }
        if phone:
            values["phone"] = phone
        if customer_id:
            values["customer_id"] = customer_id
        if self.reset_sequence_on_activity:
            values["recovery_emails_sent"] = 0
            values["last_email_sent_at"] = None

        existing = await self.find_active(store_id, email=email, customer_id=customer_id)
        if existing is not None:
            result = await self.db.execute(
                update(AbandonedCart)
                .where(
                    AbandonedCart.id == existing.id,
                    AbandonedCart.recovery_status == RecoveryStatus.ACTIVE,
                )
                .values(**values)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount:
                if self.reset_sequence_on_activity:
                    await self.db.execute(
                        delete(CartRecoveryEmail).where(CartRecoveryEmail.cart_id == existing.id)
                    )
                await self.db.refresh(existing)
                return existing
            logger.info("Cart %s closed while saving, starting a new one", existing.id)

        values["recovery_emails_sent"] = 0
        cart = AbandonedCart(
            store_id=store_id,
            email=email,
            recovery_status=RecoveryStatus.ACTIVE,
            created_at=now,
            **values,
        )
        self.db.add(cart)
        await self.db.flush()
        await self.db.refresh(cart)
        logger.info("Tracking cart %s for store %s", cart.id, store_id)
        return cart

    async def active_cart_ids(self, idle_before: datetime, now: datetime, limit: int) -> List[uuid.UUID]:
        """
        Active carts idle since before a cutoff that a sweep can still move

        A cart qualifies while it is not yet stamped abandoned, is due to
        expire, or can still receive a reminder. Carts swept longest ago
        (else idle longest) come first, so a bounded batch rotates through
        every candidate.
        """
        result = await self.db.execute(
            select(AbandonedCart.id)
            .where(
                AbandonedCart.recovery_status == RecoveryStatus.ACTIVE,
                AbandonedCart.updated_at <= idle_before,
                or_(
                    AbandonedCart.abandoned_at.is_(None),
                    AbandonedCart.expires_at <= now,
                    and_(
                        AbandonedCart.email.is_not(None),
                        AbandonedCart.recovery_emails_sent < MAX_RECOVERY_EMAILS,
                    ),
                ),
            )
            .order_by(func.coalesce(AbandonedCart.last_swept_at, AbandonedCart.updated_at).asc())
            .limit(limit)
        )
        return list(result.scalars().all())

    async def mark_swept(self, cart_id: uuid.UUID, now: datetime) -> None:
        """Move a cart to the back of the sweep order"""
        await self.db.execute(
            update(AbandonedCart)
            .where(AbandonedCart.id == cart_id)
            .values(last_swept_at=now)
            .execution_options(synchronize_session=False)
        )

    async def mark_abandoned(self, cart: AbandonedCart) -> bool:
        """Stamp abandonment at the last activity; skipped if the shopper came back meanwhile"""
        abandoned_at = cart.updated_at
        result = await self.db.execute(
            update(AbandonedCart)
            .where(
                AbandonedCart.id == cart.id,
                AbandonedCart.recovery_status == RecoveryStatus.ACTIVE,
                AbandonedCart.abandoned_at.is_(None),
                AbandonedCart.updated_at == abandoned_at,
            )
            .values(abandoned_at=abandoned_at, expires_at=abandoned_at + self.max_age)
            .execution_options(synchronize_session=False)
        )
        await self.db.refresh(cart)
        return bool(result.rowcount)

    async def expire(self, cart: AbandonedCart) -> bool:
        result = await self.db.execute(
            update(AbandonedCart)
            .where(
                AbandonedCart.id == cart.id,
                AbandonedCart.recovery_status == RecoveryStatus.ACTIVE,
            )
            .values(recovery_status=RecoveryStatus.EXPIRED)
            .execution_options(synchronize_session=False)
        )
        await self.db.refresh(cart)
        if not result.rowcount:
            logger.warning("Cart %s left active state before it could expire", cart.id)
            return False
        logger.info("Cart %s expired", cart.id)
        return True

    async def record_email_sent(
        self,
        cart: AbandonedCart,
        sequence_number: int,
        now: Optional[datetime] = None,
    ) -> bool:
        """
        Persist a delivered reminder

        The counter only moves from sequence_number - 1 to sequence_number and
        only while the cart is active.

        Returns:
            False when another writer changed the cart first
        """
        if not 1 <= sequence_number <= MAX_RECOVERY_EMAILS:
            raise ValueError(f"Invalid recovery sequence number: {sequence_number}")

        now = now or utcnow()
        result = await self.db.execute(
            update(AbandonedCart)
            .where(
                AbandonedCart.id == cart.id,
                AbandonedCart.recovery_status == RecoveryStatus.ACTIVE,
                AbandonedCart.recovery_emails_sent == sequence_number - 1,
            )
            .values(recovery_emails_sent=sequence_number, last_email_sent_at=now)
            .execution_options(synchronize_session=False)
        )
        if not result.rowcount:
            await self.db.refresh(cart)
            logger.warning(
                "Reminder %s for cart %s was delivered but not recorded, cart changed concurrently",
                sequence_number,
                cart.id,
            )
            return False

        self.db.add(CartRecoveryEmail(cart_id=cart.id, sequence_number=sequence_number, sent_at=now))
        await self.db.flush()
        await self.db.refresh(cart)
        return True

    async def mark_recovered(
        self,
        store_id: uuid.UUID,
        order_id: uuid.UUID,
        email: Optional[str] = None,
        customer_id: Optional[uuid.UUID] = None,
        now: Optional[datetime] = None,
    ) -> int:
        """
        Close the shopper's active carts after an order

        Returns:
            Number of carts moved to recovered
        """
        email = normalize_email(email)
        if email:
            contact = func.lower(AbandonedCart.email) == email
        elif customer_id:
            contact = AbandonedCart.customer_id == customer_id
        else:
            return 0

        result = await self.db.execute(
            update(AbandonedCart)
            .where(
                AbandonedCart.store_id == store_id,
                AbandonedCart.recovery_status == RecoveryStatus.ACTIVE,
                contact,
            )
            .values(
                recovery_status=RecoveryStatus.RECOVERED,
                recovered_at=now or utcnow(),
                recovered_order_id=order_id,
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount:
            logger.info("Recovered %s cart(s) for store %s via order %s", result.rowcount, store_id, order_id)
        return result.rowcount

"""
Abandoned cart recovery scheduling

Decides which reminder a cart should get next, delivers it through the
EmailService and records it through the AbandonedCartTracker. Delivery
happens before the counter is persisted: a reminder is counted only once it
was sent, and a crash between the two can repeat a reminder on the next run.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Dict, Optional
import logging
import uuid

from sqlalchemy.ext.asyncio import AsyncSession

from storeforge.core.config import Settings, settings as default_settings
from storeforge.core.exceptions import (
    CartNotActiveException,
    CartNotFoundException,
    ConflictException,
    EmailDeliveryException,
    NoContactInfoException,
    RecoverySequenceCompleteException,
)
from storeforge.models import AbandonedCart, Store, MAX_RECOVERY_EMAILS
from storeforge.schemas.abandoned_cart import SweepResult
from storeforge.schemas.settings import CartRecoverySettings, resolve_recovery_settings
from storeforge.utils.helpers import utcnow
from .abandoned_cart import AbandonedCartTracker
from .email_service import EmailService, build_recovery_url, build_store_url
from .store_service import get_owned_store

logger = logging.getLogger(__name__)

DEFAULT_SUBJECTS = {
    1: "You left something behind!",
    2: "Your cart is waiting for you",
    3: "Last chance to complete your order",
}


@dataclass(frozen=True)
class RecoveryPlan:
    sequence_number: int
    subject: str
    discount_code: Optional[str] = None
    discount_percentage: Optional[Decimal] = None


@dataclass(frozen=True)
class StoreContext:
    """Plain copy of the store fields a sweep needs; survives session rollbacks"""
    id: uuid.UUID
    name: str
    slug: str
    active: bool
    recovery: CartRecoverySettings

    @classmethod
    def from_store(cls, store: Store) -> "StoreContext":
        return cls(
            id=store.id,
            name=store.name,
            slug=store.slug,
            active=store.is_active,
            recovery=resolve_recovery_settings(store.cart_recovery_settings),
        )


def _hours_between(start: datetime, end: datetime) -> float:
    return (end - start).total_seconds() / 3600


class RecoveryScheduler:
    """Reminder sequencing for abandoned carts"""

    def __init__(
        self,
        db: AsyncSession,
        email_service: Optional[EmailService] = None,
        tracker: Optional[AbandonedCartTracker] = None,
        idle_hours: float = 1,
        min_hours_between_emails: float = 4,
        batch_size: int = 200,
        config: Settings = default_settings,
    ):
        self.db = db
        self.config = config
        self.email_service = email_service or EmailService(config)
        self.tracker = tracker or AbandonedCartTracker(db)
        self.idle = timedelta(hours=idle_hours)
        self.min_hours_between_emails = min_hours_between_emails
        self.batch_size = batch_size

    @classmethod
    def from_settings(
        cls,
        db: AsyncSession,
        config: Settings = default_settings,
        email_service: Optional[EmailService] = None,
    ) -> "RecoveryScheduler":
        tracker = AbandonedCartTracker(
            db,
            reset_sequence_on_activity=config.ABANDONED_CART_RESET_SEQUENCE_ON_ACTIVITY,
            max_age_days=config.ABANDONED_CART_MAX_AGE_DAYS,
        )
        return cls(
            db,
            email_service=email_service,
            tracker=tracker,
            idle_hours=config.ABANDONED_CART_IDLE_HOURS,
            min_hours_between_emails=config.ABANDONED_CART_MIN_HOURS_BETWEEN_EMAILS,
            batch_size=config.ABANDONED_CART_SWEEP_BATCH_SIZE,
            config=config,
        )

    def next_sequence(self, cart: AbandonedCart) -> int:
        """
        Sequence number of the next reminder for a cart

        Raises:
            CartNotActiveException: Cart already recovered or expired
            NoContactInfoException: Cart has no email address
            RecoverySequenceCompleteException: Every reminder was already sent
        """
        if not cart.is_active:
            raise CartNotActiveException()
        if not cart.email:
            raise NoContactInfoException()
        sent = cart.recovery_emails_sent or 0
        if sent >= MAX_RECOVERY_EMAILS:
            raise RecoverySequenceCompleteException()
        return min(sent + 1, MAX_RECOVERY_EMAILS)

    def plan(self, sequence_number: int, recovery: CartRecoverySettings) -> RecoveryPlan:
        """Subject and incentive of a reminder; only the final reminder carries a discount"""
        subject = None
        if sequence_number <= len(recovery.email_sequence):
            subject = recovery.email_sequence[sequence_number - 1].subject
        subject = subject or DEFAULT_SUBJECTS[sequence_number]

        if sequence_number == MAX_RECOVERY_EMAILS and recovery.discount_code:
            return RecoveryPlan(
                sequence_number=sequence_number,
                subject=subject,
                discount_code=recovery.discount_code,
                discount_percentage=recovery.discount_percentage,
            )
        return RecoveryPlan(sequence_number=sequence_number, subject=subject)

    def due_sequence(
        self,
        cart: AbandonedCart,
        now: datetime,
        recovery: CartRecoverySettings,
    ) -> Optional[int]:
        """Reminder due for an abandoned cart at `now`, if any"""
        if cart.abandoned_at is None or not cart.email:
            return None

        sent = cart.recovery_emails_sent or 0
        if sent >= min(MAX_RECOVERY_EMAILS, len(recovery.email_sequence)):
            return None

        step = recovery.email_sequence[sent]
        if _hours_between(cart.abandoned_at, now) < step.delay_hours:
            return None

        if cart.last_email_sent_at is not None:
            if _hours_between(cart.last_email_sent_at, now) < self.min_hours_between_emails:
                return None

        return sent + 1

    async def deliver(
        self,
        cart: AbandonedCart,
        store: StoreContext,
        plan: RecoveryPlan,
        now: Optional[datetime] = None,
    ) -> bool:
        """
        Send one reminder and record it

        Returns:
            True only if the email went out and the counter was persisted
        """
        store_url = build_store_url(store.slug, self.config)
        sent = await self.email_service.send_abandoned_cart_reminder(
            to_email=cart.email,
            subject=plan.subject,
            store_name=store.name,
            store_url=store_url,
            recovery_url=build_recovery_url(store_url, cart.recovery_token),
            items=cart.items or [],
            subtotal=cart.subtotal,
            sequence_number=plan.sequence_number,
            discount_code=plan.discount_code,
            discount_percentage=plan.discount_percentage,
        )
        if not sent:
            logger.warning("Reminder %s for cart %s was not delivered", plan.sequence_number, cart.id)
            return False

        return await self.tracker.record_email_sent(cart, plan.sequence_number, now=now)

    async def send_now(self, cart_id: uuid.UUID, owner_id: uuid.UUID) -> int:
        """
        Merchant-triggered reminder, subject to the same guards as the sweep

        Returns:
            Sequence number that was sent
        """
        cart = await self.tracker.get(cart_id)
        if cart is None:
            raise CartNotFoundException()

        store = await get_owned_store(self.db, cart.store_id, owner_id)
        sequence_number = self.next_sequence(cart)
        context = StoreContext.from_store(store)
        plan = self.plan(sequence_number, context.recovery)

        if not await self.deliver(cart, context, plan):
            if cart.recovery_emails_sent >= sequence_number:
                raise ConflictException("Recovery email was already sent", error_code="RECOVERY_EMAIL_ALREADY_SENT")
            if not cart.is_active:
                raise CartNotActiveException()
            raise EmailDeliveryException()

        logger.info("Manual reminder %s sent for cart %s", sequence_number, cart.id)
        return sequence_number

    async def _store_context(
        self,
        store_id: uuid.UUID,
        cache: Dict[uuid.UUID, Optional[StoreContext]],
    ) -> Optional[StoreContext]:
        if store_id not in cache:
            store = await self.db.get(Store, store_id)
            cache[store_id] = StoreContext.from_store(store) if store is not None else None
        return cache[store_id]

    async def _process_cart(
        self,
        cart: AbandonedCart,
        now: datetime,
        stores: Dict[uuid.UUID, Optional[StoreContext]],
        result: SweepResult,
    ) -> None:
        if cart.abandoned_at is None:
            if now - cart.updated_at < self.idle:
                return
            if not await self.tracker.mark_abandoned(cart):
                return

        if cart.expires_at is not None and now >= cart.expires_at:
            if await self.tracker.expire(cart):
                result.expired += 1
            return

        store = await self._store_context(cart.store_id, stores)
        if store is None or not store.active or not store.recovery.enabled:
            return

        sequence_number = self.due_sequence(cart, now, store.recovery)
        if sequence_number is None:
            return

        plan = self.plan(sequence_number, store.recovery)
        if await self.deliver(cart, store, plan, now=now):
            result.emailsSent += 1

    async def sweep(self, now: Optional[datetime] = None) -> SweepResult:
        """
        One bounded pass over idle active carts

        Each cart is committed on its own; a failure rolls back that cart only
        and is reported in the result.
        """
        now = now or utcnow()
        result = SweepResult()
        stores: Dict[uuid.UUID, Optional[StoreContext]] = {}

        cart_ids = await self.tracker.active_cart_ids(now - self.idle, now, self.batch_size)

        for cart_id in cart_ids:
            result.cartsChecked += 1
            try:
                cart = await self.db.get(AbandonedCart, cart_id, populate_existing=True)
                if cart is None or not cart.is_active:
                    continue
                await self._process_cart(cart, now, stores, result)
                await self.tracker.mark_swept(cart_id, now)
                await self.db.commit()
            except Exception as e:
                await self.db.rollback()
                logger.exception("Abandoned cart sweep failed for cart %s", cart_id)
                result.errors.append(f"{cart_id}: {e}")
                await self.tracker.mark_swept(cart_id, now)
                await self.db.commit()

        result.storesChecked = len(stores)
        logger.info(
            "Abandoned cart sweep: %s carts, %s emails, %s expired, %s errors",
            result.cartsChecked,
            result.emailsSent,
            result.expired,
            len(result.errors),
        )
        return result

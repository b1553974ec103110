"""Reminder sequencing and the abandoned cart sweep"""

from datetime import datetime, timedelta
from decimal import Decimal
import uuid

import pytest

from conftest import FakeEmailService, OWNER_ID
from storeforge.core.exceptions import (
    CartNotActiveException,
    CartNotFoundException,
    EmailDeliveryException,
    NoContactInfoException,
    RecoverySequenceCompleteException,
    StoreNotFoundException,
)
from storeforge.models import RecoveryStatus
from storeforge.schemas.cart import ValidatedCartItem
from storeforge.schemas.settings import CartRecoverySettings, resolve_recovery_settings
from storeforge.services.abandoned_cart import AbandonedCartTracker
from storeforge.services.recovery_scheduler import RecoveryScheduler

T0 = datetime(2025, 6, 1, 9, 0, 0)


def item() -> ValidatedCartItem:
    return ValidatedCartItem(
        product_id=uuid.uuid4(),
        title="Lamp",
        unit_price=Decimal("1200"),
        quantity=1,
        line_total=Decimal("1200"),
    )


def hours(n: float) -> datetime:
    return T0 + timedelta(hours=n)


@pytest.fixture
def tracker(db):
    return AbandonedCartTracker(db, max_age_days=7)


@pytest.fixture
def scheduler(db, tracker, fake_email):
    return RecoveryScheduler(db, email_service=fake_email, tracker=tracker)


@pytest.fixture
def save(db, tracker):
    async def _save(store, email="shopper@example.com", now=T0, **kwargs):
        cart = await tracker.save_cart(store.id, [item()], email=email, now=now, **kwargs)
        await db.commit()
        return cart

    return _save


async def test_next_sequence_guards(db, store, scheduler, tracker, save):
    cart = await save(store)
    assert scheduler.next_sequence(cart) == 1

    phone_only = await save(store, email=None, phone="+919999999999")
    with pytest.raises(NoContactInfoException):
        scheduler.next_sequence(phone_only)

    for sequence_number in (1, 2, 3):
        await tracker.record_email_sent(cart, sequence_number)
    with pytest.raises(RecoverySequenceCompleteException):
        scheduler.next_sequence(cart)

    await tracker.mark_recovered(store.id, uuid.uuid4(), email=cart.email)
    await db.refresh(cart)
    with pytest.raises(CartNotActiveException):
        scheduler.next_sequence(cart)


def test_only_final_reminder_carries_discount(scheduler):
    recovery = resolve_recovery_settings({"discount_code": "COMEBACK", "discount_percentage": 10})

    first = scheduler.plan(1, recovery)
    last = scheduler.plan(3, recovery)

    assert first.discount_code is None
    assert first.subject == "You left something behind!"
    assert last.discount_code == "COMEBACK"
    assert last.discount_percentage == Decimal("10")


def test_invalid_recovery_settings_fall_back_to_defaults():
    recovery = resolve_recovery_settings({"email_sequence": [{"delay_hours": -5}], "enabled": False})

    assert recovery.enabled is False
    assert [step.delay_hours for step in recovery.email_sequence] == [1, 24, 72]


async def test_sweep_walks_the_whole_sequence(db, make_store, scheduler, fake_email, save):
    store = await make_store(cart_recovery_settings={"discount_code": "COMEBACK", "discount_percentage": 10})
    cart = await save(store)

    assert (await scheduler.sweep(now=hours(0.5))).cartsChecked == 0

    first = await scheduler.sweep(now=hours(2))
    assert first.emailsSent == 1
    assert first.storesChecked == 1

    assert (await scheduler.sweep(now=hours(3))).emailsSent == 0
    assert (await scheduler.sweep(now=hours(25))).emailsSent == 1
    assert (await scheduler.sweep(now=hours(73))).emailsSent == 1
    assert (await scheduler.sweep(now=hours(100))).emailsSent == 0

    await db.refresh(cart)
    assert cart.recovery_emails_sent == 3
    assert cart.abandoned_at == T0
    assert [sent["sequence_number"] for sent in fake_email.sent] == [1, 2, 3]
    assert fake_email.sent[0]["discount_code"] is None
    assert fake_email.sent[2]["discount_code"] == "COMEBACK"
    assert fake_email.sent[0]["recovery_url"].endswith(f"/cart/recover?token={cart.recovery_token}")


async def test_sweep_expires_old_carts(db, store, scheduler, save):
    cart = await save(store)

    result = await scheduler.sweep(now=T0 + timedelta(days=8))

    await db.refresh(cart)
    assert result.expired == 1
    assert result.emailsSent == 0
    assert cart.recovery_status == RecoveryStatus.EXPIRED
    assert (await scheduler.sweep(now=T0 + timedelta(days=9))).cartsChecked == 0


async def test_minimum_gap_between_reminders(db, make_store, scheduler, fake_email, save):
    store = await make_store(cart_recovery_settings={
        "email_sequence": [{"delay_hours": 1}, {"delay_hours": 2}, {"delay_hours": 3}],
    })
    await save(store)

    assert (await scheduler.sweep(now=hours(2))).emailsSent == 1
    assert (await scheduler.sweep(now=hours(4))).emailsSent == 0
    assert (await scheduler.sweep(now=hours(6))).emailsSent == 1
    assert fake_email.sent[1]["subject"] == "Your cart is waiting for you"


async def test_failed_delivery_is_not_counted(db, store, tracker, save):
    scheduler = RecoveryScheduler(db, email_service=FakeEmailService(succeed=False), tracker=tracker)
    cart = await save(store)

    result = await scheduler.sweep(now=hours(2))

    await db.refresh(cart)
    assert result.emailsSent == 0
    assert result.errors == []
    assert cart.recovery_emails_sent == 0
    assert cart.abandoned_at == T0


async def test_recovery_disabled_store_still_expires(db, make_store, scheduler, fake_email, save):
    store = await make_store(cart_recovery_settings={"enabled": False})
    cart = await save(store)

    assert (await scheduler.sweep(now=hours(2))).emailsSent == 0
    assert (await scheduler.sweep(now=T0 + timedelta(days=8))).expired == 1
    assert fake_email.sent == []
    await db.refresh(cart)
    assert cart.recovery_status == RecoveryStatus.EXPIRED


class ExplodingEmailService(FakeEmailService):
    async def send_abandoned_cart_reminder(self, **kwargs) -> bool:
        if kwargs["to_email"] == "broken@example.com":
            raise RuntimeError("template exploded")
        return await super().send_abandoned_cart_reminder(**kwargs)


async def test_one_failing_cart_does_not_stop_the_batch(db, store, tracker, save):
    email = ExplodingEmailService()
    scheduler = RecoveryScheduler(db, email_service=email, tracker=tracker)
    broken = await save(store, email="broken@example.com")
    healthy = await save(store, email="healthy@example.com")
    broken_id = broken.id

    result = await scheduler.sweep(now=hours(2))

    assert result.cartsChecked == 2
    assert result.emailsSent == 1
    assert len(result.errors) == 1
    assert str(broken_id) in result.errors[0]
    await db.refresh(broken)
    await db.refresh(healthy)
    assert broken.recovery_emails_sent == 0
    assert broken.abandoned_at is None
    assert healthy.recovery_emails_sent == 1


async def test_sweep_batch_is_bounded(db, store, tracker, fake_email, save):
    scheduler = RecoveryScheduler(db, email_service=fake_email, tracker=tracker, batch_size=2)
    for i in range(3):
        await save(store, email=f"shopper{i}@example.com", now=T0 + timedelta(minutes=i))

    first = await scheduler.sweep(now=hours(2))
    second = await scheduler.sweep(now=hours(2))

    assert first.cartsChecked == 2
    assert first.emailsSent == 2
    assert second.emailsSent == 1


async def test_unreachable_carts_do_not_starve_the_batch(db, store, tracker, fake_email, save):
    scheduler = RecoveryScheduler(db, email_service=fake_email, tracker=tracker, batch_size=2)
    await save(store, email=None, phone="+919999999991", now=T0 - timedelta(minutes=10))
    await save(store, email=None, phone="+919999999992", now=T0 - timedelta(minutes=5))
    cart = await save(store, email="shopper@example.com")

    for n in (2, 3, 4, 5, 30, 80):
        await scheduler.sweep(now=hours(n))

    await db.refresh(cart)
    assert cart.recovery_emails_sent == 3
    assert [sent["sequence_number"] for sent in fake_email.sent] == [1, 2, 3]


async def test_disabled_store_carts_rotate_out_of_the_batch(db, make_store, store, tracker, fake_email, save):
    scheduler = RecoveryScheduler(db, email_service=fake_email, tracker=tracker, batch_size=1)
    disabled = await make_store(cart_recovery_settings={"enabled": False})
    await save(disabled, email="muted@example.com", now=T0 - timedelta(minutes=10))
    cart = await save(store, email="shopper@example.com")

    await scheduler.sweep(now=hours(2))
    await scheduler.sweep(now=hours(2))

    await db.refresh(cart)
    assert cart.recovery_emails_sent == 1
    assert [sent["to_email"] for sent in fake_email.sent] == ["shopper@example.com"]


async def test_send_now(db, store, scheduler, fake_email, save):
    cart = await save(store)

    assert await scheduler.send_now(cart.id, OWNER_ID) == 1
    assert await scheduler.send_now(cart.id, OWNER_ID) == 2
    assert cart.recovery_emails_sent == 2
    assert len(fake_email.sent) == 2


async def test_send_now_ownership_and_lookup(db, store, scheduler, save):
    cart = await save(store)

    with pytest.raises(CartNotFoundException):
        await scheduler.send_now(uuid.uuid4(), OWNER_ID)
    with pytest.raises(StoreNotFoundException):
        await scheduler.send_now(cart.id, uuid.uuid4())


async def test_send_now_delivery_failure(db, store, tracker, save):
    scheduler = RecoveryScheduler(db, email_service=FakeEmailService(succeed=False), tracker=tracker)
    cart = await save(store)

    with pytest.raises(EmailDeliveryException):
        await scheduler.send_now(cart.id, OWNER_ID)
    assert cart.recovery_emails_sent == 0


def test_due_sequence_requires_abandonment(scheduler):
    class Cart:
        abandoned_at = None
        email = "shopper@example.com"
        recovery_emails_sent = 0
        last_email_sent_at = None

    assert scheduler.due_sequence(Cart(), hours(100), CartRecoverySettings()) is None

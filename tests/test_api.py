"""HTTP contract of the checkout API"""

from decimal import Decimal
import uuid

from sqlalchemy import select

from conftest import CRON_HEADERS
from storeforge.models import AbandonedCart, Coupon, DiscountType, ProductStatus, RecoveryStatus, StoreStatus
from storeforge.services.abandoned_cart import AbandonedCartTracker
from storeforge.schemas.cart import ValidatedCartItem


async def test_health(client):
    response = await client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "healthy"
    assert "X-Request-ID" in response.headers


async def test_validate_cart_prices_from_catalog(client, store, make_product, make_coupon):
    product = await make_product(store, price=Decimal("500"), quantity=5)
    await make_coupon(store, code="SAVE10")

    response = await client.post("/api/v1/cart/validate", json={
        "store_id": str(store.id),
        "items": [{"product_id": str(product.id), "quantity": 2, "price": 1}],
        "payment_method": "cod",
        "coupon_code": "save10",
    })

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["valid"] is True
    assert body["items"][0]["unit_price"] == 500
    assert body["totals"] == {
        "subtotal": 1000,
        "shipping": 0,
        "cod_fee": 20,
        "tax": 0,
        "discount": 100,
        "total": 920,
    }
    assert body["coupon"]["valid"] is True


async def test_validate_cart_partial_success(client, store, make_product):
    product = await make_product(store, price=Decimal("800"))
    draft = await make_product(store, status=ProductStatus.DRAFT)

    response = await client.post("/api/v1/cart/validate", json={
        "store_id": str(store.id),
        "items": [
            {"product_id": str(product.id), "quantity": 1},
            {"product_id": str(draft.id), "quantity": 1},
        ],
    })

    assert response.status_code == 200
    body = response.json()
    assert body["valid"] is False
    assert len(body["items"]) == 1
    assert body["errors"][0]["code"] == "not_published"
    assert body["totals"]["shipping"] == 49
    assert body["totals"]["total"] == 849


async def test_validate_cart_with_invalid_coupon_still_prices(client, store, make_product):
    product = await make_product(store, price=Decimal("300"))

    response = await client.post("/api/v1/cart/validate", json={
        "store_id": str(store.id),
        "items": [{"product_id": str(product.id), "quantity": 1}],
        "coupon_code": "NOPE",
    })

    assert response.status_code == 200
    body = response.json()
    assert body["valid"] is False
    assert body["coupon"]["error"] == "not_found"
    assert body["errors"][0]["code"] == "coupon_not_found"
    assert body["totals"]["discount"] == 0


async def test_validate_cart_without_valid_items(client, store, make_product):
    product = await make_product(store, quantity=1)

    response = await client.post("/api/v1/cart/validate", json={
        "store_id": str(store.id),
        "items": [{"product_id": str(product.id), "quantity": 3}],
    })

    assert response.status_code == 400
    body = response.json()
    assert body["success"] is False
    assert body["error"] == "NO_VALID_ITEMS"
    assert body["errors"][0]["code"] == "insufficient_stock"


async def test_validate_cart_unknown_or_inactive_store(client, make_store):
    suspended = await make_store(status=StoreStatus.SUSPENDED)

    for store_id in (uuid.uuid4(), suspended.id):
        response = await client.post("/api/v1/cart/validate", json={
            "store_id": str(store_id),
            "items": [{"product_id": str(uuid.uuid4()), "quantity": 1}],
        })
        assert response.status_code == 404
        assert response.json()["error"] == "STORE_NOT_FOUND"


async def test_schema_failures_are_400(client, store):
    response = await client.post("/api/v1/cart/validate", json={"store_id": str(store.id), "items": []})

    assert response.status_code == 400
    body = response.json()
    assert body["error"] == "VALIDATION_ERROR"
    assert any(error.startswith("items") for error in body["errors"])


async def test_check_inventory(client, store, make_product):
    product = await make_product(store, quantity=2)

    response = await client.post("/api/v1/cart/check-inventory", json={
        "items": [{"product_id": str(product.id), "quantity": 3}],
    })

    assert response.status_code == 200
    body = response.json()
    assert body["available"] is False
    assert body["items"][0]["available_quantity"] == 2
    assert body["items"][0]["requested_quantity"] == 3


async def test_apply_coupon(client, store, make_coupon):
    await make_coupon(store, code="FLAT100", discount_type=DiscountType.FIXED, discount_value=Decimal("100"))

    response = await client.post("/api/v1/coupons/apply", json={
        "store_id": str(store.id),
        "coupon_code": "flat100",
        "subtotal": 50,
    })

    assert response.status_code == 200
    body = response.json()
    assert body["valid"] is True
    assert body["discount_amount"] == 50
    assert body["final_subtotal"] == 0
    assert body["coupon"]["code"] == "FLAT100"


async def test_rejected_coupon_is_still_200(client, store, make_coupon):
    await make_coupon(store, code="BIG", min_order_value=Decimal("2000"))

    response = await client.post("/api/v1/coupons/apply", json={
        "store_id": str(store.id),
        "coupon_code": "BIG",
        "subtotal": 500,
    })

    assert response.status_code == 200
    body = response.json()
    assert body["valid"] is False
    assert body["error"] == "below_minimum"
    assert "₹2,000" in body["message"]
    assert "discount_amount" not in body


async def test_apply_coupon_rounds_fractional_subtotal(client, store, make_coupon):
    await make_coupon(store, code="TENOFF")

    response = await client.post("/api/v1/coupons/apply", json={
        "store_id": str(store.id),
        "coupon_code": "TENOFF",
        "subtotal": 500.4,
    })

    assert response.status_code == 200
    body = response.json()
    assert body["discount_amount"] == 50
    assert body["final_subtotal"] == 450


async def test_save_cart_and_recover(client, store, make_product):
    product = await make_product(store, price=Decimal("450"))

    empty = await client.post("/api/v1/cart/save", json={"storeId": str(store.id), "email": "shopper@example.com"})
    assert empty.status_code == 200
    assert empty.json()["cartId"] is None

    response = await client.post("/api/v1/cart/save", json={
        "storeId": str(store.id),
        "email": "shopper@example.com",
        "items": [{"product_id": str(product.id), "quantity": 2, "price": 1}],
    })
    assert response.status_code == 200
    cart_id = response.json()["cartId"]
    assert cart_id

    again = await client.post("/api/v1/cart/save", json={
        "storeId": str(store.id),
        "email": "shopper@example.com",
        "items": [{"product_id": str(product.id), "quantity": 1}],
    })
    assert again.json()["cartId"] == cart_id


async def test_recover_cart_by_token(client, db, store):
    item = ValidatedCartItem(
        product_id=uuid.uuid4(), title="Lamp", unit_price=Decimal("450"), quantity=2, line_total=Decimal("900")
    )
    cart = await AbandonedCartTracker(db).save_cart(store.id, [item], email="shopper@example.com")
    await db.commit()

    response = await client.get("/api/v1/cart/recover", params={"token": cart.recovery_token})

    assert response.status_code == 200
    body = response.json()
    assert body["cart_id"] == str(cart.id)
    assert body["subtotal"] == 900
    assert body["items"][0]["price"] == 450

    missing = await client.get("/api/v1/cart/recover", params={"token": "0" * 64})
    assert missing.status_code == 404
    assert missing.json()["error"] == "CART_NOT_FOUND"


async def _tracked_cart(db, store, email="shopper@example.com", phone=None):
    item = ValidatedCartItem(
        product_id=uuid.uuid4(), title="Lamp", unit_price=Decimal("450"), quantity=1, line_total=Decimal("450")
    )
    cart = await AbandonedCartTracker(db).save_cart(store.id, [item], email=email, phone=phone)
    await db.commit()
    return cart


async def test_send_recovery_requires_merchant_token(client, db, store):
    cart = await _tracked_cart(db, store)

    response = await client.post("/api/v1/abandoned-carts/send-recovery", json={"cart_id": str(cart.id)})

    assert response.status_code == 401
    assert response.json()["error"] == "UNAUTHORIZED"


async def test_send_recovery(client, db, store, owner_headers):
    cart = await _tracked_cart(db, store)

    response = await client.post(
        "/api/v1/abandoned-carts/send-recovery", json={"cart_id": str(cart.id)}, headers=owner_headers
    )

    assert response.status_code == 200
    assert response.json()["sequence_number"] == 1
    await db.refresh(cart)
    assert cart.recovery_emails_sent == 1


async def test_send_recovery_on_recovered_cart(client, db, store, owner_headers):
    cart = await _tracked_cart(db, store)
    await AbandonedCartTracker(db).mark_recovered(store.id, uuid.uuid4(), email="shopper@example.com")
    await db.commit()

    response = await client.post(
        "/api/v1/abandoned-carts/send-recovery", json={"cart_id": str(cart.id)}, headers=owner_headers
    )

    assert response.status_code == 400
    assert response.json()["error"] == "CART_NOT_ACTIVE"


async def test_send_recovery_without_email(client, db, store, owner_headers):
    cart = await _tracked_cart(db, store, email=None, phone="+919999999999")

    response = await client.post(
        "/api/v1/abandoned-carts/send-recovery", json={"cart_id": str(cart.id)}, headers=owner_headers
    )

    assert response.status_code == 400
    assert response.json()["error"] == "NO_CONTACT_INFO"


async def test_send_recovery_for_someone_elses_store(client, db, make_store, owner_headers):
    foreign = await make_store(owner_id=uuid.uuid4())
    cart = await _tracked_cart(db, foreign)

    response = await client.post(
        "/api/v1/abandoned-carts/send-recovery", json={"cart_id": str(cart.id)}, headers=owner_headers
    )

    assert response.status_code == 404


async def test_send_recovery_stops_after_third_reminder(client, db, store, owner_headers):
    cart = await _tracked_cart(db, store)
    for _ in range(3):
        response = await client.post(
            "/api/v1/abandoned-carts/send-recovery", json={"cart_id": str(cart.id)}, headers=owner_headers
        )
        assert response.status_code == 200

    response = await client.post(
        "/api/v1/abandoned-carts/send-recovery", json={"cart_id": str(cart.id)}, headers=owner_headers
    )

    assert response.status_code == 400
    assert response.json()["error"] == "RECOVERY_SEQUENCE_COMPLETE"


async def test_cron_requires_secret(client):
    assert (await client.get("/api/v1/cron/process-abandoned-carts")).status_code == 401
    wrong = await client.post(
        "/api/v1/cron/process-abandoned-carts", headers={"Authorization": "Bearer wrong"}
    )
    assert wrong.status_code == 401


async def test_cron_runs_sweep(client):
    for method in ("get", "post"):
        response = await getattr(client, method)("/api/v1/cron/process-abandoned-carts", headers=CRON_HEADERS)
        assert response.status_code == 200
        body = response.json()
        assert {"storesChecked", "cartsChecked", "emailsSent", "expired"} <= set(body)


async def test_order_completed_records_coupon_and_recovers_cart(client, db, store, make_coupon):
    coupon = await make_coupon(store, code="ONCE", usage_limit=1)
    cart = await _tracked_cart(db, store)
    event = {
        "store_id": str(store.id),
        "order_id": str(uuid.uuid4()),
        "customer_email": "Shopper@Example.com",
        "coupon_id": str(coupon.id),
        "discount_amount": 50,
    }

    response = await client.post("/api/v1/events/order-completed", json=event, headers=CRON_HEADERS)

    assert response.status_code == 200
    assert response.json() == {"success": True, "carts_recovered": 1, "coupon_recorded": True}
    await db.refresh(cart)
    assert cart.recovery_status == RecoveryStatus.RECOVERED

    second = dict(event, order_id=str(uuid.uuid4()))
    response = await client.post("/api/v1/events/order-completed", json=second, headers=CRON_HEADERS)
    assert response.status_code == 409
    assert response.json()["error"] == "COUPON_USAGE_LIMIT_REACHED"

    usage_count = (await db.execute(select(Coupon.usage_count).where(Coupon.id == coupon.id))).scalar_one()
    assert usage_count == 1
    active = (await db.execute(
        select(AbandonedCart).where(AbandonedCart.recovery_status == RecoveryStatus.ACTIVE)
    )).scalars().all()
    assert active == []


async def test_replayed_order_event_is_applied_once(client, db, store, make_coupon):
    coupon = await make_coupon(store, code="REPLAY", usage_limit=5)
    await _tracked_cart(db, store)
    event = {
        "store_id": str(store.id),
        "order_id": str(uuid.uuid4()),
        "customer_email": "shopper@example.com",
        "coupon_id": str(coupon.id),
        "discount_amount": 50,
    }

    first = await client.post("/api/v1/events/order-completed", json=event, headers=CRON_HEADERS)
    replay = await client.post("/api/v1/events/order-completed", json=event, headers=CRON_HEADERS)

    assert first.status_code == 200
    assert replay.status_code == 200
    assert replay.json() == {"success": True, "carts_recovered": 0, "coupon_recorded": True}
    usage_count = (await db.execute(select(Coupon.usage_count).where(Coupon.id == coupon.id))).scalar_one()
    assert usage_count == 1

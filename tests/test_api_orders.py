from __future__ import annotations

import re

from sqlmodel import select

from app.core.config import settings
from app.enums import NotificationType, RestockState
from app.models import Notification
from tests.utils import auth_headers, stock_of

API = settings.API_V1_STR


def _order_body(product, quantity: int = 3, **overrides) -> dict:
    subtotal = 100 * quantity
    body = {
        "items": [{"product_id": product.id, "quantity": quantity, "price": "100.00"}],
        "shipping_address": {
            "first_name": "Test",
            "last_name": "Buyer",
            "phone": "9800000000",
            "email": "buyer@example.com",
            "address": "Street 1",
            "city": "Kathmandu",
            "district": "Kathmandu",
            "province": "Bagmati",
        },
        "payment_method": "COD",
        "subtotal": f"{subtotal}.00",
        "shipping_cost": "0.00",
        "total": f"{subtotal}.00",
    }
    body.update(overrides)
    return body


def _create(client, user, product, quantity: int = 3) -> dict:
    r = client.post(f"{API}/orders", headers=auth_headers(user), json=_order_body(product, quantity))
    assert r.status_code == 200, r.text
    body = r.json()
    assert body["code"] == 0
    return body["data"]


def test_health_check(client):
    r = client.get(f"{API}/utils/health-check/")
    assert r.status_code == 200
    assert r.json() is True


def test_requires_bearer_token(client):
    r = client.get(f"{API}/orders")
    assert r.status_code in (401, 403)
    assert r.json()["data"] is None

    r = client.get(f"{API}/orders", headers={"Authorization": "Bearer not-a-jwt"})
    assert r.status_code == 401
    assert r.json()["code"] == 401000


def test_create_order_flow(client, db, customer, admin, make_product, fake_redis):
    product = make_product(stock=10)

    data = _create(client, customer, product)

    assert re.fullmatch(r"ORD-\d{13}-[0-9A-Z]{5}", data["order_number"])
    assert stock_of(db, product) == 7

    notes = db.exec(select(Notification)).all()
    assert {n.user_id for n in notes} == {customer.id, admin.id}
    assert all(n.type == NotificationType.ORDER_CREATED for n in notes)

    assert len(fake_redis.messages) == 1
    stream, event = fake_redis.messages[0]
    assert stream == settings.NOTIFICATION_STREAM
    assert event["order_number"] == data["order_number"]
    assert event["customer_email"] == "buyer@example.com"
    assert event["new_status"] == "PENDING"
    assert event["total"] == "300.00"
    assert event["reason"] == ""


def test_create_order_insufficient_stock(client, db, customer, make_product):
    product = make_product(stock=2)

    r = client.post(f"{API}/orders", headers=auth_headers(customer), json=_order_body(product, 3))

    assert r.status_code == 409
    body = r.json()
    assert body["code"] == 409301
    assert body["data"]["product_id"] == product.id
    assert stock_of(db, product) == 2


def test_create_order_validation(client, customer, make_product):
    product = make_product(stock=10)

    r = client.post(f"{API}/orders", headers=auth_headers(customer), json=_order_body(product, items=[]))
    assert r.status_code == 422
    assert r.json()["code"] == 422000

    r = client.post(
        f"{API}/orders",
        headers=auth_headers(customer),
        json=_order_body(product, 1, total="999.00"),
    )
    assert r.status_code == 400
    assert r.json()["code"] == 400303


def test_list_and_get_own_orders(client, db, customer, make_product):
    product = make_product(stock=10)
    first = _create(client, customer, product, 1)
    _create(client, customer, product, 2)

    r = client.get(f"{API}/orders?page=1&page_size=1", headers=auth_headers(customer))
    assert r.status_code == 200
    listing = r.json()["data"]
    assert listing["count"] == 2
    assert len(listing["data"]) == 1

    r = client.get(f"{API}/orders/{first['order_number']}", headers=auth_headers(customer))
    assert r.status_code == 200
    detail = r.json()["data"]
    assert detail["status"] == "PENDING"
    assert detail["items"][0]["quantity"] == 1
    assert [h["status"] for h in detail["history"]] == ["PENDING"]
    assert detail["allowed_next"] == ["PROCESSING", "CANCELLED", "FAILED"]
    assert detail["restock_state"] == RestockState.NOT_REQUIRED.value


def test_cannot_see_other_users_order(client, db, customer, admin, make_product):
    product = make_product(stock=10)
    data = _create(client, customer, product, 1)

    r = client.get(f"{API}/orders/{data['order_number']}", headers=auth_headers(admin))
    assert r.status_code == 404
    assert r.json()["code"] == 404301


def test_customer_cancel(client, db, customer, make_product):
    product = make_product(stock=10)
    data = _create(client, customer, product, 3)
    url = f"{API}/orders/{data['order_number']}/cancel"

    r = client.post(url, headers=auth_headers(customer), json={"reason": "no"})
    assert r.status_code == 400
    assert r.json()["code"] == 400302

    r = client.post(url, headers=auth_headers(customer), json={"reason": ""})
    assert r.status_code == 400
    assert r.json()["code"] == 400302
    assert stock_of(db, product) == 7

    r = client.post(url, headers=auth_headers(customer), json={"reason": "changed my mind"})
    assert r.status_code == 200
    detail = r.json()["data"]
    assert detail["status"] == "CANCELLED"
    assert detail["reason"] == "changed my mind"
    assert detail["allowed_next"] == []
    assert stock_of(db, product) == 10

    r = client.post(url, headers=auth_headers(customer), json={"reason": "changed my mind"})
    assert r.status_code == 400
    body = r.json()
    assert body["code"] == 400301
    assert body["data"] == {"from": "CANCELLED", "to": "CANCELLED"}
    assert stock_of(db, product) == 10


def test_admin_routes_reject_customers(client, customer):
    headers = auth_headers(customer)

    r = client.get(f"{API}/admin/orders", headers=headers)
    assert r.status_code == 403
    assert r.json()["code"] == 403001

    r = client.patch(f"{API}/admin/orders/1/status", headers=headers, json={"status": "PROCESSING"})
    assert r.status_code == 403


def test_admin_status_flow(client, db, customer, admin, make_product, fake_redis):
    product = make_product(stock=10)
    data = _create(client, customer, product, 4)
    order_id = data["order_id"]
    headers = auth_headers(admin)
    url = f"{API}/admin/orders/{order_id}/status"

    for status in ("PROCESSING", "PACKAGED", "SHIPPED"):
        r = client.patch(url, headers=headers, json={"status": status})
        assert r.status_code == 200, r.text
        assert r.json()["data"]["status"] == status

    r = client.patch(url, headers=headers, json={"status": "CANCELLED", "cancellation_reason": "too late"})
    assert r.status_code == 400
    assert r.json()["data"] == {"from": "SHIPPED", "to": "CANCELLED"}

    r = client.patch(url, headers=headers, json={"status": "FAILED", "cancellation_reason": "wrong field"})
    assert r.status_code == 400
    assert r.json()["code"] == 400302

    r = client.patch(url, headers=headers, json={"status": "FAILED", "failure_reason": "courier lost package"})
    assert r.status_code == 200
    detail = r.json()["data"]
    assert detail["status"] == "FAILED"
    assert detail["reason"] == "courier lost package"
    assert detail["restock_state"] == "COMPLETED"
    assert stock_of(db, product) == 10

    r = client.get(f"{API}/admin/orders/{order_id}/history", headers=headers)
    history = r.json()["data"]
    statuses = [h["status"] for h in history["data"] if h["reason"] != "STOCK_RESTORED"]
    assert statuses == ["PENDING", "PROCESSING", "PACKAGED", "SHIPPED", "FAILED"]
    assert history["count"] == 6

    events = [e for _, e in fake_redis.messages]
    assert [e["new_status"] for e in events] == ["PENDING", "PROCESSING", "PACKAGED", "SHIPPED", "FAILED"]
    assert events[-1]["reason"] == "courier lost package"


def test_admin_get_and_list(client, db, customer, admin, make_product):
    product = make_product(stock=10)
    data = _create(client, customer, product, 1)
    headers = auth_headers(admin)

    r = client.get(f"{API}/admin/orders/{data['order_id']}", headers=headers)
    assert r.status_code == 200
    assert r.json()["data"]["order_number"] == data["order_number"]

    r = client.get(f"{API}/admin/orders/{data['order_id'] + 1}", headers=headers)
    assert r.status_code == 404

    r = client.get(f"{API}/admin/orders?status=PENDING", headers=headers)
    assert r.json()["data"]["count"] == 1

    r = client.get(f"{API}/admin/orders?status=SHIPPED", headers=headers)
    assert r.json()["data"]["count"] == 0


def test_admin_bulk_update(client, db, customer, admin, make_product):
    product = make_product(stock=10)
    ids = [_create(client, customer, product, 1)["order_id"] for _ in range(3)]
    headers = auth_headers(admin)
    url = f"{API}/admin/orders/bulk-status"

    r = client.post(url, headers=headers, json={"order_ids": ids, "status": "CANCELLED"})
    assert r.status_code == 400
    assert r.json()["code"] == 400302
    assert stock_of(db, product) == 7

    r = client.post(url, headers=headers, json={"order_ids": ids, "status": "PROCESSING"})
    assert r.status_code == 200
    assert r.json()["data"]["updated"] == 3

    r = client.post(url, headers=headers, json={"order_ids": ids, "status": "FAILED", "reason": "warehouse fire"})
    assert r.status_code == 200
    assert {o["status"] for o in r.json()["data"]["orders"]} == {"FAILED"}
    assert stock_of(db, product) == 10


def test_notification_failures_do_not_fail_updates(client, db, customer, admin, make_product, fake_redis, monkeypatch):
    product = make_product(stock=10)
    first = _create(client, customer, product, 2)
    second = _create(client, customer, product, 3)
    assert stock_of(db, product) == 5
    fake_redis.fail = True

    r = client.patch(
        f"{API}/admin/orders/{first['order_id']}/status",
        headers=auth_headers(admin),
        json={"status": "PROCESSING"},
    )
    assert r.status_code == 200
    assert r.json()["data"]["status"] == "PROCESSING"

    def _explode(**_kwargs):
        raise RuntimeError("notification backend down")

    monkeypatch.setattr("app.services.notification_service.notify_status_changed", _explode)

    r = client.post(
        f"{API}/orders/{second['order_number']}/cancel",
        headers=auth_headers(customer),
        json={"reason": "found it cheaper elsewhere"},
    )
    assert r.status_code == 200
    assert r.json()["data"]["status"] == "CANCELLED"
    assert stock_of(db, product) == 8

    r = client.patch(
        f"{API}/admin/orders/{first['order_id']}/status",
        headers=auth_headers(admin),
        json={"status": "CANCELLED", "cancellation_reason": "customer called support"},
    )
    assert r.status_code == 200
    assert r.json()["data"]["status"] == "CANCELLED"
    assert stock_of(db, product) == 10


def test_customer_cancel_reports_status_before_reason_length(client, db, customer, admin, make_product):
    product = make_product(stock=10)
    data = _create(client, customer, product, 1)
    r = client.patch(
        f"{API}/admin/orders/{data['order_id']}/status",
        headers=auth_headers(admin),
        json={"status": "PROCESSING"},
    )
    assert r.status_code == 200

    r = client.post(
        f"{API}/orders/{data['order_number']}/cancel",
        headers=auth_headers(customer),
        json={"reason": "no"},
    )
    assert r.status_code == 400
    body = r.json()
    assert body["code"] == 400301
    assert body["data"] == {"from": "PROCESSING", "to": "CANCELLED"}
    assert stock_of(db, product) == 9

from __future__ import annotations

import pytest
from sqlmodel import select

from app import crud
from app.api.errors import ConcurrentStockViolation
from app.enums import OrderStatus, RestockState
from app.models import STOCK_RESTORED_MARKER, SYSTEM_ACTOR, Order, OrderStatusHistory
from tests.utils import stock_of


def _marker_rows(db, order_id: int) -> list[OrderStatusHistory]:
    return list(
        db.exec(
            select(OrderStatusHistory).where(
                OrderStatusHistory.order_id == order_id,
                OrderStatusHistory.reason == STOCK_RESTORED_MARKER,
            )
        ).all()
    )


def test_adjust_stock_is_relative(db, make_product):
    product = make_product(stock=10)

    assert crud.adjust_stock(session=db, product_id=product.id, delta=-4) == 1
    assert crud.adjust_stock(session=db, product_id=product.id, delta=6) == 1
    db.commit()

    assert stock_of(db, product) == 12


def test_adjust_stock_on_missing_product_touches_nothing(db):
    assert crud.adjust_stock(session=db, product_id=123456789, delta=5) == 0
    db.rollback()


def test_restock_twice_credits_once(db, customer, make_product, place_order):
    product = make_product(stock=10)
    result = place_order(customer, [(product, 3)])
    assert stock_of(db, product) == 7

    order = db.get(Order, result.order.id)
    first = crud.restock_order_items(
        session=db, order=order, items=result.items, status=OrderStatus.CANCELLED
    )
    db.commit()
    second = crud.restock_order_items(
        session=db, order=order, items=result.items, status=OrderStatus.CANCELLED
    )
    db.commit()

    assert first is True
    assert second is False
    assert stock_of(db, product) == 10
    markers = _marker_rows(db, order.id)
    assert len(markers) == 1
    assert markers[0].updated_by == SYSTEM_ACTOR
    assert markers[0].status == OrderStatus.CANCELLED
    assert db.get(Order, order.id).restock_state == RestockState.COMPLETED


def test_marker_row_alone_counts_as_restocked(db, customer, make_product, place_order):
    product = make_product(stock=5)
    result = place_order(customer, [(product, 2)])
    db.add(
        OrderStatusHistory(
            order_id=result.order.id,
            status=OrderStatus.FAILED,
            reason=STOCK_RESTORED_MARKER,
            updated_by=SYSTEM_ACTOR,
        )
    )
    db.commit()

    assert crud.has_been_restocked(session=db, order_id=result.order.id)
    order = db.get(Order, result.order.id)
    assert not crud.restock_order_items(
        session=db, order=order, items=result.items, status=OrderStatus.FAILED
    )
    db.commit()
    assert stock_of(db, product) == 3


def test_fresh_order_is_not_restocked(db, customer, make_product, place_order):
    product = make_product(stock=5)
    result = place_order(customer, [(product, 1)])

    assert not crud.has_been_restocked(session=db, order_id=result.order.id)
    assert result.order.restock_state == RestockState.NOT_REQUIRED


def test_integrity_check_rejects_negative_stock(db, customer, make_product, place_order):
    product = make_product(stock=2)
    result = place_order(customer, [(product, 2)])
    crud.adjust_stock(session=db, product_id=product.id, delta=-1)
    db.commit()

    with pytest.raises(ConcurrentStockViolation) as exc_info:
        crud.check_stock_integrity(session=db, items=result.items)
    assert exc_info.value.code == 409302
    assert exc_info.value.data == {"product_id": product.id, "stock": -1}


def test_integrity_check_accepts_zero_stock(db, customer, make_product, place_order):
    product = make_product(stock=2)
    result = place_order(customer, [(product, 2)])

    crud.check_stock_integrity(session=db, items=result.items)
    assert stock_of(db, product) == 0

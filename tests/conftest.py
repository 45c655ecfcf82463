from __future__ import annotations

from collections.abc import Callable, Generator
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine, delete

from app import crud
from app.api.deps import get_db
from app.api.schemas import OrderLineIn
from app.crud.order import OrderAggregate
from app.enums import UserRole
from app.main import app
from app.models import (
    Notification,
    Order,
    OrderItem,
    OrderStatusHistory,
    Product,
    User,
)
from tests.utils import FakeRedis, shipping_address


@pytest.fixture(scope="session")
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    return engine


@pytest.fixture(scope="function")
def db(engine) -> Generator[Session, None, None]:
    with Session(engine) as session:
        yield session
        # Clean tables after each test (children first).
        session.rollback()
        session.exec(delete(Notification))
        session.exec(delete(OrderStatusHistory))
        session.exec(delete(OrderItem))
        session.exec(delete(Order))
        session.exec(delete(Product))
        session.exec(delete(User))
        session.commit()


@pytest.fixture(autouse=True)
def fake_redis(monkeypatch) -> FakeRedis:
    fake = FakeRedis()
    monkeypatch.setattr("app.services.notification_service.get_redis", lambda: fake)
    monkeypatch.setattr("app.worker.notification_worker.get_redis", lambda: fake)
    return fake


@pytest.fixture(scope="function")
def client(engine) -> Generator[TestClient, None, None]:
    def _override_get_db() -> Generator[Session, None, None]:
        with Session(engine) as session:
            yield session

    app.dependency_overrides[get_db] = _override_get_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def customer(db) -> User:
    user = User(email="buyer@example.com", name="Test Buyer", phone="9800000000")
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def admin(db) -> User:
    user = User(email="admin@example.com", name="Admin", role=UserRole.ADMIN)
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def make_product(db) -> Callable[..., Product]:
    def _make(stock: int = 10, price: str = "100.00", name: str = "Star Map") -> Product:
        product = Product(name=name, price=Decimal(price), stock=stock)
        db.add(product)
        db.commit()
        db.refresh(product)
        return product

    return _make


@pytest.fixture
def place_order(db) -> Callable[..., OrderAggregate]:
    """通过 crud 直接下单（已提交），每个明细单价 100"""

    def _place(user: User, lines: list[tuple[Product, int]]) -> OrderAggregate:
        items = [
            OrderLineIn(product_id=p.id, quantity=q, price=Decimal("100.00")) for p, q in lines
        ]
        subtotal = sum((i.price * i.quantity for i in items), Decimal("0.00"))
        return crud.create_order(
            session=db,
            user_id=user.id,
            items=items,
            shipping=shipping_address(),
            payment_method="COD",
            subtotal=subtotal,
            shipping_cost=Decimal("0.00"),
            total=subtotal,
        )

    return _place

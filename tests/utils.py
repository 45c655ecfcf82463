from __future__ import annotations

from datetime import timedelta

from sqlmodel import Session

from app.api.schemas import ShippingAddressIn
from app.core import security
from app.models import Product, User


class FakeRedis:
    """只实现通知链路用到的 Streams 命令"""

    def __init__(self) -> None:
        self.messages: list[tuple[str, dict[str, str]]] = []
        self.acked: list[tuple[str, str, str]] = []
        self.fail = False

    def xadd(self, name: str, fields: dict[str, str]) -> str:
        if self.fail:
            raise ConnectionError("redis unavailable")
        self.messages.append((name, dict(fields)))
        return f"{len(self.messages)}-0"

    def xack(self, name: str, group: str, msg_id: str) -> int:
        self.acked.append((name, group, msg_id))
        return 1


def shipping_address() -> ShippingAddressIn:
    return ShippingAddressIn(
        first_name="Test",
        last_name="Buyer",
        phone="9800000000",
        email="buyer@example.com",
        address="Street 1",
        city="Kathmandu",
        district="Kathmandu",
        province="Bagmati",
    )


def auth_headers(user: User) -> dict[str, str]:
    token = security.create_access_token(user.id, timedelta(minutes=30))
    return {"Authorization": f"Bearer {token}"}


def stock_of(db: Session, product: Product) -> int:
    db.expire_all()
    return db.get(Product, product.id).stock

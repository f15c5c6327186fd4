import asyncio
import json
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional

import pytest
from fastapi.testclient import TestClient

from storefront.domain.models import (
    Order, OrderStatus, PaymentResult, Product, ProductCategory, ProductImage, User, UserRole
)
from storefront.domain.exceptions import PaymentProviderError, SignatureVerificationError
from storefront.application.interfaces import (
    CheckoutSession, NotificationSender, OrderRepository, PaymentEvent, PaymentGateway, PaymentSession,
    ProductRepository, UnitOfWork, UserRepository
)

VALID_SIGNATURE = "t=1,v1=valid"


class InMemoryStore:
    def __init__(self):
        self.products: dict[str, Product] = {}
        self.orders: dict[str, Order] = {}
        self.users: dict[str, User] = {}
        self.catalog_reads = 0


class FakeProductRepository(ProductRepository):
    def __init__(self, store: InMemoryStore, tx):
        self._store = store
        self._tx = tx

    async def get_by_id(self, product_id: str) -> Optional[Product]:
        return self._store.products.get(product_id)

    async def get_many(self, product_ids):
        self._store.catalog_reads += 1
        products = {pid: self._store.products[pid] for pid in product_ids if pid in self._store.products}
        # Yield so concurrent orders interleave between validation and reservation
        await asyncio.sleep(0)
        return products

    async def list_all(self, category, offset, limit):
        products = [p for p in self._store.products.values() if category is None or p.category == category]
        products.sort(key=lambda p: p.created_at, reverse=True)
        return products[offset:offset + limit]

    async def count(self, category) -> int:
        return len([p for p in self._store.products.values() if category is None or p.category == category])

    async def reserve_stock(self, product_id: str, quantity: int) -> bool:
        product = self._store.products.get(product_id)
        if not product or product.stock < quantity:
            return False
        self._store.products[product_id] = product.model_copy(
            update={"stock": product.stock - quantity, "in_stock": product.stock - quantity > 0}
        )
        self._tx.on_rollback(lambda: self._store.products.__setitem__(product_id, product))
        return True


class FakeUserRepository(UserRepository):
    def __init__(self, store: InMemoryStore):
        self._store = store

    async def get_by_id(self, user_id: str) -> Optional[User]:
        return self._store.users.get(user_id)


class FakeOrderRepository(OrderRepository):
    def __init__(self, store: InMemoryStore, tx):
        self._store = store
        self._tx = tx

    async def get_by_id(self, order_id: str) -> Optional[Order]:
        return self._store.orders.get(order_id)

    async def create(self, order: Order) -> None:
        self._store.orders[order.id] = order
        self._tx.on_rollback(lambda: self._store.orders.pop(order.id, None))

    async def list_by_user(self, user_id: str):
        orders = [o for o in self._store.orders.values() if o.user_id == user_id]
        return sorted(orders, key=lambda o: o.created_at, reverse=True)

    def _filtered(self, status, is_paid):
        return [
            o for o in self._store.orders.values()
            if (status is None or o.status == status) and (is_paid is None or o.is_paid == is_paid)
        ]

    async def list_all(self, status, is_paid, offset, limit):
        orders = sorted(self._filtered(status, is_paid), key=lambda o: o.created_at, reverse=True)
        return orders[offset:offset + limit]

    async def count(self, status, is_paid) -> int:
        return len(self._filtered(status, is_paid))

    def _replace(self, order_id: str, **changes) -> None:
        previous = self._store.orders[order_id]
        changes["updated_at"] = datetime.now(timezone.utc)
        self._store.orders[order_id] = previous.model_copy(update=changes)
        self._tx.on_rollback(lambda: self._store.orders.__setitem__(order_id, previous))

    async def update_status(self, order_id: str, expected: OrderStatus, status: OrderStatus) -> bool:
        order = self._store.orders.get(order_id)
        if not order or order.status != expected:
            return False
        changes = {"status": status}
        if status == OrderStatus.DELIVERED:
            changes.update(is_delivered=True, delivered_at=datetime.now(timezone.utc))
        self._replace(order_id, **changes)
        return True

    async def mark_paid(self, order_id: str, payment_result: PaymentResult) -> bool:
        order = self._store.orders.get(order_id)
        if not order or order.is_paid:
            return False
        status = OrderStatus.PROCESSING if order.status == OrderStatus.PENDING else order.status
        self._replace(
            order_id,
            is_paid=True,
            paid_at=datetime.now(timezone.utc),
            payment_result=payment_result,
            status=status
        )
        return True

    async def update_session_id(self, order_id: str, session_id: str) -> None:
        self._replace(order_id, external_session_id=session_id)


class FakeTransaction(UnitOfWork):
    def __init__(self, store: InMemoryStore, uow):
        self._uow = uow
        self._undo = []
        self.products = FakeProductRepository(store, self)
        self.orders = FakeOrderRepository(store, self)
        self.users = FakeUserRepository(store)

    def on_rollback(self, undo) -> None:
        self._undo.append(undo)

    async def commit(self):
        self._undo.clear()
        self._uow.commits += 1

    async def rollback(self):
        while self._undo:
            self._undo.pop()()


class FakeUnitOfWork:
    """Writes apply immediately and are undone unless committed"""

    def __init__(self, store: InMemoryStore):
        self.store = store
        self.commits = 0

    @asynccontextmanager
    async def __call__(self):
        tx = FakeTransaction(self.store, self)
        try:
            yield tx
        finally:
            await tx.rollback()


class FakePaymentGateway(PaymentGateway):
    def __init__(self):
        self.sessions: dict[str, PaymentSession] = {}
        self.created: list[Order] = []
        self.fail = False

    async def create_checkout_session(self, order: Order, customer_email: str) -> CheckoutSession:
        if self.fail:
            raise PaymentProviderError("Error creating payment session: card processor down")
        session_id = f"cs_test_{len(self.created) + 1}"
        self.created.append(order)
        self.sessions[session_id] = PaymentSession(
            id=session_id,
            payment_status="unpaid",
            order_id=order.id,
            user_id=order.user_id,
            payment_intent=None,
            customer_email=customer_email,
            amount_total=int((order.total_price * 100).to_integral_value())
        )
        return CheckoutSession(id=session_id, url=f"https://checkout.stripe.test/{session_id}")

    def pay(self, session_id: str, payment_intent: str = "pi_123") -> None:
        session = self.sessions[session_id]
        session.payment_status = "paid"
        session.payment_intent = payment_intent

    async def retrieve_session(self, session_id: str) -> PaymentSession:
        if session_id not in self.sessions:
            raise PaymentProviderError(f"No such checkout.session: {session_id}")
        return self.sessions[session_id]

    def construct_event(self, payload: bytes, signature: str) -> PaymentEvent:
        if signature != VALID_SIGNATURE:
            raise SignatureVerificationError("Webhook Error: No signatures found matching the expected signature")
        event = json.loads(payload)
        obj = event["data"]["object"]
        session = None
        if event["type"].startswith("checkout.session."):
            metadata = obj.get("metadata") or {}
            session = PaymentSession(
                id=obj["id"],
                payment_status=obj.get("payment_status", "paid"),
                order_id=metadata.get("orderId"),
                user_id=metadata.get("userId"),
                payment_intent=obj.get("payment_intent"),
                customer_email=(obj.get("customer_details") or {}).get("email"),
                amount_total=obj.get("amount_total", 0)
            )
        return PaymentEvent(id=event["id"], type=event["type"], session=session, object_id=obj.get("id"))


class FakeNotificationSender(NotificationSender):
    def __init__(self):
        self.sent: list[tuple[str, str]] = []
        self.fail = False

    async def send_order_confirmation(self, user: User, order: Order) -> bool:
        if self.fail:
            raise RuntimeError("smtp relay unreachable")
        self.sent.append((user.email, order.id))
        return True


def make_product(product_id: str, price: str = "10.00", stock: int = 5, **extra) -> Product:
    now = datetime.now(timezone.utc)
    return Product(
        id=product_id,
        name=extra.pop("name", f"Product {product_id}"),
        price=Decimal(price),
        category=extra.pop("category", ProductCategory.GRAINS),
        stock=stock,
        in_stock=stock > 0,
        images=[ProductImage(url=f"https://cdn.test/{product_id}.png")],
        created_at=now,
        updated_at=now,
        **extra
    )


def webhook_payload(event_type: str, order_id: Optional[str], session_id: str = "cs_test_1", event_id: str = "evt_1") -> bytes:
    return json.dumps({
        "id": event_id,
        "type": event_type,
        "data": {
            "object": {
                "id": session_id if event_type.startswith("checkout") else "pi_failed",
                "payment_status": "paid",
                "payment_intent": "pi_webhook",
                "metadata": {"orderId": order_id, "userId": "u-customer"} if order_id else {},
                "customer_details": {"email": "ada@example.com"},
            }
        }
    }).encode()


@pytest.fixture
def store():
    store = InMemoryStore()
    store.users = {
        "u-customer": User(id="u-customer", name="Ada Obi", email="ada@example.com"),
        "u-other": User(id="u-other", name="Chidi Eze", email="chidi@example.com"),
        "u-admin": User(id="u-admin", name="Admin", email="admin@example.com", role=UserRole.ADMIN),
        "u-inactive": User(id="u-inactive", name="Gone", email="gone@example.com", is_active=False),
    }
    store.products = {
        "p-rice": make_product("p-rice", price="12.50", stock=5, name="Jollof Rice Mix"),
        "p-pepper": make_product("p-pepper", price="3.25", stock=10, name="Scotch Bonnet", category=ProductCategory.SPICES),
        "p-empty": make_product("p-empty", price="8.00", stock=0, name="Garri"),
    }
    return store


@pytest.fixture
def uow(store):
    return FakeUnitOfWork(store)


@pytest.fixture
def gateway():
    return FakePaymentGateway()


@pytest.fixture
def sender():
    return FakeNotificationSender()


@pytest.fixture
def customer(store):
    return store.users["u-customer"]


@pytest.fixture
def other_user(store):
    return store.users["u-other"]


@pytest.fixture
def admin(store):
    return store.users["u-admin"]


@pytest.fixture
def client(uow, gateway, sender, monkeypatch):
    from storefront.main import app
    from storefront.config import settings
    from storefront.presentation import dependencies

    monkeypatch.setattr(settings, "API_TOKEN", "callback-secret")
    app.dependency_overrides[dependencies.get_uow] = lambda: uow
    app.dependency_overrides[dependencies.get_payment_gateway] = lambda: gateway
    app.dependency_overrides[dependencies.get_notification_sender] = lambda: sender
    yield TestClient(app, raise_server_exceptions=False)
    app.dependency_overrides.clear()

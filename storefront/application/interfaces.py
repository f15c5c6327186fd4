from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional, List
from storefront.domain.models import Order, OrderStatus, PaymentResult, Product, User


class ProductRepository(ABC):
    @abstractmethod
    async def get_by_id(self, product_id: str) -> Optional[Product]:
        pass

    @abstractmethod
    async def get_many(self, product_ids: List[str]) -> dict[str, Product]:
        pass

    @abstractmethod
    async def list_all(self, category: Optional[str], offset: int, limit: int) -> List[Product]:
        pass

    @abstractmethod
    async def count(self, category: Optional[str]) -> int:
        pass

    @abstractmethod
    async def reserve_stock(self, product_id: str, quantity: int) -> bool:
        """Decrement stock by quantity only if enough is left. Returns False otherwise."""
        pass


class UserRepository(ABC):
    @abstractmethod
    async def get_by_id(self, user_id: str) -> Optional[User]:
        pass


class OrderRepository(ABC):
    @abstractmethod
    async def get_by_id(self, order_id: str) -> Optional[Order]:
        pass

    @abstractmethod
    async def create(self, order: Order) -> None:
        pass

    @abstractmethod
    async def list_by_user(self, user_id: str) -> List[Order]:
        pass

    @abstractmethod
    async def list_all(self, status: Optional[OrderStatus], is_paid: Optional[bool], offset: int, limit: int) -> List[Order]:
        pass

    @abstractmethod
    async def count(self, status: Optional[OrderStatus], is_paid: Optional[bool]) -> int:
        pass

    @abstractmethod
    async def update_status(self, order_id: str, expected: OrderStatus, status: OrderStatus) -> bool:
        """Compare-and-set on status. Returns False if the stored status is no longer `expected`."""
        pass

    @abstractmethod
    async def mark_paid(self, order_id: str, payment_result: PaymentResult) -> bool:
        """Apply the paid transition only to an unpaid order. Returns True if a row changed."""
        pass

    @abstractmethod
    async def update_session_id(self, order_id: str, session_id: str) -> None:
        pass


class UnitOfWork(ABC):
    """Repositories sharing one transaction; nothing persists without commit()"""
    orders: OrderRepository
    products: ProductRepository
    users: UserRepository

    @abstractmethod
    async def commit(self):
        pass

    @abstractmethod
    async def rollback(self):
        pass


@dataclass
class CheckoutSession:
    id: str
    url: str


@dataclass
class PaymentSession:
    """Provider-side view of a checkout session"""
    id: str
    payment_status: str
    order_id: Optional[str]
    user_id: Optional[str]
    payment_intent: Optional[str]
    customer_email: Optional[str]
    amount_total: int = 0


@dataclass
class PaymentEvent:
    id: str
    type: str
    session: Optional[PaymentSession] = None
    object_id: Optional[str] = None


class PaymentGateway(ABC):
    @abstractmethod
    async def create_checkout_session(self, order: Order, customer_email: str) -> CheckoutSession:
        pass

    @abstractmethod
    async def retrieve_session(self, session_id: str) -> PaymentSession:
        pass

    @abstractmethod
    def construct_event(self, payload: bytes, signature: str) -> PaymentEvent:
        """Verify the provider signature and parse the event. Raises SignatureVerificationError."""
        pass


class NotificationSender(ABC):
    @abstractmethod
    async def send_order_confirmation(self, user: User, order: Order) -> bool:
        pass

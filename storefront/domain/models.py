from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional
from pydantic import BaseModel, Field

CENT = Decimal("0.01")


class OrderStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


# cancelled is reachable from every non-terminal status
ORDER_TRANSITIONS: dict[OrderStatus, frozenset[OrderStatus]] = {
    OrderStatus.PENDING: frozenset({OrderStatus.PROCESSING, OrderStatus.CANCELLED}),
    OrderStatus.PROCESSING: frozenset({OrderStatus.SHIPPED, OrderStatus.CANCELLED}),
    OrderStatus.SHIPPED: frozenset({OrderStatus.DELIVERED, OrderStatus.CANCELLED}),
    OrderStatus.DELIVERED: frozenset(),
    OrderStatus.CANCELLED: frozenset(),
}


class ProductCategory(str, Enum):
    GRAINS = "grains"
    SPICES = "spices"
    VEGETABLES = "vegetables"
    MEATS = "meats"
    SNACKS = "snacks"
    BEVERAGES = "beverages"
    OILS = "oils"
    FLOURS = "flours"
    SPECIALITIES = "specialities"
    OTHERS = "others"


class UserRole(str, Enum):
    USER = "user"
    ADMIN = "admin"


class ProductImage(BaseModel):
    url: str
    public_id: Optional[str] = None


class Product(BaseModel):
    """Domain Entity - catalog product"""
    id: str
    name: str
    description: str = ""
    price: Decimal = Field(ge=0)
    category: ProductCategory
    stock: int = Field(ge=0)
    in_stock: bool = True
    images: list[ProductImage] = []
    unit: str = "piece"
    brand: Optional[str] = None
    origin: Optional[str] = None
    featured: bool = False
    created_at: datetime
    updated_at: datetime

    @property
    def main_image(self) -> str:
        return self.images[0].url if self.images else ""


class User(BaseModel):
    """Domain Entity - account as seen by the order service"""
    id: str
    name: str
    email: str
    role: UserRole = UserRole.USER
    is_active: bool = True

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN


class ShippingAddress(BaseModel):
    street: str = "Not provided"
    city: str = "Not provided"
    state: str = "Not provided"
    zip_code: str = "00000"
    country: str = "USA"


class OrderItem(BaseModel):
    """Value Object - snapshot of a product at the time it was sold"""
    product_id: str
    name: str
    quantity: int = Field(ge=1)
    price: Decimal = Field(ge=0)
    image: str = ""

    @property
    def subtotal(self) -> Decimal:
        return self.price * self.quantity


class PaymentResult(BaseModel):
    id: Optional[str] = None
    status: Optional[str] = None
    update_time: Optional[str] = None
    email_address: Optional[str] = None


class PriceBreakdown(BaseModel):
    items_price: Decimal
    shipping_price: Decimal = Decimal("0")
    tax_price: Decimal = Decimal("0")
    total_price: Decimal

    def is_consistent(self) -> bool:
        """Business rule: totals are whole cents, non-negative and add up"""
        parts = (self.items_price, self.shipping_price, self.tax_price, self.total_price)
        if any(p < 0 or p != p.quantize(CENT) for p in parts):
            return False
        return self.total_price == self.items_price + self.shipping_price + self.tax_price


class Order(BaseModel):
    """Domain Entity - order"""
    id: str
    user_id: str
    order_items: list[OrderItem]
    shipping_address: ShippingAddress
    payment_method: str
    items_price: Decimal
    shipping_price: Decimal
    tax_price: Decimal
    total_price: Decimal
    status: OrderStatus = OrderStatus.PENDING
    is_paid: bool = False
    paid_at: Optional[datetime] = None
    payment_result: Optional[PaymentResult] = None
    is_delivered: bool = False
    delivered_at: Optional[datetime] = None
    external_session_id: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    def can_transition_to(self, new_status: OrderStatus) -> bool:
        """Business rule: follow the order status graph"""
        return new_status in ORDER_TRANSITIONS[self.status]

    def is_owned_by(self, user: User) -> bool:
        return self.user_id == user.id

    @property
    def reference(self) -> str:
        return self.id[-8:].upper()

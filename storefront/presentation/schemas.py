from pydantic import BaseModel, ConfigDict, Field, AliasChoices
from pydantic.alias_generators import to_camel
from datetime import datetime
from decimal import Decimal
from typing import Optional

from storefront.domain.models import (
    OrderStatus, PaymentResult, PriceBreakdown, Product, ProductCategory, ShippingAddress
)
from storefront.application.create_order import LineItemDTO
from storefront.application.get_order import OrderView


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# Requests

class LineItemRequest(CamelModel):
    product: str = Field(validation_alias=AliasChoices("product", "productId"))
    quantity: int = Field(ge=1)

    def to_dto(self) -> LineItemDTO:
        return LineItemDTO(product_id=self.product, quantity=self.quantity)


class ShippingAddressRequest(CamelModel):
    street: Optional[str] = Field(default=None, validation_alias=AliasChoices("street", "address"))
    city: Optional[str] = None
    state: Optional[str] = None
    zip_code: Optional[str] = None
    country: Optional[str] = None

    def to_domain(self) -> ShippingAddress:
        """Fill the blanks with the default address values"""
        return ShippingAddress(**{k: v for k, v in self.model_dump().items() if v})


class CreateOrderRequest(CamelModel):
    order_items: list[LineItemRequest] = []
    shipping_address: ShippingAddressRequest = Field(default_factory=ShippingAddressRequest)
    payment_method: str
    items_price: Decimal
    shipping_price: Decimal = Decimal("0")
    tax_price: Decimal = Decimal("0")
    total_price: Decimal

    def prices(self) -> PriceBreakdown:
        return PriceBreakdown(
            items_price=self.items_price,
            shipping_price=self.shipping_price,
            tax_price=self.tax_price,
            total_price=self.total_price
        )


class UpdateStatusRequest(BaseModel):
    status: OrderStatus


class PaymentResultRequest(BaseModel):
    """Body sent by the payment provider callback"""
    id: str
    status: str
    update_time: Optional[str] = None
    email_address: Optional[str] = None

    def to_domain(self) -> PaymentResult:
        return PaymentResult(**self.model_dump())


class CheckoutSessionRequest(CamelModel):
    items: list[LineItemRequest] = []
    shipping_address: ShippingAddressRequest = Field(default_factory=ShippingAddressRequest)
    delivery_fee: Optional[Decimal] = None


class VerifySessionRequest(CamelModel):
    session_id: str = ""


# Responses

class ProductSummary(CamelModel):
    id: str
    name: str
    price: float


class UserSummary(CamelModel):
    id: str
    name: str
    email: str


class OrderItemResponse(CamelModel):
    product: ProductSummary | str
    name: str
    quantity: int
    price: float
    image: str


class ShippingAddressResponse(CamelModel):
    street: str
    city: str
    state: str
    zip_code: str
    country: str


class PaymentResultResponse(BaseModel):
    id: Optional[str] = None
    status: Optional[str] = None
    update_time: Optional[str] = None
    email_address: Optional[str] = None


class OrderResponse(CamelModel):
    id: str
    user: UserSummary | str
    order_items: list[OrderItemResponse]
    shipping_address: ShippingAddressResponse
    payment_method: str
    items_price: float
    shipping_price: float
    tax_price: float
    total_price: float
    status: OrderStatus
    is_paid: bool
    paid_at: Optional[datetime] = None
    payment_result: Optional[PaymentResultResponse] = None
    is_delivered: bool
    delivered_at: Optional[datetime] = None
    external_session_id: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_view(cls, view: OrderView):
        order = view.order
        items = []
        for item in order.order_items:
            current = view.products.get(item.product_id)
            items.append(OrderItemResponse(
                product=ProductSummary(id=current.id, name=current.name, price=float(current.price)) if current else item.product_id,
                name=item.name,
                quantity=item.quantity,
                price=float(item.price),
                image=item.image
            ))
        owner = view.owner
        return cls(
            id=order.id,
            user=UserSummary(id=owner.id, name=owner.name, email=owner.email) if owner else order.user_id,
            order_items=items,
            shipping_address=ShippingAddressResponse(**order.shipping_address.model_dump()),
            payment_method=order.payment_method,
            items_price=float(order.items_price),
            shipping_price=float(order.shipping_price),
            tax_price=float(order.tax_price),
            total_price=float(order.total_price),
            status=order.status,
            is_paid=order.is_paid,
            paid_at=order.paid_at,
            payment_result=PaymentResultResponse(**order.payment_result.model_dump()) if order.payment_result else None,
            is_delivered=order.is_delivered,
            delivered_at=order.delivered_at,
            external_session_id=order.external_session_id,
            created_at=order.created_at,
            updated_at=order.updated_at
        )

    @classmethod
    def from_domain(cls, order):
        return cls.from_view(OrderView(order=order))


class ProductImageResponse(CamelModel):
    url: str
    public_id: Optional[str] = None


class ProductResponse(CamelModel):
    id: str
    name: str
    description: str
    price: float
    category: ProductCategory
    stock: int
    in_stock: bool
    images: list[ProductImageResponse]
    unit: str
    brand: Optional[str] = None
    origin: Optional[str] = None
    featured: bool
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_domain(cls, product: Product):
        data = product.model_dump()
        data["price"] = float(product.price)
        return cls(**data)


def envelope(data=None, message: Optional[str] = None, **extra) -> dict:
    """Success envelope shared by every route"""
    body = {"success": True}
    if message is not None:
        body["message"] = message
    body.update(extra)
    if data is not None:
        body["data"] = data
    return body


def dump(model: BaseModel) -> dict:
    return model.model_dump(mode="json", by_alias=True)

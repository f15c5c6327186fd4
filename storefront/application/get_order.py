import logging
import math
from typing import Optional
from pydantic import BaseModel

from storefront.domain.models import Order, OrderStatus, Product, User
from storefront.domain.exceptions import ForbiddenError, OrderNotFoundError, ValidationError

logger = logging.getLogger(__name__)


class OrderView(BaseModel):
    """Order plus the display data resolved for it"""
    order: Order
    owner: Optional[User] = None
    products: dict[str, Product] = {}


class OrderPage(BaseModel):
    orders: list[OrderView]
    total: int
    page: int
    pages: int


async def _resolve_products(uow, orders: list[Order]) -> dict[str, Product]:
    product_ids = {item.product_id for order in orders for item in order.order_items}
    return await uow.products.get_many(list(product_ids))


class GetOrderUseCase:
    def __init__(self, unit_of_work):
        self._uow = unit_of_work

    async def __call__(self, order_id: str, requesting_user: User) -> OrderView:
        async with self._uow() as uow:
            order = await uow.orders.get_by_id(order_id)
            if requesting_user.is_admin:
                if not order:
                    raise OrderNotFoundError(f"Order {order_id} not found")
            elif not order or not order.is_owned_by(requesting_user):
                # Same answer for foreign and missing orders
                logger.warning(f"User {requesting_user.id} denied access to order {order_id}")
                raise ForbiddenError("Not authorized to view this order")

            owner = await uow.users.get_by_id(order.user_id)
            products = await _resolve_products(uow, [order])
            return OrderView(order=order, owner=owner, products=products)


class GetMyOrdersUseCase:
    def __init__(self, unit_of_work):
        self._uow = unit_of_work

    async def __call__(self, user_id: str) -> list[OrderView]:
        async with self._uow() as uow:
            orders = await uow.orders.list_by_user(user_id)
            products = await _resolve_products(uow, orders)
            return [OrderView(order=order, products=products) for order in orders]


class ListOrdersUseCase:
    def __init__(self, unit_of_work):
        self._uow = unit_of_work

    async def __call__(
        self,
        status: Optional[OrderStatus] = None,
        is_paid: Optional[bool] = None,
        page: int = 1,
        page_size: int = 10
    ) -> OrderPage:
        if page < 1 or page_size < 1:
            raise ValidationError("page and limit must be positive")

        async with self._uow() as uow:
            orders = await uow.orders.list_all(status, is_paid, (page - 1) * page_size, page_size)
            total = await uow.orders.count(status, is_paid)

            views = []
            for order in orders:
                owner = await uow.users.get_by_id(order.user_id)
                views.append(OrderView(order=order, owner=owner))

            return OrderPage(orders=views, total=total, page=page, pages=math.ceil(total / page_size))

import logging
from collections import Counter
from pydantic import BaseModel
from datetime import datetime, timezone
from typing import Optional
import uuid
from decimal import Decimal

from storefront.domain.models import Order, OrderItem, OrderStatus, PriceBreakdown, ShippingAddress
from storefront.domain.exceptions import InsufficientStockError, ProductNotFoundError, ValidationError


logger = logging.getLogger(__name__)


class LineItemDTO(BaseModel):
    product_id: str
    quantity: int


class CreateOrderDTO(BaseModel):
    user_id: str
    line_items: list[LineItemDTO]
    shipping_address: ShippingAddress
    payment_method: str
    prices: PriceBreakdown
    external_session_id: Optional[str] = None
    # items and total are recomputed from the catalog snapshot, shipping and tax are kept
    price_from_catalog: bool = False


class CreateOrderUseCase:
    def __init__(self, unit_of_work):
        self._uow = unit_of_work

    async def __call__(self, order_data: CreateOrderDTO) -> Order:
        logger.info(f"Creating order for user {order_data.user_id} with {len(order_data.line_items)} line items")

        # 1. Input checks
        if not order_data.line_items:
            raise ValidationError("No order items provided")
        if any(line.quantity < 1 for line in order_data.line_items):
            raise ValidationError("Quantity must be at least 1")
        if not order_data.prices.is_consistent():
            raise ValidationError("Order prices must be non-negative whole cents and total must equal items + shipping + tax")

        requested = Counter()
        for line in order_data.line_items:
            requested[line.product_id] += line.quantity

        async with self._uow() as uow:
            # 2. Validate every line before touching stock
            products = await uow.products.get_many(list(requested))
            for line in order_data.line_items:
                product = products.get(line.product_id)
                if not product:
                    raise ProductNotFoundError(f"Product {line.product_id} not found")
                if product.stock < requested[line.product_id]:
                    raise InsufficientStockError(product.name, product.stock, requested[line.product_id])

            # 3. Snapshot catalog data into the order
            order_items = [
                OrderItem(
                    product_id=line.product_id,
                    name=products[line.product_id].name,
                    quantity=line.quantity,
                    price=products[line.product_id].price,
                    image=products[line.product_id].main_image
                )
                for line in order_data.line_items
            ]
            prices = order_data.prices
            if order_data.price_from_catalog:
                items_price = sum((item.subtotal for item in order_items), Decimal("0"))
                prices = PriceBreakdown(
                    items_price=items_price,
                    shipping_price=prices.shipping_price,
                    tax_price=prices.tax_price,
                    total_price=items_price + prices.shipping_price + prices.tax_price
                )

            now = datetime.now(timezone.utc)
            order = Order(
                id=str(uuid.uuid4()),
                user_id=order_data.user_id,
                order_items=order_items,
                shipping_address=order_data.shipping_address,
                payment_method=order_data.payment_method,
                items_price=prices.items_price,
                shipping_price=prices.shipping_price,
                tax_price=prices.tax_price,
                total_price=prices.total_price,
                status=OrderStatus.PENDING,
                is_paid=False,
                external_session_id=order_data.external_session_id,
                created_at=now,
                updated_at=now
            )
            await uow.orders.create(order)

            # 4. Reserve stock; a lost race rolls back the order and earlier lines
            for product_id, quantity in requested.items():
                if not await uow.products.reserve_stock(product_id, quantity):
                    await uow.rollback()
                    current = await uow.products.get_by_id(product_id)
                    available = current.stock if current else 0
                    logger.warning(f"Stock for {product_id} changed concurrently, order for user {order_data.user_id} rejected")
                    raise InsufficientStockError(products[product_id].name, available, quantity)

            await uow.commit()

        logger.info(f"Order created: {order.id}, total {order.total_price}")
        return order

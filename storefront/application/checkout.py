import logging
from decimal import Decimal
from dataclasses import dataclass

from storefront.domain.models import PriceBreakdown, ShippingAddress, User
from storefront.domain.exceptions import ValidationError
from storefront.application.create_order import CreateOrderUseCase, CreateOrderDTO, LineItemDTO
from storefront.application.interfaces import PaymentGateway

logger = logging.getLogger(__name__)


@dataclass
class CheckoutResult:
    session_id: str
    url: str
    order_id: str


class CreateCheckoutSessionUseCase:
    def __init__(self, unit_of_work, payment_gateway: PaymentGateway, default_delivery_fee: Decimal):
        self._uow = unit_of_work
        self._gateway = payment_gateway
        self._default_delivery_fee = default_delivery_fee

    async def __call__(
        self,
        user: User,
        items: list[LineItemDTO],
        shipping_address: ShippingAddress,
        delivery_fee: Decimal | None = None
    ) -> CheckoutResult:
        if not items:
            raise ValidationError("No items provided")
        fee = self._default_delivery_fee if delivery_fee is None else delivery_fee
        if fee < 0:
            raise ValidationError("Delivery fee cannot be negative")

        # 1. Order with stock reservation, priced from the same catalog read as its snapshots
        order = await CreateOrderUseCase(self._uow)(CreateOrderDTO(
            user_id=user.id,
            line_items=items,
            shipping_address=shipping_address,
            payment_method="stripe",
            prices=PriceBreakdown(items_price=Decimal("0"), shipping_price=fee, total_price=fee),
            price_from_catalog=True
        ))

        # 2. Checkout session at the provider, correlated by order id
        session = await self._gateway.create_checkout_session(order, customer_email=user.email)

        async with self._uow() as uow:
            await uow.orders.update_session_id(order.id, session.id)
            await uow.commit()

        logger.info(f"Checkout session {session.id} created for order {order.id}")
        return CheckoutResult(session_id=session.id, url=session.url, order_id=order.id)

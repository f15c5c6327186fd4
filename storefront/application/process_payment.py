import logging
from dataclasses import dataclass
from typing import Optional

from storefront.domain.models import Order, PaymentResult
from storefront.domain.exceptions import OrderNotFoundError
from storefront.application.interfaces import NotificationSender

logger = logging.getLogger(__name__)


@dataclass
class PaymentConfirmation:
    order: Order
    applied: bool


class MarkOrderPaidUseCase:
    """Moves an order to paid. Safe to call any number of times from any confirmation path."""

    def __init__(self, unit_of_work, notifications: Optional[NotificationSender] = None):
        self._uow = unit_of_work
        self._notifications = notifications

    async def __call__(self, order_id: str, payment_result: PaymentResult) -> PaymentConfirmation:
        logger.info(f"Marking order {order_id} paid, provider reference {payment_result.id}")

        async with self._uow() as uow:
            applied = await uow.orders.mark_paid(order_id, payment_result)
            if applied:
                await uow.commit()

            order = await uow.orders.get_by_id(order_id)
            if not order:
                raise OrderNotFoundError(f"Order {order_id} not found")

        if applied:
            logger.info(f"Order {order_id} marked paid")
            if self._notifications:
                await send_confirmation(self._uow, self._notifications, order)
        else:
            logger.info(f"Order {order_id} was already paid at {order.paid_at}, nothing to do")
        return PaymentConfirmation(order=order, applied=applied)


async def send_confirmation(uow_factory, sender: NotificationSender, order: Order) -> bool:
    """Best-effort confirmation email; never raises."""
    try:
        async with uow_factory() as uow:
            user = await uow.users.get_by_id(order.user_id)
        if not user:
            logger.warning(f"No user {order.user_id} to notify for order {order.id}")
            return False
        sent = await sender.send_order_confirmation(user, order)
    except Exception as e:
        logger.error(f"Confirmation email for order {order.id} failed: {e}", exc_info=True)
        return False

    if sent:
        logger.info(f"Confirmation email sent to {user.email} for order {order.id}")
    else:
        logger.warning(f"Confirmation email not sent for order {order.id}")
    return sent

import logging

from storefront.domain.models import Order, OrderStatus
from storefront.domain.exceptions import InvalidStatusTransitionError, OrderNotFoundError

logger = logging.getLogger(__name__)


class UpdateOrderStatusUseCase:
    def __init__(self, unit_of_work):
        self._uow = unit_of_work

    async def __call__(self, order_id: str, new_status: OrderStatus) -> Order:
        async with self._uow() as uow:
            order = await uow.orders.get_by_id(order_id)
            if not order:
                raise OrderNotFoundError(f"Order {order_id} not found")

            if order.status == new_status:
                logger.info(f"Order {order_id} already {new_status.value}")
                return order

            if not order.can_transition_to(new_status):
                logger.warning(f"Rejected transition {order.status.value} -> {new_status.value} for order {order_id}")
                raise InvalidStatusTransitionError(order.status, new_status)

            # Guarded by the status read above
            if not await uow.orders.update_status(order_id, order.status, new_status):
                raise InvalidStatusTransitionError(order.status, new_status)
            await uow.commit()

            logger.info(f"Order {order_id} moved {order.status.value} -> {new_status.value}")
            return await uow.orders.get_by_id(order_id)

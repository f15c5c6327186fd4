import logging
from dataclasses import dataclass
from typing import Optional

from storefront.domain.models import Order, PaymentResult, User
from storefront.domain.exceptions import ForbiddenError, OrderNotFoundError, ValidationError
from storefront.application.interfaces import NotificationSender, PaymentEvent, PaymentGateway, PaymentSession
from storefront.application.process_payment import MarkOrderPaidUseCase

logger = logging.getLogger(__name__)

SESSION_COMPLETED = "checkout.session.completed"
PAYMENT_FAILED = "payment_intent.payment_failed"


@dataclass
class VerificationResult:
    session: PaymentSession
    order: Optional[Order] = None

    @property
    def is_paid(self) -> bool:
        return self.session.payment_status == "paid"


class VerifyPaymentSessionUseCase:
    """User-initiated confirmation: asks the provider for the authoritative session state."""

    def __init__(self, unit_of_work, payment_gateway: PaymentGateway, notifications: NotificationSender):
        self._uow = unit_of_work
        self._gateway = payment_gateway
        self._notifications = notifications

    async def __call__(self, session_id: str, requesting_user: User) -> VerificationResult:
        if not session_id:
            raise ValidationError("Session ID required")

        session = await self._gateway.retrieve_session(session_id)
        if session.payment_status != "paid":
            logger.info(f"Session {session_id} not paid yet: {session.payment_status}")
            return VerificationResult(session=session)

        if not session.order_id:
            logger.warning(f"Paid session {session_id} carries no order id")
            return VerificationResult(session=session)

        async with self._uow() as uow:
            order = await uow.orders.get_by_id(session.order_id)
        if not order:
            raise OrderNotFoundError(f"Order {session.order_id} not found")
        if not order.is_owned_by(requesting_user) and not requesting_user.is_admin:
            raise ForbiddenError("Not authorized to verify this payment")

        confirmation = await MarkOrderPaidUseCase(self._uow, self._notifications)(
            order.id,
            PaymentResult(
                id=session.payment_intent,
                status=session.payment_status,
                email_address=session.customer_email
            )
        )
        return VerificationResult(session=session, order=confirmation.order)


class HandlePaymentWebhookUseCase:
    """Provider-initiated confirmation. The signature is checked before anything else."""

    def __init__(self, unit_of_work, payment_gateway: PaymentGateway, notifications: NotificationSender):
        self._uow = unit_of_work
        self._gateway = payment_gateway
        self._notifications = notifications

    async def __call__(self, payload: bytes, signature: str) -> PaymentEvent:
        event = self._gateway.construct_event(payload, signature)
        logger.info(f"Webhook event {event.id} received: {event.type}")

        if event.type == SESSION_COMPLETED:
            await self._on_session_completed(event)
        elif event.type == PAYMENT_FAILED:
            # No automatic cancellation, the order stays pending
            logger.warning(f"Payment failed: {event.object_id}")
        else:
            logger.info(f"Unhandled event type: {event.type}")

        return event

    async def _on_session_completed(self, event: PaymentEvent) -> None:
        session = event.session
        if not session or not session.order_id:
            logger.warning(f"Event {event.id} has no order id in metadata, skipped")
            return

        try:
            await MarkOrderPaidUseCase(self._uow, self._notifications)(
                session.order_id,
                PaymentResult(
                    id=session.payment_intent,
                    status="completed",
                    email_address=session.customer_email
                )
            )
        except OrderNotFoundError:
            logger.warning(f"Event {event.id} refers to unknown order {session.order_id}")

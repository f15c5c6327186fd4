import asyncio
import logging
from decimal import Decimal, ROUND_HALF_UP
import stripe

from storefront.domain.models import Order
from storefront.domain.exceptions import PaymentProviderError, SignatureVerificationError
from storefront.application.interfaces import CheckoutSession, PaymentEvent, PaymentGateway, PaymentSession

logger = logging.getLogger(__name__)


def _to_cents(amount: Decimal) -> int:
    return int((amount * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


class StripePaymentGateway(PaymentGateway):
    def __init__(self, secret_key: str, webhook_secret: str, frontend_url: str, currency: str = "usd"):
        self._secret_key = secret_key
        self._webhook_secret = webhook_secret
        self._frontend_url = frontend_url.rstrip("/")
        self._currency = currency

    async def create_checkout_session(self, order: Order, customer_email: str) -> CheckoutSession:
        line_items = [
            {
                "price_data": {
                    "currency": self._currency,
                    "product_data": {
                        "name": item.name,
                        "images": [item.image] if item.image.startswith("http") else [],
                    },
                    "unit_amount": _to_cents(item.price),
                },
                "quantity": item.quantity,
            }
            for item in order.order_items
        ]
        if order.shipping_price > 0:
            line_items.append({
                "price_data": {
                    "currency": self._currency,
                    "product_data": {"name": "Delivery Fee"},
                    "unit_amount": _to_cents(order.shipping_price),
                },
                "quantity": 1,
            })

        try:
            session = await asyncio.to_thread(
                stripe.checkout.Session.create,
                api_key=self._secret_key,
                payment_method_types=["card"],
                line_items=line_items,
                mode="payment",
                success_url=f"{self._frontend_url}/checkout/success?session_id={{CHECKOUT_SESSION_ID}}",
                cancel_url=f"{self._frontend_url}/cart",
                customer_email=customer_email,
                metadata={"orderId": order.id, "userId": order.user_id},
                idempotency_key=f"checkout_{order.id}",
            )
        except stripe.StripeError as e:
            logger.error(f"Stripe session error for order {order.id}: {e}")
            raise PaymentProviderError(f"Error creating payment session: {e.user_message or str(e)}")

        return CheckoutSession(id=session.id, url=session.url)

    async def retrieve_session(self, session_id: str) -> PaymentSession:
        try:
            session = await asyncio.to_thread(
                stripe.checkout.Session.retrieve,
                session_id,
                api_key=self._secret_key,
            )
        except stripe.StripeError as e:
            logger.error(f"Stripe verify error for session {session_id}: {e}")
            raise PaymentProviderError(f"Error verifying payment: {e.user_message or str(e)}")
        return self._to_session(session)

    def construct_event(self, payload: bytes, signature: str) -> PaymentEvent:
        try:
            event = stripe.Webhook.construct_event(payload, signature, self._webhook_secret)
        except stripe.SignatureVerificationError as e:
            logger.warning(f"Webhook signature verification failed: {e}")
            raise SignatureVerificationError(f"Webhook Error: {e}")
        except ValueError as e:
            logger.warning(f"Webhook payload could not be parsed: {e}")
            raise SignatureVerificationError(f"Webhook Error: {e}")

        obj = event.data.object
        session = self._to_session(obj) if event.type.startswith("checkout.session.") else None
        return PaymentEvent(id=event.id, type=event.type, session=session, object_id=getattr(obj, "id", None))

    @staticmethod
    def _to_session(session) -> PaymentSession:
        """Stripe object → PaymentSession"""
        metadata = getattr(session, "metadata", None)
        details = getattr(session, "customer_details", None)
        return PaymentSession(
            id=session.id,
            payment_status=getattr(session, "payment_status", None) or "unpaid",
            order_id=getattr(metadata, "orderId", None) if metadata else None,
            user_id=getattr(metadata, "userId", None) if metadata else None,
            payment_intent=getattr(session, "payment_intent", None),
            customer_email=getattr(details, "email", None) if details else None,
            amount_total=getattr(session, "amount_total", None) or 0,
        )

import httpx
import logging
import asyncio
from datetime import datetime, timezone
from html import escape

from storefront.domain.models import Order, User
from storefront.application.interfaces import NotificationSender

logger = logging.getLogger(__name__)


def render_order_confirmation(user: User, order: Order) -> str:
    rows = "".join(
        f"<tr><td>{escape(item.name)}</td>"
        f"<td style=\"text-align: center;\">{item.quantity}</td>"
        f"<td style=\"text-align: right;\">${item.subtotal:.2f}</td></tr>"
        for item in order.order_items
    )
    address = order.shipping_address
    return (
        "<!DOCTYPE html><html><head><meta charset=\"utf-8\"><title>Order Confirmation</title></head>"
        "<body style=\"font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;\">"
        "<h1>Order Confirmed!</h1>"
        f"<p>Hi <strong>{escape(user.name)}</strong>,</p>"
        "<p>Thank you for your order! We're excited to get your items ready.</p>"
        f"<p><strong>Order ID:</strong> #{order.reference}</p>"
        f"<p><strong>Date:</strong> {datetime.now(timezone.utc):%A, %B %d, %Y}</p>"
        "<table style=\"width: 100%; border-collapse: collapse;\">"
        "<thead><tr><th style=\"text-align: left;\">Item</th><th>Qty</th>"
        "<th style=\"text-align: right;\">Price</th></tr></thead>"
        f"<tbody>{rows}</tbody>"
        "<tfoot>"
        f"<tr><td colspan=\"2\">Subtotal:</td><td style=\"text-align: right;\">${order.items_price:.2f}</td></tr>"
        f"<tr><td colspan=\"2\">Delivery:</td><td style=\"text-align: right;\">${order.shipping_price:.2f}</td></tr>"
        f"<tr><td colspan=\"2\"><strong>Total:</strong></td><td style=\"text-align: right;\"><strong>${order.total_price:.2f}</strong></td></tr>"
        "</tfoot></table>"
        "<h3>Shipping Address</h3>"
        f"<p>{escape(address.street)}<br>{escape(address.city)}, {escape(address.state)} {escape(address.zip_code)}"
        f"<br>{escape(address.country)}</p>"
        "<p>Thank you for shopping with us!</p>"
        "</body></html>"
    )


class HTTPEmailSender(NotificationSender):
    """Sends order emails through the Resend HTTP API"""

    def __init__(self, base_url: str, api_key: str, sender: str, max_retries: int = 3, retry_delay: float = 1.0):
        self._base_url = base_url.rstrip("/")
        self._api_key = api_key
        self._sender = sender
        self._max_retries = max_retries
        self._retry_delay = retry_delay

    async def send_order_confirmation(self, user: User, order: Order) -> bool:
        if not self._api_key:
            logger.info(f"Email is not configured, skipping confirmation for order {order.id}")
            return False

        payload = {
            "from": self._sender,
            "to": user.email,
            "subject": f"Order Confirmed! #{order.reference}",
            "html": render_order_confirmation(user, order),
        }
        return await self._post(payload, idempotency_key=f"order-confirmation-{order.id}")

    async def _post(self, payload: dict, idempotency_key: str) -> bool:
        """Send with retries"""
        for attempt in range(self._max_retries):
            try:
                async with httpx.AsyncClient() as client:
                    response = await client.post(
                        f"{self._base_url}/emails",
                        json=payload,
                        headers={
                            "Authorization": f"Bearer {self._api_key}",
                            "Idempotency-Key": idempotency_key,
                        },
                        timeout=10.0
                    )

                    if response.status_code in (200, 201):
                        logger.info(f"Email sent (attempt {attempt + 1})")
                        return True
                    else:
                        logger.warning(f"Email API returned status {response.status_code}")

            except httpx.HTTPError as e:
                logger.warning(f"Email send error (attempt {attempt + 1}/{self._max_retries}): {e}")

            # Wait before the next attempt (except after the last one)
            if attempt < self._max_retries - 1:
                await asyncio.sleep(self._retry_delay)

        logger.error(f"Email not sent after {self._max_retries} attempts")
        return False

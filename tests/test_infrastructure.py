import asyncio
import hashlib
import hmac
import json
import time
from datetime import datetime, timezone
from decimal import Decimal
from types import SimpleNamespace

import httpx
import pytest
import stripe

from storefront.domain.models import Order, OrderItem, ShippingAddress, User
from storefront.domain.exceptions import PaymentProviderError, SignatureVerificationError
from storefront.infrastructure import http_clients
from storefront.infrastructure.http_clients import HTTPEmailSender, render_order_confirmation
from storefront.infrastructure.payment_gateway import StripePaymentGateway

WEBHOOK_SECRET = "whsec_test_secret"


def make_order(shipping="5.00"):
    now = datetime.now(timezone.utc)
    return Order(
        id="3f2c9a1e-0000-4000-8000-00000000abcd",
        user_id="u-customer",
        order_items=[
            OrderItem(product_id="p-rice", name="Jollof <Rice> Mix", quantity=2, price=Decimal("12.50"),
                      image="https://cdn.test/p-rice.png"),
            OrderItem(product_id="p-pepper", name="Scotch Bonnet", quantity=1, price=Decimal("3.25")),
        ],
        shipping_address=ShippingAddress(street="12 Marina Rd", city="Lagos"),
        payment_method="stripe",
        items_price=Decimal("28.25"),
        shipping_price=Decimal(shipping),
        tax_price=Decimal("0"),
        total_price=Decimal("28.25") + Decimal(shipping),
        created_at=now,
        updated_at=now
    )


def make_gateway():
    return StripePaymentGateway("sk_test_123", WEBHOOK_SECRET, "https://shop.test/", "usd")


def sign(payload: str, secret: str = WEBHOOK_SECRET) -> str:
    timestamp = int(time.time())
    signature = hmac.new(secret.encode(), f"{timestamp}.{payload}".encode(), hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={signature}"


class TestStripeGateway:
    def test_checkout_session_request(self, monkeypatch):
        captured = {}

        def fake_create(**kwargs):
            captured.update(kwargs)
            return SimpleNamespace(id="cs_test_9", url="https://checkout.stripe.com/c/cs_test_9")

        monkeypatch.setattr(stripe.checkout.Session, "create", fake_create)

        session = asyncio.run(make_gateway().create_checkout_session(make_order(), "ada@example.com"))

        assert session.id == "cs_test_9"
        assert captured["metadata"] == {"orderId": "3f2c9a1e-0000-4000-8000-00000000abcd", "userId": "u-customer"}
        assert captured["customer_email"] == "ada@example.com"
        assert captured["success_url"] == "https://shop.test/checkout/success?session_id={CHECKOUT_SESSION_ID}"
        assert captured["idempotency_key"] == "checkout_3f2c9a1e-0000-4000-8000-00000000abcd"
        amounts = [(item["price_data"]["product_data"]["name"], item["price_data"]["unit_amount"], item["quantity"])
                   for item in captured["line_items"]]
        assert amounts == [("Jollof <Rice> Mix", 1250, 2), ("Scotch Bonnet", 325, 1), ("Delivery Fee", 500, 1)]
        assert captured["line_items"][0]["price_data"]["product_data"]["images"] == ["https://cdn.test/p-rice.png"]
        assert captured["line_items"][1]["price_data"]["product_data"]["images"] == []

    def test_no_delivery_line_when_free(self, monkeypatch):
        captured = {}

        def fake_create(**kwargs):
            captured.update(kwargs)
            return SimpleNamespace(id="cs_test_9", url="https://checkout.stripe.com/c/cs_test_9")

        monkeypatch.setattr(stripe.checkout.Session, "create", fake_create)
        asyncio.run(make_gateway().create_checkout_session(make_order(shipping="0"), "ada@example.com"))

        assert len(captured["line_items"]) == 2

    def test_provider_errors_are_wrapped(self, monkeypatch):
        def fail(*args, **kwargs):
            raise stripe.StripeError("No such checkout.session: cs_missing")

        monkeypatch.setattr(stripe.checkout.Session, "retrieve", fail)

        with pytest.raises(PaymentProviderError) as exc_info:
            asyncio.run(make_gateway().retrieve_session("cs_missing"))
        assert "No such checkout.session" in str(exc_info.value)

    def test_construct_event_with_valid_signature(self):
        payload = json.dumps({
            "id": "evt_1",
            "object": "event",
            "type": "checkout.session.completed",
            "data": {"object": {
                "id": "cs_test_1",
                "object": "checkout.session",
                "payment_status": "paid",
                "payment_intent": "pi_1",
                "amount_total": 3325,
                "metadata": {"orderId": "order-1", "userId": "u-customer"},
                "customer_details": {"email": "ada@example.com"},
            }},
        })

        event = make_gateway().construct_event(payload.encode(), sign(payload))

        assert event.id == "evt_1"
        assert event.type == "checkout.session.completed"
        assert event.session.order_id == "order-1"
        assert event.session.payment_intent == "pi_1"
        assert event.session.customer_email == "ada@example.com"
        assert event.session.amount_total == 3325

    def test_construct_event_rejects_bad_signature(self):
        payload = json.dumps({"id": "evt_1", "object": "event", "type": "checkout.session.completed", "data": {"object": {}}})

        with pytest.raises(SignatureVerificationError):
            make_gateway().construct_event(payload.encode(), sign(payload, secret="whsec_wrong"))
        with pytest.raises(SignatureVerificationError):
            make_gateway().construct_event(payload.encode(), "")


class TestEmailSender:
    user = User(id="u-customer", name="Ada <Obi>", email="ada@example.com")

    def patch_transport(self, monkeypatch, handler):
        real_client = httpx.AsyncClient
        monkeypatch.setattr(
            http_clients.httpx, "AsyncClient", lambda: real_client(transport=httpx.MockTransport(handler))
        )

    def test_sends_confirmation(self, monkeypatch):
        requests = []

        def handler(request):
            requests.append(request)
            return httpx.Response(200, json={"id": "email_1"})

        self.patch_transport(monkeypatch, handler)
        sender = HTTPEmailSender("https://mail.test/", "re_key", "Shop <shop@example.com>", retry_delay=0)

        assert asyncio.run(sender.send_order_confirmation(self.user, make_order())) is True

        [request] = requests
        assert str(request.url) == "https://mail.test/emails"
        assert request.headers["Authorization"] == "Bearer re_key"
        assert request.headers["Idempotency-Key"] == "order-confirmation-3f2c9a1e-0000-4000-8000-00000000abcd"
        body = json.loads(request.content)
        assert body["to"] == "ada@example.com"
        assert body["subject"] == "Order Confirmed! #0000ABCD"

    def test_retries_then_gives_up(self, monkeypatch):
        attempts = []

        def handler(request):
            attempts.append(request)
            if len(attempts) == 1:
                raise httpx.ConnectError("connection refused", request=request)
            return httpx.Response(503)

        self.patch_transport(monkeypatch, handler)
        sender = HTTPEmailSender("https://mail.test", "re_key", "shop@example.com", max_retries=3, retry_delay=0)

        assert asyncio.run(sender.send_order_confirmation(self.user, make_order())) is False
        assert len(attempts) == 3

    def test_not_configured(self):
        sender = HTTPEmailSender("https://mail.test", "", "shop@example.com")
        assert asyncio.run(sender.send_order_confirmation(self.user, make_order())) is False

    def test_template_escapes_user_content(self):
        html = render_order_confirmation(self.user, make_order())

        assert "Ada &lt;Obi&gt;" in html
        assert "Jollof &lt;Rice&gt; Mix" in html
        assert "#0000ABCD" in html
        assert "$25.00" in html
        assert "$33.25" in html
        assert "12 Marina Rd" in html

from fastapi import APIRouter, Depends, Header, Request
from fastapi.responses import JSONResponse

from storefront.domain.models import User
from storefront.presentation.schemas import CheckoutSessionRequest, VerifySessionRequest, dump, envelope, OrderResponse
from storefront.presentation.dependencies import (
    get_current_user, get_checkout_use_case, get_verify_session_use_case, get_webhook_use_case
)
from storefront.application.checkout import CreateCheckoutSessionUseCase
from storefront.application.reconcile_payment import VerifyPaymentSessionUseCase, HandlePaymentWebhookUseCase

router = APIRouter(prefix="/payments", tags=["payments"])


@router.post("/create-checkout-session")
async def create_checkout_session(
    request: CheckoutSessionRequest,
    user: User = Depends(get_current_user),
    use_case: CreateCheckoutSessionUseCase = Depends(get_checkout_use_case)
):
    """Create the order and a Stripe checkout session for it"""
    result = await use_case(
        user,
        [item.to_dto() for item in request.items],
        request.shipping_address.to_domain(),
        request.delivery_fee
    )
    return envelope(sessionId=result.session_id, url=result.url, orderId=result.order_id)


@router.post("/verify-session")
async def verify_session(
    request: VerifySessionRequest,
    user: User = Depends(get_current_user),
    use_case: VerifyPaymentSessionUseCase = Depends(get_verify_session_use_case)
):
    """Confirm payment by asking Stripe for the session state"""
    result = await use_case(request.session_id, user)
    if not result.is_paid:
        return JSONResponse(
            status_code=400,
            content={
                "success": False,
                "message": "Payment not completed",
                "paymentStatus": result.session.payment_status,
            }
        )

    body = envelope(
        message="Payment verified",
        session={
            "id": result.session.id,
            "paymentStatus": result.session.payment_status,
            "customerEmail": result.session.customer_email,
            "amountTotal": result.session.amount_total / 100,
        }
    )
    if result.order:
        body["data"] = dump(OrderResponse.from_domain(result.order))
    return body


@router.post("/webhook")
async def stripe_webhook(
    request: Request,
    stripe_signature: str = Header(default=""),
    use_case: HandlePaymentWebhookUseCase = Depends(get_webhook_use_case)
):
    """Stripe webhook; the raw body is needed for signature verification"""
    payload = await request.body()
    await use_case(payload, stripe_signature)
    return {"received": True}

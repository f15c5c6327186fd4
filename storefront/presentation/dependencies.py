import logging
import secrets
from typing import Optional
from fastapi import Depends, Header

from storefront.config import settings
from storefront.database import AsyncSessionLocal
from storefront.domain.models import User
from storefront.domain.exceptions import AuthenticationError, ForbiddenError
from storefront.infrastructure.unit_of_work import UnitOfWork
from storefront.infrastructure.payment_gateway import StripePaymentGateway
from storefront.infrastructure.http_clients import HTTPEmailSender
from storefront.application.create_order import CreateOrderUseCase
from storefront.application.get_order import GetOrderUseCase, GetMyOrdersUseCase, ListOrdersUseCase
from storefront.application.update_status import UpdateOrderStatusUseCase
from storefront.application.process_payment import MarkOrderPaidUseCase
from storefront.application.checkout import CreateCheckoutSessionUseCase
from storefront.application.reconcile_payment import VerifyPaymentSessionUseCase, HandlePaymentWebhookUseCase
from storefront.application.catalog import ListProductsUseCase, GetProductUseCase

logger = logging.getLogger(__name__)


# Collaborators
def get_uow():
    return UnitOfWork(AsyncSessionLocal)


def get_payment_gateway():
    return StripePaymentGateway(
        settings.STRIPE_SECRET_KEY,
        settings.STRIPE_WEBHOOK_SECRET,
        settings.FRONTEND_URL,
        settings.CURRENCY
    )


def get_notification_sender():
    return HTTPEmailSender(settings.RESEND_BASE_URL, settings.RESEND_API_KEY, settings.EMAIL_FROM)


# Access control
async def get_current_user(
    x_user_id: Optional[str] = Header(default=None),
    uow=Depends(get_uow)
) -> User:
    """Caller resolved from the id forwarded by the authenticating gateway"""
    if not x_user_id:
        raise AuthenticationError("Not authorized, no user")
    async with uow() as u:
        user = await u.users.get_by_id(x_user_id)
    if not user or not user.is_active:
        raise AuthenticationError("Not authorized, unknown user")
    return user


async def require_admin(user: User = Depends(get_current_user)) -> User:
    if not user.is_admin:
        raise ForbiddenError("Not authorized as an admin")
    return user


async def require_payment_callback(x_api_key: Optional[str] = Header(default=None)) -> None:
    """Only the payment provider callback may mark orders paid directly"""
    if not settings.API_TOKEN or not x_api_key or not secrets.compare_digest(x_api_key, settings.API_TOKEN):
        logger.warning("Rejected payment callback with missing or invalid API key")
        raise AuthenticationError("Invalid payment callback credentials")


# Factories for the use cases
def get_create_order_use_case(uow=Depends(get_uow)):
    return CreateOrderUseCase(uow)


def get_get_order_use_case(uow=Depends(get_uow)):
    return GetOrderUseCase(uow)


def get_my_orders_use_case(uow=Depends(get_uow)):
    return GetMyOrdersUseCase(uow)


def get_list_orders_use_case(uow=Depends(get_uow)):
    return ListOrdersUseCase(uow)


def get_update_status_use_case(uow=Depends(get_uow)):
    return UpdateOrderStatusUseCase(uow)


def get_mark_paid_use_case(uow=Depends(get_uow), notifications=Depends(get_notification_sender)):
    return MarkOrderPaidUseCase(uow, notifications)


def get_checkout_use_case(uow=Depends(get_uow), gateway=Depends(get_payment_gateway)):
    return CreateCheckoutSessionUseCase(uow, gateway, settings.DEFAULT_DELIVERY_FEE)


def get_verify_session_use_case(
    uow=Depends(get_uow),
    gateway=Depends(get_payment_gateway),
    notifications=Depends(get_notification_sender)
):
    return VerifyPaymentSessionUseCase(uow, gateway, notifications)


def get_webhook_use_case(
    uow=Depends(get_uow),
    gateway=Depends(get_payment_gateway),
    notifications=Depends(get_notification_sender)
):
    return HandlePaymentWebhookUseCase(uow, gateway, notifications)


def get_list_products_use_case(uow=Depends(get_uow)):
    return ListProductsUseCase(uow)


def get_get_product_use_case(uow=Depends(get_uow)):
    return GetProductUseCase(uow)

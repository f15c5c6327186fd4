from typing import Optional
from fastapi import APIRouter, Depends, Query, status

from storefront.config import settings
from storefront.domain.models import OrderStatus, User
from storefront.presentation.schemas import (
    CreateOrderRequest, OrderResponse, PaymentResultRequest, UpdateStatusRequest, dump, envelope
)
from storefront.presentation.dependencies import (
    get_current_user, require_admin, require_payment_callback,
    get_create_order_use_case, get_get_order_use_case, get_my_orders_use_case, get_list_orders_use_case,
    get_update_status_use_case, get_mark_paid_use_case
)
from storefront.application.create_order import CreateOrderUseCase, CreateOrderDTO
from storefront.application.get_order import GetOrderUseCase, GetMyOrdersUseCase, ListOrdersUseCase
from storefront.application.update_status import UpdateOrderStatusUseCase
from storefront.application.process_payment import MarkOrderPaidUseCase

router = APIRouter(prefix="/orders", tags=["orders"])


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_order(
    request: CreateOrderRequest,
    user: User = Depends(get_current_user),
    use_case: CreateOrderUseCase = Depends(get_create_order_use_case)
):
    """Create a new order"""
    order = await use_case(CreateOrderDTO(
        user_id=user.id,
        line_items=[item.to_dto() for item in request.order_items],
        shipping_address=request.shipping_address.to_domain(),
        payment_method=request.payment_method,
        prices=request.prices()
    ))
    return envelope(dump(OrderResponse.from_domain(order)), message="Order created successfully")


@router.get("/myorders")
async def get_my_orders(
    user: User = Depends(get_current_user),
    use_case: GetMyOrdersUseCase = Depends(get_my_orders_use_case)
):
    """Orders of the calling user, newest first"""
    views = await use_case(user.id)
    return envelope([dump(OrderResponse.from_view(view)) for view in views], count=len(views))


@router.get("")
async def get_all_orders(
    status_filter: Optional[OrderStatus] = Query(default=None, alias="status"),
    is_paid: Optional[bool] = Query(default=None, alias="isPaid"),
    page: int = Query(default=1),
    limit: int = Query(default=settings.DEFAULT_PAGE_SIZE),
    admin: User = Depends(require_admin),
    use_case: ListOrdersUseCase = Depends(get_list_orders_use_case)
):
    """All orders, admin only"""
    result = await use_case(status=status_filter, is_paid=is_paid, page=page, page_size=limit)
    return envelope(
        [dump(OrderResponse.from_view(view)) for view in result.orders],
        count=len(result.orders),
        total=result.total,
        page=result.page,
        pages=result.pages
    )


@router.get("/{order_id}")
async def get_order(
    order_id: str,
    user: User = Depends(get_current_user),
    use_case: GetOrderUseCase = Depends(get_get_order_use_case)
):
    """Single order for its owner or an admin"""
    view = await use_case(order_id, user)
    return envelope(dump(OrderResponse.from_view(view)))


@router.put("/{order_id}/status")
async def update_order_status(
    order_id: str,
    request: UpdateStatusRequest,
    admin: User = Depends(require_admin),
    use_case: UpdateOrderStatusUseCase = Depends(get_update_status_use_case)
):
    """Move an order along the status graph, admin only"""
    order = await use_case(order_id, request.status)
    return envelope(dump(OrderResponse.from_domain(order)), message="Order status updated successfully")


@router.put("/{order_id}/pay", dependencies=[Depends(require_payment_callback)])
async def update_order_to_paid(
    order_id: str,
    request: PaymentResultRequest,
    use_case: MarkOrderPaidUseCase = Depends(get_mark_paid_use_case)
):
    """Payment provider callback"""
    confirmation = await use_case(order_id, request.to_domain())
    message = "Order marked as paid" if confirmation.applied else "Order already paid"
    return envelope(dump(OrderResponse.from_domain(confirmation.order)), message=message)

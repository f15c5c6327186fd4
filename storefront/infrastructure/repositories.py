from typing import Optional, List
from datetime import datetime, timezone
from decimal import Decimal
from sqlalchemy import select, insert, update, func, case, literal
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.domain.models import (
    Order, OrderItem, OrderStatus, PaymentResult, Product, ProductImage, ShippingAddress, User, UserRole
)
from storefront.infrastructure.db_schema import orders_tbl, products_tbl, users_tbl
from storefront.application.interfaces import OrderRepository, ProductRepository, UserRepository


class SQLAlchemyProductRepository(ProductRepository):
    def __init__(self, session: AsyncSession):
        self._session = session

    async def get_by_id(self, product_id: str) -> Optional[Product]:
        result = await self._session.execute(
            select(products_tbl).where(products_tbl.c.id == product_id)
        )
        row = result.fetchone()
        return self._to_domain(row) if row else None

    async def get_many(self, product_ids: List[str]) -> dict[str, Product]:
        if not product_ids:
            return {}
        result = await self._session.execute(
            select(products_tbl).where(products_tbl.c.id.in_(product_ids))
        )
        return {row.id: self._to_domain(row) for row in result.fetchall()}

    async def list_all(self, category: Optional[str], offset: int, limit: int) -> List[Product]:
        stmt = select(products_tbl)
        if category:
            stmt = stmt.where(products_tbl.c.category == category)
        result = await self._session.execute(
            stmt.order_by(products_tbl.c.created_at.desc()).offset(offset).limit(limit)
        )
        return [self._to_domain(row) for row in result.fetchall()]

    async def count(self, category: Optional[str]) -> int:
        stmt = select(func.count()).select_from(products_tbl)
        if category:
            stmt = stmt.where(products_tbl.c.category == category)
        result = await self._session.execute(stmt)
        return result.scalar_one()

    async def reserve_stock(self, product_id: str, quantity: int) -> bool:
        # Single conditional UPDATE: the row lock makes check and decrement atomic
        stmt = (
            update(products_tbl)
            .where(products_tbl.c.id == product_id, products_tbl.c.stock >= quantity)
            .values(
                stock=products_tbl.c.stock - quantity,
                in_stock=(products_tbl.c.stock - quantity) > 0,
                updated_at=datetime.now(timezone.utc)
            )
        )
        result = await self._session.execute(stmt)
        return result.rowcount == 1

    def _to_domain(self, row) -> Product:
        """DB → Domain"""
        return Product(
            id=row.id,
            name=row.name,
            description=row.description or "",
            price=Decimal(row.price),
            category=row.category,
            stock=row.stock,
            in_stock=row.in_stock,
            images=[ProductImage(**image) for image in (row.images or [])],
            unit=row.unit,
            brand=row.brand,
            origin=row.origin,
            featured=row.featured,
            created_at=row.created_at,
            updated_at=row.updated_at
        )


class SQLAlchemyUserRepository(UserRepository):
    def __init__(self, session: AsyncSession):
        self._session = session

    async def get_by_id(self, user_id: str) -> Optional[User]:
        result = await self._session.execute(
            select(users_tbl).where(users_tbl.c.id == user_id)
        )
        row = result.fetchone()
        if not row:
            return None
        return User(
            id=row.id,
            name=row.name,
            email=row.email,
            role=UserRole(row.role),
            is_active=row.is_active
        )


class SQLAlchemyOrderRepository(OrderRepository):
    def __init__(self, session: AsyncSession):
        self._session = session

    async def get_by_id(self, order_id: str) -> Optional[Order]:
        result = await self._session.execute(
            select(orders_tbl).where(orders_tbl.c.id == order_id)
        )
        row = result.fetchone()
        return self._to_domain(row) if row else None

    async def create(self, order: Order) -> None:
        stmt = insert(orders_tbl).values(
            id=order.id,
            user_id=order.user_id,
            order_items=[item.model_dump(mode="json") for item in order.order_items],
            shipping_address=order.shipping_address.model_dump(),
            payment_method=order.payment_method,
            items_price=order.items_price,
            shipping_price=order.shipping_price,
            tax_price=order.tax_price,
            total_price=order.total_price,
            status=order.status,
            is_paid=order.is_paid,
            is_delivered=order.is_delivered,
            external_session_id=order.external_session_id,
            created_at=order.created_at,
            updated_at=order.updated_at
        )
        await self._session.execute(stmt)

    async def list_by_user(self, user_id: str) -> List[Order]:
        result = await self._session.execute(
            select(orders_tbl)
            .where(orders_tbl.c.user_id == user_id)
            .order_by(orders_tbl.c.created_at.desc())
        )
        return [self._to_domain(row) for row in result.fetchall()]

    async def list_all(self, status: Optional[OrderStatus], is_paid: Optional[bool], offset: int, limit: int) -> List[Order]:
        stmt = self._filtered(select(orders_tbl), status, is_paid)
        result = await self._session.execute(
            stmt.order_by(orders_tbl.c.created_at.desc()).offset(offset).limit(limit)
        )
        return [self._to_domain(row) for row in result.fetchall()]

    async def count(self, status: Optional[OrderStatus], is_paid: Optional[bool]) -> int:
        stmt = self._filtered(select(func.count()).select_from(orders_tbl), status, is_paid)
        result = await self._session.execute(stmt)
        return result.scalar_one()

    async def update_status(self, order_id: str, expected: OrderStatus, status: OrderStatus) -> bool:
        now = datetime.now(timezone.utc)
        values = {"status": status, "updated_at": now}
        if status == OrderStatus.DELIVERED:
            values.update(is_delivered=True, delivered_at=now)
        stmt = (
            update(orders_tbl)
            .where(orders_tbl.c.id == order_id, orders_tbl.c.status == expected)
            .values(**values)
        )
        result = await self._session.execute(stmt)
        return result.rowcount == 1

    async def mark_paid(self, order_id: str, payment_result: PaymentResult) -> bool:
        now = datetime.now(timezone.utc)
        stmt = (
            update(orders_tbl)
            .where(orders_tbl.c.id == order_id, orders_tbl.c.is_paid.is_(False))
            .values(
                is_paid=True,
                paid_at=now,
                payment_result=payment_result.model_dump(),
                status=case(
                    (orders_tbl.c.status == OrderStatus.PENDING, literal(OrderStatus.PROCESSING, orders_tbl.c.status.type)),
                    else_=orders_tbl.c.status
                ),
                updated_at=now
            )
        )
        result = await self._session.execute(stmt)
        return result.rowcount == 1

    async def update_session_id(self, order_id: str, session_id: str) -> None:
        stmt = (
            update(orders_tbl)
            .where(orders_tbl.c.id == order_id)
            .values(
                external_session_id=session_id,
                updated_at=datetime.now(timezone.utc)
            )
        )
        await self._session.execute(stmt)

    @staticmethod
    def _filtered(stmt, status: Optional[OrderStatus], is_paid: Optional[bool]):
        if status is not None:
            stmt = stmt.where(orders_tbl.c.status == status)
        if is_paid is not None:
            stmt = stmt.where(orders_tbl.c.is_paid.is_(is_paid))
        return stmt

    def _to_domain(self, row) -> Order:
        """DB → Domain"""
        return Order(
            id=row.id,
            user_id=row.user_id,
            order_items=[OrderItem(**item) for item in row.order_items],
            shipping_address=ShippingAddress(**row.shipping_address),
            payment_method=row.payment_method,
            items_price=Decimal(row.items_price),
            shipping_price=Decimal(row.shipping_price),
            tax_price=Decimal(row.tax_price),
            total_price=Decimal(row.total_price),
            status=OrderStatus(row.status),
            is_paid=row.is_paid,
            paid_at=row.paid_at,
            payment_result=PaymentResult(**row.payment_result) if row.payment_result else None,
            is_delivered=row.is_delivered,
            delivered_at=row.delivered_at,
            external_session_id=row.external_session_id,
            created_at=row.created_at,
            updated_at=row.updated_at
        )

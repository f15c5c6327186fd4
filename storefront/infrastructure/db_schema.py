from sqlalchemy import Table, Column, String, Integer, Numeric, Boolean, Enum, DateTime, JSON, Text, MetaData, CheckConstraint
from sqlalchemy.sql import func

from storefront.domain.models import OrderStatus, ProductCategory, UserRole

metadata = MetaData()


def _values(enum_cls):
    return [member.value for member in enum_cls]


users_tbl = Table(
    "users",
    metadata,
    Column("id", String, primary_key=True),
    Column("name", String, nullable=False),
    Column("email", String, nullable=False, unique=True, index=True),
    Column("role", Enum(UserRole, values_callable=_values, name="user_role"), default=UserRole.USER),
    Column("is_active", Boolean, nullable=False, default=True),
    Column("created_at", DateTime(timezone=True), server_default=func.now()),
    Column("updated_at", DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
)


products_tbl = Table(
    "products",
    metadata,
    Column("id", String, primary_key=True),
    Column("name", String, nullable=False, index=True),
    Column("description", Text, nullable=False, default=""),
    Column("price", Numeric(10, 2), nullable=False),
    Column("category", Enum(ProductCategory, values_callable=_values, name="product_category"), nullable=False),
    Column("stock", Integer, nullable=False, default=0),
    Column("in_stock", Boolean, nullable=False, default=True),
    Column("images", JSON, nullable=False, default=list),
    Column("unit", String, nullable=False, default="piece"),
    Column("brand", String, nullable=True),
    Column("origin", String, nullable=True),
    Column("featured", Boolean, nullable=False, default=False),
    Column("created_at", DateTime(timezone=True), server_default=func.now()),
    Column("updated_at", DateTime(timezone=True), server_default=func.now(), onupdate=func.now()),
    CheckConstraint("stock >= 0", name="ck_products_stock_non_negative")
)


orders_tbl = Table(
    "orders",
    metadata,
    Column("id", String, primary_key=True),
    Column("user_id", String, nullable=False, index=True),
    Column("order_items", JSON, nullable=False),
    Column("shipping_address", JSON, nullable=False),
    Column("payment_method", String, nullable=False),
    Column("items_price", Numeric(10, 2), nullable=False),
    Column("shipping_price", Numeric(10, 2), nullable=False),
    Column("tax_price", Numeric(10, 2), nullable=False),
    Column("total_price", Numeric(10, 2), nullable=False),
    Column("status", Enum(OrderStatus, values_callable=_values, name="order_status"), default=OrderStatus.PENDING, index=True),
    Column("is_paid", Boolean, nullable=False, default=False, index=True),
    Column("paid_at", DateTime(timezone=True), nullable=True),
    Column("payment_result", JSON, nullable=True),
    Column("is_delivered", Boolean, nullable=False, default=False),
    Column("delivered_at", DateTime(timezone=True), nullable=True),
    Column("external_session_id", String, nullable=True, unique=True),
    Column("created_at", DateTime(timezone=True), server_default=func.now(), index=True),
    Column("updated_at", DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
)

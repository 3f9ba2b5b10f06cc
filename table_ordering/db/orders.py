from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import List, Optional

from sqlalchemy import Column, DateTime, Enum as SAEnum, Integer, Numeric, String, Text, text
from sqlalchemy.sql.schema import Index
from sqlmodel import Field, Relationship, SQLModel

from .menu import MenuItemModel


class OrderStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    PREPARING = "preparing"
    READY = "ready"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


TERMINAL_STATUSES = (OrderStatus.COMPLETED, OrderStatus.CANCELLED)

# Orders counted as sales; ready orders are counted before formal completion
REVENUE_STATUSES = (OrderStatus.COMPLETED, OrderStatus.READY)


class OrderItem(SQLModel, table=True):
    __tablename__ = "order_items"

    id: Optional[int] = Field(default=None, primary_key=True)
    order_id: int = Field(foreign_key="orders.id", index=True)
    meal_id: int = Field(foreign_key="menu.id", index=True)
    quantity: int = Field(default=1, sa_column=Column(Integer, nullable=False, default=1))
    created_at: datetime = Field(default_factory=datetime.now, sa_column=Column(DateTime, nullable=False))

    order: Optional["Order"] = Relationship(back_populates="items")
    menu_item: Optional[MenuItemModel] = Relationship(back_populates="order_items")


class Order(SQLModel, table=True):
    __tablename__ = "orders"
    __table_args__ = (
        Index("idx_orders_table_id", "table_id"),
        Index("idx_orders_status", "status"),
        Index("idx_orders_created_at", "created_at"),
        # At most one pending order per table
        Index(
            "uq_orders_table_pending",
            "table_id",
            unique=True,
            postgresql_where=text("status = 'pending'"),
            sqlite_where=text("status = 'pending'"),
        ),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    created_at: datetime = Field(default_factory=datetime.now, sa_column=Column(DateTime, nullable=False))
    updated_at: datetime = Field(default_factory=datetime.now, sa_column=Column(DateTime, nullable=False))
    status: OrderStatus = Field(
        default=OrderStatus.PENDING,
        sa_column=Column(
            SAEnum(
                OrderStatus,
                name="orderstatus",
                native_enum=False,
                length=20,
                values_callable=lambda statuses: [s.value for s in statuses],
            ),
            nullable=False,
            default=OrderStatus.PENDING,
        ),
    )
    total_amount: Decimal = Field(default=Decimal("0.00"), sa_column=Column(Numeric(10, 2), nullable=False))
    table_id: int = Field()
    feedback: Optional[str] = Field(default=None, sa_column=Column(Text))
    cancellation_reason: Optional[str] = Field(default=None, sa_column=Column(String(255)))

    items: List[OrderItem] = Relationship(
        back_populates="order",
        sa_relationship_kwargs={"order_by": "OrderItem.id", "cascade": "all, delete-orphan"},
    )

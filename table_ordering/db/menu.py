from datetime import datetime
from decimal import Decimal
from typing import List, Optional, TYPE_CHECKING

from sqlalchemy import Column, DateTime, Integer, Numeric, String, Text
from sqlmodel import Field, Relationship, SQLModel

if TYPE_CHECKING:
    from .orders import OrderItem


class MenuItemModel(SQLModel, table=True):
    id: int | None = Field(primary_key=True, default=None)
    name: str = Field(sa_column=Column(String(255), nullable=False))
    description: str = Field(default="", sa_column=Column(Text, nullable=False, default=""))
    price: Decimal = Field(sa_column=Column(Numeric(10, 2), nullable=False))
    image: str | None = Field(default=None, sa_column=Column(String(512)))
    # Stock on hand, only decremented by order completion
    quantity: int = Field(default=0, sa_column=Column(Integer, nullable=False, default=0))
    sales: int = Field(default=0, sa_column=Column(Integer, nullable=False, default=0))
    category: str | None = Field(default=None, sa_column=Column(String(120)))
    created_at: datetime = Field(default_factory=datetime.now, sa_column=Column(DateTime, nullable=False))

    order_items: List["OrderItem"] = Relationship(back_populates="menu_item")

    __tablename__ = "menu"

from datetime import datetime
from typing import List, Optional

from pydantic import AliasChoices, BaseModel, Field

from .menu import MenuItemOut
from ..db.orders import OrderStatus


class OrderItemCreate(BaseModel):
    menu_item_id: int
    quantity: int = Field(default=1, ge=1)


class OrderCreate(BaseModel):
    table_id: int = Field(ge=1)
    items: List[OrderItemCreate]


class OrderItemOut(BaseModel):
    id: int
    meal_id: int
    quantity: int
    subtotal: float
    menu_item: Optional[MenuItemOut] = None


class FeedbackIn(BaseModel):
    food_rating: int = Field(ge=1, le=5, validation_alias=AliasChoices("food_rating", "foodRating"))
    service_rating: int = Field(ge=1, le=5, validation_alias=AliasChoices("service_rating", "serviceRating"))
    comments: str = Field(default="", max_length=200)


class FeedbackOut(BaseModel):
    food_rating: int
    service_rating: int
    comments: str
    submitted_at: datetime


class OrderOut(BaseModel):
    id: int
    table_id: int
    status: OrderStatus
    total_amount: float
    created_at: datetime
    updated_at: Optional[datetime] = None
    item_count: int
    feedback: Optional[FeedbackOut] = None
    cancellation_reason: Optional[str] = None
    items: List[OrderItemOut]


class LatestOrderOut(BaseModel):
    """Waiting room payload, re-fetched every poll_interval_seconds."""
    order: Optional[OrderOut] = None
    poll_interval_seconds: float


class StatusUpdate(BaseModel):
    status: OrderStatus
    reason: Optional[str] = Field(default=None, max_length=255)


class RejectRequest(BaseModel):
    reason: Optional[str] = Field(default=None, max_length=255)


class BatchRequest(BaseModel):
    order_ids: List[int] = Field(min_length=1)

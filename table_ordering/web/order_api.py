"""
Customer-facing order endpoints.

Order placement with an explicit item list, order status for the waiting room
and feedback after the meal. The generic status endpoint is shared with staff
tools that do not use the cashier/kitchen routes.
"""
import logging
from typing import List

from fastapi import APIRouter

from table_ordering.dependencies import EventBusDep, SessionDep, SettingsDep
from table_ordering.schemas.orders import FeedbackIn, LatestOrderOut, OrderCreate, OrderOut, StatusUpdate
from table_ordering.services import orders as order_service
from .serializers import serialize_order, serialize_orders

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/orders", response_model=OrderOut, status_code=201)
def create_order(order_data: OrderCreate, session: SessionDep, settings: SettingsDep, bus: EventBusDep):
    logger.info(f"Creating order: table_id={order_data.table_id}, items={order_data.items}")
    lines = [(item.menu_item_id, item.quantity) for item in order_data.items]
    order = order_service.checkout(session, order_data.table_id, lines, bus=bus)
    return serialize_order(order_service.get_order(session, order.id), settings)


@router.get("/orders/{order_id}", response_model=OrderOut)
def get_order(order_id: int, session: SessionDep, settings: SettingsDep):
    return serialize_order(order_service.get_order(session, order_id), settings)


@router.get("/tables/{table_id}/orders", response_model=List[OrderOut])
def list_table_orders(table_id: int, session: SessionDep, settings: SettingsDep):
    return serialize_orders(order_service.orders_for_table(session, table_id), settings)


@router.get("/tables/{table_id}/orders/latest", response_model=LatestOrderOut)
def latest_table_order(table_id: int, session: SessionDep, settings: SettingsDep):
    order = order_service.latest_order_for_table(session, table_id)
    return LatestOrderOut(
        order=serialize_order(order, settings) if order else None,
        poll_interval_seconds=settings.status_poll_interval_seconds,
    )


@router.post("/orders/{order_id}/feedback", response_model=OrderOut)
def submit_feedback(order_id: int, feedback: FeedbackIn, session: SessionDep, settings: SettingsDep,
                    bus: EventBusDep):
    order_service.submit_feedback(session, order_id, feedback, bus=bus)
    return serialize_order(order_service.get_order(session, order_id), settings)


@router.patch("/orders/{order_id}/status", response_model=OrderOut)
def update_order_status(order_id: int, update: StatusUpdate, session: SessionDep, settings: SettingsDep,
                        bus: EventBusDep):
    order_service.transition(session, order_id, update.status, reason=update.reason, bus=bus)
    return serialize_order(order_service.get_order(session, order_id), settings)

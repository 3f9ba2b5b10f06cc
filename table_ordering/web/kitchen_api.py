"""
Kitchen board: confirmed orders are started, cooked orders marked ready and
served. Serving completes the order and books its units as sold.
"""
import logging
from typing import Dict, List

from fastapi import APIRouter

from table_ordering.dependencies import EventBusDep, SessionDep, SettingsDep
from table_ordering.schemas.orders import BatchRequest, OrderOut
from table_ordering.services import orders as order_service
from .serializers import serialize_order, serialize_orders

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/kitchen")


@router.get("/orders", response_model=Dict[str, List[OrderOut]])
def list_kitchen_orders(session: SessionDep, settings: SettingsDep):
    grouped = order_service.kitchen_orders(session)
    return {status.value: serialize_orders(orders, settings) for status, orders in grouped.items()}


@router.post("/orders/ready", response_model=List[OrderOut])
def mark_orders_ready(batch: BatchRequest, session: SessionDep, settings: SettingsDep, bus: EventBusDep):
    orders = order_service.mark_orders_ready(session, batch.order_ids, bus=bus)
    return serialize_orders(orders, settings)


@router.post("/orders/{order_id}/prepare", response_model=OrderOut)
def start_preparing(order_id: int, session: SessionDep, settings: SettingsDep, bus: EventBusDep):
    order_service.start_preparing(session, order_id, bus=bus)
    return serialize_order(order_service.get_order(session, order_id), settings)


@router.post("/orders/{order_id}/ready", response_model=OrderOut)
def mark_ready(order_id: int, session: SessionDep, settings: SettingsDep, bus: EventBusDep):
    order_service.mark_ready(session, order_id, bus=bus)
    return serialize_order(order_service.get_order(session, order_id), settings)


@router.post("/orders/{order_id}/serve", response_model=OrderOut)
def serve_order(order_id: int, session: SessionDep, settings: SettingsDep, bus: EventBusDep):
    order_service.complete_order(session, order_id, bus=bus)
    return serialize_order(order_service.get_order(session, order_id), settings)

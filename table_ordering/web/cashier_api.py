"""
Cashier desk: approving incoming orders and browsing order history.
"""
import logging
from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Response

from table_ordering.db.orders import OrderStatus
from table_ordering.dependencies import EventBusDep, SessionDep, SettingsDep
from table_ordering.schemas.orders import BatchRequest, OrderOut, RejectRequest
from table_ordering.services import orders as order_service
from table_ordering.services.orders import HistoryFilters
from .serializers import serialize_order, serialize_orders

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/cashier")


@router.get("/orders/pending", response_model=List[OrderOut])
def list_pending_orders(session: SessionDep, settings: SettingsDep):
    return serialize_orders(order_service.pending_orders(session), settings)


@router.post("/orders/approve", response_model=List[OrderOut])
def approve_orders(batch: BatchRequest, session: SessionDep, settings: SettingsDep, bus: EventBusDep):
    orders = order_service.approve_orders(session, batch.order_ids, bus=bus)
    return serialize_orders(orders, settings)


@router.post("/orders/{order_id}/approve", response_model=OrderOut)
def approve_order(order_id: int, session: SessionDep, settings: SettingsDep, bus: EventBusDep):
    order_service.approve_order(session, order_id, bus=bus)
    return serialize_order(order_service.get_order(session, order_id), settings)


@router.post("/orders/{order_id}/reject", response_model=OrderOut)
def reject_order(order_id: int, session: SessionDep, settings: SettingsDep, bus: EventBusDep,
                 payload: Optional[RejectRequest] = None):
    reason = payload.reason if payload else None
    order_service.reject_order(session, order_id, reason=reason, bus=bus)
    return serialize_order(order_service.get_order(session, order_id), settings)


def _history(session, settings, status, table_id, date_from, date_to, search, limit):
    filters = HistoryFilters(
        status=status,
        table_id=table_id,
        date_from=date_from,
        date_to=date_to,
        search=search,
    )
    return order_service.order_history(session, filters, limit=limit or settings.order_history_limit)


@router.get("/orders/history", response_model=List[OrderOut])
def order_history(
    session: SessionDep,
    settings: SettingsDep,
    status: Optional[OrderStatus] = None,
    table_id: Optional[int] = None,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    search: Optional[str] = None,
    limit: Optional[int] = None,
):
    orders = _history(session, settings, status, table_id, date_from, date_to, search, limit)
    return serialize_orders(orders, settings)


@router.get("/orders/history/export")
def export_order_history(
    session: SessionDep,
    settings: SettingsDep,
    status: Optional[OrderStatus] = None,
    table_id: Optional[int] = None,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    search: Optional[str] = None,
    limit: Optional[int] = None,
):
    orders = _history(session, settings, status, table_id, date_from, date_to, search, limit)
    content = order_service.export_order_history_csv(orders)
    filename = f"order_history_{date.today().isoformat()}.csv"
    return Response(
        content=content,
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )

"""
Order lifecycle for table orders.

Checkout turns a table's cart into its single pending order, staff move it through
pending -> confirmed -> preparing -> ready -> completed (or cancel it), and
completion moves the ordered units from stock into sales in the same transaction
as the status change.
"""
import csv
import io
import json
import logging
from dataclasses import dataclass
from datetime import date, datetime, time
from decimal import Decimal
from typing import Dict, Iterable, List, Optional, Tuple

from sqlalchemy import case, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import selectinload
from sqlmodel import Session, select

from ..db.menu import MenuItemModel
from ..db.orders import Order, OrderItem, OrderStatus
from ..errors import (
    EmptyCart,
    FeedbackAlreadySubmitted,
    InvalidQuantity,
    InvalidTransition,
    MenuItemNotFound,
    OrderNotFound,
    PersistenceFailure,
    StockExceeded,
)
from ..schemas.orders import FeedbackIn
from .events import EventType, OrderEvent, OrderEventBus
from .money import to_money
from .persistence import commit

logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS: Dict[OrderStatus, Tuple[OrderStatus, ...]] = {
    OrderStatus.PENDING: (OrderStatus.CONFIRMED, OrderStatus.CANCELLED),
    OrderStatus.CONFIRMED: (OrderStatus.PREPARING, OrderStatus.CANCELLED),
    OrderStatus.PREPARING: (OrderStatus.READY, OrderStatus.CANCELLED),
    OrderStatus.READY: (OrderStatus.COMPLETED,),
    OrderStatus.COMPLETED: (),
    OrderStatus.CANCELLED: (),
}

KITCHEN_STATUSES = (OrderStatus.PREPARING, OrderStatus.READY)


def can_transition(current: OrderStatus, target: OrderStatus) -> bool:
    return target in ALLOWED_TRANSITIONS.get(current, ())


def requested_quantities(pairs: Iterable[Tuple[int, int]]) -> Dict[int, int]:
    """Merge (menu_item_id, quantity) pairs, keeping first-seen order."""
    merged: Dict[int, int] = {}
    for menu_item_id, quantity in pairs:
        merged[menu_item_id] = merged.get(menu_item_id, 0) + quantity
    return merged


def _publish(bus: Optional[OrderEventBus], events: List[OrderEvent]):
    if bus is None:
        return
    for event in events:
        bus.publish(event)


def _with_items(statement):
    return statement.options(selectinload(Order.items).selectinload(OrderItem.menu_item))


# --- checkout -----------------------------------------------------------------

def checkout(
    session: Session,
    table_id: int,
    lines: Iterable[Tuple[int, int]],
    bus: Optional[OrderEventBus] = None,
) -> Order:
    """
    Create the table's pending order, or replace the lines of the one it already has.

    lines are (menu_item_id, quantity) pairs; repeated items are merged.

    Stock is checked against the current menu rows for every line before anything
    is written; one short item aborts the whole checkout.
    """
    quantities = requested_quantities(lines)
    if not quantities or sum(quantities.values()) == 0:
        raise EmptyCart(table_id)

    total_amount = Decimal("0.00")
    try:
        for meal_id, quantity in quantities.items():
            if quantity < 1:
                raise InvalidQuantity(meal_id, quantity)
            # Row lock holds the stock figure until the order is written
            menu_item = session.get(MenuItemModel, meal_id, with_for_update=True)
            if menu_item is None:
                raise MenuItemNotFound(meal_id)
            if quantity > menu_item.quantity:
                logger.warning(
                    f"Checkout for table {table_id} rejected: {menu_item.name} "
                    f"requested {quantity}, available {menu_item.quantity}"
                )
                raise StockExceeded(menu_item.id, menu_item.name, menu_item.quantity, quantity)
            total_amount += to_money(menu_item.price) * quantity
    except (MenuItemNotFound, StockExceeded, InvalidQuantity):
        session.rollback()
        raise
    total_amount = to_money(total_amount)

    existing = session.exec(
        select(Order)
        .where(Order.table_id == table_id, Order.status == OrderStatus.PENDING)
        .order_by(Order.created_at.desc())
        .limit(1)
    ).first()

    now = datetime.now()
    new_items = [
        OrderItem(meal_id=meal_id, quantity=quantity, created_at=now)
        for meal_id, quantity in quantities.items()
    ]

    if existing is not None:
        logger.info(f"Updating existing pending order {existing.id} for table {table_id}")
        existing.items.clear()
        existing.items.extend(new_items)
        existing.total_amount = total_amount
        # A resubmitted cart counts as a new order time
        existing.created_at = now
        existing.updated_at = now
        session.add(existing)
        order = existing
        event_type = EventType.UPDATE
    else:
        logger.info(f"Creating new order for table {table_id}")
        order = Order(
            table_id=table_id,
            status=OrderStatus.PENDING,
            total_amount=total_amount,
            created_at=now,
            updated_at=now,
        )
        order.items.extend(new_items)
        session.add(order)
        event_type = EventType.INSERT

    commit(session, f"save order for table {table_id}")
    session.refresh(order)
    logger.info(f"Order {order.id} {'updated' if event_type == EventType.UPDATE else 'created'}: total={total_amount}")

    _publish(bus, [OrderEvent(event_type, order.id, table_id, OrderStatus.PENDING)])
    return order


# --- status transitions ---------------------------------------------------------

def _apply_completion(session: Session, order: Order):
    """Move the ordered units from stock into sales. Stock never goes below zero."""
    connection = session.connection()
    for item in order.items:
        menu_item = session.get(MenuItemModel, item.meal_id, with_for_update=True)
        available = menu_item.quantity if menu_item else 0

        connection.execute(
            update(MenuItemModel)
            .where(MenuItemModel.id == item.meal_id)
            .values(
                sales=MenuItemModel.sales + item.quantity,
                quantity=case(
                    (MenuItemModel.quantity >= item.quantity, MenuItemModel.quantity - item.quantity),
                    else_=0,
                ),
            )
        )

        if available < item.quantity:
            logger.warning(
                f"Meal {item.meal_id} had insufficient stock. "
                f"Ordered: {item.quantity}, Available: {available}"
            )
        elif available == item.quantity:
            logger.warning(f"Meal {item.meal_id} is now out of stock")


def _transition_in_tx(
    session: Session,
    order: Order,
    new_status: OrderStatus,
    reason: Optional[str] = None,
) -> OrderEvent:
    current = order.status
    if not can_transition(current, new_status):
        raise InvalidTransition(order.id, current, new_status)

    values = {"status": new_status, "updated_at": datetime.now()}
    if new_status == OrderStatus.CANCELLED and reason:
        values["cancellation_reason"] = reason

    # Compare-and-swap on the status we validated against
    result = session.connection().execute(
        update(Order).where(Order.id == order.id, Order.status == current).values(**values)
    )
    if result.rowcount != 1:
        raise InvalidTransition(order.id, current, new_status)

    if new_status == OrderStatus.COMPLETED:
        _apply_completion(session, order)

    return OrderEvent(EventType.UPDATE, order.id, order.table_id, new_status, old_status=current)


def transition(
    session: Session,
    order_id: int,
    new_status: OrderStatus,
    reason: Optional[str] = None,
    bus: Optional[OrderEventBus] = None,
) -> Order:
    new_status = OrderStatus(new_status)
    order = session.get(Order, order_id)
    if order is None:
        raise OrderNotFound(order_id)

    try:
        event = _transition_in_tx(session, order, new_status, reason)
    except InvalidTransition:
        session.rollback()
        raise
    except SQLAlchemyError as e:
        session.rollback()
        logger.error(f"Failed to update status of order {order_id}: {e}", exc_info=True)
        raise PersistenceFailure(f"Failed to update order status: {e}") from e

    commit(session, f"update status of order {order_id}")
    session.refresh(order)
    logger.info(f"Order {order_id}: {event.old_status.value} -> {new_status.value}")

    _publish(bus, [event])
    return order


def transition_many(
    session: Session,
    order_ids: Iterable[int],
    new_status: OrderStatus,
    bus: Optional[OrderEventBus] = None,
) -> List[Order]:
    """All-or-nothing bulk transition. Repeated ids are applied once."""
    new_status = OrderStatus(new_status)
    order_ids = list(dict.fromkeys(order_ids))
    orders = []
    events = []
    try:
        for order_id in order_ids:
            order = session.get(Order, order_id)
            if order is None:
                raise OrderNotFound(order_id)
            events.append(_transition_in_tx(session, order, new_status))
            orders.append(order)
    except (OrderNotFound, InvalidTransition):
        session.rollback()
        raise
    except SQLAlchemyError as e:
        session.rollback()
        logger.error(f"Failed bulk transition to {new_status.value}: {e}", exc_info=True)
        raise PersistenceFailure(f"Failed to update orders: {e}") from e

    commit(session, f"move {len(orders)} orders to {new_status.value}")
    for order in orders:
        session.refresh(order)
    logger.info(f"{len(orders)} orders moved to {new_status.value}")

    _publish(bus, events)
    return orders


def approve_order(session: Session, order_id: int, bus: Optional[OrderEventBus] = None) -> Order:
    return transition(session, order_id, OrderStatus.CONFIRMED, bus=bus)


def approve_orders(session: Session, order_ids: Iterable[int], bus: Optional[OrderEventBus] = None) -> List[Order]:
    return transition_many(session, order_ids, OrderStatus.CONFIRMED, bus=bus)


def reject_order(session: Session, order_id: int, reason: Optional[str] = None,
                 bus: Optional[OrderEventBus] = None) -> Order:
    return transition(session, order_id, OrderStatus.CANCELLED, reason=reason, bus=bus)


def cancel_order(session: Session, order_id: int, bus: Optional[OrderEventBus] = None) -> Order:
    return transition(session, order_id, OrderStatus.CANCELLED, bus=bus)


def start_preparing(session: Session, order_id: int, bus: Optional[OrderEventBus] = None) -> Order:
    return transition(session, order_id, OrderStatus.PREPARING, bus=bus)


def mark_ready(session: Session, order_id: int, bus: Optional[OrderEventBus] = None) -> Order:
    return transition(session, order_id, OrderStatus.READY, bus=bus)


def mark_orders_ready(session: Session, order_ids: Iterable[int], bus: Optional[OrderEventBus] = None) -> List[Order]:
    return transition_many(session, order_ids, OrderStatus.READY, bus=bus)


def complete_order(session: Session, order_id: int, bus: Optional[OrderEventBus] = None) -> Order:
    return transition(session, order_id, OrderStatus.COMPLETED, bus=bus)


# --- feedback -----------------------------------------------------------------

def submit_feedback(
    session: Session,
    order_id: int,
    feedback: FeedbackIn,
    bus: Optional[OrderEventBus] = None,
) -> Order:
    order = session.get(Order, order_id)
    if order is None:
        raise OrderNotFound(order_id)
    if order.status != OrderStatus.COMPLETED:
        raise InvalidTransition(order_id, order.status, "feedback")
    if order.feedback:
        raise FeedbackAlreadySubmitted(order_id)

    payload = {
        "food_rating": feedback.food_rating,
        "service_rating": feedback.service_rating,
        "comments": feedback.comments,
        "submitted_at": datetime.now().isoformat(),
    }

    try:
        result = session.connection().execute(
            update(Order)
            .where(Order.id == order_id, Order.status == OrderStatus.COMPLETED, Order.feedback.is_(None))
            .values(feedback=json.dumps(payload), updated_at=datetime.now())
        )
    except SQLAlchemyError as e:
        session.rollback()
        logger.error(f"Failed to save feedback for order {order_id}: {e}", exc_info=True)
        raise PersistenceFailure(f"Failed to update feedback for order {order_id}: {e}") from e
    if result.rowcount != 1:
        session.rollback()
        raise FeedbackAlreadySubmitted(order_id)

    commit(session, f"save feedback for order {order_id}")
    session.refresh(order)
    logger.info(f"Feedback saved for order {order_id}")

    _publish(bus, [OrderEvent(EventType.UPDATE, order.id, order.table_id, order.status, old_status=order.status)])
    return order


def parse_feedback(order: Order) -> Optional[dict]:
    if not order.feedback:
        return None
    try:
        return json.loads(order.feedback)
    except ValueError:
        logger.warning(f"Order {order.id} has unreadable feedback payload")
        return None


# --- reads --------------------------------------------------------------------

def get_order(session: Session, order_id: int) -> Order:
    order = session.exec(_with_items(select(Order).where(Order.id == order_id))).first()
    if order is None:
        raise OrderNotFound(order_id)
    return order


def orders_for_table(session: Session, table_id: int) -> List[Order]:
    return list(session.exec(
        _with_items(select(Order))
        .where(Order.table_id == table_id)
        .order_by(Order.created_at.desc(), Order.id.desc())
    ).all())


def latest_order_for_table(session: Session, table_id: int) -> Optional[Order]:
    return session.exec(
        _with_items(select(Order))
        .where(Order.table_id == table_id)
        .order_by(Order.created_at.desc(), Order.id.desc())
        .limit(1)
    ).first()


def pending_orders(session: Session) -> List[Order]:
    """Oldest first, the order staff should review them in."""
    return list(session.exec(
        _with_items(select(Order))
        .where(Order.status == OrderStatus.PENDING)
        .order_by(Order.created_at.asc(), Order.id.asc())
    ).all())


def kitchen_orders(session: Session) -> Dict[OrderStatus, List[Order]]:
    orders = session.exec(
        _with_items(select(Order))
        .where(Order.status.in_(KITCHEN_STATUSES))
        .order_by(Order.created_at.asc(), Order.id.asc())
    ).all()
    grouped: Dict[OrderStatus, List[Order]] = {status: [] for status in KITCHEN_STATUSES}
    for order in orders:
        grouped[order.status].append(order)
    return grouped


@dataclass
class HistoryFilters:
    status: Optional[OrderStatus] = None
    table_id: Optional[int] = None
    date_from: Optional[date] = None
    date_to: Optional[date] = None
    search: Optional[str] = None


def order_history(session: Session, filters: Optional[HistoryFilters] = None, limit: int = 100) -> List[Order]:
    filters = filters or HistoryFilters()
    query = _with_items(select(Order)).where(Order.status != OrderStatus.PENDING)

    if filters.status is not None:
        query = query.where(Order.status == filters.status)
    if filters.table_id is not None:
        query = query.where(Order.table_id == filters.table_id)
    if filters.date_from is not None:
        query = query.where(Order.created_at >= datetime.combine(filters.date_from, time.min))
    if filters.date_to is not None:
        query = query.where(Order.created_at <= datetime.combine(filters.date_to, time.max))

    orders = list(session.exec(query.order_by(Order.created_at.desc(), Order.id.desc()).limit(limit)).all())

    if filters.search:
        needle = filters.search.strip().lower()
        orders = [order for order in orders if _matches_search(order, needle)]
    return orders


def _matches_search(order: Order, needle: str) -> bool:
    item_names = " ".join(item.menu_item.name for item in order.items if item.menu_item).lower()
    return needle in str(order.id) or needle in str(order.table_id) or needle in item_names


# --- projections --------------------------------------------------------------

@dataclass
class SummaryLine:
    item: OrderItem
    subtotal: Decimal


@dataclass
class OrderSummary:
    lines: List[SummaryLine]
    total: Decimal
    item_count: int


def order_summary(order: Order) -> OrderSummary:
    lines = []
    for item in order.items:
        price = item.menu_item.price if item.menu_item else 0
        lines.append(SummaryLine(item=item, subtotal=to_money(to_money(price) * item.quantity)))
    return OrderSummary(
        lines=lines,
        total=to_money(sum((line.subtotal for line in lines), Decimal("0"))),
        item_count=sum(item.quantity for item in order.items),
    )


def export_order_history_csv(orders: Iterable[Order]) -> str:
    output = io.StringIO()
    writer = csv.writer(output)
    writer.writerow(["Order ID", "Table", "Status", "Items", "Total", "Date"])
    for order in orders:
        items = "; ".join(
            f"{item.menu_item.name if item.menu_item else item.meal_id} x{item.quantity}"
            for item in order.items
        )
        writer.writerow([
            order.id,
            order.table_id,
            order.status.value,
            items,
            f"{to_money(order.total_amount)}",
            order.created_at.isoformat(),
        ])
    return output.getvalue()

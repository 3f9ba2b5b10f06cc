"""
In-process change notifications for orders.

Staff views subscribe with a status filter (and optionally a table) and re-fetch
their lists when an event arrives. Publishing happens after the write commits.
"""
import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Callable, Iterable, List, Optional, Set

from ..db.orders import OrderStatus

logger = logging.getLogger(__name__)


class EventType(str, Enum):
    INSERT = "INSERT"
    UPDATE = "UPDATE"
    DELETE = "DELETE"


@dataclass(frozen=True)
class OrderEvent:
    type: EventType
    order_id: int
    table_id: int
    status: Optional[OrderStatus]
    old_status: Optional[OrderStatus] = None
    occurred_at: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> dict:
        return {
            "type": self.type.value,
            "order_id": self.order_id,
            "table_id": self.table_id,
            "status": self.status.value if self.status else None,
            "old_status": self.old_status.value if self.old_status else None,
            "occurred_at": self.occurred_at.isoformat(),
        }


EventHandler = Callable[[OrderEvent], None]


class Subscription:
    def __init__(self, bus: "OrderEventBus", handler: EventHandler,
                 statuses: Optional[Set[OrderStatus]], table_id: Optional[int]):
        self._bus = bus
        self.handler = handler
        self.statuses = statuses
        self.table_id = table_id
        self.active = True

    def matches(self, event: OrderEvent) -> bool:
        if self.table_id is not None and event.table_id != self.table_id:
            return False
        if not self.statuses:
            return True
        # An order leaving a watched status matters as much as one entering it
        return event.status in self.statuses or event.old_status in self.statuses

    def unsubscribe(self) -> None:
        if self.active:
            self._bus._remove(self)
            self.active = False


class OrderEventBus:
    def __init__(self):
        self._subscriptions: List[Subscription] = []
        self._lock = threading.Lock()

    def subscribe(self, handler: EventHandler,
                  statuses: Optional[Iterable[OrderStatus]] = None,
                  table_id: Optional[int] = None) -> Subscription:
        subscription = Subscription(self, handler, set(statuses) if statuses else None, table_id)
        with self._lock:
            self._subscriptions.append(subscription)
        logger.debug(f"Subscribed to order events: statuses={subscription.statuses}, table_id={table_id}")
        return subscription

    def publish(self, event: OrderEvent) -> None:
        with self._lock:
            targets = [s for s in self._subscriptions if s.matches(event)]
        for subscription in targets:
            try:
                subscription.handler(event)
            except Exception:
                logger.exception(f"Order event handler failed for order {event.order_id}")

    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscriptions)

    def _remove(self, subscription: Subscription) -> None:
        with self._lock:
            if subscription in self._subscriptions:
                self._subscriptions.remove(subscription)

"""
Cart aggregation for a table.

A cart is a flat list of menu item snapshots, one entry per unit. Grouping into
lines happens on read. Each table's cart lives in one shared, observable Cart
so every view watching the table sees the same state without re-reading storage.
"""
import logging
import threading
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Callable, Dict, List

from ..errors import StockExceeded
from .money import to_money

logger = logging.getLogger(__name__)


@dataclass
class CartLine:
    item: Any
    quantity: int

    @property
    def subtotal(self) -> Decimal:
        return to_money(to_money(self.item.price) * self.quantity)


def count_of(cart: List[Any], item_id: int) -> int:
    return sum(1 for unit in cart if unit.id == item_id)


def add_selection(cart: List[Any], item) -> None:
    """Append one unit of item, refusing to go past its stock on hand."""
    in_cart = count_of(cart, item.id)
    if in_cart >= item.quantity:
        raise StockExceeded(item.id, item.name, item.quantity, in_cart + 1)
    cart.append(item)


def remove_one_unit(cart: List[Any], item_id: int) -> bool:
    for index, unit in enumerate(cart):
        if unit.id == item_id:
            del cart[index]
            return True
    return False


def group_by_item(cart: List[Any]) -> List[CartLine]:
    grouped: Dict[int, CartLine] = {}
    for unit in cart:
        line = grouped.get(unit.id)
        if line is None:
            grouped[unit.id] = CartLine(item=unit, quantity=1)
        else:
            line.quantity += 1
    return list(grouped.values())


def total(cart: List[Any]) -> Decimal:
    return to_money(sum((to_money(unit.price) for unit in cart), Decimal("0")))


def item_count(cart: List[Any]) -> int:
    return len(cart)


CartListener = Callable[["Cart"], None]


class Cart:
    def __init__(self, table_id: int):
        self.table_id = table_id
        self._units: List[Any] = []
        self._listeners: List[CartListener] = []
        self._lock = threading.RLock()

    def add(self, item) -> None:
        with self._lock:
            add_selection(self._units, item)
        self._notify()

    def remove_one(self, item_id: int) -> bool:
        with self._lock:
            removed = remove_one_unit(self._units, item_id)
        if removed:
            self._notify()
        return removed

    def remove_units(self, quantities: Dict[int, int]) -> int:
        """Remove up to the given number of units per item id; units added since stay."""
        removed = 0
        with self._lock:
            for item_id, quantity in quantities.items():
                for _ in range(quantity):
                    if not remove_one_unit(self._units, item_id):
                        break
                    removed += 1
        if removed:
            self._notify()
        return removed

    def clear(self) -> None:
        with self._lock:
            had_units = bool(self._units)
            self._units.clear()
        if had_units:
            self._notify()

    def snapshot(self) -> List[Any]:
        with self._lock:
            return list(self._units)

    def lines(self) -> List[CartLine]:
        return group_by_item(self.snapshot())

    def total(self) -> Decimal:
        return total(self.snapshot())

    def item_count(self) -> int:
        return item_count(self.snapshot())

    def subscribe(self, listener: CartListener) -> Callable[[], None]:
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe():
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    def _notify(self) -> None:
        with self._lock:
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                listener(self)
            except Exception:
                logger.exception(f"Cart listener failed for table {self.table_id}")


class CartRegistry:
    """One Cart per table for the lifetime of the process."""

    def __init__(self):
        self._carts: Dict[int, Cart] = {}
        self._lock = threading.Lock()

    def cart_for(self, table_id: int) -> Cart:
        with self._lock:
            cart = self._carts.get(table_id)
            if cart is None:
                cart = Cart(table_id)
                self._carts[table_id] = cart
            return cart

    def discard(self, table_id: int) -> None:
        with self._lock:
            self._carts.pop(table_id, None)

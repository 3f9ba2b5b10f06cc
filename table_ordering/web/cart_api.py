"""
Per-table cart.

The cart lives in process memory and is shared by every client at the table.
Checkout hands the grouped lines to the order service and, once the order is
saved, removes the units it took from the cart.
"""
import logging
from typing import Annotated

from fastapi import APIRouter, Path

from table_ordering.db.menu import MenuItemModel
from table_ordering.dependencies import CartsDep, EventBusDep, SessionDep, SettingsDep
from table_ordering.errors import MenuItemNotFound
from table_ordering.schemas.cart import AddToCart, CartOut
from table_ordering.schemas.orders import OrderOut
from table_ordering.services import orders as order_service
from .serializers import serialize_cart, serialize_menu_item, serialize_order

logger = logging.getLogger(__name__)
router = APIRouter()

TableId = Annotated[int, Path(ge=1)]


@router.get("/tables/{table_id}/cart", response_model=CartOut)
def get_cart(table_id: TableId, carts: CartsDep):
    return serialize_cart(carts.cart_for(table_id))


@router.post("/tables/{table_id}/cart/items", response_model=CartOut)
def add_to_cart(table_id: TableId, payload: AddToCart, session: SessionDep, settings: SettingsDep, carts: CartsDep):
    # Stock ceiling is checked against the current row, not a cached menu
    menu_item = session.get(MenuItemModel, payload.menu_item_id)
    if menu_item is None:
        raise MenuItemNotFound(payload.menu_item_id)

    cart = carts.cart_for(table_id)
    cart.add(serialize_menu_item(menu_item, settings))
    logger.info(f"Table {table_id}: added {menu_item.name} to cart")
    return serialize_cart(cart)


@router.delete("/tables/{table_id}/cart/items/{menu_item_id}", response_model=CartOut)
def remove_from_cart(table_id: TableId, menu_item_id: int, carts: CartsDep):
    cart = carts.cart_for(table_id)
    cart.remove_one(menu_item_id)
    return serialize_cart(cart)


@router.delete("/tables/{table_id}/cart", response_model=CartOut)
def clear_cart(table_id: TableId, carts: CartsDep):
    cart = carts.cart_for(table_id)
    cart.clear()
    return serialize_cart(cart)


@router.post("/tables/{table_id}/checkout", response_model=OrderOut)
def checkout_cart(table_id: TableId, session: SessionDep, settings: SettingsDep, carts: CartsDep, bus: EventBusDep):
    cart = carts.cart_for(table_id)
    lines = [(line.item.id, line.quantity) for line in cart.lines()]

    order = order_service.checkout(session, table_id, lines, bus=bus)
    # Units added by other devices during checkout stay in the cart
    moved = cart.remove_units(dict(lines))
    logger.info(f"Table {table_id}: {moved} units moved from cart to order {order.id}")
    return serialize_order(order_service.get_order(session, order.id), settings)

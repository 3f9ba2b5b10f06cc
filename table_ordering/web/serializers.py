"""
Conversion of SQLModel rows to the Pydantic models the API returns.
"""
from typing import Iterable, List

from table_ordering.db.menu import MenuItemModel
from table_ordering.db.orders import Order
from table_ordering.schemas.cart import CartLineOut, CartOut
from table_ordering.schemas.menu import MenuItemOut
from table_ordering.schemas.orders import FeedbackOut, OrderItemOut, OrderOut
from table_ordering.services.cart import Cart
from table_ordering.services.orders import order_summary, parse_feedback
from table_ordering.services.storage import public_image_url
from table_ordering.settings import Settings


def serialize_menu_item(item: MenuItemModel, settings: Settings) -> MenuItemOut:
    # Numeric comes back as Decimal
    return MenuItemOut(
        id=item.id,
        name=item.name,
        description=item.description or "",
        price=float(item.price),
        image=public_image_url(item.image, settings),
        quantity=item.quantity,
        sales=item.sales,
        category=item.category,
        created_at=item.created_at,
    )


def serialize_order(order: Order, settings: Settings) -> OrderOut:
    summary = order_summary(order)
    feedback = parse_feedback(order)
    return OrderOut(
        id=order.id,
        table_id=order.table_id,
        status=order.status,
        total_amount=float(order.total_amount),
        created_at=order.created_at,
        updated_at=order.updated_at,
        item_count=summary.item_count,
        feedback=FeedbackOut(**feedback) if feedback else None,
        cancellation_reason=order.cancellation_reason,
        items=[
            OrderItemOut(
                id=line.item.id,
                meal_id=line.item.meal_id,
                quantity=line.item.quantity,
                subtotal=float(line.subtotal),
                menu_item=serialize_menu_item(line.item.menu_item, settings) if line.item.menu_item else None,
            )
            for line in summary.lines
        ],
    )


def serialize_orders(orders: Iterable[Order], settings: Settings) -> List[OrderOut]:
    return [serialize_order(order, settings) for order in orders]


def serialize_cart(cart: Cart) -> CartOut:
    return CartOut(
        table_id=cart.table_id,
        lines=[
            CartLineOut(item=line.item, quantity=line.quantity, subtotal=float(line.subtotal))
            for line in cart.lines()
        ],
        total=float(cart.total()),
        item_count=cart.item_count(),
    )

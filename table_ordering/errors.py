"""
Errors raised by the ordering services.

Every error carries the HTTP status the web layer answers with, so services stay
free of FastAPI imports.
"""


class OrderingError(Exception):
    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class StockExceeded(OrderingError):
    status_code = 409

    def __init__(self, item_id: int, item_name: str, available: int, requested: int | None = None):
        self.item_id = item_id
        self.item_name = item_name
        self.available = available
        self.requested = requested
        message = f'Insufficient stock for "{item_name}". Available: {available}'
        if requested is not None:
            message += f", Requested: {requested}"
        super().__init__(message)


class OrderNotFound(OrderingError):
    status_code = 404

    def __init__(self, order_id: int):
        self.order_id = order_id
        super().__init__(f"Order {order_id} not found")


class MenuItemNotFound(OrderingError):
    status_code = 404

    def __init__(self, menu_item_id: int):
        self.menu_item_id = menu_item_id
        super().__init__(f"Menu item {menu_item_id} not found")


class MenuItemInUse(OrderingError):
    status_code = 409

    def __init__(self, menu_item_id: int):
        self.menu_item_id = menu_item_id
        super().__init__(f"Menu item {menu_item_id} is referenced by existing orders")


class EmptyCart(OrderingError):
    status_code = 400

    def __init__(self, table_id: int):
        self.table_id = table_id
        super().__init__(f"Cart for table {table_id} is empty")


class InvalidQuantity(OrderingError):
    status_code = 400

    def __init__(self, menu_item_id: int, quantity: int):
        self.menu_item_id = menu_item_id
        self.quantity = quantity
        super().__init__(f"Quantity for menu item {menu_item_id} must be at least 1, got {quantity}")


class InvalidTransition(OrderingError):
    status_code = 409

    def __init__(self, order_id: int, current, target):
        self.order_id = order_id
        self.current = current
        self.target = target
        super().__init__(f"Cannot transition order {order_id} from {_value(current)} to {_value(target)}")


class FeedbackAlreadySubmitted(OrderingError):
    status_code = 409

    def __init__(self, order_id: int):
        self.order_id = order_id
        super().__init__(f"Feedback for order {order_id} was already submitted")


class PersistenceFailure(OrderingError):
    status_code = 503


def _value(status) -> str:
    return getattr(status, "value", status)

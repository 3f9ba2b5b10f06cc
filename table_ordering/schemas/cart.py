from typing import List

from pydantic import BaseModel

from .menu import MenuItemOut


class AddToCart(BaseModel):
    menu_item_id: int


class CartLineOut(BaseModel):
    item: MenuItemOut
    quantity: int
    subtotal: float


class CartOut(BaseModel):
    table_id: int
    lines: List[CartLineOut]
    total: float
    item_count: int

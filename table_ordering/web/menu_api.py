"""
Menu and inventory catalog.

Public reads for the customer menu plus admin CRUD over stock. Stock quantity and
sales are otherwise only changed by order completion.
"""
import logging
from decimal import Decimal
from typing import List, Optional

from fastapi import APIRouter
from sqlmodel import select

from table_ordering.db.menu import MenuItemModel
from table_ordering.dependencies import SessionDep, SettingsDep
from table_ordering.errors import MenuItemInUse, MenuItemNotFound
from table_ordering.schemas.menu import MenuItemCreate, MenuItemOut, MenuItemUpdate
from table_ordering.services.persistence import commit
from .serializers import serialize_menu_item

logger = logging.getLogger(__name__)
router = APIRouter()

ALL_CATEGORIES = "All"


@router.get("/menu", response_model=List[MenuItemOut])
def list_menu(session: SessionDep, settings: SettingsDep, category: Optional[str] = None):
    query = select(MenuItemModel).order_by(MenuItemModel.name)
    if category and category != ALL_CATEGORIES:
        query = query.where(MenuItemModel.category == category)
    return [serialize_menu_item(item, settings) for item in session.exec(query)]


@router.get("/menu/categories", response_model=List[str])
def list_categories(session: SessionDep):
    categories = session.exec(
        select(MenuItemModel.category).where(MenuItemModel.category.is_not(None)).order_by(MenuItemModel.name)
    ).all()
    # Keep first-seen order, "All" always first
    return [ALL_CATEGORIES] + list(dict.fromkeys(c for c in categories if c))


@router.get("/menu/best-sellers", response_model=List[MenuItemOut])
def best_sellers(session: SessionDep, settings: SettingsDep, count: int = 3):
    items = session.exec(
        select(MenuItemModel).order_by(MenuItemModel.sales.desc(), MenuItemModel.name).limit(count)
    ).all()
    return [serialize_menu_item(item, settings) for item in items]


@router.get("/menu/search", response_model=List[MenuItemOut])
def search_menu(session: SessionDep, settings: SettingsDep, q: str = ""):
    term = q.strip().lower()
    if not term:
        return []
    items = session.exec(select(MenuItemModel).order_by(MenuItemModel.name)).all()
    return [
        serialize_menu_item(item, settings)
        for item in items
        if term in item.name.lower()
        or term in (item.description or "").lower()
        or term in (item.category or "").lower()
    ]


@router.get("/menu/{item_id}", response_model=MenuItemOut)
def get_menu_item(item_id: int, session: SessionDep, settings: SettingsDep):
    db_item = session.get(MenuItemModel, item_id)
    if not db_item:
        raise MenuItemNotFound(item_id)
    return serialize_menu_item(db_item, settings)


# Admin - create menu item
@router.post("/menu", response_model=MenuItemOut, status_code=201)
def create_menu_item(item: MenuItemCreate, session: SessionDep, settings: SettingsDep):
    data = item.model_dump()
    data["price"] = Decimal(str(data["price"]))
    db_item = MenuItemModel(**data)
    session.add(db_item)
    commit(session, f"create menu item {db_item.name}")
    session.refresh(db_item)
    logger.info(f"Menu item {db_item.id} created: {db_item.name}")
    return serialize_menu_item(db_item, settings)


# Admin - update menu item
@router.put("/menu/{item_id}", response_model=MenuItemOut)
def update_menu_item(item_id: int, item: MenuItemUpdate, session: SessionDep, settings: SettingsDep):
    db_item = session.get(MenuItemModel, item_id)
    if not db_item:
        raise MenuItemNotFound(item_id)

    update_data = item.model_dump(exclude_unset=True, exclude_none=True)
    if update_data.get("price") is not None:
        update_data["price"] = Decimal(str(update_data["price"]))
    for key, value in update_data.items():
        setattr(db_item, key, value)

    session.add(db_item)
    commit(session, f"update menu item {item_id}")
    session.refresh(db_item)
    logger.info(f"Menu item {item_id} updated: {sorted(update_data)}")
    return serialize_menu_item(db_item, settings)


# Admin - delete menu item
@router.delete("/menu/{item_id}")
def delete_menu_item(item_id: int, session: SessionDep):
    db_item = session.get(MenuItemModel, item_id)
    if not db_item:
        raise MenuItemNotFound(item_id)
    if db_item.order_items:
        raise MenuItemInUse(item_id)
    session.delete(db_item)
    commit(session, f"delete menu item {item_id}")
    logger.info(f"Menu item {item_id} deleted")
    return {"ok": True}

from datetime import datetime
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

from table_ordering.db import MenuItemModel, Order, OrderStatus
from table_ordering.dependencies import get_cart_registry, get_engine, get_event_bus, get_settings
from table_ordering.services import orders as order_service
from table_ordering.services.cart import CartRegistry
from table_ordering.services.events import OrderEventBus
from table_ordering.settings import Settings

FORWARD_PATH = (
    OrderStatus.CONFIRMED,
    OrderStatus.PREPARING,
    OrderStatus.READY,
    OrderStatus.COMPLETED,
)


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session(engine):
    with Session(engine) as session:
        yield session


@pytest.fixture
def settings():
    return Settings(
        db_url="sqlite://",
        run_migrations=False,
        storage_base_url="http://storage.test/inventory/",
        default_image="default.jpg",
        status_poll_interval_seconds=10,
    )


@pytest.fixture
def bus():
    return OrderEventBus()


@pytest.fixture
def carts():
    return CartRegistry()


@pytest.fixture
def make_menu_item(session):
    def factory(name="Chicken Adobo", price="120.00", quantity=10, sales=0, category="Main Course", **kwargs):
        item = MenuItemModel(
            name=name,
            price=Decimal(price),
            quantity=quantity,
            sales=sales,
            category=category,
            **kwargs,
        )
        session.add(item)
        session.commit()
        session.refresh(item)
        return item

    return factory


@pytest.fixture
def place_order(session):
    """Check out lines for a table and walk the order forward to the wanted status."""

    def factory(table_id, lines, status=OrderStatus.PENDING, created_at: datetime | None = None) -> Order:
        order = order_service.checkout(session, table_id, lines)
        if status == OrderStatus.CANCELLED:
            order_service.cancel_order(session, order.id)
        elif status != OrderStatus.PENDING:
            for step in FORWARD_PATH[:FORWARD_PATH.index(status) + 1]:
                order_service.transition(session, order.id, step)
        if created_at is not None:
            order.created_at = created_at
            session.add(order)
            session.commit()
        session.refresh(order)
        return order

    return factory


@pytest.fixture
def client(engine, settings, carts, bus):
    from table_ordering.web import app

    app.dependency_overrides[get_engine] = lambda: engine
    app.dependency_overrides[get_settings] = lambda: settings
    app.dependency_overrides[get_cart_registry] = lambda: carts
    app.dependency_overrides[get_event_bus] = lambda: bus
    # No context manager: the lifespan (migrations, real engine) is not run
    yield TestClient(app)
    app.dependency_overrides.clear()

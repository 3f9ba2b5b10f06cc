import logging
from contextlib import asynccontextmanager
from typing import Annotated

from fastapi import FastAPI, Depends
from fastapi.requests import HTTPConnection
from sqlalchemy.engine.base import Engine
from sqlmodel import Session

from table_ordering.db import run_migrations, create_db_engine
from table_ordering.services.cart import CartRegistry
from table_ordering.services.events import OrderEventBus
from table_ordering.settings import Settings

logger = logging.getLogger(__name__)

settings = Settings()


# HTTPConnection so the same dependencies serve HTTP routes and WebSockets
def get_settings(connection: HTTPConnection) -> Settings:
    return connection.app.state.settings


def get_engine(connection: HTTPConnection) -> Engine:
    return connection.app.state.engine


def get_cart_registry(connection: HTTPConnection) -> CartRegistry:
    return connection.app.state.carts


def get_event_bus(connection: HTTPConnection) -> OrderEventBus:
    return connection.app.state.event_bus


def get_session(engine: Engine = Depends(get_engine)):
    with Session(engine) as session:
        yield session

SessionDep = Annotated[Session, Depends(get_session)]
SettingsDep = Annotated[Settings, Depends(get_settings)]
CartsDep = Annotated[CartRegistry, Depends(get_cart_registry)]
EventBusDep = Annotated[OrderEventBus, Depends(get_event_bus)]


@asynccontextmanager
async def lifespan(app: FastAPI):
    app.state.settings = settings

    if settings.run_migrations:
        run_migrations(settings)

    engine = create_db_engine(settings)
    app.state.engine = engine
    app.state.carts = CartRegistry()
    app.state.event_bus = OrderEventBus()
    logger.info("Table ordering service started")

    yield # Wait until the app shuts down

    engine.dispose()

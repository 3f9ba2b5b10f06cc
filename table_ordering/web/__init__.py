"""
FastAPI application for table ordering.

Registers all routers and maps service errors to HTTP responses.
"""
import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from table_ordering.dependencies import lifespan
from table_ordering.errors import OrderingError

from .menu_api import router as menu_router
from .cart_api import router as cart_router
from .order_api import router as order_router
from .cashier_api import router as cashier_router
from .kitchen_api import router as kitchen_router
from .reports_api import router as reports_router
from .order_events import router as order_events_router

logger = logging.getLogger(__name__)

app = FastAPI(lifespan=lifespan)

app.include_router(menu_router)
app.include_router(cart_router)
app.include_router(order_router)
app.include_router(cashier_router)
app.include_router(kitchen_router)
app.include_router(reports_router)
app.include_router(order_events_router)


@app.exception_handler(OrderingError)
async def ordering_error_handler(request: Request, exc: OrderingError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    else:
        logger.info(f"{request.method} {request.url.path} rejected: {exc.message}")
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message, "error": type(exc).__name__},
    )


@app.get("/")
async def root():
    """Health check"""
    return {"message": "Table Ordering API", "status": "running"}

"""
Order change notifications over WebSocket.

Staff screens connect with the statuses they display, e.g.
/ws/orders?status=pending for the cashier or
/ws/orders?status=preparing&status=ready for the kitchen, and re-fetch their
lists on every message.
"""
import asyncio
import logging
from typing import List, Optional

from fastapi import APIRouter, Query, WebSocket, WebSocketDisconnect

from table_ordering.db.orders import OrderStatus
from table_ordering.dependencies import EventBusDep
from table_ordering.services.events import OrderEvent

logger = logging.getLogger(__name__)
router = APIRouter()


async def _forward(websocket: WebSocket, queue: "asyncio.Queue[OrderEvent]"):
    while True:
        event = await queue.get()
        await websocket.send_json(event.to_dict())


async def _wait_for_close(websocket: WebSocket):
    # Clients never send anything meaningful; reading just surfaces the disconnect
    while True:
        await websocket.receive_text()


@router.websocket("/ws/orders")
async def order_events(
    websocket: WebSocket,
    bus: EventBusDep,
    status: List[OrderStatus] = Query(default=[]),
    table_id: Optional[int] = None,
):
    loop = asyncio.get_running_loop()
    queue: asyncio.Queue = asyncio.Queue()

    # Services publish from worker threads
    def handler(event: OrderEvent):
        loop.call_soon_threadsafe(queue.put_nowait, event)

    subscription = bus.subscribe(handler, statuses=status or None, table_id=table_id)
    try:
        await websocket.accept()
        logger.info(f"Order events client connected: statuses={[s.value for s in status]}, table_id={table_id}")

        forward = asyncio.create_task(_forward(websocket, queue))
        listen = asyncio.create_task(_wait_for_close(websocket))
        done, pending = await asyncio.wait({forward, listen}, return_when=asyncio.FIRST_COMPLETED)
        for task in pending:
            task.cancel()
        for task in done:
            error = task.exception()
            if error is not None and not isinstance(error, WebSocketDisconnect):
                raise error
    finally:
        subscription.unsubscribe()
        logger.info("Order events client disconnected")

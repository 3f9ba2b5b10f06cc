"""
Async HTTP client for the table ordering API.

Used by table-side devices that poll their order status instead of holding a
WebSocket open.
"""
import asyncio
import logging
from typing import AsyncIterator, Iterable, Optional

import httpx

from table_ordering.db.orders import TERMINAL_STATUSES, OrderStatus
from table_ordering.schemas.cart import CartOut
from table_ordering.schemas.orders import LatestOrderOut, OrderOut

logger = logging.getLogger(__name__)


class OrderingClient:
    def __init__(self, base_url: str = "", client: Optional[httpx.AsyncClient] = None, timeout: float = 10.0):
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(base_url=base_url, timeout=timeout)

    async def __aenter__(self) -> "OrderingClient":
        return self

    async def __aexit__(self, *exc_info):
        await self.aclose()

    async def aclose(self):
        if self._owns_client:
            await self._client.aclose()

    async def _request(self, method: str, url: str, **kwargs) -> dict:
        r = await self._client.request(method, url, **kwargs)
        r.raise_for_status()
        return r.json()

    async def get_order(self, order_id: int) -> OrderOut:
        return OrderOut.model_validate(await self._request("GET", f"/orders/{order_id}"))

    async def latest_order(self, table_id: int) -> LatestOrderOut:
        return LatestOrderOut.model_validate(await self._request("GET", f"/tables/{table_id}/orders/latest"))

    async def get_cart(self, table_id: int) -> CartOut:
        return CartOut.model_validate(await self._request("GET", f"/tables/{table_id}/cart"))

    async def add_to_cart(self, table_id: int, menu_item_id: int) -> CartOut:
        data = await self._request("POST", f"/tables/{table_id}/cart/items", json={"menu_item_id": menu_item_id})
        return CartOut.model_validate(data)

    async def checkout(self, table_id: int) -> OrderOut:
        return OrderOut.model_validate(await self._request("POST", f"/tables/{table_id}/checkout"))

    async def submit_feedback(self, order_id: int, food_rating: int, service_rating: int, comments: str = "") -> OrderOut:
        data = await self._request(
            "POST",
            f"/orders/{order_id}/feedback",
            json={"food_rating": food_rating, "service_rating": service_rating, "comments": comments},
        )
        return OrderOut.model_validate(data)

    async def watch_order(
        self,
        table_id: int,
        interval: Optional[float] = None,
        until: Iterable[OrderStatus] = TERMINAL_STATUSES,
    ) -> AsyncIterator[OrderOut]:
        """
        Poll the table's latest order and yield it every time its status changes.

        Stops after yielding an order in one of the `until` statuses. Without an
        explicit interval the server's poll_interval_seconds is used.
        """
        stop_statuses = set(until)
        last_seen = None

        while True:
            try:
                latest = await self.latest_order(table_id)
            except httpx.HTTPError as e:
                logger.warning(f"Polling order status for table {table_id} failed: {e}")
                latest = None

            if latest is not None and latest.order is not None:
                order = latest.order
                if (order.id, order.status) != last_seen:
                    last_seen = (order.id, order.status)
                    yield order
                if order.status in stop_statuses:
                    return

            delay = interval
            if delay is None:
                delay = latest.poll_interval_seconds if latest is not None else 10.0
            await asyncio.sleep(delay)

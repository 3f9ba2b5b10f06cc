import asyncio
from datetime import datetime

import httpx
import pytest

from table_ordering.client import OrderingClient
from table_ordering.db import OrderStatus


def order_payload(order_id, status):
    return {
        "id": order_id,
        "table_id": 5,
        "status": status,
        "total_amount": 360.0,
        "created_at": datetime(2025, 6, 1, 12).isoformat(),
        "updated_at": None,
        "item_count": 3,
        "feedback": None,
        "cancellation_reason": None,
        "items": [],
    }


def polling_transport(statuses):
    """Serves the given statuses one poll at a time, repeating the last one."""
    polls = []

    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/tables/5/orders/latest"
        status = statuses[min(len(polls), len(statuses) - 1)]
        polls.append(status)
        if status is None:
            return httpx.Response(200, json={"order": None, "poll_interval_seconds": 0})
        if status == "error":
            return httpx.Response(503, json={"detail": "db down"})
        return httpx.Response(200, json={"order": order_payload(1, status), "poll_interval_seconds": 0})

    return httpx.MockTransport(handler), polls


async def collect(client, **kwargs):
    return [order async for order in client.watch_order(5, **kwargs)]


class TestWatchOrder:
    def test_yields_each_status_change_until_terminal(self):
        transport, polls = polling_transport(
            [None, "pending", "pending", "confirmed", "preparing", "preparing", "ready", "completed"]
        )

        async def run():
            async with httpx.AsyncClient(transport=transport, base_url="http://test") as http:
                return await collect(OrderingClient(client=http), interval=0)

        seen = asyncio.run(run())

        assert [o.status for o in seen] == [
            OrderStatus.PENDING,
            OrderStatus.CONFIRMED,
            OrderStatus.PREPARING,
            OrderStatus.READY,
            OrderStatus.COMPLETED,
        ]
        assert len(polls) == 8

    def test_stops_on_cancellation(self):
        transport, _ = polling_transport(["pending", "cancelled", "pending"])

        async def run():
            async with httpx.AsyncClient(transport=transport, base_url="http://test") as http:
                return await collect(OrderingClient(client=http), interval=0)

        assert [o.status for o in asyncio.run(run())] == [OrderStatus.PENDING, OrderStatus.CANCELLED]

    def test_custom_stop_status_and_server_interval(self):
        transport, _ = polling_transport(["pending", "ready", "completed"])

        async def run():
            async with httpx.AsyncClient(transport=transport, base_url="http://test") as http:
                return await collect(OrderingClient(client=http), until=[OrderStatus.READY])

        assert [o.status for o in asyncio.run(run())][-1] == OrderStatus.READY

    def test_keeps_polling_through_errors(self):
        transport, polls = polling_transport(["pending", "error", "completed"])

        async def run():
            async with httpx.AsyncClient(transport=transport, base_url="http://test") as http:
                return await collect(OrderingClient(client=http), interval=0)

        assert [o.status for o in asyncio.run(run())] == [OrderStatus.PENDING, OrderStatus.COMPLETED]
        assert polls == ["pending", "error", "completed"]


class TestRequests:
    def test_http_errors_propagate(self):
        transport = httpx.MockTransport(lambda request: httpx.Response(404, json={"detail": "Order 9 not found"}))

        async def run():
            async with httpx.AsyncClient(transport=transport, base_url="http://test") as http:
                await OrderingClient(client=http).get_order(9)

        with pytest.raises(httpx.HTTPStatusError):
            asyncio.run(run())

    def test_feedback_payload(self):
        sent = {}

        def handler(request: httpx.Request) -> httpx.Response:
            sent["path"] = request.url.path
            sent["body"] = request.read()
            return httpx.Response(200, json=order_payload(1, "completed"))

        async def run():
            async with httpx.AsyncClient(transport=httpx.MockTransport(handler), base_url="http://test") as http:
                return await OrderingClient(client=http).submit_feedback(1, 5, 4, "Great")

        order = asyncio.run(run())

        assert order.status == OrderStatus.COMPLETED
        assert sent["path"] == "/orders/1/feedback"
        assert b'"food_rating":5' in sent["body"].replace(b" ", b"")

from __future__ import annotations

from decimal import Decimal

import pytest

from carepoint_client.stores.orders import OrderStore
from tests.factories import api_error


def _order(order_id: str, status: str = "pending", total: str = "25.00") -> dict[str, str]:
    return {"_id": order_id, "status": status, "totalAmount": total}


@pytest.fixture
def store(stub_client, test_settings, feedback) -> OrderStore:
    return OrderStore(stub_client, test_settings, feedback=feedback)


class TestFetchOrders:
    async def test_fetch_orders(self, store, stub_client):
        stub_client.responses["list_orders"] = {
            "orders": [_order("o1"), _order("o2", "delivered")],
            "pagination": {"current": 1, "pages": 3, "total": 25, "hasNext": True},
        }

        orders = await store.fetch_orders(page=1, status="pending")

        assert [order.id for order in orders] == ["o1", "o2"]
        assert orders[0].total_amount == Decimal("25.00")
        assert store.pagination.has_next is True
        assert stub_client.calls_to("list_orders")[0][1] == {
            "page": 1,
            "limit": 10,
            "status": "pending",
        }

    async def test_refresh_reloads_the_shown_page_and_filter(self, store, stub_client):
        stub_client.responses["list_orders"] = {
            "orders": [_order("o3", "shipped")],
            "pagination": {"current": 2, "pages": 3, "total": 25},
        }
        await store.fetch_orders(page=2, status="shipped")

        await store.refresh()

        _, kwargs = stub_client.calls_to("list_orders")[1]
        assert kwargs == {"page": 2, "limit": 10, "status": "shipped"}

    async def test_failure_keeps_previous_orders(self, store, stub_client, feedback):
        stub_client.responses["list_orders"] = {"orders": [_order("o1")]}
        await store.fetch_orders()
        stub_client.responses["list_orders"] = api_error()

        orders = await store.fetch_orders()

        assert [order.id for order in orders] == ["o1"]
        assert store.is_loading is False
        assert feedback.last is not None
        assert feedback.last.text == "Failed to fetch orders"

    async def test_fetch_order_unwraps_envelope(self, store, stub_client):
        stub_client.responses["get_order"] = {"order": _order("o9", "shipped")}
        order = await store.fetch_order("o9")

        assert order is not None
        assert order.status == "shipped"
        assert store.current_order == order

    async def test_fetch_order_failure(self, store, stub_client, feedback):
        stub_client.responses["get_order"] = api_error(status_code=404)
        assert await store.fetch_order("missing") is None
        assert feedback.last is not None
        assert feedback.last.text == "Failed to fetch order details"


class TestMutations:
    async def test_create_order(self, store, stub_client, feedback):
        stub_client.responses["create_order"] = {"order": _order("o1")}
        result = await store.create_order({"paymentMethod": "cod"})

        assert result.success
        assert store.current_order is not None
        assert store.current_order.id == "o1"
        assert feedback.last is not None
        assert feedback.last.text == "Order placed successfully!"

    async def test_create_order_reports_server_message(self, store, stub_client):
        stub_client.responses["create_order"] = api_error("Cart is empty", status_code=400)
        result = await store.create_order({})
        assert result.error == "Cart is empty"
        assert store.is_creating is False

    async def test_cancel_order_updates_list_and_current(self, store, stub_client, feedback):
        stub_client.responses["list_orders"] = {"orders": [_order("o1"), _order("o2")]}
        stub_client.responses["get_order"] = {"order": _order("o1")}
        await store.fetch_orders()
        await store.fetch_order("o1")
        stub_client.responses["cancel_order"] = {"order": _order("o1", "cancelled")}

        result = await store.cancel_order("o1", "Changed my mind")

        assert result.success
        assert [order.status for order in store.orders] == ["cancelled", "pending"]
        assert store.current_order is not None
        assert store.current_order.status == "cancelled"
        assert stub_client.calls_to("cancel_order")[0][0] == ("o1", "Changed my mind")
        assert feedback.last is not None
        assert feedback.last.text == "Order cancelled successfully"

    async def test_cancel_order_failure(self, store, stub_client):
        stub_client.responses["cancel_order"] = api_error(status_code=None)
        result = await store.cancel_order("o1", "reason")
        assert result.error == "Failed to cancel order"

    def test_clear_current_order(self, store):
        store.current_order = object()  # type: ignore[assignment]
        store.clear_current_order()
        assert store.current_order is None

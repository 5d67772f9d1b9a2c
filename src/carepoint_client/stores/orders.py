from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from pydantic import ValidationError

from carepoint_client.api import CarePointAPIError, CarePointClient
from carepoint_client.core.settings import Settings
from carepoint_client.feedback import Feedback, MutationResult
from carepoint_client.schemas import Order, Pagination

logger = logging.getLogger(__name__)


def _order_from(payload: Any) -> Order:
    if isinstance(payload, Mapping) and isinstance(payload.get("order"), Mapping):
        payload = payload["order"]
    return Order.model_validate(payload)


class OrderStore:
    def __init__(
        self,
        client: CarePointClient,
        settings: Settings,
        *,
        feedback: Feedback | None = None,
    ) -> None:
        self._client = client
        self._page_limit = settings.orders_page_limit
        self._feedback = feedback or Feedback()
        self.orders: list[Order] = []
        self.current_order: Order | None = None
        self.pagination = Pagination()
        self.status = "all"
        self.is_loading = False
        self.is_creating = False

    async def fetch_orders(self, page: int = 1, status: str = "all") -> list[Order]:
        self.status = status
        self.is_loading = True
        try:
            payload = await self._client.list_orders(
                page=page, limit=self._page_limit, status=status
            )
            if not isinstance(payload, Mapping):
                raise CarePointAPIError("unexpected orders payload")
            orders = [Order.model_validate(item) for item in payload.get("orders") or []]
            pagination = Pagination.model_validate(payload.get("pagination") or {})
        except (CarePointAPIError, ValidationError) as exc:
            logger.warning("Fetch orders failed: %s", exc)
            self._feedback.error("Failed to fetch orders")
            return self.orders
        finally:
            self.is_loading = False
        self.orders = orders
        self.pagination = pagination
        return orders

    async def refresh(self) -> list[Order]:
        """Re-fetch the page and status filter the list currently shows."""
        return await self.fetch_orders(self.pagination.current, self.status)

    async def fetch_order(self, order_id: str) -> Order | None:
        self.is_loading = True
        try:
            order = _order_from(await self._client.get_order(order_id))
        except (CarePointAPIError, ValidationError) as exc:
            logger.warning("Fetch order %s failed: %s", order_id, exc)
            self._feedback.error("Failed to fetch order details")
            return None
        finally:
            self.is_loading = False
        self.current_order = order
        return order

    async def create_order(self, details: Mapping[str, Any]) -> MutationResult:
        self.is_creating = True
        try:
            order = _order_from(await self._client.create_order(details))
        except (CarePointAPIError, ValidationError) as exc:
            message = "Failed to place order"
            if isinstance(exc, CarePointAPIError) and exc.status_code:
                message = str(exc)
            self._feedback.error(message)
            return MutationResult(success=False, error=message)
        finally:
            self.is_creating = False
        self.current_order = order
        self._feedback.success("Order placed successfully!")
        return MutationResult(success=True, payload=order)

    async def cancel_order(self, order_id: str, reason: str) -> MutationResult:
        try:
            order = _order_from(await self._client.cancel_order(order_id, reason))
        except (CarePointAPIError, ValidationError) as exc:
            message = "Failed to cancel order"
            if isinstance(exc, CarePointAPIError) and exc.status_code:
                message = str(exc)
            self._feedback.error(message)
            return MutationResult(success=False, error=message)

        self.orders = [order if existing.id == order_id else existing for existing in self.orders]
        if self.current_order is not None and self.current_order.id == order_id:
            self.current_order = order
        self._feedback.success("Order cancelled successfully")
        return MutationResult(success=True, payload=order)

    def clear_current_order(self) -> None:
        self.current_order = None


__all__ = ["OrderStore"]

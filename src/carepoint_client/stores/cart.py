"""Cart state with optimistic local edits and server-confirmed replacements.

Every path that changes ``state`` goes through :func:`build_cart`, so
``total_items`` and ``total_amount`` always equal the fold over ``items``.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Iterable, Mapping
from decimal import Decimal
from typing import Any

from pydantic import ValidationError

from carepoint_client.api import CarePointAPIError, CarePointClient
from carepoint_client.feedback import Feedback, MutationResult
from carepoint_client.schemas import Cart, CartItem

logger = logging.getLogger(__name__)


def build_cart(items: Iterable[CartItem]) -> Cart:
    """Return a cart whose totals are recomputed from the stored unit prices."""
    collected = list(items)
    return Cart(
        items=collected,
        total_items=sum(item.quantity for item in collected),
        total_amount=sum((item.price * item.quantity for item in collected), Decimal(0)),
    )


def _extract_cart(payload: Any) -> Any:
    if not isinstance(payload, Mapping) or "cart" not in payload:
        raise CarePointAPIError("cart missing from response")
    return payload["cart"]


class CartStore:
    def __init__(self, client: CarePointClient, *, feedback: Feedback | None = None) -> None:
        self._client = client
        self._feedback = feedback or Feedback()
        self.state = Cart()
        self.is_loading = False
        self.is_updating = False

    # Local, optimistic edits

    def apply_local_delta(self, product_id: str, direction: int) -> Cart:
        """Change one item's quantity by +1 or -1 without contacting the server.

        Quantity never drops below 1 here; removal is ``remove_item``.
        """
        if direction not in (1, -1):
            raise ValueError(f"direction must be +1 or -1, got {direction!r}")

        items: list[CartItem] = []
        for item in self.state.items:
            if item.product_id == product_id and item.quantity + direction >= 1:
                item = item.model_copy(update={"quantity": item.quantity + direction})
            items.append(item)
        self.state = build_cart(items)
        return self.state

    def increase_quantity(self, product_id: str) -> Cart:
        return self.apply_local_delta(product_id, 1)

    def decrease_quantity(self, product_id: str) -> Cart:
        return self.apply_local_delta(product_id, -1)

    def replace_from_server(self, payload: Any) -> Cart:
        cart = Cart.model_validate(payload or {})
        rebuilt = build_cart(item for item in cart.items if item.medicine is not None)
        if len(rebuilt.items) != len(cart.items):
            logger.debug(
                "Dropped %d cart items whose medicine no longer exists",
                len(cart.items) - len(rebuilt.items),
            )
        reported = {"total_items", "total_amount"} & cart.model_fields_set
        if reported and (
            cart.total_items != rebuilt.total_items or cart.total_amount != rebuilt.total_amount
        ):
            logger.debug(
                "Server cart totals differ from items (reported=%s/%s, computed=%s/%s)",
                cart.total_items,
                cart.total_amount,
                rebuilt.total_items,
                rebuilt.total_amount,
            )
        self.state = rebuilt
        return rebuilt

    # Server-confirmed operations

    async def fetch_cart(self) -> Cart:
        self.is_loading = True
        try:
            self.replace_from_server(await self._client.get_cart())
        except (CarePointAPIError, ValidationError) as exc:
            logger.warning("Fetch cart failed: %s", exc)
            self.state = Cart()
        finally:
            self.is_loading = False
        return self.state

    async def add_item(self, medicine_id: str, quantity: int = 1) -> MutationResult:
        return await self._mutate(
            lambda: self._client.add_to_cart(medicine_id, quantity),
            success="Item added to cart",
            failure="Failed to add item to cart",
        )

    async def update_item(self, medicine_id: str, quantity: int) -> MutationResult:
        if quantity < 1:
            message = "Quantity must be at least 1"
            self._feedback.error(message)
            return MutationResult(success=False, error=message)

        optimistic = build_cart(
            item.model_copy(update={"quantity": quantity})
            if item.product_id == medicine_id
            else item
            for item in self.state.items
        )
        return await self._mutate(
            lambda: self._client.update_cart_item(medicine_id, quantity),
            optimistic=optimistic,
            success="Cart updated",
            failure="Failed to update cart",
        )

    async def remove_item(self, medicine_id: str) -> MutationResult:
        optimistic = build_cart(
            item for item in self.state.items if item.product_id != medicine_id
        )
        return await self._mutate(
            lambda: self._client.remove_from_cart(medicine_id),
            optimistic=optimistic,
            success="Item removed from cart",
            failure="Failed to remove item",
            use_server_message=False,
        )

    async def clear(self) -> MutationResult:
        return await self._mutate(
            self._client.clear_cart,
            optimistic=Cart(),
            success="Cart cleared",
            failure="Failed to clear cart",
            use_server_message=False,
        )

    async def cart_count(self) -> int:
        try:
            payload = await self._client.cart_count()
        except CarePointAPIError as exc:
            logger.warning("Get cart count failed: %s", exc)
            return 0
        if isinstance(payload, Mapping):
            try:
                return int(payload.get("count") or 0)
            except (TypeError, ValueError):
                return 0
        return 0

    async def _mutate(
        self,
        call: Callable[[], Awaitable[Any]],
        *,
        success: str,
        failure: str,
        optimistic: Cart | None = None,
        use_server_message: bool = True,
    ) -> MutationResult:
        snapshot = self.state
        if optimistic is not None:
            self.state = optimistic
        self.is_updating = True
        try:
            payload = await call()
            self.replace_from_server(_extract_cart(payload))
        except (CarePointAPIError, ValidationError) as exc:
            self.state = snapshot
            message = failure
            if use_server_message and isinstance(exc, CarePointAPIError) and exc.status_code:
                message = str(exc)
            self._feedback.error(message)
            return MutationResult(success=False, error=message)
        finally:
            self.is_updating = False

        self._feedback.success(success)
        return MutationResult(success=True, payload=self.state)


__all__ = ["CartStore", "build_cart"]

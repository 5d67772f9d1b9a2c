from __future__ import annotations

import logging
from collections.abc import Mapping
from datetime import date
from typing import Any
from urllib.parse import quote

import httpx
from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from carepoint_client.core.settings import Settings

logger = logging.getLogger(__name__)


class CarePointAPIError(RuntimeError):
    """Raised when the CarePoint API cannot be reached or responds with an error."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class CarePointClient:
    """HTTP client that talks to the CarePoint REST API.

    Methods return the decoded JSON body. Idempotent reads are retried on
    transport errors; writes are sent exactly once.
    """

    def __init__(self, settings: Settings, client: httpx.AsyncClient | None = None) -> None:
        self._base_url = settings.api_base_url
        self._token = settings.auth_token
        self._retry_attempts = settings.retry_attempts
        self._client = client or httpx.AsyncClient(
            timeout=settings.timeout_seconds,
            follow_redirects=True,
        )

    async def close(self) -> None:
        await self._client.aclose()

    # Catalog

    async def list_medicines(
        self, params: Mapping[str, str], *, authenticated: bool = True
    ) -> Any:
        return await self._get("/medicines", params=params, authenticated=authenticated)

    async def list_categories(self) -> Any:
        return await self._get("/medicines/categories")

    async def get_medicine(self, medicine_id: str) -> Any:
        return await self._get(f"/medicines/{_segment(medicine_id)}")

    async def featured_medicines(self) -> Any:
        return await self._get("/medicines/featured")

    async def search_medicines(self, query: str) -> Any:
        return await self._get("/medicines/search", params={"q": query})

    # Cart

    async def get_cart(self) -> Any:
        return await self._get("/cart")

    async def add_to_cart(self, medicine_id: str, quantity: int = 1) -> Any:
        payload = {"medicineId": medicine_id, "quantity": quantity}
        return await self._send("POST", "/cart/add", json=payload)

    async def update_cart_item(self, medicine_id: str, quantity: int) -> Any:
        payload = {"medicineId": medicine_id, "quantity": quantity}
        return await self._send("PUT", "/cart/update", json=payload)

    async def remove_from_cart(self, medicine_id: str) -> Any:
        return await self._send("DELETE", f"/cart/remove/{_segment(medicine_id)}")

    async def clear_cart(self) -> Any:
        return await self._send("DELETE", "/cart/clear")

    async def cart_count(self) -> Any:
        return await self._get("/cart/count")

    # Orders

    async def create_order(self, payload: Mapping[str, Any]) -> Any:
        return await self._send("POST", "/orders", json=dict(payload))

    async def list_orders(self, *, page: int = 1, limit: int = 10, status: str = "all") -> Any:
        params = {"page": str(page), "limit": str(limit)}
        if status != "all":
            params["status"] = status
        return await self._get("/orders/my-orders", params=params)

    async def get_order(self, order_id: str) -> Any:
        return await self._get(f"/orders/{_segment(order_id)}")

    async def cancel_order(self, order_id: str, reason: str) -> Any:
        return await self._send(
            "PATCH", f"/orders/{_segment(order_id)}/cancel", json={"reason": reason}
        )

    # Lab bookings

    async def get_time_slots(self, day: date | str) -> Any:
        value = day.isoformat() if isinstance(day, date) else str(day)
        return await self._get("/lab-bookings/time-slots", params={"date": value})

    async def list_lab_bookings(self) -> Any:
        return await self._get("/lab-bookings/my-bookings")

    async def create_lab_booking(self, payload: Mapping[str, Any]) -> Any:
        return await self._send("POST", "/lab-bookings", json=dict(payload))

    # Notifications

    async def unread_notification_count(self) -> Any:
        return await self._get("/notifications/admin/unread-count")

    async def list_notifications(
        self, *, page: int = 1, limit: int = 20, unread_only: bool = False
    ) -> Any:
        params = {
            "page": str(page),
            "limit": str(limit),
            "unreadOnly": "true" if unread_only else "false",
        }
        return await self._get("/notifications/admin", params=params)

    async def mark_notification_read(self, notification_id: str) -> Any:
        return await self._send("PUT", f"/notifications/{_segment(notification_id)}/read")

    async def mark_all_notifications_read(self) -> Any:
        return await self._send("PUT", "/notifications/admin/mark-all-read")

    async def _get(
        self,
        path: str,
        *,
        params: Mapping[str, str] | None = None,
        authenticated: bool = True,
    ) -> Any:
        url = f"{self._base_url}{path}"
        try:
            response = await _retrying_request(
                self._client,
                url,
                params=dict(params or {}),
                headers=self._headers(authenticated),
                attempts=self._retry_attempts,
            )
        except httpx.HTTPError as exc:
            logger.warning("CarePoint API request failed: GET %s: %s", path, exc)
            raise CarePointAPIError("carepoint api request failed") from exc
        return _decode(response, "GET", path)

    async def _send(
        self, method: str, path: str, *, json: Mapping[str, Any] | None = None
    ) -> Any:
        url = f"{self._base_url}{path}"
        try:
            response = await self._client.request(
                method, url, json=json, headers=self._headers(True)
            )
        except httpx.HTTPError as exc:
            logger.warning("CarePoint API request failed: %s %s: %s", method, path, exc)
            raise CarePointAPIError("carepoint api request failed") from exc
        return _decode(response, method, path)

    def _headers(self, authenticated: bool) -> dict[str, str]:
        if authenticated and self._token:
            return {"Authorization": f"Bearer {self._token}"}
        return {}


async def _retrying_request(
    client: httpx.AsyncClient,
    url: str,
    *,
    params: dict[str, str],
    headers: dict[str, str],
    attempts: int,
) -> httpx.Response:
    async for attempt in AsyncRetrying(
        wait=wait_exponential(multiplier=0.5, min=0.5, max=4),
        stop=stop_after_attempt(attempts),
        retry=retry_if_exception_type(httpx.TransportError),
        reraise=True,
    ):
        with attempt:
            return await client.get(url, params=params, headers=headers)
    raise RuntimeError("Retrying logic failed to return a response")


def _decode(response: httpx.Response, method: str, path: str) -> Any:
    if response.status_code >= 400:
        detail = _extract_detail(response)
        logger.warning(
            "CarePoint API error %s on %s %s: %s", response.status_code, method, path, detail
        )
        raise CarePointAPIError(detail, status_code=response.status_code)

    if response.status_code == 204 or not response.content:
        return {}

    try:
        return response.json()
    except ValueError as exc:
        raise CarePointAPIError(
            "carepoint api returned invalid json", status_code=response.status_code
        ) from exc


def _extract_detail(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text or f"HTTP {response.status_code}"

    if isinstance(body, dict):
        for key in ("message", "detail"):
            detail = body.get(key)
            if isinstance(detail, str) and detail:
                return detail
    return response.text or f"HTTP {response.status_code}"


def _segment(value: str) -> str:
    return quote(str(value), safe="")


__all__ = ["CarePointAPIError", "CarePointClient"]

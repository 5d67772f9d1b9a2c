from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime
from functools import partial
from types import TracebackType

from carepoint_client.api import CarePointClient
from carepoint_client.core.settings import Settings, get_settings
from carepoint_client.feedback import Feedback
from carepoint_client.polling import RefreshScheduler, Visibility
from carepoint_client.stores.cart import CartStore
from carepoint_client.stores.catalog import MedicineStore
from carepoint_client.stores.lab import LabBookingStore
from carepoint_client.stores.notifications import NotificationStore
from carepoint_client.stores.orders import OrderStore

logger = logging.getLogger(__name__)

UNREAD_COUNT_JOB = "notifications.unread_count"
ORDERS_JOB = "orders.list"


class CarePointApp:
    """Owns the HTTP client, every store and the refresh scheduler.

    One instance per session; stores share its client and feedback channel.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        client: CarePointClient | None = None,
        clock: Callable[[], float] | None = None,
        now: Callable[[], datetime] | None = None,
        visibility: Visibility | None = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.client = client or CarePointClient(self.settings)
        self.feedback = Feedback()
        self.visibility = visibility or Visibility()

        self.medicines = MedicineStore(
            self.client, self.settings, clock=clock, feedback=self.feedback
        )
        self.cart = CartStore(self.client, feedback=self.feedback)
        self.orders = OrderStore(self.client, self.settings, feedback=self.feedback)
        self.notifications = NotificationStore(self.client, feedback=self.feedback)
        self.lab = LabBookingStore(self.client, feedback=self.feedback, now=now)
        self.scheduler = RefreshScheduler(visibility=self.visibility)

    async def startup(self) -> None:
        logger.info("Starting CarePoint client for %s", self.settings.api_base_url)
        await self.medicines.preload()
        self.scheduler.start()

    async def shutdown(self) -> None:
        logger.info("Shutting down CarePoint client")
        await self.scheduler.stop()
        await self.client.close()

    def watch_unread_count(self) -> str:
        self.scheduler.watch(
            UNREAD_COUNT_JOB,
            self.notifications.fetch_unread_count,
            self.settings.poll_unread_count_seconds,
        )
        return UNREAD_COUNT_JOB

    def watch_orders(self) -> str:
        self.scheduler.watch(
            ORDERS_JOB,
            self.orders.refresh,
            self.settings.poll_orders_seconds,
        )
        return ORDERS_JOB

    def watch_order(self, order_id: str) -> str:
        job_id = f"orders.{order_id}"
        self.scheduler.watch(
            job_id,
            partial(self.orders.fetch_order, order_id),
            self.settings.poll_order_details_seconds,
        )
        return job_id

    def unwatch(self, job_id: str) -> None:
        self.scheduler.unwatch(job_id)

    async def __aenter__(self) -> CarePointApp:
        await self.startup()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.shutdown()


__all__ = ["CarePointApp", "ORDERS_JOB", "UNREAD_COUNT_JOB"]

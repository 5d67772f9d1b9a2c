from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from datetime import date, datetime
from typing import Any

from pydantic import ValidationError

from carepoint_client.api import CarePointAPIError, CarePointClient
from carepoint_client.feedback import Feedback, MutationResult
from carepoint_client.scheduling.slots import (
    TimeSlot,
    effective_status,
    eligible_slots,
    is_slot_eligible,
    parse_local_date,
)
from carepoint_client.schemas import LabBooking

logger = logging.getLogger(__name__)


class LabBookingStore:
    """Time-slot selection and the patient's lab bookings."""

    def __init__(
        self,
        client: CarePointClient,
        *,
        feedback: Feedback | None = None,
        now: Callable[[], datetime] | None = None,
    ) -> None:
        self._client = client
        self._feedback = feedback or Feedback()
        self._now = now or datetime.now
        self.slots: list[TimeSlot] = []
        self.slots_date: date | None = None
        self.selected_slot: TimeSlot | None = None
        self.bookings: list[LabBooking] = []
        self.is_slots_loading = False
        self._slots_request = 0

    async def fetch_time_slots(self, day: date | str | None) -> list[TimeSlot]:
        """Load the slots offered on ``day``.

        Only the most recent call publishes; a reply for a day the user has
        since moved away from is dropped.
        """
        self._slots_request += 1
        request = self._slots_request
        parsed_day = parse_local_date(day)
        if parsed_day is None:
            self.slots = []
            self.slots_date = None
            self.selected_slot = None
            self.is_slots_loading = False
            return []

        self.is_slots_loading = True
        try:
            payload = await self._client.get_time_slots(parsed_day)
        except CarePointAPIError as exc:
            if request != self._slots_request:
                logger.debug("Dropping failed time slots for superseded day %s", parsed_day)
                return []
            logger.warning("Fetch time slots for %s failed: %s", parsed_day, exc)
            self.slots = []
            self.slots_date = parsed_day
            self.selected_slot = None
            self._feedback.error("Failed to load time slots")
            return []
        finally:
            if request == self._slots_request:
                self.is_slots_loading = False

        if request != self._slots_request:
            logger.debug("Dropping time slots for superseded day %s", parsed_day)
            return []

        raw_slots = payload.get("availableSlots") if isinstance(payload, Mapping) else None
        labels = raw_slots if isinstance(raw_slots, list) else []
        self.slots = [TimeSlot.parse(str(label)) for label in labels]
        self.slots_date = parsed_day

        available = self.eligible_slots()
        if self.selected_slot is not None and self.selected_slot not in available:
            self.selected_slot = None
        return available

    def eligible_slots(self, now: datetime | None = None) -> list[TimeSlot]:
        if self.slots_date is None:
            return list(self.slots)
        return eligible_slots(self.slots, self.slots_date, now or self._now())

    def select_slot(self, label: str) -> MutationResult:
        for slot in self.eligible_slots():
            if slot.label == label:
                self.selected_slot = slot
                return MutationResult(success=True, payload=slot)
        self.selected_slot = None
        return MutationResult(success=False, error="Selected time slot is not available")

    async def fetch_bookings(self) -> list[LabBooking]:
        try:
            payload = await self._client.list_lab_bookings()
            raw = payload.get("bookings") if isinstance(payload, Mapping) else None
            bookings = [LabBooking.model_validate(item) for item in raw or []]
        except (CarePointAPIError, ValidationError) as exc:
            logger.warning("Fetch lab bookings failed: %s", exc)
            self.bookings = []
            # 404 means the endpoint is not deployed yet; nothing to report.
            if not (isinstance(exc, CarePointAPIError) and exc.status_code == 404):
                self._feedback.error("Failed to fetch lab bookings")
            return []
        self.bookings = bookings
        return bookings

    def effective_statuses(self, now: datetime | None = None) -> list[tuple[LabBooking, str]]:
        moment = now or self._now()
        return [(booking, effective_status(booking, moment)) for booking in self.bookings]

    async def create_booking(self, details: Mapping[str, Any]) -> MutationResult:
        payload: dict[str, Any] = {}
        if self.slots_date is not None:
            payload["appointmentDate"] = self.slots_date.isoformat()
        if self.selected_slot is not None:
            payload["timeSlot"] = self.selected_slot.label
        payload.update(details)
        if isinstance(payload.get("appointmentDate"), date):
            payload["appointmentDate"] = payload["appointmentDate"].isoformat()

        if not payload.get("appointmentDate") or not payload.get("timeSlot"):
            message = "Select an appointment date and time slot"
            self._feedback.error(message)
            return MutationResult(success=False, error=message)
        if not is_slot_eligible(payload["timeSlot"], payload["appointmentDate"], self._now()):
            message = "Selected time slot is not available"
            self._feedback.error(message)
            return MutationResult(success=False, error=message)

        try:
            response = await self._client.create_lab_booking(payload)
        except CarePointAPIError as exc:
            message = str(exc) if exc.status_code else "Failed to create booking"
            self._feedback.error(message)
            return MutationResult(success=False, error=message)

        self._feedback.success("Lab booking created successfully!")
        self.selected_slot = None
        return MutationResult(success=True, payload=response)


__all__ = ["LabBookingStore"]

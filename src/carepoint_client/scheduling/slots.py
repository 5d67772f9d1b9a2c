"""Lab time-slot parsing, booking eligibility and overdue classification.

Slots arrive as labels such as ``"8:00 AM - 9:00 AM"``. They are parsed once
into :class:`TimeSlot`; a boundary that cannot be parsed is ``None`` and every
check treats it as "no constraint". Nothing here raises on malformed input.

All comparisons use the wall clock of ``now``: naive datetimes are local time,
aware ones carry their own zone.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from datetime import date, datetime, time, tzinfo
from enum import Enum, StrEnum
from typing import Any

_CLOCK_RE = re.compile(r"(\d{1,2}):(\d{2})\s*(AM|PM)", re.IGNORECASE)

OVERDUE_STATUS = "overdue_patient_not_present"
OVERDUE_LABEL = "OVERDUE - PATIENT WAS NOT PRESENT"


class SlotBoundary(Enum):
    START = "start"
    END = "end"


class BookingStatus(StrEnum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    SAMPLE_COLLECTED = "sample_collected"
    PROCESSING = "processing"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    REJECTED = "rejected"
    VERIFIED = "verified"


# Statuses in which the patient has not shown up yet.
AWAITING_PATIENT = frozenset({BookingStatus.PENDING.value, BookingStatus.CONFIRMED.value})


def parse_clock_minutes(text: str) -> int | None:
    """Convert ``"H:MM AM|PM"`` to minutes since midnight, or None."""
    match = _CLOCK_RE.fullmatch(text.strip())
    if match is None:
        return None
    hour, minute = int(match[1]), int(match[2])
    if not 1 <= hour <= 12 or minute > 59:
        return None
    meridiem = match[3].upper()
    if meridiem == "PM" and hour != 12:
        hour += 12
    elif meridiem == "AM" and hour == 12:
        hour = 0
    return hour * 60 + minute


def parse_slot_boundary_minutes(label: str | None, which: SlotBoundary) -> int | None:
    parts = str(label or "").split("-")
    if len(parts) != 2:
        return None
    return parse_clock_minutes(parts[0] if which is SlotBoundary.START else parts[1])


@dataclass(frozen=True, slots=True)
class TimeSlot:
    label: str
    start_minutes: int | None
    end_minutes: int | None

    @classmethod
    def parse(cls, label: str) -> TimeSlot:
        return cls(
            label=label,
            start_minutes=parse_slot_boundary_minutes(label, SlotBoundary.START),
            end_minutes=parse_slot_boundary_minutes(label, SlotBoundary.END),
        )

    @property
    def is_parseable(self) -> bool:
        return self.start_minutes is not None and self.end_minutes is not None

    def __str__(self) -> str:
        return self.label


def minutes_since_midnight(moment: datetime) -> int:
    return moment.hour * 60 + moment.minute


def parse_local_date(value: Any, tz: tzinfo | None = None) -> date | None:
    """Calendar day of ``value`` in ``tz`` (system local zone when None).

    Accepts dates, datetimes and ISO strings. Date-only strings are taken as
    local days. Returns None for anything unreadable.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return _local_day(value, tz)
    if isinstance(value, date):
        return value
    text = str(value).strip()
    try:
        if len(text) == 10:
            return date.fromisoformat(text)
        return _local_day(datetime.fromisoformat(text), tz)
    except ValueError:
        return None


def _local_day(moment: datetime, tz: tzinfo | None) -> date:
    if moment.tzinfo is None:
        return moment.date()
    return moment.astimezone(tz).date()


def _as_slot(slot: TimeSlot | str | None) -> TimeSlot:
    if isinstance(slot, TimeSlot):
        return slot
    return TimeSlot.parse(str(slot or ""))


def is_slot_eligible(slot: TimeSlot | str, target_date: Any, now: datetime) -> bool:
    """Whether ``slot`` on ``target_date`` can still be booked at ``now``.

    Only today's slots are time-filtered: they must start strictly after the
    current minute. Other days, and slots without a readable start, pass.
    """
    day = parse_local_date(target_date, now.tzinfo)
    if day is None or day != now.date():
        return True
    start = _as_slot(slot).start_minutes
    if start is None:
        return True
    return start > minutes_since_midnight(now)


def eligible_slots(
    slots: Iterable[TimeSlot | str], target_date: Any, now: datetime
) -> list[TimeSlot]:
    return [
        parsed
        for parsed in (_as_slot(slot) for slot in slots)
        if is_slot_eligible(parsed, target_date, now)
    ]


def _booking_fields(booking: Any) -> tuple[Any, Any, Any]:
    if isinstance(booking, Mapping):
        return (
            booking.get("appointmentDate", booking.get("appointment_date")),
            booking.get("timeSlot", booking.get("time_slot")),
            booking.get("status"),
        )
    return (
        getattr(booking, "appointment_date", None),
        getattr(booking, "time_slot", None),
        getattr(booking, "status", None),
    )


def is_booking_overdue(booking: Any, now: datetime) -> bool:
    """True when a pending/confirmed booking's slot ended before ``now``.

    Missing date or slot, an unreadable end time, or an invalid date all
    yield False.
    """
    appointment_date, time_slot, status = _booking_fields(booking)
    if not appointment_date or not time_slot:
        return False
    if str(status or "").lower() not in AWAITING_PATIENT:
        return False

    end = _as_slot(time_slot).end_minutes
    if end is None:
        return False
    day = parse_local_date(appointment_date, now.tzinfo)
    if day is None:
        return False

    slot_end = datetime.combine(day, time(end // 60, end % 60), tzinfo=now.tzinfo)
    return now > slot_end


def effective_status(booking: Any, now: datetime) -> str:
    if is_booking_overdue(booking, now):
        return OVERDUE_STATUS
    status = _booking_fields(booking)[2]
    return str(status) if status else BookingStatus.CONFIRMED.value


def status_label(booking: Any, now: datetime) -> str:
    if is_booking_overdue(booking, now):
        return OVERDUE_LABEL
    return effective_status(booking, now).replace("_", " ").upper()


__all__ = [
    "AWAITING_PATIENT",
    "BookingStatus",
    "OVERDUE_LABEL",
    "OVERDUE_STATUS",
    "SlotBoundary",
    "TimeSlot",
    "effective_status",
    "eligible_slots",
    "is_booking_overdue",
    "is_slot_eligible",
    "minutes_since_midnight",
    "parse_clock_minutes",
    "parse_local_date",
    "parse_slot_boundary_minutes",
    "status_label",
]

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone

import pytest
from hypothesis import given, strategies as st

from carepoint_client.scheduling.slots import (
    OVERDUE_LABEL,
    OVERDUE_STATUS,
    SlotBoundary,
    TimeSlot,
    effective_status,
    eligible_slots,
    is_booking_overdue,
    is_slot_eligible,
    parse_clock_minutes,
    parse_local_date,
    parse_slot_boundary_minutes,
    status_label,
)
from carepoint_client.schemas import LabBooking

NOW = datetime(2026, 3, 14, 8, 0)
TODAY = NOW.date()


def _label(minutes: int) -> str:
    hour, minute = divmod(minutes, 60)
    meridiem = "AM" if hour < 12 else "PM"
    return f"{hour % 12 or 12}:{minute:02d} {meridiem}"


class TestParsing:
    @pytest.mark.parametrize(
        ("label", "which", "expected"),
        [
            ("8:00 AM - 9:00 AM", SlotBoundary.START, 480),
            ("8:00 AM - 9:00 AM", SlotBoundary.END, 540),
            ("12:00 PM - 1:00 PM", SlotBoundary.START, 720),
            ("12:00 PM - 1:00 PM", SlotBoundary.END, 780),
            ("12:00 AM - 1:00 AM", SlotBoundary.START, 0),
            ("11:59 PM - 12:00 AM", SlotBoundary.START, 1439),
            ("9:30 am-10:45 am", SlotBoundary.END, 645),
        ],
    )
    def test_boundaries(self, label, which, expected):
        assert parse_slot_boundary_minutes(label, which) == expected

    @pytest.mark.parametrize(
        "label",
        [
            "",
            None,
            "garbage",
            "8:00 AM",
            "8:00 AM - 9:00 AM - 10:00 AM",
            "13:00 PM - 2:00 PM",
            "0:30 AM - 1:00 AM",
            "8:75 AM - 9:00 AM",
            "8 AM - 9 AM",
        ],
    )
    def test_unparseable_start_is_none(self, label):
        assert parse_slot_boundary_minutes(label, SlotBoundary.START) is None

    def test_end_can_be_unparseable_alone(self):
        slot = TimeSlot.parse("8:00 AM - later")
        assert slot.start_minutes == 480
        assert slot.end_minutes is None
        assert not slot.is_parseable

    @given(st.integers(min_value=0, max_value=24 * 60 - 1))
    def test_every_minute_of_the_day_parses_back(self, minutes):
        assert parse_clock_minutes(_label(minutes)) == minutes

    @given(st.text(max_size=30))
    def test_parsing_never_raises(self, label):
        slot = TimeSlot.parse(label)
        for value in (slot.start_minutes, slot.end_minutes):
            assert value is None or 0 <= value < 24 * 60


class TestParseLocalDate:
    def test_date_only_string_is_local_day(self):
        assert parse_local_date("2026-03-14") == date(2026, 3, 14)

    def test_date_passes_through(self):
        assert parse_local_date(date(2026, 3, 14)) == date(2026, 3, 14)

    def test_naive_datetime_string(self):
        assert parse_local_date("2026-03-14T23:30:00") == date(2026, 3, 14)

    def test_aware_datetime_is_converted_to_zone(self):
        tz = timezone(timedelta(hours=2))
        assert parse_local_date("2026-03-14T23:30:00+00:00", tz) == date(2026, 3, 15)

    @pytest.mark.parametrize("value", [None, "", "not a date", "2026-13-40"])
    def test_unreadable(self, value):
        assert parse_local_date(value) is None


class TestEligibility:
    def test_start_equal_to_now_is_not_eligible(self):
        assert not is_slot_eligible("8:00 AM - 9:00 AM", TODAY, NOW)

    def test_start_one_minute_later_is_eligible(self):
        assert is_slot_eligible("8:01 AM - 9:00 AM", TODAY, NOW)

    def test_seconds_are_ignored(self):
        now = NOW.replace(second=59)
        assert not is_slot_eligible("8:00 AM - 9:00 AM", TODAY, now)

    def test_unparseable_start_is_eligible_today(self):
        assert is_slot_eligible("whenever", TODAY, NOW)

    def test_iso_string_for_today(self):
        assert not is_slot_eligible("7:00 AM - 8:00 AM", "2026-03-14", NOW)

    def test_invalid_date_is_eligible(self):
        assert is_slot_eligible("7:00 AM - 8:00 AM", "someday", NOW)

    @given(st.text(max_size=30), st.integers(min_value=1, max_value=365))
    def test_other_days_are_always_eligible(self, label, offset):
        assert is_slot_eligible(label, TODAY + timedelta(days=offset), NOW)
        assert is_slot_eligible(label, TODAY - timedelta(days=offset), NOW)

    def test_eligible_slots_keeps_order(self):
        labels = ["7:00 AM - 8:00 AM", "8:00 AM - 9:00 AM", "10:00 AM - 11:00 AM", "??"]
        available = eligible_slots(labels, TODAY, NOW)
        assert [slot.label for slot in available] == ["10:00 AM - 11:00 AM", "??"]

    def test_aware_now_uses_its_own_zone(self):
        tz = timezone(timedelta(hours=-5))
        now = datetime(2026, 3, 14, 22, 0, tzinfo=tz)
        # 03:00 UTC on the 15th is still the 14th at UTC-5.
        assert not is_slot_eligible("9:00 PM - 10:00 PM", "2026-03-15T03:00:00+00:00", now)


class TestOverdue:
    def _booking(self, status: str | None = "confirmed", slot: str = "6:00 AM - 7:59 AM"):
        return {"appointmentDate": TODAY.isoformat(), "timeSlot": slot, "status": status}

    def test_confirmed_past_slot_is_overdue(self):
        booking = self._booking("confirmed")
        assert is_booking_overdue(booking, NOW)
        assert effective_status(booking, NOW) == OVERDUE_STATUS

    def test_completed_is_never_overdue(self):
        booking = self._booking("completed")
        assert not is_booking_overdue(booking, NOW)
        assert effective_status(booking, NOW) == "completed"

    @pytest.mark.parametrize(
        "status", ["sample_collected", "processing", "cancelled", "rejected", "verified"]
    )
    def test_only_awaiting_statuses_become_overdue(self, status):
        assert effective_status(self._booking(status), NOW) == status

    def test_pending_is_case_insensitive(self):
        assert is_booking_overdue(self._booking("PENDING"), NOW)

    def test_slot_ending_now_is_not_overdue(self):
        assert not is_booking_overdue(self._booking(slot="7:00 AM - 8:00 AM"), NOW)

    def test_garbage_slot_is_not_overdue(self):
        booking = {"status": "pending", "appointmentDate": TODAY.isoformat(), "timeSlot": "garbage"}
        assert not is_booking_overdue(booking, NOW)

    @pytest.mark.parametrize(
        "booking",
        [
            {"status": "pending", "timeSlot": "6:00 AM - 7:00 AM"},
            {"status": "pending", "appointmentDate": "2026-03-14"},
            {"status": "pending", "appointmentDate": "nope", "timeSlot": "6:00 AM - 7:00 AM"},
        ],
    )
    def test_insufficient_data_is_not_overdue(self, booking):
        assert not is_booking_overdue(booking, NOW)

    def test_future_booking_is_not_overdue(self):
        booking = {
            "appointmentDate": (TODAY + timedelta(days=1)).isoformat(),
            "timeSlot": "6:00 AM - 7:00 AM",
            "status": "pending",
        }
        assert not is_booking_overdue(booking, NOW)

    def test_previous_day_is_overdue(self):
        booking = {
            "appointmentDate": (TODAY - timedelta(days=1)).isoformat(),
            "timeSlot": "4:00 PM - 5:00 PM",
            "status": "pending",
        }
        assert is_booking_overdue(booking, NOW)

    def test_accepts_model_instances(self):
        booking = LabBooking.model_validate(self._booking("confirmed"))
        assert effective_status(booking, NOW) == OVERDUE_STATUS

    def test_accepts_snake_case_mappings(self):
        booking = {"appointment_date": TODAY, "time_slot": "6:00 AM - 7:00 AM", "status": "pending"}
        assert is_booking_overdue(booking, NOW)

    def test_missing_status_defaults_to_confirmed(self):
        booking = {"appointmentDate": "2026-03-20", "timeSlot": "6:00 AM - 7:00 AM"}
        assert effective_status(booking, NOW) == "confirmed"


class TestStatusLabel:
    def _booking(self, status: str) -> dict[str, str]:
        return {"appointmentDate": "2026-03-14", "timeSlot": "6:00 AM - 7:00 AM", "status": status}

    def test_overdue_label(self):
        assert status_label(self._booking("pending"), NOW) == OVERDUE_LABEL

    def test_regular_label(self):
        assert status_label(self._booking("sample_collected"), NOW) == "SAMPLE COLLECTED"

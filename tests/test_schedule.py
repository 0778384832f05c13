from datetime import date

import pytest

from booking_chat.errors import CatalogError
from booking_chat.mock_client import MockCatalogClient
from booking_chat.schedule import build_slot_options

TODAY = date(2026, 3, 2)


class ScheduleStub(MockCatalogClient):
    """Serves a fixed list of times per date; missing dates raise."""

    def __init__(self, days: dict[str, list[str]]) -> None:
        super().__init__()
        self.days = days
        self.requested: list[str] = []

    async def get_doctor_schedule(self, doctor_id: str, date: str) -> dict:
        self.requested.append(date)
        if date not in self.days:
            raise CatalogError("get_doctor_schedule", "HTTP 404")
        return {"availableSlots": self.days[date]}


@pytest.mark.asyncio
async def test_walks_the_five_days_after_today():
    stub = ScheduleStub({"2026-03-03": ["08:00"], "2026-03-07": ["15:30"]})
    slots = await build_slot_options(stub, "BS-AN", TODAY)

    assert stub.requested == ["2026-03-03", "2026-03-04", "2026-03-05", "2026-03-06", "2026-03-07"]
    assert [s.id for s in slots] == ["2026-03-03_08:00", "2026-03-07_15:30"]
    assert slots[1].label == "07/03 • 15:30"
    assert (slots[1].date, slots[1].time) == ("2026-03-07", "15:30")


@pytest.mark.asyncio
async def test_never_more_than_ten_slots():
    many = [f"{h:02d}:00" for h in range(7, 17)]
    stub = ScheduleStub({f"2026-03-0{d}": many for d in range(3, 8)})
    slots = await build_slot_options(stub, "BS-AN", TODAY)

    assert len(slots) == 10
    assert stub.requested == ["2026-03-03"]


@pytest.mark.asyncio
async def test_cap_spans_days():
    stub = ScheduleStub({f"2026-03-0{d}": ["08:00", "09:00", "10:00", "11:00"] for d in range(3, 8)})
    slots = await build_slot_options(stub, "BS-AN", TODAY)

    assert len(slots) == 10
    assert slots[-1].id == "2026-03-05_09:00"


@pytest.mark.asyncio
async def test_failed_days_are_skipped():
    stub = ScheduleStub({"2026-03-05": ["13:30"]})
    slots = await build_slot_options(stub, "BS-AN", TODAY)

    assert len(stub.requested) == 5
    assert [s.id for s in slots] == ["2026-03-05_13:30"]


@pytest.mark.asyncio
async def test_no_schedule_at_all():
    assert await build_slot_options(ScheduleStub({}), "BS-AN", TODAY) == []


@pytest.mark.asyncio
async def test_missing_available_slots_counts_as_empty():
    class NullSlots(MockCatalogClient):
        async def get_doctor_schedule(self, doctor_id: str, date: str) -> dict:
            return {"availableSlots": None}

    assert await build_slot_options(NullSlots(), "BS-AN", TODAY) == []


class RawScheduleStub(MockCatalogClient):
    """Returns each date's response body exactly as given."""

    def __init__(self, bodies: dict) -> None:
        super().__init__()
        self.bodies = bodies

    async def get_doctor_schedule(self, doctor_id: str, date: str):
        return self.bodies.get(date, {"availableSlots": ["08:00"]})


@pytest.mark.asyncio
async def test_non_string_times_are_dropped():
    stub = RawScheduleStub({"2026-03-03": {"availableSlots": [800]}})
    slots = await build_slot_options(stub, "BS-AN", TODAY)

    assert len(slots) == 4
    assert [s.date for s in slots] == ["2026-03-04", "2026-03-05", "2026-03-06", "2026-03-07"]


@pytest.mark.asyncio
async def test_malformed_day_is_skipped():
    stub = RawScheduleStub({"2026-03-04": ["08:00"], "2026-03-05": "closed"})
    slots = await build_slot_options(stub, "BS-AN", TODAY)

    assert [s.id for s in slots] == ["2026-03-03_08:00", "2026-03-06_08:00", "2026-03-07_08:00"]

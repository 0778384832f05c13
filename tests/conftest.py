from datetime import datetime, timedelta

import pytest

from booking_chat.graph_manager import DialogueEngine
from booking_chat.mock_client import MockCatalogClient
from booking_chat.models import BookingData, ConversationContext, ConversationNeed


class FixedClock:
    """Clock that only moves when a test says so."""

    def __init__(self, start: datetime) -> None:
        self.current = start

    def __call__(self) -> datetime:
        return self.current

    def advance(self, **kwargs) -> None:
        self.current += timedelta(**kwargs)

    def timestamp(self) -> float:
        return self.current.timestamp()


@pytest.fixture
def clock():
    return FixedClock(datetime(2026, 3, 2, 9, 0))


@pytest.fixture
def api():
    return MockCatalogClient()


@pytest.fixture
def engine(api, clock):
    """Create a fresh DialogueEngine over the in-memory catalog."""
    return DialogueEngine(api, clock=clock)


def contact_ready_data(**overrides) -> BookingData:
    """Booking data with every field up to and including the email filled."""
    values = dict(
        hospital_id="BV01",
        hospital_name="Bệnh viện Trung ương",
        department_id="K-TIM",
        department_name="Tim mạch",
        doctor_id="BS-AN",
        doctor_name="Nguyễn Văn An",
        date="2026-03-03",
        time="08:00",
        full_name="Nguyễn Thị Hoa",
        phone="0901234567",
        email="hoa@example.com",
    )
    values.update(overrides)
    return BookingData(**values)


def collecting(need: ConversationNeed, data: BookingData, updated_at: float, **extra) -> ConversationContext:
    return ConversationContext(flow="collecting", need=need, data=data, updated_at=updated_at, **extra)

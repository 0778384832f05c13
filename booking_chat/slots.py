"""Canonical fill order of the booking conversation.

Each slot knows
    • which conversation need it answers
    • which BookingData fields it fills
    • how to fetch its option list, given the data collected so far
"""

from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from datetime import date
from typing import TypeAlias

from booking_chat.catalog_client import (
    CatalogGateway,
    department_options,
    doctor_options,
    hospital_options,
)
from booking_chat.models import BaseOption, BookingData, ConversationNeed
from booking_chat.schedule import build_slot_options

OptionsFn: TypeAlias = Callable[[BookingData], Awaitable[Sequence[BaseOption]]]


@dataclass(frozen=True, slots=True)
class Slot:
    need: ConversationNeed
    fields: Sequence[str]
    options_fn: OptionsFn | None = None
    allow_empty: bool = False

    def is_filled(self, data: BookingData) -> bool:
        values = [getattr(data, f) for f in self.fields]
        if self.allow_empty:
            return all(v is not None for v in values)
        return all(values)

    async def options(self, data: BookingData) -> list[BaseOption]:
        if self.options_fn is None:
            return []
        return list(await self.options_fn(data))


# --------------------------------------------------------------------------- #
#  Default slot chain used by DialogueEngine
# --------------------------------------------------------------------------- #
def build_default_slots(api: CatalogGateway, today: Callable[[], date]) -> list[Slot]:
    """Return the hospital → department → doctor → slot → contact chain."""

    async def hospitals(_: BookingData) -> list[BaseOption]:
        return hospital_options(await api.list_hospitals())

    async def departments(data: BookingData) -> list[BaseOption]:
        return department_options(await api.list_departments(data.hospital_id))

    async def doctors(data: BookingData) -> list[BaseOption]:
        return doctor_options(await api.list_doctors(data.department_id))

    async def time_slots(data: BookingData) -> list[BaseOption]:
        return await build_slot_options(api, data.doctor_id, today())

    return [
        Slot(ConversationNeed.HOSPITAL, ["hospital_id"], hospitals),
        Slot(ConversationNeed.DEPARTMENT, ["department_id"], departments),
        Slot(ConversationNeed.DOCTOR, ["doctor_id"], doctors),
        Slot(ConversationNeed.SLOT, ["date", "time"], time_slots),
        Slot(ConversationNeed.FULL_NAME, ["full_name"]),
        Slot(ConversationNeed.PHONE, ["phone"]),
        Slot(ConversationNeed.EMAIL, ["email"]),
        Slot(ConversationNeed.SYMPTOMS, ["symptoms"], allow_empty=True),
    ]


def determine_next_need(slots: Sequence[Slot], data: BookingData) -> ConversationNeed | None:
    """Return the first unfilled need, or ``None`` once everything is collected."""
    return next((slot.need for slot in slots if not slot.is_filled(data)), None)

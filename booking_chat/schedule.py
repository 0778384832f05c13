"""Turning a doctor's upcoming schedule into selectable time slots."""

import logging
from datetime import date, timedelta

from booking_chat.catalog_client import CatalogGateway, available_times
from booking_chat.config import MAX_SLOT_OPTIONS, SLOT_LOOKAHEAD_DAYS
from booking_chat.errors import CatalogError
from booking_chat.models import SlotOption

logger = logging.getLogger(__name__)


async def build_slot_options(
    api: CatalogGateway,
    doctor_id: str,
    today: date,
    lookahead_days: int = SLOT_LOOKAHEAD_DAYS,
    limit: int = MAX_SLOT_OPTIONS,
) -> list[SlotOption]:
    """Collect up to ``limit`` free slots over the days after ``today``.

    Days are fetched one at a time. A day whose schedule cannot be loaded is
    skipped, so the result may be partial or empty.
    """
    slots: list[SlotOption] = []

    for offset in range(1, lookahead_days + 1):
        day = today + timedelta(days=offset)
        date_str = day.isoformat()

        try:
            schedule = await api.get_doctor_schedule(doctor_id, date_str)
            day_slots = [
                SlotOption(
                    id=f"{date_str}_{time}",
                    label=f"{day:%d/%m} • {time}",
                    date=date_str,
                    time=time,
                )
                for time in available_times(schedule)
            ]
        except CatalogError as e:
            logger.warning(f"Schedule unavailable for doctor {doctor_id} on {date_str}: {e}")
            continue

        for slot in day_slots:
            slots.append(slot)
            if len(slots) >= limit:
                return slots

    return slots

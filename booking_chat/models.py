"""Pydantic models for the appointment-booking conversation."""

from __future__ import annotations

from enum import Enum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from booking_chat.config import CONTEXT_TTL_SECONDS


# =============================================================================
# Options offered to the patient
# =============================================================================

class BaseOption(BaseModel):
    """One selectable catalog entry (hospital, department or doctor)."""

    model_config = ConfigDict(frozen=True)

    id: str
    label: str
    detail: str | None = None


class SlotOption(BaseOption):
    """A bookable time slot for one doctor."""

    date: str  # YYYY-MM-DD
    time: str  # HH:MM


# =============================================================================
# Conversation state
# =============================================================================

class ConversationNeed(str, Enum):
    HOSPITAL = "hospital"
    DEPARTMENT = "department"
    DOCTOR = "doctor"
    SLOT = "slot"
    FULL_NAME = "fullName"
    PHONE = "phone"
    EMAIL = "email"
    SYMPTOMS = "symptoms"


class BookingData(BaseModel):
    """Booking fields collected so far."""

    hospital_id: str | None = None
    hospital_name: str | None = None
    department_id: str | None = None
    department_name: str | None = None
    doctor_id: str | None = None
    doctor_name: str | None = None
    date: str | None = None
    time: str | None = None
    full_name: str | None = None
    phone: str | None = None
    email: str | None = None
    symptoms: str | None = None  # "" means the patient skipped it


class ConversationContext(BaseModel):
    """Serialisable state of one booking conversation.

    The engine never mutates a context in place; every turn returns a new one.
    """

    flow: Literal["idle", "collecting"] = "idle"
    need: ConversationNeed | None = None
    data: BookingData = Field(default_factory=BookingData)
    hospital_options: list[BaseOption] | None = None
    department_options: list[BaseOption] | None = None
    doctor_options: list[BaseOption] | None = None
    slot_options: list[SlotOption] | None = None
    updated_at: float | None = None

    @classmethod
    def initial(cls, now: float) -> ConversationContext:
        return cls(updated_at=now)

    def is_expired(self, now: float, ttl: float = CONTEXT_TTL_SECONDS) -> bool:
        return self.updated_at is not None and now - self.updated_at > ttl

    def advance(self, now: float, **changes) -> ConversationContext:
        """Return a copy with ``changes`` applied and the timestamp refreshed."""
        return self.model_copy(update={**changes, "updated_at": now})


class AppointmentResult(BaseModel):
    response: str
    context: ConversationContext
    done: bool = False


# =============================================================================
# Booking submission
# =============================================================================

class BookingPayload(BaseModel):
    """Appointment submitted to the booking API (camelCase on the wire)."""

    model_config = ConfigDict(populate_by_name=True)

    appointment_id: str = Field(alias="appointmentId")
    patient_name: str = Field(alias="patientName")
    phone: str
    email: str
    hospital_id: str = Field(alias="hospitalId")
    department_id: str = Field(alias="departmentId")
    doctor_id: str = Field(alias="doctorId")
    date: str
    time: str
    symptoms: str = ""

    def to_wire(self) -> dict:
        return self.model_dump(by_alias=True)

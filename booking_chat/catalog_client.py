"""Catalog gateway: the booking API behind hospitals, doctors and schedules.

Raw API records are loose JSON; ``*_options`` below turn them into
:class:`BaseOption` values with defaults filled in, so nothing past this
module has to guess at field names.
"""

from __future__ import annotations

import logging
from typing import Any, Protocol

import httpx

from booking_chat.config import (
    CATALOG_BASE_URL,
    CATALOG_READ_RETRIES,
    CATALOG_TIMEOUT,
    CATALOG_TOKEN,
)
from booking_chat.errors import CatalogError
from booking_chat.models import BaseOption

logger = logging.getLogger(__name__)

Record = dict[str, Any]


class CatalogGateway(Protocol):
    async def list_hospitals(self) -> list[Record]: ...

    async def list_departments(self, hospital_id: str) -> list[Record]: ...

    async def list_doctors(self, department_id: str) -> list[Record]: ...

    async def get_doctor_schedule(self, doctor_id: str, date: str) -> Record: ...

    async def create_booking(self, payload: Record) -> Record: ...


# --------------------------------------------------------------------------- #
#  Record normalisation
# --------------------------------------------------------------------------- #
def _records(operation: str, body: Any) -> list[Record]:
    """Dict records of a list body; any other body shape is a catalog failure."""
    if body is None:
        return []
    if not isinstance(body, list):
        raise CatalogError(operation, f"expected a list, got {type(body).__name__}")
    return [r for r in body if isinstance(r, dict)]


def _first_id(record: Record, *keys: str) -> str:
    for key in keys:
        value = record.get(key)
        if value is not None:
            return str(value)
    return ""


def _text(record: Record, key: str, default: str) -> str:
    value = record.get(key)
    return str(value) if value not in (None, "") else default


def hospital_options(records: Any) -> list[BaseOption]:
    return [
        BaseOption(
            id=_first_id(r, "hospitalId", "id", "code", "name"),
            label=_text(r, "name", "Bệnh viện"),
            detail=_text(r, "address", ""),
        )
        for r in _records("list_hospitals", records)
    ]


def department_options(records: Any) -> list[BaseOption]:
    return [
        BaseOption(
            id=_first_id(r, "departmentId", "id", "name"),
            label=_text(r, "name", "Chuyên khoa"),
        )
        for r in _records("list_departments", records)
    ]


def doctor_options(records: Any) -> list[BaseOption]:
    return [
        BaseOption(
            id=_first_id(r, "doctorId", "id", "name"),
            label=_text(r, "name", "Bác sĩ"),
        )
        for r in _records("list_doctors", records)
    ]


def available_times(schedule: Any) -> list[str]:
    """Free times of a schedule body; anything but a dict is a catalog failure."""
    if schedule is None:
        return []
    if not isinstance(schedule, dict):
        raise CatalogError("get_doctor_schedule", f"expected an object, got {type(schedule).__name__}")
    times = schedule.get("availableSlots")
    if not isinstance(times, list):
        return []
    return [t for t in times if isinstance(t, str)]


# --------------------------------------------------------------------------- #
#  HTTP client
# --------------------------------------------------------------------------- #
class HttpCatalogClient:
    """Async client for the booking REST API."""

    def __init__(
        self,
        base_url: str = CATALOG_BASE_URL,
        token: str = CATALOG_TOKEN,
        timeout: float = CATALOG_TIMEOUT,
        read_retries: int = CATALOG_READ_RETRIES,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        headers = {"Content-Type": "application/json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        self._client = httpx.AsyncClient(
            base_url=base_url, headers=headers, timeout=timeout, transport=transport
        )
        self.read_retries = max(read_retries, 0)

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _request(self, operation: str, method: str, path: str, body: Record | None = None) -> Any:
        try:
            response = await self._client.request(method, path, json=body)
            response.raise_for_status()
            return response.json()
        except httpx.HTTPStatusError as e:
            raise CatalogError(operation, f"HTTP {e.response.status_code}") from e
        except httpx.HTTPError as e:
            raise CatalogError(operation, str(e) or type(e).__name__) from e
        except ValueError as e:
            raise CatalogError(operation, "invalid JSON body") from e

    async def _read(self, operation: str, expected: type, method: str, path: str, body: Record | None = None) -> Any:
        attempts = self.read_retries + 1
        for attempt in range(1, attempts + 1):
            try:
                result = await self._request(operation, method, path, body)
                break
            except CatalogError as e:
                if attempt == attempts:
                    raise
                logger.warning(f"{e} (attempt {attempt}/{attempts}), retrying")

        if not isinstance(result, expected):
            raise CatalogError(operation, f"expected {expected.__name__}, got {type(result).__name__}")
        return result

    async def list_hospitals(self) -> list[Record]:
        return await self._read("list_hospitals", list, "GET", "/hospitals")

    async def list_departments(self, hospital_id: str) -> list[Record]:
        return await self._read(
            "list_departments", list, "POST", "/getDepartmentsByHospitalId", {"hospitalId": hospital_id}
        )

    async def list_doctors(self, department_id: str) -> list[Record]:
        return await self._read(
            "list_doctors", list, "POST", "/getDoctorByDepartment", {"departmentId": department_id}
        )

    async def get_doctor_schedule(self, doctor_id: str, date: str) -> Record:
        return await self._read(
            "get_doctor_schedule", dict, "POST", "/doctor/getSchedule", {"doctorId": doctor_id, "date": date}
        )

    async def create_booking(self, payload: Record) -> Record:
        return await self._request("create_booking", "POST", "/appointment", payload)

from booking_chat.errors import CatalogError


class MockCatalogClient:
    """In-memory booking API used for local runs and tests."""

    def __init__(self) -> None:
        self.bookings: list[dict] = []

    async def list_hospitals(self) -> list[dict]:
        """Return the available hospitals."""
        return [
            {"hospitalId": "BV01", "name": "Bệnh viện Trung ương", "address": "1 Trần Hưng Đạo, Hà Nội"},
            {"hospitalId": "BV02", "name": "Bệnh viện Nhi Đồng", "address": "15 Lý Tự Trọng, TP.HCM"},
            {"hospitalId": "BV03", "name": "Phòng khám Bắc Ninh", "address": "8 Ngô Gia Tự, Bắc Ninh"},
        ]

    async def list_departments(self, hospital_id: str) -> list[dict]:
        """Return departments open for booking at the chosen hospital."""
        mapping = {
            "BV01": [
                {"departmentId": "K-TIM", "name": "Tim mạch"},
                {"departmentId": "K-DALIEU", "name": "Da liễu"},
            ],
            "BV02": [
                {"departmentId": "K-NHI", "name": "Nhi khoa"},
                {"departmentId": "K-CTCH", "name": "Chấn thương chỉnh hình"},
            ],
        }
        return mapping.get(hospital_id, [])

    async def list_doctors(self, department_id: str) -> list[dict]:
        """Return doctors working in the chosen department."""
        mapping = {
            "K-TIM": [
                {"doctorId": "BS-AN", "name": "Nguyễn Văn An"},
                {"doctorId": "BS-BINH", "name": "Trần Thị Bình"},
            ],
            "K-DALIEU": [{"doctorId": "BS-CUONG", "name": "Lê Văn Cường"}],
            "K-NHI": [{"doctorId": "BS-DUNG", "name": "Phạm Thị Dung"}],
        }
        return mapping.get(department_id, [])

    async def get_doctor_schedule(self, doctor_id: str, date: str) -> dict:
        """Return the free times of a doctor on ``date`` (same every day)."""
        mapping = {
            "BS-AN": ["08:00", "09:30", "14:00"],
            "BS-CUONG": ["10:00"],
            "BS-DUNG": ["07:30", "13:30"],
        }
        if doctor_id not in mapping:
            raise CatalogError("get_doctor_schedule", f"no schedule for {doctor_id}")
        return {"doctorId": doctor_id, "date": date, "availableSlots": mapping[doctor_id]}

    async def create_booking(self, payload: dict) -> dict:
        """Record the booking and echo its reference."""
        self.bookings.append(payload)
        return {"appointmentId": payload["appointmentId"], "status": "PENDING"}

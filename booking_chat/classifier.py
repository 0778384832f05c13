APPOINTMENT_KEYWORDS = (
    "đặt lịch",
    "dat lich",
    "lịch hẹn",
    "lich hen",
    "lịch khám",
    "lich kham",
    "đăng ký khám",
    "dang ky kham",
    "booking",
    "appointment",
    "hẹn bác sĩ",
    "hen bac si",
    "đặt lịch bác sĩ",
    "dat lich bac si",
)


def is_appointment_query(message: str) -> bool:
    """Whether a chat message asks to book an appointment."""
    normalized = message.lower()
    return any(keyword in normalized for keyword in APPOINTMENT_KEYWORDS)

from __future__ import annotations

import logging
import re
import uuid
from collections.abc import Callable
from datetime import date, datetime

from langgraph.graph import END, StateGraph
from pydantic import BaseModel, Field

from booking_chat.catalog_client import CatalogGateway
from booking_chat.config import CONTEXT_TTL_SECONDS
from booking_chat.errors import CatalogError
from booking_chat.models import (
    AppointmentResult,
    BaseOption,
    BookingPayload,
    ConversationContext,
    ConversationNeed,
)
from booking_chat.options import format_option_list, resolve_choice
from booking_chat.slots import Slot, build_default_slots, determine_next_need

logger = logging.getLogger(__name__)

Need = ConversationNeed

CANCEL_WORDS = frozenset({"hủy", "huy", "thoát", "thoat", "cancel", "stop", "exit"})
SKIP_SYMPTOMS_WORDS = frozenset({"", "bỏ qua", "bo qua", "không", "khong"})
EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
REQUIRED_FIELDS = (
    "hospital_id",
    "department_id",
    "doctor_id",
    "date",
    "time",
    "full_name",
    "phone",
    "email",
)

BOOKING_PAGE_HINT = "mục Đặt lịch hẹn ở trang chủ"


class TurnState(BaseModel):
    """State of a single engine turn; only ``context`` outlives it."""

    message: str = ""
    context: ConversationContext = Field(default_factory=ConversationContext)
    now: float = 0.0
    symptoms: str | None = None
    response: str | None = None
    done: bool = False


class DialogueEngine:
    """Slot-filling booking dialogue built on a LangGraph state machine.

    The engine keeps no conversation state: each call to :meth:`step` takes
    the caller's context and hands back the next one.
    """

    def __init__(
        self,
        api: CatalogGateway,
        clock: Callable[[], datetime] = datetime.now,
        ttl: float = CONTEXT_TTL_SECONDS,
    ) -> None:
        self.api = api
        self.clock = clock
        self.ttl = ttl
        self.slot_definitions: list[Slot] = build_default_slots(api, self._today)
        self._slots = {slot.need: slot for slot in self.slot_definitions}

        self.graph = self._build_graph()
        self.executor = self.graph.compile()

    def _today(self) -> date:
        return self.clock().date()

    def _build_graph(self) -> StateGraph:
        """Build the LangGraph state machine for one conversation turn."""
        g = StateGraph(TurnState)

        answer_nodes = {
            Need.HOSPITAL: self._answer_hospital,
            Need.DEPARTMENT: self._answer_department,
            Need.DOCTOR: self._answer_doctor,
            Need.SLOT: self._answer_slot,
            Need.FULL_NAME: self._answer_full_name,
            Need.PHONE: self._answer_phone,
            Need.EMAIL: self._answer_email,
            Need.SYMPTOMS: self._answer_symptoms,
        }

        g.add_node("prepare", self._prepare)
        g.add_node("cancel_flow", self._cancel_flow)
        g.add_node("start_flow", self._start_flow)
        for need, handler in answer_nodes.items():
            g.add_node(self._node_for(need), handler)
        g.add_node("finalize", self._finalize)

        g.set_entry_point("prepare")

        routes = ["cancel_flow", "start_flow", *(self._node_for(n) for n in answer_nodes)]
        g.add_conditional_edges("prepare", self._route, {r: r for r in routes})

        g.add_edge(self._node_for(Need.SYMPTOMS), "finalize")
        for node in routes:
            if node != self._node_for(Need.SYMPTOMS):
                g.add_edge(node, END)
        g.add_edge("finalize", END)
        return g

    @staticmethod
    def _node_for(need: ConversationNeed) -> str:
        return f"answer_{need.value}"

    # ------------------------------------------------------------------ #
    #  Entry point
    # ------------------------------------------------------------------ #
    async def step(self, message: str, context: ConversationContext | None = None) -> AppointmentResult:
        """Handle one patient message and return the reply plus the next context."""
        now = self.clock().timestamp()
        state = TurnState(
            message=message,
            context=context if context is not None else ConversationContext.initial(now),
            now=now,
        )
        out = await self.executor.ainvoke(state)
        if isinstance(out, BaseModel):
            out = out.model_dump()

        result = AppointmentResult(
            response=out.get("response") or "",
            context=out["context"],
            done=out.get("done", False),
        )
        logger.debug(
            f"Turn handled: need {state.context.need} -> {result.context.need} "
            f"(flow={result.context.flow}, done={result.done})"
        )
        return result

    # ------------------------------------------------------------------ #
    #  Routing
    # ------------------------------------------------------------------ #
    def _prepare(self, state: TurnState) -> dict:
        ctx = state.context
        if ctx.is_expired(state.now, self.ttl):
            logger.info("Conversation context expired; starting over")
            return {"context": ConversationContext.initial(state.now)}
        return {"context": ctx.advance(state.now)}

    def _route(self, state: TurnState) -> str:
        if state.message.strip().lower() in CANCEL_WORDS:
            return "cancel_flow"
        ctx = state.context
        if ctx.flow == "idle":
            return "start_flow"
        need = ctx.need or determine_next_need(self.slot_definitions, ctx.data)
        if need is None:
            return "start_flow"
        return self._node_for(need)

    # ------------------------------------------------------------------ #
    #  Helper utilities
    # ------------------------------------------------------------------ #
    @staticmethod
    def _reply(response: str, context: ConversationContext, done: bool = False) -> dict:
        return {"response": response, "context": context, "done": done}

    async def _stored_or_fetched(self, ctx: ConversationContext, need: ConversationNeed, attr: str) -> list[BaseOption]:
        options = getattr(ctx, attr)
        if options is None:
            options = await self._slots[need].options(ctx.data)
        return options

    # ------------------------------------------------------------------ #
    #  Flow start / cancel
    # ------------------------------------------------------------------ #
    def _cancel_flow(self, state: TurnState) -> dict:
        logger.info(f"Booking flow cancelled at step {state.context.need}")
        return self._reply(
            'Đã dừng quy trình đặt lịch. Khi cần đặt lại bạn cứ nhắn "đặt lịch" nhé.',
            ConversationContext.initial(state.now),
            done=True,
        )

    async def _start_flow(self, state: TurnState) -> dict:
        idle = ConversationContext.initial(state.now)
        try:
            hospitals = await self._slots[Need.HOSPITAL].options(idle.data)
        except CatalogError as e:
            logger.warning(f"Could not load hospitals: {e}")
            return self._reply(
                f"Xin lỗi, tôi chưa thể tải danh sách bệnh viện. Bạn thử lại sau hoặc sử dụng {BOOKING_PAGE_HINT} nhé.",
                idle,
            )

        if not hospitals:
            return self._reply(
                "Hiện chưa tải được danh sách bệnh viện hỗ trợ đặt lịch. "
                f"Bạn có thể sử dụng {BOOKING_PAGE_HINT} để tiếp tục.",
                idle,
            )

        logger.info(f"Booking flow started with {len(hospitals)} hospitals")
        return self._reply(
            "\n".join([
                "✨ Tôi sẽ giúp bạn đặt lịch khám trực tuyến.",
                "Đầu tiên, bạn muốn khám tại cơ sở nào? Dưới đây là một vài lựa chọn:",
                format_option_list(hospitals),
                "",
                '👉 Trả lời bằng số thứ tự hoặc nhập tên bệnh viện. Gõ "hủy" để dừng quy trình bất cứ lúc nào.',
            ]),
            idle.advance(state.now, flow="collecting", need=Need.HOSPITAL, hospital_options=hospitals),
        )

    # ------------------------------------------------------------------ #
    #  Catalog steps
    # ------------------------------------------------------------------ #
    async def _answer_hospital(self, state: TurnState) -> dict:
        ctx, now = state.context, state.now
        try:
            hospitals = await self._stored_or_fetched(ctx, Need.HOSPITAL, "hospital_options")
        except CatalogError as e:
            logger.warning(f"Could not load hospitals: {e}")
            hospitals = []
        if not hospitals:
            return self._reply(
                "Tôi chưa có danh sách bệnh viện để gợi ý. Bạn thử lại sau nhé.",
                ConversationContext.initial(now),
            )

        choice = resolve_choice(state.message, hospitals)
        if choice is None:
            return self._reply(
                f"Mã bệnh viện chưa hợp lệ. Bạn chọn lại giúp tôi nhé:\n{format_option_list(hospitals)}",
                ctx.advance(now, hospital_options=hospitals, need=Need.HOSPITAL),
            )

        data = ctx.data.model_copy(update={"hospital_id": choice.id, "hospital_name": choice.label})
        try:
            departments = await self._slots[Need.DEPARTMENT].options(data)
        except CatalogError as e:
            logger.warning(f"Could not load departments for hospital {choice.id}: {e}")
            return self._reply(
                "Tôi chưa thể tải danh sách chuyên khoa. Bạn thử lại sau hoặc chọn bệnh viện khác nhé.",
                ctx.advance(now, hospital_options=hospitals, need=Need.HOSPITAL),
            )

        if not departments:
            return self._reply(
                f"Hiện {choice.label} chưa mở đặt lịch qua chatbot. Bạn có thể chọn cơ sở khác:\n"
                f"{format_option_list(hospitals)}",
                ctx.advance(now, hospital_options=hospitals, need=Need.HOSPITAL),
            )

        return self._reply(
            "\n".join([
                f"✅ Đã chọn {choice.label}.",
                "Bạn muốn khám ở chuyên khoa nào?",
                format_option_list(departments),
                "",
                "👉 Nhập số thứ tự hoặc tên chuyên khoa.",
            ]),
            ctx.advance(
                now,
                data=data,
                hospital_options=hospitals,
                department_options=departments,
                need=Need.DEPARTMENT,
            ),
        )

    async def _answer_department(self, state: TurnState) -> dict:
        ctx, now = state.context, state.now
        if not ctx.data.hospital_id:
            return await self._start_flow(state)

        try:
            departments = await self._stored_or_fetched(ctx, Need.DEPARTMENT, "department_options")
        except CatalogError as e:
            logger.warning(f"Could not load departments for hospital {ctx.data.hospital_id}: {e}")
            return self._reply(
                "Tôi chưa thể tải danh sách chuyên khoa. Bạn thử lại sau nhé.",
                ctx.advance(now, need=Need.DEPARTMENT),
            )
        if not departments:
            return self._reply(
                "Tôi chưa tìm thấy chuyên khoa phù hợp cho cơ sở này. Bạn chọn lại bệnh viện nhé.",
                ctx.advance(now, need=Need.HOSPITAL),
            )

        choice = resolve_choice(state.message, departments)
        if choice is None:
            return self._reply(
                f"Tên chuyên khoa chưa đúng. Bạn chọn theo danh sách sau nhé:\n{format_option_list(departments)}",
                ctx.advance(now, department_options=departments, need=Need.DEPARTMENT),
            )

        data = ctx.data.model_copy(update={"department_id": choice.id, "department_name": choice.label})
        try:
            doctors = await self._slots[Need.DOCTOR].options(data)
        except CatalogError as e:
            logger.warning(f"Could not load doctors for department {choice.id}: {e}")
            return self._reply(
                "Tôi chưa thể tải danh sách bác sĩ. Bạn thử lại sau nhé.",
                ctx.advance(now, department_options=departments, need=Need.DEPARTMENT),
            )

        if not doctors:
            return self._reply(
                f"Khoa {choice.label} chưa có bác sĩ khả dụng. Bạn có thể chọn khoa khác:\n"
                f"{format_option_list(departments)}",
                ctx.advance(now, department_options=departments, need=Need.DEPARTMENT),
            )

        return self._reply(
            "\n".join([
                f"👍 Đã chọn khoa {choice.label}.",
                "Bạn muốn đặt bác sĩ nào?",
                format_option_list(doctors),
                "",
                "👉 Nhập số thứ tự hoặc tên bác sĩ.",
            ]),
            ctx.advance(
                now,
                data=data,
                department_options=departments,
                doctor_options=doctors,
                need=Need.DOCTOR,
            ),
        )

    async def _answer_doctor(self, state: TurnState) -> dict:
        ctx, now = state.context, state.now
        if not ctx.data.department_id:
            return await self._start_flow(state)

        try:
            doctors = await self._stored_or_fetched(ctx, Need.DOCTOR, "doctor_options")
        except CatalogError as e:
            logger.warning(f"Could not load doctors for department {ctx.data.department_id}: {e}")
            return self._reply(
                "Tôi chưa thể tải danh sách bác sĩ. Bạn thử lại sau nhé.",
                ctx.advance(now, need=Need.DOCTOR),
            )
        if not doctors:
            return self._reply(
                "Chưa có bác sĩ khả dụng ở khoa này. Bạn chọn lại chuyên khoa nhé.",
                ctx.advance(now, need=Need.DEPARTMENT),
            )

        choice = resolve_choice(state.message, doctors)
        if choice is None:
            return self._reply(
                f"Tên bác sĩ chưa chính xác. Bạn chọn theo danh sách nhé:\n{format_option_list(doctors)}",
                ctx.advance(now, doctor_options=doctors, need=Need.DOCTOR),
            )

        data = ctx.data.model_copy(update={"doctor_id": choice.id, "doctor_name": choice.label})
        slots = await self._slots[Need.SLOT].options(data)
        if not slots:
            return self._reply(
                "Bác sĩ này chưa mở lịch trong vài ngày tới. Bạn có muốn chọn bác sĩ khác không?\n"
                f"{format_option_list(doctors)}",
                ctx.advance(now, doctor_options=doctors, need=Need.DOCTOR),
            )

        return self._reply(
            "\n".join([
                f"🩺 Bạn đã chọn bác sĩ {choice.label}.",
                "Các khung giờ còn trống trong vài ngày tới:",
                format_option_list(slots),
                "",
                "👉 Nhập số thứ tự để chọn khung giờ.",
            ]),
            ctx.advance(now, data=data, doctor_options=doctors, slot_options=slots, need=Need.SLOT),
        )

    def _answer_slot(self, state: TurnState) -> dict:
        ctx, now = state.context, state.now
        slots = ctx.slot_options or []
        if not slots:
            return self._reply(
                "Hiện chưa có khung giờ nào khả dụng. Bạn chọn lại bác sĩ nhé.",
                ctx.advance(now, need=Need.DOCTOR),
            )

        choice = resolve_choice(state.message, slots)
        if choice is None:
            return self._reply(
                f"Mã khung giờ chưa hợp lệ. Bạn chọn lại theo danh sách nhé:\n{format_option_list(slots)}",
                ctx.advance(now, slot_options=slots, need=Need.SLOT),
            )

        data = ctx.data.model_copy(update={"date": choice.date, "time": choice.time})
        return self._reply(
            f"🗓️ Đã chọn {choice.label}.\nVui lòng cho tôi biết họ tên đầy đủ của bệnh nhân?",
            ctx.advance(now, data=data, need=Need.FULL_NAME),
        )

    # ------------------------------------------------------------------ #
    #  Contact details
    # ------------------------------------------------------------------ #
    def _answer_full_name(self, state: TurnState) -> dict:
        ctx, now = state.context, state.now
        name = state.message.strip()
        if len(name) < 3:
            return self._reply(
                "Họ tên cần ít nhất 3 ký tự. Bạn nhập lại giúp tôi nhé.",
                ctx.advance(now, need=Need.FULL_NAME),
            )
        return self._reply(
            "📞 Số điện thoại của bạn là gì? (10-11 số)",
            ctx.advance(now, data=ctx.data.model_copy(update={"full_name": name}), need=Need.PHONE),
        )

    def _answer_phone(self, state: TurnState) -> dict:
        ctx, now = state.context, state.now
        digits = re.sub(r"[^0-9]", "", state.message)
        if not 10 <= len(digits) <= 11:
            return self._reply(
                "Số điện thoại chưa đúng. Bạn nhập lại 10-11 số nhé.",
                ctx.advance(now, need=Need.PHONE),
            )
        return self._reply(
            "✉️ Email để chúng tôi gửi xác nhận?",
            ctx.advance(now, data=ctx.data.model_copy(update={"phone": digits}), need=Need.EMAIL),
        )

    def _answer_email(self, state: TurnState) -> dict:
        ctx, now = state.context, state.now
        email = state.message.strip()
        if not EMAIL_RE.match(email):
            return self._reply(
                "Email chưa đúng định dạng. Bạn nhập lại giúp tôi nhé.",
                ctx.advance(now, need=Need.EMAIL),
            )
        return self._reply(
            'Bạn có thể mô tả ngắn gọn triệu chứng chính (hoặc nhập "bỏ qua" nếu chưa sẵn sàng chia sẻ)?',
            ctx.advance(now, data=ctx.data.model_copy(update={"email": email}), need=Need.SYMPTOMS),
        )

    def _answer_symptoms(self, state: TurnState) -> dict:
        text = state.message.strip()
        return {"symptoms": "" if text.lower() in SKIP_SYMPTOMS_WORDS else text}

    # ------------------------------------------------------------------ #
    #  Booking
    # ------------------------------------------------------------------ #
    async def _finalize(self, state: TurnState) -> dict:
        ctx, now = state.context, state.now
        data = ctx.data.model_copy(update={"symptoms": state.symptoms or ""})

        missing = [field for field in REQUIRED_FIELDS if not getattr(data, field)]
        if missing:
            logger.warning(f"Booking aborted, missing fields: {', '.join(missing)}")
            return self._reply(
                'Tôi thiếu một vài thông tin để đặt lịch. Bạn thử bắt đầu lại bằng cách nhắn "đặt lịch" nhé.',
                ConversationContext.initial(now),
                done=True,
            )

        payload = BookingPayload(
            appointment_id=f"APPT-{uuid.uuid4()}",
            patient_name=data.full_name,
            phone=data.phone,
            email=data.email,
            hospital_id=data.hospital_id,
            department_id=data.department_id,
            doctor_id=data.doctor_id,
            date=data.date,
            time=data.time,
            symptoms=data.symptoms,
        )

        try:
            result = await self.api.create_booking(payload.to_wire())
        except CatalogError as e:
            logger.error(f"Booking {payload.appointment_id} failed: {e}")
            return self._reply(
                "Xin lỗi, tôi chưa thể tạo lịch hẹn lúc này. Bạn kiểm tra lại kết nối "
                f"hoặc thử đặt trực tiếp ở {BOOKING_PAGE_HINT} nhé.",
                ctx.advance(now, data=data, need=Need.SYMPTOMS),
            )

        returned = result.get("appointmentId") if isinstance(result, dict) else None
        code = str(returned) if returned else payload.appointment_id
        human_date = date.fromisoformat(payload.date).strftime("%d/%m/%Y")
        logger.info(f"Booking {code} created for doctor {payload.doctor_id} on {payload.date} {payload.time}")

        return self._reply(
            "\n".join([
                "🎉 Lịch hẹn của bạn đã được tạo thành công!",
                f"• Bệnh viện: {data.hospital_name}",
                f"• Khoa: {data.department_name}",
                f"• Bác sĩ: {data.doctor_name}",
                f"• Thời gian: {human_date} lúc {payload.time}",
                f"• Mã lịch hẹn: {code}",
                "",
                "Chúng tôi sẽ gửi xác nhận qua email/SMS trong ít phút. Nếu cần chỉnh sửa, "
                f'bạn có thể nhắn "đặt lịch" để tạo lịch mới hoặc truy cập {BOOKING_PAGE_HINT}.',
            ]),
            ConversationContext.initial(now),
            done=True,
        )

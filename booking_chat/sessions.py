"""Per-thread conversation contexts and routing of chat messages into the engine."""

from __future__ import annotations

import asyncio
import logging

from pydantic import BaseModel

from booking_chat.classifier import is_appointment_query
from booking_chat.graph_manager import DialogueEngine
from booking_chat.models import ConversationContext

logger = logging.getLogger(__name__)

GUIDANCE_MESSAGE = (
    'Tôi có thể giúp bạn đặt lịch khám với bác sĩ. Hãy nhắn "đặt lịch" để bắt đầu.'
)


class ChatReply(BaseModel):
    message: str
    done: bool = False
    booking_active: bool = False


class ChatRouter:
    """Holds one context per chat thread and decides when the booking flow answers."""

    def __init__(self, engine: DialogueEngine) -> None:
        self.engine = engine

        # in-memory persistence (thread-safe with an asyncio.Lock)
        self._threads: dict[str, dict] = {}
        self._lock = asyncio.Lock()

    async def _load_context(self, thread_id: str) -> ConversationContext | None:
        """Return the thread's live context; expired ones are dropped."""
        async with self._lock:
            raw = self._threads.get(thread_id)
        if not raw:
            return None
        context = ConversationContext.model_validate(raw)
        if context.is_expired(self.engine.clock().timestamp(), self.engine.ttl):
            async with self._lock:
                if self._threads.get(thread_id) is raw:
                    del self._threads[thread_id]
            return None
        return context

    async def _save_context(self, thread_id: str, context: ConversationContext) -> None:
        async with self._lock:
            if context.flow == "idle":
                self._threads.pop(thread_id, None)
            else:
                self._threads[thread_id] = context.model_dump(mode="json")

    @staticmethod
    def _in_progress(context: ConversationContext | None) -> bool:
        return context is not None and context.flow == "collecting"

    async def handle(self, thread_id: str, message: str) -> ChatReply:
        """Answer one chat message for ``thread_id``.

        A booking already in progress captures every message; otherwise only
        messages that ask for an appointment start one.
        """
        context = await self._load_context(thread_id)
        if not self._in_progress(context) and not is_appointment_query(message):
            return ChatReply(message=GUIDANCE_MESSAGE)

        result = await self.engine.step(message, context)
        await self._save_context(thread_id, result.context)
        if result.done:
            logger.info(f"Booking conversation finished for thread {thread_id}")
        return ChatReply(
            message=result.response,
            done=result.done,
            booking_active=result.context.flow == "collecting",
        )

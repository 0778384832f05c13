"""FastAPI server for the appointment-booking chatbot.

``POST /chat`` exposes the dialogue engine directly: the client sends the
context it got back last time. ``/ws`` keeps contexts server-side, one per
``thread_id``.
"""

import json
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, WebSocket, WebSocketDisconnect
from pydantic import BaseModel

from booking_chat.catalog_client import HttpCatalogClient
from booking_chat.config import CATALOG_BASE_URL
from booking_chat.graph_manager import DialogueEngine
from booking_chat.mock_client import MockCatalogClient
from booking_chat.models import AppointmentResult, ConversationContext
from booking_chat.sessions import ChatRouter

logger = logging.getLogger(__name__)


def build_catalog():
    if CATALOG_BASE_URL:
        return HttpCatalogClient()
    logger.warning("CATALOG_BASE_URL is not set; using the in-memory catalog")
    return MockCatalogClient()


catalog = build_catalog()


@asynccontextmanager
async def lifespan(_: FastAPI):
    yield
    aclose = getattr(catalog, "aclose", None)
    if aclose is not None:
        await aclose()


app = FastAPI(title="Appointment Booking Chatbot", lifespan=lifespan)

engine = DialogueEngine(catalog)
router = ChatRouter(engine)

active_connections: dict[str, WebSocket] = {}


class ChatIn(BaseModel):
    message: str
    context: ConversationContext | None = None


@app.post("/chat", response_model=AppointmentResult)
async def chat(body: ChatIn) -> AppointmentResult:
    """Run one booking turn against the context supplied by the caller."""
    return await engine.step(body.message, body.context)


@app.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket):
    """Handle WebSocket connections and messages.

    Routes each message through the chat router for its thread.
    """
    await websocket.accept()

    try:
        while True:
            data = await websocket.receive_text()
            try:
                message_data = json.loads(data)
            except json.JSONDecodeError:
                message_data = None
            if not isinstance(message_data, dict):
                await websocket.send_text(json.dumps({"error": "Message must be a JSON object"}))
                continue

            # TODO(auth): forward the patient's token to the catalog gateway instead of the service token.
            thread_id: str | None = message_data.get("thread_id")
            token: str | None = message_data.get("token")
            message: str | None = message_data.get("message")

            if not thread_id or not token or not isinstance(message, str) or not message:
                await websocket.send_text(
                    json.dumps({"error": "Missing thread_id, token or message"})
                )
                continue

            active_connections[thread_id] = websocket

            reply = await router.handle(thread_id, message)

            await websocket.send_text(
                json.dumps({"thread_id": thread_id, "message": reply.message, "done": reply.done})
            )

    except WebSocketDisconnect:
        active_connections.pop(
            next((tid for tid, conn in active_connections.items() if conn == websocket), None),
            None,
        )
    except Exception as e:
        logger.exception("WebSocket handler failed")
        try:
            await websocket.send_text(json.dumps({"error": f"Internal error: {e}"}))
        except Exception:
            pass


@app.get("/")
async def root():
    """Root endpoint providing basic API information."""
    return {
        "message": "Appointment Booking Chatbot API — POST /chat or connect to /ws via WebSocket."
    }

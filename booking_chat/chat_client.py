import argparse
import asyncio
import json
import uuid

import websockets

QUIT_WORDS = ("quit", "bye", "/q")


def print_reply(raw: str) -> bool:
    """Print a server frame; return whether the booking flow finished."""
    data = json.loads(raw)
    if "error" in data:
        print(f"Server Error: {data['error']}")
        return False
    print(f"Bot: {data['message']}")
    return bool(data.get("done"))


async def send_message(websocket, thread_id: str, token: str, message: str) -> None:
    """Send a message to the WebSocket server."""
    await websocket.send(json.dumps({"thread_id": thread_id, "token": token, "message": message}))


async def connect_and_chat(uri: str, token: str) -> None:
    """Connect to the booking chatbot and chat from the terminal."""
    thread_id = str(uuid.uuid4())
    print(f"Connecting to {uri} (thread {thread_id})...")
    print(f"Type {', '.join(QUIT_WORDS)} to leave; the bot itself understands \"hủy\" to cancel a booking.")

    try:
        async with websockets.connect(uri) as websocket:
            await send_message(websocket, thread_id, token, "đặt lịch")
            print_reply(await websocket.recv())

            while True:
                user_input = await asyncio.to_thread(input, "You: ")
                if user_input.strip().lower() in QUIT_WORDS:
                    print("Ending conversation. Goodbye!")
                    break
                if not user_input.strip():
                    continue

                await send_message(websocket, thread_id, token, user_input)
                if print_reply(await websocket.recv()):
                    print("(booking flow finished)")

    except websockets.exceptions.ConnectionClosedError:
        print("\nConnection closed by the server. Make sure it is running: booking-chat")
    except ConnectionRefusedError:
        print("\nCould not connect to the server. Make sure it is running: booking-chat")


def main():
    parser = argparse.ArgumentParser(description="Terminal client for the booking chatbot")
    parser.add_argument("--uri", default="ws://localhost:8000/ws")
    parser.add_argument("--token", default="local-dev-token")
    args = parser.parse_args()
    asyncio.run(connect_and_chat(args.uri, args.token))


if __name__ == "__main__":
    main()

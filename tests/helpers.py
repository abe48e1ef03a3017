import asyncio
import json
from datetime import datetime

from websockets.exceptions import ConnectionClosedOK

from campusmart.core.security import create_access_token

BUYER_ID = "u1"
SELLER_ID = "u2"
OUTSIDER_ID = "u3"
LISTING_ID = "L1"


def token_for(user_id: str) -> str:
    return create_access_token({"sub": user_id})


def auth_headers(user_id: str) -> dict:
    return {"Authorization": f"Bearer {token_for(user_id)}"}


class FakeLiveSession:
    """Серверная сторона: то, что реестр считает живым вебсокетом."""

    def __init__(self, fail: bool = False) -> None:
        self.sent = []
        self.fail = fail

    async def send_json(self, data) -> None:
        if self.fail:
            raise RuntimeError("socket is gone")
        self.sent.append(data)

    def events(self, kind: str) -> list:
        return [e["data"] for e in self.sent if e.get("type") == kind]


_CLOSE = object()


class FakeSocket:
    """Клиентская сторона: заменяет соединение websockets."""

    def __init__(self, handshake: dict | None = None) -> None:
        self.sent = []
        self.closed = False
        self.inbox: asyncio.Queue = asyncio.Queue()
        self.inbox.put_nowait(json.dumps(handshake or {"type": "connected", "data": {"userId": BUYER_ID}}))

    def push(self, event: dict) -> None:
        self.inbox.put_nowait(json.dumps(event))

    def drop(self) -> None:
        self.inbox.put_nowait(_CLOSE)

    async def send(self, raw: str) -> None:
        if self.closed:
            raise ConnectionClosedOK(None, None)
        self.sent.append(json.loads(raw))

    async def recv(self) -> str:
        item = await self.inbox.get()
        if item is _CLOSE:
            self.closed = True
            raise ConnectionClosedOK(None, None)
        return item

    async def close(self) -> None:
        self.closed = True
        self.inbox.put_nowait(_CLOSE)


def wire_message(message_id: str, content: str, sender: str = BUYER_ID, receiver: str = SELLER_ID,
                 chat_id: str = "c1") -> dict:
    now = datetime(2024, 5, 1, 12, 0, 0).isoformat()
    return {
        "id": message_id,
        "senderId": sender,
        "receiverId": receiver,
        "chatId": chat_id,
        "listingId": LISTING_ID,
        "content": content,
        "readStatus": False,
        "timestamp": now,
        "createdAt": now,
        "updatedAt": now,
    }


def receive_until(websocket, kind: str) -> dict:
    """Читает кадры тестового вебсокета, пока не придет событие нужного типа."""
    while True:
        event = websocket.receive_json()
        if event.get("type") == kind:
            return event

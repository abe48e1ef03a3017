from __future__ import annotations

import asyncio
import enum
import json
import logging
from contextlib import suppress
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Tuple

import websockets
from websockets.exceptions import ConnectionClosed, WebSocketException

from campusmart.client.api import ChatApi, ChatTransportError
from campusmart.client.config import ClientSettings
from campusmart.client.messages import ChatMessage, UserSummary
from campusmart.client.reconciliation import ReconciliationStore

logger = logging.getLogger(__name__)

StatusListener = Callable[[dict], None]


class SessionState(str, enum.Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"


@dataclass(frozen=True)
class ChatIdentity:
    user_id: str
    token: str
    first_name: str = ""
    last_name: str = ""

    def summary(self) -> UserSummary:
        return UserSummary(id=self.user_id, first_name=self.first_name, last_name=self.last_name)


class ChatSessionClient:
    """Одно вебсокет-соединение на авторизованного пользователя.

    Входящие события message / messageSent уходят в ReconciliationStore,
    getOnlineUsers обновляет список онлайн, status передается подписчикам.
    Без живого соединения отправка идет через REST.
    """

    def __init__(
        self,
        settings: Optional[ClientSettings] = None,
        store: Optional[ReconciliationStore] = None,
        api: Optional[ChatApi] = None,
        connect: Optional[Callable[[str], Any]] = None,
    ) -> None:
        self.settings = settings or ClientSettings()
        self.store = store or ReconciliationStore()
        self.api = api or ChatApi(self.settings)
        self._connect = connect or websockets.connect
        self.state = SessionState.DISCONNECTED
        self.identity: Optional[ChatIdentity] = None
        self._ws: Any = None
        self._reader: Optional[asyncio.Task] = None
        self._ack_timers: Dict[str, Tuple[str, asyncio.TimerHandle]] = {}
        self._status_listeners: List[StatusListener] = []

    @property
    def is_connected(self) -> bool:
        return self.state is SessionState.CONNECTED

    def on_status(self, listener: StatusListener) -> None:
        self._status_listeners.append(listener)

    async def connect(self, identity: Optional[ChatIdentity]) -> None:
        if identity is None or not identity.user_id or not identity.token:
            raise ValueError("Anonymous chat sessions are not allowed")
        if self.state is not SessionState.DISCONNECTED:
            if self.identity == identity:
                return
            await self.disconnect()

        self.identity = identity
        self.api.set_token(identity.token)
        self.state = SessionState.CONNECTING
        try:
            ws = await self._handshake(identity)
        except BaseException:
            self.state = SessionState.DISCONNECTED
            raise

        self._ws = ws
        self.state = SessionState.CONNECTED
        self._reader = asyncio.create_task(self._read_loop(ws))
        logger.info("Chat session connected as %s", identity.user_id)

    async def _handshake(self, identity: ChatIdentity) -> Any:
        timeout = self.settings.HANDSHAKE_TIMEOUT
        try:
            ws = await asyncio.wait_for(self._connect(self.settings.WS_URL), timeout=timeout)
        except (OSError, asyncio.TimeoutError, WebSocketException) as exc:
            raise ChatTransportError(f"Cannot open chat socket: {exc!r}") from exc

        try:
            await ws.send(json.dumps({"token": identity.token}))
            raw = await asyncio.wait_for(ws.recv(), timeout=timeout)
            event = json.loads(raw)
        except (OSError, asyncio.TimeoutError, WebSocketException, ValueError) as exc:
            await self._close_quietly(ws)
            raise ChatTransportError(f"Chat handshake failed: {exc!r}") from exc

        if not isinstance(event, dict) or event.get("type") != "connected":
            await self._close_quietly(ws)
            raise ChatTransportError("Chat handshake rejected")
        return ws

    async def disconnect(self) -> None:
        """Закрывает соединение. Входящие события после этого не обрабатываются."""
        ws, reader = self._ws, self._reader
        self._teardown()
        if reader is not None and reader is not asyncio.current_task():
            reader.cancel()
            with suppress(asyncio.CancelledError):
                await reader
        if ws is not None:
            await self._close_quietly(ws)

    async def logout(self) -> None:
        await self.disconnect()
        self.identity = None
        self.api.set_token(None)

    async def aclose(self) -> None:
        await self.logout()
        await self.api.aclose()

    def _teardown(self) -> None:
        self._ws = None
        self._reader = None
        self.state = SessionState.DISCONNECTED
        self.store.clear_online_users()
        # Подтверждения уже не придут: такие сообщения считаем неотправленными
        timers, self._ack_timers = self._ack_timers, {}
        for client_id, (chat_id, handle) in timers.items():
            handle.cancel()
            self.store.mark_failed(chat_id, client_id)

    async def _close_quietly(self, ws: Any) -> None:
        with suppress(OSError, WebSocketException):
            await ws.close()

    async def _read_loop(self, ws: Any) -> None:
        try:
            while True:
                raw = await ws.recv()
                if ws is not self._ws:
                    return
                self._dispatch(raw)
        except ConnectionClosed:
            logger.info("Chat socket closed by server")
        finally:
            if ws is self._ws:
                self._teardown()

    def _dispatch(self, raw: Any) -> None:
        try:
            event = json.loads(raw)
        except (TypeError, ValueError):
            return
        if not isinstance(event, dict):
            return
        kind = event.get("type")
        data = event.get("data")

        if kind in ("message", "messageSent"):
            message = self.store.add_message(data)
            if message is not None:
                self._settle_acks(message.chat_id)
        elif kind == "getOnlineUsers":
            self.store.set_online_users(data)
        elif kind == "status" and isinstance(data, dict):
            for listener in list(self._status_listeners):
                try:
                    listener(data)
                except Exception:  # noqa: BLE001
                    logger.exception("Status listener failed")
        elif kind == "error" and isinstance(data, dict):
            logger.warning("Server rejected message: %s", data.get("detail"))
            client_id = data.get("clientId")
            self._disarm(client_id)
            self.store.mark_failed(data.get("chatId"), client_id)

    def _arm(self, chat_id: str, client_id: str) -> None:
        self._disarm(client_id)
        loop = asyncio.get_running_loop()
        handle = loop.call_later(self.settings.ACK_TIMEOUT, self._ack_expired, chat_id, client_id)
        self._ack_timers[client_id] = (chat_id, handle)

    def _disarm(self, client_id: Optional[str]) -> None:
        entry = self._ack_timers.pop(client_id, None) if client_id else None
        if entry is not None:
            entry[1].cancel()

    def _ack_expired(self, chat_id: str, client_id: str) -> None:
        self._ack_timers.pop(client_id, None)
        if self.store.mark_failed(chat_id, client_id):
            logger.warning("No confirmation for %s within %ss", client_id, self.settings.ACK_TIMEOUT)

    def _settle_acks(self, chat_id: str) -> None:
        for client_id, (timer_chat_id, _) in list(self._ack_timers.items()):
            if timer_chat_id == chat_id and self.store.get(chat_id, client_id) is None:
                self._disarm(client_id)

    async def send(self, payload: dict, client_id: Optional[str] = None) -> Optional[ChatMessage]:
        """Отправляет сообщение: вебсокет, если он жив, иначе REST.

        Через вебсокет возвращает None, подтверждение придет событием
        messageSent. Через REST возвращает подтвержденное сообщение.
        """
        ws = self._ws
        if self.is_connected and ws is not None:
            frame = {"type": "message", "data": {**payload, "clientId": client_id}}
            try:
                await ws.send(json.dumps(frame))
            except (OSError, WebSocketException):
                logger.warning("Socket send failed, falling back to REST")
            else:
                if client_id:
                    self._arm(payload.get("chatId") or "", client_id)
                return None
        return await self._send_via_rest(payload, client_id)

    async def _send_via_rest(self, payload: dict, client_id: Optional[str]) -> Optional[ChatMessage]:
        try:
            data = await self.api.send_message(payload)
        except ChatTransportError:
            if client_id:
                self.store.mark_failed(payload.get("chatId"), client_id)
            raise
        confirmed = self.store.add_message(data)
        if confirmed is None:
            if client_id:
                self.store.mark_failed(payload.get("chatId"), client_id)
            raise ChatTransportError("Malformed message in server response")
        return confirmed

    async def send_message(
        self,
        chat_id: str,
        receiver_id: str,
        content: str,
        listing_id: Optional[str] = None,
    ) -> ChatMessage:
        if self.identity is None:
            raise ValueError("Not authenticated")
        text = (content or "").strip()
        if not text:
            raise ValueError("Empty message")

        entry = self.store.add_optimistic_message(
            chat_id=chat_id,
            sender=self.identity.summary(),
            receiver=UserSummary(id=receiver_id),
            content=text,
            listing_id=listing_id,
        )
        confirmed = await self.send(self._payload(entry), client_id=entry.id)
        return confirmed or entry

    async def retry(self, chat_id: str, client_id: str) -> Optional[ChatMessage]:
        """Повторная отправка сообщения, помеченного как неотправленное."""
        entry = self.store.get(chat_id, client_id)
        if entry is None or not entry.is_pending:
            return None
        self.store.mark_pending(chat_id, client_id)
        return await self.send(self._payload(entry), client_id=client_id)

    def _payload(self, entry: ChatMessage) -> dict:
        return {
            "senderId": entry.sender.id,
            "receiverId": entry.receiver.id,
            "listingId": entry.listing_id,
            "chatId": entry.chat_id,
            "content": entry.content,
        }

    async def send_status(self, receiver_id: str, status: str) -> bool:
        """Статус (например, "typing") без гарантий доставки и без REST-запасного пути."""
        ws = self._ws
        if not self.is_connected or ws is None:
            return False
        frame = {"type": "status", "data": {"receiverId": receiver_id, "status": status}}
        try:
            await ws.send(json.dumps(frame))
        except (OSError, WebSocketException):
            return False
        return True

    async def load_chat(self, chat_id: str) -> dict:
        """Загружает историю чата и целиком заменяет ею список в хранилище."""
        data = await self.api.get_chat_by_id(chat_id)
        self.store.set_messages_for_chat(chat_id, data.get("messages") or [])
        return data.get("chat") or {}

    async def list_chats(self) -> List[dict]:
        return await self.api.get_all_chats()

    async def start_conversation(self, listing_id: str, content: str) -> dict:
        chat = await self.api.create_chat(listing_id, content)
        await self.load_chat(chat["id"])
        return chat

    async def mark_read(self, chat_id: str) -> int:
        return await self.api.mark_read(chat_id)

from __future__ import annotations

import logging
import threading
from datetime import datetime
from typing import Any, Callable, Dict, Iterable, List, Optional

from campusmart.client.messages import (
    ChatMessage,
    UserSummary,
    new_pending_id,
    normalize_message,
)

logger = logging.getLogger(__name__)

Listener = Callable[[str], None]


def _confirms(entry: ChatMessage, incoming: ChatMessage) -> bool:
    return (
        entry.is_pending
        and entry.content == incoming.content
        and entry.sender.id == incoming.sender.id
        and entry.receiver.id == incoming.receiver.id
    )


def merge_message(current: List[ChatMessage], incoming: ChatMessage) -> List[ChatMessage]:
    """Вливает сообщение в список чата, не изменяя исходный список.

    1. Сообщение с тем же id уже есть: повторная доставка, список не меняется.
    2. Есть ожидающее (temp_) сообщение с тем же текстом, отправителем и
       получателем: первое такое заменяется на месте, порядок отправки
       сохраняется.
    3. Иначе сообщение добавляется в конец.
    """
    if any(entry.id == incoming.id for entry in current):
        return list(current)

    for index, entry in enumerate(current):
        if _confirms(entry, incoming):
            merged = list(current)
            merged[index] = incoming
            return merged

    return [*current, incoming]


class ReconciliationStore:
    """Сообщения по чатам: оптимистичные, подтвержденные и входящие в одном списке."""

    def __init__(self) -> None:
        self._messages: Dict[str, List[ChatMessage]] = {}
        self._online_users: List[str] = []
        self._listeners: List[Listener] = []
        self._lock = threading.Lock()

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self, chat_id: str) -> None:
        for listener in list(self._listeners):
            try:
                listener(chat_id)
            except Exception:  # noqa: BLE001
                logger.exception("Store listener failed")

    def messages_for(self, chat_id: str) -> List[ChatMessage]:
        with self._lock:
            return list(self._messages.get(chat_id, []))

    def get(self, chat_id: str, message_id: str) -> Optional[ChatMessage]:
        for entry in self.messages_for(chat_id):
            if entry.id == message_id:
                return entry
        return None

    def add_message(self, message: Any) -> Optional[ChatMessage]:
        normalized = normalize_message(message)
        if normalized is None:
            logger.debug("Dropping malformed message: %r", message)
            return None
        with self._lock:
            current = self._messages.get(normalized.chat_id, [])
            self._messages[normalized.chat_id] = merge_message(current, normalized)
        self._notify(normalized.chat_id)
        return normalized

    def set_messages_for_chat(self, chat_id: str, messages: Iterable[Any]) -> None:
        normalized = [m for m in (normalize_message(raw) for raw in messages) if m is not None]
        with self._lock:
            self._messages[chat_id] = normalized
        self._notify(chat_id)

    def add_optimistic_message(
        self,
        *,
        chat_id: str,
        sender: UserSummary,
        receiver: UserSummary,
        content: str,
        listing_id: Optional[str] = None,
    ) -> ChatMessage:
        now = datetime.utcnow()
        message = ChatMessage(
            id=new_pending_id(),
            sender=sender,
            receiver=receiver,
            chat_id=chat_id,
            listing_id=listing_id,
            content=content,
            read_status=False,
            timestamp=now,
            created_at=now,
        )
        with self._lock:
            self._messages.setdefault(chat_id, []).append(message)
        self._notify(chat_id)
        return message

    def _replace_pending(self, chat_id: str, client_id: str, failed: bool) -> bool:
        with self._lock:
            entries = self._messages.get(chat_id, [])
            for index, entry in enumerate(entries):
                if entry.id == client_id and entry.is_pending:
                    entries[index] = entry.model_copy(update={"failed": failed})
                    return True
        return False

    def mark_failed(self, chat_id: Optional[str], client_id: Optional[str]) -> bool:
        """Помечает неподтвержденное сообщение как неотправленное."""
        if not chat_id or not client_id:
            return False
        changed = self._replace_pending(chat_id, client_id, failed=True)
        if changed:
            self._notify(chat_id)
        return changed

    def mark_pending(self, chat_id: str, client_id: str) -> bool:
        changed = self._replace_pending(chat_id, client_id, failed=False)
        if changed:
            self._notify(chat_id)
        return changed

    def dismiss(self, chat_id: str, client_id: str) -> bool:
        """Убирает неподтвержденное сообщение из чата."""
        with self._lock:
            entries = self._messages.get(chat_id, [])
            kept = [e for e in entries if not (e.id == client_id and e.is_pending)]
            changed = len(kept) != len(entries)
            if changed:
                self._messages[chat_id] = kept
        if changed:
            self._notify(chat_id)
        return changed

    def set_online_users(self, users: Any) -> None:
        if not isinstance(users, list):
            return
        with self._lock:
            self._online_users = [str(u) for u in users]

    @property
    def online_users(self) -> List[str]:
        with self._lock:
            return list(self._online_users)

    def is_online(self, user_id: str) -> bool:
        return user_id in self.online_users

    def clear_online_users(self) -> None:
        with self._lock:
            self._online_users = []

    def clear(self) -> None:
        with self._lock:
            self._messages.clear()
            self._online_users = []

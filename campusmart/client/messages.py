from __future__ import annotations

import itertools
import time
from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field, ValidationError

PENDING_ID_PREFIX = "temp_"

_pending_counter = itertools.count(1)


class UserSummary(BaseModel):
    id: str
    first_name: str = Field(default="", alias="firstName")
    last_name: str = Field(default="", alias="lastName")

    model_config = {"populate_by_name": True}


class ChatMessage(BaseModel):
    """Нормализованное сообщение, в таком виде оно лежит в ReconciliationStore."""

    id: str
    sender: UserSummary = Field(alias="senderId")
    receiver: UserSummary = Field(alias="receiverId")
    chat_id: str = Field(alias="chatId")
    listing_id: Optional[str] = Field(default=None, alias="listingId")
    content: str
    read_status: bool = Field(default=False, alias="readStatus")
    timestamp: datetime
    created_at: Optional[datetime] = Field(default=None, alias="createdAt")
    updated_at: Optional[datetime] = Field(default=None, alias="updatedAt")
    failed: bool = False

    model_config = {"populate_by_name": True}

    @property
    def is_pending(self) -> bool:
        return is_pending_id(self.id)

    @property
    def delivery_state(self) -> str:
        if not self.is_pending:
            return "confirmed"
        return "failed" if self.failed else "pending"


def is_pending_id(message_id: Optional[str]) -> bool:
    return isinstance(message_id, str) and message_id.startswith(PENDING_ID_PREFIX)


def new_pending_id() -> str:
    return f"{PENDING_ID_PREFIX}{int(time.time() * 1000)}_{next(_pending_counter)}"


def _pick(raw: dict, *keys: str) -> Any:
    for key in keys:
        if key in raw and raw[key] is not None:
            return raw[key]
    return None


def _user(value: Any) -> Optional[UserSummary]:
    if value is None:
        return None
    if isinstance(value, UserSummary):
        return value
    if isinstance(value, dict):
        user_id = _pick(value, "id", "_id")
        if user_id is None:
            return None
        return UserSummary(
            id=str(user_id),
            first_name=_pick(value, "firstName", "first_name") or "",
            last_name=_pick(value, "lastName", "last_name") or "",
        )
    return UserSummary(id=str(value), first_name="User", last_name="")


def normalize_message(message: Any) -> Optional[ChatMessage]:
    """Приводит сырое или уже нормализованное сообщение к ChatMessage.

    Голые senderId/receiverId разворачиваются в UserSummary, timestamp
    берется из createdAt, если его нет. Повторная нормализация ничего
    не меняет. Для непригодных данных (нет id, чата или участников)
    возвращает None.
    """
    if isinstance(message, ChatMessage):
        return message
    if not isinstance(message, dict):
        return None

    message_id = _pick(message, "id", "_id")
    chat_id = _pick(message, "chatId", "chat_id", "chatID")
    sender = _user(_pick(message, "senderId", "sender", "sender_id", "senderID"))
    receiver = _user(_pick(message, "receiverId", "receiver", "receiver_id", "receiverID"))
    created_at = _pick(message, "createdAt", "created_at")
    timestamp = _pick(message, "timestamp") or created_at
    if not message_id or not chat_id or sender is None or receiver is None or timestamp is None:
        return None

    listing_id = _pick(message, "listingId", "listing_id", "listingID")
    if isinstance(listing_id, dict):
        listing_id = _pick(listing_id, "id", "_id")

    try:
        return ChatMessage(
            id=str(message_id),
            sender=sender,
            receiver=receiver,
            chat_id=str(chat_id),
            listing_id=str(listing_id) if listing_id is not None else None,
            content=_pick(message, "content") or "",
            read_status=bool(_pick(message, "readStatus", "read_status")),
            timestamp=timestamp,
            created_at=created_at,
            updated_at=_pick(message, "updatedAt", "updated_at"),
            failed=bool(message.get("failed", False)),
        )
    except ValidationError:
        return None

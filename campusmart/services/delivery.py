from __future__ import annotations

import enum
import logging
from typing import Optional, Tuple

from sqlalchemy.ext.asyncio import AsyncSession

from campusmart.core.config import settings
from campusmart.core.errors import BadRequestError, ForbiddenError, NotFoundError
from campusmart.models.chat import Chat
from campusmart.models.message import Message
from campusmart.services.message_store import MessageStore, serialize_message
from campusmart.websockets.registry import ConnectionRegistry

logger = logging.getLogger(__name__)

MESSAGE_EVENT = "message"
MESSAGE_SENT_EVENT = "messageSent"


class Transport(str, enum.Enum):
    SOCKET = "socket"
    REST = "rest"


class DeliveryService:
    """Отправка сообщения: сохранение, сводка чата, рассылка по живым сессиям.

    Оба транспорта (вебсокет и REST) проходят одни и те же шаги
    сохранения. Отправителю подтверждение messageSent уходит только
    через вебсокет: в REST его заменяет синхронный ответ.
    """

    def __init__(self, db: AsyncSession, registry: ConnectionRegistry) -> None:
        self.db = db
        self.registry = registry
        self.store = MessageStore(db)

    async def send_message(
        self,
        *,
        sender_id: str,
        content: str,
        chat_id: Optional[str] = None,
        listing_id: Optional[str] = None,
        receiver_id: Optional[str] = None,
        transport: Transport = Transport.SOCKET,
    ) -> Message:
        text = self._clean_content(content)
        if chat_id:
            chat = await self._load_chat(chat_id)
        elif listing_id:
            chat = await self._resolve_or_create_chat(listing_id, sender_id)
        else:
            raise BadRequestError("Не указан чат или объявление")
        return await self._deliver(chat, sender_id, text, receiver_id, transport)

    async def start_conversation(
        self,
        *,
        buyer_id: str,
        listing_id: str,
        content: Optional[str] = None,
        transport: Transport = Transport.REST,
    ) -> Tuple[Chat, Optional[Message]]:
        text = self._clean_content(content) if content and content.strip() else None
        chat = await self._resolve_or_create_chat(listing_id, buyer_id)
        if text is None:
            await self.db.commit()
            return chat, None
        message = await self._deliver(chat, buyer_id, text, None, transport)
        return chat, message

    async def mark_read(self, *, chat_id: str, reader_id: str) -> int:
        chat = await self._load_chat(chat_id)
        if chat.counterpart_of(reader_id) is None:
            raise ForbiddenError("Недостаточно прав")
        updated = await self.store.mark_chat_read(chat_id, reader_id)
        await self.db.commit()
        return updated

    def _clean_content(self, content: Optional[str]) -> str:
        if content is not None and not isinstance(content, str):
            raise BadRequestError("Некорректный формат сообщения")
        text = (content or "").strip()
        if not text:
            raise BadRequestError("Текст сообщения не может быть пустым")
        if len(text) > settings.CHAT_MAX_MESSAGE_LENGTH:
            raise BadRequestError("Слишком длинное сообщение")
        return text

    async def _load_chat(self, chat_id: str) -> Chat:
        chat = await self.store.get_chat(chat_id)
        if chat is None:
            raise NotFoundError("Чат не найден")
        return chat

    async def _resolve_or_create_chat(self, listing_id: str, buyer_id: str) -> Chat:
        listing = await self.store.get_listing(listing_id)
        if listing is None:
            raise NotFoundError("Объявление не найдено")
        if listing.seller_id == buyer_id:
            raise BadRequestError("Нельзя написать самому себе")

        # Проверка обязательна до создания: повторный "написать продавцу" не плодит чаты
        existing = await self.store.find_chat_for_listing(listing_id, buyer_id)
        if existing is not None:
            logger.info("Using existing chat %s for listing %s", existing.id, listing_id)
            return existing

        chat = await self.store.create_chat(
            listing_id=listing_id,
            seller_id=listing.seller_id,
            buyer_id=buyer_id,
        )
        logger.info("Created chat %s for listing %s", chat.id, listing_id)
        return chat

    async def _deliver(
        self,
        chat: Chat,
        sender_id: str,
        text: str,
        receiver_id: Optional[str],
        transport: Transport,
    ) -> Message:
        counterpart = chat.counterpart_of(sender_id)
        if counterpart is None:
            raise ForbiddenError("Недостаточно прав")
        if receiver_id and receiver_id != counterpart:
            raise BadRequestError("Получатель не участвует в чате")

        message = await self.store.create_message(
            sender_id=sender_id,
            receiver_id=counterpart,
            chat_id=chat.id,
            listing_id=chat.listing_id,
            content=text,
        )
        await self.store.update_chat_summary(chat.id, text, message.created_at)
        await self.db.commit()

        await self._fan_out(message, transport)
        return message

    async def _fan_out(self, message: Message, transport: Transport) -> None:
        data = serialize_message(message)
        delivered = await self.registry.send_to_user(
            message.receiver_id, {"type": MESSAGE_EVENT, "data": data}
        )
        if not delivered:
            logger.info("User %s is not connected, message %s stored only", message.receiver_id, message.id)

        if transport is Transport.SOCKET:
            await self.registry.send_to_user(
                message.sender_id, {"type": MESSAGE_SENT_EVENT, "data": data}
            )

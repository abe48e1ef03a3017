from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from sqlalchemy import asc, desc, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from campusmart.models.chat import Chat
from campusmart.models.listing import Listing
from campusmart.models.message import Message
from campusmart.models.user import User


class MessageStore:
    """Хранение сообщений и чатов в БД.

    Методы записи делают только flush: коммит остается за вызывающим,
    чтобы сообщение и сводка чата попадали в одну транзакцию.
    """

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def create_message(
        self,
        *,
        sender_id: str,
        receiver_id: str,
        chat_id: str,
        listing_id: str,
        content: str,
        auto_commit: bool = False,
    ) -> Message:
        now = datetime.utcnow()
        message = Message(
            sender_id=sender_id,
            receiver_id=receiver_id,
            chat_id=chat_id,
            listing_id=listing_id,
            content=content,
            read_status=False,
            timestamp=now,
            created_at=now,
            updated_at=now,
        )
        self.db.add(message)
        await self.db.flush()
        if auto_commit:
            await self.db.commit()
        return message

    async def update_chat_summary(
        self,
        chat_id: str,
        content: str,
        timestamp: datetime,
        *,
        auto_commit: bool = False,
    ) -> None:
        chat = await self.get_chat(chat_id)
        if chat is None:
            return
        chat.last_message = content
        chat.last_message_timestamp = timestamp
        chat.updated_at = timestamp
        await self.db.flush()
        if auto_commit:
            await self.db.commit()

    async def list_messages_by_chat(
        self,
        chat_id: str,
        *,
        limit: Optional[int] = None,
        newest_first: bool = True,
        with_participants: bool = False,
    ) -> List[Message]:
        order = desc if newest_first else asc
        stmt = (
            select(Message)
            .where(Message.chat_id == chat_id)
            .order_by(order(Message.created_at), order(Message.id))
        )
        if with_participants:
            stmt = stmt.options(selectinload(Message.sender), selectinload(Message.receiver))
        if isinstance(limit, int) and limit > 0:
            stmt = stmt.limit(limit)
        result = await self.db.execute(stmt)
        return list(result.scalars())

    async def list_chats_for_user(self, user_id: str) -> List[Chat]:
        stmt = (
            select(Chat)
            .where(or_(Chat.buyer_id == user_id, Chat.seller_id == user_id))
            .options(
                selectinload(Chat.listing),
                selectinload(Chat.seller),
                selectinload(Chat.buyer),
            )
            .order_by(desc(Chat.updated_at))
        )
        result = await self.db.execute(stmt)
        return list(result.scalars())

    async def get_chat(self, chat_id: str, *, with_participants: bool = False) -> Optional[Chat]:
        stmt = select(Chat).where(Chat.id == chat_id)
        if with_participants:
            stmt = stmt.options(
                selectinload(Chat.listing),
                selectinload(Chat.seller),
                selectinload(Chat.buyer),
            )
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def find_chat_for_listing(self, listing_id: str, buyer_id: str) -> Optional[Chat]:
        """Старейший чат покупателя по объявлению (дубликаты возможны)."""
        result = await self.db.execute(
            select(Chat)
            .where(Chat.listing_id == listing_id, Chat.buyer_id == buyer_id)
            .order_by(asc(Chat.created_at))
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def create_chat(
        self,
        *,
        listing_id: str,
        seller_id: str,
        buyer_id: str,
        auto_commit: bool = False,
    ) -> Chat:
        now = datetime.utcnow()
        chat = Chat(
            listing_id=listing_id,
            seller_id=seller_id,
            buyer_id=buyer_id,
            created_at=now,
            updated_at=now,
        )
        self.db.add(chat)
        await self.db.flush()
        if auto_commit:
            await self.db.commit()
        return chat

    async def get_listing(self, listing_id: str) -> Optional[Listing]:
        result = await self.db.execute(select(Listing).where(Listing.id == listing_id))
        return result.scalar_one_or_none()

    async def get_user(self, user_id: str) -> Optional[User]:
        result = await self.db.execute(select(User).where(User.id == user_id))
        return result.scalar_one_or_none()

    async def mark_chat_read(self, chat_id: str, reader_id: str, *, auto_commit: bool = False) -> int:
        result = await self.db.execute(
            update(Message)
            .where(
                Message.chat_id == chat_id,
                Message.receiver_id == reader_id,
                Message.read_status.is_(False),
            )
            .values(read_status=True, updated_at=datetime.utcnow())
            .execution_options(synchronize_session=False)
        )
        if auto_commit:
            await self.db.commit()
        return result.rowcount or 0


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


def serialize_user(user: Optional[User], user_id: str) -> dict:
    if user is None:
        return {"id": user_id, "firstName": "", "lastName": ""}
    return {
        "id": user.id,
        "firstName": user.first_name or "",
        "lastName": user.last_name or "",
    }


def serialize_message(message: Message) -> dict:
    """Преобразует модель SQLAlchemy в JSON-совместимый словарь."""
    return {
        "id": message.id,
        "senderId": message.sender_id,
        "receiverId": message.receiver_id,
        "chatId": message.chat_id,
        "listingId": message.listing_id,
        "content": message.content,
        "readStatus": bool(message.read_status),
        "timestamp": _iso(message.timestamp),
        "createdAt": _iso(message.created_at),
        "updatedAt": _iso(message.updated_at),
    }


def serialize_populated_message(message: Message) -> dict:
    """Как serialize_message, но участники развернуты в {id, firstName, lastName}.

    Требует загруженных связей sender/receiver.
    """
    data = serialize_message(message)
    data["senderId"] = serialize_user(message.sender, message.sender_id)
    data["receiverId"] = serialize_user(message.receiver, message.receiver_id)
    return data


def serialize_chat(chat: Chat) -> dict:
    return {
        "id": chat.id,
        "listingId": chat.listing_id,
        "sellerId": chat.seller_id,
        "buyerId": chat.buyer_id,
        "lastMessage": chat.last_message,
        "lastMessageTimestamp": _iso(chat.last_message_timestamp),
        "createdAt": _iso(chat.created_at),
        "updatedAt": _iso(chat.updated_at),
    }


def serialize_populated_chat(chat: Chat) -> dict:
    data = serialize_chat(chat)
    listing = chat.listing
    data["listingId"] = {
        "id": chat.listing_id,
        "title": listing.title if listing is not None else "",
        "price": listing.price if listing is not None else None,
        "sellerId": chat.seller_id,
    }
    data["sellerId"] = serialize_user(chat.seller, chat.seller_id)
    data["buyerId"] = serialize_user(chat.buyer, chat.buyer_id)
    return data

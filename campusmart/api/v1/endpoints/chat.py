from typing import List

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from campusmart.core.config import settings
from campusmart.core.database import get_db
from campusmart.core.dependencies import get_registry, require_auth
from campusmart.core.errors import DeliveryError
from campusmart.models.user import User
from campusmart.schemas.chat import (
    ChatCreate,
    ChatDetailResponse,
    ChatResponse,
    MarkReadResponse,
    MessageCreate,
    MessageResponse,
    PopulatedChatResponse,
)
from campusmart.services.delivery import DeliveryService, Transport
from campusmart.services.message_store import (
    MessageStore,
    serialize_populated_chat,
    serialize_populated_message,
)
from campusmart.websockets.registry import ConnectionRegistry

router = APIRouter()


def _http_error(exc: DeliveryError) -> HTTPException:
    return HTTPException(status_code=exc.status_code, detail=exc.detail)


@router.post("/message", response_model=MessageResponse, status_code=status.HTTP_201_CREATED)
async def create_message(
    payload: MessageCreate,
    db: AsyncSession = Depends(get_db),
    registry: ConnectionRegistry = Depends(get_registry),
    current_user: User = Depends(require_auth),
):
    """Синхронная отправка сообщения, когда вебсокет недоступен."""
    if payload.sender_id and payload.sender_id != current_user.id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Недостаточно прав",
        )

    service = DeliveryService(db, registry)
    try:
        message = await service.send_message(
            sender_id=current_user.id,
            content=payload.content,
            chat_id=payload.chat_id,
            listing_id=payload.listing_id,
            receiver_id=payload.receiver_id,
            transport=Transport.REST,
        )
    except DeliveryError as exc:
        raise _http_error(exc)
    return MessageResponse.model_validate(message)


@router.post("", response_model=ChatResponse, status_code=status.HTTP_201_CREATED)
async def create_chat(
    payload: ChatCreate,
    db: AsyncSession = Depends(get_db),
    registry: ConnectionRegistry = Depends(get_registry),
    current_user: User = Depends(require_auth),
):
    """Начать переписку по объявлению. Существующий чат переиспользуется."""
    service = DeliveryService(db, registry)
    try:
        chat, _ = await service.start_conversation(
            buyer_id=current_user.id,
            listing_id=payload.listing_id,
            content=payload.content,
        )
    except DeliveryError as exc:
        raise _http_error(exc)
    return ChatResponse.model_validate(chat)


@router.get("/all", response_model=List[PopulatedChatResponse])
async def get_all_chats(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_auth),
):
    """Чаты текущего пользователя, свежие первыми."""
    chats = await MessageStore(db).list_chats_for_user(current_user.id)
    return [PopulatedChatResponse.model_validate(serialize_populated_chat(c)) for c in chats]


@router.get("/{chat_id}", response_model=ChatDetailResponse)
async def get_chat_by_id(
    chat_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_auth),
):
    store = MessageStore(db)
    chat = await store.get_chat(chat_id, with_participants=True)
    if chat is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Чат не найден",
        )
    if chat.counterpart_of(current_user.id) is None:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Недостаточно прав",
        )

    # Хранилище отдает новые первыми, берем последние N и разворачиваем по возрастанию
    messages = await store.list_messages_by_chat(
        chat_id,
        limit=settings.CHAT_HISTORY_LIMIT,
        with_participants=True,
    )
    messages.reverse()
    return ChatDetailResponse.model_validate(
        {
            "chat": serialize_populated_chat(chat),
            "messages": [serialize_populated_message(m) for m in messages],
        }
    )


@router.post("/{chat_id}/read", response_model=MarkReadResponse)
async def mark_chat_read(
    chat_id: str,
    db: AsyncSession = Depends(get_db),
    registry: ConnectionRegistry = Depends(get_registry),
    current_user: User = Depends(require_auth),
):
    service = DeliveryService(db, registry)
    try:
        updated = await service.mark_read(chat_id=chat_id, reader_id=current_user.id)
    except DeliveryError as exc:
        raise _http_error(exc)
    return MarkReadResponse(updated=updated)

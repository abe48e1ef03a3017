from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.future import select

from campusmart.core.errors import DeliveryError
from campusmart.core.security import decode_user_id
from campusmart.models.user import User
from campusmart.services.delivery import DeliveryService, Transport
from campusmart.websockets.registry import ConnectionRegistry

logger = logging.getLogger(__name__)

router = APIRouter()


async def _resolve_user_from_token(websocket: WebSocket, token: Optional[str]) -> Optional[User]:
    user_id = decode_user_id(token)
    if user_id is None:
        return None
    async with websocket.app.state.session_factory() as session:
        result = await session.execute(select(User).where(User.id == user_id))
        user = result.scalar_one_or_none()
    if user is None or not user.is_active:
        return None
    return user


def _error_event(detail: str, status_code: int, data: dict) -> dict:
    return {
        "type": "error",
        "data": {
            "detail": detail,
            "statusCode": status_code,
            "chatId": data.get("chatId"),
            "clientId": data.get("clientId"),
        },
    }


async def _handle_message(
    websocket: WebSocket,
    registry: ConnectionRegistry,
    user_id: str,
    data: dict,
) -> None:
    for key in ("chatId", "listingId", "receiverId"):
        if data.get(key) is not None and not isinstance(data[key], str):
            await websocket.send_json(_error_event("Некорректный формат сообщения", 400, data))
            return

    async with websocket.app.state.session_factory() as session:
        service = DeliveryService(session, registry)
        try:
            await service.send_message(
                sender_id=user_id,
                content=data.get("content"),
                chat_id=data.get("chatId"),
                listing_id=data.get("listingId"),
                receiver_id=data.get("receiverId"),
                transport=Transport.SOCKET,
            )
        except DeliveryError as exc:
            await session.rollback()
            await websocket.send_json(_error_event(exc.detail, exc.status_code, data))
        except SQLAlchemyError:
            await session.rollback()
            logger.exception("Failed to persist message from user %s", user_id)
            await websocket.send_json(_error_event("Не удалось сохранить сообщение", 500, data))


async def _handle_status(registry: ConnectionRegistry, user_id: str, data: dict) -> None:
    receiver_id = data.get("receiverId")
    if not receiver_id:
        return
    await registry.send_to_user(
        str(receiver_id),
        {"type": "status", "data": {"senderId": user_id, "status": data.get("status")}},
    )


@router.websocket("/ws/chat")
async def chat_websocket(websocket: WebSocket) -> None:
    await websocket.accept()
    registry: ConnectionRegistry = websocket.app.state.registry
    user_id: Optional[str] = None
    try:
        init_payload = await websocket.receive_json()
        token = init_payload.get("token") if isinstance(init_payload, dict) else None
        user = await _resolve_user_from_token(websocket, token)
        if not user:
            await websocket.close(code=4403)
            return
        user_id = user.id
        await websocket.send_json({"type": "connected", "data": {"userId": user_id}})
        await registry.register(user_id, websocket)

        while True:
            event = await websocket.receive_json()
            if not isinstance(event, dict):
                continue
            data = event.get("data")
            if not isinstance(data, dict):
                continue
            kind = event.get("type")
            if kind == "message":
                await _handle_message(websocket, registry, user_id, data)
            elif kind == "status":
                await _handle_status(registry, user_id, data)
    except WebSocketDisconnect:
        pass
    except Exception:  # noqa: BLE001
        logger.exception("Chat websocket error")
        try:
            await websocket.close(code=1011)
        except Exception:  # noqa: BLE001
            pass
    finally:
        if user_id is not None:
            await registry.unregister(user_id, websocket)

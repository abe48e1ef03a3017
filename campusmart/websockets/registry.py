from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, List, Optional, Protocol

logger = logging.getLogger(__name__)

ONLINE_USERS_EVENT = "getOnlineUsers"


class LiveSession(Protocol):
    async def send_json(self, data: Any) -> None: ...


class ConnectionRegistry:
    """Живые сессии пользователей: не больше одной на пользователя.

    Повторное подключение перезаписывает запись (побеждает последнее),
    вытесненная сессия ни о чем не уведомляется. Состояние живет только
    в памяти процесса.
    """

    def __init__(self) -> None:
        self._sessions: Dict[str, LiveSession] = {}
        self._lock = asyncio.Lock()

    async def register(self, user_id: str, session: LiveSession) -> None:
        async with self._lock:
            replaced = self._sessions.get(user_id)
            self._sessions[user_id] = session
        if replaced is not None and replaced is not session:
            logger.info("User %s reconnected, previous session replaced", user_id)
        else:
            logger.info("User %s connected", user_id)
        await self.broadcast_online_users()

    async def unregister(self, user_id: str, session: Optional[LiveSession] = None) -> None:
        async with self._lock:
            current = self._sessions.get(user_id)
            if current is None:
                return
            # Закрытие вытесненной сессии не должно снимать более новую
            if session is not None and current is not session:
                return
            self._sessions.pop(user_id, None)
        logger.info("User %s disconnected", user_id)
        await self.broadcast_online_users()

    def resolve(self, user_id: str) -> Optional[LiveSession]:
        return self._sessions.get(user_id)

    def online_users(self) -> List[str]:
        return list(self._sessions)

    async def _snapshot(self) -> List[tuple[str, LiveSession]]:
        async with self._lock:
            return list(self._sessions.items())

    async def send_to_user(self, user_id: str, event: dict) -> bool:
        session = self.resolve(user_id)
        if session is None:
            return False
        return await self._safe_send(user_id, session, event)

    async def broadcast(self, event: dict) -> None:
        for user_id, session in await self._snapshot():
            await self._safe_send(user_id, session, event)

    async def broadcast_online_users(self) -> None:
        await self.broadcast({"type": ONLINE_USERS_EVENT, "data": self.online_users()})

    async def _safe_send(self, user_id: str, session: LiveSession, event: dict) -> bool:
        try:
            await session.send_json(event)
        except Exception:  # noqa: BLE001
            logger.warning("Dropping dead session of user %s", user_id)
            await self.unregister(user_id, session)
            return False
        return True

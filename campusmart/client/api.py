from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import httpx

from campusmart.client.config import ClientSettings

logger = logging.getLogger(__name__)


class ChatTransportError(Exception):
    """Запрос к серверу не удался: сеть, таймаут или ответ с ошибкой."""

    def __init__(self, detail: str, status_code: Optional[int] = None) -> None:
        super().__init__(detail)
        self.detail = detail
        self.status_code = status_code


class ChatApi:
    """REST-вызовы чата поверх httpx.AsyncClient."""

    def __init__(
        self,
        settings: ClientSettings,
        token: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.settings = settings
        self._client = client or httpx.AsyncClient(
            base_url=settings.BASE_URL,
            timeout=settings.REQUEST_TIMEOUT,
        )
        self._token = token

    def set_token(self, token: Optional[str]) -> None:
        self._token = token

    def _headers(self) -> Dict[str, str]:
        if not self._token:
            return {}
        return {"Authorization": f"Bearer {self._token}"}

    async def _request(self, method: str, path: str, json: Optional[dict] = None) -> Any:
        try:
            response = await self._client.request(method, path, json=json, headers=self._headers())
        except httpx.TimeoutException as exc:
            raise ChatTransportError(f"Timeout on {method} {path}") from exc
        except httpx.HTTPError as exc:
            raise ChatTransportError(f"{method} {path} failed: {exc}") from exc

        if response.is_error:
            try:
                body = response.json()
            except ValueError:
                body = None
            detail = body.get("detail", response.text) if isinstance(body, dict) else response.text
            raise ChatTransportError(str(detail), status_code=response.status_code)
        try:
            return response.json()
        except ValueError as exc:
            raise ChatTransportError(
                f"{method} {path} returned a non-JSON body", status_code=response.status_code
            ) from exc

    async def get_all_chats(self) -> List[dict]:
        return await self._request("GET", "/chat/all") or []

    async def get_chat_by_id(self, chat_id: str) -> dict:
        return await self._request("GET", f"/chat/{chat_id}")

    async def create_chat(self, listing_id: str, content: Optional[str] = None) -> dict:
        return await self._request("POST", "/chat", {"listingId": listing_id, "content": content})

    async def send_message(self, payload: dict) -> dict:
        return await self._request("POST", "/chat/message", payload)

    async def mark_read(self, chat_id: str) -> int:
        data = await self._request("POST", f"/chat/{chat_id}/read")
        return int(data.get("updated", 0))

    async def aclose(self) -> None:
        await self._client.aclose()

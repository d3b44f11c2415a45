"""Telegram Bot API client.

Async wrapper over the Bot HTTP API built on httpx. Implements the
outbound chat operations the orchestrator needs (send, edit, chat
actions, voice notes, file download) plus `get_updates` long polling for
the inbound side.

Every failure (network error, non-2xx status, or an `ok: false` reply) is
raised as TransportError naming the API method.

Example:
    async with TelegramClient(token) as telegram:
        message_id = await telegram.send_message("12345", "Hello")
        await telegram.edit_message("12345", message_id, "Hello again")
"""

import logging
from typing import Any

import httpx

from src.errors import TransportError
from src.services.message_formatter import fit_message

logger = logging.getLogger(__name__)

DEFAULT_API_BASE = "https://api.telegram.org"
NOT_MODIFIED = "message is not modified"


class TelegramClient:
    """Bot API client implementing the outbound channel.

    Args:
        bot_token: Bot token from BotFather.
        api_base: API root URL. Overridable for self-hosted Bot API servers.
        request_timeout: Timeout in seconds for ordinary calls.
        client: Pre-configured httpx client (useful for testing). When
            given, the caller owns its lifecycle.
    """

    def __init__(
        self,
        bot_token: str,
        api_base: str = DEFAULT_API_BASE,
        request_timeout: float = 30.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._bot_token = bot_token
        self._api_base = api_base.rstrip("/")
        self._request_timeout = request_timeout
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=request_timeout)

    @property
    def bot_url(self) -> str:
        return f"{self._api_base}/bot{self._bot_token}"

    @property
    def file_url(self) -> str:
        return f"{self._api_base}/file/bot{self._bot_token}"

    async def _call(
        self,
        method: str,
        payload: dict[str, Any] | None = None,
        files: dict[str, Any] | None = None,
        timeout: float | None = None,
    ) -> Any:
        """Invoke a Bot API method and return its `result`.

        Raises:
            TransportError: On network failure or an API-level error.
        """
        url = f"{self.bot_url}/{method}"
        try:
            if files:
                response = await self._client.post(
                    url, data=payload, files=files, timeout=timeout or self._request_timeout
                )
            else:
                response = await self._client.post(
                    url, json=payload or {}, timeout=timeout or self._request_timeout
                )
        except httpx.HTTPError as e:
            raise TransportError(method, str(e) or type(e).__name__) from e

        try:
            data = response.json()
        except ValueError as e:
            raise TransportError(method, f"HTTP {response.status_code}: invalid JSON") from e

        if not data.get("ok"):
            description = data.get("description") or f"HTTP {response.status_code}"
            raise TransportError(method, description)
        return data.get("result")

    async def send_message(
        self,
        conversation_id: str,
        text: str,
        reply_to_message_id: int | None = None,
        parse_mode: str | None = None,
    ) -> int:
        """Send a text message.

        Args:
            conversation_id: Target chat id.
            text: Message text. Truncated to the API's length limit.
            reply_to_message_id: Message to reply to.
            parse_mode: Optional "Markdown" or "HTML".

        Returns:
            The sent message id.
        """
        payload: dict[str, Any] = {"chat_id": conversation_id, "text": fit_message(text)}
        if reply_to_message_id is not None:
            payload["reply_to_message_id"] = reply_to_message_id
        if parse_mode:
            payload["parse_mode"] = parse_mode
        result = await self._call("sendMessage", payload)
        return int(result["message_id"])

    async def edit_message(
        self,
        conversation_id: str,
        message_id: int,
        text: str,
        parse_mode: str | None = None,
    ) -> None:
        """Replace a message's text. An unchanged text is not an error."""
        payload: dict[str, Any] = {
            "chat_id": conversation_id,
            "message_id": message_id,
            "text": fit_message(text),
        }
        if parse_mode:
            payload["parse_mode"] = parse_mode
        try:
            await self._call("editMessageText", payload)
        except TransportError as e:
            if NOT_MODIFIED in e.reason:
                logger.debug("Edit of message %s was a no-op", message_id)
                return
            raise

    async def _chat_action(self, conversation_id: str, action: str) -> None:
        await self._call("sendChatAction", {"chat_id": conversation_id, "action": action})

    async def send_typing(self, conversation_id: str) -> None:
        await self._chat_action(conversation_id, "typing")

    async def send_recording_voice(self, conversation_id: str) -> None:
        await self._chat_action(conversation_id, "record_voice")

    async def send_voice(
        self,
        conversation_id: str,
        audio: bytes,
        reply_to_message_id: int | None = None,
    ) -> int:
        """Send OGG/Opus audio as a voice note. Returns the message id."""
        payload: dict[str, Any] = {"chat_id": conversation_id}
        if reply_to_message_id is not None:
            payload["reply_to_message_id"] = str(reply_to_message_id)
        result = await self._call(
            "sendVoice",
            payload,
            files={"voice": ("voice.ogg", audio, "audio/ogg")},
        )
        return int(result["message_id"])

    async def get_file_bytes(self, file_id: str) -> bytes:
        """Download an attachment by its file id."""
        result = await self._call("getFile", {"file_id": file_id})
        file_path = result.get("file_path") if result else None
        if not file_path:
            raise TransportError("getFile", f"no file_path for {file_id}")
        try:
            response = await self._client.get(f"{self.file_url}/{file_path}")
            response.raise_for_status()
        except httpx.HTTPError as e:
            raise TransportError("downloadFile", str(e) or type(e).__name__) from e
        return response.content

    async def get_updates(
        self,
        offset: int | None = None,
        timeout: int = 30,
        allowed_updates: list[str] | None = None,
    ) -> list[dict[str, Any]]:
        """Long-poll for updates.

        Args:
            offset: First update id to return.
            timeout: Server-side long-poll timeout in seconds.
            allowed_updates: Update types to receive.

        Returns:
            Raw update dicts, possibly empty.
        """
        payload: dict[str, Any] = {
            "timeout": timeout,
            "allowed_updates": allowed_updates or ["message"],
        }
        if offset is not None:
            payload["offset"] = offset
        # Leave headroom beyond the server-side wait.
        result = await self._call("getUpdates", payload, timeout=timeout + 10)
        return list(result or [])

    async def get_me(self) -> dict[str, Any]:
        return await self._call("getMe")

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> "TelegramClient":
        return self

    async def __aexit__(self, exc_type: type | None, exc_val: BaseException | None, exc_tb: Any) -> None:
        await self.aclose()

"""Message contract between sidebar surfaces and the relay.

Translates the extension's runtime messages ({"type": "send-message", ...})
into relay calls and turns the outcome into a {"success": ...} response.
"""

import base64
import binascii
import logging
from typing import Any, Awaitable, Callable

from pydantic import ValidationError

from orion.consumers.base import Consumer
from orion.protocol.requests import (
    FetchSnapshot,
    OutboundResult,
    RequestDownload,
    RequestFailure,
    SendFile,
    SendText,
    ShareVideoInfo,
    VideoInfo,
)
from orion.relay.relay import Relay
from orion.relay.router import DownloadedFile

logger = logging.getLogger(__name__)

Response = dict[str, Any]
MessageHandler = Callable[[dict[str, Any], Consumer | None], Awaitable[Response]]


class InvalidMessageError(ValueError):
    """Raised when a runtime message is missing or has malformed fields."""

    pass


class RelayContract:
    """Routes runtime messages from UI surfaces to the relay.

    Every call returns exactly one response dict. Request failures are reported
    only to the caller, never broadcast.
    """

    def __init__(self, relay: Relay) -> None:
        self.relay = relay
        self._handlers: dict[str, MessageHandler] = {}
        self.register_handler("connect-websocket", self._connect)
        self.register_handler("disconnect-websocket", self._disconnect)
        self.register_handler("fetch-conversation", self._fetch_conversation)
        self.register_handler("send-message", self._send_message)
        self.register_handler("send-file", self._send_file)
        self.register_handler("download-file", self._download_file)
        self.register_handler("youtube-video-info", self._video_info)
        self.register_handler("get-settings", self._get_settings)
        self.register_handler("get-server-url", self._get_server_url)

    def register_handler(self, message_type: str, handler: MessageHandler) -> None:
        """Register a handler for a runtime message type."""
        self._handlers[message_type] = handler

    async def handle(
        self, message: dict[str, Any], consumer: Consumer | None = None
    ) -> Response:
        """Handle one runtime message.

        Args:
            message: The message, with at least a "type" key
            consumer: The surface that sent it; required for stream interest

        Returns:
            Response dict with a "success" flag
        """
        message_type = message.get("type")
        handler = (
            self._handlers.get(message_type) if isinstance(message_type, str) else None
        )
        if handler is None:
            logger.warning(f"Unknown message type: {message_type!r}")
            return _error(f"Unknown message type: {message_type}")

        try:
            return await handler(message, consumer)
        except InvalidMessageError as e:
            logger.warning(f"Invalid {message_type} message: {e}")
            return _error(str(e))

    # ================================
    # Stream interest
    # ================================

    async def _connect(
        self, message: dict[str, Any], consumer: Consumer | None
    ) -> Response:
        await self.relay.register(_require_consumer(consumer))
        return {"success": True}

    async def _disconnect(
        self, message: dict[str, Any], consumer: Consumer | None
    ) -> Response:
        await self.relay.deregister(_require_consumer(consumer).handle)
        return {"success": True}

    # ================================
    # Requests
    # ================================

    async def _fetch_conversation(
        self, message: dict[str, Any], consumer: Consumer | None
    ) -> Response:
        result = await self.relay.submit(FetchSnapshot())
        return _respond(result, lambda snapshot: {"data": snapshot.to_protocol()})

    async def _send_message(
        self, message: dict[str, Any], consumer: Consumer | None
    ) -> Response:
        text = _require(message, "text", str)
        result = await self.relay.submit(SendText(text=text))
        return _respond(result, lambda data: {"data": data})

    async def _send_file(
        self, message: dict[str, Any], consumer: Consumer | None
    ) -> Response:
        filename = _require(message, "filename", str)
        content = _decode_content(_require(message, "content", (bytes, str)))
        content_type = message.get("contentType") or "application/octet-stream"
        result = await self.relay.submit(
            SendFile(filename=filename, content=content, content_type=content_type)
        )
        return _respond(result, lambda data: {"data": data})

    async def _download_file(
        self, message: dict[str, Any], consumer: Consumer | None
    ) -> Response:
        file_id = _require(message, "uniqueFilename", str)
        display_name = message.get("displayName") or file_id
        result = await self.relay.submit(
            RequestDownload(file_id=file_id, display_name=display_name)
        )
        return _respond(result, _download_data)

    async def _video_info(
        self, message: dict[str, Any], consumer: Consumer | None
    ) -> Response:
        raw = _require(message, "videoInfo", dict)
        try:
            video_info = VideoInfo.from_protocol(raw)
        except ValidationError as e:
            raise InvalidMessageError(
                f"Invalid videoInfo: {e.error_count()} error(s)"
            ) from e
        result = await self.relay.submit(ShareVideoInfo(video_info=video_info))
        return _respond(result, lambda data: {"data": data})

    # ================================
    # Settings
    # ================================

    async def _get_settings(
        self, message: dict[str, Any], consumer: Consumer | None
    ) -> Response:
        settings = self.relay.resolver.settings()
        return {"success": True, "settings": settings.to_protocol()}

    async def _get_server_url(
        self, message: dict[str, Any], consumer: Consumer | None
    ) -> Response:
        endpoint = self.relay.resolver.resolve()
        return {"success": True, "serverUrl": endpoint.http_url}


# ================================
# Helpers
# ================================


def _require_consumer(consumer: Consumer | None) -> Consumer:
    if consumer is None:
        raise InvalidMessageError("Message must come from a consumer")
    return consumer


def _require(
    message: dict[str, Any], key: str, expected: type | tuple[type, ...]
) -> Any:
    if key not in message:
        raise InvalidMessageError(f"Missing field '{key}'")
    value = message[key]
    if not isinstance(value, expected):
        raise InvalidMessageError(f"Field '{key}' has the wrong type")
    return value


def _decode_content(content: bytes | str) -> bytes:
    """File content arrives as raw bytes or as base64 text."""
    if isinstance(content, bytes):
        return content
    try:
        return base64.b64decode(content, validate=True)
    except binascii.Error as e:
        raise InvalidMessageError(f"File content is not valid base64: {e}") from e


def _download_data(downloaded: DownloadedFile) -> dict[str, Any]:
    return {"downloadPath": str(downloaded.path), "bytes": downloaded.size}


def _respond(
    result: OutboundResult, success_fields: Callable[[Any], dict[str, Any]]
) -> Response:
    if isinstance(result, RequestFailure):
        response = _error(result.reason)
        response["errorKind"] = result.kind.value
        if result.status_code is not None:
            response["status"] = result.status_code
        return response
    return {"success": True, **success_fields(result.payload)}


def _error(message: str) -> Response:
    return {"success": False, "error": message}

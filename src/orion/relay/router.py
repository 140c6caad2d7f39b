"""Routing of outbound action requests to the server's HTTP endpoints."""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Awaitable, Callable
from urllib.parse import quote

from pydantic import ValidationError

from orion.config.resolver import ConfigResolver, Endpoint
from orion.errors import RequestError, RequestErrorKind
from orion.protocol.items import Snapshot
from orion.protocol.requests import (
    FetchSnapshot,
    OutboundRequest,
    OutboundResult,
    RequestDownload,
    RequestFailure,
    RequestSuccess,
    SendFile,
    SendText,
    ShareVideoInfo,
)
from orion.transport.http.client import HttpRequestClient

logger = logging.getLogger(__name__)

ITEMS_PATH = "/pc/items"
MESSAGE_PATH = "/pc/message"
FILE_PATH = "/pc/file"
VIDEO_INFO_PATH = "/pc/youtube-info"
UPLOADS_PATH = "/uploads/"

RouteHandler = Callable[[Endpoint, Any], Awaitable[Any]]


@dataclass(frozen=True)
class DownloadedFile:
    path: Path
    size: int


class RequestRouter:
    """Issues one HTTP call per request and returns one result.

    The endpoint is resolved fresh for every request, so settings changes
    apply to the next request. Requests are never retried and never raise for
    server or network problems; those come back as RequestFailure.
    """

    def __init__(
        self,
        resolver: ConfigResolver,
        client: HttpRequestClient,
        download_dir: str | Path | None = None,
    ) -> None:
        self.resolver = resolver
        self.client = client
        self.download_dir = (
            Path(download_dir) if download_dir else Path.home() / "Downloads"
        )
        self._handlers: dict[type, RouteHandler] = {
            FetchSnapshot: self._fetch_snapshot,
            SendText: self._send_text,
            SendFile: self._send_file,
            RequestDownload: self._download,
            ShareVideoInfo: self._share_video_info,
        }

    async def submit(self, request: OutboundRequest) -> OutboundResult:
        """Send a request to the server.

        Raises:
            TypeError: If the request type is not routable
        """
        handler = self._handlers.get(type(request))
        if handler is None:
            raise TypeError(f"Unsupported request: {type(request).__name__}")

        endpoint = self.resolver.resolve()
        try:
            payload = await handler(endpoint, request)
        except RequestError as e:
            logger.warning(f"{type(request).__name__} failed ({e.kind.value}): {e}")
            return RequestFailure(
                kind=e.kind, reason=str(e), status_code=e.status_code
            )

        logger.debug(f"{type(request).__name__} succeeded")
        return RequestSuccess(payload=payload)

    async def close(self) -> None:
        await self.client.close()

    # ================================
    # Routes
    # ================================

    async def _fetch_snapshot(
        self, endpoint: Endpoint, request: FetchSnapshot
    ) -> Snapshot:
        data = await self.client.get_json(endpoint.url(ITEMS_PATH))
        try:
            return Snapshot.from_protocol(data)
        except ValidationError as e:
            raise RequestError(
                RequestErrorKind.DECODE,
                f"Conversation snapshot is invalid: {e.error_count()} error(s)",
            ) from e

    async def _send_text(self, endpoint: Endpoint, request: SendText) -> Any:
        return await self.client.post_json(
            endpoint.url(MESSAGE_PATH), {"text": request.text}
        )

    async def _send_file(self, endpoint: Endpoint, request: SendFile) -> Any:
        return await self.client.post_file(
            endpoint.url(FILE_PATH),
            field="file",
            filename=request.filename,
            content=request.content,
            content_type=request.content_type,
        )

    async def _share_video_info(
        self, endpoint: Endpoint, request: ShareVideoInfo
    ) -> Any:
        return await self.client.post_json(
            endpoint.url(VIDEO_INFO_PATH), request.video_info.to_protocol()
        )

    async def _download(
        self, endpoint: Endpoint, request: RequestDownload
    ) -> DownloadedFile:
        url = endpoint.url(UPLOADS_PATH + quote(request.file_id, safe=""))
        try:
            self.download_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise RequestError(
                RequestErrorKind.STORAGE,
                f"Cannot create download directory {self.download_dir}: {e}",
            ) from e

        destination = self._claim_destination(request)
        try:
            size = await self.client.download(url, destination)
        except RequestError:
            destination.unlink(missing_ok=True)
            raise
        logger.info(f"Downloaded {request.file_id} to {destination}")
        return DownloadedFile(path=destination, size=size)

    def _claim_destination(self, request: RequestDownload) -> Path:
        """Reserve a free path in the download directory for the display name.

        The path is created empty with exclusive access, so concurrent
        downloads of the same name never share a file. The download replaces
        it once complete.
        """
        name = Path(request.display_name.replace("\\", "/")).name.strip()
        if name in ("", ".", ".."):
            name = Path(request.file_id.replace("\\", "/")).name.strip() or "download"

        base = self.download_dir / name
        candidate = base
        counter = 1
        while True:
            try:
                candidate.open("xb").close()
                return candidate
            except FileExistsError:
                candidate = self.download_dir / f"{base.stem} ({counter}){base.suffix}"
                counter += 1
            except OSError as e:
                raise RequestError(
                    RequestErrorKind.STORAGE, f"Cannot create {candidate}: {e}"
                ) from e

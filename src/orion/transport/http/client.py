"""Point-to-point HTTP calls against the Orion server."""

import json
import logging
import tempfile
from pathlib import Path
from typing import Any

import httpx

from orion.errors import RequestError, RequestErrorKind

logger = logging.getLogger(__name__)


class HttpRequestClient:
    """Thin async HTTP client that reports failures as RequestError.

    Every failure is classified as a network error, a non-2xx status or an
    undecodable response body so callers can tell them apart.
    """

    def __init__(
        self, timeout: float = 30.0, http_client: httpx.AsyncClient | None = None
    ) -> None:
        """Initialize the client.

        Args:
            timeout: Request timeout in seconds
            http_client: Client to use instead of creating one
        """
        self.timeout = timeout
        self._http_client = http_client or httpx.AsyncClient(timeout=timeout)

    async def get_json(self, url: str) -> Any:
        """GET a URL and decode the JSON body."""
        response = await self._request(
            "GET", url, headers={"Accept": "application/json"}
        )
        return self._decode_json(response)

    async def post_json(self, url: str, body: Any) -> Any:
        """POST a JSON body and decode the JSON response."""
        response = await self._request(
            "POST", url, json=body, headers={"Accept": "application/json"}
        )
        return self._decode_json(response)

    async def post_file(
        self,
        url: str,
        field: str,
        filename: str,
        content: bytes,
        content_type: str = "application/octet-stream",
    ) -> Any:
        """Upload one file as multipart form data and decode the JSON response."""
        response = await self._request(
            "POST",
            url,
            files={field: (filename, content, content_type)},
            headers={"Accept": "application/json"},
        )
        return self._decode_json(response)

    async def download(self, url: str, destination: Path) -> int:
        """Stream a URL into a local file.

        The body is written to a uniquely named temporary sibling first and
        moved into place once complete, so a failed download never leaves a
        partial file and concurrent downloads never share one.

        Returns:
            Number of bytes written

        Raises:
            RequestError: On network failure, non-2xx status, or local write failure
        """
        tmp_path: Path | None = None
        written = 0
        try:
            async with self._http_client.stream("GET", url) as response:
                self._check_status(response)
                with tempfile.NamedTemporaryFile(
                    dir=destination.parent,
                    prefix=f".{destination.name}.",
                    suffix=".part",
                    delete=False,
                ) as f:
                    tmp_path = Path(f.name)
                    async for chunk in response.aiter_bytes():
                        f.write(chunk)
                        written += len(chunk)
            tmp_path.replace(destination)
        except httpx.RequestError as e:
            _discard(tmp_path)
            raise RequestError(
                RequestErrorKind.NETWORK, f"Download of {url} failed: {e}"
            ) from e
        except OSError as e:
            _discard(tmp_path)
            raise RequestError(
                RequestErrorKind.STORAGE, f"Could not write {destination}: {e}"
            ) from e
        except RequestError:
            _discard(tmp_path)
            raise

        logger.debug(f"Downloaded {written} bytes from {url} to {destination}")
        return written

    async def close(self) -> None:
        """Close the underlying HTTP client. Safe to call multiple times."""
        if not self._http_client.is_closed:
            await self._http_client.aclose()
            logger.debug("HTTP client closed")

    async def _request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        try:
            response = await self._http_client.request(method, url, **kwargs)
        except httpx.RequestError as e:
            raise RequestError(
                RequestErrorKind.NETWORK, f"{method} {url} failed: {e}"
            ) from e

        self._check_status(response)
        return response

    def _check_status(self, response: httpx.Response) -> None:
        if not response.is_success:
            raise RequestError(
                RequestErrorKind.STATUS,
                f"HTTP {response.status_code}: {response.reason_phrase}",
                status_code=response.status_code,
            )

    def _decode_json(self, response: httpx.Response) -> Any:
        try:
            return response.json()
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise RequestError(
                RequestErrorKind.DECODE,
                f"Response from {response.request.url} is not valid JSON: {e}",
                status_code=response.status_code,
            ) from e


def _discard(path: Path | None) -> None:
    if path is not None:
        path.unlink(missing_ok=True)

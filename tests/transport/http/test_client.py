import json

import httpx
import pytest

from orion.errors import RequestError, RequestErrorKind
from orion.transport.http.client import HttpRequestClient

URL = "http://orion.local:8000"


def _client(handler) -> HttpRequestClient:
    return HttpRequestClient(
        http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler))
    )


class TestJsonRequests:
    async def test_get_json(self):
        # Arrange
        client = _client(lambda request: httpx.Response(200, json={"items": []}))

        # Act
        data = await client.get_json(f"{URL}/pc/items")

        # Assert
        assert data == {"items": []}
        await client.close()

    async def test_post_json_sends_body(self):
        # Arrange
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json={"status": "success"})

        client = _client(handler)

        # Act
        data = await client.post_json(f"{URL}/pc/message", {"text": "hi"})

        # Assert
        assert data == {"status": "success"}
        assert json.loads(seen[0].content) == {"text": "hi"}
        assert seen[0].headers["content-type"] == "application/json"
        await client.close()

    async def test_status_error(self):
        # Arrange
        client = _client(lambda request: httpx.Response(400, text="Bad Request"))

        # Act & Assert
        with pytest.raises(RequestError) as exc_info:
            await client.post_json(f"{URL}/pc/message", {"text": ""})
        assert exc_info.value.kind is RequestErrorKind.STATUS
        assert exc_info.value.status_code == 400
        await client.close()

    async def test_decode_error(self):
        # Arrange
        client = _client(lambda request: httpx.Response(200, text="ok"))

        # Act & Assert
        with pytest.raises(RequestError) as exc_info:
            await client.get_json(f"{URL}/pc/items")
        assert exc_info.value.kind is RequestErrorKind.DECODE
        await client.close()

    async def test_network_error(self):
        # Arrange
        def handler(request):
            raise httpx.ConnectTimeout("timed out", request=request)

        client = _client(handler)

        # Act & Assert
        with pytest.raises(RequestError) as exc_info:
            await client.get_json(f"{URL}/pc/items")
        assert exc_info.value.kind is RequestErrorKind.NETWORK
        assert exc_info.value.status_code is None
        await client.close()


class TestFileTransfer:
    async def test_post_file_is_multipart(self):
        # Arrange
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json={"status": "success"})

        client = _client(handler)

        # Act
        await client.post_file(
            f"{URL}/pc/file", field="file", filename="a.png", content=b"\x89PNG"
        )

        # Assert
        body = seen[0].content
        assert b'name="file"; filename="a.png"' in body
        assert b"\x89PNG" in body
        await client.close()

    async def test_download_writes_file(self, tmp_path):
        # Arrange
        client = _client(lambda request: httpx.Response(200, content=b"x" * 1000))
        destination = tmp_path / "big.bin"

        # Act
        written = await client.download(f"{URL}/uploads/big.bin", destination)

        # Assert
        assert written == 1000
        assert destination.read_bytes() == b"x" * 1000
        assert list(tmp_path.iterdir()) == [destination]
        await client.close()

    async def test_failed_download_leaves_nothing_behind(self, tmp_path):
        # Arrange
        client = _client(lambda request: httpx.Response(404))
        destination = tmp_path / "missing.bin"

        # Act & Assert
        with pytest.raises(RequestError) as exc_info:
            await client.download(f"{URL}/uploads/missing.bin", destination)
        assert exc_info.value.kind is RequestErrorKind.STATUS
        assert list(tmp_path.iterdir()) == []
        await client.close()

    async def test_unwritable_destination_is_storage_error(self, tmp_path):
        # Arrange
        client = _client(lambda request: httpx.Response(200, content=b"x"))
        destination = tmp_path / "no-such-dir" / "file.bin"

        # Act & Assert
        with pytest.raises(RequestError) as exc_info:
            await client.download(f"{URL}/uploads/file.bin", destination)
        assert exc_info.value.kind is RequestErrorKind.STORAGE
        await client.close()


class TestClose:
    async def test_close_twice(self):
        # Arrange
        client = _client(lambda request: httpx.Response(200))

        # Act
        await client.close()
        await client.close()

        # Assert
        assert client._http_client.is_closed

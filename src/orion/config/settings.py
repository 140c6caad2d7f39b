"""Persisted user settings and the stores that hold them."""

from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any

from pydantic import ConfigDict, Field

from orion.protocol.base import ProtocolModel

logger = logging.getLogger(__name__)

SETTINGS_KEY = "orionSettings"

DEFAULT_SERVER_HOST = "192.168.2.101"
DEFAULT_SERVER_PORT = 8000


class Settings(ProtocolModel):
    """
    User-editable settings shared by the relay and the sidebar.

    Unknown flags are kept so that a round trip through the relay does not
    drop settings owned by other parts of the extension.
    """

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    server_host: str = Field(
        default=DEFAULT_SERVER_HOST, alias="serverHost", min_length=1
    )
    server_port: int = Field(
        default=DEFAULT_SERVER_PORT, alias="serverPort", ge=1, le=65535
    )
    resizable_sidebar: bool = Field(default=True, alias="resizableSidebar")


DEFAULT_SETTINGS = Settings()


class SettingsStore(ABC):
    """Key-value storage for persisted settings.

    Values are plain JSON-compatible objects. Implementations may be changed
    at runtime by another component; readers must not cache.
    """

    @abstractmethod
    def get(self, key: str) -> Any | None:
        """Return the stored value for key, or None when absent."""

    @abstractmethod
    def set(self, key: str, value: Any) -> None:
        """Store value under key, replacing any previous value."""


class MemorySettingsStore(SettingsStore):
    """In-process settings store."""

    def __init__(self, initial: dict[str, Any] | None = None) -> None:
        self._data: dict[str, Any] = dict(initial or {})

    def get(self, key: str) -> Any | None:
        return self._data.get(key)

    def set(self, key: str, value: Any) -> None:
        self._data[key] = value


class JsonFileSettingsStore(SettingsStore):
    """Settings store backed by a single JSON object on disk.

    The file is read on every get() so edits made by other processes are
    picked up on the next connection or request.
    """

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)

    def get(self, key: str) -> Any | None:
        return self._read().get(key)

    def set(self, key: str, value: Any) -> None:
        data = self._read()
        data[key] = value
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp_path.write_text(json.dumps(data, indent=2), encoding="utf-8")
        tmp_path.replace(self.path)
        logger.debug(f"Saved '{key}' to {self.path}")

    def _read(self) -> dict[str, Any]:
        if not self.path.exists():
            return {}
        data = json.loads(self.path.read_text(encoding="utf-8"))
        if not isinstance(data, dict):
            raise ValueError(f"Settings file {self.path} does not hold a JSON object")
        return data

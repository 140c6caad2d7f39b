"""Turns persisted settings into the address of the Orion server."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from pydantic import ValidationError

from orion.config.settings import (
    DEFAULT_SETTINGS,
    SETTINGS_KEY,
    Settings,
    SettingsStore,
)

logger = logging.getLogger(__name__)

STREAM_PATH = "/pc/ws"


@dataclass(frozen=True)
class Endpoint:
    """Resolved host and port of the Orion server.

    Fixed for the lifetime of one connection attempt or one request.
    """

    host: str
    port: int

    @property
    def http_url(self) -> str:
        return f"http://{self.host}:{self.port}"

    @property
    def ws_url(self) -> str:
        return f"ws://{self.host}:{self.port}{STREAM_PATH}"

    def url(self, path: str) -> str:
        """Build an HTTP URL for a server path."""
        if not path.startswith("/"):
            path = "/" + path
        return self.http_url + path


class ConfigResolver:
    """Reads settings from a store, falling back to defaults.

    Never raises: a missing, unreadable or invalid settings entry resolves to
    the default settings.
    """

    def __init__(self, store: SettingsStore) -> None:
        self.store = store

    def settings(self) -> Settings:
        """Return the current validated settings."""
        try:
            raw = self.store.get(SETTINGS_KEY)
        except (OSError, ValueError) as e:
            logger.warning(f"Could not read settings, using defaults: {e}")
            return DEFAULT_SETTINGS

        if raw is None:
            return DEFAULT_SETTINGS

        try:
            return Settings.from_protocol(raw)
        except ValidationError as e:
            logger.warning(
                f"Invalid settings, using defaults: {e.error_count()} error(s)"
            )
            return DEFAULT_SETTINGS

    def resolve(self) -> Endpoint:
        """Resolve the server endpoint from the current settings."""
        settings = self.settings()
        return Endpoint(host=settings.server_host, port=settings.server_port)

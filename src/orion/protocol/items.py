from dataclasses import dataclass
from typing import Literal

from pydantic import ConfigDict, Field, field_validator

from orion.protocol.base import ProtocolModel

ItemKind = Literal["text", "file"]

FILE_CONTENT_SEPARATOR = "|"


@dataclass(frozen=True)
class FileRef:
    """Where a shared file lives on the server and what to call it locally."""

    display_name: str
    file_id: str


class ConversationItem(ProtocolModel):
    """
    One entry in the shared conversation between the desktop and the browser.
    """

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    sender: str = Field(alias="from")
    """
    Which side produced the item, e.g. "PC" or "Mobile".
    """

    kind: ItemKind = Field(alias="type")
    content: str
    """
    Message text for text items. For file items, "displayName|uniqueFilename".
    """

    timestamp: int | float | str
    """
    Epoch milliseconds or an RFC 3339 string, passed through as received.
    """

    id: str | None = None

    def file_ref(self) -> FileRef | None:
        """Split the content of a file item into display name and server file id.

        Returns None for text items. Content without a separator is used for
        both halves.
        """
        if self.kind != "file":
            return None
        display_name, sep, file_id = self.content.partition(FILE_CONTENT_SEPARATOR)
        if not sep:
            return FileRef(display_name=self.content, file_id=self.content)
        return FileRef(display_name=display_name, file_id=file_id)


class Snapshot(ProtocolModel):
    """The full conversation as the server currently knows it."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    items: list[ConversationItem] = Field(default_factory=list)

    @field_validator("items", mode="before")
    @classmethod
    def validate_items(cls, v: list | None) -> list:
        # An empty conversation is serialised as null by the server.
        if v is None:
            return []
        return v

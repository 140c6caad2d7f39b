"""Outbound action requests and their one-shot results."""

from dataclasses import dataclass
from typing import Any

from pydantic import Field

from orion.errors import RequestErrorKind
from orion.protocol.base import ProtocolModel


class VideoInfo(ProtocolModel):
    """
    Playback progress of a video the user is watching.

    Built by the page script; the relay only forwards it.
    """

    video_id: str = Field(alias="videoId")
    title: str = ""
    current_time: int = Field(default=0, alias="currentTime")
    """
    Playback position in whole seconds.
    """

    duration: int = 0
    timestamp_link: str = Field(default="", alias="timestampLink")
    is_playing: bool = Field(default=False, alias="isPlaying")
    url: str = ""


@dataclass(frozen=True)
class SendText:
    text: str


@dataclass(frozen=True)
class SendFile:
    filename: str
    content: bytes
    content_type: str = "application/octet-stream"


@dataclass(frozen=True)
class FetchSnapshot:
    pass


@dataclass(frozen=True)
class RequestDownload:
    file_id: str
    """
    The unique file name the server stored the upload under.
    """

    display_name: str


@dataclass(frozen=True)
class ShareVideoInfo:
    video_info: VideoInfo


OutboundRequest = SendText | SendFile | FetchSnapshot | RequestDownload | ShareVideoInfo


@dataclass(frozen=True)
class RequestSuccess:
    payload: Any

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True)
class RequestFailure:
    kind: RequestErrorKind
    reason: str
    status_code: int | None = None

    @property
    def ok(self) -> bool:
        return False


OutboundResult = RequestSuccess | RequestFailure

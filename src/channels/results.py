"""Outcome types delivered to callers.

``FailedRequest`` is the context handed to every ``on_failure`` callback. The
tagged results (``ChannelCreated``, ``ChannelUpdated``, ``ChannelFailed``) are
what the future based wrappers of the client resolve with.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Dict, Optional, Union

from .errors import ErrorKind

if TYPE_CHECKING:  # pragma: no cover
    from .request import RequestDescriptor


@dataclass(frozen=True)
class HTTPResponse:
    status_code: int
    body: str = ""
    headers: Dict[str, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300


@dataclass(frozen=True)
class FailedRequest:
    kind: ErrorKind
    request: Optional["RequestDescriptor"] = None
    response: Optional[HTTPResponse] = None
    error: Optional[BaseException] = None

    @property
    def status_code(self) -> Optional[int]:
        return self.response.status_code if self.response else None

    @property
    def body(self) -> Optional[str]:
        return self.response.body if self.response else None

    def describe(self) -> str:
        parts = [str(self.kind)]
        if self.request is not None:
            parts.append(f"{self.request.method} {self.request.path}")
        if self.status_code is not None:
            parts.append(f"status {self.status_code}")
        if self.error is not None:
            parts.append(str(self.error))
        return " - ".join(parts)


@dataclass(frozen=True)
class ChannelCreated:
    channel_id: str


@dataclass(frozen=True)
class ChannelUpdated:
    pass


@dataclass(frozen=True)
class ChannelFailed:
    failure: FailedRequest


ChannelResult = Union[ChannelCreated, ChannelUpdated, ChannelFailed]

__all__ = [
    "HTTPResponse",
    "FailedRequest",
    "ChannelCreated",
    "ChannelUpdated",
    "ChannelFailed",
    "ChannelResult",
]

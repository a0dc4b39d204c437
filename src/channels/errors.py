"""Error taxonomy of the channel client."""

from __future__ import annotations

from enum import Enum


class ErrorKind(Enum):
    """Kind of failure reported to ``on_failure`` callbacks."""

    ENCODING = "encoding"
    DECODING = "decoding"
    TRANSPORT = "transport"
    SERVER = "server"

    def __str__(self) -> str:
        return self.value


class ChannelClientError(Exception):
    """Base class for channel client errors."""


class EncodingError(ChannelClientError):
    """The payload (or the request path) cannot be serialized."""


class DecodingError(ChannelClientError):
    """The response body is malformed or misses an expected field."""


__all__ = ["ErrorKind", "ChannelClientError", "EncodingError", "DecodingError"]

"""Translate a channel operation into a transport level request descriptor."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Mapping, Optional
from urllib.parse import quote

from .errors import EncodingError
from .payload import encode_json

CHANNELS_PATH = "/api/channels/"
ACCEPT_HEADER = "application/vnd.urbanairship+json; version=3;"


class RequestKind(Enum):
    CREATE = "create"
    UPDATE = "update"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class RequestDescriptor:
    kind: RequestKind
    method: str
    path: str
    body: str
    headers: Dict[str, str] = field(default_factory=dict)
    channel_id: Optional[str] = None


def default_headers() -> Dict[str, str]:
    return {"Accept": ACCEPT_HEADER, "Content-Type": "application/json"}


def channel_path(channel_id: Optional[str] = None) -> str:
    if channel_id is None:
        return CHANNELS_PATH
    return CHANNELS_PATH + quote(channel_id, safe="")


def serialize_payload(payload: Any) -> str:
    """Return the JSON body for ``payload``.

    Accepts any object exposing ``to_payload()`` or a plain mapping.

    Raises:
        EncodingError: for a missing, empty or unserializable payload
    """
    if payload is None:
        raise EncodingError("A payload is required")
    if hasattr(payload, "to_payload"):
        data = payload.to_payload()
    elif isinstance(payload, Mapping):
        data = dict(payload)
    else:
        raise EncodingError(f"Unsupported payload type: {type(payload).__name__}")
    if not data:
        raise EncodingError("Payload is empty")
    return encode_json(data)


def build_request(
    kind: RequestKind, channel_id: Optional[str], payload: Any
) -> RequestDescriptor:
    """Build the request descriptor of a create or update operation.

    Raises:
        EncodingError: if the payload cannot be serialized or the channel
            identifier does not fit the operation
    """
    if kind is RequestKind.CREATE:
        if channel_id is not None:
            raise EncodingError("Channel creation does not take a channel ID")
        method = "POST"
    elif kind is RequestKind.UPDATE:
        if not isinstance(channel_id, str) or not channel_id:
            raise EncodingError("Channel update requires a non-empty channel ID")
        method = "PUT"
    else:  # pragma: no cover
        raise EncodingError(f"Unknown request kind: {kind!r}")

    return RequestDescriptor(
        kind=kind,
        method=method,
        path=channel_path(channel_id),
        body=serialize_payload(payload),
        headers=default_headers(),
        channel_id=channel_id,
    )


__all__ = [
    "RequestKind",
    "RequestDescriptor",
    "build_request",
    "channel_path",
    "serialize_payload",
    "CHANNELS_PATH",
    "ACCEPT_HEADER",
]

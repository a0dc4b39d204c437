"""Channel registration payload.

The payload is an immutable dataclass so it can be handed to the client and
shared with worker threads without copies. ``to_payload`` gives the backend
wire shape, ``to_json`` the request body.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field, fields
from typing import Any, Dict, Iterable, Mapping, Optional, Tuple

from .errors import EncodingError

IOS_DEVICE_TYPE = "ios"


@dataclass(frozen=True)
class QuietTime:
    start: str
    end: str

    def to_payload(self) -> Dict[str, str]:
        return {"start": self.start, "end": self.end}


@dataclass(frozen=True)
class ChannelPayload:
    device_type: str = IOS_DEVICE_TYPE
    push_address: Optional[str] = None
    opt_in: bool = False
    background: Optional[bool] = None
    alias: Optional[str] = None
    tags: Tuple[str, ...] = ()
    set_tags: bool = False
    timezone: Optional[str] = None
    locale_language: Optional[str] = None
    locale_country: Optional[str] = None
    badge: Optional[int] = None
    quiet_time: Optional[QuietTime] = None
    user_id: Optional[str] = None
    device_id: Optional[str] = None
    extras: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        # Detach from caller-owned containers
        object.__setattr__(self, "tags", _as_tags(self.tags))
        object.__setattr__(self, "extras", dict(self.extras or {}))

    @property
    def is_ios(self) -> bool:
        return self.device_type == IOS_DEVICE_TYPE

    def to_payload(self) -> Dict[str, Any]:
        channel = {
            "device_type": self.device_type,
            "opt_in": self.opt_in,
            "push_address": self.push_address,
            "background": self.background,
            "alias": self.alias,
            "set_tags": self.set_tags,
            "timezone": self.timezone,
            "locale_language": self.locale_language,
            "locale_country": self.locale_country,
        }
        if self.set_tags:
            channel["tags"] = list(self.tags)
        channel.update(self.extras)

        payload: Dict[str, Any] = {"channel": _compact(channel)}

        identity_hints = _compact({"user_id": self.user_id, "device_id": self.device_id})
        if identity_hints:
            payload["identity_hints"] = identity_hints

        if self.is_ios:
            ios = _compact(
                {
                    "badge": self.badge,
                    "quiettime": self.quiet_time.to_payload()
                    if self.quiet_time
                    else None,
                    "tz": self.timezone,
                }
            )
            if ios:
                payload["ios"] = ios

        return payload

    def to_json(self) -> str:
        """Serialize the payload to the request body.

        Raises:
            EncodingError: if an attribute cannot be represented in JSON
        """
        return encode_json(self.to_payload())

    def with_changes(self, **changes: Any) -> "ChannelPayload":
        values = {f.name: getattr(self, f.name) for f in fields(self)}
        values.update(changes)
        return ChannelPayload(**values)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ChannelPayload":
        """Build a payload from a flat mapping, unknown keys land in ``extras``."""
        known = {f.name for f in fields(cls)}
        kwargs: Dict[str, Any] = {}
        try:
            extras: Dict[str, Any] = dict(data.get("extras") or {})
            for key, value in data.items():
                if key == "extras":
                    continue
                if key in known:
                    kwargs[key] = value
                else:
                    extras[key] = value
            quiet_time = kwargs.get("quiet_time")
            if isinstance(quiet_time, Mapping):
                kwargs["quiet_time"] = QuietTime(**quiet_time)
            return cls(extras=extras, **kwargs)
        except (TypeError, ValueError) as e:
            raise EncodingError(f"Invalid channel attributes: {e}") from e


def encode_json(data: Any) -> str:
    try:
        return json.dumps(data, separators=(",", ":"), allow_nan=False)
    except (TypeError, ValueError) as e:
        raise EncodingError(f"Payload is not serializable: {e}") from e


def _compact(data: Dict[str, Any]) -> Dict[str, Any]:
    return {k: v for k, v in data.items() if v is not None}


def _as_tags(value: Any) -> Tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, str):
        return tuple(t.strip() for t in value.split(",") if t.strip())
    if isinstance(value, Iterable):
        return tuple(value)
    raise EncodingError(f"Invalid tags: {value!r}")


__all__ = ["ChannelPayload", "QuietTime", "encode_json", "IOS_DEVICE_TYPE"]

"""Tests for the request descriptor builder."""

import json

import pytest

from src.channels.errors import EncodingError
from src.channels.payload import ChannelPayload
from src.channels.request import (
    ACCEPT_HEADER,
    CHANNELS_PATH,
    RequestKind,
    build_request,
    channel_path,
)


@pytest.fixture
def payload():
    return ChannelPayload(push_address="tok", opt_in=True)


def test_create_descriptor(payload):
    descriptor = build_request(RequestKind.CREATE, None, payload)
    assert descriptor.kind is RequestKind.CREATE
    assert descriptor.method == "POST"
    assert descriptor.path == CHANNELS_PATH == "/api/channels/"
    assert descriptor.body == payload.to_json()
    assert descriptor.channel_id is None
    assert descriptor.headers == {
        "Accept": ACCEPT_HEADER,
        "Content-Type": "application/json",
    }


def test_update_descriptor(payload):
    descriptor = build_request(RequestKind.UPDATE, "abc123", payload)
    assert descriptor.method == "PUT"
    assert descriptor.path == "/api/channels/abc123"
    assert descriptor.channel_id == "abc123"


@pytest.mark.parametrize(
    "channel_id,expected",
    [
        ("a/b", "/api/channels/a%2Fb"),
        ("a b?c", "/api/channels/a%20b%3Fc"),
        ("../x", "/api/channels/..%2Fx"),
        ("é", "/api/channels/%C3%A9"),
    ],
)
def test_channel_id_is_escaped(channel_id, expected):
    assert channel_path(channel_id) == expected


def test_build_is_deterministic(payload):
    assert build_request(RequestKind.UPDATE, "x", payload) == build_request(
        RequestKind.UPDATE, "x", payload
    )


def test_mapping_payload_is_accepted():
    descriptor = build_request(RequestKind.CREATE, None, {"channel": {"opt_in": True}})
    assert json.loads(descriptor.body) == {"channel": {"opt_in": True}}


@pytest.mark.parametrize("bad", [None, {}, "raw string", 42])
def test_invalid_payload_is_encoding_error(bad):
    with pytest.raises(EncodingError):
        build_request(RequestKind.CREATE, None, bad)


def test_unserializable_payload_is_encoding_error():
    with pytest.raises(EncodingError):
        build_request(RequestKind.CREATE, None, ChannelPayload(extras={"o": object()}))


@pytest.mark.parametrize("channel_id", [None, "", 12])
def test_update_requires_channel_id(payload, channel_id):
    with pytest.raises(EncodingError):
        build_request(RequestKind.UPDATE, channel_id, payload)


def test_create_rejects_channel_id(payload):
    with pytest.raises(EncodingError):
        build_request(RequestKind.CREATE, "abc", payload)

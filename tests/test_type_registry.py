from __future__ import annotations

import pytest
from google.protobuf.any_pb2 import Any as AnyMessage

from proto_stream.core.types import DecodeError, UnregisteredTypeError
from proto_stream.examples.user import Preferences, User
from proto_stream.infra.messaging.protobuf.type_registry import (
    MessageTypeRegistry,
    type_name_from_url,
)


def test_type_name_is_text_after_last_slash() -> None:
    assert type_name_from_url("type.googleapis.com/example.User") == "example.User"
    assert type_name_from_url("example.User") == "example.User"


def test_register_returns_full_type_name() -> None:
    registry = MessageTypeRegistry()

    assert registry.register(User) == "example.User"
    assert "example.User" in registry
    assert registry.type_names() == ["example.User"]


def test_constructor_registers_classes() -> None:
    registry = MessageTypeRegistry(User, Preferences)
    assert len(registry) == 2
    assert registry.resolve("example.Preferences")(b"") == Preferences()


def test_resolve_unregistered_type_raises() -> None:
    registry = MessageTypeRegistry(User)

    with pytest.raises(UnregisteredTypeError) as exc_info:
        registry.resolve("example.Preferences")

    assert exc_info.value.type_name == "example.Preferences"
    assert registry.get("example.Preferences") is None


def test_unpack_any_with_registered_type() -> None:
    registry = MessageTypeRegistry(Preferences)
    boxed = AnyMessage()
    boxed.Pack(Preferences(language="en", dark_mode=True))

    unpacked = registry.unpack(boxed)

    assert unpacked == Preferences(language="en", dark_mode=True)


def test_unpack_unregistered_any_raises() -> None:
    registry = MessageTypeRegistry(User)
    boxed = AnyMessage()
    boxed.Pack(Preferences(language="en"))

    with pytest.raises(UnregisteredTypeError):
        registry.unpack(boxed)


def test_unpack_mismatched_bytes_is_decode_error() -> None:
    registry = MessageTypeRegistry(Preferences)
    # field 1 길이 5 선언 후 2바이트만 존재
    boxed = AnyMessage(type_url="type.googleapis.com/example.Preferences", value=b"\x0a\x05ab")

    with pytest.raises(DecodeError):
        registry.unpack(boxed)


def test_custom_decoder() -> None:
    registry = MessageTypeRegistry()
    registry.register_decoder("example.Preferences", lambda raw: Preferences(language="xx"))

    assert registry.resolve("example.Preferences")(b"") == Preferences(language="xx")


def test_failing_custom_decoder_is_decode_error() -> None:
    def broken(raw: bytes) -> Preferences:
        raise ValueError("unexpected layout")

    registry = MessageTypeRegistry()
    registry.register_decoder("example.Preferences", broken)
    boxed = AnyMessage()
    boxed.Pack(Preferences(language="en"))

    with pytest.raises(DecodeError) as exc_info:
        registry.unpack(boxed)

    assert "example.Preferences" in str(exc_info.value)
    assert isinstance(exc_info.value.__cause__, ValueError)

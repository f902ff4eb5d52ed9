from __future__ import annotations

import asyncio

import pytest

from proto_stream.core.types import FormatError, SchemaNotFoundError, UnregisteredTypeError
from proto_stream.examples.user import Preferences, User
from proto_stream.infra.messaging.protobuf import (
    AsyncProtobufDeserializer,
    AsyncProtobufSerializer,
    DeserializerConfig,
    MessageTypeRegistry,
    ProtobufSerializer,
    SerializerConfig,
)
from proto_stream.infra.messaging.protobuf.wire_format import read_header
from tests.fake_registry import FakeRegistry, async_client, sync_client
from tests.proto_builders import build_order, build_preferences, build_user

SUBJECT = "users-value"


@pytest.mark.asyncio
async def test_async_round_trip() -> None:
    registry = FakeRegistry()
    user = build_user()
    serializer = AsyncProtobufSerializer(async_client(registry))
    deserializer = AsyncProtobufDeserializer(
        async_client(registry), MessageTypeRegistry(User, Preferences)
    )

    data = await serializer(SUBJECT, user)
    record = await deserializer.deserialize_record(SUBJECT, data)

    assert record.message == user
    assert record.boxed == {"extra_data": build_preferences()}
    assert await deserializer.deserialize(SUBJECT, None) is None


@pytest.mark.asyncio
async def test_async_and_sync_serializers_agree() -> None:
    registry = FakeRegistry()
    user = build_user()

    sync_bytes = ProtobufSerializer(sync_client(registry)).serialize(SUBJECT, user)
    async_bytes = await AsyncProtobufSerializer(async_client(registry)).serialize(SUBJECT, user)

    assert sync_bytes == async_bytes


@pytest.mark.asyncio
async def test_async_concurrent_serialization_registers_once() -> None:
    registry = FakeRegistry()
    serializer = AsyncProtobufSerializer(async_client(registry))

    results = await asyncio.gather(
        *(serializer.serialize(SUBJECT, build_user()) for _ in range(10))
    )

    assert len(set(results)) == 1
    assert registry.count("POST", "subjects/users-value/versions") == 1


@pytest.mark.asyncio
async def test_async_concurrent_deserialization_fetches_once() -> None:
    registry = FakeRegistry()
    data = ProtobufSerializer(sync_client(registry)).serialize(SUBJECT, build_user())
    schema_id = read_header(data)
    deserializer = AsyncProtobufDeserializer(
        async_client(registry), MessageTypeRegistry(User, Preferences)
    )

    messages = await asyncio.gather(
        *(deserializer.deserialize(SUBJECT, data) for _ in range(10))
    )

    assert messages == [build_user()] * 10
    assert registry.count("GET", f"schemas/ids/{schema_id}") == 1
    assert deserializer.cached_schema_ids() == [schema_id]


@pytest.mark.asyncio
async def test_async_references_round_trip() -> None:
    registry = FakeRegistry()
    order = build_order()
    data = await AsyncProtobufSerializer(async_client(registry)).serialize("orders-value", order)

    record = await AsyncProtobufDeserializer(
        async_client(registry),
        MessageTypeRegistry(Preferences),
        DeserializerConfig(require_registered_types=False),
    ).deserialize_record("orders-value", data)

    assert record.message.DESCRIPTOR.full_name == "refs.Order"
    assert record.boxed == {"attachments[0]": build_preferences(language="ko")}


@pytest.mark.asyncio
async def test_async_errors() -> None:
    registry = FakeRegistry()
    data = await AsyncProtobufSerializer(async_client(registry)).serialize(SUBJECT, build_user())
    deserializer = AsyncProtobufDeserializer(async_client(registry), MessageTypeRegistry(User))

    with pytest.raises(UnregisteredTypeError):
        await deserializer.deserialize(SUBJECT, data)

    with pytest.raises(FormatError):
        await deserializer.deserialize(SUBJECT, b"\x01" + data[1:])

    with pytest.raises(SchemaNotFoundError):
        await AsyncProtobufSerializer(
            async_client(registry), SerializerConfig(auto_register_schemas=False)
        ).serialize("other-value", build_user())

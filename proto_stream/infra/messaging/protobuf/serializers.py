"""
Protobuf 직렬화 구현

Schema Registry 와 연동해 메시지를 Confluent Wire Format 으로 직렬화합니다.

- ProtobufSerializer: 동기 Registry 클라이언트 사용 (블로킹)
- AsyncProtobufSerializer: 비동기 Registry 클라이언트 사용 (취소 가능)

스키마 ID 가 정해진 뒤의 인코딩은 두 구현이 공유하는 순수 함수이며,
같은 스키마 ID 와 같은 메시지에 대해 항상 같은 바이트를 만듭니다.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass

from google.protobuf.descriptor import FileDescriptor
from google.protobuf.message import EncodeError, Message

from proto_stream.common.logger import PipelineLogger
from proto_stream.config.settings import SerdeSettings
from proto_stream.core.dto.internal.schema import SchemaReference
from proto_stream.core.types import ConfigError, SchemaNotFoundError, SerializationError
from proto_stream.infra.messaging.protobuf.schema_utils import (
    is_known_dependency,
    message_indexes_for,
    schema_str_for,
)
from proto_stream.infra.messaging.protobuf.wire_format import encode_envelope
from proto_stream.infra.messaging.schema_registry.client import (
    AsyncSchemaRegistryClient,
    SchemaRegistryClient,
)

logger = PipelineLogger.get_logger("protobuf_serializer", "serde")


@dataclass(slots=True, frozen=True)
class SerializerConfig:
    """
    직렬화 정책

    auto_register_schemas: 첫 사용 시 스키마(및 참조)를 Registry 에 등록.
        False 면 등록된 스키마만 사용하며, 없으면 SchemaNotFoundError.
    use_latest_version: 등록 대신 subject 의 최신 버전 ID 사용
    skip_known_types: google/protobuf/* 등 well-known import 는 참조 등록 생략
    """

    auto_register_schemas: bool = True
    use_latest_version: bool = False
    skip_known_types: bool = True

    @classmethod
    def from_settings(cls, settings: SerdeSettings) -> SerializerConfig:
        return cls(
            auto_register_schemas=settings.auto_register_schemas,
            use_latest_version=settings.use_latest_version,
            skip_known_types=settings.skip_known_types,
        )


@dataclass(slots=True, frozen=True)
class MessageSchema:
    """메시지 타입 하나에 대해 계산해 둔 스키마 정보"""

    type_name: str
    file_descriptor: FileDescriptor
    schema_str: str
    message_indexes: tuple[int, ...]


class _BaseProtobufSerializer:
    """스키마 계산, 참조 목록 구성, 인코딩 (Registry I/O 없음)"""

    def __init__(self, config: SerializerConfig | None = None) -> None:
        self.config = config or SerializerConfig()
        self._schemas: dict[str, MessageSchema] = {}
        self._lock = threading.Lock()

    def message_schema(self, message: Message) -> MessageSchema:
        """
        Raises:
            SerializationError: Protobuf 메시지가 아닐 때
        """
        if not isinstance(message, Message):
            raise SerializationError(
                f"expected a protobuf message, got {type(message).__name__}"
            )
        descriptor = message.DESCRIPTOR
        cached = self._schemas.get(descriptor.full_name)
        if cached is not None:
            return cached

        schema = MessageSchema(
            type_name=descriptor.full_name,
            file_descriptor=descriptor.file,
            schema_str=schema_str_for(descriptor.file),
            message_indexes=tuple(message_indexes_for(descriptor)),
        )
        logger.debug(
            f"스키마 계산: {schema.type_name} "
            f"(file={descriptor.file.name}, indexes={list(schema.message_indexes)})"
        )
        with self._lock:
            return self._schemas.setdefault(descriptor.full_name, schema)

    def _dependencies(self, file_descriptor: FileDescriptor) -> list[FileDescriptor]:
        return [
            dep
            for dep in file_descriptor.dependencies
            if not (self.config.skip_known_types and is_known_dependency(dep.name))
        ]

    @staticmethod
    def _check_subject(subject: str) -> None:
        if not subject:
            raise ConfigError("subject is required for serialization")

    @staticmethod
    def encode(schema_id: int, schema: MessageSchema, message: Message, subject: str) -> bytes:
        """Wire Envelope 헤더 + 메시지 인덱스 + 결정적 Protobuf 인코딩"""
        try:
            payload = message.SerializeToString(deterministic=True)
        except EncodeError as e:
            raise SerializationError(
                f"failed to encode {schema.type_name}: {e}", subject=subject, schema_id=schema_id
            ) from e
        return encode_envelope(schema_id, schema.message_indexes, payload)

    def _missing_schema(self, subject: str, cause: SchemaNotFoundError) -> SchemaNotFoundError:
        logger.error(f"미등록 스키마 (auto_register_schemas=False): subject={subject}")
        return SchemaNotFoundError(
            f"schema is not registered and auto registration is disabled: {cause.message}",
            subject=subject,
            status=cause.status,
            error_code=cause.error_code,
        )


class ProtobufSerializer(_BaseProtobufSerializer):
    """
    Protobuf 동기 직렬화기

    Args:
        registry: 동기 Schema Registry 클라이언트 (캐시 포함, 호출자 소유)
        config: 직렬화 정책
    """

    def __init__(
        self, registry: SchemaRegistryClient, config: SerializerConfig | None = None
    ) -> None:
        super().__init__(config)
        self.registry = registry

    def __call__(self, subject: str, message: Message) -> bytes:
        return self.serialize(subject, message)

    def serialize(self, subject: str, message: Message) -> bytes:
        """
        메시지를 Confluent Wire Format 바이트로 직렬화합니다.

        Args:
            subject: 스키마 주제명 (예: users-value)
            message: Protobuf 메시지

        Returns:
            매직 바이트 + 스키마 ID + 메시지 인덱스 + 페이로드
        """
        self._check_subject(subject)
        schema = self.message_schema(message)
        schema_id = self.resolve_schema_id(subject, schema)
        return self.encode(schema_id, schema, message, subject)

    def resolve_schema_id(self, subject: str, schema: MessageSchema) -> int:
        if self.config.use_latest_version:
            return self.registry.lookup_latest(subject).schema_id

        try:
            references = self.resolve_references(schema.file_descriptor)
            if self.config.auto_register_schemas:
                return self.registry.register(subject, schema.schema_str, references)
            return self.registry.lookup_schema(subject, schema.schema_str, references).schema_id
        except SchemaNotFoundError as e:
            if self.config.auto_register_schemas:
                raise
            raise self._missing_schema(subject, e) from e

    def resolve_references(self, file_descriptor: FileDescriptor) -> list[SchemaReference]:
        """import 파일을 각자의 subject(파일 경로) 로 등록/조회해 참조 목록을 만듭니다."""
        references: list[SchemaReference] = []
        for dep in self._dependencies(file_descriptor):
            dep_references = self.resolve_references(dep)
            dep_schema = schema_str_for(dep)
            if self.config.auto_register_schemas:
                self.registry.register(dep.name, dep_schema, dep_references)
            registered = self.registry.lookup_schema(dep.name, dep_schema, dep_references)
            references.append(SchemaReference(dep.name, dep.name, registered.version))
        return references


class AsyncProtobufSerializer(_BaseProtobufSerializer):
    """
    Protobuf 비동기 직렬화기

    Registry 호출 지점에서 취소될 수 있으며, 인코딩 자체는 동기 순수 함수입니다.
    """

    def __init__(
        self, registry: AsyncSchemaRegistryClient, config: SerializerConfig | None = None
    ) -> None:
        super().__init__(config)
        self.registry = registry

    async def __call__(self, subject: str, message: Message) -> bytes:
        return await self.serialize(subject, message)

    async def serialize(self, subject: str, message: Message) -> bytes:
        """
        비동기적으로 메시지를 Confluent Wire Format 바이트로 직렬화합니다.

        Args:
            subject: 스키마 주제명
            message: Protobuf 메시지
        """
        self._check_subject(subject)
        schema = self.message_schema(message)
        schema_id = await self.resolve_schema_id(subject, schema)
        return self.encode(schema_id, schema, message, subject)

    async def resolve_schema_id(self, subject: str, schema: MessageSchema) -> int:
        if self.config.use_latest_version:
            return (await self.registry.lookup_latest(subject)).schema_id

        try:
            references = await self.resolve_references(schema.file_descriptor)
            if self.config.auto_register_schemas:
                return await self.registry.register(subject, schema.schema_str, references)
            registered = await self.registry.lookup_schema(
                subject, schema.schema_str, references
            )
            return registered.schema_id
        except SchemaNotFoundError as e:
            if self.config.auto_register_schemas:
                raise
            raise self._missing_schema(subject, e) from e

    async def resolve_references(self, file_descriptor: FileDescriptor) -> list[SchemaReference]:
        references: list[SchemaReference] = []
        for dep in self._dependencies(file_descriptor):
            dep_references = await self.resolve_references(dep)
            dep_schema = schema_str_for(dep)
            if self.config.auto_register_schemas:
                await self.registry.register(dep.name, dep_schema, dep_references)
            registered = await self.registry.lookup_schema(dep.name, dep_schema, dep_references)
            references.append(SchemaReference(dep.name, dep.name, registered.version))
        return references

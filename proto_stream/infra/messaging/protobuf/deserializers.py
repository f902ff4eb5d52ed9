"""
Protobuf 역직렬화 구현

Confluent Wire Format 바이트를 타입이 있는 메시지로 되돌립니다.

처리 단계 (호출 단위):
    START → MAGIC_CHECKED → SCHEMA_RESOLVED → INDEX_RESOLVED
          → PAYLOAD_DECODED → DONE
    어느 단계에서든 실패하면 FAILED 이며 부분 결과는 반환하지 않습니다.

- ProtobufDeserializer: 동기 Registry 클라이언트 사용
- AsyncProtobufDeserializer: 비동기 Registry 클라이언트 사용
"""

from __future__ import annotations

import threading
from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field

from google.protobuf import descriptor_pool
from google.protobuf.descriptor_pb2 import FileDescriptorProto
from google.protobuf.message import Message

from proto_stream.common.logger import PipelineLogger
from proto_stream.config.settings import SerdeSettings
from proto_stream.core.dto.internal.schema import (
    DeserializedRecord,
    SchemaDescriptor,
    SchemaReference,
)
from proto_stream.core.types import (
    HEADER_SIZE,
    PROTOBUF_SCHEMA_TYPE,
    DecodeError,
    DecodeStage,
    SerdeError,
    UnregisteredTypeError,
)
from proto_stream.infra.messaging.protobuf.schema_utils import (
    build_pool,
    file_proto_from_schema,
    message_class_for,
    message_full_name,
)
from proto_stream.infra.messaging.protobuf.type_registry import MessageTypeRegistry, run_decoder
from proto_stream.infra.messaging.protobuf.wire_format import WireEnvelope, parse_envelope
from proto_stream.infra.messaging.schema_registry.client import (
    AsyncSchemaRegistryClient,
    SchemaRegistryClient,
)

logger = PipelineLogger.get_logger("protobuf_deserializer", "serde")

ANY_TYPE_NAME = "google.protobuf.Any"


@dataclass(slots=True, frozen=True)
class DeserializerConfig:
    """
    역직렬화 정책

    require_registered_types: 최상위 타입도 타입 레지스트리에 있어야 함 (기본).
        False 면 미등록 최상위 타입은 스키마로 만든 동적 클래스로 디코딩합니다.
        동적 클래스 인스턴스는 생성된 메시지 클래스와 == 비교되지 않습니다.
    """

    require_registered_types: bool = True

    @classmethod
    def from_settings(cls, settings: SerdeSettings) -> DeserializerConfig:
        return cls(require_registered_types=settings.require_registered_types)


@dataclass(slots=True)
class ResolvedSchema:
    """스키마 ID 하나에 대해 구성한 독립 DescriptorPool"""

    schema_id: int
    file_proto: FileDescriptorProto
    pool: descriptor_pool.DescriptorPool
    _classes: dict[str, type[Message]] = field(default_factory=dict)

    def message_class(self, full_name: str) -> type[Message]:
        message_class = self._classes.get(full_name)
        if message_class is None:
            message_class = message_class_for(self.pool, full_name)
            self._classes[full_name] = message_class
        return message_class


def iter_any_fields(message: Message, prefix: str = "") -> Iterator[tuple[str, Message]]:
    """
    메시지 안의 google.protobuf.Any 필드를 (경로, Any) 로 순회합니다.

    경로 예: "extra_data", "items[0]", "labels[color]", "inner.extra"
    """
    for field_descriptor, value in message.ListFields():
        message_type = field_descriptor.message_type
        if message_type is None:
            continue
        path = f"{prefix}{field_descriptor.name}"

        if message_type.GetOptions().map_entry:
            if message_type.fields_by_name["value"].message_type is None:
                continue
            for key, item in value.items():
                yield from _visit(item, f"{path}[{key}]")
        elif isinstance(value, Message):
            yield from _visit(value, path)
        else:
            for i, item in enumerate(value):
                yield from _visit(item, f"{path}[{i}]")


def _visit(message: Message, path: str) -> Iterator[tuple[str, Message]]:
    if message.DESCRIPTOR.full_name == ANY_TYPE_NAME:
        yield path, message
    else:
        yield from iter_any_fields(message, f"{path}.")


class _BaseProtobufDeserializer:
    """스키마 해석 결과 메모이제이션과 페이로드 디코딩 (Registry I/O 없음)"""

    def __init__(
        self,
        type_registry: MessageTypeRegistry | None = None,
        config: DeserializerConfig | None = None,
    ) -> None:
        self.type_registry = type_registry if type_registry is not None else MessageTypeRegistry()
        self.config = config or DeserializerConfig()
        self._resolved: dict[int, ResolvedSchema] = {}
        self._lock = threading.Lock()

    # ------------------------------------------------------------------
    # 스키마 해석
    # ------------------------------------------------------------------
    @staticmethod
    def _reference_proto(reference: SchemaReference, dependency: SchemaDescriptor) -> FileDescriptorProto:
        proto = file_proto_from_schema(dependency.schema_str, dependency.schema_id)
        # import 경로가 파일 이름
        proto.name = reference.name
        return proto

    def _build(
        self,
        subject: str,
        descriptor: SchemaDescriptor,
        dependencies: Iterable[FileDescriptorProto],
    ) -> ResolvedSchema:
        schema_id = descriptor.schema_id
        if descriptor.schema_type != PROTOBUF_SCHEMA_TYPE:
            raise DecodeError(
                f"schema type {descriptor.schema_type} is not {PROTOBUF_SCHEMA_TYPE}",
                subject=subject,
                schema_id=schema_id,
            )
        root = file_proto_from_schema(descriptor.schema_str, schema_id)
        if not root.name:
            root.name = f"schema_{schema_id}.proto"
        try:
            pool, _ = build_pool(root, dependencies)
        except DecodeError as e:
            raise DecodeError(e.message, subject=subject, schema_id=schema_id) from e

        resolved = ResolvedSchema(schema_id=schema_id, file_proto=root, pool=pool)
        with self._lock:
            return self._resolved.setdefault(schema_id, resolved)

    # ------------------------------------------------------------------
    # 디코딩
    # ------------------------------------------------------------------
    def _decode(
        self, subject: str, envelope: WireEnvelope, resolved: ResolvedSchema
    ) -> DeserializedRecord:
        schema_id = envelope.schema_id
        indexes = envelope.message_indexes
        stage = DecodeStage.SCHEMA_RESOLVED
        try:
            try:
                type_name = message_full_name(resolved.file_proto, indexes)
            except IndexError as e:
                raise DecodeError(
                    f"message indexes {list(indexes)} do not match schema: {e}",
                    subject=subject,
                    schema_id=schema_id,
                    offset=HEADER_SIZE,
                ) from e
            stage = DecodeStage.INDEX_RESOLVED

            decoder = self.type_registry.get(type_name)
            if decoder is None:
                if self.config.require_registered_types:
                    raise UnregisteredTypeError(type_name, subject=subject, schema_id=schema_id)
                decoder = resolved.message_class(type_name).FromString
            try:
                message = run_decoder(type_name, decoder, envelope.payload)
            except DecodeError as e:
                raise DecodeError(
                    f"payload does not match {type_name}: {e.message}",
                    subject=subject,
                    schema_id=schema_id,
                    offset=envelope.payload_offset,
                ) from e
            stage = DecodeStage.PAYLOAD_DECODED

            boxed = self._unpack_boxed(message, subject, schema_id)
        except SerdeError as e:
            self._failed(subject, stage, e)
            raise

        return DeserializedRecord(
            message=message,
            schema_id=schema_id,
            message_indexes=indexes,
            boxed=boxed,
        )

    def _unpack_boxed(
        self,
        message: Message,
        subject: str,
        schema_id: int,
        prefix: str = "",
        boxed: dict[str, Message] | None = None,
    ) -> dict[str, Message]:
        """Any 필드를 타입 레지스트리로 풀어냅니다 (풀어낸 메시지 안의 Any 포함)."""
        boxed = {} if boxed is None else boxed
        for path, any_message in iter_any_fields(message, prefix):
            if not any_message.type_url:
                continue
            try:
                unpacked = self.type_registry.unpack(any_message)
            except UnregisteredTypeError as e:
                raise UnregisteredTypeError(
                    e.type_name, subject=subject, schema_id=schema_id
                ) from e
            except DecodeError as e:
                raise DecodeError(
                    f"{e.message} at {path}", subject=subject, schema_id=schema_id
                ) from e
            boxed[path] = unpacked
            self._unpack_boxed(unpacked, subject, schema_id, f"{path}.", boxed)
        return boxed

    @staticmethod
    def _failed(subject: str, stage: DecodeStage, error: SerdeError) -> None:
        logger.debug(
            f"역직렬화 실패: subject={subject} stage={stage} kind={error.kind} - {error}"
        )

    def cached_schema_ids(self) -> list[int]:
        with self._lock:
            return sorted(self._resolved)


class ProtobufDeserializer(_BaseProtobufDeserializer):
    """
    Protobuf 동기 역직렬화기

    Args:
        registry: 동기 Schema Registry 클라이언트 (캐시 포함, 호출자 소유)
        type_registry: 타입 이름 → 디코더 매핑
        config: 역직렬화 정책
    """

    def __init__(
        self,
        registry: SchemaRegistryClient,
        type_registry: MessageTypeRegistry | None = None,
        config: DeserializerConfig | None = None,
    ) -> None:
        super().__init__(type_registry, config)
        self.registry = registry

    def __call__(self, subject: str, data: bytes | None) -> Message | None:
        return self.deserialize(subject, data)

    def deserialize(self, subject: str, data: bytes | None) -> Message | None:
        """
        Wire Format 바이트를 메시지로 역직렬화합니다.

        Args:
            subject: 스키마 주제명 (진단용)
            data: 직렬화된 바이트 (None 은 tombstone 으로 보고 None 반환)
        """
        record = self.deserialize_record(subject, data)
        return None if record is None else record.message

    def deserialize_record(self, subject: str, data: bytes | None) -> DeserializedRecord | None:
        """메시지와 함께 스키마 ID, 메시지 인덱스, 풀어낸 Any 필드를 반환합니다."""
        if data is None:
            return None

        stage = DecodeStage.START
        try:
            envelope = parse_envelope(data, subject)
            stage = DecodeStage.MAGIC_CHECKED
            resolved = self._resolve(subject, envelope.schema_id)
        except SerdeError as e:
            self._failed(subject, stage, e)
            raise
        return self._decode(subject, envelope, resolved)

    def _resolve(self, subject: str, schema_id: int) -> ResolvedSchema:
        resolved = self._resolved.get(schema_id)
        if resolved is not None:
            return resolved

        descriptor = self.registry.lookup(schema_id)
        dependencies = self._reference_files(descriptor.references, set())
        return self._build(subject, descriptor, dependencies)

    def _reference_files(
        self, references: Iterable[SchemaReference], seen: set[str]
    ) -> list[FileDescriptorProto]:
        files: list[FileDescriptorProto] = []
        for reference in references:
            if reference.name in seen:
                continue
            seen.add(reference.name)
            dependency = self.registry.lookup_by_subject_version(
                reference.subject, reference.version
            )
            files.extend(self._reference_files(dependency.references, seen))
            files.append(self._reference_proto(reference, dependency))
        return files


class AsyncProtobufDeserializer(_BaseProtobufDeserializer):
    """
    Protobuf 비동기 역직렬화기

    Registry 조회 지점에서 취소될 수 있습니다.
    """

    def __init__(
        self,
        registry: AsyncSchemaRegistryClient,
        type_registry: MessageTypeRegistry | None = None,
        config: DeserializerConfig | None = None,
    ) -> None:
        super().__init__(type_registry, config)
        self.registry = registry

    async def __call__(self, subject: str, data: bytes | None) -> Message | None:
        return await self.deserialize(subject, data)

    async def deserialize(self, subject: str, data: bytes | None) -> Message | None:
        record = await self.deserialize_record(subject, data)
        return None if record is None else record.message

    async def deserialize_record(
        self, subject: str, data: bytes | None
    ) -> DeserializedRecord | None:
        if data is None:
            return None

        stage = DecodeStage.START
        try:
            envelope = parse_envelope(data, subject)
            stage = DecodeStage.MAGIC_CHECKED
            resolved = await self._resolve(subject, envelope.schema_id)
        except SerdeError as e:
            self._failed(subject, stage, e)
            raise
        return self._decode(subject, envelope, resolved)

    async def _resolve(self, subject: str, schema_id: int) -> ResolvedSchema:
        resolved = self._resolved.get(schema_id)
        if resolved is not None:
            return resolved

        descriptor = await self.registry.lookup(schema_id)
        dependencies = await self._reference_files(descriptor.references, set())
        return self._build(subject, descriptor, dependencies)

    async def _reference_files(
        self, references: Iterable[SchemaReference], seen: set[str]
    ) -> list[FileDescriptorProto]:
        files: list[FileDescriptorProto] = []
        for reference in references:
            if reference.name in seen:
                continue
            seen.add(reference.name)
            dependency = await self.registry.lookup_by_subject_version(
                reference.subject, reference.version
            )
            files.extend(await self._reference_files(dependency.references, seen))
            files.append(self._reference_proto(reference, dependency))
        return files

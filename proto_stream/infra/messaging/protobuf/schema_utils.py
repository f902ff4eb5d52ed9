"""Protobuf 스키마 유틸리티

- 메시지 디스크립터 ↔ Registry 스키마 문자열 (base64 직렬화 FileDescriptorProto)
- 파일 내 메시지 경로 ↔ 메시지 인덱스
- Registry 에서 받은 스키마 + 참조로 독립 DescriptorPool 구성
"""

from __future__ import annotations

import base64
import binascii
from collections.abc import Iterable, Sequence

from google.protobuf import (  # noqa: F401  기본 풀에 well-known 타입 등록
    any_pb2,
    descriptor_pb2,
    duration_pb2,
    empty_pb2,
    field_mask_pb2,
    struct_pb2,
    timestamp_pb2,
    wrappers_pb2,
)
from google.protobuf import descriptor_pool, message_factory
from google.protobuf.descriptor import Descriptor, FileDescriptor
from google.protobuf.descriptor_pb2 import FileDescriptorProto
from google.protobuf.message import DecodeError as ProtobufDecodeError
from google.protobuf.message import Message

from proto_stream.core.types import DecodeError

_KNOWN_PREFIXES = ("google/protobuf/", "confluent/")


def is_known_dependency(file_name: str) -> bool:
    """Registry 에 따로 등록하지 않는 well-known 파일 여부"""
    return file_name.startswith(_KNOWN_PREFIXES)


def to_file_proto(file_descriptor: FileDescriptor) -> FileDescriptorProto:
    proto = FileDescriptorProto()
    file_descriptor.CopyToProto(proto)
    return proto


def schema_str_for(file_descriptor: FileDescriptor) -> str:
    """Registry "serialized" 포맷 스키마 문자열 (결정적 직렬화)"""
    proto = to_file_proto(file_descriptor)
    return base64.b64encode(proto.SerializeToString(deterministic=True)).decode("ascii")


def file_proto_from_schema(schema_str: str, schema_id: int | None = None) -> FileDescriptorProto:
    """
    Raises:
        DecodeError: 스키마 문자열이 base64 FileDescriptorProto 가 아닐 때
    """
    try:
        raw = base64.b64decode(schema_str, validate=True)
        return FileDescriptorProto.FromString(raw)
    except (binascii.Error, ValueError, ProtobufDecodeError) as e:
        raise DecodeError(
            "schema is not a serialized FileDescriptorProto", schema_id=schema_id
        ) from e


def message_indexes_for(descriptor: Descriptor) -> list[int]:
    """파일 최상위부터 메시지까지의 선언 순서 경로"""
    path: list[int] = []
    current = descriptor
    while current.containing_type is not None:
        parent = current.containing_type
        path.append(_position(parent.nested_types, current))
        current = parent
    top_level = [m.name for m in to_file_proto(current.file).message_type]
    path.append(top_level.index(current.name))
    path.reverse()
    return path


def _position(candidates: Sequence[Descriptor], target: Descriptor) -> int:
    for i, candidate in enumerate(candidates):
        if candidate.full_name == target.full_name:
            return i
    raise ValueError(f"{target.full_name} not found in parent")


def message_full_name(file_proto: FileDescriptorProto, indexes: Sequence[int]) -> str:
    """
    메시지 인덱스를 파일 안의 완전한 타입 이름으로 변환합니다.

    Raises:
        IndexError: 인덱스가 파일 구조와 맞지 않을 때
    """
    if not indexes:
        raise IndexError("empty message index path")
    messages = file_proto.message_type
    names: list[str] = []
    for index in indexes:
        if not 0 <= index < len(messages):
            raise IndexError(f"message index {index} out of range ({len(messages)} types)")
        message = messages[index]
        names.append(message.name)
        messages = message.nested_type
    package = file_proto.package
    return ".".join([package, *names]) if package else ".".join(names)


def known_file_proto(file_name: str) -> FileDescriptorProto:
    """기본 풀에 이미 있는 well-known 파일의 FileDescriptorProto"""
    return to_file_proto(descriptor_pool.Default().FindFileByName(file_name))


def build_pool(
    root: FileDescriptorProto, dependencies: Iterable[FileDescriptorProto]
) -> tuple[descriptor_pool.DescriptorPool, FileDescriptor]:
    """
    독립 DescriptorPool 에 의존성부터 차례로 추가하고 root 파일 디스크립터를 반환합니다.

    dependencies 에 없는 import 는 기본 풀의 well-known 파일에서 찾습니다.

    Raises:
        DecodeError: import 를 해석할 수 없거나 디스크립터가 올바르지 않을 때
    """
    by_name = {proto.name: proto for proto in dependencies}
    by_name[root.name] = root
    pool = descriptor_pool.DescriptorPool()
    added: set[str] = set()

    def add(name: str, chain: tuple[str, ...]) -> None:
        if name in added:
            return
        if name in chain:
            raise DecodeError(f"circular schema import: {' -> '.join((*chain, name))}")
        proto = by_name.get(name)
        if proto is None:
            try:
                proto = known_file_proto(name)
            except KeyError as e:
                raise DecodeError(f"unresolved schema import: {name}") from e
        for dependency in proto.dependency:
            add(dependency, (*chain, name))
        try:
            pool.AddSerializedFile(proto.SerializeToString())
        except (TypeError, ValueError) as e:
            raise DecodeError(f"invalid schema file {name}: {e}") from e
        added.add(name)

    add(root.name, ())
    return pool, pool.FindFileByName(root.name)


def message_class_for(
    pool: descriptor_pool.DescriptorPool, full_name: str
) -> type[Message]:
    return message_factory.GetMessageClass(pool.FindMessageTypeByName(full_name))

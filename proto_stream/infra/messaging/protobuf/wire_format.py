"""Confluent Wire Format (Protobuf)

    byte 0      : 매직 바이트 (0x00)
    bytes 1..4  : 스키마 ID (big-endian uint32)
    bytes 5..   : 메시지 인덱스 배열 (zig-zag varint, 개수 먼저)
                  [0] 은 단일 바이트 0x00 으로 축약
    나머지      : Protobuf 인코딩 페이로드
"""

from __future__ import annotations

import struct
from collections.abc import Sequence
from dataclasses import dataclass

from proto_stream.core.types import (
    HEADER_SIZE,
    MAGIC_BYTE,
    FormatError,
    SerializationError,
)

_HEADER = struct.Struct(">BI")
_MAX_VARINT_BYTES = 10
_MAX_SCHEMA_ID = 0xFFFFFFFF


def zigzag_encode(value: int) -> int:
    return (value << 1) ^ (value >> 63)


def zigzag_decode(value: int) -> int:
    return (value >> 1) ^ -(value & 1)


def write_varint(buf: bytearray, value: int, zigzag: bool = True) -> None:
    """부호 없는 LEB128 varint 기록 (zigzag=True 면 먼저 zig-zag 변환)"""
    if zigzag:
        value = zigzag_encode(value)
    while True:
        towrite = value & 0x7F
        value >>= 7
        if value:
            buf.append(towrite | 0x80)
        else:
            buf.append(towrite)
            return


def read_varint(
    data: bytes | memoryview, offset: int, zigzag: bool = True
) -> tuple[int, int]:
    """varint 하나를 읽고 (값, 다음 오프셋) 을 반환합니다.

    Raises:
        FormatError: 데이터가 varint 중간에서 끝나거나 10바이트를 넘을 때
    """
    result = 0
    shift = 0
    start = offset
    while True:
        if offset >= len(data):
            raise FormatError("truncated message index varint", offset=start)
        if offset - start >= _MAX_VARINT_BYTES:
            raise FormatError("message index varint too long", offset=start)
        byte = data[offset]
        offset += 1
        result |= (byte & 0x7F) << shift
        if not byte & 0x80:
            break
        shift += 7
    return (zigzag_decode(result) if zigzag else result), offset


def encode_message_indexes(indexes: Sequence[int]) -> bytes:
    # 첫 번째 최상위 메시지([0])는 가장 흔하므로 0x00 한 바이트로 축약
    if list(indexes) == [0]:
        return b"\x00"
    buf = bytearray()
    write_varint(buf, len(indexes))
    for index in indexes:
        write_varint(buf, index)
    return bytes(buf)


def decode_message_indexes(data: bytes | memoryview, offset: int) -> tuple[list[int], int]:
    """메시지 인덱스 배열을 읽고 (인덱스 목록, 페이로드 시작 오프셋) 을 반환합니다."""
    count, pos = read_varint(data, offset)
    if count == 0:
        return [0], pos
    # 각 인덱스는 최소 1바이트이므로 남은 길이보다 클 수 없다
    if count < 0 or count > len(data) - pos:
        raise FormatError(f"invalid message index count {count}", offset=offset)
    indexes: list[int] = []
    for _ in range(count):
        index, pos = read_varint(data, pos)
        if index < 0:
            raise FormatError(f"negative message index {index}", offset=pos)
        indexes.append(index)
    return indexes, pos


def encode_header(schema_id: int) -> bytes:
    if not 0 <= schema_id <= _MAX_SCHEMA_ID:
        raise SerializationError(f"schema id out of range: {schema_id}", schema_id=schema_id)
    return _HEADER.pack(MAGIC_BYTE, schema_id)


def read_header(data: bytes | memoryview, subject: str | None = None) -> int:
    """매직 바이트를 검증하고 스키마 ID 를 반환합니다.

    Raises:
        FormatError: 헤더 길이 부족 또는 매직 바이트 불일치
    """
    if len(data) < HEADER_SIZE:
        raise FormatError(
            f"payload too short for wire header: {len(data)} byte(s)",
            subject=subject,
            offset=len(data),
        )
    magic, schema_id = _HEADER.unpack_from(data, 0)
    if magic != MAGIC_BYTE:
        raise FormatError(
            f"unknown magic byte {magic:#04x}, payload was not produced by a "
            "schema-registry-aware serializer",
            subject=subject,
            offset=0,
        )
    return schema_id


@dataclass(slots=True, frozen=True)
class WireEnvelope:
    """해석된 Wire Envelope"""

    schema_id: int
    message_indexes: tuple[int, ...]
    payload: bytes
    payload_offset: int


def encode_envelope(schema_id: int, message_indexes: Sequence[int], payload: bytes) -> bytes:
    return b"".join((encode_header(schema_id), encode_message_indexes(message_indexes), payload))


def parse_envelope(data: bytes, subject: str | None = None) -> WireEnvelope:
    """헤더 + 인덱스 + 페이로드를 한 번에 분해합니다 (레지스트리 조회 없음)."""
    schema_id = read_header(data, subject)
    try:
        indexes, offset = decode_message_indexes(data, HEADER_SIZE)
    except FormatError as e:
        raise FormatError(e.message, subject=subject, schema_id=schema_id, offset=e.offset) from e
    return WireEnvelope(
        schema_id=schema_id,
        message_indexes=tuple(indexes),
        payload=bytes(data[offset:]),
        payload_offset=offset,
    )

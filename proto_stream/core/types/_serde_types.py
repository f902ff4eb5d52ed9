"""직렬화 계층 공통 타입 별칭 및 Enum"""

from __future__ import annotations

from enum import StrEnum
from typing import Callable, Final, TypeAlias

from google.protobuf.message import Message

# Wire Envelope
MAGIC_BYTE: Final[int] = 0
SCHEMA_ID_SIZE: Final[int] = 4
HEADER_SIZE: Final[int] = 1 + SCHEMA_ID_SIZE

# 스키마 포맷 / 버전
PROTOBUF_SCHEMA_TYPE: Final[str] = "PROTOBUF"
LATEST_VERSION: Final[str] = "latest"
SERIALIZED_FORMAT: Final[str] = "serialized"

# Callables / Aliases
MessageDecoder: TypeAlias = Callable[[bytes], Message]
SchemaVersion: TypeAlias = int | str


class MessageField(StrEnum):
    """Subject 명명 규칙의 key/value 구분"""

    KEY = "key"
    VALUE = "value"


class CompatibilityLevel(StrEnum):
    """스키마 호환성 레벨"""

    BACKWARD = "BACKWARD"
    BACKWARD_TRANSITIVE = "BACKWARD_TRANSITIVE"
    FORWARD = "FORWARD"
    FORWARD_TRANSITIVE = "FORWARD_TRANSITIVE"
    FULL = "FULL"
    FULL_TRANSITIVE = "FULL_TRANSITIVE"
    NONE = "NONE"


class DecodeStage(StrEnum):
    """역직렬화 호출 단위 상태"""

    START = "start"
    MAGIC_CHECKED = "magic_checked"
    SCHEMA_RESOLVED = "schema_resolved"
    INDEX_RESOLVED = "index_resolved"
    PAYLOAD_DECODED = "payload_decoded"
    DONE = "done"
    FAILED = "failed"

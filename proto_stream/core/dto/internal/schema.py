from __future__ import annotations

import hashlib
from dataclasses import dataclass, field

from google.protobuf.message import Message

from proto_stream.core.types import PROTOBUF_SCHEMA_TYPE


def fingerprint_of(schema_str: str) -> str:
    """스키마 텍스트의 SHA-256 지문 (중복 제거 키)"""
    return hashlib.sha256(schema_str.encode("utf-8")).hexdigest()


@dataclass(slots=True, frozen=True)
class SchemaReference:
    """스키마 참조 (Protobuf import 대상 파일).

    name: import 경로 (예: common/money.proto)
    subject/version: 참조 스키마가 등록된 subject 와 버전
    """

    name: str
    subject: str
    version: int


@dataclass(slots=True, frozen=True)
class SchemaDescriptor:
    """해석이 끝난 불변 스키마.

    - (subject, version, schema_id) 로 식별
    - id 로만 조회한 경우 subject="" / version=None
    - fingerprint 는 schema_str 에서 자동 계산
    """

    schema_id: int
    schema_str: str
    subject: str = ""
    version: int | None = None
    schema_type: str = PROTOBUF_SCHEMA_TYPE
    references: tuple[SchemaReference, ...] = ()
    fingerprint: str = field(default="", compare=False)

    def __post_init__(self) -> None:
        if not self.fingerprint:
            # frozen=True 이므로 object.__setattr__ 사용
            object.__setattr__(self, "fingerprint", fingerprint_of(self.schema_str))


@dataclass(slots=True, frozen=True)
class DeserializedRecord:
    """역직렬화 결과 + 진단 정보.

    boxed: google.protobuf.Any 필드 경로 → 타입 레지스트리로 풀어낸 메시지
    """

    message: Message
    schema_id: int
    message_indexes: tuple[int, ...]
    boxed: dict[str, Message] = field(default_factory=dict)

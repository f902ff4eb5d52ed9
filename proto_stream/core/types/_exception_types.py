"""직렬화 계층 예외 타입 정의 모듈.

광범위한 Exception 사용을 지양하고, 호출자가 의도한 예외만 명시적으로
처리(재시도/중단)할 수 있도록 분류합니다.
"""

from __future__ import annotations

from enum import StrEnum
from typing import Final


class ErrorKind(StrEnum):
    """실패 종류 (역직렬화 상태 머신의 FAILED(kind))"""

    CONFIG = "config"
    NETWORK = "network"
    AUTH = "auth"
    FORMAT = "format"
    SCHEMA_NOT_FOUND = "schema_not_found"
    DECODE = "decode"
    UNREGISTERED_TYPE = "unregistered_type"
    SERIALIZATION = "serialization"
    REGISTRY = "registry"


class SerdeError(Exception):
    """직렬화 계층 기본 예외

    진단에 필요한 subject / schema_id / offset 을 함께 보관합니다.
    """

    kind: ErrorKind = ErrorKind.SERIALIZATION

    def __init__(
        self,
        message: str,
        *,
        subject: str | None = None,
        schema_id: int | None = None,
        offset: int | None = None,
    ) -> None:
        self.message = message
        self.subject = subject
        self.schema_id = schema_id
        self.offset = offset
        super().__init__(self._format())

    def _format(self) -> str:
        details = []
        if self.subject:
            details.append(f"subject={self.subject}")
        if self.schema_id is not None:
            details.append(f"schema_id={self.schema_id}")
        if self.offset is not None:
            details.append(f"offset={self.offset}")
        if not details:
            return self.message
        return f"{self.message} ({', '.join(details)})"


class ConfigError(SerdeError):
    """자격증명/URL/subject 누락 또는 잘못된 설정"""

    kind = ErrorKind.CONFIG


class FormatError(SerdeError):
    """Wire Envelope 형식 오류 (매직 바이트, 헤더 길이, 인덱스 varint)"""

    kind = ErrorKind.FORMAT


class DecodeError(SerdeError):
    """페이로드가 해석된 스키마와 맞지 않음"""

    kind = ErrorKind.DECODE


class UnregisteredTypeError(SerdeError):
    """타입 레지스트리에 없는 메시지 타입"""

    kind = ErrorKind.UNREGISTERED_TYPE

    def __init__(self, type_name: str, **kwargs) -> None:
        self.type_name = type_name
        super().__init__(f"Message type not registered: {type_name}", **kwargs)


class SerializationError(SerdeError):
    """직렬화 입력 오류 (Protobuf 메시지가 아님 등)"""

    kind = ErrorKind.SERIALIZATION


class RegistryError(SerdeError):
    """Schema Registry API 오류 기본 예외"""

    kind = ErrorKind.REGISTRY

    def __init__(
        self,
        message: str,
        *,
        status: int | None = None,
        error_code: int | None = None,
        **kwargs,
    ) -> None:
        self.status = status
        self.error_code = error_code
        super().__init__(message, **kwargs)


class NetworkError(RegistryError):
    """Registry 접속 불가/타임아웃 - 호출자 정책으로 재시도 가능"""

    kind = ErrorKind.NETWORK


class AuthError(RegistryError):
    """인증/인가 실패 - 재시도 불가"""

    kind = ErrorKind.AUTH


class SchemaNotFoundError(RegistryError):
    """스키마 id / subject / version 을 찾을 수 없음"""

    kind = ErrorKind.SCHEMA_NOT_FOUND


class SchemaCompatibilityError(RegistryError):
    """호환되지 않는 스키마 등록 시도 (HTTP 409)"""


class SchemaCacheConflictError(RegistryError):
    """같은 키에 다른 지문(fingerprint)의 스키마를 넣으려 할 때"""


# ----------------------------------------------------------------------------
# Exception Constants
# ----------------------------------------------------------------------------

# 재시도 대상 (호출자 정책)
RETRYABLE_REGISTRY_EXCEPTIONS: Final[tuple[type[BaseException], ...]] = (NetworkError,)

# 재시도해도 결과가 같은 예외
FATAL_SERDE_EXCEPTIONS: Final[tuple[type[BaseException], ...]] = (
    ConfigError,
    AuthError,
    FormatError,
    DecodeError,
    UnregisteredTypeError,
    SchemaNotFoundError,
    SchemaCompatibilityError,
)

"""통합 Settings 모듈 - 환경변수 기반

이 모듈의 역할:
    1. 코드에 합리적인 기본값 제공
    2. 환경변수로 오버라이드 (우선순위 높음)
    3. 타입 안전성 보장 (Pydantic 자동 검증)

설정 우선순위:
    1. 환경변수 (최우선) - export SCHEMA_REGISTRY_URL=...
    2. .env 파일 - 현재 디렉토리 또는 config/.env
    3. 코드 기본값 (settings.py 내부)

예제 프로그램과 동일한 환경변수 이름(BOOTSTRAP_SERVERS, TOPIC_NAME,
CONSUMER_GROUP_ID ...)도 별칭으로 그대로 인식합니다.
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from proto_stream.core.types import ConfigError

config_dir = Path(__file__).parent.parent.parent / "config"


def env_settings(prefix: str) -> SettingsConfigDict:
    """환경변수 + .env 통합 설정

    Args:
        prefix: 환경변수 접두사 (예: KAFKA_, SCHEMA_REGISTRY_)
    """
    return SettingsConfigDict(
        env_prefix=prefix,
        env_file=(config_dir / ".env", ".env"),
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )


def _aliases(*names: str) -> AliasChoices:
    return AliasChoices(*names)


class SchemaRegistrySettings(BaseSettings):
    """Schema Registry 설정

    환경변수 오버라이드:
        SCHEMA_REGISTRY_URL: Registry URL (https:// 권장)
        SCHEMA_REGISTRY_API_KEY / SCHEMA_REGISTRY_API_SECRET: Basic Auth 자격증명
        SCHEMA_REGISTRY_TIMEOUT: HTTP 타임아웃 초 (기본: 30)
        SCHEMA_REGISTRY_CACHE_CAPACITY: 스키마 캐시 용량, 0이면 무제한 (기본: 0)
        SCHEMA_REGISTRY_LATEST_TTL_SEC: 최신 버전 캐시 TTL, 0이면 캐싱 안 함 (기본: 300)
    """

    url: str = ""
    api_key: str | None = None
    api_secret: str | None = None
    timeout: float = 30.0
    cache_capacity: int = 0
    latest_ttl_sec: float = 300.0

    model_config = env_settings("SCHEMA_REGISTRY_")

    @property
    def auth(self) -> tuple[str, str] | None:
        if self.api_key and self.api_secret:
            return (self.api_key, self.api_secret)
        return None


class SerdeSettings(BaseSettings):
    """Protobuf 직렬화/역직렬화 정책

    환경변수 오버라이드:
        SERDE_AUTO_REGISTER_SCHEMAS: 첫 사용 시 스키마 자동 등록 (기본: true)
        SERDE_USE_LATEST_VERSION: 등록 대신 subject의 최신 버전 사용 (기본: false)
        SERDE_SKIP_KNOWN_TYPES: google/protobuf/* 의존성은 참조 등록 생략 (기본: true)
        SERDE_REQUIRE_REGISTERED_TYPES: 최상위 타입도 타입 레지스트리 등록 필수 (기본: true)
        SERDE_SUBJECT_NAME_STRATEGY: Producer subject 이름 전략 topic | record | topic_record (기본: topic)
    """

    auto_register_schemas: bool = True
    use_latest_version: bool = False
    skip_known_types: bool = True
    require_registered_types: bool = True
    subject_name_strategy: Literal["topic", "record", "topic_record"] = "topic"

    model_config = env_settings("SERDE_")


class KafkaSettings(BaseSettings):
    """Kafka 설정 (예제 Producer / Consumer 용)

    환경변수 오버라이드:
        BOOTSTRAP_SERVERS: 브로커 주소
        KAFKA_API_KEY / KAFKA_API_SECRET: SASL PLAIN 자격증명
        TOPIC_NAME: Producer 대상 토픽
        TOPIC_NAMES: Consumer 구독 토픽 (쉼표 구분)
        CONSUMER_GROUP_ID: Consumer 그룹 ID
        CONSUMER_AUTO_OFFSET: 오프셋 리셋 정책 (기본: earliest)
        KAFKA_SECURITY_PROTOCOL: 보안 프로토콜 (기본: SASL_SSL)
        KAFKA_SASL_MECHANISM: SASL 메커니즘 (기본: PLAIN)
        KAFKA_SESSION_TIMEOUT_MS: Consumer 세션 타임아웃 (기본: 10000)
    """

    bootstrap_servers: str = Field(
        "", validation_alias=_aliases("KAFKA_BOOTSTRAP_SERVERS", "BOOTSTRAP_SERVERS")
    )
    api_key: str = ""
    api_secret: str = ""
    topic_name: str = Field("", validation_alias=_aliases("KAFKA_TOPIC_NAME", "TOPIC_NAME"))
    topic_names: str = Field(
        "", validation_alias=_aliases("KAFKA_TOPIC_NAMES", "TOPIC_NAMES")
    )
    consumer_group_id: str = Field(
        "", validation_alias=_aliases("KAFKA_CONSUMER_GROUP_ID", "CONSUMER_GROUP_ID")
    )
    auto_offset_reset: str = Field(
        "earliest",
        validation_alias=_aliases("KAFKA_AUTO_OFFSET_RESET", "CONSUMER_AUTO_OFFSET"),
    )
    security_protocol: str = "SASL_SSL"
    sasl_mechanism: str = "PLAIN"
    session_timeout_ms: int = 10000

    model_config = env_settings("KAFKA_")

    @property
    def topics(self) -> list[str]:
        """TOPIC_NAMES를 쉼표로 분리 (비어 있으면 TOPIC_NAME 사용)"""
        raw = self.topic_names or self.topic_name
        return [t.strip() for t in raw.split(",") if t.strip()]


class LoggingSettings(BaseSettings):
    """로깅 설정

    환경변수 오버라이드:
        LOG_LEVEL: 로깅 레벨 (기본: INFO)
        LOG_TO_FILE: 파일 로깅 여부 (기본: false)
        LOG_DIR: 로그 디렉토리 (기본: logs)
    """

    level: str = "INFO"
    to_file: bool = False
    dir: str = "logs"

    model_config = env_settings("LOG_")


def env_name(settings: BaseSettings, field: str) -> str:
    """필드에 대응하는 환경변수 이름 (별칭이 있으면 마지막 별칭)"""
    info = type(settings).model_fields[field]
    alias = info.validation_alias
    if isinstance(alias, AliasChoices):
        return str(alias.choices[-1])
    if isinstance(alias, str):
        return alias
    prefix = settings.model_config.get("env_prefix", "")
    return f"{prefix}{field}".upper()


def require_fields(settings: BaseSettings, *fields: str) -> None:
    """필수 설정 누락 검증

    Raises:
        ConfigError: 비어 있는 필드가 하나라도 있으면 환경변수 이름 목록과 함께 발생
    """
    missing = [env_name(settings, f) for f in fields if not getattr(settings, f)]
    if missing:
        raise ConfigError(f"Missing required environment variable(s): {', '.join(missing)}")


# ========================================
# 설정 인스턴스
# ========================================
# 라이브러리 코어는 이 인스턴스에 의존하지 않고, 명시적으로 전달받은 값만 사용한다.

schema_registry_settings = SchemaRegistrySettings()
serde_settings = SerdeSettings()
kafka_settings = KafkaSettings()
logging_settings = LoggingSettings()

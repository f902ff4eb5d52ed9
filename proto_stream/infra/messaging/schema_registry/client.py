"""
Schema Registry 클라이언트 구현

Confluent Schema Registry REST API 와의 통신을 담당하며, 스키마 등록, 조회,
호환성 검사 등을 제공합니다.

- SchemaRegistryClient: requests 기반 동기(블로킹) 클라이언트
- AsyncSchemaRegistryClient: aiohttp 기반 비동기(취소 가능) 클라이언트

두 클라이언트 모두 호출자가 만든 SchemaCache 를 먼저 확인하고, 미스일 때만
네트워크를 호출한 뒤 응답을 캐시에 채워 넣고 반환합니다. 재시도는 하지 않습니다.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Callable, Hashable, Iterable
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any, TypeVar
from urllib.parse import quote

import aiohttp
import orjson
import requests
from pydantic import BaseModel, ValidationError

from proto_stream.common.logger import PipelineLogger
from proto_stream.core.dto.internal.schema import (
    SchemaDescriptor,
    SchemaReference,
    fingerprint_of,
)
from proto_stream.core.dto.io.registry import (
    CompatibilityConfigDTO,
    CompatibilityResponseDTO,
    ErrorResponseDTO,
    RegisterResponseDTO,
    SchemaReferenceDTO,
    SchemaRequestDTO,
    SchemaResponseDTO,
)
from proto_stream.core.types import (
    LATEST_VERSION,
    PROTOBUF_SCHEMA_TYPE,
    SERIALIZED_FORMAT,
    AuthError,
    CompatibilityLevel,
    ConfigError,
    NetworkError,
    RegistryError,
    SchemaCacheConflictError,
    SchemaCompatibilityError,
    SchemaNotFoundError,
    SchemaVersion,
)
from proto_stream.infra.messaging.schema_registry.cache import SchemaCache

logger = PipelineLogger.get_logger("schema_registry", "registry")

CONTENT_TYPE = "application/vnd.schemaregistry.v1+json"

DTO = TypeVar("DTO", bound=BaseModel)
T = TypeVar("T")


@dataclass(slots=True, frozen=True)
class RegistryRequest:
    """단일 Registry HTTP 호출 명세 (에러 진단용 subject / schema_id 포함)"""

    method: str
    path: str
    body: dict[str, Any] | None = None
    params: dict[str, str] | None = None
    subject: str | None = None
    schema_id: int | None = None


def _subject_path(subject: str) -> str:
    # google/protobuf/any.proto 같은 subject 도 경로 한 칸으로 들어가야 한다
    return quote(subject, safe="")


def schema_key(schema_str: str, references: Iterable[SchemaReference] = ()) -> str:
    """(스키마 텍스트 + 참조) 단위 중복 제거 키"""
    refs = ",".join(f"{r.name}={r.subject}@{r.version}" for r in references)
    return fingerprint_of(f"{schema_str}|{refs}") if refs else fingerprint_of(schema_str)


def parse_auth(auth: tuple[str, str] | str | None) -> tuple[str, str] | None:
    """Basic Auth 자격증명 정규화

    Args:
        auth: (key, secret) 튜플 또는 "key:secret" user-info 문자열
    """
    if auth is None:
        return None
    if isinstance(auth, str):
        key, sep, secret = auth.partition(":")
        if not sep or not key or not secret:
            raise ConfigError("basic auth user info must be 'key:secret'")
        return (key, secret)
    key, secret = auth
    if not key or not secret:
        raise ConfigError("basic auth requires both api key and api secret")
    return (key, secret)


class _BaseRegistryClient:
    """요청 명세 생성, 응답 해석, 캐시 반영 로직 (I/O 없음)"""

    def __init__(
        self,
        base_url: str,
        auth: tuple[str, str] | str | None = None,
        timeout: float = 30.0,
        cache: SchemaCache | None = None,
        schema_format: str | None = SERIALIZED_FORMAT,
    ) -> None:
        """
        Args:
            base_url: Registry URL (https:// 권장)
            auth: Basic Auth 자격증명
            timeout: HTTP 요청 타임아웃 (초)
            cache: 공유할 스키마 캐시 (없으면 무제한 캐시 생성)
            schema_format: 스키마 조회 시 format 쿼리 (Protobuf 는 "serialized")
        """
        if not base_url:
            raise ConfigError("schema registry url is required")
        if not base_url.startswith(("https://", "http://")):
            raise ConfigError(f"schema registry url must be http(s): {base_url}")

        self.base_url = base_url.rstrip("/")
        self.auth = parse_auth(auth)
        self.timeout = timeout
        self.cache = cache if cache is not None else SchemaCache()
        self.schema_format = schema_format

    @classmethod
    def from_settings(cls, settings, cache: SchemaCache | None = None):
        """SchemaRegistrySettings 로부터 생성"""
        if cache is None:
            cache = SchemaCache(
                capacity=settings.cache_capacity or None,
                latest_ttl_sec=settings.latest_ttl_sec,
            )
        return cls(base_url=settings.url, auth=settings.auth, timeout=settings.timeout, cache=cache)

    def _url(self, path: str) -> str:
        return f"{self.base_url}/{path.lstrip('/')}"

    def _format_params(self) -> dict[str, str] | None:
        return {"format": self.schema_format} if self.schema_format else None

    # ------------------------------------------------------------------
    # 요청 명세
    # ------------------------------------------------------------------
    @staticmethod
    def _schema_body(
        schema_str: str, references: Iterable[SchemaReference], schema_type: str
    ) -> dict[str, Any]:
        return SchemaRequestDTO(
            schema=schema_str,
            schemaType=schema_type,
            references=[SchemaReferenceDTO.from_domain(r) for r in references],
        ).to_body()

    def _register_request(
        self,
        subject: str,
        schema_str: str,
        references: Iterable[SchemaReference],
        schema_type: str,
    ) -> RegistryRequest:
        return RegistryRequest(
            "POST",
            f"subjects/{_subject_path(subject)}/versions",
            body=self._schema_body(schema_str, references, schema_type),
            subject=subject,
        )

    def _lookup_request(self, schema_id: int) -> RegistryRequest:
        return RegistryRequest(
            "GET",
            f"schemas/ids/{schema_id}",
            params=self._format_params(),
            schema_id=schema_id,
        )

    def _subject_version_request(self, subject: str, version: SchemaVersion) -> RegistryRequest:
        return RegistryRequest(
            "GET",
            f"subjects/{_subject_path(subject)}/versions/{version}",
            params=self._format_params(),
            subject=subject,
        )

    def _lookup_schema_request(
        self,
        subject: str,
        schema_str: str,
        references: Iterable[SchemaReference],
        schema_type: str,
    ) -> RegistryRequest:
        return RegistryRequest(
            "POST",
            f"subjects/{_subject_path(subject)}",
            body=self._schema_body(schema_str, references, schema_type),
            subject=subject,
        )

    def _compatibility_request(
        self,
        subject: str,
        schema_str: str,
        references: Iterable[SchemaReference],
        schema_type: str,
        version: SchemaVersion,
    ) -> RegistryRequest:
        return RegistryRequest(
            "POST",
            f"compatibility/subjects/{_subject_path(subject)}/versions/{version}",
            body=self._schema_body(schema_str, references, schema_type),
            subject=subject,
        )

    @staticmethod
    def _config_path(subject: str | None) -> str:
        return f"config/{_subject_path(subject)}" if subject else "config"

    def _get_config_request(self, subject: str | None) -> RegistryRequest:
        # subject 별 설정이 없으면 전역 설정으로 응답
        params = {"defaultToGlobal": "true"} if subject else None
        return RegistryRequest("GET", self._config_path(subject), params=params, subject=subject)

    # ------------------------------------------------------------------
    # 응답 해석
    # ------------------------------------------------------------------
    def _handle_response(self, status: int, content: bytes, request: RegistryRequest) -> Any:
        """HTTP 상태코드를 예외 계층으로 변환하고 JSON 본문을 반환합니다."""
        if status >= 400:
            error = self._parse_error(content)
            detail = error.message or f"HTTP {status}"
            msg = f"{request.method} /{request.path} failed: {detail}"
            context = {
                "status": status,
                "error_code": error.error_code,
                "subject": request.subject,
                "schema_id": request.schema_id,
            }
            if status in (401, 403):
                raise AuthError(msg, **context)
            if status == 404:
                raise SchemaNotFoundError(msg, **context)
            if status == 409:
                raise SchemaCompatibilityError(msg, **context)
            raise RegistryError(msg, **context)

        if not content:
            return None
        try:
            return orjson.loads(content)
        except orjson.JSONDecodeError as e:
            raise RegistryError(
                f"invalid JSON from registry: {e}",
                status=status,
                subject=request.subject,
                schema_id=request.schema_id,
            ) from e

    @staticmethod
    def _parse_error(content: bytes) -> ErrorResponseDTO:
        try:
            return ErrorResponseDTO.model_validate(orjson.loads(content))
        except (orjson.JSONDecodeError, ValidationError, TypeError):
            text = content.decode("utf-8", errors="replace").strip()
            return ErrorResponseDTO(message=text[:200])

    @staticmethod
    def _parse(model: type[DTO], payload: Any, request: RegistryRequest) -> DTO:
        try:
            return model.model_validate(payload)
        except ValidationError as e:
            raise RegistryError(
                f"unexpected registry response for /{request.path}: {e.error_count()} error(s)",
                subject=request.subject,
                schema_id=request.schema_id,
            ) from e

    def _to_descriptor(
        self, payload: Any, request: RegistryRequest, *, schema_id: int | None = None
    ) -> SchemaDescriptor:
        dto = self._parse(SchemaResponseDTO, payload, request)
        try:
            return dto.to_domain(schema_id=schema_id)
        except ValueError as e:
            raise RegistryError(
                str(e), subject=request.subject, schema_id=request.schema_id
            ) from e

    # ------------------------------------------------------------------
    # 캐시 반영
    # ------------------------------------------------------------------
    def _remember(self, store: Callable[[], T], fallback: T) -> T:
        """캐시 저장 실패는 기록만 하고 네트워크 결과를 그대로 돌려줍니다."""
        try:
            return store()
        except SchemaCacheConflictError as e:
            logger.warning(f"스키마 캐시 반영 실패, 캐싱 없이 진행: {e}")
            return fallback

    def _remember_by_id(self, schema_id: int, descriptor: SchemaDescriptor) -> SchemaDescriptor:
        return self._remember(lambda: self.cache.put(schema_id, descriptor), descriptor)

    def _remember_subject_version(self, descriptor: SchemaDescriptor) -> SchemaDescriptor:
        if descriptor.version is None or not descriptor.subject:
            return self._remember_by_id(descriptor.schema_id, descriptor)
        return self._remember(
            lambda: self.cache.put_by_subject_version(
                descriptor.subject, descriptor.version, descriptor
            ),
            descriptor,
        )

    def _remember_registered(
        self, subject: str, key: str, descriptor: SchemaDescriptor
    ) -> SchemaDescriptor:
        return self._remember(
            lambda: self.cache.put_registered(subject, key, descriptor), descriptor
        )

    @staticmethod
    def _registered_descriptor(
        subject: str,
        schema_id: int,
        schema_str: str,
        references: tuple[SchemaReference, ...],
        schema_type: str,
    ) -> SchemaDescriptor:
        # 등록 응답은 id 만 돌려주므로 버전은 비워 둔다
        return SchemaDescriptor(
            schema_id=schema_id,
            schema_str=schema_str,
            subject=subject,
            schema_type=schema_type,
            references=references,
        )

    def _resolve_latest(self, subject: str, descriptor: SchemaDescriptor) -> SchemaDescriptor:
        resolved = self._remember_subject_version(descriptor)
        self.cache.put_latest(subject, resolved)
        return resolved

    @staticmethod
    def _with_subject(descriptor: SchemaDescriptor, subject: str) -> SchemaDescriptor:
        # 일부 Registry 응답은 subject 를 생략한다
        if descriptor.subject:
            return descriptor
        return SchemaDescriptor(
            schema_id=descriptor.schema_id,
            schema_str=descriptor.schema_str,
            subject=subject,
            version=descriptor.version,
            schema_type=descriptor.schema_type,
            references=descriptor.references,
        )


class SchemaRegistryClient(_BaseRegistryClient):
    """
    Schema Registry 동기 클라이언트

    requests.Session 하나를 재사용하며, 모든 호출은 호출 스레드를 블로킹합니다.
    """

    def __init__(self, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self._session: requests.Session | None = None

    def __enter__(self) -> SchemaRegistryClient:
        self._ensure_session()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def _ensure_session(self) -> requests.Session:
        """HTTP 세션을 생성하거나 재사용합니다."""
        if self._session is None:
            session = requests.Session()
            session.auth = self.auth
            session.headers.update({"Accept": CONTENT_TYPE, "Content-Type": CONTENT_TYPE})
            self._session = session
        return self._session

    def close(self) -> None:
        """HTTP 세션을 종료합니다."""
        if self._session is not None:
            self._session.close()
            self._session = None

    def _send(self, request: RegistryRequest) -> Any:
        """Schema Registry API 요청을 수행합니다."""
        session = self._ensure_session()
        logger.debug(f"registry 요청: {request.method} /{request.path}")
        try:
            with session.request(
                request.method,
                self._url(request.path),
                data=orjson.dumps(request.body) if request.body is not None else None,
                params=request.params,
                timeout=self.timeout,
            ) as response:
                return self._handle_response(response.status_code, response.content, request)
        except requests.Timeout as e:
            raise NetworkError(
                f"registry request timed out after {self.timeout}s",
                subject=request.subject,
                schema_id=request.schema_id,
            ) from e
        except requests.RequestException as e:
            raise NetworkError(
                f"registry request failed: {e}",
                subject=request.subject,
                schema_id=request.schema_id,
            ) from e

    def register(
        self,
        subject: str,
        schema_str: str,
        references: Iterable[SchemaReference] = (),
        schema_type: str = PROTOBUF_SCHEMA_TYPE,
    ) -> int:
        """
        스키마를 등록하고 스키마 ID를 반환합니다. 이미 등록된 스키마면 기존 ID.

        Args:
            subject: 스키마 주제명
            schema_str: 스키마 문자열
            references: 참조 스키마 목록
            schema_type: 스키마 타입 (기본값: PROTOBUF)
        """
        references = tuple(references)
        key = schema_key(schema_str, references)
        cached = self.cache.get_registered(subject, key)
        if cached is not None:
            return cached.schema_id

        with self.cache.populate_lock(("schema", subject, key)):
            cached = self.cache.get_registered(subject, key)
            if cached is not None:
                return cached.schema_id

            request = self._register_request(subject, schema_str, references, schema_type)
            schema_id = self._parse(RegisterResponseDTO, self._send(request), request).id
            logger.info(f"스키마 등록 완료: subject={subject}, id={schema_id}")
            descriptor = self._registered_descriptor(
                subject, schema_id, schema_str, references, schema_type
            )
            return self._remember_registered(subject, key, descriptor).schema_id

    def lookup(self, schema_id: int) -> SchemaDescriptor:
        """
        스키마 ID로 스키마를 조회합니다.

        ID 로 조회한 경우 subject / version 정보는 없습니다.
        """
        cached = self.cache.get(schema_id)
        if cached is not None:
            return cached

        with self.cache.populate_lock(("id", schema_id)):
            cached = self.cache.get(schema_id)
            if cached is not None:
                return cached

            request = self._lookup_request(schema_id)
            descriptor = self._to_descriptor(self._send(request), request, schema_id=schema_id)
            return self._remember_by_id(schema_id, descriptor)

    def lookup_by_subject_version(self, subject: str, version: SchemaVersion) -> SchemaDescriptor:
        """subject 의 특정 버전 조회 ("latest" 는 lookup_latest 로 위임)"""
        if version == LATEST_VERSION:
            return self.lookup_latest(subject)
        version = int(version)
        cached = self.cache.get_by_subject_version(subject, version)
        if cached is not None:
            return cached

        with self.cache.populate_lock(("version", subject, version)):
            cached = self.cache.get_by_subject_version(subject, version)
            if cached is not None:
                return cached

            request = self._subject_version_request(subject, version)
            descriptor = self._with_subject(self._to_descriptor(self._send(request), request), subject)
            return self._remember_subject_version(descriptor)

    def lookup_latest(self, subject: str) -> SchemaDescriptor:
        """주제의 최신 스키마를 조회합니다 (latest_ttl_sec 동안 캐시)."""
        cached = self.cache.get_latest(subject)
        if cached is not None:
            return cached

        with self.cache.populate_lock(("latest", subject)):
            cached = self.cache.get_latest(subject)
            if cached is not None:
                return cached

            request = self._subject_version_request(subject, LATEST_VERSION)
            descriptor = self._with_subject(
                self._to_descriptor(self._send(request), request), subject
            )
            return self._resolve_latest(subject, descriptor)

    def lookup_schema(
        self,
        subject: str,
        schema_str: str,
        references: Iterable[SchemaReference] = (),
        schema_type: str = PROTOBUF_SCHEMA_TYPE,
    ) -> SchemaDescriptor:
        """
        이미 등록된 스키마의 id / version 을 조회합니다 (등록하지 않음).

        Raises:
            SchemaNotFoundError: subject 또는 스키마가 등록되어 있지 않을 때
        """
        references = tuple(references)
        key = schema_key(schema_str, references)
        cached = self.cache.get_registered(subject, key)
        if cached is not None and cached.version is not None:
            return cached

        with self.cache.populate_lock(("schema", subject, key)):
            cached = self.cache.get_registered(subject, key)
            if cached is not None and cached.version is not None:
                return cached

            request = self._lookup_schema_request(subject, schema_str, references, schema_type)
            descriptor = self._with_subject(self._to_descriptor(self._send(request), request), subject)
            return self._remember_registered(subject, key, descriptor)

    def check_compatibility(
        self,
        subject: str,
        schema_str: str,
        references: Iterable[SchemaReference] = (),
        version: SchemaVersion = LATEST_VERSION,
        schema_type: str = PROTOBUF_SCHEMA_TYPE,
    ) -> bool:
        """
        스키마 호환성을 검사합니다. 결과는 Registry 설정에 따라 달라지므로 캐싱하지 않습니다.

        Returns:
            호환 가능하면 True, 아니면 False
        """
        request = self._compatibility_request(subject, schema_str, references, schema_type, version)
        return self._parse(CompatibilityResponseDTO, self._send(request), request).is_compatible

    def get_versions(self, subject: str) -> list[int]:
        """주제의 모든 스키마 버전 목록을 조회합니다."""
        return self._send(
            RegistryRequest("GET", f"subjects/{_subject_path(subject)}/versions", subject=subject)
        )

    def list_subjects(self) -> list[str]:
        """등록된 모든 스키마 주제 목록을 조회합니다."""
        return self._send(RegistryRequest("GET", "subjects"))

    def delete_subject(self, subject: str, permanent: bool = False) -> list[int]:
        """주제를 삭제하고 관련 캐시를 비웁니다."""
        params = {"permanent": "true"} if permanent else None
        response = self._send(
            RegistryRequest(
                "DELETE", f"subjects/{_subject_path(subject)}", params=params, subject=subject
            )
        )
        self.cache.invalidate_subject(subject)
        logger.info(f"주제 삭제 완료: subject={subject}, permanent={permanent}")
        return response

    def get_compatibility_level(self, subject: str | None = None) -> CompatibilityLevel:
        request = self._get_config_request(subject)
        level = self._parse(CompatibilityConfigDTO, self._send(request), request).level
        return CompatibilityLevel(level or CompatibilityLevel.BACKWARD)

    def set_compatibility_level(
        self, level: CompatibilityLevel, subject: str | None = None
    ) -> CompatibilityLevel:
        request = RegistryRequest(
            "PUT", self._config_path(subject), body={"compatibility": level.value}, subject=subject
        )
        self._send(request)
        logger.info(f"호환성 레벨 설정: subject={subject}, level={level.value}")
        return level


class AsyncSchemaRegistryClient(_BaseRegistryClient):
    """
    Schema Registry 비동기 클라이언트

    aiohttp 세션 하나를 재사용합니다. 호출 태스크가 취소되면 진행 중이던 응답은
    async with 블록에서 해제됩니다. 같은 키의 동시 미스는 키별 asyncio.Lock 으로
    한 번의 요청으로 합쳐집니다.
    """

    def __init__(self, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self._session: aiohttp.ClientSession | None = None
        # [락, 사용자 수], 사용자가 없으면 제거
        self._key_locks: dict[Hashable, list] = {}

    async def __aenter__(self) -> AsyncSchemaRegistryClient:
        await self._ensure_session()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def _ensure_session(self) -> aiohttp.ClientSession:
        """HTTP 세션을 생성하거나 재사용합니다."""
        if self._session is None or self._session.closed:
            connector = aiohttp.TCPConnector(limit=100, limit_per_host=30)
            timeout = aiohttp.ClientTimeout(total=self.timeout)

            auth = None
            if self.auth:
                auth = aiohttp.BasicAuth(self.auth[0], self.auth[1])

            self._session = aiohttp.ClientSession(
                connector=connector,
                timeout=timeout,
                auth=auth,
                headers={"Accept": CONTENT_TYPE, "Content-Type": CONTENT_TYPE},
            )
        return self._session

    async def close(self) -> None:
        """HTTP 세션을 종료합니다."""
        if self._session and not self._session.closed:
            await self._session.close()

    @asynccontextmanager
    async def _key_lock(self, key: Hashable) -> AsyncIterator[None]:
        entry = self._key_locks.get(key)
        if entry is None:
            entry = self._key_locks[key] = [asyncio.Lock(), 0]
        entry[1] += 1
        try:
            async with entry[0]:
                yield
        finally:
            entry[1] -= 1
            if entry[1] == 0:
                del self._key_locks[key]

    async def _send(self, request: RegistryRequest) -> Any:
        """Schema Registry API 요청을 수행합니다."""
        session = await self._ensure_session()
        await logger.adebug(f"registry 요청: {request.method} /{request.path}")
        try:
            async with session.request(
                request.method,
                self._url(request.path),
                data=orjson.dumps(request.body) if request.body is not None else None,
                params=request.params,
            ) as response:
                content = await response.read()
                return self._handle_response(response.status, content, request)
        except asyncio.TimeoutError as e:
            raise NetworkError(
                f"registry request timed out after {self.timeout}s",
                subject=request.subject,
                schema_id=request.schema_id,
            ) from e
        except aiohttp.ClientError as e:
            raise NetworkError(
                f"registry request failed: {e}",
                subject=request.subject,
                schema_id=request.schema_id,
            ) from e

    async def register(
        self,
        subject: str,
        schema_str: str,
        references: Iterable[SchemaReference] = (),
        schema_type: str = PROTOBUF_SCHEMA_TYPE,
    ) -> int:
        """스키마를 등록하고 스키마 ID를 반환합니다."""
        references = tuple(references)
        key = schema_key(schema_str, references)
        cached = self.cache.get_registered(subject, key)
        if cached is not None:
            return cached.schema_id

        async with self._key_lock(("schema", subject, key)):
            cached = self.cache.get_registered(subject, key)
            if cached is not None:
                return cached.schema_id

            request = self._register_request(subject, schema_str, references, schema_type)
            schema_id = self._parse(RegisterResponseDTO, await self._send(request), request).id
            await logger.ainfo(f"스키마 등록 완료: subject={subject}, id={schema_id}")
            descriptor = self._registered_descriptor(
                subject, schema_id, schema_str, references, schema_type
            )
            return self._remember_registered(subject, key, descriptor).schema_id

    async def lookup(self, schema_id: int) -> SchemaDescriptor:
        """스키마 ID로 스키마를 조회합니다."""
        cached = self.cache.get(schema_id)
        if cached is not None:
            return cached

        async with self._key_lock(("id", schema_id)):
            cached = self.cache.get(schema_id)
            if cached is not None:
                return cached

            request = self._lookup_request(schema_id)
            descriptor = self._to_descriptor(await self._send(request), request, schema_id=schema_id)
            return self._remember_by_id(schema_id, descriptor)

    async def lookup_by_subject_version(
        self, subject: str, version: SchemaVersion
    ) -> SchemaDescriptor:
        """subject 의 특정 버전 조회"""
        if version == LATEST_VERSION:
            return await self.lookup_latest(subject)
        version = int(version)
        cached = self.cache.get_by_subject_version(subject, version)
        if cached is not None:
            return cached

        async with self._key_lock(("version", subject, version)):
            cached = self.cache.get_by_subject_version(subject, version)
            if cached is not None:
                return cached

            request = self._subject_version_request(subject, version)
            descriptor = self._with_subject(
                self._to_descriptor(await self._send(request), request), subject
            )
            return self._remember_subject_version(descriptor)

    async def lookup_latest(self, subject: str) -> SchemaDescriptor:
        """주제의 최신 스키마를 조회합니다."""
        cached = self.cache.get_latest(subject)
        if cached is not None:
            return cached

        async with self._key_lock(("latest", subject)):
            cached = self.cache.get_latest(subject)
            if cached is not None:
                return cached

            request = self._subject_version_request(subject, LATEST_VERSION)
            descriptor = self._with_subject(
                self._to_descriptor(await self._send(request), request), subject
            )
            return self._resolve_latest(subject, descriptor)

    async def lookup_schema(
        self,
        subject: str,
        schema_str: str,
        references: Iterable[SchemaReference] = (),
        schema_type: str = PROTOBUF_SCHEMA_TYPE,
    ) -> SchemaDescriptor:
        """이미 등록된 스키마의 id / version 을 조회합니다 (등록하지 않음)."""
        references = tuple(references)
        key = schema_key(schema_str, references)
        cached = self.cache.get_registered(subject, key)
        if cached is not None and cached.version is not None:
            return cached

        async with self._key_lock(("schema", subject, key)):
            cached = self.cache.get_registered(subject, key)
            if cached is not None and cached.version is not None:
                return cached

            request = self._lookup_schema_request(subject, schema_str, references, schema_type)
            descriptor = self._with_subject(
                self._to_descriptor(await self._send(request), request), subject
            )
            return self._remember_registered(subject, key, descriptor)

    async def check_compatibility(
        self,
        subject: str,
        schema_str: str,
        references: Iterable[SchemaReference] = (),
        version: SchemaVersion = LATEST_VERSION,
        schema_type: str = PROTOBUF_SCHEMA_TYPE,
    ) -> bool:
        """스키마 호환성을 검사합니다 (캐싱하지 않음)."""
        request = self._compatibility_request(subject, schema_str, references, schema_type, version)
        payload = await self._send(request)
        return self._parse(CompatibilityResponseDTO, payload, request).is_compatible

    async def get_versions(self, subject: str) -> list[int]:
        return await self._send(
            RegistryRequest("GET", f"subjects/{_subject_path(subject)}/versions", subject=subject)
        )

    async def list_subjects(self) -> list[str]:
        return await self._send(RegistryRequest("GET", "subjects"))

    async def delete_subject(self, subject: str, permanent: bool = False) -> list[int]:
        params = {"permanent": "true"} if permanent else None
        response = await self._send(
            RegistryRequest(
                "DELETE", f"subjects/{_subject_path(subject)}", params=params, subject=subject
            )
        )
        self.cache.invalidate_subject(subject)
        await logger.ainfo(f"주제 삭제 완료: subject={subject}, permanent={permanent}")
        return response

    async def get_compatibility_level(self, subject: str | None = None) -> CompatibilityLevel:
        request = self._get_config_request(subject)
        level = self._parse(CompatibilityConfigDTO, await self._send(request), request).level
        return CompatibilityLevel(level or CompatibilityLevel.BACKWARD)

    async def set_compatibility_level(
        self, level: CompatibilityLevel, subject: str | None = None
    ) -> CompatibilityLevel:
        request = RegistryRequest(
            "PUT", self._config_path(subject), body={"compatibility": level.value}, subject=subject
        )
        await self._send(request)
        await logger.ainfo(f"호환성 레벨 설정: subject={subject}, level={level.value}")
        return level

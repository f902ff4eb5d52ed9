"""스키마 캐시

Registry 조회 결과를 프로세스 메모리에 보관합니다.

- schema_id → SchemaDescriptor
- (subject, version) → SchemaDescriptor
- (subject, 스키마 키) → 등록된 SchemaDescriptor  (등록/조회 중복 제거)
- subject → 최신 SchemaDescriptor (TTL)

모든 인덱스는 하나의 락으로 보호되며, 항목은 완성된 불변 객체로만 들어갑니다.
capacity 를 주면 인덱스별 LRU 로 축출합니다 (기본: 무제한).
"""

from __future__ import annotations

import threading
import time
from collections import OrderedDict
from collections.abc import Hashable, Iterator
from contextlib import contextmanager
from typing import Generic, TypeVar

from proto_stream.core.dto.internal.schema import SchemaDescriptor
from proto_stream.core.types import SchemaCacheConflictError

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")


class _LRUIndex(Generic[K, V]):
    """용량 제한이 있는 순서 보존 딕셔너리 (락은 호출자가 잡는다)"""

    __slots__ = ("_data", "_capacity")

    def __init__(self, capacity: int | None) -> None:
        self._data: OrderedDict[K, V] = OrderedDict()
        self._capacity = capacity

    def get(self, key: K) -> V | None:
        value = self._data.get(key)
        if value is not None and self._capacity:
            self._data.move_to_end(key)
        return value

    def put(self, key: K, value: V) -> None:
        self._data[key] = value
        if self._capacity:
            self._data.move_to_end(key)
            while len(self._data) > self._capacity:
                self._data.popitem(last=False)

    def pop(self, key: K) -> None:
        self._data.pop(key, None)

    def keys(self) -> list[K]:
        return list(self._data.keys())

    def items(self) -> list[tuple[K, V]]:
        return list(self._data.items())

    def __contains__(self, key: object) -> bool:
        return key in self._data

    def clear(self) -> None:
        self._data.clear()

    def __len__(self) -> int:
        return len(self._data)


class SchemaCache:
    """스레드 안전 스키마 캐시

    Args:
        capacity: 인덱스별 최대 항목 수 (None/0 이면 무제한)
        latest_ttl_sec: 최신 버전 캐시 유효 시간 (0 이면 최신 버전은 캐싱하지 않음)
    """

    def __init__(self, capacity: int | None = None, latest_ttl_sec: float = 300.0) -> None:
        self.capacity = capacity or None
        self.latest_ttl_sec = latest_ttl_sec
        self._lock = threading.Lock()
        self._by_id: _LRUIndex[int, SchemaDescriptor] = _LRUIndex(self.capacity)
        self._by_subject_version: _LRUIndex[tuple[str, int], SchemaDescriptor] = _LRUIndex(
            self.capacity
        )
        self._registered: _LRUIndex[tuple[str, str], SchemaDescriptor] = _LRUIndex(
            self.capacity
        )
        self._latest: dict[str, tuple[float, SchemaDescriptor]] = {}
        # 키별 채우기 락 (single-flight). [락, 사용자 수], 사용자가 없으면 제거
        self._populate_locks: dict[Hashable, list] = {}

    # ------------------------------------------------------------------
    # id 인덱스
    # ------------------------------------------------------------------
    def get(self, schema_id: int) -> SchemaDescriptor | None:
        with self._lock:
            return self._by_id.get(schema_id)

    def put(self, schema_id: int, descriptor: SchemaDescriptor) -> SchemaDescriptor:
        """id 로 저장하고 실제로 캐시에 남은 descriptor 를 반환합니다.

        먼저 들어온 값이 우선이며, 같은 지문이면 기존 항목을 그대로 돌려줍니다.

        Raises:
            SchemaCacheConflictError: 같은 id 에 다른 지문의 스키마가 이미 있을 때
        """
        with self._lock:
            existing = self._by_id.get(schema_id)
            if existing is not None:
                if existing.fingerprint != descriptor.fingerprint:
                    raise SchemaCacheConflictError(
                        "cached schema differs from registry response",
                        schema_id=schema_id,
                        subject=descriptor.subject or None,
                    )
                return existing
            self._by_id.put(schema_id, descriptor)
            return descriptor

    # ------------------------------------------------------------------
    # (subject, version) 인덱스
    # ------------------------------------------------------------------
    def get_by_subject_version(self, subject: str, version: int) -> SchemaDescriptor | None:
        with self._lock:
            return self._by_subject_version.get((subject, version))

    def put_by_subject_version(
        self, subject: str, version: int, descriptor: SchemaDescriptor
    ) -> SchemaDescriptor:
        """(subject, version) 와 id 인덱스에 함께 저장합니다."""
        key = (subject, version)
        with self._lock:
            existing = self._by_subject_version.get(key)
            if existing is not None:
                if existing.fingerprint != descriptor.fingerprint:
                    raise SchemaCacheConflictError(
                        f"cached schema for version {version} differs from registry response",
                        subject=subject,
                        schema_id=descriptor.schema_id,
                    )
                return existing
            by_id = self._by_id.get(descriptor.schema_id)
            if by_id is not None and by_id.fingerprint != descriptor.fingerprint:
                raise SchemaCacheConflictError(
                    "cached schema differs from registry response",
                    subject=subject,
                    schema_id=descriptor.schema_id,
                )
            self._by_subject_version.put(key, descriptor)
            if by_id is None:
                self._by_id.put(descriptor.schema_id, descriptor)
            return descriptor

    # ------------------------------------------------------------------
    # (subject, 스키마 키) → 등록 정보 인덱스
    # ------------------------------------------------------------------
    def get_registered(self, subject: str, key: str) -> SchemaDescriptor | None:
        with self._lock:
            return self._registered.get((subject, key))

    def put_registered(
        self, subject: str, key: str, descriptor: SchemaDescriptor
    ) -> SchemaDescriptor:
        """등록/조회 결과 저장.

        등록 응답에는 버전이 없으므로, 버전을 아는 항목이 들어오면 그것으로 교체합니다.

        Raises:
            SchemaCacheConflictError: 같은 스키마가 다른 id 로 이미 캐시되어 있을 때
        """
        cache_key = (subject, key)
        with self._lock:
            existing = self._registered.get(cache_key)
            if existing is not None:
                if existing.schema_id != descriptor.schema_id:
                    raise SchemaCacheConflictError(
                        f"schema already cached under id {existing.schema_id}",
                        subject=subject,
                        schema_id=descriptor.schema_id,
                    )
                if existing.version is not None or descriptor.version is None:
                    return existing
            self._registered.put(cache_key, descriptor)
            return descriptor

    # ------------------------------------------------------------------
    # 최신 버전 (TTL)
    # ------------------------------------------------------------------
    def get_latest(self, subject: str) -> SchemaDescriptor | None:
        if self.latest_ttl_sec <= 0:
            return None
        with self._lock:
            entry = self._latest.get(subject)
            if entry is None:
                return None
            stored_at, descriptor = entry
            if time.monotonic() - stored_at > self.latest_ttl_sec:
                del self._latest[subject]
                return None
            return descriptor

    def put_latest(self, subject: str, descriptor: SchemaDescriptor) -> None:
        if self.latest_ttl_sec <= 0:
            return
        with self._lock:
            self._latest[subject] = (time.monotonic(), descriptor)

    # ------------------------------------------------------------------
    # 관리
    # ------------------------------------------------------------------
    @contextmanager
    def populate_lock(self, key: Hashable) -> Iterator[None]:
        """키별 채우기 락. 동시 미스가 한 번의 네트워크 호출로 수렴하도록 사용합니다.

        락은 잡고 있거나 기다리는 호출자가 있는 동안만 유지되고,
        마지막 호출자가 빠져나가면 제거됩니다.
        """
        with self._lock:
            entry = self._populate_locks.get(key)
            if entry is None:
                entry = self._populate_locks[key] = [threading.Lock(), 0]
            entry[1] += 1
        try:
            with entry[0]:
                yield
        finally:
            with self._lock:
                entry[1] -= 1
                if entry[1] == 0:
                    del self._populate_locks[key]

    def pending_populations(self) -> int:
        """현재 살아 있는 채우기 락 수"""
        with self._lock:
            return len(self._populate_locks)

    def invalidate_subject(self, subject: str) -> None:
        """subject 관련 인덱스 제거 (id 인덱스는 불변이므로 유지)"""
        with self._lock:
            for key in self._by_subject_version.keys():
                if key[0] == subject:
                    self._by_subject_version.pop(key)
            for key in self._registered.keys():
                if key[0] == subject:
                    self._registered.pop(key)
            self._latest.pop(subject, None)

    def clear(self) -> None:
        with self._lock:
            self._by_id.clear()
            self._by_subject_version.clear()
            self._registered.clear()
            self._latest.clear()

    def snapshot(self) -> dict[int, SchemaDescriptor]:
        """id 인덱스 복사본 (LRU 순서에 영향 없음)"""
        with self._lock:
            return dict(self._by_id.items())

    def __len__(self) -> int:
        with self._lock:
            return len(self._by_id)

    def __contains__(self, schema_id: object) -> bool:
        with self._lock:
            return schema_id in self._by_id

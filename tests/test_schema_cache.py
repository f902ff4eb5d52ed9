from __future__ import annotations

import threading

import pytest

from proto_stream.core.dto.internal.schema import SchemaDescriptor, fingerprint_of
from proto_stream.core.types import SchemaCacheConflictError
from proto_stream.infra.messaging.schema_registry import cache as cache_module
from proto_stream.infra.messaging.schema_registry.cache import SchemaCache


def _descriptor(schema_id: int = 7, schema_str: str = "schema-a", **kwargs) -> SchemaDescriptor:
    return SchemaDescriptor(schema_id=schema_id, schema_str=schema_str, **kwargs)


def test_descriptor_fingerprint_is_sha256_of_schema_text() -> None:
    desc = _descriptor()
    assert desc.fingerprint == fingerprint_of("schema-a")
    assert len(desc.fingerprint) == 64


def test_get_miss_then_put_then_hit() -> None:
    cache = SchemaCache()
    assert cache.get(7) is None

    stored = cache.put(7, _descriptor())

    assert cache.get(7) is stored
    assert 7 in cache
    assert len(cache) == 1


def test_put_same_fingerprint_keeps_first_entry() -> None:
    cache = SchemaCache()
    first = cache.put(7, _descriptor(subject="a"))

    second = cache.put(7, _descriptor(subject="b"))

    assert second is first
    assert cache.get(7).subject == "a"


def test_put_different_fingerprint_is_conflict_and_keeps_original() -> None:
    cache = SchemaCache()
    cache.put(7, _descriptor(schema_str="schema-a"))

    with pytest.raises(SchemaCacheConflictError) as exc_info:
        cache.put(7, _descriptor(schema_str="schema-b"))

    assert exc_info.value.schema_id == 7
    assert cache.get(7).schema_str == "schema-a"


def test_subject_version_also_fills_id_index() -> None:
    cache = SchemaCache()
    desc = _descriptor(subject="users-value", version=1)

    cache.put_by_subject_version("users-value", 1, desc)

    assert cache.get_by_subject_version("users-value", 1) is desc
    assert cache.get(7) is desc


def test_subject_version_conflicts_with_different_schema_under_same_id() -> None:
    cache = SchemaCache()
    cache.put(7, _descriptor(schema_str="other"))

    with pytest.raises(SchemaCacheConflictError):
        cache.put_by_subject_version("users-value", 1, _descriptor(subject="users-value", version=1))

    assert cache.get_by_subject_version("users-value", 1) is None


def test_registered_entry_upgrades_to_versioned() -> None:
    cache = SchemaCache()
    unversioned = _descriptor(subject="users-value")
    versioned = _descriptor(subject="users-value", version=3)

    cache.put_registered("users-value", "k", unversioned)
    assert cache.put_registered("users-value", "k", versioned) is versioned
    # 버전 있는 항목은 버전 없는 항목으로 덮어쓰지 않는다
    assert cache.put_registered("users-value", "k", unversioned) is versioned
    assert cache.get_registered("users-value", "k").version == 3


def test_registered_entry_with_other_id_is_conflict() -> None:
    cache = SchemaCache()
    cache.put_registered("users-value", "k", _descriptor(schema_id=1))

    with pytest.raises(SchemaCacheConflictError):
        cache.put_registered("users-value", "k", _descriptor(schema_id=2))


def test_latest_expires_after_ttl(monkeypatch: pytest.MonkeyPatch) -> None:
    now = [1000.0]
    monkeypatch.setattr(cache_module.time, "monotonic", lambda: now[0])
    cache = SchemaCache(latest_ttl_sec=10)
    desc = _descriptor(subject="users-value", version=1)

    cache.put_latest("users-value", desc)
    now[0] += 5
    assert cache.get_latest("users-value") is desc

    now[0] += 6
    assert cache.get_latest("users-value") is None


def test_latest_disabled_with_zero_ttl() -> None:
    cache = SchemaCache(latest_ttl_sec=0)
    cache.put_latest("users-value", _descriptor())
    assert cache.get_latest("users-value") is None


def test_capacity_evicts_least_recently_used() -> None:
    cache = SchemaCache(capacity=2)
    cache.put(1, _descriptor(1, "one"))
    cache.put(2, _descriptor(2, "two"))
    cache.get(1)

    cache.put(3, _descriptor(3, "three"))

    assert sorted(cache.snapshot()) == [1, 3]


def test_invalidate_subject_keeps_immutable_id_entries() -> None:
    cache = SchemaCache()
    desc = _descriptor(subject="users-value", version=1)
    cache.put_by_subject_version("users-value", 1, desc)
    cache.put_registered("users-value", "k", desc)
    cache.put_latest("users-value", desc)

    cache.invalidate_subject("users-value")

    assert cache.get_by_subject_version("users-value", 1) is None
    assert cache.get_registered("users-value", "k") is None
    assert cache.get_latest("users-value") is None
    assert cache.get(7) is desc


def test_populate_lock_serializes_same_key() -> None:
    cache = SchemaCache()
    inside: list[int] = []
    overlap: list[bool] = []
    barrier = threading.Barrier(4)

    def worker() -> None:
        barrier.wait()
        with cache.populate_lock(("id", 7)):
            inside.append(1)
            overlap.append(len(inside) > 1)
            inside.pop()

    threads = [threading.Thread(target=worker) for _ in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert overlap == [False] * 4


def test_populate_lock_released_after_last_holder() -> None:
    cache = SchemaCache()

    with cache.populate_lock(("id", 7)):
        with cache.populate_lock(("id", 8)):
            assert cache.pending_populations() == 2
    assert cache.pending_populations() == 0

    for schema_id in range(1000):
        with cache.populate_lock(("id", schema_id)):
            pass
    assert cache.pending_populations() == 0


def test_populate_lock_released_when_body_raises() -> None:
    cache = SchemaCache()

    with pytest.raises(RuntimeError):
        with cache.populate_lock(("id", 7)):
            raise RuntimeError("network down")

    assert cache.pending_populations() == 0


def test_concurrent_puts_converge_on_one_entry() -> None:
    cache = SchemaCache()
    results: list[SchemaDescriptor] = []
    barrier = threading.Barrier(8)

    def worker(i: int) -> None:
        barrier.wait()
        results.append(cache.put(7, _descriptor(subject=f"s{i}")))

    threads = [threading.Thread(target=worker, args=(i,)) for i in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len({id(r) for r in results}) == 1
    assert cache.get(7) is results[0]

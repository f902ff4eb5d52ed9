from __future__ import annotations

import threading

import pytest

from proto_stream.config.settings import SchemaRegistrySettings
from proto_stream.core.dto.internal.schema import SchemaDescriptor, SchemaReference
from proto_stream.core.types import (
    AuthError,
    CompatibilityLevel,
    ConfigError,
    NetworkError,
    RegistryError,
    SchemaNotFoundError,
)
from proto_stream.infra.messaging.schema_registry import (
    SchemaCache,
    SchemaRegistryClient,
    parse_auth,
    schema_key,
)
from tests.fake_registry import FakeRegistry, sync_client

SCHEMA = "c2NoZW1hLWE="
OTHER_SCHEMA = "c2NoZW1hLWI="


# ----------------------------------------------------------------------
# 생성 / 설정
# ----------------------------------------------------------------------
def test_parse_auth_accepts_tuple_and_user_info() -> None:
    assert parse_auth(None) is None
    assert parse_auth(("k", "s")) == ("k", "s")
    assert parse_auth("k:s:with-colon") == ("k", "s:with-colon")


@pytest.mark.parametrize("auth", ["no-colon", ":secret", "key:", ("key", "")])
def test_parse_auth_rejects_incomplete_credentials(auth) -> None:
    with pytest.raises(ConfigError):
        parse_auth(auth)


@pytest.mark.parametrize("url", ["", "registry.local:8081", "ftp://registry"])
def test_client_requires_http_url(url: str) -> None:
    with pytest.raises(ConfigError):
        SchemaRegistryClient(url)


def test_from_settings_builds_cache_from_settings() -> None:
    settings = SchemaRegistrySettings(
        _env_file=None,
        url="https://registry.example:8081/",
        api_key="key",
        api_secret="secret",
        cache_capacity=5,
        latest_ttl_sec=0,
    )

    client = SchemaRegistryClient.from_settings(settings)

    assert client.base_url == "https://registry.example:8081"
    assert client.auth == ("key", "secret")
    assert client.cache.capacity == 5
    assert client.cache.latest_ttl_sec == 0


def test_from_settings_keeps_given_empty_cache() -> None:
    cache = SchemaCache()
    settings = SchemaRegistrySettings(_env_file=None, url="http://registry.test")

    client = SchemaRegistryClient.from_settings(settings, cache=cache)

    assert client.cache is cache


def test_schema_key_depends_on_references() -> None:
    ref = SchemaReference("refs/money.proto", "refs/money.proto", 1)
    assert schema_key(SCHEMA) != schema_key(SCHEMA, [ref])
    assert schema_key(SCHEMA, [ref]) == schema_key(SCHEMA, (ref,))


# ----------------------------------------------------------------------
# 등록 / 조회
# ----------------------------------------------------------------------
def test_register_returns_id_and_caches() -> None:
    registry = FakeRegistry()
    client = sync_client(registry)

    first = client.register("users-value", SCHEMA)
    second = client.register("users-value", SCHEMA)

    assert first == second
    assert registry.count("POST", "subjects/users-value/versions") == 1
    assert registry.subjects["users-value"] == [first]


def test_register_sends_references_and_protobuf_type() -> None:
    registry = FakeRegistry()
    client = sync_client(registry)
    ref = SchemaReference("refs/money.proto", "refs/money.proto", 1)

    schema_id = client.register("orders-value", SCHEMA, [ref])

    stored = registry.schemas[schema_id]
    assert stored["schemaType"] == "PROTOBUF"
    assert stored["references"] == [
        {"name": "refs/money.proto", "subject": "refs/money.proto", "version": 1}
    ]


def test_subject_with_slash_is_url_escaped() -> None:
    registry = FakeRegistry()
    client = sync_client(registry)

    client.register("google/protobuf/any.proto", SCHEMA)

    assert registry.count("POST", "subjects/google%2Fprotobuf%2Fany.proto/versions") == 1
    assert "google/protobuf/any.proto" in registry.subjects


def test_lookup_by_id_hits_network_once() -> None:
    registry = FakeRegistry()
    registry.add_schema("users-value", SCHEMA, schema_id=7)
    client = sync_client(registry)

    first = client.lookup(7)
    second = client.lookup(7)

    assert registry.count("GET", "schemas/ids/7") == 1
    assert first is second
    assert first.schema_id == 7
    assert first.schema_str == SCHEMA
    assert first.schema_type == "PROTOBUF"
    assert first.subject == ""
    assert first.version is None


def test_lookup_unknown_id_is_not_found() -> None:
    client = sync_client(FakeRegistry())

    with pytest.raises(SchemaNotFoundError) as exc_info:
        client.lookup(99)

    assert exc_info.value.status == 404
    assert exc_info.value.error_code == 40403
    assert exc_info.value.schema_id == 99


def test_auth_failure_is_auth_error() -> None:
    registry = FakeRegistry()
    registry.forced_status = 401
    client = sync_client(registry)

    with pytest.raises(AuthError):
        client.lookup(1)


def test_server_error_is_registry_error() -> None:
    registry = FakeRegistry()
    registry.forced_status = 500
    client = sync_client(registry)

    with pytest.raises(RegistryError) as exc_info:
        client.list_subjects()

    assert exc_info.value.status == 500


def test_unreachable_registry_is_network_error() -> None:
    registry = FakeRegistry()
    registry.unavailable = True
    client = sync_client(registry)

    with pytest.raises(NetworkError):
        client.lookup(1)


def test_lookup_by_subject_version_fills_id_cache() -> None:
    registry = FakeRegistry()
    schema_id = registry.add_schema("users-value", SCHEMA)
    client = sync_client(registry)

    desc = client.lookup_by_subject_version("users-value", 1)
    client.lookup_by_subject_version("users-value", 1)
    by_id = client.lookup(schema_id)

    assert desc.subject == "users-value"
    assert desc.version == 1
    assert by_id is desc
    assert registry.count("GET", "subjects/users-value/versions/1") == 1
    assert registry.count("GET", f"schemas/ids/{schema_id}") == 0


def test_latest_is_cached_until_ttl() -> None:
    registry = FakeRegistry()
    registry.add_schema("users-value", SCHEMA)
    client = sync_client(registry)

    client.lookup_by_subject_version("users-value", "latest")
    latest = client.lookup_latest("users-value")

    assert latest.version == 1
    assert registry.count("GET", "subjects/users-value/versions/latest") == 1


def test_latest_not_cached_with_zero_ttl() -> None:
    registry = FakeRegistry()
    registry.add_schema("users-value", SCHEMA)
    client = sync_client(registry, cache=SchemaCache(latest_ttl_sec=0))

    client.lookup_latest("users-value")
    registry.add_schema("users-value", OTHER_SCHEMA)
    latest = client.lookup_latest("users-value")

    assert latest.version == 2
    assert registry.count("GET", "subjects/users-value/versions/latest") == 2


def test_lookup_schema_returns_version_without_registering() -> None:
    registry = FakeRegistry()
    schema_id = registry.add_schema("users-value", SCHEMA)
    client = sync_client(registry)

    desc = client.lookup_schema("users-value", SCHEMA)
    client.lookup_schema("users-value", SCHEMA)

    assert (desc.schema_id, desc.version) == (schema_id, 1)
    assert registry.count("POST", "subjects/users-value") == 1
    assert registry.count("POST", "subjects/users-value/versions") == 0


def test_lookup_schema_after_register_fetches_version_once() -> None:
    registry = FakeRegistry()
    client = sync_client(registry)

    schema_id = client.register("users-value", SCHEMA)
    desc = client.lookup_schema("users-value", SCHEMA)

    assert desc.schema_id == schema_id
    assert desc.version == 1
    assert client.register("users-value", SCHEMA) == schema_id
    assert registry.count("POST", "subjects/users-value/versions") == 1


def test_lookup_schema_missing_is_not_found() -> None:
    registry = FakeRegistry()
    registry.add_schema("users-value", SCHEMA)
    client = sync_client(registry)

    with pytest.raises(SchemaNotFoundError):
        client.lookup_schema("users-value", OTHER_SCHEMA)


def test_cache_conflict_returns_network_result_uncached() -> None:
    registry = FakeRegistry()
    registry.add_schema("users-value", SCHEMA, schema_id=7)
    cache = SchemaCache()
    cache.put(7, SchemaDescriptor(schema_id=7, schema_str=OTHER_SCHEMA))
    client = sync_client(registry, cache=cache)

    desc = client.lookup_by_subject_version("users-value", 1)

    assert desc.schema_str == SCHEMA
    assert cache.get(7).schema_str == OTHER_SCHEMA
    assert cache.get_by_subject_version("users-value", 1) is None


# ----------------------------------------------------------------------
# 호환성 / 관리
# ----------------------------------------------------------------------
def test_check_compatibility_is_not_cached() -> None:
    registry = FakeRegistry()
    registry.add_schema("users-value", SCHEMA)
    client = sync_client(registry)

    assert client.check_compatibility("users-value", OTHER_SCHEMA) is True
    registry.compatible = False
    assert client.check_compatibility("users-value", OTHER_SCHEMA) is False
    assert (
        registry.count("POST", "compatibility/subjects/users-value/versions/latest") == 2
    )


def test_subject_listing_and_delete_invalidates_cache() -> None:
    registry = FakeRegistry()
    registry.add_schema("users-value", SCHEMA)
    registry.add_schema("users-value", OTHER_SCHEMA)
    client = sync_client(registry)
    client.lookup_by_subject_version("users-value", 2)

    assert client.list_subjects() == ["users-value"]
    assert client.get_versions("users-value") == [1, 2]
    assert client.delete_subject("users-value") == [1, 2]

    assert client.cache.get_by_subject_version("users-value", 2) is None
    with pytest.raises(SchemaNotFoundError):
        client.lookup_by_subject_version("users-value", 2)


def test_compatibility_level_subject_falls_back_to_global() -> None:
    registry = FakeRegistry()
    client = sync_client(registry)

    assert client.get_compatibility_level() is CompatibilityLevel.BACKWARD
    assert client.get_compatibility_level("users-value") is CompatibilityLevel.BACKWARD

    client.set_compatibility_level(CompatibilityLevel.FULL, "users-value")

    assert registry.subject_levels == {"users-value": "FULL"}
    assert client.get_compatibility_level("users-value") is CompatibilityLevel.FULL


def test_close_releases_session() -> None:
    registry = FakeRegistry()
    client = sync_client(registry)
    session = client._session

    with client:
        client.list_subjects()

    assert session.closed
    assert client._session is None


# ----------------------------------------------------------------------
# 동시성
# ----------------------------------------------------------------------
def test_concurrent_lookups_make_one_request() -> None:
    registry = FakeRegistry(delay=0.05)
    registry.add_schema("users-value", SCHEMA, schema_id=7)
    client = sync_client(registry)
    results: list[SchemaDescriptor] = []
    barrier = threading.Barrier(8)

    def worker() -> None:
        barrier.wait()
        results.append(client.lookup(7))

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert registry.count("GET", "schemas/ids/7") == 1
    assert len(results) == 8
    assert all(r is results[0] for r in results)


def test_concurrent_latest_lookups_make_one_request() -> None:
    registry = FakeRegistry(delay=0.02)
    registry.add_schema("users-value", SCHEMA, schema_id=7)
    client = sync_client(registry)
    results: list[SchemaDescriptor] = []
    barrier = threading.Barrier(8)

    def worker() -> None:
        barrier.wait()
        results.append(client.lookup_latest("users-value"))

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert registry.count("GET", "subjects/users-value/versions/latest") == 1
    assert len(results) == 8
    assert all(r is results[0] for r in results)
    assert client.cache.pending_populations() == 0

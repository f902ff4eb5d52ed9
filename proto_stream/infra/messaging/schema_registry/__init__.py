"""
Schema Registry 클라이언트 및 스키마 캐시

- SchemaCache: 스레드 안전 스키마 캐시 (LRU 선택)
- SchemaRegistryClient: 동기 클라이언트 (requests)
- AsyncSchemaRegistryClient: 비동기 클라이언트 (aiohttp)
"""

from proto_stream.infra.messaging.schema_registry.cache import SchemaCache
from proto_stream.infra.messaging.schema_registry.client import (
    AsyncSchemaRegistryClient,
    SchemaRegistryClient,
    parse_auth,
    schema_key,
)

__all__ = [
    "SchemaCache",
    "SchemaRegistryClient",
    "AsyncSchemaRegistryClient",
    "parse_auth",
    "schema_key",
]

"""
Protobuf 직렬화/역직렬화 및 Schema Registry 지원 모듈

주요 기능:
- Confluent Wire Format (매직 바이트 + 스키마 ID + 메시지 인덱스) 인코딩/디코딩
- 스키마 및 참조(import) 자동 등록/조회
- google.protobuf.Any 필드를 타입 레지스트리로 풀어내기
- 동기(requests) / 비동기(aiohttp) 변형
"""

from proto_stream.infra.messaging.protobuf.deserializers import (
    AsyncProtobufDeserializer,
    DeserializerConfig,
    ProtobufDeserializer,
)
from proto_stream.infra.messaging.protobuf.serializers import (
    AsyncProtobufSerializer,
    ProtobufSerializer,
    SerializerConfig,
)
from proto_stream.infra.messaging.protobuf.subjects import topic_subject
from proto_stream.infra.messaging.protobuf.type_registry import MessageTypeRegistry

__all__ = [
    "ProtobufSerializer",
    "AsyncProtobufSerializer",
    "SerializerConfig",
    "ProtobufDeserializer",
    "AsyncProtobufDeserializer",
    "DeserializerConfig",
    "MessageTypeRegistry",
    "topic_subject",
]

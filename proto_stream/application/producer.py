"""예제 Producer

Preferences 를 Any 로 감싼 User 메시지를 Protobuf(Schema Registry) 로 직렬화해
TOPIC_NAME 토픽에 한 건 발행하고 전송 결과를 기다립니다.

Usage:
    proto-stream-producer
    python -m proto_stream.application.producer
"""

from __future__ import annotations

import sys

from confluent_kafka import KafkaError, KafkaException, Message, Producer
from google.protobuf.any_pb2 import Any as AnyMessage
from google.protobuf.message import Message as ProtoMessage

from proto_stream.common.logger import PipelineLogger
from proto_stream.config.settings import (
    KafkaSettings,
    SchemaRegistrySettings,
    SerdeSettings,
    kafka_settings,
    require_fields,
    schema_registry_settings,
    serde_settings,
)
from proto_stream.core.types import ConfigError, MessageField, SerdeError
from proto_stream.examples.user import Preferences, User
from proto_stream.infra.messaging.clients.clients import producer_config
from proto_stream.infra.messaging.protobuf import ProtobufSerializer, SerializerConfig
from proto_stream.infra.messaging.protobuf.subjects import subject_name_strategy
from proto_stream.infra.messaging.schema_registry import SchemaRegistryClient

logger = PipelineLogger.get_logger("producer", "app")

HEADER_KEY = "myTestHeader"
HEADER_VALUE = b"header values are binary"
FLUSH_TIMEOUT_SEC = 30.0


def build_user() -> User:
    """Preferences 를 extra_data(Any) 에 담은 예제 User"""
    extra = AnyMessage()
    extra.Pack(Preferences(language="en", dark_mode=True))
    return User(name="First user", favorite_number=42, favorite_color="blue", extra_data=extra)


def encode_value(
    serializer: ProtobufSerializer, serde: SerdeSettings, topic: str, message: ProtoMessage
) -> tuple[str, bytes]:
    """SERDE_SUBJECT_NAME_STRATEGY 로 subject 를 정해 직렬화하고 (subject, 바이트) 를 반환"""
    strategy = subject_name_strategy(serde.subject_name_strategy)
    subject = strategy(topic, message, MessageField.VALUE)
    return subject, serializer(subject, message)


class DeliveryReport:
    """on_delivery 콜백 결과 보관"""

    def __init__(self) -> None:
        self.done = False
        self.error: KafkaError | None = None
        self.message: Message | None = None

    def __call__(self, err: KafkaError | None, msg: Message) -> None:
        self.done = True
        self.error = err
        self.message = msg


def validate(kafka: KafkaSettings, registry: SchemaRegistrySettings) -> None:
    """
    Raises:
        ConfigError: 필수 환경변수 누락
    """
    require_fields(kafka, "bootstrap_servers", "topic_name", "api_key", "api_secret")
    require_fields(registry, "url", "api_key", "api_secret")


def run(
    kafka: KafkaSettings = kafka_settings,
    registry_settings: SchemaRegistrySettings = schema_registry_settings,
    serde: SerdeSettings = serde_settings,
) -> int:
    try:
        validate(kafka, registry_settings)
    except ConfigError as e:
        logger.error(f"❌ {e}")
        return 1

    topic = kafka.topic_name

    with SchemaRegistryClient.from_settings(registry_settings) as registry:
        serializer = ProtobufSerializer(registry, SerializerConfig.from_settings(serde))
        try:
            subject, payload = encode_value(serializer, serde, topic, build_user())
        except SerdeError as e:
            logger.error(f"Failed to serialize payload: {e}")
            return 1
    logger.debug(f"subject={subject} 로 직렬화 완료 ({len(payload)} bytes)")

    producer = Producer(producer_config(kafka))
    logger.info(f"✅ Kafka Producer 생성 완료: {kafka.bootstrap_servers}")

    report = DeliveryReport()
    try:
        producer.produce(
            topic,
            value=payload,
            headers=[(HEADER_KEY, HEADER_VALUE)],
            on_delivery=report,
        )
    except (KafkaException, BufferError) as e:
        logger.error(f"Produce failed: {e}")
        return 1

    remaining = producer.flush(FLUSH_TIMEOUT_SEC)
    if remaining or not report.done:
        logger.error(f"❌ Delivery report not received within {FLUSH_TIMEOUT_SEC}s")
        return 1
    if report.error is not None:
        logger.error(f"❌ Delivery failed: {report.error}")
        return 1

    msg = report.message
    logger.info(
        f"✅ Delivered message to topic {msg.topic()} [{msg.partition()}] at offset {msg.offset()}"
    )
    return 0


def main() -> None:
    sys.exit(run())


if __name__ == "__main__":
    main()

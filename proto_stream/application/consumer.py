"""예제 Consumer

TOPIC_NAMES(쉼표 구분) 토픽을 구독해 Protobuf 메시지를 역직렬화하고 출력합니다.
SIGINT / SIGTERM 을 받으면 폴링 루프를 빠져나와 Consumer 를 닫습니다.

Usage:
    proto-stream-consumer
    python -m proto_stream.application.consumer
"""

from __future__ import annotations

import signal
import sys
import threading
import time

from confluent_kafka import Consumer, KafkaException, Message

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
from proto_stream.core.dto.internal.schema import DeserializedRecord
from proto_stream.core.types import (
    FATAL_SERDE_EXCEPTIONS,
    RETRYABLE_REGISTRY_EXCEPTIONS,
    ConfigError,
    SerdeError,
)
from proto_stream.examples.user import Preferences, User
from proto_stream.infra.messaging.clients.clients import consumer_config
from proto_stream.infra.messaging.protobuf import (
    DeserializerConfig,
    MessageTypeRegistry,
    ProtobufDeserializer,
)
from proto_stream.infra.messaging.protobuf.subjects import topic_subject
from proto_stream.infra.messaging.schema_registry import SchemaRegistryClient

logger = PipelineLogger.get_logger("consumer", "app")

POLL_TIMEOUT_SEC = 0.1
REGISTRY_RETRIES = 3
RETRY_DELAY_SEC = 0.5


def validate(kafka: KafkaSettings, registry: SchemaRegistrySettings) -> None:
    """
    Raises:
        ConfigError: 필수 환경변수 누락
    """
    require_fields(
        kafka, "bootstrap_servers", "topic_names", "api_key", "api_secret", "consumer_group_id"
    )
    require_fields(registry, "url", "api_key", "api_secret")


def deserialize_with_retry(
    deserializer: ProtobufDeserializer,
    msg: Message,
    retries: int = REGISTRY_RETRIES,
    delay_sec: float = RETRY_DELAY_SEC,
) -> DeserializedRecord | None:
    """
    Registry 접속 실패(RETRYABLE_REGISTRY_EXCEPTIONS)만 지연을 늘려가며 재시도합니다.

    Raises:
        SerdeError: 재시도 소진 또는 재시도 대상이 아닌 실패
    """
    subject = topic_subject(msg.topic())
    attempt = 1
    while True:
        try:
            return deserializer.deserialize_record(subject, msg.value())
        except RETRYABLE_REGISTRY_EXCEPTIONS as e:
            if attempt >= retries:
                raise
            logger.warning(f"Schema Registry 접속 실패 ({attempt}/{retries}), 재시도: {e}")
            time.sleep(delay_sec * attempt)
            attempt += 1


def handle_message(
    deserializer: ProtobufDeserializer,
    msg: Message,
    retries: int = REGISTRY_RETRIES,
    delay_sec: float = RETRY_DELAY_SEC,
) -> None:
    """메시지 한 건 처리. 역직렬화 실패는 기록하고 다음 메시지로 넘어간다."""
    try:
        record = deserialize_with_retry(deserializer, msg, retries, delay_sec)
    except FATAL_SERDE_EXCEPTIONS as e:
        logger.error(f"Skipping message at offset {msg.offset()}, retry cannot fix it: {e}")
    except RETRYABLE_REGISTRY_EXCEPTIONS as e:
        logger.error(f"Schema Registry unavailable after {retries} attempt(s): {e}")
    except SerdeError as e:
        logger.error(f"Failed to deserialize payload: {e}")
    else:
        if record is None:
            print(f"% Tombstone on {msg.topic()} [{msg.partition()}] @ {msg.offset()}")
        else:
            print(
                f"% Message on {msg.topic()} [{msg.partition()}] @ {msg.offset()} "
                f"(schema_id={record.schema_id}):\n{record.message}"
            )
            for path, boxed in record.boxed.items():
                print(f"%   {path}: {boxed.DESCRIPTOR.full_name} {{{boxed}}}")

    headers = msg.headers()
    if headers:
        print(f"% Headers: {headers}")


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

    stop = threading.Event()

    def _on_signal(signum: int, _frame) -> None:
        logger.info(f"Caught signal {signal.Signals(signum).name}: terminating")
        stop.set()

    signal.signal(signal.SIGINT, _on_signal)
    signal.signal(signal.SIGTERM, _on_signal)

    try:
        consumer = Consumer(consumer_config(kafka))
    except KafkaException as e:
        logger.error(f"Failed to create consumer: {e}")
        return 1
    logger.info(f"✅ Kafka Consumer 생성 완료: group={kafka.consumer_group_id}")

    type_registry = MessageTypeRegistry(User, Preferences)
    registry = SchemaRegistryClient.from_settings(registry_settings)
    deserializer = ProtobufDeserializer(
        registry, type_registry, DeserializerConfig.from_settings(serde)
    )

    try:
        consumer.subscribe(kafka.topics)
        logger.info(f"구독 시작: {kafka.topics}")

        while not stop.is_set():
            msg = consumer.poll(POLL_TIMEOUT_SEC)
            if msg is None:
                continue
            if msg.error():
                # 클라이언트가 자동 복구하므로 기록만 한다
                logger.warning(f"% Error: {msg.error().code()}: {msg.error()}")
                continue
            handle_message(deserializer, msg)
    except KafkaException as e:
        logger.error(f"Consumer failed: {e}")
        return 1
    finally:
        logger.info("Closing consumer")
        consumer.close()
        registry.close()
    return 0


def main() -> None:
    sys.exit(run())


if __name__ == "__main__":
    main()

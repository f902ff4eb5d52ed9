from typing import Any

from proto_stream.config.settings import KafkaSettings, kafka_settings
from proto_stream.core.dto.internal.mq import ConsumerConfigDomain, ProducerConfigDomain


def producer_config(settings: KafkaSettings | None = None, **overrides: Any) -> dict[str, Any]:
    """Producer 설정을 ProducerConfigDomain 기반으로 구성 후 confluent-kafka 형식으로 변환.

    - SASL(PLAIN) 인증, 기본 보안 프로토콜 SASL_SSL
    - 직렬화는 Producer 밖에서 수행하므로 직렬화 콜백은 두지 않는다
    """
    settings = settings or kafka_settings
    cfg_domain = ProducerConfigDomain(
        bootstrap_servers=settings.bootstrap_servers,
        security_protocol=settings.security_protocol,
        sasl_mechanism=settings.sasl_mechanism,
        sasl_username=settings.api_key,
        sasl_password=settings.api_secret,
        acks="all",
        enable_idempotence=True,
        request_timeout_ms=30000,  # 30초 타임아웃
        delivery_timeout_ms=120000,  # 2분 전체 타임아웃
    )

    cfg = cfg_domain.to_confluent()
    cfg.update(overrides)  # 사용자 지정 값으로 덮어쓰기
    return cfg


def consumer_config(settings: KafkaSettings | None = None, **overrides: Any) -> dict[str, Any]:
    """Consumer 설정을 ConsumerConfigDomain 기반으로 구성 후 confluent-kafka 형식으로 변환."""
    settings = settings or kafka_settings
    cfg_domain = ConsumerConfigDomain(
        bootstrap_servers=settings.bootstrap_servers,
        security_protocol=settings.security_protocol,
        sasl_mechanism=settings.sasl_mechanism,
        sasl_username=settings.api_key,
        sasl_password=settings.api_secret,
        group_id=settings.consumer_group_id,
        enable_auto_commit=True,
        auto_offset_reset=settings.auto_offset_reset,
        session_timeout_ms=settings.session_timeout_ms,
    )

    cfg = cfg_domain.to_confluent()
    cfg.update(overrides)
    return cfg

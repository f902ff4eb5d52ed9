from dataclasses import dataclass


@dataclass(slots=True, frozen=True, kw_only=True, repr=False, match_args=False)
class ProducerConfigDomain:
    """Kafka Producer 설정 (confluent-kafka).

    - SASL 자격증명은 repr 에 노출하지 않도록 repr=False
    """

    # 기본 연결 설정
    bootstrap_servers: str
    security_protocol: str
    sasl_mechanism: str
    sasl_username: str
    sasl_password: str

    # 전송 보장
    acks: str | int
    enable_idempotence: bool
    request_timeout_ms: int
    delivery_timeout_ms: int

    def to_confluent(self) -> dict[str, str | int | bool]:
        """confluent-kafka 매개변수 명(점 표기법)으로 변환"""
        return {
            "bootstrap.servers": self.bootstrap_servers,
            "security.protocol": self.security_protocol,
            "sasl.mechanism": self.sasl_mechanism,
            "sasl.username": self.sasl_username,
            "sasl.password": self.sasl_password,
            "acks": self.acks,
            "enable.idempotence": self.enable_idempotence,
            "request.timeout.ms": self.request_timeout_ms,
            "delivery.timeout.ms": self.delivery_timeout_ms,
        }


@dataclass(slots=True, frozen=True, kw_only=True, repr=False, match_args=False)
class ConsumerConfigDomain:
    """Kafka Consumer 설정 (confluent-kafka)."""

    # 기본 연결 설정
    bootstrap_servers: str
    security_protocol: str
    sasl_mechanism: str
    sasl_username: str
    sasl_password: str
    group_id: str

    # 오프셋 관리
    enable_auto_commit: bool
    auto_offset_reset: str  # "earliest" 또는 "latest"

    # 세션 관리
    session_timeout_ms: int

    def to_confluent(self) -> dict[str, str | int | bool]:
        return {
            "bootstrap.servers": self.bootstrap_servers,
            "security.protocol": self.security_protocol,
            "sasl.mechanism": self.sasl_mechanism,
            "sasl.username": self.sasl_username,
            "sasl.password": self.sasl_password,
            "group.id": self.group_id,
            "enable.auto.commit": self.enable_auto_commit,
            "auto.offset.reset": self.auto_offset_reset,
            "session.timeout.ms": self.session_timeout_ms,
        }

from __future__ import annotations

from collections.abc import Callable

from google.protobuf.message import Message

from proto_stream.core.types import ConfigError, MessageField

# 예제 프로그램이 사용하는 토픽 (TOPIC_NAME 미지정 시)
DEFAULT_USER_TOPIC = "users"

SubjectNameStrategy = Callable[[str, Message | None, MessageField], str]


def topic_subject(topic: str, field: MessageField = MessageField.VALUE) -> str:
    """기본 규칙: "{topic}-value" / "{topic}-key" """
    if not topic:
        raise ConfigError("topic is required to build a subject name")
    return f"{topic}-{field}"


def topic_name_strategy(
    topic: str, message: Message | None = None, field: MessageField = MessageField.VALUE
) -> str:
    return topic_subject(topic, field)


def record_name_strategy(
    topic: str, message: Message | None = None, field: MessageField = MessageField.VALUE
) -> str:
    """메시지의 완전한 타입 이름 (예: example.User)"""
    if message is None:
        raise ConfigError("record name strategy requires a message")
    return message.DESCRIPTOR.full_name


def topic_record_name_strategy(
    topic: str, message: Message | None = None, field: MessageField = MessageField.VALUE
) -> str:
    """"{topic}-{타입 이름}" """
    return f"{topic}-{record_name_strategy(topic, message, field)}"


SUBJECT_NAME_STRATEGIES: dict[str, SubjectNameStrategy] = {
    "topic": topic_name_strategy,
    "record": record_name_strategy,
    "topic_record": topic_record_name_strategy,
}


def subject_name_strategy(name: str) -> SubjectNameStrategy:
    """설정 이름 (topic | record | topic_record) 으로 전략 함수 조회"""
    strategy = SUBJECT_NAME_STRATEGIES.get(name)
    if strategy is None:
        raise ConfigError(
            f"unknown subject name strategy {name!r}, expected one of {sorted(SUBJECT_NAME_STRATEGIES)}"
        )
    return strategy

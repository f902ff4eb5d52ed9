"""메시지 타입 레지스트리

완전한 타입 이름(예: "example.Preferences") → 디코더 매핑.
역직렬화기는 이 매핑으로 google.protobuf.Any 에 담긴 하위 메시지를 풀어냅니다.
리플렉션 대신 호출자가 사용 전에 명시적으로 등록한 타입만 해석합니다.
"""

from __future__ import annotations

import threading

from google.protobuf.any_pb2 import Any as AnyMessage
from google.protobuf.message import Message

from proto_stream.core.types import DecodeError, MessageDecoder, SerdeError, UnregisteredTypeError


def type_name_from_url(type_url: str) -> str:
    """type.googleapis.com/example.User → example.User"""
    return type_url.rsplit("/", 1)[-1]


def run_decoder(type_name: str, decoder: MessageDecoder, raw: bytes) -> Message:
    """
    디코더 실행

    생성 클래스의 FromString 이든 register_decoder 로 넣은 함수든,
    직렬화 계층 밖의 예외는 DecodeError 로 바꿔 올립니다.
    """
    try:
        return decoder(raw)
    except SerdeError:
        raise
    except Exception as e:
        raise DecodeError(f"{type_name} payload could not be decoded: {e}") from e


class MessageTypeRegistry:
    """타입 이름 → 디코더 매핑 (등록은 스레드 안전, 조회는 락 없이 수행)"""

    def __init__(self, *message_classes: type[Message]) -> None:
        self._decoders: dict[str, MessageDecoder] = {}
        self._lock = threading.Lock()
        for message_class in message_classes:
            self.register(message_class)

    def register(self, message_class: type[Message]) -> str:
        """생성된(또는 동적으로 만든) 메시지 클래스를 등록하고 타입 이름을 반환합니다."""
        type_name = message_class.DESCRIPTOR.full_name
        self.register_decoder(type_name, message_class.FromString)
        return type_name

    def register_decoder(self, type_name: str, decoder: MessageDecoder) -> None:
        with self._lock:
            # 읽기 측이 락 없이 볼 수 있도록 새 딕셔너리로 교체
            decoders = dict(self._decoders)
            decoders[type_name] = decoder
            self._decoders = decoders

    def resolve(self, type_name: str) -> MessageDecoder:
        """
        Raises:
            UnregisteredTypeError: 등록되지 않은 타입
        """
        decoder = self._decoders.get(type_name)
        if decoder is None:
            raise UnregisteredTypeError(type_name)
        return decoder

    def get(self, type_name: str) -> MessageDecoder | None:
        return self._decoders.get(type_name)

    def unpack(self, boxed: AnyMessage) -> Message:
        """Any 메시지를 등록된 디코더로 풀어냅니다.

        Raises:
            UnregisteredTypeError: type_url 의 타입이 등록되지 않음
            DecodeError: value 바이트가 해당 타입과 맞지 않음
        """
        type_name = type_name_from_url(boxed.type_url)
        return run_decoder(type_name, self.resolve(type_name), boxed.value)

    def type_names(self) -> list[str]:
        return sorted(self._decoders)

    def __contains__(self, type_name: object) -> bool:
        return type_name in self._decoders

    def __len__(self) -> int:
        return len(self._decoders)

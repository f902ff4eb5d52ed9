"""테스트용 Protobuf 메시지 타입

- refs/money.proto, refs/order.proto: 참조(import) 가 있는 스키마
- nested/outer.proto: 중첩 메시지 인덱스 확인용 (독립 풀)
"""

from __future__ import annotations

from google.protobuf import descriptor_pool, message_factory
from google.protobuf.any_pb2 import Any as AnyMessage
from google.protobuf.descriptor_pb2 import FieldDescriptorProto, FileDescriptorProto

from proto_stream.examples.user import Preferences, User

_OPTIONAL = FieldDescriptorProto.LABEL_OPTIONAL
_REPEATED = FieldDescriptorProto.LABEL_REPEATED


def _money_file() -> FileDescriptorProto:
    file_proto = FileDescriptorProto(name="refs/money.proto", package="refs", syntax="proto3")
    money = file_proto.message_type.add(name="Money")
    money.field.add(name="currency", number=1, type=FieldDescriptorProto.TYPE_STRING, label=_OPTIONAL)
    money.field.add(name="units", number=2, type=FieldDescriptorProto.TYPE_INT64, label=_OPTIONAL)
    return file_proto


def _order_file() -> FileDescriptorProto:
    file_proto = FileDescriptorProto(
        name="refs/order.proto",
        package="refs",
        syntax="proto3",
        dependency=["refs/money.proto", "google/protobuf/any.proto"],
    )
    order = file_proto.message_type.add(name="Order")
    order.field.add(name="id", number=1, type=FieldDescriptorProto.TYPE_STRING, label=_OPTIONAL)
    order.field.add(
        name="total",
        number=2,
        type=FieldDescriptorProto.TYPE_MESSAGE,
        type_name=".refs.Money",
        label=_OPTIONAL,
    )
    order.field.add(
        name="attachments",
        number=3,
        type=FieldDescriptorProto.TYPE_MESSAGE,
        type_name=".google.protobuf.Any",
        label=_REPEATED,
    )
    return file_proto


def _load(file_proto: FileDescriptorProto):
    pool = descriptor_pool.Default()
    try:
        return pool.FindFileByName(file_proto.name)
    except KeyError:
        pool.AddSerializedFile(file_proto.SerializeToString())
        return pool.FindFileByName(file_proto.name)


_MONEY_FILE = _load(_money_file())
_ORDER_FILE = _load(_order_file())

Money = message_factory.GetMessageClass(_MONEY_FILE.message_types_by_name["Money"])
Order = message_factory.GetMessageClass(_ORDER_FILE.message_types_by_name["Order"])


def nested_file_proto() -> FileDescriptorProto:
    file_proto = FileDescriptorProto(name="nested/outer.proto", package="nested", syntax="proto3")
    outer = file_proto.message_type.add(name="Outer")
    outer.nested_type.add(name="First")
    second = outer.nested_type.add(name="Second")
    second.field.add(name="flag", number=1, type=FieldDescriptorProto.TYPE_BOOL, label=_OPTIONAL)
    file_proto.message_type.add(name="Sibling")
    return file_proto


def build_preferences(**overrides) -> Preferences:
    values = {"language": "en", "dark_mode": True}
    values.update(overrides)
    return Preferences(**values)


def build_user(*, with_extra: bool = True, **overrides) -> User:
    values = {"name": "First user", "favorite_number": 42, "favorite_color": "blue"}
    values.update(overrides)
    user = User(**values)
    if with_extra:
        user.extra_data.Pack(build_preferences())
    return user


def build_order() -> Order:
    order = Order(id="order-1", total=Money(currency="KRW", units=5))
    attachment = AnyMessage()
    attachment.Pack(build_preferences(language="ko"))
    order.attachments.append(attachment)
    return order

"""
예제 메시지 타입 (example/user.proto)

    syntax = "proto3";
    package example;
    import "google/protobuf/any.proto";

    message User {
        string name = 1;
        int32 favorite_number = 2;
        string favorite_color = 3;
        google.protobuf.Any extra_data = 4;
    }

    message Preferences {
        string language = 1;
        bool dark_mode = 2;
    }

protoc 생성 코드 대신 import 시점에 FileDescriptorProto 를 기본 풀에 추가하고
message_factory 로 클래스를 만듭니다.
"""

from __future__ import annotations

from google.protobuf import any_pb2  # noqa: F401  google/protobuf/any.proto 선등록
from google.protobuf import descriptor_pool, message_factory
from google.protobuf.descriptor_pb2 import FieldDescriptorProto, FileDescriptorProto

USER_PROTO_FILE = "example/user.proto"
PACKAGE = "example"

_OPTIONAL = FieldDescriptorProto.LABEL_OPTIONAL


def user_file_proto() -> FileDescriptorProto:
    file_proto = FileDescriptorProto(
        name=USER_PROTO_FILE,
        package=PACKAGE,
        syntax="proto3",
        dependency=["google/protobuf/any.proto"],
    )

    user = file_proto.message_type.add(name="User")
    user.field.add(name="name", number=1, type=FieldDescriptorProto.TYPE_STRING, label=_OPTIONAL)
    user.field.add(
        name="favorite_number", number=2, type=FieldDescriptorProto.TYPE_INT32, label=_OPTIONAL
    )
    user.field.add(
        name="favorite_color", number=3, type=FieldDescriptorProto.TYPE_STRING, label=_OPTIONAL
    )
    user.field.add(
        name="extra_data",
        number=4,
        type=FieldDescriptorProto.TYPE_MESSAGE,
        type_name=".google.protobuf.Any",
        label=_OPTIONAL,
    )

    preferences = file_proto.message_type.add(name="Preferences")
    preferences.field.add(
        name="language", number=1, type=FieldDescriptorProto.TYPE_STRING, label=_OPTIONAL
    )
    preferences.field.add(
        name="dark_mode", number=2, type=FieldDescriptorProto.TYPE_BOOL, label=_OPTIONAL
    )
    return file_proto


def _load_file():
    pool = descriptor_pool.Default()
    try:
        return pool.FindFileByName(USER_PROTO_FILE)
    except KeyError:
        pool.AddSerializedFile(user_file_proto().SerializeToString())
        return pool.FindFileByName(USER_PROTO_FILE)


DESCRIPTOR = _load_file()

User = message_factory.GetMessageClass(DESCRIPTOR.message_types_by_name["User"])
Preferences = message_factory.GetMessageClass(DESCRIPTOR.message_types_by_name["Preferences"])

__all__ = ["DESCRIPTOR", "User", "Preferences", "user_file_proto", "USER_PROTO_FILE"]

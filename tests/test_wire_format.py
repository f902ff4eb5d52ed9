from __future__ import annotations

import pytest

from proto_stream.core.types import FormatError, SerializationError
from proto_stream.infra.messaging.protobuf.wire_format import (
    decode_message_indexes,
    encode_envelope,
    encode_header,
    encode_message_indexes,
    parse_envelope,
    read_header,
    read_varint,
    zigzag_decode,
    zigzag_encode,
)


def test_header_is_magic_byte_and_big_endian_id() -> None:
    assert encode_header(7) == b"\x00\x00\x00\x00\x07"
    assert encode_header(0x01020304) == b"\x00\x01\x02\x03\x04"


def test_header_rejects_out_of_range_id() -> None:
    with pytest.raises(SerializationError):
        encode_header(-1)
    with pytest.raises(SerializationError):
        encode_header(1 << 32)


def test_zigzag_maps_small_signed_values_to_small_unsigned() -> None:
    assert [zigzag_encode(v) for v in (0, -1, 1, -2, 2)] == [0, 1, 2, 3, 4]
    for value in (0, 1, -1, 150, -150, 2**31):
        assert zigzag_decode(zigzag_encode(value)) == value


def test_first_top_level_message_is_single_zero_byte() -> None:
    assert encode_message_indexes([0]) == b"\x00"
    assert decode_message_indexes(b"\x00", 0) == ([0], 1)


def test_nested_indexes_are_count_then_values() -> None:
    assert encode_message_indexes([1]) == b"\x02\x02"
    assert encode_message_indexes([0, 1]) == b"\x04\x00\x02"
    assert decode_message_indexes(b"\x04\x00\x02rest", 0) == ([0, 1], 3)


def test_multi_byte_varint() -> None:
    # 150 (unsigned) = 0x96 0x01
    assert read_varint(b"\x96\x01", 0, zigzag=False) == (150, 2)


def test_truncated_index_varint_is_format_error() -> None:
    with pytest.raises(FormatError) as exc_info:
        decode_message_indexes(b"\x80", 0)
    assert exc_info.value.offset == 0


def test_index_count_larger_than_data_is_format_error() -> None:
    with pytest.raises(FormatError):
        decode_message_indexes(b"\x14\x02", 0)


def test_read_header_rejects_bad_magic() -> None:
    with pytest.raises(FormatError) as exc_info:
        read_header(b"\x01\x00\x00\x00\x07\x00", subject="users-value")
    assert exc_info.value.offset == 0
    assert exc_info.value.subject == "users-value"


def test_read_header_rejects_short_payload() -> None:
    with pytest.raises(FormatError):
        read_header(b"\x00\x00\x00")
    with pytest.raises(FormatError):
        read_header(b"")


def test_parse_envelope_splits_all_parts() -> None:
    data = encode_envelope(42, [1], b"payload")

    envelope = parse_envelope(data)

    assert envelope.schema_id == 42
    assert envelope.message_indexes == (1,)
    assert envelope.payload == b"payload"
    assert envelope.payload_offset == 7


def test_parse_envelope_index_error_carries_schema_id() -> None:
    data = encode_header(9) + b"\xff"

    with pytest.raises(FormatError) as exc_info:
        parse_envelope(data, subject="s-value")

    assert exc_info.value.schema_id == 9
    assert exc_info.value.subject == "s-value"

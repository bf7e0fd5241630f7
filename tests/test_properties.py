import io

import pytest

from mqttwire.codes import MalformedPacketError, ProtocolViolationError
from mqttwire.properties import (
    Properties,
    PropertyId,
    UserProperty,
    validate_code,
    validate_id,
    write_properties,
    write_will_properties,
)
from mqttwire.wire import PacketType


def _encode(props, packet_type):
    out = io.BytesIO()
    write_properties(props, out, packet_type)
    return out.getvalue()


def _decode(data, packet_type):
    props = Properties()
    props.unpack(io.BytesIO(data), packet_type)
    return props


def test_none_is_written_as_empty_block():
    assert _encode(None, PacketType.CONNACK) == b"\x00"


def test_empty_properties_written_as_empty_block():
    assert _encode(Properties(), PacketType.PUBLISH) == b"\x00"


def test_connack_properties_wire_bytes():
    props = Properties(session_expiry_interval=1, receive_maximum=2, maximum_qos=1)
    assert _encode(props, PacketType.CONNACK) == bytes(
        [10, 0x11, 0, 0, 0, 1, 0x21, 0, 2, 0x24, 1]
    )


def test_reason_string_wire_bytes():
    props = Properties(reason_string=b"a")
    assert _encode(props, PacketType.PUBACK) == bytes([4, 0x1F, 0, 1, ord("a")])


def test_subscription_identifier_wire_bytes_and_read():
    data = bytes([2, 0x0B, 1])
    props = _decode(data, PacketType.SUBSCRIBE)
    assert props.subscription_identifier == [1]
    assert _encode(props, PacketType.SUBSCRIBE) == data


def test_publish_properties_read():
    data = bytes([7, 0x01, 0, 0x02, 0, 0, 0, 1])
    props = _decode(data, PacketType.PUBLISH)
    assert props.payload_format == 0
    assert props.message_expiry == 1
    assert _encode(props, PacketType.PUBLISH) == data


def test_connack_round_trip():
    props = Properties(
        session_expiry_interval=300,
        assigned_client_id=b"client",
        server_keep_alive=60,
        auth_method=b"method",
        auth_data=b"data",
        response_info=b"info",
        server_reference=b"other",
        reason_string=b"ok",
        receive_maximum=5,
        topic_alias_maximum=7,
        maximum_qos=1,
        retain_available=0,
        user=[UserProperty(b"k", b"v"), UserProperty(b"k", b"w")],
        maximum_packet_size=1024,
        wildcard_sub_available=1,
        sub_id_available=0,
        shared_sub_available=1,
    )
    assert _decode(_encode(props, PacketType.CONNACK), PacketType.CONNACK) == props


def test_connect_round_trip():
    props = Properties(
        payload_format=1,
        message_expiry=9,
        content_type=b"text/plain",
        response_topic=b"reply/here",
        correlation_data=b"\x00\xff",
        request_problem_info=1,
        will_delay_interval=3,
        request_response_info=0,
    )
    assert _decode(_encode(props, PacketType.CONNECT), PacketType.CONNECT) == props


def test_empty_block_leaves_properties_unset():
    assert _decode(b"\x00", PacketType.CONNACK) == Properties()


def test_property_not_allowed_for_packet_type():
    with pytest.raises(ProtocolViolationError):
        _decode(bytes([2, 0x24, 1]), PacketType.PUBLISH)


def test_duplicate_flag_is_protocol_error():
    with pytest.raises(ProtocolViolationError):
        _decode(bytes([4, 0x24, 1, 0x24, 1]), PacketType.CONNACK)


def test_duplicate_uint32_is_reported():
    data = bytes([10, 0x02, 0, 0, 0, 1, 0x02, 0, 0, 0, 2])
    with pytest.raises(ValueError, match="more than once"):
        _decode(data, PacketType.PUBLISH)


def test_flag_value_out_of_range():
    with pytest.raises(ProtocolViolationError):
        _decode(bytes([2, 0x01, 2]), PacketType.PUBLISH)


def test_zero_receive_maximum_rejected():
    with pytest.raises(ProtocolViolationError):
        _decode(bytes([3, 0x21, 0, 0]), PacketType.CONNACK)


def test_zero_topic_alias_rejected():
    with pytest.raises(ProtocolViolationError):
        _decode(bytes([3, 0x23, 0, 0]), PacketType.PUBLISH)


def test_zero_subscription_identifier_rejected():
    with pytest.raises(ProtocolViolationError):
        _decode(bytes([2, 0x0B, 0]), PacketType.SUBSCRIBE)


def test_second_subscription_identifier_rejected():
    with pytest.raises(ProtocolViolationError):
        _decode(bytes([4, 0x0B, 1, 0x0B, 2]), PacketType.SUBSCRIBE)


def test_response_topic_with_wildcard_rejected():
    with pytest.raises(ProtocolViolationError):
        _decode(bytes([4, 0x08, 0, 1, ord("+")]), PacketType.PUBLISH)


def test_auth_data_without_method_is_malformed():
    with pytest.raises(MalformedPacketError):
        _decode(bytes([4, 0x16, 0, 1, ord("x")]), PacketType.AUTH)


def test_truncated_value_is_malformed():
    with pytest.raises(MalformedPacketError):
        _decode(bytes([2, 0x02, 0]), PacketType.PUBLISH)


def test_invalid_utf8_user_property_is_malformed():
    with pytest.raises(MalformedPacketError):
        _decode(bytes([7, 0x26, 0, 1, 0x01, 0, 1, ord("v")]), PacketType.PUBLISH)


def test_will_properties_round_trip():
    props = Properties(
        payload_format=1,
        message_expiry=10,
        content_type=b"json",
        response_topic=b"a/b",
        correlation_data=b"id",
        will_delay_interval=5,
        user=[UserProperty(b"key", b"value")],
    )
    out = io.BytesIO()
    write_will_properties(props, out)
    decoded = Properties()
    decoded.unpack_will_properties(io.BytesIO(out.getvalue()))
    assert decoded == props


def test_will_properties_ignore_non_will_fields():
    out = io.BytesIO()
    write_will_properties(Properties(reason_string=b"x", receive_maximum=4), out)
    assert out.getvalue() == b"\x00"


def test_will_properties_reject_unknown_property():
    with pytest.raises(MalformedPacketError):
        Properties().unpack_will_properties(io.BytesIO(bytes([3, 0x21, 0, 1])))


def test_validate_id():
    assert validate_id(PacketType.PUBLISH, PropertyId.TOPIC_ALIAS)
    assert not validate_id(PacketType.CONNECT, PropertyId.TOPIC_ALIAS)
    assert validate_id(PacketType.AUTH, PropertyId.USER)
    assert not validate_id(PacketType.PUBLISH, 0x7F)


def test_validate_code_accepts_any_code():
    assert validate_code(PacketType.PUBACK, 0x87) is True


def test_str_lists_fields():
    text = str(Properties(reason_string=b"a", maximum_qos=1))
    assert text.startswith("PayloadFormat: nil, ")
    assert "ReasonString: [97]" in text
    assert "MaximumQoS: 1" in text
    assert text.endswith("SharedSubAvailable: nil")
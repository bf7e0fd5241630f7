import io

import pytest

from mqttwire.codes import Code, MalformedPacketError
from mqttwire.properties import Properties
from mqttwire.publish import (
    Puback,
    Pubcomp,
    Publish,
    Pubrec,
    Pubrel,
    read_puback,
    read_pubcomp,
    read_publish,
    read_pubrec,
    read_pubrel,
)
from mqttwire.wire import (
    FixedHeader,
    Version,
    decode_remaining_length,
    encode_remaining_length,
    encode_utf8_string,
    read_byte,
)


def read_packet(data, reader, *args):
    stream = io.BytesIO(data)
    first = read_byte(stream)
    header = FixedHeader(first >> 4, first & 0x0F, decode_remaining_length(stream))
    return reader(header, *args, stream), stream


def append_packet(first, *parts):
    body = b"".join(parts)
    return bytes([first]) + encode_remaining_length(len(body)) + body


@pytest.mark.parametrize(
    "topic, dup, retain, qos, pid, payload, properties",
    [
        (b"test topic name1", True, False, 1, 10, b"test payload1", Properties(payload_format=1)),
        (b"test topic name2", False, True, 0, 0, b"test payload2", Properties(message_expiry=100)),
        (b"test topic name3", False, True, 2, 11, b"test payload3", Properties()),
        (b"test topic name4", False, False, 1, 12, b"", Properties()),
    ],
)
def test_read_write_publish_v5(topic, dup, retain, qos, pid, payload, properties):
    pub = Publish(
        version=Version.V5, dup=dup, qos=qos, retain=retain, topic_name=topic,
        packet_id=pid, payload=payload, properties=properties,
    )
    packet, stream = read_packet(pub.to_bytes(), read_publish, Version.V5)
    assert stream.read() == b""
    assert packet.topic_name == topic
    assert packet.packet_id == pid
    assert packet.payload == payload
    assert packet.retain == retain
    assert packet.qos == qos
    assert packet.dup == dup
    assert packet.properties == properties


def test_read_publish_v5_and_pack_back():
    topic = b"test Topic Name"
    pid = bytes([0, 10])
    props = bytes([7, 0x01, 0, 0x02, 0, 0, 0, 1])
    payload = b"test payload"
    pb = append_packet(0x3D, encode_utf8_string(topic), pid, props, payload)
    packet, _ = read_packet(pb, read_publish, Version.V5)
    assert packet.qos == 2
    assert packet.retain is True
    assert packet.topic_name == topic
    assert packet.payload == payload
    assert packet.packet_id == 10
    assert packet.to_bytes() == pb


@pytest.mark.parametrize(
    "topic, dup, retain, qos, pid, payload",
    [
        (b"abc", True, False, 1, 10, b"a"),
        (b"test topic name2", False, True, 0, 0, b"test payload2"),
        (b"test topic name3", False, True, 2, 11, b"test payload3"),
    ],
)
def test_read_write_publish_v311(topic, dup, retain, qos, pid, payload):
    pub = Publish(
        version=Version.V311, dup=dup, qos=qos, retain=retain,
        topic_name=topic, packet_id=pid, payload=payload,
    )
    packet, stream = read_packet(pub.to_bytes(), read_publish, Version.V311)
    assert stream.read() == b""
    assert (packet.topic_name, packet.packet_id, packet.payload) == (topic, pid, payload)
    assert (packet.retain, packet.qos, packet.dup) == (retain, qos, dup)
    assert packet.properties is None


def test_publish_qos0_with_dup_is_malformed():
    data = append_packet(0x38, encode_utf8_string(b"a"))
    with pytest.raises(MalformedPacketError):
        read_packet(data, read_publish, Version.V311)


def test_publish_qos3_is_malformed():
    data = append_packet(0x36, encode_utf8_string(b"a"), bytes([0, 1]))
    with pytest.raises(MalformedPacketError):
        read_packet(data, read_publish, Version.V311)


def test_publish_wildcard_topic_is_malformed():
    data = append_packet(0x30, encode_utf8_string(b"a/+"))
    with pytest.raises(MalformedPacketError):
        read_packet(data, read_publish, Version.V311)


def test_publish_str():
    pub = Publish(topic_name=b"a", payload=b"b")
    assert str(pub) == (
        "Publish, Version: 4, Pid: 0, Dup: false, Qos: 0, Retain: false, "
        "TopicName: a, Payload: b, Properties: <nil>"
    )


def test_publish_new_puback():
    puback = Publish(qos=1, packet_id=123).new_puback(Code.SUCCESS, None)
    assert puback.packet_id == 123
    assert puback.code == Code.SUCCESS


def test_publish_new_pubrec():
    pubrec = Publish(qos=2, packet_id=123).new_pubrec(Code.SUCCESS, None)
    assert pubrec.packet_id == 123


ACK_CASES = [
    (Code.SUCCESS, None, [2, 0, 10]),
    (Code.SUCCESS, Properties(reason_string=b"a"), [8, 0, 10, 0, 4, 0x1F, 0, 1, ord("a")]),
    (Code.NOT_AUTHORIZED, Properties(), [4, 0, 10, Code.NOT_AUTHORIZED, 0]),
]


@pytest.mark.parametrize(
    "cls, reader, first",
    [(Puback, read_puback, 64), (Pubrec, read_pubrec, 80), (Pubcomp, read_pubcomp, 112)],
)
@pytest.mark.parametrize("code, properties, rest", ACK_CASES)
def test_read_write_ack_v5(cls, reader, first, code, properties, rest):
    ack = cls(version=Version.V5, packet_id=10, properties=properties, code=code)
    data = ack.to_bytes()
    assert data == bytes([first] + rest)
    packet, _ = read_packet(data, reader, Version.V5)
    assert packet.code == code
    assert packet.properties == properties
    assert packet.packet_id == 10


@pytest.mark.parametrize(
    "cls, reader", [(Puback, read_puback), (Pubrec, read_pubrec), (Pubcomp, read_pubcomp)]
)
def test_write_ack_v311(cls, reader):
    data = cls(version=Version.V311, packet_id=65535).to_bytes()
    packet, stream = read_packet(data, reader, Version.V311)
    assert stream.read() == b""
    assert isinstance(packet, cls)
    assert packet.packet_id == 65535


@pytest.mark.parametrize(
    "data, reader, cls",
    [
        (bytes([64, 2, 0, 1]), read_puback, Puback),
        (bytes([0x50, 2, 0, 1]), read_pubrec, Pubrec),
        (bytes([0x70, 2, 0, 1]), read_pubcomp, Pubcomp),
    ],
)
def test_read_ack(data, reader, cls):
    packet, _ = read_packet(data, reader, Version.V311)
    assert isinstance(packet, cls)
    assert packet.packet_id == 1


def test_ack_truncated_is_malformed():
    with pytest.raises(MalformedPacketError):
        read_packet(bytes([64, 2, 0]), read_puback, Version.V311)


@pytest.mark.parametrize("code, properties, rest", ACK_CASES)
def test_read_write_pubrel(code, properties, rest):
    data = Pubrel(packet_id=10, properties=properties, code=code).to_bytes()
    assert data == bytes([98] + rest)
    packet, _ = read_packet(data, read_pubrel)
    assert packet.code == code
    assert packet.properties == properties
    assert packet.packet_id == 10


def test_pubrec_new_pubrel():
    pubrel = Pubrec(packet_id=10).new_pubrel()
    assert pubrel.packet_id == 10
    assert pubrel.fixed_header.flags == 2


def test_pubrel_new_pubcomp():
    pubcomp = Pubrel(packet_id=10).new_pubcomp()
    assert pubcomp.packet_id == 10
    assert pubcomp.fixed_header.remaining_length == 2


def test_ack_strings():
    assert str(Puback(packet_id=3)) == "Puback, Version: 4, Pid: 3, Properties: <nil>"
    assert str(Pubrec(packet_id=3)) == "Pubrec, Version: 4, Code 0, Pid: 3, Properties: <nil>"
    assert str(Pubrel(packet_id=3)) == "Pubrel, Code: 0, Pid: 3, Properties: <nil>"
    assert str(Pubcomp(packet_id=3)) == "Pubcomp, Version: 4, Pid: 3, Properties: <nil>"
import io

import pytest

from mqttwire.codes import MalformedPacketError
from mqttwire.ping import Pingreq, Pingresp, read_pingreq, read_pingresp
from mqttwire.wire import FixedHeader, PacketType, decode_remaining_length, read_byte


def read_packet(data, reader):
    stream = io.BytesIO(data)
    first = read_byte(stream)
    header = FixedHeader(first >> 4, first & 0x0F, decode_remaining_length(stream))
    return reader(header, stream)


def test_read_pingreq():
    packet = read_packet(bytes([0xC0, 0]), read_pingreq)
    assert isinstance(packet, Pingreq)
    assert packet.fixed_header.packet_type == PacketType.PINGREQ


def test_write_pingreq():
    assert Pingreq().to_bytes() == bytes([0xC0, 0])


def test_read_pingresp():
    packet = read_packet(bytes([0xD0, 0]), read_pingresp)
    assert isinstance(packet, Pingresp)
    assert packet.fixed_header.packet_type == PacketType.PINGRESP


def test_write_pingresp():
    assert Pingresp().to_bytes() == bytes([0xD0, 0])


@pytest.mark.parametrize(
    "data, reader",
    [
        (bytes([0xC1, 0]), read_pingreq),
        (bytes([0xD1, 0]), read_pingresp),
        (bytes([0xC0, 1, 0]), read_pingreq),
        (bytes([0xD0, 1, 0]), read_pingresp),
    ],
)
def test_bad_ping_is_malformed(data, reader):
    with pytest.raises(MalformedPacketError):
        read_packet(data, reader)


def test_new_pingresp():
    resp = Pingreq().new_pingresp()
    assert resp.fixed_header == FixedHeader(PacketType.PINGRESP, 0, 0)
    assert resp.to_bytes() == bytes([0xD0, 0])


def test_ping_strings():
    assert str(Pingreq()) == "Pingreq"
    assert str(Pingresp()) == "Pingresp"
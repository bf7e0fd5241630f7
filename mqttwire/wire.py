"""Basic MQTT wire encoding: fixed headers, lengths, strings and topic rules."""

from __future__ import annotations

import io
import struct
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import IntEnum
from itertools import zip_longest
from typing import BinaryIO

from .codes import MalformedPacketError


class Version(IntEnum):
    """MQTT protocol levels."""

    V31 = 0x03
    V311 = 0x04
    V5 = 0x05


class PacketType(IntEnum):
    """MQTT control packet types."""

    RESERVED = 0
    CONNECT = 1
    CONNACK = 2
    PUBLISH = 3
    PUBACK = 4
    PUBREC = 5
    PUBREL = 6
    PUBCOMP = 7
    SUBSCRIBE = 8
    SUBACK = 9
    UNSUBSCRIBE = 10
    UNSUBACK = 11
    PINGREQ = 12
    PINGRESP = 13
    DISCONNECT = 14
    AUTH = 15


PROTOCOL_NAMES = {
    Version.V31: b"MQIsdp",
    Version.V311: b"MQTT",
    Version.V5: b"MQTT",
}

MAXIMUM_SIZE = 268435456

QOS0 = 0x00
QOS1 = 0x01
QOS2 = 0x02
SUBSCRIBE_FAILURE = 0x80

FLAG_RESERVED = 0
FLAG_SUBSCRIBE = 2
FLAG_UNSUBSCRIBE = 2
FLAG_PUBREL = 2

MAX_PACKET_ID = 65535
MIN_PACKET_ID = 1

PAYLOAD_FORMAT_BYTES = 0
PAYLOAD_FORMAT_STRING = 1

_MAX_REMAINING_LENGTH = 268435455
_SLASH, _PLUS, _HASH = ord("/"), ord("+"), ord("#")


class InvalidUTF8StringError(ValueError):
    """The bytes are not a valid MQTT UTF-8 encoded string."""

    def __init__(self) -> None:
        super().__init__("invalid utf-8 string")


def is_version3x(version: int) -> bool:
    return version in (Version.V311, Version.V31)


def is_version5(version: int) -> bool:
    return version == Version.V5


@dataclass
class FixedHeader:
    """The fixed header that starts every MQTT packet."""

    packet_type: int
    flags: int = 0
    remaining_length: int = 0

    def pack(self, stream: BinaryIO) -> None:
        """Write the header bytes to ``stream``."""
        first = ((self.packet_type << 4) | self.flags) & 0xFF
        stream.write(bytes([first]) + encode_remaining_length(self.remaining_length))


class Packet(ABC):
    """A decoded MQTT packet that can be written to and read from a stream."""

    @abstractmethod
    def pack(self, stream: BinaryIO) -> None:
        """Encode the packet and write it to ``stream``."""

    @abstractmethod
    def unpack(self, stream: BinaryIO) -> None:
        """Read the packet body from ``stream`` and decode it into this packet."""

    def to_bytes(self) -> bytes:
        """Return the complete encoded packet."""
        out = io.BytesIO()
        self.pack(out)
        return out.getvalue()


def encode_remaining_length(length: int) -> bytes:
    """Encode a length as an MQTT variable byte integer."""
    if length < 0 or length >= MAXIMUM_SIZE:
        raise MalformedPacketError()
    result = bytearray()
    while True:
        length, digit = divmod(length, 128)
        result.append(digit | 0x80 if length else digit)
        if not length:
            return bytes(result)


def decode_remaining_length(stream: BinaryIO) -> int:
    """Read an MQTT variable byte integer; end of stream counts as a final 0."""
    value = 0
    shift = 0
    while True:
        data = stream.read(1)
        digit = data[0] if data else 0
        value |= ((digit & 0x7F) << shift) & 0xFFFFFFFF
        if value > _MAX_REMAINING_LENGTH:
            raise MalformedPacketError()
        if not digit & 0x80:
            return value
        shift += 7


def encode_utf8_string(data: bytes) -> bytes:
    """Prefix ``data`` with its two-byte big-endian length."""
    if len(data) > 65535:
        raise MalformedPacketError()
    return struct.pack(">H", len(data)) + bytes(data)


def decode_utf8_string(data: bytes) -> tuple[bytes, int]:
    """Decode a length-prefixed string; return the payload and bytes consumed."""
    if len(data) < 2:
        raise InvalidUTF8StringError()
    (length,) = struct.unpack_from(">H", data)
    if len(data) < length + 2:
        raise InvalidUTF8StringError()
    payload = bytes(data[2 : length + 2])
    if not valid_utf8(payload):
        raise InvalidUTF8StringError()
    return payload, length + 2


def read_exact(stream: BinaryIO, length: int) -> bytes:
    """Read exactly ``length`` bytes or raise MalformedPacketError."""
    data = stream.read(length)
    if len(data) < length:
        raise MalformedPacketError()
    return data


def read_byte(stream: BinaryIO) -> int:
    return read_exact(stream, 1)[0]


def read_uint16(stream: BinaryIO) -> int:
    return struct.unpack(">H", read_exact(stream, 2))[0]


def read_uint32(stream: BinaryIO) -> int:
    return struct.unpack(">I", read_exact(stream, 4))[0]


def write_uint16(out: BinaryIO, value: int) -> None:
    out.write(struct.pack(">H", value))


def write_uint32(out: BinaryIO, value: int) -> None:
    out.write(struct.pack(">I", value))


def read_utf8_string(must_utf8: bool, stream: BinaryIO) -> bytes:
    """Read a length-prefixed string, validating it when ``must_utf8`` is set."""
    length = read_uint16(stream)
    payload = read_exact(stream, length)
    if must_utf8 and not valid_utf8(payload):
        raise MalformedPacketError()
    return payload


def write_binary(out: BinaryIO, data: bytes) -> None:
    """Write ``data`` prefixed with its two-byte length."""
    out.write(encode_utf8_string(data))


def _decodes_cleanly(data: bytes) -> bool:
    try:
        text = bytes(data).decode("utf-8")
    except UnicodeDecodeError:
        return False
    return "\ufffd" not in text


def valid_utf8(data: bytes) -> bool:
    """Return whether ``data`` is UTF-8 free of the characters MQTT forbids."""
    try:
        text = bytes(data).decode("utf-8")
    except UnicodeDecodeError:
        return False
    return not any(
        ch <= "\x1f" or "\x7f" <= ch <= "\x9f" or ch == "\ufffd" for ch in text
    )


def valid_topic_name(must_utf8: bool, data: bytes) -> bool:
    """Return whether ``data`` is a valid topic name (no wildcards)."""
    if must_utf8 and not _decodes_cleanly(data):
        return False
    return _PLUS not in data and _HASH not in data


def valid_topic_filter(must_utf8: bool, data: bytes) -> bool:
    """Return whether ``data`` is a valid (non-shared) topic filter."""
    if not data:
        return False
    if must_utf8 and not _decodes_cleanly(data):
        return False
    last = len(data) - 1
    previous = None
    for pos, byte in enumerate(data):
        if byte == _HASH and pos != last:
            return False
        if previous is not None:
            if byte in (_PLUS, _HASH) and previous != _SLASH:
                return False
            if byte == _PLUS and pos < last and data[pos + 1] != _SLASH:
                return False
        previous = byte
    return True


def valid_v5_topic(data: bytes) -> bool:
    """Return whether ``data`` is a valid version 5 filter, shared or not."""
    if not data:
        return False
    if not data.startswith(b"$share/"):
        return valid_topic_filter(True, data)
    if len(data) < 9 or data[7] == _SLASH:
        return False
    share_name, separator, topic_filter = data[7:].partition(b"/")
    if not separator or not _decodes_cleanly(share_name):
        return False
    if _PLUS in share_name or _HASH in share_name:
        return False
    return valid_topic_filter(True, topic_filter)


def topic_match(topic: bytes, topic_filter: bytes) -> bool:
    """Return whether the topic name is matched by the topic filter."""
    if not topic or not topic_filter:
        return False
    if (topic_filter[:1] == b"$") != (topic[:1] == b"$"):
        return False
    for level_filter, level in zip_longest(topic_filter.split(b"/"), topic.split(b"/")):
        if level_filter == b"#":
            return True
        if level_filter is None or level is None:
            return False
        if level_filter != b"+" and level_filter != level:
            return False
    return True
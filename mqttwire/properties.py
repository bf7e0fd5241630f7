"""MQTT version 5 properties: decoding, encoding and validity rules."""

from __future__ import annotations

import io
import struct
from dataclasses import dataclass, field
from enum import IntEnum
from typing import BinaryIO, Callable, NamedTuple, Optional

from .codes import MalformedPacketError, ProtocolViolationError
from .wire import (
    PacketType,
    decode_remaining_length,
    encode_remaining_length,
    encode_utf8_string,
    read_byte,
    read_uint16,
    read_uint32,
    read_utf8_string,
    valid_topic_name,
)


class PropertyId(IntEnum):
    """Identifiers of the MQTT version 5 properties."""

    PAYLOAD_FORMAT = 0x01
    MESSAGE_EXPIRY = 0x02
    CONTENT_TYPE = 0x03
    RESPONSE_TOPIC = 0x08
    CORRELATION_DATA = 0x09
    SUBSCRIPTION_IDENTIFIER = 0x0B
    SESSION_EXPIRY_INTERVAL = 0x11
    ASSIGNED_CLIENT_ID = 0x12
    SERVER_KEEP_ALIVE = 0x13
    AUTH_METHOD = 0x15
    AUTH_DATA = 0x16
    REQUEST_PROBLEM_INFO = 0x17
    WILL_DELAY_INTERVAL = 0x18
    REQUEST_RESPONSE_INFO = 0x19
    RESPONSE_INFO = 0x1A
    SERVER_REFERENCE = 0x1C
    REASON_STRING = 0x1F
    RECEIVE_MAXIMUM = 0x21
    TOPIC_ALIAS_MAXIMUM = 0x22
    TOPIC_ALIAS = 0x23
    MAXIMUM_QOS = 0x24
    RETAIN_AVAILABLE = 0x25
    USER = 0x26
    MAXIMUM_PACKET_SIZE = 0x27
    WILDCARD_SUB_AVAILABLE = 0x28
    SUB_ID_AVAILABLE = 0x29
    SHARED_SUB_AVAILABLE = 0x2A


@dataclass
class UserProperty:
    """A user-defined key/value property."""

    key: bytes
    value: bytes


@dataclass
class Properties:
    """All properties defined by MQTT version 5; ``None`` means absent."""

    payload_format: Optional[int] = None
    message_expiry: Optional[int] = None
    content_type: Optional[bytes] = None
    response_topic: Optional[bytes] = None
    correlation_data: Optional[bytes] = None
    subscription_identifier: list[int] = field(default_factory=list)
    session_expiry_interval: Optional[int] = None
    assigned_client_id: Optional[bytes] = None
    server_keep_alive: Optional[int] = None
    auth_method: Optional[bytes] = None
    auth_data: Optional[bytes] = None
    request_problem_info: Optional[int] = None
    will_delay_interval: Optional[int] = None
    request_response_info: Optional[int] = None
    response_info: Optional[bytes] = None
    server_reference: Optional[bytes] = None
    reason_string: Optional[bytes] = None
    receive_maximum: Optional[int] = None
    topic_alias_maximum: Optional[int] = None
    topic_alias: Optional[int] = None
    maximum_qos: Optional[int] = None
    retain_available: Optional[int] = None
    user: list[UserProperty] = field(default_factory=list)
    maximum_packet_size: Optional[int] = None
    wildcard_sub_available: Optional[int] = None
    sub_id_available: Optional[int] = None
    shared_sub_available: Optional[int] = None

    def unpack(self, stream: BinaryIO, packet_type: int) -> None:
        """Read a property block valid for ``packet_type`` into this object."""
        body = _read_block(stream)
        if body is None:
            return
        while prop := body.read(1):
            prop_id = prop[0]
            if not validate_id(packet_type, prop_id):
                raise ProtocolViolationError()
            if prop_id == PropertyId.SUBSCRIPTION_IDENTIFIER:
                if self.subscription_identifier:
                    raise ProtocolViolationError()
                identifier = decode_remaining_length(body)
                if identifier == 0:
                    raise ProtocolViolationError()
                self.subscription_identifier.append(identifier)
            elif prop_id == PropertyId.USER:
                self.user.append(_read_user_property(body))
            elif prop_id in _FIELDS:
                self._read_field(prop_id, body)
            else:
                raise MalformedPacketError()
        if self.auth_data is not None and self.auth_method is None:
            raise MalformedPacketError()

    def unpack_will_properties(self, stream: BinaryIO) -> None:
        """Read the will property block of a CONNECT packet into this object."""
        body = _read_block(stream)
        if body is None:
            return
        while prop := body.read(1):
            prop_id = prop[0]
            if prop_id == PropertyId.USER:
                self.user.append(_read_user_property(body))
            elif prop_id in _WILL_IDS:
                self._read_field(prop_id, body)
            else:
                raise MalformedPacketError()

    def _read_field(self, prop_id: int, body: BinaryIO) -> None:
        spec = _FIELDS[prop_id]
        kind = _KINDS[spec.kind]
        if getattr(self, spec.name) is not None:
            raise kind.duplicate(prop_id)
        value = kind.read(body)
        if spec.validate is not None and not spec.validate(value):
            raise ProtocolViolationError()
        setattr(self, spec.name, value)

    def __str__(self) -> str:
        return ", ".join(
            f"{_camel(name)}: {_render(getattr(self, name))}" for name in _FIELD_ORDER
        )


def write_properties(
    properties: Properties | None, out: BinaryIO, packet_type: int
) -> None:
    """Write a property block; ``None`` is written as an empty block."""
    _write_block(properties, out, _PACK_ORDER)


def write_will_properties(properties: Properties | None, out: BinaryIO) -> None:
    """Write the will property block of a CONNECT packet."""
    _write_block(properties, out, _WILL_PACK_ORDER)


def validate_id(packet_type: int, prop_id: int) -> bool:
    """Return whether the property may appear in a packet of this type."""
    return packet_type in VALID_PROPERTIES.get(prop_id, frozenset())


def validate_code(packet_type: int, code: int) -> bool:
    """Return whether the reason code is acceptable for the packet type."""
    return True


_P = PacketType
VALID_PROPERTIES: dict[int, frozenset[int]] = {
    PropertyId.PAYLOAD_FORMAT: frozenset({_P.CONNECT, _P.PUBLISH}),
    PropertyId.MESSAGE_EXPIRY: frozenset({_P.CONNECT, _P.PUBLISH}),
    PropertyId.CONTENT_TYPE: frozenset({_P.CONNECT, _P.PUBLISH}),
    PropertyId.RESPONSE_TOPIC: frozenset({_P.CONNECT, _P.PUBLISH}),
    PropertyId.CORRELATION_DATA: frozenset({_P.CONNECT, _P.PUBLISH}),
    PropertyId.SUBSCRIPTION_IDENTIFIER: frozenset({_P.SUBSCRIBE}),
    PropertyId.SESSION_EXPIRY_INTERVAL: frozenset({_P.CONNECT, _P.CONNACK, _P.DISCONNECT}),
    PropertyId.ASSIGNED_CLIENT_ID: frozenset({_P.CONNACK}),
    PropertyId.SERVER_KEEP_ALIVE: frozenset({_P.CONNACK}),
    PropertyId.AUTH_METHOD: frozenset({_P.CONNECT, _P.CONNACK, _P.AUTH}),
    PropertyId.AUTH_DATA: frozenset({_P.CONNECT, _P.CONNACK, _P.AUTH}),
    PropertyId.REQUEST_PROBLEM_INFO: frozenset({_P.CONNECT}),
    PropertyId.WILL_DELAY_INTERVAL: frozenset({_P.CONNECT}),
    PropertyId.REQUEST_RESPONSE_INFO: frozenset({_P.CONNECT}),
    PropertyId.RESPONSE_INFO: frozenset({_P.CONNACK}),
    PropertyId.SERVER_REFERENCE: frozenset({_P.CONNACK, _P.DISCONNECT}),
    PropertyId.REASON_STRING: frozenset(
        {_P.CONNACK, _P.PUBACK, _P.PUBREC, _P.PUBREL, _P.PUBCOMP, _P.SUBACK,
         _P.UNSUBACK, _P.DISCONNECT, _P.AUTH}
    ),
    PropertyId.RECEIVE_MAXIMUM: frozenset({_P.CONNECT, _P.CONNACK}),
    PropertyId.TOPIC_ALIAS_MAXIMUM: frozenset({_P.CONNECT, _P.CONNACK}),
    PropertyId.TOPIC_ALIAS: frozenset({_P.PUBLISH}),
    PropertyId.MAXIMUM_QOS: frozenset({_P.CONNACK}),
    PropertyId.RETAIN_AVAILABLE: frozenset({_P.CONNACK}),
    PropertyId.USER: frozenset(
        {_P.CONNECT, _P.CONNACK, _P.PUBLISH, _P.PUBACK, _P.PUBREC, _P.PUBREL,
         _P.PUBCOMP, _P.SUBSCRIBE, _P.UNSUBSCRIBE, _P.SUBACK, _P.UNSUBACK,
         _P.DISCONNECT, _P.AUTH}
    ),
    PropertyId.MAXIMUM_PACKET_SIZE: frozenset({_P.CONNECT, _P.CONNACK}),
    PropertyId.WILDCARD_SUB_AVAILABLE: frozenset({_P.CONNACK}),
    PropertyId.SUB_ID_AVAILABLE: frozenset({_P.CONNACK}),
    PropertyId.SHARED_SUB_AVAILABLE: frozenset({_P.CONNACK}),
}


def _more_than_once(prop_id: int) -> Exception:
    return ValueError(f"property {prop_id} presents more than once")


def _protocol_duplicate(prop_id: int) -> Exception:
    return ProtocolViolationError()


def _read_flag(stream: BinaryIO) -> int:
    value = read_byte(stream)
    if value not in (0, 1):
        raise ProtocolViolationError()
    return value


class _Kind(NamedTuple):
    read: Callable[[BinaryIO], object]
    encode: Callable[[object], bytes]
    duplicate: Callable[[int], Exception]


_KINDS: dict[str, _Kind] = {
    "flag": _Kind(_read_flag, lambda v: bytes([v]), _protocol_duplicate),
    "u16": _Kind(read_uint16, lambda v: struct.pack(">H", v), _protocol_duplicate),
    "u32": _Kind(read_uint32, lambda v: struct.pack(">I", v), _more_than_once),
    "utf8": _Kind(
        lambda s: read_utf8_string(True, s), encode_utf8_string, _more_than_once
    ),
    "binary": _Kind(
        lambda s: read_utf8_string(False, s), encode_utf8_string, _more_than_once
    ),
}


def _nonzero(value: int) -> bool:
    return value != 0


def _topic_name_ok(value: bytes) -> bool:
    return valid_topic_name(True, value)


class _Field(NamedTuple):
    name: str
    kind: str
    validate: Optional[Callable[[object], bool]] = None


_I = PropertyId
_FIELDS: dict[int, _Field] = {
    _I.PAYLOAD_FORMAT: _Field("payload_format", "flag"),
    _I.MESSAGE_EXPIRY: _Field("message_expiry", "u32"),
    _I.CONTENT_TYPE: _Field("content_type", "utf8"),
    _I.RESPONSE_TOPIC: _Field("response_topic", "utf8", _topic_name_ok),
    _I.CORRELATION_DATA: _Field("correlation_data", "binary"),
    _I.SESSION_EXPIRY_INTERVAL: _Field("session_expiry_interval", "u32"),
    _I.ASSIGNED_CLIENT_ID: _Field("assigned_client_id", "utf8"),
    _I.SERVER_KEEP_ALIVE: _Field("server_keep_alive", "u16"),
    _I.AUTH_METHOD: _Field("auth_method", "utf8"),
    _I.AUTH_DATA: _Field("auth_data", "utf8"),
    _I.REQUEST_PROBLEM_INFO: _Field("request_problem_info", "flag"),
    _I.WILL_DELAY_INTERVAL: _Field("will_delay_interval", "u32"),
    _I.REQUEST_RESPONSE_INFO: _Field("request_response_info", "flag"),
    _I.RESPONSE_INFO: _Field("response_info", "utf8"),
    _I.SERVER_REFERENCE: _Field("server_reference", "utf8"),
    _I.REASON_STRING: _Field("reason_string", "utf8"),
    _I.RECEIVE_MAXIMUM: _Field("receive_maximum", "u16", _nonzero),
    _I.TOPIC_ALIAS_MAXIMUM: _Field("topic_alias_maximum", "u16"),
    _I.TOPIC_ALIAS: _Field("topic_alias", "u16", _nonzero),
    _I.MAXIMUM_QOS: _Field("maximum_qos", "flag"),
    _I.RETAIN_AVAILABLE: _Field("retain_available", "flag"),
    _I.MAXIMUM_PACKET_SIZE: _Field("maximum_packet_size", "u32", _nonzero),
    _I.WILDCARD_SUB_AVAILABLE: _Field("wildcard_sub_available", "flag"),
    _I.SUB_ID_AVAILABLE: _Field("sub_id_available", "flag"),
    _I.SHARED_SUB_AVAILABLE: _Field("shared_sub_available", "flag"),
}

_WILL_IDS = frozenset(
    {_I.WILL_DELAY_INTERVAL, _I.PAYLOAD_FORMAT, _I.MESSAGE_EXPIRY,
     _I.CONTENT_TYPE, _I.RESPONSE_TOPIC, _I.CORRELATION_DATA}
)

# Wire order when writing; USER and SUBSCRIPTION_IDENTIFIER are repeated entries.
_PACK_ORDER = (
    _I.PAYLOAD_FORMAT, _I.MESSAGE_EXPIRY, _I.CONTENT_TYPE, _I.RESPONSE_TOPIC,
    _I.CORRELATION_DATA, _I.SUBSCRIPTION_IDENTIFIER, _I.SESSION_EXPIRY_INTERVAL,
    _I.ASSIGNED_CLIENT_ID, _I.SERVER_KEEP_ALIVE, _I.AUTH_METHOD, _I.AUTH_DATA,
    _I.REQUEST_PROBLEM_INFO, _I.WILL_DELAY_INTERVAL, _I.REQUEST_RESPONSE_INFO,
    _I.RESPONSE_INFO, _I.SERVER_REFERENCE, _I.REASON_STRING, _I.RECEIVE_MAXIMUM,
    _I.TOPIC_ALIAS_MAXIMUM, _I.TOPIC_ALIAS, _I.MAXIMUM_QOS, _I.RETAIN_AVAILABLE,
    _I.USER, _I.MAXIMUM_PACKET_SIZE, _I.WILDCARD_SUB_AVAILABLE,
    _I.SUB_ID_AVAILABLE, _I.SHARED_SUB_AVAILABLE,
)

_WILL_PACK_ORDER = (
    _I.PAYLOAD_FORMAT, _I.MESSAGE_EXPIRY, _I.CONTENT_TYPE, _I.RESPONSE_TOPIC,
    _I.CORRELATION_DATA, _I.WILL_DELAY_INTERVAL, _I.USER,
)

_FIELD_ORDER = (
    "payload_format", "message_expiry", "content_type", "response_topic",
    "correlation_data", "subscription_identifier", "session_expiry_interval",
    "assigned_client_id", "server_keep_alive", "auth_method", "auth_data",
    "request_problem_info", "will_delay_interval", "request_response_info",
    "response_info", "server_reference", "reason_string", "receive_maximum",
    "topic_alias_maximum", "topic_alias", "maximum_qos", "retain_available",
    "user", "maximum_packet_size", "wildcard_sub_available", "sub_id_available",
    "shared_sub_available",
)

_NAME_OVERRIDES = {
    "maximum_qos": "MaximumQoS",
    "assigned_client_id": "AssignedClientID",
    "sub_id_available": "SubIDAvailable",
}


def _camel(name: str) -> str:
    return _NAME_OVERRIDES.get(name) or "".join(p.title() for p in name.split("_"))


def _render(value: object) -> str:
    if value is None:
        return "nil"
    if isinstance(value, (bytes, bytearray)):
        return "[" + " ".join(str(b) for b in value) + "]"
    if isinstance(value, list):
        return "[" + " ".join(_render(item) for item in value) + "]"
    if isinstance(value, UserProperty):
        return "{" + _render(value.key) + " " + _render(value.value) + "}"
    return str(value)


def _read_block(stream: BinaryIO) -> BinaryIO | None:
    length = decode_remaining_length(stream)
    if length == 0:
        return None
    return io.BytesIO(stream.read(length))


def _read_user_property(body: BinaryIO) -> UserProperty:
    key = read_utf8_string(True, body)
    value = read_utf8_string(True, body)
    return UserProperty(key=key, value=value)


def _encode_entries(properties: Properties, order: tuple[int, ...]) -> bytes:
    block = bytearray()
    for prop_id in order:
        if prop_id == PropertyId.SUBSCRIPTION_IDENTIFIER:
            for identifier in properties.subscription_identifier:
                block.append(prop_id)
                block += encode_remaining_length(identifier)
        elif prop_id == PropertyId.USER:
            for pair in properties.user:
                block.append(prop_id)
                block += encode_utf8_string(pair.key)
                block += encode_utf8_string(pair.value)
        else:
            spec = _FIELDS[prop_id]
            value = getattr(properties, spec.name)
            if value is not None:
                block.append(prop_id)
                block += _KINDS[spec.kind].encode(value)
    return bytes(block)


def _write_block(
    properties: Properties | None, out: BinaryIO, order: tuple[int, ...]
) -> None:
    block = b"" if properties is None else _encode_entries(properties, order)
    out.write(encode_remaining_length(len(block)) + block)
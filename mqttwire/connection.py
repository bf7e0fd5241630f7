"""Connection-level MQTT packets: CONNECT, CONNACK, AUTH and DISCONNECT."""

from __future__ import annotations

import io
from dataclasses import dataclass
from typing import BinaryIO, Optional

from .codes import Code, CodeError, MalformedPacketError, V3Code
from .properties import Properties, write_properties, write_will_properties
from .wire import (
    FLAG_RESERVED,
    PROTOCOL_NAMES,
    FixedHeader,
    Packet,
    PacketType,
    Version,
    encode_utf8_string,
    is_version3x,
    read_byte,
    read_exact,
    read_uint16,
    read_utf8_string,
    write_binary,
    write_uint16,
)


def _bool(value: bool) -> str:
    return "true" if value else "false"


def _text(value: Optional[bytes]) -> str:
    return (value or b"").decode("utf-8", "replace")


def _props(value: Optional[Properties]) -> str:
    return "<nil>" if value is None else str(value)


def _emit(
    stream: BinaryIO, packet_type: int, body: bytes, flags: int = FLAG_RESERVED
) -> FixedHeader:
    header = FixedHeader(packet_type, flags, len(body))
    header.pack(stream)
    stream.write(body)
    return header


def _read_body(stream: BinaryIO, header: FixedHeader) -> io.BytesIO:
    return io.BytesIO(read_exact(stream, header.remaining_length))


@dataclass
class Connack(Packet):
    """The CONNACK packet acknowledging a connection request."""

    version: int = Version.V311
    fixed_header: Optional[FixedHeader] = None
    code: int = Code.SUCCESS
    session_present: bool = False
    properties: Optional[Properties] = None

    def pack(self, stream: BinaryIO) -> None:
        body = io.BytesIO()
        body.write(bytes([1 if self.session_present else 0, self.code]))
        if self.version == Version.V5:
            write_properties(self.properties, body, PacketType.CONNACK)
        self.fixed_header = _emit(stream, PacketType.CONNACK, body.getvalue())

    def unpack(self, stream: BinaryIO) -> None:
        body = _read_body(stream, self.fixed_header)
        flags = body.read(1)
        session_flag = flags[0] if flags else 0
        if (session_flag >> 1) & 0x7F:
            raise MalformedPacketError()
        self.session_present = session_flag == 1
        self.code = read_byte(body)
        if self.version == Version.V5:
            self.properties = Properties()
            self.properties.unpack(body, PacketType.CONNACK)

    def __str__(self) -> str:
        return (
            f"Connack, Version: {int(self.version)}, Code:{int(self.code)}, "
            f"SessionPresent:{_bool(self.session_present)}, "
            f"Properties: {_props(self.properties)}"
        )


@dataclass
class Connect(Packet):
    """The CONNECT packet a client sends to open a session."""

    version: int = Version.V311
    fixed_header: Optional[FixedHeader] = None
    protocol_level: int = Version.V311
    username_flag: bool = False
    protocol_name: bytes = b"MQTT"
    password_flag: bool = False
    will_retain: bool = False
    will_qos: int = 0
    will_flag: bool = False
    will_topic: bytes = b""
    will_msg: bytes = b""
    clean_start: bool = False
    keep_alive: int = 0
    client_id: bytes = b""
    username: bytes = b""
    password: bytes = b""
    properties: Optional[Properties] = None
    will_properties: Optional[Properties] = None

    def _connect_flags(self) -> int:
        flags = 0
        if self.username_flag:
            flags |= 0x80
        if self.password_flag:
            flags |= 0x40
        if self.will_retain:
            flags |= 0x20
        if self.will_qos == 1:
            flags |= 0x08
        elif self.will_qos == 2:
            flags |= 0x10
        if self.will_flag:
            flags |= 0x04
        if self.clean_start:
            flags |= 0x02
        return flags

    def pack(self, stream: BinaryIO) -> None:
        body = io.BytesIO()
        write_binary(body, self.protocol_name)
        body.write(bytes([self.protocol_level, self._connect_flags()]))
        write_uint16(body, self.keep_alive)
        if self.version == Version.V5:
            write_properties(self.properties, body, PacketType.CONNECT)
        body.write(encode_utf8_string(self.client_id))
        if self.will_flag:
            if self.version == Version.V5:
                write_will_properties(self.will_properties, body)
            body.write(encode_utf8_string(self.will_topic))
            body.write(encode_utf8_string(self.will_msg))
        if self.username_flag:
            body.write(encode_utf8_string(self.username))
        if self.password_flag:
            body.write(encode_utf8_string(self.password))
        self.fixed_header = _emit(stream, PacketType.CONNECT, body.getvalue())

    def unpack(self, stream: BinaryIO) -> None:
        body = _read_body(stream, self.fixed_header)
        self.protocol_name = read_utf8_string(False, body)
        self.protocol_level = read_byte(body)
        self.version = self.protocol_level
        expected = PROTOCOL_NAMES.get(self.protocol_level)
        if expected is None:
            raise CodeError(V3Code.UNACCEPTABLE_PROTOCOL_VERSION)
        if self.protocol_name != expected:
            raise CodeError(Code.UNSUPPORTED_PROTOCOL_VERSION)
        self.version = Version(self.protocol_level)

        flags = read_byte(body)
        if flags & 0x01:  # [MQTT-3.1.2-3]
            raise MalformedPacketError()
        self.clean_start = bool(flags & 0x02)
        self.will_flag = bool(flags & 0x04)
        self.will_qos = (flags >> 3) & 0x03
        if not self.will_flag and self.will_qos != 0:  # [MQTT-3.1.2-11]
            raise MalformedPacketError()
        self.will_retain = bool(flags & 0x20)
        if not self.will_flag and self.will_retain:
            raise MalformedPacketError()
        self.password_flag = bool(flags & 0x40)
        self.username_flag = bool(flags & 0x80)
        self.keep_alive = read_uint16(body)

        if self.version == Version.V5:
            self.properties = Properties()
            self.will_properties = Properties()
            self.properties.unpack(body, PacketType.CONNECT)
        self._unpack_payload(body)

    def _unpack_payload(self, body: BinaryIO) -> None:
        self.client_id = read_utf8_string(True, body)
        if is_version3x(self.version) and not self.client_id and not self.clean_start:
            raise CodeError(V3Code.IDENTIFIER_REJECTED)  # [MQTT-3.1.3-8]
        if self.will_flag:
            if self.version == Version.V5:
                self.will_properties.unpack_will_properties(body)
            self.will_topic = read_utf8_string(True, body)
            self.will_msg = read_utf8_string(True, body)
        if self.username_flag:
            self.username = read_utf8_string(True, body)
        if self.password_flag:
            self.password = read_utf8_string(True, body)

    def new_connack(self, code: int, session_reuse: bool) -> Connack:
        """Build the CONNACK answering this request."""
        present = not self.clean_start and session_reuse and code == Code.SUCCESS
        return Connack(version=self.version, code=code, session_present=present)

    def __str__(self) -> str:
        return (
            f"Connect, Version: {int(self.version)},"
            f"ProtocolLevel: {int(self.protocol_level)}, "
            f"UsernameFlag: {_bool(self.username_flag)}, "
            f"PasswordFlag: {_bool(self.password_flag)}, "
            f"ProtocolName: {_text(self.protocol_name)}, "
            f"CleanStart: {_bool(self.clean_start)}, KeepAlive: {self.keep_alive}, "
            f"ClientID: {_text(self.client_id)}, Username: {_text(self.username)}, "
            f"Password: {_text(self.password)}, WillFlag: {_bool(self.will_flag)}, "
            f"WillRetain: {_bool(self.will_retain)}, WillQos: {self.will_qos}, "
            f"WillMsg: {_text(self.will_msg)}, "
            f"Properties: {_props(self.properties)}, "
            f"WillProperties: {_props(self.will_properties)}"
        )


@dataclass
class Auth(Packet):
    """The AUTH packet used for extended authentication."""

    fixed_header: Optional[FixedHeader] = None
    code: int = Code.SUCCESS
    properties: Optional[Properties] = None

    def pack(self, stream: BinaryIO) -> None:
        body = io.BytesIO()
        if self.code != Code.SUCCESS or self.properties is not None:
            body.write(bytes([self.code]))
            write_properties(self.properties, body, PacketType.AUTH)
        self.fixed_header = _emit(stream, PacketType.AUTH, body.getvalue())

    def unpack(self, stream: BinaryIO) -> None:
        if self.fixed_header.remaining_length == 0:
            self.code = Code.SUCCESS
            return
        body = _read_body(stream, self.fixed_header)
        self.code = read_byte(body)
        self.properties = Properties()
        self.properties.unpack(body, PacketType.AUTH)

    def __str__(self) -> str:
        return f"Auth, Code: {int(self.code)}, Properties: {_props(self.properties)}"


@dataclass
class Disconnect(Packet):
    """The DISCONNECT packet."""

    version: int = Version.V5
    fixed_header: Optional[FixedHeader] = None
    code: int = Code.SUCCESS
    properties: Optional[Properties] = None

    def pack(self, stream: BinaryIO) -> None:
        body = io.BytesIO()
        if not is_version3x(self.version) and (
            self.code != Code.SUCCESS or self.properties is not None
        ):
            body.write(bytes([self.code]))
            write_properties(self.properties, body, PacketType.DISCONNECT)
        self.fixed_header = _emit(stream, PacketType.DISCONNECT, body.getvalue())

    def unpack(self, stream: BinaryIO) -> None:
        body = _read_body(stream, self.fixed_header)
        if self.version != Version.V5:
            return
        self.properties = Properties()
        if self.fixed_header.remaining_length == 0:
            self.code = Code.SUCCESS
            return
        self.code = read_byte(body)
        self.properties.unpack(body, PacketType.DISCONNECT)

    def __str__(self) -> str:
        return (
            f"Disconnect, Version: {int(self.version)}, Code: {int(self.code)}, "
            f"Properties: {_props(self.properties)}"
        )


def _check_reserved(header: FixedHeader) -> None:
    if header.flags != FLAG_RESERVED:
        raise MalformedPacketError()


def read_connect(header: FixedHeader, version: int, stream: BinaryIO) -> Connect:
    """Decode a CONNECT packet whose fixed header has been read."""
    _check_reserved(header)  # [MQTT-2.2.2-2]
    packet = Connect(version=version, fixed_header=header)
    packet.unpack(stream)
    return packet


def read_connack(header: FixedHeader, version: int, stream: BinaryIO) -> Connack:
    """Decode a CONNACK packet whose fixed header has been read."""
    _check_reserved(header)
    packet = Connack(version=version, fixed_header=header)
    packet.unpack(stream)
    return packet


def read_auth(header: FixedHeader, stream: BinaryIO) -> Auth:
    """Decode an AUTH packet whose fixed header has been read."""
    _check_reserved(header)
    packet = Auth(fixed_header=header)
    packet.unpack(stream)
    return packet


def read_disconnect(
    header: FixedHeader, version: int, stream: BinaryIO
) -> Disconnect:
    """Decode a DISCONNECT packet whose fixed header has been read."""
    _check_reserved(header)
    packet = Disconnect(version=version, fixed_header=header)
    packet.unpack(stream)
    return packet
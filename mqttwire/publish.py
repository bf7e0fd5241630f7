"""Publish-flow MQTT packets: PUBLISH, PUBACK, PUBREC, PUBREL and PUBCOMP."""

from __future__ import annotations

import io
from dataclasses import dataclass
from typing import BinaryIO, Optional

from .codes import Code, MalformedPacketError
from .properties import Properties, write_properties
from .wire import (
    FLAG_PUBREL,
    FLAG_RESERVED,
    QOS0,
    QOS1,
    QOS2,
    FixedHeader,
    Packet,
    PacketType,
    Version,
    read_byte,
    read_exact,
    read_uint16,
    read_utf8_string,
    valid_topic_name,
    write_binary,
    write_uint16,
)


def _bool(value: bool) -> str:
    return "true" if value else "false"


def _text(value: Optional[bytes]) -> str:
    return (value or b"").decode("utf-8", "replace")


def _props(value: Optional[Properties]) -> str:
    return "<nil>" if value is None else str(value)


def _emit(stream: BinaryIO, packet_type: int, flags: int, body: bytes) -> FixedHeader:
    header = FixedHeader(packet_type, flags, len(body))
    header.pack(stream)
    stream.write(body)
    return header


def _read_body(stream: BinaryIO, header: FixedHeader) -> io.BytesIO:
    return io.BytesIO(read_exact(stream, header.remaining_length))


@dataclass
class _Ack(Packet):
    """Shared fields of PUBACK, PUBREC and PUBCOMP."""

    version: int = Version.V311
    fixed_header: Optional[FixedHeader] = None
    packet_id: int = 0
    code: int = Code.SUCCESS
    properties: Optional[Properties] = None


def _pack_ack(packet: _Ack, stream: BinaryIO, packet_type: int) -> None:
    body = io.BytesIO()
    write_uint16(body, packet.packet_id)
    if packet.version == Version.V5 and (
        packet.code != Code.SUCCESS or packet.properties is not None
    ):
        body.write(bytes([packet.code]))
        write_properties(packet.properties, body, packet_type)
    packet.fixed_header = _emit(stream, packet_type, FLAG_RESERVED, body.getvalue())


def _unpack_ack(packet: _Ack, stream: BinaryIO, packet_type: int) -> None:
    body = _read_body(stream, packet.fixed_header)
    packet.packet_id = read_uint16(body)
    if packet.fixed_header.remaining_length == 2:
        packet.code = Code.SUCCESS
        return
    if packet.version == Version.V5:
        packet.properties = Properties()
        packet.code = read_byte(body)
        packet.properties.unpack(body, packet_type)


@dataclass
class Puback(_Ack):
    """The PUBACK packet acknowledging a QoS 1 PUBLISH."""

    def pack(self, stream: BinaryIO) -> None:
        _pack_ack(self, stream, PacketType.PUBACK)

    def unpack(self, stream: BinaryIO) -> None:
        _unpack_ack(self, stream, PacketType.PUBACK)

    def __str__(self) -> str:
        return (
            f"Puback, Version: {int(self.version)}, Pid: {self.packet_id}, "
            f"Properties: {_props(self.properties)}"
        )


@dataclass
class Pubcomp(_Ack):
    """The PUBCOMP packet completing a QoS 2 exchange."""

    def pack(self, stream: BinaryIO) -> None:
        _pack_ack(self, stream, PacketType.PUBCOMP)

    def unpack(self, stream: BinaryIO) -> None:
        _unpack_ack(self, stream, PacketType.PUBCOMP)

    def __str__(self) -> str:
        return (
            f"Pubcomp, Version: {int(self.version)}, Pid: {self.packet_id}, "
            f"Properties: {_props(self.properties)}"
        )


@dataclass
class Pubrel(Packet):
    """The PUBREL packet releasing a QoS 2 message."""

    fixed_header: Optional[FixedHeader] = None
    packet_id: int = 0
    code: int = Code.SUCCESS
    properties: Optional[Properties] = None

    def pack(self, stream: BinaryIO) -> None:
        body = io.BytesIO()
        write_uint16(body, self.packet_id)
        if self.code != Code.SUCCESS or self.properties is not None:
            body.write(bytes([self.code]))
            write_properties(self.properties, body, PacketType.PUBREL)
        self.fixed_header = _emit(stream, PacketType.PUBREL, FLAG_PUBREL, body.getvalue())

    def unpack(self, stream: BinaryIO) -> None:
        body = _read_body(stream, self.fixed_header)
        self.packet_id = read_uint16(body)
        if self.fixed_header.remaining_length == 2:
            self.code = Code.SUCCESS
            return
        self.properties = Properties()
        self.code = read_byte(body)
        self.properties.unpack(body, PacketType.PUBREL)

    def new_pubcomp(self) -> Pubcomp:
        """Build the PUBCOMP answering this PUBREL."""
        header = FixedHeader(PacketType.PUBCOMP, FLAG_RESERVED, 2)
        return Pubcomp(fixed_header=header, packet_id=self.packet_id)

    def __str__(self) -> str:
        return (
            f"Pubrel, Code: {int(self.code)}, Pid: {self.packet_id}, "
            f"Properties: {_props(self.properties)}"
        )


@dataclass
class Pubrec(_Ack):
    """The PUBREC packet acknowledging receipt of a QoS 2 PUBLISH."""

    def pack(self, stream: BinaryIO) -> None:
        _pack_ack(self, stream, PacketType.PUBREC)

    def unpack(self, stream: BinaryIO) -> None:
        _unpack_ack(self, stream, PacketType.PUBREC)

    def new_pubrel(self) -> Pubrel:
        """Build the PUBREL that follows this PUBREC."""
        header = FixedHeader(PacketType.PUBREL, FLAG_PUBREL)
        return Pubrel(fixed_header=header, packet_id=self.packet_id)

    def __str__(self) -> str:
        return (
            f"Pubrec, Version: {int(self.version)}, Code {int(self.code)}, "
            f"Pid: {self.packet_id}, Properties: {_props(self.properties)}"
        )


@dataclass
class Publish(Packet):
    """The PUBLISH packet carrying an application message."""

    version: int = Version.V311
    fixed_header: Optional[FixedHeader] = None
    dup: bool = False
    qos: int = QOS0
    retain: bool = False
    topic_name: bytes = b""
    packet_id: int = 0
    payload: bytes = b""
    properties: Optional[Properties] = None

    def pack(self, stream: BinaryIO) -> None:
        flags = (8 if self.dup else 0) | (1 if self.retain else 0) | (self.qos << 1)
        body = io.BytesIO()
        write_binary(body, self.topic_name)
        if self.qos in (QOS1, QOS2):
            write_uint16(body, self.packet_id)
        if self.version == Version.V5:
            write_properties(self.properties, body, PacketType.PUBLISH)
        body.write(self.payload)
        self.fixed_header = _emit(stream, PacketType.PUBLISH, flags & 0x0F, body.getvalue())

    def unpack(self, stream: BinaryIO) -> None:
        body = _read_body(stream, self.fixed_header)
        self.topic_name = read_utf8_string(True, body)
        if not valid_topic_name(True, self.topic_name):
            raise MalformedPacketError()
        if self.qos > QOS0:
            self.packet_id = read_uint16(body)
        if self.version == Version.V5:
            self.properties = Properties()
            self.properties.unpack(body, PacketType.PUBLISH)
        self.payload = body.read()

    def new_puback(self, code: int, properties: Optional[Properties]) -> Puback:
        """Build the PUBACK answering this QoS 1 message."""
        return Puback(
            version=self.version, code=code, packet_id=self.packet_id, properties=properties
        )

    def new_pubrec(self, code: int, properties: Optional[Properties]) -> Pubrec:
        """Build the PUBREC answering this QoS 2 message."""
        return Pubrec(
            version=self.version, code=code, packet_id=self.packet_id, properties=properties
        )

    def __str__(self) -> str:
        return (
            f"Publish, Version: {int(self.version)}, Pid: {self.packet_id}, "
            f"Dup: {_bool(self.dup)}, Qos: {self.qos}, Retain: {_bool(self.retain)}, "
            f"TopicName: {_text(self.topic_name)}, Payload: {_text(self.payload)}, "
            f"Properties: {_props(self.properties)}"
        )


def read_publish(header: FixedHeader, version: int, stream: BinaryIO) -> Publish:
    """Decode a PUBLISH packet whose fixed header has been read."""
    packet = Publish(version=version, fixed_header=header)
    packet.dup = bool((header.flags >> 3) & 1)
    packet.qos = (header.flags >> 1) & 3
    if packet.qos == QOS0 and packet.dup:  # [MQTT-3.3.1-2]
        raise MalformedPacketError()
    if packet.qos > QOS2:
        raise MalformedPacketError()
    packet.retain = bool(header.flags & 1)
    packet.unpack(stream)
    return packet


def read_puback(header: FixedHeader, version: int, stream: BinaryIO) -> Puback:
    """Decode a PUBACK packet whose fixed header has been read."""
    packet = Puback(version=version, fixed_header=header)
    packet.unpack(stream)
    return packet


def read_pubrec(header: FixedHeader, version: int, stream: BinaryIO) -> Pubrec:
    """Decode a PUBREC packet whose fixed header has been read."""
    packet = Pubrec(version=version, fixed_header=header)
    packet.unpack(stream)
    return packet


def read_pubrel(header: FixedHeader, stream: BinaryIO) -> Pubrel:
    """Decode a PUBREL packet whose fixed header has been read."""
    packet = Pubrel(fixed_header=header)
    packet.unpack(stream)
    return packet


def read_pubcomp(header: FixedHeader, version: int, stream: BinaryIO) -> Pubcomp:
    """Decode a PUBCOMP packet whose fixed header has been read."""
    packet = Pubcomp(version=version, fixed_header=header)
    packet.unpack(stream)
    return packet
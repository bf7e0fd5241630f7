"""Subscription MQTT packets: SUBSCRIBE, SUBACK, UNSUBSCRIBE and UNSUBACK."""

from __future__ import annotations

import io
from dataclasses import dataclass, field
from typing import BinaryIO, Optional

from .codes import MalformedPacketError, ProtocolViolationError
from .properties import Properties, write_properties
from .wire import (
    FLAG_RESERVED,
    FLAG_SUBSCRIBE,
    FLAG_UNSUBSCRIBE,
    QOS0,
    QOS2,
    FixedHeader,
    Packet,
    PacketType,
    Version,
    is_version3x,
    read_byte,
    read_exact,
    read_uint16,
    read_utf8_string,
    valid_topic_filter,
    valid_v5_topic,
    write_binary,
    write_uint16,
)


def _props(value: Optional[Properties]) -> str:
    return "<nil>" if value is None else str(value)


def _list(values: list) -> str:
    return "[" + " ".join(str(v) for v in values) + "]"


def _emit(stream: BinaryIO, packet_type: int, flags: int, body: bytes) -> FixedHeader:
    header = FixedHeader(packet_type, flags, len(body))
    header.pack(stream)
    stream.write(body)
    return header


def _read_body(stream: BinaryIO, header: FixedHeader) -> io.BytesIO:
    return io.BytesIO(read_exact(stream, header.remaining_length))


def _exhausted(body: io.BytesIO) -> bool:
    return body.tell() >= len(body.getvalue())


@dataclass
class SubOptions:
    """Options of a subscription.

    ``retain_handling``: 0 sends retained messages on subscribe, 1 only if the
    subscription is new, 2 never. ``no_local`` stops messages being forwarded to
    the publishing client. ``retain_as_published`` keeps the RETAIN flag.
    """

    qos: int = QOS0
    retain_handling: int = 0
    no_local: bool = False
    retain_as_published: bool = False


@dataclass
class Topic(SubOptions):
    """A topic filter together with its subscription options."""

    name: str = ""


@dataclass
class Suback(Packet):
    """The SUBACK packet answering a SUBSCRIBE."""

    version: int = Version.V311
    fixed_header: Optional[FixedHeader] = None
    packet_id: int = 0
    payload: list[int] = field(default_factory=list)
    properties: Optional[Properties] = None

    def pack(self, stream: BinaryIO) -> None:
        body = io.BytesIO()
        write_uint16(body, self.packet_id)
        if self.version == Version.V5:
            write_properties(self.properties, body, PacketType.SUBACK)
        body.write(bytes(self.payload))
        self.fixed_header = _emit(stream, PacketType.SUBACK, FLAG_RESERVED, body.getvalue())

    def unpack(self, stream: BinaryIO) -> None:
        body = _read_body(stream, self.fixed_header)
        self.packet_id = read_uint16(body)
        if self.version == Version.V5:
            self.properties = Properties()
            self.properties.unpack(body, PacketType.SUBACK)
        self.payload = []
        while True:
            self.payload.append(read_byte(body))
            if _exhausted(body):
                return

    def __str__(self) -> str:
        return (
            f"Suback,Version: {int(self.version)}, Pid: {self.packet_id}, "
            f"Payload: {_list(self.payload)}, Properties: {_props(self.properties)}"
        )


@dataclass
class Subscribe(Packet):
    """The SUBSCRIBE packet requesting one or more subscriptions."""

    version: int = Version.V311
    fixed_header: Optional[FixedHeader] = None
    packet_id: int = 0
    topics: list[Topic] = field(default_factory=list)
    properties: Optional[Properties] = None

    def pack(self, stream: BinaryIO) -> None:
        body = io.BytesIO()
        write_uint16(body, self.packet_id)
        if self.version == Version.V5:
            write_properties(self.properties, body, PacketType.SUBSCRIBE)
            for topic in self.topics:
                write_binary(body, topic.name.encode("utf-8"))
                options = (
                    topic.qos
                    | (4 if topic.no_local else 0)
                    | (8 if topic.retain_as_published else 0)
                    | (topic.retain_handling << 4)
                )
                body.write(bytes([options & 0xFF]))
        else:
            for topic in self.topics:
                write_binary(body, topic.name.encode("utf-8"))
                body.write(bytes([topic.qos]))
        self.fixed_header = _emit(
            stream, PacketType.SUBSCRIBE, FLAG_SUBSCRIBE, body.getvalue()
        )

    def unpack(self, stream: BinaryIO) -> None:
        body = _read_body(stream, self.fixed_header)
        self.packet_id = read_uint16(body)
        if self.version == Version.V5:
            self.properties = Properties()
            self.properties.unpack(body, PacketType.SUBSCRIBE)
        self.topics = []
        while True:
            topic_filter = read_utf8_string(True, body)
            if self.version == Version.V5:
                valid = valid_v5_topic(topic_filter)
            else:
                valid = valid_topic_filter(True, topic_filter)
            if not valid:
                raise MalformedPacketError()
            options = read_byte(body)
            topic = Topic(name=topic_filter.decode("utf-8"))
            if self.version == Version.V5:
                topic.qos = options & 0x03
                topic.no_local = bool((options >> 2) & 1)
                topic.retain_as_published = bool((options >> 3) & 1)
                topic.retain_handling = (options >> 4) & 0x03
            else:
                topic.qos = options
                if topic.qos > QOS2:
                    raise ProtocolViolationError()
            if (options >> 6) & 0x03:
                raise ProtocolViolationError()
            if topic.qos > QOS2:
                raise ProtocolViolationError()
            self.topics.append(topic)
            if _exhausted(body):
                return

    def new_suback(self) -> Suback:
        """Build the SUBACK granting each requested QoS."""
        return Suback(
            version=self.version,
            fixed_header=FixedHeader(PacketType.SUBACK, FLAG_RESERVED),
            packet_id=self.packet_id,
            payload=[topic.qos for topic in self.topics],
        )

    def __str__(self) -> str:
        topics = "".join(
            f", Topic[{index}][Name: {topic.name}, Qos: {topic.qos}]"
            for index, topic in enumerate(self.topics)
        )
        return (
            f"Subscribe, Version: {int(self.version)}, Pid: {self.packet_id}"
            f"{topics}, Properties: {_props(self.properties)}"
        )


@dataclass
class Unsuback(Packet):
    """The UNSUBACK packet answering an UNSUBSCRIBE."""

    version: int = Version.V311
    fixed_header: Optional[FixedHeader] = None
    packet_id: int = 0
    properties: Optional[Properties] = None
    payload: list[int] = field(default_factory=list)

    def pack(self, stream: BinaryIO) -> None:
        body = io.BytesIO()
        write_uint16(body, self.packet_id)
        if self.version == Version.V5:
            write_properties(self.properties, body, PacketType.UNSUBACK)
        body.write(bytes(self.payload))
        self.fixed_header = _emit(
            stream, PacketType.UNSUBACK, FLAG_RESERVED, body.getvalue()
        )

    def unpack(self, stream: BinaryIO) -> None:
        body = _read_body(stream, self.fixed_header)
        self.packet_id = read_uint16(body)
        if is_version3x(self.version):
            return
        self.properties = Properties()
        self.properties.unpack(body, PacketType.UNSUBACK)
        self.payload = []
        while True:
            self.payload.append(read_byte(body))
            if _exhausted(body):
                return

    def __str__(self) -> str:
        return (
            f"Unsuback, Version: {int(self.version)}, Pid: {self.packet_id}, "
            f"Payload: {_list(self.payload)}, Properties: {_props(self.properties)}"
        )


@dataclass
class Unsubscribe(Packet):
    """The UNSUBSCRIBE packet removing one or more subscriptions."""

    version: int = Version.V311
    fixed_header: Optional[FixedHeader] = None
    packet_id: int = 0
    topics: list[str] = field(default_factory=list)
    properties: Optional[Properties] = None

    def pack(self, stream: BinaryIO) -> None:
        body = io.BytesIO()
        write_uint16(body, self.packet_id)
        if self.version == Version.V5:
            write_properties(self.properties, body, PacketType.UNSUBSCRIBE)
        for topic in self.topics:
            write_binary(body, topic.encode("utf-8"))
        self.fixed_header = _emit(
            stream, PacketType.UNSUBSCRIBE, FLAG_UNSUBSCRIBE, body.getvalue()
        )

    def unpack(self, stream: BinaryIO) -> None:
        body = _read_body(stream, self.fixed_header)
        self.packet_id = read_uint16(body)
        if self.version == Version.V5:
            self.properties = Properties()
            self.properties.unpack(body, PacketType.UNSUBSCRIBE)
        self.topics = []
        while True:
            topic_filter = read_utf8_string(True, body)
            if not valid_topic_filter(True, topic_filter):
                raise ProtocolViolationError()
            self.topics.append(topic_filter.decode("utf-8"))
            if _exhausted(body):
                return

    def new_unsuback(self) -> Unsuback:
        """Build the UNSUBACK answering this request."""
        payload = [0] * len(self.topics) if self.version == Version.V5 else []
        return Unsuback(
            version=self.version,
            fixed_header=FixedHeader(PacketType.UNSUBACK, 0),
            packet_id=self.packet_id,
            payload=payload,
        )

    def __str__(self) -> str:
        return (
            f"Unsubscribe, Version: {int(self.version)}, Pid: {self.packet_id}, "
            f"Topics: {_list(self.topics)}, Properties: {_props(self.properties)}"
        )


def read_subscribe(header: FixedHeader, version: int, stream: BinaryIO) -> Subscribe:
    """Decode a SUBSCRIBE packet whose fixed header has been read."""
    if header.flags != FLAG_SUBSCRIBE:  # [MQTT-3.8.1-1]
        raise MalformedPacketError()
    packet = Subscribe(version=version, fixed_header=header)
    packet.unpack(stream)
    return packet


def read_suback(header: FixedHeader, version: int, stream: BinaryIO) -> Suback:
    """Decode a SUBACK packet whose fixed header has been read."""
    if header.flags != FLAG_RESERVED:
        raise MalformedPacketError()
    packet = Suback(version=version, fixed_header=header)
    packet.unpack(stream)
    return packet


def read_unsubscribe(
    header: FixedHeader, version: int, stream: BinaryIO
) -> Unsubscribe:
    """Decode an UNSUBSCRIBE packet whose fixed header has been read."""
    if header.flags != FLAG_UNSUBSCRIBE:  # [MQTT-3.10.1-1]
        raise MalformedPacketError()
    packet = Unsubscribe(version=version, fixed_header=header)
    packet.unpack(stream)
    return packet


def read_unsuback(header: FixedHeader, version: int, stream: BinaryIO) -> Unsuback:
    """Decode an UNSUBACK packet whose fixed header has been read."""
    if header.flags != FLAG_RESERVED:
        raise MalformedPacketError()
    packet = Unsuback(version=version, fixed_header=header)
    packet.unpack(stream)
    return packet
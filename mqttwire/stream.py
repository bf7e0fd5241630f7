"""Reading MQTT packets from a byte stream and writing them to one."""

from __future__ import annotations

import io
from typing import BinaryIO, Callable

from .codes import ProtocolViolationError
from .connection import Connect, read_auth, read_connack, read_connect, read_disconnect
from .ping import read_pingreq, read_pingresp
from .publish import read_puback, read_pubcomp, read_publish, read_pubrec, read_pubrel
from .subscribe import read_suback, read_subscribe, read_unsuback, read_unsubscribe
from .wire import FixedHeader, Packet, PacketType, Version, decode_remaining_length

_Reader = Callable[[FixedHeader, int, BinaryIO], Packet]

_READERS: dict[int, _Reader] = {
    PacketType.CONNECT: read_connect,
    PacketType.CONNACK: read_connack,
    PacketType.PUBLISH: read_publish,
    PacketType.PUBACK: read_puback,
    PacketType.PUBREC: read_pubrec,
    PacketType.PUBREL: lambda header, version, stream: read_pubrel(header, stream),
    PacketType.PUBCOMP: read_pubcomp,
    PacketType.SUBSCRIBE: read_subscribe,
    PacketType.SUBACK: read_suback,
    PacketType.UNSUBSCRIBE: read_unsubscribe,
    PacketType.UNSUBACK: read_unsuback,
    PacketType.PINGREQ: lambda header, version, stream: read_pingreq(header, stream),
    PacketType.PINGRESP: lambda header, version, stream: read_pingresp(header, stream),
    PacketType.DISCONNECT: read_disconnect,
    PacketType.AUTH: lambda header, version, stream: read_auth(header, stream),
}


def new_packet(header: FixedHeader, version: int, stream: BinaryIO) -> Packet:
    """Decode the body of the packet described by ``header``."""
    reader = _READERS.get(header.packet_type)
    if reader is None:
        raise ProtocolViolationError()
    return reader(header, version, stream)


def total_bytes(packet: object) -> int:
    """Return the encoded size of a packet, fixed header included; 0 if unknown."""
    header = getattr(packet, "fixed_header", None)
    if not isinstance(header, FixedHeader):
        return 0
    length = header.remaining_length
    if length <= 127:
        header_length = 2
    elif length <= 16383:
        header_length = 3
    elif length <= 2097151:
        header_length = 4
    elif length <= 268435455:
        header_length = 5
    else:
        header_length = 0
    return header_length + length


class PacketReader:
    """Reads packets one at a time, tracking the protocol version in use."""

    def __init__(self, stream: BinaryIO, version: int = Version.V311) -> None:
        self.stream = stream
        self.version = version

    def read_packet(self) -> Packet:
        """Read and decode the next packet; raises EOFError at end of stream."""
        first = self.stream.read(1)
        if not first:
            raise EOFError("end of stream")
        header = FixedHeader(first[0] >> 4, first[0] & 0x0F)
        header.remaining_length = decode_remaining_length(self.stream)
        packet = new_packet(header, self.version, self.stream)
        if isinstance(packet, Connect):
            self.version = packet.version
        return packet


class PacketWriter:
    """Buffers encoded packets and writes them to a stream on flush."""

    def __init__(self, stream: BinaryIO) -> None:
        self.stream = stream
        self._buffer = io.BytesIO()

    def write_packet(self, packet: Packet) -> None:
        """Encode ``packet`` into the buffer; call :meth:`flush` to send it."""
        packet.pack(self._buffer)

    def write_raw(self, data: bytes) -> None:
        """Add raw bytes to the buffer; call :meth:`flush` to send them."""
        self._buffer.write(data)

    def flush(self) -> None:
        """Write everything buffered to the underlying stream."""
        data = self._buffer.getvalue()
        self._buffer = io.BytesIO()
        if data:
            self.stream.write(data)
        flush = getattr(self.stream, "flush", None)
        if flush is not None:
            flush()

    def write_and_flush(self, packet: Packet) -> None:
        """Encode ``packet`` and write it straight through."""
        self.write_packet(packet)
        self.flush()
"""Keep-alive MQTT packets: PINGREQ and PINGRESP."""

from __future__ import annotations

from dataclasses import dataclass
from typing import BinaryIO, Optional

from .codes import MalformedPacketError
from .wire import FLAG_RESERVED, FixedHeader, Packet, PacketType


@dataclass
class Pingresp(Packet):
    """The PINGRESP packet answering a PINGREQ."""

    fixed_header: Optional[FixedHeader] = None

    def pack(self, stream: BinaryIO) -> None:
        self.fixed_header = FixedHeader(PacketType.PINGRESP, 0, 0)
        self.fixed_header.pack(stream)

    def unpack(self, stream: BinaryIO) -> None:
        if self.fixed_header.remaining_length != 0:
            raise MalformedPacketError()

    def __str__(self) -> str:
        return "Pingresp"


@dataclass
class Pingreq(Packet):
    """The PINGREQ packet a client sends to keep the connection alive."""

    fixed_header: Optional[FixedHeader] = None

    def pack(self, stream: BinaryIO) -> None:
        self.fixed_header = FixedHeader(PacketType.PINGREQ, 0, 0)
        self.fixed_header.pack(stream)

    def unpack(self, stream: BinaryIO) -> None:
        if self.fixed_header.remaining_length != 0:
            raise MalformedPacketError()

    def new_pingresp(self) -> Pingresp:
        """Build the PINGRESP answering this request."""
        return Pingresp(fixed_header=FixedHeader(PacketType.PINGRESP, 0, 0))

    def __str__(self) -> str:
        return "Pingreq"


def read_pingreq(header: FixedHeader, stream: BinaryIO) -> Pingreq:
    """Decode a PINGREQ packet whose fixed header has been read."""
    if header.flags != FLAG_RESERVED:
        raise MalformedPacketError()
    packet = Pingreq(fixed_header=header)
    packet.unpack(stream)
    return packet


def read_pingresp(header: FixedHeader, stream: BinaryIO) -> Pingresp:
    """Decode a PINGRESP packet whose fixed header has been read."""
    if header.flags != FLAG_RESERVED:
        raise MalformedPacketError()
    packet = Pingresp(fixed_header=header)
    packet.unpack(stream)
    return packet
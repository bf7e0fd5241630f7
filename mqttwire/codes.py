"""MQTT reason codes and the errors that carry them."""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum
from typing import Iterable


class V3Code(IntEnum):
    """Return codes of a version 3.1 / 3.1.1 CONNACK packet."""

    ACCEPTED = 0x00
    UNACCEPTABLE_PROTOCOL_VERSION = 0x01
    IDENTIFIER_REJECTED = 0x02
    SERVER_UNAVAILABLE = 0x03
    BAD_USERNAME_OR_PASSWORD = 0x04
    NOT_AUTHORIZED = 0x05


class Code(IntEnum):
    """Reason codes of MQTT version 5."""

    SUCCESS = 0x00
    NORMAL_DISCONNECTION = 0x00
    GRANTED_QOS0 = 0x00
    GRANTED_QOS1 = 0x01
    GRANTED_QOS2 = 0x02
    DISCONNECT_WITH_WILL_MESSAGE = 0x04
    NOT_MATCHING_SUBSCRIBERS = 0x10
    NO_SUBSCRIPTION_EXISTED = 0x11
    CONTINUE_AUTHENTICATION = 0x18
    RE_AUTHENTICATE = 0x19
    UNSPECIFIED_ERROR = 0x80
    MALFORMED_PACKET = 0x81
    PROTOCOL_ERROR = 0x82
    IMPLEMENTATION_SPECIFIC_ERROR = 0x83
    UNSUPPORTED_PROTOCOL_VERSION = 0x84
    CLIENT_IDENTIFIER_NOT_VALID = 0x85
    BAD_USER_NAME_OR_PASSWORD = 0x86
    NOT_AUTHORIZED = 0x87
    SERVER_UNAVAILABLE = 0x88
    SERVER_BUSY = 0x89
    BANNED = 0x8A
    BAD_AUTH_METHOD = 0x8C
    KEEP_ALIVE_TIMEOUT = 0x8D
    SESSION_TAKEN_OVER = 0x8E
    TOPIC_FILTER_INVALID = 0x8F
    TOPIC_NAME_INVALID = 0x90
    PACKET_ID_IN_USE = 0x91
    PACKET_ID_NOT_FOUND = 0x92
    RECV_MAX_EXCEEDED = 0x93
    TOPIC_ALIAS_INVALID = 0x94
    PACKET_TOO_LARGE = 0x95
    MESSAGE_RATE_TOO_HIGH = 0x96
    QUOTA_EXCEEDED = 0x97
    ADMIN_ACTION = 0x98
    PAYLOAD_FORMAT_INVALID = 0x99
    RETAIN_NOT_SUPPORTED = 0x9A
    QOS_NOT_SUPPORTED = 0x9B
    USE_ANOTHER_SERVER = 0x9C
    SERVER_MOVED = 0x9D
    SHARED_SUB_NOT_SUPPORTED = 0x9E
    CONNECTION_RATE_EXCEEDED = 0x9F
    MAX_CONNECT_TIME = 0xA0
    SUB_ID_NOT_SUPPORTED = 0xA1
    WILDCARD_SUB_NOT_SUPPORTED = 0xA2


@dataclass(frozen=True)
class UserPropertyPair:
    """A user property key/value pair attached to an error for diagnostics."""

    key: bytes
    value: bytes


class CodeError(Exception):
    """An error that carries an MQTT reason code and optional diagnostics."""

    def __init__(
        self,
        code: int,
        reason_string: bytes | None = None,
        user_properties: Iterable[UserPropertyPair] | None = None,
    ) -> None:
        super().__init__(code, reason_string)
        self.code = code
        self.reason_string = reason_string
        self.user_properties = list(user_properties or ())

    def __str__(self) -> str:
        reason = (self.reason_string or b"").decode("utf-8", "replace")
        return f"operation error: Code = {int(self.code):x}, reasonString: {reason}"


class MalformedPacketError(CodeError):
    """The packet could not be parsed according to the specification."""

    def __init__(self) -> None:
        super().__init__(Code.MALFORMED_PACKET)


class ProtocolViolationError(CodeError):
    """The packet was parsed but violates the protocol."""

    def __init__(self) -> None:
        super().__init__(Code.PROTOCOL_ERROR)
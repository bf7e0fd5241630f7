# mqttwire

`mqttwire` encodes and decodes MQTT control packets for protocol versions 3.1, 3.1.1 and 5.0. It also provides:

- validation of topic names and topic filters, including v5 shared subscriptions (`$share/...`);
- matching of topic names against topic filters;
- a small `Bitmap` type, for example for tracking packet identifiers;
- a PID-file helper for server processes.

## Installation

```
pip install mqttwire
```

To run the test suite, install the `test` extra and run `pytest`:

```
pip install "mqttwire[test]"
pytest
```

## Modules

| Module | Contents |
| --- | --- |
| `mqttwire.wire` | `Version`, `PacketType`, `FixedHeader`, the `Packet` base class, remaining-length and string encoding, topic validation and `topic_match` |
| `mqttwire.properties` | `Properties`, `UserProperty`, `PropertyId`, `write_properties`, `write_will_properties` |
| `mqttwire.connection` | `Connect`, `Connack`, `Auth`, `Disconnect` |
| `mqttwire.publish` | `Publish`, `Puback`, `Pubrec`, `Pubrel`, `Pubcomp` |
| `mqttwire.subscribe` | `Subscribe`, `Suback`, `Unsubscribe`, `Unsuback`, `Topic`, `SubOptions` |
| `mqttwire.ping` | `Pingreq`, `Pingresp` |
| `mqttwire.stream` | `PacketReader`, `PacketWriter`, `new_packet`, `total_bytes` |
| `mqttwire.codes` | reason codes `Code` and `V3Code`, and the errors `CodeError`, `MalformedPacketError`, `ProtocolViolationError` |
| `mqttwire.bitmap` | `Bitmap` |
| `mqttwire.pidfile` | `PIDFile`, `PIDFileExistsError`, `process_exists` |

## Reading and writing packets

`PacketReader` reads one packet at a time from a binary stream. It starts with the version it is given, 3.1.1 by default. When it reads a CONNECT packet, it switches to that packet's version. At the end of the stream it raises `EOFError`.

`PacketWriter` buffers encoded packets. `flush()` writes the buffer to the stream, and `write_and_flush()` does both steps at once.

```python
import io

from mqttwire.publish import Publish
from mqttwire.stream import PacketReader, PacketWriter
from mqttwire.wire import Version

buf = io.BytesIO()
writer = PacketWriter(buf)
writer.write_and_flush(
    Publish(
        version=Version.V311,
        qos=1,
        packet_id=10,
        topic_name=b"sensors/temperature",
        payload=b"21.5",
    )
)

buf.seek(0)
packet = PacketReader(buf, Version.V311).read_packet()
assert packet.topic_name == b"sensors/temperature"
```

Every packet class provides three methods:

- `pack(stream)` writes the packet to the stream;
- `to_bytes()` returns the packet's encoding;
- `unpack(stream)` reads the packet body, once the fixed header has been read.

`total_bytes(packet)` returns a packet's encoded size, fixed header included, based on its `fixed_header`.

Some packets build their own replies:

- `Connect.new_connack(code, session_reuse)`
- `Publish.new_puback(code, properties)`
- `Publish.new_pubrec(code, properties)`
- `Pubrec.new_pubrel()`
- `Pubrel.new_pubcomp()`
- `Subscribe.new_suback()`
- `Unsubscribe.new_unsuback()`
- `Pingreq.new_pingresp()`

MQTT 5 properties are carried in `mqttwire.properties.Properties`. A field set to `None`, or an empty list, is not written.

## Errors

Packets that break the protocol raise exceptions from `mqttwire.codes`:

- `MalformedPacketError` for a malformed packet (reason code 0x81);
- `ProtocolViolationError` for a protocol error (reason code 0x82);
- `CodeError` carrying another reason code, for example when a CONNECT names an unsupported protocol version.

A few other errors are raised elsewhere:

- A property that may appear only once but is repeated raises either `ProtocolViolationError` or `ValueError`, depending on the property's type.
- `wire.decode_utf8_string` raises `InvalidUTF8StringError`.

## Topics

```python
from mqttwire.wire import topic_match, valid_topic_filter, valid_topic_name, valid_v5_topic

assert topic_match(b"a/123/4", b"a/#")
assert not topic_match(b"a/123/4", b"a/+")
assert valid_topic_filter(True, b"sport/tennis/#")
assert not valid_topic_name(True, b"sport/+")
assert valid_v5_topic(b"$share/group/a/+")
```

## Bitmap

`Bitmap(size)` holds bits at offsets from 0 up to and including `size`. The size is rounded up to a multiple of 8. A size of 0, or of 65535 or more, gives 65535.

- `set(offset, value)` stores a bit. It returns `False` if the offset is out of range.
- `get(offset)` reads a bit. An offset out of range reads as 0.

## PID files

```python
from mqttwire.pidfile import PIDFile

with PIDFile("/tmp/broker/broker.pid"):
    ...  # the file is removed on exit
```

Creating a `PIDFile` writes the current process ID to the file and creates any missing parent directories. If the file already names a running process, it raises `PIDFileExistsError` instead.

## What this package does not do

`mqttwire` is a codec library only. It has:

- no broker or server;
- no network connection handling or session state;
- no retained-message or subscription storage;
- no command-line program.

It turns bytes into packet objects and packet objects back into bytes. Running an MQTT service on top of it is left to the application.
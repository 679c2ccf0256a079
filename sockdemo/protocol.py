"""Message framing: a fixed header carrying magic bytes, version, length and CRC-32."""

from __future__ import annotations

import struct
import zlib
from dataclasses import dataclass

MAGIC = 0xDEADBEEF
VERSION = 0x01

# magic (u32), version (u8), three bytes of alignment padding, payload size (u32),
# checksum (u32); all integers in network byte order.
_HEADER = struct.Struct("!IB3xII")
HEADER_SIZE = _HEADER.size
MAX_PAYLOAD = 0xFFFFFFFF


class ProtocolError(Exception):
    """A frame could not be built or did not follow the protocol."""


class InvalidMagicError(ProtocolError):
    """The header did not start with the expected magic bytes."""


class VersionMismatchError(ProtocolError):
    """The header carried an unsupported protocol version."""


class ChecksumError(ProtocolError):
    """The payload did not match the checksum in its header."""


@dataclass(frozen=True)
class ProtocolHeader:
    """The header that precedes every payload on the wire."""

    payload_size: int
    checksum: int
    magic: int = MAGIC
    version: int = VERSION

    def pack(self) -> bytes:
        """Return the header in its wire form."""
        try:
            return _HEADER.pack(self.magic, self.version, self.payload_size, self.checksum)
        except struct.error as exc:
            raise ProtocolError(f"header cannot be encoded: {exc}") from exc

    @classmethod
    def unpack(cls, data: bytes) -> "ProtocolHeader":
        """Build a header from its wire form; padding bytes are ignored."""
        if len(data) != HEADER_SIZE:
            raise ProtocolError(f"header must be {HEADER_SIZE} bytes, got {len(data)}")
        magic, version, payload_size, checksum = _HEADER.unpack(data)
        return cls(payload_size=payload_size, checksum=checksum, magic=magic, version=version)

    def validate(self) -> None:
        """Raise if the magic bytes or the version are not the expected ones."""
        if self.magic != MAGIC:
            raise InvalidMagicError(
                f"Invalid magic bytes. Expected: 0x{MAGIC:x}, Received: 0x{self.magic:x}"
            )
        if self.version != VERSION:
            raise VersionMismatchError(
                f"Protocol Version Expected: {VERSION}, Received: {self.version}"
            )

    def check_payload(self, payload: bytes) -> None:
        """Raise ChecksumError unless *payload* matches this header's checksum."""
        calculated = zlib.crc32(payload)
        if calculated != self.checksum:
            raise ChecksumError(
                f"Checksum not valid! Expected: 0x{self.checksum:x}, "
                f"Calculated: 0x{calculated:x}"
            )


def encode_frame(payload: bytes) -> bytes:
    """Return *payload* preceded by its header."""
    payload = bytes(payload)
    if len(payload) > MAX_PAYLOAD:
        raise ProtocolError("payload is too large for one frame")
    header = ProtocolHeader(payload_size=len(payload), checksum=zlib.crc32(payload))
    return header.pack() + payload


async def read_frame(reader) -> bytes:
    """Read one frame from an asyncio stream reader and return its payload.

    Raises asyncio.IncompleteReadError when the stream ends early and a
    ProtocolError subclass when the frame is invalid.
    """
    header = ProtocolHeader.unpack(await reader.readexactly(HEADER_SIZE))
    header.validate()
    payload = await reader.readexactly(header.payload_size)
    header.check_payload(payload)
    return payload


async def write_frame(writer, payload: bytes) -> None:
    """Write *payload* as one frame to an asyncio stream writer."""
    writer.write(encode_frame(payload))
    await writer.drain()
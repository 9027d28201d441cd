"""Packet builder and parser for the NTR debugger wire format.

Packet layout (all fields little-endian u32)::

    +-------+----------+------+---------+-----------------+-------------+---------+
    | Magic | Sequence | Type | Command |    Args[16]     | Payload len | Payload |
    | 4 B   | 4 B      | 4 B  | 4 B     |      64 B       | 4 B         | var.    |
    +-------+----------+------+---------+-----------------+-------------+---------+

- Magic: 0x12345678
- Sequence: request/response correlation id, echoed by the peer
- Type: 0 for packets without payload, 1 for packets carrying one
- Payload len: number of payload bytes that follow the 84-byte header
"""

from __future__ import annotations

import struct
from dataclasses import dataclass

from ..errors import DecodingError, EncodingError

MAGIC = 0x12345678
ARG_COUNT = 16
HEADER_SIZE = 84
U32_MAX = 0xFFFFFFFF
MAX_PAYLOAD_SIZE = U32_MAX

PACKET_TYPE_EMPTY = 0
PACKET_TYPE_DATA = 1

_HEADER = struct.Struct(f"<4I{ARG_COUNT}II")


@dataclass(frozen=True)
class Packet:
    """A decoded protocol packet."""

    sequence: int
    packet_type: int
    command: int
    args: tuple[int, ...]
    payload: bytes = b""

    @property
    def payload_length(self) -> int:
        return len(self.payload)

    def __repr__(self) -> str:
        used_args = list(self.args)
        while used_args and used_args[-1] == 0:
            used_args.pop()
        return (
            f"Packet(seq={self.sequence}, type={self.packet_type}, "
            f"command=0x{self.command:02X}, args={used_args}, "
            f"payload={len(self.payload)} bytes)"
        )


def _check_u32(name: str, value: int) -> None:
    if not isinstance(value, int) or not 0 <= value <= U32_MAX:
        raise EncodingError(f"{name} must be a 32-bit unsigned integer, got {value!r}")


def encode_request(
    sequence: int,
    command: int,
    args: list[int] | tuple[int, ...] = (),
    payload: bytes = b"",
    packet_type: int | None = None,
) -> bytes:
    """Build the wire bytes for one packet.

    Args:
        sequence: Correlation id for this request.
        command: Command code.
        args: Up to 16 command arguments; missing slots are zero.
        payload: Raw bytes appended after the header.
        packet_type: Header type field. Defaults to 1 when a payload is
            present and 0 otherwise.

    Returns:
        The 84-byte header followed by the payload.

    Raises:
        EncodingError: If a field does not fit its slot or the payload is
            longer than the length field can describe.
    """
    if len(args) > ARG_COUNT:
        raise EncodingError(f"At most {ARG_COUNT} args are allowed, got {len(args)}")
    _check_u32("sequence", sequence)
    _check_u32("command", command)
    for index, arg in enumerate(args):
        _check_u32(f"args[{index}]", arg)

    payload = bytes(payload)
    if len(payload) > MAX_PAYLOAD_SIZE:
        raise EncodingError(
            f"Payload too large: {len(payload)} bytes (max {MAX_PAYLOAD_SIZE})"
        )

    if packet_type is None:
        packet_type = PACKET_TYPE_DATA if payload else PACKET_TYPE_EMPTY
    _check_u32("packet_type", packet_type)

    slots = list(args) + [0] * (ARG_COUNT - len(args))
    header = _HEADER.pack(MAGIC, sequence, packet_type, command, *slots, len(payload))
    return header + payload


def decode_header(data: bytes) -> tuple[Packet, int]:
    """Parse the fixed 84-byte header.

    Returns:
        A payload-less ``Packet`` and the payload length announced by the
        header.

    Raises:
        DecodingError: If the data is shorter than a header or the magic
            marker is wrong.
    """
    if len(data) < HEADER_SIZE:
        raise DecodingError(
            f"Truncated header: {len(data)} bytes, expected {HEADER_SIZE}"
        )

    fields = _HEADER.unpack_from(data)
    magic, sequence, packet_type, command = fields[:4]
    if magic != MAGIC:
        raise DecodingError(f"Bad magic 0x{magic:08X}, expected 0x{MAGIC:08X}")

    args = tuple(fields[4 : 4 + ARG_COUNT])
    payload_length = fields[4 + ARG_COUNT]
    packet = Packet(
        sequence=sequence,
        packet_type=packet_type,
        command=command,
        args=args,
    )
    return packet, payload_length


def decode_response(data: bytes) -> Packet:
    """Parse one complete packet.

    Raises:
        DecodingError: On a bad header or when the payload length field does
            not match the number of bytes following the header.
    """
    header, payload_length = decode_header(data)
    available = len(data) - HEADER_SIZE
    if available != payload_length:
        raise DecodingError(
            f"Payload length mismatch: header says {payload_length}, "
            f"{available} bytes available"
        )
    return Packet(
        sequence=header.sequence,
        packet_type=header.packet_type,
        command=header.command,
        args=header.args,
        payload=bytes(data[HEADER_SIZE:]),
    )

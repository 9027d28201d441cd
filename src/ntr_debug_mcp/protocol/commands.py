"""Command codes, status codes and request builders.

Each command is identified by a 32-bit code used both in the request and
in the peer's response. Responses carry a status code in ``args[0]``.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum

from ..errors import EncodingError
from .framing import PACKET_TYPE_DATA, PACKET_TYPE_EMPTY, U32_MAX

U64_MAX = 0xFFFFFFFFFFFFFFFF


class Command(IntEnum):
    """Command identifiers."""

    HEARTBEAT = 0
    HELLO = 3
    RELOAD = 4
    MEM_READ = 9
    MEM_WRITE = 10
    FIND_PID = 0x50


class Status(IntEnum):
    """Status codes reported by the peer in ``args[0]`` of a response."""

    SUCCESS = 0
    NOT_FOUND = 1
    INVALID_PROCESS = 2
    INVALID_ADDRESS = 3
    ACCESS_DENIED = 4
    FAILURE = 0xFFFFFFFF


@dataclass(frozen=True)
class Request:
    """A command ready to be sequenced and sent."""

    command: Command
    args: tuple[int, ...] = ()
    payload: bytes = b""
    packet_type: int = PACKET_TYPE_EMPTY

    def __repr__(self) -> str:
        return (
            f"Request({self.command.name}, args={list(self.args)}, "
            f"payload={len(self.payload)} bytes)"
        )


def _check_u32(name: str, value: int) -> None:
    if not 0 <= value <= U32_MAX:
        raise EncodingError(f"{name} must be 0-0x{U32_MAX:X}, got {value:#x}")


def build_heartbeat() -> Request:
    """Build a Heartbeat (0) request, a no-op that keeps the link alive."""
    return Request(Command.HEARTBEAT)


def build_hello() -> Request:
    """Build a Hello (3) request."""
    return Request(Command.HELLO)


def build_reload() -> Request:
    """Build a Reload (4) request asking the peer to reload its plugins."""
    return Request(Command.RELOAD)


def build_find_pid(title_id: int) -> Request:
    """Build a FindPid request.

    The 64-bit title id is split across ``args[0]`` (low word) and
    ``args[1]`` (high word).
    """
    if not 0 <= title_id <= U64_MAX:
        raise EncodingError(f"Title id must be a 64-bit unsigned value, got {title_id:#x}")
    return Request(Command.FIND_PID, (title_id & U32_MAX, title_id >> 32))


def build_mem_read(address: int, length: int, pid: int) -> Request:
    """Build a MemRead (9) request.

    Args:
        address: Start address in the target process.
        length: Number of bytes to read.
        pid: Target process id.
    """
    _check_u32("address", address)
    _check_u32("length", length)
    _check_u32("pid", pid)
    return Request(Command.MEM_READ, (pid, address, length))


def build_mem_write(address: int, data: bytes, pid: int) -> Request:
    """Build a MemWrite (10) request carrying ``data`` as payload."""
    _check_u32("address", address)
    _check_u32("pid", pid)
    data = bytes(data)
    # The length arg mirrors the header's payload length field.
    _check_u32("length", len(data))
    return Request(
        Command.MEM_WRITE,
        (pid, address, len(data)),
        payload=data,
        packet_type=PACKET_TYPE_DATA,
    )

"""Response interpretation for peer packets.

Every parser takes the decoded response ``Packet`` and either returns the
typed result or raises. Shapes the protocol does not allow raise
``ProtocolError``; explicit rejections from the peer raise ``OperationError``.
"""

from __future__ import annotations

from dataclasses import dataclass

from ..errors import OperationError, ProtocolError
from .commands import Command, Status
from .framing import Packet


@dataclass
class HeartbeatResponse:
    """Parsed Heartbeat (0) response."""

    log: str

    def __repr__(self) -> str:
        return f"HeartbeatResponse(log={len(self.log)} chars)"


def status_name(status: int) -> str:
    """Readable name for a status code, including unknown ones."""
    try:
        return Status(status).name
    except ValueError:
        return f"0x{status:08X}"


def _status(packet: Packet) -> int:
    return packet.args[0] if packet.args else Status.FAILURE


def _reason(packet: Packet) -> str:
    reason = status_name(_status(packet))
    text = packet.payload.split(b"\x00")[0].decode("utf-8", errors="replace").strip()
    if text:
        reason = f"{reason}: {text}"
    return reason


def _expect_command(packet: Packet, command: Command) -> None:
    if packet.command != command:
        raise ProtocolError(
            f"Expected {command.name} response, got command 0x{packet.command:02X}"
        )


def _raise_for_status(packet: Packet, command: Command) -> None:
    status = _status(packet)
    if status != Status.SUCCESS:
        raise OperationError(command.name, status, _reason(packet))


def parse_heartbeat(packet: Packet) -> HeartbeatResponse:
    """Parse a Heartbeat response.

    The peer may attach its pending debug log as text in the payload.
    """
    _expect_command(packet, Command.HEARTBEAT)
    log = packet.payload.decode("utf-8", errors="replace").rstrip("\x00")
    return HeartbeatResponse(log=log)


def parse_ack(packet: Packet, command: Command) -> None:
    """Check a plain acknowledgement (Hello, Reload, MemWrite)."""
    _expect_command(packet, command)
    _raise_for_status(packet, command)


def parse_find_pid(packet: Packet) -> int | None:
    """Parse a FindPid response.

    Returns:
        The pid from ``args[1]`` on success, ``None`` when the peer reports
        that no process runs the title.

    Raises:
        ProtocolError: For any other status or a response with a payload.
    """
    _expect_command(packet, Command.FIND_PID)
    if packet.payload:
        raise ProtocolError(
            f"FIND_PID response carries an unexpected {len(packet.payload)}-byte payload"
        )

    status = _status(packet)
    if status == Status.NOT_FOUND:
        return None
    if status == Status.SUCCESS:
        return packet.args[1]
    raise ProtocolError(f"Unexpected FIND_PID status {status_name(status)}")


def parse_mem_read(packet: Packet, length: int) -> bytes:
    """Parse a MemRead response and return exactly ``length`` bytes.

    Raises:
        OperationError: If the peer rejected the read.
        ProtocolError: If the payload is not exactly ``length`` bytes long.
    """
    _expect_command(packet, Command.MEM_READ)
    _raise_for_status(packet, Command.MEM_READ)
    if len(packet.payload) != length:
        raise ProtocolError(
            f"MEM_READ returned {len(packet.payload)} bytes, requested {length}"
        )
    return packet.payload

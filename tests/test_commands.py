"""Tests for command builders."""

import pytest

from ntr_debug_mcp.errors import EncodingError
from ntr_debug_mcp.protocol.commands import (
    Command,
    Status,
    build_find_pid,
    build_heartbeat,
    build_hello,
    build_mem_read,
    build_mem_write,
    build_reload,
)
from ntr_debug_mcp.protocol.framing import PACKET_TYPE_DATA, PACKET_TYPE_EMPTY


def test_command_enum_values():
    """Command codes used by the peer."""
    assert Command.HEARTBEAT == 0
    assert Command.HELLO == 3
    assert Command.RELOAD == 4
    assert Command.MEM_READ == 9
    assert Command.MEM_WRITE == 10


def test_status_enum_values():
    assert Status.SUCCESS == 0
    assert Status.NOT_FOUND == 1


def test_build_heartbeat():
    """Heartbeat carries no args and no payload."""
    request = build_heartbeat()
    assert request.command == Command.HEARTBEAT
    assert request.args == ()
    assert request.payload == b""
    assert request.packet_type == PACKET_TYPE_EMPTY


def test_build_hello_and_reload():
    assert build_hello().command == Command.HELLO
    assert build_reload().command == Command.RELOAD


def test_build_find_pid_splits_title_id():
    """Title id is split into low and high 32-bit words."""
    request = build_find_pid(0x0004000000187000)
    assert request.command == Command.FIND_PID
    assert request.args == (0x00187000, 0x00040000)


def test_find_pid_bounds():
    """Title ids must fit in 64 bits."""
    with pytest.raises(EncodingError):
        build_find_pid(-1)
    with pytest.raises(EncodingError):
        build_find_pid(1 << 64)


def test_build_mem_read():
    """MemRead args are pid, address, length."""
    request = build_mem_read(0x083343A4, 4, 0x2A)
    assert request.command == Command.MEM_READ
    assert request.args == (0x2A, 0x083343A4, 4)
    assert request.payload == b""


def test_mem_read_bounds():
    with pytest.raises(EncodingError):
        build_mem_read(0x1_0000_0000, 4, 1)
    with pytest.raises(EncodingError):
        build_mem_read(0, -1, 1)


def test_build_mem_write():
    """MemWrite carries data as payload with its length in args[2]."""
    data = b"\xe8\x03\x00\x00"
    request = build_mem_write(0x08335000, data, 0x2A)
    assert request.command == Command.MEM_WRITE
    assert request.args == (0x2A, 0x08335000, 4)
    assert request.payload == data
    assert request.packet_type == PACKET_TYPE_DATA


def test_mem_write_accepts_bytearray():
    request = build_mem_write(0, bytearray(b"\x01\x02"), 1)
    assert request.payload == b"\x01\x02"
    assert isinstance(request.payload, bytes)


def test_request_repr():
    r = repr(build_mem_read(0x100, 4, 2))
    assert "MEM_READ" in r

"""MCP server entry point for the NTR remote debugger.

Exposes process lookup and memory access on a networked console via the
Model Context Protocol using the official Python MCP SDK with stdio
transport.
"""

from __future__ import annotations

import logging
from typing import Any

from mcp.server.fastmcp import FastMCP

from .client import Session, connect as open_session
from .config import NTR_PORT, SessionConfig
from .errors import NtrError, OperationError

logger = logging.getLogger(__name__)

mcp = FastMCP(
    "ntr-debug",
    instructions="Read and write process memory on a console running the NTR debugger.",
)

MAX_READ_LENGTH = 0x10000

# Session owned by this server process
_session: Session | None = None


def _get_session() -> Session:
    """Get the active session, raising if not connected."""
    if _session is None or _session.closed:
        raise RuntimeError(
            "Not connected to a device. Use the 'connect' tool first."
        )
    return _session


def _parse_int(value: int | str) -> int:
    """Accept ints or decimal/hex strings such as ``"0x0004000000187000"``."""
    if isinstance(value, int):
        return value
    return int(value.strip(), 0)


def _error(e: NtrError) -> dict[str, Any]:
    global _session
    result: dict[str, Any] = {"error": str(e), "error_type": type(e).__name__}
    if _session is not None and _session.closed:
        result["session_closed"] = True
        _session = None
    return result


# ─── CONNECTION TOOLS ─────────────────────────────────────────────────

@mcp.tool()
def connect(address: str, port: int = NTR_PORT) -> dict[str, Any]:
    """Open a debugger session to the console at the given address.

    Args:
        address: IPv4 address or host name of the console.
        port: NTR debugger port (default 8000).
    """
    global _session
    if _session is not None and not _session.closed:
        return {
            "connected": True,
            "message": "Already connected",
            "peer": str(_session.peer),
        }

    try:
        config = SessionConfig(port=port)
    except ValueError as e:
        return {"connected": False, "error": str(e)}

    try:
        _session = open_session(address, config)
    except NtrError as e:
        return {"connected": False, "error": str(e)}

    return {"connected": True, "peer": str(_session.peer)}


@mcp.tool()
def disconnect() -> dict[str, bool]:
    """Close the debugger session."""
    global _session
    if _session is None:
        return {"disconnected": True}
    _session.close()
    _session = None
    return {"disconnected": True}


@mcp.tool()
def session_info() -> dict[str, Any]:
    """Report the state of the current session."""
    if _session is None:
        return {"connected": False}
    return {
        "connected": not _session.closed,
        "peer": str(_session.peer),
        "local_address": _session.peer.local_address,
        "last_sequence": _session.last_sequence,
        "close_reason": _session.close_reason or None,
    }


# ─── PROCESS TOOLS ────────────────────────────────────────────────────

@mcp.tool()
def get_pid(title_id: int | str) -> dict[str, Any]:
    """Find the process id of a running title.

    Args:
        title_id: 64-bit title id, e.g. "0x0004000000187000".
    """
    tid = _parse_int(title_id)
    session = _get_session()
    try:
        pid = session.get_pid(tid)
    except NtrError as e:
        return _error(e)

    if pid is None:
        return {"title_id": f"0x{tid:016X}", "found": False}
    return {"title_id": f"0x{tid:016X}", "found": True, "pid": pid}


@mcp.tool()
def reload_plugins() -> dict[str, Any]:
    """Ask the debugger on the console to reload its plugins."""
    session = _get_session()
    try:
        session.reload()
    except NtrError as e:
        return _error(e)
    return {"reloaded": True}


# ─── MEMORY TOOLS ─────────────────────────────────────────────────────

@mcp.tool()
def read_memory(address: int | str, length: int, pid: int) -> dict[str, Any]:
    """Read raw bytes from a process.

    Args:
        address: Start address, int or hex string.
        length: Number of bytes (1-65536).
        pid: Process id from get_pid.
    """
    if not 1 <= length <= MAX_READ_LENGTH:
        return {"error": f"Length must be 1-{MAX_READ_LENGTH}"}

    addr = _parse_int(address)
    session = _get_session()
    try:
        data = session.mem_read(addr, length, pid)
    except OperationError as e:
        return {"error": e.reason, "status": e.status}
    except NtrError as e:
        return _error(e)

    return {
        "address": f"0x{addr:08X}",
        "pid": pid,
        "length": len(data),
        "data": data.hex(" "),
    }


@mcp.tool()
def write_memory(address: int | str, data_hex: str, pid: int) -> dict[str, Any]:
    """Write raw bytes into a process.

    Args:
        address: Start address, int or hex string.
        data_hex: Bytes to write as hex, spaces allowed ("e8 03 00 00").
        pid: Process id from get_pid.
    """
    try:
        data = bytes.fromhex(data_hex)
    except ValueError as e:
        return {"error": f"Invalid hex data: {e}"}
    if not data:
        return {"error": "No data to write"}

    addr = _parse_int(address)
    session = _get_session()
    try:
        session.mem_write(addr, data, pid)
    except OperationError as e:
        return {"error": e.reason, "status": e.status}
    except NtrError as e:
        return _error(e)

    return {"written": len(data), "address": f"0x{addr:08X}", "pid": pid}


# ─── PROMPTS ──────────────────────────────────────────────────────────

@mcp.prompt()
def watch_value(title_id: str, pointer: str, offset: str) -> str:
    """Follow a pointer to a 32-bit value and monitor it.

    Args:
        title_id: Title id of the game, e.g. "0x0004000000187000".
        pointer: Address holding the base pointer.
        offset: Offset added to the pointer value.
    """
    return f"""Use get_pid with title id {title_id} to find the running process.
Then read 4 bytes at {pointer} with read_memory. Interpret them as a
little-endian 32-bit value and add {offset} to get the target address.

Read 4 bytes at the target address the same way and report the value.
Use write_memory with little-endian bytes if the user wants it changed,
then read it back to confirm."""


# ─── ENTRY POINT ─────────────────────────────────────────────────────

def main():
    """Run the MCP server with stdio transport."""
    logging.basicConfig(level=logging.INFO)
    mcp.run(transport="stdio")


if __name__ == "__main__":
    main()

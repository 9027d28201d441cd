"""Operation-level API: process lookup and remote memory access.

Usage::

    with connect("192.168.2.210") as session:
        pid = session.get_pid(0x0004000000187000)
        data = session.mem_read(0x083343A4, 4, pid)
        session.mem_write(0x083343A4, b"\\xe8\\x03\\x00\\x00", pid)
"""

from __future__ import annotations

import logging

from .config import SessionConfig
from .protocol.commands import (
    Command,
    build_find_pid,
    build_hello,
    build_mem_read,
    build_mem_write,
    build_reload,
)
from .protocol.parser import parse_ack, parse_find_pid, parse_mem_read
from .transport.session import TransportSession

logger = logging.getLogger(__name__)


class Session(TransportSession):
    """A connection to one NTR peer with the debugger commands on top.

    Every call is a fresh round trip; nothing is cached. Calls from several
    threads are serialized on the session lock.
    """

    def get_pid(self, title_id: int) -> int | None:
        """Resolve a title id to the pid of the process running it.

        Args:
            title_id: 64-bit application title id.

        Returns:
            The pid, or ``None`` if no process runs that title.
        """
        pid = self.call(build_find_pid(title_id), parse_find_pid)
        logger.debug("Title %016X -> pid %s", title_id, pid)
        return pid

    def mem_read(self, address: int, length: int, pid: int) -> bytes:
        """Read ``length`` bytes at ``address`` in process ``pid``.

        Raises:
            OperationError: If the peer rejects the pid or address range.
            ProtocolError: If the peer returns a different number of bytes.
        """
        return self.call(
            build_mem_read(address, length, pid),
            lambda response: parse_mem_read(response, length),
        )

    def mem_write(self, address: int, data: bytes, pid: int) -> None:
        """Write ``data`` at ``address`` in process ``pid``.

        Raises:
            OperationError: If the peer does not acknowledge the write.
        """
        self.call(
            build_mem_write(address, data, pid),
            lambda response: parse_ack(response, Command.MEM_WRITE),
        )

    def hello(self) -> None:
        """Send Hello; the peer answers with a plain acknowledgement."""
        self.call(build_hello(), lambda response: parse_ack(response, Command.HELLO))

    def reload(self) -> None:
        """Ask the peer to reload its plugins."""
        self.call(build_reload(), lambda response: parse_ack(response, Command.RELOAD))


def connect(address: str, config: SessionConfig | None = None) -> Session:
    """Open a session to the peer at ``address``.

    Args:
        address: Host name or IPv4 address of the device.
        config: Connection settings; defaults to port 8000 and the module
            default timeouts.

    Raises:
        NtrConnectionError: If the connection cannot be established.
    """
    return Session.open(address, config)

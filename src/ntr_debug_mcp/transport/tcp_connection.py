"""TCP connection to an NTR debugger peer.

The peer listens on a fixed port (8000) and answers one packet at a time.
This module only moves bytes and whole packets; sequencing and locking live
in :mod:`ntr_debug_mcp.transport.session`.
"""

from __future__ import annotations

import logging
import socket
import time
from dataclasses import dataclass

from ..config import CONNECT_TIMEOUT, MAX_RESPONSE_PAYLOAD, NTR_PORT, OPERATION_TIMEOUT
from ..errors import (
    DecodingError,
    NtrConnectionError,
    NtrIOError,
    NtrTimeoutError,
    SessionClosedError,
)
from ..protocol.framing import HEADER_SIZE, Packet, decode_header, decode_response

logger = logging.getLogger(__name__)

RECV_CHUNK_SIZE = 64 * 1024


@dataclass
class PeerInfo:
    """Address information for a connected peer."""

    host: str
    port: int = NTR_PORT
    local_address: str = ""

    def __str__(self) -> str:
        return f"{self.host}:{self.port}"


class TCPConnection:
    """Manages the TCP socket to the peer.

    Usage::

        conn = TCPConnection("192.168.2.210")
        conn.open()
        response = conn.send_and_receive(frame_bytes)
        conn.close()
    """

    def __init__(
        self,
        host: str,
        port: int = NTR_PORT,
        connect_timeout: float = CONNECT_TIMEOUT,
    ) -> None:
        self._host = host
        self._port = port
        self._connect_timeout = connect_timeout
        self._socket: socket.socket | None = None
        self._connected = False
        self._peer_info = PeerInfo(host=host, port=port)

    @property
    def connected(self) -> bool:
        return self._connected

    @property
    def peer_info(self) -> PeerInfo:
        return self._peer_info

    def open(self) -> PeerInfo:
        """Open the TCP connection.

        Returns:
            PeerInfo describing both ends of the connection.

        Raises:
            NtrConnectionError: If the address cannot be resolved, the peer
                refuses the connection, or the connect timeout expires.
        """
        try:
            sock = socket.create_connection(
                (self._host, self._port), timeout=self._connect_timeout
            )
        except (OSError, ValueError) as e:
            # idna rejects malformed host names with UnicodeError (a ValueError)
            raise NtrConnectionError(
                f"Could not connect to NTR peer at {self._peer_info} "
                f"(timeout {self._connect_timeout}s): {e}"
            ) from e

        sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)
        self._socket = sock
        self._connected = True
        local_host, local_port = sock.getsockname()[:2]
        self._peer_info = PeerInfo(
            host=self._host,
            port=self._port,
            local_address=f"{local_host}:{local_port}",
        )

        logger.info("Connected to %s from %s", self._peer_info, self._peer_info.local_address)
        return self._peer_info

    def close(self) -> None:
        """Close the socket. Errors during teardown are logged, not raised."""
        if not self._connected:
            return

        try:
            self._socket.shutdown(socket.SHUT_RDWR)
        except OSError as e:
            logger.debug("Error shutting down socket: %s", e)
        try:
            self._socket.close()
        except OSError as e:
            logger.warning("Error closing socket: %s", e)
        finally:
            self._socket = None
            self._connected = False
            logger.info("Disconnected from %s", self._peer_info)

    def _require_socket(self) -> socket.socket:
        if not self._connected or self._socket is None:
            raise SessionClosedError(f"Not connected to {self._peer_info}")
        return self._socket

    def write(self, data: bytes, timeout: float = OPERATION_TIMEOUT) -> int:
        """Write a whole frame, retrying short writes until done.

        Returns:
            Number of bytes written.

        Raises:
            NtrTimeoutError: If the socket stays unwritable past ``timeout``.
            NtrIOError: If the socket fails.
        """
        sock = self._require_socket()
        sock.settimeout(timeout)
        try:
            sock.sendall(data)
        except socket.timeout as e:
            raise NtrTimeoutError(
                f"Timed out after {timeout}s writing to {self._peer_info}"
            ) from e
        except OSError as e:
            raise NtrIOError(f"Write to {self._peer_info} failed: {e}") from e
        return len(data)

    def read_exact(self, size: int, deadline: float) -> bytes:
        """Read exactly ``size`` bytes before the monotonic ``deadline``.

        Raises:
            NtrTimeoutError: If the deadline passes first.
            NtrIOError: If the peer closes the connection or the socket fails.
        """
        sock = self._require_socket()
        buf = bytearray()
        while len(buf) < size:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                raise NtrTimeoutError(
                    f"Timed out waiting for {size - len(buf)} more bytes "
                    f"from {self._peer_info}"
                )
            sock.settimeout(remaining)
            try:
                chunk = sock.recv(min(size - len(buf), RECV_CHUNK_SIZE))
            except socket.timeout as e:
                raise NtrTimeoutError(
                    f"Timed out waiting for a response from {self._peer_info}"
                ) from e
            except OSError as e:
                raise NtrIOError(f"Read from {self._peer_info} failed: {e}") from e
            if not chunk:
                raise NtrIOError(f"Connection closed by {self._peer_info}")
            buf += chunk
        return bytes(buf)

    def read_packet(
        self,
        timeout: float = OPERATION_TIMEOUT,
        max_payload: int = MAX_RESPONSE_PAYLOAD,
    ) -> Packet:
        """Read one complete packet from the stream.

        Raises:
            DecodingError: If the header is malformed or announces a payload
                larger than ``max_payload``.
        """
        deadline = time.monotonic() + timeout
        header = self.read_exact(HEADER_SIZE, deadline)
        _, payload_length = decode_header(header)
        if payload_length > max_payload:
            raise DecodingError(
                f"Response payload of {payload_length} bytes exceeds "
                f"the {max_payload}-byte limit"
            )
        payload = self.read_exact(payload_length, deadline) if payload_length else b""
        return decode_response(header + payload)

    def send_and_receive(
        self,
        data: bytes,
        timeout: float = OPERATION_TIMEOUT,
        max_payload: int = MAX_RESPONSE_PAYLOAD,
    ) -> Packet:
        """Send one frame and read the packet that answers it.

        Args:
            data: Encoded request frame.
            timeout: Bound on the whole round trip, in seconds.
            max_payload: Largest response payload accepted.
        """
        deadline = time.monotonic() + timeout
        self.write(data, timeout)
        return self.read_packet(max(deadline - time.monotonic(), 0.001), max_payload)

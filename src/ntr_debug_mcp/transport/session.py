"""Sequenced, serialized request/response transport with keep-alive.

The peer handles exactly one command at a time and echoes the request's
sequence number, so each session holds one lock around the full
send-then-receive cycle. Foreground calls and the heartbeat thread share
that lock.
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Callable, TypeVar

from ..config import SessionConfig
from ..errors import FATAL_ERRORS, ProtocolError, SessionClosedError
from ..protocol.commands import Request, build_heartbeat
from ..protocol.framing import U32_MAX, Packet, encode_request
from ..protocol.parser import HeartbeatResponse, parse_heartbeat
from .tcp_connection import PeerInfo, TCPConnection

logger = logging.getLogger(__name__)

INITIAL_SEQUENCE = 1000
SEQUENCE_STEP = 1000

T = TypeVar("T")


class TransportSession:
    """One live connection to a peer.

    A session exclusively owns its socket and sequence counter. Any
    I/O, timeout or framing failure closes it; afterwards every call
    raises ``SessionClosedError`` without touching the network.
    """

    def __init__(self, connection: TCPConnection, config: SessionConfig | None = None) -> None:
        self._connection = connection
        self._config = config or SessionConfig()
        self._lock = threading.Lock()
        self._sequence = INITIAL_SEQUENCE - SEQUENCE_STEP
        self._closed = not connection.connected
        self._close_reason = "" if connection.connected else "never connected"
        self._last_activity = time.monotonic()
        self._last_heartbeat: float | None = None
        self._stop = threading.Event()
        self._heartbeat_thread: threading.Thread | None = None

    @classmethod
    def open(cls, host: str, config: SessionConfig | None = None):
        """Connect to ``host`` and start the keep-alive thread.

        Raises:
            NtrConnectionError: If the connection cannot be established.
        """
        config = config or SessionConfig()
        connection = TCPConnection(host, config.port, config.connect_timeout)
        connection.open()
        session = cls(connection, config)
        session.start_heartbeat()
        return session

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def __repr__(self) -> str:
        state = f"closed: {self._close_reason}" if self._closed else "open"
        return f"{type(self).__name__}({self.peer}, {state})"

    @property
    def peer(self) -> PeerInfo:
        return self._connection.peer_info

    @property
    def config(self) -> SessionConfig:
        return self._config

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def close_reason(self) -> str:
        return self._close_reason

    @property
    def last_sequence(self) -> int | None:
        """Sequence number of the most recent request, if any was sent."""
        if self._sequence < INITIAL_SEQUENCE:
            return None
        return self._sequence

    @property
    def last_heartbeat(self) -> float | None:
        """``time.monotonic()`` of the last acknowledged heartbeat."""
        return self._last_heartbeat

    def _ensure_open(self) -> None:
        if self._closed:
            raise SessionClosedError(
                f"Session to {self.peer} is closed ({self._close_reason})"
            )

    def _close_locked(self, reason: str) -> None:
        if self._closed:
            return
        self._closed = True
        self._close_reason = reason
        self._stop.set()
        self._connection.close()

    def send_and_receive(self, request: Request, timeout: float | None = None) -> Packet:
        """Send ``request`` and return the packet that answers it.

        Blocks while another request on this session is in flight.

        Raises:
            SessionClosedError: If the session was already closed.
            EncodingError: If the request cannot be encoded; nothing is sent
                and the session stays open.
            ProtocolError: On a sequence or command mismatch; the session
                is closed.
            NtrIOError, NtrTimeoutError, DecodingError: On transport
                failures; the session is closed.
        """
        with self._lock:
            return self._send_and_receive_locked(request, timeout)

    def call(
        self,
        request: Request,
        parse: Callable[[Packet], T],
        timeout: float | None = None,
    ) -> T:
        """Send ``request`` and interpret the response with ``parse``.

        A ``ProtocolError`` from ``parse`` closes the session like a framing
        error; an ``OperationError`` leaves it open.
        """
        with self._lock:
            response = self._send_and_receive_locked(request, timeout)
            try:
                return parse(response)
            except FATAL_ERRORS as e:
                logger.warning("Closing session to %s: %s", self.peer, e)
                self._close_locked(str(e))
                raise

    def _send_and_receive_locked(self, request: Request, timeout: float | None) -> Packet:
        self._ensure_open()

        sequence = self._sequence + SEQUENCE_STEP
        if sequence > U32_MAX:
            self._close_locked("sequence number exhausted")
            raise ProtocolError(f"Sequence number wrapped past 0x{U32_MAX:X}")

        frame = encode_request(
            sequence,
            request.command,
            request.args,
            request.payload,
            packet_type=request.packet_type,
        )
        self._sequence = sequence
        if timeout is None:
            timeout = self._config.operation_timeout

        logger.debug("-> seq=%d %r", sequence, request)
        try:
            response = self._connection.send_and_receive(
                frame, timeout, self._config.max_response_payload
            )
            if response.sequence != sequence:
                raise ProtocolError(
                    f"Sequence mismatch: sent {sequence}, received {response.sequence}"
                )
            if response.command != request.command:
                raise ProtocolError(
                    f"Command mismatch: sent {request.command.name}, "
                    f"received 0x{response.command:02X}"
                )
        except FATAL_ERRORS as e:
            logger.warning("Closing session to %s: %s", self.peer, e)
            self._close_locked(str(e))
            raise

        logger.debug("<- %r", response)
        self._last_activity = time.monotonic()
        return response

    def heartbeat(self) -> HeartbeatResponse:
        """Send one heartbeat and return the peer's reply."""
        return self.call(
            build_heartbeat(), self._record_heartbeat, self._config.heartbeat_timeout
        )

    def _record_heartbeat(self, response: Packet) -> HeartbeatResponse:
        parsed = parse_heartbeat(response)
        self._last_heartbeat = time.monotonic()
        if parsed.log:
            logger.debug("Peer log from %s: %s", self.peer, parsed.log)
        return parsed

    def start_heartbeat(self) -> None:
        """Start the background keep-alive thread, if enabled."""
        interval = self._config.heartbeat_interval
        if interval <= 0 or self._heartbeat_thread is not None or self._closed:
            return
        self._heartbeat_thread = threading.Thread(
            target=self._heartbeat_loop,
            name=f"ntr-heartbeat-{self.peer}",
            daemon=True,
        )
        self._heartbeat_thread.start()

    def _heartbeat_loop(self) -> None:
        interval = self._config.heartbeat_interval
        while not self._stop.wait(interval):
            if time.monotonic() - self._last_activity < interval:
                continue
            # A caller holding the lock is already keeping the link busy.
            if not self._lock.acquire(blocking=False):
                continue
            try:
                response = self._send_and_receive_locked(
                    build_heartbeat(), self._config.heartbeat_timeout
                )
                self._record_heartbeat(response)
            except SessionClosedError:
                break
            except FATAL_ERRORS as e:
                logger.warning("Heartbeat to %s failed: %s", self.peer, e)
                self._close_locked(str(e))
                break
            finally:
                self._lock.release()

    def close(self) -> None:
        """Close the session. Safe to call more than once.

        Waits for an in-flight request to finish before releasing the socket.
        """
        self._stop.set()
        with self._lock:
            self._close_locked("closed by caller")
        thread = self._heartbeat_thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=self._config.heartbeat_timeout)

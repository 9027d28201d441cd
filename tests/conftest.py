"""Shared fixtures: a cooperative in-process NTR peer."""

from __future__ import annotations

import socketserver
import threading
import time
from typing import Callable

import pytest

from ntr_debug_mcp.client import Session, connect
from ntr_debug_mcp.config import SessionConfig
from ntr_debug_mcp.protocol.commands import Command, Status
from ntr_debug_mcp.protocol.framing import (
    HEADER_SIZE,
    Packet,
    decode_header,
    decode_response,
    encode_request,
)

TITLE_ID = 0x0004000000187000
PID = 0x2A

ResponseHook = Callable[[Packet, Packet], "Packet | bytes | None"]


def encode_packet(packet: Packet) -> bytes:
    """Encode a response packet, keeping its explicit packet type."""
    return encode_request(
        packet.sequence,
        packet.command,
        packet.args,
        packet.payload,
        packet_type=packet.packet_type,
    )


class FakePeer:
    """Single-threaded-per-connection NTR peer backed by a sparse memory map.

    ``titles`` maps title ids to pids; only pids in ``titles`` accept memory
    commands. ``response_hook(request, response)`` may return a replacement
    packet or raw bytes to send instead; empty bytes hang up.
    """

    def __init__(self) -> None:
        self.titles: dict[int, int] = {TITLE_ID: PID}
        self.memory: dict[int, dict[int, int]] = {}
        self.received: list[Packet] = []
        self.heartbeat_log = ""
        self.delay: dict[int, float] = {}
        self.response_hook: ResponseHook | None = None
        self.lock = threading.Lock()
        self._server: socketserver.ThreadingTCPServer | None = None
        self._thread: threading.Thread | None = None

    @property
    def port(self) -> int:
        return self._server.server_address[1]

    def count(self, command: Command) -> int:
        with self.lock:
            return sum(1 for p in self.received if p.command == command)

    def load(self, pid: int, address: int, data: bytes) -> None:
        mem = self.memory.setdefault(pid, {})
        for i, b in enumerate(data):
            mem[address + i] = b

    def respond(self, request: Packet) -> Packet:
        status = Status.SUCCESS
        args: list[int] = [0] * 16
        payload = b""
        pids = set(self.titles.values())

        if request.command == Command.HEARTBEAT:
            payload = self.heartbeat_log.encode("utf-8")
        elif request.command == Command.FIND_PID:
            title_id = request.args[0] | (request.args[1] << 32)
            if title_id in self.titles:
                args[1] = self.titles[title_id]
            else:
                status = Status.NOT_FOUND
        elif request.command == Command.MEM_READ:
            pid, address, length = request.args[:3]
            if pid not in pids:
                status = Status.INVALID_PROCESS
            else:
                mem = self.memory.get(pid, {})
                payload = bytes(mem.get(address + i, 0) for i in range(length))
        elif request.command == Command.MEM_WRITE:
            pid, address, length = request.args[:3]
            if pid not in pids:
                status = Status.INVALID_PROCESS
                payload = b"no such process\x00"
            else:
                self.load(pid, address, request.payload[:length])
        elif request.command not in (Command.HELLO, Command.RELOAD):
            status = Status.FAILURE

        args[0] = status
        return Packet(
            sequence=request.sequence,
            packet_type=1 if payload else 0,
            command=request.command,
            args=tuple(args),
            payload=payload,
        )

    def start(self) -> None:
        peer = self

        class Handler(socketserver.StreamRequestHandler):
            def handle(self) -> None:
                while True:
                    header = self.rfile.read(HEADER_SIZE)
                    if len(header) < HEADER_SIZE:
                        return
                    _, length = decode_header(header)
                    request = decode_response(header + self.rfile.read(length))
                    with peer.lock:
                        peer.received.append(request)

                    delay = peer.delay.get(request.command, 0)
                    if delay:
                        time.sleep(delay)

                    response = peer.respond(request)
                    if peer.response_hook is not None:
                        replaced = peer.response_hook(request, response)
                        if replaced is not None:
                            response = replaced
                    data = response if isinstance(response, bytes) else encode_packet(response)
                    if not data:
                        return  # hang up
                    try:
                        self.wfile.write(data)
                        self.wfile.flush()
                    except OSError:
                        return

        class Server(socketserver.ThreadingTCPServer):
            allow_reuse_address = True
            daemon_threads = True

        self._server = Server(("127.0.0.1", 0), Handler)
        self._thread = threading.Thread(target=self._server.serve_forever, daemon=True)
        self._thread.start()

    def stop(self) -> None:
        self._server.shutdown()
        self._server.server_close()


def wait_for(predicate: Callable[[], bool], timeout: float = 2.0) -> bool:
    """Poll ``predicate`` until it holds or ``timeout`` expires."""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


@pytest.fixture
def peer():
    fake = FakePeer()
    fake.start()
    yield fake
    fake.stop()


@pytest.fixture
def make_session(peer):
    """Factory for sessions to the fake peer; heartbeat off unless asked."""
    sessions: list[Session] = []

    def factory(**overrides) -> Session:
        settings = {"port": peer.port, "heartbeat_interval": 0, "operation_timeout": 2.0}
        settings.update(overrides)
        session = connect("127.0.0.1", SessionConfig(**settings))
        sessions.append(session)
        return session

    yield factory
    for session in sessions:
        session.close()


@pytest.fixture
def session(make_session):
    return make_session()

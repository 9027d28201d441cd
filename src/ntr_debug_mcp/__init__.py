"""Client for the NTR remote debugger protocol, with an MCP server front end."""

from .client import Session, connect
from .config import SessionConfig
from .errors import (
    DecodingError,
    EncodingError,
    NtrConnectionError,
    NtrError,
    NtrIOError,
    NtrTimeoutError,
    OperationError,
    ProtocolError,
    SessionClosedError,
)

# Short names matching the protocol documentation.
ConnectionError = NtrConnectionError
IoError = NtrIOError
TimeoutError = NtrTimeoutError

__all__ = [
    "ConnectionError",
    "DecodingError",
    "EncodingError",
    "IoError",
    "NtrConnectionError",
    "NtrError",
    "NtrIOError",
    "NtrTimeoutError",
    "OperationError",
    "ProtocolError",
    "Session",
    "SessionClosedError",
    "SessionConfig",
    "TimeoutError",
    "connect",
]

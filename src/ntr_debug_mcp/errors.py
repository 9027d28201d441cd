"""Error types raised by the NTR client.

Connection-level, I/O-level and framing-level failures close the session
they happen on. ``EncodingError`` is raised before anything is written and
``OperationError`` is a peer-side rejection, so neither affects the session.
"""

from __future__ import annotations


class NtrError(Exception):
    """Base class for all NTR client errors."""


class NtrConnectionError(NtrError, ConnectionError):
    """Raised when a TCP connection to the peer cannot be established."""


class NtrIOError(NtrError, OSError):
    """Raised when the link breaks in the middle of an operation."""


class EncodingError(NtrError, ValueError):
    """Raised when a request cannot be represented in the wire format."""


class DecodingError(NtrError):
    """Raised when bytes from the peer are not a well-formed packet."""


class ProtocolError(NtrError):
    """Raised on sequence mismatch or an unexpected response shape."""


class NtrTimeoutError(NtrError, TimeoutError):
    """Raised when the peer does not answer within the operation timeout."""


class OperationError(NtrError):
    """Raised when the peer explicitly rejects a request.

    The session stays usable after this error.
    """

    status: int
    reason: str

    def __init__(self, command: str, status: int, reason: str) -> None:
        self.command = command
        self.status = status
        self.reason = reason
        super().__init__(f"{command} rejected by peer (status {status}): {reason}")


class SessionClosedError(NtrError):
    """Raised when an operation is attempted on a closed session."""


# Fatal errors close the session that raised them.
FATAL_ERRORS = (NtrIOError, DecodingError, ProtocolError, NtrTimeoutError)

"""Connection settings for NTR sessions."""

from __future__ import annotations

from dataclasses import dataclass

NTR_PORT = 8000
CONNECT_TIMEOUT = 5.0
OPERATION_TIMEOUT = 10.0
HEARTBEAT_INTERVAL = 1.0
HEARTBEAT_TIMEOUT = 2.0
MAX_RESPONSE_PAYLOAD = 16 * 1024 * 1024


@dataclass(frozen=True)
class SessionConfig:
    """Settings applied to one session.

    Timeouts are in seconds. A ``heartbeat_interval`` of 0 disables the
    background keep-alive thread.
    """

    port: int = NTR_PORT
    connect_timeout: float = CONNECT_TIMEOUT
    operation_timeout: float = OPERATION_TIMEOUT
    heartbeat_interval: float = HEARTBEAT_INTERVAL
    heartbeat_timeout: float = HEARTBEAT_TIMEOUT
    max_response_payload: int = MAX_RESPONSE_PAYLOAD

    def __post_init__(self) -> None:
        if not 0 < self.port <= 0xFFFF:
            raise ValueError(f"Port must be 1-65535, got {self.port}")
        if self.connect_timeout <= 0 or self.operation_timeout <= 0:
            raise ValueError("Timeouts must be positive")
        if self.heartbeat_interval < 0:
            raise ValueError(
                f"Heartbeat interval must be >= 0, got {self.heartbeat_interval}"
            )
        if self.heartbeat_timeout <= 0:
            raise ValueError("Heartbeat timeout must be positive")

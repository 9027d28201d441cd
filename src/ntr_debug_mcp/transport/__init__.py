"""Transport layer: TCP connection and the sequenced session on top of it."""

from .session import TransportSession
from .tcp_connection import PeerInfo, TCPConnection

"""Protocol layer: packet framing, command builders, and response parsing."""

from .framing import Packet, decode_response, encode_request
from .commands import Command, Request, Status

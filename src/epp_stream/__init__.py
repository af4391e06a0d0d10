"""
EPP Stream

Client-side EPP transport: a TCP/TLS stream connection speaking the
RFC 5734 length-prefixed framing, with greeting validation on open.
"""

__version__ = "1.0.0"

from epp_stream.config import ConnectionConfig
from epp_stream.connection import StreamSocketConnection
from epp_stream.framing import (
    HEADER_SIZE,
    MAX_FRAME_SIZE,
    decode_header,
    encode_frame,
    encode_header,
)
from epp_stream.models import Greeting
from epp_stream.xml_parser import is_greeting_valid, parse_greeting
from epp_stream.exceptions import (
    EPPError,
    EPPConfigurationError,
    EPPConnectionError,
    EPPConnectError,
    EPPGreetingError,
    EPPNotOpenError,
    EPPReadTimeoutError,
    EPPCloseError,
    EPPFrameError,
    EPPLengthMismatchError,
    EPPXMLError,
)

__all__ = [
    # Connection
    "StreamSocketConnection",
    "ConnectionConfig",
    # Framing
    "HEADER_SIZE",
    "MAX_FRAME_SIZE",
    "encode_header",
    "decode_header",
    "encode_frame",
    # Greeting
    "Greeting",
    "parse_greeting",
    "is_greeting_valid",
    # Exceptions
    "EPPError",
    "EPPConfigurationError",
    "EPPConnectionError",
    "EPPConnectError",
    "EPPGreetingError",
    "EPPNotOpenError",
    "EPPReadTimeoutError",
    "EPPCloseError",
    "EPPFrameError",
    "EPPLengthMismatchError",
    "EPPXMLError",
]

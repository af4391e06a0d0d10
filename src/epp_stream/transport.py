"""
EPP Transport

Byte-stream transport used by the EPP connection: a TCP socket, optionally
wrapped in TLS 1.2+ with client certificate authentication.
"""

import logging
import socket
import ssl
from typing import Any, Mapping, Optional, Protocol, Tuple
from urllib.parse import urlsplit

from epp_stream.config import DEFAULT_PORT
from epp_stream.exceptions import EPPConnectError

logger = logging.getLogger("epp.transport")

PLAIN_SCHEMES = ("tcp",)
TLS_SCHEMES = ("tls", "ssl")


class Stream(Protocol):
    """Capabilities the connection needs from a byte stream."""

    def read_some(self, max_bytes: int) -> bytes:
        """Read up to max_bytes; may return fewer, or none."""

    def write_some(self, data: bytes) -> int:
        """Write a prefix of data and return how many bytes were taken."""

    def close(self) -> None:
        """Release the stream."""

    def at_eof(self) -> bool:
        """True once the peer has closed the stream."""


class SocketStream:
    """
    Stream over a connected (optionally TLS-wrapped) socket.

    A read that hits the socket timeout returns no bytes rather than
    raising. End of stream is latched when the peer closes.
    """

    def __init__(self, sock: socket.socket):
        self._socket = sock
        self._eof = False

    @property
    def socket(self) -> socket.socket:
        return self._socket

    def set_timeout(self, seconds: Optional[float]) -> None:
        self._socket.settimeout(seconds)

    def read_some(self, max_bytes: int) -> bytes:
        try:
            data = self._socket.recv(max_bytes)
        except socket.timeout:
            return b""
        if not data:
            self._eof = True
        return data

    def write_some(self, data: bytes) -> int:
        try:
            return self._socket.send(data)
        except socket.timeout:
            return 0

    def at_eof(self) -> bool:
        return self._eof or self._socket.fileno() == -1

    def close(self) -> None:
        try:
            self._socket.shutdown(socket.SHUT_RDWR)
        except OSError as e:
            # Peer may already be gone
            logger.debug(f"Socket shutdown failed: {e}")
        self._socket.close()


def parse_uri(uri: str) -> Tuple[str, str, int]:
    """
    Split an EPP server URI.

    Args:
        uri: URI such as ``tls://epp.example.test:700``

    Returns:
        Tuple of (scheme, host, port)

    Raises:
        EPPConnectError: If the scheme is unsupported or host is missing
    """
    parts = urlsplit(uri)
    scheme = parts.scheme.lower()

    if scheme not in PLAIN_SCHEMES + TLS_SCHEMES:
        raise EPPConnectError(f"Unsupported URI scheme: {parts.scheme or '(none)'}")

    try:
        port = parts.port or DEFAULT_PORT
    except ValueError as e:
        raise EPPConnectError(f"Invalid port in URI {uri}: {e}") from e

    if not parts.hostname:
        raise EPPConnectError(f"No host in URI: {uri}")

    return scheme, parts.hostname, port


def create_ssl_context(options: Mapping[str, Any]) -> ssl.SSLContext:
    """
    Create SSL context for EPP connection.

    Args:
        options: TLS options (cert_file, key_file, ca_file, verify_server)

    Returns:
        Configured SSL context
    """
    # Create context with TLS 1.2 minimum
    context = ssl.SSLContext(ssl.PROTOCOL_TLS_CLIENT)
    context.minimum_version = ssl.TLSVersion.TLSv1_2

    # Set verification mode
    if options.get("verify_server", True):
        context.verify_mode = ssl.CERT_REQUIRED
        context.check_hostname = True
    else:
        context.check_hostname = False
        context.verify_mode = ssl.CERT_NONE

    # Load CA certificates
    ca_file = options.get("ca_file")
    if ca_file:
        context.load_verify_locations(ca_file)
    else:
        context.load_default_certs()

    # Load client certificate and key
    cert_file = options.get("cert_file")
    key_file = options.get("key_file")
    if cert_file and key_file:
        context.load_cert_chain(certfile=cert_file, keyfile=key_file)
    elif cert_file:
        # Cert and key in same file
        context.load_cert_chain(certfile=cert_file)

    return context


def connect(uri: str, options: Mapping[str, Any], timeout: float) -> SocketStream:
    """
    Open a stream to an EPP server.

    Args:
        uri: Server URI (tcp://, tls:// or ssl://)
        options: Transport options; TLS settings live under "tls"
        timeout: Connect timeout in seconds

    Returns:
        Connected stream

    Raises:
        EPPConnectError: If the connection or TLS handshake fails
    """
    scheme, host, port = parse_uri(uri)
    tls_options = options.get("tls") or {}

    context = None
    if scheme in TLS_SCHEMES:
        try:
            context = create_ssl_context(tls_options)
        except (OSError, ValueError) as e:
            raise EPPConnectError(f"TLS configuration error: {e}") from e

    raw_socket = None
    try:
        logger.debug(f"Connecting to {host}:{port}")
        raw_socket = socket.create_connection((host, port), timeout=timeout)

        if context is None:
            sock = raw_socket
        else:
            sock = context.wrap_socket(
                raw_socket,
                server_hostname=tls_options.get("server_hostname", host),
            )
            cipher = sock.cipher()
            if cipher:
                logger.debug(f"TLS cipher: {cipher[0]}, version: {cipher[1]}")

    except ssl.SSLError as e:
        _close_quietly(raw_socket)
        raise EPPConnectError(f"TLS error: {e}") from e
    except socket.timeout as e:
        _close_quietly(raw_socket)
        raise EPPConnectError(f"Connection timeout to {host}:{port}") from e
    except OSError as e:
        _close_quietly(raw_socket)
        raise EPPConnectError(f"Socket error: {e}") from e

    logger.info(f"Connected to {host}:{port}")
    return SocketStream(sock)


def _close_quietly(sock: Optional[socket.socket]) -> None:
    """Close a socket that never became a stream."""
    if sock is None:
        return
    try:
        sock.close()
    except OSError as e:
        logger.debug(f"Socket close failed: {e}")

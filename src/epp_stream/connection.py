"""
EPP Connection

Framed stream connection to an EPP server (RFC 5734).

The connection owns at most one stream. Opening it connects the transport and
reads the server greeting, which must pass the injected validator before the
connection is usable. Frames are read and written with the bounded retry
loops from ``epp_stream.framing``.
"""

import logging
import threading
import time
from typing import Any, Callable, Optional, Union

from epp_stream import transport as default_transport
from epp_stream.config import ConnectionConfig
from epp_stream.exceptions import (
    EPPCloseError,
    EPPConfigurationError,
    EPPConnectError,
    EPPConnectionError,
    EPPError,
    EPPFrameError,
    EPPGreetingError,
    EPPLengthMismatchError,
    EPPNotOpenError,
    EPPReadTimeoutError,
)
from epp_stream.framing import (
    HEADER_SIZE,
    decode_header,
    encode_frame,
    read_exactly,
    write_exactly,
)

default_logger = logging.getLogger("epp.connection")


class StreamSocketConnection:
    """
    Connection to an EPP server over a length-prefixed byte stream.

    Handles:
    - Connection lifecycle (open, close) with greeting validation
    - Frame-based I/O with partial read/write retry
    - Read timeout enforcement

    Public operations are serialised on a lock. ``close()`` called from
    another thread interrupts a read or write blocked in its retry loop.

    Example:
        connection = StreamSocketConnection(
            {"uri": "tls://epp.example.test:700", "timeout": 30},
            greeting_validator=is_greeting_valid,
        )

        with connection:
            connection.write(b"<epp>...</epp>")
            response = connection.read()
    """

    def __init__(
        self,
        config: Union[ConnectionConfig, dict],
        greeting_validator: Callable[[bytes], bool],
        logger: Optional[Union[logging.Logger, logging.LoggerAdapter]] = None,
        transport: Optional[Callable[..., Any]] = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Optional[Callable[[float], Any]] = None,
    ):
        """
        Initialize EPP connection.

        Args:
            config: ConnectionConfig or dict with uri, timeout, transport_options
            greeting_validator: Predicate over the raw greeting frame
            logger: Sink for debug/info events (default: "epp.connection")
            transport: Factory ``(uri, options, timeout) -> stream``
            clock: Monotonic time source for deadlines
            sleep: Backoff function; defaults to waiting on the close signal

        Raises:
            EPPConfigurationError: If config is invalid
        """
        self.config = ConnectionConfig.coerce(config)

        if not callable(greeting_validator):
            raise EPPConfigurationError("greeting_validator must be callable")

        self._is_greeting_valid = greeting_validator
        self._logger = logger or default_logger
        self._transport = transport or default_transport.connect
        self._clock = clock

        self._stream = None
        self._greeting: Optional[bytes] = None
        self._lock = threading.RLock()
        self._closing = threading.Event()
        self._sleep = sleep or self._closing.wait

    @property
    def greeting(self) -> Optional[bytes]:
        """Raw greeting frame received on open."""
        return self._greeting

    def is_opened(self) -> bool:
        """Check if a stream is held and the peer has not closed it."""
        stream = self._stream
        return stream is not None and not stream.at_eof()

    def open(self) -> None:
        """
        Connect to the server and validate its greeting.

        Raises:
            EPPConnectionError: If already connected
            EPPConnectError: If the transport can not be established
            EPPGreetingError: If the greeting is missing or invalid
        """
        with self._lock:
            if self.is_opened():
                raise EPPConnectionError("Already connected")
            if self._stream is not None:
                # Peer closed the previous stream; release it before reconnecting
                self._discard()

            self._closing.clear()
            uri = self.config.uri
            timeout = self.config.timeout

            self._logger.debug(f"Opening connection to {uri}")
            try:
                stream = self._transport(uri, self.config.transport_options, timeout)
            except EPPError:
                raise
            except Exception as e:
                raise EPPConnectError(f"Can not open connection to {uri}: {e}") from e

            self._stream = stream
            set_timeout = getattr(stream, "set_timeout", None)
            if set_timeout is not None:
                try:
                    set_timeout(timeout)
                except Exception as e:
                    self._discard()
                    raise EPPConnectError(f"Can not set read timeout: {e}") from e

            try:
                greeting = self._read_frame(stream)
            except Exception as e:
                self._discard()
                raise EPPGreetingError(f"Can not read the greeting: {e}") from e

            try:
                valid = self._is_greeting_valid(greeting)
            except Exception as e:
                self._discard()
                raise EPPGreetingError(f"Greeting validation failed: {e}") from e

            if not valid:
                self._discard()
                raise EPPGreetingError("The server did not send a valid greeting")

            self._greeting = greeting
            self._logger.info(f"Connected to {uri}")

    def close(self) -> None:
        """
        Release the stream.

        Does nothing when no stream is held. The connection is considered
        closed even if releasing the stream fails.

        Raises:
            EPPCloseError: If the stream could not be released
        """
        self._closing.set()
        with self._lock:
            stream = self._stream
            if stream is None:
                return

            self._stream = None
            self._greeting = None
            try:
                stream.close()
            except Exception as e:
                raise EPPCloseError(f"An error occurred while closing the connection: {e}") from e

            self._logger.info(f"Disconnected from {self.config.uri}")

    def read(self) -> bytes:
        """
        Receive EPP frame from server.

        Returns:
            Frame body (without header)

        Raises:
            EPPNotOpenError: If not connected
            EPPReadTimeoutError: If the header does not arrive in time
            EPPLengthMismatchError: If the body is shorter than declared
            EPPFrameError: If the header is malformed
        """
        with self._lock:
            if not self.is_opened():
                raise EPPNotOpenError("You tried to read from a closed connection")
            return self._read_frame(self._stream)

    def write(self, payload: Union[bytes, str]) -> None:
        """
        Send EPP frame to server.

        Args:
            payload: XML data to send (str is encoded as UTF-8)

        Raises:
            EPPNotOpenError: If not connected
            EPPFrameError: If the payload is not bytes or str, or is too
                large to frame
            EPPLengthMismatchError: If not every byte could be written
        """
        with self._lock:
            if not self.is_opened():
                raise EPPNotOpenError("You tried to write to a closed connection")

            if isinstance(payload, str):
                data = payload.encode("utf-8")
            elif isinstance(payload, (bytes, bytearray)):
                data = bytes(payload)
            else:
                raise EPPFrameError(
                    f"Payload must be bytes or str, not {type(payload).__name__}"
                )
            stream = self._stream

            self._logger.info(f"Sending {len(data)} bytes", extra={"payload": data})
            command = encode_frame(data)
            self._logger.debug(
                f"Number of bytes of a command: {len(command)}",
                extra={"length": len(command)},
            )

            try:
                written = write_exactly(
                    stream,
                    command,
                    self.config.timeout,
                    is_open=self._alive(stream),
                    sleep=self._sleep,
                    clock=self._clock,
                    log=self._logger,
                    set_timeout=getattr(stream, "set_timeout", None),
                )
            except EPPLengthMismatchError:
                self._discard()
                raise

            if written != len(command):
                # A partial frame is on the wire; the stream is out of sync
                self._discard()
                raise EPPLengthMismatchError(
                    "The number of bytes of a command is not equal to the number "
                    "of bytes written to the connection",
                    expected=len(command),
                    actual=written,
                )

    def request(self, payload: Union[bytes, str]) -> bytes:
        """
        Send request and receive response.

        Args:
            payload: XML request data

        Returns:
            XML response data
        """
        with self._lock:
            self.write(payload)
            return self.read()

    def _read_frame(self, stream) -> bytes:
        """Read one frame from the held stream."""
        timeout = self.config.timeout
        begin = self._clock()

        try:
            header = self._read_exactly(stream, HEADER_SIZE, timeout, "response header")
        except EPPReadTimeoutError as e:
            # Plain expiry with nothing consumed: the next read starts clean
            if e.partial or e.__cause__ is not None or not self._alive(stream)():
                self._discard()
            raise

        try:
            length = decode_header(header)
        except EPPFrameError:
            self._discard()
            raise
        self._logger.debug(
            f"The length of the response body is {length} bytes.",
            extra={"length": length},
        )

        remaining = max(timeout - (self._clock() - begin), 0)
        try:
            body = self._read_exactly(stream, length, remaining, "response body")
        except EPPReadTimeoutError as e:
            self._discard()
            raise EPPLengthMismatchError(
                "The number of bytes of a response body is not equal to the "
                "number of bytes from header",
                expected=length,
                actual=len(e.partial),
            ) from e

        elapsed = round(self._clock() - begin, 3)
        self._logger.debug(
            f"The response time is {elapsed} seconds.",
            extra={"elapsed": elapsed},
        )
        self._logger.info(
            f"Received {length} bytes",
            extra={"payload": body, "elapsed": elapsed},
        )
        return body

    def _read_exactly(self, stream, length: int, timeout: float, label: str) -> bytes:
        return read_exactly(
            stream,
            length,
            timeout,
            is_open=self._alive(stream),
            sleep=self._sleep,
            clock=self._clock,
            log=self._logger,
            label=label,
            set_timeout=getattr(stream, "set_timeout", None),
        )

    def _alive(self, stream) -> Callable[[], bool]:
        """Predicate polled by the retry loops."""
        return lambda: not self._closing.is_set() and not stream.at_eof()

    def _discard(self) -> None:
        """Drop the stream after a fault that leaves it unusable."""
        stream, self._stream = self._stream, None
        self._greeting = None
        if stream is None:
            return
        try:
            stream.close()
        except Exception as e:
            self._logger.warning(f"Failed to release the stream: {e}")

    def __enter__(self):
        """Context manager entry."""
        self.open()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        self.close()
        return False

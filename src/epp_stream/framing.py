"""
EPP Framing

Handles EPP frame encoding/decoding per RFC 5734.
Each EPP message is prefixed with a 4-byte length header (network byte order)
whose value counts the header itself.

The read/write helpers move an exact number of bytes across a stream that
may transfer fewer bytes per call than requested. They retry with a linear
backoff until the transfer completes or the deadline passes.
"""

import logging
import struct
import time
from typing import Callable, Optional

from epp_stream.exceptions import (
    EPPFrameError,
    EPPLengthMismatchError,
    EPPReadTimeoutError,
)

logger = logging.getLogger("epp.framing")

# 4-byte length prefix
HEADER_SIZE = 4

# Maximum frame size (10MB - reasonable limit)
MAX_FRAME_SIZE = 10 * 1024 * 1024

# Backoff grows by this many seconds per attempt
BACKOFF_STEP = 0.1

# Lower bound for the blocking time of a single attempt
MIN_ATTEMPT_TIMEOUT = 0.01


def encode_header(body_length: int) -> bytes:
    """
    Encode the 4-byte header for a body of the given length.

    Args:
        body_length: Number of payload bytes

    Returns:
        Big-endian total length (body + header)

    Raises:
        EPPFrameError: If the frame would be too large
    """
    if body_length < 0:
        raise EPPFrameError(f"Invalid body length: {body_length}")

    total_length = body_length + HEADER_SIZE
    if total_length > MAX_FRAME_SIZE:
        raise EPPFrameError(f"Frame too large: {total_length} bytes (max {MAX_FRAME_SIZE})")

    return struct.pack("!I", total_length)


def decode_header(header: bytes) -> int:
    """
    Decode the 4-byte header.

    Args:
        header: Raw header bytes

    Returns:
        Body length (total length minus header)

    Raises:
        EPPFrameError: If header is incomplete or declares an invalid length
    """
    if len(header) != HEADER_SIZE:
        raise EPPFrameError(f"Invalid header length: {len(header)} (expected {HEADER_SIZE})")

    total_length = struct.unpack("!I", header)[0]

    if total_length < HEADER_SIZE:
        raise EPPFrameError(f"Frame length too small: {total_length}")

    if total_length > MAX_FRAME_SIZE:
        raise EPPFrameError(f"Frame length too large: {total_length}")

    return total_length - HEADER_SIZE


def encode_frame(data: bytes) -> bytes:
    """Prepend the EPP header to a payload."""
    return encode_header(len(data)) + data


def read_exactly(
    stream,
    length: int,
    timeout: float,
    is_open: Optional[Callable[[], bool]] = None,
    sleep: Callable[[float], object] = time.sleep,
    clock: Callable[[], float] = time.monotonic,
    log: logging.Logger = logger,
    label: str = "response",
    set_timeout: Optional[Callable[[float], object]] = None,
) -> bytes:
    """
    Read exactly ``length`` bytes from a stream.

    Each attempt asks for the residual length. Between attempts the caller
    sleeps ``attempt * BACKOFF_STEP`` seconds, never past the deadline.
    An attempt returning no bytes is not an error by itself.

    Args:
        stream: Object with ``read_some(max_bytes)``
        length: Number of bytes required
        timeout: Seconds allowed for the whole transfer
        is_open: Polled before every attempt; False aborts the read
        sleep: Backoff function
        clock: Monotonic time source
        log: Logger receiving per-attempt debug records
        label: Name of the frame part, used in messages
        set_timeout: Caps the blocking time of the next attempt to what is
            left of the deadline

    Returns:
        Exactly ``length`` bytes

    Raises:
        EPPReadTimeoutError: If the deadline passes, the stream closes or
            the stream raises; ``partial`` holds what was read and any
            stream fault is chained
    """
    if length <= 0:
        return b""

    deadline = clock() + timeout
    buffer = bytearray()
    iteration = 0

    while True:
        if is_open is not None and not is_open():
            raise EPPReadTimeoutError(
                f"Connection closed while reading the {label}: got {len(buffer)} of {length} bytes",
                partial=bytes(buffer),
            )

        residual = length - len(buffer)
        log.debug(
            f"Trying to read {residual} bytes of the {label}",
            extra={"iteration": iteration, "length": residual},
        )
        try:
            if set_timeout is not None:
                set_timeout(max(deadline - clock(), MIN_ATTEMPT_TIMEOUT))
            chunk = stream.read_some(residual)
        except Exception as e:
            raise EPPReadTimeoutError(
                f"Connection lost while reading the {label}: {e}",
                partial=bytes(buffer),
            ) from e

        if chunk:
            buffer += chunk[:residual]
        iteration += 1

        if len(buffer) >= length:
            return bytes(buffer)

        remaining = deadline - clock()
        if remaining <= 0:
            raise EPPReadTimeoutError(
                f"Read timeout after {timeout} seconds: got {len(buffer)} of {length} bytes of the {label}",
                partial=bytes(buffer),
            )
        sleep(min(iteration * BACKOFF_STEP, remaining))


def write_exactly(
    stream,
    data: bytes,
    timeout: float,
    is_open: Optional[Callable[[], bool]] = None,
    sleep: Callable[[float], object] = time.sleep,
    clock: Callable[[], float] = time.monotonic,
    log: logging.Logger = logger,
    set_timeout: Optional[Callable[[float], object]] = None,
) -> int:
    """
    Write all of ``data`` to a stream.

    Short writes are retried with the same backoff as reads until every byte
    is accepted or the deadline passes.

    Args:
        stream: Object with ``write_some(data)`` returning the count written
        data: Bytes to write
        timeout: Seconds allowed for the whole transfer
        is_open: Polled before every attempt; False stops writing
        sleep: Backoff function
        clock: Monotonic time source
        log: Logger receiving per-attempt debug records
        set_timeout: Caps the blocking time of the next attempt

    Returns:
        Number of bytes written, less than ``len(data)`` on timeout

    Raises:
        EPPLengthMismatchError: If the stream raises part-way through
    """
    deadline = clock() + timeout
    written = 0
    iteration = 0

    while written < len(data):
        if is_open is not None and not is_open():
            break

        try:
            if set_timeout is not None:
                set_timeout(max(deadline - clock(), MIN_ATTEMPT_TIMEOUT))
            count = stream.write_some(data[written:])
        except Exception as e:
            raise EPPLengthMismatchError(
                f"Write failed: {e}",
                expected=len(data),
                actual=written,
            ) from e

        written += max(count or 0, 0)
        iteration += 1
        log.debug(
            f"Number of bytes written to the connection: {written}",
            extra={"iteration": iteration, "written": written},
        )

        if written >= len(data):
            break

        remaining = deadline - clock()
        if remaining <= 0:
            break
        sleep(min(iteration * BACKOFF_STEP, remaining))

    return written

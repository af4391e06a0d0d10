"""
Shared fixtures for EPP stream tests.
"""

import struct

import pytest


GREETING_XML = b'''<?xml version="1.0" encoding="UTF-8"?>
<epp xmlns="urn:ietf:params:xml:ns:epp-1.0">
    <greeting>
        <svID>Example EPP Server</svID>
        <svDate>2025-01-15T10:00:00Z</svDate>
        <svcMenu>
            <version>1.0</version>
            <lang>en</lang>
            <objURI>urn:ietf:params:xml:ns:domain-1.0</objURI>
            <objURI>urn:ietf:params:xml:ns:contact-1.0</objURI>
            <objURI>urn:ietf:params:xml:ns:host-1.0</objURI>
            <svcExtension>
                <extURI>urn:ietf:params:xml:ns:rgp-1.0</extURI>
            </svcExtension>
        </svcMenu>
    </greeting>
</epp>'''

RESPONSE_XML = b'''<?xml version="1.0" encoding="UTF-8"?>
<epp xmlns="urn:ietf:params:xml:ns:epp-1.0">
    <response>
        <result code="1000">
            <msg>Command completed successfully</msg>
        </result>
    </response>
</epp>'''


def frame(body: bytes) -> bytes:
    """Build an EPP frame independently of the code under test."""
    return struct.pack("!I", len(body) + 4) + body


class FakeStream:
    """
    Scripted in-memory stream.

    ``chunks`` are returned one per read_some call (split if larger than
    requested). An Exception in the script is raised instead. Once the script
    is exhausted reads return b"", and the stream reports end-of-stream if
    ``eof_when_drained`` is set.
    """

    def __init__(self, chunks=(), write_limit=None, eof_when_drained=False):
        self.chunks = list(chunks)
        self.write_limit = write_limit
        self.eof_when_drained = eof_when_drained
        self.eof = False
        self.closed = False
        self.close_error = None
        self.write_error = None
        self.timeout = None
        self.read_calls = []
        self.write_calls = []
        self.written = bytearray()

    def read_some(self, max_bytes):
        self.read_calls.append(max_bytes)
        if not self.chunks:
            if self.eof_when_drained:
                self.eof = True
            return b""
        chunk = self.chunks.pop(0)
        if isinstance(chunk, Exception):
            raise chunk
        if len(chunk) > max_bytes:
            self.chunks.insert(0, chunk[max_bytes:])
            chunk = chunk[:max_bytes]
        return chunk

    def write_some(self, data):
        self.write_calls.append(bytes(data))
        if self.write_error is not None:
            raise self.write_error
        count = len(data) if self.write_limit is None else min(len(data), self.write_limit)
        self.written += data[:count]
        return count

    def set_timeout(self, seconds):
        self.timeout = seconds

    def at_eof(self):
        return self.eof or self.closed

    def close(self):
        if self.close_error is not None:
            raise self.close_error
        self.closed = True


class FakeClock:
    """Clock that only moves when the code under test sleeps."""

    def __init__(self, start=1000.0):
        self.now = start
        self.sleeps = []

    def __call__(self):
        return self.now

    def sleep(self, seconds):
        self.sleeps.append(seconds)
        self.now += seconds


class FakeTransport:
    """Transport factory handing out prepared streams."""

    def __init__(self, *streams):
        self.streams = list(streams)
        self.calls = []

    def __call__(self, uri, options, timeout):
        self.calls.append((uri, options, timeout))
        return self.streams.pop(0)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def greeting_stream():
    """Stream that starts with a valid greeting frame."""
    return FakeStream([frame(GREETING_XML)])

"""
EPP Transport Exceptions

Exception hierarchy for the EPP stream connection.
"""


class EPPError(Exception):
    """Base EPP exception."""

    def __init__(self, message: str, code: int = None):
        super().__init__(message)
        self.message = message
        self.code = code

    def __str__(self):
        if self.code:
            return f"[{self.code}] {self.message}"
        return self.message


class EPPConfigurationError(EPPError):
    """Connection settings are missing or have the wrong shape."""

    def __init__(self, message: str = "Invalid configuration"):
        super().__init__(message)


class EPPConnectionError(EPPError):
    """Connection to EPP server failed."""

    def __init__(self, message: str = "Connection failed"):
        super().__init__(message)


class EPPConnectError(EPPConnectionError):
    """Transport could not be established (DNS, refused, TLS handshake)."""

    def __init__(self, message: str = "Can not open connection"):
        super().__init__(message)


class EPPGreetingError(EPPConnectionError):
    """Server's first frame is not a valid greeting."""

    def __init__(self, message: str = "Invalid greeting"):
        super().__init__(message)


class EPPNotOpenError(EPPConnectionError):
    """Operation attempted on a closed connection."""

    def __init__(self, message: str = "Not connected"):
        super().__init__(message)


class EPPReadTimeoutError(EPPConnectionError):
    """Required bytes were not obtained before the read deadline."""

    def __init__(self, message: str = "Read timeout", partial: bytes = b""):
        super().__init__(message)
        self.partial = partial


class EPPCloseError(EPPConnectionError):
    """Underlying stream could not be released."""

    def __init__(self, message: str = "Close failed"):
        super().__init__(message)


class EPPFrameError(EPPError):
    """EPP frame encoding/decoding error."""

    def __init__(self, message: str = "Frame error"):
        super().__init__(message)


class EPPLengthMismatchError(EPPFrameError):
    """Declared frame length differs from the bytes actually transferred."""

    def __init__(self, message: str, expected: int, actual: int):
        super().__init__(message)
        self.expected = expected
        self.actual = actual

    def __str__(self):
        return f"{self.message} (expected {self.expected}, got {self.actual})"


class EPPXMLError(EPPError):
    """XML parsing error."""

    def __init__(self, message: str = "XML error"):
        super().__init__(message)

"""
Error Types

Everything the client raises on purpose derives from FileSenderError so
callers can catch the whole family at once.
"""


class FileSenderError(Exception):
    """Base class for client errors."""


class FrameError(FileSenderError, ValueError):
    """
    A binary chunk frame could not be parsed.

    Signals a corrupted stream. Never swallowed: the connection is closed.
    """


class MessageDecodeError(FileSenderError, ValueError):
    """A control message could not be decoded into a known type."""


class TransferError(FileSenderError):
    """A file transfer failed (storage error, stall, ...)."""

    def __init__(self, handle_id: int, message: str):
        super().__init__(f"Transfer {handle_id}: {message}")
        self.handle_id = handle_id

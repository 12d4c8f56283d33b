"""
Exception types raised by the faynosync CLI.

Argument, precondition, local I/O and transport failures stop an upload and
surface to the command runner. A non-2xx response or an unrecognized response
body is not an error: it is reported through the outcome log instead.
"""

from typing import Optional


class FaynosyncError(Exception):
    """Base class for all faynosync errors."""


class HelpRequested(FaynosyncError):
    """Raised by argument parsing when a help token is encountered."""


class UploadArgumentError(FaynosyncError, ValueError):
    """Malformed, unknown, missing or conflicting upload arguments."""


class ConfigurationError(FaynosyncError):
    """Missing or invalid settings (token, server, owner, settings file)."""


class UploadStreamError(FaynosyncError):
    """
    The multipart body could not be produced.

    Raised on the consumer side of the body pipe when the producer aborted,
    so the HTTP layer fails instead of sending a truncated body.

    Attributes:
        cause: Original exception raised while building the body
    """

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.cause = cause


class UploadTimeoutError(FaynosyncError):
    """The upload exchange exceeded its total time budget."""

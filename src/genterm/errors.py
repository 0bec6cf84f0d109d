"""Exception types shared by the terminal client and the backend."""
from __future__ import annotations


class GenTermError(Exception):
    """Base class for failures that are reported to the user as a terminal line."""


class ConfigError(GenTermError):
    pass


class SessionError(GenTermError):
    """Session creation or lookup failed; querying stays disabled."""


class ExtractionError(GenTermError):
    """A single file could not be read. Recovered locally as placeholder text."""

    def __init__(self, file_name: str, message: str = ""):
        self.file_name = file_name
        super().__init__(message or f"Error extracting content from {file_name}")


class ConversionError(GenTermError):
    """An image could not be turned into a request payload."""


class QueryError(GenTermError):
    """The AI Gateway call failed or timed out."""

    def __init__(self, message: str, status: int | None = None):
        self.status = status
        super().__init__(message)

"""CodeAtlas exception hierarchy.

All exceptions inherit from AtlasError so callers can catch the base
class when they want to handle any CodeAtlas-specific failure uniformly.
"""

from __future__ import annotations


class AtlasError(Exception):
    """Base exception for all CodeAtlas errors.

    Attributes:
        cause_type: Name of the type of the value that triggered this error.
    """

    def __init__(self, message: str, cause_type: str | None = None) -> None:
        super().__init__(message)
        self.cause_type = cause_type or type(self).__name__


class ConfigError(AtlasError):
    """Configuration-related errors (unreadable values, bad types, etc.)."""


class ScanError(AtlasError):
    """Workspace root is not a usable directory, or a file cannot be read."""


class CacheError(AtlasError):
    """An explicitly requested cache location cannot be created or used."""


class IndexerError(AtlasError):
    """Errors while reading or parsing a single source file."""


def normalize_error(value: object) -> AtlasError:
    """Turn any raised or returned failure value into an AtlasError.

    ``asyncio.gather(..., return_exceptions=True)`` hands back arbitrary
    objects, and third-party code occasionally raises bare ``BaseException``
    subclasses; logging always goes through this function so that every
    failure carries the same shape.

    Args:
        value: An exception instance or any other object describing a failure.

    Returns:
        The value itself when it is already an AtlasError, otherwise a new
        AtlasError chained to the original exception (when there is one).
    """
    if isinstance(value, AtlasError):
        return value
    if isinstance(value, BaseException):
        message = str(value) or type(value).__name__
        error = AtlasError(message, cause_type=type(value).__name__)
        error.__cause__ = value
        return error
    return AtlasError(str(value), cause_type=type(value).__name__)

from __future__ import annotations


class BadRequest(Exception):
    """Client input error, reported as 400 with its message."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class StorageError(Exception):
    """Connection or write failure in the persistence gateway."""


class StorageTimeout(StorageError):
    """A persistence call did not complete within the configured timeout."""

"""Persistence-related exceptions."""

from phasechat.domain.exceptions import StorageError


class PersistenceError(StorageError):
    """Base exception for persistence-related errors."""


class DatabaseError(PersistenceError):
    """Database operation error."""

"""Error taxonomy shared by the core and storage adapters."""

from __future__ import annotations


class HelplinkError(Exception):
    """Base error for the helplink core."""


class ValidationError(HelplinkError):
    """Raised when caller-supplied data violates an invariant."""


class NotFound(HelplinkError):
    """Raised when the referenced entity is absent or soft-deleted."""


class UniqueConstraintViolation(HelplinkError):
    """Raised when a pure insert collides with an existing row."""


class TransientStoreError(HelplinkError):
    """Raised on connectivity, locking, or timeout failures of the store.

    Callers may retry with backoff; the core never retries internally.
    """

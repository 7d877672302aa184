# database/repositories/errors.py
"""
Domain errors shared by the repositories and the services built on them.

Taxonomy:
  DomainError
    ├── ValidationError   malformed / out-of-range input
    │     └── NotFoundError   referenced record absent
    ├── ConflictError     business-rule rejection (closed day, stock, limits)
    └── StorageError      the SQLite store failed; the only retryable kind

Every message is meant to be surfaced to the user as is.
"""
from __future__ import annotations

import sqlite3
from contextlib import contextmanager
from typing import Iterator


class DomainError(Exception):
    """Domain-level error the caller can surface directly."""
    retryable = False


class ValidationError(DomainError):
    pass


class NotFoundError(ValidationError):
    pass


class ConflictError(DomainError):
    pass


class StorageError(DomainError):
    retryable = True


@contextmanager
def storage_errors(action: str) -> Iterator[None]:
    """
    Translate sqlite3 failures raised inside the block into StorageError.
    Domain errors pass through untouched.
    """
    try:
        yield
    except DomainError:
        raise
    except sqlite3.Error as e:
        raise StorageError(f"Could not {action}: {e}") from e

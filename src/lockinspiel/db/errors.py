# src/lockinspiel/db/errors.py
"""Exceptions raised by the storage layer."""


class StoreError(RuntimeError):
    """Base exception for storage failures."""


class EngineError(StoreError):
    """Raised when the storage engine rejects or fails an operation."""


class PoolError(StoreError):
    """Raised when a pooled connection cannot be obtained."""


class MigrationMissingError(StoreError):
    """Raised when a schema migration with the requested index does not exist."""

    def __init__(self, index: int) -> None:
        super().__init__(f"Migration {index} does not exist")
        self.index = index


class DataDirectoryError(StoreError):
    """Raised when the per-user data directory cannot be resolved or created."""


class TimesheetDecodeError(StoreError):
    """Raised when a stored timesheet row cannot be decoded."""

from __future__ import annotations


class TaskVaultError(Exception):
    """Base class for errors surfaced to command callers."""

    code = "taskvault_error"

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class ValidationError(TaskVaultError):
    """Rejected input: bad enum value or empty required field. Nothing was written."""

    code = "validation_error"


class NotFoundError(TaskVaultError):
    code = "not_found"

    def __init__(self, kind: str, identifier: str) -> None:
        self.kind = kind
        self.identifier = identifier
        super().__init__(f"{kind} {identifier!r} not found")


class StorageError(TaskVaultError):
    """An attachment file operation failed.

    Raised by attachment storage. On delete paths it is logged and swallowed,
    the database row stays authoritative.
    """

    code = "storage_error"


class PersistenceError(TaskVaultError):
    """The store was unavailable or rejected the transaction; it was rolled back."""

    code = "persistence_error"

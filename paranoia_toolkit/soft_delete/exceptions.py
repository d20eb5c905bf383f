"""Exceptions for soft delete operations."""

from typing import Any, Optional


class SoftDeleteError(Exception):
    """Base exception for soft delete operations."""

    def __init__(self, message: str, entity_id: Optional[str] = None):
        self.entity_id = entity_id
        super().__init__(message)


class ReadOnlyRecordError(SoftDeleteError):
    """Raised when deleting or purging a record marked as read-only."""

    def __init__(self, model_name: str, entity_id: Optional[str] = None):
        super().__init__(f"{model_name} is marked as readonly", entity_id=entity_id)


class RecordNotFoundError(SoftDeleteError):
    """Raised when a soft-deleted record cannot be found for restoration."""

    def __init__(self, model_name: str, entity_id: Any):
        super().__init__(
            f"Couldn't find deleted {model_name} with id={entity_id}",
            entity_id=str(entity_id),
        )


class HardDeleteError(SoftDeleteError):
    """Raised when a paranoid record is removed through ``Session.delete``."""

    def __init__(self, model_name: str, entity_id: Optional[str] = None):
        super().__init__(
            f"Hard delete attempted on {model_name}. "
            "Use destroy() to soft delete or really_destroy() to purge.",
            entity_id=entity_id,
        )


class Abort(Exception):
    """Raised by a ``before`` callback to veto the running operation.

    The enclosing transaction is rolled back and the public operation
    returns its halted value instead of propagating this exception.
    """

"""
Validation adapters for paranoid models.

Uniqueness checks must not collide with soft-deleted rows, and references
to soft-deleted records are reported as invalid.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Type

from sqlalchemy import inspect
from sqlalchemy.orm import Query, Session, object_session

from .cascade import is_paranoid
from .scoping import INCLUDE_DELETED
from .timestamps import current_time


@dataclass
class ValidationResult:
    """Result of validation operation."""

    is_valid: bool = True
    errors: List[str] = field(default_factory=list)
    field_errors: Dict[str, List[str]] = field(default_factory=dict)

    def add_error(self, message: str, field: Optional[str] = None) -> None:
        """Add validation error."""
        self.is_valid = False
        if field:
            if field not in self.field_errors:
                self.field_errors[field] = []
            self.field_errors[field].append(message)
        else:
            self.errors.append(message)

    def merge(self, other: "ValidationResult") -> None:
        """Merge another validation result."""
        self.is_valid = self.is_valid and other.is_valid
        self.errors.extend(other.errors)
        for field_name, errors in other.field_errors.items():
            if field_name not in self.field_errors:
                self.field_errors[field_name] = []
            self.field_errors[field_name].extend(errors)


def uniqueness_query(session: Session, model: Type[Any], **criteria: Any) -> Query[Any]:
    """
    Build the query used to test uniqueness of ``criteria`` on ``model``.

    The query ignores the default scope and, for paranoid models, only
    matches rows whose lifecycle column is still in the future.
    """
    query = (
        session.query(model)
        .execution_options(**{INCLUDE_DELETED: True})
        .filter_by(**criteria)
    )
    if is_paranoid(model):
        query = query.filter(model.paranoia_column_attribute() > current_time())
    return query


class UniquenessValidator:
    """Validate that field values are unique among active rows."""

    def __init__(self, *fields: str, scope: Optional[List[str]] = None):
        """
        Args:
            fields: Attributes that must be unique
            scope: Attributes that partition uniqueness (e.g. tenant id)
        """
        self.fields = fields
        self.scope = scope or []

    def validate(self, record: Any, session: Optional[Session] = None) -> ValidationResult:
        result = ValidationResult()
        session = session or object_session(record)
        if session is None:
            result.add_error("Record is not attached to a session")
            return result

        model = type(record)
        pk = inspect(model).primary_key[0]
        identity = inspect(record).identity

        for field_name in self.fields:
            criteria = {field_name: getattr(record, field_name)}
            for scope_name in self.scope:
                criteria[scope_name] = getattr(record, scope_name)

            with session.no_autoflush:
                query = uniqueness_query(session, model, **criteria)
                if identity is not None:
                    query = query.filter(pk != identity[0])
                taken = query.first() is not None
            if taken:
                result.add_error("has already been taken", field=field_name)

        return result


class AssociationNotSoftDestroyedValidator:
    """Validate that referenced paranoid records are not soft-deleted."""

    def __init__(self, *attributes: str):
        self.attributes = attributes

    def validate(self, record: Any) -> ValidationResult:
        result = ValidationResult()
        for attribute in self.attributes:
            value = getattr(record, attribute)
            if value is None:
                value = self._find_with_deleted(record, attribute)
            if value is not None and is_paranoid(value) and value.is_deleted:
                result.add_error("has been soft-deleted", field=attribute)
        return result

    def _find_with_deleted(self, record: Any, attribute: str) -> Any:
        # The default scope hides soft-deleted targets from lazy loads
        relationship = inspect(type(record)).relationships.get(attribute)
        session = object_session(record)
        if relationship is None or relationship.uselist or session is None:
            return None
        target = relationship.mapper.class_
        if not is_paranoid(target):
            return None

        criteria = {}
        for local, remote in relationship.local_remote_pairs:
            value = getattr(record, local.key)
            if value is None:
                return None
            criteria[remote.key] = value
        return target.with_deleted(session).filter_by(**criteria).first()

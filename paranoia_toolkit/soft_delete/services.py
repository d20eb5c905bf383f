"""
Service layer for soft delete operations.

Provides session-bound batch operations used by applications and the
command line interface: restoring and purging by id, listing soft-deleted
rows and summarising deletions.
"""

import logging
from datetime import datetime
from typing import Any, Iterable, List, Optional, Type

from sqlalchemy import func, inspect
from sqlalchemy.orm import Session

from .exceptions import RecordNotFoundError, SoftDeleteError
from .mixins import ParanoiaMixin
from .models import DeletionReport

logger = logging.getLogger(__name__)


class ParanoiaService:
    """
    Service for managing soft-deleted records of paranoid models.

    Batch operations commit after each record and stop at the first
    failure, leaving the records handled before it committed.
    """

    def __init__(self, session: Session):
        """
        Initialize the soft delete service.

        Args:
            session: SQLAlchemy database session
        """
        self.session = session

    def restore(
        self, model: Type[ParanoiaMixin], ids: Iterable[Any], **opts: Any
    ) -> List[ParanoiaMixin]:
        """
        Restore soft-deleted records by id.

        Args:
            model: Paranoid model class
            ids: Primary keys to restore
            **opts: ``recursive``, ``recovery_window``, ``recovery_window_range``

        Returns:
            The records, restored unless outside the recovery window

        Raises:
            RecordNotFoundError: An id has no soft-deleted row
        """
        self._check_model(model)
        restored: List[ParanoiaMixin] = []
        for entity_id in ids:
            restored.extend(model.restore_by_id(self.session, entity_id, **opts))
            self.session.commit()
        logger.info(f"Restored {len(restored)} {model.__name__} record(s)")
        return restored

    def purge(self, model: Type[ParanoiaMixin], ids: Iterable[Any]) -> int:
        """
        Permanently remove records by id, including soft-deleted ones.

        Returns:
            Number of records removed

        Raises:
            RecordNotFoundError: An id has no row at all
        """
        self._check_model(model)
        pk = inspect(model).primary_key[0]
        purged = 0
        for entity_id in ids:
            record = model.with_deleted(self.session).filter(pk == entity_id).first()
            if record is None:
                raise RecordNotFoundError(model.__name__, entity_id)
            if record.really_destroy():
                purged += 1
            self.session.commit()
        return purged

    def deleted_records(
        self,
        model: Type[ParanoiaMixin],
        deleted_after: Optional[datetime] = None,
        deleted_before: Optional[datetime] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> List[ParanoiaMixin]:
        """
        Get soft-deleted records, newest deletion first.

        Args:
            model: Paranoid model class
            deleted_after: Only rows deleted at or after this time
            deleted_before: Only rows deleted at or before this time
            limit: Maximum records to return
            offset: Offset for pagination
        """
        self._check_model(model)
        column = model.paranoia_column_attribute()
        query = model.only_deleted(self.session)

        if deleted_after is not None:
            query = query.filter(column >= deleted_after)
        if deleted_before is not None:
            query = query.filter(column <= deleted_before)

        return query.order_by(column.desc()).limit(limit).offset(offset).all()

    def deletion_report(
        self,
        models: Iterable[Type[ParanoiaMixin]],
        start_date: datetime,
        end_date: datetime,
    ) -> DeletionReport:
        """
        Summarise soft deletions in a period.

        Args:
            models: Paranoid model classes to include
            start_date: Report period start
            end_date: Report period end
        """
        report = DeletionReport(start_date=start_date, end_date=end_date)

        for model in models:
            self._check_model(model)
            column = model.paranoia_column_attribute()
            deleted = (
                model.only_deleted(self.session)
                .filter(column >= start_date, column <= end_date)
                .with_entities(func.count())
                .scalar()
            )
            report.add_deletions(model.__name__, deleted or 0)
            report.total_active += model.without_deleted(self.session).count()

        return report

    def _check_model(self, model: Type[Any]) -> None:
        if not (isinstance(model, type) and issubclass(model, ParanoiaMixin)):
            raise SoftDeleteError(f"{model!r} is not a paranoid model")

"""
SQLAlchemy mixin implementing the soft delete lifecycle.

A paranoid record is never removed by ``destroy``: its lifecycle column is
stamped with the deletion time and the default query scope hides it until it
is restored. ``really_destroy`` removes the row for good.
"""

import logging
import warnings
from contextlib import contextmanager
from datetime import datetime
from typing import Any, Dict, Iterator, List, Optional, Sequence, Union

from sqlalchemy import DateTime, delete, event, inspect, update
from sqlalchemy.orm import (
    Mapped,
    Query,
    Session,
    SessionTransactionOrigin,
    configure_mappers,
    mapped_column,
    object_session,
)
from sqlalchemy.orm.attributes import set_committed_value

from ..config import get_config
from . import callbacks
from .associations import CounterCache, Dependent
from .cascade import (
    destroy_associated_records,
    purge_associated_records,
    restore_associated_records,
)
from .counter_cache import adjust_counters, install_insert_listener, suppress_counters
from .exceptions import HardDeleteError, ReadOnlyRecordError, RecordNotFoundError
from .models import RestoreOptions
from .recovery import get_recovery_window_range, within_recovery_window
from .scoping import INCLUDE_DELETED, register_paranoid_class
from .timestamps import INFINITY, Stamp, current_time, parse_stamp
from .transactions import enlist, paranoia_transaction

logger = logging.getLogger(__name__)

AUTOBEGIN = SessionTransactionOrigin.AUTOBEGIN


class ParanoiaMixin:
    """
    Mixin to add soft delete functionality to SQLAlchemy models.

    Provides:
    - A ``deleted_at`` lifecycle column holding ``INFINITY`` while active
    - ``destroy``/``restore``/``really_destroy`` lifecycle operations
    - Default scoping that hides soft-deleted rows from ORM queries
    - Cascades over ``__paranoia_dependents__`` and counter cache upkeep
      for ``__paranoia_counter_caches__``

    Usage:
        class Post(Base, ParanoiaMixin):
            __tablename__ = 'posts'
            __paranoia_dependents__ = [Dependent("comments", foreign_key="post_id")]

            id = Column(Integer, primary_key=True)
            comments_count = Column(Integer, default=0)
            comments = relationship("Comment", back_populates="post")
    """

    __allow_unmapped__ = True

    __paranoia_lifecycle__ = True
    __paranoia_column__ = "deleted_at"
    __paranoia_default_scope__ = True
    __paranoia_dependents__: Sequence[Dependent] = ()
    __paranoia_counter_caches__: Sequence[CounterCache] = ()

    # Set by a parent cascade while this record is being processed through it
    destroyed_by_association = None
    restored_by_association = None

    deleted_at: Mapped[datetime] = mapped_column(
        DateTime, default=INFINITY, nullable=False, index=True
    )

    def __init_subclass__(cls, **kwargs: Any) -> None:
        super().__init_subclass__(**kwargs)
        register_paranoid_class(cls)

    # State

    @classmethod
    def paranoia_column_attribute(cls) -> Any:
        return getattr(cls, cls.__paranoia_column__)

    @property
    def paranoia_value(self) -> datetime:
        return getattr(self, self.__paranoia_column__)

    @property
    def is_deleted(self) -> bool:
        """True when the lifecycle column holds a deletion timestamp."""
        return self.paranoia_value != INFINITY

    @property
    def is_really_destroyed(self) -> bool:
        return getattr(self, "_paranoia_purged", False)

    @property
    def is_persisted(self) -> bool:
        return inspect(self).persistent and not self.is_really_destroyed

    @property
    def is_frozen(self) -> bool:
        return getattr(self, "_paranoia_frozen", False)

    def freeze(self) -> "ParanoiaMixin":
        """Freeze the record; frozen records are never restored."""
        self._paranoia_frozen = True
        return self

    @property
    def is_readonly(self) -> bool:
        return getattr(self, "_paranoia_readonly", False)

    def mark_readonly(self) -> "ParanoiaMixin":
        self._paranoia_readonly = True
        return self

    # Lifecycle operations

    def delete(self, stamp: Optional[Stamp] = None) -> "ParanoiaMixin":
        """
        Mark the record deleted without running destroy callbacks.

        Persisted records are updated in place with a raw UPDATE; records
        that were never saved, and frozen records, only change in memory.

        Args:
            stamp: Deletion time, defaults to now; strings are parsed

        Returns:
            The record

        Raises:
            ReadOnlyRecordError: If the record is marked read-only
        """
        if self.is_readonly:
            raise ReadOnlyRecordError(type(self).__name__, self._entity_id())

        stamp = parse_stamp(stamp)
        attributes = {self.__paranoia_column__: stamp}
        attributes.update(self._timestamp_attributes(stamp))

        if self.is_frozen:
            # Never flushed, even when the record is attached to a session
            for key, value in attributes.items():
                set_committed_value(self, key, value)
        elif self.is_persisted:
            # Commit callbacks still run for records changed behind the unit of work
            enlist(object_session(self), self)
            self._update_columns(attributes)
        else:
            for key, value in attributes.items():
                setattr(self, key, value)

        logger.debug(f"Deleted {type(self).__name__} {self._entity_id()} at {stamp}")
        return self

    def destroy(self) -> Union["ParanoiaMixin", bool]:
        """Soft delete the record and its dependents, running destroy callbacks."""
        return self.destroy_at(None)

    def destroy_at(self, stamp: Optional[Stamp]) -> Union["ParanoiaMixin", bool]:
        """
        Soft delete the record at ``stamp``, running destroy callbacks.

        Returns:
            The record, or False when a callback halted the operation
        """
        stamp = parse_stamp(stamp)
        with paranoia_transaction(object_session(self)) as tx:
            result = callbacks.run_callbacks(
                self, "destroy", lambda: self._destroy(stamp)
            )
        if tx.aborted:
            return False
        return result

    def _destroy(self, stamp: datetime) -> Any:
        with suppress_counters(self, self.is_deleted or self.is_frozen):
            destroy_associated_records(self, stamp)
            result = self.delete(stamp)
            if not result:
                return result
            adjust_counters(self, -1, origin=self.destroyed_by_association)
        return result

    def restore(self, **opts: Any) -> "ParanoiaMixin":
        """
        Restore a soft-deleted record.

        Restoring is silently skipped when the record's deletion time falls
        outside the recovery window or the record is frozen; check
        ``is_deleted`` afterwards to detect this.

        Args:
            recursive: Also restore dependent-destroy associations
            recovery_window: ``timedelta`` around the deletion time
            recovery_window_range: Explicit ``(start, end)`` range

        Returns:
            The record
        """
        options = RestoreOptions(**opts)
        with paranoia_transaction(object_session(self)):
            callbacks.run_callbacks(self, "restore", lambda: self._restore(options))
        return self

    def _restore(self, options: RestoreOptions) -> "ParanoiaMixin":
        deleted_at = self.paranoia_value
        window = get_recovery_window_range(
            deleted_at,
            recovery_window=options.recovery_window,
            recovery_window_range=options.recovery_window_range,
        )
        if within_recovery_window(self.paranoia_value, window) and not self.is_frozen:
            with suppress_counters(self, not self.is_deleted):
                attributes: Dict[str, Any] = {self.__paranoia_column__: INFINITY}
                attributes.update(self._timestamp_attributes(current_time()))
                if self.is_persisted:
                    self._update_columns(attributes)
                else:
                    for key, value in attributes.items():
                        setattr(self, key, value)
                adjust_counters(self, +1, origin=self.restored_by_association)
            logger.debug(f"Restored {type(self).__name__} {self._entity_id()}")
        else:
            logger.debug(
                f"{type(self).__name__} {self._entity_id()} left deleted: "
                "outside recovery window or frozen"
            )

        if options.recursive:
            restore_associated_records(self, window, deleted_at=deleted_at)
        return self

    def really_destroy(self) -> Union["ParanoiaMixin", bool]:
        """
        Permanently remove the record and all of its dependents.

        Returns:
            The record, or False when a callback halted the operation

        Raises:
            ReadOnlyRecordError: If the record is marked read-only
        """
        if self.is_readonly:
            raise ReadOnlyRecordError(type(self).__name__, self._entity_id())

        with paranoia_transaction(object_session(self)) as tx:
            result = callbacks.run_callbacks(self, "real_destroy", self._really_destroy)
        if tx.aborted:
            return False
        return result

    def _really_destroy(self) -> "ParanoiaMixin":
        entity_id = self._entity_id()
        with suppress_counters(self, self.is_deleted):
            purge_associated_records(self)
            set_committed_value(self, self.__paranoia_column__, current_time())
            if self.is_persisted:
                adjust_counters(self, -1, origin=self.destroyed_by_association)
                session = object_session(self)
                mapper = inspect(type(self))
                session.execute(
                    delete(mapper.local_table).where(
                        mapper.primary_key[0] == inspect(self).identity[0]
                    )
                )
                session.expunge(self)

        self._paranoia_purged = True
        self.freeze()
        logger.info(f"Purged {type(self).__name__} {entity_id}")
        return self

    # Queries

    @classmethod
    def with_deleted(cls, session: Session) -> Query[Any]:
        """Return a query that sees active and soft-deleted rows."""
        return session.query(cls).execution_options(**{INCLUDE_DELETED: True})

    @classmethod
    def only_deleted(cls, session: Session) -> Query[Any]:
        """Return a query for soft-deleted rows only."""
        return cls.with_deleted(session).filter(
            cls.paranoia_column_attribute() <= current_time()
        )

    deleted = only_deleted

    @classmethod
    def without_deleted(cls, session: Session) -> Query[Any]:
        """Return a query for active rows, for models without the default scope."""
        return cls.with_deleted(session).filter(
            cls.paranoia_column_attribute() > current_time()
        )

    @classmethod
    def restore_by_id(
        cls, session: Session, id_or_ids: Any, **opts: Any
    ) -> List["ParanoiaMixin"]:
        """
        Restore soft-deleted rows by primary key.

        Each id is looked up and restored in a transaction of its own that
        is committed before the next id, so the first id that is not found
        among soft-deleted rows stops the batch without undoing the ids
        restored before it. When the caller began a transaction explicitly
        with ``Session.begin`` the restores join it and the caller commits.

        Raises:
            RecordNotFoundError: An id does not match a soft-deleted row
        """
        ids = _flatten(id_or_ids)
        if any(isinstance(value, ParanoiaMixin) for value in ids):
            warnings.warn(
                f"Passing {cls.__name__} instances to restore_by_id is deprecated, "
                "pass their ids instead",
                DeprecationWarning,
                stacklevel=2,
            )
            ids = [
                inspect(value).identity[0] if isinstance(value, ParanoiaMixin) else value
                for value in ids
            ]

        pk = inspect(cls).primary_key[0]
        restored = []
        for entity_id in ids:
            with _per_id_transaction(session):
                record = cls.only_deleted(session).filter(pk == entity_id).one_or_none()
                if record is None:
                    raise RecordNotFoundError(cls.__name__, entity_id)
                restored.append(record.restore(**opts))
        return restored

    @classmethod
    def register_callback(cls, event_name: str, kind: str, fn: Any) -> None:
        """Register a lifecycle hook after the class was defined."""
        callbacks.register_callback(cls, event_name, kind, fn)

    # Helpers

    def _entity_id(self) -> Optional[str]:
        identity = inspect(self).identity
        if identity is None:
            return None
        return str(identity[0]) if len(identity) == 1 else str(identity)

    def _timestamp_attributes(self, stamp: datetime) -> Dict[str, datetime]:
        columns = inspect(type(self)).local_table.c
        return {
            name: stamp for name in get_config().timestamp_columns if name in columns
        }

    def _update_columns(self, attributes: Dict[str, Any]) -> None:
        """Write columns with a raw UPDATE, bypassing the unit of work."""
        mapper = inspect(type(self))
        object_session(self).execute(
            update(mapper.local_table)
            .where(mapper.primary_key[0] == inspect(self).identity[0])
            .values(attributes)
        )
        for key, value in attributes.items():
            set_committed_value(self, key, value)

    def to_dict(self, include_deleted_fields: bool = True) -> Dict[str, Any]:
        """
        Convert model to dictionary representation.

        Args:
            include_deleted_fields: Whether to include the lifecycle column

        Returns:
            Dictionary representation of the model
        """
        result: Dict[str, Any] = {}

        table = getattr(self, "__table__", None)
        if table is None:
            return result

        for column in table.columns:
            if column.name == self.__paranoia_column__:
                if include_deleted_fields:
                    result[column.name] = (
                        self.paranoia_value.isoformat() if self.is_deleted else None
                    )
                continue
            value = getattr(self, column.name, None)
            if isinstance(value, datetime):
                value = value.isoformat()
            result[column.name] = value

        return result


@contextmanager
def _per_id_transaction(session: Session) -> Iterator[None]:
    """Commit one id's work unless the caller began a transaction explicitly."""
    transaction = session.get_transaction()
    if transaction is not None and transaction.origin is not AUTOBEGIN:
        yield
        return
    try:
        yield
    except BaseException:
        session.rollback()
        raise
    session.commit()


def _flatten(id_or_ids: Any) -> List[Any]:
    if not isinstance(id_or_ids, (list, tuple, set)):
        return [id_or_ids]
    flat: List[Any] = []
    for value in id_or_ids:
        flat.extend(_flatten(value))
    return flat


@event.listens_for(ParanoiaMixin, "init", propagate=True)
def _mark_active(target: Any, args: Any, kwargs: Any) -> None:
    # Runs ahead of the mapper's own init hook, so attributes may not be
    # instrumented yet for the first instance of a class
    if not inspect(type(target)).configured:
        configure_mappers()
    column = target.__paranoia_column__
    if column not in kwargs:
        setattr(target, column, INFINITY)


def prevent_hard_delete(mapper: Any, connection: Any, target: Any) -> None:
    """
    Refuse ``Session.delete`` on paranoid records.

    Connected to SQLAlchemy's before_delete event for every paranoid model.
    """
    raise HardDeleteError(type(target).__name__, target._entity_id())


event.listen(ParanoiaMixin, "before_delete", prevent_hard_delete, propagate=True)
install_insert_listener(ParanoiaMixin)

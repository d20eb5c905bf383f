"""
Counter cache coordination.

Owners may keep a denormalized count of their active dependents. Soft
delete, restore and purge adjust those counts, and a cascade running through
an association must not adjust the count of that same association a second
time. Two mechanisms keep counts exact:

* a per-record suppression flag, set while the record is in a state where an
  adjustment would double count (destroying an already deleted record,
  restoring an active one, purging a soft-deleted one);
* the cascade origin: the ``Dependent`` a parent cascade is walking is
  recorded on the child, and counters keyed on the same foreign key are
  skipped.
"""

import logging
from contextlib import contextmanager
from typing import Any, Iterator, Optional

from sqlalchemy import event, inspect, update
from sqlalchemy.orm import object_session
from sqlalchemy.orm.attributes import set_committed_value
from sqlalchemy.orm.util import identity_key

from .associations import CounterCache, Dependent

logger = logging.getLogger(__name__)

_SUPPRESSED = "_paranoia_counter_cache_disabled"


def counters_suppressed(record: Any) -> bool:
    return getattr(record, _SUPPRESSED, False)


@contextmanager
def suppress_counters(record: Any, flag: bool) -> Iterator[None]:
    """Set the record's suppression flag for the duration of the block."""
    setattr(record, _SUPPRESSED, flag)
    try:
        yield
    finally:
        setattr(record, _SUPPRESSED, False)


def each_counter_cached_association(record: Any) -> Iterator[CounterCache]:
    if counters_suppressed(record):
        return
    yield from type(record).__paranoia_counter_caches__


def adjust_counters(
    record: Any,
    delta: int,
    origin: Optional[Dependent] = None,
    connection: Any = None,
) -> None:
    """
    Add ``delta`` to every counter cache the record contributes to.

    Args:
        record: The dependent whose owners are counted
        delta: +1 on restore or insert, -1 on destroy or purge
        origin: Association a parent cascade is walking; its counter is skipped
        connection: Executor to use, defaults to the record's session
    """
    executor = connection if connection is not None else object_session(record)
    if executor is None:
        return

    for counter in each_counter_cached_association(record):
        if origin is not None and origin.foreign_key == counter.foreign_key:
            logger.debug(
                f"Skipping {counter.column} on {type(record).__name__}: "
                f"cascade origin {origin.name}"
            )
            continue

        owner_id = getattr(record, counter.foreign_key)
        if owner_id is None:
            continue

        owner_cls = counter.owner_class(type(record))
        _update_counter(executor, owner_cls, owner_id, counter.column, delta)
        _sync_loaded_owner(record, owner_cls, owner_id, counter.column, delta)


def _update_counter(
    executor: Any, owner_cls: Any, owner_id: Any, column: str, delta: int
) -> None:
    mapper = inspect(owner_cls)
    table = mapper.local_table
    pk = mapper.primary_key[0]
    counter_column = table.c[column]
    executor.execute(
        update(table)
        .where(pk == owner_id)
        .values({column: counter_column + delta})
    )
    logger.debug(f"{owner_cls.__name__}({owner_id}).{column} {delta:+d}")


def _sync_loaded_owner(
    record: Any, owner_cls: Any, owner_id: Any, column: str, delta: int
) -> None:
    """Mirror the update on an owner already held in memory, without a query."""
    session = object_session(record)
    if session is None:
        return
    owner = session.identity_map.get(identity_key(owner_cls, owner_id))
    if owner is None or column not in inspect(owner).dict:
        return
    current = inspect(owner).dict[column]
    if current is not None:
        set_committed_value(owner, column, current + delta)


def _count_new_record(mapper: Any, connection: Any, target: Any) -> None:
    if target.is_deleted:
        return
    adjust_counters(target, +1, connection=connection)


def install_insert_listener(cls: Any) -> None:
    """Count newly inserted active records on their owners."""
    event.listen(cls, "after_insert", _count_new_record, propagate=True)

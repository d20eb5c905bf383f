"""
Association cascade walker.

Propagates destroy, restore and purge from an owner to the records declared
in its ``__paranoia_dependents__`` table with the ``destroy`` cascade policy.
Each child is marked with the association it is reached through so its own
counter cache adjustment skips the owner being cascaded from; the marker is
removed once the child's operation returns or raises.
"""

import logging
from contextlib import contextmanager, nullcontext
from datetime import datetime
from typing import Any, ContextManager, Iterator, List, Optional

from sqlalchemy import inspect
from sqlalchemy.orm import Query, object_session

from .associations import Dependent
from .recovery import WindowRange

logger = logging.getLogger(__name__)


def is_paranoid(obj: Any) -> bool:
    """Return True when ``obj`` (a record or a class) supports soft delete."""
    cls = obj if isinstance(obj, type) else type(obj)
    return getattr(cls, "__paranoia_lifecycle__", False)


def destroying_dependents(owner: Any) -> List[Dependent]:
    return [dep for dep in type(owner).__paranoia_dependents__ if dep.destroys]


@contextmanager
def _cascading(child: Any, marker: str, dependent: Dependent) -> Iterator[None]:
    setattr(child, marker, dependent)
    try:
        yield
    finally:
        setattr(child, marker, None)


def _dependent_query(owner: Any, dependent: Dependent, scope: str) -> Optional[Query]:
    target = dependent.target_class(type(owner))
    session = object_session(owner)
    if session is None or not is_paranoid(target):
        return None
    if inspect(owner).identity is None:
        return None
    query = getattr(target, scope)(session)
    return query.filter_by(**dependent.find_conditions(owner))


def destroy_associated_records(owner: Any, stamp: Any = None) -> None:
    """Soft destroy the active members of each dependent-destroy association."""
    for dependent in destroying_dependents(owner):
        value = getattr(owner, dependent.name)
        if value is None:
            continue
        members = list(value) if dependent.is_collection else [value]
        for member in members:
            if not is_paranoid(member) or member.is_deleted:
                continue
            logger.debug(
                f"Destroying {type(member).__name__} through "
                f"{type(owner).__name__}.{dependent.name}"
            )
            with _cascading(member, "destroyed_by_association", dependent):
                member.destroy_at(stamp)


def restore_associated_records(
    owner: Any,
    recovery_window_range: Optional[WindowRange] = None,
    deleted_at: Optional[datetime] = None,
) -> None:
    """
    Restore the soft-deleted dependents of ``owner``.

    Collections restore every soft-deleted member linked by foreign key.
    Singular associations restore the loaded target, or when the in-memory
    link is empty, look the target up among soft-deleted rows by foreign key
    (and polymorphic type) since the link may have been severed after the
    owner was destroyed.

    Only members stamped with the owner's own deletion time ``deleted_at``
    were destroyed through the owner and left its counter untouched; any
    other member was counted out when it was destroyed on its own, so it
    is restored without the cascade marker and counted back in.
    """
    dependents = destroying_dependents(owner)
    options = {"recursive": True, "recovery_window_range": recovery_window_range}

    for dependent in dependents:
        if dependent.is_collection:
            query = _dependent_query(owner, dependent, "only_deleted")
            members = query.all() if query is not None else []
        else:
            value = getattr(owner, dependent.name)
            if value is not None:
                members = [value] if is_paranoid(value) else []
            else:
                query = _dependent_query(owner, dependent, "only_deleted")
                found = query.first() if query is not None else None
                members = [found] if found is not None else []

        for member in members:
            logger.debug(
                f"Restoring {type(member).__name__} through "
                f"{type(owner).__name__}.{dependent.name}"
            )
            if member.paranoia_value == deleted_at:
                scope: ContextManager[None] = _cascading(
                    member, "restored_by_association", dependent
                )
            else:
                scope = nullcontext()
            with scope:
                member.restore(**options)

    session = object_session(owner)
    if dependents and session is not None and inspect(owner).persistent:
        session.expire(owner, [dependent.name for dependent in dependents])


def purge_associated_records(owner: Any) -> None:
    """Permanently remove every dependent, soft-deleted or not, before the owner."""
    for dependent in destroying_dependents(owner):
        query = _dependent_query(owner, dependent, "with_deleted")
        if query is None:
            continue
        members = query.all() if dependent.is_collection else [query.first()]

        for member in members:
            if member is None:
                continue
            logger.debug(
                f"Purging {type(member).__name__} through "
                f"{type(owner).__name__}.{dependent.name}"
            )
            with _cascading(member, "destroyed_by_association", dependent):
                member.really_destroy()

"""
Transaction scoping for lifecycle operations.

Every public operation runs inside one transaction. The outermost operation
opens it (or joins the caller's), nested cascade operations join it, and a
failure at any depth rolls the whole transaction back.
"""

import logging
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Iterator, Optional

from sqlalchemy import event
from sqlalchemy.orm import Session

from .callbacks import commit_hooks
from .exceptions import Abort

logger = logging.getLogger(__name__)

_DEPTH_KEY = "paranoia_transaction_depth"
_ENLISTED_KEY = "paranoia_enlisted_records"


@dataclass
class TransactionState:
    """Outcome of a :func:`paranoia_transaction` block."""

    aborted: bool = False


@contextmanager
def paranoia_transaction(session: Optional[Session]) -> Iterator[TransactionState]:
    """
    Run a block in the session's transaction.

    Args:
        session: Session owning the record, or None for transient records

    Yields:
        State whose ``aborted`` flag is set when a callback vetoed the block
    """
    state = TransactionState()

    if session is None:
        try:
            yield state
        except Abort:
            state.aborted = True
        return

    depth = session.info.get(_DEPTH_KEY, 0)
    session.info[_DEPTH_KEY] = depth + 1
    try:
        if depth:
            yield state
        elif session.in_transaction():
            try:
                yield state
                session.flush()
            except BaseException:
                session.rollback()
                raise
        else:
            with session.begin():
                yield state
    except Abort:
        if depth:
            raise
        logger.warning("Lifecycle operation vetoed, transaction rolled back")
        state.aborted = True
    finally:
        session.info[_DEPTH_KEY] = depth


def enlist(session: Session, record: Any) -> None:
    """Queue ``record`` so its commit callbacks run once the session commits."""
    enlisted = session.info.setdefault(_ENLISTED_KEY, [])
    if not any(existing is record for existing in enlisted):
        enlisted.append(record)


@event.listens_for(Session, "after_commit")
def _run_commit_callbacks(session: Session) -> None:
    records = session.info.pop(_ENLISTED_KEY, [])
    for record in records:
        for hook in commit_hooks(record):
            hook()


@event.listens_for(Session, "after_rollback")
def _discard_enlisted(session: Session) -> None:
    session.info.pop(_ENLISTED_KEY, None)

"""
Default query scope for paranoid models.

SELECTs issued through an ORM session only see active rows of paranoid
models: a ``do_orm_execute`` listener adds a loader criteria option for each
paranoid class. Statements carrying the ``include_deleted`` execution option
are left untouched, which is how ``with_deleted`` and ``only_deleted`` see
soft-deleted rows.
"""

from typing import Any, List, Type

from sqlalchemy import event, inspect
from sqlalchemy.orm import ORMExecuteState, Session, with_loader_criteria

from .timestamps import current_time

INCLUDE_DELETED = "include_deleted"

_paranoid_classes: List[Type[Any]] = []


def register_paranoid_class(cls: Type[Any]) -> None:
    if cls not in _paranoid_classes:
        _paranoid_classes.append(cls)


def _scoped_classes() -> List[Type[Any]]:
    return [
        cls
        for cls in _paranoid_classes
        if cls.__paranoia_default_scope__ and inspect(cls, raiseerr=False) is not None
    ]


@event.listens_for(Session, "do_orm_execute")
def _apply_default_scope(execute_state: ORMExecuteState) -> None:
    if (
        not execute_state.is_select
        or execute_state.is_column_load
        or execute_state.execution_options.get(INCLUDE_DELETED, False)
    ):
        return

    now = current_time()
    options = [
        with_loader_criteria(
            cls, cls.paranoia_column_attribute() > now, include_aliases=True
        )
        for cls in _scoped_classes()
    ]
    if options:
        execute_state.statement = execute_state.statement.options(*options)

"""
Declarative association descriptors.

Paranoid models list their dependent associations and counter caches as
static tables on the class body::

    class Post(Base, ParanoiaMixin):
        __paranoia_dependents__ = [
            Dependent("comments", foreign_key="post_id"),
            Dependent("cover", foreign_key="post_id", cardinality=Cardinality.SINGLE),
        ]

    class Comment(Base, ParanoiaMixin):
        __paranoia_counter_caches__ = [
            CounterCache("post", foreign_key="post_id", column="comments_count"),
        ]

The walker and the counter cache coordinator read these tables; relationship
attributes named by ``name`` are only used to reach loaded objects and to
resolve target classes that were not given explicitly.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional, Type

from sqlalchemy import inspect


class Cardinality(str, Enum):
    """How many records an association points at."""

    SINGLE = "single"
    COLLECTION = "collection"


class Cascade(str, Enum):
    """What happens to dependents when their owner is destroyed."""

    DESTROY = "destroy"
    NONE = "none"


def _related_class(owner_cls: Type[Any], name: str) -> Type[Any]:
    relationship = inspect(owner_cls).relationships[name]
    return relationship.mapper.class_


@dataclass(frozen=True)
class Dependent:
    """An association from an owner to the records that depend on it."""

    name: str
    foreign_key: str
    cardinality: Cardinality = Cardinality.COLLECTION
    cascade: Cascade = Cascade.DESTROY
    polymorphic_type: Optional[str] = None
    target: Optional[Type[Any]] = None

    @property
    def is_collection(self) -> bool:
        return self.cardinality == Cardinality.COLLECTION

    @property
    def destroys(self) -> bool:
        return self.cascade == Cascade.DESTROY

    def target_class(self, owner_cls: Type[Any]) -> Type[Any]:
        """Return the dependent model, resolving it from the relationship."""
        if self.target is not None:
            return self.target
        return _related_class(owner_cls, self.name)

    def find_conditions(self, owner: Any) -> dict:
        """Column values that link a dependent row to ``owner``."""
        conditions = {self.foreign_key: inspect(owner).identity[0]}
        if self.polymorphic_type:
            conditions[self.polymorphic_type] = type(owner).__name__
        return conditions


@dataclass(frozen=True)
class CounterCache:
    """A reference from a dependent to an owner that counts its dependents."""

    name: str
    foreign_key: str
    column: str
    target: Optional[Type[Any]] = None

    def owner_class(self, dependent_cls: Type[Any]) -> Type[Any]:
        if self.target is not None:
            return self.target
        return _related_class(dependent_cls, self.name)

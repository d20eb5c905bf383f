"""
Paranoia Toolkit - reversible soft delete for SQLAlchemy applications.

Records mixing in ``ParanoiaMixin`` are never removed by ``destroy()``:
they are stamped with a deletion time, hidden from ordinary queries, and can
be restored later, optionally within a recovery window and together with
their dependents. ``really_destroy()`` removes them permanently.

Key Features
------------
* **Lifecycle**: delete, destroy, restore and purge with a sentinel column
* **Recovery Window**: restore only deletions inside a time range
* **Cascades**: dependent associations follow their owner
* **Counter Caches**: owner counts stay exact across nested cascades
* **Callbacks**: before, around and after hooks with veto support
* **Validation**: uniqueness and liveness checks that ignore deleted rows

Quick Start
-----------
>>> from paranoia_toolkit import ParanoiaMixin, Dependent
>>>
>>> class Post(Base, ParanoiaMixin):
...     __tablename__ = "posts"
...     __paranoia_dependents__ = [Dependent("comments", foreign_key="post_id")]
...     id = Column(Integer, primary_key=True)
...     comments = relationship("Comment")
>>>
>>> post.destroy()
>>> post.restore(recursive=True, recovery_window=timedelta(minutes=5))

Documentation
-------------
See README.md for usage.
"""

__version__ = "1.0.0"

# Import main components for easy access
from .config import ParanoiaConfig, configure, get_config
from .soft_delete import (
    Abort,
    CounterCache,
    Dependent,
    ParanoiaMixin,
    ParanoiaService,
    is_paranoid,
)

__all__ = [
    # Soft Delete
    "ParanoiaMixin",
    "ParanoiaService",
    "Dependent",
    "CounterCache",
    "Abort",
    "is_paranoid",
    # Configuration
    "ParanoiaConfig",
    "get_config",
    "configure",
]

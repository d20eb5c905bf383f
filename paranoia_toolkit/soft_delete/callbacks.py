"""
Callback pipeline for lifecycle events.

Hooks are registered on paranoid models at class-definition time, either by
decorating methods::

    class Post(Base, ParanoiaMixin):
        @before_restore
        def check_archive(self):
            if self.archived:
                raise Abort()

        @around_real_destroy
        def timed(self, proceed):
            started = time.monotonic()
            proceed()
            log_duration(time.monotonic() - started)

or afterwards with ``Post.register_callback("restore", "after", fn)``.

``before`` hooks raise :class:`Abort` to veto. ``around`` hooks receive a
``proceed`` callable and must call it for the operation to run. ``after``
hooks run only when the operation body ran.
"""

import inspect
import logging
from typing import Any, Callable, Dict, Iterator, List, Type

logger = logging.getLogger(__name__)

EVENTS = ("destroy", "restore", "real_destroy", "commit")
KINDS = ("before", "around", "after")

_MARKER = "__paranoia_callbacks__"
_REGISTERED = "_paranoia_registered_callbacks"

Hook = Callable[..., Any]


def _validate(event: str, kind: str) -> None:
    if event not in EVENTS:
        raise ValueError(f"Unknown lifecycle event: {event}")
    if kind not in KINDS:
        raise ValueError(f"Unknown callback kind: {kind}")
    if event == "commit" and kind != "after":
        raise ValueError("Commit callbacks can only run after the commit")


def _marker(event: str, kind: str) -> Callable[[Hook], Hook]:
    _validate(event, kind)

    def decorator(fn: Hook) -> Hook:
        fn.__dict__.setdefault(_MARKER, []).append((event, kind))
        return fn

    decorator.__name__ = f"{kind}_{event}"
    return decorator


before_destroy = _marker("destroy", "before")
around_destroy = _marker("destroy", "around")
after_destroy = _marker("destroy", "after")
before_restore = _marker("restore", "before")
around_restore = _marker("restore", "around")
after_restore = _marker("restore", "after")
before_real_destroy = _marker("real_destroy", "before")
around_real_destroy = _marker("real_destroy", "around")
after_real_destroy = _marker("real_destroy", "after")
after_commit = _marker("commit", "after")


def register_callback(cls: Type[Any], event: str, kind: str, fn: Hook) -> None:
    """Register ``fn`` on ``cls``; it is called with the record as first argument."""
    _validate(event, kind)
    if _REGISTERED not in cls.__dict__:
        setattr(cls, _REGISTERED, [])
    cls.__dict__[_REGISTERED].append((event, kind, fn))


def _hooks(record: Any, event: str, kind: str) -> Iterator[Hook]:
    """Yield bound hooks in definition order, base classes first."""
    seen: set = set()
    for klass in reversed(type(record).__mro__):
        for attr_name, value in klass.__dict__.items():
            if attr_name in seen:
                continue
            if not inspect.isfunction(value):
                continue
            if (event, kind) in getattr(value, _MARKER, ()):
                seen.add(attr_name)
                yield getattr(record, attr_name)
        for hook_event, hook_kind, fn in klass.__dict__.get(_REGISTERED, ()):
            if (hook_event, hook_kind) == (event, kind):
                yield _bind(fn, record)


def _bind(fn: Hook, record: Any) -> Hook:
    def bound(*args: Any) -> Any:
        return fn(record, *args)

    return bound


def run_callbacks(record: Any, event: str, body: Callable[[], Any]) -> Any:
    """
    Run ``body`` wrapped in the hooks registered for ``event``.

    Returns:
        The body's result, or False when an ``around`` hook did not proceed

    Raises:
        Abort: A ``before`` hook vetoed the operation
    """
    for hook in _hooks(record, event, "before"):
        hook()

    state: Dict[str, Any] = {"ran": False, "result": None}

    def innermost() -> Any:
        state["result"] = body()
        state["ran"] = True
        return state["result"]

    chain: Callable[[], Any] = innermost
    for around in reversed(list(_hooks(record, event, "around"))):
        chain = _wrap(around, chain)
    chain()

    if not state["ran"]:
        logger.warning(
            f"{type(record).__name__} {event} halted by an around callback"
        )
        return False

    for hook in _hooks(record, event, "after"):
        hook()
    return state["result"]


def _wrap(around: Hook, proceed: Callable[[], Any]) -> Callable[[], Any]:
    def step() -> Any:
        return around(proceed)

    return step


def commit_hooks(record: Any) -> List[Hook]:
    return list(_hooks(record, "commit", "after"))


"""Events, event contexts and manager options."""

from __future__ import annotations

import enum
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

DEFAULT_CHANNEL_SIZE = 100
DEFAULT_CONSUMER_NUM = 3


class Mode(enum.IntEnum):
    """How listener names are matched against fired event names."""

    SIMPLE = 0
    """``user.*`` matches ``user.created``; ``*`` only once and at the end."""
    PATH = 1
    """``*`` matches one node, ``**`` matches the rest, at start or end."""


@dataclass
class Options:
    """Configuration of an event manager."""

    enable_lock: bool = False
    channel_size: int = DEFAULT_CHANNEL_SIZE
    consumer_num: int = DEFAULT_CONSUMER_NUM
    match_mode: Mode = Mode.SIMPLE


OptionFn = Callable[[Options], None]


def use_path_mode(options: Options) -> None:
    """Switch name matching to path mode."""
    options.match_mode = Mode.PATH


def with_channel_size(size: int) -> OptionFn:
    """Option setting the queue size used for queued firing."""

    def apply(options: Options) -> None:
        options.channel_size = size

    return apply


def with_consumer_num(num: int) -> OptionFn:
    """Option setting the number of workers used for queued firing."""

    def apply(options: Options) -> None:
        options.consumer_num = num

    return apply


def enable_lock(enable: bool) -> OptionFn:
    """Option turning the lock taken while firing on or off."""

    def apply(options: Options) -> None:
        options.enable_lock = enable

    return apply


class ContextCancelled(Exception):
    """The context was cancelled."""


class DeadlineExceeded(TimeoutError):
    """The context deadline passed."""


class Context:
    """Carries values, cancellation and a deadline down to listeners."""

    def __init__(self, parent: Context | None = None) -> None:
        self._parent = parent
        self._values: dict[Any, Any] = {}
        self._deadline: float | None = None
        self._cancelled = threading.Event()

    def value(self, key: Any) -> Any:
        """Return the value stored under ``key`` here or in a parent, else None."""
        ctx: Context | None = self
        while ctx is not None:
            if key in ctx._values:
                return ctx._values[key]
            ctx = ctx._parent
        return None

    def with_value(self, key: Any, value: Any) -> Context:
        """Return a child context carrying ``key``."""
        child = Context(self)
        child._values[key] = value
        return child

    def with_timeout(self, seconds: float) -> Context:
        """Return a child context that is done after ``seconds``."""
        child = Context(self)
        child._deadline = time.monotonic() + seconds
        return child

    def cancel(self) -> None:
        """Cancel this context and every context derived from it."""
        self._cancelled.set()

    def error(self) -> Exception | None:
        """Return why the context is done, or None while it is still live."""
        if self._cancelled.is_set():
            return ContextCancelled("context canceled")
        if self._deadline is not None and time.monotonic() >= self._deadline:
            return DeadlineExceeded("context deadline exceeded")
        if self._parent is not None:
            return self._parent.error()
        return None

    def done(self) -> bool:
        """Whether the context was cancelled or timed out."""
        return self.error() is not None


class Event:
    """An event: a name, a data mapping and an abort flag."""

    def __init__(self, name: str = "", data: dict[str, Any] | None = None) -> None:
        self.name = name
        self._data: dict[str, Any] = {} if data is None else data
        self._aborted = False

    @property
    def data(self) -> dict[str, Any]:
        return self._data

    @property
    def aborted(self) -> bool:
        return self._aborted

    def get(self, key: str) -> Any:
        """Return the value under ``key``, or None."""
        return self._data.get(key)

    def set(self, key: str, value: Any) -> None:
        """Store ``value`` under ``key``."""
        self._data[key] = value

    def add(self, key: str, value: Any) -> None:
        """Store ``value`` under ``key`` unless the key is already present."""
        if key not in self.data:
            self.set(key, value)

    def set_data(self, data: dict[str, Any] | None) -> Event:
        """Replace the data mapping; None leaves it unchanged."""
        if data is not None:
            self._data = data
        return self

    def abort(self, flag: bool = True) -> None:
        """Mark the event so that no further listeners run."""
        self._aborted = flag


class ContextAware:
    """Mixin giving an event a context."""

    _ctx: Context | None = None

    @property
    def context(self) -> Context:
        return self._ctx if self._ctx is not None else Context()

    def with_context(self, ctx: Context) -> None:
        """Attach ``ctx``."""
        self._ctx = ctx


class BasicEvent(Event):
    """The built-in event, with an optional target object."""

    def __init__(self, name: str = "", data: dict[str, Any] | None = None) -> None:
        super().__init__(name, data)
        self.target: Any = None

    def get(self, key: str) -> Any:
        """Return the value under ``key``, or None."""
        return super().get(key)

    def set(self, key: str, value: Any) -> None:
        """Store ``value`` under ``key``."""
        super().set(key, value)

    def add(self, key: str, value: Any) -> None:
        """Store ``value`` under ``key`` unless the key is already present."""
        super().add(key, value)

    def set_data(self, data: dict[str, Any] | None) -> BasicEvent:
        """Replace the data mapping; None leaves it unchanged."""
        super().set_data(data)
        return self

    def abort(self, flag: bool = True) -> None:
        """Mark the event so that no further listeners run."""
        super().abort(flag)

    def fill(self, target: Any, data: dict[str, Any] | None) -> BasicEvent:
        """Set the target and, unless None, the data."""
        if data is not None:
            self._data = data
        self.target = target
        return self

    def attach_to(self, manager: Any) -> None:
        """Register this event with ``manager`` as a pre-defined event."""
        manager.add_event(self)


class ContextEvent(ContextAware, Event):
    """Wraps an event that has no context of its own and adds one."""

    def __init__(self, ctx: Context | None, event: Event) -> None:
        self.inner = event
        self._ctx = ctx

    @property
    def name(self) -> str:  # type: ignore[override]
        return self.inner.name

    @name.setter
    def name(self, value: str) -> None:
        self.inner.name = value

    @property
    def data(self) -> dict[str, Any]:
        return self.inner.data

    @property
    def aborted(self) -> bool:
        return self.inner.aborted

    def get(self, key: str) -> Any:
        return self.inner.get(key)

    def set(self, key: str, value: Any) -> None:
        self.inner.set(key, value)

    def add(self, key: str, value: Any) -> None:
        self.inner.add(key, value)

    def set_data(self, data: dict[str, Any] | None) -> Event:
        self.inner.set_data(data)
        return self

    def abort(self, flag: bool = True) -> None:
        self.inner.abort(flag)

    def with_context(self, ctx: Context) -> None:
        """Replace the attached context."""
        super().with_context(ctx)

    def __getattr__(self, attr: str) -> Any:
        inner = self.__dict__.get("inner")
        if inner is None:
            raise AttributeError(attr)
        return getattr(inner, attr)

    def __repr__(self) -> str:
        return f"ContextEvent({self.inner!r})"


def new_event(name: str, data: dict[str, Any] | None = None) -> BasicEvent:
    """Create a BasicEvent."""
    return BasicEvent(name, data)
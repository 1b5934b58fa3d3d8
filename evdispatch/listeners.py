"""Listeners, listener priorities and priority ordered listener queues."""

from __future__ import annotations

import abc
import enum
from collections.abc import Callable, Iterator, Mapping
from dataclasses import dataclass
from typing import Any


class Priority(enum.IntEnum):
    """Common listener priorities; higher runs first. Any int may be used."""

    MIN = -300
    LOW = -200
    BELOW_NORMAL = -100
    NORMAL = 0
    ABOVE_NORMAL = 100
    HIGH = 200
    MAX = 300


class Listener(abc.ABC):
    """Something that handles events. Raising stops the remaining listeners."""

    @abc.abstractmethod
    def handle(self, event: Any) -> None:
        """Handle ``event``."""


class ListenerFunc(Listener):
    """A listener made from a plain callable.

    Two wrappers of the same callable compare equal, so either removes the other.
    """

    def __init__(self, fn: Callable[[Any], Any]) -> None:
        self.fn = fn

    def handle(self, event: Any) -> None:
        """Call the wrapped function with ``event``."""
        self.fn(event)

    def __call__(self, event: Any) -> None:
        self.handle(event)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, ListenerFunc):
            return self.fn == other.fn
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self.fn)

    def __repr__(self) -> str:
        return f"ListenerFunc({self.fn!r})"


class Subscriber(abc.ABC):
    """Registers several listeners at once."""

    @abc.abstractmethod
    def subscribed_events(self) -> Mapping[str, Any]:
        """Map event names to a Listener or a ListenerItem."""


@dataclass
class ListenerItem:
    """A listener with its priority."""

    priority: int
    listener: Listener


def _as_listener(listener: Any) -> Any:
    if listener is not None and not isinstance(listener, Listener) and callable(listener):
        return ListenerFunc(listener)
    return listener


class ListenerQueue:
    """Listeners of one event name, kept in priority order."""

    def __init__(self) -> None:
        self._items: list[ListenerItem] = []

    @property
    def items(self) -> list[ListenerItem]:
        return self._items

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[ListenerItem]:
        return iter(self._items)

    def push(self, item: ListenerItem) -> ListenerQueue:
        """Append ``item``."""
        self._items.append(item)
        return self

    def sort(self) -> ListenerQueue:
        """Order by priority, highest first; equal priorities keep their order."""
        self._items.sort(key=lambda item: item.priority, reverse=True)
        return self

    def remove(self, listener: Any) -> None:
        """Drop every item whose listener equals ``listener``."""
        listener = _as_listener(listener)
        if listener is None:
            return
        self._items = [item for item in self._items if item.listener != listener]

    def clear(self) -> None:
        """Drop all items."""
        self._items.clear()
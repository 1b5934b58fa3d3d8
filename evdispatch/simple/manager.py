"""A minimal event manager: handlers by exact name plus a ``*`` catch-all."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

WILDCARD = "*"


@dataclass
class EventData:
    """The event passed to handlers: a name, positional data and an abort flag."""

    name: str = ""
    data: list[Any] = field(default_factory=list)
    aborted: bool = False

    def abort(self) -> None:
        """Stop the remaining handlers from running."""
        self.aborted = True


HandlerFunc = Callable[[EventData], Any]


def _func_name(handler: Any) -> str:
    module = getattr(handler, "__module__", None)
    qualname = getattr(handler, "__qualname__", None)
    if qualname is None:
        return repr(handler)
    return f"{module}.{qualname}" if module else qualname


class EventManager:
    """Maps event names to lists of handlers. Handlers signal errors by raising."""

    def __init__(self) -> None:
        self._names: dict[str, int] = {}
        self._handlers: dict[str, list[HandlerFunc]] = {}

    @property
    def event_handlers(self) -> dict[str, list[HandlerFunc]]:
        return self._handlers

    @property
    def event_names(self) -> dict[str, int]:
        return self._names

    def on(self, name: str, handler: HandlerFunc) -> None:
        """Register ``handler`` for ``name``."""
        name = name.strip()
        if not name:
            raise ValueError("event name cannot be empty")
        self._names[name] = self._names.get(name, 0) + 1
        self._handlers.setdefault(name, []).append(handler)

    def fire(self, name: str, *args: Any) -> None:
        """Call the handlers of ``name``, then the ``*`` handlers.

        Nothing runs if ``name`` has no handlers of its own. A handler that
        raises or aborts the event stops the rest.
        """
        handlers = self._handlers.get(name)
        if handlers is None:
            return
        event = EventData(name, list(args))
        if self._call(event, handlers):
            return
        if self.has_event(WILDCARD):
            self._call(event, self._handlers[WILDCARD])

    def must_fire(self, name: str, *args: Any) -> None:
        """Same as fire(): handler errors are raised."""
        self.fire(name, *args)

    @staticmethod
    def _call(event: EventData, handlers: list[HandlerFunc]) -> bool:
        for handler in list(handlers):
            handler(event)
            if event.aborted:
                return True
        return False

    def has_event(self, name: str) -> bool:
        """Whether handlers are registered for ``name``."""
        return name in self._names

    def get_event_handlers(self, name: str) -> list[HandlerFunc]:
        """Return the handlers of ``name``; empty if there are none."""
        return list(self._handlers.get(name, []))

    def clear_handlers(self, name: str) -> bool:
        """Remove the handlers of ``name``; return whether there were any."""
        if name not in self._names:
            return False
        del self._names[name]
        del self._handlers[name]
        return True

    def clear(self) -> None:
        """Remove all handlers."""
        self._names = {}
        self._handlers = {}

    def __str__(self) -> str:
        return "".join(
            f"{name} handlers:\n " + "".join(_func_name(h) for h in handlers) + "\n"
            for name, handlers in self._handlers.items()
        )


default_manager = EventManager()


def on(name: str, handler: HandlerFunc) -> None:
    """Register ``handler`` on the default manager."""
    default_manager.on(name, handler)


def has(name: str) -> bool:
    """Whether the default manager has handlers for ``name``."""
    return default_manager.has_event(name)


def fire(name: str, *args: Any) -> None:
    """Fire ``name`` on the default manager."""
    default_manager.fire(name, *args)


def must_fire(name: str, *args: Any) -> None:
    """Fire ``name`` on the default manager; handler errors are raised."""
    default_manager.must_fire(name, *args)
"""A process wide default event manager and shortcuts that use it."""

from __future__ import annotations

import threading
from typing import Any

from evdispatch.event import Context, Event, OptionFn
from evdispatch.listeners import Priority, Subscriber
from evdispatch.manager import FactoryFunc, Manager

_std = Manager("default")


def std() -> Manager:
    """Return the default event manager."""
    return _std


def config(*args: OptionFn) -> None:
    """Apply option functions to the default manager."""
    _std.with_options(*args)


# Listeners


def on(name: str, listener: Any, priority: int = Priority.NORMAL) -> None:
    """Register ``listener`` for ``name`` on the default manager."""
    _std.on(name, listener, priority)


def once(name: str, listener: Any, priority: int = Priority.NORMAL) -> None:
    """Register a listener that runs only the first time ``name`` fires."""
    _std.once(name, listener, priority)


def listen(name: str, listener: Any, priority: int = Priority.NORMAL) -> None:
    """Same as on()."""
    _std.listen(name, listener, priority)


def subscribe(subscriber: Subscriber) -> None:
    """Register every listener the subscriber declares."""
    _std.subscribe(subscriber)


def add_subscriber(subscriber: Subscriber) -> None:
    """Same as subscribe()."""
    _std.add_subscriber(subscriber)


def has_listeners(name: str) -> bool:
    """Whether listeners are registered directly under ``name``."""
    return _std.has_listeners(name)


def reset() -> None:
    """Drop all listeners and pre-defined events of the default manager."""
    _std.clear()


def close_wait() -> None:
    """Close the worker queue and wait until queued events are handled."""
    _std.close_wait()


# Firing


def async_fire(event: Event) -> threading.Thread:
    """Fire ``event`` on a new thread and return the thread."""
    return _std.async_fire(event)


def queue(name: str, params: dict[str, Any] | None = None) -> None:
    """Put an event for ``name`` on the worker queue."""
    _std.queue(name, params)


def fire_async(event: Event) -> None:
    """Put ``event`` on the worker queue."""
    _std.fire_async(event)


def trigger(name: str, params: dict[str, Any] | None = None) -> Event:
    """Same as fire()."""
    return _std.fire(name, params)


def fire(name: str, params: dict[str, Any] | None = None) -> Event:
    """Fire ``name`` and return the event."""
    return _std.fire(name, params)


def fire_ctx(ctx: Context, name: str, params: dict[str, Any] | None = None) -> Event:
    """Fire ``name`` with ``ctx`` attached to the event."""
    return _std.fire_ctx(ctx, name, params)


def fire_event(event: Event) -> None:
    """Dispatch ``event`` to the matching listeners."""
    _std.fire_event(event)


def fire_event_ctx(ctx: Context, event: Event) -> None:
    """Dispatch ``event`` with ``ctx`` attached."""
    _std.fire_event_ctx(ctx, event)


def trigger_event(event: Event) -> None:
    """Same as fire_event()."""
    _std.fire_event(event)


def must_fire(name: str, params: dict[str, Any] | None = None) -> Event:
    """Fire ``name``; listener errors are raised."""
    return _std.must_fire(name, params)


def must_trigger(name: str, params: dict[str, Any] | None = None) -> Event:
    """Same as must_fire()."""
    return _std.must_fire(name, params)


def fire_batch(*args: Any) -> list[Exception]:
    """Fire names and events in turn; return the errors they raised."""
    return _std.fire_batch(*args)


# Pre-defined events


def add_event(event: Event) -> None:
    """Register a pre-defined event on the default manager."""
    _std.add_event(event)


def add_event_factory(name: str, factory: FactoryFunc) -> None:
    """Register a factory producing the event fired under ``name``."""
    _std.add_event_factory(name, factory)


def get_event(name: str) -> Event | None:
    """Return a pre-defined event instance, or None."""
    return _std.get_event(name)


def has_event(name: str) -> bool:
    """Whether a pre-defined event exists for ``name``."""
    return _std.has_event(name)
"""Event manager: listener registration, pre-defined events and firing."""

from __future__ import annotations

import contextlib
import threading
from collections.abc import Callable
from queue import Queue
from typing import Any

from evdispatch.event import (
    DEFAULT_CHANNEL_SIZE,
    DEFAULT_CONSUMER_NUM,
    BasicEvent,
    Context,
    ContextAware,
    ContextEvent,
    Event,
    Mode,
    OptionFn,
    Options,
)
from evdispatch.listeners import (
    Listener,
    ListenerFunc,
    ListenerItem,
    ListenerQueue,
    Priority,
    Subscriber,
)
from evdispatch.util import WILDCARD, InvalidListener, good_name, match_node_path

FactoryFunc = Callable[[], Event]

_STOP = object()


def _to_listener(name: str, listener: Any) -> Listener:
    if isinstance(listener, Listener):
        return listener
    if listener is None:
        raise InvalidListener(f"event: the event {name!r} listener cannot be empty")
    if callable(listener):
        return ListenerFunc(listener)
    raise InvalidListener(f"event: the event {name!r} listener must be a Listener or callable")


class Manager:
    """Holds listeners and pre-defined events, and dispatches fired events."""

    def __init__(self, name: str = "", *option_fns: OptionFn) -> None:
        self.name = name
        self.options = Options()
        self._lock = threading.RLock()
        self._async_lock = threading.Lock()
        self._queue: Queue[Any] | None = None
        self._workers: list[threading.Thread] = []
        self._closed = False
        self._event_factories: dict[str, FactoryFunc] = {}
        self._listeners: dict[str, ListenerQueue] = {}
        self._listened_names: dict[str, int] = {}
        self.with_options(*option_fns)

    def with_options(self, *args: OptionFn) -> Manager:
        """Apply option functions to this manager's options."""
        for fn in args:
            fn(self.options)
        return self

    # Registering listeners

    def on(self, name: str, listener: Any, priority: int = Priority.NORMAL) -> None:
        """Register ``listener`` for ``name``; higher priorities run first."""
        self._add_item(name, ListenerItem(priority, _to_listener(name, listener)))

    def add_listener(self, name: str, listener: Any, priority: int = Priority.NORMAL) -> None:
        """Same as on()."""
        self.on(name, listener, priority)

    def listen(self, name: str, listener: Any, priority: int = Priority.NORMAL) -> None:
        """Same as on()."""
        self.on(name, listener, priority)

    def once(self, name: str, listener: Any, priority: int = Priority.NORMAL) -> None:
        """Register a listener that removes itself the first time it runs."""
        target = _to_listener(name, listener)
        key = good_name(name, True)

        def fire_once(event: Any) -> None:
            self.remove_listener(key, wrapper)
            target.handle(event)

        wrapper = ListenerFunc(fire_once)
        self.on(name, wrapper, priority)

    def subscribe(self, subscriber: Subscriber) -> None:
        """Same as add_subscriber()."""
        self.add_subscriber(subscriber)

    def add_subscriber(self, subscriber: Subscriber) -> None:
        """Register every listener the subscriber declares."""
        for name, listener in subscriber.subscribed_events().items():
            if isinstance(listener, ListenerItem):
                self._add_item(name, listener)
            elif isinstance(listener, Listener) or callable(listener):
                self.on(name, listener)
            else:
                raise InvalidListener(
                    "event: the value must be an Listener or ListenerItem instance"
                )

    def _add_item(self, name: str, item: ListenerItem) -> None:
        name = good_name(name, True)
        if item.listener is None:
            raise InvalidListener(f"event: the event {name!r} listener cannot be empty")
        item.listener = _to_listener(name, item.listener)
        existing = self._listeners.get(name)
        if existing is not None:
            existing.push(item)
        else:
            self._listened_names[name] = 1
            self._listeners[name] = ListenerQueue().push(item)

    # Pre-defined events

    def add_event(self, event: Event) -> None:
        """Register a pre-defined event; cloneable events are cloned per fire."""
        name = good_name(event.name, False)
        clone = getattr(event, "clone", None)
        if callable(clone):
            self._set_factory(name, clone)
        else:
            self._set_factory(name, lambda: event)

    def add_event_factory(self, name: str, factory: FactoryFunc) -> None:
        """Register a factory producing the event fired under ``name``."""
        self._set_factory(good_name(name, False), factory)

    def _set_factory(self, name: str, factory: FactoryFunc) -> None:
        with self._lock:
            self._event_factories[name] = factory

    def get_event(self, name: str) -> Event | None:
        """Return a pre-defined event instance, or None."""
        factory = self._event_factories.get(name)
        return factory() if factory is not None else None

    def has_event(self, name: str) -> bool:
        """Whether a pre-defined event exists for ``name``."""
        return name in self._event_factories

    def remove_event(self, name: str) -> None:
        """Forget the pre-defined event ``name``."""
        self._event_factories.pop(name, None)

    def remove_events(self) -> None:
        """Forget all pre-defined events."""
        self._event_factories = {}

    # Listener inspection and removal

    @property
    def listeners(self) -> dict[str, ListenerQueue]:
        return self._listeners

    @property
    def listened_names(self) -> dict[str, int]:
        return self._listened_names

    def has_listeners(self, name: str) -> bool:
        """Whether listeners are registered directly under ``name``."""
        return name in self._listened_names

    def listeners_by_name(self, name: str) -> ListenerQueue | None:
        """Return the queue registered under ``name``, or None."""
        return self._listeners.get(name)

    def listeners_count(self, name: str) -> int:
        """Number of listeners registered under ``name``."""
        found = self._listeners.get(name)
        return len(found) if found is not None else 0

    def _drop_if_empty(self, name: str, listeners: ListenerQueue) -> None:
        if not len(listeners):
            self._listeners.pop(name, None)
            self._listened_names.pop(name, None)

    def remove_listener(self, name: str, listener: Any) -> None:
        """Remove ``listener`` from ``name``, or from every name when ``name`` is empty."""
        if name:
            found = self._listeners.get(name)
            if found is not None:
                found.remove(listener)
                self._drop_if_empty(name, found)
            return
        for key, found in list(self._listeners.items()):
            found.remove(listener)
            self._drop_if_empty(key, found)

    def remove_listeners(self, name: str) -> None:
        """Remove all listeners registered under ``name``."""
        if name in self._listened_names:
            self._listeners[name].clear()
            del self._listeners[name]
            del self._listened_names[name]

    def clear(self) -> None:
        """Same as reset()."""
        self.reset()

    def close(self) -> None:
        """Stop accepting queued events; workers finish what is already queued."""
        with self._async_lock:
            if self._queue is None or self._closed:
                return
            self._closed = True
            for _ in self._workers:
                self._queue.put(_STOP)

    def reset(self) -> None:
        """Drop all listeners, pre-defined events and the async queue."""
        for found in self._listeners.values():
            found.clear()
        with self._async_lock:
            self._queue = None
            self._workers = []
            self._closed = False
        self._event_factories = {}
        self._listeners = {}
        self._listened_names = {}

    # Firing

    def fire(self, name: str, params: dict[str, Any] | None = None) -> Event:
        """Fire ``name`` and return the event; a listener's exception propagates."""
        return self._fire_by_name(Context(), name, params, queued=False)

    def trigger(self, name: str, params: dict[str, Any] | None = None) -> Event:
        """Same as fire()."""
        return self.fire(name, params)

    def must_fire(self, name: str, params: dict[str, Any] | None = None) -> Event:
        """Same as fire(): errors are raised."""
        return self.fire(name, params)

    def must_trigger(self, name: str, params: dict[str, Any] | None = None) -> Event:
        """Same as must_fire()."""
        return self.must_fire(name, params)

    def fire_ctx(self, ctx: Context, name: str, params: dict[str, Any] | None = None) -> Event:
        """Fire ``name`` with ``ctx`` attached to the event."""
        return self._fire_by_name(ctx, name, params, queued=False)

    def queue(self, name: str, params: dict[str, Any] | None = None) -> None:
        """Put the event on the worker queue; call close_wait() when done."""
        self._fire_by_name(Context(), name, params, queued=True)

    def fire_c(self, name: str, params: dict[str, Any] | None = None) -> None:
        """Same as queue()."""
        self.queue(name, params)

    def _fire_by_name(
        self, ctx: Context | None, name: str, params: dict[str, Any] | None, queued: bool
    ) -> Any:
        name = good_name(name, False)
        factory = self._event_factories.get(name)
        if factory is not None:
            event: Event = factory()
            if params is not None:
                event.set_data(params)
        else:
            event = BasicEvent(name, params)

        if ctx is not None:
            if isinstance(event, ContextAware):
                event.with_context(ctx)
            else:
                event = ContextEvent(ctx, event)

        if queued:
            self.fire_async(event)
            return None
        self._fire_event(event)
        return event

    def fire_event(self, event: Event) -> None:
        """Dispatch ``event`` to the matching listeners."""
        self._fire_event(event)

    def fire_event_ctx(self, ctx: Context, event: Event) -> None:
        """Dispatch ``event`` with ``ctx`` attached."""
        if isinstance(event, ContextAware):
            event.with_context(ctx)
            self._fire_event(event)
        else:
            self._fire_event(ContextEvent(ctx, event))

    def _fire_event(self, event: Event) -> None:
        guard = self._lock if self.options.enable_lock else contextlib.nullcontext()
        with guard:
            event.abort(False)
            name = event.name
            ctx = event.context if isinstance(event, ContextAware) else None

            if self.options.match_mode == Mode.PATH:
                self._fire_path_mode(ctx, name, event)
                return

            if self._fire_simple_mode(ctx, name, event):
                return
            wildcard = self._listeners.get(WILDCARD)
            if wildcard is not None:
                self._run(ctx, wildcard, event)

    def _run(self, ctx: Context | None, listeners: ListenerQueue, event: Event) -> bool:
        """Call the listeners in order; return True when the event was aborted."""
        for item in list(listeners.sort().items):
            if ctx is not None:
                err = ctx.error()
                if err is not None:
                    raise err
            item.listener.handle(event)
            if event.aborted:
                return True
        return False

    def _fire_simple_mode(self, ctx: Context | None, name: str, event: Event) -> bool:
        direct = self._listeners.get(name)
        if direct is not None and self._run(ctx, direct, event):
            return True
        pos = name.rfind(".")
        if 0 < pos < len(name):
            group = self._listeners.get(name[: pos + 1] + WILDCARD)
            if group is not None and self._run(ctx, group, event):
                return True
        return False

    def _fire_path_mode(self, ctx: Context | None, name: str, event: Event) -> None:
        for pattern, listeners in list(self._listeners.items()):
            if pattern == name or match_node_path(pattern, name, "."):
                if self._run(ctx, listeners, event):
                    return

    # Background firing

    def fire_async(self, event: Event) -> None:
        """Put ``event`` on the worker queue, starting workers on first use."""
        with self._async_lock:
            if self._closed:
                raise RuntimeError("event: the manager queue is closed")
            if self._queue is None:
                self._start_workers()
            work_queue = self._queue
        assert work_queue is not None
        work_queue.put(event)

    def _start_workers(self) -> None:
        if self.options.consumer_num <= 0:
            self.options.consumer_num = DEFAULT_CONSUMER_NUM
        if self.options.channel_size <= 0:
            self.options.channel_size = DEFAULT_CHANNEL_SIZE
        work_queue: Queue[Any] = Queue(maxsize=self.options.channel_size)
        self._queue = work_queue
        self._workers = [
            threading.Thread(target=self._consume, args=(work_queue,), daemon=True)
            for _ in range(self.options.consumer_num)
        ]
        for worker in self._workers:
            worker.start()

    def _consume(self, work_queue: Queue[Any]) -> None:
        while True:
            event = work_queue.get()
            if event is _STOP:
                return
            try:
                self.fire_event(event)
            except Exception:  # errors of queued events are dropped
                pass

    def fire_batch(self, *args: Any) -> list[Exception]:
        """Fire names and events in turn; return the errors they raised."""
        errors: list[Exception] = []
        for item in args:
            try:
                if isinstance(item, str):
                    self.fire(item, None)
                elif isinstance(item, Event):
                    self.fire_event(item)
            except Exception as exc:
                errors.append(exc)
        return errors

    def async_fire(self, event: Event) -> threading.Thread:
        """Fire ``event`` on a new thread, ignoring its errors; return the thread."""

        def run() -> None:
            try:
                self.fire_event(event)
            except Exception:
                pass

        thread = threading.Thread(target=run, daemon=True)
        thread.start()
        return thread

    def await_fire(self, event: Event) -> None:
        """Fire ``event`` on a new thread and wait; its error is raised here."""
        failures: list[BaseException] = []

        def run() -> None:
            try:
                self.fire_event(event)
            except BaseException as exc:
                failures.append(exc)

        thread = threading.Thread(target=run)
        thread.start()
        thread.join()
        if failures:
            raise failures[0]

    def must_close_wait(self) -> None:
        """Same as close_wait()."""
        self.close_wait()

    def close_wait(self) -> None:
        """Close the queue and wait until all queued events are handled."""
        self.close()
        self.wait()

    def wait(self) -> None:
        """Wait until the workers have stopped."""
        with self._async_lock:
            workers = list(self._workers)
        for worker in workers:
            worker.join()


def new_manager(name: str = "", *args: OptionFn) -> Manager:
    """Create a Manager with the given option functions applied."""
    return Manager(name, *args)
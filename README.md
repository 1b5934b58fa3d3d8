# evdispatch

A small, dependency-free event manager for Python. Register listeners by
event name, give them priorities, match groups of events with wildcards, and
fire events synchronously, on a thread of their own, or through a pool of
background worker threads.

## Installation

```
pip install evdispatch
```

## Quick start

```python
from evdispatch.manager import new_manager
from evdispatch.listeners import Priority

em = new_manager("app")

def on_user_added(event):
    print("user added:", event.get("user"))

em.on("app.user.add", on_user_added, Priority.HIGH)

event = em.fire("app.user.add", {"user": "alice"})
```

A listener is either a subclass of `evdispatch.listeners.Listener` with a
`handle(event)` method, a `ListenerFunc` wrapping a callable, or a plain
callable (it is wrapped in a `ListenerFunc` for you). `on`, `listen` and
`add_listener` are the same operation.

`fire` (and its alias `trigger`) returns the event that was passed to the
listeners. Listeners run from the highest priority to the lowest; listeners
with equal priority run in the order they were added. A listener stops the
chain by raising an exception, which propagates out of `fire`, or by calling
`event.abort()`. `must_fire` and `must_trigger` behave like `fire`.

Event names must start with a letter and may contain letters, digits, `_`,
`-`, `.` and `*`. An empty or malformed name raises
`evdispatch.util.InvalidEventName`; registering `None` or a non-callable
object as a listener raises `evdispatch.util.InvalidListener`.

## Events

`evdispatch.event.BasicEvent` (also made by `new_event(name, data)`) has a
`name`, a `data` dict, an `aborted` flag and an optional `target`:

```python
from evdispatch.event import new_event

e = new_event("n1", {"arg0": "val0"})
e.add("arg1", "val1")      # only sets the key if it is missing
e.set("arg1", "new val")
e.get("arg1")              # "new val"; missing keys give None
e.fill("some target", None)
```

## Listening to groups of events

In the default simple mode (`Mode.SIMPLE`), firing `app.user.add` runs, in
this order, the listeners on `app.user.add`, those on `app.user.*`, and those
on `*`.

Path mode (`Mode.PATH`) matches every registered name as a pattern:

```python
from evdispatch.event import use_path_mode
from evdispatch.manager import new_manager

em = new_manager("db", use_path_mode)
em.listen("db.user.*", listener)     # db.user.add, db.user.del
em.listen("db.*.update", listener)   # db.user.update, db.post.update
em.listen("db.**", listener)         # anything starting with "db."
em.listen("**.add", listener)        # anything ending with ".add"
em.listen("*", listener)             # everything
```

Other options are set with `with_channel_size(n)`, `with_consumer_num(n)` and
`enable_lock(flag)`, passed to `new_manager` or to `Manager.with_options`.
With the lock enabled, each dispatch holds the manager's lock.

## Inspecting and removing listeners

`has_listeners(name)`, `listeners_count(name)`, `listeners_by_name(name)` and
the `listeners` and `listened_names` properties report what is registered.
`remove_listener(name, listener)` removes a listener from one name, or from
every name when `name` is empty; `remove_listeners(name)` drops a whole name;
`clear()` / `reset()` drop everything.

## Predefined events

```python
from evdispatch.event import new_event

em.add_event(new_event("order.paid", {"currency": "EUR"}))
em.add_event_factory("order.refund", lambda: new_event("order.refund", None))
```

When a name has a registered event or factory, firing that name uses it
(with its data replaced by the given params, if any) instead of a new
`BasicEvent`. An event with a `clone()` method is cloned for each fire.
`event.attach_to(em)` is the same as `em.add_event(event)`. See also
`get_event`, `has_event`, `remove_event` and `remove_events`.

## Subscribers and one-shot listeners

A `Subscriber` implements `subscribed_events()`, returning a mapping of event
names to listeners or `ListenerItem(priority, listener)` objects; pass it to
`em.subscribe(...)` or `em.add_subscriber(...)`. Any other value raises
`InvalidListener`. `em.once(name, listener)` removes the listener before its
first call.

## Firing several events

`fire_batch("name1", some_event, ...)` fires names and event objects in turn
and returns the list of exceptions they raised.

## Contexts

`fire_ctx` and `fire_event_ctx` attach an `evdispatch.event.Context` to the
event. Listeners read it from `event.context`. Before each listener runs the
context is checked; a cancelled context raises `ContextCancelled` and an
expired one raises `DeadlineExceeded`.

```python
from evdispatch.event import Context

ctx = Context().with_value("trace_id", "trace-1").with_timeout(1.0)

def listener(event):
    print(event.context.value("trace_id"))

em.on("app.test", listener)
em.fire_ctx(ctx, "app.test", {"key": "value"})
```

## Background delivery

```python
em.queue("new.member", {"member_id": 1})  # handled by worker threads
em.close_wait()                           # close the queue and wait
```

`queue` (alias `fire_c`) and `fire_async(event)` start the worker threads on
first use; exceptions raised by queued events are dropped. Putting an event on
a closed queue raises `RuntimeError`. `async_fire(event)` handles one event on
a new thread and returns that thread; `await_fire(event)` does the same, waits,
and re-raises the listener's exception.

## The default manager

`evdispatch.std` holds a process-wide manager (`std()`) and module-level
functions using it: `config`, `on`, `once`, `listen`, `subscribe`,
`add_subscriber`, `has_listeners`, `reset`, `close_wait`, `fire`, `trigger`,
`fire_ctx`, `fire_event`, `fire_event_ctx`, `trigger_event`, `must_fire`,
`must_trigger`, `fire_batch`, `queue`, `fire_async`, `async_fire`,
`add_event`, `add_event_factory`, `get_event` and `has_event`.

## The simple manager

`evdispatch.simple.manager` is a minimal variant: handlers are plain callables
receiving an `EventData` (`name`, positional `data`, `aborted`). Handlers run in
registration order, then the `"*"` handlers; nothing runs for a name that has
no handlers of its own. A handler stops the rest by raising or calling
`abort()`.

```python
from evdispatch.simple import manager as simple

simple.on("n1", lambda e: print(e.name, e.data))
simple.fire("n1", 1, 2, 3)
```

## Scope

Everything happens inside one process: there is no persistence of events and
no delivery across processes or machines.
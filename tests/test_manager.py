import io
import threading
import time

import pytest

from evdispatch.event import (
    BasicEvent,
    Context,
    ContextCancelled,
    DeadlineExceeded,
    Options,
    enable_lock,
    use_path_mode,
    with_channel_size,
    with_consumer_num,
)
from evdispatch.listeners import Listener, ListenerFunc, ListenerItem, Priority, Subscriber
from evdispatch.manager import Manager, new_manager
from evdispatch.util import InvalidEventName, InvalidListener


class HandlerError(Exception):
    pass


class RecordingListener(Listener):
    def __init__(self, user_data=""):
        self.user_data = user_data

    def handle(self, event):
        previous = event.get("result")
        if previous is not None:
            event.set("result", f"{previous} -> {event.name}({self.user_data})")
        else:
            event.set("result", f"handled: {event.name}({self.user_data})")


def failing(event):
    raise HandlerError("an error")


class SampleSubscriber(Subscriber):
    def subscribed_events(self):
        return {
            "e1": ListenerFunc(self.e1_handler),
            "e2": ListenerItem(Priority.ABOVE_NORMAL, ListenerFunc(failing)),
            "e3": RecordingListener(),
        }

    def e1_handler(self, event):
        event.set("e1-key", "val1")


class BadSubscriber(Subscriber):
    def subscribed_events(self):
        return {"e1": "invalid"}


def test_fire_event_orders_by_priority():
    em = new_manager("test", enable_lock(True))
    e1 = BasicEvent("e1")
    em.add_event(e1)

    em.on("e1", RecordingListener("HI"), Priority.MIN)
    em.on("e1", RecordingListener("WEL"), Priority.HIGH)
    em.add_listener("e1", RecordingListener("COM"), Priority.BELOW_NORMAL)

    em.fire_event(e1)
    assert e1.get("result") == "handled: e1(WEL) -> e1(COM) -> e1(HI)"

    e1.name = "e2"
    em.fire_event(e1)
    assert e1.get("result") == "handled: e1(WEL) -> e1(COM) -> e1(HI)"


def test_fire_event_with_predefined_event_and_wildcard():
    buf = io.StringIO()
    mgr = Manager("test")
    evt1 = BasicEvent("evt1").fill(None, {"n": "inhere"})
    mgr.add_event(evt1)

    assert mgr.has_event("evt1")
    assert not mgr.has_event("not-exist")

    mgr.on("evt1", lambda e: buf.write(f"event: {e.name}, params: n={e.get('n')}"), Priority.NORMAL)
    assert mgr.has_listeners("evt1")
    assert not mgr.has_listeners("not-exist")

    mgr.fire_event(evt1)
    assert buf.getvalue() == "event: evt1, params: n=inhere"

    buf.seek(0)
    buf.truncate()
    mgr.on("*", lambda e: buf.write("|Wildcard handler"))
    mgr.fire_event(evt1)
    assert buf.getvalue() == "event: evt1, params: n=inhere|Wildcard handler"


def test_async_fire_runs_on_thread():
    em = Manager("test")
    seen = []

    def listener(e):
        seen.append(dict(e.data))
        e.set("nk", "nv")

    em.on("e1", listener)
    e1 = BasicEvent("e1", {"k": "v"})
    em.async_fire(e1).join(timeout=5)
    assert seen == [{"k": "v"}]
    assert e1.get("nk") == "nv"


def test_await_fire_waits_and_raises():
    em = Manager("test")
    em.on("e1", lambda e: e.set("nk", "nv"))
    e1 = BasicEvent("e1", {"k": "v"})
    em.await_fire(e1)
    assert e1.data == {"k": "v", "nk": "nv"}

    em.on("bad", failing)
    with pytest.raises(HandlerError):
        em.await_fire(BasicEvent("bad"))


def test_add_subscriber():
    em = Manager("test")
    em.add_subscriber(SampleSubscriber())
    assert em.has_listeners("e1")
    assert em.has_listeners("e2")
    assert em.has_listeners("e3")

    errors = em.fire_batch("e1", BasicEvent("e2"))
    assert len(errors) == 1
    assert isinstance(errors[0], HandlerError)

    with pytest.raises(InvalidListener):
        em.subscribe(BadSubscriber())


def test_listen_group_event():
    em = Manager("test")
    buf = io.StringIO()
    e1 = BasicEvent("app.evt1", {"buf": buf})
    e1.attach_to(em)

    l2 = ListenerFunc(lambda e: e.get("buf").write(" > 2 " + e.name))
    l3 = ListenerFunc(lambda e: e.get("buf").write(" > 3 " + e.name))
    em.on("app.evt1", lambda e: e.get("buf").write("Hi > 1 " + e.name))
    em.on("app.*", l2)
    em.on("*", l3)

    e = em.fire("app.evt1", None)
    assert e.name == "app.evt1"
    assert buf.getvalue() == "Hi > 1 app.evt1 > 2 app.evt1 > 3 app.evt1"

    em.remove_listener("app.*", l2)
    assert len(em.listened_names) == 2
    em.on("app.*", failing)

    buf.seek(0)
    buf.truncate()
    with pytest.raises(HandlerError):
        em.fire("app.evt1", None)
    assert buf.getvalue() == "Hi > 1 app.evt1"

    em.remove_listeners("app.*")
    em.remove_listener("", l3)
    em.on("app.*", l2)
    em.on("*", failing)
    assert len(em.listened_names) == 3

    buf.seek(0)
    buf.truncate()
    with pytest.raises(HandlerError):
        em.trigger("app.evt1", None)
    assert buf.getvalue() == "Hi > 1 app.evt1 > 2 app.evt1"

    em.remove_listener("", None)
    assert len(em.listened_names) == 3


def test_fire_with_wildcard_group_and_direct():
    out = []
    mgr = Manager("test")
    name = "kapal.furcas.ticket.create"

    def handler(e):
        out.append(f"{e.name}-{e.get('user')}|")

    mgr.on("kapal.furcas.ticket.*", handler)
    mgr.on(name, handler)
    e = mgr.fire(name, {"user": "inhere"})
    assert e.name == name
    assert e.get("user") == "inhere"
    assert "".join(out) == "kapal.furcas.ticket.create-inhere|" * 2

    out.clear()
    mgr.on("*", handler)
    e = mgr.trigger(name, {"user": "inhere"})
    assert e.name == name
    assert "".join(out) == "kapal.furcas.ticket.create-inhere|" * 3


def _writer(buf, text):
    return ListenerFunc(lambda e: buf.append(text))


def test_fire_all_node_prefix():
    buf = []
    em = Manager("test", use_path_mode, enable_lock(False))
    em.listen("**.add", _writer(buf, "**.add|"))
    e = em.trigger("db.user.add", {"user": "inhere"})
    assert e.get("user") == "inhere"
    assert buf == ["**.add|"]


def test_fire_c_runs_all_path_listeners():
    buf = []
    em = Manager("test", use_path_mode, enable_lock(True))
    em.listen("db.user.*", _writer(buf, "db.user.*|"))
    em.listen("db.**", _writer(buf, "db.**|"), 1)
    em.listen("db.user.add", _writer(buf, "db.user.add|"), 2)

    em.fire_c("db.user.add", {"user": "inhere"})
    em.with_options(with_channel_size(0), with_consumer_num(0))
    em.queue("not-exist", {"user": "inhere"})
    em.close_wait()
    assert sorted(buf) == ["db.**|", "db.user.*|", "db.user.add|"]


def test_wait_for_queued_event():
    buf = []

    def slow(e):
        time.sleep(0.2)
        buf.append("db.user.*|")

    em = Manager("test", use_path_mode)
    em.listen("db.user.*", slow)
    assert em.listeners_count("db.user.*") == 1
    em.queue("db.user.add", {"user": "inhere"})
    em.close_wait()
    assert buf == ["db.user.*|"]
    assert em.has_listeners("db.user.*")


def test_once_removes_itself():
    em = Manager("test")
    calls = []
    em.once("evt1", lambda e: calls.append(e.name))
    assert em.has_listeners("evt1")
    em.trigger("evt1", None)
    assert not em.has_listeners("evt1")
    em.trigger("evt1", None)
    assert calls == ["evt1"]


def test_issue_8_wildcard_and_direct():
    em = Manager("test")
    runs = []
    notify = ListenerFunc(lambda e: runs.append(e.name))
    em.on("*", notify)
    em.fire("test_notify", {})
    assert runs == ["test_notify"]

    em.on("test_notify", notify)
    em.fire("test_notify", {})
    assert runs == ["test_notify", "test_notify", "test_notify"]


def test_issue_9_remove_one_of_many():
    bus = Manager("")

    def make_fn(a):
        return ListenerFunc(lambda e: e.set("val", a))

    f1 = make_fn(11)
    bus.on("evt1", f1)
    bus.on("evt1", make_fn(22))
    assert bus.listeners_count("evt1") == 2
    bus.on("evt1", ListenerFunc(lambda e: None))
    assert bus.listeners_count("evt1") == 3

    bus.remove_listener("evt1", f1)
    assert bus.listeners_count("evt1") == 2
    e = bus.must_fire("evt1", {"arg0": "val0", "arg1": "val1"})
    assert e.get("val") == 22


def test_issue_20_group_without_direct():
    out = []
    mgr = Manager("test")
    mgr.on("app.user.*", lambda e: out.append(f"{e.name}-{e.get('user')}|"))
    mgr.fire("app.user.add", {"user": "INHERE"})
    assert "".join(out) == "app.user.add-INHERE|"


def test_issue_53_nested_fire():
    out = []
    mgr = Manager("test")

    def handler1(e):
        out.append(f"{e.name}-{e.get('user')}|")
        mgr.fire("app.event2", {"user": "INHERE"})

    mgr.on("app.event1", handler1)
    mgr.on("app.event2", lambda e: out.append(f"{e.name}-{e.get('user')}|"))
    mgr.fire("app.event1", {"user": "INHERE"})
    assert "".join(out) == "app.event1-INHERE|app.event2-INHERE|"


def test_issue_61_consumers_run_in_parallel():
    em = Manager("default", with_consumer_num(10), enable_lock(False))
    received = []

    def listener(e):
        time.sleep(0.05)
        received.append(e.get("arg0"))

    em.on("app.evt1", listener, Priority.NORMAL)
    assert em.listeners_count("app.evt1") == 1
    start = time.monotonic()
    for i in range(20):
        em.fire_async(BasicEvent("app.evt1", {"arg0": i}))
    em.must_close_wait()
    elapsed = time.monotonic() - start
    assert sorted(received) == list(range(20))
    assert elapsed < 0.9


def test_issue_67_all_queued_events_handled():
    em = Manager("test", with_consumer_num(10), with_channel_size(100))
    counter = []
    em.on("new.member", lambda e: counter.append(e.get("memberId")))
    total = 200
    for i in range(total):
        em.queue("new.member", {"memberId": i + 1, "superiorId": "superior23"})
    em.must_close_wait()
    assert len(counter) == total
    assert sorted(counter) == list(range(1, total + 1))


class CustomEvent(BasicEvent):
    def __init__(self, custom_data):
        super().__init__()
        self.custom_data = custom_data


def test_issue_68_custom_event():
    em = Manager("test")
    e = CustomEvent("hello")
    e.name = "e1"
    em.add_event(e)
    seen = []
    em.on("e1", lambda ev: seen.append(ev.custom_data))
    fired = em.fire("e1", None)
    assert fired.name == "e1"
    assert seen == ["hello"]


def test_issue_78_context_values():
    ctx = Context().with_value("trace_id", "trace-12345").with_timeout(1)
    manager = Manager("test")
    found = {}

    def listener(e):
        found["trace"] = e.context.value("trace_id")
        found["error"] = e.context.error()

    manager.on("app.test", listener)
    fired = manager.fire_ctx(ctx, "app.test", {"key": "value"})
    assert fired.name == "app.test"
    assert fired.get("key") == "value"
    assert fired.context.value("trace_id") == "trace-12345"
    assert found == {"trace": "trace-12345", "error": None}


def test_fire_event_ctx_attaches_context():
    em = Manager("test")
    found = []
    em.on("evt2", lambda e: found.append(e.context.value("ctx1")))
    em.fire_event_ctx(Context().with_value("ctx1", "ctx-value1"), BasicEvent("evt2", {"name": "inhere"}))
    assert found == ["ctx-value1"]


def test_cancelled_context_stops_listeners():
    em = Manager("test")
    calls = []
    em.on("app.test", lambda e: calls.append(1))
    ctx = Context()
    ctx.cancel()
    with pytest.raises(ContextCancelled):
        em.fire_ctx(ctx, "app.test", None)
    with pytest.raises(DeadlineExceeded):
        em.fire_ctx(Context().with_timeout(0), "app.test", None)
    assert calls == []


def test_abort_stops_remaining_listeners():
    em = Manager("test")
    calls = []

    def first(e):
        calls.append("first")
        e.abort(True)

    em.on("app.x", first, Priority.HIGH)
    em.on("app.x", lambda e: calls.append("second"))
    em.on("app.*", lambda e: calls.append("group"))
    em.on("*", lambda e: calls.append("all"))
    e = em.fire("app.x", None)
    assert calls == ["first"]
    assert e.aborted


def test_listener_error_propagates_and_stops():
    em = Manager("test")
    calls = []
    em.on("n1", failing, Priority.MAX)
    em.on("n1", lambda e: calls.append(1), Priority.MIN)
    with pytest.raises(HandlerError):
        em.must_fire("n1", None)
    assert calls == []
    em.on("n2", lambda e: calls.append(2))
    assert em.must_trigger("n2", None).name == "n2"
    assert calls == [2]


def test_invalid_names_and_listeners():
    em = Manager("test")
    with pytest.raises(InvalidEventName):
        em.on("", lambda e: None)
    with pytest.raises(InvalidEventName):
        em.on("++df", lambda e: None)
    with pytest.raises(InvalidListener):
        em.on("name", None)
    with pytest.raises(InvalidEventName):
        em.fire("++df", None)
    with pytest.raises(InvalidEventName):
        em.add_event(BasicEvent())
    assert em.listeners == {}


def test_listener_inspection():
    em = Manager("test")
    em.on("n1", lambda e: None, Priority.MIN)
    assert em.listeners_count("n1") == 1
    assert em.listeners_count("not-exist") == 0
    assert len(em.listeners_by_name("n1")) == 1
    assert em.listeners_by_name("not-exist") is None
    assert list(em.listeners) == ["n1"]
    em.remove_listeners("n1")
    assert not em.has_listeners("n1")


def test_star_names_register_as_wildcard():
    em = Manager("test")
    em.on("**", lambda e: None)
    assert em.has_listeners("*")
    assert not em.has_listeners("**")


def test_predefined_events():
    em = Manager("test")
    assert em.get_event("evt1") is None
    e = BasicEvent("evt1", {"k1": "inhere"})
    em.add_event(e)
    BasicEvent("evt2").attach_to(em)
    assert em.get_event("evt1") is e
    assert em.has_event("evt2")
    em.remove_event("evt2")
    assert not em.has_event("evt2")
    em.remove_events()
    assert not em.has_event("evt1")


class CloneableEvent(BasicEvent):
    def clone(self):
        return CloneableEvent(self.name, dict(self.data))


def test_cloneable_event_is_cloned_per_fire():
    em = Manager("test")
    original = CloneableEvent("evt", {"k": "v"})
    em.add_event(original)
    got = em.get_event("evt")
    assert got is not original
    assert got.data == {"k": "v"}

    em.add_event_factory("made", lambda: BasicEvent("made", {"from": "factory"}))
    em.on("made", lambda e: e.set("seen", True))
    fired = em.fire("made", None)
    assert fired.data == {"from": "factory", "seen": True}
    with pytest.raises(InvalidEventName):
        em.add_event_factory("", lambda: BasicEvent("x"))


def test_fire_params_replace_predefined_data():
    em = Manager("test")
    em.add_event(BasicEvent("evt2"))
    em.on("evt2", lambda e: e.set("seen", e.get("k")))
    e = em.trigger("evt2", {"k": "v"})
    assert e.data == {"k": "v", "seen": "v"}


def test_queue_after_close_raises():
    em = Manager("test")
    em.queue("x", None)
    em.close()
    with pytest.raises(RuntimeError):
        em.queue("x", None)
    em.wait()
    assert em.has_listeners("x") is False


def test_reset_clears_everything_and_allows_new_queue():
    em = Manager("test")
    em.on("a", lambda e: None)
    em.add_event(BasicEvent("a"))
    em.queue("a", None)
    em.close_wait()
    em.reset()
    assert not em.has_listeners("a")
    assert not em.has_event("a")

    lock = threading.Lock()
    seen = []

    def record(e):
        with lock:
            seen.append(e.name)

    em.on("b", record)
    em.queue("b", None)
    em.close_wait()
    assert seen == ["b"]


def test_remove_listener_closures_and_objects():
    state = {"n": 0, "sum": 0}

    def make_fn(a):
        def fn(e):
            state["n"] += 1
            state["sum"] += a

        return ListenerFunc(fn)

    class Calc(Listener):
        def __init__(self, bind):
            self.bind = bind

        def handle(self, event):
            state["n"] += 1
            state["sum"] += self.bind

    bus = Manager("")
    f1, f2, f3 = make_fn(11), make_fn(22), make_fn(33)
    p4, p5, p6 = Calc(44), Calc(55), Calc(66)
    for listener in (f1, f2, f3, p4, p5, p6):
        bus.on("ev1", listener)
    assert bus.listeners_count("ev1") == 6

    e = bus.must_trigger("ev1", None)
    assert e.name == "ev1"
    assert state == {"n": 6, "sum": 231}

    bus.remove_listener("ev1", f2)
    bus.remove_listener("ev1", p5)
    assert bus.listeners_count("ev1") == 4
    bus.must_fire("ev1", None)
    assert state == {"n": 10, "sum": 385}

    bus.remove_listener("ev1", f1)
    bus.remove_listener("ev1", f1)
    assert bus.listeners_count("ev1") == 3
    bus.must_fire("ev1", None)
    assert state == {"n": 13, "sum": 528}

    bus.remove_listener("ev1", p6)
    bus.remove_listener("ev1", p6)
    assert bus.listeners_count("ev1") == 2
    bus.must_fire("ev1", None)
    assert state == {"n": 15, "sum": 605}


_static = {"n": 0, "sum": 0}


def _calc1(event):
    _static["n"] += 1
    _static["sum"] += 11


def _calc2(event):
    _static["n"] += 1
    _static["sum"] += 22


def test_remove_listener_same_function():
    _static.update(n=0, sum=0)
    f1 = ListenerFunc(_calc1)
    f2 = ListenerFunc(_calc2)
    f2same = ListenerFunc(_calc2)
    f2copy = f2

    bus = Manager("")
    for listener in (f1, f2, f2same, f2copy):
        bus.on("ev1", listener)

    bus.must_fire("ev1", None)
    assert _static == {"n": 4, "sum": 77}

    bus.remove_listener("ev1", f1)
    bus.must_fire("ev1", None)
    assert _static == {"n": 7, "sum": 143}

    bus.remove_listener("ev1", f2)
    bus.must_fire("ev1", None)
    assert _static == {"n": 7, "sum": 143}
    assert not bus.has_listeners("ev1")


@pytest.mark.parametrize(
    ("pattern", "fired", "expected"),
    [("app.up", "app.up", 1), ("app.*", "app.up", 1), ("app.*", "other.up", 0)],
)
def test_fire_direct_and_group(pattern, fired, expected):
    em = Manager("test")
    calls = []
    em.on(pattern, lambda e: calls.append(e.name))
    for _ in range(3):
        em.fire(fired, None)
    assert len(calls) == 3 * expected


def test_options_defaults_and_option_functions():
    em = new_manager("test", with_channel_size(5), with_consumer_num(2), enable_lock(True))
    assert em.options == Options(enable_lock=True, channel_size=5, consumer_num=2)
    assert em.name == "test"
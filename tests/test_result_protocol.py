import pytest

from bootrepl.bootrepl_backend import Outcome, EvalReport
from bootrepl.bootrepl_config import EvalOptions
from bootrepl.bootrepl_datatypes import (
    Symbol, ArgumentError, BackendError, WarningAsError,
)
from bootrepl.bootrepl_result import Continuation, ResultHandler, extract_stack, render
from bootrepl.bootrepl_session import SessionState
from bootrepl.bootrepl_warnings import WarningSink


@pytest.fixture
def sink():
    return WarningSink()


@pytest.fixture
def state():
    return SessionState(Symbol("cljs.user"))


@pytest.fixture
def handler(sink, state):
    return ResultHandler(sink, state)


def collect():
    calls = []
    return calls, lambda ok, payload: calls.append((ok, payload))


def test_value_is_printed_and_success_hook_runs(handler):
    calls, cb = collect()
    events = []
    handler.deliver(EvalOptions(), cb, Outcome.success([1, "a"]),
                    on_success=lambda: events.append("ok"),
                    on_error=lambda: events.append("err"))
    assert calls == [(True, '[1 "a"]')]
    assert events == ["ok"]


def test_error_is_wrapped_and_recorded_as_last_error(handler, state):
    calls, cb = collect()
    boom = ValueError("boom")
    handler.deliver(EvalOptions(), cb, {"error": boom})
    [(ok, payload)] = calls
    assert ok is False
    assert isinstance(payload, BackendError)
    assert payload.payload is boom
    assert state.last_error is payload


def test_repl_errors_pass_through_unwrapped(handler):
    calls, cb = collect()
    err = ArgumentError("in-ns")
    handler.deliver(EvalOptions(), cb, Outcome.failure(err))
    assert calls == [(False, err)]


@pytest.mark.parametrize("outcome", [Outcome.success(42), Outcome.failure(RuntimeError("real error"))],
                         ids=["value", "error"])
def test_pending_warning_fails_the_call_regardless_of_outcome(handler, sink, outcome):
    calls, cb = collect()
    events = []
    sink.set("Use of undeclared Var cljs.user/x at line 1")
    handler.deliver(EvalOptions(), cb, outcome,
                    on_success=lambda: events.append("ok"),
                    on_error=lambda: events.append("err"))
    [(ok, payload)] = calls
    assert ok is False
    assert isinstance(payload, WarningAsError)
    assert payload.message == "Use of undeclared Var cljs.user/x at line 1"
    assert events == ["err"]
    assert sink.pending is None


def test_sink_is_cleared_after_success(handler, sink):
    calls, cb = collect()
    handler.deliver(EvalOptions(), cb, Outcome.success(1))
    assert sink.pending is None
    assert calls == [(True, "1")]


def test_suppress_print_passes_raw_value(handler):
    calls, cb = collect()
    payload = object()
    handler.deliver(EvalOptions(suppress_print=True), cb, Outcome.success(payload))
    assert calls == [(True, payload)]


def test_none_value_prints_as_nil(handler):
    calls, cb = collect()
    handler.deliver(EvalOptions(), cb, Outcome.success(None))
    assert calls == [(True, "nil")]


def test_hooks_run_before_callback(handler, state):
    seen = []

    def cb(ok, payload):
        seen.append(state.current_ns)

    def switch():
        state.current_ns = Symbol("foo.bar")

    handler.deliver(EvalOptions(), cb, Outcome.success(None), on_success=switch)
    assert seen == [Symbol("foo.bar")]


def test_malformed_outcome_fails_fast(handler):
    calls, cb = collect()
    with pytest.raises(AssertionError):
        handler.deliver(EvalOptions(), cb, {"ns": Symbol("cljs.user")})
    with pytest.raises(AssertionError):
        handler.deliver(EvalOptions(), cb, Outcome())
    assert calls == []


def test_outcome_coerce_reads_eval_reports():
    report = Outcome.coerce({"value": 3, "error": None, "ns": "foo.core"})
    assert isinstance(report, EvalReport)
    assert report.value == 3
    assert not report.has_error
    assert report.namespace == Symbol("foo.core")


def test_continuation_fires_once():
    calls, cb = collect()
    cont = Continuation(cb)
    cont(True, "1")
    with pytest.raises(RuntimeError):
        cont(True, "2")
    assert calls == [(True, "1")]


def test_render_never_raises():
    class Hostile:
        def __repr__(self):
            raise RuntimeError("no repr for you")

    text = render(Hostile(), EvalOptions())
    assert text.startswith("#object[Hostile")


def test_extract_stack_prefers_stack_attribute():
    class JsError(Exception):
        stack = "Error: boom\n    at <anonymous>:1:1"

    assert extract_stack(JsError()) == "Error: boom\n    at <anonymous>:1:1"
    assert extract_stack(BackendError(JsError())) == "Error: boom\n    at <anonymous>:1:1"


def test_extract_stack_formats_python_tracebacks():
    try:
        raise KeyError("missing")
    except KeyError as e:
        err = e
    stack = extract_stack(err)
    assert "Traceback" in stack
    assert "KeyError" in stack


def test_extract_stack_without_trace():
    assert extract_stack(42) is None
    assert extract_stack(ValueError("never raised")) is None


def test_error_delivery_consumes_the_sink(handler, sink):
    calls, cb = collect()
    sink.set("stale")
    assert sink
    handler.deliver(EvalOptions(), cb, Outcome.failure(ArgumentError("in-ns")))
    assert not sink
    assert sink.take() is None
    handler.deliver(EvalOptions(), cb, Outcome.success(1))
    assert calls[-1] == (True, "1")

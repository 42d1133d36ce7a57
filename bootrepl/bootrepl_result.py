"""
Turns backend outcomes into the single (success, payload) callback a caller sees.

Warnings are errors: a warning captured during the call turns any outcome,
value or error, into a failure carrying the warning message. State changes
ride on the on_success/on_error hooks, which run once, after the outcome has
been classified and before the caller's callback fires.
"""
from __future__ import annotations

import traceback
from typing import Any, Callable, Optional

from bootrepl.bootrepl_backend import Outcome
from bootrepl.bootrepl_config import EvalOptions, dbg
from bootrepl.bootrepl_datatypes import ReplError, BackendError, WarningAsError
from bootrepl.bootrepl_printer import Printer
from bootrepl.bootrepl_warnings import WarningSink


def noop():
    return None


class Continuation:
    """Wraps a caller's callback and enforces a single invocation."""
    def __init__(self, callback: Callable[[bool, Any], None]):
        self.callback = callback
        self.fired = False

    def __call__(self, success: bool, payload: Any):
        if self.fired:
            raise RuntimeError("Evaluation callback invoked more than once for a single call.")
        self.fired = True
        self.callback(success, payload)


def render(value: Any, opts: Optional[EvalOptions]) -> Any:
    """The printed form of `value`, or the value itself when printing is suppressed."""
    if opts is not None and opts.suppress_print:
        return value
    return Printer().pformat(value)


def extract_stack(value: Any) -> Optional[str]:
    """Returns the stack trace text carried by `value`, if any."""
    if isinstance(value, BackendError):
        inner = extract_stack(value.payload)
        if inner:
            return inner
    stack = getattr(value, "stack", None)
    if isinstance(stack, str) and stack:
        return stack
    if isinstance(value, BaseException) and value.__traceback__ is not None:
        return "".join(traceback.format_exception(type(value), value, value.__traceback__))
    return None


class ResultHandler:
    """Delivers outcomes for one session, consulting its warning sink."""
    def __init__(self, sink: WarningSink, state: Any):
        self.sink = sink
        self.state = state
        self.printer = Printer()

    def deliver(self, opts: EvalOptions, cb: Callable[[bool, Any], None], res: Any,
                on_success: Callable[[], Any] = noop,
                on_error: Callable[[], Any] = noop):
        outcome = Outcome.coerce(res)
        dbg(opts, "Handling result:\n", self.printer.pformat(_outcome_for_trace(outcome)))

        # Every delivery consumes the pending warning.
        warning_msg = self.sink.take()
        if warning_msg is not None:
            dbg(opts, "Last warning message:", warning_msg)
            on_error()
            self._forward_error(cb, WarningAsError(warning_msg))
            return

        if not outcome.has_error:
            on_success()
            cb(True, render(outcome.value, opts))
        else:
            on_error()
            error = outcome.error
            if not isinstance(error, ReplError):
                error = BackendError(error)
            self._forward_error(cb, error)

    def _forward_error(self, cb, error):
        self.state.last_error = error
        cb(False, error)


def _outcome_for_trace(outcome: Outcome) -> dict:
    trace = {}
    if outcome.has_value:
        trace["value"] = outcome.value
    if outcome.has_error:
        trace["error"] = outcome.error
    namespace = getattr(outcome, "namespace", None)
    if namespace is not None:
        trace["ns"] = namespace
    return trace

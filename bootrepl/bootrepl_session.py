"""
The interactive evaluation session.

A ReplSession reads one input at a time, routes directives to the
dispatcher and everything else to the backend's source evaluator, and
reports through the result protocol. Session state (current namespace,
recent values, last error) only changes from result hooks, once an
outcome is known to be final.

Calls must not overlap: issue the next `evaluate` only after the previous
callback has fired. A backend that never calls back stalls the session.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, List, Mapping, Optional, Tuple

from bootrepl.bootrepl_backend import Backend, Outcome, Reader
from bootrepl.bootrepl_config import EvalOptions, ReplConfig, dbg, valid_opts
from bootrepl.bootrepl_datatypes import (
    Symbol, ParseError, BackendError, is_history_ref, is_ns_form,
)
from bootrepl.bootrepl_directives import DirectiveDispatcher, classify
from bootrepl.bootrepl_docs import DocMaps
from bootrepl.bootrepl_printer import Printer
from bootrepl.bootrepl_result import Continuation, ResultHandler, noop
from bootrepl.bootrepl_warnings import WarningCapture, WarningSink, capture_warnings

Callback = Callable[[bool, Any], None]


@dataclass
class SessionState:
    """Current namespace, the last three values (most recent first) and the last error."""
    current_ns: Symbol
    history: Tuple[Any, Any, Any] = (None, None, None)
    last_error: Any = None

    def push_history(self, value: Any):
        self.history = (value, self.history[0], self.history[1])

    def bindings(self) -> dict:
        """History as the backend sees it: *1, *2, *3 and *e."""
        v1, v2, v3 = self.history
        return {Symbol("*1"): v1, Symbol("*2"): v2, Symbol("*3"): v3, Symbol("*e"): self.last_error}


class ReplSession:
    """Reads, evaluates and prints one input at a time against a backend."""

    def __init__(self, backend: Backend, reader: Reader,
                 config: Optional[ReplConfig] = None,
                 options: Optional[Mapping[str, Any]] = None):
        self.backend = backend
        self.reader = reader
        self.config = config or ReplConfig()
        # Session-level option overrides, layered over config.options.
        self.options = dict(options or {})
        self.state = SessionState(self.config.default_namespace)
        self.sink = WarningSink()
        self.results = ResultHandler(self.sink, self.state)
        self.doc_maps = DocMaps()
        self.dispatcher = DirectiveDispatcher(self)

    @classmethod
    def from_external_opts(cls, backend: Backend, reader: Reader,
                           opts: Optional[Mapping[str, Any]] = None,
                           config: Optional[ReplConfig] = None) -> 'ReplSession':
        """Builds a session from untrusted caller options, keeping only the recognized ones."""
        return cls(backend, reader, config=config, options=valid_opts(opts))

    # --- state queries ---
    def current_ns(self) -> Symbol:
        return self.state.current_ns

    def known_namespaces(self) -> List[Symbol]:
        return list(self.backend.known_namespaces())

    def extract_namespace(self, source: str) -> Optional[Symbol]:
        """The namespace declared by `source`, if its first form is an ns form."""
        form = self.reader(source)
        if is_ns_form(form) and len(form) > 1:
            return form[1]
        return None

    # --- options ---
    def make_eval_options(self, *layers: Any) -> EvalOptions:
        """Process defaults, then config and session options, then each layer in order."""
        opts = EvalOptions(namespace=self.state.current_ns, bindings=self.state.bindings())
        opts = opts.layer(self.config.options).layer(self.options)
        for overrides in layers:
            opts = opts.layer(overrides)
        return opts

    # --- backend plumbing ---
    def deliver(self, opts: EvalOptions, cb: Callback, res: Any,
                on_success: Callable[[], Any] = noop,
                on_error: Callable[[], Any] = noop):
        self.results.deliver(opts, cb, res, on_success, on_error)

    def submit_form(self, form: Any, opts: EvalOptions, callback: Callable[[Any], None]):
        """Evaluates a form with warnings captured for the duration of the call."""
        with capture_warnings(self.backend, WarningCapture(self.sink, self.backend, opts)):
            self.backend.evaluate(form, opts, callback)

    def submit_text(self, source: str, opts: EvalOptions, callback: Callable[[Any], None]):
        """Evaluates source text with warnings captured for the duration of the call."""
        with capture_warnings(self.backend, WarningCapture(self.sink, self.backend, opts)):
            self.backend.evaluate_text(source, source, opts, callback)

    def guarded(self, opts: EvalOptions, cb: Continuation, fn: Callable[[Any], None]) -> Callable[[Any], None]:
        """Wraps a backend callback so a failure inside it still reaches `cb` exactly once."""
        def on_result(res):
            try:
                fn(res)
            except Exception as e:
                if cb.fired:
                    raise
                self.deliver(opts, cb, Outcome.failure(BackendError(e)))
        return on_result

    # --- entry point ---
    def evaluate(self, source: str, callback: Callback, opts: Optional[Mapping[str, Any]] = None):
        """Reads, evaluates and prints `source`.

        `callback(success, payload)` is called exactly once. On success the
        payload is the printed value (or the raw value when printing is
        suppressed); on failure it is the error. Nothing is returned.
        """
        cb = Continuation(callback)
        call_opts = self.make_eval_options(opts)
        try:
            form = self.reader(source)
        except Exception as e:
            if isinstance(e, ParseError):
                error = e
            else:
                error = ParseError(str(e) or type(e).__name__)
                error.__cause__ = e
            self.deliver(call_opts, cb, Outcome.failure(error))
            return

        try:
            directive = classify(form)
            if directive is not None:
                self.dispatcher.dispatch(call_opts, cb, directive)
                return

            text_opts = self.make_eval_options({"source_map": False, "def_emits_var": True}, opts)

            def on_report(res):
                report = Outcome.coerce(res)
                dbg(call_opts, "Evaluation returned:", Printer().pformat(report.value if report.has_value else report.error))

                def commit():
                    self._process_history(form, report.value)
                    ns = getattr(report, "namespace", None)
                    if ns is not None:
                        self.state.current_ns = ns

                self.deliver(call_opts, cb, report, on_success=commit)

            self.submit_text(source, text_opts, self.guarded(call_opts, cb, on_report))
        except Exception as e:
            if cb.fired:
                raise
            self.deliver(call_opts, cb, Outcome.failure(BackendError(e)))

    rep = evaluate

    def _process_history(self, form: Any, value: Any):
        if is_history_ref(form) or is_ns_form(form):
            return
        self.state.push_history(value)

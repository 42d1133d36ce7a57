"""
REPL directives: recognition and execution.

A directive is a list form headed by one of the unqualified symbols in
DirectiveKind, e.g. `(in-ns 'foo.core)` or `(doc map)`. Each one talks to
the backend itself and reports through the session's result protocol.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional, Tuple, TYPE_CHECKING

from bootrepl.bootrepl_backend import Outcome
from bootrepl.bootrepl_config import EvalOptions, dbg
from bootrepl.bootrepl_datatypes import (
    Symbol, Keyword, SeqForm, NS,
    ArgumentError, UnsupportedDirectiveError, is_quoted,
)
from bootrepl.bootrepl_docs import lookup_doc
from bootrepl.bootrepl_nsforms import REQUIRE, IMPORT, is_self_require, make_ns_form
from bootrepl.bootrepl_printer import Printer
from bootrepl.bootrepl_result import extract_stack

if TYPE_CHECKING:
    from bootrepl.bootrepl_session import ReplSession


class DirectiveKind(Enum):
    IN_NS = "in-ns"
    REQUIRE = "require"
    REQUIRE_MACROS = "require-macros"
    IMPORT = "import"
    DOC = "doc"
    SOURCE = "source"
    PST = "pst"
    LOAD_FILE = "load-file"


@dataclass(frozen=True)
class Directive:
    kind: DirectiveKind
    args: Tuple[Any, ...] = ()

    @property
    def name(self) -> str:
        return self.kind.value

    @property
    def argument(self) -> Any:
        return self.args[0] if self.args else None


def classify(form: Any) -> Optional[Directive]:
    """Returns the Directive for `form`, or None for an ordinary expression."""
    if not isinstance(form, SeqForm) or not len(form):
        return None
    head = form[0]
    if not isinstance(head, Symbol) or head.namespace is not None:
        return None
    try:
        kind = DirectiveKind(head.name)
    except ValueError:
        return None
    return Directive(kind, tuple(form[1:]))


def _status_only(res: Any) -> Outcome:
    """Keeps a failure as-is and turns any success into a nil value."""
    outcome = Outcome.coerce(res)
    return outcome if outcome.has_error else Outcome.success(None)


class DirectiveDispatcher:
    """Executes directives against one session."""

    def __init__(self, session: 'ReplSession'):
        self.session = session
        self._handlers = {
            DirectiveKind.IN_NS: self.process_in_ns,
            DirectiveKind.REQUIRE: self.process_require,
            DirectiveKind.REQUIRE_MACROS: self.process_unsupported,
            DirectiveKind.IMPORT: self.process_require,
            DirectiveKind.DOC: self.process_doc,
            DirectiveKind.SOURCE: self.process_unsupported,
            DirectiveKind.PST: self.process_pst,
            DirectiveKind.LOAD_FILE: self.process_unsupported,
        }

    def dispatch(self, opts: EvalOptions, cb, directive: Directive):
        dbg(opts, "Dispatching directive", directive.name)
        self._handlers[directive.kind](opts, cb, directive)

    def _fail(self, opts: EvalOptions, cb, error: Exception):
        self.session.deliver(opts, cb, Outcome.failure(error))

    # --- in-ns ---
    def process_in_ns(self, opts: EvalOptions, cb, directive: Directive):
        s = self.session
        if not directive.args:
            return self._fail(opts, cb, ArgumentError(directive.name))

        def on_argument(res):
            outcome = Outcome.coerce(res)
            if outcome.has_error:
                s.deliver(opts, cb, outcome)
                return
            ns_symbol = outcome.value
            dbg(opts, "in-ns argument is symbol?", isinstance(ns_symbol, Symbol))
            if not isinstance(ns_symbol, Symbol):
                self._fail(opts, cb, ArgumentError(directive.name))
                return

            def switch_ns():
                s.state.current_ns = ns_symbol

            if ns_symbol in set(s.backend.known_namespaces()):
                s.deliver(opts, cb, Outcome.success(None), on_success=switch_ns)
                return
            ns_form = SeqForm([NS, ns_symbol])
            s.submit_form(ns_form, opts, s.guarded(opts, cb, lambda r: s.deliver(
                opts, cb, _status_only(r), on_success=switch_ns)))

        s.submit_form(directive.argument, opts, s.guarded(opts, cb, on_argument))

    # --- require / import ---
    def process_require(self, opts: EvalOptions, cb, directive: Directive):
        s = self.session
        kind = IMPORT if directive.kind is DirectiveKind.IMPORT else REQUIRE
        specs = list(directive.args)
        # TODO: accept unquoted specs such as (require foo.bar).
        if not specs or not is_quoted(specs[0]) or not all(is_quoted(x) or isinstance(x, Keyword) for x in specs):
            return self._fail(opts, cb, ArgumentError(directive.name))

        current_ns = s.state.current_ns
        self_require = kind != IMPORT and is_self_require(specs, current_ns)
        if self_require:
            target_ns, restore_ns = s.config.scratch_for(current_ns), current_ns
        else:
            target_ns, restore_ns = current_ns, None
        ns_form = make_ns_form(kind, specs, target_ns, s.backend.loaded)
        dbg(opts, "Processing", kind, "via", Printer().pformat(ns_form))

        def restore_ns_after_self_require():
            if self_require:
                s.state.current_ns = restore_ns

        s.submit_form(ns_form, opts, s.guarded(opts, cb, lambda r: s.deliver(
            opts, cb, _status_only(r), on_success=restore_ns_after_self_require)))

    # --- doc ---
    def process_doc(self, opts: EvalOptions, cb, directive: Directive):
        s = self.session
        text = lookup_doc(s.backend, s.doc_maps, s.state.current_ns, directive.argument,
                          s.config.core_namespace, s.config.core_macros_namespace)
        s.deliver(opts.layer(suppress_print=True), cb, Outcome.success(text))

    # --- pst ---
    def process_pst(self, opts: EvalOptions, cb, directive: Directive):
        s = self.session
        if not directive.args:
            if s.state.last_error is None:
                # No expression and no last error: nothing to show.
                s.deliver(opts.layer(suppress_print=True), cb, Outcome.success(None))
            else:
                self._deliver_trace(opts, cb, s.state.last_error)
            return

        def on_value(res):
            outcome = Outcome.coerce(res)
            if outcome.has_error:
                s.deliver(opts, cb, outcome)
            else:
                self._deliver_trace(opts, cb, outcome.value)

        s.submit_form(directive.argument, opts, s.guarded(opts, cb, on_value))

    def _deliver_trace(self, opts: EvalOptions, cb, value: Any):
        stack = extract_stack(value)
        if stack:
            self.session.deliver(opts.layer(suppress_print=True), cb, Outcome.success(stack))
        else:
            self.session.deliver(opts, cb, Outcome.success(value))

    # --- unsupported ---
    def process_unsupported(self, opts: EvalOptions, cb, directive: Directive):
        self._fail(opts, cb, UnsupportedDirectiveError(directive.name))

import asyncio
import re

import pytest

from bootrepl.bootrepl_datatypes import (
    Symbol, Keyword, SeqForm, Vector, quoted, is_quoted, is_ns_form,
)
from bootrepl.bootrepl_session import ReplSession

# ===================================================================
# A small reader for test input: lists, vectors, quote, keywords,
# strings, numbers, nil/true/false and symbols. One form per call.
# ===================================================================

TOKEN_RE = re.compile(r"""[\s,]*([\[\]()']|"(?:\\.|[^\\"])*"?|;.*|[^\s\[\]()'",;]+)""")
INT_RE = re.compile(r"^-?\d+$")
FLOAT_RE = re.compile(r"^-?\d+\.\d*$")
_CLOSERS = {"(": ")", "[": "]"}


def _tokenize(text):
    return [t for t in TOKEN_RE.findall(text) if t and not t.startswith(";")]


def _read_atom(token):
    if INT_RE.match(token):
        return int(token)
    if FLOAT_RE.match(token):
        return float(token)
    if token.startswith('"'):
        if len(token) < 2 or not token.endswith('"'):
            raise SyntaxError("EOF while reading string")
        body = token[1:-1]
        return body.replace('\\"', '"').replace("\\n", "\n").replace("\\\\", "\\")
    if token == "nil":
        return None
    if token in ("true", "false"):
        return token == "true"
    if token.startswith(":"):
        return Keyword.parse(token[1:])
    return Symbol.parse(token)


def _read_form(tokens, pos):
    if pos >= len(tokens):
        raise SyntaxError("EOF while reading")
    token = tokens[pos]
    if token in _CLOSERS:
        closer = _CLOSERS[token]
        items = []
        pos += 1
        while True:
            if pos >= len(tokens):
                raise SyntaxError(f"EOF while reading, expected {closer}")
            if tokens[pos] == closer:
                break
            item, pos = _read_form(tokens, pos)
            items.append(item)
        form = SeqForm(items) if token == "(" else Vector(items)
        return form, pos + 1
    if token in (")", "]"):
        raise SyntaxError(f"Unmatched delimiter: {token}")
    if token == "'":
        inner, pos = _read_form(tokens, pos + 1)
        return quoted(inner), pos
    return _read_atom(token), pos + 1


def read_string(text):
    tokens = _tokenize(text)
    if not tokens:
        raise SyntaxError("EOF while reading")
    form, _ = _read_form(tokens, 0)
    return form


# ===================================================================
# An in-memory backend. Evaluates a tiny subset (literals, quote,
# history symbols, +, ns forms) and lets tests script anything else.
# ===================================================================

class FakeBackend:
    def __init__(self):
        self.loaded = set()
        self.enabled_warnings = {"undeclared-var": True, "fn-deprecated": False}
        self.namespaces = {Symbol("cljs.user"), Symbol("cljs.core")}
        self.handlers = []
        self.forms = []
        self.texts = []
        self.vars = {}
        self.macro_vars = {}
        self.form_results = {}
        self.text_results = {}
        # source text or form -> list of (category, env, extra) raised during the call
        self.warnings = {}
        self.handler_counts = []

    # --- protocol ---
    def add_warning_handler(self, handler):
        self.handlers.append(handler)

    def remove_warning_handler(self, handler):
        self.handlers.remove(handler)

    def known_namespaces(self):
        return list(self.namespaces)

    def warning_message(self, category, extra):
        if category == "undeclared-var":
            return f"Use of undeclared Var {extra['prefix']}/{extra['suffix']}"
        if category == "silent":
            return None
        return f"Warning: {category}"

    def warning_text(self, env, message):
        return f"{message} at line {env.get('line', 1)}"

    def resolve_var(self, ns, sym):
        key = (Symbol(sym.namespace), Symbol(sym.name)) if sym.namespace else (ns, sym)
        return self.vars.get(key)

    def resolve_macro_var(self, ns, sym):
        key = (Symbol(sym.namespace), Symbol(sym.name)) if sym.namespace else (ns, sym)
        return self.macro_vars.get(key)

    def evaluate(self, form, opts, callback):
        self.forms.append((form, opts))
        self._respond(callback, self._run(form, opts), form)

    def evaluate_text(self, source, name, opts, callback):
        self.texts.append((source, opts))
        if source in self.text_results:
            res = self.text_results[source]
            res = res(opts) if callable(res) else res
        else:
            form = read_string(source)
            res = dict(self._run(form, opts))
            res.setdefault("ns", form[1] if is_ns_form(form) else opts.namespace)
        self._respond(callback, res, source)

    # --- helpers ---
    def _respond(self, callback, res, key):
        self.handler_counts.append(len(self.handlers))
        for category, env, extra in self.warnings.get(key, []):
            for handler in list(self.handlers):
                handler(category, env, extra)
        callback(res)

    def _run(self, form, opts):
        if form in self.form_results:
            res = self.form_results[form]
            return res(opts) if callable(res) else res
        return self._eval(form, opts)

    def _eval(self, form, opts):
        if is_quoted(form):
            return {"value": form[1]}
        if is_ns_form(form):
            self.namespaces.add(form[1])
            return {"value": None}
        if isinstance(form, Symbol):
            if form in opts.bindings:
                return {"value": opts.bindings[form]}
            return {"error": NameError(f"Unable to resolve symbol: {form}")}
        if isinstance(form, SeqForm) and len(form) and form[0] == Symbol("+"):
            total = 0
            for arg in form[1:]:
                res = self._eval(arg, opts)
                if "error" in res:
                    return res
                total += res["value"]
            return {"value": total}
        if isinstance(form, (SeqForm, Vector)):
            return {"error": RuntimeError(f"Cannot evaluate {form!r}")}
        return {"value": form}


class DeferredBackend(FakeBackend):
    """Reports results on a later event-loop turn; warnings still fire inside the call."""

    def _respond(self, callback, res, key):
        self.handler_counts.append(len(self.handlers))
        for category, env, extra in self.warnings.get(key, []):
            for handler in list(self.handlers):
                handler(category, env, extra)
        asyncio.get_running_loop().call_soon(callback, res)


@pytest.fixture
def reader():
    return read_string


@pytest.fixture
def backend():
    return FakeBackend()


@pytest.fixture
def session(backend, reader):
    return ReplSession(backend, reader)


@pytest.fixture
def deferred_backend():
    return DeferredBackend()


@pytest.fixture
def run():
    """Evaluates synchronously against a backend that calls back immediately."""
    def _run(session, source, opts=None):
        results = []
        session.evaluate(source, lambda ok, payload: results.append((ok, payload)), opts)
        assert len(results) == 1, f"expected exactly one callback, got {results!r}"
        return results[0]
    return _run


"""
Defines the form and error types the bootrepl session works with.

Forms are produced by an external reader and consumed by an external
backend; the session only needs enough structure to recognize directives,
synthesize namespace declarations and track history references.
"""

from typing import List, Dict, Any, Optional
import collections.abc


# =================================================================
# Errors
# =================================================================

class ReplError(Exception):
    """Base class for every failure the session delivers through a callback."""
    tag = "bootrepl/error"

    def __init__(self, message: str, data: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.data = dict(data or {})

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.message!r})"


class ParseError(ReplError):
    """The input text could not be read into a form."""
    tag = "bootrepl/parse-error"


class ArgumentError(ReplError):
    """A directive argument failed its shape check."""
    tag = "bootrepl/argument-error"

    def __init__(self, directive: str, message: Optional[str] = None):
        super().__init__(message or f"Argument to {directive} must be a symbol",
                         {"directive": directive})
        self.directive = directive


class UnsupportedDirectiveError(ReplError):
    """A recognized directive that is intentionally not implemented."""
    tag = "bootrepl/unsupported-directive"

    def __init__(self, directive: str):
        super().__init__(f"The {directive} keyword is not supported at the moment",
                         {"directive": directive})
        self.directive = directive


class BackendError(ReplError):
    """A failure reported by the backend. The payload is kept as-is."""
    tag = "bootrepl/backend-error"

    def __init__(self, payload: Any):
        message = getattr(payload, "message", None) or str(payload)
        super().__init__(message)
        self.payload = payload


class WarningAsError(ReplError):
    """A compiler warning raised during an otherwise finished evaluation."""
    tag = "bootrepl/warning"


def format_error(err: Any) -> str:
    """Formats a delivered failure payload for display."""
    match err:
        case ParseError():
            return f"ParseError: {err.message}"
        case ArgumentError() | UnsupportedDirectiveError():
            return f"{type(err).__name__}: {err.message}"
        case WarningAsError():
            return f"WARNING: {err.message}"
        case BackendError():
            return f"Error: {err.message}"
        case BaseException():
            return f"{type(err).__name__}: {err}"
        case _:
            return str(err)


# =================================================================
# Named atoms
# =================================================================

class _Named:
    """Shared behaviour of symbols and keywords: an optional namespace plus a name."""
    __slots__ = ("namespace", "name")

    def __init__(self, namespace: Optional[str], name: Optional[str] = None):
        # Allow Symbol("name") as shorthand for an unqualified atom.
        if name is None:
            namespace, name = None, namespace
        if not name:
            raise ValueError(f"{type(self).__name__} must have a name.")
        self.namespace = namespace
        self.name = name

    @classmethod
    def parse(cls, text: str):
        """Splits 'ns/name' into its parts. A lone '/' is a name."""
        if text != "/" and "/" in text:
            ns, _, name = text.partition("/")
            return cls(ns, name)
        return cls(None, text)

    def __str__(self) -> str:
        if self.namespace:
            return f"{self.namespace}/{self.name}"
        return self.name

    def __eq__(self, other):
        return type(other) is type(self) and self.namespace == other.namespace and self.name == other.name

    def __hash__(self):
        return hash((type(self).__name__, self.namespace, self.name))


class Symbol(_Named):
    """A symbol form, e.g. `foo.bar` or `cljs.core/map`."""
    __slots__ = ()

    def __repr__(self) -> str:
        return f"Symbol<{self}>"


class Keyword(_Named):
    """A keyword form, e.g. `:reload`."""
    __slots__ = ()

    def __str__(self) -> str:
        return ":" + super().__str__()

    def __repr__(self) -> str:
        return f"Keyword<{self}>"


# =================================================================
# Collection forms
# =================================================================

class FormBlock(collections.abc.MutableSequence):
    """Base for list-shaped forms. Holds child forms and a metadata dict."""
    def __init__(self, items: Optional[List[Any]] = None, meta: Optional[Dict[str, Any]] = None):
        self.items = list(items or [])
        self.meta: Dict[str, Any] = dict(meta or {})

    def __getitem__(self, index):
        return self.items[index]

    def __setitem__(self, index, value):
        self.items[index] = value

    def __delitem__(self, index):
        del self.items[index]

    def __len__(self) -> int:
        return len(self.items)

    def insert(self, index, value):
        self.items.insert(index, value)

    def with_meta(self, meta: Dict[str, Any]):
        return type(self)(self.items, {**self.meta, **meta})

    def __eq__(self, other):
        # Metadata does not take part in equality.
        return type(other) is type(self) and self.items == other.items

    def __hash__(self):
        return hash((type(self).__name__, tuple(self.items)))


class SeqForm(FormBlock):
    """A list form `(...)`: calls, special forms and quoted data."""
    def __repr__(self) -> str:
        return f"SeqForm({self.items!r})"


class Vector(FormBlock):
    """A vector form `[...]`."""
    def __repr__(self) -> str:
        return f"Vector({self.items!r})"


# =================================================================
# Form helpers
# =================================================================

QUOTE = Symbol("quote")
NS = Symbol("ns")

HISTORY_SYMBOLS = frozenset(Symbol(n) for n in ("*1", "*2", "*3", "*e"))


def quoted(form: Any) -> SeqForm:
    return SeqForm([QUOTE, form])


def is_quoted(form: Any) -> bool:
    """True for `(quote x)`, i.e. what the reader makes of `'x`."""
    return isinstance(form, SeqForm) and len(form) == 2 and form[0] == QUOTE


def unquote(form: Any) -> Any:
    return form[1] if is_quoted(form) else form


def is_ns_form(form: Any) -> bool:
    return isinstance(form, SeqForm) and len(form) > 0 and form[0] == NS


def is_history_ref(form: Any) -> bool:
    return isinstance(form, Symbol) and form in HISTORY_SYMBOLS

"""
The boundary between the session and its collaborators.

The reader turns one unit of text into a form. The backend owns the
compiler state and evaluates forms or source text, reporting back through
a callback. Both are supplied by the embedding application.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Iterable, Mapping, MutableSet, Optional, Protocol, runtime_checkable

from bootrepl.bootrepl_datatypes import Symbol


class _Missing:
    def __repr__(self):
        return "<missing>"

    def __bool__(self):
        return False


MISSING = _Missing()


@dataclass(frozen=True)
class Outcome:
    """Exactly one of `value` or `error` is present."""
    value: Any = MISSING
    error: Any = MISSING

    @classmethod
    def success(cls, value: Any = None) -> 'Outcome':
        return cls(value=value)

    @classmethod
    def failure(cls, error: Any) -> 'Outcome':
        return cls(error=error)

    @property
    def has_value(self) -> bool:
        return self.value is not MISSING

    @property
    def has_error(self) -> bool:
        return self.error is not MISSING

    @classmethod
    def coerce(cls, res: Any) -> 'Outcome':
        """Accepts an Outcome, or a mapping with a 'value' and/or 'error' key.

        An outcome with neither is a broken backend, not a user error, and
        fails the assertion.
        """
        if isinstance(res, Mapping):
            kwargs = {k: res[k] for k in ("value", "error") if k in res}
            if "error" in kwargs and kwargs["error"] is None:
                # {'value': v, 'error': None} is a success
                del kwargs["error"]
            if "ns" in res:
                ns = res.get("ns")
                if isinstance(ns, str):
                    ns = Symbol.parse(ns)
                res = EvalReport(namespace=ns, **kwargs)
            else:
                res = cls(**kwargs)
        assert isinstance(res, Outcome), f"Not an evaluation outcome: {res!r}"
        assert res.has_value or res.has_error, f"Outcome has neither value nor error: {res!r}"
        return res


@dataclass(frozen=True)
class EvalReport(Outcome):
    """The outcome of a source-text evaluation, plus the namespace active afterwards."""
    namespace: Optional[Symbol] = None


OutcomeCallback = Callable[[Any], None]
WarningHandler = Callable[[str, Any, Any], None]


@runtime_checkable
class Reader(Protocol):
    def __call__(self, source: str) -> Any: ...


@runtime_checkable
class Backend(Protocol):
    """What the session needs from a compile-and-run implementation.

    Every evaluation entry point takes a callback that receives an
    `Outcome` (or an equivalent mapping) exactly once. Warning handlers are
    invoked synchronously while the backend processes a call, always before
    that call's result callback.
    """

    loaded: MutableSet[Symbol]
    enabled_warnings: Mapping[str, bool]

    def evaluate(self, form: Any, opts: Any, callback: OutcomeCallback) -> None: ...

    def evaluate_text(self, source: str, name: str, opts: Any, callback: OutcomeCallback) -> None: ...

    def add_warning_handler(self, handler: WarningHandler) -> None: ...

    def remove_warning_handler(self, handler: WarningHandler) -> None: ...

    def known_namespaces(self) -> Iterable[Symbol]: ...

    def warning_message(self, category: str, extra: Any) -> Optional[str]: ...

    def warning_text(self, env: Any, message: str) -> str: ...

    def resolve_var(self, ns: Symbol, sym: Symbol) -> Optional[Mapping[str, Any]]: ...

    def resolve_macro_var(self, ns: Symbol, sym: Symbol) -> Optional[Mapping[str, Any]]: ...

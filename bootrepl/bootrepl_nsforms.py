"""
Builds the synthetic `(ns ...)` forms behind the require and import directives.

`(require 'foo.bar :reload)` at the prompt becomes
`(ns <current-ns> (:require [foo.bar]))` with foo.bar evicted from the
backend's loaded cache first. The form is marked so the backend merges it
into the namespace header instead of treating it as ordinary code.
"""
from typing import Any, Iterable, List, MutableSet, Optional

from bootrepl.bootrepl_datatypes import Keyword, Symbol, SeqForm, Vector, NS, unquote

REQUIRE = Keyword(None, "require")
IMPORT = Keyword(None, "import")
RELOAD = Keyword(None, "reload")
RELOAD_ALL = Keyword(None, "reload-all")

NS_FORM_META = {"merge": True, "line": 1, "column": 1}


def spec_namespace(spec: Any) -> Any:
    """The namespace a (possibly quoted) spec refers to: its first element, or the spec itself."""
    inner = unquote(spec)
    if isinstance(inner, (Vector, list)):
        return inner[0] if len(inner) else None
    return inner


def is_self_require(specs: Iterable[Any], current_ns: Optional[Symbol]) -> bool:
    return any(not isinstance(spec, Keyword) and spec_namespace(spec) == current_ns
               for spec in specs)


def canonicalize_specs(specs: Iterable[Any]) -> List[Any]:
    """Unquotes each spec and wraps bare symbols in a vector. Keywords pass through."""
    out = []
    for spec in specs:
        if isinstance(spec, Keyword):
            out.append(spec)
            continue
        inner = unquote(spec)
        out.append(inner if isinstance(inner, Vector) else Vector([inner]))
    return out


def process_reloads(specs: List[Any], loaded: MutableSet[Any]) -> List[Any]:
    """Applies a :reload or :reload-all flag to the loaded cache and strips it from the specs."""
    flag = next((s for s in specs if s == RELOAD or s == RELOAD_ALL), None)
    if flag is None:
        return specs
    specs = [s for s in specs if s != flag]
    if flag == RELOAD_ALL:
        loaded.clear()
    else:
        for spec in specs:
            if isinstance(spec, Vector) and len(spec):
                loaded.discard(spec[0])
    return specs


def make_ns_form(kind: Keyword, specs: Iterable[Any], target_ns: Symbol, loaded: MutableSet[Any]) -> SeqForm:
    specs = list(specs)
    if kind == IMPORT:
        body = [s if isinstance(s, Keyword) else unquote(s) for s in specs]
    else:
        body = process_reloads(canonicalize_specs(specs), loaded)
    return SeqForm([NS, target_ns, SeqForm([kind, *body])], dict(NS_FORM_META))

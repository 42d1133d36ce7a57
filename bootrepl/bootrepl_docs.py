"""
Documentation lookup for the `doc` directive.

Special forms and REPL directives are documented from doc_maps.yaml; any
other symbol is resolved through the backend to a var (or macro var) and
its metadata rendered in the usual doc layout.
"""
from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import pystache
import yaml

from bootrepl.bootrepl_datatypes import Symbol, SeqForm, is_quoted
from bootrepl.bootrepl_printer import Printer

CLOJURE_DOC_URL = "http://clojure.org/"

DOC_TEMPLATE = (
    "-------------------------\n"
    "{{title}}\n"
    "{{#protocol}}Protocol\n{{/protocol}}"
    "{{#forms}}   {{.}}\n{{/forms}}"
    "{{#arglists}}{{arglists}}\n{{/arglists}}"
    "{{#special_form}}Special Form\n{{/special_form}}"
    "{{#macro}}Macro\n{{/macro}}"
    "{{#repl_special}}REPL Special Function\n{{/repl_special}}"
    "  {{doc}}{{#url}}\n\n  Please see {{url}}{{/url}}\n"
)


class DocMaps:
    """The special-form and directive doc tables, loaded once per process."""

    _tables: Optional[Dict[str, Dict[str, Any]]] = None

    def __init__(self, path: Optional[Path] = None):
        if path is not None:
            self.tables = self._load(path)
        else:
            if DocMaps._tables is None:
                DocMaps._tables = self._load(Path(__file__).parent / "doc_maps.yaml")
            self.tables = DocMaps._tables

    @staticmethod
    def _load(path: Path) -> Dict[str, Dict[str, Any]]:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
        return {"special": dict(data.get("special") or {}),
                "repl_special": dict(data.get("repl_special") or {})}

    def special_doc(self, sym: Symbol) -> Optional[Dict[str, Any]]:
        entry = self.tables["special"].get(sym.name) if sym.namespace is None else None
        if entry is None:
            return None
        return {**entry, "name": sym, "special_form": True}

    def repl_special_doc(self, sym: Symbol) -> Optional[Dict[str, Any]]:
        entry = self.tables["repl_special"].get(sym.name) if sym.namespace is None else None
        if entry is None:
            return None
        return {**entry, "name": sym, "repl_special_function": True}


def resolve(backend: Any, ns: Symbol, sym: Symbol) -> Optional[Mapping[str, Any]]:
    """Resolves `sym` in `ns` to a var, falling back to a macro var.

    A lookup that raises counts as not found.
    """
    for lookup in (backend.resolve_var, backend.resolve_macro_var):
        try:
            var = lookup(ns, sym)
        except Exception:
            var = None
        if var is not None:
            return var
    return None


def get_var(backend: Any, ns: Symbol, sym: Symbol, core_ns: Symbol, core_macros_ns: Symbol) -> Optional[Dict[str, Any]]:
    """Looks up the var for `sym`, trying the core macro namespace last.

    A name qualified with its own declaring namespace is shortened to its
    bare name, so docs print as `ns/name` rather than `ns/ns/name`.
    """
    var = resolve(backend, ns, sym)
    if var is not None:
        var = dict(var)
    else:
        macro_var = resolve(backend, ns, Symbol(str(core_macros_ns), sym.name))
        if macro_var is None:
            return None
        var = dict(macro_var)
        var["ns"] = core_ns
        var["name"] = Symbol(str(core_ns), _name_of(var.get("name"), sym))

    name = var.get("name")
    if isinstance(name, Symbol) and name.namespace is not None and name.namespace == str(var.get("ns")):
        var["name"] = Symbol(None, name.name)
    return var


def _name_of(name: Any, default: Symbol) -> str:
    if isinstance(name, Symbol):
        return name.name
    return str(name) if name else default.name


def _format_arglists(m: Mapping[str, Any]) -> str:
    arglists = m.get("arglists")
    if arglists is None:
        return ""
    if isinstance(arglists, str):
        return arglists
    if not (m.get("macro") or m.get("repl_special_function")) and is_quoted(arglists):
        arglists = arglists[1]
    if isinstance(arglists, (list, tuple)):
        arglists = SeqForm(list(arglists))
    return Printer().pformat(arglists)


def _doc_url(m: Mapping[str, Any]) -> str:
    if "url" in m:
        return f"{CLOJURE_DOC_URL}{m['url']}" if m["url"] else ""
    return f"{CLOJURE_DOC_URL}special_forms#{_name_of(m.get('name'), Symbol('?'))}"


def print_doc(m: Optional[Mapping[str, Any]]) -> str:
    """Renders a var or special-form doc map. Unknown names render as empty text."""
    if not m:
        return ""
    if m.get("spec"):
        title = str(m["spec"])
    elif m.get("ns"):
        title = f"{m['ns']}/{m.get('name')}"
    else:
        title = str(m.get("name") or "")
    special_form = bool(m.get("special_form"))
    context = {
        "title": title,
        "protocol": bool(m.get("protocol")),
        "forms": [str(f) for f in (m.get("forms") or [])],
        "arglists": "" if m.get("forms") else _format_arglists(m),
        "special_form": special_form,
        "macro": not special_form and bool(m.get("macro")),
        "repl_special": not special_form and bool(m.get("repl_special_function")),
        "doc": str(m.get("doc") or ""),
        "url": _doc_url(m) if special_form else "",
    }
    renderer = pystache.Renderer(escape=lambda u: u)
    return renderer.render(DOC_TEMPLATE, context)


def lookup_doc(backend: Any, doc_maps: DocMaps, ns: Symbol, sym: Any,
               core_ns: Symbol, core_macros_ns: Symbol) -> str:
    """Documentation text for `sym`: special forms, then directives, then vars."""
    if not isinstance(sym, Symbol):
        return ""
    entry = doc_maps.special_doc(sym) or doc_maps.repl_special_doc(sym)
    if entry is None:
        entry = get_var(backend, ns, sym, core_ns, core_macros_ns)
    return print_doc(entry)

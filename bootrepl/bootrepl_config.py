"""
Session configuration and per-call evaluation options.

Options are layered: process defaults, then the session's configured
defaults, then per-call overrides. Later layers win. Keys the session does
not know about are carried in `extra` and handed to the backend untouched.
"""
from __future__ import annotations

import os
import sys
import dataclasses
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, Mapping, Optional

import yaml

from bootrepl.bootrepl_datatypes import Symbol

CONFIG_ENV_VAR = "BOOTREPL_CONFIG"
DEBUG_ENV_VAR = "BOOTREPL_DEBUG"

# Option names accepted from external (caller facing) input.
VALID_OPTS = frozenset({"verbose"})

# Alternate spellings accepted when layering overrides.
_OPTION_ALIASES = {
    "ns": "namespace",
    "load": "load_fn",
    "eval": "eval_fn",
    "no_pr_str_on_value": "suppress_print",
}


def _as_symbol(value: Any) -> Any:
    if isinstance(value, str):
        return Symbol.parse(value)
    return value


@dataclass(frozen=True)
class EvalOptions:
    """An immutable snapshot of the options for one backend call."""
    namespace: Optional[Symbol] = None
    context: str = "expr"
    load_fn: Optional[Callable] = None
    eval_fn: Optional[Callable] = None
    verbose: bool = False
    # None leaves the backend's own default in place.
    source_map: Optional[bool] = None
    def_emits_var: Optional[bool] = None
    suppress_print: bool = False
    bindings: Mapping[Any, Any] = field(default_factory=dict)
    extra: Mapping[str, Any] = field(default_factory=dict)

    def layer(self, overrides: 'Mapping[str, Any] | EvalOptions | None' = None, **kwargs) -> 'EvalOptions':
        """Returns a copy with `overrides` (then `kwargs`) layered on top."""
        if isinstance(overrides, EvalOptions):
            overrides = overrides.as_overrides()
        merged = dict(overrides or {})
        merged.update(kwargs)
        if not merged:
            return self

        known = {f.name for f in dataclasses.fields(self)}
        changes: Dict[str, Any] = {}
        extra = dict(self.extra)
        for key, value in merged.items():
            name = str(key).replace("-", "_")
            name = _OPTION_ALIASES.get(name, name)
            if name == "extra":
                extra.update(value or {})
            elif name in known:
                changes[name] = _as_symbol(value) if name == "namespace" else value
            else:
                extra[key] = value
        changes["extra"] = extra
        return dataclasses.replace(self, **changes)

    def as_overrides(self) -> Dict[str, Any]:
        """The fields that differ from a default EvalOptions, as a mapping."""
        base = EvalOptions()
        return {f.name: getattr(self, f.name)
                for f in dataclasses.fields(self)
                if getattr(self, f.name) != getattr(base, f.name)}


def valid_opts(opts: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
    """Keeps only the option keys accepted from external input."""
    return {k: v for k, v in (opts or {}).items() if k in VALID_OPTS}


@dataclass
class ReplConfig:
    """Namespace names and session-wide option defaults."""
    default_namespace: Symbol = field(default_factory=lambda: Symbol("cljs.user"))
    # Target of the synthesized ns form when a namespace requires itself.
    scratch_namespace: Symbol = field(default_factory=lambda: Symbol("cljs.user.scratch"))
    core_namespace: Symbol = field(default_factory=lambda: Symbol("cljs.core"))
    core_macros_namespace: Symbol = field(default_factory=lambda: Symbol("cljs.core$macros"))
    options: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        for name in ("default_namespace", "scratch_namespace", "core_namespace", "core_macros_namespace"):
            setattr(self, name, _as_symbol(getattr(self, name)))

    def scratch_for(self, current_ns: Symbol) -> Symbol:
        """A namespace other than `current_ns` to host a self-require."""
        for candidate in (self.scratch_namespace, self.default_namespace):
            if candidate != current_ns:
                return candidate
        return Symbol(f"{current_ns}.scratch")

    @classmethod
    def from_mapping(cls, data: Optional[Mapping[str, Any]]) -> 'ReplConfig':
        data = {str(k).replace("-", "_"): v for k, v in (data or {}).items()}
        known = {f.name for f in dataclasses.fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ValueError(f"Unknown configuration keys: {', '.join(unknown)}")
        return cls(**data)

    @classmethod
    def from_file(cls, path: 'str | Path') -> 'ReplConfig':
        text = Path(path).read_text(encoding="utf-8")
        data = yaml.safe_load(text) or {}
        if not isinstance(data, Mapping):
            raise ValueError(f"Configuration in {path} must be a mapping, not {type(data).__name__}")
        return cls.from_mapping(data)

    @classmethod
    def from_env(cls) -> 'ReplConfig':
        """Loads the file named by BOOTREPL_CONFIG, or returns the defaults."""
        path = os.environ.get(CONFIG_ENV_VAR)
        if path:
            return cls.from_file(path)
        return cls()


def debug_enabled(opts: Optional[EvalOptions] = None) -> bool:
    return bool(os.environ.get(DEBUG_ENV_VAR)) or bool(opts is not None and opts.verbose)


def dbg(opts: Optional[EvalOptions], *parts):
    """Traces internal state to stderr when verbose or BOOTREPL_DEBUG is set."""
    if debug_enabled(opts):
        print("[DBG]", *parts, file=sys.stderr)

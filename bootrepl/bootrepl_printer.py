"""
A printer for values coming back from the backend.

Produces the canonical printed form of a value (strings quoted, nil for
None, keywords with a leading colon). Printing is for display: opaque
objects print as tagged placeholders and are not expected to read back.
"""
import collections.abc

from bootrepl.bootrepl_datatypes import Symbol, Keyword, SeqForm, Vector, ReplError

_STRING_ESCAPES = {
    '"': '\\"',
    '\\': '\\\\',
    '\n': '\\n',
    '\t': '\\t',
    '\r': '\\r',
}


class Printer:
    """Formats values into readable source-like strings."""

    def __init__(self):
        self._handlers = self._create_handlers()

    def pformat(self, obj) -> str:
        """Public entry point to format an object. Never raises."""
        try:
            return self._get_handler(obj)(obj)
        except Exception:
            return self._pformat_opaque(obj)

    def _get_handler(self, obj):
        obj_type = type(obj)
        if obj_type in self._handlers:
            return self._handlers[obj_type]
        if isinstance(obj, ReplError):
            return self._pformat_repl_error
        if isinstance(obj, BaseException):
            return self._pformat_exception
        if isinstance(obj, bool):
            return self._pformat_bool
        if isinstance(obj, (int, float)):
            return self._pformat_number
        if isinstance(obj, str):
            return self._pformat_str
        if isinstance(obj, collections.abc.Mapping):
            return self._pformat_map
        if isinstance(obj, collections.abc.Set):
            return self._pformat_set
        if isinstance(obj, (list, tuple)):
            return self._pformat_vector
        return self._pformat_opaque

    def _create_handlers(self):
        return {
            type(None): self._pformat_nil,
            bool: self._pformat_bool,
            int: self._pformat_number,
            float: self._pformat_number,
            str: self._pformat_str,
            Symbol: self._pformat_named,
            Keyword: self._pformat_named,
            SeqForm: self._pformat_seq,
            Vector: self._pformat_vector,
            list: self._pformat_vector,
            tuple: self._pformat_vector,
            dict: self._pformat_map,
            set: self._pformat_set,
            frozenset: self._pformat_set,
        }

    def _pformat_nil(self, obj):
        return "nil"

    def _pformat_bool(self, obj):
        return "true" if obj else "false"

    def _pformat_number(self, obj):
        if isinstance(obj, float):
            if obj != obj:
                return "##NaN"
            if obj in (float("inf"), float("-inf")):
                return "##Inf" if obj > 0 else "##-Inf"
        return str(obj)

    def _pformat_str(self, obj):
        escaped = "".join(_STRING_ESCAPES.get(ch, ch) for ch in obj)
        return f'"{escaped}"'

    def _pformat_named(self, obj):
        return str(obj)

    def _join(self, items):
        return " ".join(self.pformat(item) for item in items)

    def _pformat_seq(self, obj):
        return f"({self._join(obj)})"

    def _pformat_vector(self, obj):
        return f"[{self._join(obj)}]"

    def _pformat_set(self, obj):
        return f"#{{{self._join(obj)}}}"

    def _pformat_map(self, obj):
        pairs = ", ".join(f"{self.pformat(k)} {self.pformat(v)}" for k, v in obj.items())
        return f"{{{pairs}}}"

    def _pformat_repl_error(self, obj):
        data = {Keyword(None, "message"): obj.message, Keyword(None, "tag"): Keyword.parse(obj.tag)}
        if obj.data:
            data[Keyword(None, "data")] = {Keyword(None, str(k)): v for k, v in obj.data.items()}
        return f"#error {self._pformat_map(data)}"

    def _pformat_exception(self, obj):
        data = {Keyword(None, "type"): Symbol(None, type(obj).__name__),
                Keyword(None, "message"): str(obj)}
        return f"#error {self._pformat_map(data)}"

    def _pformat_opaque(self, obj):
        try:
            text = repr(obj)
        except Exception:
            text = object.__repr__(obj)
        return f"#object[{type(obj).__name__} {self._pformat_str(text)}]"

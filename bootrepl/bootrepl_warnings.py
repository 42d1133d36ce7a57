"""
Capture of compiler warnings raised while the backend processes one call.

The backend calls registered handlers synchronously, before it delivers
the call's result. The handler records the formatted message in the
session's WarningSink; the result protocol reads and clears it.
"""
from contextlib import contextmanager
from typing import Any, Optional

from bootrepl.bootrepl_config import EvalOptions, dbg


class WarningSink:
    """Holds at most one pending warning message. Last write wins."""
    def __init__(self):
        self._message: Optional[str] = None

    @property
    def pending(self) -> Optional[str]:
        return self._message

    def set(self, message: str):
        self._message = message

    def clear(self):
        self._message = None

    def take(self) -> Optional[str]:
        message, self._message = self._message, None
        return message

    def __bool__(self):
        return self._message is not None

    def __repr__(self) -> str:
        return f"<WarningSink pending={self._message!r}>"


class WarningCapture:
    """A warning handler bound to one sink and one call's options."""
    def __init__(self, sink: WarningSink, backend: Any, opts: EvalOptions):
        self.sink = sink
        self.backend = backend
        self.opts = opts

    def __call__(self, category: str, env: Any, extra: Any):
        dbg(self.opts, "Handling warning:", {"warning-type": category, "env": env, "extra": extra})
        if not self.backend.enabled_warnings.get(category):
            return
        message = self.backend.warning_message(category, extra)
        if message:
            self.sink.set(self.backend.warning_text(env, message))


@contextmanager
def capture_warnings(backend: Any, handler: WarningCapture):
    """Registers `handler` with the backend for the duration of the block."""
    backend.add_warning_handler(handler)
    try:
        yield handler
    finally:
        backend.remove_warning_handler(handler)

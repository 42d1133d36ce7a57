from bootrepl.bootrepl_session import ReplSession, SessionState
from bootrepl.bootrepl_config import EvalOptions, ReplConfig
from bootrepl.bootrepl_backend import Outcome, EvalReport, Backend, Reader
from bootrepl.bootrepl_repl import evaluate_async, run_repl

__all__ = [
    "ReplSession", "SessionState",
    "EvalOptions", "ReplConfig",
    "Outcome", "EvalReport", "Backend", "Reader",
    "evaluate_async", "run_repl",
]

import asyncio
import sys
from typing import Any, Mapping, Optional, Tuple

from bootrepl.bootrepl_datatypes import format_error
from bootrepl.bootrepl_session import ReplSession

BANNER = "bootrepl v0.1"


# A basic awaitable input prompt.
async def ainput(prompt: str) -> str:
    loop = asyncio.get_running_loop()
    sys.stdout.write(prompt)
    sys.stdout.flush()
    return await loop.run_in_executor(None, sys.stdin.readline)


async def evaluate_async(session: ReplSession, source: str,
                         opts: Optional[Mapping[str, Any]] = None) -> Tuple[bool, Any]:
    """Runs one evaluation and waits for its callback. Returns (success, payload)."""
    loop = asyncio.get_running_loop()
    future = loop.create_future()

    def settle(success, payload):
        if not future.done():
            future.set_result((success, payload))

    def on_done(success, payload):
        # The backend may call back from another thread.
        loop.call_soon_threadsafe(settle, success, payload)

    session.evaluate(source, on_done, opts)
    return await future


async def run_repl(session: ReplSession, opts: Optional[Mapping[str, Any]] = None):
    """Line-oriented loop: one input is fully evaluated before the next is read."""
    print(BANNER)
    print("Type 'exit' or press Ctrl+D to quit.")

    while True:
        try:
            raw = await ainput(f"{session.current_ns()}=> ")
            if raw == "":
                raise EOFError
            line = raw.strip()

            if not line:
                continue
            if line == "exit":
                break

            success, payload = await evaluate_async(session, line, opts)

            if not success:
                print(format_error(payload), file=sys.stderr)
                continue

            if payload is not None:
                print(payload)

        except EOFError:
            print("\nExiting.")
            break
        except Exception as e:
            # Keep the loop alive if the backend itself blows up.
            print(f"Error: {e}", file=sys.stderr)

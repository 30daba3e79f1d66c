"""Script-execution sandbox lifecycle.

A context is tagged with the session generation it was created in. Any
document-affecting transition bumps the generation, so the next evaluation
finds a mismatch and creates a fresh context instead of reusing a stale one.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from .engine import EngineSession
from .session import Session

logger = logging.getLogger("webpage.sandbox")


@dataclass(frozen=True)
class SandboxContext:
    generation: int
    handle: Any
    name: str = ""


def build_call_source(fn_source: str, args: tuple[Any, ...]) -> str:
    """`(fn).apply(this, [args...]);` with JSON-encoded arguments."""
    return f"({fn_source}).apply(this, {json.dumps(list(args))});"


class SandboxManager:
    def __init__(self, session: Session) -> None:
        self._session = session
        self._context: SandboxContext | None = None

    @property
    def context(self) -> SandboxContext | None:
        """The live context, or None when absent or stale."""
        ctx = self._context
        if ctx is not None and ctx.generation != self._session.generation:
            return None
        return ctx

    def discard(self) -> None:
        self._context = None

    def acquire(self, engine_session: EngineSession) -> SandboxContext:
        ctx = self.context
        if ctx is not None:
            return ctx
        generation = self._session.generation
        # Engines may hand back an existing context for a repeated name.
        name = f"{generation}:{engine_session.url()}"
        handle = engine_session.create_sandbox(name)
        ctx = SandboxContext(generation=generation, handle=handle, name=name)
        self._context = ctx
        logger.debug("sandbox created generation=%d name=%s", ctx.generation, name)
        return ctx

    def evaluate_source(self, engine_session: EngineSession, source: str) -> Any:
        ctx = self.acquire(engine_session)
        return engine_session.evaluate_in(ctx.handle, source)

    def evaluate(self, engine_session: EngineSession, fn_source: str, *args: Any) -> Any:
        return self.evaluate_source(engine_session, build_call_source(fn_source, args))

    def evaluate_async(self, engine_session: EngineSession, fn_source: str) -> None:
        ctx = self.acquire(engine_session)
        engine_session.schedule_in(ctx.handle, f"({fn_source})();")

    def inject_file(self, engine_session: EngineSession, path: str | Path, library_path: str | Path) -> bool:
        target = Path(library_path) / Path(path).expanduser()
        source = target.read_text(encoding="utf-8")
        self.evaluate_source(engine_session, source)
        return True


__all__ = ["SandboxContext", "SandboxManager", "build_call_source"]

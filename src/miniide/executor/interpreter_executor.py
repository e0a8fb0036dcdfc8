"""
Executor that runs snippets on a plugged-in interpreter engine.

An engine is any object with a ``run(code, stdin, write) -> int`` method.
``write`` is called synchronously for every write the program makes to its
standard output and the return value is the program's exit code.  Engines
raise :class:`InterpreterFault` for errors in the user program.

Engines run inside the server process, so only trusted engine modules
should be configured.  Python snippets do not go through this executor;
they run in a child process (see :mod:`.python_executor`).

Engines are produced by a loader callable.  Loading may be slow (importing
a large module, warming up a runtime), so :meth:`InterpreterExecutor.initialize`
starts the loader once and lets every caller await the same future with a
bounded timeout.  Engines are not assumed to be re-entrant: the executor
serializes engine access behind a lock and concurrent requests queue up.
"""

from __future__ import annotations

import asyncio
import importlib
import logging
import threading
import time
from typing import Any, Callable, Optional

from .base import CodeExecutor, ExecutionOutcome, OutputSink, RuntimeUnavailable

logger = logging.getLogger(__name__)

EngineLoader = Callable[[], Any]


def load_engine_module(module_name: str, max_steps: int) -> Any:
    """Import an interpreter engine module and build its engine.

    The module must expose ``create_engine(max_steps=...)`` returning an
    object with the engine ``run`` method.
    """
    if not module_name:
        raise RuntimeUnavailable("No interpreter engine module configured")
    try:
        module = importlib.import_module(module_name)
    except ImportError as exc:
        raise RuntimeUnavailable(f"Interpreter engine {module_name!r} is not installed") from exc
    factory = getattr(module, "create_engine", None)
    if factory is None:
        raise RuntimeUnavailable(f"Interpreter engine {module_name!r} has no create_engine()")
    return factory(max_steps=max_steps)


class InterpreterExecutor(CodeExecutor):
    """Delegate runs to an engine produced by ``loader``."""

    def __init__(self, loader: EngineLoader, ready_timeout: float = 4.0, name: str = "interpreter") -> None:
        super().__init__()
        self.name = name
        self.ready_timeout = ready_timeout
        self._loader = loader
        self._engine: Any = None
        self._ready: Optional[asyncio.Future] = None
        self._engine_lock = threading.Lock()

    async def initialize(self) -> Any:
        if self._engine is not None:
            return self._engine
        loop = asyncio.get_running_loop()
        if self._ready is None or self._ready.get_loop() is not loop:
            self._ready = asyncio.ensure_future(asyncio.to_thread(self._loader))
        ready = self._ready
        try:
            self._engine = await asyncio.wait_for(asyncio.shield(ready), self.ready_timeout)
        except asyncio.TimeoutError:
            raise RuntimeUnavailable(
                f"{self.name} runtime did not become ready within {self.ready_timeout} seconds"
            )
        except RuntimeUnavailable:
            self._ready = None
            raise
        except Exception as exc:
            self._ready = None
            logger.exception("Loading %s runtime failed", self.name)
            raise RuntimeUnavailable(f"{self.name} runtime failed to load: {exc}") from exc
        logger.info("%s runtime ready", self.name)
        return self._engine

    async def run(
        self,
        code: str,
        stdin: Optional[str],
        on_output: OutputSink,
    ) -> ExecutionOutcome:
        engine = await self.initialize()
        loop = asyncio.get_running_loop()
        chunks: list[str] = []

        def forward(chunk: str) -> None:
            chunks.append(chunk)
            loop.call_soon_threadsafe(on_output, chunk)

        def run_locked() -> int:
            with self._engine_lock:
                return engine.run(code, stdin, forward)

        start_time = time.perf_counter()
        exit_code = await asyncio.to_thread(run_locked)
        duration = int((time.perf_counter() - start_time) * 1000)
        return ExecutionOutcome(
            stdout="".join(chunks),
            stderr="",
            exit_code=exit_code,
            duration_ms=duration,
        )

"""
Executor for running Python code snippets.

The Python executor writes the provided code to a temporary file in the
work directory and runs it in a child interpreter (``sys.executable`` in
isolated mode) through :mod:`.python_runner`.  Standard output and error
are captured separately and returned in an :class:`ExecutionOutcome`.  The
wall-clock timeout is enforced by the base class helper, and the runner
additionally caps the number of executed lines.

A snippet can therefore never touch the server's own streams, module state
or process: ``os._exit`` ends only the child, and a snippet that disables
the step counter is still killed at the deadline.

Errors raised by the snippet itself (syntax errors, uncaught exceptions,
the step ceiling) are reported by the runner through a fault file and
surface as :class:`InterpreterFault`.
"""

from __future__ import annotations

import asyncio
import logging
import sys
import uuid
from pathlib import Path
from typing import Optional

from .base import CodeExecutor, ExecutionOutcome, InterpreterFault, OutputSink, RuntimeUnavailable, emit_streams

logger = logging.getLogger(__name__)

RUNNER_PATH = Path(__file__).with_name("python_runner.py")


class PythonExecutor(CodeExecutor):
    """Execute Python code in a child process using the server's interpreter."""

    def __init__(
        self,
        work_dir: Path,
        max_steps: int = 10_000_000,
        timeout: float = 10.0,
        python: str = sys.executable,
    ) -> None:
        super().__init__(timeout)
        self.work_dir = Path(work_dir)
        self.max_steps = max_steps
        self.python = python

    def command(self, script: Path, fault_file: Path) -> list[str]:
        return [self.python, "-I", str(RUNNER_PATH), str(script), str(fault_file), str(self.max_steps)]

    async def run(
        self,
        code: str,
        stdin: Optional[str],
        on_output: OutputSink,
    ) -> ExecutionOutcome:
        self.work_dir.mkdir(parents=True, exist_ok=True)
        run_id = uuid.uuid4().hex
        script = self.work_dir / f"{run_id}.py"
        fault_file = self.work_dir / f"{run_id}.fault"
        try:
            script.write_text(code, encoding="utf-8")
            try:
                result = await asyncio.to_thread(
                    self._run_subprocess,
                    self.command(script, fault_file),
                    self.work_dir,
                    stdin or "",
                    self.timeout,
                )
            except FileNotFoundError as exc:
                raise RuntimeUnavailable(f"Python interpreter not available: {self.python}") from exc

            if result.timed_out:
                logger.warning("Python snippet %s killed after %s s", script.name, self.timeout)
            elif fault_file.exists():
                message = fault_file.read_text(encoding="utf-8").strip()
                if result.stdout:
                    on_output(result.stdout)
                raise InterpreterFault(message or "Python snippet failed", stdout=result.stdout)
            emit_streams(result, on_output)
            return result
        finally:
            for path in (script, fault_file):
                try:
                    path.unlink(missing_ok=True)
                except OSError as exc:
                    logger.warning("Failed to remove temp file %s: %s", path, exc)

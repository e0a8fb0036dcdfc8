"""
Executor that compiles C++ with a locally installed toolchain.

Each run writes the snippet to ``<work_dir>/<id>.cpp``, compiles it to
``<work_dir>/<id>`` and runs the binary with the request's standard input
under the wall-clock timeout.  The id is a fresh UUID so concurrent runs
never share files, and both artifacts are removed before :meth:`run`
returns, whatever the outcome.

The compiler is strict: any diagnostic output counts as a failed build,
even when the compiler exits with status zero.
"""

from __future__ import annotations

import asyncio
import logging
import os
import uuid
from pathlib import Path
from typing import Optional, Sequence

from .base import CodeExecutor, ExecutionOutcome, OutputSink, RuntimeUnavailable, emit_streams

logger = logging.getLogger(__name__)

DEFAULT_FLAGS = ("-std=c++17",)


class ToolchainExecutor(CodeExecutor):
    """Compile and run C++ snippets with ``g++`` (or a compatible compiler)."""

    def __init__(
        self,
        work_dir: Path,
        compiler: str = "g++",
        flags: Sequence[str] = DEFAULT_FLAGS,
        timeout: float = 5.0,
        compile_timeout: float = 10.0,
        source_suffix: str = ".cpp",
    ) -> None:
        super().__init__(timeout)
        self.work_dir = Path(work_dir)
        self.compiler = compiler
        self.flags = list(flags)
        self.compile_timeout = compile_timeout
        self.source_suffix = source_suffix

    def artifact_paths(self, run_id: str) -> tuple[Path, Path]:
        binary_name = f"{run_id}.exe" if os.name == "nt" else run_id
        return self.work_dir / f"{run_id}{self.source_suffix}", self.work_dir / binary_name

    async def run(
        self,
        code: str,
        stdin: Optional[str],
        on_output: OutputSink,
    ) -> ExecutionOutcome:
        self.work_dir.mkdir(parents=True, exist_ok=True)
        source, binary = self.artifact_paths(uuid.uuid4().hex)
        try:
            source.write_text(code, encoding="utf-8")
            compiled = await self._invoke(
                [self.compiler, *self.flags, str(source), "-o", str(binary)],
                stdin_data=None,
                timeout=self.compile_timeout,
            )
            diagnostics = (compiled.stderr + compiled.stdout).strip()
            if compiled.exit_code != 0 or diagnostics:
                diagnostics = diagnostics or f"Compilation failed with exit code {compiled.exit_code}"
                logger.info("Compilation of %s failed (exit_code=%s)", source.name, compiled.exit_code)
                on_output(f"[Compile Error]\n{diagnostics}\n")
                return ExecutionOutcome(
                    stdout="",
                    stderr=diagnostics,
                    exit_code=compiled.exit_code or 1,
                    timed_out=compiled.timed_out,
                )

            result = await self._invoke([str(binary)], stdin_data=stdin or "", timeout=self.timeout)
            if result.timed_out:
                logger.warning("Program %s killed after %s s", binary.name, self.timeout)
            emit_streams(result, on_output)
            return result
        finally:
            self._cleanup(source, binary)

    async def _invoke(
        self,
        args: list[str],
        stdin_data: Optional[str],
        timeout: float,
    ) -> ExecutionOutcome:
        try:
            return await asyncio.to_thread(
                self._run_subprocess, args, self.work_dir, stdin_data, timeout
            )
        except FileNotFoundError as exc:
            raise RuntimeUnavailable(f"C++ compiler not available: {self.compiler}") from exc

    @staticmethod
    def _cleanup(*paths: Path) -> None:
        for path in paths:
            try:
                path.unlink(missing_ok=True)
            except OSError as exc:
                logger.warning("Failed to remove temp file %s: %s", path, exc)

"""
Dispatcher that routes execution requests to language-specific executors.

The dispatcher owns output normalization: executors forward program output,
and the dispatcher appends the status lines (non-zero exit code, elapsed
time) or a single ``[Error]`` line when the backend failed.
"""

from __future__ import annotations

import dataclasses
import logging
import time
from pathlib import Path
from typing import List, Mapping, Tuple

from ..config import Config
from .base import (
    CodeExecutor,
    ExecutionError,
    ExecutionOutcome,
    ExecutionRequest,
    Language,
    OutputSink,
    UnsupportedLanguage,
)
from .interpreter_executor import InterpreterExecutor, load_engine_module
from .python_executor import PythonExecutor
from .remote_executor import RemoteExecutor
from .toolchain_executor import ToolchainExecutor

logger = logging.getLogger(__name__)


class ExecutionDispatcher:
    """Select the executor registered for a language and normalize its output."""

    def __init__(self, executors: Mapping[Language, CodeExecutor]) -> None:
        self.executors = dict(executors)

    def executor_for(self, language: Language | str) -> CodeExecutor:
        try:
            return self.executors[Language(language)]
        except (KeyError, ValueError):
            raise UnsupportedLanguage(getattr(language, "value", language))

    async def execute(self, request: ExecutionRequest, on_output: OutputSink) -> ExecutionOutcome:
        """
        Run ``request`` and stream its output to ``on_output``.

        Raises
        ------
        UnsupportedLanguage
            If no executor is registered for the request's language.

        Returns
        -------
        ExecutionOutcome
            Backend failures are reported in ``backend_error`` rather than
            raised.
        """
        executor = self.executor_for(request.language)
        logger.info(
            "Executing %s snippet (%d chars) with %s",
            request.language.value,
            len(request.source_code),
            type(executor).__name__,
        )

        start_time = time.perf_counter()
        try:
            outcome = await executor.run(request.source_code, request.standard_input, on_output)
        except ExecutionError as exc:
            logger.warning("Execution backend failed: %s", exc)
            return self._report_failure(exc, exc.exit_code, exc.stdout, start_time, on_output)
        except Exception as exc:
            logger.exception("Unexpected error during execution")
            return self._report_failure(exc, -1, "", start_time, on_output)

        elapsed = int((time.perf_counter() - start_time) * 1000)
        if outcome.exit_code != 0:
            on_output(f"\n[System] Process exited with code {outcome.exit_code}\n")
        on_output(f"\n[System] Finished in {elapsed} ms\n")
        logger.info(
            "Execution finished: exit_code=%s, timed_out=%s, duration_ms=%s",
            outcome.exit_code,
            outcome.timed_out,
            elapsed,
        )
        return dataclasses.replace(outcome, duration_ms=elapsed)

    @staticmethod
    def _report_failure(
        exc: BaseException,
        exit_code: int,
        stdout: str,
        start_time: float,
        on_output: OutputSink,
    ) -> ExecutionOutcome:
        message = str(exc) or type(exc).__name__
        on_output(f"\n[Error] {message}\n")
        return ExecutionOutcome(
            stdout=stdout,
            stderr=message,
            exit_code=exit_code,
            backend_error=message,
            duration_ms=int((time.perf_counter() - start_time) * 1000),
        )


async def collect(
    dispatcher: ExecutionDispatcher, request: ExecutionRequest
) -> Tuple[ExecutionOutcome, List[str]]:
    """Run ``request`` and return the outcome with every chunk in order."""
    chunks: List[str] = []
    outcome = await dispatcher.execute(request, chunks.append)
    return outcome, chunks


def build_cpp_executor(config: Config) -> CodeExecutor:
    if config.cpp_backend == "remote":
        return RemoteExecutor(
            url=config.remote_url,
            language="cpp",
            version=config.remote_cpp_version,
            timeout=config.remote_timeout,
        )
    if config.cpp_backend == "interpreter":
        module_name = config.cpp_interpreter_module
        max_steps = config.interpreter_max_steps
        return InterpreterExecutor(
            lambda: load_engine_module(module_name, max_steps),
            ready_timeout=config.interpreter_ready_timeout_ms / 1000,
            name="C++ interpreter",
        )
    return ToolchainExecutor(
        work_dir=Path(config.work_dir),
        compiler=config.cxx,
        timeout=config.execution_timeout_ms / 1000,
        compile_timeout=config.compile_timeout_ms / 1000,
    )


def build_dispatcher(config: Config) -> ExecutionDispatcher:
    """Register one executor per language according to ``config``."""
    python_executor = PythonExecutor(
        work_dir=Path(config.work_dir),
        max_steps=config.interpreter_max_steps,
        timeout=config.python_timeout_ms / 1000,
    )
    return ExecutionDispatcher(
        {
            Language.PYTHON: python_executor,
            Language.CPP: build_cpp_executor(config),
        }
    )

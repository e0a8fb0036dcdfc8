"""
Base interfaces and dataclasses for code execution backends.

All concrete executors should inherit from :class:`CodeExecutor` and
implement the :meth:`run` coroutine.  An executor receives the snippet,
the full standard input buffer and an output callback.  It forwards output
to the callback as it becomes available (all at once for batch backends,
write by write for interpreter engines) and returns a single
:class:`ExecutionOutcome`.

Failures that prevent a run from producing an outcome (backend missing,
network errors, interpreter faults) are raised as :class:`ExecutionError`
subclasses.  The dispatcher turns them into a single error line, so
executors never need to format error output themselves.
"""

from __future__ import annotations

import abc
import enum
import subprocess
import threading
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional

from ..errors import MiniIDEError

OutputSink = Callable[[str], None]


class Language(str, enum.Enum):
    PYTHON = "python"
    CPP = "cpp"


@dataclass(frozen=True)
class ExecutionRequest:
    """A single run of a snippet."""

    language: Language
    source_code: str
    standard_input: Optional[str] = None


@dataclass(frozen=True)
class ExecutionOutcome:
    """Result of running a code snippet.

    Attributes
    ----------
    stdout: str
        Standard output captured from the execution.
    stderr: str
        Standard error or compiler diagnostics.
    exit_code: int
        Exit status of the program.  Zero usually indicates success.
    timed_out: bool
        True when the run was killed by the wall-clock timeout.
    backend_error: str, optional
        Set when the backend itself failed rather than the program.
    duration_ms: int
        Wall-clock time in milliseconds, stamped by the dispatcher.
    """

    stdout: str
    stderr: str
    exit_code: int
    timed_out: bool = False
    backend_error: Optional[str] = None
    duration_ms: int = 0


class ExecutionError(MiniIDEError):
    """A backend could not produce an outcome for the request."""

    exit_code = -1

    def __init__(self, message: str, stdout: str = "") -> None:
        super().__init__(message)
        self.stdout = stdout


class UnsupportedLanguage(ExecutionError):
    def __init__(self, language: object) -> None:
        super().__init__(f"Unsupported language: {language}")
        self.language = language


class RuntimeUnavailable(ExecutionError):
    pass


class InterpreterFault(ExecutionError):
    exit_code = 1


class BackendUnavailable(ExecutionError):
    pass


class BackendRejected(ExecutionError):
    pass


class BackendHTTPError(ExecutionError):
    def __init__(self, status: int, reason: str = "") -> None:
        super().__init__(f"API Request Failed: {status} {reason}".rstrip())
        self.status = status


class BackendProtocolError(ExecutionError):
    def __init__(self, raw_body: str) -> None:
        preview = raw_body if len(raw_body) <= 200 else raw_body[:200] + "..."
        super().__init__(f"Malformed response from execution backend: {preview!r}")
        self.raw_body = raw_body


def emit_streams(outcome: ExecutionOutcome, on_output: OutputSink) -> None:
    """Forward a batch outcome: stdout first, then stderr under a marker."""
    if outcome.stdout:
        on_output(outcome.stdout)
    if outcome.stderr:
        on_output(f"\n[Stderr]\n{outcome.stderr}")


class CodeExecutor(abc.ABC):
    """
    Abstract base class defining the interface for code executors.

    Subclasses override :meth:`run`.  Executors that shell out can use
    :meth:`_run_subprocess`, which enforces a wall-clock timeout.
    """

    def __init__(self, timeout: float = 5.0) -> None:
        """
        Parameters
        ----------
        timeout: float, optional
            Maximum wall-clock time (in seconds) to allow a program to
            run.  If the process does not complete within this time, it
            is killed and the outcome is marked as timed out.
        """
        self.timeout = timeout

    async def initialize(self) -> None:
        """Prepare the backend.  Most executors need nothing here."""

    @abc.abstractmethod
    async def run(
        self,
        code: str,
        stdin: Optional[str],
        on_output: OutputSink,
    ) -> ExecutionOutcome:
        """Run ``code`` and forward its output to ``on_output``.

        Parameters
        ----------
        code: str
            The user supplied code to run.
        stdin: str, optional
            Complete standard input for the program.
        on_output: callable
            Receives output chunks in the order they were produced.

        Returns
        -------
        ExecutionOutcome
            Captures stdout, stderr, exit status and timeout flag.
        """
        raise NotImplementedError

    def _run_subprocess(
        self,
        args: list[str],
        cwd: Path,
        stdin_data: Optional[str] = None,
        timeout: Optional[float] = None,
    ) -> ExecutionOutcome:
        """
        Invoke a subprocess and capture its output.

        The process runs in ``cwd`` and is killed if it exceeds the wall
        clock timeout.  This call blocks; async callers run it in a worker
        thread.

        Parameters
        ----------
        args: list[str]
            Command and arguments to execute.
        cwd: Path
            Working directory for the subprocess.
        stdin_data: str, optional
            Data to supply on standard input.
        timeout: float, optional
            Overrides :attr:`timeout` for this call.

        Returns
        -------
        ExecutionOutcome
            Contains the process outputs and exit status.
        """
        limit = self.timeout if timeout is None else timeout
        start_time = time.perf_counter()
        process = subprocess.Popen(
            args,
            cwd=str(cwd),
            stdin=subprocess.PIPE if stdin_data is not None else subprocess.DEVNULL,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            encoding="utf-8",
            errors="replace",
        )

        timed_out = False

        def kill_proc() -> None:
            nonlocal timed_out
            # The process may have exited between the deadline and this call.
            if process.poll() is not None:
                return
            try:
                process.kill()
                timed_out = True
            except OSError:
                pass

        # Start timer thread to enforce wall clock timeout
        timer = threading.Timer(limit, kill_proc)
        timer.start()

        try:
            stdout, stderr = process.communicate(input=stdin_data)
        finally:
            duration = int((time.perf_counter() - start_time) * 1000)
            timer.cancel()
        exit_code = process.returncode if process.returncode is not None else -1
        # If killed by timeout, override exit code and append notice to stderr
        if timed_out:
            stderr = (stderr or "") + f"\nExecution timed out after {int(limit * 1000)} ms."
            exit_code = -9
        return ExecutionOutcome(
            stdout=stdout or "",
            stderr=stderr or "",
            exit_code=exit_code,
            timed_out=timed_out,
            duration_ms=duration,
        )

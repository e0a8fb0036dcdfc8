"""
Execution backends for the mini IDE.

Each executor implements the ``CodeExecutor`` interface from ``base.py``
and turns a snippet plus standard input into an ``ExecutionOutcome``.
Three C++ strategies are provided (local toolchain, remote API,
plugged-in interpreter engine) and one is chosen at startup from the
configuration.  Python snippets run in a child interpreter through
``PythonExecutor``.
The ``ExecutionDispatcher`` selects the executor for a request and
normalizes the output stream.
"""

from .base import (
    BackendHTTPError,
    BackendProtocolError,
    BackendRejected,
    BackendUnavailable,
    CodeExecutor,
    ExecutionError,
    ExecutionOutcome,
    ExecutionRequest,
    InterpreterFault,
    Language,
    RuntimeUnavailable,
    UnsupportedLanguage,
)
from .dispatcher import ExecutionDispatcher, build_dispatcher, collect
from .interpreter_executor import InterpreterExecutor
from .python_executor import PythonExecutor
from .remote_executor import RemoteExecutor
from .toolchain_executor import ToolchainExecutor

__all__ = [
    "BackendHTTPError",
    "BackendProtocolError",
    "BackendRejected",
    "BackendUnavailable",
    "CodeExecutor",
    "ExecutionDispatcher",
    "ExecutionError",
    "ExecutionOutcome",
    "ExecutionRequest",
    "InterpreterExecutor",
    "InterpreterFault",
    "Language",
    "PythonExecutor",
    "RemoteExecutor",
    "RuntimeUnavailable",
    "ToolchainExecutor",
    "UnsupportedLanguage",
    "build_dispatcher",
    "collect",
]

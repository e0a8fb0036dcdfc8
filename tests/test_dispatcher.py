"""Tests for output normalization in the execution dispatcher."""

from __future__ import annotations

import pytest

from miniide.config import Config
from miniide.executor import (
    BackendHTTPError,
    ExecutionDispatcher,
    ExecutionOutcome,
    ExecutionRequest,
    InterpreterExecutor,
    PythonExecutor,
    Language,
    RemoteExecutor,
    ToolchainExecutor,
    UnsupportedLanguage,
    build_dispatcher,
    collect,
)


def _request(language=Language.CPP, code="int main(){}", stdin=None):
    return ExecutionRequest(language=language, source_code=code, standard_input=stdin)


@pytest.mark.asyncio
async def test_success_appends_elapsed_time_only(scripted):
    dispatcher = ExecutionDispatcher({Language.CPP: scripted(["Hello, ", "World!\n"])})
    outcome, chunks = await collect(dispatcher, _request())
    assert chunks[:2] == ["Hello, ", "World!\n"]
    assert len(chunks) == 3
    assert "[System] Finished in" in chunks[2]
    assert outcome.stdout == "Hello, World!\n"
    assert outcome.exit_code == 0
    assert outcome.backend_error is None
    assert not any("Process exited" in c for c in chunks)


@pytest.mark.asyncio
async def test_nonzero_exit_adds_exit_code_line(scripted):
    outcome = ExecutionOutcome(stdout="partial", stderr="", exit_code=2)
    dispatcher = ExecutionDispatcher({Language.CPP: scripted(["partial"], outcome=outcome)})
    result, chunks = await collect(dispatcher, _request())
    assert result.exit_code == 2
    assert "[System] Process exited with code 2" in chunks[1]
    assert "[System] Finished in" in chunks[2]


@pytest.mark.asyncio
async def test_backend_error_becomes_single_error_line(scripted):
    executor = scripted([], error=BackendHTTPError(503, "Service Unavailable"))
    dispatcher = ExecutionDispatcher({Language.CPP: executor})
    outcome, chunks = await collect(dispatcher, _request())
    assert len(chunks) == 1
    assert chunks[0].strip() == "[Error] API Request Failed: 503 Service Unavailable"
    assert outcome.backend_error == "API Request Failed: 503 Service Unavailable"
    assert outcome.exit_code == -1


@pytest.mark.asyncio
async def test_unexpected_exception_is_reported_not_raised(scripted):
    dispatcher = ExecutionDispatcher({Language.CPP: scripted([], error=KeyError("run"))})
    outcome, chunks = await collect(dispatcher, _request())
    assert outcome.backend_error
    assert chunks[-1].startswith("\n[Error]")


@pytest.mark.asyncio
async def test_unsupported_language_raises(scripted):
    dispatcher = ExecutionDispatcher({Language.CPP: scripted([])})
    with pytest.raises(UnsupportedLanguage):
        await dispatcher.execute(_request(language=Language.PYTHON), lambda chunk: None)
    with pytest.raises(UnsupportedLanguage):
        dispatcher.executor_for("rust")


@pytest.mark.asyncio
async def test_stdin_is_forwarded(scripted):
    executor = scripted(["ok"])
    dispatcher = ExecutionDispatcher({Language.CPP: executor})
    await collect(dispatcher, _request(stdin="1 2\n"))
    assert executor.calls == [("int main(){}", "1 2\n")]


@pytest.mark.parametrize(
    "backend, expected",
    [("local", ToolchainExecutor), ("remote", RemoteExecutor), ("interpreter", InterpreterExecutor)],
)
def test_build_dispatcher_selects_cpp_backend(tmp_path, backend, expected):
    config = Config.for_directory(str(tmp_path), cpp_backend=backend, cpp_interpreter_module="cpp_engine")
    dispatcher = build_dispatcher(config)
    assert isinstance(dispatcher.executor_for(Language.CPP), expected)
    assert isinstance(dispatcher.executor_for(Language.PYTHON), PythonExecutor)

"""
Executor that delegates to a remote execution API.

The request and response bodies follow the Piston ``/api/v2/piston/execute``
format::

    POST {"language": "cpp", "version": "10.2.0",
          "files": [{"content": "..."}], "stdin": "..."}

    200  {"compile": {...}, "run": {"stdout": "...", "stderr": "...",
                                    "code": 0, "signal": null, "output": "..."}}
    200  {"message": "runtime is unknown"}

A single request is made per run; failures are reported, never retried.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

import httpx

from ..config import PISTON_URL
from .base import (
    BackendHTTPError,
    BackendProtocolError,
    BackendRejected,
    BackendUnavailable,
    CodeExecutor,
    ExecutionOutcome,
    OutputSink,
    emit_streams,
)

logger = logging.getLogger(__name__)


class RemoteExecutor(CodeExecutor):
    """Run snippets through a Piston-compatible HTTP service."""

    def __init__(
        self,
        url: str = PISTON_URL,
        language: str = "cpp",
        version: str = "10.2.0",
        timeout: Optional[float] = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        super().__init__()
        self.url = url
        self.language = language
        self.version = version
        self.request_timeout = timeout
        self._transport = transport

    def build_payload(self, code: str, stdin: Optional[str]) -> dict[str, Any]:
        return {
            "language": self.language,
            "version": self.version,
            "files": [{"content": code}],
            "stdin": stdin or "",
        }

    async def run(
        self,
        code: str,
        stdin: Optional[str],
        on_output: OutputSink,
    ) -> ExecutionOutcome:
        payload = self.build_payload(code, stdin)
        try:
            async with httpx.AsyncClient(
                timeout=self.request_timeout, transport=self._transport
            ) as client:
                response = await client.post(self.url, json=payload)
        except httpx.TimeoutException:
            logger.warning("Remote execution timed out after %s s", self.request_timeout)
            outcome = ExecutionOutcome(
                stdout="",
                stderr=f"Remote execution timed out after {self.request_timeout} seconds.",
                exit_code=-1,
                timed_out=True,
            )
            emit_streams(outcome, on_output)
            return outcome
        except httpx.HTTPError as exc:
            raise BackendUnavailable(f"Execution failed: {exc}") from exc

        if not response.is_success:
            raise BackendHTTPError(response.status_code, response.reason_phrase)

        try:
            body = response.json()
        except ValueError:
            raise BackendProtocolError(response.text)
        if not isinstance(body, dict):
            raise BackendProtocolError(response.text)

        if body.get("message"):
            raise BackendRejected(str(body["message"]))

        compile_stage = body.get("compile")
        if isinstance(compile_stage, dict) and compile_stage.get("code") not in (None, 0):
            diagnostics = compile_stage.get("stderr") or compile_stage.get("output") or ""
            on_output(f"[Compile Error]\n{diagnostics}\n")
            return ExecutionOutcome(stdout="", stderr=diagnostics, exit_code=int(compile_stage["code"]))

        run = body.get("run")
        if not isinstance(run, dict):
            raise BackendProtocolError(response.text)

        code_value = run.get("code")
        if code_value is None:
            # Killed by a signal; Piston reports the signal name and no code.
            exit_code = -1 if run.get("signal") else 0
        else:
            exit_code = int(code_value)

        outcome = ExecutionOutcome(
            stdout=run.get("stdout") or "",
            stderr=run.get("stderr") or "",
            exit_code=exit_code,
        )
        emit_streams(outcome, on_output)
        return outcome

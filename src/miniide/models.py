"""Pydantic models for request and response bodies.

Field names follow the JSON the browser client already sends and expects
(``code`` for file content, camelCase in the execution responses).
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class HealthResponse(BaseModel):
    status: str
    version: str


class Credentials(BaseModel):
    """Request body for register and login."""

    username: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)


class AuthResponse(BaseModel):
    success: bool = True
    token: str
    username: str
    message: Optional[str] = None


class TokenRequest(BaseModel):
    token: Optional[str] = None


class SuccessResponse(BaseModel):
    success: bool = True


class VerifyResponse(BaseModel):
    valid: bool


class SaveRequest(BaseModel):
    """Request body for saving a file."""

    filename: Optional[str] = None
    code: Optional[str] = None
    language: Optional[str] = Field(default=None, description="Editor language; informational only.")
    token: Optional[str] = None


class SaveResponse(BaseModel):
    success: bool = True
    message: str
    path: str


class FileInfo(BaseModel):
    name: str
    size: int
    modified: datetime


class FileContent(BaseModel):
    name: str
    code: str


class CompileRequest(BaseModel):
    """Request body for running C++ code."""

    code: str = Field(..., description="Source code to compile and run.")
    stdin: Optional[str] = Field(default="", description="Standard input to pass to the program.")


class ExecuteRequest(CompileRequest):
    """Request body for running code in any supported language."""

    language: str = Field(..., description="Language of the snippet: 'python' or 'cpp'.")


class RunResult(BaseModel):
    """Mirror of the remote API's ``run`` object."""

    stdout: str
    stderr: str
    code: int
    output: str


class ExecuteResponse(BaseModel):
    """Response body for code execution."""

    model_config = ConfigDict(populate_by_name=True)

    success: bool
    stdout: str
    stderr: str
    code: int
    timed_out: bool = Field(alias="timedOut")
    duration_ms: int = Field(alias="durationMs")
    output: str
    error: Optional[str] = None
    run: RunResult

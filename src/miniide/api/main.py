"""
FastAPI application for the mini IDE backend.

This module wires the session store, the file store and the execution
dispatcher into JSON endpoints under ``/api``.  Every domain error is
rendered as ``{"success": false, "message": ...}`` with the status code
from ``ERROR_STATUS``; execution backend failures are not errors at this
level and come back as a normal response with ``success`` set to false.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Optional

from fastapi import FastAPI, Header, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .. import __version__
from ..config import Config
from ..errors import (
    InvalidCredentials,
    InvalidExtension,
    InvalidFilename,
    MiniIDEError,
    MissingFields,
    PersistenceFailure,
    RateLimited,
    StoredFileNotFound,
    TokenRequired,
    UserExists,
)
from ..executor import (
    ExecutionDispatcher,
    ExecutionOutcome,
    ExecutionRequest,
    Language,
    UnsupportedLanguage,
    build_dispatcher,
    collect,
)
from ..models import (
    AuthResponse,
    CompileRequest,
    Credentials,
    ExecuteRequest,
    ExecuteResponse,
    FileContent,
    FileInfo,
    HealthResponse,
    RunResult,
    SaveRequest,
    SaveResponse,
    SuccessResponse,
    TokenRequest,
    VerifyResponse,
)
from ..sessions import LoginRateLimiter, SessionStore
from ..storage import FileStore


logger = logging.getLogger("miniide")

if not logger.handlers:
    handler = logging.StreamHandler()
    formatter = logging.Formatter("[miniide] %(levelname)s - %(message)s")
    handler.setFormatter(formatter)
    logger.addHandler(handler)

logger.setLevel(logging.INFO)


ERROR_STATUS = {
    UserExists: 409,
    InvalidCredentials: 401,
    TokenRequired: 401,
    RateLimited: 429,
    PersistenceFailure: 500,
    MissingFields: 400,
    InvalidFilename: 400,
    InvalidExtension: 400,
    StoredFileNotFound: 404,
    UnsupportedLanguage: 400,
}


def status_for(exc: MiniIDEError) -> int:
    for cls in type(exc).__mro__:
        if cls in ERROR_STATUS:
            return ERROR_STATUS[cls]
    return 500


def _bearer_token(authorization: Optional[str]) -> Optional[str]:
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer":
        return None
    return token.strip() or None


def _execute_response(outcome: ExecutionOutcome, chunks: List[str]) -> ExecuteResponse:
    output = "".join(chunks)
    return ExecuteResponse(
        success=outcome.backend_error is None and outcome.exit_code == 0 and not outcome.timed_out,
        stdout=outcome.stdout,
        stderr=outcome.stderr,
        code=outcome.exit_code,
        timed_out=outcome.timed_out,
        duration_ms=outcome.duration_ms,
        output=output,
        error=outcome.backend_error,
        run=RunResult(stdout=outcome.stdout, stderr=outcome.stderr, code=outcome.exit_code, output=output),
    )


def create_app(
    config: Optional[Config] = None,
    dispatcher: Optional[ExecutionDispatcher] = None,
) -> FastAPI:
    """Build the application for ``config`` (loaded from the environment by default)."""
    config = config or Config.from_env()

    logger.info(
        "Loaded config: storage_path=%s, users_file=%s, cpp_backend=%s, rate_limit=%s/%ss",
        config.storage_path,
        config.users_file,
        config.cpp_backend,
        config.login_rate_max,
        config.login_rate_window,
    )

    sessions = SessionStore(
        users_file=config.users_file,
        rate_limiter=LoginRateLimiter(config.login_rate_max, config.login_rate_window),
        bcrypt_rounds=config.bcrypt_rounds,
    )
    files = FileStore(Path(config.storage_path), sessions)
    dispatcher = dispatcher or build_dispatcher(config)

    app = FastAPI(title="Mini IDE Service", version=__version__)
    app.state.config = config
    app.state.sessions = sessions
    app.state.files = files
    app.state.dispatcher = dispatcher

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.allowed_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        """Log every request and the status it produced."""
        client = getattr(request.client, "host", "unknown")
        logger.info("Incoming request: %s %s from %s", request.method, request.url.path, client)
        response = await call_next(request)
        logger.info("Response: %s %s -> %s", request.method, request.url.path, response.status_code)
        return response

    @app.exception_handler(MiniIDEError)
    async def handle_domain_error(request: Request, exc: MiniIDEError) -> JSONResponse:
        status = status_for(exc)
        if status >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc)
        headers = None
        if isinstance(exc, RateLimited):
            headers = {"Retry-After": str(int(exc.retry_after) + 1)}
        return JSONResponse(
            status_code=status,
            content={"success": False, "message": str(exc)},
            headers=headers,
        )

    @app.exception_handler(RequestValidationError)
    async def handle_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
        problems = []
        for error in exc.errors():
            location = ".".join(str(part) for part in error.get("loc", ()) if part != "body")
            problems.append(f"{location}: {error.get('msg')}" if location else str(error.get("msg")))
        return JSONResponse(
            status_code=400,
            content={"success": False, "message": "; ".join(problems) or "Invalid request"},
        )

    @app.get("/api/health", response_model=HealthResponse)
    async def health() -> HealthResponse:
        """Return a simple health check response."""
        return HealthResponse(status="ok", version=__version__)

    @app.post("/api/register", response_model=AuthResponse)
    def register(body: Credentials) -> AuthResponse:
        session = sessions.register(body.username, body.password)
        return AuthResponse(token=session.token, username=session.username, message="Registration successful")

    @app.post("/api/login", response_model=AuthResponse, response_model_exclude_none=True)
    def login(body: Credentials, request: Request) -> AuthResponse:
        client = getattr(request.client, "host", None) or "unknown"
        session = sessions.login(body.username, body.password, client)
        return AuthResponse(token=session.token, username=session.username)

    @app.post("/api/logout", response_model=SuccessResponse)
    async def logout(body: Optional[TokenRequest] = None) -> SuccessResponse:
        sessions.logout(body.token if body else None)
        return SuccessResponse()

    @app.post("/api/verify", response_model=VerifyResponse)
    async def verify(body: TokenRequest) -> VerifyResponse:
        return VerifyResponse(valid=sessions.is_valid(body.token))

    @app.post("/api/save", response_model=SaveResponse)
    async def save_file(body: SaveRequest) -> SaveResponse:
        stored = files.save(body.filename, body.code, body.token)
        return SaveResponse(
            message=f'File "{stored.name}" saved',
            path=str(stored.path),
        )

    @app.get("/api/files", response_model=List[FileInfo])
    async def list_files() -> List[FileInfo]:
        return [FileInfo(name=f.name, size=f.size, modified=f.modified) for f in files.list()]

    @app.get("/api/file/{filename:path}", response_model=FileContent)
    async def read_file(filename: str) -> FileContent:
        stored = files.read(filename)
        return FileContent(name=stored.name, code=stored.content or "")

    @app.delete("/api/file/{filename:path}", response_model=SuccessResponse)
    async def delete_file(filename: str, authorization: Optional[str] = Header(default=None)) -> SuccessResponse:
        files.delete(filename, _bearer_token(authorization))
        return SuccessResponse()

    @app.post("/api/compile/cpp", response_model=ExecuteResponse)
    async def compile_cpp(body: CompileRequest) -> ExecuteResponse:
        request = ExecutionRequest(Language.CPP, body.code, body.stdin)
        outcome, chunks = await collect(dispatcher, request)
        return _execute_response(outcome, chunks)

    @app.post("/api/execute", response_model=ExecuteResponse)
    async def execute(body: ExecuteRequest) -> ExecuteResponse:
        try:
            language = Language(body.language.lower())
        except ValueError:
            raise UnsupportedLanguage(body.language)
        request = ExecutionRequest(language, body.code, body.stdin)
        outcome, chunks = await collect(dispatcher, request)
        return _execute_response(outcome, chunks)

    return app


app = create_app()

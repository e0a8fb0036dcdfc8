"""Configuration loader.

The service reads its configuration from environment variables so the same
package can run on a developer machine, in docker-compose or behind a
reverse proxy.  Reasonable defaults are provided so that local development
works out of the box.

Environment variables:

``PORT``
    The port on which the API server listens.  Defaults to 3000.

``MINIIDE_DATA_DIR``
    Root directory for runtime data.  Defaults to ``/tmp/miniide``.  The
    saved-files directory, the users document and the build directory live
    underneath it unless overridden individually.

``MINIIDE_STORAGE_PATH``
    Directory holding saved source files.  Defaults to ``<data>/saved-files``.

``MINIIDE_USERS_FILE`` / ``MINIIDE_PERSIST_USERS``
    JSON document mapping usernames to password hashes, and whether it is
    written at all.  With persistence disabled accounts live only in memory.

``MINIIDE_LOGIN_RATE_WINDOW`` / ``MINIIDE_LOGIN_RATE_MAX``
    Sliding window (seconds) and number of failed logins tolerated per
    client and username inside it.  Defaults are 60 and 5.

``MINIIDE_ALLOWED_ORIGINS``
    Comma-separated list of origins allowed to call the API from a browser.
    Defaults to ``*``.

``MINIIDE_CPP_BACKEND``
    Which C++ backend to run: ``local`` (shell out to ``MINIIDE_CXX``),
    ``remote`` (POST to ``MINIIDE_REMOTE_URL``) or ``interpreter`` (load the
    module named by ``MINIIDE_CPP_INTERPRETER_MODULE``).  Defaults to
    ``local``.

``MINIIDE_EXECUTION_TIMEOUT_MS`` / ``MINIIDE_COMPILE_TIMEOUT_MS``
    Wall-clock bounds for the local backend.  Defaults are 5000 and 10000.

``MINIIDE_REMOTE_TIMEOUT``
    Request timeout in seconds for the remote backend; ``0`` disables it.

``MINIIDE_PYTHON_TIMEOUT_MS``
    Wall-clock bound for a Python snippet's child process.  Defaults to
    10000.

``MINIIDE_INTERPRETER_MAX_STEPS`` / ``MINIIDE_INTERPRETER_READY_TIMEOUT_MS``
    Step ceiling for Python snippets and interpreter engines, and how long
    to wait for a C++ interpreter engine to load.

``MINIIDE_BCRYPT_ROUNDS``
    Work factor for password hashing.  Defaults to 12.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import List

CPP_BACKENDS = {"local", "remote", "interpreter"}

PISTON_URL = "https://emkc.org/api/v2/piston/execute"


def _parse_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    return value.lower() in {"1", "true", "t", "yes", "y"}


def _int_var(name: str, default: int) -> int:
    val = os.getenv(name)
    if val is None:
        return default
    try:
        return int(val)
    except ValueError:
        raise ValueError(f"Invalid integer for {name}: {val}")


def _float_var(name: str, default: float) -> float:
    val = os.getenv(name)
    if val is None:
        return default
    try:
        return float(val)
    except ValueError:
        raise ValueError(f"Invalid number for {name}: {val}")


@dataclass
class Config:
    """Centralised configuration object."""

    data_dir: str = "/tmp/miniide"
    storage_path: str = "/tmp/miniide/saved-files"
    users_file: str | None = "/tmp/miniide/users.json"
    work_dir: str = "/tmp/miniide/build"
    login_rate_window: float = 60.0
    login_rate_max: int = 5
    allowed_origins: List[str] = field(default_factory=lambda: ["*"])
    cpp_backend: str = "local"
    cxx: str = "g++"
    execution_timeout_ms: int = 5000
    compile_timeout_ms: int = 10000
    python_timeout_ms: int = 10000
    remote_url: str = PISTON_URL
    remote_cpp_version: str = "10.2.0"
    remote_timeout: float | None = 30.0
    interpreter_max_steps: int = 10_000_000
    interpreter_ready_timeout_ms: int = 4000
    cpp_interpreter_module: str = ""
    bcrypt_rounds: int = 12
    port: int = 3000

    @classmethod
    def for_directory(cls, data_dir: str, **overrides) -> "Config":
        """Build a config whose paths all live under ``data_dir``."""
        values = dict(
            data_dir=data_dir,
            storage_path=os.path.join(data_dir, "saved-files"),
            users_file=os.path.join(data_dir, "users.json"),
            work_dir=os.path.join(data_dir, "build"),
        )
        values.update(overrides)
        return cls(**values)

    @classmethod
    def load(cls) -> "Config":
        data_dir = os.getenv("MINIIDE_DATA_DIR", "/tmp/miniide")
        storage_path = os.getenv("MINIIDE_STORAGE_PATH", os.path.join(data_dir, "saved-files"))
        work_dir = os.getenv("MINIIDE_WORK_DIR", os.path.join(data_dir, "build"))

        users_file: str | None = os.getenv("MINIIDE_USERS_FILE", os.path.join(data_dir, "users.json"))
        if not _parse_bool(os.getenv("MINIIDE_PERSIST_USERS"), True):
            users_file = None

        cpp_backend = os.getenv("MINIIDE_CPP_BACKEND", "local").lower()
        if cpp_backend not in CPP_BACKENDS:
            raise ValueError(
                f"Invalid MINIIDE_CPP_BACKEND: {cpp_backend}. Use one of {sorted(CPP_BACKENDS)}."
            )
        cpp_interpreter_module = os.getenv("MINIIDE_CPP_INTERPRETER_MODULE", "")
        if cpp_backend == "interpreter" and not cpp_interpreter_module:
            raise RuntimeError(
                "MINIIDE_CPP_INTERPRETER_MODULE must be set when using the interpreter C++ backend"
            )

        origins_env = os.getenv("MINIIDE_ALLOWED_ORIGINS", "*")
        allowed_origins = [o.strip() for o in origins_env.split(",") if o.strip()]

        remote_timeout: float | None = _float_var("MINIIDE_REMOTE_TIMEOUT", 30.0)
        if remote_timeout <= 0:
            remote_timeout = None

        return cls(
            data_dir=data_dir,
            storage_path=storage_path,
            users_file=users_file,
            work_dir=work_dir,
            login_rate_window=_float_var("MINIIDE_LOGIN_RATE_WINDOW", 60.0),
            login_rate_max=_int_var("MINIIDE_LOGIN_RATE_MAX", 5),
            allowed_origins=allowed_origins,
            cpp_backend=cpp_backend,
            cxx=os.getenv("MINIIDE_CXX", "g++"),
            execution_timeout_ms=_int_var("MINIIDE_EXECUTION_TIMEOUT_MS", 5000),
            compile_timeout_ms=_int_var("MINIIDE_COMPILE_TIMEOUT_MS", 10000),
            python_timeout_ms=_int_var("MINIIDE_PYTHON_TIMEOUT_MS", 10000),
            remote_url=os.getenv("MINIIDE_REMOTE_URL", PISTON_URL),
            remote_cpp_version=os.getenv("MINIIDE_REMOTE_CPP_VERSION", "10.2.0"),
            remote_timeout=remote_timeout,
            interpreter_max_steps=_int_var("MINIIDE_INTERPRETER_MAX_STEPS", 10_000_000),
            interpreter_ready_timeout_ms=_int_var("MINIIDE_INTERPRETER_READY_TIMEOUT_MS", 4000),
            cpp_interpreter_module=cpp_interpreter_module,
            bcrypt_rounds=_int_var("MINIIDE_BCRYPT_ROUNDS", 12),
            port=_int_var("PORT", 3000),
        )

    @classmethod
    def from_env(cls) -> "Config":
        """
        Alternate constructor used by the API to load configuration.

        This wrapper calls :meth:`load` to construct the configuration.
        It exists to provide a more intuitive name when consumed in
        application code.
        """
        return cls.load()

"""Domain errors shared by the session store, file store and executors.

Each family has its own base class so the HTTP layer can translate them to
status codes in one place.  The modules that raise these errors know nothing
about HTTP.
"""

from __future__ import annotations


class MiniIDEError(Exception):
    """Base class for every error raised by the service."""


# ---------------------------------------------------------------------------
# Authentication / session errors


class AuthError(MiniIDEError):
    pass


class UserExists(AuthError):
    def __init__(self, username: str) -> None:
        super().__init__(f"User '{username}' already exists")
        self.username = username


class InvalidCredentials(AuthError):
    def __init__(self) -> None:
        super().__init__("Invalid username or password")


class RateLimited(AuthError):
    def __init__(self, retry_after: float) -> None:
        super().__init__(
            f"Too many failed login attempts; try again in {int(retry_after) + 1} seconds"
        )
        self.retry_after = retry_after


class TokenRequired(AuthError):
    def __init__(self) -> None:
        super().__init__("Login required")


class PersistenceFailure(AuthError):
    pass


# ---------------------------------------------------------------------------
# File store errors


class StorageError(MiniIDEError):
    pass


class MissingFields(StorageError):
    def __init__(self) -> None:
        super().__init__("Filename and code are required")


class InvalidFilename(StorageError):
    def __init__(self, filename: str) -> None:
        super().__init__(f"Invalid filename: {filename!r}")
        self.filename = filename


class InvalidExtension(StorageError):
    def __init__(self, filename: str) -> None:
        super().__init__(f"Unsupported file type: {filename!r}")
        self.filename = filename


class StoredFileNotFound(StorageError):
    def __init__(self, filename: str) -> None:
        super().__init__(f"File not found: {filename}")
        self.filename = filename

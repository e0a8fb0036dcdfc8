"""Accounts, session tokens and login rate limiting.

The store keeps three maps in memory: username to password hash, the set of
valid tokens, and recent failed logins per ``(client, username)``.  A token
is valid exactly while it is in the set; tokens have no expiry and are
revoked by logout or by restarting the process.

When a users file is configured, the username to hash map is written to it
as a single JSON object after every registration and loaded back on
startup.  Tokens are never persisted.

All three maps are guarded by one lock, so the store can be shared between
request handlers running in a thread pool.
"""

from __future__ import annotations

import json
import logging
import os
import secrets
import threading
import time
from collections import deque
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Deque, Dict, Optional, Set, Tuple

import bcrypt

from .errors import InvalidCredentials, PersistenceFailure, RateLimited, TokenRequired, UserExists

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Session:
    token: str
    username: str


class LoginRateLimiter:
    """Sliding-window counter of failed logins per ``(client, username)``."""

    def __init__(
        self,
        max_attempts: int = 5,
        window_seconds: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.max_attempts = max_attempts
        self.window_seconds = window_seconds
        self._clock = clock
        self._attempts: Dict[Tuple[str, str], Deque[float]] = {}

    def _prune(self, key: Tuple[str, str], now: float) -> Deque[float]:
        attempts = self._attempts.get(key)
        if attempts is None:
            return deque()
        cutoff = now - self.window_seconds
        while attempts and attempts[0] <= cutoff:
            attempts.popleft()
        if not attempts:
            del self._attempts[key]
        return attempts

    def retry_after(self, client: str, username: str) -> Optional[float]:
        """Seconds until another attempt is allowed, or None if not limited."""
        now = self._clock()
        attempts = self._prune((client, username), now)
        if len(attempts) < self.max_attempts:
            return None
        return max(0.0, attempts[0] + self.window_seconds - now)

    def is_limited(self, client: str, username: str) -> bool:
        return self.retry_after(client, username) is not None

    def record_failure(self, client: str, username: str) -> None:
        now = self._clock()
        self._prune((client, username), now)
        self._attempts.setdefault((client, username), deque()).append(now)

    def reset(self, client: str, username: str) -> None:
        self._attempts.pop((client, username), None)


class SessionStore:
    """Register users, issue and revoke tokens."""

    def __init__(
        self,
        users_file: str | os.PathLike | None = None,
        rate_limiter: Optional[LoginRateLimiter] = None,
        bcrypt_rounds: int = 12,
    ) -> None:
        self.users_file = Path(users_file) if users_file else None
        self.rate_limiter = rate_limiter or LoginRateLimiter()
        self.bcrypt_rounds = bcrypt_rounds
        self._users: Dict[str, str] = {}
        self._tokens: Set[str] = set()
        self._lock = threading.Lock()
        if self.users_file is not None:
            self._users = self._load_users(self.users_file)
            logger.info("Loaded %d user(s) from %s", len(self._users), self.users_file)

    @staticmethod
    def _load_users(path: Path) -> Dict[str, str]:
        if not path.exists():
            return {}
        data = json.loads(path.read_text(encoding="utf-8"))
        if not isinstance(data, dict):
            raise ValueError(f"Users file {path} must contain a JSON object")
        return {str(name): str(hashed) for name, hashed in data.items()}

    def _persist(self) -> None:
        if self.users_file is None:
            return
        self.users_file.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.users_file.with_name(self.users_file.name + ".tmp")
        tmp_path.write_text(json.dumps(self._users, indent=2, sort_keys=True), encoding="utf-8")
        os.replace(tmp_path, self.users_file)

    def _hash(self, password: str) -> str:
        return bcrypt.hashpw(password.encode(), bcrypt.gensalt(rounds=self.bcrypt_rounds)).decode()

    def _issue_token(self, username: str) -> Session:
        token = secrets.token_urlsafe(32)
        while token in self._tokens:
            token = secrets.token_urlsafe(32)
        self._tokens.add(token)
        return Session(token=token, username=username)

    def register(self, username: str, password: str) -> Session:
        """Create an account and log it in.

        Raises ``UserExists`` for a taken username and ``PersistenceFailure``
        when the users file cannot be written; in that case the account is
        not created.
        """
        hashed = self._hash(password)
        with self._lock:
            if username in self._users:
                raise UserExists(username)
            self._users[username] = hashed
            try:
                self._persist()
            except OSError as exc:
                del self._users[username]
                logger.error("Failed to persist users file %s: %s", self.users_file, exc)
                raise PersistenceFailure(f"Registration failed: {exc}") from exc
            session = self._issue_token(username)
        logger.info("New user registered: %s", username)
        return session

    def login(self, username: str, password: str, client: str) -> Session:
        with self._lock:
            retry_after = self.rate_limiter.retry_after(client, username)
            if retry_after is not None:
                logger.warning("Login rate limited for %s from %s", username, client)
                raise RateLimited(retry_after)
            hashed = self._users.get(username)

        if hashed is None or not bcrypt.checkpw(password.encode(), hashed.encode()):
            with self._lock:
                self.rate_limiter.record_failure(client, username)
            logger.info("Failed login for %s from %s", username, client)
            raise InvalidCredentials()

        with self._lock:
            self.rate_limiter.reset(client, username)
            session = self._issue_token(username)
        logger.info("User logged in: %s", username)
        return session

    def logout(self, token: Optional[str]) -> None:
        with self._lock:
            if token:
                self._tokens.discard(token)

    def is_valid(self, token: Optional[str]) -> bool:
        if not token:
            return False
        with self._lock:
            return token in self._tokens

    def require(self, token: Optional[str]) -> None:
        if not self.is_valid(token):
            raise TokenRequired()

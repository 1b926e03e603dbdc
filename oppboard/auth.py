"""Admin login against the configured credentials.

Successful logins receive a server-signed token carrying the username and
an expiry. Every admin request presents the token and is re-verified, so no
client-held flag is trusted on its own.
"""

from __future__ import annotations

import base64
import hashlib
import hmac
import json
import logging
import secrets
import time
from collections.abc import Callable
from dataclasses import dataclass

from .admins import AdminRegistry
from .config import Config, ConfigError
from .errors import AuthorizationError, InvalidCredentialsError, ValidationError
from .metrics import ADMIN_LOGINS

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class AdminSession:
    username: str
    token: str
    expires_at: int


def _b64encode(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode("ascii")


def _b64decode(text: str) -> bytes:
    padding = "=" * (-len(text) % 4)
    return base64.urlsafe_b64decode(text + padding)


class AdminAuthenticator:
    """Issue and verify admin session tokens."""

    def __init__(
        self,
        config: Config,
        *,
        registry: AdminRegistry | None = None,
        time_fn: Callable[[], float] = time.time,
    ) -> None:
        self._config = config
        self._registry = registry
        self._time_fn = time_fn
        if config.session_secret:
            self._secret = config.session_secret.encode("utf-8")
        else:
            logger.info("OPPBOARD_SESSION_SECRET not set; sessions end when the process exits")
            self._secret = secrets.token_bytes(32)

    def _now_ms(self) -> int:
        return int(self._time_fn() * 1000)

    def _sign(self, payload: str) -> str:
        return hmac.new(self._secret, payload.encode("utf-8"), hashlib.sha256).hexdigest()

    def login(self, username: str, password: str) -> AdminSession:
        if not username or not password:
            raise ValidationError("Username and password are required")
        if not (self._config.admin_username and self._config.admin_password):
            raise ConfigError("Admin credentials are not configured")

        user_ok = hmac.compare_digest(username.encode(), self._config.admin_username.encode())
        password_ok = hmac.compare_digest(password.encode(), self._config.admin_password.encode())
        if not (user_ok and password_ok):
            ADMIN_LOGINS.labels(outcome="rejected").inc()
            logger.warning("Rejected admin login for %s", username)
            raise InvalidCredentialsError("Invalid credentials")

        expires_at = self._now_ms() + self._config.session_ttl_seconds * 1000
        payload = _b64encode(
            json.dumps({"sub": username, "exp": expires_at}, separators=(",", ":")).encode()
        )
        token = f"{payload}.{self._sign(payload)}"
        if self._registry is not None:
            self._registry.record_login(username)
        ADMIN_LOGINS.labels(outcome="accepted").inc()
        logger.info("Admin %s logged in", username)
        return AdminSession(username=username, token=token, expires_at=expires_at)

    def verify(self, token: str) -> str:
        """Return the username carried by ``token`` or raise :class:`AuthorizationError`."""

        payload, _, signature = (token or "").partition(".")
        if not payload or not signature:
            raise AuthorizationError("Malformed session token")
        if not hmac.compare_digest(signature.encode(), self._sign(payload).encode()):
            raise AuthorizationError("Invalid session token")
        try:
            claims = json.loads(_b64decode(payload))
        except (ValueError, json.JSONDecodeError) as exc:
            raise AuthorizationError("Invalid session token") from exc
        if int(claims.get("exp", 0)) <= self._now_ms():
            raise AuthorizationError("Session expired")
        return str(claims["sub"])

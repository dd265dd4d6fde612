"""Credentials and bearer tokens for the status API."""

import hmac
from datetime import datetime, timedelta, timezone
from typing import Optional

from jose import JWTError, jwt
from passlib.context import CryptContext

from .config import Settings

ALGORITHM = "HS256"
TOKEN_LIFETIME = timedelta(hours=24)
BCRYPT_PREFIXES = ("$2a$", "$2b$", "$2y$")

password_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


def hash_password(password: str) -> str:
    return password_context.hash(password)


class StatusAuth:
    """Single-account login for the status API.

    DASHBOARD_PASSWORD may be plain text or a bcrypt hash produced by
    scripts/hash_dashboard_password.py.
    """

    def __init__(self, settings: Settings, *, lifetime: timedelta = TOKEN_LIFETIME):
        self.username = settings.dashboard_username
        self._password = settings.dashboard_password
        self._secret = settings.dashboard_secret_key
        self.lifetime = lifetime

    @property
    def enabled(self) -> bool:
        return bool(self.username and self._password)

    def check_credentials(self, username: str, password: str) -> bool:
        if not self.enabled or not hmac.compare_digest(username, self.username):
            return False
        if self._password.startswith(BCRYPT_PREFIXES):
            return password_context.verify(password, self._password)
        return hmac.compare_digest(password, self._password)

    def issue_token(self, username: str, lifetime: Optional[timedelta] = None) -> str:
        expires = datetime.now(timezone.utc) + (lifetime if lifetime is not None else self.lifetime)
        return jwt.encode({"sub": username, "exp": expires}, self._secret, algorithm=ALGORITHM)

    def decode(self, token: str) -> Optional[dict]:
        """Return the token claims, or None if it is forged or expired."""
        try:
            return jwt.decode(token, self._secret, algorithms=[ALGORITHM])
        except JWTError:
            return None

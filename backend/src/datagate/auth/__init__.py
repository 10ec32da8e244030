"""Authentication: password hashing, JWT sessions and the request middleware."""

from datagate.auth.jwt_service import (
    InvalidTokenError,
    JWTError,
    JWTService,
    TokenExpiredError,
)
from datagate.auth.middleware import SessionMiddleware, get_session
from datagate.auth.password import HashedPassword, PasswordService, password_hooks

__all__ = [
    "HashedPassword",
    "InvalidTokenError",
    "JWTError",
    "JWTService",
    "PasswordService",
    "SessionMiddleware",
    "TokenExpiredError",
    "get_session",
    "password_hooks",
]

"""JWT issue and validation, producing the Session a caller acts as."""

import time
from collections.abc import Mapping
from typing import Any

import jwt

from datagate.access.types import Session

# Claims managed by the service; never copied into the Session
_RESERVED_CLAIMS = ("iat", "exp", "type")


class JWTError(Exception):
    """Base exception for JWT-related errors."""

    pass


class TokenExpiredError(JWTError):
    """Raised when a token has expired."""

    pass


class InvalidTokenError(JWTError):
    """Raised when a token is invalid or malformed."""

    pass


class JWTService:
    """Signs session claims into access tokens and reads them back.

    Uses HS256 with a shared secret by default. Every claim other than
    iat/exp/type becomes a Session key, so rules can read anything the
    issuer put in the token.
    """

    ACCESS_TOKEN_TTL = 60 * 60  # 1 hour

    def __init__(self, secret_key: str, algorithm: str = "HS256", ttl: int | None = None):
        """Initialize the JWT service.

        Args:
            secret_key: Secret key for signing tokens (should be at least 32 chars)
            algorithm: JWT algorithm (default HS256)
            ttl: Access token lifetime in seconds
        """
        self._secret_key = secret_key
        self._algorithm = algorithm
        self._ttl = ttl or self.ACCESS_TOKEN_TTL

    def issue(self, session: Mapping[str, Any], ttl: int | None = None) -> str:
        """Issue an access token carrying the given session data.

        Args:
            session: Session keys to embed; userId is mirrored into 'sub'
            ttl: Lifetime override in seconds

        Returns:
            Encoded JWT string
        """
        now = int(time.time())
        claims = {k: v for k, v in dict(session).items() if k not in _RESERVED_CLAIMS}
        if "userId" in claims and "sub" not in claims:
            claims["sub"] = str(claims["userId"])
        claims.update({
            "iat": now,
            "exp": now + (ttl or self._ttl),
            "type": "access",
        })
        return jwt.encode(claims, self._secret_key, algorithm=self._algorithm)

    def decode(self, token: str) -> Session:
        """Decode and validate an access token into a Session.

        Raises:
            TokenExpiredError: If the token has expired
            InvalidTokenError: If the token is invalid, malformed or not an access token
        """
        try:
            payload = jwt.decode(
                token,
                self._secret_key,
                algorithms=[self._algorithm],
            )
        except jwt.ExpiredSignatureError:
            raise TokenExpiredError("Token has expired")
        except jwt.InvalidTokenError as e:
            raise InvalidTokenError(f"Invalid token: {e}")

        if payload.get("type", "access") != "access":
            raise InvalidTokenError("Not an access token")

        data = {k: v for k, v in payload.items() if k not in _RESERVED_CLAIMS}
        if "userId" not in data and data.get("sub"):
            data["userId"] = data["sub"]
        return Session(data)

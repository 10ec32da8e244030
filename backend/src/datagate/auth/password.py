"""Password hashing service using bcrypt.

Backs the ``password`` field type: plain text is hashed on the way in,
and stored hashes are wrapped in HashedPassword on the way out so the
hash itself never reaches a caller.
"""

from typing import Any

from passlib.context import CryptContext

from datagate.hooks.types import FieldHookContext, FieldHooks


class PasswordService:
    """Service for hashing and verifying passwords using bcrypt.

    Uses passlib's CryptContext for secure password hashing with
    automatic salt generation and configurable work factor.
    """

    def __init__(self, rounds: int = 12):
        """Initialize the password service.

        Args:
            rounds: bcrypt work factor (default 12, higher = slower + more secure)
        """
        self._context = CryptContext(
            schemes=["bcrypt"],
            deprecated="auto",
            bcrypt__rounds=rounds,
        )

    def hash(self, password: str) -> str:
        """Hash a password.

        Returns:
            Bcrypt hash string (includes algorithm, rounds, salt, and hash)
        """
        return self._context.hash(password)

    def verify(self, password: str, hash: str) -> bool:
        """Verify a password against a hash.

        Returns:
            True if password matches, False otherwise (including malformed hashes)
        """
        try:
            return self._context.verify(password, hash)
        except ValueError:
            return False

    def is_hash(self, value: str) -> bool:
        """Check whether value is already a recognised hash."""
        return self._context.identify(value) is not None

    def needs_rehash(self, hash: str) -> bool:
        """Check if a hash needs to be upgraded (e.g. rounds were increased)."""
        return self._context.needs_update(hash)


class HashedPassword:
    """Read-side value of a password field.

    Exposes whether a password is set and lets callers verify a
    candidate, without exposing the stored hash.
    """

    __slots__ = ("_hash", "_service")

    def __init__(self, hash: str | None, service: PasswordService):
        self._hash = hash
        self._service = service

    @property
    def is_set(self) -> bool:
        return bool(self._hash)

    def verify(self, password: str) -> bool:
        if not self._hash:
            return False
        return self._service.verify(password, self._hash)

    def to_dict(self) -> dict[str, Any]:
        return {"isSet": self.is_set}

    def __repr__(self) -> str:
        return f"HashedPassword(is_set={self.is_set})"


def password_hooks(service: PasswordService) -> FieldHooks:
    """Field hooks that hash on write and wrap on read."""

    def resolve_input(ctx: FieldHookContext) -> Any:
        value = ctx.value
        if isinstance(value, str) and value and not service.is_hash(value):
            return service.hash(value)
        return value

    def resolve_output(ctx: FieldHookContext) -> HashedPassword:
        return HashedPassword(ctx.value, service)

    return FieldHooks(resolve_input=resolve_input, resolve_output=resolve_output)

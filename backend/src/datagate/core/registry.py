"""Name -> function registries for functions referenced from collection YAML.

Rules and hooks are configured by name in YAML, so the functions behind
those names must be registered (usually with a decorator at import time)
before SchemaLoader runs. Each subclass keeps its own table.
"""

from collections.abc import Callable
from typing import Any, ClassVar


class NamedRegistry:
    """Class-level registry keyed by name.

    Subclasses set `kind`, used in error messages, and get a private table.
    """

    kind: ClassVar[str] = "Entry"
    _entries: ClassVar[dict[str, Callable[..., Any]]]

    def __init_subclass__(cls, **kwargs: Any):
        super().__init_subclass__(**kwargs)
        cls._entries = {}

    @classmethod
    def register(cls, name: str, fn: Callable[..., Any]) -> None:
        """Register fn under name. Re-registering a name is a no-op."""
        cls._entries.setdefault(name, fn)

    @classmethod
    def get(cls, name: str) -> Callable[..., Any]:
        """Look up a registered function.

        Raises:
            ValueError: If nothing is registered under name
        """
        try:
            return cls._entries[name]
        except KeyError:
            raise ValueError(
                f"{cls.kind} '{name}' is not registered. "
                f"Register it at application startup before loading schemas."
            ) from None

    @classmethod
    def is_registered(cls, name: str) -> bool:
        return name in cls._entries

    @classmethod
    def list_registered(cls) -> list[str]:
        return sorted(cls._entries)

    @classmethod
    def clear(cls) -> None:
        """Drop every registration. Primarily for tests."""
        cls._entries.clear()

    @classmethod
    def decorator(cls, name: str) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
        """Decorator form of register(); returns the function unchanged."""

        def register(fn: Callable[..., Any]) -> Callable[..., Any]:
            cls.register(name, fn)
            return fn

        return register

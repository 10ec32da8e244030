"""Hook registry: named hook functions for collection YAML.

Collection-level stages and field-level hooks share one table, so a
name referenced under `hooks:` or under a field's `hooks:` resolves the
same way.
"""

from collections.abc import Awaitable, Callable
from typing import Any

from datagate.core.registry import NamedRegistry
from datagate.hooks.types import HookContext, HookResult

# (HookContext) -> HookResult | dict | None, sync or async
HookFn = Callable[[HookContext], Awaitable[HookResult | dict[str, Any] | None] | HookResult | dict[str, Any] | None]


class HookRegistry(NamedRegistry):
    """Registry for hook implementations.

    Example:
        @hook("slugifyTitle")
        async def slugify_title(ctx: HookContext) -> HookResult:
            return HookResult(update={"slug": ctx.data["title"].lower()})
    """

    kind = "Hook"


def hook(name: str) -> Callable[[HookFn], HookFn]:
    """Register the decorated function as a hook named `name`."""
    return HookRegistry.decorator(name)

"""datagate operation lifecycle hook system.

Extension points around every operation:
- resolveInput: rewrite the create/update payload
- validateInput: report validation messages
- beforeOperation: side effects before the store call
- afterOperation: side effects after the store call

Usage:
    from datagate.hooks import hook, HookContext, HookResult

    @hook("slugifyTitle")
    async def slugify_title(ctx: HookContext) -> HookResult:
        return HookResult(update={"slug": ctx.data["title"].lower().replace(" ", "-")})
"""

from datagate.hooks.registry import HookRegistry, hook
from datagate.hooks.service import HookPipeline
from datagate.hooks.types import (
    FieldHookContext,
    FieldHooks,
    HookContext,
    HookDefinition,
    HookResult,
    HookSet,
    compute_changes,
)

__all__ = [
    "FieldHookContext",
    "FieldHooks",
    "HookContext",
    "HookDefinition",
    "HookPipeline",
    "HookRegistry",
    "HookResult",
    "HookSet",
    "compute_changes",
    "hook",
]

"""Access rule registry and the built-in rules.

Rules referenced by name from collection YAML resolve through
RuleRegistry; `ownedBy` entries build an owner rule with owned_by().
"""

from collections.abc import Callable
from typing import Any

from datagate.access.types import RuleArgs
from datagate.core.registry import NamedRegistry

# Rule signature: (RuleArgs) -> bool | dict, sync or async
RuleFn = Callable[[RuleArgs], Any]


class RuleRegistry(NamedRegistry):
    """Registry for access rule implementations.

    Example:
        @rule("isAuthor")
        def is_author(args: RuleArgs) -> dict | bool:
            if args.session is None:
                return False
            return {"authorId": {"equals": args.session.user_id}}
    """

    kind = "Access rule"


def rule(name: str) -> Callable[[RuleFn], RuleFn]:
    """Register the decorated function as an access rule named `name`."""
    return RuleRegistry.decorator(name)


def allow_all(args: RuleArgs) -> bool:
    return True


def deny_all(args: RuleArgs) -> bool:
    return False


def is_signed_in(args: RuleArgs) -> bool:
    return args.session is not None


def owned_by(key: str) -> RuleFn:
    """Rule factory: rows whose `key` equals the session's user id.

    Anonymous callers are denied outright.
    """

    def owner_rule(args: RuleArgs) -> dict[str, Any] | bool:
        if args.session is None or args.session.user_id is None:
            return False
        return {key: {"equals": args.session.user_id}}

    owner_rule.__name__ = f"owned_by_{key}"
    return owner_rule


def register_builtin_rules() -> None:
    """Register framework-provided rules.

    Called at application startup and by SchemaLoader.
    """
    RuleRegistry.register("allowAll", allow_all)
    RuleRegistry.register("denyAll", deny_all)
    RuleRegistry.register("isSignedIn", is_signed_in)

"""Access control: decisions, filter algebra, field masking and includes.

Usage:
    from datagate.access import rule, RuleArgs

    @rule("isAuthor")
    def is_author(args: RuleArgs):
        if args.session is None:
            return False
        return {"authorId": {"equals": args.session.user_id}}
"""

from datagate.access.types import (
    AccessContext,
    AccessDecision,
    DecisionKind,
    IncludeRequest,
    RuleArgs,
    Session,
)
from datagate.access.filters import conjoin, matches, merge, merge_filters
from datagate.access.policy import (
    check_collection_access,
    check_field_access,
    evaluate,
)
from datagate.access.fields import filter_readable, filter_writable
from datagate.access.includes import MAX_INCLUDE_DEPTH, IncludeExpander, IncludeNode
from datagate.access.registry import (
    RuleRegistry,
    allow_all,
    deny_all,
    is_signed_in,
    owned_by,
    register_builtin_rules,
    rule,
)

__all__ = [
    "AccessContext",
    "AccessDecision",
    "DecisionKind",
    "IncludeExpander",
    "IncludeNode",
    "IncludeRequest",
    "MAX_INCLUDE_DEPTH",
    "RuleArgs",
    "RuleRegistry",
    "Session",
    "allow_all",
    "check_collection_access",
    "check_field_access",
    "conjoin",
    "deny_all",
    "evaluate",
    "filter_readable",
    "filter_writable",
    "is_signed_in",
    "matches",
    "merge",
    "merge_filters",
    "owned_by",
    "register_builtin_rules",
    "rule",
]

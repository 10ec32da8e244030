"""Conversion of operation results into JSON-safe values."""

from typing import Any


def to_jsonable(value: Any) -> Any:
    """Recursively convert a result for JSON transport.

    Values exposing to_dict() (HashedPassword, errors) are replaced by
    that dict; mappings and sequences are walked.
    """
    if isinstance(value, dict):
        return {k: to_jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_jsonable(v) for v in value]
    to_dict = getattr(value, "to_dict", None)
    if callable(to_dict):
        return to_jsonable(to_dict())
    return value

"""Execution contexts and the operation orchestrator."""

from datagate.context.engine import Engine
from datagate.context.orchestrator import CollectionAccessor, Context
from datagate.context.results import (
    ErrorKind,
    OperationError,
    OperationKind,
    OperationResult,
)

__all__ = [
    "CollectionAccessor",
    "Context",
    "Engine",
    "ErrorKind",
    "OperationError",
    "OperationKind",
    "OperationResult",
]

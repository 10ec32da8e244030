"""OperationOrchestrator: the entry point for every collection operation.

Each operation sequences, in order: the singleton guard, the
collection-level access decision, the hook pipeline, field masking, the
store call and include expansion. Denial is silent: reads return None or
[], counts return 0 and writes return None, exactly as if the row did
not exist.
"""

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from datagate.access.fields import filter_readable, filter_writable
from datagate.access.filters import conjoin, matches, merge_filters
from datagate.access.includes import IncludeExpander
from datagate.access.policy import check_collection_access
from datagate.access.types import AccessDecision, Session
from datagate.context.nested import (
    RelationshipWrites,
    apply_many_writes,
    commit_single_creates,
    resolve_relationship_writes,
)
from datagate.context.results import ErrorKind, OperationError, OperationKind, OperationResult
from datagate.context.singleton import (
    get_singleton,
    guard_create,
    guard_delete,
    guard_find_many,
)
from datagate.core.types import Operation
from datagate.errors import (
    AccessDeniedError,
    FilterError,
    StructuralViolation,
    UnknownCollectionError,
    ValidationFailure,
)
from datagate.hooks.service import HookPipeline
from datagate.schema.types import CollectionSchema

if TYPE_CHECKING:
    from datagate.context.engine import Engine

logger = logging.getLogger(__name__)


class Context:
    """Per-call execution context: principal, mode and include depth.

    Contexts are immutable; sudo() and nested() derive new ones, so two
    concurrent calls never share state.
    """

    def __init__(
        self,
        engine: "Engine",
        session: Session | None = None,
        *,
        is_sudo: bool = False,
        depth: int = 0,
    ):
        self._engine = engine
        self.session = session
        self.is_sudo = is_sudo
        self.depth = depth
        self.db = CollectionAccessors(self)

    @property
    def store(self) -> Any:
        return self._engine.store

    @property
    def schemas(self) -> Any:
        return self._engine.schemas

    def sudo(self) -> "Context":
        """Elevated context: skips access rules, keeps hooks and singleton guards."""
        return Context(self._engine, self.session, is_sudo=True, depth=self.depth)

    def nested(self) -> "Context":
        """Context for work issued from hooks and nested writes."""
        return Context(self._engine, self.session, is_sudo=self.is_sudo, depth=self.depth + 1)

    async def run(
        self,
        collection: str,
        operation: OperationKind | str,
        *,
        id: str | None = None,
        data: dict[str, Any] | None = None,
        where: dict[str, Any] | None = None,
        include: dict[str, Any] | None = None,
        take: int | None = None,
        skip: int | None = None,
        order_by: dict[str, str] | list[dict[str, str]] | None = None,
    ) -> OperationResult:
        """Run one operation and report the outcome as a value.

        Validation and structural failures come back as a typed error;
        access denial comes back as an empty result. Store errors and
        exceptions raised by rules or hooks propagate.

        Raises:
            UnknownCollectionError: If collection is not loaded
            ValueError: For unknown operations or missing id/data
        """
        kind = OperationKind(operation)
        accessor = self.db[collection]

        try:
            if kind == OperationKind.FIND_UNIQUE:
                result = await accessor.find_unique(id=id, where=where, include=include)
            elif kind == OperationKind.FIND_MANY:
                result = await accessor.find_many(
                    where=where, take=take, skip=skip, order_by=order_by, include=include
                )
            elif kind == OperationKind.COUNT:
                result = await accessor.count(where=where)
            elif kind == OperationKind.CREATE:
                result = await accessor.create(_require(data, "create", "data"), include=include)
            elif kind == OperationKind.UPDATE:
                result = await accessor.update(
                    _require(id, "update", "id"), _require(data, "update", "data"), include=include
                )
            elif kind == OperationKind.DELETE:
                result = await accessor.delete(_require(id, "delete", "id"))
            else:
                result = await accessor.get(include=include)
        except ValidationFailure as e:
            return OperationResult(
                error=OperationError(ErrorKind.VALIDATION, e.errors, e.field_errors)
            )
        except StructuralViolation as e:
            return OperationResult(error=OperationError(ErrorKind.STRUCTURAL, [str(e)]))
        except AccessDeniedError as e:
            logger.debug("%s.%s denied: %s", collection, kind.value, e)
            return OperationResult()

        return OperationResult(result=result)


def _require(value: Any, operation: str, name: str) -> Any:
    if value is None:
        raise ValueError(f"{operation} requires {name}")
    return value


class CollectionAccessors:
    """Context.db: accessors by db key (ctx.db.blogPost) or name (ctx.db["BlogPost"])."""

    def __init__(self, context: Context):
        self._context = context

    def __getitem__(self, name: str) -> "CollectionAccessor":
        return CollectionAccessor(self._context, self._context.schemas.get(name))

    def __getattr__(self, name: str) -> "CollectionAccessor":
        if name.startswith("_"):
            raise AttributeError(name)
        try:
            return self[name]
        except UnknownCollectionError as e:
            raise AttributeError(str(e)) from e


class CollectionAccessor:
    """Operations on one collection for one context."""

    def __init__(self, context: Context, schema: CollectionSchema):
        self.context = context
        self.schema = schema

    @property
    def store(self) -> Any:
        return self.context.store

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def find_unique(
        self,
        id: str | None = None,
        where: dict[str, Any] | None = None,
        include: dict[str, Any] | None = None,
    ) -> dict[str, Any] | None:
        """Fetch one row by id (or unique where) within the query rule."""
        unique = conjoin({"id": id} if id is not None else None, where)
        if not unique:
            raise FilterError("findUnique needs an id or a where filter")

        merged = await self._read_filter(unique)
        if merged is None:
            return None

        pipeline = HookPipeline(self.schema, self.context)
        await pipeline.before_operation(Operation.QUERY)
        rows = self.store.find_many(self.schema, where=merged, take=1)
        row = rows[0] if rows else None
        await pipeline.after_operation(Operation.QUERY, row)

        if row is None:
            return None
        return (await self._present([row], include))[0]

    async def find_many(
        self,
        where: dict[str, Any] | None = None,
        take: int | None = None,
        skip: int | None = None,
        order_by: dict[str, str] | list[dict[str, str]] | None = None,
        include: dict[str, Any] | None = None,
    ) -> list[dict[str, Any]]:
        """Fetch rows within the query rule."""
        guard_find_many(self.schema)

        merged = await self._read_filter(where)
        if merged is None:
            return []

        pipeline = HookPipeline(self.schema, self.context)
        await pipeline.before_operation(Operation.QUERY)
        rows = self.store.find_many(
            self.schema, where=merged, take=take, skip=skip or 0, order_by=order_by
        )
        await pipeline.after_operation(Operation.QUERY, rows)
        return await self._present(rows, include)

    async def count(self, where: dict[str, Any] | None = None) -> int:
        """Count rows within the query rule."""
        merged = await self._read_filter(where)
        if merged is None:
            return 0

        pipeline = HookPipeline(self.schema, self.context)
        await pipeline.before_operation(Operation.QUERY)
        total = self.store.count(self.schema, where=merged)
        await pipeline.after_operation(Operation.QUERY, total)
        return total

    async def get(self, include: dict[str, Any] | None = None) -> dict[str, Any] | None:
        """Singleton collections only: the one row, auto-created if enabled."""
        return await get_singleton(self, include)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def create(
        self, data: dict[str, Any], include: dict[str, Any] | None = None
    ) -> dict[str, Any] | None:
        """Create a row. Returns None when the create rule denies."""
        prepared = await self.prepare_create(data)
        if prepared is None:
            return None
        row = await prepared.commit()
        return (await self._present([row], include, Operation.CREATE))[0]

    async def prepare_create(self, data: dict[str, Any]) -> "PreparedCreate | None":
        """Run every create check without writing.

        Covers the singleton guard, the create rule, the input pipeline and
        nested relationship checks. Returns None when the create rule denies.

        Raises:
            ValidationFailure: If the payload or a nested create is invalid
            StructuralViolation: If the collection is a singleton that has a row
            AccessDeniedError: If a nested connect or create is not allowed
        """
        guard_create(self.schema, self.store)

        decision = await check_collection_access(self.schema, Operation.CREATE, self.context)
        if decision.is_deny or (
            decision.is_predicate and not matches(data, decision.predicate)
        ):
            logger.debug("create on %s denied", self.schema.name)
            return None

        pipeline = HookPipeline(self.schema, self.context)
        resolved = await pipeline.prepare_input(Operation.CREATE, data)
        writable = await filter_writable(resolved, self.schema, Operation.CREATE, self.context)
        writes = await resolve_relationship_writes(self.schema, writable, self.context)
        for schema_field in self.schema.stored_fields():
            if schema_field.name not in writes.store_data and schema_field.has_default:
                writes.store_data[schema_field.name] = schema_field.resolve_default()

        return PreparedCreate(self, pipeline, writes)

    async def commit_create(
        self, prepared: "PreparedCreate", links: dict[str, Any] | None = None
    ) -> dict[str, Any]:
        """Write a prepared create; links set shadow keys from a parent row."""
        store_data = await commit_single_creates(prepared.writes)
        if links:
            store_data.update(links)

        pipeline = prepared.pipeline
        await pipeline.before_operation(Operation.CREATE, data=store_data)
        row = self.store.create(self.schema, store_data)
        await apply_many_writes(prepared.writes.many, row["id"], self.context)
        await pipeline.after_operation(Operation.CREATE, row, data=store_data)
        return row

    async def update(
        self,
        id: str,
        data: dict[str, Any],
        include: dict[str, Any] | None = None,
    ) -> dict[str, Any] | None:
        """Update a row. Returns None when missing or when the update rule denies."""
        item = self.store.find_unique(self.schema, id)
        if item is None:
            return None

        decision = await check_collection_access(
            self.schema, Operation.UPDATE, self.context, item=item
        )
        if not self._permits(decision, id):
            logger.debug("update on %s '%s' denied", self.schema.name, id)
            return None

        pipeline = HookPipeline(self.schema, self.context)
        resolved = await pipeline.prepare_input(Operation.UPDATE, data, item)
        writable = await filter_writable(
            resolved, self.schema, Operation.UPDATE, self.context, item=item
        )
        writes = await resolve_relationship_writes(self.schema, writable, self.context)
        store_data = await commit_single_creates(writes)

        await pipeline.before_operation(Operation.UPDATE, data=store_data, item=item)
        row = self.store.update(self.schema, id, store_data)
        if row is None:
            return None
        await apply_many_writes(writes.many, id, self.context)
        await pipeline.after_operation(Operation.UPDATE, row, data=store_data, item=item)

        return (await self._present([row], include, Operation.UPDATE))[0]

    async def delete(self, id: str) -> dict[str, Any] | None:
        """Delete a row. Returns its last readable state, or None."""
        guard_delete(self.schema)

        item = self.store.find_unique(self.schema, id)
        if item is None:
            return None

        decision = await check_collection_access(
            self.schema, Operation.DELETE, self.context, item=item
        )
        if not self._permits(decision, id):
            logger.debug("delete on %s '%s' denied", self.schema.name, id)
            return None

        pipeline = HookPipeline(self.schema, self.context)
        await pipeline.before_operation(Operation.DELETE, item=item)
        deleted = self.store.delete(self.schema, id)
        if deleted is None:
            return None
        await pipeline.after_operation(Operation.DELETE, deleted, item=item)

        return await filter_readable(deleted, self.schema, self.context, Operation.DELETE)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _read_filter(self, where: dict[str, Any] | None) -> dict[str, Any] | None:
        decision = await check_collection_access(self.schema, Operation.QUERY, self.context)
        merged = merge_filters(where, decision)
        if merged is None:
            logger.debug("query on %s denied", self.schema.name)
        return merged

    def _permits(self, decision: AccessDecision, id: str) -> bool:
        """Check an update/delete decision against the stored row."""
        if decision.is_allow:
            return True
        if decision.is_deny:
            return False
        return self.store.count(self.schema, where=conjoin({"id": id}, decision.predicate)) == 1

    async def _present(
        self,
        rows: list[dict[str, Any]],
        include: dict[str, Any] | None,
        operation: Operation = Operation.QUERY,
    ) -> list[dict[str, Any]]:
        """Attach includes and mask rows for the caller."""
        expander = IncludeExpander(self.context)
        nodes = await expander.expand(self.schema, include)
        await expander.load(nodes, rows)
        return [
            await filter_readable(row, self.schema, self.context, operation)
            for row in rows
        ]


@dataclass
class PreparedCreate:
    """A create that passed access checks and validation but is not yet written."""

    accessor: CollectionAccessor
    pipeline: HookPipeline
    writes: RelationshipWrites

    async def commit(self, links: dict[str, Any] | None = None) -> dict[str, Any]:
        return await self.accessor.commit_create(self, links)

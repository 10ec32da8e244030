"""IncludeExpander: access-controlled loading of related rows.

expand() turns an include map into a tree of IncludeNodes, each scoped by
the target collection's own query rule merged with the include's where.
load() then fetches related rows in batches (one store call per node per
level) and masks them with the target's field rules.

Depth is carried by value: expansion starts at context.depth and each
level adds one. At MAX_INCLUDE_DEPTH further relationships are skipped,
which is how hooks that query back into the same collection during
resolveOutput / afterOperation are kept from recursing forever.
"""

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Any

from datagate.access.fields import filter_readable
from datagate.access.filters import conjoin, merge_filters
from datagate.access.policy import check_collection_access
from datagate.access.types import AccessContext, IncludeRequest
from datagate.core.types import Operation
from datagate.errors import FilterError
from datagate.schema.types import CollectionSchema, FieldSchema

logger = logging.getLogger(__name__)

MAX_INCLUDE_DEPTH = 5


@dataclass
class IncludeNode:
    """One relationship to load, already scoped by access rules.

    Attributes:
        field: Relationship field on the parent collection
        target: Target collection schema
        where: Access-scoped filter for the related rows ({} = unrestricted)
        take: Per-parent limit for many relationships
        children: Nested includes on the target
    """

    field: FieldSchema
    target: CollectionSchema
    where: dict[str, Any]
    take: int | None = None
    children: list["IncludeNode"] = field(default_factory=list)


class IncludeExpander:
    """Expands and loads includes for one call tree."""

    def __init__(self, context: AccessContext):
        self.context = context

    async def expand(
        self,
        schema: CollectionSchema,
        include: dict[str, Any] | None,
        depth: int | None = None,
    ) -> list[IncludeNode]:
        """Build the include tree for schema.

        Denied relationships produce no node, so their key is omitted
        from the result.

        Raises:
            FilterError: If include names something that is not a relationship
        """
        if not include:
            return []
        if depth is None:
            depth = self.context.depth
        if depth >= MAX_INCLUDE_DEPTH:
            logger.debug(
                "Include depth %d reached on %s, skipping %s",
                depth,
                schema.name,
                sorted(include),
            )
            return []

        nodes: list[IncludeNode] = []
        for name, value in include.items():
            request = IncludeRequest.parse(value)
            if request is None:
                continue

            schema_field = schema.fields.get(name)
            if schema_field is None or not schema_field.is_relationship:
                raise FilterError(f"{schema.name}.{name} is not a relationship")

            target = self.context.schemas.get(schema_field.target)
            decision = await check_collection_access(target, Operation.QUERY, self.context)
            where = merge_filters(request.where, decision)
            if where is None:
                logger.debug("Include %s.%s denied", schema.name, name)
                continue

            nodes.append(
                IncludeNode(
                    field=schema_field,
                    target=target,
                    where=where,
                    take=request.take,
                    children=await self.expand(target, request.include, depth + 1),
                )
            )
        return nodes

    async def load(
        self, nodes: list[IncludeNode], rows: list[dict[str, Any]]
    ) -> None:
        """Attach related rows to rows, in place."""
        if not rows:
            return
        for node in nodes:
            if node.field.many:
                await self._load_many(node, rows)
            else:
                await self._load_single(node, rows)

    async def _load_single(
        self, node: IncludeNode, rows: list[dict[str, Any]]
    ) -> None:
        shadow_key = node.field.shadow_key
        ids = sorted({row[shadow_key] for row in rows if row.get(shadow_key) is not None})

        related: dict[str, dict[str, Any]] = {}
        if ids:
            fetched = self.context.store.find_many(
                node.target, where=conjoin({"id": {"in": ids}}, node.where)
            )
            await self.load(node.children, fetched)
            for row in fetched:
                related[row["id"]] = await filter_readable(row, node.target, self.context)

        for row in rows:
            row[node.field.name] = related.get(row.get(shadow_key))

    async def _load_many(
        self, node: IncludeNode, rows: list[dict[str, Any]]
    ) -> None:
        back = node.target.fields[node.field.back_field]
        back_key = back.shadow_key
        parent_ids = [row["id"] for row in rows]

        fetched = self.context.store.find_many(
            node.target,
            where=conjoin({back_key: {"in": parent_ids}}, node.where),
            order_by={"createdAt": "asc"},
        )
        await self.load(node.children, fetched)

        grouped: dict[str, list[dict[str, Any]]] = defaultdict(list)
        for row in fetched:
            bucket = grouped[row[back_key]]
            if node.take is not None and len(bucket) >= node.take:
                continue
            bucket.append(await filter_readable(row, node.target, self.context))

        for row in rows:
            row[node.field.name] = grouped.get(row["id"], [])

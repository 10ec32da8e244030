"""datagate MCP server: tool definitions for AI agents.

Every data tool runs through Context.run() as the session configured in
DATAGATE_MCP_SESSION, so agents see exactly what that principal may see.
"""

from typing import Any

from fastmcp import FastMCP

from datagate.context.results import OperationKind, OperationResult
from datagate.core.encoding import to_jsonable
from datagate.errors import FilterError, UnknownCollectionError
from datagate.mcp.bootstrap import DatagateServices, get_mcp_session, initialize_services

mcp = FastMCP(
    name="Datagate",
    instructions=(
        "Datagate is a declarative data layer with per-collection access rules. "
        "Workflow: (1) call list_collections to discover collections and fields, "
        "(2) use find_many / find_unique / count to read, "
        "(3) use create_record / update_record / delete_record to write, "
        "(4) use get_singleton for singleton collections.\n\n"
        "Where format: {\"status\": \"published\", \"views\": {\"gte\": 10}, "
        "\"OR\": [{...}, {...}]}\n"
        "Operators: equals, not, in, notIn, lt, lte, gt, gte, contains, "
        "startsWith, endsWith. Combinators: AND, OR, NOT.\n"
        "Include format: {\"author\": true, \"comments\": {\"take\": 5}}\n"
        "Records you may not access are reported as not found."
    ),
)

# Lazy-initialized services
_services: DatagateServices | None = None


def _get_services() -> DatagateServices:
    global _services
    if _services is None:
        _services = initialize_services()
    return _services


async def _run(collection: str, operation: OperationKind, **kwargs: Any) -> dict[str, Any]:
    engine = _get_services().engine
    ctx = engine.context(get_mcp_session())
    try:
        outcome: OperationResult = await ctx.run(collection, operation, **kwargs)
    except UnknownCollectionError as e:
        return {"error": str(e)}
    except (FilterError, ValueError) as e:
        return {"error": str(e)}

    if outcome.error is not None:
        return {"error": outcome.error.to_dict()}
    return {"data": to_jsonable(outcome.result)}


# =============================================================================
# Discovery
# =============================================================================


@mcp.tool()
def list_collections() -> list[dict[str, Any]]:
    """List collections with their fields.

    Returns name, key, singleton flag and field list (name, type, and
    for relationships the target collection and cardinality).
    """
    schemas = _get_services().engine.schemas
    result = []
    for schema in schemas:
        fields = []
        for f in schema.fields.values():
            entry: dict[str, Any] = {"name": f.name, "type": f.type}
            if f.is_relationship:
                entry["target"] = f.target
                entry["many"] = f.many
            if f.type == "select":
                entry["options"] = list(f.options or [])
            fields.append(entry)
        result.append({
            "name": schema.name,
            "key": schema.db_key,
            "singleton": schema.is_singleton,
            "fields": fields,
        })
    return result


# =============================================================================
# Read Tools
# =============================================================================


@mcp.tool()
async def find_many(
    collection: str,
    where: dict[str, Any] | None = None,
    include: dict[str, Any] | None = None,
    take: int | None = 50,
    skip: int | None = None,
    order_by: dict[str, str] | list[dict[str, str]] | None = None,
) -> dict[str, Any]:
    """Query records in a collection.

    Args:
        collection: Collection name (e.g. "Post").
        where: Optional filter (see server instructions for the format).
        include: Relationships to attach (e.g. {"author": true}).
        take: Maximum rows (default 50).
        skip: Rows to skip.
        order_by: Sort, e.g. {"createdAt": "desc"}.
    """
    return await _run(
        collection,
        OperationKind.FIND_MANY,
        where=where,
        include=include,
        take=take,
        skip=skip,
        order_by=order_by,
    )


@mcp.tool()
async def find_unique(
    collection: str,
    id: str,
    include: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """Get a single record by id.

    Args:
        collection: Collection name.
        id: Record id.
        include: Relationships to attach.
    """
    return await _run(collection, OperationKind.FIND_UNIQUE, id=id, include=include)


@mcp.tool()
async def count(collection: str, where: dict[str, Any] | None = None) -> dict[str, Any]:
    """Count records in a collection that match an optional filter."""
    return await _run(collection, OperationKind.COUNT, where=where)


@mcp.tool()
async def get_singleton(collection: str, include: dict[str, Any] | None = None) -> dict[str, Any]:
    """Get the single record of a singleton collection (e.g. site settings)."""
    return await _run(collection, OperationKind.GET, include=include)


# =============================================================================
# Write Tools
# =============================================================================


@mcp.tool()
async def create_record(collection: str, data: dict[str, Any]) -> dict[str, Any]:
    """Create a record.

    Runs hooks and field validation. Validation failures come back as
    {"error": {"kind": "validation", "messages": [...], "fieldErrors": {...}}}.

    Args:
        collection: Collection name.
        data: Field values. Relationships take {"connect": {"id": ...}}
            or {"create": {...}}.
    """
    return await _run(collection, OperationKind.CREATE, data=data)


@mcp.tool()
async def update_record(collection: str, id: str, data: dict[str, Any]) -> dict[str, Any]:
    """Update a record. Only the given fields change.

    Args:
        collection: Collection name.
        id: Record id.
        data: Field values to change.
    """
    return await _run(collection, OperationKind.UPDATE, id=id, data=data)


@mcp.tool()
async def delete_record(collection: str, id: str) -> dict[str, Any]:
    """Delete a record. Returns the deleted record, or null if not found."""
    return await _run(collection, OperationKind.DELETE, id=id)

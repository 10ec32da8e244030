"""Engine: the immutable schema set plus the store, and the factory for contexts."""

import logging
from collections.abc import Mapping
from typing import Any

from datagate.access.types import Session
from datagate.context.orchestrator import Context
from datagate.schema.types import CollectionSchema, SchemaSet

logger = logging.getLogger(__name__)


class Engine:
    """Holds the process-lifetime schemas and the store adapter.

    Usage:
        engine = Engine([Post, User], SQLiteAdapter(":memory:"))
        engine.store.connect()
        engine.initialize()
        ctx = engine.context(Session(userId="u1"))
        posts = await ctx.db.post.find_many()
    """

    def __init__(self, schemas: SchemaSet | list[CollectionSchema], store: Any):
        if not isinstance(schemas, SchemaSet):
            schemas = SchemaSet(list(schemas))
        self.schemas = schemas
        self.store = store

    def initialize(self) -> None:
        """Create storage for every collection."""
        for schema in self.schemas:
            self.store.initialize_collection(schema)
        logger.info("Initialized %d collections", len(self.schemas))

    def context(self, session: Session | Mapping[str, Any] | None = None) -> Context:
        """Context for one principal; pass None for anonymous callers."""
        if session is not None and not isinstance(session, Session):
            session = Session(session)
        return Context(self, session)


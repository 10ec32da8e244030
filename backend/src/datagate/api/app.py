"""FastAPI application exposing Context.run() over HTTP.

Every collection operation goes through one endpoint:

    POST /api/{collection}/{operation}
    {"id": ..., "data": {...}, "where": {...}, "include": {...},
     "take": 10, "skip": 0, "orderBy": {"createdAt": "desc"}}

and answers {"data": ..., "error": ...}. Denied operations answer 200
with empty data, the same as a missing row.
"""

import logging
import os
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field

from datagate.auth import JWTService, SessionMiddleware, get_session
from datagate.context.engine import Engine
from datagate.context.results import ErrorKind, OperationKind
from datagate.core.encoding import to_jsonable
from datagate.errors import FilterError, UniqueConstraintError, UnknownCollectionError

logger = logging.getLogger(__name__)

_ERROR_STATUS = {
    ErrorKind.VALIDATION: 422,
    ErrorKind.STRUCTURAL: 409,
}


class OperationBody(BaseModel):
    """Request body for POST /api/{collection}/{operation}."""

    model_config = ConfigDict(populate_by_name=True)

    id: str | None = None
    data: dict[str, Any] | None = None
    where: dict[str, Any] | None = None
    include: dict[str, Any] | None = None
    take: int | None = None
    skip: int | None = None
    order_by: dict[str, str] | list[dict[str, str]] | None = Field(default=None, alias="orderBy")


def create_app(engine: Engine, jwt_service: JWTService | None = None) -> FastAPI:
    """Build the HTTP app around an initialized engine.

    Args:
        engine: Engine whose store is already connected
        jwt_service: Enables bearer-token sessions; without it every
            request is anonymous
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        engine.store.close()

    app = FastAPI(title="Datagate API", lifespan=lifespan)
    app.state.engine = engine
    if jwt_service is not None:
        app.add_middleware(SessionMiddleware, jwt_service=jwt_service)

    @app.get("/api/collections")
    async def list_collections() -> dict[str, Any]:
        """List loaded collections."""
        return {
            "collections": [
                {
                    "name": schema.name,
                    "key": schema.db_key,
                    "singleton": schema.is_singleton,
                }
                for schema in engine.schemas
            ]
        }

    @app.get("/api/{collection}")
    async def get_singleton(collection: str, request: Request):
        """Singleton collections: the one row."""
        return await _run(request, collection, OperationKind.GET, OperationBody())

    @app.post("/api/{collection}/{operation}")
    async def run_operation(
        collection: str,
        operation: str,
        request: Request,
        body: OperationBody | None = None,
    ):
        """Run one collection operation for the request's session."""
        try:
            kind = OperationKind(operation)
        except ValueError:
            raise HTTPException(400, f"Unknown operation '{operation}'")
        return await _run(request, collection, kind, body or OperationBody())

    async def _run(
        request: Request, collection: str, kind: OperationKind, body: OperationBody
    ) -> JSONResponse:
        ctx = engine.context(get_session(request))
        try:
            outcome = await ctx.run(
                collection,
                kind,
                id=body.id,
                data=body.data,
                where=body.where,
                include=body.include,
                take=body.take,
                skip=body.skip,
                order_by=body.order_by,
            )
        except UnknownCollectionError as e:
            raise HTTPException(404, str(e))
        except UniqueConstraintError as e:
            raise HTTPException(409, str(e))
        except (FilterError, ValueError) as e:
            raise HTTPException(400, str(e))

        if outcome.error is not None:
            return JSONResponse(
                status_code=_ERROR_STATUS[outcome.error.kind],
                content={"data": None, "error": outcome.error.to_dict()},
            )
        return JSONResponse(content={"data": to_jsonable(outcome.result), "error": None})

    return app


def create_app_from_env(base_path: Path | None = None) -> FastAPI:
    """Build the app from environment configuration.

    Uses DATAGATE_SCHEMA_PATH for collection YAML, DatabaseConfig.from_env()
    for the store and DATAGATE_SECRET_KEY for bearer tokens.
    """
    from datagate.mcp.bootstrap import initialize_services

    services = initialize_services(base_path)
    secret_key = os.environ.get("DATAGATE_SECRET_KEY")
    jwt_service = JWTService(secret_key) if secret_key else None
    if jwt_service is None:
        logger.warning("DATAGATE_SECRET_KEY not set; all requests run anonymously")
    return create_app(services.engine, jwt_service)

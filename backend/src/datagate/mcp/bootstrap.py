"""Initialize datagate services for the MCP server process.

The HTTP app reuses initialize_services() through create_app_from_env(),
so both surfaces load schemas and open the store the same way.
"""

import importlib
import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path

from datagate.access.types import Session
from datagate.context.engine import Engine
from datagate.persistence import DatabaseConfig, create_adapter
from datagate.schema.loader import SchemaLoader

logger = logging.getLogger(__name__)


@dataclass
class DatagateServices:
    """Container for the initialized engine."""

    engine: Engine


def get_mcp_session() -> Session | None:
    """Build the Session used by MCP tools from DATAGATE_MCP_SESSION.

    The variable holds a JSON object, e.g. {"userId": "u1", "role": "admin"}.
    If it is not set, tools run as an anonymous caller.

    Raises:
        ValueError: If the variable is not a JSON object
    """
    raw = os.environ.get("DATAGATE_MCP_SESSION")
    if not raw:
        return None
    data = json.loads(raw)
    if not isinstance(data, dict):
        raise ValueError("DATAGATE_MCP_SESSION must be a JSON object")
    return Session(data)


def load_plugins() -> None:
    """Import modules named in DATAGATE_PLUGINS (comma-separated).

    Plugin modules register their rules and hooks with @rule / @hook at
    import time, before schemas referencing them are loaded.
    """
    for name in os.environ.get("DATAGATE_PLUGINS", "").split(","):
        name = name.strip()
        if name:
            importlib.import_module(name)
            logger.info("Loaded plugin %s", name)


def initialize_services(base_path: Path | None = None) -> DatagateServices:
    """Load schemas, open the store and create every collection's table."""
    if base_path is None:
        cwd = Path.cwd()
        base_path = cwd.parent if cwd.name == "backend" else cwd

    schema_path = Path(os.environ.get("DATAGATE_SCHEMA_PATH", base_path / "schema"))

    load_plugins()
    schemas = SchemaLoader(schema_path).load()

    db_config = DatabaseConfig.from_env(base_path)
    db_config.ensure_directory()

    store = create_adapter(db_config)
    store.connect()

    engine = Engine(schemas, store)
    engine.initialize()
    return DatagateServices(engine=engine)

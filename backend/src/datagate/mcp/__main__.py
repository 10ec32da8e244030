"""Run the datagate MCP server.

Usage:
    python -m datagate.mcp                              # stdio transport
    python -m datagate.mcp --transport sse              # SSE transport (web clients)
    python -m datagate.mcp --session '{"userId": "u1"}' # act as a principal
    python -m datagate.mcp --schema ./schema            # collection YAML directory

--session and --schema override DATAGATE_MCP_SESSION and DATAGATE_SCHEMA_PATH.
"""

import os
import sys


def _option(name: str) -> str | None:
    if name in sys.argv:
        idx = sys.argv.index(name)
        if idx + 1 < len(sys.argv):
            return sys.argv[idx + 1]
    return None


def main():
    transport = _option("--transport") or "stdio"

    session = _option("--session")
    if session is not None:
        os.environ["DATAGATE_MCP_SESSION"] = session
    schema_path = _option("--schema")
    if schema_path is not None:
        os.environ["DATAGATE_SCHEMA_PATH"] = schema_path

    from datagate.mcp.server import mcp
    mcp.run(transport=transport)


if __name__ == "__main__":
    main()

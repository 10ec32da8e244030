"""Tests for MCP server tools.

Tests call the underlying tool functions directly (via .fn) against an
in-memory engine installed as the server's services.
"""

import json

import pytest

import datagate.mcp.server as server_module
from datagate.access.types import Session
from datagate.mcp.bootstrap import DatagateServices, get_mcp_session, initialize_services


@pytest.fixture
def services(engine):
    """Install the test engine as the server's services."""
    server_module._services = DatagateServices(engine=engine)
    try:
        yield server_module._services
    finally:
        server_module._services = None


@pytest.fixture
def as_user(monkeypatch):
    def set_session(**session):
        if not session:
            monkeypatch.delenv("DATAGATE_MCP_SESSION", raising=False)
            return
        monkeypatch.setenv("DATAGATE_MCP_SESSION", json.dumps(session))

    monkeypatch.delenv("DATAGATE_MCP_SESSION", raising=False)
    return set_session


# Access underlying functions behind @mcp.tool() decorators
_list_collections = server_module.list_collections.fn
_find_many = server_module.find_many.fn
_find_unique = server_module.find_unique.fn
_count = server_module.count.fn
_get_singleton = server_module.get_singleton.fn
_create_record = server_module.create_record.fn
_update_record = server_module.update_record.fn
_delete_record = server_module.delete_record.fn


# =============================================================================
# Session configuration
# =============================================================================


class TestMcpSession:
    def test_unset_is_anonymous(self, monkeypatch):
        monkeypatch.delenv("DATAGATE_MCP_SESSION", raising=False)
        assert get_mcp_session() is None

    def test_json_object(self, as_user):
        as_user(userId="u1", role="admin")
        session = get_mcp_session()
        assert isinstance(session, Session)
        assert session.user_id == "u1"
        assert session.role == "admin"

    def test_non_object_rejected(self, monkeypatch):
        monkeypatch.setenv("DATAGATE_MCP_SESSION", '["u1"]')
        with pytest.raises(ValueError, match="JSON object"):
            get_mcp_session()


# =============================================================================
# Discovery
# =============================================================================


class TestListCollections:
    def test_returns_all_collections(self, services):
        names = [c["name"] for c in _list_collections()]
        assert sorted(names) == ["Comment", "Post", "SiteSettings", "User"]

    def test_field_structure(self, services):
        post = next(c for c in _list_collections() if c["name"] == "Post")
        fields = {entry["name"]: entry for entry in post["fields"]}
        assert post["key"] == "post"
        assert post["singleton"] is False
        assert fields["author"] == {
            "name": "author",
            "type": "relationship",
            "target": "User",
            "many": False,
        }
        assert fields["status"]["options"] == ["draft", "published"]


# =============================================================================
# Reads and writes
# =============================================================================


class TestRecordTools:
    @pytest.mark.asyncio
    async def test_create_and_find(self, services, as_user):
        as_user(userId="u1")
        created = await _create_record("Post", {"title": "From agent", "status": "published"})
        post_id = created["data"]["id"]

        found = await _find_unique("Post", post_id)
        assert found["data"]["title"] == "From agent"

        listed = await _find_many("Post", where={"title": {"contains": "agent"}})
        assert [p["id"] for p in listed["data"]] == [post_id]

    @pytest.mark.asyncio
    async def test_anonymous_sees_rule_scoped_rows(self, services, as_user):
        as_user(userId="u1")
        await _create_record("Post", {"title": "Draft"})
        await _create_record("Post", {"title": "Live", "status": "published"})

        assert (await _count("Post"))["data"] == 2

        as_user()
        assert (await _count("Post"))["data"] == 1

    @pytest.mark.asyncio
    async def test_validation_error(self, services, as_user):
        as_user(userId="u1")
        result = await _create_record("Post", {})
        assert result == {
            "error": {
                "kind": "validation",
                "messages": ["Title is required"],
                "fieldErrors": {"title": "Title is required"},
            }
        }

    @pytest.mark.asyncio
    async def test_update_and_delete(self, services, as_user, alice_id):
        as_user(userId=alice_id)
        created = await _create_record(
            "Post", {"title": "Mine", "author": {"connect": {"id": alice_id}}}
        )
        post_id = created["data"]["id"]

        updated = await _update_record("Post", post_id, {"title": "Edited"})
        assert updated["data"]["title"] == "Edited"

        as_user(userId="someone-else")
        assert await _delete_record("Post", post_id) == {"data": None}

        as_user(userId=alice_id)
        deleted = await _delete_record("Post", post_id)
        assert deleted["data"]["id"] == post_id

    @pytest.mark.asyncio
    async def test_singleton(self, services):
        result = await _get_singleton("SiteSettings")
        assert result["data"]["siteName"] == "My Site"

    @pytest.mark.asyncio
    async def test_unknown_collection(self, services):
        result = await _find_many("Nope")
        assert result == {"error": "Unknown collection 'Nope'"}

    @pytest.mark.asyncio
    async def test_bad_filter(self, services, as_user):
        as_user(userId="u1")
        result = await _find_many("Post", where={"nope": 1})
        assert "Unknown field" in result["error"]


# =============================================================================
# Bootstrap
# =============================================================================


class TestInitializeServices:
    def test_loads_schema_directory(self, tmp_path, monkeypatch):
        schema_dir = tmp_path / "schema"
        schema_dir.mkdir()
        (schema_dir / "note.yaml").write_text(
            "collection: Note\nfields:\n  - name: body\n    type: text\naccess:\n  query: allowAll\n"
        )
        monkeypatch.delenv("DATABASE_URL", raising=False)
        monkeypatch.delenv("DATAGATE_DB_PATH", raising=False)
        monkeypatch.delenv("DATAGATE_SCHEMA_PATH", raising=False)
        monkeypatch.delenv("DATAGATE_PLUGINS", raising=False)

        services = initialize_services(tmp_path)
        try:
            assert services.engine.schemas.names() == ["Note"]
            assert (tmp_path / "data" / "datagate.db").exists()
        finally:
            services.engine.store.close()

    def test_plugins_imported(self, tmp_path, monkeypatch):
        monkeypatch.setenv("DATAGATE_PLUGINS", "nonexistent_datagate_plugin")
        monkeypatch.setenv("DATAGATE_SCHEMA_PATH", str(tmp_path))
        with pytest.raises(ModuleNotFoundError):
            initialize_services(tmp_path)

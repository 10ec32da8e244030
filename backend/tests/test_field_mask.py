"""Tests for readable/writable field masking."""

import pytest

from datagate.access import filter_readable, filter_writable
from datagate.access.types import Session
from datagate.context import Engine
from datagate.core.types import Operation
from datagate.persistence.sqlite import SQLiteAdapter
from datagate.schema import fields as f

ROW = {
    "id": "p1",
    "createdAt": "2024-01-01T00:00:00+00:00",
    "updatedAt": "2024-01-01T00:00:00+00:00",
    "title": "Hello",
    "status": "published",
    "views": 3,
    "trackingId": "trk-1",
    "internalNotes": "secret",
    "authorId": "u1",
}


@pytest.fixture
def post(engine):
    return engine.schemas.get("Post")


# =============================================================================
# filter_readable
# =============================================================================


class TestFilterReadable:
    @pytest.mark.asyncio
    async def test_system_fields_always_readable(self, engine, post):
        post.fields["title"].access.read = lambda args: False
        result = await filter_readable(dict(ROW), post, engine.context())
        assert result["id"] == "p1"
        assert "createdAt" in result
        assert "updatedAt" in result
        assert "title" not in result

    @pytest.mark.asyncio
    async def test_denied_field_stripped_for_anonymous(self, engine, post):
        result = await filter_readable(dict(ROW), post, engine.context())
        assert "internalNotes" not in result
        assert result["title"] == "Hello"

    @pytest.mark.asyncio
    async def test_shadow_key_follows_relationship_read_rule(self, engine, post):
        anonymous = await filter_readable(dict(ROW), post, engine.context())
        assert "authorId" not in anonymous

        signed_in = await filter_readable(dict(ROW), post, engine.context(Session(userId="u2")))
        assert signed_in["authorId"] == "u1"
        assert signed_in["internalNotes"] == "secret"

    @pytest.mark.asyncio
    async def test_scalar_ending_in_id_is_not_a_shadow_key(self, engine, post):
        result = await filter_readable(dict(ROW), post, engine.context())
        assert result["trackingId"] == "trk-1"

    @pytest.mark.asyncio
    async def test_predicate_read_rule(self, engine):
        user = engine.schemas.get("User")
        row = {"id": "u1", "name": "Alice", "email": "alice@example.com"}
        own = await filter_readable(dict(row), user, engine.context(Session(userId="u1")))
        other = await filter_readable(dict(row), user, engine.context(Session(userId="u2")))
        assert own["email"] == "alice@example.com"
        assert "email" not in other

    @pytest.mark.asyncio
    async def test_sudo_reads_everything(self, engine, post):
        result = await filter_readable(dict(ROW), post, engine.context().sudo())
        assert result == ROW

    @pytest.mark.asyncio
    async def test_resolve_output_runs_only_after_access(self):
        calls = []

        def shout(ctx):
            calls.append(ctx.field)
            return ctx.value.upper()

        note = f.collection(
            "Note",
            fields={
                "body": f.text(hooks={"resolve_output": shout}),
                "secret": f.text(hooks={"resolve_output": shout}, access={"read": lambda a: False}),
            },
            access={"query": lambda a: True},
        )
        engine = Engine([note], SQLiteAdapter(":memory:"))
        result = await filter_readable(
            {"id": "n1", "body": "hi", "secret": "x"}, engine.schemas.get("Note"), engine.context()
        )
        assert result == {"id": "n1", "body": "HI"}
        assert calls == ["body"]

    @pytest.mark.asyncio
    async def test_virtual_field_computed(self):
        note = f.collection(
            "Note",
            fields={
                "first": f.text(),
                "last": f.text(),
                "full": f.virtual(lambda ctx: f"{ctx.item['first']} {ctx.item['last']}"),
            },
            access={"query": lambda a: True},
        )
        engine = Engine([note], SQLiteAdapter(":memory:"))
        result = await filter_readable(
            {"id": "n1", "first": "Ada", "last": "Lovelace"},
            engine.schemas.get("Note"),
            engine.context(),
        )
        assert result["full"] == "Ada Lovelace"

    @pytest.mark.asyncio
    async def test_virtual_field_cannot_see_denied_field(self):
        note = f.collection(
            "Note",
            fields={
                "body": f.text(),
                "secret": f.text(access={"read": lambda a: a.session is not None}),
                "leak": f.virtual(lambda ctx: ctx.item.get("secret")),
            },
            access={"query": lambda a: True},
        )
        engine = Engine([note], SQLiteAdapter(":memory:"))
        row = {"id": "n1", "body": "b", "secret": "TOPSECRET"}
        schema = engine.schemas.get("Note")

        anonymous = await filter_readable(dict(row), schema, engine.context())
        assert anonymous == {"id": "n1", "body": "b", "leak": None}

        member = await filter_readable(dict(row), schema, engine.context(Session(userId="u1")))
        assert member["leak"] == "TOPSECRET"

    @pytest.mark.asyncio
    async def test_output_hook_item_is_masked(self):
        seen = []

        def capture(ctx):
            seen.append(dict(ctx.item))
            return ctx.value

        note = f.collection(
            "Note",
            fields={
                "body": f.text(hooks={"resolve_output": capture}),
                "secret": f.text(access={"read": lambda a: False}),
            },
            access={"query": lambda a: True},
        )
        engine = Engine([note], SQLiteAdapter(":memory:"))
        await filter_readable(
            {"id": "n1", "body": "b", "secret": "x"}, engine.schemas.get("Note"), engine.context()
        )
        assert seen == [{"id": "n1", "body": "b"}]

    @pytest.mark.asyncio
    async def test_unknown_keys_kept(self, engine, post):
        result = await filter_readable({**ROW, "extra": 1}, post, engine.context())
        assert result["extra"] == 1


# =============================================================================
# filter_writable
# =============================================================================


class TestFilterWritable:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("operation", [Operation.CREATE, Operation.UPDATE])
    async def test_shadow_key_always_removed(self, engine, post, operation):
        data = {"title": "x", "authorId": "u1"}
        result = await filter_writable(data, post, operation, engine.context(Session(userId="u1")))
        assert "authorId" not in result
        assert result["title"] == "x"

    @pytest.mark.asyncio
    async def test_scalar_ending_in_id_preserved(self, engine, post):
        data = {"trackingId": "trk-2"}
        result = await filter_writable(data, post, Operation.CREATE, engine.context())
        assert result == {"trackingId": "trk-2"}

    @pytest.mark.asyncio
    async def test_system_fields_removed(self, engine, post):
        data = {"id": "forged", "createdAt": "x", "updatedAt": "y", "title": "t"}
        result = await filter_writable(data, post, Operation.CREATE, engine.context())
        assert result == {"title": "t"}

    @pytest.mark.asyncio
    async def test_unknown_fields_removed(self, engine, post):
        result = await filter_writable(
            {"title": "t", "bogus": 1}, post, Operation.CREATE, engine.context()
        )
        assert result == {"title": "t"}

    @pytest.mark.asyncio
    async def test_denied_field_removed(self, engine):
        user = engine.schemas.get("User")
        member = engine.context(Session(userId="u1", role="member"))
        admin = engine.context(Session(userId="u1", role="admin"))

        as_member = await filter_writable({"role": "admin"}, user, Operation.UPDATE, member)
        as_admin = await filter_writable({"role": "admin"}, user, Operation.UPDATE, admin)
        assert as_member == {}
        assert as_admin == {"role": "admin"}

    @pytest.mark.asyncio
    async def test_relationship_value_kept(self, engine, post):
        data = {"author": {"connect": {"id": "u1"}}}
        result = await filter_writable(data, post, Operation.CREATE, engine.context())
        assert result == data

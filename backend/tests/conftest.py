"""Shared fixtures: a small blog schema on an in-memory SQLite store."""

import pytest

from datagate.access import RuleArgs, RuleRegistry, owned_by
from datagate.context import Engine
from datagate.hooks import HookRegistry
from datagate.persistence.sqlite import SQLiteAdapter
from datagate.schema import fields as f


def published_or_signed_in(args: RuleArgs):
    if args.session is None:
        return {"status": {"equals": "published"}}
    return True


def is_signed_in(args: RuleArgs) -> bool:
    return args.session is not None


def is_admin(args: RuleArgs) -> bool:
    return args.session is not None and args.session.role == "admin"


def allow_all(args: RuleArgs) -> bool:
    return True


def is_self(args: RuleArgs):
    if args.session is None:
        return False
    return {"id": {"equals": args.session.user_id}}


def build_blog_schemas(post_hooks=None, settings_auto_create=True):
    """Fresh collection schemas; SchemaSet resolution mutates fields, so build per test."""
    user = f.collection(
        "User",
        fields={
            "name": f.text(is_required=True, max_length=100),
            "email": f.text(unique=True, access={"read": is_self}),
            "password": f.password(min_length=8, rounds=4),
            "role": f.select(["admin", "member"], default="member", access={"update": is_admin}),
            "posts": f.relationship("Post.author", many=True),
        },
        access={
            "query": allow_all,
            "create": allow_all,
            "update": owned_by("id"),
        },
    )
    post = f.collection(
        "Post",
        fields={
            "title": f.text(is_required=True, max_length=200),
            "status": f.select(["draft", "published"], default="draft"),
            "views": f.integer(default=0, min=0),
            "trackingId": f.text(),
            "internalNotes": f.text(access={"read": is_signed_in}),
            "author": f.relationship("User.posts", access={"read": is_signed_in}),
            "comments": f.relationship("Comment.post", many=True),
        },
        access={
            "query": published_or_signed_in,
            "create": is_signed_in,
            "update": owned_by("authorId"),
            "delete": owned_by("authorId"),
        },
        hooks=post_hooks,
    )
    comment = f.collection(
        "Comment",
        fields={
            "body": f.text(is_required=True),
            "approved": f.checkbox(),
            "post": f.relationship("Post.comments"),
        },
        access={
            "query": lambda args: {"approved": {"equals": True}} if args.session is None else True,
            "create": is_signed_in,
            "update": is_signed_in,
            "delete": is_admin,
        },
    )
    settings = f.collection(
        "SiteSettings",
        fields={
            "siteName": f.text(default="My Site"),
            "maintenance": f.checkbox(),
        },
        access={
            "query": allow_all,
            "update": is_admin,
        },
        singleton={"autoCreate": settings_auto_create},
    )
    return [user, post, comment, settings]


def make_engine(schemas) -> Engine:
    store = SQLiteAdapter(":memory:")
    store.connect()
    engine = Engine(schemas, store)
    engine.initialize()
    return engine


@pytest.fixture(autouse=True)
def clear_registries():
    """Clear rule and hook registries before and after each test."""
    HookRegistry.clear()
    RuleRegistry.clear()
    yield
    HookRegistry.clear()
    RuleRegistry.clear()


@pytest.fixture
def engine():
    engine = make_engine(build_blog_schemas())
    yield engine
    engine.store.close()


@pytest.fixture
def alice_id(engine):
    row = engine.store.create(engine.schemas.get("User"), {"name": "Alice", "email": "alice@example.com"})
    return row["id"]


@pytest.fixture
def bob_id(engine):
    row = engine.store.create(engine.schemas.get("User"), {"name": "Bob", "email": "bob@example.com"})
    return row["id"]

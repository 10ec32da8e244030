"""Tests for loading collection schemas from YAML."""

import textwrap

import pytest

from datagate.access.registry import RuleRegistry, allow_all, deny_all
from datagate.auth import HashedPassword
from datagate.core.types import Operation
from datagate.errors import SchemaError
from datagate.hooks import HookRegistry
from datagate.schema.loader import SchemaLoader


def write(tmp_path, filename, content):
    (tmp_path / filename).write_text(textwrap.dedent(content))


@pytest.fixture
def blog_dir(tmp_path):
    write(
        tmp_path,
        "user.yaml",
        """
        collection: User
        fields:
          - name: name
            type: text
            validation: {isRequired: true, length: {max: 100}}
          - name: password
            type: password
            rounds: 4
            validation: {length: {min: 8}}
          - name: posts
            type: relationship
            ref: Post.author
            many: true
        access:
          query: true
          create: allowAll
          update: {ownedBy: id}
        """,
    )
    write(
        tmp_path,
        "post.yml",
        """
        collection: Post
        fields:
          - name: title
            type: text
            validation: {isRequired: true}
          - name: status
            type: select
            options: [draft, published]
            default: draft
          - name: internalNotes
            type: text
            access:
              read: isSignedIn
          - name: author
            type: relationship
            ref: User.posts
        access:
          query: isSignedIn
          delete: false
        hooks:
          afterOperation:
            - name: auditPost
              on: [create, delete]
        """,
    )
    write(
        tmp_path,
        "settings.yaml",
        """
        collection: SiteSettings
        fields:
          - name: siteName
            type: text
            default: My Site
        access:
          query: allowAll
        singleton: {autoCreate: false}
        """,
    )
    write(tmp_path, "notes.yaml", "# not a collection\nfoo: bar\n")
    return tmp_path


@pytest.fixture
def audit_hook():
    def audit_post(ctx):
        return None

    HookRegistry.register("auditPost", audit_post)
    return audit_post


class TestSchemaLoader:
    def test_loads_all_collections(self, blog_dir, audit_hook):
        schemas = SchemaLoader(blog_dir).load()
        assert sorted(schemas.names()) == ["Post", "SiteSettings", "User"]

    def test_relationships_resolved(self, blog_dir, audit_hook):
        schemas = SchemaLoader(blog_dir).load()
        post = schemas.get("Post")
        assert post.fields["author"].shadow_key == "authorId"
        assert post.fields["author"].target == "User"
        assert schemas.get("User").fields["posts"].back_field == "author"

    def test_field_settings(self, blog_dir, audit_hook):
        schemas = SchemaLoader(blog_dir).load()
        user = schemas.get("User")
        assert user.fields["name"].validation.is_required
        assert user.fields["name"].validation.max_length == 100
        assert user.fields["password"].validation.min_length == 8

        post = schemas.get("Post")
        assert post.fields["status"].options == ["draft", "published"]
        assert post.fields["status"].default == "draft"

    def test_rules_resolved(self, blog_dir, audit_hook):
        schemas = SchemaLoader(blog_dir).load()
        user = schemas.get("User")
        post = schemas.get("Post")
        assert user.access.query is allow_all
        assert user.access.create is allow_all
        assert user.access.update is not None
        assert user.access.delete is None
        assert post.access.query is RuleRegistry.get("isSignedIn")
        assert post.access.delete is deny_all
        assert post.fields["internalNotes"].access.read is RuleRegistry.get("isSignedIn")

    def test_hooks_with_bare_on_key(self, blog_dir, audit_hook):
        post = SchemaLoader(blog_dir).load().get("Post")
        [definition] = post.hooks.after_operation
        assert definition.fn is audit_hook
        assert definition.on == [Operation.CREATE, Operation.DELETE]

    def test_singleton_config(self, blog_dir, audit_hook):
        schemas = SchemaLoader(blog_dir).load()
        settings = schemas.get("SiteSettings")
        assert settings.is_singleton
        assert settings.singleton.auto_create is False
        assert not schemas.get("Post").is_singleton

    def test_password_field_gets_hashing_hooks(self, blog_dir, audit_hook):
        user = SchemaLoader(blog_dir).load().get("User")
        hooks = user.fields["password"].hooks
        assert hooks.resolve_input is not None
        assert isinstance(hooks.resolve_output(_FieldValue(None)), HashedPassword)


class _FieldValue:
    def __init__(self, value):
        self.value = value


class TestSchemaLoaderErrors:
    def test_missing_path(self, tmp_path):
        with pytest.raises(SchemaError, match="does not exist"):
            SchemaLoader(tmp_path / "nope").load()

    def test_unregistered_hook(self, blog_dir):
        with pytest.raises(SchemaError, match="auditPost"):
            SchemaLoader(blog_dir).load()

    def test_unknown_rule(self, tmp_path):
        write(tmp_path, "a.yaml", "collection: A\naccess:\n  query: isWizard\n")
        with pytest.raises(SchemaError, match="isWizard"):
            SchemaLoader(tmp_path).load()

    def test_invalid_rule_shape(self, tmp_path):
        write(tmp_path, "a.yaml", "collection: A\naccess:\n  query: [1, 2]\n")
        with pytest.raises(SchemaError, match="Invalid access rule"):
            SchemaLoader(tmp_path).load()

    def test_unknown_hook_stage(self, tmp_path):
        write(tmp_path, "a.yaml", "collection: A\nhooks:\n  beforeEverything: x\n")
        with pytest.raises(SchemaError, match="Unknown hook stage"):
            SchemaLoader(tmp_path).load()

    def test_duplicate_field(self, tmp_path):
        write(
            tmp_path,
            "a.yaml",
            "collection: A\nfields:\n  - name: x\n    type: text\n  - name: x\n    type: text\n",
        )
        with pytest.raises(SchemaError, match="duplicate field"):
            SchemaLoader(tmp_path).load()

    def test_select_needs_options(self, tmp_path):
        write(tmp_path, "a.yaml", "collection: A\nfields:\n  - name: s\n    type: select\n")
        with pytest.raises(SchemaError, match="options"):
            SchemaLoader(tmp_path).load()

    def test_virtual_needs_resolve_output(self, tmp_path):
        write(tmp_path, "a.yaml", "collection: A\nfields:\n  - name: v\n    type: virtual\n")
        with pytest.raises(SchemaError, match="resolveOutput"):
            SchemaLoader(tmp_path).load()

    def test_unknown_relationship_target(self, tmp_path):
        write(
            tmp_path,
            "a.yaml",
            "collection: A\nfields:\n  - name: b\n    type: relationship\n    ref: Missing\n",
        )
        with pytest.raises(SchemaError):
            SchemaLoader(tmp_path).load()

"""
Shared pytest fixtures for gatekeeper_core tests.

Provides:
- Catalog fixtures (small owner-edit catalog, core defaults)
- Registry fixture wired with the owner-edit hooks
- User fixtures (owner, admin, stranger)
- Temporary layer file helper
"""

import sys
import tempfile
import pytest
from pathlib import Path
from types import SimpleNamespace

# Add package root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from gatekeeper_core import (
    AuthenticatedUser,
    HookRegistry,
    NO_OPINION,
    PermissionCatalog,
    PermissionResolver,
)


# ============================================================================
# Catalog Fixtures
# ============================================================================

SMALL_LAYER = {
    "permissions": {
        "view": "View a record",
        "edit": "Edit a record",
        "new": "Create records",
        "owner": "Change the record owner",
    },
    "roles": {
        "READ_ONLY": {"view": 1},
        "EDIT": {"view": 1, "edit": 1, "new": 1},
    },
}


@pytest.fixture
def small_layer():
    """Fresh copy of the owner-edit layer mapping"""
    return {
        "permissions": dict(SMALL_LAYER["permissions"]),
        "roles": {name: dict(section) for name, section in SMALL_LAYER["roles"].items()},
    }


@pytest.fixture
def catalog(small_layer) -> PermissionCatalog:
    """Catalog with {view, edit, new, owner}, READ_ONLY and EDIT"""
    return PermissionCatalog.load([small_layer])


@pytest.fixture
def core_catalog() -> PermissionCatalog:
    """Catalog holding only the core defaults"""
    return PermissionCatalog.core()


# ============================================================================
# User Fixtures
# ============================================================================

@pytest.fixture
def bob() -> AuthenticatedUser:
    return AuthenticatedUser(auth_user_id="1", handle="bob", attributes={"role": "USER"})


@pytest.fixture
def alice() -> AuthenticatedUser:
    return AuthenticatedUser(auth_user_id="2", handle="alice", attributes={"role": "USER"})


@pytest.fixture
def admin() -> AuthenticatedUser:
    return AuthenticatedUser(auth_user_id="3", handle="root", attributes={"role": "ADMIN"})


@pytest.fixture
def bobs_post():
    return SimpleNamespace(id=10, owner="bob", title="Hello")


# ============================================================================
# Registry Fixtures
# ============================================================================

@pytest.fixture
def owner_registry(catalog) -> HookRegistry:
    """
    Registry for the "posts" table:
    - application: ALL for admins, NO_ACCESS for everyone else
    - table: EDIT for the record owner, READ_ONLY + new otherwise
    - field "owner": owners may not reassign their own records
    """
    registry = HookRegistry()

    def is_owner(ctx):
        return ctx.user is not None and ctx.record is not None and ctx.record.owner == ctx.user.handle

    @registry.application
    def application_hook(ctx):
        if ctx.user is not None and ctx.user.get("role") == "ADMIN":
            return catalog.full(base="ALL")
        return catalog.full()

    @registry.table("posts")
    def posts_table(ctx):
        if ctx.user is None or ctx.user.get("role") != "USER":
            return NO_OPINION
        if is_owner(ctx):
            return catalog.full(base="EDIT")
        return catalog.full({"new": 1}, base="READ_ONLY")

    @registry.field("posts", "owner")
    def posts_owner_field(ctx, field_name):
        if ctx.user is not None and ctx.user.get("role") != "ADMIN" and is_owner(ctx):
            return catalog.partial({"edit": 0})
        return NO_OPINION

    return registry


@pytest.fixture
def resolver(catalog, owner_registry) -> PermissionResolver:
    return PermissionResolver(catalog, owner_registry, explain_enabled=True)


# ============================================================================
# File Helpers
# ============================================================================

@pytest.fixture
def layer_dir():
    """Temporary directory for layer files"""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def write_layer(layer_dir):
    """Write a layer file and return its path"""
    def _write(name: str, content: str) -> Path:
        path = layer_dir / name
        path.write_text(content, encoding="utf-8")
        return path
    return _write

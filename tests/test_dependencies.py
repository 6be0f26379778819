"""
Tests for gatekeeper_core/dependencies.py

Coverage targets:
- require_permission() allows and denies through a FastAPI route
- HookError handling with deny_on_error on/off
- Unknown permission rejected at wiring time
"""

import pytest
from fastapi import Depends, FastAPI, Header
from fastapi.testclient import TestClient
from types import SimpleNamespace

from gatekeeper_core import (
    AuthenticatedUser,
    HookRegistry,
    PermissionMask,
    PermissionResolver,
    ResolutionContext,
)
from gatekeeper_core.dependencies import require_permission
from gatekeeper_core.errors import UnknownPermissionError


POSTS = {1: SimpleNamespace(id=1, owner="bob")}
USERS = {
    "bob": AuthenticatedUser(auth_user_id="1", handle="bob", attributes={"role": "USER"}),
    "alice": AuthenticatedUser(auth_user_id="2", handle="alice", attributes={"role": "USER"}),
}


def post_context(post_id: int, x_user: str = Header(default="")) -> ResolutionContext:
    return ResolutionContext(table="posts", user=USERS.get(x_user), record=POSTS.get(post_id))


def build_app(resolver: PermissionResolver, deny_on_error: bool = True) -> FastAPI:
    app = FastAPI()

    @app.put("/posts/{post_id}")
    def update_post(
        mask: PermissionMask = Depends(
            require_permission(resolver, "edit", post_context, deny_on_error=deny_on_error)
        )
    ):
        return {"granted": sorted(mask.granted())}

    return app


class TestRequirePermission:
    """Tests for route-level enforcement"""

    def test_owner_allowed(self, resolver):
        client = TestClient(build_app(resolver))

        response = client.put("/posts/1", headers={"X-User": "bob"})

        assert response.status_code == 200
        assert response.json() == {"granted": ["edit", "new", "view"]}

    def test_non_owner_denied(self, resolver):
        client = TestClient(build_app(resolver))

        response = client.put("/posts/1", headers={"X-User": "alice"})

        assert response.status_code == 403
        assert "edit" in response.json()["detail"]

    def test_anonymous_denied(self, resolver):
        client = TestClient(build_app(resolver))
        assert client.put("/posts/1").status_code == 403

    def test_unknown_permission_at_wiring(self, resolver):
        with pytest.raises(UnknownPermissionError):
            require_permission(resolver, "edti", post_context)


class TestHookFailures:
    """A failing hook is a 403 by default"""

    @pytest.fixture
    def failing_resolver(self, catalog):
        registry = HookRegistry()

        @registry.table("posts")
        def broken(ctx):
            raise RuntimeError("lookup failed")

        return PermissionResolver(catalog, registry, explain_enabled=False)

    def test_deny_on_error(self, failing_resolver):
        client = TestClient(build_app(failing_resolver))

        response = client.put("/posts/1", headers={"X-User": "bob"})

        assert response.status_code == 403

    def test_error_surfaces_when_not_denying(self, failing_resolver):
        client = TestClient(build_app(failing_resolver, deny_on_error=False))

        response = client.put("/posts/1", headers={"X-User": "bob"})

        assert response.status_code == 500
        assert response.json()["detail"]["code"] == "HOOK_ERROR"
        assert response.json()["detail"]["details"]["scope"] == "table"

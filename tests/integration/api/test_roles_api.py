"""Integration tests for the role management API.

These tests verify:
- 401 for callers without an identity, 403 naming what is missing
- Role creation, full replacement of permission sets and deletion rules
- Actor assignment rules
- Grant changes taking effect on the very next request
"""

import asyncio
from uuid import uuid4

import pytest
from httpx import AsyncClient

from keystone.config import settings
from keystone.core.permissions.catalog import DEFAULT_CATALOG
from keystone.core.permissions.evaluator import PolicyEvaluator
from tests.helpers import auth_headers


pytestmark = pytest.mark.integration

ROLES = "/api/v1/roles"


@pytest.fixture
async def admin(make_actor, make_role):
    """An actor holding every role-management permission through a role."""
    actor = await make_actor()
    await make_role(
        name="Role Manager",
        permissions=[
            "roles:view",
            "roles:create",
            "roles:edit",
            "roles:delete",
            "roles:assign",
            "users:view",
        ],
        actors=[actor],
    )
    return actor


@pytest.fixture
async def viewer(make_actor, make_role):
    """An actor that may only view roles."""
    actor = await make_actor()
    await make_role(name="Role Viewer", permissions=["roles:view"], actors=[actor])
    return actor


@pytest.fixture
async def superadmin(make_actor, catalog):
    return await make_actor(is_superadmin=True)


def _keys(body: dict) -> set[str]:
    return {p["key"] for p in body["permissions"]}


class TestAuthentication:
    """Tests for callers without a usable identity."""

    async def test_no_token(self, client: AsyncClient, catalog) -> None:
        response = await client.get(ROLES)

        assert response.status_code == 401
        assert response.headers["WWW-Authenticate"] == "Bearer"
        assert response.json()["error"] == "Authentication required"

    async def test_invalid_token(self, client: AsyncClient, catalog) -> None:
        response = await client.get(ROLES, headers={"Authorization": "Bearer nonsense"})

        assert response.status_code == 401

    async def test_inactive_actor(self, client: AsyncClient, make_actor, make_role) -> None:
        actor = await make_actor(is_active=False)
        await make_role(permissions=["roles:view"], actors=[actor])

        response = await client.get(ROLES, headers=auth_headers(actor))

        assert response.status_code == 401

    async def test_public_health(self, client: AsyncClient) -> None:
        response = await client.get("/health/live")

        assert response.status_code == 200
        assert response.json() == {"status": "alive"}

    async def test_request_id_echoed(self, client: AsyncClient) -> None:
        kept = await client.get("/health/live", headers={"X-Request-ID": "abc-123"})
        replaced = await client.get("/health/live", headers={"X-Request-ID": "not a valid id!"})

        assert kept.headers["X-Request-ID"] == "abc-123"
        assert replaced.headers["X-Request-ID"] != "not a valid id!"


class TestDenials:
    """Tests for 403 bodies."""

    async def test_single_permission_denial(self, client: AsyncClient, viewer, make_role) -> None:
        role = await make_role(permissions=["jobs:view"])

        response = await client.delete(f"{ROLES}/{role.id}", headers=auth_headers(viewer))

        assert response.status_code == 403
        body = response.json()
        assert body["required"] == {"resource": "roles", "action": "delete"}
        assert "roles:delete" in body["detail"]

    async def test_all_permissions_denial_lists_missing(
        self, client: AsyncClient, viewer, make_role
    ) -> None:
        role = await make_role(permissions=["jobs:view"])

        response = await client.get(f"{ROLES}/{role.id}/actors", headers=auth_headers(viewer))

        assert response.status_code == 403
        assert response.json()["missing"] == [{"resource": "users", "action": "view"}]

    async def test_legacy_privilege_level_grants_nothing(
        self, client: AsyncClient, make_actor, catalog
    ) -> None:
        actor = await make_actor(privilege_level=3)

        response = await client.get(ROLES, headers=auth_headers(actor))

        assert response.status_code == 403


class TestCreateRole:
    """Tests for POST /roles."""

    async def test_create(self, client: AsyncClient, admin) -> None:
        response = await client.post(
            ROLES,
            json={
                "name": "Hiring Manager",
                "description": "Hires people",
                "color": "purple",
                "permissions": ["jobs:view", "jobs:edit", "jobs:view"],
            },
            headers=auth_headers(admin),
        )

        assert response.status_code == 201
        body = response.json()
        assert body["name"] == "Hiring Manager"
        assert body["is_system_role"] is False
        assert body["permission_count"] == 2
        assert _keys(body) == {"jobs:view", "jobs:edit"}

        fetched = await client.get(f"{ROLES}/{body['id']}", headers=auth_headers(admin))
        assert fetched.status_code == 200
        role = fetched.json()
        assert role["name"] == "Hiring Manager"
        assert role["description"] == "Hires people"
        assert role["color"] == "purple"
        assert role["is_active"] is True
        assert sorted(p["key"] for p in role["permissions"]) == ["jobs:edit", "jobs:view"]

    @pytest.mark.parametrize(
        ("payload", "detail"),
        [
            ({"name": "X", "permissions": ["jobs:teleport"]}, "Some permissions are invalid"),
            ({"name": "X", "permissions": ["not-a-key"]}, "Some permissions are invalid"),
            ({"name": "X", "permissions": []}, "At least one permission is required"),
            ({"name": "   ", "permissions": ["jobs:view"]}, "Role name is required"),
        ],
    )
    async def test_rejected(self, client: AsyncClient, admin, payload, detail) -> None:
        response = await client.post(ROLES, json=payload, headers=auth_headers(admin))

        assert response.status_code == 422
        assert response.json()["detail"] == detail

    async def test_duplicate_name(self, client: AsyncClient, admin, make_role) -> None:
        await make_role(name="Interviewer", permissions=["interviews:view"])

        response = await client.post(
            ROLES,
            json={"name": "Interviewer", "permissions": ["jobs:view"]},
            headers=auth_headers(admin),
        )

        assert response.status_code == 422
        assert response.json()["detail"] == "A role with this name already exists"


class TestUpdateRole:
    """Tests for PUT /roles/{id}."""

    async def test_replaces_whole_set(self, client: AsyncClient, admin, make_role) -> None:
        role = await make_role(name="Editor", permissions=["jobs:view", "jobs:edit"])

        response = await client.put(
            f"{ROLES}/{role.id}",
            json={"name": "Editor", "permissions": ["jobs:delete"]},
            headers=auth_headers(admin),
        )

        assert response.status_code == 200
        assert _keys(response.json()) == {"jobs:delete"}

    async def test_idempotent(self, client: AsyncClient, admin, make_role) -> None:
        role = await make_role(name="Editor", permissions=["jobs:view"])
        payload = {"name": "Editor", "permissions": ["jobs:view", "jobs:edit"]}

        first = await client.put(f"{ROLES}/{role.id}", json=payload, headers=auth_headers(admin))
        second = await client.put(f"{ROLES}/{role.id}", json=payload, headers=auth_headers(admin))

        assert _keys(first.json()) == _keys(second.json()) == {"jobs:view", "jobs:edit"}

    async def test_unknown_permission_keeps_previous_set(
        self, client: AsyncClient, admin, make_role
    ) -> None:
        role = await make_role(name="Editor", permissions=["jobs:view"])
        role_id = role.id

        response = await client.put(
            f"{ROLES}/{role_id}",
            json={"name": "Editor", "permissions": ["jobs:edit", "jobs:teleport"]},
            headers=auth_headers(admin),
        )

        assert response.status_code == 422
        fetched = await client.get(f"{ROLES}/{role_id}", headers=auth_headers(admin))
        assert _keys(fetched.json()) == {"jobs:view"}

    async def test_rename_to_taken_name(self, client: AsyncClient, admin, make_role) -> None:
        await make_role(name="Taken", permissions=["jobs:view"])
        role = await make_role(name="Mine", permissions=["jobs:view"])

        response = await client.put(
            f"{ROLES}/{role.id}",
            json={"name": "Taken", "permissions": ["jobs:view"]},
            headers=auth_headers(admin),
        )

        assert response.status_code == 422

    async def test_system_role_cannot_be_renamed(
        self, client: AsyncClient, admin, make_role
    ) -> None:
        role = await make_role(name="Viewer", permissions=["jobs:view"], is_system_role=True)

        response = await client.put(
            f"{ROLES}/{role.id}",
            json={"name": "Watcher", "permissions": ["jobs:view"]},
            headers=auth_headers(admin),
        )

        assert response.status_code == 422
        assert response.json()["detail"] == "System role names cannot be changed"

    async def test_system_role_description_is_editable(
        self, client: AsyncClient, admin, make_role
    ) -> None:
        role = await make_role(name="Viewer", permissions=["jobs:view"], is_system_role=True)

        response = await client.put(
            f"{ROLES}/{role.id}",
            json={"name": "Viewer", "description": "Looks only", "permissions": ["jobs:view"]},
            headers=auth_headers(admin),
        )

        assert response.status_code == 200
        assert response.json()["description"] == "Looks only"

    async def test_missing_role(self, client: AsyncClient, admin) -> None:
        response = await client.put(
            f"{ROLES}/{uuid4()}",
            json={"name": "Ghost", "permissions": ["jobs:view"]},
            headers=auth_headers(admin),
        )

        assert response.status_code == 404


class TestDeleteRole:
    """Tests for DELETE /roles/{id}."""

    async def test_system_role_is_protected_even_for_superadmin(
        self, client: AsyncClient, superadmin, make_role
    ) -> None:
        role = await make_role(name="Administrator", permissions=["roles:view"], is_system_role=True)

        response = await client.delete(f"{ROLES}/{role.id}", headers=auth_headers(superadmin))

        assert response.status_code == 409
        assert response.json()["type"].endswith("/system_role")

    async def test_role_in_use(self, client: AsyncClient, admin, make_actor, make_role) -> None:
        assignees = [await make_actor() for _ in range(3)]
        role = await make_role(name="Busy", permissions=["jobs:view"], actors=assignees)
        role_id = role.id
        assignee_ids = [a.id for a in assignees]

        response = await client.delete(f"{ROLES}/{role_id}", headers=auth_headers(admin))

        assert response.status_code == 409
        assert response.json()["assigned_actors"] == 3
        assert "3 actors are currently assigned" in response.json()["detail"]

        for assignee_id in assignee_ids:
            unassigned = await client.delete(
                f"{ROLES}/{role_id}/actors/{assignee_id}", headers=auth_headers(admin)
            )
            assert unassigned.status_code == 204

        deleted = await client.delete(f"{ROLES}/{role_id}", headers=auth_headers(admin))
        assert deleted.status_code == 204

        gone = await client.get(f"{ROLES}/{role_id}", headers=auth_headers(admin))
        assert gone.status_code == 404


class TestAssignments:
    """Tests for assigning actors to roles."""

    async def test_assign_and_list(self, client: AsyncClient, admin, make_actor, make_role) -> None:
        assignee = await make_actor()
        role = await make_role(name="Team", permissions=["jobs:view"])

        response = await client.post(
            f"{ROLES}/{role.id}/actors/{assignee.id}", headers=auth_headers(admin)
        )

        assert response.status_code == 201
        assert [a["id"] for a in response.json()["actors"]] == [str(assignee.id)]

        listing = await client.get(f"{ROLES}/{role.id}/actors", headers=auth_headers(admin))
        body = listing.json()
        assert [a["id"] for a in body["assigned"]] == [str(assignee.id)]
        assert str(assignee.id) not in {a["id"] for a in body["available"]}
        assert str(admin.id) in {a["id"] for a in body["available"]}

    async def test_inactive_role(self, client: AsyncClient, admin, make_actor, make_role) -> None:
        assignee = await make_actor()
        role = await make_role(permissions=["jobs:view"], is_active=False)

        response = await client.post(
            f"{ROLES}/{role.id}/actors/{assignee.id}", headers=auth_headers(admin)
        )

        assert response.status_code == 422

    async def test_duplicate(self, client: AsyncClient, admin, make_actor, make_role) -> None:
        assignee = await make_actor()
        role = await make_role(permissions=["jobs:view"], actors=[assignee])

        response = await client.post(
            f"{ROLES}/{role.id}/actors/{assignee.id}", headers=auth_headers(admin)
        )

        assert response.status_code == 409

    async def test_unknown_actor(self, client: AsyncClient, admin, make_role) -> None:
        role = await make_role(permissions=["jobs:view"])

        response = await client.post(f"{ROLES}/{role.id}/actors/{uuid4()}", headers=auth_headers(admin))

        assert response.status_code == 404

    async def test_unassign_missing_assignment(
        self, client: AsyncClient, admin, make_actor, make_role
    ) -> None:
        other = await make_actor()
        role = await make_role(permissions=["jobs:view"])

        response = await client.delete(
            f"{ROLES}/{role.id}/actors/{other.id}", headers=auth_headers(admin)
        )

        assert response.status_code == 404


class TestImmediateEffect:
    """Grant changes apply to the next request."""

    async def test_revoked_permission_denied_next_request(
        self, client: AsyncClient, admin, make_actor, make_role
    ) -> None:
        member = await make_actor()
        role = await make_role(name="Temp", permissions=["roles:view"], actors=[member])
        role_id = role.id

        assert (await client.get(ROLES, headers=auth_headers(member))).status_code == 200

        updated = await client.put(
            f"{ROLES}/{role_id}",
            json={"name": "Temp", "permissions": ["jobs:view"]},
            headers=auth_headers(admin),
        )
        assert updated.status_code == 200

        assert (await client.get(ROLES, headers=auth_headers(member))).status_code == 403

    async def test_deactivated_role_grants_nothing(
        self, client: AsyncClient, admin, make_actor, make_role
    ) -> None:
        member = await make_actor()
        role = await make_role(name="Temp", permissions=["roles:view"], actors=[member])

        await client.put(
            f"{ROLES}/{role.id}",
            json={"name": "Temp", "permissions": ["roles:view"], "is_active": False},
            headers=auth_headers(admin),
        )

        assert (await client.get(ROLES, headers=auth_headers(member))).status_code == 403


class TestPermissionsApi:
    """Tests for the catalog and self-service endpoints."""

    async def test_catalog(self, client: AsyncClient, viewer) -> None:
        response = await client.get("/api/v1/permissions", headers=auth_headers(viewer))

        assert response.status_code == 200
        body = response.json()
        assert body["total"] == len(DEFAULT_CATALOG)
        assert [g["resource"] for g in body["resources"]] == sorted(
            {entry.resource for entry in DEFAULT_CATALOG}
        )

    async def test_my_permissions(self, client: AsyncClient, viewer) -> None:
        response = await client.get("/api/v1/permissions/me", headers=auth_headers(viewer))

        assert response.json()["permissions"] == ["roles:view"]

    async def test_superadmin_has_everything(self, client: AsyncClient, superadmin) -> None:
        response = await client.get("/api/v1/permissions/me", headers=auth_headers(superadmin))

        body = response.json()
        assert body["is_superadmin"] is True
        assert len(body["permissions"]) == len(DEFAULT_CATALOG)

    async def test_requires_identity(self, client: AsyncClient) -> None:
        response = await client.get("/api/v1/permissions/me")

        assert response.status_code == 401

    async def test_my_permissions_times_out(
        self, client: AsyncClient, viewer, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setattr(settings, "authorization_timeout_seconds", 0.05)

        async def slow(self, actor_id):
            await asyncio.sleep(1)
            return set()

        monkeypatch.setattr(PolicyEvaluator, "get_permission_set", slow)

        response = await client.get("/api/v1/permissions/me", headers=auth_headers(viewer))

        assert response.status_code == 503
        assert response.headers["Retry-After"] == "1"

    async def test_list_roles_counts(self, client: AsyncClient, admin, make_role) -> None:
        await make_role(name="Counted", permissions=["jobs:view", "jobs:edit"])

        response = await client.get(ROLES, headers=auth_headers(admin))

        roles = {r["name"]: r for r in response.json()["roles"]}
        assert roles["Counted"]["permission_count"] == 2
        assert roles["Role Manager"]["actor_count"] == 1


class TestReadiness:
    """Tests for the readiness probe."""

    async def test_not_ready_without_catalog(self, client: AsyncClient) -> None:
        response = await client.get("/health/ready")

        assert response.status_code == 503
        assert response.json()["checks"] == {"database": "ok", "catalog": "empty"}

    async def test_ready_with_catalog(self, client: AsyncClient, catalog) -> None:
        response = await client.get("/health/ready")

        assert response.status_code == 200
        assert response.json()["status"] == "ready"

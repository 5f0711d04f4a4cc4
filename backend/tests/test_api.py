"""HTTP tests for the LeadDesk API."""

from unittest.mock import AsyncMock, patch

import pytest
from httpx import AsyncClient

from app.middleware.exceptions import StoreUnavailableError
from conftest import auth_headers


@pytest.mark.integration
@pytest.mark.asyncio
class TestHealth:

    async def test_health(self, client: AsyncClient):
        response = await client.get("/health")
        assert response.status_code == 200
        assert response.json()["service"] == "LeadDesk"


@pytest.mark.integration
@pytest.mark.asyncio
class TestAuthentication:

    async def test_missing_token(self, client: AsyncClient):
        response = await client.get("/api/leads/")
        assert response.status_code == 401

    async def test_garbage_token(self, client: AsyncClient):
        response = await client.get(
            "/api/leads/", headers={"Authorization": "Bearer not-a-jwt"}
        )
        assert response.status_code == 401
        assert response.json()["error"]["code"] == "HTTP_401"


@pytest.mark.integration
@pytest.mark.asyncio
class TestMyPermissions:

    async def test_sales_rep_snapshot(self, client: AsyncClient, sales_rep_world):
        response = await client.get("/api/me/permissions", headers=auth_headers("u1"))

        assert response.status_code == 200
        data = response.json()
        assert data["loaded"] is True
        assert data["is_super_admin"] is False
        assert data["modules"]["leads"] == {
            "view_type": "assigned",
            "can_create": True,
            "can_edit": True,
            "can_delete": False,
        }
        assert data["modules"]["customers"]["view_type"] == "none"
        assert data["can_manage_roles"] is False
        assert data["error"] is None

    async def test_missing_profile_is_fail_closed(self, client: AsyncClient):
        response = await client.get("/api/me/permissions", headers=auth_headers("ghost"))

        assert response.status_code == 200
        data = response.json()
        assert data["loaded"] is True
        assert all(m["view_type"] == "none" for m in data["modules"].values())
        assert "ghost" in data["error"]

    async def test_store_outage_is_503(self, client: AsyncClient):
        with patch(
            "app.auth.deps.cached_resolve_permissions",
            new=AsyncMock(side_effect=StoreUnavailableError()),
        ):
            response = await client.get("/api/me/permissions", headers=auth_headers("u1"))

        assert response.status_code == 503
        assert response.json()["error"]["code"] == "STORE_UNAVAILABLE"

    async def test_logout_evicts_snapshot(self, client: AsyncClient, sales_rep_world):
        with patch("app.auth.deps.invalidate_user_permissions", new=AsyncMock()) as evict:
            response = await client.post("/api/me/logout", headers=auth_headers("u1"))

        assert response.status_code == 204
        evict.assert_awaited_once_with("u1")


@pytest.mark.integration
@pytest.mark.asyncio
class TestLeadsEndpoints:

    async def test_list_is_scoped(self, client: AsyncClient, sales_rep_world):
        response = await client.get("/api/leads/", headers=auth_headers("u1"))

        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 1
        assert [item["name"] for item in data["items"]] == ["L1"]
        assert data["page"] == 1

    async def test_list_filters_from_query(self, client: AsyncClient, sales_rep_world, make_lead):
        await make_lead("Tagged", "u1", tags=["vip"])

        response = await client.get(
            "/api/leads/",
            params={"tags": ["vip"], "page_size": 5},
            headers=auth_headers("u1"),
        )

        assert response.status_code == 200
        data = response.json()
        assert [item["name"] for item in data["items"]] == ["Tagged"]
        assert data["page_size"] == 5

    async def test_page_size_bounds(self, client: AsyncClient, sales_rep_world):
        response = await client.get(
            "/api/leads/", params={"page_size": 1000}, headers=auth_headers("u1")
        )
        assert response.status_code == 422
        assert response.json()["error"]["code"] == "VALIDATION_ERROR"

    async def test_list_without_view_is_empty(self, client: AsyncClient, sales_rep_world):
        response = await client.get("/api/customers/", headers=auth_headers("u1"))
        assert response.status_code == 200
        assert response.json() == {"items": [], "total": 0, "page": 1, "page_size": 10}

    async def test_foreign_lead_is_404(self, client: AsyncClient, sales_rep_world):
        response = await client.get(
            f"/api/leads/{sales_rep_world['l2'].id}", headers=auth_headers("u1")
        )
        assert response.status_code == 404

    async def test_create_assigns_to_caller(self, client: AsyncClient, sales_rep_world):
        response = await client.post(
            "/api/leads/",
            json={"name": "Initech", "email": "bill@initech.com", "tags": ["b2b"]},
            headers=auth_headers("u1"),
        )

        assert response.status_code == 201
        data = response.json()
        assert data["assigned_to"] == "u1"
        assert data["created_by"] == "u1"

    async def test_delete_denied(self, client: AsyncClient, sales_rep_world):
        response = await client.delete(
            f"/api/leads/{sales_rep_world['l1'].id}", headers=auth_headers("u1")
        )

        assert response.status_code == 403
        error = response.json()["error"]
        assert error["code"] == "PERMISSION_DENIED"
        assert error["details"] == {"module": "leads", "action": "delete"}

    async def test_edit_foreign_lead_denied(self, client: AsyncClient, sales_rep_world):
        response = await client.patch(
            f"/api/leads/{sales_rep_world['l2'].id}",
            json={"status": "qualified"},
            headers=auth_headers("u1"),
        )
        assert response.status_code == 403

    async def test_communications(self, client: AsyncClient, sales_rep_world):
        lead_id = sales_rep_world["l1"].id

        created = await client.post(
            f"/api/leads/{lead_id}/communications",
            json={"type": "email", "subject": "Hello", "content": "Following up"},
            headers=auth_headers("u1"),
        )
        history = await client.get(
            f"/api/leads/{lead_id}/communications", headers=auth_headers("u1")
        )

        assert created.status_code == 201
        assert history.status_code == 200
        assert [c["subject"] for c in history.json()] == ["Hello"]


@pytest.mark.integration
@pytest.mark.asyncio
class TestOtherEntities:

    async def test_super_admin_manages_opportunities(self, client: AsyncClient, super_admin):
        headers = auth_headers("admin")

        created = await client.post(
            "/api/opportunities/",
            json={"name": "Big Deal", "value": 25000, "assigned_to": "u2"},
            headers=headers,
        )
        assert created.status_code == 201
        opportunity_id = created.json()["id"]

        updated = await client.patch(
            f"/api/opportunities/{opportunity_id}",
            json={"stage": "negotiation", "probability": 0.6},
            headers=headers,
        )
        assert updated.status_code == 200
        assert updated.json()["stage"] == "negotiation"

        listed = await client.get(
            "/api/opportunities/", params={"stage": "negotiation"}, headers=headers
        )
        assert listed.json()["total"] == 1

        deleted = await client.delete(f"/api/opportunities/{opportunity_id}", headers=headers)
        assert deleted.status_code == 204

    async def test_customer_owner_defaults_to_caller(self, client: AsyncClient, super_admin):
        response = await client.post(
            "/api/customers/",
            json={
                "name": "Umbrella",
                "addresses": [{"street": "1 Main St", "city": "Raccoon City", "country": "US"}],
            },
            headers=auth_headers("admin"),
        )
        assert response.status_code == 201
        data = response.json()
        assert data["owner_id"] == "admin"
        assert data["addresses"][0]["type"] == "billing"


@pytest.mark.integration
@pytest.mark.asyncio
class TestRolesEndpoints:

    async def test_non_admin_forbidden(self, client: AsyncClient, sales_rep_world):
        response = await client.get("/api/roles/", headers=auth_headers("u1"))
        assert response.status_code == 403

    async def test_role_lifecycle(self, client: AsyncClient, super_admin, make_profile):
        headers = auth_headers("admin")

        created = await client.post("/api/roles/", json={"name": "Support"}, headers=headers)
        assert created.status_code == 201
        role_id = created.json()["id"]

        matrix = await client.put(
            f"/api/roles/{role_id}/permissions",
            json={"entries": [{"module": "customers", "view_type": "all", "can_edit": True}]},
            headers=headers,
        )
        assert matrix.status_code == 200
        assert matrix.json()[0]["module"] == "customers"

        await make_profile("agent")
        assigned = await client.put(
            "/api/roles/users/agent/role", json={"role_id": role_id}, headers=headers
        )
        assert assigned.status_code == 200

        agent = await client.get("/api/me/permissions", headers=auth_headers("agent"))
        assert agent.json()["modules"]["customers"]["can_edit"] is True

        blocked = await client.delete(f"/api/roles/{role_id}", headers=headers)
        assert blocked.status_code == 422
        assert blocked.json()["error"]["code"] == "ROLE_IN_USE"

    async def test_blank_role_name(self, client: AsyncClient, super_admin):
        response = await client.post(
            "/api/roles/", json={"name": "   "}, headers=auth_headers("admin")
        )
        assert response.status_code == 422
        assert response.json()["error"]["details"] == {"field": "name"}

    async def test_unknown_module(self, client: AsyncClient, super_admin):
        created = await client.post(
            "/api/roles/", json={"name": "Ops"}, headers=auth_headers("admin")
        )
        response = await client.put(
            f"/api/roles/{created.json()['id']}/permissions",
            json={"entries": [{"module": "payroll", "view_type": "all"}]},
            headers=auth_headers("admin"),
        )
        assert response.status_code == 422

    async def test_sub_user_lifecycle(self, client: AsyncClient, super_admin):
        headers = auth_headers("admin")
        role = await client.post("/api/roles/", json={"name": "Support"}, headers=headers)
        role_id = role.json()["id"]

        created = await client.post(
            "/api/roles/users",
            json={"user_id": "agent", "email": "agent@example.com", "role_id": role_id},
            headers=headers,
        )
        assert created.status_code == 201
        assert created.json()["name"] == "agent"
        assert created.json()["created_by_user_id"] == "admin"

        duplicate = await client.post(
            "/api/roles/users", json={"user_id": "agent", "name": "Again"}, headers=headers
        )
        assert duplicate.json()["error"]["code"] == "USER_EXISTS"

        renamed = await client.patch(
            "/api/roles/users/agent", json={"name": "Field Agent"}, headers=headers
        )
        assert renamed.status_code == 200
        assert renamed.json()["name"] == "Field Agent"
        assert renamed.json()["role_id"] == role_id

        team = await client.get("/api/roles/users/admin/team", headers=headers)
        assert [p["user_id"] for p in team.json()] == ["agent"]

    async def test_sub_user_admin_forbidden(self, client: AsyncClient, sales_rep_world):
        created = await client.post(
            "/api/roles/users", json={"user_id": "u9", "name": "Sneaky"}, headers=auth_headers("u1")
        )
        assert created.status_code == 403
        renamed = await client.patch(
            "/api/roles/users/u2", json={"name": "Renamed"}, headers=auth_headers("u1")
        )
        assert renamed.status_code == 403

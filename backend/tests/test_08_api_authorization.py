"""
Tests 801-846: API authorization

Routes run in-process against FakeDatabase.  Every denial must happen
before any SQL is issued, and every permitted read/update/delete must
carry the caller's RLS clause.
"""
import logging

import httpx
import pytest
from fastapi import Depends

from fieldservice.database import get_db
from fieldservice.entities import get_entity
from fieldservice.main import create_app
from fieldservice.middleware.auth import require_minimum_role
from fieldservice.rbac.loader import PermissionConfig
from fieldservice.services.entity_service import EntityService


class TestAuthentication:

    # ==================================================================
    # Tests 801-806: Tokens
    # ==================================================================

    async def test_801_health_is_public(self, client):
        r = await client.get("/api/health")
        assert r.status_code == 200
        assert r.json()["status"] == "healthy"

    async def test_802_no_token_returns_401(self, client):
        r = await client.get("/api/work_orders")
        assert r.status_code == 401

    async def test_803_garbage_token_returns_401(self, client):
        r = await client.get("/api/work_orders", headers={"Authorization": "Bearer not.a.jwt"})
        assert r.status_code == 401

    async def test_804_wrong_secret_returns_401(self, client):
        from jose import jwt

        token = jwt.encode({"user_id": 1, "role": "admin"}, "wrong-secret", algorithm="HS256")
        r = await client.get("/api/work_orders", headers={"Authorization": f"Bearer {token}"})
        assert r.status_code == 401

    async def test_805_token_without_user_id_returns_401(self, client, token_for):
        token = token_for("admin", user_id=None)
        r = await client.get("/api/permissions", headers={"Authorization": f"Bearer {token}"})
        assert r.status_code == 401

    async def test_806_sub_claim_used_as_user_id(self, client, token_for, fake_db):
        token = token_for("client", user_id=None, sub="17")
        r = await client.get("/api/work_orders", headers={"Authorization": f"Bearer {token}"})
        assert r.status_code == 200
        assert fake_db.last_params[0] == 17


class TestRouteGates:

    # ==================================================================
    # Tests 807-815: RBAC denials
    # ==================================================================

    async def test_807_missing_role_is_forbidden(self, client, headers_for, fake_db):
        r = await client.get("/api/work_orders", headers=headers_for(None))
        assert r.status_code == 403
        assert r.json() == {"detail": "No role assigned", "code": "FORBIDDEN"}
        assert fake_db.queries == []

    async def test_808_unknown_role_is_forbidden(self, client, headers_for, fake_db):
        r = await client.get("/api/work_orders", headers=headers_for("ghost"))
        assert r.status_code == 403
        assert r.json()["detail"] == "Unknown role: ghost"
        assert fake_db.queries == []

    async def test_809_client_cannot_delete_users(self, client, headers_for, fake_db):
        r = await client.delete("/api/users/1", headers=headers_for("client"))
        assert r.status_code == 403
        assert "admin" in r.json()["detail"]
        assert fake_db.queries == []

    async def test_810_manager_cannot_delete_users(self, client, headers_for, fake_db):
        r = await client.delete("/api/users/1", headers=headers_for("manager"))
        assert r.status_code == 403
        assert fake_db.queries == []

    async def test_811_client_cannot_create_invoices(self, client, headers_for, fake_db):
        r = await client.post("/api/invoices", headers=headers_for("client"), json={"total": 10})
        assert r.status_code == 403
        assert fake_db.queries == []

    async def test_812_client_has_no_inventory_access(self, client, headers_for):
        r = await client.get("/api/inventory", headers=headers_for("client"))
        assert r.status_code == 403

    async def test_813_role_claim_is_case_insensitive(self, client, headers_for):
        r = await client.get("/api/inventory", headers=headers_for("TECHNICIAN"))
        assert r.status_code == 200

    async def test_814_denial_is_logged(self, client, headers_for, caplog):
        await client.delete("/api/users/1", headers=headers_for("client", user_id=5))
        assert "AUTH_INSUFFICIENT_PERMISSION user=5 role=client" in caplog.text

    async def test_815_unknown_route_is_404(self, client, headers_for):
        r = await client.get("/api/spaceships", headers=headers_for("admin"))
        assert r.status_code == 404


class TestRowLevelSecurity:

    # ==================================================================
    # Tests 816-830: RLS applied on top of RBAC
    # ==================================================================

    async def test_816_client_list_is_scoped_to_customer(self, client, headers_for, fake_db):
        r = await client.get("/api/work_orders", headers=headers_for("client", user_id=42))
        assert r.status_code == 200
        count_sql, count_params = fake_db.queries[0]
        assert "WHERE (customer_id = $1)" in count_sql
        assert count_params == (42,)
        assert "WHERE (customer_id = $1)" in fake_db.last_sql
        assert fake_db.last_params == (42, 50, 0)

    async def test_817_technician_list_is_scoped_to_assignment(self, client, headers_for, fake_db):
        r = await client.get("/api/work_orders", headers=headers_for("technician", user_id=8))
        assert r.status_code == 200
        assert "WHERE (assigned_technician_id = $1)" in fake_db.last_sql

    async def test_818_dispatcher_list_is_unfiltered(self, client, headers_for, fake_db):
        r = await client.get("/api/work_orders", headers=headers_for("dispatcher"))
        assert r.status_code == 200
        assert "WHERE" not in fake_db.last_sql
        assert fake_db.last_params == (50, 0)

    async def test_819_technician_invoices_deny_all(self, client, headers_for, fake_db):
        r = await client.get("/api/invoices", headers=headers_for("technician"))
        assert r.status_code == 200
        assert "WHERE (1=0)" in fake_db.last_sql

    async def test_820_admin_notifications_only_own(self, client, headers_for, fake_db):
        r = await client.get("/api/notifications", headers=headers_for("admin", user_id=1))
        assert r.status_code == 200
        assert "WHERE (user_id = $1)" in fake_db.last_sql

    async def test_821_list_response_shape_and_output_filter(self, client, headers_for, fake_db):
        fake_db.rows = [{"id": 5, "email": "a@b.com", "auth0_id": "auth0|xyz"}]
        r = await client.get("/api/users", headers=headers_for("client", user_id=5))
        assert r.status_code == 200
        assert r.json() == {
            "items": [{"id": 5, "email": "a@b.com"}],
            "total": 1,
            "page": 1,
            "page_size": 50,
        }

    async def test_822_search_and_pagination(self, client, headers_for, fake_db):
        r = await client.get(
            "/api/customers",
            params={"search": "ann", "page": 2, "page_size": 10},
            headers=headers_for("client", user_id=3),
        )
        assert r.status_code == 200
        assert "ILIKE $1" in fake_db.last_sql
        assert "AND (id = $2)" in fake_db.last_sql
        assert fake_db.last_params == ("%ann%", 3, 10, 10)

    async def test_823_page_size_limit(self, client, headers_for):
        r = await client.get("/api/customers", params={"page_size": 500}, headers=headers_for("admin"))
        assert r.status_code == 422

    async def test_824_get_hidden_record_is_404(self, client, headers_for, fake_db):
        r = await client.get("/api/users/9", headers=headers_for("client", user_id=5))
        assert r.status_code == 404
        assert r.json()["code"] == "NOT_FOUND"
        assert fake_db.last_sql == 'SELECT * FROM "users" WHERE (id = $1) AND (id = $2)'
        assert fake_db.last_params == (9, 5)

    async def test_825_get_strips_sensitive_fields(self, client, headers_for, fake_db):
        fake_db.rows = [{"id": 5, "email": "a@b.com", "auth0_id": "auth0|xyz"}]
        r = await client.get("/api/users/5", headers=headers_for("client", user_id=5))
        assert r.status_code == 200
        assert r.json() == {"id": 5, "email": "a@b.com"}

    async def test_826_update_carries_rls(self, client, headers_for, fake_db):
        fake_db.rows = [{"id": 7, "status": "closed"}]
        r = await client.patch("/api/work_orders/7", json={"status": "closed"}, headers=headers_for("client", user_id=42))
        assert r.status_code == 200
        assert r.json() == {"id": 7, "status": "closed"}
        assert fake_db.last_sql == (
            'UPDATE "work_orders" SET status = $1 WHERE (id = $2) AND (customer_id = $3) RETURNING *'
        )
        assert fake_db.last_params == ("closed", 7, 42)
        assert fake_db.commits == 1

    async def test_827_update_of_hidden_record_is_404(self, client, headers_for, fake_db):
        r = await client.patch("/api/work_orders/7", json={"status": "closed"}, headers=headers_for("client"))
        assert r.status_code == 404
        assert fake_db.commits == 0

    async def test_828_immutable_field_rejects_whole_update(self, client, headers_for, fake_db):
        r = await client.patch(
            "/api/work_orders/7",
            json={"status": "closed", "work_order_number": "WO-9"},
            headers=headers_for("admin"),
        )
        assert r.status_code == 400
        assert r.json() == {
            "detail": "Cannot modify immutable field(s): work_order_number",
            "code": "IMMUTABLE_FIELD_VIOLATION",
            "fields": ["work_order_number"],
        }
        assert fake_db.queries == []

    async def test_829_invalid_field_name_rejected(self, client, headers_for, fake_db):
        r = await client.patch("/api/work_orders/7", json={"status; DROP TABLE x": 1}, headers=headers_for("admin"))
        assert r.status_code == 400
        assert r.json()["code"] == "INVALID_FIELD"
        assert fake_db.queries == []

    async def test_830_delete_carries_rls(self, client, headers_for, fake_db):
        fake_db.rows = [{"id": 7}]
        r = await client.delete("/api/saved_views/7", headers=headers_for("client", user_id=3))
        assert r.status_code == 204
        assert fake_db.last_sql == 'DELETE FROM "saved_views" WHERE (id = $1) AND (user_id = $2) RETURNING id'
        assert fake_db.last_params == (7, 3)

    async def test_831_create(self, client, headers_for, fake_db):
        fake_db.rows = [{"id": 11, "invoice_number": "INV-1", "api_key": "k"}]
        r = await client.post("/api/invoices", json={"invoice_number": "INV-1"}, headers=headers_for("dispatcher"))
        assert r.status_code == 201
        assert r.json() == {"id": 11, "invoice_number": "INV-1"}
        assert fake_db.last_sql == 'INSERT INTO "invoices" (invoice_number) VALUES ($1) RETURNING *'

    async def test_832_create_cannot_set_id(self, client, headers_for, fake_db):
        r = await client.post("/api/invoices", json={"id": 1}, headers=headers_for("admin"))
        assert r.status_code == 400
        assert r.json()["code"] == "IMMUTABLE_FIELD_VIOLATION"


class TestPermissionRoutes:

    # ==================================================================
    # Tests 833-840: Frontend permission endpoints
    # ==================================================================

    async def test_833_document_requires_auth(self, client):
        r = await client.get("/api/permissions")
        assert r.status_code == 401

    async def test_834_document_matches_config(self, client, headers_for, config):
        r = await client.get("/api/permissions", headers=headers_for("client"))
        assert r.status_code == 200
        assert r.json() == config.to_document()

    async def test_835_me(self, client, headers_for):
        r = await client.get("/api/permissions/me", headers=headers_for("technician", user_id=8))
        assert r.status_code == 200
        body = r.json()
        assert body["user_id"] == 8
        assert body["priority"] == 2
        assert body["resources"]["work_orders"]["operations"] == ["create", "read", "update"]
        assert body["resources"]["admin_panel"]["operations"] == []

    async def test_836_me_without_role(self, client, headers_for):
        r = await client.get("/api/permissions/me", headers=headers_for(None))
        assert r.status_code == 200
        body = r.json()
        assert body["priority"] is None
        assert all(entry["operations"] == [] for entry in body["resources"].values())

    async def test_837_check_denied(self, client, headers_for):
        r = await client.get(
            "/api/permissions/check",
            params={"resource": "users", "operation": "delete"},
            headers=headers_for("manager"),
        )
        assert r.status_code == 200
        body = r.json()
        assert body["allowed"] is False
        assert body["minimumRequired"] == "admin"

    async def test_838_check_allowed(self, client, headers_for):
        r = await client.get(
            "/api/permissions/check",
            params={"resource": "users", "operation": "delete"},
            headers=headers_for("admin"),
        )
        assert r.json()["allowed"] is True

    @pytest.mark.parametrize("resource,operation,reason", [
        ("spaceships", "read", "Unknown resource: spaceships"),
        ("users", "archive", "Unknown operation: archive"),
    ])
    async def test_839_check_unknown_names(self, client, headers_for, resource, operation, reason):
        r = await client.get(
            "/api/permissions/check",
            params={"resource": resource, "operation": operation},
            headers=headers_for("admin"),
        )
        assert r.status_code == 200
        assert r.json()["denialReason"] == reason

    async def test_840_user_id_string_claim_becomes_int(self, client, headers_for, fake_db):
        await client.get("/api/work_orders", headers=headers_for("client", user_id="42"))
        assert fake_db.last_params[0] == 42

    async def test_841_user_id_zero_is_kept(self, client, token_for, fake_db):
        token = token_for("client", user_id=0, sub="99")
        r = await client.get("/api/work_orders", headers={"Authorization": f"Bearer {token}"})
        assert r.status_code == 200
        assert fake_db.last_params[0] == 0


class TestRlsFailsClosed:

    # ==================================================================
    # Tests 842-843: No resolvable RLS policy means no rows
    # ==================================================================

    async def test_842_role_without_rls_policy_sees_nothing(self, document, fake_db, headers_for, caplog):
        del document["resources"]["users"]["rowLevelSecurity"]["client"]
        application = create_app(PermissionConfig.from_document(document))

        async def _get_fake_db():
            yield fake_db

        application.dependency_overrides[get_db] = _get_fake_db
        transport = httpx.ASGITransport(app=application)
        with caplog.at_level(logging.WARNING, logger="fieldservice.middleware.auth"):
            async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
                r = await c.get("/api/users", headers=headers_for("client", user_id=5))
        assert r.status_code == 200
        assert r.json()["items"] == []
        assert "WHERE (1=0)" in fake_db.last_sql
        assert 5 not in fake_db.last_params
        assert "No RLS policy for role 'client' on users" in caplog.text

    async def test_843_service_without_context_denies(self, fake_db, caplog):
        fake_db.rows = [{"id": 1, "customer_id": 42}]
        service = EntityService(fake_db, get_entity("work_orders"))
        with caplog.at_level(logging.WARNING, logger="fieldservice.services.entity_service"):
            await service.list(None)
        assert all("WHERE (1=0)" in sql for sql, _ in fake_db.queries)
        assert len(fake_db.queries) == 2
        assert "No RLS context for work_orders" in caplog.text


class TestMinimumRoleGate:

    # ==================================================================
    # Tests 844-846: require_minimum_role
    # ==================================================================

    @pytest.fixture
    def gated_app(self, app):
        @app.get("/api/manager-only")
        async def manager_only(user: dict = Depends(require_minimum_role("manager"))):
            return {"user_id": user["user_id"]}

        return app

    async def test_844_lower_role_is_forbidden(self, gated_app, client, headers_for, caplog):
        with caplog.at_level(logging.WARNING, logger="fieldservice.middleware.auth"):
            r = await client.get("/api/manager-only", headers=headers_for("dispatcher", user_id=4))
        assert r.status_code == 403
        assert r.json() == {"detail": "Requires 'manager' role or higher", "code": "FORBIDDEN"}
        assert "AUTH_INSUFFICIENT_ROLE user=4 role=dispatcher" in caplog.text

    @pytest.mark.parametrize("role", ["manager", "MANAGER", "admin"])
    async def test_845_role_at_or_above_passes(self, gated_app, client, headers_for, role):
        r = await client.get("/api/manager-only", headers=headers_for(role, user_id=8))
        assert r.status_code == 200
        assert r.json() == {"user_id": 8}

    async def test_846_missing_role_is_forbidden(self, gated_app, client, headers_for):
        r = await client.get("/api/manager-only", headers=headers_for(None))
        assert r.status_code == 403

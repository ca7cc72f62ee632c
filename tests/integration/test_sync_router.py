"""
Integration tests for onboarding, manual sync and sync history endpoints.
"""

from unittest.mock import patch

from sqlalchemy.exc import OperationalError

from storesync.connectors.shopify import ConnectionCheck
from storesync.models import Customer, Order, Product, SyncRun, Tenant
from storesync.pipeline.leases import get_leases

from tests.fixtures.factories import create_tenant


class TestOnboarding:
    def test_creates_tenant_after_connection_check(self, client, test_db):
        with patch("storesync.connectors.shopify.verify_connection", return_value=ConnectionCheck(success=True, shop={})) as verify:
            response = client.post("/api/tenants", json={
                "email": "owner@shop.example",
                "shop_domain": "https://My-Shop.myshopify.com/",
                "access_token": "shpat_abc",
            })

        assert response.status_code == 201
        body = response.json()
        assert body["shop_domain"] == "my-shop.myshopify.com"
        assert len(body["api_key"]) == 64
        assert "access_token" not in body
        verify.assert_called_once_with("my-shop.myshopify.com", "shpat_abc")
        assert test_db.query(Tenant).count() == 1

    def test_failed_connection_creates_nothing(self, client, test_db):
        failed = ConnectionCheck(success=False, error="[API] Invalid API key or access token")
        with patch("storesync.connectors.shopify.verify_connection", return_value=failed):
            response = client.post("/api/tenants", json={
                "email": "owner@shop.example",
                "shop_domain": "shop.myshopify.com",
                "access_token": "bad",
            })

        assert response.status_code == 400
        assert "Invalid API key" in response.json()["detail"]
        assert test_db.query(Tenant).count() == 0

    def test_duplicate_email(self, client, tenant):
        with patch("storesync.connectors.shopify.verify_connection", return_value=ConnectionCheck(success=True)):
            response = client.post("/api/tenants", json={
                "email": tenant.email,
                "shop_domain": "other.myshopify.com",
                "access_token": "k2",
            })

        assert response.status_code == 400

    def test_rejects_extra_fields_and_bad_domain(self, client):
        response = client.post("/api/tenants", json={
            "email": "a@b.example",
            "shop_domain": "not a domain/",
            "access_token": "k",
            "role": "admin",
        })

        assert response.status_code == 422


class TestGetTenant:
    def test_hides_secrets(self, client, tenant, auth_headers):
        response = client.get(f"/api/tenants/{tenant.id}", headers=auth_headers)

        assert response.status_code == 200
        assert response.json()["shop_domain"] == "d.myshopify.com"
        assert "access_token" not in response.json()
        assert "api_key" not in response.json()

    def test_requires_api_key(self, client, tenant):
        assert client.get(f"/api/tenants/{tenant.id}").status_code == 422
        assert client.get(f"/api/tenants/{tenant.id}", headers={"X-API-Key": "nope"}).status_code == 401


class TestManualSync:
    def test_sync_succeeds(self, client, tenant, auth_headers, patched_shopify, test_db):
        response = client.post(f"/api/tenants/{tenant.id}/sync", headers=auth_headers)

        assert response.status_code == 200
        body = response.json()
        assert body["ok"] is True
        assert body["state"] == "done"
        assert body["counts"]["customers"]["upserted"] == 2
        assert test_db.query(Customer).count() == 2
        assert test_db.query(Product).count() == 1
        assert test_db.query(Order).count() == 1

    def test_connection_failure_is_502(self, client, tenant, auth_headers, patched_shopify, test_db):
        patched_shopify.shops["d.myshopify.com"]["token"] = "rotated"

        response = client.post(f"/api/tenants/{tenant.id}/sync", headers=auth_headers)

        assert response.status_code == 502
        detail = response.json()["detail"]
        assert detail["error"] == "connection_failed"
        assert "Invalid API key" in detail["detail"]
        assert test_db.query(Customer).count() == 0

    def test_sync_in_progress_is_409(self, client, tenant, auth_headers, patched_shopify):
        with get_leases().hold(tenant.id):
            response = client.post(f"/api/tenants/{tenant.id}/sync", headers=auth_headers)

        assert response.status_code == 409
        assert response.json()["detail"]["error"] == "sync_in_progress"
        assert patched_shopify.verify_calls == []

    def test_other_tenant_is_forbidden(self, client, tenant, test_db, patched_shopify):
        other = create_tenant(test_db, email="b@example.com", shop_domain="b.myshopify.com", access_token="kb")

        response = client.post(f"/api/tenants/{tenant.id}/sync", headers={"X-API-Key": other.api_key})

        assert response.status_code == 403
        assert patched_shopify.verify_calls == []

    def test_sync_trigger_rate_limited(self, client, tenant, auth_headers, patched_shopify):
        statuses = [
            client.post(f"/api/tenants/{tenant.id}/sync", headers=auth_headers).status_code
            for _ in range(7)
        ]

        assert statuses[:6] == [200] * 6
        assert statuses[6] == 429

    def test_store_failure_loading_tenant_is_sync_failed(self, client, tenant, auth_headers, patched_shopify, test_db):
        db_down = OperationalError("SELECT", {}, Exception("db down"))
        with patch("storesync.pipeline.sync._load_tenant", side_effect=db_down):
            response = client.post(f"/api/tenants/{tenant.id}/sync", headers=auth_headers)

        assert response.status_code == 500
        detail = response.json()["detail"]
        assert detail["error"] == "sync_failed"
        assert "db down" in detail["detail"]
        assert patched_shopify.verify_calls == []
        run = test_db.query(SyncRun).one()
        assert (run.status, run.error_type) == ("failed", "sync_failed")
        assert not get_leases().is_held(tenant.id)


class TestSyncRuns:
    def test_lists_recent_runs(self, client, tenant, auth_headers, patched_shopify):
        client.post(f"/api/tenants/{tenant.id}/sync", headers=auth_headers)
        patched_shopify.shops["d.myshopify.com"]["token"] = "rotated"
        client.post(f"/api/tenants/{tenant.id}/sync", headers=auth_headers)

        response = client.get(f"/api/tenants/{tenant.id}/sync-runs", headers=auth_headers)

        assert response.status_code == 200
        runs = response.json()
        assert [r["status"] for r in runs] == ["failed", "succeeded"]
        assert runs[0]["error_type"] == "connection_failed"
        assert runs[1]["counts"]["orders"]["upserted"] == 1
        assert all(r["trigger"] == "manual" for r in runs)


def test_health(client):
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok", "scheduler_running": False}

"""API tests for the alert feed, read-state updates, and evaluation endpoints."""

from __future__ import annotations

from compliance_monitor.store import data_store


def _evaluate(client, org_id, headers):
    return client.post(f"/api/alerts/evaluate/{org_id}", headers=headers)


# ─── Test 1: Authentication and authorization ───────────────────────────────

class TestAlertAuth:
    """Role checks on alert endpoints."""

    def test_list_requires_authentication(self, client):
        response = client.get("/api/alerts")
        assert response.status_code == 401

    def test_unknown_token_is_unauthenticated(self, client):
        response = client.get("/api/alerts", headers={"Authorization": "Bearer nope"})
        assert response.status_code == 401

    def test_client_cannot_evaluate(self, client, client_headers, sample_org):
        response = _evaluate(client, sample_org, client_headers)
        assert response.status_code == 403

    def test_client_cannot_update(self, client, client_headers):
        response = client.patch("/api/alerts", json={"alert_id": "a-1", "is_read": True}, headers=client_headers)
        assert response.status_code == 403

    def test_client_cannot_list_other_org(self, client, client_headers, other_org):
        response = client.get("/api/alerts", params={"organization_id": other_org}, headers=client_headers)
        assert response.status_code == 403


# ─── Test 2: Evaluation endpoints ───────────────────────────────────────────

class TestEvaluateEndpoints:
    """POST /api/alerts/evaluate and /api/alerts/evaluate/{org_id}."""

    def test_evaluate_creates_alerts(self, client, owner_headers, sample_financials):
        response = _evaluate(client, sample_financials, owner_headers)
        assert response.status_code == 200
        data = response.json()
        assert data["organization_id"] == sample_financials
        assert data["alerts_created"] == 3
        by_type = {a["alert_type"]: a for a in data["alerts"]}
        assert by_type["daf_ratio_increase"]["severity"] == "high"
        assert by_type["top_donor_concentration"]["severity"] == "high"
        assert by_type["missing_990"]["severity"] == "medium"
        assert by_type["missing_990"]["metadata"]["months_overdue"] == 29
        assert by_type["missing_990"]["metadata"]["kind"] == "missing_990"

    def test_second_evaluation_is_deduplicated(self, client, analyst_headers, sample_financials):
        _evaluate(client, sample_financials, analyst_headers)
        response = _evaluate(client, sample_financials, analyst_headers)
        assert response.json()["alerts_created"] == 0
        assert len(data_store.alerts) == 3

    def test_unknown_org_is_404(self, client, owner_headers):
        response = _evaluate(client, "org-missing", owner_headers)
        assert response.status_code == 404
        body = response.json()
        assert body["success"] is False
        assert body["error"] == "Organization not found"
        assert "org-missing" in body["message"]

    def test_batch_evaluation(self, client, owner_headers, sample_financials, other_org):
        response = client.post("/api/alerts/evaluate", headers=owner_headers)
        assert response.status_code == 200
        data = response.json()
        assert data["organizations_evaluated"] == 2
        assert data["results"] == {sample_financials: 3, other_org: 1}
        assert data["alerts_created"] == 4

    def test_batch_evaluation_is_audited(self, client, owner_headers, sample_org):
        client.post("/api/alerts/evaluate", headers=owner_headers)
        actions = [entry.action for entry in data_store.audit_log]
        assert "alert_batch_evaluation" in actions

    def test_single_evaluation_is_audited(self, client, analyst_headers, sample_financials):
        _evaluate(client, sample_financials, analyst_headers)
        entry = data_store.audit_log[-1]
        assert entry.action == "alert_evaluation"
        assert entry.user_id == "u-analyst"
        assert entry.org_id == sample_financials
        assert entry.details["alerts_created"] == 3
        assert sorted(entry.details["alert_types"]) == [
            "daf_ratio_increase",
            "missing_990",
            "top_donor_concentration",
        ]


# ─── Test 3: Listing ────────────────────────────────────────────────────────

class TestListAlerts:
    """GET /api/alerts."""

    def test_empty_feed(self, client, owner_headers):
        response = client.get("/api/alerts", headers=owner_headers)
        assert response.status_code == 200
        assert response.json() == {"alerts": [], "total": 0, "limit": 50, "offset": 0}

    def test_owner_sees_all_orgs(self, client, owner_headers, sample_financials, other_org):
        client.post("/api/alerts/evaluate", headers=owner_headers)
        response = client.get("/api/alerts", headers=owner_headers)
        assert response.json()["total"] == 4

    def test_filter_by_organization(self, client, owner_headers, sample_financials, other_org):
        client.post("/api/alerts/evaluate", headers=owner_headers)
        response = client.get("/api/alerts", params={"organization_id": other_org}, headers=owner_headers)
        alerts = response.json()["alerts"]
        assert len(alerts) == 1
        assert alerts[0]["organization_id"] == other_org

    def test_client_is_scoped_to_own_org(self, client, owner_headers, client_headers, sample_financials, other_org):
        client.post("/api/alerts/evaluate", headers=owner_headers)
        response = client.get("/api/alerts", headers=client_headers)
        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 3
        assert {a["organization_id"] for a in data["alerts"]} == {"org-hope"}

    def test_pagination(self, client, owner_headers, sample_financials):
        _evaluate(client, sample_financials, owner_headers)
        response = client.get("/api/alerts", params={"limit": 2, "offset": 2}, headers=owner_headers)
        data = response.json()
        assert data["total"] == 3
        assert len(data["alerts"]) == 1
        assert data["limit"] == 2
        assert data["offset"] == 2

    def test_unread_only(self, client, owner_headers, sample_financials):
        alerts = _evaluate(client, sample_financials, owner_headers).json()["alerts"]
        client.patch("/api/alerts", json={"alert_id": alerts[0]["id"], "is_read": True}, headers=owner_headers)
        response = client.get("/api/alerts", params={"unread_only": True}, headers=owner_headers)
        data = response.json()
        assert data["total"] == 2
        assert all(not a["is_read"] for a in data["alerts"])

    def test_limit_out_of_range_is_400(self, client, owner_headers):
        for limit in (0, 501):
            response = client.get("/api/alerts", params={"limit": limit}, headers=owner_headers)
            assert response.status_code == 400
            assert response.json()["error"] == "Validation failed"

    def test_negative_offset_is_400(self, client, owner_headers):
        response = client.get("/api/alerts", params={"offset": -1}, headers=owner_headers)
        assert response.status_code == 400

    def test_listing_is_audited(self, client, client_headers, sample_financials):
        client.get("/api/alerts", params={"unread_only": True}, headers=client_headers)
        entry = data_store.audit_log[-1]
        assert entry.action == "alert_list"
        assert entry.resource == "alert"
        assert entry.org_id == "org-hope"
        assert entry.details == {"returned": 0, "total": 0, "unread_only": True}


# ─── Test 4: Read-state updates ─────────────────────────────────────────────

class TestUpdateAlert:
    """PATCH /api/alerts."""

    def test_mark_read_and_unread(self, client, owner_headers, sample_financials):
        alert_id = _evaluate(client, sample_financials, owner_headers).json()["alerts"][0]["id"]

        response = client.patch("/api/alerts", json={"alert_id": alert_id, "is_read": True}, headers=owner_headers)
        assert response.status_code == 200
        assert response.json()["alert"]["is_read"] is True
        assert data_store.get_alert(alert_id).is_read is True

        response = client.patch("/api/alerts", json={"alert_id": alert_id, "is_read": False}, headers=owner_headers)
        assert response.json()["alert"]["is_read"] is False

    def test_unknown_alert_is_404(self, client, owner_headers):
        response = client.patch("/api/alerts", json={"alert_id": "missing", "is_read": True}, headers=owner_headers)
        assert response.status_code == 404
        assert response.json()["error"] == "Alert not found"

    def test_missing_fields_is_400(self, client, owner_headers):
        response = client.patch("/api/alerts", json={"alert_id": "x"}, headers=owner_headers)
        assert response.status_code == 400
        assert "is_read" in response.json()["details"]

    def test_update_is_audited(self, client, analyst_headers, sample_financials):
        alert_id = _evaluate(client, sample_financials, analyst_headers).json()["alerts"][0]["id"]
        client.patch("/api/alerts", json={"alert_id": alert_id, "is_read": True}, headers=analyst_headers)
        entry = data_store.audit_log[-1]
        assert entry.action == "alert_update"
        assert entry.user_id == "u-analyst"
        assert entry.org_id == sample_financials
        assert entry.result == "success"
        assert entry.details == {"alert_id": alert_id, "is_read": True}

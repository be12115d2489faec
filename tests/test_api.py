"""HTTP-level tests: routing, permissions, the error envelope and middleware."""

import uuid

import pytest
from sqlalchemy import text

from dealdesk.auth.rbac import PERMISSION_MATRIX, Action, Resource
from dealdesk.models.enums import UserRole
from tests.conftest import ADMIN, CLIENT, PARTNER, PARTNER_ID

pytestmark = pytest.mark.anyio


# ── App shell ─────────────────────────────────────────────────────────────────


async def test_health(client):
    resp = await client.get("/health")

    assert resp.status_code == 200
    body = resp.json()
    assert body["status"] == "healthy"
    assert body["checks"]["database"]["status"] == "healthy"
    assert resp.headers["X-API-Version"] == "v1"
    assert resp.headers["x-content-type-options"] == "nosniff"
    assert resp.headers["x-frame-options"] == "DENY"


async def test_oversized_body_rejected(client, deal):
    resp = await client.post(
        f"/v1/checklists/{deal.id}/items",
        content=b"x" * 2_000_000,
        headers={"content-type": "application/json"},
    )

    assert resp.status_code == 413
    assert resp.json()["error"] == "payload_too_large"


# ── Requirement catalog ───────────────────────────────────────────────────────


async def test_list_requirements_hides_inactive(client, catalog):
    resp = await client.get("/v1/requirements")

    assert resp.status_code == 200
    names = [r["name"] for r in resp.json()]
    assert "Legacy Questionnaire" not in names
    assert names[0] == "Company Formation Documents"

    resp = await client.get("/v1/requirements/all")
    assert "Legacy Questionnaire" in [r["name"] for r in resp.json()]


async def test_admin_creates_requirement_with_legacy_category(client):
    resp = await client.post(
        "/v1/requirements",
        json={
            "name": "Operating Agreement",
            "category": "Legal Documents",
            "asset_types": ["smb_loans", "smb_loans"],
            "min_funding_tier": "500k_2m",
        },
    )

    assert resp.status_code == 201
    body = resp.json()
    assert body["category"] == "legal"
    assert body["asset_types"] == ["smb_loans"]
    assert body["display_order"] == 10
    assert body["is_active"] is True


async def test_unknown_asset_type_rejected(client):
    resp = await client.post(
        "/v1/requirements",
        json={"name": "Mystery", "category": "other", "asset_types": ["timeshares"]},
    )
    assert resp.status_code == 422


async def test_client_cannot_manage_catalog(client, acting_as):
    acting_as["user"] = CLIENT
    resp = await client.post("/v1/requirements", json={"name": "X", "category": "other"})

    assert resp.status_code == 403
    assert resp.json()["error"] == "http_403"


async def test_update_requirement(client, catalog):
    resp = await client.patch(
        f"/v1/requirements/{catalog['mega'].id}",
        json={"category": "Financial Documents", "min_funding_tier": None, "is_core": True},
    )

    assert resp.status_code == 200
    body = resp.json()
    assert body["category"] == "financials"
    assert body["min_funding_tier"] is None
    assert body["is_core"] is True
    assert body["name"] == "Rating Agency Report"


async def test_deactivate_requirement(client, catalog):
    resp = await client.post(f"/v1/requirements/{catalog['audit'].id}/deactivate")

    assert resp.status_code == 200
    assert resp.json()["is_active"] is False


async def test_deal_context(client, deal):
    resp = await client.get(f"/v1/requirements/deals/{deal.id}/context")

    assert resp.status_code == 200
    assert resp.json()["asset_type"] == "commercial_re"
    assert resp.json()["funding_tier"] == "10m_50m"


# ── Checklists ────────────────────────────────────────────────────────────────


async def test_owner_reads_checklist(client, acting_as, deal, catalog):
    acting_as["user"] = CLIENT
    resp = await client.get(f"/v1/checklists/{deal.id}")

    assert resp.status_code == 200
    body = resp.json()
    assert body["total_count"] == 3
    assert [c["category"] for c in body["categories"]] == ["corporate", "financials", "property"]


async def test_other_client_gets_not_found(client, acting_as, deal, catalog):
    acting_as["user"] = CLIENT.model_copy(update={"user_id": uuid.uuid4()})
    resp = await client.get(f"/v1/checklists/{deal.id}")

    assert resp.status_code == 404
    assert resp.json()["error"] == "not_found"


async def test_waive_with_blank_reason(client, deal, catalog):
    resp = await client.post(
        f"/v1/checklists/{deal.id}/items/{catalog['audit'].id}/waive",
        json={"reason": "  "},
    )

    assert resp.status_code == 422
    assert resp.json()["error"] == "validation_error"


async def test_waive_and_restore(client, deal, catalog):
    url = f"/v1/checklists/{deal.id}/items/{catalog['audit'].id}"

    resp = await client.post(f"{url}/restore")
    assert resp.status_code == 204

    resp = await client.post(f"{url}/waive", json={"reason": "Public filer"})
    assert resp.status_code == 200
    assert resp.json()["status"] == "waived"

    resp = await client.post(f"{url}/restore")
    assert resp.status_code == 200
    assert resp.json()["status"] == "pending"
    assert resp.json()["waived_reason"] is None


async def test_client_uploads_admin_approves(client, acting_as, deal, catalog):
    url = f"/v1/checklists/{deal.id}/items/{catalog['formation'].id}"

    acting_as["user"] = CLIENT
    resp = await client.post(f"{url}/uploaded", json={"document_id": str(uuid.uuid4())})
    assert resp.status_code == 200
    assert resp.json()["status"] == "uploaded"

    resp = await client.post(f"{url}/approved")
    assert resp.status_code == 403

    acting_as["user"] = ADMIN
    resp = await client.post(f"{url}/approved")
    assert resp.status_code == 200
    assert resp.json()["status"] == "approved"


async def test_upload_for_ineligible_requirement(client, deal, catalog):
    resp = await client.post(
        f"/v1/checklists/{deal.id}/items/{catalog['consumer'].id}/uploaded",
        json={"document_id": str(uuid.uuid4())},
    )

    assert resp.status_code == 409
    assert resp.json()["error"] == "not_eligible"


async def test_manual_add(client, deal, catalog):
    resp = await client.post(
        f"/v1/checklists/{deal.id}/items",
        json={"requirement_id": str(catalog["consumer"].id)},
    )

    assert resp.status_code == 201
    assert resp.json()["is_manual_add"] is True


# ── Deal releases ─────────────────────────────────────────────────────────────


async def test_partner_flow(client, acting_as, deal, partner, catalog):
    resp = await client.post(
        "/v1/deal-releases",
        json={"deal_id": str(deal.id), "partner_id": str(partner.id)},
    )
    assert resp.status_code == 201
    release_id = resp.json()["id"]

    resp = await client.post(
        "/v1/deal-releases",
        json={"deal_id": str(deal.id), "partner_id": str(partner.id)},
    )
    assert resp.status_code == 422

    acting_as["user"] = PARTNER
    resp = await client.get("/v1/partner/deals")
    assert resp.status_code == 200
    assert resp.json()["stats"]["new"] == 1

    resp = await client.get(f"/v1/partner/deals/{deal.id}")
    assert resp.status_code == 200
    view = resp.json()
    assert view["status"] == "pending"
    assert view["contact"] is None
    assert "contact" in view["locked_sections"]

    resp = await client.post(
        f"/v1/partner/deals/{deal.id}/access", json={"action": "downloaded_package"}
    )
    assert resp.status_code == 403
    assert resp.json()["error"] == "access_locked"

    resp = await client.post(f"/v1/partner/deals/{deal.id}/view")
    assert resp.json()["status"] == "viewed"

    resp = await client.post(f"/v1/partner/deals/{deal.id}/interest")
    assert resp.status_code == 200
    view = resp.json()
    assert view["status"] == "interested"
    assert view["access_level"] == "full"
    assert view["contact"]["name"] == "Dana Ortiz"

    resp = await client.post(
        f"/v1/partner/deals/{deal.id}/access", json={"action": "downloaded_package"}
    )
    assert resp.status_code == 204

    resp = await client.post(f"/v1/partner/deals/{deal.id}/pass", json={"reason": "Too large"})
    assert resp.status_code == 200
    assert resp.json()["status"] == "passed"

    resp = await client.post(f"/v1/partner/deals/{deal.id}/pass", json={})
    assert resp.status_code == 409
    assert resp.json()["error"] == "invalid_state_transition"

    acting_as["user"] = ADMIN
    resp = await client.get(f"/v1/deal-releases/deals/{deal.id}/access-logs")
    assert resp.status_code == 200
    assert [log["action"] for log in resp.json()] == [
        "viewed_summary",
        "expressed_interest",
        "downloaded_package",
        "passed",
    ]

    resp = await client.get(f"/v1/deal-releases/{release_id}")
    assert resp.json()["pass_reason"] == "Too large"


async def test_admin_transition_endpoint(client, release):
    resp = await client.post(
        f"/v1/deal-releases/{release.id}/transition", json={"status": "passed"}
    )
    assert resp.status_code == 422

    resp = await client.post(
        f"/v1/deal-releases/{release.id}/transition", json={"status": "reviewing"}
    )
    assert resp.status_code == 409


async def test_unreleased_deal_is_not_found_for_partner(client, acting_as, deal, partner):
    acting_as["user"] = PARTNER
    resp = await client.get(f"/v1/partner/deals/{deal.id}")

    assert resp.status_code == 404
    assert resp.json()["error"] == "not_found"


async def test_partner_routes_reject_other_roles(client, release):
    resp = await client.get("/v1/partner/deals")
    assert resp.status_code == 403


async def test_partner_cannot_release(client, acting_as, deal):
    acting_as["user"] = PARTNER
    resp = await client.post(
        "/v1/deal-releases",
        json={"deal_id": str(deal.id), "partner_id": str(PARTNER_ID)},
    )
    assert resp.status_code == 403


async def test_interest_succeeds_when_access_log_is_unavailable(client, acting_as, db, release):
    await db.execute(text("DROP TABLE partner_access_logs"))
    await db.commit()

    acting_as["user"] = PARTNER
    resp = await client.post(f"/v1/partner/deals/{release.deal_id}/interest")

    assert resp.status_code == 200
    assert resp.json()["status"] == "interested"
    assert resp.json()["contact"]["name"] == "Dana Ortiz"


async def test_partner_responses_require_respond_permission(client, acting_as, release, monkeypatch):
    monkeypatch.setitem(
        PERMISSION_MATRIX, UserRole.PARTNER, {(Action.VIEW, Resource.DEAL_RELEASE)}
    )
    acting_as["user"] = PARTNER

    resp = await client.get(f"/v1/partner/deals/{release.deal_id}")
    assert resp.status_code == 200

    resp = await client.post(f"/v1/partner/deals/{release.deal_id}/interest")
    assert resp.status_code == 403
    assert resp.json()["detail"] == "Permission denied: respond on deal_release"


async def test_partner_reads_require_view_permission(client, acting_as, release, monkeypatch):
    monkeypatch.setitem(PERMISSION_MATRIX, UserRole.PARTNER, set())
    acting_as["user"] = PARTNER

    resp = await client.get("/v1/partner/deals")
    assert resp.status_code == 403


async def test_admin_with_view_permission_is_not_a_partner(client, release):
    resp = await client.get(f"/v1/partner/deals/{release.deal_id}")

    assert resp.status_code == 403
    assert resp.json()["detail"] == "Partner access required"

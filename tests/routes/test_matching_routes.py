"""Tests for the matching JSON API"""

from beneficiary_hub.models import DonationMatch, DonationStatus, MatchStatus, db


def _match(match_id):
    db.session.expire_all()
    return db.session.get(DonationMatch, match_id)


class TestAuthentication:
    """Unauthenticated and wrong-role requests"""

    def test_requires_login(self, client, generated):
        response = client.post(f"/api/matching/matches/{generated['a1'].id}/allocate")
        assert response.status_code == 401
        assert response.get_json()["error"]["code"] == "unauthenticated"

    def test_approver_cannot_allocate(self, logged_in_approver, generated):
        client, _ = logged_in_approver
        response = client.post(f"/api/matching/matches/{generated['a1'].id}/allocate")
        assert response.status_code == 403
        assert response.get_json() == {
            "success": False,
            "error": {"code": "unauthorized", "message": "You do not have the required role for this action."},
        }
        assert _match(generated["a1"].id).status == MatchStatus.PENDING_ADMIN_ALLOCATION

    def test_donor_cannot_view_queue(self, login, donor_user):
        response = login(donor_user).get("/api/matching/matches/pending")
        assert response.status_code == 403

    def test_health_is_public(self, client):
        assert client.get("/health").status_code == 200


class TestGenerationRoutes:
    def test_generate(self, logged_in_admin, donation, stub_ranker, application_one, application_two):
        client, _ = logged_in_admin
        response = client.post(f"/api/matching/donations/{donation.id}/generate")

        assert response.status_code == 201
        data = response.get_json()["data"]
        assert [row["priority_rank"] for row in data] == [1, 2]
        assert data[0]["school_name"] == "Kalinga Primary"
        assert data[0]["status"] == "pending_admin_allocation"

    def test_generate_missing_donation(self, logged_in_admin):
        client, _ = logged_in_admin
        response = client.post("/api/matching/donations/999/generate")
        assert response.status_code == 404
        assert response.get_json()["error"]["code"] == "not_found"

    def test_ranker_failure_is_bad_gateway(self, logged_in_admin, donation, application_one, stub_ranker):
        from beneficiary_hub.matching.errors import UpstreamFailure

        stub_ranker.error = UpstreamFailure("ranker offline")
        client, _ = logged_in_admin
        response = client.post(f"/api/matching/donations/{donation.id}/generate")
        assert response.status_code == 502
        assert response.get_json()["error"]["code"] == "upstream_failure"

    def test_list_candidates(self, logged_in_admin, donation, generated):
        client, _ = logged_in_admin
        response = client.get(f"/api/matching/donations/{donation.id}/matches")
        assert response.status_code == 200
        assert len(response.get_json()["data"]) == 2


class TestAllocationRoutes:
    def test_allocate(self, logged_in_admin, generated, transport):
        client, admin_user = logged_in_admin
        response = client.post(
            f"/api/matching/matches/{generated['a1'].id}/allocate", json={"admin_notes": "Closest fit"}
        )

        assert response.status_code == 200
        data = response.get_json()["data"]
        assert data["status"] == "allocated_by_admin"
        assert data["allocated_by"] == admin_user.id
        assert data["admin_notes"] == "Closest fit"
        assert transport.kinds() == ["allocation"]

    def test_second_allocation_conflicts(self, logged_in_admin, generated):
        client, _ = logged_in_admin
        client.post(f"/api/matching/matches/{generated['a1'].id}/allocate")
        response = client.post(f"/api/matching/matches/{generated['a2'].id}/allocate")

        assert response.status_code == 409
        assert response.get_json()["error"]["code"] == "conflict"
        assert _match(generated["a2"].id).status == MatchStatus.PENDING_ADMIN_ALLOCATION


class TestApprovalRoutes:
    def test_incomplete_schedule_lists_fields(self, logged_in_approver, allocated, handover_schedule):
        client, _ = logged_in_approver
        schedule = dict(handover_schedule)
        del schedule["contact_phone"]

        response = client.post(
            f"/api/matching/matches/{allocated['a1'].id}/approve", json={"handover_schedule": schedule}
        )

        assert response.status_code == 422
        error = response.get_json()["error"]
        assert error["code"] == "validation_error"
        assert error["fields"] == ["contact_phone"]
        assert _match(allocated["a1"].id).status == MatchStatus.ALLOCATED_BY_ADMIN

    def test_approve(self, logged_in_approver, allocated, handover_schedule, transport):
        client, approver_user = logged_in_approver
        response = client.post(
            f"/api/matching/matches/{allocated['a1'].id}/approve",
            json={"handover_schedule": handover_schedule, "approver_notes": "Confirmed"},
        )

        assert response.status_code == 200
        data = response.get_json()["data"]
        assert data["status"] == "approved_by_approver"
        assert data["reviewed_by"] == approver_user.id
        assert data["handover_schedule"]["venue"] == "School hall"
        assert _match(allocated["a1"].id).donation.status == DonationStatus.DELIVERED

    def test_allocating_admin_cannot_approve(self, logged_in_admin, allocated, handover_schedule):
        client, _ = logged_in_admin
        response = client.post(
            f"/api/matching/matches/{allocated['a1'].id}/approve", json={"handover_schedule": handover_schedule}
        )
        assert response.status_code == 403

    def test_reject(self, logged_in_approver, allocated, transport):
        client, _ = logged_in_approver
        response = client.post(f"/api/matching/matches/{allocated['a1'].id}/reject", json={"reason": "wrong fit"})

        assert response.status_code == 200
        assert response.get_json()["data"]["rejection_reason"] == "wrong fit"
        assert transport.kinds() == ["rejection"]

    def test_reject_without_body(self, logged_in_approver, allocated):
        client, _ = logged_in_approver
        response = client.post(f"/api/matching/matches/{allocated['a1'].id}/reject", data="not json")
        assert response.status_code == 422
        assert response.get_json()["error"]["fields"] == ["reason"]

    def test_unknown_match(self, logged_in_approver):
        client, _ = logged_in_approver
        response = client.post("/api/matching/matches/4242/reject", json={"reason": "x"})
        assert response.status_code == 404


class TestQueueRoutes:
    def test_pending(self, logged_in_approver, allocated):
        client, _ = logged_in_approver
        response = client.get("/api/matching/matches/pending")
        assert [row["id"] for row in response.get_json()["data"]] == [allocated["a1"].id]

    def test_history(self, logged_in_approver, allocated):
        client, _ = logged_in_approver
        client.post(f"/api/matching/matches/{allocated['a1'].id}/reject", json={"reason": "wrong fit"})

        response = client.get("/api/matching/matches/history?limit=10")
        data = response.get_json()["data"]
        assert [row["id"] for row in data] == [allocated["a1"].id]
        assert data[0]["status"] == "rejected_by_approver"

    def test_history_bad_limit(self, logged_in_approver):
        client, _ = logged_in_approver
        response = client.get("/api/matching/matches/history?limit=ten")
        assert response.status_code == 422
        assert response.get_json()["error"]["fields"] == ["limit"]


class TestDonationReviewRoutes:
    def test_approve_then_generate(self, logged_in_admin, pending_donation, application_one, transport):
        client, _ = logged_in_admin
        response = client.post(f"/api/matching/donations/{pending_donation.id}/approve")
        assert response.status_code == 200
        assert response.get_json()["data"]["approval_status"] == "approved"

        response = client.post(f"/api/matching/donations/{pending_donation.id}/generate")
        assert response.status_code == 201

    def test_reject_requires_reason(self, logged_in_admin, pending_donation):
        client, _ = logged_in_admin
        response = client.post(f"/api/matching/donations/{pending_donation.id}/reject", json={})
        assert response.status_code == 422

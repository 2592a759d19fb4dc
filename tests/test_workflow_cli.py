"""Tests for the MatchingWorkflow facade and the ``flask matching`` commands"""

from beneficiary_hub.matching.errors import Conflict
from beneficiary_hub.matching.workflow import MatchingWorkflow, OperationResult
from beneficiary_hub.models import MatchStatus


class TestOperationResult:
    def test_ok_envelope(self):
        assert OperationResult.ok({"id": 1}).as_dict() == {"success": True, "data": {"id": 1}}

    def test_failed_envelope(self):
        result = OperationResult.failed(Conflict("Donation already allocated."))
        assert not result.success
        assert result.as_dict() == {
            "success": False,
            "error": {"code": "conflict", "message": "Donation already allocated."},
        }


class TestMatchingWorkflow:
    def test_round_trip_returns_serialized_rows(self, admin, approver, generated, handover_schedule, transport):
        workflow = MatchingWorkflow()

        allocated = workflow.allocate(admin, generated["a1"].id, "Closest fit")
        assert allocated.success
        assert allocated.data["status"] == MatchStatus.ALLOCATED_BY_ADMIN.value

        approved = workflow.approve(approver, generated["a1"].id, handover_schedule)
        assert approved.success
        assert approved.data["status"] == MatchStatus.APPROVED_BY_APPROVER.value

        history = workflow.list_history(approver)
        assert [row["id"] for row in history.data] == [generated["a1"].id]

    def test_errors_become_failed_results(self, admin, generated):
        workflow = MatchingWorkflow()
        workflow.allocate(admin, generated["a1"].id)

        result = workflow.allocate(admin, generated["a2"].id)
        assert not result.success
        assert result.error.code == "conflict"

    def test_unauthorized_actor(self, donor, generated):
        result = MatchingWorkflow().list_pending(donor)
        assert result.as_dict()["error"]["code"] == "unauthorized"

    def test_donation_review(self, admin, pending_donation, transport):
        result = MatchingWorkflow().reject_donation(admin, pending_donation.id, "")
        assert result.error.code == "validation_error"

        result = MatchingWorkflow().approve_donation(admin, pending_donation.id)
        assert result.data["approval_status"] == "approved"


class TestMatchingCli:
    def test_generate(self, runner, admin_user, donation, stub_ranker, application_one, application_two):
        result = runner.invoke(args=["matching", "generate", str(donation.id), "--actor", admin_user.email])

        assert result.exit_code == 0, result.output
        assert f"Generated 2 candidate(s) for donation {donation.id}." in result.output
        assert "school=Kalinga Primary" in result.output

    def test_generate_reports_error_code(self, runner, admin_user):
        result = runner.invoke(args=["matching", "generate", "999", "--actor", admin_user.email])
        assert result.exit_code != 0
        assert "not_found" in result.output

    def test_unknown_actor(self, runner):
        result = runner.invoke(args=["matching", "pending", "--actor", "nobody@example.com"])
        assert result.exit_code != 0
        assert "No user with email nobody@example.com." in result.output

    def test_pending_and_history(self, runner, approver_user, allocated):
        result = runner.invoke(args=["matching", "pending", "--actor", approver_user.email])
        assert result.exit_code == 0
        assert f"#{allocated['a1'].id}" in result.output
        assert "status=allocated_by_admin" in result.output

        result = runner.invoke(args=["matching", "history", "--actor", approver_user.email])
        assert result.exit_code == 0
        assert "No matches." in result.output

    def test_approver_cannot_generate(self, runner, approver_user, donation):
        result = runner.invoke(args=["matching", "generate", str(donation.id), "--actor", approver_user.email])
        assert result.exit_code != 0
        assert "unauthorized" in result.output

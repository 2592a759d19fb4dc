# beneficiary_hub/routes/matching.py

"""
JSON endpoints for match generation, allocation and approver review.

Responses use the ``{"success": true, "data": ...}`` /
``{"success": false, "error": {"code", "message"}}`` envelope.
"""

from http import HTTPStatus

from flask import Blueprint, current_app, jsonify, request
from werkzeug.exceptions import HTTPException

from beneficiary_hub.matching.allocation import AllocationService
from beneficiary_hub.matching.approval import ApprovalService
from beneficiary_hub.matching.errors import MatchingError, ValidationError
from beneficiary_hub.matching.generation import MatchGenerationService
from beneficiary_hub.matching.review import DonationReviewService
from beneficiary_hub.models import db
from beneficiary_hub.utils.permissions import ADMIN, ADMIN_OR_APPROVER, current_actor, role_required

matching_blueprint = Blueprint("matching", __name__, url_prefix="/api/matching")


def _ok(data, status=HTTPStatus.OK):
    return jsonify({"success": True, "data": data}), status


def _payload():
    payload = request.get_json(silent=True)
    return payload if isinstance(payload, dict) else {}


@matching_blueprint.errorhandler(MatchingError)
def handle_matching_error(error):
    return jsonify({"success": False, "error": error.as_dict()}), error.http_status


@matching_blueprint.errorhandler(Exception)
def handle_unexpected_error(error):
    if isinstance(error, HTTPException):
        return error
    db.session.rollback()
    current_app.logger.error(f"Unhandled error in matching API: {error}", exc_info=True)
    return (
        jsonify({"success": False, "error": {"code": "internal_error", "message": "An unexpected error occurred."}}),
        HTTPStatus.INTERNAL_SERVER_ERROR,
    )


@matching_blueprint.route("/donations/<int:donation_id>/generate", methods=["POST"])
@role_required(ADMIN)
def generate_matches(donation_id):
    matches = MatchGenerationService().generate(current_actor(), donation_id)
    return _ok([match.to_dict() for match in matches], HTTPStatus.CREATED)


@matching_blueprint.route("/donations/<int:donation_id>/matches", methods=["GET"])
@role_required(ADMIN)
def list_donation_matches(donation_id):
    matches = MatchGenerationService().list_candidates(current_actor(), donation_id)
    return _ok([match.to_dict() for match in matches])


@matching_blueprint.route("/donations/<int:donation_id>/approve", methods=["POST"])
@role_required(ADMIN)
def approve_donation(donation_id):
    donation = DonationReviewService().approve_donation(current_actor(), donation_id)
    return _ok(donation.to_dict())


@matching_blueprint.route("/donations/<int:donation_id>/reject", methods=["POST"])
@role_required(ADMIN)
def reject_donation(donation_id):
    donation = DonationReviewService().reject_donation(current_actor(), donation_id, _payload().get("reason"))
    return _ok(donation.to_dict())


@matching_blueprint.route("/matches/<int:match_id>/allocate", methods=["POST"])
@role_required(ADMIN)
def allocate_match(match_id):
    match = AllocationService().allocate(current_actor(), match_id, _payload().get("admin_notes"))
    return _ok(match.to_dict())


@matching_blueprint.route("/matches/<int:match_id>/approve", methods=["POST"])
@role_required(ADMIN_OR_APPROVER)
def approve_match(match_id):
    payload = _payload()
    match = ApprovalService().approve(
        current_actor(),
        match_id,
        payload.get("handover_schedule"),
        payload.get("approver_notes"),
    )
    return _ok(match.to_dict())


@matching_blueprint.route("/matches/<int:match_id>/reject", methods=["POST"])
@role_required(ADMIN_OR_APPROVER)
def reject_match(match_id):
    payload = _payload()
    match = ApprovalService().reject(current_actor(), match_id, payload.get("reason"), payload.get("approver_notes"))
    return _ok(match.to_dict())


@matching_blueprint.route("/matches/pending", methods=["GET"])
@role_required(ADMIN_OR_APPROVER)
def pending_matches():
    return _ok([match.to_dict() for match in ApprovalService().list_pending(current_actor())])


@matching_blueprint.route("/matches/history", methods=["GET"])
@role_required(ADMIN_OR_APPROVER)
def match_history():
    raw_limit = request.args.get("limit")
    limit = None
    if raw_limit:
        try:
            limit = int(raw_limit)
        except ValueError:
            raise ValidationError("limit must be an integer.", fields=("limit",)) from None
    return _ok([match.to_dict() for match in ApprovalService().list_history(current_actor(), limit)])

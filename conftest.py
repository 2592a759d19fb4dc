# conftest.py

import os

import pytest
from flask import g
from werkzeug.security import generate_password_hash

# Set testing environment BEFORE importing app so app.py picks TestingConfig
os.environ["FLASK_ENV"] = "testing"

from app import app as flask_app  # noqa: E402
from beneficiary_hub.matching import set_ranker  # noqa: E402
from beneficiary_hub.matching.heuristic import HeuristicRanker  # noqa: E402
from beneficiary_hub.matching.ranker import CandidateRanker  # noqa: E402
from beneficiary_hub.models import (  # noqa: E402
    ApplicationStatus,
    Donation,
    DonationApprovalStatus,
    DonationStatus,
    ResourceApplication,
    School,
    User,
    UserRole,
    db,
)
from beneficiary_hub.notifications import NotificationTransport  # noqa: E402
from beneficiary_hub.utils.permissions import Actor  # noqa: E402


class RecordingTransport(NotificationTransport):
    """Keeps sent events in memory; optionally fails every send."""

    name = "recording"

    def __init__(self):
        self.sent = []
        self.fail_with = None

    def send(self, event):
        if self.fail_with is not None:
            raise self.fail_with
        self.sent.append(event)

    def kinds(self):
        return [event.kind.value for event in self.sent]


class StubRanker(CandidateRanker):
    """Ranker returning a canned response (or raising) and recording requests."""

    name = "stub"

    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.requests = []

    def rank(self, request):
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        return self.response


@pytest.fixture(scope="function")
def app():
    """Create and configure a test Flask application"""
    flask_app.config.update(
        {
            "TESTING": True,
            "SECRET_KEY": "test-secret-key-for-testing-only",
            "LOG_LEVEL": "DEBUG",
            "NOTIFICATIONS_ENABLED": True,
            "MATCHING_REQUIRE_INDEPENDENT_APPROVER": True,
            "MATCH_HISTORY_PAGE_SIZE": 50,
            "MATCH_HISTORY_MAX_PAGE_SIZE": 200,
        }
    )

    with flask_app.app_context():
        db.drop_all()
        db.create_all()
        set_ranker(HeuristicRanker(), flask_app)
        yield flask_app
        db.session.remove()
        db.drop_all()


@pytest.fixture(autouse=True)
def app_context(app):
    """Automatically provide app context for all tests"""
    with app.app_context():
        yield


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def runner(app):
    return app.test_cli_runner()


@pytest.fixture
def transport(app):
    """Swap the dispatcher's transport for an in-memory recorder"""
    dispatcher = app.extensions["matching"]["dispatcher"]
    original_transport, original_enabled = dispatcher.transport, dispatcher.enabled
    recorder = RecordingTransport()
    dispatcher.transport = recorder
    dispatcher.enabled = True
    yield recorder
    dispatcher.transport = original_transport
    dispatcher.enabled = original_enabled


def _create_user(email, role, full_name):
    user = User(
        email=email,
        full_name=full_name,
        password_hash=generate_password_hash("testpass123"),
        role=role,
        is_active=True,
    )
    db.session.add(user)
    db.session.commit()
    return user


@pytest.fixture
def admin_user(app):
    return _create_user("admin@example.com", UserRole.ADMIN, "Ada Admin")


@pytest.fixture
def second_admin(app):
    return _create_user("admin2@example.com", UserRole.ADMIN, "Sam Second")


@pytest.fixture
def approver_user(app):
    return _create_user("approver@example.com", UserRole.APPROVER, "Avery Approver")


@pytest.fixture
def donor_user(app):
    return _create_user("donor@example.com", UserRole.DONOR, "Dana Donor")


@pytest.fixture
def admin(admin_user):
    return Actor.from_user(admin_user)


@pytest.fixture
def approver(approver_user):
    return Actor.from_user(approver_user)


@pytest.fixture
def donor(donor_user):
    return Actor.from_user(donor_user)


def _create_school(name, email, province, **extra):
    account = _create_user(email, UserRole.SCHOOL, f"{name} Office")
    school = School(user_id=account.id, school_name=name, province=province, **extra)
    db.session.add(school)
    db.session.commit()
    return school


@pytest.fixture
def school_one(app):
    return _create_school(
        "Kalinga Primary",
        "kalinga@example.com",
        "Western Cape",
        district="Cape Town",
        total_students=420,
        has_electricity=True,
    )


@pytest.fixture
def school_two(app):
    return _create_school(
        "Mthatha High",
        "mthatha@example.com",
        "Eastern Cape",
        district="Mthatha",
        total_students=900,
    )


def _create_donation(donor_user, approval_status, status):
    donation = Donation(
        donor_id=donor_user.id,
        title="Library books",
        description="Two hundred grade 4-7 readers",
        donation_type="books",
        items=[{"name": "readers", "quantity": 200}],
        condition="good",
        available_quantity=200,
        city="Cape Town",
        province="Western Cape",
        delivery_available=True,
        urgency_level="normal",
        approval_status=approval_status,
        status=status,
    )
    db.session.add(donation)
    db.session.commit()
    return donation


@pytest.fixture
def donation(donor_user):
    """Approved donation ready for matching"""
    return _create_donation(donor_user, DonationApprovalStatus.APPROVED, DonationStatus.APPROVED)


@pytest.fixture
def pending_donation(donor_user):
    return _create_donation(donor_user, DonationApprovalStatus.PENDING, None)


def _create_application(school, title, **extra):
    application = ResourceApplication(
        school_id=school.id,
        application_title=title,
        status=extra.pop("status", ApplicationStatus.SUBMITTED),
        **extra,
    )
    db.session.add(application)
    db.session.commit()
    return application


@pytest.fixture
def application_one(school_one):
    return _create_application(
        school_one,
        "Reading corner books",
        application_type="books",
        priority_level="high",
        resources_needed=[{"name": "readers"}, "story books"],
        beneficiaries_count=300,
    )


@pytest.fixture
def application_two(school_two):
    return _create_application(
        school_two,
        "Science kits",
        application_type="equipment",
        priority_level="medium",
        resources_needed=["microscopes"],
        status=ApplicationStatus.UNDER_REVIEW,
    )


@pytest.fixture
def ranked_response(application_one, application_two, school_one, school_two):
    """Ranker output: a1 first with 90, a2 second with 70"""
    return [
        {
            "application_id": application_one.id,
            "school_id": school_one.id,
            "match_score": 90,
            "justification": "Books requested, books offered.",
            "priority_rank": 1,
        },
        {
            "application_id": application_two.id,
            "school_id": school_two.id,
            "match_score": 70,
            "justification": "Large school, partial fit.",
            "priority_rank": 2,
        },
    ]


@pytest.fixture
def stub_ranker(app, ranked_response):
    ranker = StubRanker(response=ranked_response)
    set_ranker(ranker, app)
    return ranker


@pytest.fixture
def generated(admin, donation, stub_ranker, application_one, application_two):
    """Generate the candidate batch and return matches keyed by a1/a2"""
    from beneficiary_hub.matching.generation import MatchGenerationService

    matches = MatchGenerationService().generate(admin, donation.id)
    by_application = {match.application_id: match for match in matches}
    return {"a1": by_application[application_one.id], "a2": by_application[application_two.id]}


@pytest.fixture
def allocated(generated, admin, transport):
    """Scenario A state: a1 allocated by the first admin"""
    from beneficiary_hub.matching.allocation import AllocationService

    AllocationService().allocate(admin, generated["a1"].id, admin_notes="Closest fit")
    transport.sent.clear()
    return generated


@pytest.fixture
def handover_schedule():
    return {
        "date": "2026-11-02",
        "time": "10:00",
        "venue": "School hall",
        "venue_address": "12 Main Road, Cape Town",
        "contact_person": "Mrs Dlamini",
        "contact_phone": "+27 21 555 0100",
        "notes": "Bring the delivery note",
    }


@pytest.fixture
def login(client):
    """Return a helper signing a user in on the test client via the Flask-Login session key"""

    def _login(user):
        # Requests reuse the test's app context, so drop Flask-Login's cached user
        g.pop("_login_user", None)
        with client.session_transaction() as session:
            session["_user_id"] = str(user.id)
            session["_fresh"] = True
        return client

    return _login


@pytest.fixture
def logged_in_admin(login, admin_user):
    return login(admin_user), admin_user


@pytest.fixture
def logged_in_approver(login, approver_user):
    return login(approver_user), approver_user


@pytest.fixture
def stub_ranker_cls():
    """The StubRanker class, for tests that need a custom ranker"""
    return StubRanker

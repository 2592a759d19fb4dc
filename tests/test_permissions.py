"""Tests for the authorization gate"""

import pytest

from beneficiary_hub.matching.errors import Unauthorized
from beneficiary_hub.models import UserRole
from beneficiary_hub.utils.permissions import (
    ADMIN,
    ADMIN_OR_APPROVER,
    APPROVER,
    Actor,
    authorize,
    has_role,
)


class TestActor:
    def test_from_user(self, admin_user):
        actor = Actor.from_user(admin_user)
        assert actor.user_id == admin_user.id
        assert actor.role == UserRole.ADMIN
        assert actor.email == "admin@example.com"
        assert actor.is_active

    def test_from_missing_user(self):
        assert Actor.from_user(None) is None


class TestAuthorize:
    @pytest.mark.parametrize(
        "role,required,allowed",
        [
            (UserRole.ADMIN, ADMIN, True),
            (UserRole.APPROVER, ADMIN, False),
            (UserRole.APPROVER, APPROVER, True),
            (UserRole.ADMIN, ADMIN_OR_APPROVER, True),
            (UserRole.APPROVER, ADMIN_OR_APPROVER, True),
            (UserRole.DONOR, ADMIN_OR_APPROVER, False),
            (UserRole.SCHOOL, ADMIN, False),
        ],
    )
    def test_role_matrix(self, role, required, allowed):
        actor = Actor(user_id=1, role=role)
        assert has_role(actor, required) is allowed
        if allowed:
            assert authorize(actor, required) is actor
        else:
            with pytest.raises(Unauthorized):
                authorize(actor, required)

    def test_missing_actor(self):
        with pytest.raises(Unauthorized):
            authorize(None, ADMIN)

    def test_inactive_actor(self):
        with pytest.raises(Unauthorized):
            authorize(Actor(user_id=1, role=UserRole.ADMIN, is_active=False), ADMIN)

    def test_error_carries_status(self):
        with pytest.raises(Unauthorized) as excinfo:
            authorize(Actor(user_id=1, role=UserRole.DONOR), ADMIN)
        assert excinfo.value.http_status == 403
        assert excinfo.value.as_dict()["code"] == "unauthorized"

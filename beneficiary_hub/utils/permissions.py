# beneficiary_hub/utils/permissions.py

from dataclasses import dataclass
from functools import wraps
from http import HTTPStatus

from flask import current_app, jsonify
from flask_login import current_user

from beneficiary_hub.matching.errors import Unauthorized
from beneficiary_hub.models import UserRole

# Role requirements accepted by the authorization gate
ADMIN = frozenset({UserRole.ADMIN})
APPROVER = frozenset({UserRole.APPROVER})
ADMIN_OR_APPROVER = frozenset({UserRole.ADMIN, UserRole.APPROVER})


@dataclass(frozen=True)
class Actor:
    """Explicit capability context passed into every workflow operation"""

    user_id: int
    role: UserRole
    is_active: bool = True
    email: str | None = None

    @classmethod
    def from_user(cls, user):
        """Build an actor from a User row (or Flask-Login proxy)"""
        if user is None or not getattr(user, "is_authenticated", True):
            return None
        role = user.role if isinstance(user.role, UserRole) else UserRole(user.role)
        return cls(user_id=user.id, role=role, is_active=bool(user.is_active), email=user.email)


def has_role(actor, required_roles):
    """Check whether the actor holds one of the required roles"""
    if actor is None or not actor.is_active:
        return False
    return actor.role in required_roles


def authorize(actor, required_roles):
    """
    Authorization gate checked as the first step of every workflow operation.

    Raises:
        Unauthorized: if the actor is missing, inactive, or lacks the role
    """
    if has_role(actor, required_roles):
        return actor

    wanted = "|".join(sorted(role.value for role in required_roles))
    current_app.logger.warning(
        f"Authorization denied: requires {wanted}",
        extra={"actor_id": getattr(actor, "user_id", None), "required_role": wanted},
    )
    raise Unauthorized(f"This action requires the {wanted} role.")


def current_actor():
    """Actor for the signed-in user of the current request, if any"""
    if not current_user or not current_user.is_authenticated:
        return None
    return Actor.from_user(current_user)


def role_required(required_roles):
    """
    Decorator to require one of the given roles on a JSON endpoint.

    Unauthenticated requests get 401, authenticated users without the role 403,
    both in the ``{success, error}`` envelope.
    """

    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            actor = current_actor()
            if actor is None:
                return (
                    jsonify({"success": False, "error": {"code": "unauthenticated", "message": "Login required."}}),
                    HTTPStatus.UNAUTHORIZED,
                )
            if not has_role(actor, required_roles):
                error = Unauthorized("You do not have the required role for this action.")
                return jsonify({"success": False, "error": error.as_dict()}), error.http_status
            return f(*args, **kwargs)

        return decorated_function

    return decorator

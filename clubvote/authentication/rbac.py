# clubvote/authentication/rbac.py

from enum import Enum
from functools import wraps

from clubvote.errors import PermissionDenied

# Role-Based Access Control (RBAC)
# Core operations call authorize() once on entry; routes use require_permission().


class UserRole(Enum):
    ADMIN = "admin"
    VOTER = "voter"


class Permission(Enum):
    VOTE = "vote"
    REGISTER_FOR_ELECTION = "register_for_election"
    VIEW_OWN_STATUS = "view_own_status"
    MANAGE_ELECTIONS = "manage_elections"
    MANAGE_CANDIDATES = "manage_candidates"
    REVIEW_REGISTRATIONS = "review_registrations"
    ISSUE_VOTER_CODES = "issue_voter_codes"
    VIEW_VOTER_CODES = "view_voter_codes"
    VIEW_LIVE_RESULTS = "view_live_results"
    VIEW_AUDIT_LOGS = "view_audit_logs"


# Role -> Permissions mapping
ROLE_PERMISSIONS = {
    UserRole.VOTER: [
        Permission.VOTE,
        Permission.REGISTER_FOR_ELECTION,
        Permission.VIEW_OWN_STATUS,
    ],
    UserRole.ADMIN: [
        Permission.REGISTER_FOR_ELECTION,
        Permission.VIEW_OWN_STATUS,
        Permission.MANAGE_ELECTIONS,
        Permission.MANAGE_CANDIDATES,
        Permission.REVIEW_REGISTRATIONS,
        Permission.ISSUE_VOTER_CODES,
        Permission.VIEW_VOTER_CODES,
        Permission.VIEW_LIVE_RESULTS,
        Permission.VIEW_AUDIT_LOGS,
    ],
}


class RBACService:
    def has_permission(self, user_role, permission):
        if isinstance(user_role, str):
            user_role = UserRole(user_role)
        if isinstance(permission, str):
            permission = Permission(permission)
        return permission in ROLE_PERMISSIONS.get(user_role, [])

    def get_permissions(self, user_role):
        if isinstance(user_role, str):
            user_role = UserRole(user_role)
        return ROLE_PERMISSIONS.get(user_role, [])


rbac_service = RBACService()


def is_admin(identity):
    return identity is not None and identity.role == UserRole.ADMIN


def authorize(identity, permission, message=None):
    """Fail fast unless ``identity`` holds ``permission``."""
    if identity is None:
        raise PermissionDenied(message or "Authentication required")
    if not rbac_service.has_permission(identity.role, permission):
        raise PermissionDenied(message)
    return identity


# Decorator for required permission at the API boundary
def require_permission(permission):
    def decorator(func):
        @wraps(func)
        def wrapper(*args, **kwargs):
            from clubvote.authentication.identity import identity_provider

            authorize(identity_provider.current_identity(), permission)
            return func(*args, **kwargs)
        return wrapper
    return decorator

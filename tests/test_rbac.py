import pytest
from flask import Flask
from flask_jwt_extended import JWTManager, create_access_token

from clubvote.authentication import rbac
from clubvote.authentication.identity import Identity
from clubvote.authentication.rbac import Permission, UserRole, authorize, rbac_service
from clubvote.errors import ElectionError, PermissionDenied


@pytest.mark.parametrize("role,permission,allowed", [
    ("voter", "vote", True),
    ("voter", "register_for_election", True),
    ("voter", "manage_elections", False),
    ("voter", "view_live_results", False),
    ("admin", "vote", False),
    ("admin", "manage_elections", True),
    ("admin", "review_registrations", True),
    ("admin", "view_audit_logs", True),
])
def test_has_permission(role, permission, allowed):
    assert rbac_service.has_permission(role, permission) == allowed


def test_get_permissions():
    assert set(rbac_service.get_permissions(UserRole.VOTER)) == {
        Permission.VOTE,
        Permission.REGISTER_FOR_ELECTION,
        Permission.VIEW_OWN_STATUS,
    }
    assert Permission.VOTE not in rbac_service.get_permissions("admin")


def test_authorize():
    admin = Identity(id="a", email="a@club.org", role="admin")
    assert authorize(admin, Permission.MANAGE_ELECTIONS) is admin

    with pytest.raises(PermissionDenied) as exc_info:
        authorize(None, Permission.MANAGE_ELECTIONS)
    assert exc_info.value.message == "Authentication required"

    voter = Identity(id="v", email="v@club.org", role="voter")
    with pytest.raises(PermissionDenied) as exc_info:
        authorize(voter, Permission.MANAGE_ELECTIONS, "Only admins can create elections")
    assert exc_info.value.message == "Only admins can create elections"


def test_is_admin():
    assert rbac.is_admin(Identity(id="a", email="a@club.org", role="admin"))
    assert not rbac.is_admin(Identity(id="v", email="v@club.org", role="voter"))
    assert not rbac.is_admin(None)


@pytest.fixture
def protected_app():
    app = Flask(__name__)
    app.config["TESTING"] = True
    app.config["JWT_SECRET_KEY"] = "test_secret_key_long_enough_for_hs256"
    JWTManager(app)

    @app.errorhandler(ElectionError)
    def handle(error):
        return error.to_dict(), error.status_code

    @app.route("/test")
    @rbac.require_permission(Permission.MANAGE_ELECTIONS)
    def test_view():
        return "ok"

    return app


def _token(app, role):
    with app.app_context():
        return create_access_token(identity="user-1", additional_claims={"email": "u@club.org", "role": role})


def test_require_permission_allows(protected_app):
    token = _token(protected_app, "admin")
    with protected_app.test_client() as client:
        resp = client.get("/test", headers={"Authorization": f"Bearer {token}"})
        assert resp.status_code == 200
        assert resp.data == b"ok"


def test_require_permission_denies(protected_app):
    token = _token(protected_app, "voter")
    with protected_app.test_client() as client:
        resp = client.get("/test", headers={"Authorization": f"Bearer {token}"})
        assert resp.status_code == 403
        assert resp.get_json()["error"] == "permission_denied"


def test_require_permission_without_token(protected_app):
    with protected_app.test_client() as client:
        resp = client.get("/test")
        assert resp.status_code == 403
        assert resp.get_json()["message"] == "Authentication required"

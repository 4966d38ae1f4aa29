# clubvote/authentication/identity.py
# Adapter for the external identity provider.
# Principals are authenticated upstream; this module only trusts verified JWTs
# carrying the subject id plus ``email`` and ``role`` claims.

from dataclasses import dataclass
from datetime import timedelta

from flask import current_app
from flask_jwt_extended import create_access_token, decode_token, get_jwt, verify_jwt_in_request

from clubvote.authentication.rbac import UserRole
from clubvote.signals import identity_changed


@dataclass(frozen=True)
class Identity:
    id: str
    email: str
    role: UserRole

    def __post_init__(self):
        if isinstance(self.role, str):
            object.__setattr__(self, 'role', UserRole(self.role))

    @property
    def is_admin(self):
        return self.role == UserRole.ADMIN

    def claims(self):
        return {'email': self.email, 'role': self.role.value}

    @classmethod
    def from_claims(cls, claims):
        return cls(id=str(claims['sub']), email=claims.get('email') or '', role=claims['role'])


class IdentityProvider:
    def current_identity(self):
        """Identity of the current request, or None for anonymous callers."""
        try:
            verify_jwt_in_request(optional=True)
            claims = get_jwt()
        except Exception as e:
            current_app.logger.warning(f"Token validation failed: {str(e)}")
            return None
        if not claims or 'role' not in claims:
            return None
        try:
            return Identity.from_claims(claims)
        except (KeyError, ValueError) as e:
            current_app.logger.warning(f"Token carries an invalid identity: {str(e)}")
            return None

    def issue_token(self, identity: Identity, expires_in: int = None) -> str:
        # Called once the upstream provider has verified the principal.
        expires_delta = timedelta(seconds=expires_in) if expires_in else None
        token = create_access_token(
            identity=identity.id,
            additional_claims=identity.claims(),
            expires_delta=expires_delta,
        )
        identity_changed.send(self, identity=identity, previous=None)
        return token

    def sign_out(self, identity: Identity):
        identity_changed.send(self, identity=None, previous=identity)

    def validate_token(self, token: str):
        # Return the Identity if the token is valid, else None.
        try:
            decoded = decode_token(token, allow_expired=False)
            return Identity.from_claims(decoded)
        except Exception as e:
            current_app.logger.warning(f"Token validation failed: {str(e)}")
            return None

    def on_identity_change(self, callback):
        """Register ``callback(identity, previous)`` for sign-in and sign-out."""
        def receiver(sender, identity=None, previous=None):
            callback(identity, previous)
        identity_changed.connect(receiver, weak=False)
        return receiver


identity_provider = IdentityProvider()

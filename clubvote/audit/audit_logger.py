# clubvote/audit/audit_logger.py

import base64
import hashlib
import json
import logging
import threading

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey
from flask import current_app, has_request_context, request
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from clubvote.database.models import AuditLog
from clubvote.database.repositories import AuditLogRepository
from clubvote.signals import identity_changed
from clubvote.time_helpers import utcnow

logger = logging.getLogger(__name__)

# Append-only audit log with hash chaining and Ed25519 signatures.
# Entries are written after the audited operation has committed, in their own
# transaction, so a failing audit write never undoes or blocks that operation.

CHAIN_APPEND_ATTEMPTS = 3

_chain_lock = threading.Lock()

AUDIT_ACTIONS = (
    'login',
    'logout',
    'vote_cast',
    'election_created',
    'election_closed',
    'election_status_updated',
    'registration_status_updated',
    'user_registered',
    'registration_approved',
    'registration_rejected',
    'codes_generated',
    'candidate_edited',
)


def _canonical(entry):
    return json.dumps(entry, sort_keys=True).encode()


class AuditLogger:
    def __init__(self, app=None, repository=None):
        self.repository = repository or AuditLogRepository()
        if app is not None:
            self.init_app(app)

    def init_app(self, app):
        pem = app.config.get('AUDIT_SIGNING_KEY')
        if pem:
            signing_key = serialization.load_pem_private_key(pem.encode(), password=None)
        else:
            app.logger.warning("AUDIT_SIGNING_KEY not set, generating an ephemeral audit signing key")
            signing_key = Ed25519PrivateKey.generate()
        app.extensions['audit_signing_key'] = signing_key
        identity_changed.connect(self._on_identity_change, weak=False)

    @property
    def signing_key(self):
        return current_app.extensions['audit_signing_key']

    def public_key(self):
        return self.signing_key.public_key()

    def _on_identity_change(self, sender, identity=None, previous=None):
        if identity is not None:
            self.log_event('login', f"User {identity.id} signed in as {identity.role.value}", user_id=identity.id)
        elif previous is not None:
            self.log_event('logout', f"User {previous.id} signed out", user_id=previous.id)

    def _append(self, action, details, user_id):
        previous = self.repository.last()
        ip_address = request.remote_addr if has_request_context() else None
        timestamp = utcnow()
        payload = {
            "action": action,
            "user_id": user_id,
            "details": details,
            "timestamp": timestamp.isoformat(),
            "ip_address": ip_address,
            "previous_hash": previous.entry_hash if previous else None,
        }
        entry_json = _canonical(payload)
        entry_hash = hashlib.sha256(entry_json).hexdigest()
        signature = self.signing_key.sign(entry_json)

        entry = AuditLog(
            action=action,
            user_id=user_id,
            details=details,
            timestamp=timestamp,
            ip_address=ip_address,
            previous_hash=payload["previous_hash"],
            entry_hash=entry_hash,
            signature=base64.b64encode(signature).decode(),
        )
        self.repository.put(entry)
        self.repository.commit()
        return entry

    def log_event(self, action, details, user_id=None):
        """Append an entry; returns it, or None when the write failed.

        Reading the chain head and inserting the new entry happen under one
        process-wide lock. Writers in other processes are caught by the unique
        previous_hash constraint, in which case the head is re-read and the
        append retried.
        """
        with _chain_lock:
            for attempt in range(1, CHAIN_APPEND_ATTEMPTS + 1):
                try:
                    entry = self._append(action, details, user_id)
                except IntegrityError:
                    self.repository.rollback()
                    logger.info("Audit chain head changed, retrying (attempt %d)", attempt)
                    continue
                except SQLAlchemyError as e:
                    self.repository.rollback()
                    logger.warning(f"Audit log error: {str(e)}")
                    return None
                logger.info("audit %s user=%s: %s", action, user_id, details)
                return entry
        logger.warning(f"Audit log error: could not append {action} after {CHAIN_APPEND_ATTEMPTS} attempts")
        return None

    def verify_log_integrity(self, public_key=None):
        public_key = public_key or self.public_key()
        previous_hash = None
        for entry in self.repository.chronological():
            if entry.previous_hash != previous_hash:
                return False
            payload = {
                "action": entry.action,
                "user_id": entry.user_id,
                "details": entry.details,
                "timestamp": entry.timestamp.isoformat(),
                "ip_address": entry.ip_address,
                "previous_hash": entry.previous_hash,
            }
            entry_json = _canonical(payload)
            if hashlib.sha256(entry_json).hexdigest() != entry.entry_hash:
                return False
            try:
                public_key.verify(base64.b64decode(entry.signature), entry_json)
            except (InvalidSignature, ValueError):
                return False
            previous_hash = entry.entry_hash
        return True

    def entries(self, limit=None):
        return self.repository.newest_first(limit)


audit_logger = AuditLogger()

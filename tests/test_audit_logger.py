import base64
import hashlib
import json
import threading

import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from clubvote import create_app
from clubvote.audit.audit_logger import audit_logger as shared_logger
from clubvote.audit.audit_logger import AuditLogger
from clubvote.authentication.identity import identity_provider
from clubvote.config import TestingConfig
from clubvote.database.models import AuditLog
from clubvote.extensions import db


@pytest.fixture
def audit_logger(app):
    """An AuditLogger bound to the test app's database."""
    return AuditLogger()


def _entries():
    return list(db.session.scalars(db.select(AuditLog).order_by(AuditLog.id)))


def test_log_event_basic(audit_logger):
    """Test basic audit event logging."""
    entry = audit_logger.log_event("election_created", "Admin admin-1 created election", user_id="admin-1")

    assert entry is not None
    stored = _entries()
    assert len(stored) == 1
    assert stored[0].action == "election_created"
    assert stored[0].user_id == "admin-1"
    assert stored[0].details == "Admin admin-1 created election"
    assert stored[0].timestamp is not None
    assert stored[0].previous_hash is None  # First entry
    assert stored[0].entry_hash
    assert stored[0].signature


def test_hash_chaining(audit_logger):
    """Test that each entry points at the hash of the one before it."""
    first = audit_logger.log_event("login", "first")
    second = audit_logger.log_event("logout", "second")

    assert second.previous_hash == first.entry_hash


def test_signature_verification(audit_logger):
    """Test that entries carry a valid Ed25519 signature over the canonical payload."""
    entry = audit_logger.log_event("codes_generated", "generated 10 codes", user_id="admin-1")

    payload = {
        "action": entry.action,
        "user_id": entry.user_id,
        "details": entry.details,
        "timestamp": entry.timestamp.isoformat(),
        "ip_address": entry.ip_address,
        "previous_hash": entry.previous_hash,
    }
    entry_json = json.dumps(payload, sort_keys=True).encode()
    assert hashlib.sha256(entry_json).hexdigest() == entry.entry_hash

    # This should not raise an exception if the signature is valid
    audit_logger.public_key().verify(base64.b64decode(entry.signature), entry_json)


def test_verify_log_integrity_valid(audit_logger):
    """Test integrity verification over an untouched chain."""
    for n in range(3):
        audit_logger.log_event("login", f"event {n}")
    assert audit_logger.verify_log_integrity() is True


def test_verify_log_integrity_tampered_details(audit_logger):
    """Test that rewriting an entry breaks verification."""
    audit_logger.log_event("vote_cast", "Vote cast by user voter-1", user_id="voter-1")
    audit_logger.log_event("logout", "User voter-1 signed out", user_id="voter-1")

    entry = _entries()[0]
    entry.details = "Vote cast by user someone-else"
    db.session.commit()

    assert audit_logger.verify_log_integrity() is False


def test_verify_log_integrity_deleted_entry(audit_logger):
    """Test that removing an entry from the middle breaks the chain."""
    for n in range(3):
        audit_logger.log_event("login", f"event {n}")

    db.session.delete(_entries()[1])
    db.session.commit()

    assert audit_logger.verify_log_integrity() is False


def test_verify_with_foreign_key_fails(audit_logger):
    """Test that entries do not verify against another signing key."""
    audit_logger.log_event("login", "signed in")
    other = Ed25519PrivateKey.generate().public_key()
    assert audit_logger.verify_log_integrity(public_key=other) is False


def test_configured_signing_key_is_used():
    """Test that AUDIT_SIGNING_KEY is loaded instead of an ephemeral key."""
    key = Ed25519PrivateKey.generate()
    pem = key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    ).decode()

    class SignedConfig(TestingConfig):
        AUDIT_SIGNING_KEY = pem

    app = create_app(SignedConfig)
    with app.app_context():
        db.create_all()
        shared_logger.log_event("login", "signed in")
        assert shared_logger.verify_log_integrity(public_key=key.public_key()) is True
        db.session.remove()
        db.drop_all()


def test_error_handling(audit_logger, monkeypatch):
    """Test that a failing audit write is swallowed and logged."""
    def broken_commit():
        raise SQLAlchemyError("disk full")

    monkeypatch.setattr(audit_logger.repository, "commit", broken_commit)

    # This should not raise an exception, but handle it gracefully
    assert audit_logger.log_event("login", "signed in") is None
    monkeypatch.undo()
    assert _entries() == []


def test_entries_newest_first(audit_logger):
    """Test that listing returns the most recent entries first."""
    for n in range(5):
        audit_logger.log_event("login", f"event {n}")

    recent = audit_logger.entries(limit=2)
    assert [e.details for e in recent] == ["event 4", "event 3"]
    assert len(audit_logger.entries()) == 5


def test_sign_in_and_out_are_audited(app, voter):
    """Test that identity changes produce login and logout entries."""
    identity_provider.issue_token(voter)
    identity_provider.sign_out(voter)

    actions = [(e.action, e.user_id) for e in _entries()]
    assert actions == [("login", voter.id), ("logout", voter.id)]


def test_request_ip_is_recorded(app, audit_logger):
    """Test that the client address is captured inside a request."""
    with app.test_request_context("/", environ_base={"REMOTE_ADDR": "10.0.0.7"}):
        entry = audit_logger.log_event("login", "signed in")
    assert entry.ip_address == "10.0.0.7"


def test_concurrent_writers_share_one_chain(file_app):
    """Test that entries written from parallel threads never fork the chain."""
    barrier = threading.Barrier(8)

    def write(n):
        with file_app.app_context():
            barrier.wait()
            shared_logger.log_event("login", f"event {n}", user_id=f"voter-{n}")

    threads = [threading.Thread(target=write, args=(n,)) for n in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    with file_app.app_context():
        stored = _entries()
        assert len(stored) == 8
        assert len({e.previous_hash for e in stored}) == 8
        assert shared_logger.verify_log_integrity() is True


def test_previous_hash_is_unique(audit_logger):
    """Test that storage refuses a second entry on the same predecessor."""
    first = audit_logger.log_event("login", "first")
    audit_logger.log_event("login", "second")

    db.session.add(AuditLog(
        action="login",
        details="forked",
        previous_hash=first.entry_hash,
        entry_hash="0" * 64,
        signature="",
    ))
    with pytest.raises(IntegrityError):
        db.session.commit()
    db.session.rollback()


def test_append_retries_when_head_moved(audit_logger, monkeypatch):
    """Test that a stale chain head read is retried against the real head."""
    first = audit_logger.log_event("login", "first")
    second = audit_logger.log_event("login", "second")

    real_last = audit_logger.repository.last
    stale = iter([first])
    monkeypatch.setattr(audit_logger.repository, "last", lambda: next(stale, None) or real_last())

    third = audit_logger.log_event("logout", "third")

    assert third is not None
    assert third.previous_hash == second.entry_hash
    assert len(_entries()) == 3
    assert audit_logger.verify_log_integrity() is True


def test_append_gives_up_after_repeated_conflicts(audit_logger, monkeypatch):
    """Test that a head that never settles ends in None instead of looping."""
    first = audit_logger.log_event("login", "first")
    audit_logger.log_event("login", "second")

    monkeypatch.setattr(audit_logger.repository, "last", lambda: first)

    assert audit_logger.log_event("logout", "third") is None
    monkeypatch.undo()
    assert len(_entries()) == 2
    assert audit_logger.verify_log_integrity() is True

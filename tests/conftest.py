from datetime import timedelta

import pytest

from clubvote import create_app
from clubvote.authentication.identity import Identity
from clubvote.authentication.rbac import UserRole
from clubvote.config import TestingConfig
from clubvote.elections import BallotBox, ElectionRegistry, EligibilityLedger, ResultsTabulator
from clubvote.extensions import db
from clubvote.time_helpers import utcnow


@pytest.fixture
def app():
    """Create an app bound to a fresh in-memory database."""
    app = create_app(TestingConfig)
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def file_app(tmp_path):
    """An app on a SQLite file, so worker threads can open their own connections.

    No app context is pushed; each thread enters its own.
    """
    class FileConfig(TestingConfig):
        SQLALCHEMY_DATABASE_URI = f"sqlite:///{tmp_path / 'clubvote.db'}"

    app = create_app(FileConfig)
    with app.app_context():
        db.create_all()
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()
        db.engine.dispose()


@pytest.fixture
def client(app):
    with app.test_client() as client:
        yield client


@pytest.fixture
def admin():
    return Identity(id="admin-1", email="admin@club.org", role=UserRole.ADMIN)


@pytest.fixture
def voter():
    return Identity(id="voter-1", email="x@y.com", role=UserRole.VOTER)


@pytest.fixture
def other_voter():
    return Identity(id="voter-2", email="someone@club.org", role=UserRole.VOTER)


@pytest.fixture
def registry(app):
    return ElectionRegistry()


@pytest.fixture
def ledger(app):
    return EligibilityLedger()


@pytest.fixture
def ballot_box(app, ledger):
    return BallotBox(ledger=ledger)


@pytest.fixture
def tabulator(app):
    return ResultsTabulator()


@pytest.fixture
def make_election(registry, admin):
    """Factory for an upcoming election with the given candidate names."""
    def factory(title="Board Vote", candidates=("A", "B"), start_in_days=2):
        start = utcnow() + timedelta(days=start_in_days)
        return registry.create_election(
            admin,
            title=title,
            description="Annual board election",
            start_date=start,
            end_date=start + timedelta(days=7),
            candidates=[{"name": name} for name in candidates],
        )
    return factory


@pytest.fixture
def approve_voter(ledger, admin):
    """Register ``identity`` for ``election`` and approve the registration."""
    def approve(election, identity, name="Voter"):
        registration = ledger.register(identity, election.id, name, identity.email)
        return ledger.review_registration(admin, registration.id, "approved")
    return approve


@pytest.fixture
def active_election(make_election, approve_voter, registry, admin, voter):
    election = make_election()
    approve_voter(election, voter)
    registry.update_status(admin, election.id, "active")
    return election
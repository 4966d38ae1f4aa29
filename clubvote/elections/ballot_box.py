# clubvote/elections/ballot_box.py
"""
Ballot Box

Casting a vote writes two unrelated rows in one transaction:
- a Vote carrying the choice and no voter identity
- a VoterRecord carrying the voter identity and no choice

Neither table alone can deanonymize a ballot. Double voting is prevented by a
per (election, voter) lock inside the process and by the unique constraint on
VoterRecord(voter_id, election_id) across processes.
"""

import logging
import threading
from contextlib import contextmanager

from sqlalchemy.exc import IntegrityError

from clubvote.audit.audit_logger import audit_logger
from clubvote.authentication.rbac import Permission, rbac_service
from clubvote.database.models import Vote, VoterRecord
from clubvote.database.repositories import (
    ElectionRepository,
    VoteRepository,
    VoterRecordRepository,
)
from clubvote.elections.eligibility import EligibilityLedger
from clubvote.errors import (
    AlreadyVoted,
    Forbidden,
    InvalidState,
    NotEligible,
    NotFound,
    PermissionDenied,
    ValidationError,
)
from clubvote.signals import vote_cast
from clubvote.time_helpers import utcnow

logger = logging.getLogger(__name__)


class KeyedLock:
    """One lock per key, kept in the map only while some caller holds or waits on it."""

    def __init__(self):
        self._guard = threading.Lock()
        self._locks = {}  # key -> [lock, holders]

    @contextmanager
    def __call__(self, key):
        with self._guard:
            slot = self._locks.setdefault(key, [threading.Lock(), 0])
            slot[1] += 1
        try:
            with slot[0]:
                yield
        finally:
            with self._guard:
                slot[1] -= 1
                if slot[1] == 0:
                    del self._locks[key]

    def __len__(self):
        with self._guard:
            return len(self._locks)


class BallotBox:
    """Service class for vote casting."""

    _voter_locks = KeyedLock()

    def __init__(self, ledger=None, elections=None, records=None, votes=None):
        self.ledger = ledger or EligibilityLedger()
        self.elections = elections or ElectionRepository()
        self.records = records or VoterRecordRepository()
        self.votes = votes or VoteRepository()

    def has_voted(self, election_id, identity):
        if identity is None:
            return False
        return self.records.find(identity.id, election_id) is not None

    def cast_vote(self, election_id, candidate_id, identity):
        """
        Cast an anonymous vote.

        Checks run in a fixed order and the first failure is raised: voter
        role, election exists, election active, approved voter, not yet voted,
        candidate belongs to the election.

        Returns:
            True once the ballot and the voter record are committed
        """
        if identity is None:
            raise PermissionDenied("Please log in to vote")
        if not rbac_service.has_permission(identity.role, Permission.VOTE):
            raise Forbidden()

        election = self.elections.get(election_id)
        if election is None:
            raise NotFound("The election you are trying to vote in does not exist")
        if election.status != 'active':
            raise InvalidState(f"This election is currently {election.status}")
        if not self.ledger.is_approved_voter(election_id, identity):
            raise NotEligible()

        with self._voter_locks((election_id, identity.id)):
            if self.has_voted(election_id, identity):
                raise AlreadyVoted()
            if election.candidate(candidate_id) is None:
                raise ValidationError("Candidate does not belong to this election")

            now = utcnow()
            self.records.put(VoterRecord(
                voter_id=identity.id,
                election_id=election_id,
                has_voted=True,
                timestamp=now,
            ))
            self.votes.put(Vote(
                election_id=election_id,
                candidate_id=candidate_id,
                timestamp=now,
            ))
            try:
                self.votes.commit()
            except IntegrityError:
                # Another process recorded this voter first; neither row survives
                self.votes.rollback()
                logger.warning("Duplicate vote rejected by storage for election %s", election_id)
                raise AlreadyVoted()

        audit_logger.log_event(
            'vote_cast',
            f'Vote cast in election "{election.title}" by user {identity.id}',
            user_id=identity.id,
        )
        vote_cast.send(election_id)
        return True

# clubvote/elections/registry.py
"""
Election Registry

Owns election records, their candidate lists and lifecycle status:
- Election creation with a unique, shareable election code
- Manual status and registration-window control
- Candidate renames before an election starts
- Optional clock synchronisation of statuses
"""

import logging
import secrets

from sqlalchemy.exc import IntegrityError

from clubvote.audit.audit_logger import audit_logger
from clubvote.authentication.rbac import Permission, authorize
from clubvote.database.models import (
    ELECTION_STATUSES,
    REGISTRATION_STATUSES,
    Candidate,
    Election,
)
from clubvote.database.repositories import ElectionRepository
from clubvote.errors import InvalidState, NotFound, ValidationError
from clubvote.security.input_validator import validator
from clubvote.signals import election_changed
from clubvote.time_helpers import to_naive_utc, utcnow

logger = logging.getLogger(__name__)

# Easily confused letters (I, O) are left out
ELECTION_CODE_LETTERS = 'ABCDEFGHJKLMNPQRSTUVWXYZ'
MIN_CANDIDATES = 2
CODE_ATTEMPTS = 20


def generate_election_code():
    """Two letters followed by a four digit number, e.g. ``AB1234``."""
    letters = ''.join(secrets.choice(ELECTION_CODE_LETTERS) for _ in range(2))
    return f"{letters}{1000 + secrets.randbelow(9000)}"


class ElectionRegistry:
    """Service class for election records."""

    def __init__(self, elections=None):
        self.elections = elections or ElectionRepository()

    # =========================================================================
    # LOOKUPS
    # =========================================================================

    def get_by_id(self, election_id):
        return self.elections.get(election_id)

    def require(self, election_id):
        election = self.elections.get(election_id)
        if election is None:
            raise NotFound("Election not found")
        return election

    def find_by_code(self, election_code):
        if not isinstance(election_code, str):
            return None
        return self.elections.find_by_code(election_code.strip().upper())

    def list_elections(self):
        return self.elections.all()

    # =========================================================================
    # CREATION
    # =========================================================================

    def _unique_election_code(self):
        for _ in range(CODE_ATTEMPTS):
            code = generate_election_code()
            if not self.elections.code_exists(code):
                return code
        raise InvalidState("Could not allocate a unique election code")

    def create_election(self, caller, title, description, start_date, end_date, candidates):
        """
        Create a new election.

        Args:
            caller: Identity of the admin creating the election
            title: Election title
            description: Free text description
            start_date: Scheduled start (datetime or ISO string)
            end_date: Scheduled end (datetime or ISO string)
            candidates: Sequence of candidate dicts or names, at least two

        Returns:
            The persisted Election
        """
        authorize(caller, Permission.MANAGE_ELECTIONS, "Only admins can create elections")

        cleaned_candidates = validator.validate_candidates(candidates, minimum=MIN_CANDIDATES)
        title = validator.require_text(title, 'Title', max_length=200)
        description = validator.optional_text(description) or ''
        try:
            start_date = to_naive_utc(start_date)
            end_date = to_naive_utc(end_date)
        except (TypeError, ValueError, AttributeError):
            raise ValidationError("Invalid start or end date")
        if end_date < start_date:
            raise ValidationError("End date must not be before start date")

        now = utcnow()
        for attempt in range(CODE_ATTEMPTS):
            election = Election(
                election_code=self._unique_election_code(),
                title=title,
                description=description,
                start_date=start_date,
                end_date=end_date,
                status='active' if start_date <= now else 'upcoming',
                registration_status='open',
                created_by=caller.id,
                created_at=now,
            )
            for position, candidate in enumerate(cleaned_candidates):
                election.candidates.append(Candidate(
                    position=position,
                    name=candidate['name'],
                    description=candidate['description'],
                    photo_url=candidate['photo_url'],
                ))
            self.elections.put(election)
            try:
                self.elections.commit()
                break
            except IntegrityError:
                # Another writer took the same code between check and insert
                self.elections.rollback()
                logger.warning("Election code collision on insert, retrying (attempt %d)", attempt + 1)
        else:
            raise InvalidState("Could not allocate a unique election code")

        audit_logger.log_event(
            'election_created',
            f'Election "{election.title}" created by {caller.id} with code {election.election_code}',
            user_id=caller.id,
        )
        election_changed.send(election.id)
        return election

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    def update_status(self, caller, election_id, new_status):
        authorize(caller, Permission.MANAGE_ELECTIONS, "Only admins can update election status")
        if new_status not in ELECTION_STATUSES:
            raise ValidationError(f"Unknown election status: {new_status}")
        election = self.require(election_id)

        previous = election.status
        election.status = new_status
        self.elections.commit()

        action = 'election_closed' if new_status == 'closed' else 'election_status_updated'
        audit_logger.log_event(
            action,
            f"Election {election_id} status updated from {previous} to {new_status} by {caller.id}",
            user_id=caller.id,
        )
        election_changed.send(election.id)
        return election

    def update_registration_status(self, caller, election_id, registration_status):
        authorize(caller, Permission.MANAGE_ELECTIONS, "Only admins can update registration status")
        if registration_status not in REGISTRATION_STATUSES:
            raise ValidationError(f"Unknown registration status: {registration_status}")
        election = self.require(election_id)

        election.registration_status = registration_status
        self.elections.commit()

        audit_logger.log_event(
            'registration_status_updated',
            f"Election {election_id} registration status updated to {registration_status} by {caller.id}",
            user_id=caller.id,
        )
        election_changed.send(election.id)
        return election

    def update_candidate_name(self, caller, election_id, candidate_id, new_name):
        authorize(caller, Permission.MANAGE_CANDIDATES, "Only admins can update candidate names")
        election = self.require(election_id)
        if election.status != 'upcoming':
            raise InvalidState("Candidate names can only be updated before an election starts")
        candidate = election.candidate(candidate_id)
        if candidate is None:
            raise NotFound("Candidate not found")
        new_name = validator.require_text(new_name, 'Candidate name', max_length=100)

        candidate.name = new_name
        self.elections.commit()

        audit_logger.log_event(
            'candidate_edited',
            f'Admin {caller.id} updated candidate {candidate_id} name to "{new_name}" in election {election_id}',
            user_id=caller.id,
        )
        election_changed.send(election.id)
        return candidate

    def sync_status_to_clock(self, now=None):
        """
        Move statuses along the calendar: upcoming -> active once started,
        active -> closed once ended. Manual overrides are otherwise left alone.

        Returns:
            List of (election, old_status, new_status) tuples that changed
        """
        now = now or utcnow()
        changes = []
        for election in self.elections.with_status('upcoming'):
            if election.start_date <= now:
                changes.append((election, 'upcoming', 'active'))
        for election in self.elections.with_status('active'):
            if election.end_date <= now:
                changes.append((election, 'active', 'closed'))
        if not changes:
            return changes

        for election, _, new_status in changes:
            election.status = new_status
        self.elections.commit()

        for election, old_status, new_status in changes:
            action = 'election_closed' if new_status == 'closed' else 'election_status_updated'
            audit_logger.log_event(
                action,
                f"Election {election.id} status moved from {old_status} to {new_status} by clock sync",
            )
            election_changed.send(election.id)
        logger.info("Clock sync changed %d election(s)", len(changes))
        return changes

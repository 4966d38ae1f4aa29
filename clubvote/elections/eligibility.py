# clubvote/elections/eligibility.py
"""
Eligibility Ledger

Handles the voter eligibility pipeline:
- Registration for an election (one per election and email)
- Admin review, issuing a bound voter code on approval
- Bulk generation of unbound voter codes
- Code validation and single-use redemption
- The approved-voter gate consulted before a vote is accepted
"""

import logging
import secrets

from flask import current_app
from sqlalchemy.exc import IntegrityError

from clubvote.audit.audit_logger import audit_logger
from clubvote.authentication.rbac import Permission, authorize
from clubvote.database.models import VoterCode, VoterRegistration
from clubvote.database.repositories import (
    ElectionRepository,
    RegistrationRepository,
    VoterCodeRepository,
)
from clubvote.errors import (
    AlreadyRegistered,
    InvalidState,
    NotFound,
    PermissionDenied,
    RegistrationClosed,
    ValidationError,
)
from clubvote.security.input_validator import validator
from clubvote.signals import codes_changed, registration_changed
from clubvote.time_helpers import utcnow

logger = logging.getLogger(__name__)

REVIEW_DECISIONS = ('approved', 'rejected')
DEFAULT_MAX_CODES_PER_BATCH = 1000
DEFAULT_CODE_ATTEMPTS = 5


def generate_voter_code():
    """Eight upper-case hexadecimal characters, e.g. ``3F9A0C1B``."""
    return secrets.token_hex(4).upper()


def _config(key, default):
    return current_app.config.get(key, default)


class EligibilityLedger:
    """Service class for voter registrations and voter codes."""

    def __init__(self, elections=None, registrations=None, codes=None):
        self.elections = elections or ElectionRepository()
        self.registrations = registrations or RegistrationRepository()
        self.codes = codes or VoterCodeRepository()

    def _require_election(self, election_id):
        election = self.elections.get(election_id)
        if election is None:
            raise NotFound("Election not found")
        return election

    # =========================================================================
    # REGISTRATION
    # =========================================================================

    def can_register(self, election_id):
        election = self.elections.get(election_id)
        if election is None:
            return False
        # Registration ends when the election starts or an admin closes it
        return election.status == 'upcoming' and election.registration_status == 'open'

    def has_registered(self, election_id, email):
        if not validator.validate_email(email):
            return False
        email_key = email.strip().lower()
        return self.registrations.find_by_email(election_id, email_key) is not None

    def register(self, caller, election_id, name, email):
        """
        Register a voter for an election.

        Args:
            caller: Authenticated identity submitting the registration
            election_id: Election to register for
            name: Voter's display name
            email: Email the voter code will be bound to

        Returns:
            The pending VoterRegistration
        """
        if caller is None:
            raise PermissionDenied("Please log in to register for an election")
        authorize(caller, Permission.REGISTER_FOR_ELECTION)
        election = self._require_election(election_id)

        name = validator.require_text(name, 'Name', max_length=100)
        email_key = validator.normalize_email(email)

        if self.registrations.find_by_email(election_id, email_key) is not None:
            raise AlreadyRegistered()
        if not self.can_register(election_id):
            raise RegistrationClosed()

        registration = VoterRegistration(
            election_id=election_id,
            name=name,
            email=email.strip(),
            email_key=email_key,
            status='pending',
            submitted_at=utcnow(),
        )
        self.registrations.put(registration)
        try:
            self.registrations.commit()
        except IntegrityError:
            # A concurrent registration for the same email won the race
            self.registrations.rollback()
            raise AlreadyRegistered()

        audit_logger.log_event(
            'user_registered',
            f'User {name} ({registration.email}) registered for election "{election.title}"',
            user_id=caller.id,
        )
        registration_changed.send(election_id, registration_id=registration.id)
        return registration

    def get_registrations_by_election(self, caller, election_id):
        authorize(caller, Permission.REVIEW_REGISTRATIONS)
        return self.registrations.for_election(election_id)

    def get_pending_registrations(self, caller):
        authorize(caller, Permission.REVIEW_REGISTRATIONS)
        return self.registrations.pending()

    # =========================================================================
    # REVIEW
    # =========================================================================

    def review_registration(self, caller, registration_id, decision):
        """
        Approve or reject a pending registration.

        Approval issues one voter code bound to the registration email.

        Returns:
            The reviewed VoterRegistration
        """
        authorize(caller, Permission.REVIEW_REGISTRATIONS, "Only admins can update registration status")
        registration = self.registrations.get(registration_id)
        if registration is None:
            raise NotFound("Registration not found")
        if decision not in REVIEW_DECISIONS:
            raise ValidationError(f"Unknown review decision: {decision}")
        if decision == 'approved' and registration.voter_code_id is not None:
            raise InvalidState("This registration already has a voter code")

        now = utcnow()

        def apply_review(issued=None):
            registration.status = decision
            registration.reviewed_at = now
            registration.reviewed_by = caller.id
            if issued:
                registration.voter_code_id = issued[0]

        if decision == 'approved':
            code = self._insert_codes(
                registration.election_id, 1, caller.id, now,
                email=registration.email, link=apply_review,
            )[0]
            action = 'registration_approved'
            # Email delivery is external; the code is only logged at debug level
            logger.debug("Voter code %s issued to %s", code, registration.email)
        else:
            apply_review()
            self.registrations.commit()
            action = 'registration_rejected'

        audit_logger.log_event(
            action,
            f"Admin {caller.id} {'approved' if decision == 'approved' else 'rejected'} registration "
            f"for {registration.name} ({registration.email}) for election {registration.election_id}",
            user_id=caller.id,
        )
        registration_changed.send(registration.election_id, registration_id=registration.id)
        if decision == 'approved':
            codes_changed.send(registration.election_id)
        return registration

    # =========================================================================
    # VOTER CODES
    # =========================================================================

    def _fresh_codes(self, count):
        codes = set()
        while len(codes) < count:
            batch = set()
            while len(codes) + len(batch) < count:
                candidate = generate_voter_code()
                if candidate not in codes:
                    batch.add(candidate)
            codes |= batch - self.codes.existing_codes(batch)
        return sorted(codes)

    def _insert_codes(self, election_id, count, created_by, created_at, email=None, link=None):
        # Uniqueness is enforced by the primary key on insert; a lost race retries the batch
        attempts = _config('CODE_GENERATION_ATTEMPTS', DEFAULT_CODE_ATTEMPTS)
        for attempt in range(attempts):
            issued = self._fresh_codes(count)
            for code in issued:
                self.codes.put(VoterCode(
                    code=code,
                    election_id=election_id,
                    is_used=False,
                    email=email,
                    created_at=created_at,
                    created_by=created_by,
                ))
            if link is not None:
                self.codes.flush()
                link(issued)
            try:
                self.codes.commit()
                return issued
            except IntegrityError:
                self.codes.rollback()
                logger.warning("Voter code collision on insert, retrying (attempt %d)", attempt + 1)
        raise InvalidState("Could not allocate unique voter codes")

    def generate_codes(self, caller, election_id, count):
        """
        Generate unbound voter codes for out-of-band distribution.

        Returns:
            List of the literal code strings
        """
        authorize(caller, Permission.ISSUE_VOTER_CODES, "Only admins can generate voter codes")
        election = self._require_election(election_id)
        max_batch = _config('MAX_CODES_PER_BATCH', DEFAULT_MAX_CODES_PER_BATCH)
        if isinstance(count, bool) or not isinstance(count, int) or not 1 <= count <= max_batch:
            raise ValidationError(f"Code count must be between 1 and {max_batch}")

        issued = self._insert_codes(election_id, count, caller.id, utcnow())

        audit_logger.log_event(
            'codes_generated',
            f'Admin {caller.id} generated {count} voter codes for election "{election.title}"',
            user_id=caller.id,
        )
        codes_changed.send(election_id)
        return issued

    def get_voter_codes_by_election(self, caller, election_id):
        authorize(caller, Permission.VIEW_VOTER_CODES)
        return self.codes.for_election(election_id)

    def validate_code(self, code, election_id):
        if not isinstance(code, str):
            return False
        voter_code = self.codes.find(code, election_id)
        return voter_code is not None and not voter_code.is_used

    def redeem_code(self, code, election_id=None):
        """
        Consume a voter code.

        Returns:
            True if this call consumed the code, False if it was already used
        """
        voter_code = self.codes.get(code) if isinstance(code, str) else None
        if voter_code is None or (election_id is not None and voter_code.election_id != election_id):
            raise NotFound("Voter code not found")

        consumed = self.codes.mark_used(code, utcnow(), election_id=election_id)
        self.codes.commit()
        if consumed:
            codes_changed.send(voter_code.election_id)
        return consumed

    # =========================================================================
    # ELIGIBILITY GATE
    # =========================================================================

    def is_approved_voter(self, election_id, identity):
        if identity is None or not identity.email:
            return False
        registration = self.registrations.find_by_email(election_id, identity.email.strip().lower())
        if registration is None or registration.status != 'approved':
            return False
        # The bound code must still resolve
        return self.codes.get(registration.voter_code_id) is not None

# clubvote/errors.py
"""Typed failures raised by the election core.

Every failure is recoverable and user-facing. The core raises; the API layer
(``clubvote.routes``) is the only place that turns them into responses.

Exception hierarchy:
- ElectionError: Base class for all election core failures
  - PermissionDenied: Caller's role does not allow the operation
    - Forbidden: Administrators attempting to vote
  - NotFound: Unknown election, candidate, registration or code
  - ValidationError: Malformed input
  - InvalidState: Operation not allowed in the current lifecycle state
  - AlreadyRegistered: Duplicate (election, email) registration
  - AlreadyVoted: Voter already has a voter record for the election
  - NotEligible: No approved registration with a live voter code
  - RegistrationClosed: Election no longer accepts registrations
"""


class ElectionError(Exception):
    """Base exception for election core failures."""
    error_code = 'election_error'
    status_code = 400

    def __init__(self, message=None):
        super().__init__(message or self.__doc__)
        self.message = message or self.__doc__

    def to_dict(self):
        return {'error': self.error_code, 'message': self.message}


class PermissionDenied(ElectionError):
    """You do not have permission to perform this action."""
    error_code = 'permission_denied'
    status_code = 403


class Forbidden(PermissionDenied):
    """Administrators are not allowed to vote in elections."""
    error_code = 'forbidden'


class NotFound(ElectionError):
    """The requested resource does not exist."""
    error_code = 'not_found'
    status_code = 404


class ValidationError(ElectionError):
    """The submitted data is invalid."""
    error_code = 'validation_error'
    status_code = 400


class InvalidState(ElectionError):
    """This action is not allowed in the election's current state."""
    error_code = 'invalid_state'
    status_code = 409


class AlreadyRegistered(ElectionError):
    """You have already registered for this election."""
    error_code = 'already_registered'
    status_code = 409


class AlreadyVoted(ElectionError):
    """You have already cast your vote in this election."""
    error_code = 'already_voted'
    status_code = 409


class NotEligible(ElectionError):
    """You must be a registered and approved voter for this election."""
    error_code = 'not_eligible'
    status_code = 403


class RegistrationClosed(ElectionError):
    """Registration for this election is closed or the election has already started."""
    error_code = 'registration_closed'
    status_code = 409

# clubvote/database/models.py

import uuid

from clubvote.extensions import db
from clubvote.time_helpers import utcnow

ELECTION_STATUSES = ('upcoming', 'active', 'closed')
REGISTRATION_STATUSES = ('open', 'closed')
REVIEW_STATUSES = ('pending', 'approved', 'rejected')


def _new_id():
    return str(uuid.uuid4())


def _iso(value):
    return value.isoformat() if value else None


class Election(db.Model):
    __tablename__ = 'elections'
    id = db.Column(db.String(36), primary_key=True, default=_new_id)
    election_code = db.Column(db.String(6), unique=True, nullable=False, index=True)
    title = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text, nullable=False, default='')
    start_date = db.Column(db.DateTime, nullable=False)
    end_date = db.Column(db.DateTime, nullable=False)
    status = db.Column(db.String(10), nullable=False, default='upcoming')
    registration_status = db.Column(db.String(10), nullable=False, default='open')
    created_by = db.Column(db.String(64), nullable=False)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    candidates = db.relationship(
        'Candidate', backref='election', lazy=True,
        order_by='Candidate.position', cascade='all, delete-orphan',
    )

    def candidate(self, candidate_id):
        return next((c for c in self.candidates if c.id == candidate_id), None)

    def to_dict(self):
        return {
            'id': self.id,
            'electionCode': self.election_code,
            'title': self.title,
            'description': self.description,
            'startDate': _iso(self.start_date),
            'endDate': _iso(self.end_date),
            'candidates': [c.to_dict() for c in self.candidates],
            'status': self.status,
            'registrationStatus': self.registration_status,
            'createdBy': self.created_by,
            'createdAt': _iso(self.created_at),
        }

    def __repr__(self):
        return f'<Election {self.election_code} {self.status}>'


class Candidate(db.Model):
    __tablename__ = 'candidates'
    id = db.Column(db.String(36), primary_key=True, default=_new_id)
    election_id = db.Column(db.String(36), db.ForeignKey('elections.id'), nullable=False, index=True)
    position = db.Column(db.Integer, nullable=False, default=0)
    name = db.Column(db.String(100), nullable=False)
    description = db.Column(db.Text, nullable=True)
    photo_url = db.Column(db.String(500), nullable=True)

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'description': self.description,
            'photoUrl': self.photo_url,
        }


class VoterCode(db.Model):
    __tablename__ = 'voter_codes'
    # One namespace for bulk and registration-bound codes, unique across elections
    code = db.Column(db.String(16), primary_key=True)
    election_id = db.Column(db.String(36), db.ForeignKey('elections.id'), nullable=False, index=True)
    is_used = db.Column(db.Boolean, nullable=False, default=False)
    email = db.Column(db.String(254), nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    used_at = db.Column(db.DateTime, nullable=True)
    created_by = db.Column(db.String(64), nullable=False)

    def to_dict(self):
        return {
            'code': self.code,
            'electionId': self.election_id,
            'isUsed': self.is_used,
            'email': self.email,
            'createdAt': _iso(self.created_at),
            'usedAt': _iso(self.used_at),
            'createdBy': self.created_by,
        }


class VoterRegistration(db.Model):
    __tablename__ = 'voter_registrations'
    __table_args__ = (
        db.UniqueConstraint('election_id', 'email_key', name='uq_registration_election_email'),
    )
    id = db.Column(db.String(36), primary_key=True, default=_new_id)
    election_id = db.Column(db.String(36), db.ForeignKey('elections.id'), nullable=False, index=True)
    name = db.Column(db.String(100), nullable=False)
    email = db.Column(db.String(254), nullable=False)
    email_key = db.Column(db.String(254), nullable=False)  # lower-cased email
    status = db.Column(db.String(10), nullable=False, default='pending')
    submitted_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    reviewed_at = db.Column(db.DateTime, nullable=True)
    reviewed_by = db.Column(db.String(64), nullable=True)
    voter_code_id = db.Column(db.String(16), db.ForeignKey('voter_codes.code'), nullable=True)

    def to_dict(self):
        return {
            'id': self.id,
            'electionId': self.election_id,
            'name': self.name,
            'email': self.email,
            'status': self.status,
            'submittedAt': _iso(self.submitted_at),
            'reviewedAt': _iso(self.reviewed_at),
            'reviewedBy': self.reviewed_by,
            'voterCodeId': self.voter_code_id,
        }


class VoterRecord(db.Model):
    """Proof of participation. Knows who voted, never what they chose."""
    __tablename__ = 'voter_records'
    __table_args__ = (
        db.UniqueConstraint('voter_id', 'election_id', name='uq_voter_record_voter_election'),
    )
    id = db.Column(db.Integer, primary_key=True)
    voter_id = db.Column(db.String(64), nullable=False)
    election_id = db.Column(db.String(36), db.ForeignKey('elections.id'), nullable=False)
    has_voted = db.Column(db.Boolean, nullable=False, default=True)
    timestamp = db.Column(db.DateTime, nullable=False, default=utcnow)


class Vote(db.Model):
    """A cast ballot. Knows what was chosen, never who chose it."""
    __tablename__ = 'votes'
    id = db.Column(db.String(36), primary_key=True, default=_new_id)
    election_id = db.Column(db.String(36), db.ForeignKey('elections.id'), nullable=False, index=True)
    candidate_id = db.Column(db.String(36), nullable=False)
    timestamp = db.Column(db.DateTime, nullable=False, default=utcnow)

    def __repr__(self):
        return f'<Vote {self.id} in Election {self.election_id}>'


class AuditLog(db.Model):
    __tablename__ = 'audit_logs'
    __table_args__ = (
        db.UniqueConstraint('previous_hash', name='uq_audit_logs_previous_hash'),
    )
    id = db.Column(db.Integer, primary_key=True)
    action = db.Column(db.String(50), nullable=False, index=True)
    user_id = db.Column(db.String(64), nullable=True)
    details = db.Column(db.Text, nullable=False)
    timestamp = db.Column(db.DateTime, nullable=False, default=utcnow)
    ip_address = db.Column(db.String(45), nullable=True)
    # Hash chaining and Ed25519 signatures make tampering detectable
    previous_hash = db.Column(db.String(64), nullable=True)
    entry_hash = db.Column(db.String(64), nullable=False)
    signature = db.Column(db.Text, nullable=False)

    def to_dict(self):
        return {
            'id': self.id,
            'action': self.action,
            'userId': self.user_id,
            'details': self.details,
            'timestamp': _iso(self.timestamp),
            'ipAddress': self.ip_address,
        }

# clubvote/database/repositories.py
"""Storage access for the election core.

Business logic only talks to these repositories, never to the session or the
query API directly. Each repository works on the current Flask-SQLAlchemy
session, so a transaction spans every repository touched within one request.
Swapping the storage engine means swapping these classes.
"""

from sqlalchemy import func

from clubvote.database.models import (
    AuditLog,
    Election,
    Vote,
    VoterCode,
    VoterRecord,
    VoterRegistration,
)
from clubvote.extensions import db


class Repository:
    model = None

    @property
    def session(self):
        return db.session

    def get(self, key):
        if key is None:
            return None
        return self.session.get(self.model, key)

    def put(self, obj):
        self.session.add(obj)
        return obj

    def flush(self):
        self.session.flush()

    def commit(self):
        self.session.commit()

    def rollback(self):
        self.session.rollback()


class ElectionRepository(Repository):
    model = Election

    def find_by_code(self, election_code):
        return self.session.scalar(
            db.select(Election).where(Election.election_code == election_code)
        )

    def code_exists(self, election_code):
        return self.find_by_code(election_code) is not None

    def all(self):
        return list(self.session.scalars(db.select(Election).order_by(Election.created_at)))

    def with_status(self, status):
        return list(self.session.scalars(db.select(Election).where(Election.status == status)))


class RegistrationRepository(Repository):
    model = VoterRegistration

    def find_by_email(self, election_id, email_key):
        return self.session.scalar(
            db.select(VoterRegistration).where(
                VoterRegistration.election_id == election_id,
                VoterRegistration.email_key == email_key,
            )
        )

    def for_election(self, election_id):
        return list(self.session.scalars(
            db.select(VoterRegistration)
            .where(VoterRegistration.election_id == election_id)
            .order_by(VoterRegistration.submitted_at)
        ))

    def pending(self):
        return list(self.session.scalars(
            db.select(VoterRegistration)
            .where(VoterRegistration.status == 'pending')
            .order_by(VoterRegistration.submitted_at)
        ))


class VoterCodeRepository(Repository):
    model = VoterCode

    def existing_codes(self, candidates):
        """Return the subset of ``candidates`` already taken by any election."""
        if not candidates:
            return set()
        return set(self.session.scalars(
            db.select(VoterCode.code).where(VoterCode.code.in_(list(candidates)))
        ))

    def find(self, code, election_id):
        return self.session.scalar(
            db.select(VoterCode).where(
                VoterCode.code == code,
                VoterCode.election_id == election_id,
            )
        )

    def for_election(self, election_id):
        return list(self.session.scalars(
            db.select(VoterCode)
            .where(VoterCode.election_id == election_id)
            .order_by(VoterCode.created_at, VoterCode.code)
        ))

    def mark_used(self, code, used_at, election_id=None):
        """Compare-and-set ``is_used`` from False to True.

        Returns True only for the call that actually consumed the code.
        """
        stmt = (
            db.update(VoterCode)
            .where(VoterCode.code == code, VoterCode.is_used.is_(False))
            .values(is_used=True, used_at=used_at)
            .execution_options(synchronize_session=False)
        )
        if election_id is not None:
            stmt = stmt.where(VoterCode.election_id == election_id)
        result = self.session.execute(stmt)
        return result.rowcount == 1


class VoterRecordRepository(Repository):
    model = VoterRecord

    def find(self, voter_id, election_id):
        return self.session.scalar(
            db.select(VoterRecord).where(
                VoterRecord.voter_id == voter_id,
                VoterRecord.election_id == election_id,
            )
        )

    def count_for_election(self, election_id):
        return self.session.scalar(
            db.select(func.count(VoterRecord.id)).where(VoterRecord.election_id == election_id)
        )


class VoteRepository(Repository):
    model = Vote

    def counts_by_candidate(self, election_id):
        rows = self.session.execute(
            db.select(Vote.candidate_id, func.count(Vote.id))
            .where(Vote.election_id == election_id)
            .group_by(Vote.candidate_id)
        )
        return {candidate_id: count for candidate_id, count in rows}

    def count_for_election(self, election_id):
        return self.session.scalar(
            db.select(func.count(Vote.id)).where(Vote.election_id == election_id)
        )


class AuditLogRepository(Repository):
    model = AuditLog

    def last(self):
        return self.session.scalar(db.select(AuditLog).order_by(AuditLog.id.desc()).limit(1))

    def chronological(self):
        return self.session.scalars(db.select(AuditLog).order_by(AuditLog.id))

    def newest_first(self, limit=None):
        stmt = db.select(AuditLog).order_by(AuditLog.id.desc())
        if limit:
            stmt = stmt.limit(limit)
        return list(self.session.scalars(stmt))

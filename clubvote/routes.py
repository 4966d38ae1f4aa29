# clubvote/routes.py

# JSON API consumed by the presentation layer.
# Each endpoint resolves the caller once, checks its permission and hands over
# to the election core; typed failures become JSON error responses.

import csv
import io

from flask import Blueprint, Response, current_app, jsonify, request
from flask_jwt_extended import unset_jwt_cookies

from clubvote.audit.audit_logger import audit_logger
from clubvote.authentication.identity import identity_provider
from clubvote.authentication.rbac import Permission, require_permission
from clubvote.elections import BallotBox, ElectionRegistry, EligibilityLedger, ResultsTabulator
from clubvote.errors import ElectionError, NotFound, ValidationError
from clubvote.extensions import limiter

bp = Blueprint('api', __name__, url_prefix='/api')

# Initialize election core services
registry = ElectionRegistry()
ledger = EligibilityLedger()
ballot_box = BallotBox(ledger=ledger)
tabulator = ResultsTabulator()


@bp.errorhandler(ElectionError)
def handle_election_error(error):
    return jsonify(error.to_dict()), error.status_code


def _json_body():
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    return data


def _caller():
    return identity_provider.current_identity()


def _vote_rate_limit():
    return current_app.config.get('VOTE_RATE_LIMIT', '10/hour')


# ---------------------------------------------------------------- elections

@bp.get('/elections')
def list_elections():
    return jsonify([election.to_dict() for election in registry.list_elections()])


@bp.post('/elections')
@require_permission(Permission.MANAGE_ELECTIONS)
def create_election():
    data = _json_body()
    election = registry.create_election(
        _caller(),
        title=data.get('title'),
        description=data.get('description'),
        start_date=data.get('startDate'),
        end_date=data.get('endDate'),
        candidates=data.get('candidates') or [],
    )
    return jsonify(election.to_dict()), 201


@bp.get('/elections/<election_id>')
def get_election(election_id):
    return jsonify(registry.require(election_id).to_dict())


@bp.get('/elections/code/<election_code>')
def find_election_by_code(election_code):
    election = registry.find_by_code(election_code)
    if election is None:
        raise NotFound("No election matches this code")
    return jsonify(election.to_dict())


@bp.patch('/elections/<election_id>/status')
@require_permission(Permission.MANAGE_ELECTIONS)
def update_election_status(election_id):
    election = registry.update_status(_caller(), election_id, _json_body().get('status'))
    return jsonify(election.to_dict())


@bp.patch('/elections/<election_id>/registration-status')
@require_permission(Permission.MANAGE_ELECTIONS)
def update_registration_status(election_id):
    status = _json_body().get('registrationStatus')
    election = registry.update_registration_status(_caller(), election_id, status)
    return jsonify(election.to_dict())


@bp.patch('/elections/<election_id>/candidates/<candidate_id>')
@require_permission(Permission.MANAGE_CANDIDATES)
def update_candidate(election_id, candidate_id):
    candidate = registry.update_candidate_name(_caller(), election_id, candidate_id, _json_body().get('name'))
    return jsonify(candidate.to_dict())


# ------------------------------------------------------------ registrations

@bp.post('/elections/<election_id>/registrations')
@require_permission(Permission.REGISTER_FOR_ELECTION)
def register_for_election(election_id):
    data = _json_body()
    registration = ledger.register(_caller(), election_id, data.get('name'), data.get('email'))
    return jsonify(registration.to_dict()), 201


@bp.get('/elections/<election_id>/registrations')
@require_permission(Permission.REVIEW_REGISTRATIONS)
def list_registrations(election_id):
    registrations = ledger.get_registrations_by_election(_caller(), election_id)
    return jsonify([r.to_dict() for r in registrations])


@bp.get('/registrations/pending')
@require_permission(Permission.REVIEW_REGISTRATIONS)
def pending_registrations():
    return jsonify([r.to_dict() for r in ledger.get_pending_registrations(_caller())])


@bp.post('/registrations/<registration_id>/review')
@require_permission(Permission.REVIEW_REGISTRATIONS)
def review_registration(registration_id):
    registration = ledger.review_registration(_caller(), registration_id, _json_body().get('decision'))
    return jsonify(registration.to_dict())


# -------------------------------------------------------------- voter codes

@bp.post('/elections/<election_id>/codes')
@require_permission(Permission.ISSUE_VOTER_CODES)
def generate_codes(election_id):
    codes = ledger.generate_codes(_caller(), election_id, _json_body().get('count'))
    return jsonify({'codes': codes}), 201


@bp.get('/elections/<election_id>/codes')
@require_permission(Permission.VIEW_VOTER_CODES)
def list_codes(election_id):
    return jsonify([c.to_dict() for c in ledger.get_voter_codes_by_election(_caller(), election_id)])


@bp.get('/elections/<election_id>/codes.csv')
@require_permission(Permission.VIEW_VOTER_CODES)
def export_codes(election_id):
    buffer = io.StringIO()
    writer = csv.writer(buffer)
    writer.writerow(['Code', 'Created At', 'Status', 'Used At'])
    for code in ledger.get_voter_codes_by_election(_caller(), election_id):
        writer.writerow([
            code.code,
            code.created_at.strftime('%Y-%m-%d %H:%M:%S'),
            'Used' if code.is_used else 'Available',
            code.used_at.strftime('%Y-%m-%d %H:%M:%S') if code.used_at else '',
        ])
    return Response(
        buffer.getvalue(),
        mimetype='text/csv',
        headers={'Content-Disposition': f'attachment; filename=voter-codes-election-{election_id}.csv'},
    )


@bp.post('/elections/<election_id>/access')
@limiter.limit(_vote_rate_limit)
def redeem_access_code(election_id):
    # Unlocks ballot access: the code must be valid for this election and unused
    registry.require(election_id)
    code = str(_json_body().get('code') or '').strip().upper()
    if not ledger.validate_code(code, election_id):
        raise ValidationError("Invalid or already used voter code")
    if not ledger.redeem_code(code, election_id):
        raise ValidationError("Invalid or already used voter code")
    return jsonify({'access': True, 'electionId': election_id})


# ------------------------------------------------------------------- voting

@bp.post('/elections/<election_id>/votes')
@limiter.limit(_vote_rate_limit)
def cast_vote(election_id):
    ballot_box.cast_vote(election_id, _json_body().get('candidateId'), _caller())
    return jsonify({'message': 'Vote cast successfully'}), 201


@bp.get('/elections/<election_id>/has-voted')
@require_permission(Permission.VIEW_OWN_STATUS)
def has_voted(election_id):
    return jsonify({'hasVoted': ballot_box.has_voted(election_id, _caller())})


@bp.get('/elections/<election_id>/results')
def election_results(election_id):
    return jsonify(tabulator.summarize(election_id, _caller()).to_dict())


# -------------------------------------------------------------------- audit

@bp.get('/audit')
@require_permission(Permission.VIEW_AUDIT_LOGS)
def view_audit_logs():
    limit = request.args.get('limit', type=int)
    return jsonify({
        'entries': [entry.to_dict() for entry in audit_logger.entries(limit)],
        'intact': audit_logger.verify_log_integrity(),
    })


@bp.post('/logout')
def logout():
    caller = _caller()
    if caller is not None:
        identity_provider.sign_out(caller)
    resp = jsonify({'logout': True})
    unset_jwt_cookies(resp)
    return resp

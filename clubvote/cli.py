# clubvote/cli.py
"""
Flask CLI commands for election maintenance.
"""

import click
from flask.cli import AppGroup

from clubvote.audit.audit_logger import audit_logger
from clubvote.elections.registry import ElectionRegistry

elections_cli = AppGroup('elections', help='Election maintenance commands.')


@elections_cli.command('sync-status')
def sync_status_command():
    """Move election statuses along their start and end dates."""
    changes = ElectionRegistry().sync_status_to_clock()
    if not changes:
        click.echo("No election status changes.")
        return
    for election, old_status, new_status in changes:
        click.echo(f"{election.election_code}: {old_status} -> {new_status}")


@elections_cli.command('verify-audit')
def verify_audit_command():
    """Check the audit log hash chain and signatures.

    Entries only verify against the key they were signed with, so
    AUDIT_SIGNING_KEY must be configured.
    """
    if audit_logger.verify_log_integrity():
        click.echo("Audit log integrity verified.")
    else:
        click.echo("Audit log integrity check FAILED.", err=True)
        raise SystemExit(1)


def register_cli_commands(app):
    """Register CLI commands with the Flask app."""
    app.cli.add_command(elections_cli)

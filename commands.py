"""Flask CLI commands for operators and schedulers.

Usage:
    flask drain-outbox --limit 100
    flask issue-token <uid>
    flask reporting-snapshot --period 2026-10
"""

from __future__ import annotations

import click
from flask.cli import with_appcontext

from extensions import db


@click.command("drain-outbox")
@click.option("--limit", default=50, show_default=True, help="Maximum messages to dispatch")
@with_appcontext
def drain_outbox_command(limit: int):
    """Retry due outbox messages (notifications and automation events)."""
    from services.outbox import drain

    counts = drain(limit=limit)
    click.echo(
        f"Outbox: {counts['sent']} sent, {counts['retrying']} retrying, {counts['failed']} failed"
    )


@click.command("issue-token")
@click.argument("uid")
@with_appcontext
def issue_token_command(uid: str):
    """Print a bearer token for the user with *uid*."""
    from models import User
    from services.clients import get_portal_clients

    user = db.session.get(User, uid)
    if user is None:
        raise click.ClickException(f"User {uid} not found")
    click.echo(get_portal_clients().identity.issue_token(user.uid))


@click.command("reporting-snapshot")
@click.option("--period", required=True, help="Reporting period label, e.g. 2026-10")
@with_appcontext
def reporting_snapshot_command(period: str):
    """Emit a reporting snapshot event for every active tenant."""
    from services.reporting import generate_snapshots

    count = generate_snapshots(period)
    click.echo(f"Queued {count} reporting snapshot(s) for {period}")


ALL_COMMANDS = [drain_outbox_command, issue_token_command, reporting_snapshot_command]


def register_commands(app):
    for command in ALL_COMMANDS:
        app.cli.add_command(command)

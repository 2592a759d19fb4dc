"""
Operator commands for the matching workflow (``flask matching ...``).
"""

from __future__ import annotations

import click
from flask.cli import AppGroup

from beneficiary_hub.models import User
from beneficiary_hub.utils.permissions import Actor

from .workflow import MatchingWorkflow, OperationResult

matching_cli = AppGroup("matching", help="Generate candidates and inspect the review queue.")


def _resolve_actor(email: str) -> Actor:
    user = User.find_by_email(email)
    if user is None:
        raise click.ClickException(f"No user with email {email}.")
    return Actor.from_user(user)


def _unwrap(result: OperationResult):
    if not result.success:
        raise click.ClickException(f"{result.error.code}: {result.error.message}")
    return result.data


def _echo_matches(matches: list[dict]) -> None:
    if not matches:
        click.echo("No matches.")
        return
    for match in matches:
        click.echo(
            f"#{match['id']:<5} rank={match['priority_rank']:<3} score={match['match_score']:<3} "
            f"status={match['status']:<24} donation={match['donation_id']} "
            f"school={match.get('school_name') or match['school_id']}"
        )


@matching_cli.command("generate")
@click.argument("donation_id", type=int)
@click.option("--actor", "actor_email", required=True, help="Email of the admin running generation.")
def generate_command(donation_id: int, actor_email: str):
    """Rank open applications for DONATION_ID and replace its candidates."""
    actor = _resolve_actor(actor_email)
    matches = _unwrap(MatchingWorkflow().generate(actor, donation_id))
    click.echo(f"Generated {len(matches)} candidate(s) for donation {donation_id}.")
    _echo_matches(matches)


@matching_cli.command("pending")
@click.option("--actor", "actor_email", required=True, help="Email of an approver or admin.")
def pending_command(actor_email: str):
    """List allocations awaiting approval."""
    actor = _resolve_actor(actor_email)
    _echo_matches(_unwrap(MatchingWorkflow().list_pending(actor)))


@matching_cli.command("history")
@click.option("--actor", "actor_email", required=True, help="Email of an approver or admin.")
@click.option("--limit", type=int, default=None, help="Maximum rows to show.")
def history_command(actor_email: str, limit: int | None):
    """List reviewed matches, most recent first."""
    actor = _resolve_actor(actor_email)
    _echo_matches(_unwrap(MatchingWorkflow().list_history(actor, limit)))

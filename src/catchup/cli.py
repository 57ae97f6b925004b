"""Catchup CLI - reconnection suggestions."""

import json
import logging
import sys
from datetime import datetime, timedelta

import click

from .config import load_config
from .core.conflicts import ActivityType
from .core.suggestions import DISMISSAL_REASONS, Suggestion, SuggestionFilters, SuggestionKind, TriggerType
from .errors import BatchAcceptError, CatchupError
from .workflows import get_batch, get_directory, get_lifecycle, parse_event, plan


def _setup_logging(debug: bool) -> None:
    logging.basicConfig(
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        level=logging.DEBUG if debug else logging.INFO,
    )


def _resolve_user(config, user: str | None) -> str:
    if user:
        return user
    if len(config.users) == 1:
        return config.users[0]
    click.echo("Error: pass --user (USERS in catchup.conf lists more than one, or none)", err=True)
    sys.exit(1)


def _default_user(config, user: str | None) -> str | None:
    return user or (config.users[0] if config.users else None)


def _names(config, user_id: str) -> dict[str, str]:
    return {c.id: c.name for c in get_directory(config).list_contacts(user_id)}


def _format_suggestion(s: Suggestion, names: dict[str, str]) -> str:
    who = ", ".join(names.get(cid, cid) for cid in s.contact_ids)
    marker = "G" if s.kind is SuggestionKind.GROUP else " "
    return f"[{marker}] {s.id[:8]}  {s.priority_score:.2f}  {who}  {s.proposed_window.format()}"


def _serialize(s: Suggestion) -> dict:
    return {
        "id": s.id,
        "kind": s.kind.value,
        "contact_ids": list(s.contact_ids),
        "trigger_type": s.trigger_type.value,
        "start": s.proposed_window.start.isoformat(),
        "end": s.proposed_window.end.isoformat(),
        "priority_score": s.priority_score,
        "shared_context_score": s.shared_context_score,
        "status": s.status.value,
        "reasoning": s.reasoning,
    }


def _resolve_id(lifecycle, user_id: str | None, prefix: str) -> str:
    """Accept the short ids `pending` prints."""
    if lifecycle.store.get(prefix) is not None or not user_id:
        return prefix
    matches = [s.id for s in lifecycle.store.list_for_user(user_id) if s.id.startswith(prefix)]
    if len(matches) == 1:
        return matches[0]
    return prefix


@click.group()
@click.version_option()
@click.option("--debug", is_flag=True, help="Enable debug logging")
def main(debug: bool):
    """Catchup - who to reconnect with, and when."""
    _setup_logging(debug)


@main.command()
@click.option("--user", "-u", default=None, help="User id (default: the only configured user)")
@click.option("--all", "all_users", is_flag=True, help="Generate for every configured user")
def generate(user: str | None, all_users: bool):
    """Generate a new suggestion batch."""
    config = load_config()
    batch = get_batch(config)

    if all_users:
        results = batch.run_all(config.users)
        for user_id, result in results.items():
            if result.errors:
                click.echo(f"{user_id}: failed ({'; '.join(result.errors)})")
            else:
                click.echo(f"{user_id}: {len(result.created)} created")
        return

    user_id = _resolve_user(config, user)
    try:
        result = batch.generate_batch(user_id)
    except CatchupError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    if result.no_availability:
        click.echo(f"No open time in the next {config.search_horizon_days} days.")
        return

    names = _names(config, user_id)
    click.echo(f"{len(result.created)} new suggestion(s)")
    for s in result.created:
        click.echo(_format_suggestion(s, names))
    if result.skipped_no_availability:
        skipped = ", ".join(names.get(c, c) for c in result.skipped_no_availability)
        click.echo(f"No fitting window for: {skipped}")


@main.command()
@click.option("--user", "-u", default=None, help="User id")
@click.option("--trigger", type=click.Choice([t.value for t in TriggerType]), default=None)
@click.option("--kind", type=click.Choice([k.value for k in SuggestionKind]), default=None)
@click.option("--contact", default=None, help="Only suggestions including this contact id")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def pending(user: str | None, trigger: str | None, kind: str | None, contact: str | None, as_json: bool):
    """List pending suggestions."""
    config = load_config()
    user_id = _resolve_user(config, user)
    filters = SuggestionFilters(
        trigger_type=TriggerType(trigger) if trigger else None,
        kind=SuggestionKind(kind) if kind else None,
        contact_id=contact,
    )
    suggestions = get_lifecycle(config).list_pending(user_id, filters)

    if as_json:
        click.echo(json.dumps([_serialize(s) for s in suggestions], indent=2))
        return

    if not suggestions:
        click.echo("No pending suggestions.")
        return

    names = _names(config, user_id)
    for s in suggestions:
        click.echo(_format_suggestion(s, names))
        click.echo(f"      {s.reasoning}")


@main.command()
@click.argument("suggestion_id")
@click.option("--user", "-u", default=None, help="User id (for short ids)")
def accept(suggestion_id: str, user: str | None):
    """Accept a suggestion."""
    config = load_config()
    lifecycle = get_lifecycle(config)
    try:
        s = lifecycle.accept(_resolve_id(lifecycle, _default_user(config, user), suggestion_id))
    except CatchupError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)
    click.echo(f"Accepted {s.id[:8]} for {s.proposed_window.format()}")


@main.command()
@click.argument("suggestion_id")
@click.option("--reason", "-r", default=None, help=f"Why (e.g. '{DISMISSAL_REASONS[0]}')")
@click.option("--user", "-u", default=None, help="User id (for short ids)")
def dismiss(suggestion_id: str, reason: str | None, user: str | None):
    """Dismiss a suggestion."""
    config = load_config()
    lifecycle = get_lifecycle(config)
    try:
        s = lifecycle.dismiss(
            _resolve_id(lifecycle, _default_user(config, user), suggestion_id), reason
        )
    except CatchupError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)
    click.echo(f"Dismissed {s.id[:8]}")


@main.command()
@click.argument("suggestion_id")
@click.option("--until", "until_str", default=None, help="Snooze until (YYYY-MM-DDTHH:MM)")
@click.option("--days", default=None, type=int, help="Snooze for N days")
@click.option("--user", "-u", default=None, help="User id (for short ids)")
def snooze(suggestion_id: str, until_str: str | None, days: int | None, user: str | None):
    """Snooze a suggestion."""
    if until_str:
        try:
            until = datetime.fromisoformat(until_str)
        except ValueError:
            click.echo(f"Error: Invalid date: {until_str}", err=True)
            sys.exit(1)
        if until.tzinfo is None:
            until = until.astimezone()
    else:
        until = datetime.now().astimezone() + timedelta(days=days or 7)

    config = load_config()
    lifecycle = get_lifecycle(config)
    try:
        s = lifecycle.snooze(_resolve_id(lifecycle, _default_user(config, user), suggestion_id), until)
    except CatchupError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)
    click.echo(f"Snoozed {s.id[:8]} until {until.strftime('%a %b %d %H:%M')}")


@main.command()
@click.argument("suggestion_id")
@click.option("--user", "-u", default=None, help="User id (for short ids)")
def cancel(suggestion_id: str, user: str | None):
    """Cancel an accepted suggestion."""
    config = load_config()
    lifecycle = get_lifecycle(config)
    try:
        s = lifecycle.cancel(_resolve_id(lifecycle, _default_user(config, user), suggestion_id))
    except CatchupError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)
    click.echo(f"Cancelled {s.id[:8]}")


@main.command("batch-accept")
@click.argument("suggestion_ids", nargs=-1, required=True)
@click.option("--user", "-u", default=None, help="User id")
def batch_accept(suggestion_ids: tuple[str, ...], user: str | None):
    """Accept several suggestions at once (all or nothing)."""
    config = load_config()
    user_id = _resolve_user(config, user)
    lifecycle = get_lifecycle(config)
    ids = [_resolve_id(lifecycle, user_id, i) for i in suggestion_ids]
    try:
        accepted = lifecycle.batch_accept(user_id, ids)
    except BatchAcceptError as e:
        click.echo("Error: nothing accepted", err=True)
        for r in e.rejected:
            click.echo(f"  {r.suggestion_id[:8]}: {r.reason}", err=True)
        sys.exit(1)
    except CatchupError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)
    click.echo(f"Accepted {len(accepted)} suggestion(s)")


@main.command("plan")
@click.option("--user", "-u", default=None, help="User id")
@click.option("--must", required=True, help="Comma-separated must-attend contact ids")
@click.option("--nice", default="", help="Comma-separated nice-to-have contact ids")
@click.option("--activity", type=click.Choice([a.value for a in ActivityType]), default="dinner")
@click.option("--no-reasoning", is_flag=True, help="Skip the Claude rationale")
def plan_cmd(user: str | None, must: str, nice: str, activity: str, no_reasoning: bool):
    """Find the best time for a gathering."""
    config = load_config()
    user_id = _resolve_user(config, user)
    must_ids = [m.strip() for m in must.split(",") if m.strip()]
    nice_ids = [n.strip() for n in nice.split(",") if n.strip()]
    try:
        result = plan(config, user_id, must_ids, nice_ids, ActivityType(activity), use_reasoning=not no_reasoning)
    except CatchupError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)
    click.echo(result.format())


@main.command()
@click.option("--user", "-u", default=None, help="User id")
@click.option("--id", "event_id", required=True, help="Calendar event id")
@click.option("--title", required=True)
@click.option("--start", required=True, help="Start (YYYY-MM-DDTHH:MM)")
@click.option("--duration", default=120, type=int, help="Minutes")
@click.option("--location", default="")
@click.option("--description", default="")
def event(user, event_id, title, start, duration, location, description):
    """Suggest contacts to invite to an existing event."""
    config = load_config()
    user_id = _resolve_user(config, user)
    try:
        cal_event = parse_event(event_id, title, start, duration, location, description, config.timezone)
        result = get_batch(config).suggest_for_event(user_id, cal_event)
    except CatchupError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    if not result.created:
        click.echo("Nobody stands out for this event.")
        return
    names = _names(config, user_id)
    for s in result.created:
        click.echo(_format_suggestion(s, names))
        click.echo(f"      {s.reasoning}")


@main.command()
def run():
    """Regenerate batches on a fixed cadence (blocking)."""
    from .batch import create_scheduler

    config = load_config()
    if not config.users:
        click.echo("Error: USERS not set in catchup.conf", err=True)
        sys.exit(1)

    scheduler = create_scheduler(get_batch(config), config.users, config.batch_interval_hours, config.timezone)
    click.echo(f"Generating every {config.batch_interval_hours}h for {', '.join(config.users)}")
    click.echo("Press Ctrl+C to stop")
    try:
        scheduler.start()
    except KeyboardInterrupt:
        click.echo("\nScheduler stopped.")


@main.command("cal-auth")
@click.option("--user", "-u", default=None, help="Only authenticate this user's accounts")
def cal_auth(user: str | None):
    """Authenticate with Google Calendar."""
    config = load_config()

    if not config.calendar_accounts:
        click.echo("No calendar accounts configured in catchup.conf", err=True)
        sys.exit(1)

    if not config.google_client_secret_file:
        click.echo("GOOGLE_CLIENT_SECRET_FILE not set in catchup.conf", err=True)
        sys.exit(1)

    from .adapters.google_calendar import GoogleAccount

    accounts = [a for a in config.calendar_accounts if user is None or a.user_id == user]
    if not accounts:
        click.echo(f"No calendar accounts for {user}", err=True)
        sys.exit(1)

    for acct in accounts:
        account = GoogleAccount(acct.config_folder, config.google_client_secret_file)
        click.echo(f"\nLinking {account.name} for {acct.user_id}")
        if account.authorize():
            click.echo(f"  ✓ Token saved to {account.token_path}")
        else:
            click.echo(f"  ✗ Could not link {account.name}", err=True)


@main.command("cal-debug")
def cal_debug():
    """Debug calendar connectivity per account."""
    from .adapters.google_calendar import GoogleAvailabilityProvider

    config = load_config()
    provider = GoogleAvailabilityProvider.from_config(config)
    today = datetime.now().astimezone().date()

    for user_id in config.users:
        for adapter in provider.adapters_for(user_id):
            click.echo(f"\n{user_id}: {adapter.label} ({adapter.account.folder})")
            try:
                calendars = adapter.list_calendars()
            except CatchupError as e:
                click.echo(f"  ✗ {e}")
                continue
            click.echo(f"  ✓ {len(calendars)} calendar(s) visible")
            for access, name in calendars:
                click.echo(f"    {access:16} {name}")
        try:
            windows = provider.get_free_windows(user_id, today, today + timedelta(days=1))
            click.echo(f"  Free windows today/tomorrow: {len(windows)}")
        except CatchupError as e:
            click.echo(f"  Free windows: error ({e})")


@main.command()
def bot():
    """Run the Telegram bot with its digest and batch schedule."""
    from .telegram_bot import run_bot

    click.echo("Catchup bot starting, Ctrl+C to stop")
    try:
        run_bot()
    except ValueError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)
